from __future__ import annotations

import asyncio

import pytest

from buildbudget.config import Config
from buildbudget.errors import (
    ConfigurationError,
    InvalidParametersError,
    ServiceUnavailableError,
)
from buildbudget.models import ProjectParams
from buildbudget.session import SessionStateManager, SessionStatus


async def _other_tasks() -> set:
    await asyncio.sleep(0)
    current = asyncio.current_task()
    return {task for task in asyncio.all_tasks() if task is not current}


def test_toggle_and_undo_follow_included_items(config, budget_result, structure_params, gateway_factory) -> None:
    gateway = gateway_factory([budget_result])
    session = SessionStateManager(gateway, config)

    assert asyncio.run(session.submit(structure_params)) is True
    assert session.status is SessionStatus.READY
    assert session.view().total == 80000

    assert session.toggle_line_item("shell", "roof") is True
    assert session.view().total == 50000
    assert session.result.find_category("shell").find_item("roof").included is False

    assert session.undo() is True
    assert session.view().total == 80000
    assert session.result.find_category("shell").find_item("roof").included is True


def test_total_is_recomputed_after_every_toggle(config, budget_result, structure_params, gateway_factory) -> None:
    session = SessionStateManager(gateway_factory([budget_result]), config)
    asyncio.run(session.submit(structure_params))

    for category_id, item_id in [("shell", "frame"), ("shell", "roof"), ("shell", "frame"), ("shell", "roof")]:
        session.toggle_line_item(category_id, item_id)
        expected = sum(
            item.amount for category in session.result.categories for item in category.items if item.included
        )
        assert session.view().total == expected


def test_submit_keeps_submitted_params_isolated(config, budget_result, structure_params, gateway_factory) -> None:
    gateway = gateway_factory([budget_result])
    session = SessionStateManager(gateway, config)
    asyncio.run(session.submit(structure_params))

    structure_params.name = "Edited after submit"
    assert session.params.name == "Retail Shell"
    assert gateway.calls[0].include_structure is True
    assert gateway.calls[0].include_interior is False


def test_history_is_bounded_and_lifo(config, budget_result, structure_params, gateway_factory) -> None:
    session = SessionStateManager(gateway_factory([budget_result]), config)
    asyncio.run(session.submit(structure_params))

    for _ in range(60):
        session.toggle_line_item("shell", "roof")
    assert session.history_depth == 50

    undone = 0
    while session.undo():
        undone += 1
    assert undone == 50
    # the pre-submit snapshot was evicted, so a result is still current
    assert session.result is not None
    # 61 pushes; after 50 undos we are at the state following 10 toggles
    assert session.result.find_category("shell").find_item("roof").included is True


def test_undo_with_empty_history_is_noop(config, gateway_factory) -> None:
    session = SessionStateManager(gateway_factory(), config)
    before = session.snapshot

    assert session.undo() is False
    assert session.snapshot is before
    assert session.status is SessionStatus.IDLE


def test_toggle_unknown_ids_is_noop(config, budget_result, structure_params, gateway_factory) -> None:
    session = SessionStateManager(gateway_factory([budget_result]), config)
    asyncio.run(session.submit(structure_params))
    before = session.snapshot
    depth = session.history_depth

    assert session.toggle_line_item("missing", "roof") is False
    assert session.toggle_line_item("shell", "missing") is False
    assert session.snapshot is before
    assert session.history_depth == depth


def test_toggle_requires_ready_state(config, gateway_factory) -> None:
    session = SessionStateManager(gateway_factory(), config)
    assert session.toggle_line_item("shell", "roof") is False
    assert session.history_depth == 0


def test_second_submit_while_pending_is_rejected(config, budget_result, structure_params, gateway_factory) -> None:
    gateway = gateway_factory([budget_result, budget_result])
    session = SessionStateManager(gateway, config)

    async def scenario():
        gateway.gate = asyncio.Event()
        first = asyncio.create_task(session.submit(structure_params))
        await asyncio.sleep(0)
        assert session.status is SessionStatus.PENDING
        second = await session.submit(structure_params)
        gateway.gate.set()
        return await first, second

    first_ok, second_ok = asyncio.run(scenario())
    assert first_ok is True
    assert second_ok is False
    assert len(gateway.calls) == 1


def test_absent_result_keeps_previous_snapshot(config, structure_params, gateway_factory) -> None:
    gateway = gateway_factory([None])
    session = SessionStateManager(gateway, config)
    before = session.snapshot

    assert asyncio.run(session.submit(structure_params)) is False
    assert session.status is SessionStatus.FAILED
    assert session.snapshot is before
    assert session.result is None
    assert session.error == InvalidParametersError.user_message
    assert session.history_depth == 0


def test_gateway_errors_are_categorised(config, budget_result, structure_params, gateway_factory) -> None:
    gateway = gateway_factory(
        [budget_result, ServiceUnavailableError("socket closed by 10.0.0.7"), RuntimeError("stack trace details")]
    )
    session = SessionStateManager(gateway, config)
    asyncio.run(session.submit(structure_params))
    ready = session.snapshot

    assert asyncio.run(session.submit(structure_params)) is False
    assert session.error == ServiceUnavailableError.user_message
    assert session.snapshot is ready
    assert session.history_depth == 1

    assert asyncio.run(session.submit(structure_params)) is False
    assert session.error == ServiceUnavailableError.user_message
    assert "stack trace" not in session.error
    assert session.snapshot is ready


def test_missing_credentials_short_circuit(structure_params, gateway_factory) -> None:
    gateway = gateway_factory()
    session = SessionStateManager(gateway, Config(api_key=None, progress_interval=0.0))

    assert asyncio.run(session.submit(structure_params)) is False
    assert gateway.calls == []
    assert session.status is SessionStatus.FAILED
    assert session.error == ConfigurationError.user_message
    assert session.has_credentials is False


def test_negative_area_is_rejected_before_gateway(config, gateway_factory) -> None:
    gateway = gateway_factory()
    session = SessionStateManager(gateway, config)

    assert asyncio.run(session.submit(ProjectParams(existing_sqft=-5))) is False
    assert gateway.calls == []
    assert session.status is SessionStatus.FAILED


def test_progress_is_monotonic_and_capped_while_pending(
    config, budget_result, structure_params, gateway_factory
) -> None:
    gateway = gateway_factory([budget_result])
    session = SessionStateManager(gateway, config)
    views = []
    session.subscribe(views.append)

    async def scenario():
        gateway.gate = asyncio.Event()
        task = asyncio.create_task(session.submit(structure_params))
        for _ in range(300):
            await asyncio.sleep(0)
        capped = session.progress
        gateway.gate.set()
        await task
        return capped, await _other_tasks()

    capped, leftover = asyncio.run(scenario())
    assert capped == 98
    assert leftover == set()

    pending = [view.progress for view in views if view.status is SessionStatus.PENDING]
    assert pending[0] == 0
    assert pending == sorted(pending)
    assert all(value < 100 for value in pending)
    assert views[-1].status is SessionStatus.READY
    assert views[-1].progress == 100


def test_failure_hides_progress_and_stops_ticker(config, structure_params, gateway_factory) -> None:
    gateway = gateway_factory([ServiceUnavailableError("down")])
    session = SessionStateManager(gateway, config)

    async def scenario():
        gateway.gate = asyncio.Event()
        task = asyncio.create_task(session.submit(structure_params))
        for _ in range(10):
            await asyncio.sleep(0)
        gateway.gate.set()
        await task
        return await _other_tasks()

    assert asyncio.run(scenario()) == set()
    assert session.status is SessionStatus.FAILED
    assert session.progress is None


def test_cancelled_submit_restores_previous_status(config, structure_params, gateway_factory) -> None:
    gateway = gateway_factory()
    session = SessionStateManager(gateway, config)

    async def scenario():
        gateway.gate = asyncio.Event()
        task = asyncio.create_task(session.submit(structure_params))
        await asyncio.sleep(0)
        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task
        return await _other_tasks()

    assert asyncio.run(scenario()) == set()
    assert session.status is SessionStatus.IDLE
    assert session.progress is None
    assert session.history_depth == 0


def test_dismiss_error_returns_to_last_good_state(config, budget_result, structure_params, gateway_factory) -> None:
    gateway = gateway_factory([budget_result, None])
    session = SessionStateManager(gateway, config)
    asyncio.run(session.submit(structure_params))
    asyncio.run(session.submit(structure_params))
    assert session.status is SessionStatus.FAILED

    session.dismiss_error()
    assert session.error is None
    assert session.status is SessionStatus.READY
    assert session.toggle_line_item("shell", "frame") is True


def test_subscribers_receive_views_until_unsubscribed(
    config, budget_result, structure_params, gateway_factory
) -> None:
    session = SessionStateManager(gateway_factory([budget_result]), config)
    seen = []
    unsubscribe = session.subscribe(seen.append)

    asyncio.run(session.submit(structure_params))
    assert seen[0].status is SessionStatus.PENDING
    assert seen[-1].status is SessionStatus.READY
    assert seen[-1].can_undo is True

    unsubscribe()
    count = len(seen)
    session.toggle_line_item("shell", "roof")
    assert len(seen) == count


def test_history_limit_comes_from_config(budget_result, structure_params, gateway_factory) -> None:
    session = SessionStateManager(
        gateway_factory([budget_result]), Config(api_key="k", progress_interval=0.0, history_limit=3)
    )
    asyncio.run(session.submit(structure_params))
    for _ in range(5):
        session.toggle_line_item("shell", "frame")
    assert session.history_depth == 3


def test_aclose_cancels_progress_while_pending(config, budget_result, structure_params, gateway_factory) -> None:
    gateway = gateway_factory([budget_result])
    session = SessionStateManager(gateway, config)
    seen = []
    session.subscribe(seen.append)

    async def scenario():
        gateway.gate = asyncio.Event()
        task = asyncio.create_task(session.submit(structure_params))
        for _ in range(3):
            await asyncio.sleep(0)
        await session.aclose()
        frozen = session.progress
        for _ in range(20):
            await asyncio.sleep(0)
        ticking = {t for t in asyncio.all_tasks() if t.get_name() == "buildbudget-progress"}
        after = session.progress
        gateway.gate.set()
        await task
        return frozen, after, ticking

    frozen, after, ticking = asyncio.run(scenario())
    assert ticking == set()
    assert frozen is not None and frozen < 98
    assert after == frozen
    assert session.progress == 100
    assert all(view.status is not SessionStatus.READY for view in seen)


def test_history_is_isolated_from_published_views(config, budget_result, structure_params, gateway_factory) -> None:
    session = SessionStateManager(gateway_factory([budget_result]), config)
    asyncio.run(session.submit(structure_params))
    published = session.view()

    session.toggle_line_item("shell", "frame")
    published.result.find_category("shell").find_item("roof").amount = 1
    published.params.name = "Edited by an observer"

    assert session.undo() is True
    assert session.result.find_category("shell").find_item("roof").amount == 30000
    assert session.params.name == "Retail Shell"
