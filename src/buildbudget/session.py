"""Session state for one estimating session.

The :class:`SessionStateManager` owns the current (params, result) snapshot,
the in-flight estimate, the synthetic progress value and a bounded undo
history. The presentation layer only reads :class:`SessionView` objects
published to subscribers and sends intents back through the public methods.

All methods must be called from the thread running the session's event loop.
"""
from __future__ import annotations

import asyncio
import copy
import logging
from collections import deque
from dataclasses import dataclass
from enum import Enum
from typing import Awaitable, Callable, Deque, List, Optional

from .config import Config
from .errors import (
    BuildBudgetError,
    ConfigurationError,
    InvalidParametersError,
    ServiceUnavailableError,
)
from .gateway import EstimationGateway
from .models import BudgetResult, ProjectParams, Snapshot
from .progress import COMPLETE, ProgressTicker

LOGGER = logging.getLogger(__name__)


class SessionStatus(str, Enum):
    IDLE = "idle"
    PENDING = "pending"
    READY = "ready"
    FAILED = "failed"


@dataclass(frozen=True)
class SessionView:
    """Read-only picture of the session handed to subscribers."""

    status: SessionStatus
    snapshot: Snapshot
    progress: Optional[float]
    error: Optional[str]
    history_depth: int
    has_credentials: bool

    @property
    def params(self) -> ProjectParams:
        return self.snapshot.params

    @property
    def result(self) -> Optional[BudgetResult]:
        return self.snapshot.result

    @property
    def can_undo(self) -> bool:
        return self.history_depth > 0

    @property
    def total(self) -> Optional[float]:
        """Sum of included line items, derived on every access."""
        if self.snapshot.result is None:
            return None
        return self.snapshot.result.included_total()


Observer = Callable[[SessionView], None]


class SessionStateManager:
    """Mediates every mutation of the estimating session."""

    def __init__(
        self,
        gateway: EstimationGateway,
        config: Config,
        *,
        initial_params: ProjectParams | None = None,
        sleeper: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self._gateway = gateway
        self._config = config
        self._current = Snapshot(params=copy.deepcopy(initial_params or ProjectParams()))
        self._history: Deque[Snapshot] = deque(maxlen=config.history_limit)
        self._status = SessionStatus.IDLE
        self._progress: Optional[float] = None
        self._error: Optional[str] = None
        self._observers: List[Observer] = []
        self._ticker = ProgressTicker(config.progress_interval, self._on_progress, sleeper=sleeper)

    # ------------------------------------------------------------ Reading --
    @property
    def status(self) -> SessionStatus:
        return self._status

    @property
    def snapshot(self) -> Snapshot:
        return self._current

    @property
    def params(self) -> ProjectParams:
        return self._current.params

    @property
    def result(self) -> Optional[BudgetResult]:
        return self._current.result

    @property
    def progress(self) -> Optional[float]:
        return self._progress

    @property
    def error(self) -> Optional[str]:
        return self._error

    @property
    def history_depth(self) -> int:
        return len(self._history)

    @property
    def can_undo(self) -> bool:
        return bool(self._history)

    @property
    def has_credentials(self) -> bool:
        return self._config.has_credentials

    def view(self) -> SessionView:
        return SessionView(
            status=self._status,
            snapshot=self._current,
            progress=self._progress,
            error=self._error,
            history_depth=len(self._history),
            has_credentials=self._config.has_credentials,
        )

    # ---------------------------------------------------------- Observers --
    def subscribe(self, observer: Observer) -> Callable[[], None]:
        """Register ``observer`` for state changes and return an unsubscribe callable."""
        self._observers.append(observer)

        def unsubscribe() -> None:
            if observer in self._observers:
                self._observers.remove(observer)

        return unsubscribe

    def _publish(self) -> None:
        view = self.view()
        for observer in list(self._observers):
            try:
                observer(view)
            except Exception:  # pragma: no cover - observer bug
                LOGGER.exception("Session observer %r failed", observer)

    def _on_progress(self, value: float) -> None:
        if self._status is not SessionStatus.PENDING:
            return
        self._progress = value
        self._publish()

    # ------------------------------------------------------------ Intents --
    async def submit(self, params: ProjectParams) -> bool:
        """Request a new estimate for ``params``.

        Returns ``True`` when a new result became current. A submit while
        another estimate is pending is refused and never reaches the gateway.
        """
        if self._status is SessionStatus.PENDING:
            LOGGER.warning("Ignoring submit for %r; an estimate is already pending", params.name)
            return False

        self._error = None
        try:
            params.validate()
        except BuildBudgetError as exc:
            LOGGER.info("Rejected project parameters: %s", exc)
            self._fail(exc)
            return False
        if not self._config.has_credentials:
            self._fail(ConfigurationError("submit attempted without an API key"))
            return False

        before = self._current
        restore_status = self._status
        submitted = copy.deepcopy(params)
        self._status = SessionStatus.PENDING
        self._progress = 0.0
        self._ticker.start()
        self._publish()

        failure: Optional[BuildBudgetError] = None
        result: Optional[BudgetResult] = None
        try:
            result = await self._gateway.estimate(submitted)
        except BuildBudgetError as exc:
            failure = exc
        except asyncio.CancelledError:
            self._ticker.stop()
            self._status = restore_status
            self._progress = None
            self._publish()
            raise
        except Exception as exc:
            LOGGER.exception("Unexpected gateway failure")
            failure = ServiceUnavailableError(str(exc))
        finally:
            self._ticker.stop()

        if failure is None and result is None:
            failure = InvalidParametersError("estimation service returned no budget")
        if failure is not None:
            self._fail(failure)
            return False

        self._history.append(before.clone())
        self._current = Snapshot(params=submitted, result=result)
        self._status = SessionStatus.READY
        self._progress = COMPLETE
        LOGGER.debug("Estimate ready; history depth %d", len(self._history))
        self._publish()
        return True

    def _fail(self, exc: BuildBudgetError) -> None:
        LOGGER.debug("Estimate failed (%s): %s", type(exc).__name__, exc)
        self._status = SessionStatus.FAILED
        self._progress = None
        self._error = exc.user_message
        self._publish()

    def toggle_line_item(self, category_id: str, item_id: str) -> bool:
        """Flip the ``included`` flag of one line item; unknown ids are ignored."""
        result = self._current.result
        if self._status is not SessionStatus.READY or result is None:
            return False
        category = result.find_category(category_id)
        if category is None or category.find_item(item_id) is None:
            LOGGER.debug("No line item %s/%s to toggle", category_id, item_id)
            return False

        updated = copy.deepcopy(result)
        item = updated.find_category(category_id).find_item(item_id)
        item.included = not item.included
        self._history.append(self._current.clone())
        self._current = Snapshot(params=self._current.params, result=updated)
        self._publish()
        return True

    def undo(self) -> bool:
        """Restore the most recent snapshot; a no-op with empty history or while pending."""
        if not self._history or self._status is SessionStatus.PENDING:
            return False
        self._current = self._history.pop()
        self._status = SessionStatus.READY if self._current.result is not None else SessionStatus.IDLE
        self._error = None
        self._publish()
        return True

    def dismiss_error(self) -> None:
        if self._error is None:
            return
        self._error = None
        if self._status is SessionStatus.FAILED:
            self._status = SessionStatus.READY if self._current.result is not None else SessionStatus.IDLE
        self._publish()

    async def aclose(self) -> None:
        """Tear the session down, stopping the progress task."""
        await self._ticker.aclose()
        self._observers.clear()


__all__ = ["SessionStateManager", "SessionStatus", "SessionView"]
