from __future__ import annotations

import asyncio
import copy
from typing import Any, Callable, Dict, List, Optional

import pytest

from buildbudget.config import Config
from buildbudget.models import BudgetResult, ProjectParams
from buildbudget.schema import parse_budget_result


class FakeGateway:
    """Scripted gateway; outcomes are returned (or raised) in order."""

    def __init__(self, outcomes: Optional[List[Any]] = None) -> None:
        self.outcomes = list(outcomes or [])
        self.calls: List[ProjectParams] = []
        self.gate: Optional[asyncio.Event] = None

    async def estimate(self, params: ProjectParams) -> Optional[BudgetResult]:
        self.calls.append(params)
        if self.gate is not None:
            await self.gate.wait()
        outcome = self.outcomes.pop(0) if self.outcomes else None
        if isinstance(outcome, BaseException):
            raise outcome
        return copy.deepcopy(outcome)


@pytest.fixture
def budget_payload() -> Dict[str, Any]:
    return {
        "totalCost": 80000,
        "siteCostPerSqFt": 12.5,
        "shellCostPerSqFt": 160,
        "costIndex": 1.04,
        "categories": [
            {
                "id": "shell",
                "name": "Shell Construction",
                "amount": 80000,
                "percentage": 100,
                "items": [
                    {"id": "frame", "name": "Structural Frame", "amount": 50000, "included": True},
                    {"id": "roof", "name": "Roofing", "amount": 30000, "included": True},
                ],
            }
        ],
        "expertAdvice": "Budget is healthy for a vanilla box delivery.",
        "recommendedScopes": [
            {
                "name": "Fire Sprinklers",
                "importance": "Required by code for this occupancy.",
                "suggestedCostRange": "$5k - $15k",
            }
        ],
        "riskFactors": ["Steel price volatility"],
        "timelineWeeks": 16,
    }


@pytest.fixture
def budget_result(budget_payload: Dict[str, Any]) -> BudgetResult:
    return parse_budget_result(budget_payload)


@pytest.fixture
def structure_params() -> ProjectParams:
    return ProjectParams(
        name="Retail Shell",
        proposed_sqft=5000,
        site_sqft=20000,
        include_structure=True,
        include_interior=False,
    )


@pytest.fixture
def config() -> Config:
    return Config(api_key="test-key", progress_interval=0.0)


@pytest.fixture
def gateway_factory() -> Callable[..., FakeGateway]:
    return FakeGateway
