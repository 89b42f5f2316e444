"""Response schema for budget estimates and validation of service payloads."""
from __future__ import annotations

import copy
import json
import logging
import math
from typing import Any, Dict, List

from jsonschema import Draft7Validator

from .errors import InvalidParametersError
from .models import BudgetResult

LOGGER = logging.getLogger(__name__)

LINE_ITEM_SCHEMA: Dict[str, Any] = {
    "type": "object",
    "properties": {
        "id": {"type": "string"},
        "name": {"type": "string"},
        "amount": {"type": "number"},
        "included": {"type": "boolean"},
    },
    "required": ["id", "name", "amount", "included"],
}

CATEGORY_SCHEMA: Dict[str, Any] = {
    "type": "object",
    "properties": {
        "id": {"type": "string"},
        "name": {"type": "string"},
        "amount": {"type": "number"},
        "percentage": {"type": "number"},
        "items": {"type": "array", "items": LINE_ITEM_SCHEMA},
    },
    "required": ["id", "name", "amount", "percentage", "items"],
}

RECOMMENDED_SCOPE_SCHEMA: Dict[str, Any] = {
    "type": "object",
    "properties": {
        "name": {"type": "string"},
        "importance": {"type": "string"},
        "suggestedCostRange": {"type": "string"},
    },
    "required": ["name", "importance", "suggestedCostRange"],
}

BUDGET_RESULT_SCHEMA: Dict[str, Any] = {
    "type": "object",
    "properties": {
        "totalCost": {"type": "number"},
        "siteCostPerSqFt": {"type": "number"},
        "shellCostPerSqFt": {"type": "number"},
        "costIndex": {"type": "number"},
        "categories": {"type": "array", "items": CATEGORY_SCHEMA},
        "expertAdvice": {"type": "string"},
        "recommendedScopes": {"type": "array", "items": RECOMMENDED_SCOPE_SCHEMA},
        "riskFactors": {"type": "array", "items": {"type": "string"}},
        "timelineWeeks": {"type": "number"},
        "neededFiles": {"type": "array", "items": {"type": "string"}},
    },
    "required": [
        "totalCost",
        "siteCostPerSqFt",
        "shellCostPerSqFt",
        "costIndex",
        "categories",
        "expertAdvice",
        "recommendedScopes",
        "riskFactors",
        "timelineWeeks",
    ],
}

_VALIDATOR = Draft7Validator(BUDGET_RESULT_SCHEMA)

_TOP_LEVEL_NUMBERS = ("totalCost", "siteCostPerSqFt", "shellCostPerSqFt", "costIndex", "timelineWeeks")


def _repair(payload: Dict[str, Any]) -> Dict[str, Any]:
    """Fill the defaults the service is allowed to omit."""
    repaired = copy.deepcopy(payload)
    if repaired.get("neededFiles") is None:
        repaired["neededFiles"] = []
    categories = repaired.get("categories")
    if isinstance(categories, list):
        for category in categories:
            if not isinstance(category, dict) or not isinstance(category.get("items"), list):
                continue
            for item in category["items"]:
                if isinstance(item, dict) and "included" not in item:
                    item["included"] = True
    return repaired


def _reject_constant(token: str) -> float:
    raise InvalidParametersError(f"Budget response contains non-standard number {token}")


def _finite(value: float) -> bool:
    try:
        return math.isfinite(value)
    except OverflowError:
        return False


def _number_problems(payload: Dict[str, Any]) -> List[str]:
    """Flag NaN and infinite amounts; JSON Schema treats them as numbers."""
    problems = [f"{key} is not finite" for key in _TOP_LEVEL_NUMBERS if not _finite(payload[key])]
    for category in payload["categories"]:
        for key in ("amount", "percentage"):
            if not _finite(category[key]):
                problems.append(f"category {category['id']!r} {key} is not finite")
        for item in category["items"]:
            if not _finite(item["amount"]):
                problems.append(f"item {item['id']!r} amount is not finite")
    return problems


def _identity_problems(payload: Dict[str, Any]) -> List[str]:
    problems: List[str] = []
    seen_categories: set[str] = set()
    for category in payload["categories"]:
        category_id = category["id"]
        if category_id in seen_categories:
            problems.append(f"duplicate category id {category_id!r}")
        seen_categories.add(category_id)
        if not category["items"]:
            problems.append(f"category {category_id!r} has no line items")
        seen_items: set[str] = set()
        for item in category["items"]:
            if item["id"] in seen_items:
                problems.append(f"duplicate item id {item['id']!r} in category {category_id!r}")
            seen_items.add(item["id"])
    return problems


def parse_budget_result(payload: str | Dict[str, Any]) -> BudgetResult:
    """Validate a service payload and convert it into a :class:`BudgetResult`.

    Raises :class:`InvalidParametersError` for anything that does not match the
    schema, so partial objects never reach the session.
    """

    if isinstance(payload, str):
        try:
            payload = json.loads(payload, parse_constant=_reject_constant)
        except json.JSONDecodeError as exc:
            raise InvalidParametersError(f"Budget response is not valid JSON: {exc}") from exc
    if not isinstance(payload, dict):
        raise InvalidParametersError(f"Budget response must be a JSON object, got {type(payload).__name__}")

    repaired = _repair(payload)
    errors = sorted(_VALIDATOR.iter_errors(repaired), key=lambda err: list(err.path))
    if errors:
        details = "; ".join(
            f"{'/'.join(str(part) for part in err.path) or '<root>'}: {err.message}" for err in errors[:5]
        )
        raise InvalidParametersError(f"Budget response failed schema validation: {details}")

    problems = _number_problems(repaired) + _identity_problems(repaired)
    if problems:
        raise InvalidParametersError("Budget response is inconsistent: " + "; ".join(problems))

    return BudgetResult.from_dict(repaired)


__all__ = ["BUDGET_RESULT_SCHEMA", "parse_budget_result"]
