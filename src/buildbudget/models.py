from __future__ import annotations

import copy
import math
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, Dict, List, Optional

from .errors import UserInputError


class CostScenario(str, Enum):
    LOW = "Economy/Budget"
    MID = "Standard/Market"
    HIGH = "Premium/Luxury"


class ShellDeliveryType(str, Enum):
    DARK_SHELL = "Cold/Dark Shell"
    WARM_SHELL = "Warm Shell"
    VANILLA_BOX = "Vanilla Box (White Box)"


class DemolitionType(str, Enum):
    SITE_ONLY = "Site Demolition Only"
    BUILDING_ONLY = "Building Demolition Only"
    BOTH = "Site and Building Demolition"


class SitePrepType(str, Enum):
    GRADING = "Grading and Compaction"
    STUBS_PAD = "Utility Stubs to Building Pad"
    STUBS_LOT = "Utility Stubs to Lot Line"


class ScopeToggle(str, Enum):
    """Identifiers of the scope checkboxes shown in the project form."""

    DEMOLITION = "demolition"
    SITE_PREP = "site_prep"
    STRUCTURE = "structure"
    INTERIOR = "interior"
    CUSTOM_SCOPE = "custom_scope"


SCOPE_LABELS: Dict[ScopeToggle, str] = {
    ScopeToggle.DEMOLITION: "Demolition & Clearing",
    ScopeToggle.SITE_PREP: "Site Prep & Utilities",
    ScopeToggle.STRUCTURE: "Structural Shell",
    ScopeToggle.INTERIOR: "Interior Fit-out",
    ScopeToggle.CUSTOM_SCOPE: "Custom Scope/Details",
}

AREA_FIELDS = ("existing_sqft", "existing_site_sqft", "site_sqft", "proposed_sqft")


@dataclass(frozen=True)
class ProjectFile:
    """A drawing or document attached to the request as base64 data."""

    name: str
    mime_type: str
    data: str

    @property
    def is_image(self) -> bool:
        return self.mime_type.startswith("image/")

    def to_data_url(self) -> str:
        return f"data:{self.mime_type};base64,{self.data}"


@dataclass
class ProjectParams:
    """Project configuration collected by the form and sent for estimation."""

    name: str = "New Construction Project"
    existing_sqft: float = 0.0
    existing_site_sqft: float = 0.0
    site_sqft: float = 0.0
    proposed_sqft: float = 0.0
    scenario: CostScenario = CostScenario.MID
    location: str = "Austin, TX"
    include_demolition: bool = False
    demolition_types: List[DemolitionType] = field(default_factory=list)
    include_site_prep: bool = False
    site_prep_types: List[SitePrepType] = field(default_factory=list)
    include_structure: bool = False
    shell_delivery: ShellDeliveryType = ShellDeliveryType.VANILLA_BOX
    include_interior: bool = False
    include_custom_scope: bool = False
    custom_scope: str = ""
    files: List[ProjectFile] = field(default_factory=list)

    def validate(self) -> None:
        """Raise :class:`UserInputError` unless every area is a non-negative number."""
        for name in AREA_FIELDS:
            value = getattr(self, name)
            if isinstance(value, bool) or not isinstance(value, (int, float)):
                raise UserInputError(f"{name} must be a number, got {value!r}")
            if math.isnan(value) or value < 0:
                raise UserInputError(f"{name} must be non-negative, got {value!r}")

    def scope_enabled(self, toggle: ScopeToggle) -> bool:
        if toggle is ScopeToggle.DEMOLITION:
            return self.include_demolition
        if toggle is ScopeToggle.SITE_PREP:
            return self.include_site_prep
        if toggle is ScopeToggle.STRUCTURE:
            return self.include_structure
        if toggle is ScopeToggle.INTERIOR:
            return self.include_interior
        if toggle is ScopeToggle.CUSTOM_SCOPE:
            return self.include_custom_scope
        raise ValueError(f"Unknown scope toggle: {toggle!r}")

    def with_scope(self, toggle: ScopeToggle, enabled: bool) -> "ProjectParams":
        """Return a copy with the flag behind ``toggle`` set to ``enabled``."""
        if toggle is ScopeToggle.DEMOLITION:
            return replace(self, include_demolition=enabled)
        if toggle is ScopeToggle.SITE_PREP:
            return replace(self, include_site_prep=enabled)
        if toggle is ScopeToggle.STRUCTURE:
            return replace(self, include_structure=enabled)
        if toggle is ScopeToggle.INTERIOR:
            return replace(self, include_interior=enabled)
        if toggle is ScopeToggle.CUSTOM_SCOPE:
            return replace(self, include_custom_scope=enabled)
        raise ValueError(f"Unknown scope toggle: {toggle!r}")

    def selected_scopes(self) -> List[ScopeToggle]:
        return [toggle for toggle in ScopeToggle if self.scope_enabled(toggle)]


@dataclass
class LineItem:
    id: str
    name: str
    amount: float
    included: bool = True

    @classmethod
    def from_dict(cls, raw: Dict[str, Any]) -> "LineItem":
        return cls(
            id=str(raw["id"]),
            name=str(raw["name"]),
            amount=float(raw["amount"]),
            included=bool(raw.get("included", True)),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {"id": self.id, "name": self.name, "amount": self.amount, "included": self.included}


@dataclass
class BudgetCategory:
    id: str
    name: str
    amount: float
    percentage: float
    items: List[LineItem] = field(default_factory=list)

    def included_total(self) -> float:
        return sum(item.amount for item in self.items if item.included)

    def find_item(self, item_id: str) -> Optional[LineItem]:
        for item in self.items:
            if item.id == item_id:
                return item
        return None

    @classmethod
    def from_dict(cls, raw: Dict[str, Any]) -> "BudgetCategory":
        return cls(
            id=str(raw["id"]),
            name=str(raw["name"]),
            amount=float(raw["amount"]),
            percentage=float(raw["percentage"]),
            items=[LineItem.from_dict(item) for item in raw.get("items", [])],
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "amount": self.amount,
            "percentage": self.percentage,
            "items": [item.to_dict() for item in self.items],
        }


@dataclass
class RecommendedScope:
    """Advisory scope suggestion; never counted in any total."""

    name: str
    importance: str
    suggested_cost_range: str

    @classmethod
    def from_dict(cls, raw: Dict[str, Any]) -> "RecommendedScope":
        return cls(
            name=str(raw["name"]),
            importance=str(raw["importance"]),
            suggested_cost_range=str(raw["suggestedCostRange"]),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "importance": self.importance,
            "suggestedCostRange": self.suggested_cost_range,
        }


@dataclass
class BudgetResult:
    """Structured budget returned by the estimation service.

    ``total_cost`` is what the service reported. The figure shown to the user
    is always :meth:`included_total`, which follows line item toggles.
    """

    total_cost: float
    site_cost_per_sqft: float
    shell_cost_per_sqft: float
    cost_index: float
    categories: List[BudgetCategory]
    expert_advice: str
    recommended_scopes: List[RecommendedScope]
    risk_factors: List[str]
    timeline_weeks: float
    needed_files: List[str] = field(default_factory=list)

    def included_total(self) -> float:
        return sum(category.included_total() for category in self.categories)

    def find_category(self, category_id: str) -> Optional[BudgetCategory]:
        for category in self.categories:
            if category.id == category_id:
                return category
        return None

    @classmethod
    def from_dict(cls, raw: Dict[str, Any]) -> "BudgetResult":
        return cls(
            total_cost=float(raw["totalCost"]),
            site_cost_per_sqft=float(raw["siteCostPerSqFt"]),
            shell_cost_per_sqft=float(raw["shellCostPerSqFt"]),
            cost_index=float(raw["costIndex"]),
            categories=[BudgetCategory.from_dict(cat) for cat in raw["categories"]],
            expert_advice=str(raw["expertAdvice"]),
            recommended_scopes=[RecommendedScope.from_dict(s) for s in raw["recommendedScopes"]],
            risk_factors=[str(risk) for risk in raw["riskFactors"]],
            timeline_weeks=float(raw["timelineWeeks"]),
            needed_files=[str(name) for name in raw.get("neededFiles") or []],
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "totalCost": self.total_cost,
            "siteCostPerSqFt": self.site_cost_per_sqft,
            "shellCostPerSqFt": self.shell_cost_per_sqft,
            "costIndex": self.cost_index,
            "categories": [category.to_dict() for category in self.categories],
            "expertAdvice": self.expert_advice,
            "recommendedScopes": [scope.to_dict() for scope in self.recommended_scopes],
            "riskFactors": list(self.risk_factors),
            "timelineWeeks": self.timeline_weeks,
            "neededFiles": list(self.needed_files),
        }


@dataclass(frozen=True)
class Snapshot:
    """One (params, result) pair; the unit stored in undo history."""

    params: ProjectParams
    result: Optional[BudgetResult] = None

    def clone(self) -> "Snapshot":
        return Snapshot(params=copy.deepcopy(self.params), result=copy.deepcopy(self.result))


__all__ = [
    "CostScenario",
    "ShellDeliveryType",
    "DemolitionType",
    "SitePrepType",
    "ScopeToggle",
    "SCOPE_LABELS",
    "ProjectFile",
    "ProjectParams",
    "LineItem",
    "BudgetCategory",
    "RecommendedScope",
    "BudgetResult",
    "Snapshot",
]
