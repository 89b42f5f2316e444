"""AI-assisted construction budget estimation."""

from .config import Config, load_config
from .gateway import EstimationGateway, OpenAIEstimationGateway
from .models import (
    BudgetCategory,
    BudgetResult,
    CostScenario,
    DemolitionType,
    LineItem,
    ProjectFile,
    ProjectParams,
    RecommendedScope,
    ScopeToggle,
    ShellDeliveryType,
    SitePrepType,
    Snapshot,
)
from .session import SessionStateManager, SessionStatus, SessionView

__all__ = [
    "Config",
    "load_config",
    "EstimationGateway",
    "OpenAIEstimationGateway",
    "BudgetCategory",
    "BudgetResult",
    "CostScenario",
    "DemolitionType",
    "LineItem",
    "ProjectFile",
    "ProjectParams",
    "RecommendedScope",
    "ScopeToggle",
    "ShellDeliveryType",
    "SitePrepType",
    "Snapshot",
    "SessionStateManager",
    "SessionStatus",
    "SessionView",
]
