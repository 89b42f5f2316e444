from __future__ import annotations

import asyncio
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from .config import Config, load_config
from .errors import ConfigurationError, InvalidParametersError
from .gateway import OpenAIEstimationGateway
from .models import BudgetResult, ProjectParams
from .reporting import make_summary_text, write_budget_pdf


@dataclass
class EstimateOptions:
    config: Optional[Config] = None
    pdf_path: Optional[Path] = None


def estimate(params: ProjectParams, options: EstimateOptions | None = None) -> BudgetResult:
    """Programmatic interface: request one budget synchronously.

    Raises :class:`~buildbudget.errors.BuildBudgetError` subclasses instead of
    returning partial results. When ``options.pdf_path`` is set the budget is
    also written there as a PDF.
    """
    options = options or EstimateOptions()
    cfg = options.config or load_config(os.environ)
    if not cfg.has_credentials:
        raise ConfigurationError("API key unavailable; set OPENAI_API_KEY")
    params.validate()

    gateway = OpenAIEstimationGateway(cfg)
    result = asyncio.run(gateway.estimate(params))
    if result is None:
        raise InvalidParametersError("Estimation service returned no budget")
    if options.pdf_path:
        write_budget_pdf(result, options.pdf_path, params)
    return result


def summarize(params: ProjectParams, options: EstimateOptions | None = None) -> str:
    return make_summary_text(estimate(params, options))


__all__ = ["EstimateOptions", "estimate", "summarize"]
