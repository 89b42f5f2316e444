"""Estimation gateway backed by the OpenAI responses API."""
from __future__ import annotations

import logging
from typing import Any, Optional, Protocol

import openai
from openai import AsyncOpenAI

from .config import Config
from .errors import ConfigurationError, InvalidParametersError, ServiceUnavailableError
from .models import BudgetResult, ProjectParams
from .prompt import DEFAULT_SYSTEM_PROMPT, build_input
from .schema import BUDGET_RESULT_SCHEMA, parse_budget_result

LOGGER = logging.getLogger(__name__)


class EstimationGateway(Protocol):
    """Anything that can turn project parameters into a budget.

    Implementations return ``None`` when the service produced no budget and
    raise :class:`~buildbudget.errors.GatewayError` subclasses on failure.
    """

    async def estimate(self, params: ProjectParams) -> Optional[BudgetResult]:
        ...


class OpenAIEstimationGateway:
    """Coordinates a single schema-constrained completion per estimate."""

    def __init__(
        self,
        config: Config,
        client: Any | None = None,
        *,
        system_prompt: str | None = None,
    ) -> None:
        self.config = config
        self.system_prompt = system_prompt or DEFAULT_SYSTEM_PROMPT
        self._client = client

    @property
    def client(self) -> Any:
        if self._client is None:
            if not self.config.has_credentials:
                raise ConfigurationError("API key unavailable; cannot create estimation client")
            self._client = AsyncOpenAI(api_key=self.config.api_key, base_url=self.config.base_url)
        return self._client

    async def estimate(self, params: ProjectParams) -> Optional[BudgetResult]:
        if not self.config.has_credentials and self._client is None:
            raise ConfigurationError("API key unavailable; estimation request not sent")

        LOGGER.info("Requesting estimate for %r (%s)", params.name, self.config.model)
        try:
            response = await self.client.responses.create(
                model=self.config.model,
                input=build_input(params, self.system_prompt),
                text={
                    "format": {
                        "type": "json_schema",
                        "name": "budget_result",
                        "schema": BUDGET_RESULT_SCHEMA,
                        "strict": False,
                    }
                },
            )
        except (openai.BadRequestError, openai.UnprocessableEntityError) as exc:
            LOGGER.error("Estimation request rejected: %s", exc)
            raise InvalidParametersError(str(exc)) from exc
        except openai.OpenAIError as exc:
            LOGGER.error("Estimation service failed: %s", exc)
            raise ServiceUnavailableError(str(exc)) from exc

        text = self._extract_response_text(response)
        if not text:
            LOGGER.warning("Estimation response for %r did not contain text output", params.name)
            return None

        try:
            result = parse_budget_result(text)
        except InvalidParametersError as exc:
            LOGGER.error("Discarding malformed estimate for %r: %s", params.name, exc)
            raise
        LOGGER.info(
            "Estimate for %r returned %d categories (reported total %.2f)",
            params.name,
            len(result.categories),
            result.total_cost,
        )
        return result

    def _extract_response_text(self, response: object) -> Optional[str]:
        text = getattr(response, "output_text", None)
        if not isinstance(text, str):
            return None
        return text.strip() or None


__all__ = ["EstimationGateway", "OpenAIEstimationGateway"]
