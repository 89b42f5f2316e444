from __future__ import annotations

import asyncio
import json
from types import SimpleNamespace
from typing import Any, Dict, List

import httpx
import openai
import pytest

from buildbudget.config import Config
from buildbudget.errors import (
    ConfigurationError,
    InvalidParametersError,
    ServiceUnavailableError,
)
from buildbudget.gateway import OpenAIEstimationGateway
from buildbudget.schema import BUDGET_RESULT_SCHEMA


class _StubResponses:
    def __init__(self, outcome: Any) -> None:
        self.outcome = outcome
        self.requests: List[Dict[str, Any]] = []

    async def create(self, **kwargs: Any) -> Any:
        self.requests.append(kwargs)
        if isinstance(self.outcome, BaseException):
            raise self.outcome
        return self.outcome


def _gateway(outcome: Any) -> tuple[OpenAIEstimationGateway, _StubResponses]:
    responses = _StubResponses(outcome)
    client = SimpleNamespace(responses=responses)
    return OpenAIEstimationGateway(Config(api_key="sk-test", model="test-model"), client=client), responses


def test_estimate_sends_schema_constrained_request(budget_payload, structure_params) -> None:
    gateway, responses = _gateway(SimpleNamespace(output_text=json.dumps(budget_payload)))

    result = asyncio.run(gateway.estimate(structure_params))

    assert result is not None
    assert result.included_total() == 80000
    request = responses.requests[0]
    assert request["model"] == "test-model"
    assert request["text"]["format"]["type"] == "json_schema"
    assert request["text"]["format"]["schema"] is BUDGET_RESULT_SCHEMA
    assert request["input"][0]["role"] == "system"
    assert "Structural Shell Selected: true" in request["input"][1]["content"][0]["text"]


@pytest.mark.parametrize("text", ["", "   ", None])
def test_empty_output_is_an_absent_result(structure_params, text) -> None:
    gateway, _ = _gateway(SimpleNamespace(output_text=text))
    assert asyncio.run(gateway.estimate(structure_params)) is None


def test_malformed_output_is_rejected(structure_params) -> None:
    gateway, _ = _gateway(SimpleNamespace(output_text='{"totalCost": 10}'))
    with pytest.raises(InvalidParametersError):
        asyncio.run(gateway.estimate(structure_params))


def test_bad_request_maps_to_invalid_parameters(structure_params) -> None:
    request = httpx.Request("POST", "https://api.openai.com/v1/responses")
    response = httpx.Response(400, request=request)
    error = openai.BadRequestError("bad schema", response=response, body=None)
    gateway, _ = _gateway(error)

    with pytest.raises(InvalidParametersError):
        asyncio.run(gateway.estimate(structure_params))


def test_connection_failure_maps_to_service_unavailable(structure_params) -> None:
    request = httpx.Request("POST", "https://api.openai.com/v1/responses")
    gateway, _ = _gateway(openai.APIConnectionError(request=request))

    with pytest.raises(ServiceUnavailableError):
        asyncio.run(gateway.estimate(structure_params))


def test_missing_credentials_never_builds_a_client(structure_params) -> None:
    gateway = OpenAIEstimationGateway(Config(api_key=None))
    with pytest.raises(ConfigurationError):
        asyncio.run(gateway.estimate(structure_params))
    assert gateway._client is None


def test_response_without_output_text_is_absent(structure_params) -> None:
    gateway, _ = _gateway(SimpleNamespace(output=[]))
    assert asyncio.run(gateway.estimate(structure_params)) is None
