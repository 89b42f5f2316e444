"""Exception taxonomy shared by the gateway, the session and the GUI."""
from __future__ import annotations


class BuildBudgetError(Exception):
    """Base class for errors raised by this package."""

    user_message = "Something went wrong. Please try again."

    def __init__(self, message: str = "", *, user_message: str | None = None) -> None:
        super().__init__(message or self.user_message)
        if user_message is not None:
            self.user_message = user_message


class ConfigurationError(BuildBudgetError):
    """Raised when the estimation credential is not configured."""

    user_message = "Missing API key. Set OPENAI_API_KEY to enable estimates."


class UserInputError(BuildBudgetError):
    """Raised when project parameters are structurally invalid."""

    user_message = "The estimator encountered an issue. Please check your project parameters."


class GatewayError(BuildBudgetError):
    """Any failure while asking the estimation service for a budget."""

    user_message = "A server error occurred. Please try again later."


class InvalidParametersError(GatewayError):
    """The service rejected the request or answered with an unusable budget."""

    user_message = "The estimator encountered an issue. Please check your project parameters."


class ServiceUnavailableError(GatewayError):
    """The service could not be reached or failed to answer."""

    user_message = "A server error occurred. Please try again later."


__all__ = [
    "BuildBudgetError",
    "ConfigurationError",
    "UserInputError",
    "GatewayError",
    "InvalidParametersError",
    "ServiceUnavailableError",
]
