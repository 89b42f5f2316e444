from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping, Optional

LOGGER = logging.getLogger(__name__)

_BOOLEAN_TRUE = {"1", "true", "yes", "on"}
_MISSING_SENTINELS = {"", "undefined", "null", "none"}

API_KEY_ENV_VARS = ("OPENAI_API_KEY", "API_KEY")
DEFAULT_MODEL = "gpt-4o-mini"
DEFAULT_PROGRESS_INTERVAL = 0.1
DEFAULT_HISTORY_LIMIT = 50


@dataclass(frozen=True)
class Config:
    """Runtime configuration resolved once at startup from the environment."""

    api_key: Optional[str]
    model: str = DEFAULT_MODEL
    base_url: Optional[str] = None
    progress_interval: float = DEFAULT_PROGRESS_INTERVAL
    history_limit: int = DEFAULT_HISTORY_LIMIT
    verbose: bool = False

    @property
    def has_credentials(self) -> bool:
        return bool(self.api_key)


def _to_int(value: object | None) -> Optional[int]:
    if value is None:
        return None
    text = str(value).strip()
    if not text:
        return None
    try:
        return int(float(text))
    except (ValueError, OverflowError):
        return None


def _to_float(value: object | None) -> Optional[float]:
    if value is None:
        return None
    text = str(value).strip()
    if not text:
        return None
    try:
        return float(text)
    except ValueError:
        return None


def _flag(value: object | None) -> bool:
    if value is None:
        return False
    if isinstance(value, bool):
        return value
    return str(value).strip().lower() in _BOOLEAN_TRUE


def _clean_secret(value: object | None) -> Optional[str]:
    if value is None:
        return None
    text = str(value).strip().strip('"').strip("'")
    if text.lower() in _MISSING_SENTINELS:
        return None
    return text


def _read_key_file(path_value: object | None) -> Optional[str]:
    text = str(path_value or "").strip()
    if not text:
        return None
    path = Path(text).expanduser()
    try:
        content = path.read_text(encoding="utf-8")
    except FileNotFoundError:
        return None
    except OSError:
        LOGGER.debug("Unable to read API key from %s", path)
        return None
    for line in content.splitlines():
        line = line.strip()
        if not line or line.startswith("#"):
            continue
        if "=" in line:
            _, line = line.split("=", 1)
        return _clean_secret(line)
    return None


def resolve_api_key(env: Mapping[str, str]) -> Optional[str]:
    """Return the credential from the environment, then the configured key file."""
    for name in API_KEY_ENV_VARS:
        token = _clean_secret(env.get(name))
        if token:
            return token
    return _read_key_file(env.get("OPENAI_API_KEY_FILE"))


def load_config(env: Mapping[str, str]) -> Config:
    """Build a runtime :class:`Config` from environment variables."""

    api_key = resolve_api_key(env)
    if not api_key:
        LOGGER.warning("No API key configured; estimates are disabled until one is provided")

    progress_interval = _to_float(env.get("BUILDBUDGET_PROGRESS_INTERVAL"))
    if progress_interval is None or not math.isfinite(progress_interval) or progress_interval < 0:
        progress_interval = DEFAULT_PROGRESS_INTERVAL
    history_limit = _to_int(env.get("BUILDBUDGET_HISTORY_LIMIT"))
    if history_limit is None or history_limit <= 0:
        history_limit = DEFAULT_HISTORY_LIMIT

    return Config(
        api_key=api_key,
        model=(env.get("BUILDBUDGET_MODEL") or "").strip() or DEFAULT_MODEL,
        base_url=(env.get("OPENAI_BASE_URL") or "").strip() or None,
        progress_interval=progress_interval,
        history_limit=history_limit,
        verbose=_flag(env.get("BUILDBUDGET_VERBOSE")),
    )


__all__ = ["Config", "load_config", "resolve_api_key", "API_KEY_ENV_VARS"]
