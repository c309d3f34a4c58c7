"""Runtime settings for the repository handler, read from the environment."""

from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Mapping

from container_build.errors import ConfigurationError

DEFAULT_POLL_INTERVAL = 1.0
DEFAULT_MAX_ATTEMPTS = 25
DEFAULT_RESPONSE_TIMEOUT = 10.0
DEFAULT_HANDLER_TIMEOUT = 60.0

# Update-replace waits twice: once for Absent, once for Exists.
WAITS_PER_INVOCATION = 2


def _float(environ: Mapping[str, str], name: str, default: float) -> float:
    raw = environ.get(name)
    if raw is None or raw == "":
        return default
    try:
        return float(raw)
    except ValueError as exc:
        raise ConfigurationError(f"{name} must be a number, got {raw!r}") from exc


def _int(environ: Mapping[str, str], name: str, default: int) -> int:
    raw = environ.get(name)
    if raw is None or raw == "":
        return default
    try:
        return int(raw)
    except ValueError as exc:
        raise ConfigurationError(f"{name} must be an integer, got {raw!r}") from exc


@dataclass(frozen=True)
class Settings:
    """Polling bounds, response timeout and logging for one handler process."""

    poll_interval: float = DEFAULT_POLL_INTERVAL
    max_attempts: int = DEFAULT_MAX_ATTEMPTS
    response_timeout: float = DEFAULT_RESPONSE_TIMEOUT
    handler_timeout: float = DEFAULT_HANDLER_TIMEOUT
    log_level: str = "INFO"
    region: str | None = None

    def __post_init__(self) -> None:
        if self.poll_interval < 0:
            raise ConfigurationError("POLL_INTERVAL_SECONDS must not be negative")
        if self.max_attempts < 1:
            raise ConfigurationError("MAX_ATTEMPTS must be at least 1")
        if self.response_timeout <= 0:
            raise ConfigurationError("RESPONSE_TIMEOUT_SECONDS must be positive")
        if self.worst_case_wait >= self.handler_timeout:
            raise ConfigurationError(
                f"Worst-case wait of {self.worst_case_wait:.1f}s does not fit in the "
                f"{self.handler_timeout:.1f}s handler timeout; lower "
                "POLL_INTERVAL_SECONDS or MAX_ATTEMPTS"
            )

    @property
    def worst_case_wait(self) -> float:
        """Longest time one invocation can spend polling."""
        return self.poll_interval * self.max_attempts * WAITS_PER_INVOCATION

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> "Settings":
        env = os.environ if environ is None else environ
        return cls(
            poll_interval=_float(env, "POLL_INTERVAL_SECONDS", DEFAULT_POLL_INTERVAL),
            max_attempts=_int(env, "MAX_ATTEMPTS", DEFAULT_MAX_ATTEMPTS),
            response_timeout=_float(env, "RESPONSE_TIMEOUT_SECONDS", DEFAULT_RESPONSE_TIMEOUT),
            handler_timeout=_float(env, "HANDLER_TIMEOUT_SECONDS", DEFAULT_HANDLER_TIMEOUT),
            log_level=(env.get("LOG_LEVEL") or "INFO").upper(),
            region=env.get("AWS_REGION") or env.get("AWS_DEFAULT_REGION") or None,
        )
