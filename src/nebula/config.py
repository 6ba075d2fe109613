"""Runtime settings shared by transactions, transports and requestors."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from typing import Literal, Mapping, cast

from .errors import ValidationError
from .logger import LOG_LEVEL_PRIORITY, LogLevel

BackendKind = Literal["httpx", "memory"]

DEFAULT_HEADERS: Mapping[str, str] = {
    "User-Agent": "nebula",
    "Accept": "*/*",
}

_TRUTHY = {"1", "true", "yes", "on"}


@dataclass
class NebulaSettings:
    default_headers: Mapping[str, str] = field(default_factory=lambda: dict(DEFAULT_HEADERS))
    disable_header_check: bool = False
    log_level: LogLevel = "info"
    backend: BackendKind = "httpx"
    read_timeout: float = 60.0

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> "NebulaSettings":
        env = os.environ if environ is None else environ
        settings = cls()

        raw_check = env.get("NEBULA_DISABLE_HEADER_CHECK")
        if raw_check is not None:
            settings.disable_header_check = raw_check.strip().lower() in _TRUTHY

        raw_level = env.get("NEBULA_LOG_LEVEL")
        if raw_level:
            level = raw_level.strip().lower()
            if level not in LOG_LEVEL_PRIORITY:
                raise ValidationError(f"Unsupported log level: {raw_level}")
            settings.log_level = cast(LogLevel, level)

        raw_backend = env.get("NEBULA_BACKEND")
        if raw_backend:
            backend = raw_backend.strip().lower()
            if backend not in {"httpx", "memory"}:
                raise ValidationError(f"Unsupported backend: {raw_backend}")
            settings.backend = cast(BackendKind, backend)

        raw_timeout = env.get("NEBULA_READ_TIMEOUT")
        if raw_timeout:
            try:
                settings.read_timeout = float(raw_timeout)
            except ValueError as exc:
                raise ValidationError(f"Invalid read timeout: {raw_timeout}") from exc

        return settings


__all__ = ["BackendKind", "DEFAULT_HEADERS", "NebulaSettings"]
