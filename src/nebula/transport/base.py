"""Common transport abstractions."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from typing import Any, Callable, Literal, Mapping, Protocol, runtime_checkable

from ..types import Cancellor, Result

Scheme = Literal["http", "https"]


@dataclass
class TransportOptions:
    protocol: Scheme
    host: str
    port: int
    path: str
    method: str = "GET"
    headers: Mapping[str, str] = field(default_factory=dict)
    body: str | bytes = ""
    params: Mapping[str, str] = field(default_factory=dict)

    @property
    def url(self) -> str:
        return f"{self.protocol}://{self.host}:{self.port}{self.path}"


@dataclass
class TransportResponse:
    status: int
    headers: Mapping[str, str]
    response_text: str = ""
    reason: str = ""


Notify = Callable[[Result[TransportResponse]], None]


@runtime_checkable
class Backend(Protocol):
    """Performs one exchange and calls ``notify`` once, on a later loop turn."""

    def start(
        self,
        options: TransportOptions,
        notify: Notify,
        *,
        loop: asyncio.AbstractEventLoop,
    ) -> Cancellor: ...


def coerce_response(raw: Any) -> TransportResponse:
    """Accept either a TransportResponse or a handler-style mapping."""
    if isinstance(raw, TransportResponse):
        return raw
    if isinstance(raw, Mapping):
        text = raw.get("response_text", raw.get("responseText", ""))
        return TransportResponse(
            status=int(raw.get("status", 200)),
            headers={str(k).lower(): str(v) for k, v in dict(raw.get("headers") or {}).items()},
            response_text="" if text is None else str(text),
            reason=str(raw.get("reason", "")),
        )
    raise TypeError(f"Unsupported handler response: {raw!r}")


__all__ = [
    "Backend",
    "Notify",
    "Scheme",
    "TransportOptions",
    "TransportResponse",
    "coerce_response",
]
