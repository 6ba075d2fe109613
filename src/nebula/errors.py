"""Custom exceptions raised by nebula."""

from __future__ import annotations

from typing import Any


class NebulaError(Exception):
    """Base error for all nebula failures."""

    def __init__(self, message: str, *, context: Any | None = None) -> None:
        super().__init__(message)
        self.context = context


class ValidationError(NebulaError):
    """Raised synchronously for malformed receivers, requestors, methods or URLs."""


class StateError(NebulaError):
    """Raised when a transaction operation is called outside its lifecycle state."""


class TransportError(NebulaError):
    """Network or backend failure. Always delivered as a failed Result."""


class ParseError(NebulaError):
    """Raised when a response claims JSON but cannot be parsed."""


__all__ = [
    "NebulaError",
    "ParseError",
    "StateError",
    "TransportError",
    "ValidationError",
]
