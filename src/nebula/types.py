"""Shared typing helpers: the Result envelope and the requestor shapes."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, Generic, Optional, TypeVar

from .errors import ValidationError

T = TypeVar("T")


@dataclass(frozen=True)
class Result(Generic[T]):
    """Success-or-failure envelope. Exactly one of ``value``/``reason`` is set."""

    ok: bool
    value: T | None = None
    reason: Any | None = None

    def __post_init__(self) -> None:
        if self.ok and self.reason is not None:
            raise ValidationError("a successful Result cannot carry a reason")
        if self.ok and self.value is None:
            raise ValidationError("a successful Result must carry a value")
        if not self.ok and self.value is not None:
            raise ValidationError("a failed Result cannot carry a value")
        if not self.ok and self.reason is None:
            raise ValidationError("a failed Result must carry a reason")

    @classmethod
    def success(cls, value: T) -> "Result[T]":
        return cls(ok=True, value=value)

    @classmethod
    def failure(cls, reason: Any) -> "Result[T]":
        return cls(ok=False, reason=reason)


Receiver = Callable[[Result[Any]], None]
Cancellor = Callable[[], None]
Requestor = Callable[..., Optional[Cancellor]]


__all__ = ["Cancellor", "Receiver", "Requestor", "Result"]
