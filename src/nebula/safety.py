"""At-most-once delivery of a Result to a receiver.

Every asynchronous boundary in nebula (transport callbacks, event listeners,
cancellors) goes through a :class:`SafetyWrapper`. The wrapper runs an effect,
turns its return value or exception into a :class:`~nebula.types.Result`, and
hands the result to the receiver only the first time. An exception raised by
the receiver is logged and goes no further. Later deliveries, such as
an abort racing a transport completion, are absorbed silently.
"""

from __future__ import annotations

import inspect
from typing import Any, Callable, Generic, Iterable, Optional, TypeVar

from .errors import ValidationError
from .logger import BoundLogger, create_logger
from .types import Receiver, Result

T = TypeVar("T")

Deliver = Callable[[Result[Any]], None]
Effect = Callable[["SafetyWrapper[T]"], Optional[T]]
OnError = Callable[[BaseException, Deliver], None]

_PROBE = object()


def _accepts(fn: Callable[..., Any], count: int) -> bool | None:
    try:
        signature = inspect.signature(fn)
    except (TypeError, ValueError):
        # Some builtins do not expose a signature
        return None
    try:
        signature.bind(*([_PROBE] * count))
    except TypeError:
        return False
    return True


def check_receiver(receiver: Any) -> None:
    """Raise ValidationError unless ``receiver`` takes exactly one argument."""
    if not callable(receiver):
        raise ValidationError("receivers must be functions of one argument", context=receiver)
    one = _accepts(receiver, 1)
    if one is None:
        return
    if not one or _accepts(receiver, 2):
        raise ValidationError("receivers must be functions of one argument", context=receiver)


def check_requestor(requestor: Any) -> None:
    """Raise ValidationError unless ``requestor`` takes one or two arguments."""
    if not callable(requestor):
        raise ValidationError("requestors must be functions of one or two arguments", context=requestor)
    one = _accepts(requestor, 1)
    if one is None:
        return
    if not (one or _accepts(requestor, 2)):
        raise ValidationError("requestors must be functions of one or two arguments", context=requestor)


def check_requestors(requestors: Iterable[Any]) -> None:
    if not isinstance(requestors, (list, tuple)):
        raise ValidationError("must be a list of requestors", context=requestors)
    for requestor in requestors:
        check_requestor(requestor)


def _default_on_error(error: BaseException, deliver: Deliver) -> None:
    deliver(Result.failure(error))


class SafetyWrapper(Generic[T]):
    """Guards one receiver so that it fires at most once."""

    __slots__ = ("_receiver", "_delivered", "_logger")

    def __init__(self, receiver: Receiver, *, logger: BoundLogger | None = None) -> None:
        check_receiver(receiver)
        self._receiver = receiver
        self._delivered = False
        self._logger = logger or create_logger()

    @property
    def delivered(self) -> bool:
        return self._delivered

    def deliver(self, result: Result[Any]) -> None:
        if self._delivered:
            return
        # Flip first so a receiver that raises is never invoked twice
        self._delivered = True
        try:
            self._receiver(result)
        except Exception:
            self._logger.exception("Receiver %r raised while handling %r", self._receiver, result)

    def run_effect(self, effect: Effect[T], on_error: OnError | None = None) -> None:
        """Run ``effect(self)`` and deliver its value or its exception.

        A ``None`` return means the effect will deliver later (or not at all).
        """
        if self._delivered:
            return
        try:
            value = effect(self)
        except Exception as exc:
            handler = on_error if callable(on_error) else _default_on_error
            handler(exc, self.deliver)
            return
        if value is not None:
            self.deliver(Result.success(value))

    def defer_effect(self, effect: Effect[T], on_error: OnError | None = None) -> Callable[[], None]:
        """Return a zero-argument callable that runs ``effect`` later."""

        def deferred() -> None:
            self.run_effect(effect, on_error)

        return deferred


def get_safety_wrapper(receiver: Receiver, *, logger: BoundLogger | None = None) -> SafetyWrapper[Any]:
    return SafetyWrapper(receiver, logger=logger)


__all__ = [
    "Deliver",
    "Effect",
    "OnError",
    "SafetyWrapper",
    "check_receiver",
    "check_requestor",
    "check_requestors",
    "get_safety_wrapper",
]
