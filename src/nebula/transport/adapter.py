"""Bridges a pluggable backend to a single guarded terminal notification."""

from __future__ import annotations

import asyncio

from ..config import NebulaSettings
from ..errors import StateError, TransportError, ValidationError
from ..logger import BoundLogger, create_logger
from ..safety import Deliver, SafetyWrapper
from ..types import Cancellor, Receiver, Result
from .base import Backend, TransportOptions, TransportResponse
from .http import HttpxBackend
from .memory import MemoryBackend, RouteTable


class TransportAdapter:
    """Runs one exchange per ``start`` call.

    The receiver sees exactly one Result unless the returned cancellor runs
    first, in which case it sees nothing. Nothing is ever delivered inside the
    ``start`` call itself.
    """

    def __init__(
        self,
        backend: Backend,
        *,
        loop: asyncio.AbstractEventLoop | None = None,
        logger: BoundLogger | None = None,
    ) -> None:
        self._backend = backend
        self._loop = loop
        self._logger = (logger or create_logger()).child("transport")

    @property
    def backend(self) -> Backend:
        return self._backend

    def resolve_loop(self) -> asyncio.AbstractEventLoop:
        if self._loop is not None:
            return self._loop
        try:
            return asyncio.get_running_loop()
        except RuntimeError as exc:
            raise StateError("TransportAdapter needs a running event loop or an explicit loop") from exc

    def start(self, options: TransportOptions, receiver: Receiver) -> Cancellor:
        loop = self.resolve_loop()
        wrapper: SafetyWrapper[TransportResponse] = SafetyWrapper(receiver, logger=self._logger)
        cancelled = False
        backend_cancel: Cancellor | None = None

        def notify(result: Result[TransportResponse]) -> None:
            if cancelled:
                self._logger.trace("Dropping notification for cancelled %s %s", options.method, options.url)
                return
            if not result.ok:
                self._logger.warn("Transport failed for %s %s: %s", options.method, options.url, result.reason)
            wrapper.deliver(result)

        def begin(_: SafetyWrapper[TransportResponse]) -> None:
            nonlocal backend_cancel
            self._logger.debug("%s %s", options.method, options.url)
            backend_cancel = self._backend.start(options, notify, loop=loop)

        def fail_later(error: BaseException, _deliver: Deliver) -> None:
            if not isinstance(error, TransportError):
                error = TransportError(f"Backend failed to start: {error}", context=options.url)
            loop.call_soon(notify, Result.failure(error))

        wrapper.run_effect(begin, fail_later)

        def cancel() -> None:
            nonlocal cancelled, backend_cancel
            if cancelled:
                return
            cancelled = True
            self._logger.debug("Cancelled %s %s", options.method, options.url)
            if backend_cancel is not None:
                handle, backend_cancel = backend_cancel, None
                handle()

        return cancel


def create_adapter(
    settings: NebulaSettings | None = None,
    *,
    loop: asyncio.AbstractEventLoop | None = None,
    logger: BoundLogger | None = None,
    routes: RouteTable | None = None,
) -> TransportAdapter:
    """Build an adapter over the backend named by ``settings.backend``."""
    settings = settings or NebulaSettings()
    logger = logger or create_logger(level=settings.log_level)
    backend: Backend
    if settings.backend == "memory":
        backend = MemoryBackend(routes, logger=logger)
    elif settings.backend == "httpx":
        backend = HttpxBackend(read_timeout=settings.read_timeout, logger=logger)
    else:
        raise ValidationError(f"Unsupported backend: {settings.backend}")
    return TransportAdapter(backend, loop=loop, logger=logger)


__all__ = ["TransportAdapter", "create_adapter"]
