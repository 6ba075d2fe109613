"""HTTP backend built on top of httpx."""

from __future__ import annotations

import asyncio

import httpx

from ..errors import TransportError
from ..logger import BoundLogger, create_logger
from ..types import Cancellor, Result
from .base import Notify, TransportOptions, TransportResponse


class HttpxBackend:
    """Runs each exchange as a task on the event loop."""

    def __init__(
        self,
        *,
        read_timeout: float = 60.0,
        client: httpx.AsyncClient | None = None,
        logger: BoundLogger | None = None,
    ) -> None:
        self._read_timeout = read_timeout
        self._client = client or httpx.AsyncClient(timeout=httpx.Timeout(read_timeout))
        self._owns_client = client is None
        self._logger = (logger or create_logger()).child("http")

    async def exchange(self, options: TransportOptions) -> TransportResponse:
        content = options.body if options.body else None
        try:
            self._logger.debug("HTTP %s %s", options.method, options.url)
            response = await self._client.request(
                options.method,
                options.url,
                content=content,
                headers=dict(options.headers),
            )
        except httpx.TimeoutException as exc:
            raise TransportError(f"HTTP request timeout after {self._read_timeout}s", context=options.url) from exc
        except httpx.RequestError as exc:
            raise TransportError(f"Cannot connect to {options.url}: {exc}", context=options.url) from exc

        self._logger.debug(
            "HTTP <- %s status=%s bytes=%d",
            options.url,
            response.status_code,
            len(response.content),
        )
        return TransportResponse(
            status=response.status_code,
            headers={k.lower(): v for k, v in response.headers.items()},
            response_text=response.text,
            reason=response.reason_phrase,
        )

    def start(
        self,
        options: TransportOptions,
        notify: Notify,
        *,
        loop: asyncio.AbstractEventLoop,
    ) -> Cancellor:
        task = loop.create_task(self.exchange(options))

        def done(finished: "asyncio.Task[TransportResponse]") -> None:
            if finished.cancelled():
                return
            error = finished.exception()
            if error is None:
                notify(Result.success(finished.result()))
            elif isinstance(error, TransportError):
                notify(Result.failure(error))
            else:
                notify(Result.failure(TransportError(f"HTTP exchange failed: {error}", context=error)))

        task.add_done_callback(done)
        return task.cancel

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()


__all__ = ["HttpxBackend"]
