"""High-level client bundling settings, logging and a shared transport adapter."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import Any, Mapping

from .config import NebulaSettings
from .logger import LogLevel, create_logger
from .requestor import http_requestor
from .transaction import Transaction
from .transport import Backend, HttpxBackend, MemoryBackend, RouteTable, TransportAdapter
from .types import Requestor


@dataclass
class ClientOptions:
    settings: NebulaSettings
    backend: Backend | None = None
    routes: RouteTable | None = None
    loop: asyncio.AbstractEventLoop | None = None
    logger: object | None = None
    log_level: LogLevel | None = None


class NebulaClient:
    """Primary entry point: hands out transactions and requestors sharing one adapter."""

    def __init__(
        self,
        *,
        settings: NebulaSettings | None = None,
        backend: Backend | None = None,
        routes: RouteTable | None = None,
        loop: asyncio.AbstractEventLoop | None = None,
        logger: object | None = None,
        log_level: LogLevel | None = None,
    ) -> None:
        options = ClientOptions(
            settings=settings or NebulaSettings(),
            backend=backend,
            routes=routes,
            loop=loop,
            logger=logger,
            log_level=log_level,
        )
        self.settings = options.settings
        self._logger = create_logger(logger=options.logger, level=options.log_level or self.settings.log_level)
        self._backend = options.backend or self._create_backend(options.routes)
        self._logger.info("Initializing NebulaClient with %s backend", type(self._backend).__name__)
        self.adapter = TransportAdapter(self._backend, loop=options.loop, logger=self._logger)

    def transaction(self) -> Transaction:
        return Transaction(self.adapter, settings=self.settings, logger=self._logger)

    def requestor(self, url: str = "", **options: Any) -> Requestor:
        return http_requestor(url, adapter=self.adapter, settings=self.settings, logger=self._logger, **options)

    def get(self, url: str, **options: Any) -> Requestor:
        return self.requestor(url, **{**options, "method": "GET"})

    def post(self, url: str, **options: Any) -> Requestor:
        return self.requestor(url, **{**options, "method": "POST"})

    def put(self, url: str, **options: Any) -> Requestor:
        return self.requestor(url, **{**options, "method": "PUT"})

    def delete(self, url: str, **options: Any) -> Requestor:
        return self.requestor(url, **{**options, "method": "DELETE"})

    async def aclose(self) -> None:
        if isinstance(self._backend, HttpxBackend):
            await self._backend.aclose()

    def _create_backend(self, routes: RouteTable | None) -> Backend:
        if self.settings.backend == "memory":
            return MemoryBackend(routes, logger=self._logger)
        return HttpxBackend(read_timeout=self.settings.read_timeout, logger=self._logger)


def client_from_env(environ: Mapping[str, str] | None = None, **kwargs: Any) -> NebulaClient:
    return NebulaClient(settings=NebulaSettings.from_env(environ), **kwargs)


__all__ = ["ClientOptions", "NebulaClient", "client_from_env"]
