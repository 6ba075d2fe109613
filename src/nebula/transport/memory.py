"""Deterministic in-memory backend used by tests and offline demos.

Routes are looked up by ``(host, port)``. A host key may carry a path prefix
(``"cheese.com/api"``); the longest matching prefix of ``host + path`` wins.
Each route maps HTTP methods to handlers called as
``handler(headers, params, body)``.
"""

from __future__ import annotations

import asyncio
import itertools
import json
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Mapping

from ..errors import TransportError
from ..logger import BoundLogger, create_logger
from ..types import Cancellor, Result
from .base import Notify, TransportOptions, TransportResponse, coerce_response

Handler = Callable[[Mapping[str, str], Mapping[str, str], Any], Any]

JSON_HEADERS = {"content-type": "application/json"}


def json_response(payload: Any, status: int = 200) -> TransportResponse:
    return TransportResponse(status=status, headers=dict(JSON_HEADERS), response_text=json.dumps(payload))


def not_found(error: str) -> TransportResponse:
    return json_response({"error": error}, status=404)


def _parse_body(body: Any) -> Any:
    if isinstance(body, bytes):
        body = body.decode("utf-8")
    if isinstance(body, str):
        return json.loads(body) if body.strip() else {}
    return body or {}


@dataclass
class Route:
    http: bool | None = None
    https: bool | None = None
    handlers: dict[str, Handler] = field(default_factory=dict)

    def supports(self, protocol: str) -> bool:
        flag = self.https if protocol == "https" else self.http
        return flag is not False


class RouteTable:
    def __init__(self) -> None:
        self._routes: dict[str, dict[int, Route]] = {}

    @classmethod
    def from_config(cls, config: Mapping[str, Mapping[Any, Mapping[str, Any]]]) -> "RouteTable":
        table = cls()
        for host, ports in config.items():
            for port, descriptor in ports.items():
                handlers = {key: value for key, value in descriptor.items() if key not in {"http", "https"}}
                table.add(
                    host,
                    int(port),
                    http=descriptor.get("http"),
                    https=descriptor.get("https"),
                    **handlers,
                )
        return table

    def add(
        self,
        host: str,
        port: int,
        *,
        http: bool | None = None,
        https: bool | None = None,
        **handlers: Handler,
    ) -> Route:
        route = Route(http=http, https=https, handlers={m.upper(): h for m, h in handlers.items()})
        self._routes.setdefault(host.rstrip("/"), {})[int(port)] = route
        return route

    def resolve(self, host: str, port: int, path: str = "") -> Route | None:
        for candidate in self._candidates(host, path):
            route = self._routes.get(candidate, {}).get(int(port))
            if route is not None:
                return route
        return None

    def _candidates(self, host: str, path: str) -> list[str]:
        segments = [segment for segment in path.split("?", 1)[0].split("/") if segment]
        candidates = []
        for end in range(len(segments), 0, -1):
            candidates.append("/".join([host, *segments[:end]]))
        candidates.append(host)
        return candidates

    def __contains__(self, host: object) -> bool:
        return host in self._routes


class IdentityStore:
    """Auto-incrementing ``host -> port -> id -> value`` store."""

    def __init__(self) -> None:
        self._data: dict[str, dict[int, dict[int, dict[str, Any]]]] = {}
        self._ids = itertools.count()

    def get(self, host: str, port: int, identity: Any) -> dict[str, Any] | None:
        key = self._key(identity)
        if key is None:
            return None
        return self._bucket(host, port).get(key)

    def save(self, host: str, port: int, value: Any) -> dict[str, Any] | None:
        if not isinstance(value, dict):
            return None
        record = dict(value)
        record["id"] = next(self._ids)
        self._bucket(host, port)[record["id"]] = record
        return record

    def update(self, host: str, port: int, identity: Any, value: Any) -> dict[str, Any] | None:
        key = self._key(identity)
        bucket = self._bucket(host, port)
        if key is None or key not in bucket or not isinstance(value, dict):
            return None
        record = {**value, "id": key}
        bucket[key] = record
        return record

    def remove(self, host: str, port: int, identity: Any) -> dict[str, Any] | None:
        key = self._key(identity)
        bucket = self._bucket(host, port)
        if key is None or bucket.pop(key, None) is None:
            return None
        return {"message": "deletion successful"}

    def _bucket(self, host: str, port: int) -> dict[int, dict[str, Any]]:
        return self._data.setdefault(host, {}).setdefault(int(port), {})

    @staticmethod
    def _key(identity: Any) -> int | None:
        try:
            return int(identity)
        except (TypeError, ValueError):
            return None


def crud_routes(store: IdentityStore, host: str, port: int) -> dict[str, Handler]:
    """Fixture handlers that create, read, update and delete records by ``?id=``."""

    def create(headers: Mapping[str, str], params: Mapping[str, str], body: Any) -> TransportResponse:
        record = store.save(host, port, _parse_body(body))
        if record is None:
            return json_response({"error": "body must be a JSON object"}, status=400)
        return json_response(record, status=201)

    def read(headers: Mapping[str, str], params: Mapping[str, str], body: Any) -> TransportResponse:
        record = store.get(host, port, params.get("id"))
        return json_response(record) if record is not None else not_found("record not found")

    def update(headers: Mapping[str, str], params: Mapping[str, str], body: Any) -> TransportResponse:
        record = store.update(host, port, params.get("id"), _parse_body(body))
        return json_response(record) if record is not None else not_found("record not found")

    def delete(headers: Mapping[str, str], params: Mapping[str, str], body: Any) -> TransportResponse:
        message = store.remove(host, port, params.get("id"))
        return json_response(message) if message is not None else not_found("record not found")

    return {"POST": create, "GET": read, "PUT": update, "DELETE": delete}


def default_routes() -> RouteTable:
    """The ``cheese.com/api`` fixtures."""

    def get_cheese(headers: Mapping[str, str], params: Mapping[str, str], body: Any) -> TransportResponse:
        return json_response({"cheese": "gruyere"})

    def create_user(headers: Mapping[str, str], params: Mapping[str, str], body: Any) -> TransportResponse:
        return json_response({"createdAt": int(time.time() * 1000), **_parse_body(body)}, status=201)

    return RouteTable.from_config(
        {
            "cheese.com/api": {
                80: {"https": False, "GET": get_cheese},
                443: {"http": False, "POST": create_user},
            }
        }
    )


class MemoryBackend:
    def __init__(
        self,
        routes: RouteTable | None = None,
        *,
        logger: BoundLogger | None = None,
    ) -> None:
        self.routes = routes if routes is not None else default_routes()
        self._logger = (logger or create_logger()).child("memory")

    def respond(self, options: TransportOptions) -> TransportResponse:
        route = self.routes.resolve(options.host, options.port, options.path)
        if route is None:
            self._logger.debug("No route for %s:%s%s", options.host, options.port, options.path)
            return not_found(f"no route for {options.host}:{options.port}")
        if not route.supports(options.protocol):
            return not_found("protocol not supported")
        handler = route.handlers.get(options.method.upper())
        if handler is None:
            return not_found("HTTP method not supported")
        return coerce_response(handler(dict(options.headers), dict(options.params), options.body))

    def start(
        self,
        options: TransportOptions,
        notify: Notify,
        *,
        loop: asyncio.AbstractEventLoop,
    ) -> Cancellor:
        result: Result[TransportResponse]
        try:
            result = Result.success(self.respond(options))
        except Exception as exc:
            result = Result.failure(TransportError(f"Handler failed for {options.url}: {exc}", context=exc))
        handle = loop.call_soon(notify, result)
        return handle.cancel


__all__ = [
    "Handler",
    "IdentityStore",
    "MemoryBackend",
    "Route",
    "RouteTable",
    "crud_routes",
    "default_routes",
    "json_response",
    "not_found",
]
