"""A browser-style request object driving one HTTP exchange at a time.

A :class:`Transaction` walks ``UNSENT -> OPENED -> HEADERS_RECEIVED -> LOADING
-> DONE``. ``abort()`` is the only way back to ``UNSENT``; when an exchange is
in flight it first forces a pass through ``DONE`` so that listeners waiting for
completion still see a terminal state change.
"""

from __future__ import annotations

import base64
import traceback
from enum import IntEnum
from typing import Any
from urllib.parse import parse_qsl, urlsplit

from .config import NebulaSettings
from .errors import StateError, TransportError, ValidationError
from .events import Event, EventDispatcher, Listener
from .headers import HeaderPolicy, HeaderSet
from .logger import BoundLogger, create_logger
from .safety import Deliver, SafetyWrapper
from .transport.adapter import TransportAdapter, create_adapter
from .transport.base import Scheme, TransportOptions, TransportResponse, coerce_response
from .types import Cancellor, Result

DEFAULT_CONTENT_TYPE = "text/plain;charset=UTF-8"
EXCLUDED_RESPONSE_HEADERS = frozenset({"set-cookie", "set-cookie2"})


class ReadyState(IntEnum):
    UNSENT = 0
    OPENED = 1
    HEADERS_RECEIVED = 2
    LOADING = 3
    DONE = 4


def _handler_slot(event: Event) -> property:
    def getter(self: "Transaction") -> Listener | None:
        return self.events.get_handler(event)

    def setter(self: "Transaction", handler: Listener | None) -> None:
        self.events.set_handler(event, handler)

    return property(getter, setter, doc=f"Assignable handler for the {event.value!r} event.")


def _format_error(error: Any) -> str:
    if isinstance(error, BaseException) and error.__traceback__ is not None:
        return "".join(traceback.format_exception(type(error), error, error.__traceback__))
    return ""


class Transaction:
    UNSENT = ReadyState.UNSENT
    OPENED = ReadyState.OPENED
    HEADERS_RECEIVED = ReadyState.HEADERS_RECEIVED
    LOADING = ReadyState.LOADING
    DONE = ReadyState.DONE

    on_state_change = _handler_slot(Event.STATE_CHANGED)
    on_load_start = _handler_slot(Event.LOAD_START)
    on_abort = _handler_slot(Event.ABORT)
    on_load = _handler_slot(Event.LOAD)
    on_load_end = _handler_slot(Event.LOAD_END)
    on_error = _handler_slot(Event.ERROR)

    def __init__(
        self,
        adapter: TransportAdapter | None = None,
        *,
        settings: NebulaSettings | None = None,
        logger: BoundLogger | None = None,
    ) -> None:
        self._settings = settings or NebulaSettings()
        base_logger = logger or create_logger(level=self._settings.log_level)
        self._logger = base_logger.child("transaction")
        self._adapter = adapter or create_adapter(self._settings, logger=base_logger)
        self._policy = HeaderPolicy(disable_header_check=self._settings.disable_header_check)
        self._default_headers = dict(self._settings.default_headers)
        self.events = EventDispatcher()

        self.ready_state = ReadyState.UNSENT
        self.method = ""
        self.url = ""
        self.status: int | None = None
        self.status_text = ""
        self.response_text = ""

        self._user: str | None = None
        self._password: str | None = None
        self._send_flag = False
        self._error_flag = False
        self._cancel: Cancellor | None = None
        self._exchange = 0
        self._request_headers = HeaderSet()
        self._response_headers = HeaderSet()

    @property
    def send_flag(self) -> bool:
        return self._send_flag

    @property
    def error_flag(self) -> bool:
        return self._error_flag

    @property
    def request_headers(self) -> HeaderSet:
        return self._request_headers.copy()

    @property
    def adapter(self) -> TransportAdapter:
        return self._adapter

    def add_event_listener(self, event: Event | str, listener: Listener) -> None:
        self.events.add_listener(event, listener)

    def remove_event_listener(self, event: Event | str, listener: Listener) -> None:
        self.events.remove_listener(event, listener)

    def open(self, method: str, url: Any, user: str | None = None, password: str | None = None) -> None:
        if not self._policy.is_allowed_method(method):
            raise ValidationError(f"Request method not allowed: {method!r}", context=method)

        if self._send_flag or self._cancel is not None:
            self.abort()

        self.method = method.upper()
        self.url = url if isinstance(url, str) else str(url)
        self._user = user
        self._password = password
        self._request_headers = HeaderSet()
        self._response_headers = HeaderSet()
        self.status = None
        self.status_text = ""
        self.response_text = ""
        self._send_flag = False
        self._error_flag = False
        self._set_state(ReadyState.OPENED)

    def set_request_header(self, name: str, value: Any) -> None:
        if self.ready_state != ReadyState.OPENED:
            raise StateError("set_request_header can only be called when state is OPENED")
        if self._send_flag:
            raise StateError("set_request_header cannot be called after send")
        if not self._policy.is_allowed_header(name):
            self._logger.warn('Refused to set unsafe header "%s"', name)
            return
        self._request_headers.add(name, value)

    def get_response_header(self, name: str) -> str | None:
        if not isinstance(name, str) or not self._response_visible():
            return None
        return self._response_headers.get(name)

    def get_all_response_headers(self) -> str:
        if not self._response_visible():
            return ""
        return "\r\n".join(
            f"{name}: {value}"
            for name, value in self._response_headers.items()
            if name.lower() not in EXCLUDED_RESPONSE_HEADERS
        )

    def send(self, body: str | bytes | None = None) -> None:
        if self.ready_state != ReadyState.OPENED:
            raise StateError("connection must be opened before send() is called")
        if self._send_flag:
            raise StateError("send has already been called")

        options = self._build_options(body)
        self._error_flag = False
        self._send_flag = True
        self._exchange += 1
        exchange = self._exchange
        try:
            self.events.dispatch(Event.STATE_CHANGED)
        except Exception:
            if exchange == self._exchange:
                self._send_flag = False
            raise
        if not self._send_flag or exchange != self._exchange:
            return

        def receive(result: Result[TransportResponse]) -> None:
            self._on_transport_result(exchange, result)

        def begin(wrapper: SafetyWrapper[TransportResponse]) -> None:
            self._cancel = self._adapter.start(options, wrapper.deliver)

        def reject(error: BaseException, _deliver: Deliver) -> None:
            self._send_flag = False
            self._cancel = None
            raise error

        SafetyWrapper(receive, logger=self._logger).run_effect(begin, reject)

    def abort(self) -> None:
        if self._cancel is not None:
            cancel, self._cancel = self._cancel, None
            cancel()
        # Anything still in flight for the previous exchange is now stale
        self._exchange += 1

        self._request_headers = HeaderSet(self._default_headers)
        self.status = 0
        self.response_text = ""
        self._error_flag = True

        if (
            self.ready_state != ReadyState.UNSENT
            and (self.ready_state != ReadyState.OPENED or self._send_flag)
            and self.ready_state != ReadyState.DONE
        ):
            self._send_flag = False
            self._set_state(ReadyState.DONE)
        self._send_flag = False
        self.ready_state = ReadyState.UNSENT
        self._logger.debug("Aborted %s %s", self.method, self.url)
        self.events.dispatch(Event.ABORT)

    def _response_visible(self) -> bool:
        return self.ready_state >= ReadyState.HEADERS_RECEIVED and not self._error_flag

    def _on_transport_result(self, exchange: int, result: Result[TransportResponse]) -> None:
        if exchange != self._exchange or not self._send_flag:
            self._logger.trace("Ignoring late notification for %s %s", self.method, self.url)
            return
        self._cancel = None

        if not result.ok:
            self._handle_error(result.reason)
            return

        try:
            response = coerce_response(result.value)
        except TypeError as exc:
            self._handle_error(TransportError(str(exc), context=result.value))
            return
        self._response_headers = HeaderSet(response.headers)
        self.status = response.status
        self.status_text = response.reason
        self._set_state(ReadyState.HEADERS_RECEIVED)

        if not self._send_flag:
            return
        self._set_state(ReadyState.LOADING)
        self.events.dispatch(Event.LOAD_START)

        if not self._send_flag:
            return
        self.response_text = response.response_text
        self._send_flag = False
        self._set_state(ReadyState.DONE)

    def _handle_error(self, error: Any) -> None:
        self.status = 0
        self.status_text = str(error)
        self.response_text = _format_error(error)
        self._error_flag = True
        self._send_flag = False
        self._logger.warn("%s %s failed: %s", self.method, self.url, error)
        self._set_state(ReadyState.DONE)
        self.events.dispatch(Event.ERROR)

    def _set_state(self, state: ReadyState) -> None:
        if self.ready_state == state and state != ReadyState.LOADING:
            return
        self.ready_state = state
        self.events.dispatch(Event.STATE_CHANGED)
        if state == ReadyState.DONE and not self._error_flag:
            self.events.dispatch(Event.LOAD)
            self.events.dispatch(Event.LOAD_END)

    def _build_options(self, body: str | bytes | None) -> TransportOptions:
        parts = urlsplit(self.url)
        scheme = parts.scheme.lower()
        protocol: Scheme
        if scheme == "https":
            protocol = "https"
        elif scheme in {"http", ""}:
            protocol = "http"
        else:
            raise ValidationError(f"Protocol not supported: {scheme}", context=self.url)
        host = parts.hostname or "localhost"

        try:
            port = parts.port or (443 if protocol == "https" else 80)
        except ValueError as exc:
            raise ValidationError(f"Invalid port in URL: {self.url}", context=self.url) from exc

        path = "/" + parts.path.lstrip("/")
        if parts.query:
            path = f"{path}?{parts.query}"

        headers = self._request_headers.copy()
        for name, value in self._default_headers.items():
            headers.setdefault_header(name, value)

        if self._user:
            credentials = f"{self._user}:{self._password or ''}".encode("utf-8")
            headers.set("Authorization", f"Basic {base64.b64encode(credentials).decode('ascii')}")

        payload: str | bytes = ""
        if self.method in {"GET", "HEAD"}:
            payload = ""
        elif body:
            payload = body if isinstance(body, (str, bytes)) else str(body)
            size = len(payload) if isinstance(payload, bytes) else len(payload.encode("utf-8"))
            headers.set("Content-Length", str(size))
            headers.setdefault_header("Content-Type", DEFAULT_CONTENT_TYPE)
        elif self.method == "POST":
            # Some servers reject a body-less POST without an explicit length
            headers.set("Content-Length", "0")

        return TransportOptions(
            protocol=protocol,
            host=host,
            port=port,
            path=path,
            method=self.method or "GET",
            headers=headers.to_dict(),
            body=payload,
            params=dict(parse_qsl(parts.query)),
        )


__all__ = ["ReadyState", "Transaction"]
