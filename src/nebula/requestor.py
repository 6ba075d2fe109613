"""HTTP requestors: one Transaction per invocation, one Result per Transaction.

Example::

    get_cheese = http_get("http://cheese.com/api", adapter=adapter)

    def receiver(result):
        if not result.ok:
            print("failed because", result.reason)
            return
        print(result.value.status_code, result.value.data)

    cancel = get_cheese(receiver)

Request bodies that are not strings are encoded according to ``content_type``
(JSON unless told otherwise, or form encoding for ``x-www-form-urlencoded``).
An explicit ``Content-Type`` header always wins. JSON responses are parsed into
``HttpResult.data``; a response that claims JSON but fails to parse falls back to
the raw text and is reported to ``log``.

The default cancellor aborts the transaction, which suppresses the Result
entirely. ``custom_cancel(abort_request, deliver)`` can build a cancellor that
also notifies the server or delivers its own Result.
"""

from __future__ import annotations

from dataclasses import dataclass, fields
from typing import Any, Callable, Mapping
from urllib.parse import urlencode

import httpx

from .config import NebulaSettings
from .errors import NebulaError, ParseError, StateError, TransportError, ValidationError
from .logger import BoundLogger, create_logger
from .parser import (
    content_type_from_header,
    encode_body,
    is_json_content_type,
    normalize_content_type,
    parse_headers_block,
    parse_response_text,
)
from .safety import Deliver, SafetyWrapper
from .transaction import ReadyState, Transaction
from .transport.adapter import TransportAdapter, create_adapter
from .types import Cancellor, Receiver, Requestor, Result

CustomCancel = Callable[[Cancellor, Deliver], Cancellor]
Log = Callable[[BaseException], None]

_PROGRAMMER_ERRORS = (ValidationError, StateError)


@dataclass(frozen=True)
class HttpMessage:
    """Per-invocation overrides passed as a requestor's second argument."""

    body: Any = None
    content_type: str | None = None
    custom_cancel: CustomCancel | None = None
    headers: Mapping[str, str] | None = None
    params: Mapping[str, str] | None = None
    pathname: str | None = None
    auto_parse_request: bool | None = None
    auto_parse_response: bool | None = None

    @classmethod
    def coerce(cls, message: "HttpMessage | Mapping[str, Any] | None") -> "HttpMessage":
        if message is None:
            return cls()
        if isinstance(message, cls):
            return message
        if isinstance(message, Mapping):
            known = {field.name for field in fields(cls)}
            unknown = set(message) - known
            if unknown:
                raise ValidationError(f"Unknown message keys: {sorted(unknown)}", context=dict(message))
            return cls(**dict(message))
        raise ValidationError("message must be an HttpMessage or a mapping", context=message)


@dataclass(frozen=True)
class HttpResult:
    status_code: int
    status_message: str | None
    headers: dict[str, str]
    data: Any


def _with_query(url: str, params: Mapping[str, Any]) -> str:
    if not params:
        return url
    separator = "&" if "?" in url else "?"
    return f"{url}{separator}{urlencode(list(params.items()))}"


def http_requestor(
    url: str = "",
    *,
    params: Mapping[str, Any] | None = None,
    method: str = "GET",
    headers: Mapping[str, str] | None = None,
    body: Any = None,
    content_type: str | None = None,
    custom_cancel: CustomCancel | None = None,
    auto_parse_request: bool = True,
    auto_parse_response: bool = True,
    log: Log | None = None,
    adapter: TransportAdapter | None = None,
    settings: NebulaSettings | None = None,
    logger: BoundLogger | None = None,
) -> Requestor:
    """Create a requestor that performs one HTTP request per invocation."""
    settings = settings or NebulaSettings()
    base_logger = create_logger(logger=logger, level=settings.log_level)
    req_logger = base_logger.child("requestor")
    adapter = adapter or create_adapter(settings, logger=base_logger)

    base_headers = dict(headers or {})
    base_params = dict(params or {})

    def default_log(error: BaseException) -> None:
        req_logger.warn("Could not autoparse response: %s", error)

    report = log if callable(log) else default_log

    def requestor(receiver: Receiver, message: HttpMessage | Mapping[str, Any] | None = None) -> Cancellor | None:
        wrapper: SafetyWrapper[HttpResult] = SafetyWrapper(receiver, logger=req_logger)
        cancellor: Cancellor | None = None

        def effect(wrapper: SafetyWrapper[HttpResult]) -> None:
            nonlocal cancellor
            msg = HttpMessage.coerce(message)

            payload = msg.body if msg.body is not None else body
            kind: str | None = normalize_content_type(
                msg.content_type if msg.content_type is not None else content_type
            )
            cancel_factory = msg.custom_cancel if msg.custom_cancel is not None else custom_cancel
            parse_request = auto_parse_request if msg.auto_parse_request is None else msg.auto_parse_request
            parse_response = auto_parse_response if msg.auto_parse_response is None else msg.auto_parse_response

            request_headers = {**base_headers, **dict(msg.headers or {})}
            request_params = {**base_params, **dict(msg.params or {})}
            target = url + (msg.pathname or "")
            target = _with_query(target, request_params)

            header_key = next((key for key in request_headers if "content-type" in key.lower()), None)
            if header_key is not None:
                kind = content_type_from_header(request_headers[header_key] or "")
            else:
                request_headers["Content-Type"] = kind or ""

            if payload is not None and not isinstance(payload, (str, bytes)) and parse_request:
                payload = encode_body(payload, kind)

            # The transaction computes Content-Length itself
            request_headers = {k: v for k, v in request_headers.items() if k.lower() != "content-length"}

            transaction = Transaction(adapter, settings=settings, logger=base_logger)

            def on_done(_: SafetyWrapper[HttpResult]) -> HttpResult | None:
                if transaction.ready_state != ReadyState.DONE or transaction.error_flag:
                    return None
                response_headers = parse_headers_block(transaction.get_all_response_headers())
                text = transaction.response_text
                data: Any = text
                if parse_response and is_json_content_type(response_headers):
                    try:
                        data = parse_response_text(text)
                    except ParseError as exc:
                        report(exc)
                        data = text
                status = transaction.status or 0
                return HttpResult(
                    status_code=status,
                    status_message=httpx.codes.get_reason_phrase(status) or None,
                    headers=response_headers,
                    data=data,
                )

            def on_failure(_: SafetyWrapper[HttpResult]) -> None:
                raise TransportError(
                    transaction.status_text or "An error occurred in the transaction.",
                    context=transaction.response_text,
                )

            transaction.on_state_change = wrapper.defer_effect(on_done)
            transaction.on_error = wrapper.defer_effect(on_failure)

            transaction.open(method or "GET", target)
            for name, value in request_headers.items():
                transaction.set_request_header(name, value or "")
            transaction.send(payload if isinstance(payload, (str, bytes)) else None)

            abort_request = transaction.abort
            built = cancel_factory(abort_request, wrapper.deliver) if callable(cancel_factory) else abort_request
            if not callable(built):
                transaction.abort()
                raise ValidationError("custom_cancel did not return a function", context=built)
            cancellor = built
            return None

        def on_error(error: BaseException, deliver: Deliver) -> None:
            if isinstance(error, _PROGRAMMER_ERRORS):
                raise error
            reason = error if isinstance(error, NebulaError) else TransportError(str(error), context=error)
            req_logger.warn("Request to %s failed before sending: %s", url, error)
            adapter.resolve_loop().call_soon(deliver, Result.failure(reason))

        wrapper.run_effect(effect, on_error)
        return cancellor

    return requestor


def create_specific_method_requestor(method: str) -> Callable[..., Requestor]:
    """Build a factory like :func:`http_get` bound to one HTTP method."""

    def specific_method_requestor(
        url_or_config: str | Mapping[str, Any],
        config: Mapping[str, Any] | None = None,
        **options: Any,
    ) -> Requestor:
        if isinstance(url_or_config, str):
            merged = {**dict(config or {}), **options, "url": url_or_config, "method": method}
            return http_requestor(**merged)
        if isinstance(url_or_config, Mapping):
            merged = {**dict(url_or_config), **options, "method": method}
            return http_requestor(**merged)
        raise ValidationError(
            "pass either a URL (optionally with a config mapping) or a config mapping",
            context={"url_or_config": url_or_config, "config": config},
        )

    specific_method_requestor.__name__ = f"http_{method.lower()}"
    return specific_method_requestor


http_get = create_specific_method_requestor("GET")
http_post = create_specific_method_requestor("POST")
http_put = create_specific_method_requestor("PUT")
http_delete = create_specific_method_requestor("DELETE")


__all__ = [
    "CustomCancel",
    "HttpMessage",
    "HttpResult",
    "create_specific_method_requestor",
    "http_delete",
    "http_get",
    "http_post",
    "http_put",
    "http_requestor",
]
