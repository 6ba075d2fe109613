import random
from typing import Any

import pytest

from nebula import (
    HttpMessage,
    HttpResult,
    MemoryBackend,
    ParseError,
    Result,
    RouteTable,
    TransportAdapter,
    TransportError,
    ValidationError,
    http_delete,
    http_get,
    http_post,
    http_put,
    http_requestor,
)
from nebula.transport.base import TransportResponse
from nebula.transport.memory import json_response


def echo_routes() -> RouteTable:
    routes = RouteTable()

    def echo(headers: dict[str, str], params: dict[str, str], body: Any) -> TransportResponse:
        return json_response({"headers": headers, "params": params, "body": body})

    routes.add("echo.test", 80, GET=echo, POST=echo, PUT=echo, DELETE=echo)
    return routes


@pytest.fixture
def echo_adapter(loop) -> TransportAdapter:
    return TransportAdapter(MemoryBackend(echo_routes()), loop=loop)


def test_get_cheese_scenario(adapter: TransportAdapter, drain) -> None:
    results: list[Result[HttpResult]] = []
    http_get("http://cheese.com/api", adapter=adapter)(results.append)
    assert results == []
    drain()
    assert len(results) == 1
    value = results[0].value
    assert value.status_code == 200
    assert value.status_message == "OK"
    assert value.headers == {"content-type": "application/json"}
    assert value.data["cheese"] == "gruyere"


def test_post_cheese_scenario(adapter: TransportAdapter, drain) -> None:
    results: list[Result[HttpResult]] = []
    http_post("https://cheese.com/api", body={"user": "x"}, adapter=adapter)(results.append)
    drain()
    value = results[0].value
    assert value.status_code == 201
    assert value.status_message == "Created"
    assert value.data["user"] == "x"
    assert "createdAt" in value.data


def test_unrouted_host_is_a_successful_404(adapter: TransportAdapter, drain) -> None:
    results: list[Result[HttpResult]] = []
    http_get("http://nowhere.test/", adapter=adapter)(results.append)
    drain()
    assert results[0].ok is True
    assert results[0].value.status_code == 404
    assert "error" in results[0].value.data


def test_transport_failure_is_delivered_as_failure(loop, drain) -> None:
    routes = RouteTable()

    def broken(headers, params, body):
        raise RuntimeError("backend down")

    routes.add("broken.test", 80, GET=broken)
    results: list[Result[HttpResult]] = []
    http_get("http://broken.test/", adapter=TransportAdapter(MemoryBackend(routes), loop=loop))(results.append)
    assert results == []
    drain()
    assert len(results) == 1
    assert results[0].ok is False
    assert isinstance(results[0].reason, TransportError)
    assert "backend down" in str(results[0].reason)


def test_bad_receiver_raises_synchronously(adapter: TransportAdapter) -> None:
    requestor = http_get("http://cheese.com/api", adapter=adapter)
    with pytest.raises(ValidationError):
        requestor(lambda: None)


def test_forbidden_method_raises_synchronously(adapter: TransportAdapter, drain) -> None:
    results: list[Result[HttpResult]] = []
    requestor = http_requestor("http://cheese.com/api", method="TRACE", adapter=adapter)
    with pytest.raises(ValidationError):
        requestor(results.append)
    drain()
    assert results == []


def test_default_cancellor_suppresses_result(adapter: TransportAdapter, drain) -> None:
    results: list[Result[HttpResult]] = []
    cancel = http_get("http://cheese.com/api", adapter=adapter)(results.append)
    assert callable(cancel)
    cancel()
    drain()
    assert results == []


def test_custom_cancel_can_deliver_its_own_result(adapter: TransportAdapter, drain) -> None:
    results: list[Result[HttpResult]] = []
    aborted: list[bool] = []

    def custom_cancel(abort_request, deliver):
        def cancel() -> None:
            abort_request()
            aborted.append(True)
            deliver(Result.failure("cancelled!"))

        return cancel

    cancel = http_get("http://cheese.com/api", adapter=adapter, custom_cancel=custom_cancel)(results.append)
    cancel()
    cancel()
    drain()
    assert aborted == [True, True]
    assert results == [Result.failure("cancelled!")]


def test_custom_cancel_must_return_callable(adapter: TransportAdapter, drain) -> None:
    results: list[Result[HttpResult]] = []
    requestor = http_get("http://cheese.com/api", adapter=adapter, custom_cancel=lambda abort, deliver: "nope")
    with pytest.raises(ValidationError):
        requestor(results.append)
    drain()
    assert results == []


def test_unparseable_json_falls_back_to_text(loop, drain) -> None:
    routes = RouteTable()
    routes.add(
        "bad.test",
        80,
        GET=lambda h, p, b: {"status": 200, "headers": {"Content-Type": "application/json"}, "responseText": "{oops"},
    )
    logged: list[BaseException] = []
    results: list[Result[HttpResult]] = []
    adapter = TransportAdapter(MemoryBackend(routes), loop=loop)
    http_get("http://bad.test/", adapter=adapter, log=logged.append)(results.append)
    drain()
    assert results[0].ok is True
    assert results[0].value.data == "{oops"
    assert isinstance(logged[0], ParseError)


def test_auto_parse_response_can_be_disabled(adapter: TransportAdapter, drain) -> None:
    results: list[Result[HttpResult]] = []
    requestor = http_get("http://cheese.com/api", adapter=adapter)
    requestor(results.append, {"auto_parse_response": False})
    drain()
    assert results[0].value.data == '{"cheese": "gruyere"}'


def test_json_body_is_encoded_with_content_type(echo_adapter: TransportAdapter, drain) -> None:
    results: list[Result[HttpResult]] = []
    http_post("http://echo.test/", body={"a": 1}, adapter=echo_adapter)(results.append)
    drain()
    echoed = results[0].value.data
    assert echoed["body"] == '{"a": 1}'
    assert echoed["headers"]["Content-Type"] == "application/json"
    assert echoed["headers"]["Content-Length"] == "8"


def test_form_body_is_url_encoded(echo_adapter: TransportAdapter, drain) -> None:
    results: list[Result[HttpResult]] = []
    requestor = http_put(
        "http://echo.test/",
        body={"a": "1", "b": "two words"},
        content_type="x-www-form-urlencoded",
        adapter=echo_adapter,
    )
    requestor(results.append)
    drain()
    echoed = results[0].value.data
    assert echoed["body"] == "a=1&b=two+words"
    assert echoed["headers"]["Content-Type"] == "application/x-www-form-urlencoded"


def test_explicit_content_type_header_wins(echo_adapter: TransportAdapter, drain) -> None:
    results: list[Result[HttpResult]] = []
    requestor = http_post(
        "http://echo.test/",
        headers={"content-type": "text/csv", "Content-Length": "999"},
        body=["a", "b"],
        adapter=echo_adapter,
    )
    requestor(results.append)
    drain()
    echoed = results[0].value.data
    assert echoed["body"] == "['a', 'b']"
    assert echoed["headers"]["content-type"] == "text/csv"
    assert echoed["headers"]["Content-Length"] == str(len("['a', 'b']"))


def test_message_overrides_merge_without_mutating_factory(echo_adapter: TransportAdapter, drain) -> None:
    first: list[Result[HttpResult]] = []
    second: list[Result[HttpResult]] = []
    requestor = http_get("http://echo.test", params={"a": "1"}, headers={"X-Base": "yes"}, adapter=echo_adapter)
    requestor(first.append, HttpMessage(params={"b": "2"}, headers={"X-Extra": "1"}, pathname="/items"))
    requestor(second.append)
    drain()
    assert first[0].value.data["params"] == {"a": "1", "b": "2"}
    assert first[0].value.data["headers"]["X-Extra"] == "1"
    assert second[0].value.data["params"] == {"a": "1"}
    assert "X-Extra" not in second[0].value.data["headers"]
    assert second[0].value.data["headers"]["X-Base"] == "yes"


def test_message_body_override(echo_adapter: TransportAdapter, drain) -> None:
    results: list[Result[HttpResult]] = []
    requestor = http_delete("http://echo.test/", body={"from": "factory"}, adapter=echo_adapter)
    requestor(results.append, {"body": {"from": "message"}})
    drain()
    assert results[0].value.data["body"] == '{"from": "message"}'


def test_unknown_message_keys_are_rejected(adapter: TransportAdapter) -> None:
    requestor = http_get("http://cheese.com/api", adapter=adapter)
    with pytest.raises(ValidationError):
        requestor(lambda result: None, {"bogus": True})


def test_specific_method_factory_accepts_config_mapping(adapter: TransportAdapter, drain) -> None:
    results: list[Result[HttpResult]] = []
    requestor = http_post({"url": "https://cheese.com/api", "body": {"user": "y"}, "method": "GET", "adapter": adapter})
    requestor(results.append)
    drain()
    assert results[0].value.status_code == 201
    assert results[0].value.data["user"] == "y"


def test_specific_method_factory_rejects_other_inputs() -> None:
    with pytest.raises(ValidationError):
        http_get(123)  # type: ignore[arg-type]
    assert http_get.__name__ == "http_get"


@pytest.mark.parametrize("seed", range(40))
def test_receiver_fires_at_most_once_under_random_interleavings(seed: int, loop, drain) -> None:
    rng = random.Random(seed)
    routes = RouteTable()

    def flaky(headers, params, body):
        if rng.random() < 0.4:
            raise RuntimeError("flaky backend")
        return json_response({"ok": True})

    routes.add("race.test", 80, GET=flaky)
    adapter = TransportAdapter(MemoryBackend(routes), loop=loop)
    delivering_cancel = rng.random() < 0.5

    def custom_cancel(abort_request, deliver):
        def cancel() -> None:
            abort_request()
            deliver(Result.failure("cancelled"))

        return cancel

    results: list[Result[HttpResult]] = []
    kwargs: dict[str, Any] = {"adapter": adapter}
    if delivering_cancel:
        kwargs["custom_cancel"] = custom_cancel
    cancel = http_get("http://race.test/", **kwargs)(results.append)
    assert cancel is not None

    cancelled = False
    for _ in range(rng.randint(0, 3)):
        when = rng.choice(["now", "soon", "later"])
        cancelled = True
        if when == "now":
            cancel()
        elif when == "soon":
            loop.call_soon(cancel)
        else:
            loop.call_soon(loop.call_soon, cancel)
    drain()
    if rng.random() < 0.5:
        cancel()
        cancelled = True
        drain()

    assert len(results) <= 1
    if not cancelled or delivering_cancel:
        assert len(results) == 1


def test_raising_receiver_does_not_reach_the_event_loop(loop, adapter: TransportAdapter, drain) -> None:
    escaped: list[BaseException | None] = []
    loop.set_exception_handler(lambda _loop, context: escaped.append(context.get("exception")))
    calls: list[Result[HttpResult]] = []

    def receiver(result: Result[HttpResult]) -> None:
        calls.append(result)
        raise RuntimeError("receiver bug")

    http_get("http://cheese.com/api", adapter=adapter)(receiver)
    drain()
    assert escaped == []
    assert len(calls) == 1
    assert calls[0].value.status_code == 200
