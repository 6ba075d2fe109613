from nebula import HttpxBackend, MemoryBackend, NebulaClient, NebulaSettings, ReadyState, Result, RouteTable
from nebula.requestor import HttpResult
from nebula.transport.memory import json_response


def memory_client(loop, routes: RouteTable | None = None) -> NebulaClient:
    return NebulaClient(settings=NebulaSettings(backend="memory"), routes=routes, loop=loop)


def test_backend_selection_follows_settings(loop) -> None:
    http_client = NebulaClient(loop=loop)
    assert isinstance(http_client.adapter.backend, HttpxBackend)
    loop.run_until_complete(http_client.aclose())

    assert isinstance(memory_client(loop).adapter.backend, MemoryBackend)


def test_explicit_backend_wins(loop) -> None:
    backend = MemoryBackend()
    client = NebulaClient(backend=backend, loop=loop)
    assert client.adapter.backend is backend


def test_client_get_requestor(loop, drain) -> None:
    client = memory_client(loop)
    results: list[Result[HttpResult]] = []
    client.get("http://cheese.com/api")(results.append)
    drain()
    assert results[0].value.data == {"cheese": "gruyere"}


def test_client_uses_custom_routes(loop, drain) -> None:
    routes = RouteTable()
    routes.add("svc.test", 80, PUT=lambda h, p, b: json_response({"updated": True}))
    client = memory_client(loop, routes)
    results: list[Result[HttpResult]] = []
    client.put("http://svc.test/", body={"x": 1})(results.append)
    drain()
    assert results[0].value.data == {"updated": True}


def test_client_transactions_share_adapter(loop, drain) -> None:
    client = memory_client(loop)
    first = client.transaction()
    second = client.transaction()
    assert first.adapter is second.adapter
    first.open("GET", "http://cheese.com/api")
    first.send()
    drain()
    assert first.ready_state == ReadyState.DONE
    assert second.ready_state == ReadyState.UNSENT


def test_client_settings_reach_transactions(loop) -> None:
    client = NebulaClient(
        settings=NebulaSettings(backend="memory", disable_header_check=True, default_headers={"User-Agent": "t"}),
        loop=loop,
    )
    transaction = client.transaction()
    transaction.open("GET", "http://cheese.com/api")
    transaction.set_request_header("Cookie", "a=b")
    assert transaction.request_headers["cookie"] == "a=b"
    transaction.abort()
    assert transaction.request_headers.to_dict() == {"User-Agent": "t"}
