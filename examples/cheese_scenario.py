"""End-to-end scenario driving requestors against the in-memory backend.

Set NEBULA_BACKEND=httpx and NEBULA_DEMO_URL to point the same flow at a real server.
"""

from __future__ import annotations

import asyncio
import os
from typing import Any

from nebula import IdentityStore, NebulaSettings, Result, RouteTable
from nebula.client import NebulaClient
from nebula.transport import crud_routes, default_routes

BASE_URL = os.getenv("NEBULA_DEMO_URL", "http://cheese.com/api")
CRUD_URL = os.getenv("NEBULA_DEMO_CRUD_URL", "http://fixtures.test/records")


def log_section(title: str) -> None:
    print("\n" + "=" * 80)
    print(title)
    print("=" * 80)


def demo_routes(store: IdentityStore) -> RouteTable:
    routes = default_routes()
    routes.add("fixtures.test/records", 80, **crud_routes(store, "fixtures.test", 80))
    return routes


async def request(requestor: Any, message: Any = None) -> Result[Any]:
    """Adapt a callback requestor to a coroutine for the demo."""
    future: asyncio.Future[Result[Any]] = asyncio.get_running_loop().create_future()
    requestor(future.set_result, message)
    return await future


def show(result: Result[Any]) -> None:
    if not result.ok:
        print(f"  failed: {result.reason}")
        return
    value = result.value
    print(f"  {value.status_code} {value.status_message}")
    print(f"  {value.data!r}")


async def main() -> None:
    settings = NebulaSettings.from_env()
    if "NEBULA_BACKEND" not in os.environ:
        settings.backend = "memory"
    client = NebulaClient(settings=settings, routes=demo_routes(IdentityStore()))

    log_section("Step 1: GET cheese")
    show(await request(client.get(BASE_URL)))

    log_section("Step 2: POST a user over https")
    show(await request(client.post(BASE_URL.replace("http://", "https://"), body={"user": "x"})))

    log_section("Step 3: Unrouted host")
    show(await request(client.get("http://nowhere.test/")))

    log_section("Step 4: Create, read and delete a record")
    created = await request(client.post(CRUD_URL, body={"name": "brie"}))
    show(created)
    if created.ok:
        identity = str(created.value.data["id"])
        show(await request(client.get(CRUD_URL, params={"id": identity})))
        show(await request(client.delete(CRUD_URL, params={"id": identity})))

    log_section("Step 5: Cancel before completion")
    received: list[Result[Any]] = []
    cancel = client.get(BASE_URL)(received.append)
    if cancel is not None:
        cancel()
    await asyncio.sleep(0)
    print(f"  deliveries after cancel: {len(received)}")

    await client.aclose()


if __name__ == "__main__":
    asyncio.run(main())
