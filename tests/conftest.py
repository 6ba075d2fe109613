import asyncio
from typing import Callable

import pytest

from nebula.transport import MemoryBackend, TransportAdapter


@pytest.fixture
def loop():
    loop = asyncio.new_event_loop()
    yield loop
    loop.close()


@pytest.fixture
def drain(loop) -> Callable[..., None]:
    """Run every callback that is ready, plus a few follow-up turns."""

    def run(turns: int = 5) -> None:
        for _ in range(turns):
            loop.run_until_complete(asyncio.sleep(0))

    return run


@pytest.fixture
def run_until(loop) -> Callable[..., None]:
    def run(predicate: Callable[[], object], turns: int = 500) -> None:
        async def wait() -> None:
            for _ in range(turns):
                if predicate():
                    return
                await asyncio.sleep(0)

        loop.run_until_complete(wait())

    return run


@pytest.fixture
def adapter(loop) -> TransportAdapter:
    return TransportAdapter(MemoryBackend(), loop=loop)
