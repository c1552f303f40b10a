import asyncio
import os

import pytest
from fastapi.testclient import TestClient

# The app reads its config at import time.
os.environ["SEED_DEFAULT_NEWS"] = "true"
os.environ["TAP_BUFFER_SIZE"] = "0"

from news_broadcast.main import app
from news_broadcast.models import NewsEngine


async def take(stream, n: int, timeout: float = 2.0):
    """Pull ``n`` values from an async stream, failing instead of hanging."""
    return [await asyncio.wait_for(stream.__anext__(), timeout) for _ in range(n)]


def publish_n(engine: NewsEngine, n: int):
    return [
        engine.publish(f"title {i}", f"content {i}", "General", "Reporter")
        for i in range(1, n + 1)
    ]


@pytest.fixture
def engine():
    engine = NewsEngine()
    yield engine
    engine.shutdown()


@pytest.fixture
def test_client():
    with TestClient(app) as client:
        yield client
