"""Root conftest: suite markers, in-memory collaborators and Redis container.

The in-memory Store, Broadcaster and CompletionService fakes (see
``tests.helpers.fakes``) let the orchestration core run without any
backend.  The Redis container is only started by tests that ask for it
and is skipped when Docker is not available.
"""

from __future__ import annotations

import logging
import time
from pathlib import Path

import pytest
import redis as sync_redis
from redis.asyncio import Redis

from parlormcp.engine import ResponseGenerator
from parlormcp.models import Room
from parlormcp.observability import reset_latency_metrics
from parlormcp.orchestration import ResponseOrchestrator
from tests.helpers.fakes import FAST_COMPLETION
from tests.helpers.fakes import FAST_ORCHESTRATION
from tests.helpers.fakes import InMemoryStore
from tests.helpers.fakes import RecordingBroadcaster
from tests.helpers.fakes import make_persona

logger = logging.getLogger(__name__)


def pytest_collection_modifyitems(items: list[pytest.Item]) -> None:
    """Attach suite markers from test path.

    - `tests/unit/*` -> `unit`
    - `tests/integration/*` -> `integration`
    - `tests/scenarios/*` -> `scenario`
    """
    root = Path(__file__).resolve().parents[1]
    for item in items:
        item_path = Path(str(item.fspath)).resolve()
        try:
            rel = item_path.relative_to(root)
        except ValueError:
            continue

        parts = rel.parts
        if len(parts) < 2 or parts[0] != "tests":
            continue
        if parts[1] == "unit":
            item.add_marker(pytest.mark.unit)
        elif parts[1] == "integration":
            item.add_marker(pytest.mark.integration)
        elif parts[1] == "scenarios":
            item.add_marker(pytest.mark.scenario)


@pytest.fixture(autouse=True)
def clean_metrics():
    """Reset latency aggregates and counters around each test."""
    reset_latency_metrics()
    yield
    reset_latency_metrics()


# ---------------------------------------------------------------------------
# Orchestration fixtures
# ---------------------------------------------------------------------------


@pytest.fixture()
def store() -> InMemoryStore:
    return InMemoryStore()


@pytest.fixture()
def broadcaster() -> RecordingBroadcaster:
    return RecordingBroadcaster()


@pytest.fixture()
async def lounge(store: InMemoryStore) -> Room:
    """Room with three English personas of distinct temperament."""
    personas = [
        make_persona("p_aki", "Aki", extraversion=5, agreeableness=2),
        make_persona("p_ben", "Ben", extraversion=2, agreeableness=5),
        make_persona("p_cho", "Cho", openness=5),
    ]
    for persona in personas:
        await store.save_persona(persona)
    room = Room(
        id="room_lounge",
        name="Lounge",
        topic="weekend plans",
        persona_ids=[p.id for p in personas],
    )
    await store.save_room(room)
    return room


@pytest.fixture()
async def make_orchestrator(store: InMemoryStore, broadcaster: RecordingBroadcaster):
    """Build orchestrators over the shared fakes, without pacing by default."""
    created: list[ResponseOrchestrator] = []

    def _make(*, completion=None, config=FAST_ORCHESTRATION, **kwargs):
        generator = ResponseGenerator(completion, completion_config=FAST_COMPLETION)
        orchestrator = ResponseOrchestrator(
            store, broadcaster, generator, config=config, **kwargs
        )
        created.append(orchestrator)
        return orchestrator

    yield _make
    for orchestrator in created:
        await orchestrator.close()


@pytest.fixture()
def orchestrator(make_orchestrator) -> ResponseOrchestrator:
    return make_orchestrator()


# ---------------------------------------------------------------------------
# Redis
# ---------------------------------------------------------------------------


@pytest.fixture(scope="session")
def redis_container():
    """Spin up a Redis 7 container and yield its URL.

    Session-scoped: one container for the entire test run.  Skips the
    requesting tests when Docker is not reachable.
    """
    try:
        from testcontainers.core.container import DockerContainer

        container = DockerContainer("redis:7-alpine").with_exposed_ports(6379)
        container.start()
    except Exception as exc:
        pytest.skip(f"Docker unavailable for Redis container: {exc}")

    try:
        host = container.get_container_host_ip()
        port = container.get_exposed_port(6379)
        url = f"redis://{host}:{port}"

        # Wait for Redis readiness
        r = sync_redis.Redis(host=host, port=int(port))
        max_attempts = 30
        for attempt in range(max_attempts):
            try:
                r.ping()
                r.close()
                break
            except Exception as exc:
                if attempt == max_attempts - 1:
                    r.close()
                    raise
                logger.debug(
                    "Redis not ready (attempt %d/%d): %s",
                    attempt + 1,
                    max_attempts,
                    exc,
                )
                time.sleep(1)

        yield url
    finally:
        container.stop()


@pytest.fixture()
async def redis_client(redis_container):
    """Yield an async Redis client connected to the test container, flushed."""
    client = Redis.from_url(redis_container)
    await client.flushdb()
    yield client
    await client.flushdb()
    await client.aclose()
