"""Unit test fixtures: FastMCP client wired to in-memory collaborators."""

from __future__ import annotations

import pytest
from fastmcp import Client

from parlormcp.config import SchedulerConfig
from tests.helpers.fakes import FAST_COMPLETION
from tests.helpers.fakes import FAST_ORCHESTRATION


@pytest.fixture()
async def mcp_client(store, broadcaster):
    """Yield a FastMCP Client wired to the ParlorMCP server."""
    from parlormcp.server import configure
    from parlormcp.server import mcp
    from parlormcp.server import shutdown

    await configure(
        store=store,
        broadcaster=broadcaster,
        completion_config=FAST_COMPLETION,
        orchestrator_config=FAST_ORCHESTRATION,
        scheduler_config=SchedulerConfig(enabled=False),
    )

    async with Client(mcp) as client:
        yield client

    await shutdown()
