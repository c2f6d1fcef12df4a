"""Unit test fixtures — FastMCP client bound to a temporary project."""

from __future__ import annotations

import pytest
from fastmcp import Client


@pytest.fixture()
async def mcp_client(tmp_path, fast_lock):
    """Yield a FastMCP Client wired to the Mulch server at a fresh root."""
    from mulch.server import configure
    from mulch.server import mcp

    configure(tmp_path, lock_config=fast_lock)

    async with Client(mcp) as client:
        yield client
