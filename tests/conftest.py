"""Pytest fixtures for pogo-toolkit tests."""

from __future__ import annotations

import tempfile
from collections.abc import AsyncGenerator
from pathlib import Path

import pytest

from pogo_core.data.database import GameDatabase
from pogo_core.updates import SourceRegistry, default_sources

from fakes import FakeFeed


@pytest.fixture
async def db() -> AsyncGenerator[GameDatabase, None]:
    """Create a temporary game database for testing."""
    with tempfile.TemporaryDirectory() as tmpdir:
        database = GameDatabase(Path(tmpdir) / "test_pogo.sqlite")
        await database.connect()
        yield database
        await database.close()


@pytest.fixture
async def registry(db: GameDatabase) -> SourceRegistry:
    """Default sources, persisted so audit rows can reference them."""
    sources = SourceRegistry(default_sources())
    await sources.persist(db)
    return sources


@pytest.fixture
def feed() -> FakeFeed:
    return FakeFeed()
