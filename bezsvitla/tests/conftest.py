"""
Shared fixtures for bezsvitla tests.
"""
import os
import sys
from pathlib import Path

import pytest
from pytest_asyncio import fixture as async_fixture

project_root = os.path.abspath(os.path.join(os.path.dirname(__file__), '..', '..'))
if project_root not in sys.path:
    sys.path.insert(0, project_root)

from svitlo.migrate import apply_migrations
from svitlo.storage import KVStore, init_db

FIXTURES_DIR = Path(__file__).parent / "fixtures"


@pytest.fixture
def load_fixture():
    def _load(name: str) -> str:
        return (FIXTURES_DIR / name).read_text(encoding="utf-8")
    return _load


@async_fixture
async def store(tmp_path):
    conn = await init_db(str(tmp_path / "bezsvitla.db"))
    await apply_migrations(conn)
    yield KVStore(conn)
    await conn.close()
