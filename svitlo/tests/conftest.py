"""
Shared fixtures for svitlo tests.
"""
import sys
import os
import pytest
from pytest_asyncio import fixture as async_fixture
from unittest.mock import Mock, AsyncMock

# Project root on sys.path so that svitlo/bezsvitla import without installation
project_root = os.path.abspath(os.path.join(os.path.dirname(__file__), '..', '..'))
if project_root not in sys.path:
    sys.path.insert(0, project_root)

from svitlo.migrate import apply_migrations
from svitlo.storage import KVStore, init_db


class FakeClock:
    """Controllable wall clock (seconds) for TTL tests."""

    def __init__(self, now: float = 1_700_000_000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now


@pytest.fixture
def fake_clock():
    return FakeClock()


@async_fixture
async def db_conn(tmp_path):
    conn = await init_db(str(tmp_path / "test.db"))
    await apply_migrations(conn)
    yield conn
    await conn.close()


@async_fixture
async def kv_store(db_conn, fake_clock):
    return KVStore(db_conn, clock=fake_clock)


@pytest.fixture
def mock_bot():
    bot = AsyncMock()
    bot.token = "111:TEST"
    bot.send_message = AsyncMock()
    bot.send_photo = AsyncMock()
    bot.send_video = AsyncMock()
    bot.send_document = AsyncMock()
    return bot


@pytest.fixture
def make_message():
    def _make(text: str = "", chat_id: int = 555):
        message = Mock()
        message.chat.id = chat_id
        message.from_user.id = chat_id
        message.text = text
        message.caption = None
        message.photo = None
        message.video = None
        message.document = None
        message.answer = AsyncMock()
        message.edit_text = AsyncMock()
        return message
    return _make


@pytest.fixture
def make_callback(make_message):
    def _make(data: str, chat_id: int = 555):
        callback = Mock()
        callback.data = data
        callback.from_user.id = chat_id
        callback.message = make_message(chat_id=chat_id)
        callback.answer = AsyncMock()
        return callback
    return _make


@pytest.fixture
def mock_fsm_state():
    """Mock для FSM State context"""
    state = AsyncMock()
    state.get_state = AsyncMock(return_value=None)
    state.set_state = AsyncMock()
    state.clear = AsyncMock()
    return state
