"""
Tests for env parsing (svitlo.config) and chat-attributed logging
"""
import logging
from unittest.mock import Mock, patch

import pytest

from svitlo.config import env_num, is_admin, parse_tokens
from svitlo.logging_config import _add_chat_prefix, chat_logging, current_chat, setup_logging
from svitlo.middleware import ChatLoggingMiddleware


@pytest.mark.unit
class TestEnvNum:

    def test_unset(self, monkeypatch):
        monkeypatch.delenv("SVITLO_TEST_NUM", raising=False)
        assert env_num("SVITLO_TEST_NUM", 20) == 20

    @pytest.mark.parametrize("raw,expected", [("15", 15), (" 7 ", 7), ("2.5", 2.5), ("abc", 20), ("", 20), ("nan", 20), ("inf", 20)])
    def test_values(self, monkeypatch, raw, expected):
        monkeypatch.setenv("SVITLO_TEST_NUM", raw)
        assert env_num("SVITLO_TEST_NUM", 20) == expected

    def test_integer_values_are_ints(self, monkeypatch):
        monkeypatch.setenv("SVITLO_TEST_NUM", "300")
        assert isinstance(env_num("SVITLO_TEST_NUM", 1), int)


@pytest.mark.unit
class TestParseTokens:

    def test_comma_separated(self):
        assert parse_tokens("111:A, 222:B ,") == ["111:A", "222:B"]

    def test_json_array(self):
        assert parse_tokens('["111:A", "222:B"]') == ["111:A", "222:B"]

    def test_broken_json(self):
        assert parse_tokens("[111:A") == ["[111:A"]
        assert parse_tokens("[oops]") == []

    def test_empty(self):
        assert parse_tokens("") == []
        assert parse_tokens(None) == []


@pytest.mark.unit
class TestIsAdmin:

    def test_matches_string_or_int(self):
        with patch("svitlo.config.ADMIN_ID", "42"):
            assert is_admin(42)
            assert is_admin("42")
            assert not is_admin(43)

    def test_no_admin_configured(self):
        with patch("svitlo.config.ADMIN_ID", ""):
            assert not is_admin("")


@pytest.mark.unit
class TestChatLogging:

    @staticmethod
    def prefixed(chat_id=None) -> str:
        record = logging.LogRecord("x", logging.INFO, __file__, 1, "msg", None, None)
        if chat_id is None:
            _add_chat_prefix(record)
        else:
            with chat_logging(chat_id):
                _add_chat_prefix(record)
        return record.chat_id

    def test_prefix_inside_block(self):
        assert self.prefixed(555) == "chat_555 | "

    def test_no_prefix_outside_block(self):
        assert self.prefixed() == ""

    def test_nested_blocks_restore_outer_chat(self):
        with chat_logging(1):
            with chat_logging(2):
                assert current_chat() == "2"
            assert current_chat() == "1"
        assert current_chat() is None

    def test_context_cleared_after_error(self):
        with pytest.raises(RuntimeError):
            with chat_logging(9):
                raise RuntimeError("boom")
        assert current_chat() is None

    def test_setup_logging_writes_file(self, tmp_path):
        logger = setup_logging("svitlo_test_logger", str(tmp_path))
        with chat_logging(7):
            logger.info("hello")
        for handler in logger.handlers:
            handler.flush()
        content = (tmp_path / "svitlo_test_logger.log").read_text(encoding="utf-8")
        assert "chat_7 | INFO:svitlo_test_logger:hello" in content
        for handler in list(logger.handlers):
            handler.close()
            logger.removeHandler(handler)

    @pytest.mark.asyncio
    @pytest.mark.parametrize("data,expected", [
        ({"event_chat": Mock(id=321), "event_from_user": Mock(id=5)}, "321"),
        ({"event_from_user": Mock(id=5)}, "5"),
        ({}, None),
    ])
    async def test_middleware_uses_resolved_chat(self, data, expected):
        seen = []

        async def handler(event, data):
            seen.append(current_chat())

        await ChatLoggingMiddleware()(handler, Mock(), data)
        assert seen == [expected]
        assert current_chat() is None
