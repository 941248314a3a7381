"""Unit tests for structlog configuration in src.utils.logging."""

from __future__ import annotations

import io
import json
import logging

import pytest
import structlog

from src.utils.logging import configure_logging, get_logger


@pytest.fixture(autouse=True)
def restore_logging():
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield
    structlog.reset_defaults()
    root.handlers[:] = handlers
    root.setLevel(level)


class TestConfigureLogging:
    def test_json_output_to_stream(self) -> None:
        stream = io.StringIO()
        configure_logging("INFO", json_output=True, stream=stream)
        structlog.get_logger("test").info("cache_tag_revalidated", tag="posts", keys=2)

        record = json.loads(stream.getvalue().strip())
        assert record["event"] == "cache_tag_revalidated"
        assert record["tag"] == "posts"
        assert record["level"] == "info"

    def test_level_filters_lower_messages(self) -> None:
        stream = io.StringIO()
        configure_logging("WARNING", json_output=True, stream=stream)
        log = structlog.get_logger("test")
        log.debug("cache_hit")
        log.warning("cache_degraded")
        lines = stream.getvalue().strip().splitlines()
        assert len(lines) == 1
        assert json.loads(lines[0])["event"] == "cache_degraded"

    def test_stdlib_records_share_the_stream(self) -> None:
        stream = io.StringIO()
        configure_logging("INFO", json_output=True, stream=stream)
        logging.getLogger("redis.asyncio.connection").warning("reconnecting")
        assert json.loads(stream.getvalue().strip())["event"] == "reconnecting"


class TestGetLogger:
    def test_configures_on_first_use(self) -> None:
        structlog.reset_defaults()
        get_logger("src.test")
        assert structlog.is_configured()
