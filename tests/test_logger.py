"""Tests for logging setup and the log_function decorator."""

import logging

import pytest

from conftest import run
from podcast_qa.logger import log_function, setup_logging


def test_setup_logging_writes_file_once(tmp_path):
    log_file = tmp_path / "logs" / "unit.log"

    logger = setup_logging("podcast_qa_unit", str(log_file))
    again = setup_logging("podcast_qa_unit", str(log_file), verbose=True)
    logger.info("hello")

    assert again is logger
    assert len(logger.handlers) == 1
    assert "hello" in log_file.read_text()


def test_decorator_logs_sync_and_async_calls(caplog):
    @log_function(logger_name="pipeline", log_result=True)
    def add(a, b):
        return a + b

    @log_function(logger_name="pipeline")
    async def double(x):
        return x * 2

    with caplog.at_level(logging.INFO, logger="pipeline"):
        assert add(1, 2) == 3
        assert run(double(4)) == 8

    messages = [record.getMessage() for record in caplog.records]
    assert "Calling add" in messages
    assert any(m.startswith("Completed add") and m.endswith("with result: 3") for m in messages)
    assert any(m.startswith("Completed double in") for m in messages)
    assert double.__name__ == "double"


def test_decorator_reraises_and_logs_exceptions(caplog):
    @log_function(logger_name="pipeline")
    async def explode():
        raise KeyError("missing")

    with caplog.at_level(logging.INFO, logger="pipeline"):
        with pytest.raises(KeyError):
            run(explode())

    assert any("Exception in explode" in record.getMessage() for record in caplog.records)
