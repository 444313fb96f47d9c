import io
import logging
import os

import pytest

from resticwatch import logger


def _records(caplog):
    return [r for r in caplog.records if r.name == logger.LOGGER_NAME]


def _emit_through_handler(caplog, message):
    handler = logging.getLogger(logger.LOGGER_NAME).handlers[0]
    stream = io.StringIO()
    previous = handler.setStream(stream)
    try:
        with caplog.at_level(logging.DEBUG, logger=logger.LOGGER_NAME):
            logger.info(message)
    finally:
        handler.setStream(previous)
    return stream.getvalue()


def test_info_prefixes_level_and_formats_args(caplog):
    with caplog.at_level(logging.DEBUG, logger=logger.LOGGER_NAME):
        logger.info("checked %d clients", 3)
    records = _records(caplog)
    assert [r.getMessage() for r in records] == ["INFO: checked 3 clients"]
    assert records[0].levelno == logging.INFO


def test_error_and_debug_tags(caplog):
    with caplog.at_level(logging.DEBUG, logger=logger.LOGGER_NAME):
        logger.error("failed: %s", "boom")
        logger.debug("path %s", "abc")
    messages = [r.getMessage() for r in _records(caplog)]
    assert messages == ["ERROR: failed: boom", "DEBUG: path abc"]


def test_record_points_at_caller(caplog):
    with caplog.at_level(logging.DEBUG, logger=logger.LOGGER_NAME):
        logger.info("where")
    record = _records(caplog)[0]
    assert record.filename == os.path.basename(__file__)


def test_fatal_logs_and_exits_with_one(caplog):
    with caplog.at_level(logging.DEBUG, logger=logger.LOGGER_NAME):
        with pytest.raises(SystemExit) as exc:
            logger.fatal("cannot continue")
    assert exc.value.code == 1
    assert _records(caplog)[-1].getMessage() == "FATAL: cannot continue"


def test_init_is_idempotent(caplog):
    logger.init()
    logger.init()
    assert len(logging.getLogger(logger.LOGGER_NAME).handlers) == 1
    output = _emit_through_handler(caplog, "once")
    assert output.count("INFO: once") == 1


def test_init_output_has_prefix_and_location(caplog):
    logger.init()
    output = _emit_through_handler(caplog, "hi")
    lines = output.strip().splitlines()
    assert len(lines) == 1
    line = lines[0]
    assert line.startswith(logger.PREFIX)
    assert line.endswith("INFO: hi")
    assert f"{os.path.basename(__file__)}:" in line