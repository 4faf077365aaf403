import io
import json
import logging

import pytest

from rewardledger.core.logging_config import get_logger, setup_logging


@pytest.fixture
def logger_name():
    name = "rewardledger.tests.logging"
    yield name
    logger = logging.getLogger(name)
    for handler in list(logger.handlers):
        handler.close()
        logger.removeHandler(handler)


def test_records_are_json_with_extra_fields(logger_name):
    stream = io.StringIO()
    logger = setup_logging(name=logger_name, level="INFO", environment="test", stream=stream)

    logger.info("Pool added", extra={"event": "registry.pool_added", "pool_id": 0})

    record = json.loads(stream.getvalue().splitlines()[0])
    assert record["message"] == "Pool added"
    assert record["event"] == "registry.pool_added"
    assert record["pool_id"] == 0
    assert record["level"] == "info"
    assert record["environment"] == "test"
    assert record["service"] == "rewardledger"
    assert record["timestamp"]


def test_level_filters_records(logger_name):
    stream = io.StringIO()
    logger = setup_logging(name=logger_name, level="WARNING", stream=stream)

    logger.info("dropped")
    logger.warning("kept", extra={"event": "distributor.invalid_amount"})

    lines = stream.getvalue().splitlines()
    assert len(lines) == 1
    assert json.loads(lines[0])["message"] == "kept"


def test_setup_replaces_handlers(logger_name, tmp_path):
    log_file = tmp_path / "logs" / "ledger.json"
    setup_logging(name=logger_name, stream=io.StringIO())
    logger = setup_logging(name=logger_name, log_file=str(log_file), enable_console=False)

    assert len(logger.handlers) == 1
    logger.info("to file")
    logger.handlers[0].flush()
    assert json.loads(log_file.read_text().splitlines()[0])["message"] == "to file"


def test_get_logger_keeps_existing_configuration(logger_name):
    configured = setup_logging(name=logger_name, stream=io.StringIO())
    handlers = list(configured.handlers)

    assert get_logger(logger_name) is configured
    assert configured.handlers == handlers
