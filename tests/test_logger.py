import logging

import pytest

from bumpkit.config import LoggingConfig
from bumpkit.exceptions import ConfigError
from bumpkit.logger import ROOT_LOGGER, resolve_level, setup_logging


@pytest.fixture(autouse=True)
def _restore_logger():
    yield
    logger = logging.getLogger(ROOT_LOGGER)
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()
    logger.setLevel(logging.NOTSET)


def test_resolve_level():
    assert resolve_level("debug") == logging.DEBUG
    assert resolve_level(" WARN ") == logging.WARNING
    with pytest.raises(ConfigError):
        resolve_level("chatty")


def test_console_logging_uses_config_level():
    logger = setup_logging(LoggingConfig(level="warning"))
    assert logger.name == ROOT_LOGGER
    assert logger.level == logging.WARNING
    assert len(logger.handlers) == 1
    assert isinstance(logger.handlers[0], logging.StreamHandler)


def test_level_override_and_handler_replacement():
    setup_logging(LoggingConfig(level="info"))
    logger = setup_logging(LoggingConfig(level="info"), level="debug")
    assert logger.level == logging.DEBUG
    assert len(logger.handlers) == 1


def test_file_output_in_production_format(tmp_path):
    path = tmp_path / "bumpkit.log"
    config = LoggingConfig(
        level="info", output="file", file_path=str(path), environment="production"
    )
    setup_logging(config)
    logging.getLogger("bumpkit.commit").info("hello %s", "world")
    for handler in logging.getLogger(ROOT_LOGGER).handlers:
        handler.flush()

    text = path.read_text()
    assert "INFO bumpkit.commit hello world" in text
