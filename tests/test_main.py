"""
Tests for the server entry point helpers.
"""

import logging
from logging.handlers import RotatingFileHandler

import pytest
from aiohttp import web

from elements.base import DepictedObject
from host.config import PlatformSettings
from host.main import build_registry, configure_logging, create_app
from host.session_manager import SessionManager
from rendering.delegates import DefaultDepictor


@pytest.fixture
def restore_root_logger():
    root_logger = logging.getLogger()
    handlers = root_logger.handlers[:]
    level = root_logger.level
    yield root_logger
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)
        if handler not in handlers:
            handler.close()
    for handler in handlers:
        root_logger.addHandler(handler)
    root_logger.setLevel(level)


def test_configure_logging_with_file(restore_root_logger, tmp_path):
    log_file = tmp_path / "logs" / "depiction.log"

    configure_logging(log_level="DEBUG", log_to_file=True, log_file_path=str(log_file), max_log_files=3)

    file_handlers = [h for h in restore_root_logger.handlers if isinstance(h, RotatingFileHandler)]
    assert len(file_handlers) == 1
    assert file_handlers[0].backupCount == 2
    assert restore_root_logger.level == logging.DEBUG
    assert log_file.parent.is_dir()


def test_configure_logging_invalid_level(restore_root_logger):
    configure_logging(log_level="LOUD")

    assert restore_root_logger.level == logging.INFO


def test_build_registry_has_fallback():
    registry = build_registry()

    assert isinstance(registry.resolve(DepictedObject), DefaultDepictor)
    assert not registry.is_frozen


def test_create_app():
    app, session_manager = create_app(PlatformSettings())

    assert isinstance(app, web.Application)
    assert isinstance(session_manager, SessionManager)
    assert len(session_manager) == 0
