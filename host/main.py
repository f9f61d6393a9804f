"""
Main entry point for the depiction server.
Loads settings, configures logging, builds the depictor registry and serves
client sessions over Socket.IO.
"""

import asyncio
import logging
import os
import sys
from logging.handlers import RotatingFileHandler
from typing import Optional, Tuple

import socketio
from aiohttp import web

from elements.base import DepictedObject
from messaging.listener import register_socket_events
from rendering.delegates import DefaultDepictor
from rendering.registry import DepictorRegistry

from host.config import load_settings, PlatformSettings
from host.session_manager import SessionManager

# Basic logging until we load configuration
logging.basicConfig(level=logging.INFO, format='%(asctime)s - %(name)s - %(levelname)s - %(message)s')
logger = logging.getLogger(__name__)


def configure_logging(log_level: str = "INFO", log_format: str = '%(asctime)s - %(name)s - %(levelname)s - %(message)s',
                      log_to_file: bool = False, log_file_path: str = "logs/depiction.log",
                      max_bytes: int = 500_000, max_log_files: int = 10):
    """
    Configure logging with the specified level, format, and optional rolling file logging.

    Args:
        log_level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_format: Log message format string
        log_to_file: Whether to enable file logging
        log_file_path: Path to log file (directory will be created if needed)
        max_bytes: Maximum size of a log file before rotation
        max_log_files: Maximum number of log files to keep
    """
    numeric_level = getattr(logging, log_level.upper(), None)
    if not isinstance(numeric_level, int):
        logger.error(f"Invalid log level: {log_level}. Using INFO instead.")
        numeric_level = logging.INFO

    # Clear existing handlers and reconfigure
    root_logger = logging.getLogger()
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    formatter = logging.Formatter(log_format)

    console_handler = logging.StreamHandler()
    console_handler.setLevel(numeric_level)
    console_handler.setFormatter(formatter)
    root_logger.addHandler(console_handler)

    if log_to_file:
        try:
            log_dir = os.path.dirname(log_file_path)
            if log_dir:
                os.makedirs(log_dir, exist_ok=True)
            file_handler = RotatingFileHandler(
                filename=log_file_path,
                maxBytes=max_bytes,
                backupCount=max_log_files - 1,  # current file + backups = total
                encoding='utf-8'
            )
            file_handler.setLevel(numeric_level)
            file_handler.setFormatter(formatter)
            root_logger.addHandler(file_handler)
        except OSError as e:
            logger.error(f"Failed to set up file logging at {log_file_path}: {e}. Continuing with console logging only.")

    root_logger.setLevel(numeric_level)
    logger.info(f"Logging configured: level={logging.getLevelName(numeric_level)}, file={log_file_path if log_to_file else 'disabled'}")


def build_registry() -> DepictorRegistry:
    """Create the registry with the fallback depictor for every depicted object type."""
    registry = DepictorRegistry()
    registry.register(DepictedObject, DefaultDepictor())
    return registry


def create_app(settings: PlatformSettings, registry: Optional[DepictorRegistry] = None) -> Tuple[web.Application, SessionManager]:
    """
    Build the aiohttp application serving depiction sessions.

    Returns:
        Tuple of (application, session manager)
    """
    session_manager = SessionManager(registry or build_registry(), settings)
    sio = socketio.AsyncServer(async_mode='aiohttp', cors_allowed_origins=settings.cors_allowed_origins)
    app = web.Application()
    sio.attach(app)
    register_socket_events(sio, session_manager)

    async def on_shutdown(_app):
        session_manager.shutdown()

    app.on_shutdown.append(on_shutdown)
    return app, session_manager


async def amain():
    """Asynchronous main entry point."""
    settings = load_settings()
    configure_logging(
        log_level=settings.log_level,
        log_format=settings.log_format,
        log_to_file=settings.log_to_file,
        log_file_path=settings.log_file_path,
        max_bytes=settings.log_max_bytes,
        max_log_files=settings.log_max_files
    )

    app, _ = create_app(settings)
    runner = web.AppRunner(app)
    await runner.setup()
    site = web.TCPSite(runner, settings.host, settings.port)
    logger.info(f"Starting depiction server on http://{settings.host}:{settings.port}")
    await site.start()
    try:
        await asyncio.Event().wait()
    finally:
        await runner.cleanup()


def main():
    """Synchronous entry point."""
    try:
        asyncio.run(amain())
    except KeyboardInterrupt:
        logger.info("Depiction server shutting down.")
    except Exception as e:
        logger.critical(f"Critical error during server execution: {e}", exc_info=True)
        sys.exit(1)


if __name__ == "__main__":
    main()
