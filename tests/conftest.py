"""
Shared fixtures for the depiction core tests.
"""

import pytest
from unittest.mock import MagicMock

from elements.base import DepictedObject
from host.config import PlatformSettings
from host.platform import Platform
from rendering.delegates import DefaultDepictor
from rendering.registry import DepictorRegistry


@pytest.fixture
def settings():
    """
    Fixture that provides settings with fixed polling and ID defaults.
    """
    return PlatformSettings(poll_interval=300000, depict_id_prefix="id")


@pytest.fixture
def registry():
    """
    Fixture that provides an unfrozen registry with the fallback depictor.
    """
    registry = DepictorRegistry()
    registry.register(DepictedObject, DefaultDepictor())
    return registry


@pytest.fixture
def platform(registry, settings):
    """
    Fixture that provides a platform for a single test session.
    """
    platform = Platform(registry, session_id="test_session", settings=settings)
    yield platform
    platform.destroy()


@pytest.fixture
def mock_depictor():
    """
    Fixture that provides a mock depictor accepting every event kind.
    """
    depictor = MagicMock()
    depictor.HANDLED_EVENT_KINDS = None
    depictor.REQUIRED_PARAMETERS = {}
    return depictor
