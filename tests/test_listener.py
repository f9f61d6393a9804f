"""
Tests for the Socket.IO event handlers.
"""

import asyncio
import threading

import pytest
from unittest.mock import AsyncMock

from elements.base import DepictedObject
from host.session_manager import SessionManager
from messaging.listener import DEPICT_EVENTS, DEPICTION_RESPONSE, ERROR_EVENT, register_socket_events


class FakeSocketServer:
    """Captures handlers registered through the socketio decorators."""

    def __init__(self):
        self.handlers = {}
        self.emit = AsyncMock()

    def event(self, handler):
        self.handlers[handler.__name__] = handler
        return handler

    def on(self, event_name):
        def decorator(handler):
            self.handlers[event_name] = handler
            return handler
        return decorator


@pytest.fixture
def session_manager(registry, settings):
    manager = SessionManager(registry, settings)
    yield manager
    manager.shutdown()


@pytest.fixture
def sio(session_manager):
    server = FakeSocketServer()
    register_socket_events(server, session_manager)
    return server


def connect(sio, sid="sid-1", user_agent="Mozilla/5.0"):
    asyncio.run(sio.handlers["connect"](sid, {"HTTP_USER_AGENT": user_agent}))


def send(sio, data, sid="sid-1"):
    asyncio.run(sio.handlers[DEPICT_EVENTS](sid, data))


class TestSocketEvents:
    """Test suite for the registered Socket.IO handlers."""

    def test_handlers_registered(self, sio):
        assert set(sio.handlers) == {"connect", "disconnect", DEPICT_EVENTS}

    def test_connect_creates_session(self, sio, session_manager):
        connect(sio, user_agent="Mozilla/4.0 (compatible; MSIE 6.0)")

        platform = session_manager.get_session("sid-1")
        assert platform is not None
        assert platform.quirks_mode

    def test_connect_passes_user_agent(self, sio, session_manager, mocker):
        create_session = mocker.spy(session_manager, "create_session")

        connect(sio, sid="sid-2", user_agent="Mozilla/5.0 (X11)")

        create_session.assert_called_once_with(session_id="sid-2", user_agent="Mozilla/5.0 (X11)")

    def test_disconnect_destroys_session(self, sio, session_manager):
        connect(sio)
        platform = session_manager.get_session("sid-1")

        asyncio.run(sio.handlers["disconnect"]("sid-1"))

        assert "sid-1" not in session_manager
        assert platform.is_destroyed

    def test_initialize_returns_poll_interval(self, sio, settings):
        connect(sio)

        send(sio, {"events": [{"type": "init", "parameters": {"language": "en"}}]})

        sio.emit.assert_awaited_once()
        args, kwargs = sio.emit.call_args
        assert args[0] == DEPICTION_RESPONSE
        assert kwargs["room"] == "sid-1"
        assert args[1]["commands"] == [{
            "command": "poll-interval",
            "objectID": None,
            "parameters": {"interval": settings.poll_interval},
        }]
        assert "errors" not in args[1]

    def test_change_event_returns_patch(self, sio, session_manager):
        connect(sio)
        platform = session_manager.get_session("sid-1")
        obj = DepictedObject(platform)

        send(sio, [{"type": "control", "source": obj.id, "kind": "change",
                    "parameters": {"properties": {"title": "Inbox"}}}])

        args, _ = sio.emit.call_args
        assert args[0] == DEPICTION_RESPONSE
        assert f'id="{obj.id}"' in args[1]["patch"]
        assert "Inbox" in args[1]["patch"]
        assert obj.get_property("title") == "Inbox"

    def test_malformed_payloads_are_reported(self, sio):
        connect(sio)

        send(sio, [{"type": "poll"}, {"type": "bogus"}])

        args, _ = sio.emit.call_args
        assert args[0] == DEPICTION_RESPONSE
        assert len(args[1]["errors"]) == 1

    def test_unknown_session(self, sio):
        send(sio, [], sid="missing")

        args, kwargs = sio.emit.call_args
        assert args[0] == ERROR_EVENT
        assert kwargs["room"] == "missing"

    def test_invalid_batch(self, sio):
        connect(sio)

        send(sio, "not a batch")

        args, _ = sio.emit.call_args
        assert args[0] == ERROR_EVENT

    def test_bad_source_does_not_drop_batch(self, sio, session_manager):
        connect(sio)
        obj = DepictedObject(session_manager.get_session("sid-1"))

        send(sio, [
            {"type": "control", "kind": "focus", "source": [1]},
            {"type": "control", "source": obj.id, "kind": "change", "parameters": {"properties": {"title": "Kept"}}},
        ])

        args, _ = sio.emit.call_args
        assert args[0] == DEPICTION_RESPONSE
        assert len(args[1]["errors"]) == 1
        assert obj.get_property("title") == "Kept"

    def test_request_runs_off_event_loop(self, sio, session_manager, mocker):
        connect(sio)
        platform = session_manager.get_session("sid-1")
        process_request = platform.process_request
        threads = []

        def recording(events):
            threads.append(threading.get_ident())
            return process_request(events)

        mocker.patch.object(platform, "process_request", side_effect=recording)

        send(sio, [{"type": "poll"}])

        assert len(threads) == 1
        assert threads[0] != threading.get_ident()
