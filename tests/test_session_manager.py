"""
Tests for the SessionManager and per-session isolation.
"""

import threading
import time

import pytest

from elements.base import DepictedObject
from host.session_manager import SessionManager
from messaging.events import ControlEvent
from rendering.delegates import FunctionDepictor


class Meter(DepictedObject):
    pass


class TestSessionManager:
    """Test suite for session lifecycle management."""

    def test_create_and_get(self, registry, settings):
        manager = SessionManager(registry, settings)

        platform = manager.create_session("sid-1", user_agent="Mozilla/5.0")

        assert manager.get_session("sid-1") is platform
        assert "sid-1" in manager
        assert len(manager) == 1
        assert platform.settings is settings
        assert platform.user_agent == "Mozilla/5.0"

    def test_generated_session_id(self, registry, settings):
        manager = SessionManager(registry, settings)

        platform = manager.create_session()

        assert platform.session_id
        assert manager.get_session(platform.session_id) is platform

    def test_duplicate_session_raises(self, registry, settings):
        manager = SessionManager(registry, settings)
        manager.create_session("sid-1")

        with pytest.raises(ValueError):
            manager.create_session("sid-1")

    def test_first_session_freezes_registry(self, registry, settings):
        manager = SessionManager(registry, settings)
        assert not registry.is_frozen

        manager.create_session("sid-1")

        assert registry.is_frozen

    def test_destroy_session(self, registry, settings):
        manager = SessionManager(registry, settings)
        platform = manager.create_session("sid-1")
        obj = DepictedObject(platform)

        assert manager.destroy_session("sid-1") is True

        assert manager.get_session("sid-1") is None
        assert platform.is_destroyed
        assert not obj.is_live

    def test_destroy_unknown_session(self, registry, settings):
        assert SessionManager(registry, settings).destroy_session("missing") is False

    def test_shutdown(self, registry, settings):
        manager = SessionManager(registry, settings)
        platforms = [manager.create_session(f"sid-{i}") for i in range(3)]

        manager.shutdown()

        assert len(manager) == 0
        assert all(platform.is_destroyed for platform in platforms)


class TestSessionIsolation:
    """Test suite for concurrent use of sessions."""

    def test_sessions_do_not_share_state(self, registry, settings):
        registry.register(Meter, FunctionDepictor(
            lambda obj, ctx: ctx.write(f"[{obj.get_property('value')}]")))
        manager = SessionManager(registry, settings)
        sessions = [manager.create_session(f"sid-{i}") for i in range(2)]
        meters = [Meter(platform) for platform in sessions]
        outputs = {platform.session_id: [] for platform in sessions}
        errors = []

        def drive(platform, meter, offset):
            try:
                for i in range(50):
                    event = ControlEvent(meter, "change", {"properties": {"value": offset + i}})
                    outputs[platform.session_id].append(platform.process_request([event]).output)
            except Exception as e:  # collected for the assertion below
                errors.append(e)

        threads = [
            threading.Thread(target=drive, args=(platform, meter, index * 1000))
            for index, (platform, meter) in enumerate(zip(sessions, meters))
        ]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert errors == []
        assert outputs["sid-0"] == [f"[{i}]" for i in range(50)]
        assert outputs["sid-1"] == [f"[{1000 + i}]" for i in range(50)]
        assert meters[0].platform.get_depicted_object(meters[1].id) is not meters[1]

    def test_requests_on_one_session_are_serialized(self, registry, settings):
        state = {"active": 0, "max_active": 0}
        state_lock = threading.Lock()

        def slow_render(obj, ctx):
            with state_lock:
                state["active"] += 1
                state["max_active"] = max(state["max_active"], state["active"])
            time.sleep(0.005)
            with state_lock:
                state["active"] -= 1
            ctx.write("x")

        registry.register(Meter, FunctionDepictor(slow_render))
        manager = SessionManager(registry, settings)
        platform = manager.create_session("sid-1")
        meter = Meter(platform)

        def drive(offset):
            for i in range(10):
                platform.process_request([ControlEvent(meter, "change", {"properties": {"value": offset + i}})])

        threads = [threading.Thread(target=drive, args=(n * 100,)) for n in range(4)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert state["max_active"] == 1
        assert not platform.is_cycle_active
