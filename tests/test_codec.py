"""
Tests for decoding client payloads and encoding responses.
"""

import logging

import pytest

from elements.base import DepictedObject
from host.platform import PlatformResponse
from messaging.codec import decode_event, decode_events, encode_message, encode_response
from messaging.events import (
    CommandMessage,
    ControlEvent,
    InitializeEvent,
    PingEvent,
    PollCommand,
    PollEvent,
    ResourceCollectCommand,
)
from utils.errors import MalformedEvent


class TestDecodeEvent:
    """Test suite for decode_event."""

    def test_control_event_with_source(self, platform):
        obj = DepictedObject(platform)
        payload = {"type": "control", "source": obj.id, "kind": "change", "parameters": {"properties": {"a": 1}}}

        event = decode_event(payload, platform)

        assert isinstance(event, ControlEvent)
        assert event.source is obj
        assert event.kind == "change"
        assert event.get("properties") == {"a": 1}

    def test_missing_source_means_platform(self, platform):
        event = decode_event({"type": "control", "kind": "log", "parameters": {"level": "info", "text": "x"}}, platform)

        assert event.source is platform

    @pytest.mark.parametrize("event_type, event_class", [
        ("ping", PingEvent),
        ("poll", PollEvent),
        ("init", InitializeEvent),
    ])
    def test_heartbeat_types(self, platform, event_type, event_class):
        event = decode_event({"type": event_type}, platform)

        assert isinstance(event, event_class)
        assert event.source is platform

    @pytest.mark.parametrize("payload", [
        "not a mapping",
        {"type": "unknown"},
        {"type": "control"},
        {"type": "control", "kind": "key", "parameters": [1, 2]},
        {"type": "control", "kind": "key", "source": "nonsense"},
        {"type": "control", "kind": "key", "source": "idffff"},
        {"type": "control", "kind": "focus", "source": [1]},
        {"type": "control", "kind": "focus", "source": {}},
        {"type": "control", "kind": "focus", "source": 1.5},
        {"type": "poll", "source": [1]},
    ])
    def test_malformed_payloads(self, platform, payload):
        with pytest.raises(MalformedEvent):
            decode_event(payload, platform)

    def test_destroyed_source_is_malformed(self, platform):
        obj = DepictedObject(platform)
        obj.destroy()

        with pytest.raises(MalformedEvent):
            decode_event({"type": "control", "kind": "key", "source": obj.id}, platform)


class TestDecodeEvents:
    """Test suite for decode_events."""

    def test_boolean_source_is_not_an_object_id(self, platform):
        first = DepictedObject(platform)
        assert first.depict_id == 1

        events, errors = decode_events([{"type": "control", "kind": "focus", "source": True}], platform)

        assert events == []
        assert len(errors) == 1

    def test_unhashable_source_only_drops_its_payload(self, platform):
        payloads = [{"type": "poll"}, {"type": "control", "kind": "focus", "source": [1]}]

        events, errors = decode_events(payloads, platform)

        assert [type(event) for event in events] == [PollEvent]
        assert len(errors) == 1

    def test_drops_malformed_and_keeps_order(self, platform, caplog):
        payloads = [{"type": "poll"}, {"type": "bogus"}, {"type": "ping"}]

        with caplog.at_level(logging.WARNING):
            events, errors = decode_events(payloads, platform)

        assert [type(event) for event in events] == [PollEvent, PingEvent]
        assert len(errors) == 1
        assert "Dropping malformed payload" in caplog.text


class TestEncode:
    """Test suite for encoding outbound values."""

    def test_encode_platform_message(self, platform):
        message = CommandMessage(PollCommand.POLL_INTERVAL, {"interval": 500})

        assert encode_message(message, platform) == {
            "command": "poll-interval",
            "objectID": None,
            "parameters": {"interval": 500},
        }

    def test_encode_targeted_message(self, platform):
        upload = DepictedObject(platform)
        message = CommandMessage(ResourceCollectCommand.RESOURCE_COLLECT_RECEIVE,
                                 {"destinationURI": "/upload/1"}, target=upload)

        encoded = encode_message(message, platform)

        assert encoded["objectID"] == upload.id
        assert encoded["command"] == "resource-collect-receive"

    def test_encode_response(self, platform):
        response = PlatformResponse(
            output="<div></div>",
            commands=[CommandMessage(PollCommand.POLL_INTERVAL, {"interval": 500})],
            removed_ids=["id3"],
        )

        assert encode_response(response, platform) == {
            "patch": "<div></div>",
            "remove": ["id3"],
            "commands": [{"command": "poll-interval", "objectID": None, "parameters": {"interval": 500}}],
        }
