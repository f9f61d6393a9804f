"""
Event Codec

Converts client payloads into typed inbound events, and outbound command
messages and platform responses into payloads for the client.

Inbound payload format::

    {"type": "control" | "ping" | "poll" | "init",
     "source": "<depict ID string>",      # optional; the platform when absent
     "kind": "<control kind>",            # control events only
     "parameters": {...}}                 # optional

Outbound command format::

    {"command": "poll-interval", "objectID": "<depict ID string>" | None, "parameters": {...}}
"""

import logging
from typing import Any, Dict, Iterable, List, Mapping, Tuple, TYPE_CHECKING

from utils.errors import MalformedEvent

from .events import CommandMessage, ControlEvent, InitializeEvent, PingEvent, PollEvent

if TYPE_CHECKING:
    from host.platform import Platform, PlatformResponse

logger = logging.getLogger(__name__)

CONTROL_TYPE = "control"
PING_TYPE = "ping"
POLL_TYPE = "poll"
INITIALIZE_TYPE = "init"

_EVENT_CLASSES = {
    PING_TYPE: PingEvent,
    POLL_TYPE: PollEvent,
    INITIALIZE_TYPE: InitializeEvent,
}


def _resolve_source(payload: Mapping[str, Any], platform: 'Platform') -> Any:
    source_id = payload.get("source")
    if source_id is None:
        return platform
    if isinstance(source_id, bool) or not isinstance(source_id, (str, int)):
        raise MalformedEvent(f"Event source {source_id!r} must be a depict ID string or integer.")
    try:
        source = platform.get_depicted_object(source_id)
    except ValueError as e:
        raise MalformedEvent(str(e)) from e
    if source is None:
        raise MalformedEvent(f"Event source {source_id!r} cannot be resolved to a live depicted object.")
    return source


def decode_event(payload: Any, platform: 'Platform') -> Any:
    """
    Decode one client payload into an inbound event.

    Args:
        payload: Deserialized payload mapping
        platform: Platform of the session the payload arrived on

    Returns:
        ControlEvent, PingEvent, PollEvent or InitializeEvent

    Raises:
        MalformedEvent: If the payload cannot be decoded
    """
    if not isinstance(payload, Mapping):
        raise MalformedEvent(f"Event payload must be a mapping, not {type(payload).__name__}.")

    event_type = payload.get("type")
    parameters = payload.get("parameters") or {}
    if not isinstance(parameters, Mapping):
        raise MalformedEvent(f"Event parameters must be a mapping, not {type(parameters).__name__}.")

    if event_type == CONTROL_TYPE:
        kind = payload.get("kind")
        if not isinstance(kind, str) or not kind:
            raise MalformedEvent("Control event payload requires a kind.")
        return ControlEvent(_resolve_source(payload, platform), kind, parameters)

    event_class = _EVENT_CLASSES.get(event_type)
    if event_class is None:
        raise MalformedEvent(f"Unknown event type {event_type!r}.")
    return event_class(_resolve_source(payload, platform), parameters=parameters)


def decode_events(payloads: Iterable[Any], platform: 'Platform') -> Tuple[List[Any], List[MalformedEvent]]:
    """
    Decode a batch of payloads, dropping the malformed ones.

    Returns:
        Tuple of (decoded events in order, errors for the dropped payloads)
    """
    events: List[Any] = []
    errors: List[MalformedEvent] = []
    for payload in payloads:
        try:
            events.append(decode_event(payload, platform))
        except MalformedEvent as e:
            logger.warning(f"Dropping malformed payload in session {platform.session_id}: {e}")
            errors.append(e)
    return events, errors


def encode_message(message: CommandMessage, platform: 'Platform') -> Dict[str, Any]:
    """Encode a command message for the client."""
    target = message.target
    return {
        "command": message.command.wire_name,
        "objectID": platform.get_depict_id_string(target.depict_id) if target is not None else None,
        "parameters": dict(message.parameters),
    }


def encode_response(response: 'PlatformResponse', platform: 'Platform') -> Dict[str, Any]:
    """
    Encode a platform response.

    Returns:
        {"patch": <rendered output>, "remove": [<depict ID strings>], "commands": [<commands>]}
    """
    return {
        "patch": response.output,
        "remove": list(response.removed_ids),
        "commands": [encode_message(message, platform) for message in response.commands],
    }
