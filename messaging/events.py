"""
Platform Events and Messages

Defines the two closed sets of values exchanged with a client platform:

- Inbound events (client -> server): ControlEvent, PingEvent, PollEvent, InitializeEvent
- Outbound messages (server -> client): CommandMessage, parameterized by a
  command enumeration recognized by the client

All variants share the same envelope (source, kind, parameters) and are
immutable. Consumers discriminate by type rather than by overriding methods.
"""

import enum
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Dict, Generic, Mapping, Optional, Tuple, TypeVar, Union

from utils.errors import MalformedEvent

# --- Control event kinds ---

ACTION_KIND = "action"
CHANGE_KIND = "change"
DROP_KIND = "drop"
FOCUS_KIND = "focus"
FORM_KIND = "form"
KEY_KIND = "key"
LOG_KIND = "log"
MOUSE_KIND = "mouse"
PING_KIND = "ping"
POLL_KIND = "poll"
INITIALIZE_KIND = "init"

# Parameters that must be present for an event of each kind to be valid
REQUIRED_PARAMETERS: Dict[str, Tuple[str, ...]] = {
    ACTION_KIND: ("action_id",),
    CHANGE_KIND: ("properties",),
    DROP_KIND: ("drag_source_id",),
    KEY_KIND: ("code",),
    LOG_KIND: ("level", "text"),
    MOUSE_KIND: ("x", "y"),
}


def required_parameters(kind: str) -> Tuple[str, ...]:
    """Get the parameters every event of the given kind must carry."""
    return REQUIRED_PARAMETERS.get(kind, ())


def _freeze_parameters(parameters: Optional[Mapping[str, Any]]) -> Mapping[str, Any]:
    if parameters is None:
        return MappingProxyType({})
    if not isinstance(parameters, Mapping):
        raise MalformedEvent(f"Event parameters must be a mapping, not {type(parameters).__name__}.")
    return MappingProxyType(dict(parameters))


class EventStatus(enum.Enum):
    """Processing state of a single inbound event."""
    RECEIVED = "received"
    VALIDATED = "validated"
    DISPATCHED = "dispatched"
    APPLIED = "applied"      # Terminal: state was updated
    REJECTED = "rejected"    # Terminal: event dropped, session continues


# --- Inbound events ---

@dataclass(frozen=True)
class ControlEvent:
    """A user-originated event carrying an explicit action for its source."""
    source: Any
    kind: str
    parameters: Mapping[str, Any] = field(default_factory=dict)

    def __post_init__(self):
        if self.source is None:
            raise MalformedEvent(f"{self.__class__.__name__} requires a source.")
        if not self.kind:
            raise MalformedEvent(f"{self.__class__.__name__} requires a kind.")
        object.__setattr__(self, "parameters", _freeze_parameters(self.parameters))

    def get(self, name: str, default: Any = None) -> Any:
        return self.parameters.get(name, default)


@dataclass(frozen=True)
class PingEvent:
    """Explicit keepalive control event. Refreshes liveness without mutating state."""
    source: Any
    kind: str = PING_KIND
    parameters: Mapping[str, Any] = field(default_factory=dict)

    def __post_init__(self):
        if self.source is None:
            raise MalformedEvent("PingEvent requires a source.")
        object.__setattr__(self, "parameters", _freeze_parameters(self.parameters))


@dataclass(frozen=True)
class PollEvent:
    """Idle client heartbeat. Never mutates state."""
    source: Any
    kind: str = POLL_KIND
    parameters: Mapping[str, Any] = field(default_factory=dict)

    def __post_init__(self):
        if self.source is None:
            raise MalformedEvent("PollEvent requires a source.")
        object.__setattr__(self, "parameters", _freeze_parameters(self.parameters))


@dataclass(frozen=True)
class InitializeEvent:
    """
    Sent once by a client after loading a page.

    Parameters carry client information such as the JavaScript version,
    UTC offset, language and screen size.
    """
    source: Any
    kind: str = INITIALIZE_KIND
    parameters: Mapping[str, Any] = field(default_factory=dict)

    def __post_init__(self):
        if self.source is None:
            raise MalformedEvent("InitializeEvent requires a source.")
        object.__setattr__(self, "parameters", _freeze_parameters(self.parameters))


InboundEvent = Union[ControlEvent, PingEvent, PollEvent, InitializeEvent]


# --- Outbound commands ---

class PlatformCommand(enum.Enum):
    """Base for command enumerations understood by the client platform."""

    @property
    def wire_name(self) -> str:
        """Name of the command as interpreted by the client, e.g. ``poll-interval``."""
        return self.name.lower().replace("_", "-")


class PollCommand(PlatformCommand):
    POLL_INTERVAL = enum.auto()

INTERVAL_PARAMETER = "interval"


class AudioCommand(PlatformCommand):
    AUDIO_PAUSE = enum.auto()
    AUDIO_PLAY = enum.auto()
    AUDIO_POSITION = enum.auto()
    AUDIO_STOP = enum.auto()


class FileReferenceCommand(PlatformCommand):
    FILE_BROWSE = enum.auto()
    FILE_CANCEL = enum.auto()
    FILE_UPLOAD = enum.auto()


class ResourceCollectCommand(PlatformCommand):
    RESOURCE_COLLECT_RECEIVE = enum.auto()   # parameters: {"destinationURI": ...}
    RESOURCE_COLLECT_COMPLETE = enum.auto()
    RESOURCE_COLLECT_CANCEL = enum.auto()


# Command set recognized by the web client
WEB_COMMANDS: Tuple[type, ...] = (PollCommand, AudioCommand, FileReferenceCommand, ResourceCollectCommand)

K = TypeVar("K", bound=PlatformCommand)


@dataclass(frozen=True)
class CommandMessage(Generic[K]):
    """
    A server-originated instruction for the client to apply.

    Attributes:
        command: The command kind
        parameters: Key-unique mapping consumed by the client's interpreter
        target: Depicted object the command concerns, or None for the whole platform
    """
    command: K
    parameters: Mapping[str, Any] = field(default_factory=dict)
    target: Any = None

    def __post_init__(self):
        if not isinstance(self.command, PlatformCommand):
            raise TypeError(f"Command must be a PlatformCommand, not {type(self.command).__name__}.")
        object.__setattr__(self, "parameters", MappingProxyType(dict(self.parameters or {})))

    @property
    def kind(self) -> str:
        return self.command.wire_name


@dataclass
class DispatchResult:
    """Outcome of dispatching one inbound event."""
    event: Any
    status: EventStatus = EventStatus.RECEIVED
    error: Optional[Exception] = None
    messages: Tuple[CommandMessage, ...] = ()

    @property
    def applied(self) -> bool:
        return self.status is EventStatus.APPLIED

    @property
    def rejected(self) -> bool:
        return self.status is EventStatus.REJECTED
