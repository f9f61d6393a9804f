"""
Platform

Server-side representative of one connected client session. The platform owns
the render cycle (and its DepictContext), the weak lookup of depicted objects,
the outbound command queue and the polling interval negotiated with the client,
and dispatches inbound events to the depictors of their source objects.
"""

import itertools
import logging
import re
import threading
import time
import uuid
import weakref
from collections import deque
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Any, Deque, Dict, Iterable, Iterator, List, Optional, Union

from elements.base import DepictedObject
from messaging.events import (
    CommandMessage,
    ControlEvent,
    DispatchResult,
    EventStatus,
    InitializeEvent,
    INTERVAL_PARAMETER,
    LOG_KIND,
    PING_KIND,
    PingEvent,
    PollCommand,
    PollEvent,
    WEB_COMMANDS,
    required_parameters,
)
from rendering.api import DepictContext, OutputSink
from rendering.delegates import declared_required_parameters, handled_event_kinds
from rendering.registry import DepictorRegistry
from utils.errors import (
    CycleAlreadyActive,
    DispatchFailure,
    IllegalState,
    MalformedEvent,
    NoStrategyFound,
)

from .config import PlatformSettings

logger = logging.getLogger(__name__)

# Client log levels relayed by "log" control events
CLIENT_LOG_LEVELS = {
    "trace": logging.DEBUG,
    "debug": logging.DEBUG,
    "info": logging.INFO,
    "warn": logging.WARNING,
    "warning": logging.WARNING,
    "error": logging.ERROR,
}

_HEX_DIGITS = re.compile(r"^[0-9a-fA-F]+$")


@dataclass
class RenderReport:
    """Objects depicted during a cycle, and those that failed (by depict ID string)."""
    depicted: List[str] = field(default_factory=list)
    failed: Dict[str, Exception] = field(default_factory=dict)


@dataclass
class PlatformResponse:
    """Everything produced for the client by one request."""
    output: str = ""
    commands: List[CommandMessage] = field(default_factory=list)
    removed_ids: List[str] = field(default_factory=list)
    results: List[DispatchResult] = field(default_factory=list)
    failed: Dict[str, Exception] = field(default_factory=dict)


class Platform:
    """
    Per-session depiction context.

    Inbound events and render cycles are serialized per platform: events may not be
    dispatched while a render cycle is open, and ``dispatch_event``, ``depict_cycle``
    and ``process_request`` all hold ``depict_lock``. ``begin_cycle`` and
    ``end_cycle`` do not lock; callers driving them directly serialize themselves.
    Nothing is shared between platforms except the (frozen, read-only) depictor
    registry.
    """

    # Closed set of command enumerations the web client interprets
    COMMAND_TYPES = WEB_COMMANDS

    def __init__(self,
                 registry: DepictorRegistry,
                 session_id: Optional[str] = None,
                 settings: Optional[PlatformSettings] = None,
                 user_agent: Optional[str] = None,
                 quirks_mode: Optional[bool] = None):
        """
        Initialize the platform.

        Args:
            registry: Depictor registry, usually shared by all sessions
            session_id: Identifier of the client session; generated when absent
            settings: Platform settings; defaults are loaded when absent
            user_agent: Client user agent, used to negotiate quirks mode
            quirks_mode: Explicit quirks mode, overriding user agent detection
        """
        self.registry = registry
        self.session_id = session_id or uuid.uuid4().hex
        self.settings = settings or PlatformSettings()
        self.user_agent = user_agent
        self.quirks_mode = quirks_mode if quirks_mode is not None else self._detect_quirks_mode(user_agent)
        self.depict_lock = threading.RLock()
        self.client_info: Dict[str, Any] = {}
        self.last_activity = time.monotonic()

        self._depict_ids = itertools.count(1)
        self._depict_id_lock = threading.Lock()
        self._depicted_objects: 'weakref.WeakValueDictionary[int, DepictedObject]' = weakref.WeakValueDictionary()
        self._removed_ids: List[str] = []
        self._send_message_queue: Deque[CommandMessage] = deque()

        self._poll_interval = self.settings.poll_interval
        self._requested_poll_intervals: Dict[int, int] = {}
        self._poll_lock = threading.RLock()

        self._context: Optional[DepictContext] = None
        self._cycle_count = 0
        self._destroyed = False

        logger.info(f"Platform created for session {self.session_id} (quirks mode: {self.quirks_mode})")

    def __repr__(self) -> str:
        return f"<Platform {self.session_id}>"

    def _detect_quirks_mode(self, user_agent: Optional[str]) -> bool:
        if not user_agent:
            return False
        return any(re.search(pattern, user_agent) for pattern in self.settings.quirks_user_agent_patterns)

    def _check_not_destroyed(self) -> None:
        if self._destroyed:
            raise IllegalState(f"Platform for session {self.session_id} has been destroyed.")

    @property
    def is_destroyed(self) -> bool:
        return self._destroyed

    # --- Depict IDs and object lookup ---

    def generate_depict_id(self) -> int:
        with self._depict_id_lock:
            return next(self._depict_ids)

    def get_depict_id_string(self, depict_id: int) -> str:
        """Convert a depict ID to the form used on the client, e.g. ``id1f``."""
        return f"{self.settings.depict_id_prefix}{depict_id:x}"

    def get_depict_id(self, depict_id_string: str) -> int:
        """
        Parse the client form of a depict ID.

        Raises:
            ValueError: If the string is not a depict ID string for this platform
        """
        prefix = self.settings.depict_id_prefix
        if not isinstance(depict_id_string, str) or not depict_id_string.startswith(prefix):
            raise ValueError(f"Depict ID string {depict_id_string!r} is not in the correct format for this platform.")
        digits = depict_id_string[len(prefix):]
        if not _HEX_DIGITS.match(digits):
            raise ValueError(f"Depict ID string {depict_id_string!r} is not in the correct format for this platform.")
        return int(digits, 16)

    def register_depicted_object(self, depicted_object: DepictedObject) -> None:
        self._check_not_destroyed()
        if depicted_object.platform is not self:
            raise ValueError(f"{depicted_object.id} belongs to another platform.")
        self._depicted_objects[depicted_object.depict_id] = depicted_object

    def unregister_depicted_object(self, depicted_object: DepictedObject) -> None:
        if self._depicted_objects.get(depicted_object.depict_id) is depicted_object:
            del self._depicted_objects[depicted_object.depict_id]
            self._removed_ids.append(depicted_object.id)

    def get_depicted_object(self, depict_id: Union[int, str]) -> Optional[DepictedObject]:
        """
        Look up a live depicted object.

        Args:
            depict_id: Numeric depict ID or its client string form

        Returns:
            The depicted object, or None if no such object is registered

        Raises:
            ValueError: If a string ID is not in the correct format, or the ID is
                neither a string nor an integer
        """
        if isinstance(depict_id, str):
            depict_id = self.get_depict_id(depict_id)
        elif isinstance(depict_id, bool) or not isinstance(depict_id, int):
            raise ValueError(f"Depict ID {depict_id!r} must be an integer or a depict ID string.")
        return self._depicted_objects.get(depict_id)

    def depicted_objects(self) -> List[DepictedObject]:
        """Get all live depicted objects in creation order."""
        return [obj for _, obj in sorted(self._depicted_objects.items()) if obj.is_live]

    def stale_objects(self) -> List[DepictedObject]:
        return [obj for obj in self.depicted_objects() if obj.needs_depiction]

    def drain_removed_ids(self) -> List[str]:
        """Get and forget the IDs of objects removed since the last call."""
        removed, self._removed_ids = self._removed_ids, []
        return removed

    # --- Render cycle ---

    @property
    def is_cycle_active(self) -> bool:
        return self._context is not None

    def get_depict_context(self) -> DepictContext:
        """
        Get the context of the active render cycle.

        Raises:
            IllegalState: If no render cycle is active
        """
        if self._context is None:
            raise IllegalState("No depict context is available outside of a render cycle.")
        return self._context

    def begin_cycle(self, sink: Optional[OutputSink] = None) -> DepictContext:
        """
        Open a render cycle.

        Args:
            sink: Output sink provided by the transport; a buffering sink is created when absent

        Raises:
            CycleAlreadyActive: If a cycle is already open
        """
        self._check_not_destroyed()
        if self._context is not None:
            raise CycleAlreadyActive(f"Render cycle {self._context.cycle_id} is already active for session {self.session_id}.")
        self._cycle_count += 1
        self._context = DepictContext(
            cycle_id=self._cycle_count,
            sink=sink if sink is not None else OutputSink(),
            quirks_mode=self.quirks_mode,
            id_formatter=self.get_depict_id_string
        )
        logger.debug(f"Began render cycle {self._cycle_count} for session {self.session_id}")
        return self._context

    def end_cycle(self) -> str:
        """
        Flush the cycle output and release the context.

        Returns:
            The complete output of the cycle

        Raises:
            IllegalState: If no render cycle is active
        """
        context = self.get_depict_context()
        try:
            context.output = context.sink.flush()
        finally:
            context.close()
            self._context = None
        logger.debug(f"Ended render cycle {context.cycle_id} ({len(context.depicted_ids)} objects depicted)")
        return context.output

    def _release_cycle(self) -> None:
        """Force-release the active context without surfacing any output."""
        context = self._context
        if context is None:
            return
        context.sink.discard()
        context.close()
        self._context = None
        logger.warning(f"Render cycle {context.cycle_id} for session {self.session_id} was released without output.")

    @contextmanager
    def depict_cycle(self, sink: Optional[OutputSink] = None) -> Iterator[DepictContext]:
        """
        Scope a render cycle; the context is always released.

        On normal exit the output is flushed and available as ``context.output``;
        if the body raises, the output is discarded and the error propagates.
        ``depict_lock`` is held for the whole cycle.
        """
        with self.depict_lock:
            context = self.begin_cycle(sink)
            try:
                yield context
            except BaseException:
                self._release_cycle()
                raise
            self.end_cycle()

    def _check_context(self, context: Optional[DepictContext]) -> DepictContext:
        active = self.get_depict_context()
        if context is not None and context is not active:
            raise IllegalState(f"{context!r} is not the active depict context of session {self.session_id}.")
        return active

    def depict(self, depicted_object: DepictedObject, context: Optional[DepictContext] = None) -> bool:
        """
        Depict one object with its registered depictor.

        The needs-depiction flag is cleared only on success; on failure the output
        the depictor wrote is rolled back and the object stays stale.

        Raises:
            IllegalState: If called outside the object's platform render cycle
            NoStrategyFound: If no depictor is registered for the object's type
            DispatchFailure: If the depictor raised while rendering
        """
        active = self._check_context(context)
        if depicted_object.platform is not self or not depicted_object.is_live:
            raise IllegalState(f"{depicted_object!r} is not a live object of session {self.session_id}.")

        depictor = self.registry.get_depictor(depicted_object)
        mark = active.sink.mark()
        try:
            depictor.render(depicted_object, active)
        except Exception as e:
            active.sink.rollback(mark)
            raise DispatchFailure(f"{depictor!r} failed to render {depicted_object.id}: {e}", depicted_object, e) from e

        depicted_object.set_depicted(True)
        active.depicted_ids.append(depicted_object.id)
        return True

    def render_stale(self, context: Optional[DepictContext] = None) -> RenderReport:
        """
        Depict every stale object, isolating failures from sibling objects.
        """
        active = self._check_context(context)
        report = RenderReport()
        for depicted_object in self.stale_objects():
            if not depicted_object.is_live:
                continue
            try:
                self.depict(depicted_object, active)
                report.depicted.append(depicted_object.id)
            except NoStrategyFound as e:
                logger.error(f"Skipping {depicted_object.id}: {e}")
                report.failed[depicted_object.id] = e
            except DispatchFailure as e:
                logger.error(f"Error depicting {depicted_object.id}; it will be retried next cycle: {e}", exc_info=e.cause)
                report.failed[depicted_object.id] = e
        return report

    # --- Inbound events ---

    def validate_event(self, event: Any) -> None:
        """
        Check that an event can be dispatched.

        Raises:
            MalformedEvent: If the source is not this platform or a live object of
                this platform, or a required parameter is missing
        """
        if not isinstance(event, (ControlEvent, PingEvent, PollEvent, InitializeEvent)):
            raise MalformedEvent(f"Unsupported event type {type(event).__name__}.", event)

        source = event.source
        required = list(required_parameters(event.kind))
        if source is not self:
            if not isinstance(source, DepictedObject) or source.platform is not self:
                raise MalformedEvent(f"Event source {source!r} does not belong to session {self.session_id}.", event)
            if not source.is_live or self._depicted_objects.get(source.depict_id) is not source:
                raise MalformedEvent(f"Event source {source.id} is no longer live.", event)
            if isinstance(event, ControlEvent):
                try:
                    required.extend(declared_required_parameters(self.registry.get_depictor(source), event.kind))
                except NoStrategyFound:
                    pass  # rejected at dispatch

        missing = [name for name in required if name not in event.parameters]
        if missing:
            raise MalformedEvent(f"'{event.kind}' event is missing required parameters: {', '.join(missing)}", event)

    def dispatch_event(self, event: Any) -> DispatchResult:
        """
        Route an inbound event: Received -> Validated -> Dispatched -> Applied | Rejected.

        Malformed events and depictor failures are logged and reported in the
        result; they never abort the session.

        Raises:
            IllegalState: If a render cycle is active or the platform is destroyed
        """
        with self.depict_lock:
            return self._dispatch_event(event)

    def _dispatch_event(self, event: Any) -> DispatchResult:
        self._check_not_destroyed()
        if self._context is not None:
            raise IllegalState("Events cannot be dispatched while a render cycle is active.")

        result = DispatchResult(event)
        self.last_activity = time.monotonic()
        try:
            self.validate_event(event)
        except MalformedEvent as e:
            logger.warning(f"Rejected malformed event in session {self.session_id}: {e}")
            result.status = EventStatus.REJECTED
            result.error = e
            return result
        result.status = EventStatus.VALIDATED

        if isinstance(event, (PollEvent, PingEvent)):
            # heartbeats never touch application state
            result.status = EventStatus.APPLIED
            result.messages = tuple(self.drain_messages())
        elif isinstance(event, InitializeEvent):
            self.client_info.update(event.parameters)
            self.send_message(CommandMessage(PollCommand.POLL_INTERVAL, {INTERVAL_PARAMETER: self.poll_interval}))
            result.status = EventStatus.APPLIED
        elif event.source is self:
            self._dispatch_platform_control(event, result)
        else:
            self._dispatch_object_control(event, result)
        return result

    def _dispatch_platform_control(self, event: ControlEvent, result: DispatchResult) -> None:
        if event.kind == LOG_KIND:
            level = CLIENT_LOG_LEVELS.get(str(event.get("level")).lower(), logging.INFO)
            logger.log(level, f"Client log [{self.session_id}]: {event.get('text')}")
            result.status = EventStatus.APPLIED
        elif event.kind == PING_KIND:
            result.status = EventStatus.APPLIED
            result.messages = tuple(self.drain_messages())
        else:
            logger.info(f"Dropping unhandled platform event '{event.kind}' in session {self.session_id}")
            result.status = EventStatus.REJECTED

    def _dispatch_object_control(self, event: ControlEvent, result: DispatchResult) -> None:
        depicted_object = event.source
        try:
            depictor = self.registry.get_depictor(depicted_object)
        except NoStrategyFound as e:
            logger.warning(f"Dropping '{event.kind}' event for {depicted_object.id}: {e}")
            result.status = EventStatus.REJECTED
            result.error = e
            return

        kinds = handled_event_kinds(depictor)
        if kinds is not None and event.kind not in kinds:
            logger.info(f"Dropping unhandled '{event.kind}' event for {depicted_object.id}; {depictor!r} does not interpret it")
            result.status = EventStatus.REJECTED
            return

        result.status = EventStatus.DISPATCHED
        try:
            depictor.interpret_event(depicted_object, event)
        except MalformedEvent as e:
            logger.warning(f"Rejected malformed '{event.kind}' event for {depicted_object.id}: {e}")
            result.status = EventStatus.REJECTED
            result.error = e
            return
        except Exception as e:
            failure = DispatchFailure(f"{depictor!r} failed to interpret '{event.kind}' for {depicted_object.id}: {e}", depicted_object, e)
            logger.error(str(failure), exc_info=True)
            depicted_object.mark_stale()
            result.status = EventStatus.REJECTED
            result.error = failure
            return

        if not depicted_object.needs_depiction:
            depicted_object.mark_stale()
        result.status = EventStatus.APPLIED

    # --- Outbound messages ---

    def send_message(self, message: CommandMessage) -> None:
        """
        Queue a command for the client.

        Raises:
            TypeError: If the message is not a command this platform's client recognizes
        """
        if not isinstance(message, CommandMessage) or not isinstance(message.command, self.COMMAND_TYPES):
            raise TypeError(f"{message!r} is not a command recognized by this platform.")
        self._send_message_queue.append(message)

    @property
    def has_pending_messages(self) -> bool:
        return bool(self._send_message_queue)

    def drain_messages(self) -> List[CommandMessage]:
        messages = []
        while self._send_message_queue:
            messages.append(self._send_message_queue.popleft())
        return messages

    # --- Polling ---

    @property
    def poll_interval(self) -> int:
        """Current client polling interval, in milliseconds."""
        return self._poll_interval

    def set_poll_interval(self, poll_interval: int) -> None:
        """
        Change the polling interval, notifying the client if it changed.

        Raises:
            ValueError: If the interval is negative
        """
        if poll_interval < 0:
            raise ValueError(f"Poll interval cannot be negative: {poll_interval}")
        with self._poll_lock:
            if poll_interval != self._poll_interval:
                self._poll_interval = poll_interval
                self.send_message(CommandMessage(PollCommand.POLL_INTERVAL, {INTERVAL_PARAMETER: poll_interval}))

    def request_poll_interval(self, depicted_object: DepictedObject, poll_interval: int) -> bool:
        """
        Request polling at a given interval on behalf of a depicted object.

        The actual interval only changes if the request is smaller than the current one.

        Returns:
            True if the polling interval changed
        """
        if poll_interval < 0:
            raise ValueError(f"Poll interval cannot be negative: {poll_interval}")
        with self._poll_lock:
            self._requested_poll_intervals[depicted_object.depict_id] = poll_interval
            if poll_interval < self._poll_interval:
                self.set_poll_interval(poll_interval)
                return True
        return False

    def discontinue_poll_interval(self, depicted_object: DepictedObject) -> bool:
        """
        Relinquish a polling interval requested by a depicted object.

        Returns:
            True if the polling interval changed
        """
        with self._poll_lock:
            old_interval = self._poll_interval
            relinquished = self._requested_poll_intervals.pop(depicted_object.depict_id, None)
            if relinquished is not None and relinquished <= old_interval:
                new_interval = min([*self._requested_poll_intervals.values(), self.settings.poll_interval])
                if new_interval != old_interval:
                    self.set_poll_interval(new_interval)
                    return True
        return False

    # --- Request lifecycle ---

    def process_request(self, events: Iterable[Any], sink: Optional[OutputSink] = None) -> PlatformResponse:
        """
        Dispatch a batch of inbound events, then render everything that became stale.

        Each event is dispatched in order and in isolation; the render cycle
        completes (or is released) before the lock is given up.

        Args:
            events: Already-decoded inbound events
            sink: Output sink for the render cycle

        Returns:
            The response to send to the client
        """
        with self.depict_lock:
            self._check_not_destroyed()
            results = [self.dispatch_event(event) for event in events]
            with self.depict_cycle(sink) as context:
                report = self.render_stale(context)

            commands = [message for result in results for message in result.messages]
            commands.extend(self.drain_messages())
            return PlatformResponse(
                output=context.output or "",
                commands=commands,
                removed_ids=self.drain_removed_ids(),
                results=results,
                failed=report.failed
            )

    def destroy(self) -> None:
        """Destroy all depicted objects and release the session's state."""
        with self.depict_lock:
            if self._destroyed:
                return
            self._release_cycle()
            for depicted_object in reversed(self.depicted_objects()):
                depicted_object.destroy()
            self._send_message_queue.clear()
            self._removed_ids.clear()
            self._requested_poll_intervals.clear()
            self._destroyed = True
        logger.info(f"Platform for session {self.session_id} destroyed")
