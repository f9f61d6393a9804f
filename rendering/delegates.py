"""
Depictors

Provides the Depictor capability set and stock implementations. A depictor is a
stateless strategy bound to a depicted object type: it writes the object's
platform representation into a DepictContext and applies inbound control events
to the object's state.
"""

import logging
from abc import ABC, abstractmethod
from typing import Any, Callable, Dict, Iterable, Optional, Protocol, Tuple, TYPE_CHECKING, runtime_checkable

from messaging.events import CHANGE_KIND
from utils.errors import MalformedEvent

from .api import DepictContext

if TYPE_CHECKING:
    from elements.base import DepictedObject

logger = logging.getLogger(__name__)


@runtime_checkable
class Depictor(Protocol):
    """
    Capability set every depictor provides.

    Depictors may additionally declare:
        HANDLED_EVENT_KINDS: control-event kinds they interpret (None means all)
        REQUIRED_PARAMETERS: kind -> parameter names that must be present
    """

    def render(self, depicted_object: 'DepictedObject', context: DepictContext) -> None:
        ...

    def interpret_event(self, depicted_object: 'DepictedObject', event: Any) -> None:
        ...


def handled_event_kinds(depictor: Any) -> Optional[Tuple[str, ...]]:
    """Get the kinds a depictor interprets, or None if it accepts every kind."""
    kinds = getattr(depictor, "HANDLED_EVENT_KINDS", None)
    return tuple(kinds) if kinds is not None else None


def declared_required_parameters(depictor: Any, kind: str) -> Tuple[str, ...]:
    required = getattr(depictor, "REQUIRED_PARAMETERS", None) or {}
    return tuple(required.get(kind, ()))


class AbstractDepictor(ABC):
    """
    Convenience base for depictors.

    Routes each control event to an ``on_<kind>`` method and applies ``change``
    events to the object's properties.
    """

    HANDLED_EVENT_KINDS: Optional[Tuple[str, ...]] = (CHANGE_KIND,)
    REQUIRED_PARAMETERS: Dict[str, Tuple[str, ...]] = {}

    @abstractmethod
    def render(self, depicted_object: 'DepictedObject', context: DepictContext) -> None:
        pass

    def interpret_event(self, depicted_object: 'DepictedObject', event: Any) -> None:
        handler = getattr(self, f"on_{event.kind}", None)
        if handler is None:
            logger.debug(f"{self.__class__.__name__} has no handler for '{event.kind}' events on {depicted_object.id}")
            return
        handler(depicted_object, event)

    def on_change(self, depicted_object: 'DepictedObject', event: Any) -> None:
        properties = event.get("properties")
        if not isinstance(properties, dict):
            raise MalformedEvent(f"Change event for {depicted_object.id} must carry a properties mapping.", event)
        for name, value in properties.items():
            depicted_object.set_property(name, value)

    def render_start_tag(self, depicted_object: 'DepictedObject', context: DepictContext,
                         tag: str = "div") -> None:
        """Write an opening tag carrying the object's depict ID and type."""
        context.write(f'<{tag} id="{context.depict_id_string(depicted_object)}" '
                      f'class="{context.encode(depicted_object.__class__.__name__)}">')

    def render_end_tag(self, context: DepictContext, tag: str = "div") -> None:
        context.write(f"</{tag}>")


class FunctionDepictor:
    """
    Function-based depictor that delegates to plain callables.
    """

    def __init__(self,
                 render_func: Callable[['DepictedObject', DepictContext], None],
                 interpret_func: Optional[Callable[['DepictedObject', Any], None]] = None,
                 handled_kinds: Optional[Iterable[str]] = None):
        """
        Initialize the function depictor.

        Args:
            render_func: Called as render_func(depicted_object, context)
            interpret_func: Called as interpret_func(depicted_object, event); events are
                ignored when not provided
            handled_kinds: Control-event kinds accepted; defaults to none without an
                interpret function and to all kinds with one
        """
        self.render_func = render_func
        self.interpret_func = interpret_func
        if handled_kinds is not None:
            self.HANDLED_EVENT_KINDS = tuple(handled_kinds)
        else:
            self.HANDLED_EVENT_KINDS = None if interpret_func else ()

    def __repr__(self) -> str:
        return f"<FunctionDepictor {getattr(self.render_func, '__name__', self.render_func)}>"

    def render(self, depicted_object: 'DepictedObject', context: DepictContext) -> None:
        self.render_func(depicted_object, context)

    def interpret_event(self, depicted_object: 'DepictedObject', event: Any) -> None:
        if self.interpret_func is not None:
            self.interpret_func(depicted_object, event)


class StaticDepictor(AbstractDepictor):
    """
    Depictor that renders fixed markup inside the object's element.
    """

    HANDLED_EVENT_KINDS = ()

    def __init__(self, static_content: str = "", tag: str = "div"):
        self.static_content = static_content
        self.tag = tag

    def render(self, depicted_object: 'DepictedObject', context: DepictContext) -> None:
        self.render_start_tag(depicted_object, context, self.tag)
        context.write(self.static_content)
        self.render_end_tag(context, self.tag)


class DefaultDepictor(AbstractDepictor):
    """
    Default depictor that renders a generic representation of an object's properties.

    Usually registered for DepictedObject itself so that every type has a fallback.
    """

    def render(self, depicted_object: 'DepictedObject', context: DepictContext) -> None:
        self.render_start_tag(depicted_object, context)
        for name, value in sorted(depicted_object.get_properties().items()):
            if isinstance(value, (dict, list)):
                value = "(complex data)"
            context.write(f'<span data-property="{context.encode(name)}">{context.encode(value)}</span>')
        self.render_end_tag(context)
