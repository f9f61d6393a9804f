"""
Rendering API

Provides the per-cycle rendering state: the output sink that collects serialized
depictions, and the DepictContext handed to depictors during a render cycle.
"""

import logging
from typing import Any, Callable, List, Optional, TYPE_CHECKING

from utils.errors import IllegalState

if TYPE_CHECKING:
    from elements.base import DepictedObject

logger = logging.getLogger(__name__)

# Characters escaped by DepictContext.encode, in replacement order
_MARKUP_REPLACEMENTS = (
    ("&", "&amp;"),
    ("<", "&lt;"),
    (">", "&gt;"),
    ('"', "&quot;"),
)


class OutputSink:
    """
    Append-only collector of serialized output for one render cycle.

    Fragments cannot be read back; they are joined and delivered once, when the
    sink is flushed. A discarded sink never delivers anything.
    """

    def __init__(self, on_flush: Optional[Callable[[str], None]] = None):
        """
        Initialize the sink.

        Args:
            on_flush: Optional callable receiving the complete output on flush
        """
        self._fragments: List[str] = []
        self._on_flush = on_flush
        self._closed = False

    @property
    def is_closed(self) -> bool:
        return self._closed

    def write(self, text: str) -> None:
        if self._closed:
            raise IllegalState("Cannot write to a closed output sink.")
        self._fragments.append(str(text))

    def mark(self) -> int:
        """Get a checkpoint that can later be rolled back to."""
        return len(self._fragments)

    def rollback(self, mark: int) -> None:
        """Drop everything written since the given checkpoint."""
        if self._closed:
            raise IllegalState("Cannot roll back a closed output sink.")
        del self._fragments[mark:]

    def flush(self) -> str:
        """
        Deliver the collected output atomically and close the sink.

        Returns:
            The complete output written during the cycle
        """
        if self._closed:
            raise IllegalState("Output sink has already been flushed or discarded.")
        output = "".join(self._fragments)
        self._fragments.clear()
        self._closed = True
        if self._on_flush is not None:
            self._on_flush(output)
        return output

    def discard(self) -> None:
        """Close the sink without delivering any output."""
        self._fragments.clear()
        self._closed = True


class DepictContext:
    """
    Context for a single render cycle.

    Carries the platform capabilities negotiated at session start and the output
    sink. A context belongs to exactly one cycle and is unusable once the cycle ends.
    """

    def __init__(self,
                 cycle_id: int,
                 sink: OutputSink,
                 quirks_mode: bool = False,
                 id_formatter: Optional[Callable[[int], str]] = None):
        """
        Initialize a depict context.

        Args:
            cycle_id: Sequence number of the render cycle within its session
            sink: Output sink for the cycle
            quirks_mode: Whether the client requires reduced-compatibility rendering
            id_formatter: Converts numeric depict IDs to their platform string form
        """
        self.cycle_id = cycle_id
        self.sink = sink
        self._quirks_mode = quirks_mode
        self._id_formatter = id_formatter or (lambda depict_id: f"id{depict_id:x}")
        self._active = True
        self.depicted_ids: List[str] = []
        self.output: Optional[str] = None

    def __repr__(self) -> str:
        return f"<DepictContext cycle={self.cycle_id} active={self._active}>"

    @property
    def is_active(self) -> bool:
        return self._active

    def is_quirks_mode(self) -> bool:
        return self._quirks_mode

    def _check_active(self) -> None:
        if not self._active:
            raise IllegalState(f"Depict context for cycle {self.cycle_id} is no longer active.")

    def write(self, text: str) -> None:
        """Append raw text to the cycle output."""
        self._check_active()
        self.sink.write(text)

    def write_encoded(self, text: Any) -> None:
        self.write(self.encode(text))

    def encode(self, text: Any) -> str:
        """Escape markup characters in the given text."""
        encoded = str(text)
        for character, replacement in _MARKUP_REPLACEMENTS:
            encoded = encoded.replace(character, replacement)
        return encoded

    def depict_id_string(self, depicted_object: 'DepictedObject') -> str:
        return self._id_formatter(depicted_object.depict_id)

    def close(self) -> None:
        """Mark the context inactive. Called by the platform when the cycle ends."""
        self._active = False
