"""
Depiction Errors

The error taxonomy shared by the rendering, messaging and host layers.
"""

from typing import Any, Optional


class DepictionError(Exception):
    """Base class for all errors raised by the depiction core."""
    pass


class NoStrategyFound(DepictionError):
    """No depictor is registered for a depicted object type or any of its ancestors."""

    def __init__(self, object_type: type):
        self.object_type = object_type
        super().__init__(f"No depictor registered for {object_type.__name__} or any of its ancestor types.")


class IllegalState(DepictionError):
    """An operation was attempted in a state that does not allow it."""
    pass


class CycleAlreadyActive(IllegalState):
    """A render cycle was begun while another cycle was still open."""
    pass


class RegistryFrozen(DepictionError):
    """The depictor registry is read-only after initialization."""
    pass


class MalformedEvent(DepictionError):
    """
    An inbound event could not be validated.

    Raised when a required parameter is absent or the event source cannot be
    resolved to a live depicted object.
    """

    def __init__(self, message: str, event: Any = None):
        self.event = event
        super().__init__(message)


class DispatchFailure(DepictionError):
    """A depictor's render or interpret operation raised."""

    def __init__(self, message: str, depicted_object: Any = None, cause: Optional[BaseException] = None):
        self.depicted_object = depicted_object
        self.cause = cause
        super().__init__(message)
