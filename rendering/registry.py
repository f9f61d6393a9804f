"""
Depictor Registry
Maps depicted object types to the depictors that render them.
"""

import inspect
import logging
from typing import Any, Callable, Dict, List, Optional, Type

from elements.base import DepictedObject
from utils.errors import NoStrategyFound, RegistryFrozen

from .delegates import Depictor, FunctionDepictor

logger = logging.getLogger(__name__)


class DepictorRegistry:
    """
    Type-keyed registry of depictors.

    Resolution walks the ancestor chain of a depicted object type:
    1. Every registered type the object type is a subclass of is a candidate
    2. Only the most-derived candidates are kept (a candidate is dropped when
       another candidate is a strict subclass of it)
    3. Remaining ties (unrelated bases of a multiply-derived type) go to the type
       registered first

    The registry is populated at startup and frozen before sessions are served;
    once frozen it is read-only and can be shared across sessions without locking.
    """

    def __init__(self):
        self._depictors: Dict[type, Depictor] = {}
        self._registration_order: Dict[type, int] = {}
        self._resolution_cache: Dict[type, Depictor] = {}
        self._frozen = False

    def __contains__(self, object_type: type) -> bool:
        return object_type in self._depictors

    def __len__(self) -> int:
        return len(self._depictors)

    @property
    def is_frozen(self) -> bool:
        return self._frozen

    def freeze(self) -> None:
        """Make the registry read-only."""
        if not self._frozen:
            self._frozen = True
            logger.info(f"Depictor registry frozen with {len(self._depictors)} registrations.")

    def registered_types(self) -> List[type]:
        """Get the registered types in registration order."""
        return sorted(self._depictors, key=self._registration_order.__getitem__)

    def register(self, object_type: Type[DepictedObject], depictor: Depictor) -> Optional[Depictor]:
        """
        Register a depictor for a depicted object type.

        Args:
            object_type: The depicted object class handled by the depictor
            depictor: Object providing render() and interpret_event()

        Returns:
            The depictor previously registered for exactly this type, if any

        Raises:
            RegistryFrozen: If the registry has been frozen
            TypeError: If the type is not a DepictedObject class or the depictor
                does not provide the depictor capabilities
        """
        if self._frozen:
            raise RegistryFrozen(f"Cannot register a depictor for {getattr(object_type, '__name__', object_type)}: registry is frozen.")
        if not inspect.isclass(object_type) or not issubclass(object_type, DepictedObject):
            raise TypeError(f"{object_type!r} is not a DepictedObject class.")
        if not isinstance(depictor, Depictor) or inspect.isclass(depictor):
            raise TypeError(f"{depictor!r} must be a depictor instance providing render() and interpret_event().")

        previous = self._depictors.get(object_type)
        if previous is not None:
            logger.warning(f"Depictor for '{object_type.__name__}' is already registered. Overwriting {previous!r} with {depictor!r}.")
        else:
            self._registration_order[object_type] = len(self._registration_order)
        self._depictors[object_type] = depictor
        self._resolution_cache.clear()
        logger.debug(f"Registered depictor: '{object_type.__name__}' -> {depictor!r}")
        return previous

    def resolve(self, object_type: type) -> Depictor:
        """
        Find the most specific depictor for a depicted object type.

        Raises:
            NoStrategyFound: If neither the type nor any ancestor is registered
        """
        cached = self._resolution_cache.get(object_type)
        if cached is not None:
            return cached

        candidates = [registered for registered in self._depictors if issubclass(object_type, registered)]
        if not candidates:
            raise NoStrategyFound(object_type)
        most_derived = [
            candidate for candidate in candidates
            if not any(other is not candidate and issubclass(other, candidate) for other in candidates)
        ]
        chosen = min(most_derived, key=self._registration_order.__getitem__)
        if len(most_derived) > 1:
            logger.debug(f"Ambiguous depictor resolution for {object_type.__name__} among "
                         f"{[c.__name__ for c in most_derived]}; using first registered {chosen.__name__}")

        depictor = self._depictors[chosen]
        self._resolution_cache[object_type] = depictor
        return depictor

    def get_depictor(self, depicted_object: DepictedObject) -> Depictor:
        """Resolve the depictor for a depicted object's runtime type."""
        return self.resolve(type(depicted_object))


def depictor(*object_types: Type[DepictedObject], registry: DepictorRegistry) -> Callable:
    """
    Decorator registering a depictor for one or more depicted object types.

    Classes are instantiated without arguments; plain functions taking
    (depicted_object, context) are wrapped in a FunctionDepictor.

    Args:
        *object_types: Types the depictor handles
        registry: Registry to register with
    """
    if not object_types:
        raise ValueError("At least one depicted object type is required.")

    def decorator(target: Any) -> Any:
        instance = target() if inspect.isclass(target) else FunctionDepictor(target)
        for object_type in object_types:
            registry.register(object_type, instance)
        return target

    return decorator
