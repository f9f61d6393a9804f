"""
Depicted Objects
Base classes for server-side objects that can be depicted on a platform and
receive platform events.
"""

import logging
from typing import Dict, Any, Optional, List, FrozenSet, Set, TYPE_CHECKING

# Forward reference for type hint
if TYPE_CHECKING:
    from host.platform import Platform

logger = logging.getLogger(__name__)

# Pseudo-property recorded when the whole depiction is out of date
GENERAL_PROPERTY = "*"


class DepictedObject:
    """
    Base class for all objects that can be depicted on a platform.

    A depicted object:
    - Has a stable depict ID generated by its platform
    - Tracks whether its depiction is out of date (needs depiction)
    - Keeps a set of modified properties since the last depiction
    - Is registered with its platform for event lookup, but owned by its parent

    The platform only holds a weak reference; when the owning container drops the
    object (or ``destroy`` is called) it disappears from the platform lookup.
    """

    def __init__(self, platform: 'Platform', name: Optional[str] = None):
        """
        Initialize the depicted object.

        Args:
            platform: The platform (client session) this object is depicted on
            name: Optional human-readable name
        """
        self.platform = platform
        self.depict_id = platform.generate_depict_id()
        self.id = platform.get_depict_id_string(self.depict_id)
        self.name = name or self.id
        self.parent: Optional['DepictedContainer'] = None

        self._properties: Dict[str, Any] = {}
        self._modified_properties: Set[str] = {GENERAL_PROPERTY}
        self._ignored_properties: Set[str] = set()
        self._needs_depiction = True
        self._is_live = True

        platform.register_depicted_object(self)
        logger.debug(f"Created depicted object: {self.__class__.__name__} ({self.id})")

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__} {self.id}>"

    @property
    def needs_depiction(self) -> bool:
        """Whether the object's depiction is out of date."""
        return self._needs_depiction

    @property
    def is_live(self) -> bool:
        return self._is_live

    @property
    def modified_properties(self) -> FrozenSet[str]:
        return frozenset(self._modified_properties)

    # --- Properties ---

    def get_property(self, name: str, default: Any = None) -> Any:
        return self._properties.get(name, default)

    def get_properties(self) -> Dict[str, Any]:
        """Get a copy of all properties of this object."""
        return dict(self._properties)

    def set_property(self, name: str, value: Any) -> bool:
        """
        Set a property, marking the object stale if the value changed.

        Args:
            name: Property name
            value: New property value

        Returns:
            True if the value changed, False otherwise
        """
        if name in self._properties and self._properties[name] == value:
            return False
        self._properties[name] = value
        if name not in self._ignored_properties:
            self.mark_stale(name)
        return True

    def ignore_property(self, name: str) -> None:
        """Changes to the given property will no longer mark the object stale."""
        self._ignored_properties.add(name)

    # --- Depiction state ---

    def mark_stale(self, property_name: str = GENERAL_PROPERTY) -> None:
        """Record a modified property and flag the object for re-depiction."""
        self._modified_properties.add(property_name)
        self._needs_depiction = True

    def set_depicted(self, depicted: bool) -> None:
        """
        Update the depiction state.

        Marking the object depicted clears all modified properties; marking it
        not depicted records a general modification.
        """
        if depicted:
            self._modified_properties.clear()
        else:
            self._modified_properties.add(GENERAL_PROPERTY)
        self._needs_depiction = not depicted

    # --- Lifecycle ---

    def destroy(self) -> None:
        """Remove the object from its platform. Destroying twice is a no-op."""
        if not self._is_live:
            return
        self._is_live = False
        self.platform.discontinue_poll_interval(self)
        self.platform.unregister_depicted_object(self)
        logger.debug(f"Destroyed depicted object: {self.__class__.__name__} ({self.id})")


class DepictedContainer(DepictedObject):
    """A depicted object that owns child depicted objects."""

    def __init__(self, platform: 'Platform', name: Optional[str] = None):
        super().__init__(platform, name)
        self._children: List[DepictedObject] = []

    @property
    def children(self) -> List[DepictedObject]:
        return list(self._children)

    def add_child(self, child: DepictedObject) -> None:
        """
        Add a child to this container.

        Raises:
            ValueError: If the child belongs to another platform or already has a parent
        """
        if child.platform is not self.platform:
            raise ValueError(f"Cannot add {child.id}: it is depicted on a different platform.")
        if child.parent is not None:
            raise ValueError(f"Cannot add {child.id}: it already belongs to {child.parent.id}.")
        child.parent = self
        self._children.append(child)
        self.mark_stale()

    def remove_child(self, child: DepictedObject) -> None:
        """Remove and destroy a child of this container."""
        if child not in self._children:
            raise ValueError(f"{child.id} is not a child of {self.id}.")
        self._children.remove(child)
        child.parent = None
        child.destroy()
        self.mark_stale()

    def destroy(self) -> None:
        # children go first so their IDs are removed before ours
        for child in list(self._children):
            child.destroy()
        self._children.clear()
        super().destroy()
