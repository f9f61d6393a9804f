"""
Elements Module
Defines the depicted object hierarchy: the server-side UI tree nodes.
"""

from elements.base import DepictedObject, DepictedContainer, GENERAL_PROPERTY

__all__ = [
    'DepictedObject',
    'DepictedContainer',
    'GENERAL_PROPERTY'
]
