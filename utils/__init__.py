"""
Utils Module
Provides the shared error taxonomy for the depiction core.
"""

from utils.errors import (
    DepictionError,
    NoStrategyFound,
    IllegalState,
    CycleAlreadyActive,
    RegistryFrozen,
    MalformedEvent,
    DispatchFailure
)

__all__ = [
    'DepictionError',
    'NoStrategyFound',
    'IllegalState',
    'CycleAlreadyActive',
    'RegistryFrozen',
    'MalformedEvent',
    'DispatchFailure'
]
