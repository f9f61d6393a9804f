"""
Rendering System

Provides the depiction machinery: per-cycle DepictContext and output sink,
the Depictor capability set with stock depictors, and the type-keyed
DepictorRegistry.
"""

from .api import (
    OutputSink,
    DepictContext
)

from .delegates import (
    Depictor,
    AbstractDepictor,
    FunctionDepictor,
    StaticDepictor,
    DefaultDepictor
)

from .registry import (
    DepictorRegistry,
    depictor
)

__all__ = [
    # API
    'OutputSink',
    'DepictContext',

    # Depictors
    'Depictor',
    'AbstractDepictor',
    'FunctionDepictor',
    'StaticDepictor',
    'DefaultDepictor',

    # Registry
    'DepictorRegistry',
    'depictor'
]
