"""
Messaging Module
Inbound platform events, outbound command messages, and their wire codec.
"""

from .events import (
    ControlEvent,
    PingEvent,
    PollEvent,
    InitializeEvent,
    CommandMessage,
    PlatformCommand,
    PollCommand,
    AudioCommand,
    FileReferenceCommand,
    ResourceCollectCommand,
    EventStatus,
    DispatchResult
)

__all__ = [
    'ControlEvent',
    'PingEvent',
    'PollEvent',
    'InitializeEvent',
    'CommandMessage',
    'PlatformCommand',
    'PollCommand',
    'AudioCommand',
    'FileReferenceCommand',
    'ResourceCollectCommand',
    'EventStatus',
    'DispatchResult'
]
