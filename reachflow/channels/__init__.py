"""
Channels package - Channel adapters and dispatch.
"""

from reachflow.channels.base import ChannelAdapter, ChannelMessage, SendResult
from reachflow.channels.dispatch import FALLBACK_ORDER, ChannelDispatcher
from reachflow.channels.adapters import (
    CalendarAdapter,
    EmailAdapter,
    LinkedInAdapter,
    SMSAdapter,
    build_default_adapters,
)

__all__ = [
    "ChannelAdapter",
    "ChannelMessage",
    "SendResult",
    "FALLBACK_ORDER",
    "ChannelDispatcher",
    "CalendarAdapter",
    "EmailAdapter",
    "LinkedInAdapter",
    "SMSAdapter",
    "build_default_adapters",
]
