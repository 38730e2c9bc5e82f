"""
Channel adapter contract.

A channel adapter delivers content over one medium (email, SMS, ...).
Adapters report delivery problems through ``SendResult`` rather than by
raising, so dispatch can fall back to the next channel.
"""

from typing import Any, Dict, Optional
from dataclasses import dataclass
import abc


@dataclass
class ChannelMessage:
    """Content to deliver and where to deliver it."""
    to: str
    content: str
    subject: Optional[str] = None
    from_name: Optional[str] = None
    from_email: Optional[str] = None
    from_number: Optional[str] = None


@dataclass
class SendResult:
    """Outcome of one delivery attempt."""
    success: bool
    channel: str
    message_id: Optional[str] = None
    error: Optional[str] = None
    
    def to_dict(self) -> Dict[str, Any]:
        return {
            "success": self.success,
            "channel": self.channel,
            "message_id": self.message_id,
            "error": self.error,
        }


class ChannelAdapter(metaclass=abc.ABCMeta):
    """Base class for channel adapters."""
    
    name: str = ""
    
    @abc.abstractmethod
    async def is_available(self) -> bool:
        """True iff the provider is configured and enabled."""
        raise NotImplementedError
    
    @abc.abstractmethod
    async def send(self, message: ChannelMessage) -> SendResult:
        """Attempt delivery."""
        raise NotImplementedError
    
    def __repr__(self) -> str:
        return f"{type(self).__name__}(name='{self.name}')"
