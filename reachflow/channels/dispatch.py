"""
Channel Dispatch.

Resolves a channel name to its adapter and sends through it, either
directly or with ordered fallback across channels. The dispatcher is
built with its adapter set; there is no process-wide registration.
"""

from typing import Dict, Iterable, Iterator, List, Optional, Sequence
import logging

from reachflow.channels.base import ChannelAdapter, ChannelMessage, SendResult


logger = logging.getLogger(__name__)

# Channels tried, in order, after the caller's preferred ones
FALLBACK_ORDER = ("email", "sms", "linkedin")


class ChannelDispatcher:
    """
    Holds the available channel adapters, keyed by name.
    
    Usage:
        dispatcher = ChannelDispatcher([EmailAdapter(...), SMSAdapter(...)])
        
        result = await dispatcher.send("email", ChannelMessage(to=..., subject=..., content=...))
        result = await dispatcher.send_with_fallback(message, ["sms"])
    """
    
    def __init__(
        self,
        adapters: Iterable[ChannelAdapter] = (),
        fallback_order: Sequence[str] = FALLBACK_ORDER,
    ):
        self._adapters: Dict[str, ChannelAdapter] = {}
        self.fallback_order = tuple(fallback_order)
        for adapter in adapters:
            self.add(adapter)
    
    def add(self, adapter: ChannelAdapter) -> None:
        """
        Add an adapter under its name.
        
        Raises:
            ValueError: If an adapter with the same name is already present
        """
        if not adapter.name:
            raise ValueError(f"Adapter {adapter!r} has no channel name")
        if adapter.name in self._adapters:
            raise ValueError(f"Channel '{adapter.name}' already has an adapter")
        self._adapters[adapter.name] = adapter
        logger.debug(f"Added channel adapter: {adapter.name}")
    
    def get(self, channel: str) -> Optional[ChannelAdapter]:
        """Get an adapter by channel name."""
        return self._adapters.get(channel)
    
    async def send(self, channel: str, message: ChannelMessage) -> SendResult:
        """
        Send through one specific channel.
        
        Returns the adapter's result unchanged when the channel exists and
        is available, otherwise a failed result explaining why.
        """
        adapter = self.get(channel)
        if adapter is None:
            return SendResult(success=False, channel=channel, error=f"Unknown channel: {channel}")
        
        if not await adapter.is_available():
            return SendResult(
                success=False,
                channel=channel,
                error=f"Channel {channel} is not configured or unavailable",
            )
        
        return await adapter.send(message)
    
    def candidate_channels(self, preferred_channels: Sequence[str]) -> List[str]:
        """Preferred channels followed by the fallback order, without repeats."""
        candidates: List[str] = []
        for channel in [*preferred_channels, *self.fallback_order]:
            if channel not in candidates:
                candidates.append(channel)
        return candidates
    
    async def send_with_fallback(
        self,
        message: ChannelMessage,
        preferred_channels: Sequence[str],
    ) -> SendResult:
        """
        Send through the first candidate channel that succeeds.
        
        Unknown and unavailable channels are skipped. If nothing succeeds
        the result carries the last error seen.
        """
        last_error: Optional[str] = None
        
        for channel in self.candidate_channels(preferred_channels):
            adapter = self.get(channel)
            if adapter is None:
                logger.warning(f"Unknown channel adapter: {channel}")
                continue
            
            if not await adapter.is_available():
                logger.info(f"Channel {channel} is not available, trying next...")
                last_error = f"{channel} not configured"
                continue
            
            logger.info(f"Attempting to send message via {channel}")
            result = await adapter.send(message)
            
            if result.success:
                logger.info(f"Successfully sent message via {channel}")
                return result
            
            logger.warning(f"Failed to send via {channel}: {result.error}")
            last_error = result.error
        
        return SendResult(
            success=False,
            channel="none",
            error=f"All channels failed. Last error: {last_error}",
        )
    
    async def available_channels(self) -> List[str]:
        """Names of the channels that are currently available."""
        return [name for name, adapter in self._adapters.items() if await adapter.is_available()]
    
    def __contains__(self, channel: str) -> bool:
        return channel in self._adapters
    
    def __len__(self) -> int:
        return len(self._adapters)
    
    def __iter__(self) -> Iterator[ChannelAdapter]:
        return iter(self._adapters.values())
