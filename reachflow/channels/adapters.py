"""
Provider-backed channel adapters.

Each adapter checks its integration setting for availability and turns
provider exceptions into failed SendResults.
"""

from typing import Optional
import logging

import httpx

from reachflow.channels.base import ChannelAdapter, ChannelMessage, SendResult
from reachflow.errors import ReachFlowError
from reachflow.integrations.sendgrid import SendGridClient
from reachflow.integrations.twilio import TwilioClient
from reachflow.storage.base import WorkflowStore


logger = logging.getLogger(__name__)


def _describe_http_error(provider: str, error: httpx.HTTPError) -> str:
    if isinstance(error, httpx.HTTPStatusError):
        body = error.response.text[:500] if error.response is not None else ""
        return f"{provider} API error: {error.response.status_code} - {body}"
    return f"{provider} HTTP error: {error}"


class EmailAdapter(ChannelAdapter):
    """Email over SendGrid."""
    
    name = "email"
    
    def __init__(self, client: SendGridClient):
        self.client = client
    
    async def is_available(self) -> bool:
        return await self.client.is_configured()
    
    async def send(self, message: ChannelMessage) -> SendResult:
        if not message.subject:
            return SendResult(success=False, channel=self.name, error="Email requires a subject")
        
        try:
            message_id = await self.client.send_email(
                to=message.to,
                subject=message.subject,
                content=message.content,
                from_name=message.from_name,
                from_email=message.from_email,
            )
        except httpx.HTTPError as e:
            logger.error(f"Email sending error: {e}")
            return SendResult(success=False, channel=self.name, error=_describe_http_error("SendGrid", e))
        except ReachFlowError as e:
            logger.error(f"Email sending error: {e}")
            return SendResult(success=False, channel=self.name, error=str(e))
        
        return SendResult(success=True, channel=self.name, message_id=message_id or None)


class SMSAdapter(ChannelAdapter):
    """SMS over Twilio."""
    
    name = "sms"
    
    def __init__(self, client: TwilioClient):
        self.client = client
    
    async def is_available(self) -> bool:
        return await self.client.is_configured()
    
    async def send(self, message: ChannelMessage) -> SendResult:
        try:
            sid = await self.client.send_sms(
                to=message.to,
                content=message.content,
                from_number=message.from_number,
            )
        except httpx.HTTPError as e:
            logger.error(f"SMS sending error: {e}")
            return SendResult(success=False, channel=self.name, error=_describe_http_error("Twilio", e))
        except ReachFlowError as e:
            logger.error(f"SMS sending error: {e}")
            return SendResult(success=False, channel=self.name, error=str(e))
        
        return SendResult(success=True, channel=self.name, message_id=sid or None)


class _SettingGatedAdapter(ChannelAdapter):
    """Adapter whose availability is just the active flag of a setting."""
    
    provider: str = ""
    
    def __init__(self, storage: WorkflowStore):
        self.storage = storage
    
    async def is_available(self) -> bool:
        setting = await self.storage.get_integration_setting(self.provider)
        return bool(setting and setting.is_active)


class LinkedInAdapter(_SettingGatedAdapter):
    name = "linkedin"
    provider = "linkedin"
    
    async def send(self, message: ChannelMessage) -> SendResult:
        logger.warning("LinkedIn adapter not fully implemented yet")
        return SendResult(
            success=False,
            channel=self.name,
            error="LinkedIn integration not yet implemented",
        )


class CalendarAdapter(_SettingGatedAdapter):
    name = "calendar"
    provider = "calendly"
    
    async def send(self, message: ChannelMessage) -> SendResult:
        logger.warning("Calendar adapter not fully implemented yet")
        return SendResult(
            success=False,
            channel=self.name,
            error="Calendar integration not yet implemented",
        )


def build_default_adapters(
    storage: WorkflowStore,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> list:
    """Create the standard adapter set backed by ``storage`` settings."""
    return [
        EmailAdapter(SendGridClient(storage, transport=transport)),
        SMSAdapter(TwilioClient(storage, transport=transport)),
        LinkedInAdapter(storage),
        CalendarAdapter(storage),
    ]
