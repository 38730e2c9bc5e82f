"""
Twilio SMS client.

Credentials come from the ``twilio`` integration setting.
"""

from typing import Optional
import logging

import httpx

from reachflow.config import Settings, settings as default_settings
from reachflow.errors import ConfigurationError
from reachflow.storage.base import WorkflowStore


logger = logging.getLogger(__name__)

PROVIDER = "twilio"


class TwilioClient:
    """Sends SMS through the Twilio Messages API."""
    
    def __init__(
        self,
        storage: WorkflowStore,
        settings: Optional[Settings] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.storage = storage
        self.settings = settings or default_settings
        self._transport = transport
    
    async def is_configured(self) -> bool:
        setting = await self.storage.get_integration_setting(PROVIDER)
        return bool(setting and setting.is_active and setting.config.get("accountSid"))
    
    async def send_sms(self, to: str, content: str, from_number: Optional[str] = None) -> str:
        """
        Send one SMS.
        
        Returns:
            The Twilio message SID
        
        Raises:
            ConfigurationError: If Twilio is not set up
            httpx.HTTPError: If the request fails
        """
        setting = await self.storage.get_integration_setting(PROVIDER)
        if not setting or not setting.is_active:
            raise ConfigurationError("Twilio integration not configured")
        
        account_sid = setting.config.get("accountSid")
        auth_token = setting.config.get("authToken")
        if not account_sid or not auth_token:
            raise ConfigurationError("Twilio credentials not found")
        
        sender = from_number or setting.config.get("fromNumber")
        if not sender:
            raise ConfigurationError("No Twilio phone number configured")
        
        url = f"{self.settings.TWILIO_API_URL}/Accounts/{account_sid}/Messages.json"
        async with httpx.AsyncClient(
            timeout=self.settings.HTTP_TIMEOUT_SECONDS,
            transport=self._transport,
        ) as client:
            response = await client.post(
                url,
                data={"To": to, "From": sender, "Body": content},
                auth=(account_sid, auth_token),
            )
            response.raise_for_status()
        
        sid = response.json().get("sid", "")
        logger.debug(f"Twilio accepted SMS to {to} (sid={sid or 'none'})")
        return sid
