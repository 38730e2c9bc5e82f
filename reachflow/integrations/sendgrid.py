"""
SendGrid email client.

Credentials come from the ``sendgrid`` integration setting, read on every
send so that settings changes apply without a restart.
"""

from typing import Optional, Tuple
import logging

import httpx

from reachflow.config import Settings, settings as default_settings
from reachflow.errors import ConfigurationError
from reachflow.storage.base import WorkflowStore


logger = logging.getLogger(__name__)

PROVIDER = "sendgrid"


class SendGridClient:
    """Sends HTML email through the SendGrid v3 mail API."""
    
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
        return bool(setting and setting.is_active and setting.config.get("apiKey"))
    
    async def _get_config(self) -> Tuple[str, str, str]:
        setting = await self.storage.get_integration_setting(PROVIDER)
        if not setting or not setting.is_active:
            raise ConfigurationError("SendGrid integration not configured")
        
        api_key = setting.config.get("apiKey")
        if not api_key:
            raise ConfigurationError("SendGrid API key not found")
        
        return (
            api_key,
            setting.config.get("fromEmail") or self.settings.DEFAULT_FROM_EMAIL,
            setting.config.get("fromName") or self.settings.DEFAULT_FROM_NAME,
        )
    
    async def send_email(
        self,
        to: str,
        subject: str,
        content: str,
        from_name: Optional[str] = None,
        from_email: Optional[str] = None,
    ) -> str:
        """
        Send one email with open and click tracking enabled.
        
        Returns:
            The provider message ID ("" if SendGrid did not return one)
        
        Raises:
            ConfigurationError: If SendGrid is not set up
            httpx.HTTPError: If the request fails
        """
        api_key, default_email, default_name = await self._get_config()
        
        payload = {
            "personalizations": [{"to": [{"email": to}], "subject": subject}],
            "from": {
                "email": from_email or default_email,
                "name": from_name or default_name,
            },
            "content": [{"type": "text/html", "value": content}],
            "tracking_settings": {
                "click_tracking": {"enable": True, "enable_text": False},
                "open_tracking": {"enable": True},
            },
        }
        
        async with httpx.AsyncClient(
            timeout=self.settings.HTTP_TIMEOUT_SECONDS,
            transport=self._transport,
        ) as client:
            response = await client.post(
                self.settings.SENDGRID_API_URL,
                json=payload,
                headers={"Authorization": f"Bearer {api_key}"},
            )
            response.raise_for_status()
        
        message_id = response.headers.get("X-Message-Id", "")
        logger.debug(f"SendGrid accepted email to {to} (id={message_id or 'none'})")
        return message_id
