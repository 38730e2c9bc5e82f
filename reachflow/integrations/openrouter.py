"""
AI text generation through OpenRouter.

The engine only depends on the ``AIGenerator`` protocol; OpenRouter is
the production implementation, configured by the ``openrouter``
integration setting.
"""

from typing import Optional, Protocol
import logging

import httpx

from reachflow.config import Settings, settings as default_settings
from reachflow.errors import ConfigurationError, IntegrationError
from reachflow.storage.base import WorkflowStore


logger = logging.getLogger(__name__)

PROVIDER = "openrouter"


class AIGenerator(Protocol):
    """Generates text from a system prompt and a user prompt."""
    
    async def is_available(self) -> bool:
        """True iff the generator is configured and enabled."""
    
    async def generate(
        self,
        system_prompt: str,
        user_prompt: str,
        temperature: float,
        max_tokens: int,
    ) -> str:
        """Return generated text ("" when the model produced nothing)."""


class OpenRouterGenerator:
    """Chat-completions client for OpenRouter."""
    
    def __init__(
        self,
        storage: WorkflowStore,
        settings: Optional[Settings] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.storage = storage
        self.settings = settings or default_settings
        self._transport = transport
    
    async def is_available(self) -> bool:
        setting = await self.storage.get_integration_setting(PROVIDER)
        return bool(setting and setting.is_active and setting.config.get("apiKey"))
    
    async def generate(
        self,
        system_prompt: str,
        user_prompt: str,
        temperature: float,
        max_tokens: int,
    ) -> str:
        """
        Run one chat completion.
        
        Raises:
            ConfigurationError: If OpenRouter is not set up
            IntegrationError: If the API call fails
        """
        setting = await self.storage.get_integration_setting(PROVIDER)
        if not setting or not setting.is_active or not setting.config.get("apiKey"):
            raise ConfigurationError("OpenRouter integration not configured")
        
        payload = {
            "model": setting.config.get("model") or self.settings.AI_MODEL,
            "messages": [
                {"role": "system", "content": system_prompt},
                {"role": "user", "content": user_prompt},
            ],
            "temperature": temperature,
            "max_tokens": max_tokens,
        }
        headers = {
            "Authorization": f"Bearer {setting.config['apiKey']}",
            "X-Title": self.settings.APP_NAME,
        }
        
        try:
            async with httpx.AsyncClient(
                timeout=self.settings.HTTP_TIMEOUT_SECONDS,
                transport=self._transport,
            ) as client:
                response = await client.post(
                    self.settings.OPENROUTER_API_URL,
                    json=payload,
                    headers=headers,
                )
                response.raise_for_status()
        except httpx.HTTPStatusError as e:
            raise IntegrationError(f"OpenRouter API error: {e.response.status_code}") from e
        except httpx.HTTPError as e:
            raise IntegrationError(f"OpenRouter HTTP error: {e}") from e
        
        choices = response.json().get("choices") or []
        if not choices:
            return ""
        return (choices[0].get("message") or {}).get("content") or ""
