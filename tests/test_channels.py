"""
Tests for channel dispatch, provider adapters and the AI client.
"""

import json

import httpx
import pytest

from reachflow.channels import (
    CalendarAdapter,
    ChannelDispatcher,
    ChannelMessage,
    EmailAdapter,
    LinkedInAdapter,
    SMSAdapter,
    build_default_adapters,
)
from reachflow.errors import ConfigurationError, IntegrationError
from reachflow.integrations import OpenRouterGenerator, SendGridClient, TwilioClient
from reachflow.storage import InMemoryStorage


MESSAGE = ChannelMessage(to="jane@acme.test", subject="Hello", content="Hi Jane")


# ============================================================
# Dispatcher Tests
# ============================================================

class TestChannelDispatcher:
    """Tests for ChannelDispatcher."""
    
    def test_add_and_lookup(self, adapter_factory):
        """Test adapters are keyed by channel name."""
        email = adapter_factory("email")
        dispatcher = ChannelDispatcher([email])
        
        assert dispatcher.get("email") is email
        assert dispatcher.get("sms") is None
        assert "email" in dispatcher
        assert len(dispatcher) == 1
        assert list(dispatcher) == [email]
    
    def test_duplicate_channel_rejected(self, adapter_factory):
        """Test that a channel cannot have two adapters."""
        with pytest.raises(ValueError, match="already has an adapter"):
            ChannelDispatcher([adapter_factory("email"), adapter_factory("email")])
    
    def test_candidate_channels(self):
        """Test preferred channels come first and nothing repeats."""
        dispatcher = ChannelDispatcher()
        assert dispatcher.candidate_channels(["sms", "email"]) == ["sms", "email", "linkedin"]
        assert dispatcher.candidate_channels([]) == ["email", "sms", "linkedin"]
    
    @pytest.mark.asyncio
    async def test_send_delegates_to_adapter(self, adapter_factory):
        """Test a direct send."""
        email = adapter_factory("email")
        result = await ChannelDispatcher([email]).send("email", MESSAGE)
        
        assert result.success
        assert result.channel == "email"
        assert result.message_id == "email-1"
        assert email.sent == [MESSAGE]
    
    @pytest.mark.asyncio
    async def test_send_unknown_channel(self):
        """Test sending through a channel with no adapter."""
        result = await ChannelDispatcher().send("fax", MESSAGE)
        
        assert not result.success
        assert result.error == "Unknown channel: fax"
    
    @pytest.mark.asyncio
    async def test_send_unavailable_channel(self, adapter_factory):
        """Test that an unavailable adapter is never asked to send."""
        sms = adapter_factory("sms", available=False)
        result = await ChannelDispatcher([sms]).send("sms", MESSAGE)
        
        assert not result.success
        assert result.error == "Channel sms is not configured or unavailable"
        assert sms.sent == []
    
    @pytest.mark.asyncio
    async def test_fallback_skips_unavailable(self, adapter_factory):
        """Test that fallback moves past an unavailable preferred channel."""
        sms = adapter_factory("sms", available=False)
        email = adapter_factory("email")
        dispatcher = ChannelDispatcher([sms, email])
        
        result = await dispatcher.send_with_fallback(MESSAGE, ["sms"])
        
        assert result.success
        assert result.channel == "email"
        assert sms.sent == []
    
    @pytest.mark.asyncio
    async def test_fallback_moves_past_failures(self, adapter_factory):
        """Test that a failed send falls back to the next channel."""
        email = adapter_factory("email", succeed=False)
        sms = adapter_factory("sms")
        dispatcher = ChannelDispatcher([email, sms])
        
        result = await dispatcher.send_with_fallback(MESSAGE, [])
        
        assert result.channel == "sms"
        assert len(email.sent) == 1
    
    @pytest.mark.asyncio
    async def test_fallback_exhausted(self, adapter_factory):
        """Test the result when no channel succeeds."""
        dispatcher = ChannelDispatcher([
            adapter_factory("email", succeed=False, error="bounced"),
            adapter_factory("sms", available=False),
        ])
        
        result = await dispatcher.send_with_fallback(MESSAGE, ["email"])
        
        assert not result.success
        assert result.channel == "none"
        assert result.error == "All channels failed. Last error: sms not configured"
    
    @pytest.mark.asyncio
    async def test_available_channels(self, adapter_factory):
        """Test listing the available channels."""
        dispatcher = ChannelDispatcher([adapter_factory("email"), adapter_factory("sms", available=False)])
        assert await dispatcher.available_channels() == ["email"]


# ============================================================
# Provider Adapter Tests
# ============================================================

class TestEmailAdapter:
    """Tests for the SendGrid-backed email adapter."""
    
    @pytest.mark.asyncio
    async def test_not_available_without_setting(self):
        """Test availability follows the integration setting."""
        storage = InMemoryStorage()
        adapter = EmailAdapter(SendGridClient(storage))
        assert not await adapter.is_available()
        
        await storage.upsert_integration_setting("sendgrid", {"apiKey": "SG.key"}, is_active=False)
        assert not await adapter.is_available()
        
        await storage.upsert_integration_setting("sendgrid", {"apiKey": "SG.key"})
        assert await adapter.is_available()
    
    @pytest.mark.asyncio
    async def test_subject_required(self):
        """Test that email without a subject is refused."""
        adapter = EmailAdapter(SendGridClient(InMemoryStorage()))
        result = await adapter.send(ChannelMessage(to="jane@acme.test", content="Hi"))
        
        assert not result.success
        assert result.error == "Email requires a subject"
    
    @pytest.mark.asyncio
    async def test_send_returns_message_id(self):
        """Test a successful SendGrid call."""
        requests = []
        
        def handler(request: httpx.Request) -> httpx.Response:
            requests.append(request)
            return httpx.Response(202, headers={"X-Message-Id": "sg-123"})
        
        storage = InMemoryStorage()
        await storage.upsert_integration_setting(
            "sendgrid", {"apiKey": "SG.key", "fromEmail": "sales@acme.test", "fromName": "Acme"}
        )
        adapter = EmailAdapter(SendGridClient(storage, transport=httpx.MockTransport(handler)))
        
        result = await adapter.send(MESSAGE)
        
        assert result.success
        assert result.message_id == "sg-123"
        assert requests[0].headers["Authorization"] == "Bearer SG.key"
        payload = json.loads(requests[0].content)
        assert payload["personalizations"][0]["to"] == [{"email": "jane@acme.test"}]
        assert payload["personalizations"][0]["subject"] == "Hello"
        assert payload["from"] == {"email": "sales@acme.test", "name": "Acme"}
        assert payload["tracking_settings"]["open_tracking"] == {"enable": True}
    
    @pytest.mark.asyncio
    async def test_provider_error_becomes_failed_result(self):
        """Test that an HTTP error is reported, not raised."""
        transport = httpx.MockTransport(lambda request: httpx.Response(401, text="unauthorized"))
        storage = InMemoryStorage()
        await storage.upsert_integration_setting("sendgrid", {"apiKey": "SG.bad"})
        adapter = EmailAdapter(SendGridClient(storage, transport=transport))
        
        result = await adapter.send(MESSAGE)
        
        assert not result.success
        assert result.error.startswith("SendGrid API error: 401")


class TestSMSAdapter:
    """Tests for the Twilio-backed SMS adapter."""
    
    TWILIO = {"accountSid": "AC123", "authToken": "secret", "fromNumber": "+15550000"}
    
    @pytest.mark.asyncio
    async def test_send_returns_sid(self):
        """Test a successful Twilio call."""
        requests = []
        
        def handler(request: httpx.Request) -> httpx.Response:
            requests.append(request)
            return httpx.Response(201, json={"sid": "SM42"})
        
        storage = InMemoryStorage()
        await storage.upsert_integration_setting("twilio", self.TWILIO)
        adapter = SMSAdapter(TwilioClient(storage, transport=httpx.MockTransport(handler)))
        
        assert await adapter.is_available()
        result = await adapter.send(ChannelMessage(to="+15550100", content="Ping"))
        
        assert result.success
        assert result.message_id == "SM42"
        assert requests[0].url.path.endswith("/Accounts/AC123/Messages.json")
        assert requests[0].headers["Authorization"].startswith("Basic ")
        assert b"Body=Ping" in requests[0].content
    
    @pytest.mark.asyncio
    async def test_missing_sender_is_failed_result(self):
        """Test that a configuration problem is reported, not raised."""
        storage = InMemoryStorage()
        await storage.upsert_integration_setting("twilio", {"accountSid": "AC123", "authToken": "secret"})
        adapter = SMSAdapter(TwilioClient(storage))
        
        result = await adapter.send(ChannelMessage(to="+15550100", content="Ping"))
        
        assert not result.success
        assert result.error == "No Twilio phone number configured"
    
    @pytest.mark.asyncio
    async def test_provider_error_becomes_failed_result(self):
        """Test that a Twilio error is reported, not raised."""
        transport = httpx.MockTransport(lambda request: httpx.Response(400, json={"message": "bad number"}))
        storage = InMemoryStorage()
        await storage.upsert_integration_setting("twilio", self.TWILIO)
        adapter = SMSAdapter(TwilioClient(storage, transport=transport))
        
        result = await adapter.send(ChannelMessage(to="nope", content="Ping"))
        
        assert not result.success
        assert result.error.startswith("Twilio API error: 400")


class TestPlaceholderAdapters:
    """Tests for the LinkedIn and calendar adapters."""
    
    @pytest.mark.asyncio
    async def test_availability_and_send(self):
        """Test that these channels can be enabled but never deliver."""
        storage = InMemoryStorage()
        linkedin = LinkedInAdapter(storage)
        calendar = CalendarAdapter(storage)
        assert not await linkedin.is_available()
        
        await storage.upsert_integration_setting("linkedin", {})
        await storage.upsert_integration_setting("calendly", {})
        assert await linkedin.is_available()
        assert await calendar.is_available()
        
        result = await linkedin.send(MESSAGE)
        assert not result.success
        assert result.error == "LinkedIn integration not yet implemented"
        assert (await calendar.send(MESSAGE)).error == "Calendar integration not yet implemented"
    
    def test_default_adapter_set(self):
        """Test the production adapter set."""
        dispatcher = ChannelDispatcher(build_default_adapters(InMemoryStorage()))
        assert [adapter.name for adapter in dispatcher] == ["email", "sms", "linkedin", "calendar"]


# ============================================================
# AI Client Tests
# ============================================================

class TestOpenRouterGenerator:
    """Tests for the OpenRouter generator."""
    
    @pytest.mark.asyncio
    async def test_not_configured(self):
        """Test generation without an integration setting."""
        generator = OpenRouterGenerator(InMemoryStorage())
        assert not await generator.is_available()
        with pytest.raises(ConfigurationError):
            await generator.generate("system", "user", 0.7, 500)
    
    @pytest.mark.asyncio
    async def test_generate(self):
        """Test a chat completion round trip."""
        requests = []
        
        def handler(request: httpx.Request) -> httpx.Response:
            requests.append(request)
            return httpx.Response(200, json={"choices": [{"message": {"content": "Hi Jane!"}}]})
        
        storage = InMemoryStorage()
        await storage.upsert_integration_setting("openrouter", {"apiKey": "or-key"})
        generator = OpenRouterGenerator(storage, transport=httpx.MockTransport(handler))
        
        text = await generator.generate("You are Ava.", "Write to Jane.", 0.7, 500)
        
        assert text == "Hi Jane!"
        payload = json.loads(requests[0].content)
        assert payload["messages"][0] == {"role": "system", "content": "You are Ava."}
        assert payload["max_tokens"] == 500
        assert requests[0].headers["Authorization"] == "Bearer or-key"
    
    @pytest.mark.asyncio
    async def test_no_choices(self):
        """Test that an empty completion yields empty text."""
        storage = InMemoryStorage()
        await storage.upsert_integration_setting("openrouter", {"apiKey": "or-key"})
        transport = httpx.MockTransport(lambda request: httpx.Response(200, json={"choices": []}))
        
        text = await OpenRouterGenerator(storage, transport=transport).generate("s", "u", 0.7, 500)
        
        assert text == ""
    
    @pytest.mark.asyncio
    async def test_api_error(self):
        """Test that an API error raises IntegrationError."""
        storage = InMemoryStorage()
        await storage.upsert_integration_setting("openrouter", {"apiKey": "or-key"})
        transport = httpx.MockTransport(lambda request: httpx.Response(500))
        
        with pytest.raises(IntegrationError, match="OpenRouter API error: 500"):
            await OpenRouterGenerator(storage, transport=transport).generate("s", "u", 0.7, 500)
