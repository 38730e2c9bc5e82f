"""
Integrations package - HTTP clients for external providers.
"""

from reachflow.integrations.openrouter import AIGenerator, OpenRouterGenerator
from reachflow.integrations.sendgrid import SendGridClient
from reachflow.integrations.twilio import TwilioClient

__all__ = [
    "AIGenerator",
    "OpenRouterGenerator",
    "SendGridClient",
    "TwilioClient",
]
