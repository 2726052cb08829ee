"""
SDK for AI Message Gateway.

Clients for the external collaborators: the text generator and push delivery.
"""

from .generator_client import GenerationError, GeneratorClient, TextGenerator
from .push import (
    ConsolePushTransport,
    DeliveryError,
    HttpPushTransport,
    PushNotification,
    PushTransport,
)

__all__ = [
    "GenerationError",
    "GeneratorClient",
    "TextGenerator",
    "ConsolePushTransport",
    "DeliveryError",
    "HttpPushTransport",
    "PushNotification",
    "PushTransport",
]
