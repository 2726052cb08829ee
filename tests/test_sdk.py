"""
Unit tests for SDK layer.

Tests the OpenAI generator wrapper and the push transports.
"""

import json
from unittest.mock import Mock, patch

import httpx
import openai
import pytest

from ai_message_gateway.sdk.generator_client import GenerationError, GeneratorClient
from ai_message_gateway.sdk.push import (
    ConsolePushTransport,
    DeliveryError,
    HttpPushTransport,
    PushNotification,
)


def _completion(content):
    """Build a chat completion response with one choice."""
    response = Mock()
    choice = Mock()
    choice.message.content = content
    response.choices = [choice]
    return response


class TestGeneratorClient:
    """Test GeneratorClient wrapper."""

    @patch('ai_message_gateway.sdk.generator_client.OpenAI')
    def test_init_configures_timeout(self, mock_openai_class):
        """Test the OpenAI client gets the timeout and no retries."""
        client = GeneratorClient(model="gpt-4o-mini", timeout_seconds=5.0)

        mock_openai_class.assert_called_once_with(base_url=None, timeout=5.0, max_retries=0)
        assert client.model == "gpt-4o-mini"
        assert client.timeout_seconds == 5.0

    def test_init_missing_model(self):
        """Test initialization fails with missing model."""
        with pytest.raises(ValueError, match="model is required"):
            GeneratorClient(model="")

        with pytest.raises(ValueError, match="model is required"):
            GeneratorClient(model=None)

    def test_init_invalid_timeout(self):
        """Test initialization fails with a non-positive timeout."""
        with pytest.raises(ValueError, match="timeout_seconds"):
            GeneratorClient(model="gpt-4o-mini", timeout_seconds=0)

    @patch('ai_message_gateway.sdk.generator_client.OpenAI')
    def test_complete_success(self, mock_openai_class):
        """Test successful completion returns stripped text."""
        mock_client = Mock()
        mock_client.chat.completions.create.return_value = _completion("  Hello there \n")
        mock_openai_class.return_value = mock_client

        client = GeneratorClient(model="gpt-4o-mini", max_tokens=100)
        assert client.complete("Say hello") == "Hello there"

        mock_client.chat.completions.create.assert_called_once_with(
            model="gpt-4o-mini",
            messages=[{"role": "user", "content": "Say hello"}],
            max_tokens=100,
        )

    @patch('ai_message_gateway.sdk.generator_client.OpenAI')
    def test_complete_empty_prompt(self, mock_openai_class):
        """Test empty prompt raises error without calling the API."""
        mock_client = Mock()
        mock_openai_class.return_value = mock_client
        client = GeneratorClient(model="gpt-4o-mini")

        with pytest.raises(ValueError, match="prompt is required"):
            client.complete("  ")
        mock_client.chat.completions.create.assert_not_called()

    @patch('ai_message_gateway.sdk.generator_client.OpenAI')
    def test_complete_api_error(self, mock_openai_class):
        """Test OpenAI errors are raised as GenerationError."""
        mock_client = Mock()
        mock_client.chat.completions.create.side_effect = openai.OpenAIError("timed out")
        mock_openai_class.return_value = mock_client

        client = GeneratorClient(model="gpt-4o-mini")
        with pytest.raises(GenerationError, match="timed out"):
            client.complete("Say hello")

    @patch('ai_message_gateway.sdk.generator_client.OpenAI')
    def test_complete_empty_output(self, mock_openai_class):
        """Test blank output raises GenerationError."""
        mock_client = Mock()
        mock_client.chat.completions.create.return_value = _completion("   ")
        mock_openai_class.return_value = mock_client

        client = GeneratorClient(model="gpt-4o-mini")
        with pytest.raises(GenerationError, match="empty"):
            client.complete("Say hello")

    @patch('ai_message_gateway.sdk.generator_client.OpenAI')
    def test_complete_no_choices(self, mock_openai_class):
        """Test a response without choices raises GenerationError."""
        response = Mock()
        response.choices = []
        mock_client = Mock()
        mock_client.chat.completions.create.return_value = response
        mock_openai_class.return_value = mock_client

        client = GeneratorClient(model="gpt-4o-mini")
        with pytest.raises(GenerationError, match="no choices"):
            client.complete("Say hello")


class TestHttpPushTransport:
    """Test HTTP push delivery."""

    def test_send_posts_notification(self):
        """Test the notification is posted as JSON."""
        requests = []

        def handler(request):
            requests.append(request)
            return httpx.Response(200, json={"ok": True})

        transport = HttpPushTransport(
            "https://push.example.com/send",
            client=httpx.Client(transport=httpx.MockTransport(handler)),
        )
        transport.send(
            "device-1",
            PushNotification("Daily check-in", "How are you?", {"type": "daily_reminder"}),
        )

        assert len(requests) == 1
        body = json.loads(requests[0].content)
        assert str(requests[0].url) == "https://push.example.com/send"
        assert body["token"] == "device-1"
        assert body["notification"] == {"title": "Daily check-in", "body": "How are you?"}
        assert body["data"] == {"type": "daily_reminder"}

    def test_send_error_status(self):
        """Test non-2xx responses raise DeliveryError."""
        transport = HttpPushTransport(
            "https://push.example.com/send",
            client=httpx.Client(transport=httpx.MockTransport(lambda r: httpx.Response(410))),
        )
        with pytest.raises(DeliveryError, match="Push delivery failed"):
            transport.send("device-1", PushNotification("t", "b"))

    def test_send_connection_error(self):
        """Test connection failures raise DeliveryError."""
        def handler(request):
            raise httpx.ConnectError("refused", request=request)

        transport = HttpPushTransport(
            "https://push.example.com/send",
            client=httpx.Client(transport=httpx.MockTransport(handler)),
        )
        with pytest.raises(DeliveryError):
            transport.send("device-1", PushNotification("t", "b"))

    def test_endpoint_required(self):
        """Test an endpoint is required."""
        with pytest.raises(ValueError, match="endpoint"):
            HttpPushTransport("")


class TestConsolePushTransport:
    """Test console delivery."""

    def test_send_prints(self):
        """Test the notification is rendered."""
        console = Mock()
        ConsolePushTransport(console).send("device-1", PushNotification("Title", "Body"))
        printed = console.print.call_args[0][0]
        assert "device-1" in printed and "Body" in printed
