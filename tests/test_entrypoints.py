"""
Tests for wiring and the callable/timer entrypoints.
"""
import os
import shutil
import tempfile
from datetime import datetime, timezone
from unittest.mock import Mock

import pytest

from ai_message_gateway.config.loader import GatewayConfig, NotificationConfig, QuotaConfig
from ai_message_gateway.core.admission import InvalidRequest
from ai_message_gateway.entrypoints import (
    AuthContext,
    build_dispatcher,
    build_gateway,
    build_store,
    build_transport,
    handle_generate_call,
    handle_scheduled_tick,
)
from ai_message_gateway.sdk.push import ConsolePushTransport, HttpPushTransport
from ai_message_gateway.storage.models import Subject

NOW = datetime(2024, 3, 10, 8, 30, tzinfo=timezone.utc)
REQUEST = {"long_term_state": "improving", "yesterday_mood": "good"}


class TestEntrypoints:
    """Test the callable and timer entrypoints over real wiring."""

    def setup_method(self):
        """Set up test environment."""
        self.temp_dir = tempfile.mkdtemp()
        self.config = GatewayConfig(
            quota=QuotaConfig(daily_limit=1),
            notifications=NotificationConfig(use_utc=True),
            db_path=os.path.join(self.temp_dir, "test.db"),
        )
        self.store = Mock(wraps=build_store(self.config))
        self.generator = Mock()
        self.generator.complete.return_value = "Small steps count."
        self.gateway = build_gateway(self.config, self.store, self.generator, clock=lambda: NOW)

    def teardown_method(self):
        """Clean up test environment."""
        shutil.rmtree(self.temp_dir, ignore_errors=True)

    def test_generate_call_success(self):
        """Test a valid call returns a generated message."""
        response = handle_generate_call(self.gateway, AuthContext("u1"), REQUEST)

        assert response["success"] is True
        assert response["source"] == "generated"
        assert response["message"]["text"] == "Small steps count."

    def test_generate_call_soft_failure(self):
        """Test soft failures are returned with a reason code and hint."""
        handle_generate_call(self.gateway, AuthContext("u1"), REQUEST)
        other = dict(REQUEST, yesterday_mood="bad")

        response = handle_generate_call(self.gateway, AuthContext("u1"), other)

        assert response["success"] is False
        assert response["error"] == "quota_exceeded"
        assert "curated quotes" in response["message"]

    def test_unauthenticated_call(self):
        """Test missing auth is rejected before store access."""
        with pytest.raises(InvalidRequest) as excinfo:
            handle_generate_call(self.gateway, None, REQUEST)
        assert excinfo.value.code == "unauthenticated"

        with pytest.raises(InvalidRequest):
            handle_generate_call(self.gateway, AuthContext(""), REQUEST)
        assert self.store.method_calls == []

    def test_malformed_call(self):
        """Test malformed input is rejected before store access."""
        with pytest.raises(InvalidRequest) as excinfo:
            handle_generate_call(self.gateway, AuthContext("u1"), {"long_term_state": "x"})
        assert excinfo.value.code == "invalid-argument"
        assert self.store.method_calls == []

    def test_scheduled_tick(self):
        """Test the timer entrypoint dispatches to due subjects."""
        self.store.upsert_subject(Subject("u1", "token-1", 8, 30))
        transport = Mock()
        dispatcher = build_dispatcher(
            self.config, self.store, self.generator, transport, clock=lambda: NOW
        )

        report = handle_scheduled_tick(dispatcher)

        assert report.sent == 1
        transport.send.assert_called_once()
        assert dispatcher.title == self.config.notifications.title


class TestBuildTransport:
    """Test transport selection."""

    def test_console_by_default(self):
        """Test console output without an endpoint."""
        assert isinstance(build_transport(GatewayConfig()), ConsolePushTransport)

    def test_http_with_endpoint(self):
        """Test the HTTP relay when an endpoint is configured."""
        config = GatewayConfig(
            notifications=NotificationConfig(push_endpoint="https://push.example.com/send")
        )
        transport = build_transport(config)
        assert isinstance(transport, HttpPushTransport)
        transport.close()
