"""
Wiring and entrypoints.

Builds the gateway and dispatcher from configuration with explicitly passed
collaborators, and exposes the two entrypoints: the authenticated callable
and the timer tick.
"""

from dataclasses import dataclass
from datetime import timedelta
from typing import Any, Dict, Mapping, Optional

from ai_message_gateway.config.loader import GatewayConfig
from ai_message_gateway.core.admission import InvalidRequest
from ai_message_gateway.core.budget import BudgetGuard
from ai_message_gateway.core.cache import TTLCache
from ai_message_gateway.core.dispatcher import DispatchReport, NotificationDispatcher
from ai_message_gateway.core.gateway import GenerationGateway, MoodContext
from ai_message_gateway.core.periods import Clock, utc_now
from ai_message_gateway.core.quota import QuotaTracker
from ai_message_gateway.log import get_logger
from ai_message_gateway.sdk.generator_client import GeneratorClient, TextGenerator
from ai_message_gateway.sdk.push import ConsolePushTransport, HttpPushTransport, PushTransport
from ai_message_gateway.storage.repository import SQLiteStore

logger = get_logger(__name__)


@dataclass(frozen=True)
class AuthContext:
    """Identity established by the authentication layer."""
    subject_id: str


def build_store(config: GatewayConfig) -> SQLiteStore:
    """Store for the configured database, with its tables created."""
    store = SQLiteStore(config.db_path)
    store.initialize()
    return store


def build_generator(config: GatewayConfig) -> GeneratorClient:
    """Generator client from the generator section."""
    return GeneratorClient(
        model=config.generator.model,
        timeout_seconds=config.generator.timeout_seconds,
        base_url=config.generator.base_url,
        max_tokens=config.generator.max_tokens,
    )


def build_transport(config: GatewayConfig) -> PushTransport:
    """HTTP relay when an endpoint is configured, console output otherwise."""
    if config.notifications.push_endpoint:
        return HttpPushTransport(config.notifications.push_endpoint)
    return ConsolePushTransport()


def build_budget_guard(
    config: GatewayConfig, store: SQLiteStore, clock: Clock = utc_now
) -> BudgetGuard:
    """Budget guard shared by the gateway and the dispatcher."""
    return BudgetGuard(
        store,
        monthly_cap=config.budget.monthly_cap,
        cost_per_request=config.cost_per_request,
        clock=clock,
    )


def build_gateway(
    config: GatewayConfig,
    store: SQLiteStore,
    generator: TextGenerator,
    clock: Clock = utc_now,
) -> GenerationGateway:
    """Gateway with quota, cache and budget over one store."""
    return GenerationGateway(
        quota=QuotaTracker(store, config.quota.daily_limit, clock=clock),
        cache=TTLCache(store, clock=clock),
        budget=build_budget_guard(config, store, clock=clock),
        generator=generator,
        message_ttl=timedelta(hours=config.cache.message_ttl_hours),
        quote_ttl=timedelta(days=config.cache.quote_ttl_days),
        clock=clock,
    )


def build_dispatcher(
    config: GatewayConfig,
    store: SQLiteStore,
    generator: TextGenerator,
    transport: PushTransport,
    clock: Clock = utc_now,
) -> NotificationDispatcher:
    """Dispatcher sharing the budget ledger, not the per-subject quota."""
    notifications = config.notifications
    return NotificationDispatcher(
        store=store,
        budget=build_budget_guard(config, store, clock=clock),
        generator=generator,
        transport=transport,
        title=notifications.title,
        fallback_message=notifications.fallback_message,
        max_words=notifications.max_words,
        use_utc=notifications.use_utc,
        clock=clock,
    )


def handle_generate_call(
    gateway: GenerationGateway,
    auth: Optional[AuthContext],
    data: Mapping[str, Any],
) -> Dict[str, Any]:
    """Authenticated callable entrypoint.

    Rejects unauthenticated callers and malformed input before any store
    access. Every other outcome is a response dictionary.

    Raises:
        InvalidRequest: With code ``unauthenticated`` or ``invalid-argument``
    """
    if auth is None or not auth.subject_id:
        raise InvalidRequest(
            "Subject must be authenticated to generate messages", code="unauthenticated"
        )
    context = MoodContext.from_dict(data)
    return gateway.generate(auth.subject_id, context).to_response()


def handle_scheduled_tick(dispatcher: NotificationDispatcher) -> DispatchReport:
    """Timer entrypoint; the report is for observability only."""
    return dispatcher.run_tick()
