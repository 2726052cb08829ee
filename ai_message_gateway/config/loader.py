"""
Configuration management and loading.

Handles gateway settings read from a YAML file. Every section is optional
and falls back to defaults, but whatever is present is strictly validated.
"""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

from ai_message_gateway.core.pricing import PRICING_TABLE, estimate_request_cost


@dataclass(frozen=True)
class QuotaConfig:
    """Per-subject daily generation ceiling."""
    daily_limit: int = 5

    def __post_init__(self):
        """Validate quota ceiling is positive."""
        if self.daily_limit <= 0:
            raise ValueError("quota.daily_limit must be > 0")


@dataclass(frozen=True)
class BudgetConfig:
    """Global monthly spend cap."""
    monthly_cap: float = 20.0
    cost_per_request: Optional[float] = None

    def __post_init__(self):
        """Validate budget values are positive."""
        if self.monthly_cap <= 0:
            raise ValueError("budget.monthly_cap must be > 0")
        if self.cost_per_request is not None and self.cost_per_request <= 0:
            raise ValueError("budget.cost_per_request must be > 0")


@dataclass(frozen=True)
class CacheConfig:
    """Time-to-live per use-case."""
    message_ttl_hours: float = 24.0
    quote_ttl_days: float = 7.0

    def __post_init__(self):
        """Validate TTL values are positive."""
        if self.message_ttl_hours <= 0:
            raise ValueError("cache.message_ttl_hours must be > 0")
        if self.quote_ttl_days <= 0:
            raise ValueError("cache.quote_ttl_days must be > 0")


@dataclass(frozen=True)
class GeneratorConfig:
    """Text generator connection settings."""
    model: str = "gpt-4o-mini"
    timeout_seconds: float = 8.0
    base_url: Optional[str] = None
    max_tokens: int = 300

    def __post_init__(self):
        """Validate generator settings."""
        if not self.model or not self.model.strip():
            raise ValueError("generator.model cannot be empty")
        if self.timeout_seconds <= 0:
            raise ValueError("generator.timeout_seconds must be > 0")
        if self.max_tokens <= 0:
            raise ValueError("generator.max_tokens must be > 0")


@dataclass(frozen=True)
class NotificationConfig:
    """Scheduled dispatcher settings."""
    title: str = "Daily check-in"
    fallback_message: str = "Time for your daily mood check ✨"
    max_words: int = 12
    use_utc: bool = False
    push_endpoint: Optional[str] = None

    def __post_init__(self):
        """Validate notification settings."""
        if not self.title.strip():
            raise ValueError("notifications.title cannot be empty")
        if not self.fallback_message.strip():
            raise ValueError("notifications.fallback_message cannot be empty")
        if self.max_words <= 0:
            raise ValueError("notifications.max_words must be > 0")


@dataclass(frozen=True)
class GatewayConfig:
    """Complete gateway configuration."""
    quota: QuotaConfig = field(default_factory=QuotaConfig)
    budget: BudgetConfig = field(default_factory=BudgetConfig)
    cache: CacheConfig = field(default_factory=CacheConfig)
    generator: GeneratorConfig = field(default_factory=GeneratorConfig)
    notifications: NotificationConfig = field(default_factory=NotificationConfig)
    db_path: str = "ai_message_gateway.db"
    log_level: str = "INFO"

    def __post_init__(self):
        """Require a way to price requests against the budget."""
        if (
            self.budget.cost_per_request is None
            and self.generator.model not in PRICING_TABLE.prices
        ):
            raise ValueError(
                f"generator.model '{self.generator.model}' has no known pricing; "
                f"set budget.cost_per_request or use one of: {sorted(PRICING_TABLE.prices)}"
            )

    @property
    def cost_per_request(self) -> float:
        """Configured per-request estimate, or one derived from the model's pricing."""
        if self.budget.cost_per_request is not None:
            return self.budget.cost_per_request
        return estimate_request_cost(self.generator.model)


def default_config() -> GatewayConfig:
    """Configuration with every setting at its default."""
    return GatewayConfig()


_SECTION_KEYS = {
    "quota": {"daily_limit"},
    "budget": {"monthly_cap", "cost_per_request"},
    "cache": {"message_ttl_hours", "quote_ttl_days"},
    "generator": {"model", "timeout_seconds", "base_url", "max_tokens"},
    "notifications": {"title", "fallback_message", "max_words", "use_utc", "push_endpoint"},
    "storage": {"db_path"},
    "logging": {"level"},
}


def load_gateway_config(path: str) -> GatewayConfig:
    """Load and validate gateway configuration from YAML file.

    Strict validation ensures no silent misconfigurations that could
    lead to unexpected cost overruns.

    Args:
        path: Path to YAML configuration file

    Returns:
        Validated GatewayConfig object

    Raises:
        FileNotFoundError: If config file doesn't exist
        yaml.YAMLError: If YAML is invalid
        ValueError: If configuration is invalid
    """
    config_path = Path(path)
    if not config_path.exists():
        raise FileNotFoundError(f"Gateway config file not found: {path}")

    with open(config_path, 'r', encoding='utf-8') as f:
        try:
            raw_config = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise yaml.YAMLError(f"Invalid YAML in config file {path}: {e}")

    if not raw_config:
        raise ValueError("Configuration file is empty")
    if not isinstance(raw_config, dict):
        raise ValueError("Configuration must be a mapping")

    unknown_keys = set(raw_config.keys()) - set(_SECTION_KEYS)
    if unknown_keys:
        raise ValueError(f"Unknown configuration keys: {unknown_keys}")

    sections = {name: _section(raw_config, name) for name in _SECTION_KEYS}

    quota = sections["quota"]
    budget = sections["budget"]
    cache = sections["cache"]
    generator = sections["generator"]
    notifications = sections["notifications"]

    defaults = NotificationConfig()
    return GatewayConfig(
        quota=QuotaConfig(
            daily_limit=_int(quota, "daily_limit", "quota", QuotaConfig.daily_limit)
        ),
        budget=BudgetConfig(
            monthly_cap=_number(budget, "monthly_cap", "budget", BudgetConfig.monthly_cap),
            cost_per_request=_number(budget, "cost_per_request", "budget", None),
        ),
        cache=CacheConfig(
            message_ttl_hours=_number(
                cache, "message_ttl_hours", "cache", CacheConfig.message_ttl_hours
            ),
            quote_ttl_days=_number(cache, "quote_ttl_days", "cache", CacheConfig.quote_ttl_days),
        ),
        generator=GeneratorConfig(
            model=_str(generator, "model", "generator", GeneratorConfig.model),
            timeout_seconds=_number(
                generator, "timeout_seconds", "generator", GeneratorConfig.timeout_seconds
            ),
            base_url=_str(generator, "base_url", "generator", None),
            max_tokens=_int(generator, "max_tokens", "generator", GeneratorConfig.max_tokens),
        ),
        notifications=NotificationConfig(
            title=_str(notifications, "title", "notifications", defaults.title),
            fallback_message=_str(
                notifications, "fallback_message", "notifications", defaults.fallback_message
            ),
            max_words=_int(notifications, "max_words", "notifications", defaults.max_words),
            use_utc=_bool(notifications, "use_utc", "notifications", defaults.use_utc),
            push_endpoint=_str(notifications, "push_endpoint", "notifications", None),
        ),
        db_path=_str(sections["storage"], "db_path", "storage", GatewayConfig.db_path),
        log_level=_str(sections["logging"], "level", "logging", GatewayConfig.log_level),
    )


def _section(raw_config: Dict[str, Any], name: str) -> Dict[str, Any]:
    """Extract one section, rejecting non-mappings and unknown keys."""
    data = raw_config.get(name) or {}
    if not isinstance(data, dict):
        raise ValueError(f"'{name}' must be a dictionary")
    unknown_keys = set(data.keys()) - _SECTION_KEYS[name]
    if unknown_keys:
        raise ValueError(f"Unknown keys in {name}: {unknown_keys}")
    return data


def _number(data: Dict[str, Any], key: str, path: str, default):
    if key not in data:
        return default
    value = data[key]
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ValueError(f"'{key}' in {path} must be a number")
    return float(value)


def _int(data: Dict[str, Any], key: str, path: str, default):
    if key not in data:
        return default
    value = data[key]
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValueError(f"'{key}' in {path} must be an integer")
    return value


def _str(data: Dict[str, Any], key: str, path: str, default):
    if key not in data:
        return default
    value = data[key]
    if not isinstance(value, str):
        raise ValueError(f"'{key}' in {path} must be a string")
    return value


def _bool(data: Dict[str, Any], key: str, path: str, default):
    if key not in data:
        return default
    value = data[key]
    if not isinstance(value, bool):
        raise ValueError(f"'{key}' in {path} must be true or false")
    return value
