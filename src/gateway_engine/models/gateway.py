"""Gateway configuration and selection types."""

from __future__ import annotations

from dataclasses import dataclass, field, fields, replace
from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Any, Mapping

from gateway_engine.exceptions import ConfigurationError


class GatewayKind(str, Enum):
    """Supported gateway providers.

    Each kind must have a constructor in gateways.registry.GATEWAY_FACTORIES.
    """

    STRIPE = "stripe"
    PAGARME = "pagarme"


VALID_ENVIRONMENTS = frozenset({"sandbox", "production"})

REQUIRED_CONFIG_FIELDS = ("credentials_ref", "kind", "environment")


@dataclass(frozen=True)
class GatewayConfig:
    """
    Per-gateway configuration.

    Attributes:
        name: Unique gateway name used for routing.
        kind: Provider kind, selects the adapter constructor.
        environment: "sandbox" or "production".
        credentials_ref: Reference to the credential secret (never the secret).
        enabled: Disabled gateways are never selected. Default True.
        priority: Lower sorts first in status listings. Default 100.
        weight: Relative share for weighted selection. Must be >= 1.
        timeout_seconds: Deadline applied to every outbound call. Default 30.
        max_retry_attempts: Attempts per operation before giving up. Default 3.
        health_check_enabled: If False, the gateway is assumed healthy.
        options: Adapter-specific settings.
    """

    name: str
    kind: GatewayKind
    environment: str
    credentials_ref: str
    enabled: bool = True
    priority: int = 100
    weight: int = 1
    timeout_seconds: float = 30.0
    max_retry_attempts: int = 3
    health_check_enabled: bool = True
    options: dict[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        """Validate configuration."""
        if not self.name:
            raise ConfigurationError("name is required")
        if not isinstance(self.kind, GatewayKind):
            raise ConfigurationError(f"Unsupported gateway kind: {self.kind!r}")
        if self.environment not in VALID_ENVIRONMENTS:
            raise ConfigurationError(
                f"environment must be one of {sorted(VALID_ENVIRONMENTS)}, got {self.environment!r}"
            )
        if not self.credentials_ref:
            raise ConfigurationError("credentials_ref is required")
        if self.weight < 1:
            raise ConfigurationError("weight must be at least 1")
        if self.timeout_seconds <= 0:
            raise ConfigurationError("timeout_seconds must be positive")
        if self.max_retry_attempts < 1:
            raise ConfigurationError("max_retry_attempts must be at least 1")

    @classmethod
    def from_mapping(cls, name: str, data: Mapping[str, Any]) -> GatewayConfig:
        """Build a config from a plain mapping, merging defaults.

        Raises ConfigurationError when a required field is missing or empty,
        or when the kind is not a supported GatewayKind.
        """
        for required in REQUIRED_CONFIG_FIELDS:
            if not data.get(required):
                raise ConfigurationError(
                    f"Missing required gateway config field: {required}",
                    gateway=name,
                )

        known = {f.name for f in fields(cls)}
        unknown = set(data) - known - {"name"}
        if unknown:
            raise ConfigurationError(
                f"Unknown gateway config fields: {sorted(unknown)}",
                gateway=name,
            )

        values = {k: v for k, v in data.items() if k in known}
        values["name"] = name
        values["kind"] = coerce_kind(values["kind"])
        return cls(**values)

    def merged(self, **changes: Any) -> GatewayConfig:
        """Return a validated copy with the given fields changed."""
        if "name" in changes and changes["name"] != self.name:
            raise ConfigurationError("Gateway name cannot be changed")
        if "kind" in changes:
            changes["kind"] = coerce_kind(changes["kind"])
        known = {f.name for f in fields(self)}
        unknown = set(changes) - known
        if unknown:
            raise ConfigurationError(f"Unknown gateway config fields: {sorted(unknown)}")
        return replace(self, **changes)

    def public_view(self) -> dict[str, Any]:
        """Configuration without credential references."""
        return {
            "name": self.name,
            "kind": self.kind.value,
            "environment": self.environment,
            "enabled": self.enabled,
            "priority": self.priority,
            "weight": self.weight,
            "timeout_seconds": self.timeout_seconds,
            "max_retry_attempts": self.max_retry_attempts,
            "health_check_enabled": self.health_check_enabled,
        }


def coerce_kind(value: Any) -> GatewayKind:
    """Convert a string or GatewayKind to GatewayKind."""
    if isinstance(value, GatewayKind):
        return value
    try:
        return GatewayKind(str(value).lower())
    except ValueError:
        raise ConfigurationError(f"Unsupported gateway kind: {value!r}") from None


@dataclass(frozen=True)
class SelectionCriteria:
    """What a gateway must support to be eligible for a payment."""

    payment_method: str | None = None
    currency: str | None = None
    amount: Decimal | None = None

    @classmethod
    def from_payment_data(cls, data: Mapping[str, Any], default_currency: str) -> SelectionCriteria:
        amount = data.get("amount")
        return cls(
            payment_method=data.get("payment_method"),
            currency=(data.get("currency") or default_currency).upper(),
            amount=Decimal(str(amount)) if amount is not None else None,
        )


@dataclass
class PerformanceMetrics:
    """Observed gateway performance, used by performance-based selection."""

    gateway: str
    success_rate: float = 0.0
    average_response_time_ms: float = 1000.0
    total_requests: int = 0
    failed_requests: int = 0
    last_updated: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def score(self) -> float:
        """Selection score: success weighs most, latency subtracts."""
        return self.success_rate * 100 - self.average_response_time_ms / 10

    def to_dict(self) -> dict[str, Any]:
        return {
            "gateway": self.gateway,
            "success_rate": self.success_rate,
            "average_response_time_ms": self.average_response_time_ms,
            "total_requests": self.total_requests,
            "failed_requests": self.failed_requests,
            "last_updated": self.last_updated.isoformat(),
        }
