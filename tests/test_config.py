"""Tests for configuration objects and environment settings."""

import pytest

from gateway_engine.config import (
    CircuitBreakerConfig,
    EngineConfig,
    HealthCheckConfig,
    LoadBalancingConfig,
    Settings,
    Strategy,
    create_sandbox_config,
    validate_production_config,
)
from tests.conftest import gateway_config


class TestConfigObjects:
    """Validation in __post_init__."""

    def test_strategy_string_is_coerced(self):
        assert LoadBalancingConfig(strategy="weighted").strategy is Strategy.WEIGHTED

    def test_unknown_strategy(self):
        with pytest.raises(ValueError, match="Unknown load balancing strategy"):
            LoadBalancingConfig(strategy="fastest")

    def test_default_currency_must_be_iso(self):
        with pytest.raises(ValueError):
            LoadBalancingConfig(default_currency="REAL")

    def test_breaker_limits(self):
        with pytest.raises(ValueError):
            CircuitBreakerConfig(failure_threshold=0)
        with pytest.raises(ValueError):
            CircuitBreakerConfig(open_timeout=0)

    def test_health_ttls(self):
        with pytest.raises(ValueError):
            HealthCheckConfig(healthy_ttl=30, unhealthy_ttl=60)

    def test_gateway_names_unique(self):
        with pytest.raises(ValueError, match="unique"):
            EngineConfig(gateways=[gateway_config("a"), gateway_config("a")])

    def test_get_gateway(self):
        config = EngineConfig(gateways=[gateway_config("a"), gateway_config("b")])

        assert config.get_gateway("b").name == "b"
        assert config.get_gateway("c") is None


class TestSettings:
    """Environment-driven settings."""

    def test_defaults(self, monkeypatch):
        for name in ("PORT", "LOG_LEVEL", "GATEWAY_ENGINE_LB_STRATEGY", "GATEWAY_ENGINE_RETRY_MAX_ATTEMPTS"):
            monkeypatch.delenv(name, raising=False)

        settings = Settings.from_env()

        assert settings.port == 8000
        assert settings.log_level == "INFO"
        assert settings.strategy == "round_robin"
        assert settings.retry_max_attempts == 3

    def test_overrides(self, monkeypatch):
        monkeypatch.setenv("GATEWAY_ENGINE_LB_STRATEGY", "performance_based")
        monkeypatch.setenv("GATEWAY_ENGINE_RETRY_MAX_ATTEMPTS", "5")
        monkeypatch.setenv("GATEWAY_ENGINE_CIRCUIT_THRESHOLD", "2")
        monkeypatch.setenv("GATEWAY_ENGINE_DATABASE_URL", "sqlite+aiosqlite:///:memory:")
        monkeypatch.setenv("LOG_LEVEL", "debug")

        settings = Settings.from_env()
        config = settings.engine_config([gateway_config("a")])

        assert settings.database_url == "sqlite+aiosqlite:///:memory:"
        assert settings.log_level == "DEBUG"
        assert config.load_balancing.strategy is Strategy.PERFORMANCE_BASED
        assert config.retry.max_attempts == 5
        assert config.circuit_breaker.failure_threshold == 2


class TestSandboxAndProductionChecks:
    """Convenience builders and production validation."""

    def test_sandbox_config(self):
        config = create_sandbox_config(Strategy.RANDOM)

        assert [g.name for g in config.gateways] == ["stripe", "pagarme"]
        assert config.load_balancing.strategy is Strategy.RANDOM

    def test_sandbox_config_is_flagged(self):
        issues = validate_production_config(create_sandbox_config())

        assert any("Sandbox gateways" in issue for issue in issues)

    def test_empty_config_is_critical(self):
        issues = validate_production_config(EngineConfig())

        assert any(issue.startswith("CRITICAL") for issue in issues)

    def test_single_gateway_failover_warning(self):
        config = EngineConfig(
            gateways=[
                gateway_config("a", environment="production"),
                gateway_config("b", environment="production", enabled=False),
            ]
        )

        issues = validate_production_config(config)

        assert issues == ["WARNING: Failover enabled but fewer than two gateways are enabled"]

    def test_production_ready(self):
        config = EngineConfig(
            gateways=[
                gateway_config("a", environment="production"),
                gateway_config("b", environment="production"),
            ]
        )

        assert validate_production_config(config) == []
