"""Tests for gateway filtering and selection strategies."""

from collections import Counter
from decimal import Decimal

import pytest

from gateway_engine.config import Strategy
from gateway_engine.events import GatewaySelected
from gateway_engine.exceptions import GatewayNotConfiguredError, NoGatewayAvailableError
from gateway_engine.models.gateway import GatewayKind, SelectionCriteria
from tests.conftest import gateway_config


class TestFiltering:
    """get_available_gateways."""

    async def test_all_healthy_gateways_in_registry_order(self, engine):
        assert await engine.load_balancer.get_available_gateways() == ["a", "b"]

    async def test_disabled_gateway_is_skipped(self, engine):
        engine.registry.disable("a")

        assert await engine.load_balancer.get_available_gateways() == ["b"]

    async def test_unhealthy_gateway_is_skipped(self, engine):
        engine.registry.get_gateway("a").set_healthy(False)

        assert await engine.load_balancer.get_available_gateways() == ["b"]

    async def test_open_circuit_skips_health_probe(self, engine):
        for _ in range(5):
            engine.breaker.record_failure("a")

        assert await engine.load_balancer.get_available_gateways() == ["b"]
        assert "test_connection" not in engine.registry.get_gateway("a").calls

    async def test_exclusions(self, engine):
        assert await engine.load_balancer.get_available_gateways(exclude=["a"]) == ["b"]

    async def test_capabilities_filter(self, build):
        engine = build([gateway_config("us"), gateway_config("br", GatewayKind.PAGARME)])
        lb = engine.load_balancer

        assert await lb.get_available_gateways(SelectionCriteria(payment_method="pix")) == ["br"]
        assert await lb.get_available_gateways(SelectionCriteria(currency="EUR")) == ["us"]
        assert await lb.get_available_gateways(
            SelectionCriteria(payment_method="credit_card", currency="BRL")
        ) == ["us", "br"]

    async def test_amount_limits(self, build):
        """Pagar.me takes at least R$ 1,00."""
        engine = build([gateway_config("us"), gateway_config("br", GatewayKind.PAGARME)])

        small = SelectionCriteria(currency="BRL", amount=Decimal("0.75"))
        assert await engine.load_balancer.get_available_gateways(small) == ["us"]

    async def test_method_minimum_applies_to_filtering(self, build):
        """Boleto needs at least R$ 5,00 even though other methods take R$ 1,00."""
        engine = build(
            [gateway_config("p1", GatewayKind.PAGARME), gateway_config("p2", GatewayKind.PAGARME)]
        )
        lb = engine.load_balancer

        boleto = SelectionCriteria(payment_method="boleto", currency="BRL", amount=Decimal("2.00"))
        pix = SelectionCriteria(payment_method="pix", currency="BRL", amount=Decimal("2.00"))

        assert await lb.get_available_gateways(boleto) == []
        assert await lb.get_available_gateways(pix) == ["p1", "p2"]

    async def test_payment_below_method_minimum_is_never_routed(self, build):
        engine = build(
            [gateway_config("p1", GatewayKind.PAGARME), gateway_config("p2", GatewayKind.PAGARME)]
        )

        with pytest.raises(NoGatewayAvailableError):
            await engine.orchestrator.process_payment(
                {"amount": "2.00", "currency": "BRL", "payment_method": "boleto"}
            )

        assert await engine.orchestrator.list_payments() == []
        assert "process_payment" not in engine.registry.get_gateway("p1").calls

    async def test_capability_mismatch_never_probes(self, build):
        engine = build([gateway_config("us"), gateway_config("br", GatewayKind.PAGARME)])

        await engine.load_balancer.get_available_gateways(SelectionCriteria(currency="EUR"))

        assert "test_connection" not in engine.registry.get_gateway("br").calls

    async def test_is_eligible_unknown_gateway(self, engine):
        with pytest.raises(GatewayNotConfiguredError):
            await engine.load_balancer.is_eligible("missing")


class TestRoundRobin:
    """Rotation per candidate list."""

    def test_rotates_in_order(self, engine):
        picks = [engine.load_balancer.select_gateway(["a", "b", "c"]) for _ in range(6)]

        assert picks == ["a", "b", "c", "a", "b", "c"]

    def test_cursors_are_per_candidate_tuple(self, engine):
        lb = engine.load_balancer

        assert lb.select_gateway(["a", "b"]) == "a"
        assert lb.select_gateway(["a", "b", "c"]) == "a"
        assert lb.select_gateway(["a", "b"]) == "b"
        assert lb.select_gateway(["a", "b", "c"]) == "b"

    def test_emits_selection_event(self, engine, recorder):
        engine.load_balancer.select_gateway(["a", "b"])

        event = recorder.of_type(GatewaySelected)[0]
        assert event.gateway == "a"
        assert event.strategy == "round_robin"
        assert event.candidates == ("a", "b")
        assert event.preferred is False


class TestWeighted:
    """Weighted random selection."""

    def test_distribution_follows_weights(self, build):
        engine = build(
            [gateway_config("heavy", weight=3), gateway_config("light", weight=1)],
            strategy=Strategy.WEIGHTED,
            seed=42,
        )

        counts = Counter(
            engine.load_balancer.select_gateway(["heavy", "light"]) for _ in range(4000)
        )

        assert 0.70 < counts["heavy"] / 4000 < 0.80

    def test_single_candidate(self, build):
        engine = build(strategy=Strategy.WEIGHTED)

        assert engine.load_balancer.select_gateway(["b"]) == "b"


class TestPerformanceBased:
    """Highest score wins."""

    def test_prefers_better_success_rate(self, build):
        engine = build(strategy=Strategy.PERFORMANCE_BASED)
        engine.performance.record("a", success=False, latency_ms=100)
        engine.performance.record("b", success=True, latency_ms=100)

        assert engine.load_balancer.select_gateway(["a", "b"]) == "b"

    def test_prefers_lower_latency_at_equal_success(self, build):
        engine = build(strategy=Strategy.PERFORMANCE_BASED)
        engine.performance.record("a", success=True, latency_ms=900)
        engine.performance.record("b", success=True, latency_ms=100)

        assert engine.load_balancer.select_gateway(["a", "b"]) == "b"

    def test_ties_go_to_first_candidate(self, build):
        engine = build(strategy=Strategy.PERFORMANCE_BASED)

        assert engine.load_balancer.select_gateway(["b", "a"]) == "b"


class TestStrategies:
    """Strategy switching and edge cases."""

    def test_random_picks_a_candidate(self, build):
        engine = build(strategy=Strategy.RANDOM)

        picks = {engine.load_balancer.select_gateway(["a", "b"]) for _ in range(50)}

        assert picks == {"a", "b"}

    def test_override_per_call(self, engine):
        engine.performance.record("b", success=True, latency_ms=10)

        assert engine.load_balancer.select_gateway(["a", "b"], Strategy.PERFORMANCE_BASED) == "b"

    def test_set_strategy(self, engine):
        engine.load_balancer.set_strategy("weighted")
        assert engine.load_balancer.strategy is Strategy.WEIGHTED

        with pytest.raises(ValueError):
            engine.load_balancer.set_strategy("fastest")

    def test_empty_candidates(self, engine):
        with pytest.raises(NoGatewayAvailableError):
            engine.load_balancer.select_gateway([])

    async def test_recommend_with_nothing_available(self, engine):
        engine.registry.disable("a")
        engine.registry.disable("b")

        with pytest.raises(NoGatewayAvailableError):
            await engine.load_balancer.recommend()
