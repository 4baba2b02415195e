"""Tests for the command line interface."""

import argparse
import json

import pytest

from gateway_engine.cli import GatewayCli, parse_decimal


class TestGatewayCli:
    """Commands against sandbox engines."""

    def test_no_command_prints_help(self, capsys):
        assert GatewayCli().run([]) == 1
        assert "usage" in capsys.readouterr().out.lower()

    def test_status(self, capsys):
        assert GatewayCli().run(["status"]) == 0

        status = json.loads(capsys.readouterr().out)
        assert status["total_gateways"] == 2
        assert set(status["gateways"]) == {"stripe", "pagarme"}

    def test_health_all(self, capsys):
        assert GatewayCli().run(["health"]) == 0

        out = capsys.readouterr().out
        assert "✓ stripe" in out
        assert "✓ pagarme" in out

    def test_health_unknown_gateway(self, capsys):
        assert GatewayCli().run(["health", "--gateway", "adyen"]) == 1
        assert "Gateway not configured: adyen" in capsys.readouterr().err

    def test_available_pix(self, capsys):
        assert GatewayCli().run(["available", "--method", "pix", "--currency", "brl"]) == 0

        gateways = json.loads(capsys.readouterr().out)
        assert [g["name"] for g in gateways] == ["pagarme"]

    def test_available_none(self, capsys):
        assert GatewayCli().run(["available", "--method", "pix", "--currency", "EUR"]) == 1
        assert json.loads(capsys.readouterr().out) == []

    def test_simulate(self, capsys):
        assert GatewayCli().run(["simulate", "--count", "2"]) == 0

        out = capsys.readouterr().out
        assert "Processing 2 payment(s) of 10.00 BRL" in out
        assert out.count("via pagarme") == 2

    def test_simulate_with_injected_engine(self, build, capsys):
        engine = build()
        engine.registry.get_gateway("a").fail_next(10)
        engine.registry.get_gateway("b").fail_next(10)
        cli = GatewayCli(engine_factory=lambda strategy: engine)

        result = cli.run(
            ["simulate", "--count", "1", "--method", "credit_card", "--currency", "usd"]
        )

        assert result == 1
        assert "✗" in capsys.readouterr().out

    def test_strategy_option(self, build, capsys):
        seen = []

        def factory(strategy):
            seen.append(strategy)
            return build(strategy=strategy)

        GatewayCli(engine_factory=factory).run(["--strategy", "weighted", "status"])

        assert [s.value for s in seen] == ["weighted"]


class TestParseDecimal:
    """Amount parsing."""

    def test_valid(self):
        assert str(parse_decimal("12.50")) == "12.50"

    def test_invalid(self):
        with pytest.raises(argparse.ArgumentTypeError, match="Invalid amount"):
            parse_decimal("twelve")
