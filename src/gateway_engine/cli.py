"""Gateway engine command line interface.

Provides operational tools for:
- Gateway status (config, health, circuit, metrics)
- Health probes
- Available gateways for a payment shape
- A sandbox payment run to exercise routing end to end

Usage:
    python -m gateway_engine.cli status
    python -m gateway_engine.cli health --gateway stripe
    python -m gateway_engine.cli available --method pix --currency BRL --amount 10
    python -m gateway_engine.cli simulate --count 4 --method credit_card --currency USD
"""

from __future__ import annotations

import argparse
import asyncio
import json
import sys
from decimal import Decimal, InvalidOperation
from typing import Any, Callable

from gateway_engine.config import Strategy, create_sandbox_config
from gateway_engine.engine import Engine, build_engine
from gateway_engine.events import EventCategory, RecordingHandler
from gateway_engine.exceptions import GatewayEngineError
from gateway_engine.logging_config import configure_logging
from gateway_engine.models.gateway import SelectionCriteria


def parse_decimal(s: str) -> Decimal:
    """Parse a decimal amount."""
    try:
        return Decimal(s)
    except InvalidOperation:
        raise argparse.ArgumentTypeError(f"Invalid amount: {s}") from None


class GatewayCli:
    """Gateway engine Command Line Interface.

    Every command runs against a fresh sandbox engine with an in-memory
    repository.
    """

    def __init__(self, engine_factory: Callable[[Strategy], Engine] | None = None) -> None:
        self.parser = self._build_parser()
        self._engine_factory = engine_factory or (
            lambda strategy: build_engine(create_sandbox_config(strategy))
        )

    def _build_parser(self) -> argparse.ArgumentParser:
        """Build argument parser."""
        parser = argparse.ArgumentParser(
            prog="python -m gateway_engine.cli",
            description="Gateway engine operational tools",
        )
        parser.add_argument(
            "--strategy",
            choices=[s.value for s in Strategy],
            default=Strategy.ROUND_ROBIN.value,
            help="Load balancing strategy (default: round_robin)",
        )
        parser.add_argument(
            "--log-level",
            default="WARNING",
            help="Log level (default: WARNING)",
        )
        subparsers = parser.add_subparsers(dest="command", help="Commands")

        # status command
        subparsers.add_parser("status", help="Show status of every gateway")

        # health command
        health = subparsers.add_parser("health", help="Probe gateway health")
        health.add_argument(
            "--gateway",
            type=str,
            help="Probe only this gateway",
        )

        # available command
        available = subparsers.add_parser(
            "available",
            help="List gateways able to take a payment",
        )
        available.add_argument("--method", type=str, help="Payment method")
        available.add_argument("--currency", type=str, help="ISO currency code")
        available.add_argument("--amount", type=parse_decimal, help="Payment amount")

        # simulate command
        simulate = subparsers.add_parser(
            "simulate",
            help="Process sandbox payments and print the routing",
        )
        simulate.add_argument(
            "--count",
            type=int,
            default=4,
            help="Number of payments (default: 4)",
        )
        simulate.add_argument("--method", type=str, default="pix", help="Payment method")
        simulate.add_argument("--currency", type=str, default="BRL", help="ISO currency code")
        simulate.add_argument(
            "--amount",
            type=parse_decimal,
            default=Decimal("10.00"),
            help="Payment amount (default: 10.00)",
        )

        return parser

    def run(self, args: list[str] | None = None) -> int:
        """Run CLI with given arguments."""
        parsed = self.parser.parse_args(args)

        if not parsed.command:
            self.parser.print_help()
            return 1

        configure_logging(parsed.log_level)

        handlers = {
            "status": self._cmd_status,
            "health": self._cmd_health,
            "available": self._cmd_available,
            "simulate": self._cmd_simulate,
        }
        handler = handlers.get(parsed.command)
        if handler is None:
            print(f"Unknown command: {parsed.command}", file=sys.stderr)
            return 1

        engine = self._engine_factory(Strategy(parsed.strategy))
        try:
            return asyncio.run(handler(engine, parsed))
        except GatewayEngineError as e:
            print(f"ERROR: {e}", file=sys.stderr)
            return 1

    async def _cmd_status(self, engine: Engine, args: argparse.Namespace) -> int:
        """Show status of every gateway."""
        status = await engine.orchestrator.get_gateways_status()
        _print_json(status)
        return 0 if status["healthy_gateways"] else 1

    async def _cmd_health(self, engine: Engine, args: argparse.Namespace) -> int:
        """Probe gateway health."""
        if args.gateway:
            results = {args.gateway: await engine.health.check_health(args.gateway, force=True)}
        else:
            results = await engine.health.check_all()

        print("Gateway Health Check")
        print("=" * 40)
        for name, health in results.items():
            mark = "✓" if health.healthy else "✗"
            timing = f"{health.response_time_ms:.1f}ms" if health.response_time_ms is not None else "-"
            suffix = f" ({health.error})" if health.error else ""
            print(f"  {mark} {name:<16} {timing}{suffix}")
        return 0 if all(h.healthy for h in results.values()) else 1

    async def _cmd_available(self, engine: Engine, args: argparse.Namespace) -> int:
        """List gateways able to take a payment."""
        criteria = SelectionCriteria(
            payment_method=args.method,
            currency=args.currency.upper() if args.currency else None,
            amount=args.amount,
        )
        gateways = await engine.orchestrator.get_available_gateways(criteria)
        _print_json(gateways)
        return 0 if gateways else 1

    async def _cmd_simulate(self, engine: Engine, args: argparse.Namespace) -> int:
        """Process sandbox payments and print the routing."""
        recorder = RecordingHandler()
        engine.emitter.on_category(EventCategory.GATEWAY, recorder)

        print(f"Processing {args.count} payment(s) of {args.amount} {args.currency.upper()}")
        failures = 0
        for _ in range(args.count):
            try:
                result = await engine.orchestrator.process_payment(
                    {
                        "amount": args.amount,
                        "currency": args.currency,
                        "payment_method": args.method,
                    }
                )
            except GatewayEngineError as e:
                failures += 1
                print(f"  ✗ {type(e).__name__}: {e}")
                continue
            print(f"  ✓ {result.payment_id} via {result.gateway} ({result.status.value})")

        print(f"\n{len(recorder.events)} gateway event(s) recorded")
        _print_json(await engine.orchestrator.get_statistics())
        return 1 if failures else 0


def _print_json(data: Any) -> None:
    print(json.dumps(data, indent=2, default=str))


def main() -> int:
    """CLI entry point."""
    cli = GatewayCli()
    return cli.run()


if __name__ == "__main__":
    sys.exit(main())
