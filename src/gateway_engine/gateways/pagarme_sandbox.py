"""Pagar.me sandbox gateway.

Brazilian gateway: BRL only, card plus boleto and PIX, with per-method
minimums in centavos.
"""

from __future__ import annotations

from decimal import Decimal

from gateway_engine.gateways.sandbox import SandboxGateway


class PagarMeSandboxGateway(SandboxGateway):
    """Stub Pagar.me (API v5) adapter."""

    provider_name = "pagarme"
    api_version = "v5"
    supported_methods = ("credit_card", "debit_card", "boleto", "pix")
    supported_currencies = ("BRL",)
    min_amount = 100  # R$ 1,00
    max_amount = 10_000_000  # R$ 100.000,00
    method_minimums = {"boleto": 500, "pix": 100}
    fees = {
        "credit_card": (Decimal("3.99"), Decimal("0.39")),
        "debit_card": (Decimal("2.99"), Decimal("0.39")),
        "boleto": (Decimal("0"), Decimal("3.49")),
        "pix": (Decimal("0.99"), Decimal("0")),
    }

    status_paid = "paid"
    status_authorized = "authorized_pending_capture"
    status_captured = "captured"
    status_cancelled = "canceled"
    status_refunded = "refunded"
    status_map = {
        "pending": "processing",
        "processing": "processing",
        "authorized_pending_capture": "authorized",
        "paid": "paid",
        "captured": "captured",
        "failed": "failed",
        "canceled": "cancelled",
        "refunded": "refunded",
    }
