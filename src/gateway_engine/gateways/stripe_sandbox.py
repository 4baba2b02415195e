"""Stripe sandbox gateway.

Capability tables mirror Stripe's: card and European/Asian local methods,
sixteen settlement currencies, limits in minor units with zero-decimal
currencies counted in whole units.
"""

from __future__ import annotations

from decimal import Decimal

from gateway_engine.gateways.sandbox import SandboxGateway


class StripeSandboxGateway(SandboxGateway):
    """Stub Stripe adapter.

    Native statuses follow PaymentIntents: ``succeeded`` for captured
    charges, ``requires_capture`` for authorization holds.
    """

    provider_name = "stripe"
    api_version = "2023-10-16"
    supported_methods = (
        "credit_card",
        "debit_card",
        "bancontact",
        "ideal",
        "sofort",
        "giropay",
        "eps",
        "p24",
        "alipay",
        "wechat_pay",
    )
    supported_currencies = (
        "USD", "EUR", "GBP", "BRL", "AUD", "CAD", "CHF", "DKK",
        "HKD", "JPY", "MXN", "NOK", "NZD", "PLN", "SEK", "SGD",
    )
    min_amount = 50  # $0.50
    max_amount = 9_999_999_999  # $99,999,999.99
    zero_decimal_currencies = frozenset({"JPY", "KRW", "CLP", "BIF", "DJF", "GNF"})
    fees = {
        "credit_card": (Decimal("2.9"), Decimal("0.30")),
        "debit_card": (Decimal("2.9"), Decimal("0.30")),
        "bancontact": (Decimal("1.4"), Decimal("0.25")),
        "ideal": (Decimal("0.8"), Decimal("0.25")),
        "sofort": (Decimal("1.4"), Decimal("0.25")),
        "giropay": (Decimal("1.4"), Decimal("0.25")),
        "eps": (Decimal("1.8"), Decimal("0.25")),
        "p24": (Decimal("1.8"), Decimal("0.25")),
        "alipay": (Decimal("3.4"), Decimal("0.30")),
        "wechat_pay": (Decimal("3.4"), Decimal("0.30")),
    }

    # A captured PaymentIntent and a captured hold both read "succeeded".
    status_paid = "succeeded"
    status_authorized = "requires_capture"
    status_captured = "succeeded"
    status_cancelled = "canceled"
    status_refunded = "refunded"
    status_map = {
        "requires_payment_method": "processing",
        "requires_confirmation": "processing",
        "requires_action": "processing",
        "processing": "processing",
        "requires_capture": "authorized",
        "succeeded": "captured",
        "canceled": "cancelled",
        "refunded": "refunded",
        "failed": "failed",
    }
