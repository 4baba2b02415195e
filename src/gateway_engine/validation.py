"""Input validation for payment requests.

Validation failures raise ValidationError (or CardValidationError for card
payloads). They are never retried and never reach a gateway.
"""

from __future__ import annotations

import calendar
import re
from datetime import date
from decimal import Decimal, InvalidOperation
from typing import Any, Callable, Mapping

from gateway_engine.exceptions import CardValidationError, ValidationError

CARD_METHODS = frozenset({"credit_card", "debit_card"})

REQUIRED_PAYMENT_FIELDS = ("amount", "payment_method")

REQUIRED_CARD_FIELDS = ("number", "holder_name", "expiry_month", "expiry_year", "cvv")

BRAND_PATTERNS: dict[str, re.Pattern[str]] = {
    "visa": re.compile(r"^4[0-9]{12}(?:[0-9]{3})?$"),
    "mastercard": re.compile(
        r"^5[1-5][0-9]{14}$|^2(?:2(?:2[1-9]|[3-9][0-9])|[3-6][0-9][0-9]|7(?:[01][0-9]|20))[0-9]{12}$"
    ),
    "amex": re.compile(r"^3[47][0-9]{13}$"),
    "discover": re.compile(r"^6(?:011|5[0-9]{2})[0-9]{12}$"),
    "diners": re.compile(r"^3(?:0[0-5]|[68][0-9])[0-9]{11}$"),
    "jcb": re.compile(r"^(?:2131|1800|35\d{3})\d{11}$"),
    "elo": re.compile(
        r"^(?:401178|401179|431274|438935|451416|457393|457631|457632|504175|627780|636297|636368|636369)[0-9]{10}$"
    ),
    "hipercard": re.compile(r"^(?:606282\d{10}(?:\d{3})?|3841\d{15})$"),
}

HOLDER_NAME_PUNCTUATION = frozenset(" .-'")

# Expiry more than this many years ahead is rejected.
MAX_EXPIRY_YEARS = 20


def luhn_valid(number: str) -> bool:
    """Luhn checksum over a digit string."""
    if not number.isdigit():
        return False
    total = 0
    for index, char in enumerate(reversed(number)):
        digit = int(char)
        if index % 2 == 1:
            digit *= 2
            if digit > 9:
                digit -= 9
        total += digit
    return total % 10 == 0


def detect_brand(number: str) -> str:
    for brand, pattern in BRAND_PATTERNS.items():
        if pattern.match(number):
            return brand
    return "unknown"


def mask_card_number(number: str) -> str:
    """Keep the first and last four digits."""
    if len(number) <= 8:
        return "*" * max(len(number) - 4, 0) + number[-4:]
    return number[:4] + "*" * (len(number) - 8) + number[-4:]


class CardValidator:
    """Validates card payloads before submission.

    Args:
        today: Date provider, injectable for expiry tests.
    """

    def __init__(self, today: Callable[[], date] = date.today):
        self._today = today

    def validate(self, card: Mapping[str, Any]) -> dict[str, Any]:
        """Validate and normalize a card payload.

        Returns a copy with digits-only number and CVV, zero-padded month,
        four-digit year, upper-case holder name and the detected brand.

        Raises:
            CardValidationError: The first problem found.
        """
        for name in REQUIRED_CARD_FIELDS:
            if not str(card.get(name, "") or "").strip():
                raise CardValidationError(f"Missing card field: {name}", field=name)

        number = self.validate_number(str(card["number"]))
        brand = detect_brand(number)
        cvv = self.validate_cvv(str(card["cvv"]), brand)
        month, year = self.validate_expiry(card["expiry_month"], card["expiry_year"])
        holder_name = self.validate_holder_name(str(card["holder_name"]))

        return {
            **card,
            "number": number,
            "cvv": cvv,
            "expiry_month": f"{month:02d}",
            "expiry_year": str(year),
            "holder_name": holder_name,
            "brand": brand,
        }

    def validate_number(self, raw: str) -> str:
        number = re.sub(r"\D", "", raw)
        if not 13 <= len(number) <= 19:
            raise CardValidationError("Card number must have 13 to 19 digits", field="number")
        if not luhn_valid(number):
            raise CardValidationError("Card number failed checksum", field="number")
        return number

    def validate_cvv(self, raw: str, brand: str) -> str:
        cvv = raw.strip()
        if not cvv.isdigit():
            raise CardValidationError("CVV must contain only digits", field="cvv")
        expected = 4 if brand == "amex" else 3
        if len(cvv) != expected:
            raise CardValidationError(f"CVV must have {expected} digits", field="cvv")
        return cvv

    def validate_expiry(self, raw_month: Any, raw_year: Any) -> tuple[int, int]:
        try:
            month = int(raw_month)
            year_text = str(raw_year).strip()
            year = int(year_text)
        except (TypeError, ValueError):
            raise CardValidationError("Expiry must be numeric", field="expiry_month") from None
        if not 1 <= month <= 12:
            raise CardValidationError("Invalid expiry month", field="expiry_month")
        if len(year_text) == 2:
            year += 2000

        today = self._today()
        if year < today.year or year > today.year + MAX_EXPIRY_YEARS:
            raise CardValidationError("Invalid expiry year", field="expiry_year")
        last_day = date(year, month, calendar.monthrange(year, month)[1])
        if last_day < today:
            raise CardValidationError("Card expired", field="expiry_month")
        return month, year

    def validate_holder_name(self, raw: str) -> str:
        name = " ".join(raw.split())
        if len(name) < 2:
            raise CardValidationError("Holder name too short", field="holder_name")
        if len(name) > 100:
            raise CardValidationError("Holder name too long", field="holder_name")
        if not all(ch.isalpha() or ch in HOLDER_NAME_PUNCTUATION for ch in name):
            raise CardValidationError("Holder name has invalid characters", field="holder_name")
        return name.upper()


def validate_payment_data(
    data: Mapping[str, Any],
    card_validator: CardValidator | None = None,
) -> dict[str, Any]:
    """Check required fields and normalize a payment request.

    Card payloads are validated when the method is card-based and a card is
    present (tokenized card payments carry no card dict).
    """
    for name in REQUIRED_PAYMENT_FIELDS:
        if data.get(name) in (None, ""):
            raise ValidationError(f"Missing required field: {name}", field=name)

    try:
        amount = Decimal(str(data["amount"]))
    except InvalidOperation:
        raise ValidationError("Amount must be a number", field="amount") from None
    if not amount.is_finite() or amount <= 0:
        raise ValidationError("Amount must be greater than zero", field="amount")

    normalized = {**data, "amount": amount, "payment_method": str(data["payment_method"])}
    if data.get("currency"):
        currency = str(data["currency"]).upper()
        if len(currency) != 3 or not currency.isalpha():
            raise ValidationError(f"Invalid currency: {data['currency']!r}", field="currency")
        normalized["currency"] = currency

    if normalized["payment_method"] in CARD_METHODS and data.get("card") is not None:
        if not isinstance(data["card"], Mapping):
            raise CardValidationError("Card must be an object", field="card")
        normalized["card"] = (card_validator or CardValidator()).validate(data["card"])
    return normalized


def redact_payment_data(data: Mapping[str, Any]) -> dict[str, Any]:
    """Copy safe to persist or log: card number masked, CVV removed."""
    redacted = dict(data)
    card = redacted.get("card")
    if isinstance(card, Mapping):
        safe = {k: v for k, v in card.items() if k != "cvv"}
        if "number" in safe:
            safe["number"] = mask_card_number(re.sub(r"\D", "", str(safe["number"])))
        redacted["card"] = safe
    if isinstance(redacted.get("amount"), Decimal):
        redacted["amount"] = str(redacted["amount"])
    return redacted
