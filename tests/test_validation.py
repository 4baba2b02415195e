"""Tests for payment and card validation."""

from datetime import date
from decimal import Decimal

import pytest

from gateway_engine.exceptions import CardValidationError, ValidationError
from gateway_engine.validation import (
    CardValidator,
    detect_brand,
    luhn_valid,
    mask_card_number,
    redact_payment_data,
    validate_payment_data,
)
from tests.conftest import card_payment


def valid_card(**overrides):
    card = {
        "number": "4242 4242 4242 4242",
        "holder_name": "Ada Lovelace",
        "expiry_month": "12",
        "expiry_year": "2030",
        "cvv": "123",
    }
    card.update(overrides)
    return card


@pytest.fixture
def validator() -> CardValidator:
    return CardValidator(today=lambda: date(2026, 6, 15))


class TestCardHelpers:
    """Luhn, brand detection and masking."""

    @pytest.mark.parametrize(
        "number,expected",
        [
            ("4242424242424242", True),
            ("5555555555554444", True),
            ("378282246310005", True),
            ("4242424242424241", False),
            ("4242abcd42424242", False),
        ],
    )
    def test_luhn(self, number, expected):
        assert luhn_valid(number) is expected

    @pytest.mark.parametrize(
        "number,brand",
        [
            ("4242424242424242", "visa"),
            ("5555555555554444", "mastercard"),
            ("2223003122003222", "mastercard"),
            ("378282246310005", "amex"),
            ("6011111111111117", "discover"),
            ("3566002020360505", "jcb"),
            ("6062825624254001", "hipercard"),
            ("9999999999999995", "unknown"),
        ],
    )
    def test_detect_brand(self, number, brand):
        assert detect_brand(number) == brand

    def test_mask(self):
        assert mask_card_number("4242424242424242") == "4242********4242"
        assert mask_card_number("1234") == "1234"


class TestCardValidator:
    """Card payload validation."""

    def test_normalizes_valid_card(self, validator):
        card = validator.validate(valid_card(expiry_month="3", holder_name="  ada   lovelace "))

        assert card["number"] == "4242424242424242"
        assert card["expiry_month"] == "03"
        assert card["holder_name"] == "ADA LOVELACE"
        assert card["brand"] == "visa"

    def test_two_digit_year(self, validator):
        assert validator.validate(valid_card(expiry_year="30"))["expiry_year"] == "2030"

    @pytest.mark.parametrize("missing", ["number", "holder_name", "expiry_month", "expiry_year", "cvv"])
    def test_missing_field(self, validator, missing):
        card = valid_card()
        del card[missing]

        with pytest.raises(CardValidationError) as exc_info:
            validator.validate(card)

        assert exc_info.value.field == missing

    @pytest.mark.parametrize(
        "overrides,field",
        [
            ({"number": "4242 4242 4242 4241"}, "number"),
            ({"number": "4242"}, "number"),
            ({"cvv": "12"}, "cvv"),
            ({"cvv": "12a"}, "cvv"),
            ({"number": "378282246310005", "cvv": "123"}, "cvv"),
            ({"expiry_month": "13"}, "expiry_month"),
            ({"expiry_month": "ab"}, "expiry_month"),
            ({"expiry_year": "2020"}, "expiry_year"),
            ({"expiry_year": "2050"}, "expiry_year"),
            ({"holder_name": "A"}, "holder_name"),
            ({"holder_name": "R2D2"}, "holder_name"),
        ],
    )
    def test_rejections(self, validator, overrides, field):
        with pytest.raises(CardValidationError) as exc_info:
            validator.validate(valid_card(**overrides))

        assert exc_info.value.field == field

    def test_expired_this_year(self, validator):
        """May 2026 has ended by mid June 2026."""
        with pytest.raises(CardValidationError, match="expired"):
            validator.validate(valid_card(expiry_month="5", expiry_year="2026"))

    def test_current_month_is_valid(self, validator):
        validator.validate(valid_card(expiry_month="6", expiry_year="2026"))

    def test_amex_takes_four_digit_cvv(self, validator):
        card = validator.validate(valid_card(number="378282246310005", cvv="1234"))

        assert card["brand"] == "amex"

    def test_holder_name_punctuation(self, validator):
        card = validator.validate(valid_card(holder_name="Mary-Jane O'Neil Jr."))

        assert card["holder_name"] == "MARY-JANE O'NEIL JR."


class TestValidatePaymentData:
    """Request-level validation."""

    def test_normalizes_amount_and_currency(self):
        data = validate_payment_data({"amount": "10.50", "currency": "brl", "payment_method": "pix"})

        assert data["amount"] == Decimal("10.50")
        assert data["currency"] == "BRL"

    @pytest.mark.parametrize("missing", ["amount", "payment_method"])
    def test_required_fields(self, missing):
        data = {"amount": "10", "payment_method": "pix"}
        del data[missing]

        with pytest.raises(ValidationError) as exc_info:
            validate_payment_data(data)

        assert exc_info.value.field == missing

    @pytest.mark.parametrize("amount", ["0", "-1", "NaN", "Infinity", "ten"])
    def test_bad_amounts(self, amount):
        with pytest.raises(ValidationError):
            validate_payment_data({"amount": amount, "payment_method": "pix"})

    def test_bad_currency(self):
        with pytest.raises(ValidationError):
            validate_payment_data({"amount": "1", "currency": "REAL", "payment_method": "pix"})

    def test_tokenized_card_payment_skips_card_checks(self):
        data = validate_payment_data(
            {"amount": "1", "payment_method": "credit_card", "card_token": "tok_visa"}
        )

        assert "card" not in data

    def test_card_must_be_mapping(self):
        with pytest.raises(CardValidationError):
            validate_payment_data({"amount": "1", "payment_method": "credit_card", "card": "4242"})

    def test_card_is_validated(self):
        data = validate_payment_data(card_payment())

        assert data["card"]["brand"] == "visa"


class TestRedaction:
    """Data safe to persist."""

    def test_redacts_card(self):
        redacted = redact_payment_data(validate_payment_data(card_payment()))

        assert redacted["card"]["number"] == "4242********4242"
        assert "cvv" not in redacted["card"]
        assert redacted["amount"] == "100.00"

    def test_leaves_source_untouched(self):
        data = card_payment()

        redact_payment_data(data)

        assert data["card"]["cvv"] == "123"
