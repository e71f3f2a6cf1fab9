"""Field sanitization tests."""

from __future__ import annotations

from decimal import Decimal

import pytest

from fastapi_logistics import sanitizers
from fastapi_logistics.types import OrderItem


class TestCleanPhone:
    def test_keeps_trailing_ten_digits(self) -> None:
        assert sanitizers.clean_phone("+977-98-4512-3456") == "9845123456"

    @pytest.mark.parametrize(
        "raw",
        [
            "9845123456",
            "98451 23456",
            "(984) 512-3456",
            "00977 9845123456",
            9845123456,
        ],
    )
    def test_accepted_values_are_exactly_ten_digits(self, raw) -> None:
        cleaned = sanitizers.clean_phone(raw)
        assert cleaned is not None
        assert len(cleaned) == 10
        assert cleaned.isdigit()

    @pytest.mark.parametrize(
        "raw", [None, "", "abc", "984512345", "+977-123", "   "]
    )
    def test_short_numbers_are_rejected(self, raw) -> None:
        assert sanitizers.clean_phone(raw) is None

    def test_secondary_phone_blank_when_invalid(self) -> None:
        assert sanitizers.clean_secondary_phone("12345") == ""
        assert sanitizers.clean_secondary_phone(None) == ""
        assert sanitizers.clean_secondary_phone("9801234567") == "9801234567"


class TestCodAmount:
    def test_cod_uses_payable_amount(self) -> None:
        assert sanitizers.cod_amount(Decimal("1200"), 1000, "cod") == 1200

    def test_falls_back_to_total_amount(self) -> None:
        assert sanitizers.cod_amount(None, "850", "COD") == 850

    def test_missing_payment_method_counts_as_cod(self) -> None:
        assert sanitizers.cod_amount(500, None, None) == 500

    def test_prepaid_collects_nothing(self) -> None:
        assert sanitizers.cod_amount(1200, 1200, "esewa") == 0

    def test_rounds_half_up(self) -> None:
        assert sanitizers.cod_amount("1200.5", None, "cod") == 1201
        assert sanitizers.cod_amount("1199.49", None, "cod") == 1199
        assert sanitizers.cod_amount(Decimal("2.5"), None, "cod") == 3

    def test_garbage_amount_is_zero(self) -> None:
        assert sanitizers.cod_amount("n/a", None, "cod") == 0

    @pytest.mark.parametrize("amount", ["NaN", "Infinity", "-inf", "sNaN"])
    def test_non_finite_amount_falls_back_to_total(self, amount) -> None:
        assert sanitizers.cod_amount(amount, "850", "cod") == 850
        assert sanitizers.cod_amount(amount, None, "cod") == 0


class TestTextFields:
    def test_address_falls_back_to_country(self) -> None:
        assert sanitizers.clean_address("  ") == "Nepal"
        assert sanitizers.clean_address(" Lakeside ") == "Lakeside"

    def test_branch_is_trimmed_and_uppercased(self) -> None:
        assert sanitizers.clean_branch(" pokhara ") == "POKHARA"

    def test_name_trimmed(self) -> None:
        assert sanitizers.clean_name("  Sita  ") == "Sita"
        assert sanitizers.clean_name(None) == ""


class TestSanitizeTrackingId:
    def test_strips_query_syntax(self) -> None:
        raw = "NCM555,waybill.eq.x);drop table orders;--"
        assert sanitizers.sanitize_tracking_id(raw) == (
            "NCM555waybill.eq.xdroptableorders--"
        )

    def test_keeps_allowed_punctuation(self) -> None:
        assert sanitizers.sanitize_tracking_id(" AB-12_3.4 ") == "AB-12_3.4"

    def test_none_is_empty(self) -> None:
        assert sanitizers.sanitize_tracking_id(None) == ""

    def test_length_is_bounded(self) -> None:
        assert len(sanitizers.sanitize_tracking_id("A" * 500)) == 64


class TestPackageDescription:
    def test_lists_items_with_quantities(self) -> None:
        items = [
            OrderItem(product_name="Ladies Work Bag", quantity=3, sku="X1"),
            {"product_name": "Macbook Air", "quantity": 2},
        ]
        assert sanitizers.format_package_description(items, 200) == (
            "Ladies Work Bag * 3, Macbook Air * 2"
        )

    def test_empty_items_mentions_order(self) -> None:
        assert (
            sanitizers.format_package_description([], 200, "26-01-7")
            == "Order 26-01-7"
        )

    def test_long_lists_collapse_to_first_item(self) -> None:
        items = [
            OrderItem(product_name=f"Product number {i}", quantity=1)
            for i in range(30)
        ]
        text = sanitizers.format_package_description(items, 60)
        assert len(text) <= 60
        assert text.startswith("Product number 0 * 1")
        assert text.endswith("+29 more items")

    def test_instruction(self) -> None:
        assert sanitizers.format_instruction("26-01-7") == "Order #26-01-7"
        assert sanitizers.format_instruction(None) == ""
