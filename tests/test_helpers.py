from __future__ import annotations

import re
from datetime import datetime
from decimal import Decimal

import pytest

from lunara.helpers import (
    format_currency,
    generate_referral_code,
    generate_serial_key,
    is_valid_time,
    mask_sensitive_data,
    month_range,
    paginate,
    percentage_of,
    sanitize_string,
)


@pytest.mark.parametrize(
    "amount, expected",
    [
        (0, "R$ 0,00"),
        (150, "R$ 150,00"),
        ("1234.5", "R$ 1.234,50"),
        (Decimal("1000000"), "R$ 1.000.000,00"),
        (-12.3, "-R$ 12,30"),
    ],
)
def test_format_currency(amount, expected):
    assert format_currency(amount) == expected


def test_percentage_of_rounds_half_up():
    assert percentage_of("99.90", "12.50") == Decimal("12.49")
    assert percentage_of("150.00", "15.00") == Decimal("22.50")
    # 0.05 * 50% = 0.025 -> 0.03
    assert percentage_of("0.05", "50") == Decimal("0.03")


def test_mask_sensitive_data():
    assert mask_sensitive_data("maria@example.com") == "ma***@example.com"
    assert mask_sensitive_data("11987654321", "phone") == "(11) *****-4321"
    assert mask_sensitive_data("abcdef", "other") == "abc***"
    assert mask_sensitive_data(None) == ""


def test_time_validator():
    assert is_valid_time("9:05")
    assert is_valid_time("23:59")
    assert not is_valid_time("24:00")
    assert not is_valid_time("12:60")


def test_sanitize_string():
    assert sanitize_string("  <b>Tom & Jerry</b> ") == "bTom &amp; Jerry&#x2F;b"
    assert sanitize_string(None) == ""


def test_paginate():
    assert paginate(1, 20, 0) == {"page": 1, "limit": 20, "total": 0, "pages": 0}
    assert paginate(2, 20, 41) == {"page": 2, "limit": 20, "total": 41, "pages": 3}


def test_month_range():
    assert month_range(2, 2024) == (datetime(2024, 2, 1), datetime(2024, 3, 1))
    assert month_range(12, 2024) == (datetime(2024, 12, 1), datetime(2025, 1, 1))
    with pytest.raises(ValueError):
        month_range(0, 2024)


def test_generated_codes():
    assert re.fullmatch(r"[A-Z0-9]{8}", generate_referral_code())
    assert re.fullmatch(r"LUNA-STANDARD-[A-Z0-9]{4}-[A-Z0-9]{4}-[A-Z0-9]{4}", generate_serial_key("standard"))
    assert generate_serial_key("!!").startswith("LUNA-STD-")
