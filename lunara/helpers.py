from __future__ import annotations

import math
import re
import secrets
import string
from datetime import datetime
from decimal import ROUND_HALF_UP, Decimal

_CODE_ALPHABET = string.ascii_uppercase + string.digits
_TIME_RE = re.compile(r"^([0-1]?[0-9]|2[0-3]):[0-5][0-9]$")

CENT = Decimal("0.01")


def generate_referral_code(length: int = 8) -> str:
    return "".join(secrets.choice(_CODE_ALPHABET) for _ in range(length))


def generate_serial_key(license_type: str, groups: int = 3, group_len: int = 4) -> str:
    """Serial keys look like LUNA-MASTER-X9K7-M2P5-Q8R3."""
    kind = re.sub(r"[^A-Z0-9]", "", license_type.upper())[:12] or "STD"
    parts = ["".join(secrets.choice(_CODE_ALPHABET) for _ in range(group_len)) for _ in range(groups)]
    return "-".join(["LUNA", kind, *parts])


def generate_secure_token(nbytes: int = 32) -> str:
    return secrets.token_hex(nbytes)


def is_valid_time(value: str | None) -> bool:
    return bool(value) and bool(_TIME_RE.match(value))


def to_money(value) -> Decimal:
    return Decimal(str(value)).quantize(CENT, rounding=ROUND_HALF_UP)


def percentage_of(amount, rate) -> Decimal:
    """amount * rate / 100, rounded half-up to cents."""
    return to_money(Decimal(str(amount)) * Decimal(str(rate)) / Decimal(100))


def format_currency(amount) -> str:
    """Brazilian real formatting: 1234.5 -> 'R$ 1.234,50'."""
    value = to_money(amount)
    sign = "-" if value < 0 else ""
    us = f"{abs(value):,.2f}"  # 1,234.50
    br = us.replace(",", "_").replace(".", ",").replace("_", ".")
    return f"{sign}R$ {br}"


def sanitize_string(value: str | None) -> str:
    if not value:
        return ""
    return (
        value.strip()
        .replace("<", "")
        .replace(">", "")
        .replace("&", "&amp;")
        .replace('"', "&quot;")
        .replace("'", "&#x27;")
        .replace("/", "&#x2F;")
    )


def mask_sensitive_data(value: str | None, kind: str = "email") -> str:
    if not value:
        return ""
    if kind == "email":
        if "@" not in value:
            return value[:2] + "***"
        user, domain = value.split("@", 1)
        return f"{user[:2]}***@{domain}"
    if kind == "phone":
        digits = re.sub(r"\D", "", value)
        return f"({digits[:2]}) *****-{digits[7:]}"
    return value[:3] + "***"


def paginate(page: int, limit: int, total: int) -> dict:
    return {
        "page": page,
        "limit": limit,
        "total": total,
        "pages": math.ceil(total / limit) if limit else 0,
    }


def month_range(month: int, year: int) -> tuple[datetime, datetime]:
    """[first instant of the month, first instant of the next month)."""
    if not 1 <= month <= 12:
        raise ValueError("month must be between 1 and 12")
    start = datetime(year, month, 1)
    end = datetime(year + (month == 12), month % 12 + 1, 1)
    return start, end
