from __future__ import annotations

from datetime import date
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from enum import Enum
from typing import Any, Iterable, TypeVar

from lbp.errors import BadRequestError
from lbp.time_utils import as_date


# Numeric(12, 2): 9,999,999,999.99 is the largest storable amount
MAX_AMOUNT = Decimal("9999999999.99")
CENT = Decimal("0.01")

E = TypeVar("E", bound=Enum)


def to_money(value: Any, field: str = "montant") -> Decimal:
    """
    Coerce an incoming amount to a 2-digit Decimal.

    Accepts Decimal, int, float and numeric strings. Booleans, NaN/Infinity and
    amounts beyond the column precision are rejected.
    """
    if value is None or isinstance(value, bool):
        raise BadRequestError(f"{field} doit être un nombre")
    try:
        if isinstance(value, float):
            amount = Decimal(repr(value))
        else:
            amount = Decimal(str(value).strip())
    except (InvalidOperation, ValueError):
        raise BadRequestError(f"{field} doit être un nombre")
    if not amount.is_finite():
        raise BadRequestError(f"{field} doit être un nombre fini")
    amount = amount.quantize(CENT, rounding=ROUND_HALF_UP)
    if abs(amount) > MAX_AMOUNT:
        raise BadRequestError(f"{field} dépasse le maximum autorisé")
    return amount


def positive_money(value: Any, field: str = "montant") -> Decimal:
    amount = to_money(value, field)
    if amount <= 0:
        raise BadRequestError(f"{field} doit être strictement positif")
    return amount


def non_negative_money(value: Any, field: str = "montant") -> Decimal:
    amount = to_money(value, field)
    if amount < 0:
        raise BadRequestError(f"{field} ne peut pas être négatif")
    return amount


def parse_date(value: Any, field: str = "date") -> date | None:
    """Parse a date boundary; datetimes are truncated to their date."""
    try:
        return as_date(value)
    except (TypeError, ValueError):
        raise BadRequestError(f"{field} doit être une date ISO (AAAA-MM-JJ)")


def parse_int(value: Any, field: str) -> int | None:
    if value is None or value == "":
        return None
    if isinstance(value, bool):
        raise BadRequestError(f"{field} doit être un entier")
    if isinstance(value, int):
        return value
    if isinstance(value, str) and value.strip().lstrip("-").isdigit():
        return int(value.strip())
    raise BadRequestError(f"{field} doit être un entier")


def parse_enum(enum_cls: type[E], value: Any, field: str) -> E:
    """
    Resolve an enum member from its value or its name (case-insensitive name).
    """
    if isinstance(value, enum_cls):
        return value
    if isinstance(value, str):
        raw = value.strip()
        for member in enum_cls:
            if member.value == raw or member.name == raw.upper():
                return member
    allowed = ", ".join(str(m.value) for m in enum_cls)
    raise BadRequestError(f"{field} invalide: {value!r}. Valeurs possibles: {allowed}")


def require_fields(data: dict | None, fields: Iterable[str]) -> dict:
    if not isinstance(data, dict):
        raise BadRequestError("Corps de requête JSON attendu")
    missing = [f for f in fields if data.get(f) in (None, "")]
    if missing:
        raise BadRequestError(f"Champs obligatoires manquants: {', '.join(missing)}")
    return data


def money_str(amount: Decimal | None) -> str | None:
    """Serialize a stored amount for JSON (string keeps the 2 decimals)."""
    if amount is None:
        return None
    return str(Decimal(amount).quantize(CENT, rounding=ROUND_HALF_UP))
