"""Normalisation helpers for the loosely formatted ledger columns."""

from __future__ import annotations

import re

_NON_DIGITS = re.compile(r"\D")
INVOICE_SEPARATOR = ","
_EMPTY_DOCUMENT_NUMBERS = frozenset({"", "0"})


def clean(value: object) -> str | None:
    """Return ``value`` as a stripped string, or ``None`` when blank."""

    if value is None:
        return None
    text = str(value).strip()
    return text or None


def digits_only(value: str | None) -> str:
    if not value:
        return ""
    return _NON_DIGITS.sub("", value)


def tax_id_variants(tax_id: str | None) -> tuple[str, ...]:
    """Raw and separator-free spellings of a tax id, raw first, without duplicates."""

    raw = clean(tax_id)
    if raw is None:
        return ()
    variants = [raw]
    digits = digits_only(raw)
    if digits and digits != raw:
        variants.append(digits)
    return tuple(variants)


def tax_ids_match(left: str | None, right: str | None) -> bool:
    """Compare tax ids in raw and digits-only form."""

    left_raw, right_raw = clean(left), clean(right)
    if left_raw is None or right_raw is None:
        return False
    if left_raw == right_raw:
        return True
    left_digits = digits_only(left_raw)
    return bool(left_digits) and left_digits == digits_only(right_raw)


def split_invoice_numbers(value: str | None) -> tuple[str, ...]:
    """Split a possibly comma-joined invoice field into its elements."""

    if not value:
        return ()
    return tuple(part.strip() for part in value.split(INVOICE_SEPARATOR) if part.strip())


def invoice_equals(field_value: str | None, invoice_number: str) -> bool:
    return clean(field_value) == clean(invoice_number)


def invoice_in_list(field_value: str | None, invoice_number: str) -> bool:
    """Whole-element membership: ``"20"`` is not found in ``"100,200,300"``."""

    target = clean(invoice_number)
    if target is None:
        return False
    return target in split_invoice_numbers(field_value)


def client_sequence_matches(left: str | None, right: str | None) -> bool:
    left_clean, right_clean = clean(left), clean(right)
    return left_clean is not None and left_clean == right_clean


def has_document_number(document_number: str | None) -> bool:
    cleaned = clean(document_number)
    return cleaned is not None and cleaned not in _EMPTY_DOCUMENT_NUMBERS


def is_closed_situation(situation: str | None, closed_term: str = "fechado") -> bool:
    if situation is None:
        return False
    return situation.strip().lower() == closed_term.strip().lower()
