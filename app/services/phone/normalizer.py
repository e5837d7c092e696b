"""Phone number canonicalization.

Stored numbers come in every shape: ``+12405551234`` from Twilio,
``(240) 555-1234`` typed into a customer form, ``240.555.1234`` pasted from
an email signature. Everything that compares phone numbers goes through
:func:`normalize_phone`, which never raises: dirty input maps to
:data:`UNMATCHABLE` so one bad row can't break the inbox.
"""
import re
from typing import Any, Optional, Set

UNMATCHABLE = "unmatchable"

_NON_DIGITS = re.compile(r"\D")


def digits_only(raw: Any) -> str:
    """Strip everything but digits. Non-strings yield an empty string."""
    if raw is None:
        return ""
    if not isinstance(raw, str):
        raw = str(raw)
    return _NON_DIGITS.sub("", raw)


def normalize_phone(raw: Any) -> str:
    """
    Canonical comparison key for a phone number.

    Args:
        raw: Any value; usually a phone string in an arbitrary format.

    Returns:
        The 10-digit national number for NANP numbers (a leading ``1`` country
        code is dropped), the bare digits for longer international numbers, or
        ``UNMATCHABLE`` for empty / too-short input.
    """
    digits = digits_only(raw)
    if len(digits) == 11 and digits.startswith("1"):
        digits = digits[1:]
    if len(digits) < 10:
        return UNMATCHABLE
    return digits


def is_matchable(key: str) -> bool:
    """False for the sentinel and for ``unmatchable:<raw>`` grouping keys."""
    return bool(key) and not key.startswith(UNMATCHABLE)


def phone_variants(raw: Any) -> Set[str]:
    """
    Digit strings a stored copy of this number may take: as given, and with
    the NANP leading ``1`` added or removed. Empty for unmatchable input.
    """
    if not is_matchable(normalize_phone(raw)):
        return set()
    digits = digits_only(raw)
    variants = {digits}
    if len(digits) == 10:
        variants.add("1" + digits)
    elif len(digits) == 11 and digits.startswith("1"):
        variants.add(digits[1:])
    return variants


def phones_match(a: Any, b: Any) -> bool:
    """True when the two numbers share a variant."""
    return bool(phone_variants(a) & phone_variants(b))


def format_e164(raw: Any) -> Optional[str]:
    """E.164 form for sending through the carrier, or None if there are no digits."""
    digits = digits_only(raw)
    if not digits:
        return None
    if len(digits) == 10:
        return "+1" + digits
    return "+" + digits


def format_display(raw: Any) -> str:
    """Human-readable form: ``(240) 555-1234`` for NANP numbers."""
    key = normalize_phone(raw)
    if len(key) == 10:
        return f"({key[:3]}) {key[3:6]}-{key[6:]}"
    if raw is None:
        return ""
    return str(raw).strip()


def conversation_key(raw_phone: Optional[str]) -> str:
    """Grouping key: the canonical phone, or ``unmatchable:<raw>`` when it can't be normalized."""
    key = normalize_phone(raw_phone)
    if is_matchable(key):
        return key
    return f"{UNMATCHABLE}:{(raw_phone or '').strip()}"


def conversation_phone(raw_phone: Optional[str]) -> str:
    """The phone a conversation is addressed by: canonical key, else the raw string."""
    key = normalize_phone(raw_phone)
    return key if is_matchable(key) else (raw_phone or "").strip()
