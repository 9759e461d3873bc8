"""Phone number normalisation for ticket lookup and provider calls.

Holders type their number in many spellings (``0712345678``,
``+40 712 345 678``, ``712345678``).  Every spelling is reduced to the
E.164 form and to the textual variants the ticket store may hold.

Raw values are never logged.
"""
from __future__ import annotations

import logging
import re
from dataclasses import dataclass

import phonenumbers

from gatepass.errors import ValidationError

logger = logging.getLogger(__name__)

_DEFAULT_REGION = "RO"
_NON_DIGITS = re.compile(r"\D")
_SUFFIX_LENGTH = 9


@dataclass(slots=True, frozen=True)
class PhoneLookup:
    """Canonical number plus every equivalent spelling used for matching."""

    e164: str
    variants: tuple[str, ...]
    suffix: str

    @property
    def digits(self) -> str:
        """E.164 without the leading ``+``, the form providers expect."""
        return self.e164.lstrip("+")


def _international_digits(raw: str, country_code: str) -> str:
    digits = _NON_DIGITS.sub("", raw)
    if raw.strip().startswith("+"):
        return digits
    if digits.startswith("00"):
        return digits[2:]
    if digits.startswith("0"):
        return country_code + digits[1:]
    if digits.startswith(country_code) and len(digits) > _SUFFIX_LENGTH + 1:
        return digits
    return country_code + digits


def normalize_phone(raw: str, *, default_region: str = _DEFAULT_REGION) -> PhoneLookup:
    """Return the canonical form and lookup variants for *raw*.

    Numbers without an international prefix are assumed to belong to
    *default_region*; a single leading trunk ``0`` is dropped and the
    region's country code is prepended.

    Raises
    ------
    ValidationError
        When *raw* is empty or cannot be read as a phone number.
    """
    if not raw or not raw.strip():
        raise ValidationError("Phone number is required")

    country_code = str(phonenumbers.country_code_for_region(default_region))
    candidate = "+" + _international_digits(raw, country_code)
    try:
        parsed = phonenumbers.parse(candidate, None)
    except phonenumbers.NumberParseException as exc:
        logger.debug("could not parse phone input (length=%d)", len(raw))
        raise ValidationError("Invalid phone number") from exc

    if not phonenumbers.is_possible_number(parsed):
        logger.debug("parsed phone input is not a possible number")
        raise ValidationError("Invalid phone number")

    e164 = phonenumbers.format_number(parsed, phonenumbers.PhoneNumberFormat.E164)
    national = str(parsed.national_number)
    code = str(parsed.country_code)
    variants = (
        e164,
        code + national,
        "0" + national,
        national,
    )
    return PhoneLookup(e164=e164, variants=variants, suffix=national[-_SUFFIX_LENGTH:])


def provider_digits(raw: str, *, default_region: str = _DEFAULT_REGION) -> str:
    """Digits-only international form (``40712345678``) for provider APIs."""
    return normalize_phone(raw, default_region=default_region).digits
