"""Address validation, normalization, and cache-key hashing."""

import logging
import re
from dataclasses import dataclass
from typing import Any

logger = logging.getLogger(__name__)

MIN_ADDRESS_LENGTH = 5
MAX_ADDRESS_LENGTH = 500
MAX_KEY_LENGTH = 100

_COUNTRY_SUFFIX = re.compile(r",\s*(USA|United States|U\.S\.A\.)$", re.IGNORECASE)

# First match wins: #11G, APT 11G, apt. 11g, Unit 11G, Ste 11G, Suite 11G
_UNIT_PATTERNS = [
    re.compile(r"#\s*([A-Za-z0-9]+)", re.IGNORECASE),
    re.compile(r"\bapt\b\.?\s*([A-Za-z0-9]+)", re.IGNORECASE),
    re.compile(r"\bunit\b\s*([A-Za-z0-9]+)", re.IGNORECASE),
    re.compile(r"\bste\b\.?\s*([A-Za-z0-9]+)", re.IGNORECASE),
    re.compile(r"\bsuite\b\s*([A-Za-z0-9]+)", re.IGNORECASE),
]


@dataclass(frozen=True)
class AddressValidation:
    address: str | None = None
    error: str | None = None

    @property
    def valid(self) -> bool:
        return self.error is None


def validate_address(raw: Any) -> AddressValidation:
    """Validate a user-supplied address; on success return it trimmed."""
    if not raw:
        return AddressValidation(error="Address is required")
    if not isinstance(raw, str):
        return AddressValidation(error="Address must be a string")

    trimmed = raw.strip()
    if not trimmed:
        return AddressValidation(error="Address cannot be empty")
    if len(trimmed) < MIN_ADDRESS_LENGTH:
        return AddressValidation(error="Address is too short")
    if len(trimmed) > MAX_ADDRESS_LENGTH:
        return AddressValidation(error="Address is too long")

    return AddressValidation(address=trimmed)


def hash_address(address: str) -> str:
    """Normalize an address into a cache document ID.

    Not a cryptographic hash: differently punctuated spellings of the same
    address map to the same key, and so can distinct addresses.
    """
    if not address or not isinstance(address, str):
        raise ValueError("Invalid address provided for hashing")

    key = re.sub(r"[^a-z0-9]", "-", address.lower().strip())
    key = re.sub(r"-+", "-", key).strip("-")
    return key[:MAX_KEY_LENGTH]


def normalize_address(address: str) -> str:
    """Collapse whitespace and standardize comma spacing."""
    if not address or not isinstance(address, str):
        raise ValueError("Invalid address provided for normalization")

    normalized = re.sub(r"\s+", " ", address.strip())
    return re.sub(r",\s*", ", ", normalized)


def clean_address_for_search(address: str) -> str:
    """Strip a trailing country suffix so the provider matches the listing."""
    if not address:
        return address

    cleaned = _COUNTRY_SUFFIX.sub("", address.strip())
    cleaned = re.sub(r"\s+", " ", cleaned)
    return cleaned.strip()


def extract_unit_number(address: str | None) -> str | None:
    if not address:
        return None

    for pattern in _UNIT_PATTERNS:
        match = pattern.search(address)
        if match:
            return match.group(1).upper()
    return None


def unit_mismatch_warnings(requested: str | None, returned: str | None) -> list[str]:
    """Warn when the provider answered for a different unit than requested.

    Best-effort: only fires when both addresses carry a unit number.
    """
    if not requested or not returned:
        return []

    requested_unit = extract_unit_number(requested)
    returned_unit = extract_unit_number(returned)
    if not requested_unit or not returned_unit or requested_unit == returned_unit:
        return []

    logger.warning(
        "Address unit mismatch: requested %s (unit %s), returned %s (unit %s)",
        requested, requested_unit, returned, returned_unit,
    )
    return [
        f"Address mismatch: Requested unit '{requested_unit}' but Zillow returned unit "
        f"'{returned_unit}'. Please verify this is the correct property."
    ]
