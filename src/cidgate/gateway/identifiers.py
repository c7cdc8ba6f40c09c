"""Parsing and validation of content identifiers and Grove/Lens locators."""

from __future__ import annotations

import re
from typing import Sequence
from urllib.parse import unquote, urlsplit


# base58btc alphabet: no 0, O, I or l
_BASE58 = "1-9A-HJ-NP-Za-km-z"
CID_V0_PATTERN = re.compile(rf"Qm[{_BASE58}]{{44,}}")
CID_V1_PATTERN = re.compile(rf"bafy[{_BASE58}]{{20,}}")

GROVE_SCHEMES = ("lens://", "grove://")
# ASCII control characters can never appear in an upstream URL
CONTROL_CHARACTERS = re.compile(r"[\x00-\x1f\x7f]")


class IdentifierError(ValueError):
    """Raised when a request does not carry a usable resource identifier."""

    status_code = 400

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class MissingIdentifier(IdentifierError):
    """No path, ``uri`` or CID was supplied."""


class InvalidIdentifier(IdentifierError):
    """The identifier failed validation or normalized to nothing."""


def is_cid(value: str) -> bool:
    return bool(CID_V0_PATTERN.fullmatch(value) or CID_V1_PATTERN.fullmatch(value))


def normalize_cid_path(
    segments: Sequence[str],
    *,
    usage: str = "Missing CID.",
    invalid: str = "Invalid or missing CID.",
) -> str:
    """Validate the leading CID segment and join the remaining path after it."""
    if not segments:
        raise MissingIdentifier(usage)
    cid, *rest = segments
    if not is_cid(cid) or any(CONTROL_CHARACTERS.search(segment) for segment in rest):
        raise InvalidIdentifier(invalid)
    return "/".join([cid, *rest])


def safe_decode(value: str) -> str:
    """Percent-decode ``value``; malformed input is returned untouched."""
    try:
        return unquote(value, errors="strict")
    except UnicodeDecodeError:
        return value


def _strip_locator(value: str) -> str:
    trimmed = value.strip()
    if not trimmed:
        return ""
    for scheme in GROVE_SCHEMES:
        if trimmed.startswith(scheme):
            return trimmed[len(scheme):].lstrip("/")
    if trimmed.startswith(("http://", "https://")):
        try:
            parts = urlsplit(trimmed)
        except ValueError:
            return ""
        return parts.path.lstrip("/")
    return trimmed.lstrip("/")


def normalize_grove_resource(value: str) -> str:
    """Reduce a Grove/Lens locator to a gateway-relative path.

    Accepts bare resource ids, ``lens://`` and ``grove://`` URIs and absolute
    http(s) URLs pointing at a gateway. The result never starts with a slash
    and is empty when nothing usable remains. Nested locators are unwrapped
    until the value stops changing, so applying the function to its own
    output returns the output unchanged.
    """
    current = value
    while True:
        stripped = _strip_locator(current)
        if stripped == current:
            return stripped
        current = stripped


def resolve_grove_identifier(
    raw: str | None,
    *,
    usage: str = "Missing Grove resource.",
    invalid: str = "Invalid Grove resource.",
) -> str:
    if not raw:
        raise MissingIdentifier(usage)
    resource = normalize_grove_resource(safe_decode(raw))
    if not resource or CONTROL_CHARACTERS.search(resource):
        raise InvalidIdentifier(invalid)
    return resource
