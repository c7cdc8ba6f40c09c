"""Upstream gateway selection."""

from __future__ import annotations

from typing import Mapping, Optional
from urllib.parse import urlsplit

from .identifiers import CONTROL_CHARACTERS


ALLOWED_SCHEMES = {"http", "https"}
DEFAULT_PORTS = {"http": 80, "https": 443}


def normalize_origin(value: str | None) -> Optional[str]:
    """Return ``scheme://host[:port]`` for an absolute http(s) URL, else ``None``."""
    candidate = (value or "").strip()
    if not candidate or CONTROL_CHARACTERS.search(candidate):
        return None
    try:
        parts = urlsplit(candidate)
        port = parts.port
    except ValueError:
        return None
    scheme = parts.scheme.lower()
    host = parts.hostname
    if scheme not in ALLOWED_SCHEMES or not host:
        return None
    if ":" in host:
        host = f"[{host}]"
    if port is None or port == DEFAULT_PORTS[scheme]:
        return f"{scheme}://{host}"
    return f"{scheme}://{host}:{port}"


def select_gateway(query: Mapping[str, str], default: str) -> str:
    """Pick the caller's ``gateway`` override when it is a valid origin."""
    return normalize_origin(query.get("gateway")) or default
