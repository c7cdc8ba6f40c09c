"""Upstream path candidates for each resolver."""

from __future__ import annotations


FILE_PREFIX = "file/"
IPFS_NAMESPACE = "ipfs"


def cid_candidates(identifier: str, namespace: str = IPFS_NAMESPACE) -> list[str]:
    return [f"{namespace}/{identifier}"]


def grove_candidates(identifier: str) -> list[str]:
    """Bare form first, then the ``file/``-prefixed form.

    Grove gateways store some resources under ``file/`` and some at the root,
    and nothing in the locator says which.
    """
    if identifier.startswith(FILE_PREFIX):
        return [identifier[len(FILE_PREFIX):], identifier]
    return [identifier, f"{FILE_PREFIX}{identifier}"]


def build_upstream_url(origin: str, candidate: str) -> str:
    return f"{origin.rstrip('/')}/{candidate}"
