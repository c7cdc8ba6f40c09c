"""Request and response header translation between clients and gateways."""

from __future__ import annotations

import mimetypes
import re
from typing import Mapping, Optional, Sequence
from urllib.parse import quote

import httpx


FORWARDED_REQUEST_HEADERS = ("range", "if-none-match", "if-modified-since", "accept")

# RFC 9110 hop-by-hop headers, owned by each connection rather than the resource
HOP_BY_HOP_HEADERS = frozenset(
    {
        "connection",
        "keep-alive",
        "proxy-authenticate",
        "proxy-authorization",
        "te",
        "trailers",
        "transfer-encoding",
        "upgrade",
    }
)

GENERIC_CONTENT_TYPE = "application/octet-stream"
IMMUTABLE_CACHE_CONTROL = "public, max-age=31536000, immutable"
EXPOSED_HEADERS = "Content-Length, Content-Type, Accept-Ranges, ETag"
DEFAULT_FILENAME = "file"
CORS_HEADERS = {"Access-Control-Allow-Origin": "*"}

_EXTENSION = re.compile(r"\.[A-Za-z0-9]+$")
_PRINTABLE_ASCII = re.compile(r"[\x20-\x7e]*")

_MIME_TYPES = mimetypes.MimeTypes()
for _type, _extension in (
    ("application/vnd.openxmlformats-officedocument.presentationml.presentation", ".pptx"),
    ("application/vnd.openxmlformats-officedocument.wordprocessingml.document", ".docx"),
    ("application/vnd.openxmlformats-officedocument.spreadsheetml.sheet", ".xlsx"),
    ("application/vnd.oasis.opendocument.presentation", ".odp"),
    ("application/vnd.oasis.opendocument.text", ".odt"),
    ("application/vnd.oasis.opendocument.spreadsheet", ".ods"),
    ("application/vnd.ipld.car", ".car"),
    ("application/manifest+json", ".webmanifest"),
    ("audio/mp4", ".m4a"),
    ("font/woff2", ".woff2"),
    ("image/avif", ".avif"),
    ("image/heic", ".heic"),
    ("image/webp", ".webp"),
    ("model/gltf-binary", ".glb"),
    ("model/gltf+json", ".gltf"),
    ("text/markdown", ".md"),
):
    _MIME_TYPES.add_type(_type, _extension)


def build_upstream_headers(headers: Mapping[str, str]) -> dict[str, str]:
    """Copy the allow-listed request headers; everything else stays with the client."""
    inbound = httpx.Headers(dict(headers))
    forwarded: dict[str, str] = {}
    for name in FORWARDED_REQUEST_HEADERS:
        value = inbound.get(name)
        if value:
            forwarded[name] = value
    return forwarded


def resolve_filename(segments: Sequence[str], query: Mapping[str, str]) -> str:
    explicit = query.get("filename")
    if explicit:
        return explicit
    last = segments[-1] if segments else ""
    if _EXTENSION.search(last):
        return last
    return DEFAULT_FILENAME


def guess_content_type(filename: str, fallback: Optional[str] = None) -> str:
    guessed, _ = _MIME_TYPES.guess_type(filename, strict=False)
    return guessed or fallback or GENERIC_CONTENT_TYPE


def resolve_content_type(upstream_type: Optional[str], filename: str) -> str:
    if upstream_type and upstream_type != GENERIC_CONTENT_TYPE:
        return upstream_type
    return guess_content_type(filename, upstream_type)


def content_disposition(filename: str) -> str:
    escaped = filename.replace("\\", "\\\\").replace('"', '\\"')
    if _PRINTABLE_ASCII.fullmatch(filename):
        return f'inline; filename="{escaped}"'
    fallback = escaped.encode("ascii", "replace").decode("ascii")
    fallback = "".join(ch if ch.isprintable() else "_" for ch in fallback)
    return f"inline; filename=\"{fallback}\"; filename*=UTF-8''{quote(filename, safe='')}"


def build_response_headers(upstream_headers: Mapping[str, str], filename: str) -> dict[str, str]:
    """Merge upstream headers with the metadata clients rely on.

    Upstream values pass through except for the keys set here; ``Cache-Control``
    is only filled in when the gateway did not send one.
    """
    headers = httpx.Headers(upstream_headers)
    for name in HOP_BY_HOP_HEADERS:
        if name in headers:
            del headers[name]

    headers["Content-Type"] = resolve_content_type(headers.get("content-type"), filename)
    headers["Content-Disposition"] = content_disposition(filename)
    headers["X-Content-Type-Options"] = "nosniff"
    headers["Access-Control-Allow-Origin"] = "*"
    headers["Access-Control-Expose-Headers"] = EXPOSED_HEADERS
    if "cache-control" not in headers:
        headers["Cache-Control"] = IMMUTABLE_CACHE_CONTROL
    return dict(headers.items())
