from __future__ import annotations

import pytest

from cidgate.gateway.headers import (
    IMMUTABLE_CACHE_CONTROL,
    build_response_headers,
    build_upstream_headers,
    content_disposition,
    guess_content_type,
    resolve_content_type,
    resolve_filename,
)


PPTX = "application/vnd.openxmlformats-officedocument.presentationml.presentation"


def test_build_upstream_headers_forwards_allow_list_only() -> None:
    inbound = {
        "Range": "bytes=0-99",
        "If-None-Match": '"etag"',
        "If-Modified-Since": "Wed, 21 Oct 2015 07:28:00 GMT",
        "Accept": "*/*",
        "Authorization": "Bearer secret",
        "Cookie": "session=1",
        "User-Agent": "browser",
    }
    assert build_upstream_headers(inbound) == {
        "range": "bytes=0-99",
        "if-none-match": '"etag"',
        "if-modified-since": "Wed, 21 Oct 2015 07:28:00 GMT",
        "accept": "*/*",
    }


def test_build_upstream_headers_omits_missing_and_empty() -> None:
    assert build_upstream_headers({"range": "", "cookie": "x"}) == {}


def test_resolve_filename_precedence() -> None:
    assert resolve_filename(["Qm", "deck.pptx"], {"filename": "custom.pdf"}) == "custom.pdf"
    assert resolve_filename(["Qm", "deck.pptx"], {}) == "deck.pptx"
    assert resolve_filename(["Qm", "README"], {}) == "file"
    assert resolve_filename(["Qm", "archive."], {}) == "file"
    assert resolve_filename([], {}) == "file"


def test_guess_content_type() -> None:
    assert guess_content_type("deck.pptx") == PPTX
    assert guess_content_type("DECK.PPTX") == PPTX
    assert guess_content_type("image.png") == "image/png"
    assert guess_content_type("file", "text/x-upstream") == "text/x-upstream"
    assert guess_content_type("file") == "application/octet-stream"


def test_resolve_content_type_keeps_specific_upstream_type() -> None:
    assert resolve_content_type("image/jpeg", "deck.pptx") == "image/jpeg"
    assert resolve_content_type("application/octet-stream", "deck.pptx") == PPTX
    assert resolve_content_type(None, "deck.pptx") == PPTX
    assert resolve_content_type("application/octet-stream", "file") == "application/octet-stream"


@pytest.mark.parametrize(
    ("filename", "expected"),
    [
        ("deck.pptx", 'inline; filename="deck.pptx"'),
        ('a"b.txt', 'inline; filename="a\\"b.txt"'),
        ("résumé.pdf", "inline; filename=\"r?sum?.pdf\"; filename*=UTF-8''r%C3%A9sum%C3%A9.pdf"),
    ],
)
def test_content_disposition(filename: str, expected: str) -> None:
    assert content_disposition(filename) == expected


def test_build_response_headers_rewrites_metadata() -> None:
    upstream = {
        "Content-Type": "application/octet-stream",
        "Content-Length": "1234",
        "ETag": '"abc"',
        "Accept-Ranges": "bytes",
        "Connection": "keep-alive",
        "Transfer-Encoding": "chunked",
    }
    headers = build_response_headers(upstream, "deck.pptx")
    assert headers["content-type"] == PPTX
    assert headers["content-disposition"] == 'inline; filename="deck.pptx"'
    assert headers["x-content-type-options"] == "nosniff"
    assert headers["access-control-allow-origin"] == "*"
    assert headers["access-control-expose-headers"] == "Content-Length, Content-Type, Accept-Ranges, ETag"
    assert headers["cache-control"] == IMMUTABLE_CACHE_CONTROL
    assert headers["content-length"] == "1234"
    assert headers["etag"] == '"abc"'
    assert "connection" not in headers
    assert "transfer-encoding" not in headers


def test_build_response_headers_keeps_upstream_cache_control() -> None:
    headers = build_response_headers({"Cache-Control": "no-store", "Content-Type": "text/plain"}, "file")
    assert headers["cache-control"] == "no-store"
    assert headers["content-type"] == "text/plain"
    assert list(headers).count("content-type") == 1
