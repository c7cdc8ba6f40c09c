"""CLI helper for probing a running gateway proxy."""

from __future__ import annotations

import argparse
import asyncio
import os
import sys
from typing import Sequence
from urllib.parse import quote, urlencode

import httpx


DEFAULT_LENS_URI = "lens://74bb5d787aa0e6b821292e0f2011ed22d06fccfa1864f6f5f4d6e9732a6a929f"
DEFAULT_PROXY_BASE = "http://localhost:3000"


def parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Fetch a Grove or IPFS resource through the gateway proxy")
    parser.add_argument("resource", nargs="?", default=DEFAULT_LENS_URI, help="Lens/Grove URI, or a CID with --ipfs")
    parser.add_argument(
        "--base",
        default=os.environ.get("CIDGATE_PROXY_BASE", DEFAULT_PROXY_BASE),
        help="Proxy base URL",
    )
    parser.add_argument("--filename", help="Override the served filename")
    parser.add_argument("--gateway", help="Upstream gateway origin override")
    parser.add_argument("--method", choices=["HEAD", "GET"], default="HEAD", help="HTTP method to use")
    parser.add_argument("--ipfs", action="store_true", help="Treat the resource as a CID path")
    parser.add_argument("--timeout", type=float, default=30.0, help="Request timeout in seconds")
    return parser.parse_args(argv)


def build_probe_url(
    base: str,
    resource: str,
    *,
    ipfs: bool = False,
    filename: str | None = None,
    gateway: str | None = None,
) -> str:
    base = base.rstrip("/")
    params: dict[str, str] = {}
    if ipfs:
        url = f"{base}/api/ipfs/{quote(resource.strip('/'), safe='/')}"
    else:
        url = f"{base}/grove"
        params["uri"] = resource
    if filename:
        params["filename"] = filename
    if gateway:
        params["gateway"] = gateway
    if params:
        url = f"{url}?{urlencode(params, quote_via=quote, safe='')}"
    return url


async def probe(url: str, method: str, timeout: float) -> httpx.Response:
    async with httpx.AsyncClient(timeout=timeout) as client:
        return await client.request(method, url)


async def run(argv: Sequence[str] | None = None) -> int:
    args = parse_args(argv)
    url = build_probe_url(
        args.base,
        args.resource,
        ipfs=args.ipfs,
        filename=args.filename,
        gateway=args.gateway,
    )
    print(f"Resource: {args.resource}")
    print(f"Proxy base: {args.base.rstrip('/')}")
    print(f"Proxy URL: {url}")

    try:
        response = await probe(url, args.method, args.timeout)
    except httpx.HTTPError as exc:
        print(f"Request failed: {exc}", file=sys.stderr)
        return 1

    print(f"Status: {response.status_code} {response.reason_phrase}")
    print(f"Content-Type: {response.headers.get('content-type')}")
    print(f"Content-Length: {response.headers.get('content-length')}")
    if args.method == "GET" and response.status_code >= 400:
        print(response.text)
    return 0


def main() -> None:
    sys.exit(asyncio.run(run()))


if __name__ == "__main__":
    main()
