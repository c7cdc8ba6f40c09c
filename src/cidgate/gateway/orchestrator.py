"""Sequential fetch-with-fallback across upstream path candidates."""

from __future__ import annotations

from enum import Enum
from typing import AsyncIterator, Mapping, Optional, Sequence

import httpx
import structlog
from fastapi import Response, status
from fastapi.responses import PlainTextResponse, StreamingResponse
from opentelemetry import trace
from starlette.background import BackgroundTask

from ..common.metrics import GLOBAL_REGISTRY, Counter
from .candidates import build_upstream_url
from .headers import CORS_HEADERS, build_response_headers


LOGGER = structlog.get_logger("cidgate.gateway.orchestrator")
TRACER = trace.get_tracer("cidgate.gateway")

UPSTREAM_ATTEMPTS_COUNTER = GLOBAL_REGISTRY.register(
    Counter("cidgate_upstream_attempts_total", "Upstream fetch attempts by outcome")
)
FALLBACK_COUNTER = GLOBAL_REGISTRY.register(
    Counter("cidgate_upstream_fallbacks_total", "Candidates skipped after an upstream 404")
)
TRANSPORT_ERROR_COUNTER = GLOBAL_REGISTRY.register(
    Counter("cidgate_upstream_transport_errors_total", "Upstream fetches that failed below HTTP")
)

UPSTREAM_TIMEOUT_MESSAGE = "Upstream gateway timed out."
UPSTREAM_UNREACHABLE_MESSAGE = "Upstream gateway unreachable."


class AttemptOutcome(str, Enum):
    SUCCESS = "success"
    RETRYABLE_NOT_FOUND = "retryable_not_found"
    TERMINAL_ERROR = "terminal_error"


def classify(status_code: int) -> AttemptOutcome:
    if 200 <= status_code < 300:
        return AttemptOutcome.SUCCESS
    if status_code == status.HTTP_404_NOT_FOUND:
        return AttemptOutcome.RETRYABLE_NOT_FOUND
    return AttemptOutcome.TERMINAL_ERROR


def error_response(method: str, status_code: int, text: str) -> Response:
    """Plain error passthrough carrying only the CORS header."""
    if method == "HEAD":
        return Response(status_code=status_code, headers=dict(CORS_HEADERS))
    return PlainTextResponse(text, status_code=status_code, headers=dict(CORS_HEADERS))


async def _stream_body(upstream: httpx.Response) -> AsyncIterator[bytes]:
    try:
        async for chunk in upstream.aiter_raw():
            yield chunk
    finally:
        await upstream.aclose()


async def _read_text(upstream: httpx.Response, method: str) -> str:
    try:
        if method == "HEAD":
            return ""
        await upstream.aread()
        return upstream.text
    finally:
        await upstream.aclose()


async def proxied_response(method: str, upstream: httpx.Response, filename: str) -> Response:
    headers = build_response_headers(upstream.headers, filename)
    if method == "HEAD":
        await upstream.aclose()
        return Response(status_code=upstream.status_code, headers=headers)
    return StreamingResponse(
        _stream_body(upstream),
        status_code=upstream.status_code,
        headers=headers,
        background=BackgroundTask(upstream.aclose),
    )


async def proxy_candidates(
    client: httpx.AsyncClient,
    *,
    method: str,
    origin: str,
    candidates: Sequence[str],
    request_headers: Mapping[str, str],
    filename: str,
    not_found_message: Optional[str] = None,
) -> Response:
    """Try each candidate in order until one succeeds or a non-404 ends the loop.

    A 404 moves on to the next candidate. When every candidate 404s the
    response is ``not_found_message`` if given, otherwise the last upstream
    body. Transport failures end the loop with 504 (timeout) or 502.
    """
    if not candidates:
        raise ValueError("at least one candidate is required")

    last_not_found = ""
    for attempt, candidate in enumerate(candidates, start=1):
        url = build_upstream_url(origin, candidate)
        log = LOGGER.bind(upstream_url=url, attempt=attempt, candidates=len(candidates))
        with TRACER.start_as_current_span(
            "gateway.upstream.fetch",
            attributes={"cidgate.candidate": candidate, "cidgate.attempt": attempt},
        ) as span:
            request = client.build_request(method, url, headers=dict(request_headers))
            try:
                upstream = await client.send(request, stream=True)
            except httpx.TimeoutException as exc:
                TRANSPORT_ERROR_COUNTER.inc(kind="timeout")
                log.warning("upstream_transport_error", kind="timeout", error=str(exc))
                span.record_exception(exc)
                return error_response(method, status.HTTP_504_GATEWAY_TIMEOUT, UPSTREAM_TIMEOUT_MESSAGE)
            except httpx.TransportError as exc:
                TRANSPORT_ERROR_COUNTER.inc(kind=type(exc).__name__)
                log.warning("upstream_transport_error", kind=type(exc).__name__, error=str(exc))
                span.record_exception(exc)
                return error_response(method, status.HTTP_502_BAD_GATEWAY, UPSTREAM_UNREACHABLE_MESSAGE)

            outcome = classify(upstream.status_code)
            span.set_attribute("cidgate.upstream_status", upstream.status_code)
            UPSTREAM_ATTEMPTS_COUNTER.inc(outcome=outcome.value)

            if outcome is AttemptOutcome.SUCCESS:
                log.debug("upstream_success", status=upstream.status_code)
                return await proxied_response(method, upstream, filename)

            text = await _read_text(upstream, method)
            if outcome is AttemptOutcome.TERMINAL_ERROR:
                log.info("upstream_error", status=upstream.status_code)
                return error_response(method, upstream.status_code, text)

            last_not_found = text
            if attempt < len(candidates):
                FALLBACK_COUNTER.inc()
                log.debug("upstream_fallback", status=upstream.status_code)

    LOGGER.info("upstream_exhausted", origin=origin, candidates=len(candidates))
    return error_response(
        method,
        status.HTTP_404_NOT_FOUND,
        not_found_message if not_found_message is not None else last_not_found,
    )
