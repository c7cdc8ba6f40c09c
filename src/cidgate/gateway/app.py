"""HTTP service proxying IPFS and Grove resources through configured gateways."""

from __future__ import annotations

import time
from contextlib import asynccontextmanager
from typing import Optional

import httpx
import structlog
from fastapi import Depends, FastAPI, Request, Response, status
from fastapi.responses import PlainTextResponse

from ..common.http_security import require_metrics_access
from ..common.metrics import GLOBAL_REGISTRY, Counter, Gauge, Histogram
from ..common.observability import (
    REQUEST_ID_HEADER,
    bind_request_context,
    configure_logging,
    configure_tracing,
    instrument_fastapi_app,
)
from ..common.settings import ProxySettings
from .headers import CORS_HEADERS
from .identifiers import IdentifierError
from .resolvers import CidResolver, GroveResolver, RequestContext


SERVICE_NAME = "cidgate.gateway"
PROXY_METHODS = ["GET", "HEAD"]
IPFS_PREFIX = "/api/ipfs"
GROVE_PREFIX = "/grove"

LOGGER = structlog.get_logger(SERVICE_NAME)

HTTP_REQUEST_COUNTER = GLOBAL_REGISTRY.register(
    Counter("cidgate_http_requests_total", "HTTP requests handled by the gateway proxy")
)
HTTP_LATENCY_HISTOGRAM = GLOBAL_REGISTRY.register(
    Histogram(
        "cidgate_http_request_latency_seconds",
        buckets=[0.05, 0.1, 0.25, 0.5, 1.0, 2.0, 5.0, 10.0],
        description="Time to first byte for proxied requests",
    )
)
IDENTIFIER_REJECTED_COUNTER = GLOBAL_REGISTRY.register(
    Counter("cidgate_identifier_rejections_total", "Requests rejected before contacting a gateway")
)
IN_FLIGHT_GAUGE = GLOBAL_REGISTRY.register(
    Gauge("cidgate_http_requests_in_flight", "Requests currently being proxied")
)


class GatewayState:
    def __init__(self, settings: ProxySettings, http_client: httpx.AsyncClient) -> None:
        self.settings = settings
        self.http = http_client
        self.ipfs = CidResolver(settings.default_ipfs_gateway)
        self.grove = GroveResolver(settings.default_grove_gateway)


def build_http_client(
    settings: ProxySettings,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> httpx.AsyncClient:
    timeout = httpx.Timeout(settings.upstream_timeout_seconds, connect=settings.upstream_connect_timeout_seconds)
    limits = httpx.Limits(
        max_connections=settings.max_upstream_connections,
        max_keepalive_connections=max(1, settings.max_upstream_connections // 5),
    )
    return httpx.AsyncClient(timeout=timeout, limits=limits, transport=transport, follow_redirects=True)


def get_state(request: Request) -> GatewayState:
    return request.app.state.gateway  # type: ignore[attr-defined]


def create_app(
    settings: Optional[ProxySettings] = None,
    *,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> FastAPI:
    settings = settings or ProxySettings()
    configure_logging(SERVICE_NAME, settings.log_level)
    configure_tracing(
        service_name=SERVICE_NAME,
        endpoint=settings.otel_exporter_endpoint,
        headers=settings.otel_exporter_headers,
        sampler_ratio=settings.otel_sampler_ratio,
    )

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        http_client = build_http_client(settings, transport)
        app.state.gateway = GatewayState(settings, http_client)
        LOGGER.info(
            "gateway_started",
            ipfs_gateway=settings.default_ipfs_gateway,
            grove_gateway=settings.default_grove_gateway,
        )
        try:
            yield
        finally:
            await http_client.aclose()

    app = FastAPI(lifespan=lifespan)
    instrument_fastapi_app(app)

    @app.middleware("http")
    async def record_request(request: Request, call_next):  # noqa: ANN001 - FastAPI middleware signature
        start = time.perf_counter()
        request_id = bind_request_context(SERVICE_NAME, request.headers.get(REQUEST_ID_HEADER))
        HTTP_REQUEST_COUNTER.inc()
        IN_FLIGHT_GAUGE.inc()
        try:
            response = await call_next(request)
        except Exception:
            IN_FLIGHT_GAUGE.dec()
            duration = time.perf_counter() - start
            HTTP_LATENCY_HISTOGRAM.observe(duration)
            LOGGER.exception(
                "http_request_error",
                method=request.method,
                path=request.url.path,
                duration_ms=round(duration * 1000, 2),
            )
            raise

        IN_FLIGHT_GAUGE.dec()
        duration = time.perf_counter() - start
        HTTP_LATENCY_HISTOGRAM.observe(duration)
        response.headers.setdefault("X-Request-ID", request_id)
        log_kwargs = {
            "method": request.method,
            "path": request.url.path,
            "status": response.status_code,
            "duration_ms": round(duration * 1000, 2),
        }
        if response.status_code >= 500:
            LOGGER.error("http_request", **log_kwargs)
        elif duration >= 1.0:
            LOGGER.warning("http_request", **log_kwargs)
        else:
            LOGGER.info("http_request", **log_kwargs)
        return response

    @app.exception_handler(IdentifierError)
    async def identifier_error_handler(request: Request, exc: IdentifierError) -> Response:
        IDENTIFIER_REJECTED_COUNTER.inc(reason=type(exc).__name__)
        LOGGER.info("identifier_rejected", path=request.url.path, reason=type(exc).__name__)
        if request.method == "HEAD":
            return Response(status_code=exc.status_code, headers=dict(CORS_HEADERS))
        return PlainTextResponse(exc.message, status_code=exc.status_code, headers=dict(CORS_HEADERS))

    @app.api_route(IPFS_PREFIX, methods=PROXY_METHODS)
    @app.api_route(IPFS_PREFIX + "/{path:path}", methods=PROXY_METHODS)
    async def proxy_ipfs(request: Request, state: GatewayState = Depends(get_state)) -> Response:
        return await state.ipfs.handle(RequestContext.from_request(request, IPFS_PREFIX), state.http)

    @app.api_route(GROVE_PREFIX, methods=PROXY_METHODS)
    @app.api_route(GROVE_PREFIX + "/{path:path}", methods=PROXY_METHODS)
    async def proxy_grove(request: Request, state: GatewayState = Depends(get_state)) -> Response:
        return await state.grove.handle(RequestContext.from_request(request, GROVE_PREFIX), state.http)

    @app.get("/healthz", status_code=status.HTTP_200_OK)
    async def health_check(state: GatewayState = Depends(get_state)) -> dict:
        """Liveness probe; does not contact upstream gateways."""
        return {
            "status": "healthy",
            "gateways": {
                "ipfs": state.ipfs.default_gateway,
                "grove": state.grove.default_gateway,
            },
        }

    @app.get("/metrics", response_class=PlainTextResponse)
    async def metrics_endpoint(
        request: Request,
        state: GatewayState = Depends(get_state),
    ) -> PlainTextResponse:
        token = state.settings.metrics_token.get_secret_value() if state.settings.metrics_token else None
        require_metrics_access(request, token)
        return PlainTextResponse(GLOBAL_REGISTRY.render())

    return app
