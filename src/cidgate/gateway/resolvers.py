"""Resolvers mapping inbound requests to upstream gateway fetches."""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import ClassVar, Mapping, Optional

import httpx
import structlog
from fastapi import Request, Response
from opentelemetry import trace

from ..common.metrics import GLOBAL_REGISTRY, Counter
from .candidates import IPFS_NAMESPACE, cid_candidates, grove_candidates
from .headers import build_upstream_headers, resolve_filename
from .identifiers import normalize_cid_path, resolve_grove_identifier, safe_decode
from .orchestrator import proxy_candidates
from .selection import select_gateway


LOGGER = structlog.get_logger("cidgate.gateway.resolvers")
TRACER = trace.get_tracer("cidgate.gateway")

RESOLVE_COUNTER = GLOBAL_REGISTRY.register(
    Counter("cidgate_resolve_requests_total", "Resolution requests accepted per resolver")
)


def split_segments(path: str) -> tuple[str, ...]:
    return tuple(segment for segment in path.split("/") if segment)


def decode_segments(raw_path: str) -> tuple[str, ...]:
    """Split an undecoded path and percent-decode each segment on its own.

    Encoded slashes stay inside their segment, so a locator such as
    ``lens%3A%2F%2Fabc`` survives as ``lens://abc``.
    """
    return tuple(safe_decode(segment) for segment in raw_path.split("/") if segment)


@dataclass(frozen=True)
class RequestContext:
    """Read-only view of one inbound proxy request."""

    segments: tuple[str, ...]
    query: Mapping[str, str]
    method: str = "GET"
    headers: Mapping[str, str] = field(default_factory=dict)

    def __post_init__(self) -> None:
        method = self.method.upper()
        if method not in {"GET", "HEAD"}:
            raise ValueError(f"unsupported method: {self.method}")
        object.__setattr__(self, "method", method)
        object.__setattr__(self, "segments", tuple(self.segments))
        object.__setattr__(self, "query", MappingProxyType(dict(self.query)))
        object.__setattr__(self, "headers", MappingProxyType({k.lower(): v for k, v in self.headers.items()}))

    @classmethod
    def from_request(cls, request: Request, prefix: str) -> "RequestContext":
        """Build a context from the path segments that follow ``prefix``.

        Segments come from the undecoded ``raw_path`` so that encoded slashes
        inside one segment are not mistaken for separators.
        """
        raw_path = request.scope.get("raw_path")
        if raw_path:
            segments = decode_segments(raw_path.decode("latin-1").split("?", 1)[0])
        else:
            segments = split_segments(request.url.path)
        return cls(
            segments=segments[len(split_segments(prefix)):],
            query=dict(request.query_params),
            method=request.method,
            headers=dict(request.headers),
        )


@dataclass(frozen=True)
class Resolution:
    origin: str
    candidates: list[str]
    filename: str


class Resolver(ABC):
    """Shared request flow; subclasses supply normalization and candidates."""

    name: ClassVar[str]
    usage: ClassVar[str]
    invalid_message: ClassVar[str]
    not_found_message: ClassVar[Optional[str]] = None

    def __init__(self, default_gateway: str) -> None:
        self.default_gateway = default_gateway.rstrip("/")

    @abstractmethod
    def resolve(self, context: RequestContext) -> Resolution:
        """Validate the request and pick the origin, candidates and filename."""

    async def handle(self, context: RequestContext, client: httpx.AsyncClient) -> Response:
        with TRACER.start_as_current_span(f"gateway.{self.name}.resolve") as span:
            resolution = self.resolve(context)
            RESOLVE_COUNTER.inc(resolver=self.name)
            span.set_attribute("cidgate.origin", resolution.origin)
            span.set_attribute("cidgate.candidates", len(resolution.candidates))
            LOGGER.debug(
                "resource_resolved",
                resolver=self.name,
                origin=resolution.origin,
                candidates=resolution.candidates,
                filename=resolution.filename,
            )
            return await proxy_candidates(
                client,
                method=context.method,
                origin=resolution.origin,
                candidates=resolution.candidates,
                request_headers=build_upstream_headers(context.headers),
                filename=resolution.filename,
                not_found_message=self.not_found_message,
            )


class CidResolver(Resolver):
    name = "ipfs"
    usage = "Usage: /api/ipfs/<CID>[/path/to/file]?filename=yourfile.pptx"
    invalid_message = "Invalid or missing CID."

    def __init__(self, default_gateway: str, namespace: str = IPFS_NAMESPACE) -> None:
        super().__init__(default_gateway)
        self.namespace = namespace

    def resolve(self, context: RequestContext) -> Resolution:
        identifier = normalize_cid_path(context.segments, usage=self.usage, invalid=self.invalid_message)
        return Resolution(
            origin=select_gateway(context.query, self.default_gateway),
            candidates=cid_candidates(identifier, self.namespace),
            filename=resolve_filename(context.segments, context.query),
        )


class GroveResolver(Resolver):
    name = "grove"
    usage = "Usage: /grove/<resourceId> or /grove?uri=lens://<resourceId>"
    invalid_message = "Invalid Grove resource."
    not_found_message = "Grove resource not found."

    def resolve(self, context: RequestContext) -> Resolution:
        raw = context.query.get("uri")
        if raw is None:
            raw = "/".join(context.segments)
        identifier = resolve_grove_identifier(raw, usage=self.usage, invalid=self.invalid_message)
        # name the file after the normalized locator, not the raw path or uri
        filename_segments = split_segments(identifier)
        return Resolution(
            origin=select_gateway(context.query, self.default_gateway),
            candidates=grove_candidates(identifier),
            filename=resolve_filename(filename_segments, context.query),
        )
