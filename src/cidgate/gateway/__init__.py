"""Resolution and proxying of IPFS CIDs and Grove/Lens locators."""

from .identifiers import IdentifierError, InvalidIdentifier, MissingIdentifier
from .orchestrator import AttemptOutcome, proxy_candidates
from .resolvers import CidResolver, GroveResolver, RequestContext, Resolver

__all__ = [
    "AttemptOutcome",
    "CidResolver",
    "GroveResolver",
    "IdentifierError",
    "InvalidIdentifier",
    "MissingIdentifier",
    "RequestContext",
    "Resolver",
    "proxy_candidates",
]
