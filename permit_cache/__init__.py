"""
PERMIT_CACHE - Client-side permission cache

Pre-loads permission verdicts from a remote policy-decision backend and
answers access checks synchronously from memory.
"""

# Core
from .core import (CaslPermission, LocalStateStore, NamedResource,
                   PermissionRequest, PermitSession, SessionStatus,
                   TypedResource, canonical_key, normalize_resource)
# Configuration
from .config import PermitConfig
# Errors
from .exceptions import (ConfigurationError, DecisionDenied,
                         InvalidRequestError, PermitCacheError,
                         ResourceIdentityError, TransportError)
# Transport
from .transport import DecisionFetcher, HttpDecisionFetcher

__version__ = "0.1.0"

__all__ = [
    # Core
    "PermitSession",
    "SessionStatus",
    "PermissionRequest",
    "NamedResource",
    "TypedResource",
    "LocalStateStore",
    "CaslPermission",
    "canonical_key",
    "normalize_resource",
    # Config
    "PermitConfig",
    # Transport
    "DecisionFetcher",
    "HttpDecisionFetcher",
    # Errors
    "PermitCacheError",
    "ConfigurationError",
    "ResourceIdentityError",
    "InvalidRequestError",
    "TransportError",
    "DecisionDenied",
]
