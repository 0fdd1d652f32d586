"""
Core permission cache components.

This module is part of PERMIT_CACHE.
"""

# Order matters: the transport layer imports core.types while session loads.
from .resources import (NamedResource, ResourceIdentity, ResourceLike,
                        TypedResource, as_resource_identity,
                        normalize_resource)
from .keys import canonical_key, request_key, serialize_attributes
from .types import (BulkCheckRequestDict, CaslPermissionDict,
                    PermissionPayloadDict, PermissionRequest, coerce_request)
from .state import CaslPermission, LocalStateStore
from .session import PermitSession, SessionStatus

__all__ = [
    # Resources
    "NamedResource",
    "TypedResource",
    "ResourceIdentity",
    "ResourceLike",
    "as_resource_identity",
    "normalize_resource",
    # Keys
    "canonical_key",
    "request_key",
    "serialize_attributes",
    # Types
    "PermissionRequest",
    "PermissionPayloadDict",
    "BulkCheckRequestDict",
    "CaslPermissionDict",
    "coerce_request",
    # State
    "CaslPermission",
    "LocalStateStore",
    # Session
    "PermitSession",
    "SessionStatus",
]
