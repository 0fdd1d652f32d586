"""
Type definitions for PERMIT_CACHE core structures.

Holds the PermissionRequest value type together with TypedDict definitions
for the JSON shapes exchanged with the decision backend and exported to
CASL tooling.

This module is part of PERMIT_CACHE.
"""

from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, TypedDict

from ..exceptions import InvalidRequestError
from .resources import ResourceLike, normalize_resource

# ============================================================================
# Wire Types
# ============================================================================


class PermissionPayloadDict(TypedDict):
    """One permission query as sent to the decision backend."""

    action: str
    resource: str
    userAttributes: Dict[str, Any]
    resourceAttributes: Dict[str, Any]


class BulkCheckRequestDict(TypedDict):
    """Body of a bulk permission query."""

    resourcesAndActions: List[PermissionPayloadDict]


class CaslPermissionDict(TypedDict):
    """Audit log entry in CASL rule form."""

    action: str
    subject: str
    inverted: bool


# ============================================================================
# Permission Request
# ============================================================================


@dataclass
class PermissionRequest:
    """A single (action, resource, attributes) permission query."""

    action: str
    resource: ResourceLike
    user_attributes: Optional[Mapping[str, Any]] = None
    resource_attributes: Optional[Mapping[str, Any]] = None

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "PermissionRequest":
        """
        Build a request from a plain mapping.

        Accepts the camelCase keys used on the wire (``userAttributes``,
        ``resourceAttributes``) as well as their snake_case spelling.

        Raises:
            InvalidRequestError: If ``action`` or ``resource`` is missing
        """
        for field_name in ("action", "resource"):
            if field_name not in data:
                raise InvalidRequestError(
                    f"Permission request is missing '{field_name}'", field=field_name
                )
        return cls(
            action=data["action"],
            resource=data["resource"],
            user_attributes=data.get("userAttributes", data.get("user_attributes")),
            resource_attributes=data.get(
                "resourceAttributes", data.get("resource_attributes")
            ),
        )

    @property
    def subject(self) -> str:
        """Normalized resource name, as used for audit log subjects."""
        return normalize_resource(self.resource)

    def to_payload(self) -> PermissionPayloadDict:
        return {
            "action": self.action,
            "resource": self.subject,
            "userAttributes": dict(self.user_attributes or {}),
            "resourceAttributes": dict(self.resource_attributes or {}),
        }


def coerce_request(request: Any) -> PermissionRequest:
    """Accept either a PermissionRequest or a mapping describing one."""
    if isinstance(request, PermissionRequest):
        return request
    if isinstance(request, Mapping):
        return PermissionRequest.from_dict(request)
    raise InvalidRequestError(
        f"Expected PermissionRequest or mapping, got {type(request).__name__}"
    )
