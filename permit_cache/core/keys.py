"""
Canonical cache keys.

A key is built from ordered segments joined by ``;``::

    action:<action>;resource:<resource>[;userAttributes:<json>][;resourceAttributes:<json>]

Attribute mappings are rebuilt with their top-level keys sorted before being
serialized, so two requests that differ only in attribute insertion order
land on the same key. Nested objects are serialized as given.

This module is part of PERMIT_CACHE.
"""

import json
from collections.abc import Mapping
from typing import TYPE_CHECKING, Any, Optional

from ..constants import (ACTION_SEGMENT, KEY_SEGMENT_SEPARATOR,
                         RESOURCE_ATTRIBUTES_SEGMENT, RESOURCE_SEGMENT,
                         USER_ATTRIBUTES_SEGMENT)
from ..exceptions import InvalidRequestError
from .resources import ResourceLike, normalize_resource

if TYPE_CHECKING:
    from .types import PermissionRequest


def serialize_attributes(attributes: Optional[Mapping[str, Any]]) -> Optional[str]:
    """
    Serialize an attribute mapping with its top-level keys sorted.

    Returns:
        Compact JSON text, or None when the mapping is empty or missing

    Raises:
        InvalidRequestError: If a top-level key is not a string
    """
    if not attributes:
        return None
    # json.dumps would turn 1 and "1" into the same key
    for key in attributes:
        if not isinstance(key, str):
            raise InvalidRequestError(
                f"Attribute keys must be strings, got {type(key).__name__}: {key!r}",
                field="attributes",
            )
    ordered = {key: attributes[key] for key in sorted(attributes)}
    # default=str keeps keying total for values json cannot encode natively
    return json.dumps(ordered, separators=(",", ":"), ensure_ascii=False, default=str)


def canonical_key(
    action: str,
    resource: ResourceLike,
    user_attributes: Optional[Mapping[str, Any]] = None,
    resource_attributes: Optional[Mapping[str, Any]] = None,
) -> str:
    """
    Derive the cache key for a permission query.

    Args:
        action: Action being checked (e.g. "read")
        resource: Bare resource name or typed ReBAC resource
        user_attributes: Attributes of the acting user
        resource_attributes: Attributes of the resource

    Returns:
        The canonical key string

    Raises:
        ResourceIdentityError: If the resource cannot be normalized
        InvalidRequestError: If an attribute map has a non-string key
    """
    segments = [
        f"{ACTION_SEGMENT}:{action}",
        f"{RESOURCE_SEGMENT}:{normalize_resource(resource)}",
    ]

    serialized_user = serialize_attributes(user_attributes)
    if serialized_user is not None:
        segments.append(f"{USER_ATTRIBUTES_SEGMENT}:{serialized_user}")

    serialized_resource = serialize_attributes(resource_attributes)
    if serialized_resource is not None:
        segments.append(f"{RESOURCE_ATTRIBUTES_SEGMENT}:{serialized_resource}")

    return KEY_SEGMENT_SEPARATOR.join(segments)


def request_key(request: "PermissionRequest") -> str:
    """Canonical key for a PermissionRequest."""
    return canonical_key(
        request.action, request.resource, request.user_attributes, request.resource_attributes
    )
