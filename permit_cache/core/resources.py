"""
Resource identities.

A resource is either a bare name (``"file"``) or a ReBAC resource made of
a ``type`` and a ``key`` (``{"type": "file", "key": "f1"}``). Both collapse
to a single string form through ``normalize_resource``: the raw name, or
``type:key``. This means ``TypedResource("file", "f1")`` and the bare
name ``"file:f1"`` address the same cached verdict.

This module is part of PERMIT_CACHE.
"""

from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any, Union

from ..constants import TYPED_RESOURCE_SEPARATOR
from ..exceptions import ResourceIdentityError


@dataclass(frozen=True)
class NamedResource:
    """A resource addressed by a bare name."""

    name: str

    def normalized(self) -> str:
        return self.name


@dataclass(frozen=True)
class TypedResource:
    """A relationship-based (ReBAC) resource identified by type and key."""

    type: str
    key: str

    def __post_init__(self) -> None:
        for field_name in ("type", "key"):
            value = getattr(self, field_name)
            if not isinstance(value, str) or not value:
                raise ResourceIdentityError(
                    f"Typed resource requires a non-empty string '{field_name}'",
                    resource={"type": self.type, "key": self.key},
                )

    def normalized(self) -> str:
        return f"{self.type}{TYPED_RESOURCE_SEPARATOR}{self.key}"

    def to_dict(self) -> dict[str, str]:
        return {"type": self.type, "key": self.key}


ResourceIdentity = Union[NamedResource, TypedResource]

# Anything callers may hand in where a resource is expected.
ResourceLike = Union[str, Mapping[str, Any], NamedResource, TypedResource]


def as_resource_identity(resource: ResourceLike) -> ResourceIdentity:
    """
    Coerce a caller-supplied resource into a ResourceIdentity.

    Args:
        resource: A bare name, a ``{"type", "key"}`` mapping, or an
                  already-built NamedResource / TypedResource

    Returns:
        The matching ResourceIdentity variant

    Raises:
        ResourceIdentityError: If the value is not a recognised resource form
    """
    if isinstance(resource, (NamedResource, TypedResource)):
        return resource
    if isinstance(resource, str):
        return NamedResource(resource)
    if isinstance(resource, Mapping):
        if "type" not in resource or "key" not in resource:
            raise ResourceIdentityError(
                "Typed resource mapping must contain 'type' and 'key'", resource=resource
            )
        return TypedResource(type=resource["type"], key=resource["key"])
    raise ResourceIdentityError(
        f"Unsupported resource type: {type(resource).__name__}", resource=resource
    )


def normalize_resource(resource: ResourceLike) -> str:
    """Return the canonical string form of a resource."""
    return as_resource_identity(resource).normalized()
