"""
Constants for PERMIT_CACHE.

Shared constants for key construction, the decision backend wire format
and environment-driven configuration.
"""

from typing import Final

# ============================================================================
# CANONICAL KEY CONSTANTS
# ============================================================================

KEY_SEGMENT_SEPARATOR: Final[str] = ";"
"""Separator between the segments of a canonical key."""

ACTION_SEGMENT: Final[str] = "action"
RESOURCE_SEGMENT: Final[str] = "resource"
USER_ATTRIBUTES_SEGMENT: Final[str] = "userAttributes"
RESOURCE_ATTRIBUTES_SEGMENT: Final[str] = "resourceAttributes"

TYPED_RESOURCE_SEPARATOR: Final[str] = ":"
"""Joins ``type`` and ``key`` of a ReBAC resource into its normalized form."""

# ============================================================================
# DECISION BACKEND CONSTANTS
# ============================================================================

DEFAULT_TIMEOUT_SECONDS: Final[float] = 10.0
"""Default timeout for a single decision backend request (seconds)."""

DENIAL_STATUS_CODE: Final[int] = 403
"""Status code the backend uses for an explicit denial."""

SUPPORTED_CHECK_METHODS: Final[tuple[str, ...]] = ("GET", "POST")
"""HTTP methods accepted for single permission checks."""

DEFAULT_CHECK_METHOD: Final[str] = "GET"

BULK_REQUEST_FIELD: Final[str] = "resourcesAndActions"
BULK_RESPONSE_FIELD: Final[str] = "permittedList"

# ============================================================================
# CONFIGURATION CONSTANTS
# ============================================================================

ENV_LOGGED_IN_USER: Final[str] = "PERMIT_LOGGED_IN_USER"
ENV_BACKEND_URL: Final[str] = "PERMIT_BACKEND_URL"
ENV_DEFAULT_ANSWER: Final[str] = "PERMIT_DEFAULT_ANSWER"
ENV_CHECK_METHOD: Final[str] = "PERMIT_CHECK_METHOD"
ENV_TIMEOUT_SECONDS: Final[str] = "PERMIT_TIMEOUT_SECONDS"

TRUE_VALUES: Final[frozenset[str]] = frozenset({"1", "true", "yes", "on"})
FALSE_VALUES: Final[frozenset[str]] = frozenset({"0", "false", "no", "off"})

# ============================================================================
# METRICS CONSTANTS
# ============================================================================

MAX_METRICS: Final[int] = 1000
"""Maximum number of tagged metric series kept before evicting the oldest."""

FETCH_ONE_OPERATION: Final[str] = "decision.fetch_one"
FETCH_BULK_OPERATION: Final[str] = "decision.fetch_bulk"
