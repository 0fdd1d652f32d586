"""
Local state store and audit log.

The store maps canonical keys to verdicts. The audit log is an append-only
history of every recorded verdict in CASL rule form (``inverted`` means
denied); it is never deduplicated, so recording the same key twice leaves a
single verdict in the store but two entries in the log.

This module is part of PERMIT_CACHE.
"""

import logging
from collections.abc import Mapping
from dataclasses import dataclass
from types import MappingProxyType
from typing import Dict, List, Optional, Tuple

from .keys import request_key
from .types import CaslPermissionDict, PermissionRequest

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CaslPermission:
    """One audit log entry."""

    action: str
    subject: str
    inverted: bool  # True when the permission is denied

    def to_dict(self) -> CaslPermissionDict:
        return {"action": self.action, "subject": self.subject, "inverted": self.inverted}


class LocalStateStore:
    """
    Verdict cache owned by a single session.

    Not shared between sessions; all mutation goes through ``record`` and
    ``clear``.
    """

    def __init__(self) -> None:
        self._state: Dict[str, bool] = {}
        self._audit_log: List[CaslPermission] = []

    def record(self, request: PermissionRequest, verdict: bool) -> str:
        """
        Store a verdict and append it to the audit log.

        Args:
            request: The permission query the verdict answers, with any
                     session-level user attributes already applied
            verdict: True if allowed

        Returns:
            The canonical key the verdict was stored under
        """
        key = request_key(request)
        verdict = bool(verdict)
        self._state[key] = verdict
        self._audit_log.append(
            CaslPermission(action=request.action, subject=request.subject, inverted=not verdict)
        )
        logger.debug(f"Recorded verdict {verdict} for key '{key}'")
        return key

    def get(self, key: str) -> Optional[bool]:
        """Return the stored verdict, or None on a lookup miss."""
        return self._state.get(key)

    def snapshot(self) -> Mapping[str, bool]:
        """Read-only live view of the store."""
        return MappingProxyType(self._state)

    @property
    def audit_log(self) -> Tuple[CaslPermission, ...]:
        return tuple(self._audit_log)

    def get_casl_json(self) -> List[CaslPermissionDict]:
        return [entry.to_dict() for entry in self._audit_log]

    def clear(self) -> None:
        self._state.clear()
        self._audit_log.clear()

    def __contains__(self, key: object) -> bool:
        return key in self._state

    def __len__(self) -> int:
        return len(self._state)
