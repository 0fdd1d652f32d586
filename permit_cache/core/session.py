"""
Permission Session

The session controller: loads verdicts for the logged-in user from the
decision backend and answers ``check`` calls synchronously from memory.

This module is part of PERMIT_CACHE.

Lifecycle:
    UNINITIALIZED --load/load_bulk--> LOADING --done--> INITIALIZED
    any state --reset--> UNINITIALIZED

``load`` and ``load_bulk`` only run from UNINITIALIZED; later calls are
no-ops until ``reset``. The UNINITIALIZED -> LOADING transition happens
under an asyncio.Lock so two concurrent loads cannot both start.

Usage:
    async with PermitSession(
        logged_in_user="alice",
        backend_url="https://pdp.example.com/check",
    ) as permit:
        await permit.load_bulk([
            {"action": "read", "resource": "file"},
            {"action": "write", "resource": "file"},
        ])
        if permit.check("read", "file"):
            ...
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Iterable, Mapping
from dataclasses import replace
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple

from ..config import PermitConfig, validate_session_settings
from ..constants import DEFAULT_CHECK_METHOD, DEFAULT_TIMEOUT_SECONDS
from ..exceptions import (InvalidRequestError, ResourceIdentityError,
                          TransportError)
from ..observability.logging import get_logger, log_operation
from ..transport.fetcher import DecisionFetcher, HttpDecisionFetcher
from .keys import canonical_key, request_key
from .resources import ResourceLike
from .state import CaslPermission, LocalStateStore
from .types import CaslPermissionDict, PermissionRequest, coerce_request


class SessionStatus(str, Enum):
    """Initialization status of a session."""

    UNINITIALIZED = "uninitialized"
    LOADING = "loading"
    INITIALIZED = "initialized"


class PermitSession:
    """
    Client-side permission cache for one logged-in user.

    Each session owns its own state store and audit log; sessions never
    share state.
    """

    def __init__(
        self,
        logged_in_user: str,
        backend_url: str,
        default_answer_if_not_exist: bool = False,
        user_attributes: Optional[Mapping[str, Any]] = None,
        headers: Optional[Mapping[str, str]] = None,
        method: str = DEFAULT_CHECK_METHOD,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
        fetcher: Optional[DecisionFetcher] = None,
    ):
        """
        Args:
            logged_in_user: User the verdicts are fetched for
            backend_url: Decision backend check URL
            default_answer_if_not_exist: Verdict returned by ``check`` for unseen
                                         keys and used when a single fetch fails
            user_attributes: Static attributes of the logged-in user, used for
                             keys and payloads when a call passes none
            headers: Headers forwarded verbatim to the backend
            method: HTTP method for single checks (GET or POST)
            timeout: Backend request timeout in seconds
            fetcher: Custom DecisionFetcher; defaults to an HttpDecisionFetcher
                     owned (and closed) by the session

        Raises:
            ConfigurationError: If the user or backend URL is missing, or the
                                method/timeout is invalid
        """
        method = method.upper() if isinstance(method, str) else method
        validate_session_settings(logged_in_user, backend_url, method, timeout)

        self.logged_in_user = logged_in_user
        self.backend_url = backend_url
        self.default_answer_if_not_exist = bool(default_answer_if_not_exist)
        self.user_attributes: Optional[Dict[str, Any]] = (
            dict(user_attributes) if user_attributes else None
        )
        self.headers: Dict[str, str] = dict(headers or {})
        self.method = method
        self.timeout = timeout

        self._owns_fetcher = fetcher is None
        self._fetcher: DecisionFetcher = fetcher or HttpDecisionFetcher(timeout=timeout)

        self._store = LocalStateStore()
        self._status = SessionStatus.UNINITIALIZED
        self._init_lock = asyncio.Lock()
        # Bumped by reset(); loads started under an older generation stop recording.
        self._generation = 0

        self._logger = get_logger(__name__, logged_in_user=logged_in_user)

    @classmethod
    def from_config(
        cls, config: PermitConfig, fetcher: Optional[DecisionFetcher] = None
    ) -> "PermitSession":
        """Build a session from a PermitConfig (validated first)."""
        config.validate()
        return cls(
            logged_in_user=config.logged_in_user,
            backend_url=config.backend_url,
            default_answer_if_not_exist=config.default_answer_if_not_exist,
            user_attributes=config.user_attributes,
            headers=config.headers,
            method=config.method,
            timeout=config.timeout,
            fetcher=fetcher,
        )

    # ------------------------------------------------------------------
    # Introspection
    # ------------------------------------------------------------------

    @property
    def status(self) -> SessionStatus:
        return self._status

    @property
    def is_initialized(self) -> bool:
        return self._status is SessionStatus.INITIALIZED

    @property
    def state(self) -> Mapping[str, bool]:
        """Read-only view of the cached verdicts, keyed by canonical key."""
        return self._store.snapshot()

    @property
    def audit_log(self) -> Tuple[CaslPermission, ...]:
        return self._store.audit_log

    def get_casl_json(self) -> List[CaslPermissionDict]:
        """Audit log as CASL rules: ``[{"action", "subject", "inverted"}, ...]``."""
        return self._store.get_casl_json()

    # ------------------------------------------------------------------
    # Loading
    # ------------------------------------------------------------------

    def _resolve(self, request: Any) -> PermissionRequest:
        """Coerce, apply session-level user attributes and check the request is keyable."""
        request = coerce_request(request)
        if request.user_attributes is None and self.user_attributes:
            request = replace(request, user_attributes=dict(self.user_attributes))
        request_key(request)
        return request

    def _resolve_all(self, requests: Iterable[Any], generation: int) -> List[PermissionRequest]:
        """Resolve every request before any fetch; a bad one releases the claimed load."""
        try:
            return [self._resolve(request) for request in requests]
        except (ResourceIdentityError, InvalidRequestError):
            self._finish_initialization(generation, completed=False)
            raise

    async def _claim_initialization(self, operation: str) -> Optional[int]:
        """
        Move UNINITIALIZED -> LOADING atomically.

        Returns:
            The generation the load runs under, or None if the session was
            not UNINITIALIZED (the load is then a no-op)
        """
        async with self._init_lock:
            if self._status is not SessionStatus.UNINITIALIZED:
                self._logger.debug(
                    f"{operation} skipped: session is {self._status.value}"
                )
                return None
            self._status = SessionStatus.LOADING
            return self._generation

    def _finish_initialization(self, generation: int, completed: bool) -> None:
        # A reset() during the load already moved the session on.
        if generation != self._generation:
            return
        self._status = SessionStatus.INITIALIZED if completed else SessionStatus.UNINITIALIZED

    async def load(self, requests: Iterable[Any]) -> None:
        """
        Fetch and cache a verdict for each request, one at a time.

        No-op unless the session is UNINITIALIZED. Requests are fetched
        sequentially in input order; a later duplicate overwrites an earlier
        verdict. Failed fetches fall back to the default verdict.

        Args:
            requests: PermissionRequest objects or mappings with ``action``,
                      ``resource`` and optional attribute maps

        Raises:
            ResourceIdentityError: If any request has a malformed resource
            InvalidRequestError: If any request is missing a field or has
                                 non-string attribute keys
        """
        generation = await self._claim_initialization("load")
        if generation is None:
            return
        resolved = self._resolve_all(requests, generation)

        start = time.monotonic()
        completed = False
        try:
            for request in resolved:
                verdict = await self._fetcher.fetch_one(
                    self.backend_url,
                    self.logged_in_user,
                    request,
                    default_verdict=self.default_answer_if_not_exist,
                    headers=self.headers,
                    method=self.method,
                    timeout=self.timeout,
                )
                if generation != self._generation:
                    self._logger.info("load interrupted by reset, discarding remaining verdicts")
                    return
                self._store.record(request, verdict)
            completed = True
        finally:
            self._finish_initialization(generation, completed)

        log_operation(
            self._logger,
            "session.load",
            duration_ms=(time.monotonic() - start) * 1000,
            requests=len(resolved),
        )

    async def load_bulk(self, requests: Iterable[Any]) -> None:
        """
        Fetch and cache verdicts for all requests with a single bulk call.

        No-op unless the session is UNINITIALIZED. Verdicts are matched to
        requests by position.

        Raises:
            ResourceIdentityError: If any request has a malformed resource
            InvalidRequestError: If any request is missing a field or has
                                 non-string attribute keys
            TransportError: If the bulk fetch fails; the session goes back to
                            UNINITIALIZED so the load can be retried
        """
        generation = await self._claim_initialization("load_bulk")
        if generation is None:
            return
        resolved = self._resolve_all(requests, generation)

        start = time.monotonic()
        completed = False
        try:
            verdicts = await self._fetcher.fetch_bulk(
                self.backend_url,
                self.logged_in_user,
                resolved,
                headers=self.headers,
                timeout=self.timeout,
            )
            if generation != self._generation:
                self._logger.info("load_bulk interrupted by reset, discarding verdicts")
                return
            if len(verdicts) != len(resolved):
                raise TransportError(
                    f"Bulk check returned {len(verdicts)} verdicts for {len(resolved)} requests",
                    url=self.backend_url,
                )
            for request, verdict in zip(resolved, verdicts):
                self._store.record(request, verdict)
            completed = True
        except Exception:
            log_operation(
                self._logger,
                "session.load_bulk",
                level=logging.ERROR,
                success=False,
                duration_ms=(time.monotonic() - start) * 1000,
                requests=len(resolved),
            )
            raise
        finally:
            self._finish_initialization(generation, completed)

        log_operation(
            self._logger,
            "session.load_bulk",
            duration_ms=(time.monotonic() - start) * 1000,
            requests=len(resolved),
        )

    async def add_key_to_state(
        self,
        action: str,
        resource: ResourceLike,
        resource_attributes: Optional[Mapping[str, Any]] = None,
        user_attributes: Optional[Mapping[str, Any]] = None,
    ) -> None:
        """
        Fetch one verdict and add it to the cache, regardless of the
        initialization status. Used to patch in permissions discovered after
        the initial load.

        Raises:
            ResourceIdentityError: If the resource is malformed
            InvalidRequestError: If an attribute map has a non-string key
        """
        request = self._resolve(
            PermissionRequest(
                action=action,
                resource=resource,
                user_attributes=user_attributes,
                resource_attributes=resource_attributes,
            )
        )
        generation = self._generation
        verdict = await self._fetcher.fetch_one(
            self.backend_url,
            self.logged_in_user,
            request,
            default_verdict=self.default_answer_if_not_exist,
            headers=self.headers,
            method=self.method,
            timeout=self.timeout,
        )
        if generation != self._generation:
            self._logger.info(f"Discarding verdict for '{action}' fetched before reset")
            return
        self._store.record(request, verdict)

    # ------------------------------------------------------------------
    # Lookup
    # ------------------------------------------------------------------

    def check(
        self,
        action: str,
        resource: ResourceLike,
        resource_attributes: Optional[Mapping[str, Any]] = None,
        user_attributes: Optional[Mapping[str, Any]] = None,
    ) -> bool:
        """
        Return the cached verdict, or ``default_answer_if_not_exist`` on a miss.

        Synchronous and I/O free. ``user_attributes=None`` means the
        session's static user attributes.
        """
        if user_attributes is None:
            user_attributes = self.user_attributes
        try:
            key = canonical_key(action, resource, user_attributes, resource_attributes)
        except (ResourceIdentityError, InvalidRequestError) as e:
            self._logger.warning(f"check on malformed request, using default verdict: {e}")
            return self.default_answer_if_not_exist

        verdict = self._store.get(key)
        if verdict is None:
            return self.default_answer_if_not_exist
        return verdict

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def reset(self) -> None:
        """Clear all verdicts and the audit log and return to UNINITIALIZED."""
        self._generation += 1
        self._store.clear()
        self._status = SessionStatus.UNINITIALIZED
        self._logger.info("Permission session reset")

    async def aclose(self) -> None:
        """Release the fetcher's HTTP client if the session created it."""
        if self._owns_fetcher and isinstance(self._fetcher, HttpDecisionFetcher):
            await self._fetcher.aclose()

    async def __aenter__(self) -> "PermitSession":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.aclose()

    def __repr__(self) -> str:
        return (
            f"PermitSession(logged_in_user={self.logged_in_user!r}, "
            f"backend_url={self.backend_url!r}, status={self._status.value})"
        )
