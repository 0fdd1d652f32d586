"""
Decision Fetcher Interface

Defines the pluggable interface used by sessions to obtain verdicts from the
remote policy-decision backend, and the default httpx implementation.

This module is part of PERMIT_CACHE.

Wire contract:
    Single check:
        GET  {backend_url}?user=<user>&action=<action>&resource=<resource>
        POST {backend_url}?user=<user>
             {"action", "resource", "userAttributes", "resourceAttributes"}
        -> {"permitted": bool}; status 403 is an explicit denial
    Bulk check:
        POST {backend_url}?user=<user>
             {"resourcesAndActions": [{...}, ...]}
        -> {"permittedList": [bool, ...]} aligned with the request list
"""

from __future__ import annotations

import logging
import time
from collections.abc import Mapping, Sequence
from typing import List, Optional, Protocol

import httpx
from pydantic import ValidationError

from ..constants import (BULK_REQUEST_FIELD, DEFAULT_CHECK_METHOD,
                         DEFAULT_TIMEOUT_SECONDS, DENIAL_STATUS_CODE,
                         FETCH_BULK_OPERATION, FETCH_ONE_OPERATION)
from ..core.types import BulkCheckRequestDict, PermissionRequest
from ..exceptions import DecisionDenied, TransportError
from ..observability.metrics import record_fetch
from .schemas import BulkCheckResponse, SingleCheckResponse

logger = logging.getLogger(__name__)


class DecisionFetcher(Protocol):
    """
    Defines the "contract" for anything that can fetch verdicts for a session.
    """

    async def fetch_one(
        self,
        backend_url: str,
        user: str,
        request: PermissionRequest,
        *,
        default_verdict: bool,
        headers: Optional[Mapping[str, str]] = None,
        method: str = DEFAULT_CHECK_METHOD,
        timeout: Optional[float] = None,
    ) -> bool:
        """
        Fetch one verdict. Never raises for transport problems: an explicit
        denial yields False, any other failure yields ``default_verdict``.
        """
        ...

    async def fetch_bulk(
        self,
        backend_url: str,
        user: str,
        requests: Sequence[PermissionRequest],
        *,
        headers: Optional[Mapping[str, str]] = None,
        timeout: Optional[float] = None,
    ) -> List[bool]:
        """
        Fetch verdicts for many requests in one call. Result index i answers
        request index i. Any failure raises TransportError.
        """
        ...


def _elapsed_ms(start: float) -> float:
    return (time.monotonic() - start) * 1000


class HttpDecisionFetcher:
    """
    Implements the DecisionFetcher interface over HTTP using httpx.

    An injected ``httpx.AsyncClient`` is used as-is and left open on
    ``aclose``; otherwise a client is created on first use and owned by the
    fetcher.
    """

    def __init__(
        self,
        client: Optional[httpx.AsyncClient] = None,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
    ):
        self._client = client
        self._owns_client = client is None
        self._timeout = timeout

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self._timeout)
        return self._client

    def _resolve_timeout(self, timeout: Optional[float]) -> float:
        return self._timeout if timeout is None else timeout

    async def aclose(self) -> None:
        """Close the underlying client if this fetcher created it."""
        if self._owns_client and self._client is not None:
            await self._client.aclose()
            self._client = None

    async def _send_one(
        self,
        backend_url: str,
        user: str,
        request: PermissionRequest,
        headers: Optional[Mapping[str, str]],
        method: str,
        timeout: float,
    ) -> httpx.Response:
        client = self._get_client()
        if method.upper() == "POST":
            return await client.post(
                backend_url,
                params={"user": user},
                json=request.to_payload(),
                headers=dict(headers or {}),
                timeout=timeout,
            )
        return await client.get(
            backend_url,
            params={"user": user, "action": request.action, "resource": request.subject},
            headers=dict(headers or {}),
            timeout=timeout,
        )

    @staticmethod
    def _parse_one(response: httpx.Response, backend_url: str) -> bool:
        if response.status_code == DENIAL_STATUS_CODE:
            raise DecisionDenied(url=backend_url)
        if response.is_error:
            raise TransportError(
                f"Decision backend answered {response.status_code}",
                url=backend_url,
                status_code=response.status_code,
            )
        try:
            body = SingleCheckResponse.model_validate(response.json())
        except (ValueError, ValidationError) as e:
            raise TransportError(
                f"Malformed single check response: {e}",
                url=backend_url,
                status_code=response.status_code,
            ) from e
        return body.permitted

    async def fetch_one(
        self,
        backend_url: str,
        user: str,
        request: PermissionRequest,
        *,
        default_verdict: bool,
        headers: Optional[Mapping[str, str]] = None,
        method: str = DEFAULT_CHECK_METHOD,
        timeout: Optional[float] = None,
    ) -> bool:
        start = time.monotonic()
        try:
            response = await self._send_one(
                backend_url, user, request, headers, method, self._resolve_timeout(timeout)
            )
            verdict = self._parse_one(response, backend_url)
        except DecisionDenied:
            logger.debug(f"Backend denied '{request.action}' on '{request.subject}' for '{user}'")
            record_fetch(FETCH_ONE_OPERATION, _elapsed_ms(start), denied=1, method=method)
            return False
        # InvalidURL and UnicodeEncodeError are raised while httpx builds the request
        except (httpx.HTTPError, httpx.InvalidURL, UnicodeEncodeError, TransportError) as e:
            logger.warning(
                f"Permission check for ('{request.action}', '{request.subject}') failed, "
                f"using default verdict {default_verdict}: {e}"
            )
            record_fetch(FETCH_ONE_OPERATION, _elapsed_ms(start), defaulted=True, method=method)
            return default_verdict

        record_fetch(
            FETCH_ONE_OPERATION,
            _elapsed_ms(start),
            allowed=int(verdict),
            denied=int(not verdict),
            method=method,
        )
        return verdict

    async def fetch_bulk(
        self,
        backend_url: str,
        user: str,
        requests: Sequence[PermissionRequest],
        *,
        headers: Optional[Mapping[str, str]] = None,
        timeout: Optional[float] = None,
    ) -> List[bool]:
        start = time.monotonic()
        payload: BulkCheckRequestDict = {
            BULK_REQUEST_FIELD: [request.to_payload() for request in requests]
        }
        try:
            response = await self._get_client().post(
                backend_url,
                params={"user": user},
                json=payload,
                headers=dict(headers or {}),
                timeout=self._resolve_timeout(timeout),
            )
            permitted_list = self._parse_bulk(response, backend_url, len(requests))
        except (httpx.HTTPError, httpx.InvalidURL, UnicodeEncodeError) as e:
            record_fetch(FETCH_BULK_OPERATION, _elapsed_ms(start), error=True)
            logger.error(f"Bulk permission request to {backend_url} failed: {e}", exc_info=True)
            raise TransportError(f"Bulk permission request failed: {e}", url=backend_url) from e
        except TransportError:
            record_fetch(FETCH_BULK_OPERATION, _elapsed_ms(start), error=True)
            logger.error(f"Bulk permission request to {backend_url} failed", exc_info=True)
            raise

        allowed = sum(1 for verdict in permitted_list if verdict)
        record_fetch(
            FETCH_BULK_OPERATION,
            _elapsed_ms(start),
            allowed=allowed,
            denied=len(permitted_list) - allowed,
        )
        return permitted_list

    @staticmethod
    def _parse_bulk(response: httpx.Response, backend_url: str, expected: int) -> List[bool]:
        if response.is_error:
            raise TransportError(
                f"Decision backend answered {response.status_code} to bulk check",
                url=backend_url,
                status_code=response.status_code,
            )
        try:
            body = BulkCheckResponse.model_validate(response.json())
        except (ValueError, ValidationError) as e:
            raise TransportError(
                f"Malformed bulk check response: {e}",
                url=backend_url,
                status_code=response.status_code,
            ) from e
        if len(body.permitted_list) != expected:
            raise TransportError(
                f"Bulk check returned {len(body.permitted_list)} verdicts "
                f"for {expected} requests",
                url=backend_url,
                status_code=response.status_code,
            )
        return list(body.permitted_list)
