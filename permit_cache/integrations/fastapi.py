"""
FastAPI integration.

Lets routes gate on a cached verdict. The application stores its
PermitSession on ``app.state.permit_session`` (typically in its lifespan,
after ``load``/``load_bulk``) and declares:

    @app.get("/reports", dependencies=[Depends(require_permission("read", "report"))])
    async def list_reports():
        ...

This module is part of PERMIT_CACHE.
"""

import logging
from collections.abc import Mapping
from typing import Any, Optional

from fastapi import Depends, HTTPException, Request, status

from ..core.resources import ResourceLike, normalize_resource
from ..core.session import PermitSession

logger = logging.getLogger(__name__)

SESSION_STATE_ATTR = "permit_session"


async def get_permit_session(request: Request) -> PermitSession:
    """
    FastAPI Dependency: Retrieves the shared PermitSession from app.state.
    """
    session = getattr(request.app.state, SESSION_STATE_ATTR, None)
    if session is None:
        logger.critical("get_permit_session: PermitSession not found on app.state!")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Server configuration error: Permission cache not loaded.",
        )
    return session


def require_permission(
    action: str,
    resource: ResourceLike,
    resource_attributes: Optional[Mapping[str, Any]] = None,
):
    """
    Dependency Factory: Creates a dependency that checks a cached verdict.

    Args:
        action: The action to check.
        resource: The resource (bare name or typed ReBAC resource).
        resource_attributes: Optional resource attributes for the key.
    """
    # Malformed resources raise when the route is declared.
    subject = normalize_resource(resource)

    async def _check_permission(
        session: PermitSession = Depends(get_permit_session),
    ) -> PermitSession:
        if not session.check(action, resource, resource_attributes):
            logger.warning(
                f"require_permission: Access DENIED for user '{session.logged_in_user}' "
                f"to ('{subject}', '{action}')."
            )
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"You do not have permission to perform '{action}' on the resource '{subject}'.",
            )
        return session

    return _check_permission
