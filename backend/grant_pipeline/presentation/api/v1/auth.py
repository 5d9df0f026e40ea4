"""Shared-secret guards for admin and scheduled-trigger routes."""

import logging

from fastapi import Depends, Header, HTTPException, status

from grant_pipeline.application.services import TriggerAuthorizer
from grant_pipeline.domain.exceptions import UnauthorizedTriggerError
from grant_pipeline.infrastructure.dependencies import get_trigger_authorizer

logger = logging.getLogger(__name__)


async def require_admin(
    x_api_key: str | None = Header(default=None),
    authorizer: TriggerAuthorizer = Depends(get_trigger_authorizer),
) -> None:
    """Reject admin requests without the configured ``x-api-key``."""
    try:
        authorizer.verify_admin(x_api_key)
    except UnauthorizedTriggerError:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Unauthorized")


async def verify_trigger(
    authorization: str | None = Header(default=None),
    x_api_key: str | None = Header(default=None),
    authorizer: TriggerAuthorizer = Depends(get_trigger_authorizer),
) -> str:
    """Resolve who triggered a scheduled run: ``cron`` or ``admin``.

    Runs before any service touches the database, so a rejected trigger
    never leaves a job record behind.
    """
    try:
        return authorizer.verify(authorization=authorization, api_key=x_api_key)
    except UnauthorizedTriggerError:
        logger.warning("Rejected unauthorized trigger request")
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Unauthorized")
