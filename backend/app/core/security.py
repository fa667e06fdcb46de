"""API key authentication for the E/M endpoints."""

import logging
import secrets
from typing import Annotated

from fastapi import Depends, HTTPException, Request, Security, status
from fastapi.security import APIKeyHeader

from app.core.audit import log_auth_event
from app.core.config import settings

logger = logging.getLogger(__name__)

api_key_header = APIKeyHeader(
    name=settings.api_key_header,
    auto_error=False,  # Missing keys are audited before rejecting
)


def _key_matches(candidate: str) -> bool:
    # An unset server key never matches, not even an empty header
    if not settings.api_key:
        return False
    return secrets.compare_digest(candidate.encode("utf-8"), settings.api_key.encode("utf-8"))


def verify_api_key(
    request: Request,
    api_key: Annotated[str | None, Security(api_key_header)],
) -> str | None:
    """Check the request's API key when authentication is enabled.

    Every decision is written to the audit log with the client address.
    Missing key is 401, wrong key is 403. With auth disabled nothing is
    checked and None is returned.
    """
    if not settings.auth_enabled:
        return None

    ip_address = request.client.host if request.client else None

    if api_key is None:
        logger.warning("Missing API key in request")
        log_auth_event(success=False, ip_address=ip_address, reason="missing api key")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Missing API key",
            headers={"WWW-Authenticate": "ApiKey"},
        )

    if not _key_matches(api_key):
        logger.warning("Invalid API key attempt")
        log_auth_event(success=False, ip_address=ip_address, reason="invalid api key")
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Invalid API key",
        )

    log_auth_event(success=True, ip_address=ip_address)
    return api_key


RequireAuth = Annotated[str | None, Depends(verify_api_key)]
