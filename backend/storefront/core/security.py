"""Service-to-service authentication"""
import logging
import secrets
from typing import Optional

from fastapi import Header, HTTPException, Request

security_logger = logging.getLogger("security")


def require_service_token(
    request: Request,
    authorization: Optional[str] = Header(None)
) -> str:
    """Dependency: require `Authorization: Bearer <key>` with a configured service key"""
    scheme, _, token = (authorization or "").partition(" ")
    if scheme.lower() != "bearer" or not token:
        security_logger.warning(f"Missing bearer token - Path: {request.url.path}")
        raise HTTPException(401, "Missing bearer token")

    accepted = request.app.state.settings.service_tokens
    if not any(secrets.compare_digest(token.strip(), key) for key in accepted):
        security_logger.warning(
            f"Invalid service token - "
            f"IP: {request.client.host if request.client else 'unknown'}, "
            f"Path: {request.url.path}"
        )
        raise HTTPException(401, "Invalid bearer token")

    return token
