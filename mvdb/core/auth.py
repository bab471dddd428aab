"""API key authentication dependencies.

Reads are open to anonymous callers and to holders of the public key; every
write needs the private API key.

    Authorization: Bearer <API_KEY>
"""

import hmac
import logging

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials

from mvdb.config import Settings, get_settings

logger = logging.getLogger(__name__)

# Optional bearer token scheme - won't reject missing tokens,
# allowing the dependency to return a clear 401 instead of 403.
_bearer_scheme = HTTPBearer(auto_error=False)


def _matches(token: str, key: str | None) -> bool:
    if not key:
        return False
    # Constant-time comparison
    return hmac.compare_digest(token.encode("utf-8"), key.encode("utf-8"))


def _client_ip(request: Request) -> str:
    return request.client.host if request.client else "unknown"


async def require_write_access(
    request: Request,
    credentials: HTTPAuthorizationCredentials | None = Depends(_bearer_scheme),
    settings: Settings = Depends(get_settings),
) -> str:
    """
    Dependency for endpoints that modify the catalog.

    Returns the validated API key on success.
    """
    if not settings.api_key:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="API authentication not configured",
        )

    if not credentials:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="API key required",
            headers={"WWW-Authenticate": "Bearer"},
        )

    if not _matches(credentials.credentials, settings.api_key):
        logger.warning("Failed write auth attempt from %s", _client_ip(request))
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid API key",
            headers={"WWW-Authenticate": "Bearer"},
        )

    return credentials.credentials


async def allow_read_access(
    request: Request,
    credentials: HTTPAuthorizationCredentials | None = Depends(_bearer_scheme),
    settings: Settings = Depends(get_settings),
) -> str | None:
    """
    Dependency for read endpoints.

    No token, the public key or the write key are all accepted. A token that
    matches neither key is rejected so a misconfigured client notices.
    """
    if not credentials:
        return None

    token = credentials.credentials
    if _matches(token, settings.public_api_key) or _matches(token, settings.api_key):
        return token

    logger.warning("Rejected read token from %s", _client_ip(request))
    raise HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Invalid API key",
        headers={"WWW-Authenticate": "Bearer"},
    )
