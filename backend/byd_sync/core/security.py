"""
Security utilities: shared bearer token for the sync endpoints.
"""

import secrets
from typing import Optional

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from byd_sync.core.config import Settings, get_settings

security = HTTPBearer(auto_error=False)


async def require_sync_token(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    settings: Settings = Depends(get_settings),
) -> None:
    """Dependency: when SYNC_API_TOKEN is set, require it as Bearer token. Open otherwise."""
    expected = settings.SYNC_API_TOKEN
    if not expected:
        return
    if not credentials:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
            headers={"WWW-Authenticate": "Bearer"},
        )
    if not secrets.compare_digest(credentials.credentials, expected):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid token",
            headers={"WWW-Authenticate": "Bearer"},
        )
