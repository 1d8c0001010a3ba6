"""
Authentication dependencies for FastAPI.
"""

import logging
from typing import Optional

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from api.database.repositories.kv_store import KVStoreRepository, get_kv_store
from api.middleware.request_id import set_user_email
from api.models.user_models import Role, UserRecord
from api.services.auth_service import AuthService
from api.services.errors import AuthError

logger = logging.getLogger(__name__)

# HTTP Bearer token scheme
security = HTTPBearer(auto_error=False)


def _unauthorized(detail: str = "Not authenticated", status_code: int = status.HTTP_401_UNAUTHORIZED):
    return HTTPException(
        status_code=status_code,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


async def _authenticate(
    credentials: HTTPAuthorizationCredentials,
    store: KVStoreRepository,
) -> UserRecord:
    """Verify the bearer token and tag the request's log lines with the user."""
    auth_service = AuthService(store)

    try:
        verify_result = await auth_service.verify_jwt(credentials.credentials)
    except AuthError as e:
        raise _unauthorized(e.message, e.status_code)

    set_user_email(verify_result.user.email)
    return verify_result.user


async def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    store: KVStoreRepository = Depends(get_kv_store),
) -> UserRecord:
    """
    FastAPI dependency to get the current authenticated user.

    Extracts JWT from Authorization header and validates it.

    Raises:
        HTTPException: If not authenticated or token is invalid
    """
    if not credentials:
        raise _unauthorized()

    return await _authenticate(credentials, store)


async def get_optional_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    store: KVStoreRepository = Depends(get_kv_store),
) -> Optional[UserRecord]:
    """
    FastAPI dependency to optionally get the current user.

    Returns None if no token is provided or the token is not valid.
    """
    if not credentials:
        return None

    try:
        return await _authenticate(credentials, store)
    except HTTPException:
        return None


async def get_current_staff(
    user: UserRecord = Depends(get_current_user),
) -> UserRecord:
    """
    FastAPI dependency for endpoints reserved to workers and admins.

    Raises:
        HTTPException: 403 for plain users
    """
    if not user.role.is_elevated:
        logger.warning(f"Staff endpoint refused for {user.email} (role={user.role.value})")
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Worker or admin privileges required",
        )
    return user


async def get_current_admin(
    user: UserRecord = Depends(get_current_user),
) -> UserRecord:
    """
    FastAPI dependency to get the current authenticated admin user.

    Raises:
        HTTPException: If not authenticated or not an admin
    """
    if user.role != Role.ADMIN:
        logger.warning(f"Admin endpoint refused for {user.email} (role={user.role.value})")
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Admin privileges required",
        )
    return user
