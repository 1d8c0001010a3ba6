"""
Authentication router: sign-up, sign-in and the current user.
"""
import logging

from fastapi import APIRouter, Depends, HTTPException, status

from api.database.repositories.kv_store import KVStoreRepository, get_kv_store
from api.middleware.auth import get_current_user
from api.models.user_models import (
    Session,
    SignInRequest,
    SignInResponse,
    SignUpRequest,
    SignUpResponse,
    UserEnvelope,
    UserRecord,
    UserResponse,
)
from api.services.auth_service import AuthService
from api.services.errors import AuthError

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["auth"])


@router.post("/signup", response_model=SignUpResponse, status_code=status.HTTP_201_CREATED)
async def sign_up(
    request: SignUpRequest,
    store: KVStoreRepository = Depends(get_kv_store),
) -> SignUpResponse:
    """
    Create a new account.

    Accounts created here always get the ``user`` role.

    Raises:
        HTTPException: 409 if the e-mail address is taken
    """
    auth_service = AuthService(store)

    try:
        user = await auth_service.sign_up(request)
    except AuthError as e:
        logger.warning(f"Sign-up failed for {request.email}: {e.message}")
        raise HTTPException(status_code=e.status_code, detail=e.message)

    return SignUpResponse(user=UserResponse.from_record(user))


@router.post("/signin", response_model=SignInResponse)
async def sign_in(
    request: SignInRequest,
    store: KVStoreRepository = Depends(get_kv_store),
) -> SignInResponse:
    """
    Sign in with e-mail and password.

    Returns:
        The user and a session holding the bearer token
    """
    auth_service = AuthService(store)

    try:
        user, token, expires_at = await auth_service.sign_in(request.email, request.password)
    except AuthError as e:
        raise HTTPException(
            status_code=e.status_code,
            detail=e.message,
            headers={"WWW-Authenticate": "Bearer"},
        )

    return SignInResponse(
        user=UserResponse.from_record(user),
        session=Session(access_token=token, expires_at=expires_at),
    )


@router.get("/me", response_model=UserEnvelope)
async def get_current_user_info(
    current_user: UserRecord = Depends(get_current_user),
) -> UserEnvelope:
    """
    Get current authenticated user information.

    Requires a valid JWT in the Authorization header.
    """
    return UserEnvelope(user=UserResponse.from_record(current_user))
