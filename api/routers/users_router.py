"""
User profile router.
"""
import logging

from fastapi import APIRouter, Depends

from api.database.repositories.kv_store import KVStoreRepository, get_kv_store
from api.middleware.auth import get_current_user
from api.models.user_models import (
    ProfileUpdateRequest,
    UserEnvelope,
    UserRecord,
    UserResponse,
)
from api.services.auth_service import AuthService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/users", tags=["users"])


@router.patch("/profile", response_model=UserEnvelope)
async def update_profile(
    request: ProfileUpdateRequest,
    current_user: UserRecord = Depends(get_current_user),
    store: KVStoreRepository = Depends(get_kv_store),
) -> UserEnvelope:
    """
    Update name, avatar and neighborhood of the current user.

    Only the fields present in the body are changed.
    """
    user = await AuthService(store).update_profile(current_user, request)
    return UserEnvelope(user=UserResponse.from_record(user))
