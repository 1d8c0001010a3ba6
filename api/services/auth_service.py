"""
Authentication service for password accounts and JWT handling.

Accounts live in the key-value store under ``user:<id>``, with an
``user-email:<email>`` entry pointing at the id so sign-in does not need
a prefix scan.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Optional, Tuple
from uuid import uuid4

from jose import JWTError, jwt
from passlib.context import CryptContext

from api.config.settings import get_settings
from api.database.repositories.kv_store import KVStoreRepository
from api.models.user_models import (
    USER_EMAIL_KEY_PREFIX,
    USER_KEY_PREFIX,
    ProfileUpdateRequest,
    Role,
    SignUpRequest,
    UserRecord,
)
from api.services.errors import AuthError
from api.utils.time_utils import utc_now

logger = logging.getLogger(__name__)

pwd_context = CryptContext(schemes=["pbkdf2_sha256"], deprecated="auto")

# Accounts created on startup so every role can be tried out
DEMO_USERS = [
    {"email": "admin@grofvuil.nl", "password": "admin123", "name": "Admin", "role": Role.ADMIN},
    {"email": "werknemer@grofvuil.nl", "password": "werk123", "name": "Werknemer", "role": Role.WORKER},
    {"email": "user@example.nl", "password": "user123", "name": "Test Gebruiker", "role": Role.USER},
]


@dataclass
class VerifyResult:
    """Result of JWT verification."""

    user: UserRecord


class AuthService:
    """Service for authentication operations."""

    def __init__(self, store: KVStoreRepository):
        """
        Initialize auth service.

        Args:
            store: Key-value store repository
        """
        self.store = store
        self.settings = get_settings()

    async def get_user_by_id(self, user_id: str) -> Optional[UserRecord]:
        """
        Get user by ID.

        Args:
            user_id: User id without prefix

        Returns:
            UserRecord or None
        """
        value = await self.store.get(USER_KEY_PREFIX + user_id)
        return UserRecord.model_validate(value) if value else None

    async def get_user_by_email(self, email: str) -> Optional[UserRecord]:
        """Look a user up through the e-mail index."""
        index = await self.store.get(USER_EMAIL_KEY_PREFIX + email.strip().lower())
        if not index:
            return None
        return await self.get_user_by_id(index["id"])

    async def _save(self, user: UserRecord) -> None:
        await self.store.mset({
            USER_KEY_PREFIX + user.id: user.to_document(),
            USER_EMAIL_KEY_PREFIX + user.email: {"id": user.id},
        })

    async def sign_up(self, request: SignUpRequest, role: Role = Role.USER) -> UserRecord:
        """
        Create a new account.

        Public sign-up always gets the ``user`` role; elevated accounts are
        only created through ``ensure_demo_users``.

        Args:
            request: E-mail, password and display name
            role: Role of the new account

        Returns:
            The stored user

        Raises:
            AuthError: If the e-mail address is already registered
        """
        if await self.get_user_by_email(request.email):
            raise AuthError("A user with this email address already exists", status_code=409)

        user = UserRecord(
            id=uuid4().hex,
            email=request.email,
            name=request.name,
            role=role,
            password_hash=pwd_context.hash(request.password),
            created_at=utc_now(),
        )
        await self._save(user)

        logger.info(f"User signed up: {user.email} (role={user.role.value})")
        return user

    async def sign_in(self, email: str, password: str) -> Tuple[UserRecord, str, datetime]:
        """
        Verify credentials and issue an access token.

        Returns:
            Tuple of (UserRecord, JWT token, expiry)

        Raises:
            AuthError: If the credentials do not match
        """
        user = await self.get_user_by_email(email)
        if not user or not pwd_context.verify(password, user.password_hash):
            logger.warning(f"Failed sign-in for {email}")
            raise AuthError("Invalid email or password")

        token, expires_at = self.create_jwt(user)
        logger.info(f"User signed in: {user.email}")
        return user, token, expires_at

    def create_jwt(self, user: UserRecord) -> Tuple[str, datetime]:
        """
        Create a JWT token for a user.

        Args:
            user: UserRecord instance

        Returns:
            Tuple of (JWT token string, expiry)
        """
        now = utc_now()
        expire = now + timedelta(hours=self.settings.jwt_expire_hours)

        payload = {
            "sub": user.id,
            "email": user.email,
            "name": user.name,
            "role": user.role.value,
            "exp": expire,
            "iat": now,
        }

        token = jwt.encode(
            payload,
            self.settings.jwt_secret_key,
            algorithm=self.settings.jwt_algorithm,
        )

        return token, expire

    async def verify_jwt(self, token: str) -> VerifyResult:
        """
        Verify a JWT token and return the user.

        The user is reloaded from the store so role and profile changes
        take effect without a new token.

        Raises:
            AuthError: If token is invalid or user not found
        """
        try:
            payload = jwt.decode(
                token,
                self.settings.jwt_secret_key,
                algorithms=[self.settings.jwt_algorithm],
            )
        except JWTError as e:
            logger.warning(f"JWT verification failed: {e}")
            raise AuthError("Invalid or expired token")

        user_id = payload.get("sub")
        if not user_id:
            raise AuthError("Invalid token: missing user ID")

        user = await self.get_user_by_id(user_id)
        if not user:
            raise AuthError("User not found")

        return VerifyResult(user=user)

    async def update_profile(
        self, user: UserRecord, request: ProfileUpdateRequest
    ) -> UserRecord:
        """
        Apply the provided profile fields; omitted fields keep their value.
        """
        changes = request.model_dump(exclude_unset=True)
        # Avatar and neighborhood may be cleared, the name may not
        if changes.get("name") is None:
            changes.pop("name", None)
        if not changes:
            return user

        updated = user.model_copy(update=changes)
        await self.store.set(USER_KEY_PREFIX + updated.id, updated.to_document())

        logger.info(f"Profile updated for {user.email}: {sorted(changes)}")
        return updated

    async def ensure_demo_users(self) -> int:
        """
        Create the demo accounts that do not exist yet.

        Returns:
            Number of accounts created
        """
        created = 0
        for demo in DEMO_USERS:
            if await self.get_user_by_email(demo["email"]):
                continue
            request = SignUpRequest(email=demo["email"], password=demo["password"], name=demo["name"])
            await self.sign_up(request, role=demo["role"])
            created += 1
        if created:
            logger.info(f"Created {created} demo user(s)")
        return created
