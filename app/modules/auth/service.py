import hashlib
import logging
import time
from typing import Any, Callable, Dict, Optional

from supabase import Client

from app.core.errors import AuthenticationError, SecurityError, ValidationError
from app.modules.auth.schemas import LoginRequest, RegisterRequest, TokenResponse, RegisterResponse
from app.modules.security.validation import validate_email, validate_password, sanitize_input

logger = logging.getLogger(__name__)

USER_CACHE_TTL_SECONDS = 60
USER_CACHE_MAX_SIZE = 500


class UserCache:
    """Bearer token -> resolved user, kept briefly so the 2FA routes of one
    page load do not each call Supabase Auth. Keys are token digests."""

    def __init__(
        self,
        ttl_seconds: float = USER_CACHE_TTL_SECONDS,
        max_size: int = USER_CACHE_MAX_SIZE,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.ttl_seconds = ttl_seconds
        self.max_size = max_size
        self.clock = clock
        self._entries: Dict[str, tuple] = {}

    @staticmethod
    def _key(token: str) -> str:
        return hashlib.sha256(token.encode()).hexdigest()

    def get(self, token: str) -> Optional[Dict[str, Any]]:
        key = self._key(token)
        entry = self._entries.get(key)
        if entry is None:
            return None
        user, expires = entry
        if self.clock() >= expires:
            del self._entries[key]
            return None
        return user

    def put(self, token: str, user: Dict[str, Any]) -> None:
        now = self.clock()
        if len(self._entries) >= self.max_size:
            self._entries = {k: v for k, v in self._entries.items() if v[1] > now}
        if len(self._entries) < self.max_size:
            self._entries[self._key(token)] = (user, now + self.ttl_seconds)

    def drop(self, token: str) -> None:
        self._entries.pop(self._key(token), None)

    def __len__(self) -> int:
        return len(self._entries)


user_cache = UserCache()


class AuthService:
    def __init__(self, supabase: Client, cache: UserCache = user_cache):
        self.supabase = supabase
        self.cache = cache

    def register(self, register_data: RegisterRequest) -> RegisterResponse:
        """Register a new user using Supabase Auth after email/password checks"""
        email_check = validate_email(register_data.email)
        if not email_check.valid:
            raise ValidationError(email_check.reason or "Invalid email")

        password_check = validate_password(register_data.password)
        if not password_check.valid:
            raise ValidationError("Password is too weak: " + "; ".join(password_check.feedback))

        user_metadata = {}
        if register_data.full_name:
            user_metadata["full_name"] = sanitize_input(register_data.full_name)

        try:
            auth_response = self.supabase.auth.sign_up({
                "email": register_data.email,
                "password": register_data.password,
                "options": {"data": user_metadata},
            })
        except Exception as e:
            if "already" in str(e).lower():
                raise ValidationError("User already exists")
            logger.error(f"Registration failed: {e}")
            raise SecurityError("Registration failed")

        if not auth_response.user:
            raise ValidationError("Failed to register user")

        logger.info(f"Registered user {auth_response.user.id}")
        return RegisterResponse(
            user_id=auth_response.user.id,
            email=auth_response.user.email or register_data.email,
            message="User registered successfully"
        )

    def login(self, login_data: LoginRequest) -> TokenResponse:
        """Password sign-in; the second factor is checked separately via /security/2fa/verify"""
        try:
            auth_response = self.supabase.auth.sign_in_with_password({
                "email": login_data.email,
                "password": login_data.password,
            })
        except Exception as e:
            logger.info(f"Sign-in rejected: {e}")
            raise AuthenticationError("Invalid email or password")

        if not auth_response.user or not auth_response.session:
            raise AuthenticationError("Invalid email or password")

        return TokenResponse(
            access_token=auth_response.session.access_token,
            token_type="bearer",
            user_id=auth_response.user.id,
            email=auth_response.user.email or login_data.email
        )

    def get_current_user(self, token: str) -> Dict[str, Any]:
        """Resolve a bearer token to {"id", "email"}."""
        cached = self.cache.get(token)
        if cached is not None:
            return cached

        try:
            user_response = self.supabase.auth.get_user(jwt=token)
        except Exception as e:
            logger.info(f"Token rejected by Supabase Auth: {e}")
            raise AuthenticationError("Invalid or expired token")

        if not user_response or not user_response.user:
            raise AuthenticationError("Invalid or expired token")

        user = {"id": user_response.user.id, "email": user_response.user.email}
        self.cache.put(token, user)
        return user

    def logout(self, token: str) -> None:
        self.cache.drop(token)
        try:
            self.supabase.auth.sign_out()
        except Exception as e:
            # The JWT stays valid until expiry; only the cached user is dropped
            logger.warning(f"Supabase sign-out failed: {e}")
