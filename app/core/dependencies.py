"""
Core dependencies for route protection and service construction
"""

from fastapi import Depends, Security
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from app.config import settings
from app.database.supabase_client import get_supabase
from app.modules.auth.service import AuthService
from app.modules.security.encryption import SecureEncryption, get_encryption
from app.modules.security.rate_limiter import RateLimiter
from app.modules.security.trusted_devices import TrustedDeviceService
from app.modules.security.two_factor import TwoFactorService
from supabase import Client
import logging

logger = logging.getLogger(__name__)

security = HTTPBearer()


def get_auth_service(supabase: Client = Depends(get_supabase)) -> AuthService:
    return AuthService(supabase)


def get_current_user_id(
    credentials: HTTPAuthorizationCredentials = Security(security),
    auth_service: AuthService = Depends(get_auth_service)
) -> dict:
    """Extract current user info from JWT token"""
    token = credentials.credentials
    user_data = auth_service.get_current_user(token)
    return user_data


def get_rate_limiter(supabase: Client = Depends(get_supabase)) -> RateLimiter:
    return RateLimiter(supabase, fail_open=settings.rate_limit_fail_open)


def get_trusted_device_service(
    supabase: Client = Depends(get_supabase),
    rate_limiter: RateLimiter = Depends(get_rate_limiter)
) -> TrustedDeviceService:
    return TrustedDeviceService(
        supabase,
        rate_limiter,
        trust_days=settings.trusted_device_days,
        fingerprint_rounds=settings.fingerprint_hash_rounds,
    )


def get_two_factor_service(
    supabase: Client = Depends(get_supabase),
    encryption: SecureEncryption = Depends(get_encryption),
    rate_limiter: RateLimiter = Depends(get_rate_limiter),
    trusted_devices: TrustedDeviceService = Depends(get_trusted_device_service)
) -> TwoFactorService:
    return TwoFactorService(
        supabase,
        encryption,
        rate_limiter,
        trusted_devices,
        issuer=settings.totp_issuer,
    )
