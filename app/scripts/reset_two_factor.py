"""
Reset Two-Factor Script
Account recovery for support staff: removes a user's 2FA credential and
every trusted device so the user can enroll again.

Usage: python app/scripts/reset_two_factor.py <user_id>
"""

import sys
from pathlib import Path

# Add project root to path
project_root = Path(__file__).parent.parent.parent
sys.path.insert(0, str(project_root))

from app.config import settings
from app.database.supabase_client import SupabaseClient
from app.modules.security.client import host_client_context
from app.modules.security.encryption import get_encryption
from app.modules.security.rate_limiter import RateLimiter
from app.modules.security.trusted_devices import TrustedDeviceService
from app.modules.security.two_factor import TwoFactorService
from supabase import Client
import logging

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


def reset_two_factor(supabase: Client, user_id: str) -> None:
    """Disable 2FA for user_id; the attempt is recorded with this host's address and device."""
    client = host_client_context()
    rate_limiter = RateLimiter(supabase, fail_open=settings.rate_limit_fail_open)
    trusted_devices = TrustedDeviceService(
        supabase,
        rate_limiter,
        trust_days=settings.trusted_device_days,
        fingerprint_rounds=settings.fingerprint_hash_rounds,
    )
    service = TwoFactorService(
        supabase,
        get_encryption(),
        rate_limiter,
        trusted_devices,
        issuer=settings.totp_issuer,
    )

    logger.info(f"Resetting 2FA for user {user_id} from {client.ip_address}")
    service.disable_two_factor(user_id, client)


def main(argv=None):
    args = sys.argv[1:] if argv is None else argv
    if len(args) != 1:
        print("Usage: python app/scripts/reset_two_factor.py <user_id>")
        sys.exit(2)

    try:
        settings.validate_security_settings()
        supabase = SupabaseClient.get_service_client()
        reset_two_factor(supabase, args[0])
        logger.info("2FA reset completed")

    except Exception as e:
        logger.error(f"Error resetting 2FA: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
