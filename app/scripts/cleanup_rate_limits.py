"""
Rate Limit Cleanup Script
Removes rate_limits records older than 24 hours.
Can be run manually or as a nightly job when the in-process loop is disabled.
"""

import sys
from pathlib import Path

# Add project root to path
project_root = Path(__file__).parent.parent.parent
sys.path.insert(0, str(project_root))

from app.database.supabase_client import SupabaseClient
from app.modules.security.rate_limiter import RateLimiter
import logging

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


def main():
    """Delete expired rate limit records"""
    try:
        supabase = SupabaseClient.get_service_client()

        logger.info("Starting rate limit cleanup...")
        removed = RateLimiter(supabase).cleanup_expired_limits()
        logger.info(f"Cleanup completed: {removed} record(s) removed")

    except Exception as e:
        logger.error(f"Error during rate limit cleanup: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
