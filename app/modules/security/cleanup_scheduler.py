import asyncio
import logging
from app.config import settings
from app.database.supabase_client import SupabaseClient
from app.modules.security.rate_limiter import RateLimiter

logger = logging.getLogger(__name__)


async def cleanup_expired_rate_limits() -> int:
    """Sweep rate_limits rows older than 24h. Returns the number removed, 0 on failure."""
    try:
        rate_limiter = RateLimiter(SupabaseClient.get_service_client())
        return await asyncio.to_thread(rate_limiter.cleanup_expired_limits)
    except Exception as e:
        logger.error(f"Error cleaning up rate limits: {str(e)}")
        return 0


async def rate_limit_cleanup_loop():
    """Background task that periodically removes expired rate limit records"""
    while True:
        await cleanup_expired_rate_limits()
        await asyncio.sleep(settings.rate_limit_cleanup_interval_seconds)
