import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Callable, Optional

from supabase import Client

from app.core.errors import RateLimitExceeded
from app.modules.security.client import ClientContext

logger = logging.getLogger(__name__)

RATE_LIMITS_TABLE = "rate_limits"
RETENTION_HOURS = 24

# (action, max_attempts, window_minutes)
TWO_FACTOR_SETUP = ("2fa_setup", 3, 60)
TWO_FACTOR_VERIFY = ("2fa_verify", 5, 15)
TWO_FACTOR_DISABLE = ("2fa_disable", 3, 60)
TRUST_DEVICE = ("trust_device", 10, 60)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class RateLimitResult:
    allowed: bool
    remaining: int
    reset_time: datetime


class RateLimiter:
    """Sliding-window attempt counter over the rate_limits table.

    Counting and recording are two statements, so concurrent requests for
    the same (identifier, action) can be admitted slightly over the limit.
    """

    def __init__(
        self,
        supabase: Client,
        fail_open: bool = False,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.supabase = supabase
        self.fail_open = fail_open
        self.clock = clock

    def check_limit(
        self,
        identifier: str,
        action: str,
        max_attempts: int = 5,
        window_minutes: int = 15,
        client: Optional[ClientContext] = None,
    ) -> RateLimitResult:
        now = self.clock()
        window_start = now - timedelta(minutes=window_minutes)
        reset_time = now + timedelta(minutes=window_minutes)

        try:
            attempts = self.supabase.table(RATE_LIMITS_TABLE)\
                .select("id")\
                .eq("identifier", identifier)\
                .eq("action", action)\
                .gte("created_at", window_start.isoformat())\
                .execute()
        except Exception as e:
            if self.fail_open:
                logger.warning(f"Rate limit store unavailable, allowing {action} for {identifier}: {e}")
                return RateLimitResult(allowed=True, remaining=max_attempts, reset_time=reset_time)
            raise

        current_attempts = len(attempts.data or [])
        if current_attempts >= max_attempts:
            logger.info(f"Rate limit reached for {action} by {identifier} ({current_attempts}/{max_attempts})")
            return RateLimitResult(allowed=False, remaining=0, reset_time=reset_time)

        client = client or ClientContext()
        try:
            self.supabase.table(RATE_LIMITS_TABLE).insert({
                "identifier": identifier,
                "action": action,
                "ip_address": client.ip_address,
                "user_agent": client.user_agent,
                "created_at": now.isoformat(),
            }).execute()
        except Exception as e:
            if not self.fail_open:
                raise
            logger.warning(f"Rate limit store unavailable, attempt for {action} by {identifier} not recorded: {e}")

        return RateLimitResult(
            allowed=True,
            remaining=max_attempts - current_attempts - 1,
            reset_time=reset_time,
        )

    def enforce(
        self,
        identifier: str,
        limit: tuple,
        message: str,
        client: Optional[ClientContext] = None,
    ) -> RateLimitResult:
        """check_limit for one of the named limits; raises RateLimitExceeded when denied."""
        action, max_attempts, window_minutes = limit
        result = self.check_limit(identifier, action, max_attempts, window_minutes, client)
        if not result.allowed:
            raise RateLimitExceeded(message, reset_time=result.reset_time)
        return result

    def cleanup_expired_limits(self) -> int:
        """Delete attempt records older than 24 hours. Returns the number removed."""
        cutoff = self.clock() - timedelta(hours=RETENTION_HOURS)
        result = self.supabase.table(RATE_LIMITS_TABLE)\
            .delete()\
            .lt("created_at", cutoff.isoformat())\
            .execute()
        removed = len(result.data or [])
        logger.info(f"Removed {removed} expired rate limit record(s)")
        return removed
