import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Callable, List, Optional

from supabase import Client

from app.modules.security.client import ClientContext
from app.modules.security.fingerprint import FINGERPRINT_HASH_ROUNDS, generate_fingerprint
from app.modules.security.rate_limiter import RateLimiter, TRUST_DEVICE, utcnow
from app.modules.security.validation import safe_compare, sanitize_input

logger = logging.getLogger(__name__)

TRUSTED_DEVICES_TABLE = "trusted_devices"
DEFAULT_TRUST_DAYS = 30

# Checked in order, first match wins ("iPhone ... like Mac OS X" is an iPhone).
_DEVICE_NAMES = (
    ("iphone", "iPhone"),
    ("ipad", "iPad"),
    ("android", "Android Device"),
    ("mac", "Mac"),
    ("windows", "Windows PC"),
    ("linux", "Linux PC"),
)


@dataclass
class TrustedDevice:
    id: str
    name: str
    last_used: str
    user_agent: str
    ip_address: str
    device_fingerprint: str
    expires_at: str
    is_current: bool = False


def device_name(user_agent: str) -> str:
    """Human readable device name guessed from the user agent."""
    ua = (user_agent or "").lower()
    for needle, name in _DEVICE_NAMES:
        if needle in ua:
            return name
    return "Unknown Device"


class TrustedDeviceService:
    def __init__(
        self,
        supabase: Client,
        rate_limiter: RateLimiter,
        trust_days: int = DEFAULT_TRUST_DAYS,
        fingerprint_rounds: int = FINGERPRINT_HASH_ROUNDS,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.supabase = supabase
        self.rate_limiter = rate_limiter
        self.trust_days = trust_days
        self.fingerprint_rounds = fingerprint_rounds
        self.clock = clock

    def current_fingerprint(self, client: ClientContext) -> str:
        return generate_fingerprint(client.signals, rounds=self.fingerprint_rounds)

    def _to_device(self, row: dict, current_fingerprint: Optional[str] = None) -> TrustedDevice:
        fingerprint = row.get("device_fingerprint") or ""
        return TrustedDevice(
            id=str(row["id"]),
            name=row.get("name") or "Unknown Device",
            last_used=row.get("last_used"),
            user_agent=row.get("user_agent") or "",
            ip_address=row.get("ip_address") or "",
            device_fingerprint=fingerprint,
            expires_at=row.get("expires_at"),
            is_current=bool(current_fingerprint) and safe_compare(fingerprint, current_fingerprint),
        )

    def add_trusted_device(
        self,
        user_id: str,
        client: ClientContext,
        name: Optional[str] = None,
    ) -> TrustedDevice:
        """Trust the calling device for trust_days, refreshing an existing entry."""
        self.rate_limiter.enforce(
            user_id, TRUST_DEVICE,
            "Too many device trust attempts. Please try again later.",
            client,
        )

        fingerprint = self.current_fingerprint(client)
        now = self.clock()
        expires_at = now + timedelta(days=self.trust_days)

        existing = self.supabase.table(TRUSTED_DEVICES_TABLE)\
            .select("id")\
            .eq("user_id", user_id)\
            .eq("device_fingerprint", fingerprint)\
            .limit(1)\
            .execute()

        if existing.data:
            result = self.supabase.table(TRUSTED_DEVICES_TABLE)\
                .update({
                    "last_used": now.isoformat(),
                    "expires_at": expires_at.isoformat(),
                    "ip_address": client.ip_address,
                    "user_agent": client.user_agent,
                })\
                .eq("id", existing.data[0]["id"])\
                .execute()
            logger.info(f"Refreshed trusted device {existing.data[0]['id']} for user {user_id}")
        else:
            result = self.supabase.table(TRUSTED_DEVICES_TABLE).insert({
                "user_id": user_id,
                "name": sanitize_input(name) if name else device_name(client.user_agent),
                "user_agent": client.user_agent,
                "ip_address": client.ip_address,
                "device_fingerprint": fingerprint,
                "expires_at": expires_at.isoformat(),
                "last_used": now.isoformat(),
                "created_at": now.isoformat(),
            }).execute()
            logger.info(f"Added trusted device for user {user_id}")

        return self._to_device(result.data[0], fingerprint)

    def get_trusted_devices(self, user_id: str, client: ClientContext) -> List[TrustedDevice]:
        """Non-expired devices, most recently used first. Expired rows are deleted."""
        self.supabase.table(TRUSTED_DEVICES_TABLE)\
            .delete()\
            .eq("user_id", user_id)\
            .lt("expires_at", self.clock().isoformat())\
            .execute()

        result = self.supabase.table(TRUSTED_DEVICES_TABLE)\
            .select("*")\
            .eq("user_id", user_id)\
            .order("last_used", desc=True)\
            .execute()

        current = self.current_fingerprint(client)
        return [self._to_device(row, current) for row in result.data or []]

    def remove_trusted_device(self, user_id: str, device_id: str) -> None:
        self.supabase.table(TRUSTED_DEVICES_TABLE)\
            .delete()\
            .eq("user_id", user_id)\
            .eq("id", device_id)\
            .execute()

    def remove_all_for_user(self, user_id: str) -> None:
        self.supabase.table(TRUSTED_DEVICES_TABLE)\
            .delete()\
            .eq("user_id", user_id)\
            .execute()

    def is_device_trusted(self, user_id: str, client: ClientContext) -> bool:
        result = self.supabase.table(TRUSTED_DEVICES_TABLE)\
            .select("expires_at")\
            .eq("user_id", user_id)\
            .eq("device_fingerprint", self.current_fingerprint(client))\
            .gt("expires_at", self.clock().isoformat())\
            .limit(1)\
            .execute()
        return bool(result.data)
