"""
Two-factor authentication (TOTP + single-use backup codes).

Credential lifecycle for a user:
    no row -> pending (enabled=false, after setup)
           -> active (enabled=true, after the first TOTP verification)
           -> removed (disable)
"""

import base64
import hashlib
import io
import json
import logging
import re
import secrets
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Callable, List, Optional

import pyotp
import qrcode
from pydantic import TypeAdapter
from supabase import Client

from app.core.errors import NotFoundError
from app.modules.security.client import ClientContext
from app.modules.security.encryption import SecureEncryption
from app.modules.security.rate_limiter import (
    RateLimiter, TWO_FACTOR_SETUP, TWO_FACTOR_VERIFY, TWO_FACTOR_DISABLE, utcnow
)
from app.modules.security.trusted_devices import TrustedDeviceService
from app.modules.security.validation import normalize_token, safe_compare

logger = logging.getLogger(__name__)

TWO_FACTOR_TABLE = "user_two_factor"
BACKUP_CODE_COUNT = 10
BACKUP_CODE_BYTES = 4
TOTP_VALID_WINDOW = 1
REPLAY_WINDOW_SECONDS = 30

_TOTP_RE = re.compile(r"^\d{6}$")
_BACKUP_CODE_RE = re.compile(r"^[A-Fa-f0-9]{8}$")
_DATETIME = TypeAdapter(datetime)


@dataclass
class TwoFactorSetup:
    secret: str
    provisioning_uri: str
    qr_code_url: str
    backup_codes: List[str]


@dataclass
class TwoFactorStatus:
    configured: bool
    enabled: bool
    backup_codes_remaining: int = 0
    last_verified: Optional[datetime] = None


def generate_backup_codes(count: int = BACKUP_CODE_COUNT) -> List[str]:
    """Random 8-character uppercase hex codes, unique within the list."""
    codes: List[str] = []
    while len(codes) < count:
        code = secrets.token_hex(BACKUP_CODE_BYTES).upper()
        if code not in codes:
            codes.append(code)
    return codes


def qr_code_data_uri(data: str) -> str:
    qr = qrcode.QRCode(
        version=1,
        error_correction=qrcode.constants.ERROR_CORRECT_L,
        box_size=10,
        border=4,
    )
    qr.add_data(data)
    qr.make(fit=True)
    img = qr.make_image(fill_color="black", back_color="white")

    buffer = io.BytesIO()
    img.save(buffer, format="PNG")
    return f"data:image/png;base64,{base64.b64encode(buffer.getvalue()).decode()}"


def is_token_well_formed(token: str) -> bool:
    return bool(_TOTP_RE.match(token) or _BACKUP_CODE_RE.match(token))


def _parse_timestamp(value) -> Optional[datetime]:
    if not value:
        return None
    parsed = _DATETIME.validate_python(value)
    # timestamp columns without a zone come back naive and hold UTC
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


class TwoFactorService:
    def __init__(
        self,
        supabase: Client,
        encryption: SecureEncryption,
        rate_limiter: RateLimiter,
        trusted_devices: TrustedDeviceService,
        issuer: str = "Supauth",
        clock: Callable[[], datetime] = utcnow,
    ):
        self.supabase = supabase
        self.encryption = encryption
        self.rate_limiter = rate_limiter
        self.trusted_devices = trusted_devices
        self.issuer = issuer
        self.clock = clock

    def _code_digest(self, user_id: str, code: str) -> str:
        # last_used_code is kept as a digest so no usable code sits in the table
        return hashlib.sha256(f"{user_id}:{code.upper()}".encode("utf-8")).hexdigest()

    def _get_credential(self, user_id: str, columns: str = "*") -> Optional[dict]:
        result = self.supabase.table(TWO_FACTOR_TABLE)\
            .select(columns)\
            .eq("user_id", user_id)\
            .limit(1)\
            .execute()
        return result.data[0] if result.data else None

    def enable_two_factor(
        self,
        user_id: str,
        client: ClientContext,
        account_name: Optional[str] = None,
    ) -> TwoFactorSetup:
        """Issue a new TOTP secret and backup codes; the credential stays disabled until verified."""
        self.rate_limiter.enforce(
            user_id, TWO_FACTOR_SETUP,
            "Too many 2FA setup attempts. Please try again later.",
            client,
        )

        secret = pyotp.random_base32()
        backup_codes = generate_backup_codes()
        provisioning_uri = pyotp.TOTP(secret).provisioning_uri(
            name=account_name or f"user-{user_id}",
            issuer_name=self.issuer,
        )

        now = self.clock().isoformat()
        self.supabase.table(TWO_FACTOR_TABLE).upsert({
            "user_id": user_id,
            "secret": self.encryption.encrypt(secret, user_id),
            "backup_codes": self.encryption.encrypt(json.dumps(backup_codes), user_id),
            "enabled": False,
            "last_used_code": None,
            "last_verified": None,
            "setup_ip": client.ip_address,
            "setup_user_agent": client.user_agent,
            "created_at": now,
            "updated_at": now,
        }, on_conflict="user_id").execute()

        logger.info(f"2FA setup started for user {user_id}")
        return TwoFactorSetup(
            secret=secret,
            provisioning_uri=provisioning_uri,
            qr_code_url=qr_code_data_uri(provisioning_uri),
            backup_codes=backup_codes,
        )

    def verify_two_factor(self, user_id: str, token: str, client: ClientContext) -> bool:
        """Check a 6-digit TOTP code or an 8-character backup code."""
        code = normalize_token(token)
        if not is_token_well_formed(code):
            return False

        self.rate_limiter.enforce(
            user_id, TWO_FACTOR_VERIFY,
            "Too many verification attempts. Please try again later.",
            client,
        )

        credential = self._get_credential(
            user_id, "secret, backup_codes, last_used_code, last_verified"
        )
        if not credential:
            return False

        secret = self.encryption.decrypt(credential["secret"], user_id)
        backup_codes: List[str] = json.loads(
            self.encryption.decrypt(credential["backup_codes"], user_id)
        )

        now = self.clock()
        if len(code) == 8:
            return self._consume_backup_code(user_id, code, backup_codes, credential["backup_codes"], now)

        # Only TOTP successes write last_used_code; backup codes are single-use already
        digest = self._code_digest(user_id, code)
        last_used = credential.get("last_used_code")
        last_verified = _parse_timestamp(credential.get("last_verified"))
        if (
            last_used
            and last_verified
            and safe_compare(last_used, digest)
            and now - last_verified < timedelta(seconds=REPLAY_WINDOW_SECONDS)
        ):
            logger.warning(f"Rejected replayed 2FA code for user {user_id}")
            return False

        if not pyotp.TOTP(secret).verify(code, for_time=now, valid_window=TOTP_VALID_WINDOW):
            return False

        self.supabase.table(TWO_FACTOR_TABLE).update({
            "enabled": True,
            "last_used_code": digest,
            "last_verified": now.isoformat(),
            "verification_ip": client.ip_address,
            "verification_user_agent": client.user_agent,
            "updated_at": now.isoformat(),
        }).eq("user_id", user_id).execute()
        logger.info(f"2FA TOTP verified for user {user_id}")
        return True

    def _consume_backup_code(
        self,
        user_id: str,
        code: str,
        backup_codes: List[str],
        stored_envelope: str,
        now: datetime,
    ) -> bool:
        submitted = code.upper()
        matched = False
        remaining: List[str] = []
        for candidate in backup_codes:
            # compare every code so timing does not reveal the position
            if safe_compare(candidate.upper(), submitted):
                matched = True
            else:
                remaining.append(candidate)
        if not matched:
            return False

        # Conditional on the envelope we read: a concurrent request that
        # consumed a code first has already replaced it, so this matches nothing.
        result = self.supabase.table(TWO_FACTOR_TABLE).update({
            "backup_codes": self.encryption.encrypt(json.dumps(remaining), user_id),
            "last_verified": now.isoformat(),
            "updated_at": now.isoformat(),
        }).eq("user_id", user_id).eq("backup_codes", stored_envelope).execute()

        if not result.data:
            logger.warning(f"Backup code for user {user_id} was consumed concurrently")
            return False

        logger.info(f"Backup code used for user {user_id}, {len(remaining)} remaining")
        return True

    def disable_two_factor(self, user_id: str, client: ClientContext) -> None:
        """Remove the credential and every trusted device of the user."""
        self.rate_limiter.enforce(
            user_id, TWO_FACTOR_DISABLE,
            "Too many disable attempts. Please try again later.",
            client,
        )

        self.supabase.table(TWO_FACTOR_TABLE)\
            .delete()\
            .eq("user_id", user_id)\
            .execute()

        self.trusted_devices.remove_all_for_user(user_id)
        logger.info(f"2FA disabled for user {user_id}")

    def get_status(self, user_id: str) -> TwoFactorStatus:
        credential = self._get_credential(user_id, "backup_codes, enabled, last_verified")
        if not credential:
            return TwoFactorStatus(configured=False, enabled=False)

        backup_codes = json.loads(self.encryption.decrypt(credential["backup_codes"], user_id))
        return TwoFactorStatus(
            configured=True,
            enabled=bool(credential.get("enabled")),
            backup_codes_remaining=len(backup_codes),
            last_verified=_parse_timestamp(credential.get("last_verified")),
        )

    def regenerate_backup_codes(self, user_id: str, client: ClientContext) -> List[str]:
        """Replace the backup code list; the new codes are returned once."""
        self.rate_limiter.enforce(
            user_id, TWO_FACTOR_SETUP,
            "Too many 2FA setup attempts. Please try again later.",
            client,
        )

        if not self._get_credential(user_id, "user_id"):
            raise NotFoundError("Two-factor authentication is not set up")

        backup_codes = generate_backup_codes()
        self.supabase.table(TWO_FACTOR_TABLE).update({
            "backup_codes": self.encryption.encrypt(json.dumps(backup_codes), user_id),
            "updated_at": self.clock().isoformat(),
        }).eq("user_id", user_id).execute()

        logger.info(f"Backup codes regenerated for user {user_id}")
        return backup_codes
