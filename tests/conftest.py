"""
Pytest configuration shared by unit and integration tests.
"""

import os

import pytest

os.environ.setdefault("ENCRYPTION_KEY", "test-master-key")
os.environ.setdefault("RATE_LIMIT_CLEANUP_INTERVAL_SECONDS", "0")

from app.modules.security.client import ClientContext
from app.modules.security.encryption import SecureEncryption
from app.modules.security.fingerprint import DeviceSignals
from app.modules.security.rate_limiter import RateLimiter
from app.modules.security.trusted_devices import TrustedDeviceService
from app.modules.security.two_factor import TwoFactorService
from tests.fakes import FakeSupabase, FrozenClock


@pytest.fixture
def supabase():
    return FakeSupabase()


@pytest.fixture
def clock():
    return FrozenClock()


@pytest.fixture
def encryption():
    # Fewer PBKDF2 iterations keep the service tests fast
    return SecureEncryption("test-master-key", iterations=1000)


@pytest.fixture
def client_context():
    return ClientContext(
        ip_address="203.0.113.7",
        user_agent="Mozilla/5.0 (Macintosh; Intel Mac OS X 14_0) Firefox/131.0",
        signals=DeviceSignals(
            user_agent="Mozilla/5.0 (Macintosh; Intel Mac OS X 14_0) Firefox/131.0",
            language="en-US",
            languages=["en-US", "en"],
            platform="MacIntel",
            timezone="Europe/Berlin",
            screen="1920x1080x24",
            hardware_concurrency=8,
            cookie_enabled=True,
            canvas_hash="c4nv4s",
            webgl="Apple~Apple M2",
            audio_hash="4ud10",
        ),
    )


@pytest.fixture
def rate_limiter(supabase, clock):
    return RateLimiter(supabase, clock=clock)


@pytest.fixture
def trusted_device_service(supabase, rate_limiter, clock):
    return TrustedDeviceService(supabase, rate_limiter, fingerprint_rounds=10, clock=clock)


@pytest.fixture
def two_factor_service(supabase, encryption, rate_limiter, trusted_device_service, clock):
    return TwoFactorService(
        supabase,
        encryption,
        rate_limiter,
        trusted_device_service,
        issuer="Supauth",
        clock=clock,
    )
