"""
Unit tests for TrustedDeviceService
"""

from datetime import timedelta

import pytest

from app.core.errors import RateLimitExceeded
from app.modules.security.client import ClientContext
from app.modules.security.trusted_devices import device_name


@pytest.mark.parametrize("user_agent, expected", [
    ("Mozilla/5.0 (iPhone; CPU iPhone OS 17_0 like Mac OS X)", "iPhone"),
    ("Mozilla/5.0 (iPad; CPU OS 17_0 like Mac OS X)", "iPad"),
    ("Mozilla/5.0 (Linux; Android 14; Pixel 8)", "Android Device"),
    ("Mozilla/5.0 (Macintosh; Intel Mac OS X 14_0)", "Mac"),
    ("Mozilla/5.0 (Windows NT 10.0; Win64; x64)", "Windows PC"),
    ("Mozilla/5.0 (X11; Linux x86_64)", "Linux PC"),
    ("curl/8.0", "Unknown Device"),
    ("", "Unknown Device"),
])
def test_device_name(user_agent, expected):
    assert device_name(user_agent) == expected


class TestAddTrustedDevice:

    def test_inserts_new_device(self, trusted_device_service, supabase, client_context, clock):
        device = trusted_device_service.add_trusted_device("user-1", client_context)

        rows = supabase.rows("trusted_devices")
        assert len(rows) == 1
        assert rows[0]["name"] == "Mac"
        assert rows[0]["ip_address"] == "203.0.113.7"
        assert rows[0]["device_fingerprint"] == trusted_device_service.current_fingerprint(client_context)
        assert device.is_current is True
        assert device.expires_at == (clock.now + timedelta(days=30)).isoformat()

    def test_custom_name_is_sanitized(self, trusted_device_service, supabase, client_context):
        trusted_device_service.add_trusted_device("user-1", client_context, name="<b>Work laptop</b>")
        assert supabase.rows("trusted_devices")[0]["name"] == "bWork laptop/b"

    def test_second_call_refreshes_instead_of_duplicating(self, trusted_device_service, supabase, client_context, clock):
        trusted_device_service.add_trusted_device("user-1", client_context)
        clock.advance(days=3)
        client_context.ip_address = "198.51.100.20"
        trusted_device_service.add_trusted_device("user-1", client_context)

        rows = supabase.rows("trusted_devices")
        assert len(rows) == 1
        assert rows[0]["expires_at"] == (clock.now + timedelta(days=30)).isoformat()
        assert rows[0]["last_used"] == clock.now.isoformat()
        assert rows[0]["ip_address"] == "198.51.100.20"

    def test_same_device_for_two_users(self, trusted_device_service, supabase, client_context):
        trusted_device_service.add_trusted_device("user-1", client_context)
        trusted_device_service.add_trusted_device("user-2", client_context)
        assert len(supabase.rows("trusted_devices")) == 2

    def test_rate_limited(self, trusted_device_service, supabase, client_context):
        for _ in range(10):
            trusted_device_service.add_trusted_device("user-1", client_context)
        with pytest.raises(RateLimitExceeded):
            trusted_device_service.add_trusted_device("user-1", client_context)


class TestListAndRemove:

    def test_lists_most_recent_first_and_marks_current(self, trusted_device_service, client_context, clock):
        other = client_context.signals.model_copy(update={"user_agent": "Mozilla/5.0 (Windows NT 10.0)"})
        windows = ClientContext(ip_address="192.0.2.1", user_agent=other.user_agent, signals=other)

        trusted_device_service.add_trusted_device("user-1", client_context)
        clock.advance(hours=1)
        trusted_device_service.add_trusted_device("user-1", windows)

        devices = trusted_device_service.get_trusted_devices("user-1", client_context)
        assert [d.name for d in devices] == ["Windows PC", "Mac"]
        assert [d.is_current for d in devices] == [False, True]

    def test_expired_devices_are_pruned(self, trusted_device_service, supabase, client_context, clock):
        trusted_device_service.add_trusted_device("user-1", client_context)
        clock.advance(days=31)

        assert trusted_device_service.get_trusted_devices("user-1", client_context) == []
        assert supabase.rows("trusted_devices") == []

    def test_remove_requires_matching_owner(self, trusted_device_service, supabase, client_context):
        device = trusted_device_service.add_trusted_device("user-1", client_context)

        trusted_device_service.remove_trusted_device("user-2", device.id)
        assert len(supabase.rows("trusted_devices")) == 1

        trusted_device_service.remove_trusted_device("user-1", device.id)
        assert supabase.rows("trusted_devices") == []

    def test_remove_missing_is_noop(self, trusted_device_service):
        trusted_device_service.remove_trusted_device("user-1", "does-not-exist")


class TestIsDeviceTrusted:

    def test_trusted_after_add(self, trusted_device_service, client_context):
        assert trusted_device_service.is_device_trusted("user-1", client_context) is False
        trusted_device_service.add_trusted_device("user-1", client_context)
        assert trusted_device_service.is_device_trusted("user-1", client_context) is True

    def test_not_trusted_after_expiry(self, trusted_device_service, client_context, clock):
        trusted_device_service.add_trusted_device("user-1", client_context)
        clock.advance(days=30, seconds=1)
        assert trusted_device_service.is_device_trusted("user-1", client_context) is False

    def test_other_device_not_trusted(self, trusted_device_service, client_context):
        trusted_device_service.add_trusted_device("user-1", client_context)
        client_context.signals = client_context.signals.model_copy(update={"screen": "800x600x16"})
        assert trusted_device_service.is_device_trusted("user-1", client_context) is False
