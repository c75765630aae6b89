"""
Unit tests for AuthService and the bearer-token user cache
"""

from unittest.mock import Mock

import pytest

from app.core.errors import AuthenticationError, SecurityError, ValidationError
from app.modules.auth.schemas import LoginRequest, RegisterRequest
from app.modules.auth.service import AuthService, UserCache


class Ticker:
    def __init__(self):
        self.now = 1000.0

    def __call__(self):
        return self.now


@pytest.fixture
def ticker():
    return Ticker()


@pytest.fixture
def cache(ticker):
    return UserCache(ttl_seconds=60, max_size=2, clock=ticker)


@pytest.fixture
def auth_supabase():
    supabase = Mock()
    supabase.auth.get_user.return_value = Mock(user=Mock(id="user-7", email="jane@example.com"))
    return supabase


@pytest.fixture
def service(auth_supabase, cache):
    return AuthService(auth_supabase, cache=cache)


class TestUserCache:

    def test_entry_expires(self, cache, ticker):
        cache.put("token-a", {"id": "a"})
        assert cache.get("token-a") == {"id": "a"}
        ticker.now += 61
        assert cache.get("token-a") is None
        assert len(cache) == 0

    def test_full_cache_evicts_expired_entries_first(self, cache, ticker):
        cache.put("token-a", {"id": "a"})
        cache.put("token-b", {"id": "b"})
        cache.put("token-c", {"id": "c"})
        assert cache.get("token-c") is None

        ticker.now += 61
        cache.put("token-c", {"id": "c"})
        assert cache.get("token-c") == {"id": "c"}

    def test_tokens_are_not_stored_in_clear(self, cache):
        cache.put("secret-token", {"id": "a"})
        assert "secret-token" not in cache._entries


class TestGetCurrentUser:

    def test_resolves_and_caches(self, service, auth_supabase):
        assert service.get_current_user("tok") == {"id": "user-7", "email": "jane@example.com"}
        assert service.get_current_user("tok") == {"id": "user-7", "email": "jane@example.com"}
        auth_supabase.auth.get_user.assert_called_once_with(jwt="tok")

    def test_rejected_token(self, service, auth_supabase):
        auth_supabase.auth.get_user.side_effect = Exception("JWT expired")
        with pytest.raises(AuthenticationError) as exc_info:
            service.get_current_user("tok")
        assert exc_info.value.status_code == 401

    def test_missing_user(self, service, auth_supabase):
        auth_supabase.auth.get_user.return_value = Mock(user=None)
        with pytest.raises(AuthenticationError):
            service.get_current_user("tok")

    def test_logout_drops_cached_user(self, service, auth_supabase, cache):
        service.get_current_user("tok")
        service.logout("tok")
        assert cache.get("tok") is None
        auth_supabase.auth.sign_out.assert_called_once()

    def test_logout_survives_sign_out_failure(self, service, auth_supabase, cache):
        service.get_current_user("tok")
        auth_supabase.auth.sign_out.side_effect = Exception("network down")
        service.logout("tok")
        assert cache.get("tok") is None


class TestLogin:

    def test_success(self, service, auth_supabase):
        auth_supabase.auth.sign_in_with_password.return_value = Mock(
            user=Mock(id="user-7", email="jane@example.com"),
            session=Mock(access_token="jwt"),
        )
        token = service.login(LoginRequest(email="jane@example.com", password="pw"))
        assert token.access_token == "jwt"
        assert token.user_id == "user-7"

    def test_bad_credentials(self, service, auth_supabase):
        auth_supabase.auth.sign_in_with_password.side_effect = Exception("Invalid login credentials")
        with pytest.raises(AuthenticationError) as exc_info:
            service.login(LoginRequest(email="jane@example.com", password="pw"))
        assert exc_info.value.message == "Invalid email or password"


class TestRegister:

    def test_duplicate_user(self, service, auth_supabase):
        auth_supabase.auth.sign_up.side_effect = Exception("User already registered")
        with pytest.raises(ValidationError) as exc_info:
            service.register(RegisterRequest(email="jane@example.com", password="Tr1cky-Horse-Battery!"))
        assert exc_info.value.message == "User already exists"

    def test_upstream_failure_does_not_leak_details(self, service, auth_supabase):
        auth_supabase.auth.sign_up.side_effect = Exception("connection to 10.0.0.3 refused")
        with pytest.raises(SecurityError) as exc_info:
            service.register(RegisterRequest(email="jane@example.com", password="Tr1cky-Horse-Battery!"))
        assert exc_info.value.message == "Registration failed"
