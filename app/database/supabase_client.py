import logging
from typing import Optional
from supabase import create_client, Client
from app.config import settings
from app.core.errors import ConfigurationError

logger = logging.getLogger(__name__)


class SupabaseClient:
    """Process-wide Supabase clients for the 2FA, device and rate-limit tables."""

    _client: Optional[Client] = None
    _service_client: Optional[Client] = None

    @staticmethod
    def _create(key: Optional[str]) -> Client:
        if not settings.supabase_url or not key:
            raise ConfigurationError("Supabase not configured. Set SUPABASE_URL and SUPABASE_KEY.")
        return create_client(settings.supabase_url, key)

    @classmethod
    def get_client(cls) -> Client:
        if cls._client is None:
            cls._client = cls._create(settings.supabase_key)
        return cls._client

    @classmethod
    def get_service_client(cls) -> Client:
        """Client with service_role key; bypasses RLS. Used by the rate-limit sweep."""
        if cls._service_client is None and settings.supabase_service_role_key:
            cls._service_client = cls._create(settings.supabase_service_role_key)
        if cls._service_client is None:
            logger.debug("No service role key configured, using anon client")
        return cls._service_client or cls.get_client()

    @classmethod
    def reset_client(cls):
        cls._client = None
        cls._service_client = None


def get_supabase() -> Client:
    return SupabaseClient.get_client()
