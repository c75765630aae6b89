import logging
from dataclasses import dataclass, field
from typing import Optional

import httpx
from fastapi import Request

from app.config import settings
from app.modules.security.fingerprint import DeviceSignals, collect_host_signals, signals_from_headers

logger = logging.getLogger(__name__)

UNKNOWN_IP = "Unknown"


@dataclass
class ClientContext:
    """Who is calling: address, user agent and device probes."""
    ip_address: str = UNKNOWN_IP
    user_agent: str = ""
    signals: DeviceSignals = field(default_factory=DeviceSignals)


def lookup_public_ip(url: Optional[str] = None, timeout: Optional[float] = None) -> str:
    """Best-effort public IP lookup; returns "Unknown" on any failure."""
    try:
        with httpx.Client(timeout=timeout or settings.ip_lookup_timeout) as client:
            response = client.get(url or settings.ip_lookup_url)
            response.raise_for_status()
            ip = response.json().get("ip")
            return ip or UNKNOWN_IP
    except (httpx.HTTPError, ValueError, AttributeError) as e:
        logger.debug(f"Public IP lookup failed: {e}")
        return UNKNOWN_IP


def client_ip_from_request(request: Request) -> Optional[str]:
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        first = forwarded.split(",")[0].strip()
        if first:
            return first
    real_ip = request.headers.get("x-real-ip")
    if real_ip:
        return real_ip.strip()
    if request.client and request.client.host:
        return request.client.host
    return None


def get_client_context(request: Request) -> ClientContext:
    """FastAPI dependency building the ClientContext for the current request."""
    signals = signals_from_headers(request.headers)
    ip_address = client_ip_from_request(request) or lookup_public_ip()
    return ClientContext(
        ip_address=ip_address,
        user_agent=signals.user_agent,
        signals=signals,
    )


def host_client_context() -> ClientContext:
    """ClientContext for callers running outside a request (scripts, workers)."""
    signals = collect_host_signals()
    return ClientContext(
        ip_address=lookup_public_ip(),
        user_agent=signals.user_agent,
        signals=signals,
    )
