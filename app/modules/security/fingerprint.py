"""
Device fingerprinting.

A fingerprint summarizes the environment of the calling device so the same
browser can be recognized without a persistent cookie. Browser clients post
their probes (canvas/WebGL/audio hashes, screen geometry, ...) in the
X-Device-Signals header; non-browser callers use collect_host_signals().

The final digest is an iterated SHA-256. The iteration only amplifies the
cost of guessing a fingerprint; it is not a password-hashing KDF.
"""

import hashlib
import json
import locale
import os
import platform
import time
from typing import List, Optional

from pydantic import BaseModel, ValidationError as PydanticValidationError

FINGERPRINT_HASH_ROUNDS = 1000
DEVICE_SIGNALS_HEADER = "X-Device-Signals"


class DeviceSignals(BaseModel):
    user_agent: str = ""
    language: Optional[str] = None
    languages: List[str] = []
    platform: Optional[str] = None
    timezone: Optional[str] = None
    screen: Optional[str] = None  # "<width>x<height>x<colorDepth>"
    hardware_concurrency: Optional[int] = None
    cookie_enabled: Optional[bool] = None
    do_not_track: Optional[str] = None
    canvas_hash: Optional[str] = None
    webgl: Optional[str] = None  # "<vendor>~<renderer>"
    audio_hash: Optional[str] = None

    def canonical_json(self) -> str:
        return json.dumps(self.model_dump(), sort_keys=True, separators=(",", ":"))


def generate_fingerprint(signals: DeviceSignals, rounds: int = FINGERPRINT_HASH_ROUNDS) -> str:
    """Deterministic hex digest of the device signals."""
    digest = hashlib.sha256(signals.canonical_json().encode("utf-8")).hexdigest()
    for i in range(rounds):
        digest = hashlib.sha256(f"{digest}{i}".encode("utf-8")).hexdigest()
    return digest


def parse_signals_header(raw: Optional[str]) -> Optional[DeviceSignals]:
    """Parse the JSON X-Device-Signals header; None when absent or invalid."""
    if not raw:
        return None
    try:
        return DeviceSignals.model_validate_json(raw)
    except PydanticValidationError:
        return None


def _first_language(accept_language: str) -> Optional[str]:
    languages = _languages(accept_language)
    return languages[0] if languages else None


def _languages(accept_language: str) -> List[str]:
    return [part.split(";")[0].strip() for part in accept_language.split(",") if part.strip()]


def signals_from_headers(headers) -> DeviceSignals:
    """Build signals from a request's headers, preferring client-posted probes."""
    user_agent = headers.get("user-agent", "")
    signals = parse_signals_header(headers.get(DEVICE_SIGNALS_HEADER))
    if signals is None:
        accept_language = headers.get("accept-language", "")
        platform_hint = headers.get("sec-ch-ua-platform")
        return DeviceSignals(
            user_agent=user_agent,
            language=_first_language(accept_language),
            languages=_languages(accept_language),
            platform=platform_hint.strip('"') if platform_hint else None,
        )
    if not signals.user_agent:
        signals.user_agent = user_agent
    return signals


def collect_host_signals() -> DeviceSignals:
    """Stable descriptors of the local host, for non-browser callers."""
    uname = platform.uname()
    lang = locale.getlocale()[0]
    return DeviceSignals(
        user_agent=f"{platform.python_implementation()}/{platform.python_version()} ({uname.system} {uname.release})",
        language=lang,
        languages=[lang] if lang else [],
        platform=f"{uname.system}-{uname.machine}",
        timezone=time.tzname[0],
        hardware_concurrency=os.cpu_count(),
        webgl=platform.processor() or uname.machine,
    )
