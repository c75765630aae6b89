"""
Input sanitization and validation for free-text fields, emails, passwords
and 2FA tokens. All functions are pure and never raise.
"""

import hmac
import math
import re
from dataclasses import dataclass, field
from typing import List, Optional

DISPOSABLE_EMAIL_DOMAINS = frozenset({
    "10minutemail.com", "tempmail.org", "guerrillamail.com",
    "mailinator.com", "temp-mail.org", "throwaway.email",
    "yopmail.com", "maildrop.cc", "tempail.com",
})

COMMON_PASSWORDS = (
    "password", "password123", "123456", "123456789", "qwerty",
    "abc123", "password1", "admin", "letmein", "welcome",
)

PASSWORD_VALID_SCORE = 6
PASSWORD_MAX_SCORE = 10

_EMAIL_RE = re.compile(r"^[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}$")
_ANGLE_BRACKETS_RE = re.compile(r"[<>]")
_QUOTES_RE = re.compile(r"['\"]")
_JS_PROTOCOL_RE = re.compile(r"javascript:", re.IGNORECASE)
_EVENT_HANDLER_RE = re.compile(r"on\w+=", re.IGNORECASE)
_REPEATED_CHAR_RE = re.compile(r"(.)\1{2,}")
_WHITESPACE_RE = re.compile(r"\s")


@dataclass
class EmailValidationResult:
    valid: bool
    reason: Optional[str] = None


@dataclass
class PasswordValidationResult:
    valid: bool
    score: int
    feedback: List[str] = field(default_factory=list)


def _strip_dangerous(value: str) -> str:
    value = _ANGLE_BRACKETS_RE.sub("", value)
    value = _QUOTES_RE.sub("", value)
    value = _JS_PROTOCOL_RE.sub("", value)
    return _EVENT_HANDLER_RE.sub("", value)


def sanitize_input(value: str) -> str:
    """Remove markup, quotes, javascript: prefixes and on*= handlers, then trim."""
    # Removing one pattern can splice a new one together ("javajavascript:script:"),
    # so repeat until the value is stable.
    previous = None
    while previous != value:
        previous = value
        value = _strip_dangerous(value)
    return value.strip()


def normalize_token(token: str) -> str:
    """Sanitized 2FA token with all whitespace removed."""
    return _WHITESPACE_RE.sub("", sanitize_input(token or ""))


def validate_email(email: str) -> EmailValidationResult:
    if sanitize_input(email) != email:
        return EmailValidationResult(valid=False, reason="Contains invalid characters")

    if not _EMAIL_RE.match(email):
        return EmailValidationResult(valid=False, reason="Invalid email format")

    domain = email.split("@", 1)[1].lower()
    if domain in DISPOSABLE_EMAIL_DOMAINS:
        return EmailValidationResult(valid=False, reason="Disposable email addresses not allowed")

    return EmailValidationResult(valid=True)


def calculate_entropy(password: str) -> float:
    """Shannon-style estimate: length * log2(distinct characters)."""
    charset = len(set(password))
    if charset == 0:
        return 0.0
    return len(password) * math.log2(charset)


def validate_password(password: str) -> PasswordValidationResult:
    feedback: List[str] = []
    score = 0

    if len(password) >= 12:
        score += 2
    elif len(password) >= 8:
        score += 1
    else:
        feedback.append("Password must be at least 12 characters long")

    if re.search(r"[A-Z]", password):
        score += 1
    else:
        feedback.append("Add uppercase letters")

    if re.search(r"[a-z]", password):
        score += 1
    else:
        feedback.append("Add lowercase letters")

    if re.search(r"[0-9]", password):
        score += 1
    else:
        feedback.append("Add numbers")

    if re.search(r"[^A-Za-z0-9]", password):
        score += 2
    else:
        feedback.append("Add special characters")

    if not _REPEATED_CHAR_RE.search(password):
        score += 1
    else:
        feedback.append("Avoid repeating characters")

    lowered = password.lower()
    if not any(common in lowered for common in COMMON_PASSWORDS):
        score += 1
    else:
        feedback.append("Avoid common passwords")

    entropy = calculate_entropy(password)
    if entropy > 50:
        score += 2
    elif entropy > 30:
        score += 1

    score = min(score, PASSWORD_MAX_SCORE)
    return PasswordValidationResult(
        valid=score >= PASSWORD_VALID_SCORE,
        score=score,
        feedback=feedback,
    )


def safe_compare(a: str, b: str) -> bool:
    """Constant-time string comparison."""
    return hmac.compare_digest(a.encode("utf-8"), b.encode("utf-8"))
