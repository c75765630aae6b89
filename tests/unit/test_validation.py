"""
Unit tests for input sanitization and validation
"""

import pytest

from app.modules.security.validation import (
    sanitize_input, normalize_token, validate_email, validate_password,
    calculate_entropy, safe_compare
)


class TestSanitizeInput:

    @pytest.mark.parametrize("value, forbidden", [
        ("<script>alert(1)</script>", "<"),
        ("<b>bold</b>", ">"),
        ("it's", "'"),
        ('say "hi"', '"'),
        ("javascript:alert(1)", "javascript:"),
        ("JaVaScRiPt:alert(1)", "javascript:"),
        ("javajavascript:script:alert(1)", "javascript:"),
    ])
    def test_removes_dangerous_substrings(self, value, forbidden):
        assert forbidden not in sanitize_input(value).lower()

    def test_removes_event_handlers(self):
        assert sanitize_input("img onerror=steal()") == "img steal()"
        assert "onload=" not in sanitize_input("x ONLOAD=1").lower()

    def test_trims_whitespace(self):
        assert sanitize_input("  alice  ") == "alice"

    def test_leaves_plain_text_alone(self):
        assert sanitize_input("Jane Doe") == "Jane Doe"

    def test_normalize_token_strips_inner_whitespace(self):
        assert normalize_token(" 123 456 ") == "123456"
        assert normalize_token("ab cd\tef 01") == "abcdef01"


class TestValidateEmail:

    def test_accepts_regular_address(self):
        result = validate_email("jane.doe+2fa@example.com")
        assert result.valid is True
        assert result.reason is None

    def test_rejects_injected_content(self):
        result = validate_email("<jane>@example.com")
        assert result.valid is False
        assert result.reason == "Contains invalid characters"

    @pytest.mark.parametrize("email", ["plainaddress", "a@b", "jane@example.c", "@example.com"])
    def test_rejects_malformed(self, email):
        result = validate_email(email)
        assert result.valid is False
        assert result.reason == "Invalid email format"

    def test_rejects_disposable_domain_case_insensitively(self):
        result = validate_email("someone@Mailinator.com")
        assert result.valid is False
        assert result.reason == "Disposable email addresses not allowed"


class TestValidatePassword:

    def test_strong_password_is_valid(self):
        result = validate_password("Tr1cky-Horse-Battery!")
        assert result.valid is True
        assert result.score == 10
        assert result.feedback == []

    def test_short_lowercase_password(self):
        result = validate_password("abc")
        assert result.valid is False
        assert "Password must be at least 12 characters long" in result.feedback
        assert "Add uppercase letters" in result.feedback
        assert "Add numbers" in result.feedback
        assert "Add special characters" in result.feedback

    def test_common_password_and_repeats_flagged(self):
        result = validate_password("Password123!!!")
        assert "Avoid common passwords" in result.feedback
        assert "Avoid repeating characters" in result.feedback

    def test_empty_password(self):
        result = validate_password("")
        assert result.score == 2  # no repeats, no common substring
        assert result.valid is False

    @pytest.mark.parametrize("password", [
        "", "a", "aaaaaaaa", "password", "Abcdefgh1!", "Tr1cky-Horse-Battery!",
        "ZZZZZZZZZZZZZZZZZZZZZZZZZZZZZZZZ", "x" * 200, "Ünïcødé-Pässwörd-42",
    ])
    def test_score_bounds_and_validity(self, password):
        result = validate_password(password)
        assert 0 <= result.score <= 10
        assert result.valid == (result.score >= 6)

    def test_entropy(self):
        assert calculate_entropy("") == 0
        assert calculate_entropy("aaaa") == 0
        assert calculate_entropy("abcd") == pytest.approx(8.0)


def test_safe_compare():
    assert safe_compare("ABCDEF12", "ABCDEF12") is True
    assert safe_compare("ABCDEF12", "ABCDEF13") is False
    assert safe_compare("ABC", "ABCD") is False
