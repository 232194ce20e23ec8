"""
Unit tests for API key extraction and comparison.
"""

import pytest

import sys
import os
sys.path.append(os.path.join(os.path.dirname(__file__), '..', '..'))

from service_credentials.app.gate import constant_time_equals, extract_api_key, is_valid_api_key

SECRET = "s3cr3t-key-with-enough-length-0123456789"


class TestExtractApiKey:
    """Test cases for extract_api_key."""

    def test_dedicated_header(self):
        assert extract_api_key({"x-api-key": "abc"}) == "abc"

    def test_bearer_header(self):
        assert extract_api_key({"authorization": "Bearer abc"}) == "abc"

    def test_bearer_scheme_is_case_insensitive(self):
        assert extract_api_key({"authorization": "bearer abc"}) == "abc"

    def test_dedicated_header_wins(self):
        headers = {"x-api-key": "from-header", "authorization": "Bearer from-bearer"}

        assert extract_api_key(headers) == "from-header"

    def test_empty_dedicated_header_falls_back_to_bearer(self):
        headers = {"x-api-key": "", "authorization": "Bearer from-bearer"}

        assert extract_api_key(headers) == "from-bearer"

    @pytest.mark.parametrize("headers", [
        {},
        {"authorization": "Basic abc"},
        {"authorization": "Bearer"},
        {"authorization": "Bearer    "},
        {"authorization": ""},
    ])
    def test_absent(self, headers):
        assert extract_api_key(headers) is None


class TestConstantTimeEquals:
    """Test cases for constant_time_equals."""

    def test_exact_match(self):
        assert constant_time_equals(SECRET, SECRET) is True

    def test_equal_length_wrong_key(self):
        wrong = SECRET[:-1] + ("x" if SECRET[-1] != "x" else "y")

        assert len(wrong) == len(SECRET)
        assert constant_time_equals(wrong, SECRET) is False

    def test_differing_length(self):
        assert constant_time_equals(SECRET[:-1], SECRET) is False
        assert constant_time_equals(SECRET + "0", SECRET) is False

    def test_multibyte_characters(self):
        assert constant_time_equals("clé", "clé") is True
        assert constant_time_equals("clé", "cle") is False


class TestIsValidApiKey:
    """Test cases for is_valid_api_key."""

    def test_missing_provided_key(self):
        assert is_valid_api_key(None, SECRET) is False

    def test_unconfigured_secret_never_matches(self):
        assert is_valid_api_key("", "") is False

    def test_valid(self):
        assert is_valid_api_key(SECRET, SECRET) is True
