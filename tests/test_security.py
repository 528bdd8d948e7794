"""Tests for core/security.py and the exception hierarchy."""

from series_studio.core.exceptions import ProviderError, QuotaExceededError, is_quota_message
from series_studio.core.security import redact_api_key, sanitize_filename


class TestRedactApiKey:
    """Tests for redact_api_key()."""

    def test_query_key(self):
        text = "POST https://example.com/v1beta/models/x:generateContent?key=abc123&alt=json"
        redacted = redact_api_key(text)
        assert "abc123" not in redacted
        assert "alt=json" in redacted

    def test_google_key(self):
        key = "AIza" + "B" * 35
        assert key not in redact_api_key(f"using {key}")

    def test_empty(self):
        assert redact_api_key("") == ""


class TestSanitizeFilename:
    """Tests for sanitize_filename()."""

    def test_strips_separators(self):
        assert sanitize_filename("../ep 1/final.tmproj") == "ep_1_final.tmproj"

    def test_empty_uses_fallback(self):
        assert sanitize_filename("") == "untitled"
        assert sanitize_filename("///", fallback="series-project") == "series-project"

    def test_folds_vietnamese_accents(self):
        assert sanitize_filename("Tập 1 - Đêm bay.tmproj") == "Tap_1_-_Dem_bay.tmproj"

    def test_extension_kept_when_truncated(self):
        name = sanitize_filename("x" * 300 + ".TMPROJ", max_length=40)
        assert len(name) == 40
        assert name.endswith(".tmproj")

    def test_implausible_extension_is_part_of_name(self):
        assert sanitize_filename("notes.final draft") == "notes.final_draft"


class TestQuotaClassification:
    """Tests for quota errors and message matching."""

    def test_quota_error_message_always_matches(self):
        error = QuotaExceededError("RESOURCE_EXHAUSTED")
        assert is_quota_message(error.message)
        assert error.recoverable is False
        assert error.details["status_code"] == 429

    def test_provider_error_recoverable_for_server_errors(self):
        assert ProviderError("boom", status_code=503).recoverable is True
        assert ProviderError("bad", status_code=400).recoverable is False

    def test_is_quota_message(self):
        assert is_quota_message("Rate LIMIT hit")
        assert not is_quota_message("Blocked by safety filter")
        assert not is_quota_message(None)
