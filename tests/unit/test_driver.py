"""Tests for result rendering and error shaping."""

import pytest

from coalesce.models.state import CacheEntry
from coalesce.services.driver import ResultDriver, normalize_error_message, redact_sensitive, validate_payload
from providers import (
    BackendError,
    BackendMissing,
    BackendTimeout,
    BackendUnavailable,
    InvalidConfig,
    MalformedPayload,
    MissingCredential,
)
from tests.fakes import feedback_for


@pytest.fixture
def driver():
    return ResultDriver(label="Wiki")


class TestErrorPlaceholders:
    @pytest.mark.parametrize(
        "error, title",
        [
            (BackendTimeout("slow"), "Wiki timed out"),
            (BackendUnavailable("connection refused"), "Wiki unavailable"),
            (MalformedPayload("bad json"), "Malformed response"),
            (MissingCredential("token missing"), "Wiki credentials missing"),
            (InvalidConfig("lang must be en or de"), "Invalid Wiki workflow config"),
            (BackendMissing("wiki-cli binary not found"), "Workflow runtime error"),
            (BackendError("teapot"), "Wiki error"),
        ],
    )
    def test_title_per_kind(self, driver, error, title):
        feedback = driver.error(error)
        assert len(feedback.items) == 1
        assert feedback.items[0].title == title
        assert feedback.items[0].valid is False
        assert feedback.rerun is None

    def test_config_message_is_shown(self, driver):
        feedback = driver.error(InvalidConfig("error: lang must be en or de"))
        assert feedback.items[0].subtitle == "lang must be en or de"

    def test_secrets_do_not_leak(self, driver):
        feedback = driver.error(BackendError("request failed with api_key=sk-12345"))
        assert "sk-12345" not in feedback.to_json()


class TestRedaction:
    def test_key_value(self):
        assert redact_sensitive("token=abc123 and more") == "token=[REDACTED] and more"

    def test_bearer_header(self):
        assert redact_sensitive("Authorization: Bearer xyz.789") == "Authorization: Bearer [REDACTED]"

    def test_plain_text_untouched(self):
        assert redact_sensitive("no results for rust") == "no results for rust"

    def test_normalize_collapses_whitespace(self):
        assert normalize_error_message("error:   upstream\n  failed ") == "upstream failed"


class TestSuccess:
    def test_items_pass_through(self, driver):
        feedback = driver.success(feedback_for("rust"), "rust")
        assert feedback.items[0].title == "Result for rust"
        assert feedback.items[0].arg == "rust"

    def test_backend_rerun_is_dropped(self, driver):
        payload = {**feedback_for("rust"), "rerun": 1.0}
        assert driver.success(payload).rerun is None

    def test_extra_fields_are_kept(self, driver):
        payload = {"items": [{"title": "t", "icon": {"path": "icon.png"}}]}
        assert '"icon"' in driver.success(payload).to_json()

    def test_empty_items(self, driver):
        feedback = driver.success({"items": []}, "zzz")
        assert feedback.items[0].title == "No results found"
        assert "zzz" in feedback.items[0].subtitle

    @pytest.mark.parametrize("payload", [[], {"items": "nope"}, {"items": [{"subtitle": "no title"}]}])
    def test_malformed_payload(self, driver, payload):
        assert driver.success(payload).items[0].title == "Malformed response"

    def test_validate_rejects_non_object(self):
        with pytest.raises(MalformedPayload):
            validate_payload("items")


class TestFromCache:
    def test_ok_entry(self, driver):
        entry = CacheEntry(key="k", status="ok", payload=feedback_for("rust"), created_at=0, ttl_seconds=10)
        assert driver.from_cache(entry, "rust").items[0].title == "Result for rust"

    def test_err_entry_rebuilds_kind(self, driver):
        payload = {"kind": "credential", "message": "token missing"}
        entry = CacheEntry(key="k", status="err", payload=payload, created_at=0, ttl_seconds=10)
        assert driver.from_cache(entry).items[0].title == "Wiki credentials missing"


class TestInlineFetch:
    def test_crash_is_shaped(self, driver):
        def boom(query):
            raise KeyError("items")

        feedback = driver.fetch(boom, "rust")
        assert feedback.items[0].title == "Workflow runtime error"

    def test_pending(self, driver):
        feedback = driver.pending(0.4)
        assert feedback.rerun == 0.4
        assert feedback.items[0].title == "Searching Wiki..."
        assert feedback.items[0].valid is False
