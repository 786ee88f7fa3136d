"""Tests for backend adapters."""

import json
import stat

import httpx
import pytest

from providers import (
    BackendError,
    BackendMissing,
    BackendSpec,
    BackendTimeout,
    BackendUnavailable,
    CommandBackend,
    FunctionBackend,
    HttpBackend,
    InvalidConfig,
    MalformedPayload,
    MissingCredential,
    build_backend,
    classify_message,
    load_object,
    resolve_binary,
)
from tests.fakes import StubBackend, feedback_for


def write_script(directory, body, name="wiki-cli"):
    path = directory / name
    path.write_text("#!/bin/sh\n" + body + "\n")
    path.chmod(path.stat().st_mode | stat.S_IXUSR)
    return path


class TestClassifyMessage:
    @pytest.mark.parametrize(
        "message, kind",
        [
            ("request timed out after 10s", "timeout"),
            ("Unexpected token < in JSON", "malformed"),
            ("missing API key", "credential"),
            ("HTTP status 403 Forbidden", "credential"),
            ("connection refused", "unavailable"),
            ("lang must be one of en, de", "config"),
            ("something odd", "backend"),
        ],
    )
    def test_kinds(self, message, kind):
        assert classify_message(message).kind == kind

    def test_message_is_kept(self):
        assert classify_message("dns lookup failed").message == "dns lookup failed"


class TestResolveBinary:
    def test_env_override_wins(self, tmp_path, monkeypatch):
        script = write_script(tmp_path, "exit 0")
        monkeypatch.setenv("WIKI_CLI_BIN", str(script))
        assert resolve_binary("wiki-cli-not-on-path", "WIKI_CLI_BIN") == str(script)

    def test_candidates_checked(self, tmp_path):
        script = write_script(tmp_path, "exit 0")
        assert resolve_binary("wiki-cli-not-on-path", candidates=[str(script)]) == str(script)

    def test_missing(self):
        with pytest.raises(BackendMissing):
            resolve_binary("wiki-cli-not-on-path", candidates=["/nonexistent/wiki-cli"])


class TestCommandBackend:
    def test_success(self, tmp_path):
        body = "printf '%s' '" + json.dumps(feedback_for("rust")) + "'"
        backend = CommandBackend(str(write_script(tmp_path, body)))
        assert backend.fetch("rust") == feedback_for("rust")

    def test_query_is_substituted(self, tmp_path):
        script = write_script(tmp_path, "exit 0")
        backend = CommandBackend(str(script), args=["search", "--query", "{query}", "--mode", "script-filter"])
        assert backend.command_for("rust lang") == [
            str(script),
            "search",
            "--query",
            "rust lang",
            "--mode",
            "script-filter",
        ]

    def test_stderr_is_classified(self, tmp_path):
        backend = CommandBackend(str(write_script(tmp_path, "echo 'error: missing API key' >&2; exit 2")))
        with pytest.raises(MissingCredential):
            backend.fetch("rust")

    def test_silent_failure(self, tmp_path):
        backend = CommandBackend(str(write_script(tmp_path, "exit 3")))
        with pytest.raises(BackendError, match="status 3"):
            backend.fetch("rust")

    def test_empty_output(self, tmp_path):
        backend = CommandBackend(str(write_script(tmp_path, "exit 0")))
        with pytest.raises(MalformedPayload):
            backend.fetch("rust")

    def test_bad_json(self, tmp_path):
        backend = CommandBackend(str(write_script(tmp_path, "echo '{items:'")))
        with pytest.raises(MalformedPayload):
            backend.fetch("rust")

    def test_timeout(self, tmp_path):
        backend = CommandBackend(str(write_script(tmp_path, "sleep 5")), timeout=0.2)
        with pytest.raises(BackendTimeout):
            backend.fetch("rust")


class TestHttpBackend:
    def test_requires_placeholder(self):
        with pytest.raises(InvalidConfig):
            HttpBackend("https://example.test/search")

    def test_success_quotes_query(self):
        seen = []

        def handler(request):
            seen.append(str(request.url))
            return httpx.Response(200, json=feedback_for("rust"))

        backend = HttpBackend("https://example.test/search?q={query}", transport=httpx.MockTransport(handler))
        assert backend.fetch("rust lang") == feedback_for("rust")
        assert seen == ["https://example.test/search?q=rust%20lang"]

    @pytest.mark.parametrize(
        "status, error",
        [(401, MissingCredential), (503, BackendUnavailable), (404, BackendError)],
    )
    def test_status_mapping(self, status, error):
        transport = httpx.MockTransport(lambda request: httpx.Response(status))
        with pytest.raises(error):
            HttpBackend("https://example.test/{query}", transport=transport).fetch("rust")

    def test_invalid_json(self):
        transport = httpx.MockTransport(lambda request: httpx.Response(200, text="<html>"))
        with pytest.raises(MalformedPayload):
            HttpBackend("https://example.test/{query}", transport=transport).fetch("rust")

    def test_connection_error(self):
        def handler(request):
            raise httpx.ConnectError("refused", request=request)

        with pytest.raises(BackendUnavailable):
            HttpBackend("https://example.test/{query}", transport=httpx.MockTransport(handler)).fetch("rust")

    def test_transient_connection_error_is_retried(self):
        calls = []

        def handler(request):
            calls.append(request)
            if len(calls) == 1:
                raise httpx.ConnectError("boom", request=request)
            return httpx.Response(200, json=feedback_for("rust"))

        backend = HttpBackend("https://example.test/{query}", transport=httpx.MockTransport(handler))
        assert backend.fetch("rust") == feedback_for("rust")
        assert len(calls) == 2

    def test_client_error_is_not_retried(self):
        calls = []

        def handler(request):
            calls.append(request)
            return httpx.Response(404)

        with pytest.raises(BackendError):
            HttpBackend("https://example.test/{query}", transport=httpx.MockTransport(handler)).fetch("rust")
        assert len(calls) == 1

    def test_headers_are_sent(self):
        seen = []

        def handler(request):
            seen.append(request.headers.get("X-Api-Key"))
            return httpx.Response(200, json=feedback_for("rust"))

        backend = HttpBackend(
            "https://example.test/{query}",
            headers={"X-Api-Key": "k-1"},
            transport=httpx.MockTransport(handler),
        )
        backend.fetch("rust")
        assert seen == ["k-1"]


class TestRegistry:
    def test_load_object(self):
        assert load_object("tests.fakes:feedback_for") is feedback_for

    def test_load_object_needs_attr(self):
        with pytest.raises(InvalidConfig):
            load_object("tests.fakes")

    def test_missing_attr(self):
        with pytest.raises(BackendMissing):
            load_object("tests.fakes:nope")

    def test_function_is_wrapped(self):
        backend = build_backend(BackendSpec(kind="import", target="tests.fakes:echo"), timeout=1)
        assert isinstance(backend, FunctionBackend)
        assert backend.fetch("rust") == feedback_for("rust")

    def test_class_is_instantiated(self):
        backend = build_backend(BackendSpec(kind="import", target="tests.fakes:StubBackend"), timeout=1)
        assert isinstance(backend, StubBackend)

    def test_command_spec(self):
        spec = BackendSpec(kind="command", target="wiki-cli", args=["{query}"], bin_env="WIKI_CLI_BIN")
        backend = build_backend(spec, timeout=3)
        assert isinstance(backend, CommandBackend)
        assert backend.timeout == 3

    def test_identity_changes_with_args(self):
        a = BackendSpec(kind="command", target="wiki-cli", args=["--lang", "en"])
        b = BackendSpec(kind="command", target="wiki-cli", args=["--lang", "de"])
        assert a.identity() != b.identity()

    def test_identity_changes_with_headers(self):
        a = BackendSpec(kind="http", target="https://x.test/{query}", headers={"Accept-Language": "en"})
        b = BackendSpec(kind="http", target="https://x.test/{query}", headers={"Accept-Language": "de"})
        assert a.identity() != b.identity()

    def test_candidates_reach_command_backend(self, tmp_path):
        script = write_script(tmp_path, "exit 0")
        spec = BackendSpec(kind="command", target="wiki-cli-not-on-path", candidates=[str(script)])
        assert build_backend(spec, timeout=3).command_for("rust") == [str(script), "rust"]
