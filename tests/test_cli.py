"""Tests for the dashview command line."""

import json

import pytest
import requests
from typer.testing import CliRunner

from dashview.cli import app

runner = CliRunner()


def _response(status, body):
    response = requests.Response()
    response.status_code = status
    response.reason = "Not Found" if status == 404 else "OK"
    response._content = json.dumps(body).encode("utf-8")
    return response


@pytest.fixture
def settings_file(tmp_path):
    return tmp_path / "settings.json"


@pytest.fixture
def http(monkeypatch):
    calls = []
    replies = []

    def fake_request(self, method, url, **kwargs):
        calls.append((method, url, kwargs))
        return replies.pop(0) if len(replies) > 1 else replies[0]

    monkeypatch.setattr(requests.Session, "request", fake_request)
    return calls, replies


class TestBrowse:
    def test_prints_table(self, http, settings_file):
        calls, replies = http
        replies.append(
            _response(200, {"data": [{"id": 1, "name": "Acme"}, {"id": 2, "name": "Globex"}], "total": 12})
        )

        result = runner.invoke(
            app,
            [
                "browse",
                "https://api.example.com/v1/companies",
                "--total-path",
                "total",
                "--page",
                "2",
                "--search",
                "acme",
                "--sort",
                "name",
                "--desc",
                "--filter",
                "status=active",
                "--settings",
                str(settings_file),
            ],
        )

        assert result.exit_code == 0, result.output
        assert "Acme" in result.output
        assert "Globex" in result.output
        assert "Showing 11-12 of 12 (page 2 of 2)" in result.output
        method, url, kwargs = calls[0]
        assert (method, url) == ("GET", "https://api.example.com/v1/companies")
        assert kwargs["params"] == {
            "page": 2,
            "limit": 10,
            "search": "acme",
            "sortBy": "name",
            "order": "desc",
            "status": "active",
        }

    def test_grid_view(self, http, settings_file):
        _calls, replies = http
        replies.append(_response(200, {"data": [{"id": 1, "name": "Acme"}]}))

        result = runner.invoke(
            app,
            ["browse", "https://api.example.com/companies", "--view", "grid", "--settings", str(settings_file)],
        )

        assert result.exit_code == 0, result.output
        assert "Acme" in result.output

    def test_scalar_rows_use_a_value_column(self, http, settings_file):
        _calls, replies = http
        replies.append(_response(200, {"data": ["alpha", "beta"]}))

        result = runner.invoke(
            app,
            ["browse", "https://api.example.com/tags", "--settings", str(settings_file)],
        )

        assert result.exit_code == 0, result.output
        assert "value" in result.output
        assert "alpha" in result.output
        assert "beta" in result.output

    def test_hidden_column_is_not_printed(self, http, settings_file):
        _calls, replies = http
        replies.append(_response(200, {"data": [{"id": 1, "name": "Acme", "secret": "s3cr3t"}]}))

        result = runner.invoke(
            app,
            ["browse", "https://api.example.com/companies", "--hide", "secret", "--settings", str(settings_file)],
        )

        assert result.exit_code == 0, result.output
        assert "Acme" in result.output
        assert "s3cr3t" not in result.output

    def test_token_is_sent(self, http, settings_file):
        calls, replies = http
        replies.append(_response(200, {"data": []}))

        result = runner.invoke(
            app,
            ["browse", "https://api.example.com/companies", "--settings", str(settings_file)],
            env={"DASHVIEW_TOKEN": "secret"},
        )

        assert result.exit_code == 0, result.output
        assert "No results." in result.output
        assert calls[0][2]["headers"]["Authorization"] == "Bearer secret"

    def test_http_error_exits_non_zero(self, http, settings_file):
        _calls, replies = http
        replies.append(_response(404, {"message": "no such collection"}))

        result = runner.invoke(
            app,
            ["browse", "https://api.example.com/nothing", "--settings", str(settings_file)],
        )

        assert result.exit_code == 1
        assert "no such collection" in result.output

    def test_expired_session_exits_non_zero(self, http, settings_file):
        _calls, replies = http
        replies.append(_response(401, {"message": "jwt expired"}))

        result = runner.invoke(
            app,
            ["browse", "https://api.example.com/companies", "--token", "stale", "--settings", str(settings_file)],
        )

        assert result.exit_code == 1
        assert "Session expired. Please sign in again." in result.output

    def test_bad_filter_syntax(self, settings_file):
        result = runner.invoke(
            app,
            ["browse", "https://api.example.com/x", "--filter", "oops", "--settings", str(settings_file)],
        )
        assert result.exit_code == 1
        assert "KEY=VALUE" in result.output

    def test_relative_url_rejected(self, settings_file):
        result = runner.invoke(app, ["browse", "/companies", "--settings", str(settings_file)])
        assert result.exit_code == 1
        assert "Not an absolute URL" in result.output


class TestSettingsCommands:
    def test_show(self, settings_file):
        result = runner.invoke(app, ["settings", "show", "--settings", str(settings_file)])
        assert result.exit_code == 0, result.output
        assert "dashview/settings@1" in result.output
        assert settings_file.exists()

    def test_set_parses_json(self, settings_file):
        result = runner.invoke(app, ["settings", "set", "views.page_size", "50", "--settings", str(settings_file)])
        assert result.exit_code == 0, result.output
        stored = json.loads(settings_file.read_text(encoding="utf-8"))
        assert stored["views"]["page_size"] == 50

    def test_set_bare_word_is_string(self, settings_file):
        result = runner.invoke(
            app,
            ["settings", "set", "api.base_url", "https://api.example.com", "--settings", str(settings_file)],
        )
        assert result.exit_code == 0, result.output
        stored = json.loads(settings_file.read_text(encoding="utf-8"))
        assert stored["api"]["base_url"] == "https://api.example.com"

    def test_set_invalid_value(self, settings_file):
        result = runner.invoke(app, ["settings", "set", "views.page_size", "15", "--settings", str(settings_file)])
        assert result.exit_code == 1
        assert "Error" in result.output
