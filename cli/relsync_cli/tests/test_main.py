"""
relsync CLI tests.

Covers:
  - argument parsing
  - exit codes for validate / repair
  - bearer token on every request
"""

from __future__ import annotations

import json

import httpx
import pytest

from relsync_cli.client import ApiClient
from relsync_cli.main import main, parse_args, run


def mock_client(routes: dict[str, dict | list], seen: list[httpx.Request] | None = None) -> ApiClient:
    def handler(request: httpx.Request) -> httpx.Response:
        if seen is not None:
            seen.append(request)
        body = routes.get(f"{request.method} {request.url.path}")
        if body is None:
            return httpx.Response(404, json={"detail": "not found"})
        return httpx.Response(200, json=body)

    return ApiClient("http://test", token="tok", transport=httpx.MockTransport(handler))


# ============================================================================
# Argument parsing
# ============================================================================


class TestParseArgs:
    def test_command_and_relation(self):
        args = parse_args(["validate", "event_guests", "--api-url", "http://x", "--token", "t"])
        assert args["command"] == "validate"
        assert args["relation"] == "event_guests"
        assert args["api_url"] == "http://x"
        assert args["token"] == "t"

    def test_unknown_command_exits(self):
        with pytest.raises(SystemExit) as exc:
            parse_args(["explode"])
        assert exc.value.code == 1

    def test_missing_option_value_exits(self):
        with pytest.raises(SystemExit):
            parse_args(["--token"])


# ============================================================================
# Commands
# ============================================================================


class TestRun:
    def test_validate_sound(self, capsys):
        client = mock_client({"GET /api/sync/event_guests/validate": {"sound": True, "issues": []}})
        assert run({"command": "validate", "relation": "event_guests"}, client) == 0
        assert json.loads(capsys.readouterr().out)["sound"] is True

    def test_validate_unsound_exits_one(self):
        client = mock_client({"GET /api/sync/event_guests/validate": {"sound": False, "issues": ["x"]}})
        assert run({"command": "validate", "relation": "event_guests"}, client) == 1

    def test_repair_incomplete_exits_one(self):
        client = mock_client({"POST /api/sync/event_guests/repair": {"complete": False, "failed": ["g1"]}})
        assert run({"command": "repair", "relation": "event_guests"}, client) == 1

    def test_stats(self, capsys):
        client = mock_client({"GET /api/sync/vendor_expenses/stats": {"total_entities": 2}})
        assert run({"command": "stats", "relation": "vendor_expenses"}, client) == 0
        assert json.loads(capsys.readouterr().out) == {"total_entities": 2}

    def test_bearer_token_sent(self):
        seen: list[httpx.Request] = []
        client = mock_client({"GET /api/sync/relations": ["event_guests"]}, seen)
        run({"command": "relations", "relation": None}, client)
        assert seen[0].headers["Authorization"] == "Bearer tok"


class TestMain:
    def test_requires_token(self, monkeypatch):
        monkeypatch.delenv("RELSYNC_TOKEN", raising=False)
        monkeypatch.setattr("sys.argv", ["relsync", "validate", "event_guests"])
        with pytest.raises(SystemExit) as exc:
            main()
        assert exc.value.code == 1

    def test_requires_relation(self, monkeypatch):
        monkeypatch.setattr("sys.argv", ["relsync", "repair"])
        with pytest.raises(SystemExit) as exc:
            main()
        assert exc.value.code == 1

    def test_version(self, monkeypatch, capsys):
        monkeypatch.setattr("sys.argv", ["relsync", "--version"])
        main()
        assert "relsync-cli" in capsys.readouterr().out
