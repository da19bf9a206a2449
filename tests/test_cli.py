from __future__ import annotations

from pathlib import Path
from typing import Any

import pytest

import mailexport.cli as cli
from mailexport.auth import AccountStatus, AuthorizationDenied
from mailexport.models import ExportedEmail, ExportResult, ExportSummary


def _result(n: int) -> ExportResult:
    emails = [
        ExportedEmail(id=f"m{i}", thread_id=None, date="", from_="a@example.com", to="", subject="", snippet="")
        for i in range(n)
    ]
    summary = ExportSummary(
        query="q", account="default", total=n, attachments=0,
        oldest=None, newest=None, senders=(), exported_at="2026-01-01T00:00:00.000Z",
    )
    return ExportResult(emails=emails, summary=summary)


@pytest.fixture
def captured_search(monkeypatch: pytest.MonkeyPatch) -> dict[str, Any]:
    calls: dict[str, Any] = {}

    def fake_search(query, **kwargs):
        calls["query"] = query
        calls.update(kwargs)
        return _result(2)

    monkeypatch.setattr(cli, "search_emails", fake_search)
    return calls


def test_search_without_arguments_is_usage_error(capsys: pytest.CaptureFixture[str]):
    assert cli.search_main([]) == 1
    assert "Usage" in capsys.readouterr().out


def test_search_defaults(captured_search: dict[str, Any], tmp_path: Path, monkeypatch: pytest.MonkeyPatch, capsys):
    monkeypatch.setenv("MAILEXPORT_EXPORTS_DIR", str(tmp_path))

    assert cli.search_main(["from:bank@example.com"]) == 0

    assert captured_search["query"] == "from:bank@example.com"
    assert captured_search["account"] == "default"
    assert captured_search["max_results"] == 500
    assert captured_search["output_dir"] == tmp_path / "from_bank_example_com"
    assert "Export Complete" in capsys.readouterr().out


def test_search_alias_and_cap(captured_search: dict[str, Any], tmp_path: Path):
    assert cli.search_main(["has:attachment", "work", "100", "--output-dir", str(tmp_path)]) == 0

    assert captured_search["account"] == "work"
    assert captured_search["max_results"] == 100
    assert captured_search["output_dir"] == tmp_path


@pytest.mark.parametrize("raw", ["abc", "0", "-3"])
def test_search_bad_cap_falls_back_to_default(captured_search: dict[str, Any], raw: str, tmp_path: Path):
    assert cli.search_main(["q", "work", raw, "-o", str(tmp_path)]) == 0
    assert captured_search["max_results"] == 500


def test_search_failure_exits_nonzero(monkeypatch: pytest.MonkeyPatch, tmp_path: Path, capsys):
    def boom(query, **kwargs):
        raise RuntimeError("quota exceeded")

    monkeypatch.setattr(cli, "search_emails", boom)

    assert cli.search_main(["q", "-o", str(tmp_path)]) == 1
    assert "Error: quota exceeded" in capsys.readouterr().err


def test_search_no_matches_reports_empty(monkeypatch: pytest.MonkeyPatch, tmp_path: Path, capsys):
    monkeypatch.setattr(cli, "search_emails", lambda query, **kw: _result(0))

    assert cli.search_main(["q", "-o", str(tmp_path)]) == 0
    assert "No emails match" in capsys.readouterr().out


def test_auth_runs_authorize_for_alias(monkeypatch: pytest.MonkeyPatch, capsys):
    seen: list[Any] = []
    monkeypatch.setattr(cli, "authorize", lambda alias: seen.append(alias))

    assert cli.auth_main(["work"]) == 0
    assert cli.auth_main([]) == 0
    assert seen == ["work", None]
    assert "Authorization complete" in capsys.readouterr().out


def test_auth_failure_exits_nonzero(monkeypatch: pytest.MonkeyPatch, capsys):
    def denied(alias):
        raise AuthorizationDenied("Authorization denied: access_denied")

    monkeypatch.setattr(cli, "authorize", denied)

    assert cli.auth_main(["work"]) == 1
    assert "Authorization failed: Authorization denied" in capsys.readouterr().err


def test_auth_list_prints_accounts(monkeypatch: pytest.MonkeyPatch, capsys):
    monkeypatch.setattr(
        cli,
        "list_accounts",
        lambda: [AccountStatus("default", "me@example.com"), AccountStatus("old", None)],
    )

    assert cli.auth_main(["list"]) == 0
    out = capsys.readouterr().out
    assert "default: me@example.com" in out
    assert "old: (token expired or invalid)" in out


def test_main_dispatches(monkeypatch: pytest.MonkeyPatch):
    monkeypatch.setattr(cli, "auth_main", lambda rest: 11 if rest == ["list"] else -1)
    monkeypatch.setattr(cli, "search_main", lambda rest: 22 if rest == ["q"] else -1)

    assert cli.main(["auth", "list"]) == 11
    assert cli.main(["search", "q"]) == 22
    assert cli.main(["bogus"]) == 1
    assert cli.main([]) == 1


@pytest.mark.parametrize("query", ["-in:spam", "-label:promotions from:bank@example.com"])
def test_search_query_with_leading_dash_is_passed_verbatim(
    captured_search: dict[str, Any], query: str, tmp_path: Path
):
    assert cli.search_main([query, "work", "-o", str(tmp_path)]) == 0

    assert captured_search["query"] == query
    assert captured_search["account"] == "work"
    assert captured_search["output_dir"] == tmp_path


def test_search_help_prints_usage_without_searching(captured_search: dict[str, Any], capsys):
    assert cli.search_main(["--help"]) == 0
    assert "Usage" in capsys.readouterr().out
    assert captured_search == {}


def test_auth_help_does_not_authorize(monkeypatch: pytest.MonkeyPatch, capsys):
    seen: list[Any] = []
    monkeypatch.setattr(cli, "authorize", lambda alias: seen.append(alias))

    with pytest.raises(SystemExit) as e:
        cli.auth_main(["--help"])

    assert e.value.code == 0
    assert seen == []
    assert "list" in capsys.readouterr().out
