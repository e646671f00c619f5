"""Summary: Tests for the command-line interface.

Importance: Ensures operator commands work against a local database.
Alternatives: Exercise the CLI manually from a shell.
"""

from __future__ import annotations

import shutil
from pathlib import Path

import pytest

from proassist.cli import build_parser, run_cli
from proassist.errors import UserNotFound
from proassist.security import TokenIssuer

REPO_DEFAULTS = Path(__file__).resolve().parents[1] / "config" / "defaults.json"


@pytest.fixture
def workdir(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    (tmp_path / "config").mkdir()
    shutil.copy(REPO_DEFAULTS, tmp_path / "config" / "defaults.json")
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("PROASSIST_DB_PATH", str(tmp_path / "cli.db"))
    monkeypatch.setenv("JWT_SECRET", "cli-secret")
    monkeypatch.setenv("PROASSIST_PROVIDER_CLIENT", "mock")
    return tmp_path


def test_parser_requires_a_command() -> None:
    with pytest.raises(SystemExit):
        build_parser().parse_args([])


def test_issue_token_and_stats(workdir: Path, capsys: pytest.CaptureFixture[str]) -> None:
    """Summary: Verify a locally issued token is valid and stats print for the user.

    Importance: Supports local development without Google credentials.
    Alternatives: Always require the OAuth flow.
    """

    run_cli(["init-db"])
    assert (workdir / "cli.db").exists()
    capsys.readouterr()

    run_cli(["issue-token", "dra.ana@example.com"])
    token = capsys.readouterr().out.strip()
    claims = TokenIssuer(secret="cli-secret").verify(token)
    assert claims.email == "dra.ana@example.com"

    run_cli(["stats", "dra.ana@example.com"])
    output = capsys.readouterr().out
    assert "total: 0" in output
    assert "read_rate: 0.0%" in output


def test_unknown_user_is_reported(workdir: Path) -> None:
    with pytest.raises(UserNotFound):
        run_cli(["sync", "ninguem@example.com"])
