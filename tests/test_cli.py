"""Tests for the qengine command line."""

from __future__ import annotations

import json
from datetime import timedelta

import pytest

from conftest import NOW
from question_engine import __version__
from question_engine.cli import main as cli
from question_engine.errors import StoreUnavailableError


@pytest.fixture
def patched_engine(monkeypatch, engine):
    async def fake_build(_cfg):
        return engine

    monkeypatch.setattr("question_engine.bootstrap.build_engine", fake_build)
    return engine


class TestParser:
    def test_suggest_defaults(self) -> None:
        args = cli.build_parser().parse_args(["suggest", "u1"])
        assert args.user_id == "u1"
        assert args.limit == 5

    def test_report_days(self) -> None:
        assert cli.build_parser().parse_args(["report", "--days", "7"]).days == 7

    def test_subcommand_required(self) -> None:
        with pytest.raises(SystemExit):
            cli.build_parser().parse_args([])


class TestCommands:
    def test_version(self, capsys) -> None:
        assert cli.cmd_version() == 0
        assert capsys.readouterr().out.strip() == __version__

    def test_suggest_prints_json(self, capsys, repo, patched_engine) -> None:
        repo.add_user("u1", department="Cancer Research")
        args = cli.build_parser().parse_args(["suggest", "u1", "--limit", "2"])
        assert args.func(args) == 0
        out = json.loads(capsys.readouterr().out)
        assert len(out) == 2
        assert out[0]["overallScore"] >= out[1]["overallScore"]

    def test_cleanup(self, capsys, repo, patched_engine) -> None:
        repo.add_suggestion(user_id="u1", expires_at=NOW - timedelta(days=1))
        args = cli.build_parser().parse_args(["cleanup"])
        assert args.func(args) == 0
        assert "deleted 1 expired suggestions" in capsys.readouterr().out

    def test_unreachable_store_exits_with_error(self, capsys, monkeypatch) -> None:
        async def unreachable(_cfg):
            raise StoreUnavailableError("cannot reach Postgres: connection refused")

        monkeypatch.setattr("question_engine.bootstrap.build_engine", unreachable)
        with pytest.raises(SystemExit) as exc:
            cli.app(["cleanup"])
        assert exc.value.code == 2
        assert "cannot reach Postgres" in capsys.readouterr().err
