"""Tests for codelens ask command."""

from __future__ import annotations

import json
from pathlib import Path
from unittest.mock import AsyncMock, patch

import pytest
from typer.testing import CliRunner

from codelens.cli.main import app

runner = CliRunner()

_IMPACT = {
    "overview": "Add a remember-me checkbox.",
    "affectedFiles": ["src/auth.py"],
    "recommendedApproach": "1. Extend the form",
    "edgeCases": ["Shared computers"],
    "challenges": [],
    "risks": ["Longer sessions"],
    "effortBucket": "S",
    "timeRange": "4-8 hours",
    "detailedBreakdown": "Form and cookie changes.",
}


# ------------------------------------------------------------------
# Fixtures
# ------------------------------------------------------------------


@pytest.fixture
def db_path(tmp_path: Path) -> Path:
    src = tmp_path / "repo"
    src.mkdir()
    (src / "auth.py").write_text(
        "def login(user, password):\n    return check(user, password)\n", encoding="utf-8"
    )
    path = tmp_path / "test.db"
    result = runner.invoke(app, ["ingest", "-p", "p1", "-s", str(src), "--db", str(path)])
    assert result.exit_code == 0, result.output
    return path


@pytest.fixture
def api_key(monkeypatch):
    monkeypatch.setenv("GROQ_API_KEY", "gsk-test")


def _ask(db_path: Path, *args: str):
    return runner.invoke(app, ["ask", *args, "--db", str(db_path)])


# ------------------------------------------------------------------
# Guards
# ------------------------------------------------------------------


def test_ask_empty_query_exits_1(db_path: Path) -> None:
    result = _ask(db_path, "   ", "-p", "p1")
    assert result.exit_code == 1
    assert "question is empty" in result.output


def test_ask_no_db_exits_1(tmp_path: Path) -> None:
    result = _ask(tmp_path / "missing.db", "How?", "-p", "p1")
    assert result.exit_code == 1
    assert "No database" in result.output


def test_ask_missing_api_key_exits_1(db_path: Path, monkeypatch) -> None:
    monkeypatch.delenv("GROQ_API_KEY", raising=False)
    result = _ask(db_path, "How does login work?", "-p", "p1")
    assert result.exit_code == 1
    assert "GROQ_API_KEY" in result.output


# ------------------------------------------------------------------
# Context only
# ------------------------------------------------------------------


def test_context_only_needs_no_key(db_path: Path, monkeypatch) -> None:
    monkeypatch.delenv("GROQ_API_KEY", raising=False)

    result = _ask(db_path, "login", "-p", "p1", "--context-only")

    assert result.exit_code == 0, result.output
    assert "--- File: auth.py ---" in result.output
    assert "def login(user, password):" in result.output


def test_context_only_empty_project_warns(db_path: Path) -> None:
    result = _ask(db_path, "login", "-p", "nobody", "--context-only")
    assert result.exit_code == 0
    assert "no indexed files" in result.output


# ------------------------------------------------------------------
# Generation
# ------------------------------------------------------------------


def test_ask_prints_answer(db_path: Path, api_key) -> None:
    mock = AsyncMock(return_value="Login compares the password hash.")
    with patch("codelens.rag.generator.complete", new=mock):
        result = _ask(db_path, "How does login work?", "-p", "p1")

    assert result.exit_code == 0, result.output
    assert "Login compares the password hash." in result.output
    prompt = mock.call_args.kwargs["messages"][0]["content"]
    assert "--- File: auth.py ---" in prompt
    assert mock.call_args.kwargs["model"] == "groq/llama-3.1-8b-instant"


def test_ask_model_override(db_path: Path, monkeypatch) -> None:
    monkeypatch.setenv("OPENAI_API_KEY", "sk-test")
    mock = AsyncMock(return_value="ok")
    with patch("codelens.rag.generator.complete", new=mock):
        result = _ask(db_path, "How?", "-p", "p1", "--model", "openai/gpt-4o-mini")

    assert result.exit_code == 0, result.output
    assert mock.call_args.kwargs["model"] == "openai/gpt-4o-mini"


def test_ask_empty_project_flags_generator(db_path: Path, api_key) -> None:
    mock = AsyncMock(return_value="Nothing indexed yet.")
    with patch("codelens.rag.generator.complete", new=mock):
        result = _ask(db_path, "How does login work?", "-p", "other")

    assert result.exit_code == 0, result.output
    assert "No source files matched" in mock.call_args.kwargs["messages"][0]["content"]


def test_ask_impact_renders_report(db_path: Path, api_key) -> None:
    mock = AsyncMock(return_value=json.dumps(_IMPACT))
    with patch("codelens.rag.generator.complete", new=mock):
        result = _ask(db_path, "Add remember me", "-p", "p1", "--impact")

    assert result.exit_code == 0, result.output
    assert "Effort: S" in result.output
    assert "src/auth.py" in result.output
    assert "Longer sessions" in result.output


def test_ask_impact_unstructured_answer(db_path: Path, api_key) -> None:
    with patch("codelens.rag.generator.complete", new=AsyncMock(return_value="Just prose.")):
        result = _ask(db_path, "Add remember me", "-p", "p1", "--impact")

    assert result.exit_code == 0, result.output
    assert "Effort: M" in result.output
    assert "structured JSON" in result.output
