"""CLI fixtures: isolated config, hash embeddings, no network."""

from __future__ import annotations

from pathlib import Path

import pytest
import yaml

from codelens.ingest.embedder import reset_embedder


@pytest.fixture(autouse=True)
def cli_env(tmp_path: Path, monkeypatch) -> Path:
    """Run each command in tmp_path with fallback-only embeddings."""
    monkeypatch.chdir(tmp_path)
    monkeypatch.setattr("codelens.config._GLOBAL_CONFIG_PATH", tmp_path / "no-global.yaml")
    for var in ("CODELENS_EMBEDDING_MODEL", "CODELENS_GENERATION_MODEL", "CODELENS_DB"):
        monkeypatch.delenv(var, raising=False)
    (tmp_path / "codelens.yaml").write_text(
        yaml.dump({"embedding": {"fallback_only": True}}), encoding="utf-8"
    )
    reset_embedder()
    yield tmp_path
    reset_embedder()
