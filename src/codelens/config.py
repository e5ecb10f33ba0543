"""codelens configuration loader.

Priority (high → low):
  1. CLI flags           (handled at call site — not in this module)
  2. Environment variables  (CODELENS_EMBEDDING_MODEL, CODELENS_GENERATION_MODEL, CODELENS_DB)
  3. Per-project codelens.yaml  (current working directory)
  4. Global ~/.codelens/config.yaml  (model defaults only — no API keys)
  5. Hardcoded defaults

Global config must never contain API keys; use environment variables instead.
All YAML reads use yaml.safe_load() — never yaml.load().
"""

from __future__ import annotations

import os
import re
import warnings
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

_GLOBAL_CONFIG_DIR: Path = Path.home() / ".codelens"
_GLOBAL_CONFIG_PATH: Path = _GLOBAL_CONFIG_DIR / "config.yaml"
_PROJECT_CONFIG_NAME: str = "codelens.yaml"

# Matches api_key, api-key, api_secret, *_token, token, *_secret, secret,
# password, passwd, credential(s). Does not match max_tokens / overlap_tokens.
_API_KEY_RE: re.Pattern[str] = re.compile(
    r"api[_\-]?(?:key|secret)"
    r"|_token$"
    r"|^token$"
    r"|_secret$"
    r"|^secret$"
    r"|passw(?:ord|d)"
    r"|credential",
    re.IGNORECASE,
)

_KNOWN_SECTIONS: frozenset[str] = frozenset(
    ["embedding", "chunking", "retrieval", "generation", "database"]
)


# ---------------------------------------------------------------------------
# Exceptions
# ---------------------------------------------------------------------------


class ConfigError(ValueError):
    """Raised when a config file contains an invalid or forbidden value."""


# ---------------------------------------------------------------------------
# Data model
# ---------------------------------------------------------------------------


@dataclass
class EmbeddingCfg:
    """Embedding configuration (codelens.yaml: embedding:).

    Attributes:
        model: sentence-transformers model name for the primary strategy.
        dimensions: Fixed width of every stored vector.
        fallback_only: Skip the primary model entirely and use the
            deterministic hash embedding (offline / CI use).
    """

    model: str = "BAAI/bge-base-en-v1.5"
    dimensions: int = 768
    fallback_only: bool = False


@dataclass
class ChunkingCfg:
    """Line chunker bounds, in estimated tokens (codelens.yaml: chunking:)."""

    max_tokens: int = 400
    min_tokens: int = 200
    overlap_tokens: int = 50
    avg_line_chars: int = 50


@dataclass
class RetrievalCfg:
    """Retrieval configuration (codelens.yaml: retrieval:)."""

    top_k: int = 5
    context_budget: int = 8_000


@dataclass
class GenerationCfg:
    """Answer generation configuration (codelens.yaml: generation:)."""

    model: str = "groq/llama-3.1-8b-instant"
    temperature: float = 0.7
    max_tokens: int = 2_000


@dataclass
class DatabaseCfg:
    """Storage location (codelens.yaml: database:)."""

    path: str = ".codelens.db"


@dataclass
class CodelensConfig:
    """Root configuration object, built by load_config() from merged YAML layers."""

    embedding: EmbeddingCfg = field(default_factory=EmbeddingCfg)
    chunking: ChunkingCfg = field(default_factory=ChunkingCfg)
    retrieval: RetrievalCfg = field(default_factory=RetrievalCfg)
    generation: GenerationCfg = field(default_factory=GenerationCfg)
    database: DatabaseCfg = field(default_factory=DatabaseCfg)


# ---------------------------------------------------------------------------
# Validation helpers
# ---------------------------------------------------------------------------


def _check_no_api_keys(data: dict[str, Any], source: Path) -> None:
    """Raise ConfigError if *data* contains any API-key-like key names."""

    def _scan(obj: Any, path: str) -> None:
        if isinstance(obj, dict):
            for k, v in obj.items():
                full = f"{path}.{k}" if path else k
                if _API_KEY_RE.search(str(k)):
                    raise ConfigError(
                        f"Global config '{source}' contains a forbidden key '{full}'.\n"
                        f"  API keys must be set via environment variables, not config files.\n"
                        f"  Remove '{full}' from {source.name} and use:\n"
                        f"    export {str(k).upper().replace('-', '_')}=<value>"
                    )
                _scan(v, full)

    _scan(data, "")


def _warn_unknown_keys(data: dict[str, Any], source: Path) -> None:
    """Emit a UserWarning for unrecognised top-level keys."""
    for key in data:
        if key not in _KNOWN_SECTIONS:
            warnings.warn(
                f"Unknown config key '{key}' in '{source}' — ignored.",
                UserWarning,
                stacklevel=4,
            )


def _validate(cfg: CodelensConfig) -> None:
    """Raise ConfigError for values the pipeline cannot work with."""
    if cfg.embedding.dimensions < 1:
        raise ConfigError(f"embedding.dimensions must be >= 1, got {cfg.embedding.dimensions}")
    ch = cfg.chunking
    if ch.max_tokens < 1 or ch.min_tokens < 0 or ch.overlap_tokens < 0 or ch.avg_line_chars < 1:
        raise ConfigError("chunking values must be positive (overlap_tokens / min_tokens may be 0)")
    if ch.overlap_tokens >= ch.max_tokens:
        raise ConfigError(
            f"chunking.overlap_tokens ({ch.overlap_tokens}) must be smaller than "
            f"chunking.max_tokens ({ch.max_tokens})"
        )
    if cfg.retrieval.top_k < 1:
        raise ConfigError(f"retrieval.top_k must be >= 1, got {cfg.retrieval.top_k}")
    if cfg.retrieval.context_budget < 1:
        raise ConfigError(
            f"retrieval.context_budget must be >= 1, got {cfg.retrieval.context_budget}"
        )


# ---------------------------------------------------------------------------
# Merge + build
# ---------------------------------------------------------------------------


def _deep_merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """Return a new dict that is *base* deep-merged with *override*."""
    result = dict(base)
    for k, v in override.items():
        if k in result and isinstance(result[k], dict) and isinstance(v, dict):
            result[k] = _deep_merge(result[k], v)
        else:
            result[k] = v
    return result


def _cfg_from_dict(data: dict[str, Any]) -> CodelensConfig:
    """Build a *CodelensConfig* from a merged raw YAML dict."""
    cfg = CodelensConfig()

    if "embedding" in data:
        e = data["embedding"] or {}
        cfg.embedding = EmbeddingCfg(
            model=str(e.get("model", cfg.embedding.model)),
            dimensions=int(e.get("dimensions", cfg.embedding.dimensions)),
            fallback_only=bool(e.get("fallback_only", cfg.embedding.fallback_only)),
        )

    if "chunking" in data:
        c = data["chunking"] or {}
        cfg.chunking = ChunkingCfg(
            max_tokens=int(c.get("max_tokens", cfg.chunking.max_tokens)),
            min_tokens=int(c.get("min_tokens", cfg.chunking.min_tokens)),
            overlap_tokens=int(c.get("overlap_tokens", cfg.chunking.overlap_tokens)),
            avg_line_chars=int(c.get("avg_line_chars", cfg.chunking.avg_line_chars)),
        )

    if "retrieval" in data:
        r = data["retrieval"] or {}
        cfg.retrieval = RetrievalCfg(
            top_k=int(r.get("top_k", cfg.retrieval.top_k)),
            context_budget=int(r.get("context_budget", cfg.retrieval.context_budget)),
        )

    if "generation" in data:
        g = data["generation"] or {}
        cfg.generation = GenerationCfg(
            model=str(g.get("model", cfg.generation.model)),
            temperature=float(g.get("temperature", cfg.generation.temperature)),
            max_tokens=int(g.get("max_tokens", cfg.generation.max_tokens)),
        )

    if "database" in data:
        d = data["database"] or {}
        cfg.database = DatabaseCfg(path=str(d.get("path", cfg.database.path)))

    return cfg


def _apply_env_overrides(cfg: CodelensConfig) -> CodelensConfig:
    """Apply CODELENS_* environment variable overrides (layer 2)."""
    if model := os.environ.get("CODELENS_EMBEDDING_MODEL"):
        cfg.embedding.model = model
    if model := os.environ.get("CODELENS_GENERATION_MODEL"):
        cfg.generation.model = model
    if db_path := os.environ.get("CODELENS_DB"):
        cfg.database.path = db_path
    return cfg


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def load_config(
    project_dir: Path | None = None,
    *,
    global_config_path: Path | None = None,
) -> CodelensConfig:
    """Load and return a merged *CodelensConfig*.

    Applies layers in order: global → per-project → env vars.
    CLI flag overrides must be applied by the caller after this function.

    Args:
        project_dir: Directory to search for *codelens.yaml*. Defaults to CWD.
        global_config_path: Override the global config path (for testing).

    Raises:
        ConfigError: If global config contains API-key-like fields, a value
            cannot be parsed, or a bound is out of range.
    """
    global_path = global_config_path if global_config_path is not None else _GLOBAL_CONFIG_PATH
    search_dir = project_dir if project_dir is not None else Path.cwd()

    merged: dict[str, Any] = {}

    if global_path.exists():
        raw_global = yaml.safe_load(global_path.read_text(encoding="utf-8")) or {}
        _check_no_api_keys(raw_global, global_path)
        _warn_unknown_keys(raw_global, global_path)
        merged = _deep_merge(merged, raw_global)

    project_cfg_path = search_dir / _PROJECT_CONFIG_NAME
    if project_cfg_path.exists():
        raw_project = yaml.safe_load(project_cfg_path.read_text(encoding="utf-8")) or {}
        _warn_unknown_keys(raw_project, project_cfg_path)
        merged = _deep_merge(merged, raw_project)

    try:
        cfg = _cfg_from_dict(merged)
    except (TypeError, ValueError, AttributeError) as exc:
        raise ConfigError(f"Invalid config value: {exc}") from exc

    cfg = _apply_env_overrides(cfg)
    _validate(cfg)
    return cfg
