"""Suffix → language table and the archive walk filters."""

from __future__ import annotations

from pathlib import PurePosixPath

LANGUAGES: dict[str, str] = {
    ".js": "javascript",
    ".jsx": "javascript",
    ".ts": "typescript",
    ".tsx": "typescript",
    ".py": "python",
    ".java": "java",
    ".cpp": "cpp",
    ".c": "c",
    ".cs": "csharp",
    ".go": "go",
    ".rs": "rust",
    ".rb": "ruby",
    ".php": "php",
    ".swift": "swift",
    ".kt": "kotlin",
    ".scala": "scala",
    ".sh": "bash",
    ".json": "json",
    ".yaml": "yaml",
    ".yml": "yaml",
    ".md": "markdown",
    ".txt": "plaintext",
    ".sql": "sql",
    ".html": "html",
    ".css": "css",
}

SUPPORTED_EXTENSIONS: frozenset[str] = frozenset(LANGUAGES)

# Matched as substrings of the "/"-normalised entry path.
IGNORED_SEGMENTS: tuple[str, ...] = (
    "node_modules/",
    ".git/",
    "dist/",
    "build/",
    "__pycache__/",
    ".venv/",
    "venv/",
    "target/",
    ".next/",
    "vendor/",
)


def _suffix(path: str) -> str:
    return PurePosixPath(path.replace("\\", "/")).suffix.lower()


def detect_language(filename: str) -> str:
    """Return the language tag for *filename*; unknown suffixes are ``plaintext``."""
    return LANGUAGES.get(_suffix(filename), "plaintext")


def is_supported(path: str) -> bool:
    return _suffix(path) in SUPPORTED_EXTENSIONS


def is_ignored(path: str) -> bool:
    """True if *path* sits under a dependency, VCS or build output directory."""
    normalised = "/" + path.replace("\\", "/").lstrip("/")
    return any(f"/{segment}" in normalised for segment in IGNORED_SEGMENTS)


def should_index(path: str) -> bool:
    """Archive/directory walk filter: supported suffix and not ignored."""
    return is_supported(path) and not is_ignored(path)
