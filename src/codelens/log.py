"""Logging setup for the CLI.

Library modules only call ``logging.getLogger(__name__)``; handlers are
installed once here, rendered through rich so log lines share the console
with progress bars.
"""

from __future__ import annotations

import logging

from rich.console import Console
from rich.logging import RichHandler

_NOISY_LOGGERS = ("LiteLLM", "litellm", "httpx", "httpcore", "sentence_transformers", "urllib3")


def setup_logging(verbose: bool = False, console: Console | None = None) -> logging.Logger:
    """Configure the ``codelens`` logger tree and return its root.

    Args:
        verbose: Emit DEBUG records instead of WARNING and above.
        console: Console to render into (stderr console by default).
    """
    logger = logging.getLogger("codelens")
    logger.setLevel(logging.DEBUG if verbose else logging.WARNING)
    logger.handlers.clear()

    handler = RichHandler(
        console=console or Console(stderr=True),
        show_path=False,
        rich_tracebacks=verbose,
    )
    handler.setFormatter(logging.Formatter("%(message)s"))
    logger.addHandler(handler)
    logger.propagate = False

    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    return logger
