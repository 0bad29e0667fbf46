"""Console logging for the command-line tools."""

import logging

from rich.logging import RichHandler


def setup_logging(level: str | int = "INFO") -> None:
    """Route all log records through a single rich console handler."""
    if isinstance(level, str):
        level = getattr(logging, level.upper(), logging.INFO)
    logging.basicConfig(
        level=level,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(rich_tracebacks=True, show_path=False)],
        force=True,
    )
    # Model libraries are chatty at INFO.
    for noisy in ("onnxruntime", "transformers", "insightface"):
        logging.getLogger(noisy).setLevel(max(level, logging.WARNING))
