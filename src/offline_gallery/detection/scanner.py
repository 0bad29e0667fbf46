"""Find image files to index."""

import logging
import threading
from pathlib import Path

from offline_gallery.config import SUPPORTED_EXTENSIONS

logger = logging.getLogger(__name__)


def scan_directory(
    directory: str | Path,
    recursive: bool = True,
    cancel_event: threading.Event | None = None,
) -> list[Path]:
    """Return supported image files under ``directory``, grouped by extension.

    Cancellation is checked between extension batches; a cancelled scan
    returns the files found so far.
    """
    root = Path(directory)
    if not root.is_dir():
        raise FileNotFoundError(f"Directory not found: {root}")

    found: list[Path] = []
    seen: set[Path] = set()
    for ext in SUPPORTED_EXTENSIONS:
        if cancel_event is not None and cancel_event.is_set():
            logger.info("Scan of %s cancelled after %d files", root, len(found))
            break
        candidates = root.rglob("*") if recursive else root.iterdir()
        batch = sorted(
            p for p in candidates if p.suffix.lower() == ext and p.is_file()
        )
        for path in batch:
            if path not in seen:
                seen.add(path)
                found.append(path)

    logger.info("Found %d images in %s", len(found), root)
    return found
