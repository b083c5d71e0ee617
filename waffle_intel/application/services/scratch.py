"""Private temporary directories for media work."""

import contextlib
import tempfile
from collections.abc import Iterator
from pathlib import Path

from waffle_intel.commons.telemetry import get_logger

logger = get_logger(__name__)


def remove_tree(path: Path) -> int:
    """Delete a directory and everything under it.

    Never raises; each file that cannot be removed is logged and skipped.

    Returns:
        Number of entries that could not be removed.
    """
    if not path.exists():
        return 0
    failures = 0
    for child in sorted(path.rglob("*"), key=lambda p: len(p.parts), reverse=True):
        try:
            if child.is_dir() and not child.is_symlink():
                child.rmdir()
            else:
                child.unlink()
        except OSError as e:
            failures += 1
            logger.warning(
                "Failed to delete temporary file",
                extra={"path": str(child), "error": str(e)},
            )
    try:
        path.rmdir()
    except OSError as e:
        failures += 1
        logger.warning(
            "Failed to delete temporary directory",
            extra={"path": str(path), "error": str(e)},
        )
    return failures


@contextlib.contextmanager
def scratch_dir(prefix: str) -> Iterator[Path]:
    """Create a private temp directory and always clean it up."""
    path = Path(tempfile.mkdtemp(prefix=prefix))
    try:
        yield path
    finally:
        remove_tree(path)
