"""Filesystem helpers shared by the profile store and the cache."""

from __future__ import annotations
import contextlib
import os
import tempfile
from pathlib import Path


SECRET_FILE_MODE = 0o600
SETTINGS_FILE_MODE = 0o644
PRIVATE_DIR_MODE = 0o700


def ensure_private_dir(path: Path) -> None:
    """Create ``path`` (and parents) and restrict it to the owner."""
    path.mkdir(parents=True, exist_ok=True, mode=PRIVATE_DIR_MODE)
    os.chmod(path, PRIVATE_DIR_MODE)


def atomic_write_text(path: Path, content: str, *, mode: int) -> None:
    """Replace ``path`` with ``content`` via a temp file and ``os.replace``.

    The permission bits are applied to the temporary file before it becomes
    visible and asserted again afterwards, so a weakened mode left behind by an
    external ``chmod`` is healed on every write.
    """
    fd, tmp_name = tempfile.mkstemp(
        prefix=f".{path.name}.", suffix=".tmp", dir=path.parent
    )
    tmp_path = Path(tmp_name)
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as handle:
            os.fchmod(handle.fileno(), mode)
            handle.write(content)
            handle.flush()
            os.fsync(handle.fileno())
        os.replace(tmp_path, path)
    except BaseException:
        with contextlib.suppress(FileNotFoundError):
            tmp_path.unlink()
        raise
    os.chmod(path, mode)


__all__ = [
    "PRIVATE_DIR_MODE",
    "SECRET_FILE_MODE",
    "SETTINGS_FILE_MODE",
    "atomic_write_text",
    "ensure_private_dir",
]
