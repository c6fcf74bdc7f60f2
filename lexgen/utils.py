"""Filesystem helpers for writing generated output."""

from pathlib import Path


def write_text_if_changed(path: Path, content: str) -> bool:
    """
    Write ``content`` to ``path`` unless it already holds exactly that text.

    Files are compared as UTF-8 bytes, so an existing file that is not
    valid UTF-8 is simply overwritten. Parent directories are created as
    needed. Returns True when the file was (re)written. OSError propagates
    to the caller.
    """
    data = content.encode("utf-8")
    if path.exists():
        if path.read_bytes() == data:
            return False
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(data)
    return True


__all__ = ["write_text_if_changed"]
