from __future__ import annotations

import os
import tempfile
from pathlib import Path

from ..errors import EmitIOError

IGNORED_STEMS = ("index",)


def write_text(path: Path, text: str) -> Path:
    """Replace ``path`` with ``text`` so readers never observe a half-written file."""
    path = Path(path)
    tmp_name = None
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(prefix=f".{path.name}", suffix=".tmp", dir=path.parent)
        with os.fdopen(fd, "w", encoding="utf-8", newline="\n") as f:
            f.write(text)
        os.replace(tmp_name, path)
        tmp_name = None
    except OSError as e:
        raise EmitIOError(f"Cannot write {path}: {e}", detail=str(path)) from e
    finally:
        if tmp_name is not None and os.path.exists(tmp_name):
            os.unlink(tmp_name)
    return path


def read_text(path: Path) -> str:
    try:
        return Path(path).read_text(encoding="utf-8")
    except OSError as e:
        raise EmitIOError(f"Cannot read {path}: {e}", detail=str(path)) from e


def record_stems(directory: Path, suffix: str) -> list[str]:
    """Vehicle ids with a ``<id><suffix>`` file in ``directory``, sorted."""
    directory = Path(directory)
    if not directory.is_dir():
        return []
    return sorted(
        p.stem
        for p in directory.glob(f"*{suffix}")
        if p.is_file() and not p.name.startswith(".") and p.stem not in IGNORED_STEMS
    )


def remove_file(path: Path) -> bool:
    """Delete ``path`` if it exists; True when something was removed."""
    try:
        Path(path).unlink()
    except FileNotFoundError:
        return False
    except OSError as e:
        raise EmitIOError(f"Cannot remove {path}: {e}", detail=str(path)) from e
    return True
