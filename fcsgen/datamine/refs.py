"""Datamine tree navigation and cross-file reference resolution."""

from __future__ import annotations

import fnmatch
from collections.abc import Iterable
from pathlib import Path, PurePosixPath
from typing import Any

from .. import constants
from ..config import DatamineLayout
from ..errors import MissingReferenceError
from . import blk


class Datamine:
    """Read-only view of an extracted datamine.

    Directory listings are cached so case-insensitive resolution stays cheap
    when many vehicles share weapon files.
    """

    def __init__(self, root: Path, layout: DatamineLayout | None = None) -> None:
        self.root = Path(root)
        self.layout = layout or DatamineLayout()
        self._listings: dict[Path, dict[str, str]] = {}
        self._trees: dict[Path, dict[str, Any]] = {}

    @property
    def units_dir(self) -> Path:
        return self.root / self.layout.units_dir

    def version(self) -> str:
        path = self.root / self.layout.version_file
        if not path.is_file():
            return constants.UNKNOWN_VERSION
        for line in path.read_text(encoding="utf-8", errors="replace").splitlines():
            if line.strip():
                return line.strip()
        return constants.UNKNOWN_VERSION

    def vehicle_path(self, vehicle_id: str) -> Path:
        return self.units_dir / f"{vehicle_id}{constants.BLKX_SUFFIX}"

    def list_vehicles(self, patterns: Iterable[str] = ("*",)) -> list[str]:
        """Vehicle ids matching any glob pattern, sorted ascending."""
        if not self.units_dir.is_dir():
            return []
        patterns = list(patterns) or ["*"]
        ids = {
            p.name[: -len(constants.BLKX_SUFFIX)]
            for p in self.units_dir.iterdir()
            if p.is_file() and p.name.endswith(constants.BLKX_SUFFIX)
        }
        return sorted(v for v in ids if any(fnmatch.fnmatchcase(v, pat) for pat in patterns))

    def load(self, path: Path) -> dict[str, Any]:
        """Parse a blkx file once per instance."""
        path = Path(path)
        tree = self._trees.get(path)
        if tree is None:
            tree = blk.read(path)
            self._trees[path] = tree
        return tree

    def _listing(self, directory: Path) -> dict[str, str]:
        listing = self._listings.get(directory)
        if listing is None:
            listing = {p.name.lower(): p.name for p in directory.iterdir()} if directory.is_dir() else {}
            self._listings[directory] = listing
        return listing

    def resolve(self, game_path: str, *, referenced_from: str | None = None) -> Path:
        """Map a game path ("gameData/Weapons/x.blk") onto a blkx file.

        Matching is case-insensitive per path component. An unresolved path
        raises MissingReferenceError naming it.
        """
        rel = PurePosixPath(game_path.strip().replace("\\", "/"))
        if not rel.parts:
            raise MissingReferenceError(game_path or "<empty>", detail=referenced_from)
        name = rel.name
        if name.lower().endswith(".blk"):
            name = name[: -len(".blk")] + constants.BLKX_SUFFIX
        elif not name.lower().endswith(constants.BLKX_SUFFIX):
            name = name + constants.BLKX_SUFFIX

        current = self.root / self.layout.gamedata_root
        for part in (*rel.parts[:-1], name):
            actual = self._listing(current).get(part.lower())
            if actual is None:
                detail = f"{game_path} (from {referenced_from})" if referenced_from else game_path
                raise MissingReferenceError(game_path, detail=detail)
            current = current / actual
        return current
