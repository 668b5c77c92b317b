"""Content-hash manifest that lets re-runs skip unchanged vehicles.

Per vehicle the manifest stores the sha256 (plus mtime/size for reporting) of
every contributing source, the datamine version and the outputs written. A
vehicle is ``fresh`` when all of those still match, ``stale`` when anything
changed and ``missing`` when it has never been built.
"""

from __future__ import annotations

import hashlib
import json
import logging
import os
import tempfile
from collections.abc import Callable, Iterable
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from .. import constants
from ..errors import CacheIOError

logger = logging.getLogger("fcsgen.cache")

FRESH = "fresh"
STALE = "stale"
MISSING = "missing"

# Dependency paths of the form "<csv>#<vehicle>" hash language rows, not files.
LANG_SEPARATOR = "#"


def canonical_json_bytes(obj: Any) -> bytes:
    return json.dumps(obj, sort_keys=True, separators=(",", ":"), ensure_ascii=False).encode("utf-8")


def sha256_hex(data: bytes) -> str:
    return hashlib.sha256(data).hexdigest()


def sha256_file(path: Path) -> str:
    h = hashlib.sha256()
    with open(path, "rb") as f:
        for chunk in iter(lambda: f.read(1 << 16), b""):
            h.update(chunk)
    return h.hexdigest()


@dataclass(frozen=True)
class Dependency:
    path: str
    sha256: str
    mtime: float | None = None
    size: int | None = None

    @classmethod
    def for_file(cls, path: Path) -> Dependency:
        stat = Path(path).stat()
        return cls(path=str(path), sha256=sha256_file(path), mtime=stat.st_mtime, size=stat.st_size)

    @classmethod
    def for_lang_rows(cls, lang_path: Path, vehicle_id: str, rows_hash: str) -> Dependency:
        return cls(path=f"{lang_path}{LANG_SEPARATOR}{vehicle_id}", sha256=rows_hash)

    @property
    def is_lang(self) -> bool:
        return LANG_SEPARATOR in self.path

    def as_dict(self) -> dict[str, Any]:
        return {"path": self.path, "sha256": self.sha256, "mtime": self.mtime, "size": self.size}

    @classmethod
    def from_dict(cls, d: dict[str, Any]) -> Dependency:
        return cls(
            path=str(d["path"]),
            sha256=str(d["sha256"]),
            mtime=float(d["mtime"]) if d.get("mtime") is not None else None,
            size=int(d["size"]) if d.get("size") is not None else None,
        )


@dataclass
class CacheManifestEntry:
    vehicle_id: str
    dependencies: list[Dependency] = field(default_factory=list)
    datamine_version: str = constants.UNKNOWN_VERSION
    outputs: list[str] = field(default_factory=list)
    # Selection warnings from the build, replayed when the vehicle is served from cache.
    warnings: list[dict[str, str | None]] = field(default_factory=list)
    # Per-projectile errors that did not fail the vehicle, replayed the same way.
    errors: list[dict[str, str | None]] = field(default_factory=list)

    def as_dict(self) -> dict[str, Any]:
        return {
            "vehicle_id": self.vehicle_id,
            "datamine_version": self.datamine_version,
            "dependencies": [d.as_dict() for d in self.dependencies],
            "outputs": list(self.outputs),
            "warnings": [dict(w) for w in self.warnings],
            "errors": [dict(e) for e in self.errors],
        }

    @classmethod
    def from_dict(cls, d: dict[str, Any]) -> CacheManifestEntry:
        return cls(
            vehicle_id=str(d["vehicle_id"]),
            dependencies=[Dependency.from_dict(x) for x in d.get("dependencies") or []],
            datamine_version=str(d.get("datamine_version", constants.UNKNOWN_VERSION)),
            outputs=[str(x) for x in d.get("outputs") or []],
            warnings=[dict(w) for w in d.get("warnings") or []],
            errors=[dict(e) for e in d.get("errors") or []],
        )


@dataclass(frozen=True)
class Change:
    path: str
    old_hash: str | None
    new_hash: str | None

    def as_dict(self) -> dict[str, str | None]:
        return {"path": self.path, "old": self.old_hash, "new": self.new_hash}


@dataclass(frozen=True)
class VehicleStatus:
    vehicle_id: str
    state: str  # "fresh" | "stale" | "missing"
    changes: tuple[Change, ...] = ()

    def as_dict(self) -> dict[str, Any]:
        return {"vehicle": self.vehicle_id, "state": self.state, "changes": [c.as_dict() for c in self.changes]}


def _current_hash(dep: Dependency, lang_hash: Callable[[str], str | None] | None) -> str | None:
    if dep.is_lang:
        vehicle_id = dep.path.rsplit(LANG_SEPARATOR, 1)[1]
        return lang_hash(vehicle_id) if lang_hash is not None else None
    path = Path(dep.path)
    if not path.is_file():
        return None
    try:
        return sha256_file(path)
    except OSError as e:
        logger.warning(f"Cannot hash {path}: {e}")
        return None


class CacheManifest:
    """Manifest for one stage's output directory."""

    def __init__(
        self,
        path: Path,
        *,
        signature: dict[str, Any] | None = None,
        datamine_version: str = constants.UNKNOWN_VERSION,
    ) -> None:
        self.path = Path(path)
        self.signature = sha256_hex(canonical_json_bytes(signature or {}))
        self.datamine_version = datamine_version
        self.entries: dict[str, CacheManifestEntry] = {}
        self._stored_signature: str | None = None

    @classmethod
    def load(
        cls,
        path: Path,
        *,
        signature: dict[str, Any] | None = None,
        datamine_version: str = constants.UNKNOWN_VERSION,
    ) -> tuple[CacheManifest, CacheIOError | None]:
        """Read the manifest. A corrupt or unreadable file yields an empty manifest plus the error."""
        manifest = cls(path, signature=signature, datamine_version=datamine_version)
        if not manifest.path.exists():
            return manifest, None
        try:
            data = json.loads(manifest.path.read_text(encoding="utf-8"))
            if int(data.get("schema_version", 0)) != constants.CACHE_SCHEMA_VERSION:
                raise ValueError(f"unsupported schema_version {data.get('schema_version')!r}")
            entries = {str(k): CacheManifestEntry.from_dict(v) for k, v in (data.get("entries") or {}).items()}
        except (OSError, ValueError, KeyError, TypeError, AttributeError) as e:
            err = CacheIOError(f"Unreadable cache manifest, treating everything as stale: {e}", detail=str(path))
            logger.warning(err.message, extra={"detail": str(path)})
            return manifest, err
        manifest.entries = entries
        manifest._stored_signature = data.get("signature")
        return manifest, None

    def as_dict(self) -> dict[str, Any]:
        return {
            "schema_version": constants.CACHE_SCHEMA_VERSION,
            "datamine_version": self.datamine_version,
            "signature": self.signature,
            "entries": {k: self.entries[k].as_dict() for k in sorted(self.entries)},
        }

    def save(self) -> None:
        """Write atomically: temp file in the same directory, then rename over the old one."""
        payload = json.dumps(self.as_dict(), indent=2) + "\n"
        tmp_name = None
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(prefix=self.path.name, suffix=".tmp", dir=self.path.parent)
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(payload)
                f.flush()
                os.fsync(f.fileno())
            os.replace(tmp_name, self.path)
            tmp_name = None
        except OSError as e:
            raise CacheIOError(f"Cannot write cache manifest: {e}", detail=str(self.path)) from e
        finally:
            if tmp_name is not None and os.path.exists(tmp_name):
                os.unlink(tmp_name)
        self._stored_signature = self.signature

    def record(self, entry: CacheManifestEntry) -> None:
        self.entries[entry.vehicle_id] = entry

    def forget(self, vehicle_id: str) -> None:
        self.entries.pop(vehicle_id, None)

    def status(self, vehicle_id: str, *, lang_hash: Callable[[str], str | None] | None = None) -> VehicleStatus:
        """Read-only staleness check for one vehicle."""
        entry = self.entries.get(vehicle_id)
        if entry is None:
            return VehicleStatus(vehicle_id, MISSING)

        changes: list[Change] = []
        if self._stored_signature != self.signature:
            changes.append(Change("<config signature>", self._stored_signature, self.signature))
        if entry.datamine_version != self.datamine_version:
            changes.append(Change("<datamine version>", entry.datamine_version, self.datamine_version))
        for dep in entry.dependencies:
            current = _current_hash(dep, lang_hash)
            if current != dep.sha256:
                changes.append(Change(dep.path, dep.sha256, current))
        for output in entry.outputs:
            if not Path(output).is_file():
                changes.append(Change(output, "<written>", None))

        return VehicleStatus(vehicle_id, STALE if changes else FRESH, tuple(changes))

    def status_all(
        self, vehicle_ids: Iterable[str], *, lang_hash: Callable[[str], str | None] | None = None
    ) -> list[VehicleStatus]:
        return [self.status(v, lang_hash=lang_hash) for v in sorted(vehicle_ids)]
