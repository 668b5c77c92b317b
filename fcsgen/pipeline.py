"""The two pipeline stages.

convert-datamine: datamine -> ``Data/<vehicle>.txt|json`` (one task per vehicle).
make-ballistic:   ``Data/`` -> ballistic tables (one task per projectile).

Both consult a content-hash manifest first and only rebuild stale vehicles.
Workers compute; emission and manifest updates happen in this process, in
sorted vehicle order, after results are merged.
"""

from __future__ import annotations

import fnmatch
import functools
import logging
from collections import defaultdict
from collections.abc import Callable
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from . import constants
from .ballistics import compare_tables, compute
from .cache import FRESH, CacheManifest, CacheManifestEntry, Dependency, VehicleStatus
from .config import DatamineLayout, EngineConfig, PipelineConfig
from .datamine import Datamine, LangTable
from .emit import legacy, record_stems, remove_file, structured
from .errors import (
    EXIT_STRICT_WARNINGS,
    CacheIOError,
    ComputationError,
    EmitIOError,
    FcsError,
    MissingReferenceError,
    ParseError,
    SelectionWarning,
    error_from_dict,
    exit_code_for,
)
from .model import build_vehicle
from .model.data import BallisticTable, ProjectileEntry, VehicleData
from .pool import run_ordered

logger = logging.getLogger("fcsgen.pipeline")

BUILT = "built"
CACHED = "cached"
FAILED = "failed"
SKIPPED = "skipped"  # never started because a strict run was cancelled

GOLDEN_DETAIL_LIMIT = 5


# ============================================================================
# Report
# ============================================================================


@dataclass
class VehicleOutcome:
    vehicle_id: str
    outcome: str  # built | cached | failed | skipped
    errors: list[FcsError] = field(default_factory=list)
    warnings: list[SelectionWarning] = field(default_factory=list)
    outputs: list[str] = field(default_factory=list)

    def exit_code(self, strict: bool) -> int:
        code = exit_code_for(self.errors)
        if strict and self.warnings:
            code = max(code, EXIT_STRICT_WARNINGS)
        return code

    def as_dict(self) -> dict[str, Any]:
        return {
            "vehicle": self.vehicle_id,
            "outcome": self.outcome,
            "errors": [e.as_dict() for e in self.errors],
            "warnings": [w.as_dict() for w in self.warnings],
            "outputs": list(self.outputs),
        }


@dataclass
class RunReport:
    stage: str
    strict: bool = False
    vehicles: list[VehicleOutcome] = field(default_factory=list)
    errors: list[FcsError] = field(default_factory=list)  # run-level, e.g. manifest write
    warnings: list[FcsError] = field(default_factory=list)  # run-level, never change the exit code

    @property
    def exit_code(self) -> int:
        codes = [v.exit_code(self.strict) for v in self.vehicles]
        codes.append(exit_code_for(self.errors))
        return max(codes)

    def counts(self) -> dict[str, int]:
        out = {BUILT: 0, CACHED: 0, FAILED: 0, SKIPPED: 0}
        for v in self.vehicles:
            out[v.outcome] += 1
        return out

    def outcome(self, vehicle_id: str) -> VehicleOutcome:
        for v in self.vehicles:
            if v.vehicle_id == vehicle_id:
                return v
        raise KeyError(vehicle_id)

    def as_dict(self) -> dict[str, Any]:
        return {
            "stage": self.stage,
            "exit_code": self.exit_code,
            "counts": self.counts(),
            "errors": [e.as_dict() for e in self.errors],
            "warnings": [w.as_dict() for w in self.warnings],
            "vehicles": [v.as_dict() for v in self.vehicles],
        }


def _log_error(vehicle_id: str, err: FcsError) -> None:
    logger.error(
        f"{vehicle_id}: {err.kind}: {err.message}",
        extra={"vehicle": vehicle_id, "kind": err.kind, "detail": err.detail},
    )


def _log_warning(vehicle_id: str, w: SelectionWarning) -> None:
    logger.warning(f"{vehicle_id}: {w.message}", extra={"vehicle": vehicle_id, "kind": w.kind, "detail": w.detail})


def _require(path: Path | None, what: str) -> Path:
    if path is None:
        raise ValueError(f"PipelineConfig is missing the {what}")
    return Path(path)


def _open_manifest(
    directory: Path, config: PipelineConfig, signature: dict, version: str, report: RunReport | None
) -> CacheManifest:
    manifest, err = CacheManifest.load(
        directory / config.cache_filename, signature=signature, datamine_version=version
    )
    if err is not None and report is not None:
        report.warnings.append(err)
    return manifest


def _save_manifest(manifest: CacheManifest, report: RunReport) -> None:
    try:
        manifest.save()
    except CacheIOError as e:
        logger.error(e.message, extra={"kind": e.kind, "detail": e.detail})
        report.errors.append(e)


def _cached_outcome(manifest: CacheManifest, vehicle_id: str) -> VehicleOutcome:
    entry = manifest.entries[vehicle_id]
    warnings = [SelectionWarning(str(w.get("message")), detail=w.get("detail")) for w in entry.warnings]
    errors = [error_from_dict(e) for e in entry.errors]
    return VehicleOutcome(vehicle_id, CACHED, errors=errors, warnings=warnings, outputs=list(entry.outputs))


def _warning_records(warnings: list[SelectionWarning]) -> list[dict[str, str | None]]:
    return [{"message": w.message, "detail": w.detail} for w in warnings]


# ============================================================================
# Stage 1: convert-datamine
# ============================================================================


@dataclass(frozen=True)
class ConvertTask:
    datamine_root: Path
    layout: DatamineLayout
    vehicle_id: str
    lang_path: Path | None
    language: str


@dataclass
class ConvertResult:
    vehicle_id: str
    vehicle: VehicleData | None = None
    warnings: list[SelectionWarning] = field(default_factory=list)
    error: FcsError | None = None
    dependencies: list[Dependency] = field(default_factory=list)


@functools.lru_cache(maxsize=4)
def _parse_lang(path: Path, mtime_ns: int, size: int) -> LangTable:
    # One parse per process for each version of the file.
    return LangTable.load(path)


def _lang_table(path: Path | None) -> LangTable | None:
    if path is None or not path.is_file():
        return None
    st = path.stat()
    return _parse_lang(path, st.st_mtime_ns, st.st_size)


def convert_vehicle(task: ConvertTask) -> ConvertResult:
    """Worker: build one vehicle and hash the files it was built from."""
    try:
        lang = _lang_table(task.lang_path)
        datamine = Datamine(task.datamine_root, task.layout)
        built = build_vehicle(datamine, task.vehicle_id, lang=lang, language=task.language)
        deps = [Dependency.for_file(p) for p in built.dependencies]
    except FcsError as e:
        return ConvertResult(task.vehicle_id, error=e)
    except OSError as e:
        return ConvertResult(task.vehicle_id, error=ParseError(f"Cannot read source: {e}", detail=str(e.filename)))
    return ConvertResult(task.vehicle_id, vehicle=built.vehicle, warnings=built.warnings, dependencies=deps)


def _stage1_dir(config: PipelineConfig) -> Path:
    if config.emit_legacy and config.emit_structured:
        _require(config.structured_dir, "structured output directory")
    if config.emit_legacy:
        return _require(config.data_dir, "legacy data directory")
    return _require(config.structured_dir, "structured output directory")


def _load_lang(config: PipelineConfig, report: RunReport | None) -> tuple[LangTable | None, Path | None]:
    path = config.resolved_lang_path()
    if path is None or not path.is_file():
        logger.warning(f"No language file at {path}; display names fall back to vehicle ids")
        return None, None
    try:
        return _lang_table(path), path
    except (FcsError, OSError) as e:
        err = e if isinstance(e, FcsError) else ParseError(f"Cannot read language file: {e}", detail=str(path))
        logger.error(f"{err.message}; display names fall back to vehicle ids", extra={"detail": err.detail})
        if report is not None:
            report.errors.append(err)
        return None, None


def _convert_signature(config: PipelineConfig, lang_path: Path | None) -> dict:
    return {**config.signature(), "emit": config.emit, "lang": str(lang_path) if lang_path else None}


def _lang_hasher(lang: LangTable | None) -> Callable[[str], str | None]:
    return lambda vehicle_id: lang.rows_hash(vehicle_id) if lang is not None else None


def _cancel_on_failure(strict: bool) -> Callable[[Any], bool] | None:
    if not strict:
        return None
    return lambda r: r.error is not None or bool(getattr(r, "warnings", None))


def _other_format_records(config: PipelineConfig, vehicle_id: str) -> list[Path]:
    """Records an earlier run wrote in a format this run does not emit."""
    paths = []
    if not config.emit_structured and config.structured_dir is not None:
        paths.append(structured.vehicle_path(config.structured_dir, vehicle_id))
    if not config.emit_legacy and config.data_dir is not None:
        paths.append(legacy.vehicle_path(config.data_dir, vehicle_id))
    return paths


def _finish_convert(
    config: PipelineConfig,
    manifest: CacheManifest,
    result: ConvertResult,
    lang: LangTable | None,
    lang_path: Path | None,
) -> VehicleOutcome:
    vid = result.vehicle_id
    for w in result.warnings:
        _log_warning(vid, w)
    if result.error is not None:
        _log_error(vid, result.error)
        manifest.forget(vid)
        return VehicleOutcome(vid, FAILED, errors=[result.error], warnings=result.warnings)
    if config.strict and result.warnings:
        manifest.forget(vid)
        return VehicleOutcome(vid, FAILED, warnings=result.warnings)

    outputs: list[str] = []
    try:
        if config.emit_legacy:
            outputs.append(str(legacy.write_vehicle(config.data_dir, result.vehicle)))
        if config.emit_structured:
            outputs.append(str(structured.write_vehicle(config.structured_dir, result.vehicle)))
        for stale in _other_format_records(config, vid):
            if remove_file(stale):
                logger.info(f"Removed {stale}, a format this run does not emit", extra={"vehicle": vid})
    except EmitIOError as e:
        _log_error(vid, e)
        manifest.forget(vid)
        return VehicleOutcome(vid, FAILED, errors=[e], warnings=result.warnings, outputs=outputs)

    deps = list(result.dependencies)
    if lang is not None:
        deps.append(Dependency.for_lang_rows(lang_path, vid, lang.rows_hash(vid)))
    manifest.record(
        CacheManifestEntry(
            vehicle_id=vid,
            dependencies=deps,
            datamine_version=manifest.datamine_version,
            outputs=outputs,
            warnings=_warning_records(result.warnings),
        )
    )
    logger.info(f"Built {vid} ({len(result.vehicle.projectiles)} projectiles)", extra={"vehicle": vid})
    return VehicleOutcome(vid, BUILT, warnings=result.warnings, outputs=outputs)


def convert_datamine(config: PipelineConfig) -> RunReport:
    """Stage 1: rebuild the vehicle records of every stale vehicle."""
    report = RunReport(stage="convert-datamine", strict=config.strict)
    datamine = Datamine(_require(config.datamine_root, "datamine root"), config.layout)
    lang, lang_path = _load_lang(config, report)
    manifest = _open_manifest(
        _stage1_dir(config), config, _convert_signature(config, lang_path), datamine.version(), report
    )
    if not datamine.units_dir.is_dir():
        report.errors.append(MissingReferenceError(str(datamine.units_dir), detail="datamine units directory"))
        logger.error(f"No units directory at {datamine.units_dir}")
        return report
    lang_hash = _lang_hasher(lang)

    vehicle_ids = datamine.list_vehicles(config.vehicles)
    if not vehicle_ids:
        logger.warning(f"No vehicles under {datamine.units_dir} match {list(config.vehicles)}")

    outcomes: dict[str, VehicleOutcome] = {}
    todo: list[str] = []
    for vid in vehicle_ids:
        if not config.force:
            status = manifest.status(vid, lang_hash=lang_hash)
            if status.state == FRESH:
                outcomes[vid] = _cached_outcome(manifest, vid)
                continue
            for change in status.changes:
                logger.debug(f"{vid}: {change.path} changed", extra={"vehicle": vid, "old": change.old_hash})
        todo.append(vid)

    logger.info(f"convert-datamine: {len(todo)} stale of {len(vehicle_ids)} vehicle(s)")
    tasks = [
        ConvertTask(config.datamine_root, config.layout, vid, lang_path, config.language) for vid in todo
    ]
    results = run_ordered(convert_vehicle, tasks, config.threads, cancel=_cancel_on_failure(config.strict))
    for task, result in zip(tasks, results):
        if result is None:
            manifest.forget(task.vehicle_id)
            outcomes[task.vehicle_id] = VehicleOutcome(task.vehicle_id, SKIPPED)
            continue
        outcomes[task.vehicle_id] = _finish_convert(config, manifest, result, lang, lang_path)

    # A run that stops emitting structured records still refreshes an index left by an earlier one.
    index_dir = config.structured_dir
    if index_dir is not None and (config.emit_structured or (index_dir / structured.INDEX_NAME).is_file()):
        try:
            structured.write_index(index_dir)
        except EmitIOError as e:
            report.errors.append(e)
    _save_manifest(manifest, report)

    report.vehicles = [outcomes[v] for v in vehicle_ids]
    logger.info(f"convert-datamine finished: {report.counts()} exit={report.exit_code}")
    return report


def convert_status(config: PipelineConfig) -> list[VehicleStatus]:
    """Read-only: what convert-datamine would rebuild, and why."""
    datamine = Datamine(_require(config.datamine_root, "datamine root"), config.layout)
    lang, lang_path = _load_lang(config, None)
    manifest = _open_manifest(
        _stage1_dir(config), config, _convert_signature(config, lang_path), datamine.version(), None
    )
    return manifest.status_all(datamine.list_vehicles(config.vehicles), lang_hash=_lang_hasher(lang))


# ============================================================================
# Stage 2: make-ballistic
# ============================================================================


@dataclass(frozen=True)
class BallisticTask:
    vehicle_id: str
    entry: ProjectileEntry
    engine: EngineConfig


@dataclass
class BallisticResult:
    vehicle_id: str
    projectile_id: str
    table: BallisticTable | None = None
    error: FcsError | None = None


def compute_projectile(task: BallisticTask) -> BallisticResult:
    """Worker: one projectile's table. A ComputationError only loses this table."""
    try:
        table = compute(task.entry, task.engine)
    except ComputationError as e:
        return BallisticResult(task.vehicle_id, task.entry.projectile_id, error=e)
    return BallisticResult(task.vehicle_id, task.entry.projectile_id, table=table)


def record_path(data_dir: Path, vehicle_id: str) -> Path:
    """The structured record when present, else the legacy one."""
    json_path = structured.vehicle_path(data_dir, vehicle_id)
    if json_path.is_file():
        return json_path
    return legacy.vehicle_path(data_dir, vehicle_id)


def read_record(path: Path) -> VehicleData:
    if not path.is_file():
        raise MissingReferenceError(path.stem, detail=str(path))
    if path.suffix == structured.SUFFIX:
        return structured.read_vehicle(path)
    return legacy.read_vehicle(path)


def list_records(data_dir: Path, patterns=("*",)) -> list[str]:
    ids = set(record_stems(data_dir, structured.SUFFIX)) | set(record_stems(data_dir, legacy.SUFFIX))
    patterns = list(patterns) or ["*"]
    return sorted(v for v in ids if any(fnmatch.fnmatchcase(v, p) for p in patterns))


def _stage2_dir(config: PipelineConfig) -> Path:
    if config.emit_legacy and config.emit_structured:
        _require(config.structured_dir, "structured output directory")
    if config.emit_legacy:
        return _require(config.ballistic_dir, "ballistic output directory")
    return _require(config.structured_dir, "structured output directory")


def _ballistic_signature(config: PipelineConfig) -> dict:
    return {"engine": config.engine.signature(), "emit": config.emit}


def compare_golden(golden_dir: Path, vehicle_id: str, tables: list[BallisticTable], mode: str) -> list[FcsError]:
    """Compare against ``<golden>/<vehicle>/<projectile>.txt``; a missing golden table is an error."""
    errors: list[FcsError] = []
    for table in tables:
        path = legacy.table_dir(golden_dir, vehicle_id) / f"{table.projectile_id}{legacy.SUFFIX}"
        if not path.is_file():
            errors.append(MissingReferenceError(f"golden table {vehicle_id}/{table.projectile_id}", detail=str(path)))
            continue
        try:
            expected = legacy.read_table(path)
        except FcsError as e:
            errors.append(e)
            continue
        mismatches = compare_tables(expected.rows, table.rows, mode)
        if mismatches:
            errors.append(
                ComputationError(
                    f"{vehicle_id}/{table.projectile_id}: {len(mismatches)} value(s) differ from the golden table",
                    detail="; ".join(m.describe() for m in mismatches[:GOLDEN_DETAIL_LIMIT]),
                )
            )
    return errors


def _finish_ballistic(
    config: PipelineConfig,
    manifest: CacheManifest,
    vehicle: VehicleData,
    source: Path,
    results: list[BallisticResult | None],
) -> VehicleOutcome:
    vid = vehicle.vehicle_id
    if any(r is None for r in results):
        manifest.forget(vid)
        return VehicleOutcome(vid, SKIPPED)

    # A projectile without a table only loses that table; golden and emit failures fail the vehicle.
    lost: list[FcsError] = [r.error for r in results if r.error is not None]
    tables = [r.table for r in results if r.table is not None]
    errors: list[FcsError] = []
    if config.golden_dir is not None:
        errors.extend(compare_golden(config.golden_dir, vid, tables, config.engine.tolerance))

    outputs: list[str] = []
    try:
        if config.emit_legacy:
            outputs.extend(str(p) for p in legacy.write_tables(config.ballistic_dir, vid, tables))
        if config.emit_structured:
            outputs.append(str(structured.write_ballistic(config.structured_dir, vehicle, tables)))
    except EmitIOError as e:
        errors.append(e)

    for err in lost + errors:
        _log_error(vid, err)
    if errors or (config.strict and lost):
        manifest.forget(vid)
        return VehicleOutcome(vid, FAILED, errors=lost + errors, outputs=outputs)

    manifest.record(
        CacheManifestEntry(
            vehicle_id=vid,
            dependencies=[Dependency.for_file(source)],
            datamine_version=manifest.datamine_version,
            outputs=outputs,
            errors=[e.as_dict() for e in lost],
        )
    )
    logger.info(f"Built {len(tables)} table(s) for {vid}", extra={"vehicle": vid})
    return VehicleOutcome(vid, BUILT, errors=lost, outputs=outputs)


def make_ballistic(config: PipelineConfig) -> RunReport:
    """Stage 2: ballistic tables for every stale vehicle record."""
    report = RunReport(stage="make-ballistic", strict=config.strict)
    data_dir = _require(config.data_dir, "data directory")
    if not data_dir.is_dir():
        report.errors.append(MissingReferenceError(str(data_dir), detail="vehicle record directory"))
        logger.error(f"No vehicle record directory at {data_dir}")
        return report
    manifest = _open_manifest(
        _stage2_dir(config), config, _ballistic_signature(config), constants.UNKNOWN_VERSION, report
    )

    vehicle_ids = list_records(data_dir, config.vehicles)
    if not vehicle_ids:
        logger.warning(f"No vehicle records under {data_dir} match {list(config.vehicles)}")

    outcomes: dict[str, VehicleOutcome] = {}
    loaded: list[tuple[VehicleData, Path]] = []
    halted = False
    for vid in vehicle_ids:
        if halted:
            outcomes[vid] = VehicleOutcome(vid, SKIPPED)
            continue
        if not config.force and manifest.status(vid).state == FRESH:
            outcomes[vid] = _cached_outcome(manifest, vid)
            continue
        source = record_path(data_dir, vid)
        try:
            vehicle = read_record(source)
        except FcsError as e:
            _log_error(vid, e)
            manifest.forget(vid)
            outcomes[vid] = VehicleOutcome(vid, FAILED, errors=[e])
            halted = config.strict
            continue
        loaded.append((vehicle, source))

    tasks = [BallisticTask(v.vehicle_id, p, config.engine) for v, _ in loaded for p in v.projectiles]
    logger.info(f"make-ballistic: {len(loaded)} stale vehicle(s), {len(tasks)} projectile(s)")
    results = run_ordered(compute_projectile, tasks, config.threads, cancel=_cancel_on_failure(config.strict))

    by_vehicle: dict[str, list[BallisticResult | None]] = defaultdict(list)
    for task, result in zip(tasks, results):
        by_vehicle[task.vehicle_id].append(result)
    for vehicle, source in loaded:
        outcomes[vehicle.vehicle_id] = _finish_ballistic(
            config, manifest, vehicle, source, by_vehicle[vehicle.vehicle_id]
        )

    if config.emit_structured:
        try:
            structured.write_index(config.structured_dir)
        except EmitIOError as e:
            report.errors.append(e)
    _save_manifest(manifest, report)

    report.vehicles = [outcomes[v] for v in vehicle_ids]
    logger.info(f"make-ballistic finished: {report.counts()} exit={report.exit_code}")
    return report


def ballistic_status(config: PipelineConfig) -> list[VehicleStatus]:
    """Read-only: what make-ballistic would rebuild, and why."""
    data_dir = _require(config.data_dir, "data directory")
    manifest = _open_manifest(
        _stage2_dir(config), config, _ballistic_signature(config), constants.UNKNOWN_VERSION, None
    )
    return manifest.status_all(list_records(data_dir, config.vehicles))
