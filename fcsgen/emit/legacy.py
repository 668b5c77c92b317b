"""Line-oriented text formats read by the in-game overlay.

``Data/<vehicle>.txt``::

    <vehicle_id>
    <display name>
    zoom=<z1>,<z2>,...
    laser=<0|1>
    shell=<id>;<kind>;<weapon>;<ammo>;<slot>;<double>;<v0>;<caliber_mm>;<mass_kg>;<cx>;
          <ballistic_caliber_mm>;<filler_kg>;<cumulative_power>;<law>;<rocket>

(one ``shell=`` line per projectile, on a single line). Floats are written with
``repr`` so numbers read back exactly; absent values are ``-``. Text fields
percent-escape ``%``, ``;`` and line breaks. The raw bulletType is not carried.

``Ballistic/<vehicle>/<projectile>.txt`` holds one ``distance\\ttime\\tpenetration``
row per line.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from pathlib import Path
from urllib.parse import unquote

from ..errors import ParseError
from ..model.data import (
    ArmorPowerSeries,
    BallisticRow,
    BallisticTable,
    DeMarreParams,
    ProjectileEntry,
    ProjectileKind,
    RocketMotor,
    VehicleData,
)
from .files import read_text, remove_file, write_text

logger = logging.getLogger("fcsgen.emit")

SUFFIX = ".txt"
NONE = "-"
SHELL_FIELDS = 15
ROW_FORMAT = "{distance:.0f}\t{time:.4f}\t{penetration:.1f}"


def _num(x: float | None) -> str:
    return NONE if x is None else repr(float(x))


def _opt(s: str, path: Path) -> float | None:
    if s == NONE:
        return None
    try:
        return float(s)
    except ValueError as e:
        raise ParseError(f"{path}: bad number {s!r}", detail=str(path)) from e


def _req(s: str, path: Path) -> float:
    value = _opt(s, path)
    if value is None:
        raise ParseError(f"{path}: missing required number", detail=str(path))
    return value


# Separators inside a text field are percent-escaped; "%" itself first so unquote() inverts it.
_ESCAPES = (("%", "%25"), (";", "%3B"), ("\r", "%0D"), ("\n", "%0A"))


def _escape(text: str) -> str:
    for raw, escaped in _ESCAPES:
        text = text.replace(raw, escaped)
    return text


def _format_law(law: DeMarreParams | ArmorPowerSeries | None) -> str:
    if isinstance(law, DeMarreParams):
        values = (
            law.coefficient,
            law.exponent,
            law.reference_caliber_mm,
            law.mass_exponent,
            law.caliber_exponent,
            law.penetrator_mass_kg,
            law.penetrator_caliber_mm,
        )
        return "demarre:" + ",".join(_num(v) for v in values)
    if isinstance(law, ArmorPowerSeries):
        return "series:" + "|".join(f"{_num(v)}:{_num(p)}" for v, p in law.breakpoints)
    return NONE


def _parse_law(s: str, path: Path) -> DeMarreParams | ArmorPowerSeries | None:
    if s == NONE:
        return None
    tag, _, body = s.partition(":")
    if tag == "demarre":
        parts = body.split(",")
        if len(parts) != 7:
            raise ParseError(f"{path}: DeMarre law needs 7 values, got {len(parts)}", detail=s)
        k, e, ref, mp, cp = (_req(p, path) for p in parts[:5])
        return DeMarreParams(
            coefficient=k,
            exponent=e,
            reference_caliber_mm=ref,
            mass_exponent=mp,
            caliber_exponent=cp,
            penetrator_mass_kg=_opt(parts[5], path),
            penetrator_caliber_mm=_opt(parts[6], path),
        )
    if tag == "series":
        points = []
        for pair in body.split("|"):
            v, sep, p = pair.partition(":")
            if not sep:
                raise ParseError(f"{path}: bad armor-power breakpoint {pair!r}", detail=s)
            points.append((_req(v, path), _req(p, path)))
        try:
            return ArmorPowerSeries(tuple(points))
        except ValueError as e:
            raise ParseError(f"{path}: {e}", detail=s) from e
    raise ParseError(f"{path}: unknown penetration law {tag!r}", detail=s)


def _format_rocket(rocket: RocketMotor | None) -> str:
    if rocket is None:
        return NONE
    return ",".join(_num(v) for v in (rocket.end_speed, rocket.burn_time_s, rocket.max_distance_m))


def _parse_rocket(s: str, path: Path) -> RocketMotor | None:
    if s == NONE:
        return None
    parts = s.split(",")
    if len(parts) != 3:
        raise ParseError(f"{path}: rocket needs 3 values, got {len(parts)}", detail=s)
    end_speed, burn, max_distance = (_req(p, path) for p in parts)
    return RocketMotor(end_speed=end_speed, burn_time_s=burn, max_distance_m=max_distance)


def format_shell(p: ProjectileEntry) -> str:
    fields = [
        _escape(p.projectile_id),
        p.kind.value,
        _escape(p.weapon),
        _escape(p.ammo),
        str(p.slot),
        "1" if p.double_shell else "0",
        _num(p.velocity),
        _num(p.caliber_mm),
        _num(p.mass_kg),
        _num(p.cx),
        _num(p.ballistic_caliber_mm),
        _num(p.he_filler_kg),
        _num(p.cumulative_armor_power),
        _format_law(p.law),
        _format_rocket(p.rocket),
    ]
    return "shell=" + ";".join(fields)


def parse_shell(line: str, path: Path) -> ProjectileEntry:
    fields = line[len("shell="):].split(";")
    if len(fields) != SHELL_FIELDS:
        raise ParseError(f"{path}: shell line has {len(fields)} fields, expected {SHELL_FIELDS}", detail=line)
    pid, kind, weapon, ammo, slot, double = fields[:6]
    pid, weapon, ammo = unquote(pid), unquote(weapon), unquote(ammo)
    try:
        kind_value = ProjectileKind(kind)
        slot_value = int(slot)
    except ValueError as e:
        raise ParseError(f"{path}: {e}", detail=line) from e
    return ProjectileEntry(
        projectile_id=pid,
        kind=kind_value,
        weapon=weapon,
        ammo=ammo,
        slot=slot_value,
        double_shell=double == "1",
        velocity=_req(fields[6], path),
        caliber_mm=_req(fields[7], path),
        mass_kg=_req(fields[8], path),
        cx=_req(fields[9], path),
        ballistic_caliber_mm=_opt(fields[10], path),
        he_filler_kg=_opt(fields[11], path),
        cumulative_armor_power=_opt(fields[12], path),
        law=_parse_law(fields[13], path),
        rocket=_parse_rocket(fields[14], path),
    )


def format_vehicle(vehicle: VehicleData) -> str:
    lines = [
        vehicle.vehicle_id,
        _escape(vehicle.display_name),
        "zoom=" + ",".join(_num(z) for z in vehicle.zoom_levels),
        f"laser={int(vehicle.laser_rangefinder)}",
    ]
    lines.extend(format_shell(p) for p in vehicle.projectiles)
    return "\n".join(lines) + "\n"


def parse_vehicle(text: str, path: Path = Path("<memory>")) -> VehicleData:
    lines = text.split("\n")
    if len(lines) < 4:
        raise ParseError(f"{path}: truncated vehicle record", detail=str(path))
    vehicle_id, display_name, zoom_line, laser_line = lines[:4]
    if not zoom_line.startswith("zoom=") or not laser_line.startswith("laser="):
        raise ParseError(f"{path}: expected zoom= and laser= header lines", detail=str(path))
    zoom_body = zoom_line[len("zoom="):]
    zoom = tuple(_req(z, path) for z in zoom_body.split(",")) if zoom_body else ()

    projectiles = []
    for line in lines[4:]:
        if not line.strip():
            continue
        if not line.startswith("shell="):
            raise ParseError(f"{path}: unexpected line {line!r}", detail=str(path))
        projectiles.append(parse_shell(line, path))

    return VehicleData(
        vehicle_id=vehicle_id,
        display_name=unquote(display_name),
        zoom_levels=zoom,
        laser_rangefinder=laser_line[len("laser="):].strip() == "1",
        projectiles=tuple(projectiles),
    )


def vehicle_path(directory: Path, vehicle_id: str) -> Path:
    return Path(directory) / f"{vehicle_id}{SUFFIX}"


def write_vehicle(directory: Path, vehicle: VehicleData) -> Path:
    return write_text(vehicle_path(directory, vehicle.vehicle_id), format_vehicle(vehicle))


def read_vehicle(path: Path) -> VehicleData:
    return parse_vehicle(read_text(path), Path(path))


def format_table(table: BallisticTable) -> str:
    return "".join(
        ROW_FORMAT.format(distance=r.distance_m, time=r.time_s, penetration=r.penetration_mm) + "\n"
        for r in table.rows
    )


def parse_table(text: str, projectile_id: str, path: Path = Path("<memory>")) -> BallisticTable:
    rows = []
    for n, line in enumerate(text.splitlines(), start=1):
        if not line.strip():
            continue
        parts = line.split("\t")
        if len(parts) != 3:
            raise ParseError(f"{path}:{n}: expected 3 tab-separated columns", detail=line)
        try:
            d, t, p = (float(x) for x in parts)
        except ValueError as e:
            raise ParseError(f"{path}:{n}: {e}", detail=line) from e
        rows.append(BallisticRow(distance_m=d, time_s=t, penetration_mm=p))
    return BallisticTable(projectile_id=projectile_id, rows=tuple(rows))


def table_dir(directory: Path, vehicle_id: str) -> Path:
    return Path(directory) / vehicle_id


def write_tables(directory: Path, vehicle_id: str, tables: Sequence[BallisticTable]) -> list[Path]:
    """Write one file per table and remove tables left over from an earlier build."""
    out_dir = table_dir(directory, vehicle_id)
    written = [write_text(out_dir / f"{t.projectile_id}{SUFFIX}", format_table(t)) for t in tables]
    keep = {p.name for p in written}
    for old in sorted(out_dir.glob(f"*{SUFFIX}")):
        if old.name not in keep and remove_file(old):
            logger.info(f"Removed stale table {old}")
    return written


def read_table(path: Path) -> BallisticTable:
    path = Path(path)
    return parse_table(read_text(path), path.stem, path)
