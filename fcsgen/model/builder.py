"""Assemble VehicleData from the datamine.

Pure assembly: field extraction, unit normalization (m -> mm, explosive ->
TNT equivalent) and the selection decisions. No ballistics happen here.
"""

from __future__ import annotations

import logging
import math
from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from .. import constants
from ..datamine import blk
from ..datamine.lang import LangTable, display_name
from ..datamine.refs import Datamine
from ..errors import MissingReferenceError, SchemaError, SelectionWarning
from ..selection import WeaponRef, discover_ammo, select_weapons, split_ammo
from .data import ArmorPowerSeries, DeMarreParams, ProjectileEntry, ProjectileKind, RocketMotor, VehicleData

logger = logging.getLogger("fcsgen.model")


@dataclass
class BuildResult:
    vehicle: VehicleData
    warnings: list[SelectionWarning] = field(default_factory=list)
    dependencies: list[Path] = field(default_factory=list)


def fov_to_zoom(fov_deg: float) -> float:
    half_ref = math.radians(constants.REFERENCE_FOV_DEG) / 2.0
    half = math.radians(fov_deg) / 2.0
    return round(math.tan(half_ref) / math.tan(half), constants.ZOOM_DECIMALS)


def _cockpit_zooms(cockpit: Mapping[str, Any], where: str) -> list[float]:
    zooms = []
    for key in ("zoomOutFov", "zoomInFov"):
        fov = blk.lookup(cockpit, key, float)
        if fov is None:
            continue
        if not 0.0 < fov < 180.0:
            logger.warning(f"Ignoring out-of-range field of view {fov} at {where}/{key}")
            continue
        zooms.append(fov_to_zoom(fov))
    return zooms


def zoom_levels(tree: Mapping[str, Any]) -> tuple[float, ...]:
    """Main cockpit plus alternate cockpits unlocked by modifications."""
    zooms = _cockpit_zooms(blk.subtree(tree, "cockpit"), "cockpit")
    for mod_name, mod in blk.subtree(tree, "modifications").items():
        if isinstance(mod, Mapping):
            alt = blk.subtree(mod, "effects/cockpit")
            if alt:
                zooms.extend(_cockpit_zooms(alt, f"modifications/{mod_name}/effects/cockpit"))
    return tuple(sorted(set(zooms)))


def has_laser_rangefinder(tree: Mapping[str, Any]) -> bool:
    if blk.lookup(tree, "cockpit/laserRangefinder", bool, False):
        return True
    if any("laser_rangefinder" in name.lower() for name in blk.subtree(tree, "modifications")):
        return True
    for sensor in blk.list_arrays(tree, "sensors/sensor"):
        if isinstance(sensor, Mapping) and "laser" in (blk.lookup(sensor, "blk", str, "") or "").lower():
            return True
    return False


def _weapon_refs(datamine: Datamine, tree: Mapping[str, Any], source: str) -> tuple[list[WeaponRef], list[Path]]:
    """Common weapons, then weapons of every referenced preset module."""
    refs: list[WeaponRef] = []
    modules: list[Path] = []
    for block in blk.list_arrays(tree, "commonWeapons/Weapon"):
        if isinstance(block, Mapping):
            refs.append(WeaponRef.from_block(block, index=len(refs), source=source))

    for preset in blk.list_arrays(tree, "weapon_presets/preset"):
        if not isinstance(preset, Mapping):
            continue
        ref = blk.lookup(preset, "blk", str, "") or ""
        if not ref:
            continue
        module_path = datamine.resolve(ref, referenced_from=source)
        modules.append(module_path)
        module = datamine.load(module_path)
        blocks = blk.list_arrays(module, "Weapon") or blk.list_arrays(module, "commonWeapons/Weapon")
        for block in blocks:
            if isinstance(block, Mapping):
                refs.append(WeaponRef.from_block(block, index=len(refs), source=str(module_path)))
    return refs, modules


def _projectile(
    block: Mapping[str, Any],
    *,
    projectile_id: str,
    weapon: str,
    ammo: str,
    slot: int,
    rocket: bool,
    double_shell: bool,
    warnings: list[SelectionWarning],
) -> ProjectileEntry:
    bullet_type = blk.lookup(block, "bulletType", str, "") or ""
    explosive = blk.lookup(block, "explosiveMass", float, 0.0) or 0.0
    explosive_type = (blk.lookup(block, "explosiveType", str, "tnt") or "tnt").lower()
    factor = constants.TNT_EQUIVALENT.get(explosive_type)
    if factor is None:
        logger.debug(f"Unknown explosive type {explosive_type!r} in {ammo}, assuming TNT")
        factor = 1.0
    filler = explosive * factor

    kind = ProjectileKind.classify(bullet_type, filler_kg=filler, rocket=rocket)
    velocity = blk.lookup(block, "speed", float, 0.0) or 0.0
    caliber_mm = (blk.lookup(block, "caliber", float, 0.0) or 0.0) * 1000.0
    ballistic_caliber = blk.lookup(block, "ballisticCaliber", float)
    cx = blk.lookup(block, "Cx", float)
    if cx is None:
        cx = blk.lookup(block, "cx", float, constants.DEFAULT_CX)

    law: DeMarreParams | ArmorPowerSeries | None = None
    if kind.uses_demarre:
        damage_caliber = blk.lookup(block, "damageCaliber", float)
        law = DeMarreParams(
            coefficient=blk.lookup(block, "demarrePenetrationK", float, 1.0),
            exponent=blk.lookup(block, "demarreSpeedPow", float, constants.DEMARRE_SPEED_POW),
            mass_exponent=blk.lookup(block, "demarreMassPow", float, constants.DEMARRE_MASS_POW),
            caliber_exponent=blk.lookup(block, "demarreCaliberPow", float, constants.DEMARRE_CALIBER_POW),
            penetrator_mass_kg=blk.lookup(block, "damageMass", float),
            penetrator_caliber_mm=damage_caliber * 1000.0 if damage_caliber is not None else None,
        )
    elif kind.uses_armor_power and "armorPowerSeries" in block:
        points = blk.pairs(block["armorPowerSeries"], first="speed", second="armorPower", where="armorPowerSeries")
        if points:
            law, dropped = ArmorPowerSeries.from_pairs(points)
            if dropped:
                warnings.append(
                    SelectionWarning(
                        f"{projectile_id}: dropped {dropped} repeated armor-power velocities",
                        detail=f"{weapon}/{ammo}/armorPowerSeries",
                    )
                )

    motor = None
    if rocket:
        motor = RocketMotor(
            end_speed=blk.lookup(block, "endSpeed", float, velocity),
            burn_time_s=blk.lookup(block, "timeFire", float, 0.0),
            max_distance_m=blk.lookup(block, "maxDistance", float, constants.MAX_RANGE_M),
        )

    return ProjectileEntry(
        projectile_id=projectile_id,
        kind=kind,
        weapon=weapon,
        ammo=ammo,
        slot=slot,
        velocity=velocity,
        caliber_mm=caliber_mm,
        mass_kg=blk.lookup(block, "mass", float, 0.0) or 0.0,
        cx=cx,
        ballistic_caliber_mm=ballistic_caliber * 1000.0 if ballistic_caliber is not None else None,
        law=law,
        he_filler_kg=filler if filler > 0.0 else None,
        cumulative_armor_power=blk.lookup(block, "cumulativeDamage/armorPower", float),
        rocket=motor,
        double_shell=double_shell,
        bullet_type=bullet_type,
    )


def _unique_id(candidate: str, slot: int, used: set[str]) -> str:
    pid = candidate
    if pid in used:
        pid = f"{candidate}_s{slot}"
    n = 2
    while pid in used:
        pid = f"{candidate}_s{slot}_{n}"
        n += 1
    used.add(pid)
    return pid


def build_vehicle(
    datamine: Datamine,
    vehicle_id: str,
    *,
    lang: LangTable | None = None,
    language: str = "English",
) -> BuildResult:
    """Build one vehicle. Raises SchemaError when it has no resolvable weapon."""
    if not vehicle_id:
        raise SchemaError("Empty vehicle identifier", detail="vehicle_id")
    path = datamine.vehicle_path(vehicle_id)
    if not path.is_file():
        raise MissingReferenceError(vehicle_id, detail=str(path))
    tree = datamine.load(path)

    refs, modules = _weapon_refs(datamine, tree, str(path))
    if not refs:
        raise SchemaError(f"{vehicle_id} declares no weapons", detail=f"{path}: commonWeapons/Weapon")

    selected, warnings = select_weapons(refs)
    weapon_files: list[Path] = []
    projectiles: list[ProjectileEntry] = []
    used: set[str] = set()

    for weapon in selected:
        weapon_path = datamine.resolve(weapon.ref.blk, referenced_from=weapon.ref.source)
        weapon_files.append(weapon_path)
        weapon_tree = datamine.load(weapon_path)
        ammo_sets = discover_ammo(weapon_tree, weapon.ref.name)
        if not ammo_sets:
            warnings.append(
                SelectionWarning(f"Weapon {weapon.ref.name} defines no ammo", detail=str(weapon_path))
            )
            continue
        for ammo in ammo_sets:
            split = split_ammo(ammo, weapon=weapon.ref.name)
            warnings.extend(split.warnings)
            for candidate, block in split.parts:
                projectiles.append(
                    _projectile(
                        block,
                        projectile_id=_unique_id(candidate, weapon.slot, used),
                        weapon=weapon.ref.name,
                        ammo=split.ammo,
                        slot=weapon.slot,
                        rocket=split.rocket,
                        double_shell=split.double_shell,
                        warnings=warnings,
                    )
                )

    if not projectiles:
        raise SchemaError(f"{vehicle_id} has no resolvable weapon", detail=str(path))

    vehicle = VehicleData(
        vehicle_id=vehicle_id,
        display_name=display_name(lang, vehicle_id, language),
        zoom_levels=zoom_levels(tree),
        laser_rangefinder=has_laser_rangefinder(tree),
        projectiles=tuple(projectiles),
    )
    deps = [path, *sorted(set(modules)), *sorted(set(weapon_files))]
    return BuildResult(vehicle=vehicle, warnings=warnings, dependencies=list(dict.fromkeys(deps)))
