"""Distance / time / penetration tables for one projectile."""

from __future__ import annotations

import numpy as np

from .. import constants
from ..config import EngineConfig
from ..errors import ComputationError
from ..model.data import (
    ArmorPowerSeries,
    BallisticRow,
    BallisticTable,
    DeMarreParams,
    ProjectileEntry,
    ProjectileKind,
)
from . import penetration as pen
from .drag import drag_constant, get_drag_model, rocket_profile


def max_range(entry: ProjectileEntry) -> float:
    if entry.rocket is not None:
        return max(entry.rocket.max_distance_m, 0.0)
    limit = constants.MAX_RANGE_M
    if entry.kind.is_chemical:
        limit = constants.CHEMICAL_MAX_RANGE_M
    if entry.velocity < constants.LOW_VELOCITY_M_S:
        limit = min(limit, constants.LOW_VELOCITY_MAX_RANGE_M)
    return limit


def sample_distances(limit_m: float) -> np.ndarray:
    """Dense steps near the muzzle, coarser beyond NEAR_RANGE_M, never past the limit."""
    near_end = min(limit_m, constants.NEAR_RANGE_M)
    near_steps = int(near_end // constants.NEAR_STEP_M)
    near = np.arange(near_steps + 1, dtype=np.float64) * constants.NEAR_STEP_M
    if limit_m <= constants.NEAR_RANGE_M:
        return near
    far_steps = int((limit_m - constants.NEAR_RANGE_M) // constants.FAR_STEP_M)
    far = constants.NEAR_RANGE_M + np.arange(1, far_steps + 1, dtype=np.float64) * constants.FAR_STEP_M
    return np.concatenate([near, far])


def _fail(entry: ProjectileEntry, reason: str) -> ComputationError:
    return ComputationError(f"{entry.projectile_id}: {reason}", detail=entry.projectile_id)


def _chemical_penetration(entry: ProjectileEntry) -> float:
    if entry.cumulative_armor_power is not None:
        return max(entry.cumulative_armor_power, 0.0)
    if entry.kind is ProjectileKind.HE:
        return pen.he_penetration(entry.he_filler_kg, entry.caliber_mm)
    if entry.he_filler_kg:
        return pen.he_penetration(entry.he_filler_kg, entry.caliber_mm)
    raise _fail(entry, f"{entry.kind.value} round has neither a shaped charge nor a filler")


def _check(entry: ProjectileEntry) -> None:
    if entry.kind is ProjectileKind.UNKNOWN:
        raise _fail(entry, f"no penetration law for bullet type {entry.bullet_type!r}")
    launch = entry.velocity if entry.rocket is None else max(entry.velocity, entry.rocket.end_speed)
    if launch <= 0.0:
        raise _fail(entry, "projectile has no velocity")
    if entry.kind.uses_demarre:
        if not isinstance(entry.law, DeMarreParams):
            raise _fail(entry, "missing DeMarre parameters")
        if entry.mass_kg <= 0.0 or entry.caliber_mm <= 0.0:
            raise _fail(entry, "DeMarre law needs a positive mass and caliber")
    if entry.kind.uses_armor_power and not isinstance(entry.law, ArmorPowerSeries):
        raise _fail(entry, "missing armor-power series")


def compute(entry: ProjectileEntry, config: EngineConfig | None = None) -> BallisticTable:
    """Ballistic table for one projectile.

    Raises ComputationError when the projectile has no resolvable law; that
    only aborts this projectile's table.
    """
    config = config or EngineConfig()
    _check(entry)

    model = get_drag_model(config.drag_model)
    k = drag_constant(entry)
    distances = sample_distances(max_range(entry))
    if entry.rocket is not None:
        velocity, time = rocket_profile(
            entry.velocity, entry.rocket.end_speed, entry.rocket.burn_time_s, k, distances, model
        )
    else:
        velocity, time = model.profile(entry.velocity, k, distances)

    # A projectile that has effectively stopped ends its table.
    stopped = np.nonzero((velocity < constants.MIN_VELOCITY_M_S) & (distances > 0.0))[0]
    if stopped.size:
        cut = int(stopped[0])
        distances, velocity, time = distances[:cut], velocity[:cut], time[:cut]

    if entry.kind.uses_demarre:
        raw = pen.demarre_penetration(entry.law, velocity, caliber_mm=entry.caliber_mm, mass_kg=entry.mass_kg)
        if entry.kind is ProjectileKind.APHE:
            raw = raw * pen.aphe_factor(entry.he_filler_kg, entry.mass_kg)
    elif entry.kind.uses_armor_power:
        raw = pen.armor_power_penetration(entry.law, velocity)
    else:
        raw = np.full_like(distances, _chemical_penetration(entry))

    effective = pen.armor_penalty(raw, angle_deg=config.armor_angle_deg, quality=config.armor_quality)
    effective = np.maximum(effective, 0.0)

    rows = tuple(
        BallisticRow(distance_m=float(d), time_s=float(t), penetration_mm=float(p))
        for d, t, p in zip(distances, time, effective)
    )
    return BallisticTable(projectile_id=entry.projectile_id, rows=rows)
