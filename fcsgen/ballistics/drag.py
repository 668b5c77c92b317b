"""Velocity decay and time of flight along a flat trajectory.

The decay model is replaceable: anything implementing ``DragModel.profile``
can stand in, and the choice is part of the engine configuration so a change
invalidates cached tables.
"""

from __future__ import annotations

import math

import numpy as np

from .. import constants
from ..model.data import ProjectileEntry


def drag_constant(entry: ProjectileEntry) -> float:
    """k = rho * Cx * A / (2 m), per meter. Zero when the mass is unknown."""
    if entry.mass_kg <= 0.0 or entry.drag_caliber_mm <= 0.0:
        return 0.0
    radius_m = entry.drag_caliber_mm / 2000.0
    area = math.pi * radius_m**2
    return constants.AIR_DENSITY_KG_M3 * max(entry.cx, 0.0) * area / (2.0 * entry.mass_kg)


class DragModel:
    name = "base"

    def profile(self, v0: float, k: float, distances: np.ndarray) -> tuple[np.ndarray, np.ndarray]:
        """Return (velocity m/s, time s) at each distance (m, ascending from 0)."""
        raise NotImplementedError


class ExponentialDrag(DragModel):
    """Constant drag coefficient: v(d) = v0 exp(-k d)."""

    name = "exponential"

    def profile(self, v0: float, k: float, distances: np.ndarray) -> tuple[np.ndarray, np.ndarray]:
        d = np.asarray(distances, dtype=np.float64)
        if v0 <= 0.0:
            return np.zeros_like(d), np.full_like(d, np.inf)
        if k <= 0.0:
            return np.full_like(d, v0), d / v0
        x = k * d
        velocity = v0 * np.exp(-x)
        # t = (d / v0) * expm1(x) / x keeps x in both terms, so tiny k degrades to d / v0
        stretch = np.ones_like(x)
        np.divide(np.expm1(x), x, out=stretch, where=x > 0.0)
        return velocity, d / v0 * stretch


class MachDrag(DragModel):
    """Drag coefficient scaled by a Mach curve, integrated in fixed steps."""

    name = "mach"

    def __init__(self, step_m: float = constants.MACH_DRAG_STEP_M) -> None:
        self.step_m = float(step_m)
        curve = np.array(constants.MACH_DRAG_CURVE, dtype=np.float64)
        self._mach = curve[:, 0]
        self._mult = curve[:, 1]

    def multiplier(self, velocity: float) -> float:
        return float(np.interp(velocity / constants.SPEED_OF_SOUND_M_S, self._mach, self._mult))

    def profile(self, v0: float, k: float, distances: np.ndarray) -> tuple[np.ndarray, np.ndarray]:
        d = np.asarray(distances, dtype=np.float64)
        if v0 <= 0.0:
            return np.zeros_like(d), np.full_like(d, np.inf)
        if k <= 0.0:
            return np.full_like(d, v0), d / v0

        velocity = np.empty_like(d)
        time = np.empty_like(d)
        v, t, x = float(v0), 0.0, 0.0
        for i, target in enumerate(d):
            while x < target:
                dx = min(self.step_m, float(target) - x)
                k_eff = k * self.multiplier(v)
                # Exact solution of dv/dx = -k_eff v over one step.
                t += math.expm1(k_eff * dx) / (k_eff * v)
                v *= math.exp(-k_eff * dx)
                x += dx
            velocity[i] = v
            time[i] = t
        return velocity, time


DRAG_MODELS: dict[str, type[DragModel]] = {
    ExponentialDrag.name: ExponentialDrag,
    MachDrag.name: MachDrag,
}


def get_drag_model(name: str) -> DragModel:
    try:
        return DRAG_MODELS[name]()
    except KeyError:
        raise ValueError(f"Unknown drag model: {name!r}") from None


def rocket_profile(
    v0: float,
    end_speed: float,
    burn_time_s: float,
    k: float,
    distances: np.ndarray,
    model: DragModel,
) -> tuple[np.ndarray, np.ndarray]:
    """Linear acceleration from v0 to end_speed over the burn, then the drag model."""
    d = np.asarray(distances, dtype=np.float64)
    if burn_time_s <= 0.0:
        return model.profile(end_speed if end_speed > 0.0 else v0, k, d)

    accel = (end_speed - v0) / burn_time_s
    burn_distance = v0 * burn_time_s + 0.5 * accel * burn_time_s**2

    velocity = np.empty_like(d)
    time = np.empty_like(d)
    in_burn = d <= burn_distance

    if accel == 0.0:
        t_burn = d[in_burn] / v0
    else:
        disc = np.maximum(v0**2 + 2.0 * accel * d[in_burn], 0.0)
        t_burn = (np.sqrt(disc) - v0) / accel
    time[in_burn] = t_burn
    velocity[in_burn] = v0 + accel * t_burn

    coast = ~in_burn
    if np.any(coast):
        v_c, t_c = model.profile(end_speed, k, d[coast] - burn_distance)
        velocity[coast] = v_c
        time[coast] = burn_time_s + t_c
    return velocity, time
