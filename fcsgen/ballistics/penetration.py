"""Penetration laws.

Kinetic rounds use the DeMarre law (single velocity regime) or an armor-power
series (APDS/APFSDS). Chemical rounds penetrate the same at every distance.
"""

from __future__ import annotations

import math

import numpy as np

from .. import constants
from ..model.data import ArmorPowerSeries, DeMarreParams


def demarre_penetration(params: DeMarreParams, velocity: np.ndarray, *, caliber_mm: float, mass_kg: float) -> np.ndarray:
    """pen = 100 k v^e m^mp / (K^e (cal / ref)^cp), in mm."""
    mass = params.penetrator_mass_kg or mass_kg
    caliber = params.penetrator_caliber_mm or caliber_mm
    v = np.maximum(np.asarray(velocity, dtype=np.float64), 0.0)
    numerator = 100.0 * params.coefficient * np.power(v, params.exponent) * mass**params.mass_exponent
    denominator = constants.DEMARRE_K_FBR**params.exponent * (
        caliber / params.reference_caliber_mm
    ) ** params.caliber_exponent
    return numerator / denominator


def aphe_factor(filler_kg: float | None, mass_kg: float) -> float:
    """Fixed penalty for the filler cavity of explosive-filled AP rounds."""
    if not filler_kg or mass_kg <= 0.0:
        return 1.0
    if filler_kg / mass_kg > constants.APHE_FILLER_THRESHOLD:
        return constants.APHE_PENETRATION_FACTOR
    return 1.0


def armor_power_penetration(series: ArmorPowerSeries, velocity: np.ndarray) -> np.ndarray:
    """Linear interpolation over the breakpoints; clamps outside them, never extrapolates."""
    v = np.asarray(velocity, dtype=np.float64)
    return np.interp(v, series.velocities, series.penetrations)


def he_penetration(filler_kg: float | None, caliber_mm: float) -> float:
    """Chemical-energy penetration of a high-explosive filler (TNT equivalent)."""
    if not filler_kg or filler_kg < constants.HE_MIN_FILLER_KG or caliber_mm < constants.HE_MIN_CALIBER_MM:
        return 0.0
    return constants.HE_PENETRATION_COEF * (filler_kg * 1000.0) ** (1.0 / 3.0)


def armor_penalty(penetration: np.ndarray, *, angle_deg: float, quality: float) -> np.ndarray:
    """Effective penetration against sloped plate of the given relative quality."""
    return np.asarray(penetration, dtype=np.float64) * math.cos(math.radians(angle_deg)) / quality
