"""Canonical vehicle/projectile records.

Everything here is immutable: a rebuild produces new objects and replaces the
old ones wholesale.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from enum import Enum

import numpy as np

from .. import constants


class ProjectileKind(str, Enum):
    AP = "ap"
    APHE = "aphe"
    APCR = "apcr"
    APDS = "apds"
    APFSDS = "apfsds"
    HE = "he"
    HEAT = "heat"
    ROCKET = "rocket"
    UNKNOWN = "unknown"

    @property
    def uses_demarre(self) -> bool:
        return self in (ProjectileKind.AP, ProjectileKind.APHE, ProjectileKind.APCR)

    @property
    def uses_armor_power(self) -> bool:
        return self in (ProjectileKind.APDS, ProjectileKind.APFSDS)

    @property
    def is_chemical(self) -> bool:
        return self in (ProjectileKind.HE, ProjectileKind.HEAT, ProjectileKind.ROCKET)

    @classmethod
    def classify(cls, bullet_type: str, *, filler_kg: float = 0.0, rocket: bool = False) -> ProjectileKind:
        """Map a datamine bulletType onto a kind. Order matters: longest prefix first."""
        if rocket:
            return cls.ROCKET
        t = bullet_type.strip().lower()
        if t.startswith("apds_fs"):
            return cls.APFSDS
        if t.startswith("apds"):
            return cls.APDS
        if t.startswith(("apcr", "hvap")):
            return cls.APCR
        if t.startswith("heat"):
            return cls.HEAT
        if t.startswith(("hesh", "he")):
            return cls.HE
        if t.startswith("sap"):
            return cls.APHE
        if t.startswith("ap"):
            return cls.APHE if filler_kg > 0.0 else cls.AP
        return cls.UNKNOWN


@dataclass(frozen=True)
class DeMarreParams:
    coefficient: float = 1.0
    exponent: float = constants.DEMARRE_SPEED_POW
    reference_caliber_mm: float = constants.DEMARRE_REFERENCE_CALIBER_MM
    mass_exponent: float = constants.DEMARRE_MASS_POW
    caliber_exponent: float = constants.DEMARRE_CALIBER_POW
    # Sub-caliber cores (APCR) penetrate with their own mass/diameter.
    penetrator_mass_kg: float | None = None
    penetrator_caliber_mm: float | None = None


@dataclass(frozen=True)
class ArmorPowerSeries:
    """(velocity m/s, penetration mm) breakpoints, strictly increasing in velocity."""

    breakpoints: tuple[tuple[float, float], ...]

    def __post_init__(self) -> None:
        if not self.breakpoints:
            raise ValueError("ArmorPowerSeries needs at least one breakpoint")
        velocities = [v for v, _ in self.breakpoints]
        if any(b <= a for a, b in zip(velocities, velocities[1:])):
            raise ValueError("ArmorPowerSeries velocities must be strictly increasing")
        if any(p < 0.0 for _, p in self.breakpoints):
            raise ValueError("ArmorPowerSeries penetration must be non-negative")

    @classmethod
    def from_pairs(cls, pairs: Iterable[tuple[float, float]]) -> tuple[ArmorPowerSeries, int]:
        """Sort by velocity and drop repeated velocities (first declaration wins).

        Returns the series and the number of dropped duplicates.
        """
        seen: dict[float, float] = {}
        dropped = 0
        for v, p in pairs:
            v, p = float(v), max(0.0, float(p))
            if v in seen:
                dropped += 1
                continue
            seen[v] = p
        return cls(tuple(sorted(seen.items()))), dropped

    @property
    def velocities(self) -> np.ndarray:
        return np.array([v for v, _ in self.breakpoints], dtype=np.float64)

    @property
    def penetrations(self) -> np.ndarray:
        return np.array([p for _, p in self.breakpoints], dtype=np.float64)


@dataclass(frozen=True)
class RocketMotor:
    end_speed: float
    burn_time_s: float = 0.0
    max_distance_m: float = constants.MAX_RANGE_M


PenetrationLaw = DeMarreParams | ArmorPowerSeries


@dataclass(frozen=True)
class ProjectileEntry:
    projectile_id: str
    kind: ProjectileKind
    weapon: str  # displayed weapon name (shared by double-shell halves)
    ammo: str  # displayed ammo name (shared by double-shell halves)
    slot: int
    velocity: float  # m/s at the muzzle / launch
    caliber_mm: float
    mass_kg: float
    cx: float = constants.DEFAULT_CX
    ballistic_caliber_mm: float | None = None
    law: PenetrationLaw | None = None
    he_filler_kg: float | None = None  # TNT equivalent
    cumulative_armor_power: float | None = None
    rocket: RocketMotor | None = None
    double_shell: bool = False
    bullet_type: str = ""

    @property
    def drag_caliber_mm(self) -> float:
        return self.ballistic_caliber_mm or self.caliber_mm


@dataclass(frozen=True)
class VehicleData:
    vehicle_id: str
    display_name: str
    zoom_levels: tuple[float, ...]
    laser_rangefinder: bool
    projectiles: tuple[ProjectileEntry, ...]


@dataclass(frozen=True)
class BallisticRow:
    distance_m: float
    time_s: float
    penetration_mm: float


@dataclass(frozen=True)
class BallisticTable:
    projectile_id: str
    rows: tuple[BallisticRow, ...]

    def __len__(self) -> int:
        return len(self.rows)
