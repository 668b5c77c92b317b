"""Pydantic models for the structured (JSON) output.

Unknown keys are ignored on read so older readers accept newer files.
"""

from __future__ import annotations

from typing import Annotated, Literal

from pydantic import BaseModel, ConfigDict, Field

from .. import constants
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


class _Model(BaseModel):
    model_config = ConfigDict(extra="ignore")


class DeMarreLaw(_Model):
    type: Literal["demarre"] = "demarre"
    coefficient: float
    exponent: float
    reference_caliber_mm: float
    mass_exponent: float
    caliber_exponent: float
    penetrator_mass_kg: float | None = None
    penetrator_caliber_mm: float | None = None


class SeriesLaw(_Model):
    type: Literal["armor_power"] = "armor_power"
    breakpoints: list[tuple[float, float]]


Law = Annotated[DeMarreLaw | SeriesLaw, Field(discriminator="type")]


class Rocket(_Model):
    end_speed: float
    burn_time_s: float = 0.0
    max_distance_m: float = constants.MAX_RANGE_M


class Projectile(_Model):
    projectile_id: str
    kind: ProjectileKind
    weapon: str
    ammo: str
    slot: int
    velocity: float
    caliber_mm: float
    mass_kg: float
    cx: float = constants.DEFAULT_CX
    ballistic_caliber_mm: float | None = None
    law: Law | None = None
    he_filler_kg: float | None = None
    cumulative_armor_power: float | None = None
    rocket: Rocket | None = None
    double_shell: bool = False
    bullet_type: str = ""

    @classmethod
    def from_entry(cls, entry: ProjectileEntry) -> Projectile:
        law: DeMarreLaw | SeriesLaw | None = None
        if isinstance(entry.law, DeMarreParams):
            law = DeMarreLaw(
                coefficient=entry.law.coefficient,
                exponent=entry.law.exponent,
                reference_caliber_mm=entry.law.reference_caliber_mm,
                mass_exponent=entry.law.mass_exponent,
                caliber_exponent=entry.law.caliber_exponent,
                penetrator_mass_kg=entry.law.penetrator_mass_kg,
                penetrator_caliber_mm=entry.law.penetrator_caliber_mm,
            )
        elif isinstance(entry.law, ArmorPowerSeries):
            law = SeriesLaw(breakpoints=[tuple(bp) for bp in entry.law.breakpoints])
        rocket = None
        if entry.rocket is not None:
            rocket = Rocket(
                end_speed=entry.rocket.end_speed,
                burn_time_s=entry.rocket.burn_time_s,
                max_distance_m=entry.rocket.max_distance_m,
            )
        return cls(
            projectile_id=entry.projectile_id,
            kind=entry.kind,
            weapon=entry.weapon,
            ammo=entry.ammo,
            slot=entry.slot,
            velocity=entry.velocity,
            caliber_mm=entry.caliber_mm,
            mass_kg=entry.mass_kg,
            cx=entry.cx,
            ballistic_caliber_mm=entry.ballistic_caliber_mm,
            law=law,
            he_filler_kg=entry.he_filler_kg,
            cumulative_armor_power=entry.cumulative_armor_power,
            rocket=rocket,
            double_shell=entry.double_shell,
            bullet_type=entry.bullet_type,
        )

    def to_entry(self) -> ProjectileEntry:
        law: DeMarreParams | ArmorPowerSeries | None = None
        if isinstance(self.law, DeMarreLaw):
            law = DeMarreParams(**self.law.model_dump(exclude={"type"}))
        elif isinstance(self.law, SeriesLaw):
            law = ArmorPowerSeries(tuple((float(v), float(p)) for v, p in self.law.breakpoints))
        rocket = None
        if self.rocket is not None:
            rocket = RocketMotor(**self.rocket.model_dump())
        return ProjectileEntry(
            projectile_id=self.projectile_id,
            kind=self.kind,
            weapon=self.weapon,
            ammo=self.ammo,
            slot=self.slot,
            velocity=self.velocity,
            caliber_mm=self.caliber_mm,
            mass_kg=self.mass_kg,
            cx=self.cx,
            ballistic_caliber_mm=self.ballistic_caliber_mm,
            law=law,
            he_filler_kg=self.he_filler_kg,
            cumulative_armor_power=self.cumulative_armor_power,
            rocket=rocket,
            double_shell=self.double_shell,
            bullet_type=self.bullet_type,
        )


class Vehicle(_Model):
    """Stage 1 output: ``Data/<vehicle_id>.json``."""

    schema_version: int = constants.STRUCTURED_SCHEMA_VERSION
    vehicle_id: str
    display_name: str
    zoom_levels: list[float] = []
    laser_rangefinder: bool = False
    projectiles: list[Projectile] = []

    @classmethod
    def from_data(cls, vehicle: VehicleData) -> Vehicle:
        return cls(
            vehicle_id=vehicle.vehicle_id,
            display_name=vehicle.display_name,
            zoom_levels=list(vehicle.zoom_levels),
            laser_rangefinder=vehicle.laser_rangefinder,
            projectiles=[Projectile.from_entry(p) for p in vehicle.projectiles],
        )

    def to_data(self) -> VehicleData:
        return VehicleData(
            vehicle_id=self.vehicle_id,
            display_name=self.display_name,
            zoom_levels=tuple(self.zoom_levels),
            laser_rangefinder=self.laser_rangefinder,
            projectiles=tuple(p.to_entry() for p in self.projectiles),
        )


class Row(_Model):
    distance_m: float
    time_s: float
    penetration_mm: float


class Table(_Model):
    projectile_id: str
    rows: list[Row]

    @classmethod
    def from_table(cls, table: BallisticTable) -> Table:
        return cls(
            projectile_id=table.projectile_id,
            rows=[Row(distance_m=r.distance_m, time_s=r.time_s, penetration_mm=r.penetration_mm) for r in table.rows],
        )

    def to_table(self) -> BallisticTable:
        return BallisticTable(
            projectile_id=self.projectile_id,
            rows=tuple(BallisticRow(r.distance_m, r.time_s, r.penetration_mm) for r in self.rows),
        )


class BallisticVehicle(Vehicle):
    """Stage 2 output: the vehicle record plus one table per projectile, in projectile order."""

    tables: list[Table] = []


class Index(_Model):
    schema_version: int = constants.STRUCTURED_SCHEMA_VERSION
    vehicles: list[str]
