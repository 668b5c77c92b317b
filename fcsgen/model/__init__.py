from .builder import BuildResult, build_vehicle
from .data import (
    ArmorPowerSeries,
    BallisticRow,
    BallisticTable,
    DeMarreParams,
    ProjectileEntry,
    ProjectileKind,
    RocketMotor,
    VehicleData,
)

__all__ = [
    "ArmorPowerSeries",
    "BallisticRow",
    "BallisticTable",
    "BuildResult",
    "DeMarreParams",
    "ProjectileEntry",
    "ProjectileKind",
    "RocketMotor",
    "VehicleData",
    "build_vehicle",
]
