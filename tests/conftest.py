"""Shared fixtures: a miniature datamine on disk and ready-made projectiles."""

from __future__ import annotations

import json
from pathlib import Path

import pytest

from fcsgen import constants
from fcsgen.config import EngineConfig, PipelineConfig
from fcsgen.model.data import ArmorPowerSeries, DeMarreParams, ProjectileEntry, ProjectileKind, RocketMotor

WEAPONS = "gameData/Weapons/groundModels_weapons"

SHERMAN = "us_m4_sherman"
ATGM_CARRIER = "ussr_atgm_carrier"
DOUBLE_GUN = "de_double_gun"
PRESET_TANK = "jp_preset_tank"
ALL_VEHICLES = sorted([SHERMAN, ATGM_CARRIER, DOUBLE_GUN, PRESET_TANK])

AP_SHOT = {
    "bulletType": "ap_tank",
    "mass": 6.32,
    "caliber": 0.075,
    "speed": 619.0,
    "Cx": 0.3,
    "demarrePenetrationK": 1.0,
}

MALYUTKA = {
    "bulletType": "atgm_tank",
    "mass": 10.9,
    "caliber": 0.125,
    "speed": 20.0,
    "endSpeed": 115.0,
    "timeFire": 1.0,
    "maxDistance": 3000.0,
    "explosiveMass": 2.6,
    "Cx": 0.5,
    "cumulativeDamage": {"armorPower": 400.0},
}

LANG_CSV = (
    '"<ID|readonly|noverify>";"<English>";"<Russian>"\n'
    '"us_m4_sherman_shop";"M4 Sherman";"М4 Шерман"\n'
    '"ussr_atgm_carrier_0";"IT-1";"ИТ-1"\n'
    '"de_double_gun";"Twin Test";"Twin Test"\n'
)


def write_blkx(path: Path, tree: dict) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(tree, indent=2, ensure_ascii=False), encoding="utf-8")
    return path


def build_datamine(root: Path) -> Path:
    root.mkdir(parents=True, exist_ok=True)
    units = root / constants.UNITS_DIR
    weapons = root / constants.GAMEDATA_ROOT / "gamedata" / "weapons" / "groundmodels_weapons"

    (root / constants.VERSION_FILE).write_text("2.35.0.1\n", encoding="utf-8")
    lang = root / constants.LANG_FILE
    lang.parent.mkdir(parents=True, exist_ok=True)
    lang.write_text(LANG_CSV, encoding="utf-8")

    # Single AP gun plus a smoke launcher that must be ignored.
    write_blkx(
        units / f"{SHERMAN}.blkx",
        {
            "cockpit": {"zoomInFov": 20.0, "zoomOutFov": 80.0},
            "commonWeapons": {
                "Weapon": [
                    {"blk": f"{WEAPONS}/75mm_M3_user_cannon.blk", "trigger": "gunner0", "bullets": 104},
                    {
                        "blk": f"{WEAPONS}/smoke_grenade.blk",
                        "trigger": "gunner1",
                        "triggerGroup": "smoke",
                        "bullets": 12,
                    },
                ]
            },
        },
    )
    write_blkx(weapons / "75mm_m3_user_cannon.blkx", {"75mm_m72_shot": {"bullet": dict(AP_SHOT)}})

    # ATGM launcher declared twice on the same trigger, two missiles.
    launcher = {"blk": f"{WEAPONS}/atgm_launcher.blk", "trigger": "gunner0", "bullets": 4}
    write_blkx(
        units / f"{ATGM_CARRIER}.blkx",
        {
            "cockpit": {"zoomInFov": 20.0, "zoomOutFov": 80.0},
            "commonWeapons": {"Weapon": [launcher, dict(launcher)]},
        },
    )
    write_blkx(
        weapons / "atgm_launcher.blkx",
        {
            "9m14_malyutka": {"rocket": dict(MALYUTKA)},
            "9m14m_malyutka": {
                "rocket": {**MALYUTKA, "endSpeed": 120.0, "cumulativeDamage": {"armorPower": 460.0}}
            },
        },
    )

    # One visible ammo slot backed by two ballistic profiles.
    write_blkx(
        units / f"{DOUBLE_GUN}.blkx",
        {"commonWeapons": {"Weapon": {"blk": f"{WEAPONS}/105mm_twin.blk", "trigger": "gunner0"}}},
    )
    write_blkx(
        weapons / "105mm_twin.blkx",
        {
            "105mm_dm12_double": {
                "bullet": [
                    {
                        "bulletType": "heat_tank",
                        "mass": 10.5,
                        "caliber": 0.105,
                        "speed": 1173.0,
                        "explosiveMass": 1.1,
                        "cumulativeDamage": {"armorPower": 400.0},
                    },
                    {
                        "bulletType": "apds_fs_long_tank",
                        "mass": 4.3,
                        "caliber": 0.105,
                        "ballisticCaliber": 0.027,
                        "speed": 1455.0,
                        "Cx": 0.3,
                        "armorPowerSeries": [[1000.0, 250.0], [1455.0, 400.0], [1700.0, 480.0]],
                    },
                ]
            }
        },
    )

    # Armament comes from a preset module; laser and an alternate sight via modifications.
    write_blkx(
        units / f"{PRESET_TANK}.blkx",
        {
            "cockpit": {"zoomInFov": 20.0, "zoomOutFov": 80.0},
            "weapon_presets": {"preset": {"name": "default", "blk": f"{WEAPONS}/type90_preset.blk"}},
            "modifications": {
                "tank_laser_rangefinder": {"effects": {"cockpit": {"zoomInFov": 8.0}}},
            },
        },
    )
    write_blkx(
        weapons / "type90_preset.blkx",
        {"Weapon": [{"blk": f"{WEAPONS}/120mm_l44.blk", "trigger": "gunner0", "bullets": 40}]},
    )
    write_blkx(
        weapons / "120mm_l44.blkx",
        {
            "bullet": {
                "bulletType": "apds_fs_tank",
                "mass": 4.6,
                "caliber": 0.12,
                "ballisticCaliber": 0.03,
                "speed": 1650.0,
                "Cx": 0.3,
                "armorPowerSeries": [{"speed": 1200.0, "armorPower": 350.0}, {"speed": 1650.0, "armorPower": 480.0}],
            }
        },
    )
    return root


@pytest.fixture
def datamine_root(tmp_path: Path) -> Path:
    return build_datamine(tmp_path / "datamine")


@pytest.fixture
def weapons_dir(datamine_root: Path) -> Path:
    return datamine_root / constants.GAMEDATA_ROOT / "gamedata" / "weapons" / "groundmodels_weapons"


@pytest.fixture
def make_config(tmp_path: Path, datamine_root: Path):
    """PipelineConfig factory rooted in tmp_path; keyword overrides win."""

    def _make(**overrides) -> PipelineConfig:
        kw = dict(
            datamine_root=datamine_root,
            data_dir=tmp_path / "Data",
            structured_dir=tmp_path / "Data",
            ballistic_dir=tmp_path / "Ballistic",
        )
        kw.update(overrides)
        return PipelineConfig(**kw)

    return _make


@pytest.fixture
def ap_shell() -> ProjectileEntry:
    return ProjectileEntry(
        projectile_id="75mm_m72_shot",
        kind=ProjectileKind.AP,
        weapon="75mm_M3_user_cannon",
        ammo="75mm_m72_shot",
        slot=0,
        velocity=619.0,
        caliber_mm=75.0,
        mass_kg=6.32,
        cx=0.3,
        law=DeMarreParams(),
        bullet_type="ap_tank",
    )


@pytest.fixture
def apfsds_shell() -> ProjectileEntry:
    return ProjectileEntry(
        projectile_id="120mm_l44_default",
        kind=ProjectileKind.APFSDS,
        weapon="120mm_l44",
        ammo="120mm_l44_default",
        slot=0,
        velocity=1650.0,
        caliber_mm=120.0,
        mass_kg=4.6,
        cx=0.3,
        ballistic_caliber_mm=30.0,
        law=ArmorPowerSeries(((1200.0, 350.0), (1650.0, 480.0))),
        bullet_type="apds_fs_tank",
    )


@pytest.fixture
def atgm() -> ProjectileEntry:
    return ProjectileEntry(
        projectile_id="9m14_malyutka",
        kind=ProjectileKind.ROCKET,
        weapon="atgm_launcher",
        ammo="9m14_malyutka",
        slot=0,
        velocity=20.0,
        caliber_mm=125.0,
        mass_kg=10.9,
        cx=0.5,
        he_filler_kg=2.6,
        cumulative_armor_power=400.0,
        rocket=RocketMotor(end_speed=115.0, burn_time_s=1.0, max_distance_m=3000.0),
        bullet_type="atgm_tank",
    )


@pytest.fixture
def engine_config() -> EngineConfig:
    return EngineConfig()
