from __future__ import annotations

# ==============================================================================
# Datamine Layout
# ==============================================================================

# Vehicle files live here, relative to the datamine root
UNITS_DIR = "aces.vromfs.bin_u/gamedata/units/tankmodels"

# Game paths inside blk files ("gameData/Weapons/...") resolve below this root
GAMEDATA_ROOT = "aces.vromfs.bin_u"

LANG_FILE = "lang.vromfs.bin_u/lang/units.csv"
VERSION_FILE = "version"
UNKNOWN_VERSION = "unknown"

BLKX_SUFFIX = ".blkx"

# ==============================================================================
# Optics
# ==============================================================================

# Field of view that corresponds to 1x magnification
REFERENCE_FOV_DEG = 80.0

ZOOM_DECIMALS = 2

# ==============================================================================
# Kinetic Penetration (DeMarre)
# ==============================================================================

# Reference constant of the DeMarre law (m/s scale)
DEMARRE_K_FBR = 1900.0
DEMARRE_SPEED_POW = 1.43
DEMARRE_MASS_POW = 0.71
DEMARRE_CALIBER_POW = 1.07
DEMARRE_REFERENCE_CALIBER_MM = 100.0

# APHE: filler above this mass fraction costs a fixed share of penetration
APHE_FILLER_THRESHOLD = 0.0065
APHE_PENETRATION_FACTOR = 0.9

# ==============================================================================
# Chemical Penetration
# ==============================================================================

# pen_mm = coef * cbrt(TNT grams)
HE_PENETRATION_COEF = 2.0
HE_MIN_FILLER_KG = 0.010
HE_MIN_CALIBER_MM = 20.0

# TNT equivalence of the explosive types found in weapon files
TNT_EQUIVALENT: dict[str, float] = {
    "tnt": 1.0,
    "a_ix_1": 1.54,
    "a_ix_2": 1.35,
    "comp_b": 1.35,
    "rdx": 1.6,
    "octol": 1.7,
    "hexal": 1.7,
    "pentolite": 1.3,
    "tetryl": 1.2,
    "amatol": 0.99,
}

# ==============================================================================
# Flight Model
# ==============================================================================

AIR_DENSITY_KG_M3 = 1.225
SPEED_OF_SOUND_M_S = 340.3
DEFAULT_CX = 0.35

# Below this velocity a table ends early
MIN_VELOCITY_M_S = 1.0

# Integration step of the Mach drag model (meters)
MACH_DRAG_STEP_M = 1.0

# (Mach, Cx multiplier) - transonic rise, relative to the declared Cx
MACH_DRAG_CURVE: tuple[tuple[float, float], ...] = (
    (0.0, 0.85),
    (0.7, 0.86),
    (0.9, 0.95),
    (1.0, 1.25),
    (1.2, 1.30),
    (1.5, 1.18),
    (2.0, 1.05),
    (3.0, 0.95),
    (5.0, 0.85),
)

# ==============================================================================
# Table Sampling
# ==============================================================================

NEAR_RANGE_M = 1000.0
NEAR_STEP_M = 50.0
FAR_STEP_M = 100.0

MAX_RANGE_M = 4000.0
CHEMICAL_MAX_RANGE_M = 2000.0
LOW_VELOCITY_MAX_RANGE_M = 1500.0
LOW_VELOCITY_M_S = 400.0

# ==============================================================================
# Golden Comparison
# ==============================================================================

RELATIVE_TOLERANCE = 0.01
ABS_PENETRATION_FLOOR_MM = 0.5
ABS_TIME_FLOOR_S = 0.005

# ==============================================================================
# Cache
# ==============================================================================

CACHE_FILENAME = ".fcs-cache.json"
CACHE_SCHEMA_VERSION = 1
STRUCTURED_SCHEMA_VERSION = 1
