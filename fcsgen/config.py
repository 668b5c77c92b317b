from __future__ import annotations

import dataclasses
from dataclasses import dataclass, field
from pathlib import Path

from . import constants

EMIT_MODES = ("legacy", "structured", "both")
TOLERANCE_MODES = ("strict", "lenient")
DRAG_MODELS = ("exponential", "mach")


@dataclass(frozen=True)
class DatamineLayout:
    units_dir: str = constants.UNITS_DIR
    gamedata_root: str = constants.GAMEDATA_ROOT
    lang_file: str = constants.LANG_FILE
    version_file: str = constants.VERSION_FILE


@dataclass(frozen=True)
class EngineConfig:
    drag_model: str = "exponential"  # "exponential" | "mach"
    armor_angle_deg: float = 0.0
    armor_quality: float = 1.0  # 1.0 = RHA; harder plate > 1.0
    tolerance: str = "strict"  # "strict" | "lenient" (golden comparison only)

    def __post_init__(self) -> None:
        if self.drag_model not in DRAG_MODELS:
            raise ValueError(f"Unknown drag model: {self.drag_model!r}")
        if self.tolerance not in TOLERANCE_MODES:
            raise ValueError(f"Unknown tolerance mode: {self.tolerance!r}")
        if not 0.0 <= self.armor_angle_deg < 90.0:
            raise ValueError(f"armor_angle_deg must be in [0, 90), got {self.armor_angle_deg}")
        if self.armor_quality <= 0.0:
            raise ValueError(f"armor_quality must be positive, got {self.armor_quality}")

    def signature(self) -> dict:
        # Tolerance only affects comparison, never the tables themselves.
        d = dataclasses.asdict(self)
        d.pop("tolerance", None)
        return d


@dataclass(frozen=True)
class PipelineConfig:
    """Everything a run needs, passed explicitly to each stage."""

    datamine_root: Path | None = None
    layout: DatamineLayout = field(default_factory=DatamineLayout)
    lang_path: Path | None = None  # overrides layout.lang_file
    language: str = "English"
    data_dir: Path | None = None  # legacy Data/*.txt
    structured_dir: Path | None = None
    ballistic_dir: Path | None = None  # legacy Ballistic/<vehicle>/*.txt
    emit: str = "legacy"  # "legacy" | "structured" | "both"
    vehicles: tuple[str, ...] = ("*",)
    threads: int = 1
    strict: bool = False
    force: bool = False
    golden_dir: Path | None = None
    cache_filename: str = constants.CACHE_FILENAME
    engine: EngineConfig = field(default_factory=EngineConfig)

    def __post_init__(self) -> None:
        if self.emit not in EMIT_MODES:
            raise ValueError(f"Unknown emit mode: {self.emit!r}")

    @property
    def emit_legacy(self) -> bool:
        return self.emit in ("legacy", "both")

    @property
    def emit_structured(self) -> bool:
        return self.emit in ("structured", "both")

    def resolved_lang_path(self) -> Path | None:
        if self.lang_path is not None:
            return self.lang_path
        if self.datamine_root is None:
            return None
        return self.datamine_root / self.layout.lang_file

    def signature(self) -> dict:
        """Inputs (other than files) that change stage outputs."""
        return {
            "layout": dataclasses.asdict(self.layout),
            "language": self.language,
            "engine": self.engine.signature(),
        }
