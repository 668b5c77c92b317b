"""Golden-corpus comparison of ballistic tables.

The tolerance policy is chosen by the caller:

- strict: rows whose reference penetration is a whole number of millimeters
  must match exactly after rounding; other values within 1% relative.
- lenient: every value within 1% relative, with small absolute floors so
  near-zero values do not fail on noise.

Distances must always match exactly.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass

from .. import constants
from ..model.data import BallisticRow


@dataclass(frozen=True)
class Mismatch:
    row: int
    field: str
    expected: float
    actual: float

    def describe(self) -> str:
        return f"row {self.row} {self.field}: expected {self.expected}, got {self.actual}"


def _within(expected: float, actual: float, *, floor: float) -> bool:
    return abs(actual - expected) <= max(abs(expected) * constants.RELATIVE_TOLERANCE, floor)


def compare_tables(
    expected: Sequence[BallisticRow],
    actual: Sequence[BallisticRow],
    mode: str = "strict",
) -> list[Mismatch]:
    if mode not in ("strict", "lenient"):
        raise ValueError(f"Unknown tolerance mode: {mode!r}")

    out: list[Mismatch] = []
    if len(expected) != len(actual):
        out.append(Mismatch(row=-1, field="rows", expected=float(len(expected)), actual=float(len(actual))))

    floors = (0.0, 0.0) if mode == "strict" else (constants.ABS_TIME_FLOOR_S, constants.ABS_PENETRATION_FLOOR_MM)
    for i, (e, a) in enumerate(zip(expected, actual)):
        if e.distance_m != a.distance_m:
            out.append(Mismatch(i, "distance_m", e.distance_m, a.distance_m))
            continue
        if not _within(e.time_s, a.time_s, floor=floors[0]):
            out.append(Mismatch(i, "time_s", e.time_s, a.time_s))
        if mode == "strict" and float(e.penetration_mm).is_integer():
            ok = round(a.penetration_mm) == int(e.penetration_mm)
        else:
            ok = _within(e.penetration_mm, a.penetration_mm, floor=floors[1])
        if not ok:
            out.append(Mismatch(i, "penetration_mm", e.penetration_mm, a.penetration_mm))
    return out
