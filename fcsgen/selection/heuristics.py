"""Decide which armament entries are real and how their ammo splits into projectiles.

Rules, in priority order:
1. Drop entries the source marks as decorative (dummy flag, dummy blk, non-ballistic trigger groups).
2. Collapse duplicate declarations of the same weapon on the same trigger.
3. Detect "double shell" ammo: one visible ammo slot backed by two ballistic profiles.
4. Order by weapon slot, then declaration order.

Anything that cannot be decided with confidence is kept and reported as a
SelectionWarning so it shows up in the run report.
"""

from __future__ import annotations

import re
from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import PurePosixPath
from typing import Any

from ..datamine import blk
from ..errors import SelectionWarning

NON_BALLISTIC_TRIGGER_GROUPS = frozenset({"smoke", "flares", "countermeasures", "special"})

DOUBLE_SHELL_NAME_RE = re.compile(r"(_x2|_double|_dual|_twin)$", re.IGNORECASE)
SLOT_RE = re.compile(r"(\d+)$")


@dataclass(frozen=True)
class WeaponRef:
    """One Weapon block as declared in a vehicle or module file."""

    blk: str
    trigger: str = ""
    trigger_group: str = ""
    bullets: int | None = None
    dummy: bool = False
    declared_index: int = 0
    source: str = ""

    @property
    def name(self) -> str:
        return PurePosixPath(self.blk.replace("\\", "/")).stem

    @classmethod
    def from_block(cls, block: Mapping[str, Any], *, index: int, source: str) -> WeaponRef:
        return cls(
            blk=blk.lookup(block, "blk", str, "") or "",
            trigger=blk.lookup(block, "trigger", str, "") or "",
            trigger_group=blk.lookup(block, "triggerGroup", str, "") or "",
            bullets=blk.lookup(block, "bullets", int),
            dummy=bool(blk.lookup(block, "dummy", bool, False)),
            declared_index=index,
            source=source,
        )


@dataclass(frozen=True)
class SelectedWeapon:
    ref: WeaponRef
    slot: int


@dataclass
class AmmoSet:
    name: str
    blocks: list[dict[str, Any]]
    rocket: bool = False
    double_marker: bool = False


@dataclass
class AmmoSplit:
    """Bullet blocks of one ammo set that become projectiles."""

    ammo: str
    parts: list[tuple[str, dict[str, Any]]]  # (projectile id, bullet block)
    rocket: bool = False
    double_shell: bool = False
    warnings: list[SelectionWarning] = field(default_factory=list)


def slot_of(ref: WeaponRef) -> int:
    match = SLOT_RE.search(ref.trigger)
    return int(match.group(1)) if match else ref.declared_index


def is_decorative(ref: WeaponRef) -> bool:
    if ref.dummy or not ref.blk.strip():
        return True
    if "dummy" in ref.blk.lower():
        return True
    return ref.trigger_group.lower() in NON_BALLISTIC_TRIGGER_GROUPS


def select_weapons(refs: list[WeaponRef]) -> tuple[list[SelectedWeapon], list[SelectionWarning]]:
    """Apply rules 1, 2 and 4 to the declared weapons."""
    warnings: list[SelectionWarning] = []
    seen: set[tuple[str, str]] = set()
    selected: list[SelectedWeapon] = []

    for ref in refs:
        if is_decorative(ref):
            continue
        key = (ref.blk.strip().lower(), ref.trigger)
        if key in seen:
            continue
        seen.add(key)
        if ref.bullets == 0:
            warnings.append(
                SelectionWarning(
                    f"Weapon {ref.name} declares 0 bullets but is not marked dummy",
                    detail=f"{ref.source}: {ref.blk}",
                )
            )
        selected.append(SelectedWeapon(ref=ref, slot=slot_of(ref)))

    selected.sort(key=lambda w: (w.slot, w.ref.declared_index))
    return selected, warnings


def discover_ammo(weapon_tree: Mapping[str, Any], weapon_name: str) -> list[AmmoSet]:
    """Default ammo first, then named ammo sets in file order."""
    sets: list[AmmoSet] = []
    for key, rocket in (("bullet", False), ("rocket", True)):
        blocks = [b for b in blk.list_arrays(weapon_tree, key) if isinstance(b, Mapping)]
        if blocks:
            sets.append(
                AmmoSet(
                    name=f"{weapon_name}_default",
                    blocks=[dict(b) for b in blocks],
                    rocket=rocket,
                    double_marker=bool(blk.lookup(weapon_tree, "doubleShell", bool, False)),
                )
            )
            break

    for key, value in weapon_tree.items():
        if key in ("bullet", "rocket") or not isinstance(value, Mapping):
            continue
        rocket = "rocket" in value and "bullet" not in value
        blocks = [b for b in blk.list_arrays(value, "rocket" if rocket else "bullet") if isinstance(b, Mapping)]
        if not blocks:
            continue
        sets.append(
            AmmoSet(
                name=key,
                blocks=[dict(b) for b in blocks],
                rocket=rocket,
                double_marker=bool(blk.lookup(value, "doubleShell", bool, False)),
            )
        )
    return sets


def _bullet_type(block: Mapping[str, Any]) -> str:
    return (blk.lookup(block, "bulletType", str, "") or "").lower()


def split_ammo(ammo: AmmoSet, *, weapon: str) -> AmmoSplit:
    """Rule 3: decide whether an ammo set is one projectile, a double shell, or a belt."""
    blocks = ammo.blocks
    if len(blocks) == 1:
        return AmmoSplit(ammo=ammo.name, parts=[(ammo.name, blocks[0])], rocket=ammo.rocket)

    if len(blocks) == 2:
        split = AmmoSplit(
            ammo=ammo.name,
            parts=[(f"{ammo.name}_1", blocks[0]), (f"{ammo.name}_2", blocks[1])],
            rocket=ammo.rocket,
            double_shell=True,
        )
        if not ammo.double_marker and not DOUBLE_SHELL_NAME_RE.search(ammo.name):
            split.warnings.append(
                SelectionWarning(
                    f"Ammo {ammo.name} of {weapon} has two bullet blocks but no double-shell marker",
                    detail=f"{weapon}/{ammo.name}",
                )
            )
        return split

    # A belt: one projectile per distinct bullet type, in belt order.
    parts: list[tuple[str, dict[str, Any]]] = []
    seen: set[str] = set()
    for block in blocks:
        t = _bullet_type(block)
        if t in seen:
            continue
        seen.add(t)
        parts.append((ammo.name if not parts else f"{ammo.name}_{t or len(parts)}", block))
    return AmmoSplit(ammo=ammo.name, parts=parts, rocket=ammo.rocket)
