from .heuristics import (
    AmmoSet,
    AmmoSplit,
    SelectedWeapon,
    WeaponRef,
    discover_ammo,
    is_decorative,
    select_weapons,
    slot_of,
    split_ammo,
)

__all__ = [
    "AmmoSet",
    "AmmoSplit",
    "SelectedWeapon",
    "WeaponRef",
    "discover_ammo",
    "is_decorative",
    "select_weapons",
    "slot_of",
    "split_ammo",
]
