from __future__ import annotations

import pytest

from fcsgen.model.data import ArmorPowerSeries, ProjectileKind


class TestClassify:
    @pytest.mark.parametrize(
        "bullet_type,filler,expected",
        [
            ("ap_tank", 0.0, ProjectileKind.AP),
            ("ap_tank", 0.08, ProjectileKind.APHE),
            ("aphe_tank", 0.08, ProjectileKind.APHE),
            ("sapcbc_tank", 0.1, ProjectileKind.APHE),
            ("apcr_tank", 0.0, ProjectileKind.APCR),
            ("hvap_tank", 0.0, ProjectileKind.APCR),
            ("apds_tank", 0.0, ProjectileKind.APDS),
            ("apds_fs_long_tank", 0.0, ProjectileKind.APFSDS),
            ("heat_fs_tank", 1.0, ProjectileKind.HEAT),
            ("he_frag_tank", 0.7, ProjectileKind.HE),
            ("hesh_tank", 4.0, ProjectileKind.HE),
            ("smoke_tank", 0.0, ProjectileKind.UNKNOWN),
        ],
    )
    def test_bullet_types(self, bullet_type, filler, expected):
        assert ProjectileKind.classify(bullet_type, filler_kg=filler) is expected

    def test_rocket_flag_wins(self):
        assert ProjectileKind.classify("ap_tank", rocket=True) is ProjectileKind.ROCKET

    def test_law_families(self):
        assert ProjectileKind.APCR.uses_demarre
        assert ProjectileKind.APFSDS.uses_armor_power
        assert ProjectileKind.ROCKET.is_chemical
        assert not ProjectileKind.AP.is_chemical


class TestArmorPowerSeries:
    def test_rejects_unsorted(self):
        with pytest.raises(ValueError):
            ArmorPowerSeries(((1500.0, 400.0), (1000.0, 250.0)))

    def test_rejects_empty(self):
        with pytest.raises(ValueError):
            ArmorPowerSeries(())

    def test_from_pairs_sorts_and_dedupes(self):
        series, dropped = ArmorPowerSeries.from_pairs([(1500, 400), (1000, 250), (1500, 999), (1200, -3)])
        assert series.breakpoints == ((1000.0, 250.0), (1200.0, 0.0), (1500.0, 400.0))
        assert dropped == 1
