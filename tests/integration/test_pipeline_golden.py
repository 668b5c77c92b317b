"""End-to-end: datamine -> Data -> Ballistic, checked against golden tables."""

from __future__ import annotations

import math

import numpy as np
import pytest

from fcsgen.config import EngineConfig
from fcsgen.emit import legacy, structured
from fcsgen.model.data import BallisticRow, BallisticTable
from fcsgen.pipeline import BUILT, FAILED, convert_datamine, make_ballistic

from conftest import ALL_VEHICLES, ATGM_CARRIER, DOUBLE_GUN, SHERMAN


def sherman_reference() -> BallisticTable:
    """The M72 shot worked out by hand: exponential drag and the DeMarre law."""
    mass, caliber_m, v0, cx = 6.32, 0.075, 619.0, 0.3
    k = 1.225 * cx * math.pi * (caliber_m / 2.0) ** 2 / (2.0 * mass)
    d = np.concatenate([np.arange(0.0, 1001.0, 50.0), np.arange(1100.0, 4001.0, 100.0)])
    v = v0 * np.exp(-k * d)
    t = np.expm1(k * d) / (k * v0)
    p = 100.0 * v**1.43 * mass**0.71 / (1900.0**1.43 * (caliber_m * 1000.0 / 100.0) ** 1.07)
    return BallisticTable("75mm_m72_shot", tuple(BallisticRow(*r) for r in zip(d, t, p)))


@pytest.fixture
def data_dir(tmp_path, make_config):
    report = convert_datamine(make_config(vehicles=(SHERMAN,)))
    assert report.exit_code == 0
    return tmp_path / "Data"


def write_golden(root, table: BallisticTable):
    legacy.write_tables(root, SHERMAN, [table])
    return root


class TestGolden:
    def test_matches_hand_computed_table(self, tmp_path, data_dir, make_config):
        golden = write_golden(tmp_path / "golden", sherman_reference())
        report = make_ballistic(make_config(golden_dir=golden, strict=True))
        assert report.exit_code == 0
        assert report.outcome(SHERMAN).outcome == BUILT

        table = legacy.read_table(tmp_path / "Ballistic" / SHERMAN / "75mm_m72_shot.txt")
        assert len(table) == 51
        assert table.rows[0].penetration_mm == pytest.approx(sherman_reference().rows[0].penetration_mm, abs=0.05)

    def test_perturbed_golden_fails_vehicle(self, tmp_path, data_dir, make_config):
        ref = sherman_reference()
        bad = BallisticTable(
            ref.projectile_id,
            tuple(BallisticRow(r.distance_m, r.time_s, r.penetration_mm * 1.1) for r in ref.rows),
        )
        golden = write_golden(tmp_path / "golden", bad)
        report = make_ballistic(make_config(golden_dir=golden))
        assert report.exit_code == 3
        outcome = report.outcome(SHERMAN)
        assert outcome.outcome == FAILED
        assert outcome.errors[0].kind == "computation"
        assert "penetration_mm" in outcome.errors[0].detail

    def test_lenient_tolerates_rounding(self, tmp_path, data_dir, make_config):
        ref = sherman_reference()
        nudged = BallisticTable(
            ref.projectile_id,
            tuple(BallisticRow(r.distance_m, r.time_s, r.penetration_mm + 0.4) for r in ref.rows),
        )
        golden = write_golden(tmp_path / "golden", nudged)
        report = make_ballistic(make_config(golden_dir=golden, engine=EngineConfig(tolerance="lenient")))
        assert report.exit_code == 0

    def test_missing_golden_table(self, tmp_path, data_dir, make_config):
        golden = tmp_path / "golden"
        golden.mkdir()
        report = make_ballistic(make_config(golden_dir=golden))
        assert report.exit_code == 4
        assert report.outcome(SHERMAN).errors[0].kind == "missing_reference"

    def test_failed_vehicle_is_rebuilt_next_run(self, tmp_path, data_dir, make_config):
        golden = tmp_path / "golden"
        golden.mkdir()
        assert make_ballistic(make_config(golden_dir=golden)).exit_code == 4
        write_golden(golden, sherman_reference())
        report = make_ballistic(make_config(golden_dir=golden))
        assert report.outcome(SHERMAN).outcome == BUILT


class TestFullRun:
    def test_every_vehicle_gets_tables(self, tmp_path, make_config):
        assert convert_datamine(make_config(emit="both")).exit_code == 0
        report = make_ballistic(make_config(emit="both", structured_dir=tmp_path / "Ballistic"))
        assert report.exit_code == 0
        assert [v.vehicle_id for v in report.vehicles] == ALL_VEHICLES
        assert all(v.outcome == BUILT for v in report.vehicles)
        assert structured.read_index(tmp_path / "Ballistic") == ALL_VEHICLES

    def test_atgm_tables_in_order(self, tmp_path, make_config):
        convert_datamine(make_config(emit="both", vehicles=(ATGM_CARRIER,)))
        make_ballistic(make_config(emit="both", structured_dir=tmp_path / "Ballistic"))

        out = tmp_path / "Ballistic"
        files = sorted(p.name for p in (out / ATGM_CARRIER).iterdir())
        assert files == ["9m14_malyutka.txt", "9m14m_malyutka.txt"]
        _, tables = structured.read_ballistic(out / f"{ATGM_CARRIER}.json")
        assert [t.projectile_id for t in tables] == ["9m14_malyutka", "9m14m_malyutka"]
        for t in tables:
            text_table = legacy.read_table(out / ATGM_CARRIER / f"{t.projectile_id}.txt")
            assert len(t) == len(text_table) == 41
            assert t.rows[-1].distance_m == 3000.0
        assert {r.penetration_mm for r in tables[0].rows} == {400.0}
        assert {r.penetration_mm for r in tables[1].rows} == {460.0}

    def test_double_shell_gets_two_tables(self, tmp_path, make_config):
        convert_datamine(make_config(vehicles=(DOUBLE_GUN,)))
        make_ballistic(make_config())

        out = tmp_path / "Ballistic" / DOUBLE_GUN
        heat = legacy.read_table(out / "105mm_dm12_double_1.txt")
        dart = legacy.read_table(out / "105mm_dm12_double_2.txt")
        assert len(heat) == 31
        assert {r.penetration_mm for r in heat.rows} == {400.0}
        assert len(dart) == 51
        assert dart.rows[0].penetration_mm == pytest.approx(400.0)

    def test_engine_options_change_tables(self, tmp_path, make_config):
        convert_datamine(make_config(vehicles=(SHERMAN,)))
        make_ballistic(make_config())
        flat = legacy.read_table(tmp_path / "Ballistic" / SHERMAN / "75mm_m72_shot.txt")
        report = make_ballistic(make_config(engine=EngineConfig(armor_angle_deg=60.0)))
        assert report.outcome(SHERMAN).outcome == BUILT
        sloped = legacy.read_table(tmp_path / "Ballistic" / SHERMAN / "75mm_m72_shot.txt")
        assert sloped.rows[0].penetration_mm == pytest.approx(flat.rows[0].penetration_mm / 2.0, abs=0.1)
