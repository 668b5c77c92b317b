"""Structured JSON output."""

from __future__ import annotations

import json

import pytest

from fcsgen.ballistics import compute
from fcsgen.emit import structured
from fcsgen.errors import ParseError, SchemaError
from fcsgen.model.data import VehicleData


@pytest.fixture
def vehicle(ap_shell, apfsds_shell, atgm):
    return VehicleData(
        vehicle_id="ussr_it_1",
        display_name="ИТ-1",
        zoom_levels=(1.0, 4.76),
        laser_rangefinder=True,
        projectiles=(ap_shell, apfsds_shell, atgm),
    )


class TestVehicle:
    def test_read_back(self, vehicle, tmp_path):
        path = structured.write_vehicle(tmp_path, vehicle)
        assert path.name == "ussr_it_1.json"
        assert structured.read_vehicle(path) == vehicle

    def test_layout(self, vehicle, tmp_path):
        data = json.loads(structured.write_vehicle(tmp_path, vehicle).read_text(encoding="utf-8"))
        assert data["schema_version"] == 1
        assert data["display_name"] == "ИТ-1"
        assert [p["kind"] for p in data["projectiles"]] == ["ap", "apfsds", "rocket"]
        assert data["projectiles"][0]["law"]["type"] == "demarre"
        assert data["projectiles"][1]["law"]["type"] == "armor_power"
        assert data["projectiles"][2]["rocket"]["end_speed"] == 115.0

    def test_unknown_keys_ignored(self, vehicle, tmp_path):
        path = structured.write_vehicle(tmp_path, vehicle)
        data = json.loads(path.read_text(encoding="utf-8"))
        data["added_later"] = {"x": 1}
        data["projectiles"][0]["new_field"] = 3
        path.write_text(json.dumps(data), encoding="utf-8")
        assert structured.read_vehicle(path) == vehicle

    def test_invalid_json(self, tmp_path):
        path = tmp_path / "bad.json"
        path.write_text("{", encoding="utf-8")
        with pytest.raises(ParseError):
            structured.read_vehicle(path)

    def test_missing_field(self, tmp_path):
        path = tmp_path / "bad.json"
        path.write_text(json.dumps({"vehicle_id": "x"}), encoding="utf-8")
        with pytest.raises(SchemaError):
            structured.read_vehicle(path)


class TestBallistic:
    def test_tables_in_projectile_order(self, vehicle, tmp_path):
        tables = [compute(p) for p in vehicle.projectiles]
        path = structured.write_ballistic(tmp_path, vehicle, tables)
        back_vehicle, back_tables = structured.read_ballistic(path)
        assert back_vehicle == vehicle
        assert [t.projectile_id for t in back_tables] == [p.projectile_id for p in vehicle.projectiles]
        assert back_tables == tables

    def test_deterministic_bytes(self, vehicle, tmp_path):
        tables = [compute(p) for p in vehicle.projectiles]
        a = structured.write_ballistic(tmp_path / "a", vehicle, tables).read_bytes()
        b = structured.write_ballistic(tmp_path / "b", vehicle, tables).read_bytes()
        assert a == b
        assert a.endswith(b"\n")


def test_index_lists_present_records(vehicle, tmp_path):
    structured.write_vehicle(tmp_path, vehicle)
    (tmp_path / ".fcs-cache.json").write_text("{}", encoding="utf-8")
    structured.write_index(tmp_path)
    assert structured.read_index(tmp_path) == ["ussr_it_1"]
