"""JSON records validated through the models in ``schema``."""

from __future__ import annotations

import json
from collections.abc import Sequence
from pathlib import Path

from pydantic import BaseModel, ValidationError

from ..errors import ParseError, SchemaError
from ..model.data import BallisticTable, VehicleData
from . import schema
from .files import read_text, record_stems, write_text

SUFFIX = ".json"
INDEX_NAME = "index.json"


def dumps(model: BaseModel) -> str:
    return json.dumps(model.model_dump(mode="json"), indent=2, ensure_ascii=False) + "\n"


def _load(path: Path, model: type[BaseModel]) -> BaseModel:
    text = read_text(path)
    try:
        raw = json.loads(text)
    except ValueError as e:
        raise ParseError(f"Invalid JSON in {path}: {e}", detail=str(path)) from e
    try:
        return model.model_validate(raw)
    except ValidationError as e:
        raise SchemaError(f"{path} does not match the {model.__name__} schema", detail=str(e)) from e


def vehicle_path(directory: Path, vehicle_id: str) -> Path:
    return Path(directory) / f"{vehicle_id}{SUFFIX}"


def write_vehicle(directory: Path, vehicle: VehicleData) -> Path:
    return write_text(vehicle_path(directory, vehicle.vehicle_id), dumps(schema.Vehicle.from_data(vehicle)))


def read_vehicle(path: Path) -> VehicleData:
    return _load(path, schema.Vehicle).to_data()


def write_ballistic(directory: Path, vehicle: VehicleData, tables: Sequence[BallisticTable]) -> Path:
    base = schema.Vehicle.from_data(vehicle)
    record = schema.BallisticVehicle(
        **base.model_dump(),
        tables=[schema.Table.from_table(t) for t in tables],
    )
    return write_text(vehicle_path(directory, vehicle.vehicle_id), dumps(record))


def read_ballistic(path: Path) -> tuple[VehicleData, list[BallisticTable]]:
    record = _load(path, schema.BallisticVehicle)
    return record.to_data(), [t.to_table() for t in record.tables]


def write_index(directory: Path) -> Path:
    """Rewrite ``index.json`` from the records actually present in ``directory``."""
    index = schema.Index(vehicles=record_stems(directory, SUFFIX))
    return write_text(Path(directory) / INDEX_NAME, dumps(index))


def read_index(directory: Path) -> list[str]:
    return list(_load(Path(directory) / INDEX_NAME, schema.Index).vehicles)
