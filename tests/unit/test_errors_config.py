"""Error taxonomy, exit codes and configuration validation."""

from __future__ import annotations

import pickle

import pytest

from fcsgen.config import EngineConfig, PipelineConfig
from fcsgen.errors import (
    CacheIOError,
    ComputationError,
    EmitIOError,
    MissingReferenceError,
    ParseError,
    SchemaError,
    SelectionWarning,
    error_from_dict,
    exit_code_for,
)
from fcsgen.settings import Settings


class TestErrors:
    def test_exit_codes_order_severity(self):
        assert ComputationError("x").exit_code == 3
        assert MissingReferenceError("x").exit_code == 4
        assert SchemaError("x").exit_code == 5
        assert ParseError("x").exit_code == 6
        assert CacheIOError("x").exit_code == 7
        assert EmitIOError("x").exit_code == 7

    def test_max_wins(self):
        assert exit_code_for([ComputationError("a"), ParseError("b"), SchemaError("c")]) == 6
        assert exit_code_for([]) == 0

    def test_missing_reference_message(self):
        err = MissingReferenceError("gameData/Weapons/x.blk", detail="tank.blkx")
        assert err.message == "Unresolved reference: gameData/Weapons/x.blk"
        assert err.as_dict() == {
            "kind": "missing_reference",
            "message": "Unresolved reference: gameData/Weapons/x.blk",
            "detail": "tank.blkx",
        }

    def test_errors_survive_pickling(self):
        for err in (MissingReferenceError("x.blk", detail="t"), SchemaError("s", detail="d")):
            back = pickle.loads(pickle.dumps(err))
            assert type(back) is type(err)
            assert back.as_dict() == err.as_dict()
        w = pickle.loads(pickle.dumps(SelectionWarning("w", detail="d")))
        assert w.as_dict() == {"kind": "selection", "message": "w", "detail": "d"}

    def test_rebuilt_from_dict(self):
        err = MissingReferenceError("x.blk", detail="tank.blkx")
        back = error_from_dict(err.as_dict())
        assert type(back) is MissingReferenceError
        assert back.as_dict() == err.as_dict()
        assert back.exit_code == 4
        assert error_from_dict({"kind": "mystery", "message": "m"}).as_dict()["message"] == "m"


class TestConfig:
    def test_engine_validation(self):
        with pytest.raises(ValueError):
            EngineConfig(drag_model="magic")
        with pytest.raises(ValueError):
            EngineConfig(armor_angle_deg=90.0)
        with pytest.raises(ValueError):
            EngineConfig(armor_quality=0.0)
        with pytest.raises(ValueError):
            EngineConfig(tolerance="fuzzy")

    def test_tolerance_not_in_signature(self):
        assert EngineConfig(tolerance="strict").signature() == EngineConfig(tolerance="lenient").signature()
        assert EngineConfig(drag_model="mach").signature() != EngineConfig().signature()

    def test_emit_modes(self):
        assert PipelineConfig(emit="both").emit_legacy
        assert PipelineConfig(emit="both").emit_structured
        assert not PipelineConfig(emit="structured").emit_legacy
        with pytest.raises(ValueError):
            PipelineConfig(emit="xml")

    def test_lang_path_resolution(self, tmp_path):
        assert PipelineConfig().resolved_lang_path() is None
        cfg = PipelineConfig(datamine_root=tmp_path)
        assert cfg.resolved_lang_path() == tmp_path / "lang.vromfs.bin_u" / "lang" / "units.csv"
        assert PipelineConfig(datamine_root=tmp_path, lang_path=tmp_path / "x.csv").resolved_lang_path() == (
            tmp_path / "x.csv"
        )


class TestSettings:
    def test_env_overrides(self, monkeypatch):
        monkeypatch.setenv("FCS_THREADS", "4")
        monkeypatch.setenv("FCS_LOG_FORMAT", "text")
        s = Settings()
        assert s.THREADS == 4
        assert s.LOG_FORMAT == "text"

    def test_defaults(self, monkeypatch):
        for name in ("FCS_THREADS", "FCS_LOG_LEVEL", "FCS_LOG_FORMAT", "FCS_LANGUAGE"):
            monkeypatch.delenv(name, raising=False)
        s = Settings(_env_file=None)
        assert s.THREADS == 1
        assert s.LANGUAGE == "English"
        assert s.CACHE_FILENAME == ".fcs-cache.json"
