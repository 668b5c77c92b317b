"""fcsgen: datamine -> vehicle records -> ballistic tables for a fire-control overlay."""

__version__ = "0.1.0"

from .config import DatamineLayout, EngineConfig, PipelineConfig  # noqa: E402
from .pipeline import RunReport, convert_datamine, make_ballistic  # noqa: E402

__all__ = [
    "DatamineLayout",
    "EngineConfig",
    "PipelineConfig",
    "RunReport",
    "__version__",
    "convert_datamine",
    "make_ballistic",
]
