from .compare import Mismatch, compare_tables
from .drag import DragModel, ExponentialDrag, MachDrag, get_drag_model
from .engine import compute, max_range, sample_distances

__all__ = [
    "DragModel",
    "ExponentialDrag",
    "MachDrag",
    "Mismatch",
    "compare_tables",
    "compute",
    "get_drag_model",
    "max_range",
    "sample_distances",
]
