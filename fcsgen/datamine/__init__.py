from .blk import list_arrays, lookup, read, subtree
from .lang import LangTable, display_name
from .refs import Datamine

__all__ = [
    "Datamine",
    "LangTable",
    "display_name",
    "list_arrays",
    "lookup",
    "read",
    "subtree",
]
