"""Writers and readers for the legacy text and structured JSON outputs."""

from . import legacy, structured
from .files import record_stems, remove_file, write_text

__all__ = ["legacy", "record_stems", "remove_file", "structured", "write_text"]
