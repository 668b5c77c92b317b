"""Localized unit names from the language CSV."""

from __future__ import annotations

import csv
import hashlib
import io
import json
import logging
from dataclasses import dataclass, field
from pathlib import Path

from ..errors import ParseError

logger = logging.getLogger("fcsgen.datamine")

# Keys tried in order for a vehicle's display name
NAME_SUFFIXES = ("_shop", "_0", "")


@dataclass
class LangTable:
    """Key -> {language: text} rows of one CSV file."""

    path: Path | None = None
    languages: list[str] = field(default_factory=list)
    rows: dict[str, dict[str, str]] = field(default_factory=dict)
    raw: dict[str, list[str]] = field(default_factory=dict)  # key -> cells as read

    @classmethod
    def load(cls, path: Path) -> LangTable:
        try:
            text = Path(path).read_text(encoding="utf-8-sig")
        except UnicodeDecodeError as e:
            raise ParseError(f"Language file is not UTF-8: {path}", detail=str(path)) from e
        return cls.parse(text, path=Path(path))

    @classmethod
    def parse(cls, text: str, *, path: Path | None = None) -> LangTable:
        # One reader over the whole text: quoted cells may span lines.
        reader = csv.reader(io.StringIO(text), delimiter=";", quotechar='"')
        try:
            header = next(reader, None)
            if header is None:
                return cls(path=path)
            languages = [h.strip().strip("<>") for h in header[1:]]
            table = cls(path=path, languages=languages)
            for cells in reader:
                if not any(c.strip() for c in cells):
                    continue
                key = cells[0]
                table.rows[key] = {lang: cells[i + 1] for i, lang in enumerate(languages) if i + 1 < len(cells)}
                table.raw[key] = list(cells)
        except csv.Error as e:
            raise ParseError(
                f"Malformed language file at line {reader.line_num}: {e}", detail=f"{path}:{reader.line_num}"
            ) from e
        logger.debug(f"Loaded {len(table.rows)} language rows from {path}")
        return table

    def name_for(self, vehicle_id: str, language: str = "English") -> str | None:
        for suffix in NAME_SUFFIXES:
            row = self.rows.get(f"{vehicle_id}{suffix}")
            if row:
                text = row.get(language, "").strip()
                if text:
                    return text
        return None

    def rows_for(self, vehicle_id: str) -> list[list[str]]:
        """Cells of every row that can feed the vehicle's name."""
        return [self.raw[k] for k in (f"{vehicle_id}{s}" for s in NAME_SUFFIXES) if k in self.raw]

    def rows_hash(self, vehicle_id: str) -> str:
        encoded = json.dumps(self.rows_for(vehicle_id), ensure_ascii=False, separators=(",", ":"))
        return hashlib.sha256(encoded.encode("utf-8")).hexdigest()


def display_name(table: LangTable | None, vehicle_id: str, language: str = "English") -> str:
    """Localized name, falling back to the vehicle's basename identifier."""
    if table is None:
        return vehicle_id
    return table.name_for(vehicle_id, language) or vehicle_id
