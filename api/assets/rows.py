# api/assets/rows.py
"""
Tabular row model consumed by the importer.

Both a CSV upload and a single JSON asset end up as a ``CsvMap``: one title
row (case-insensitive) and any number of data rows addressed 1-based.
"""
import csv
import io
from collections.abc import Mapping, Sequence
from typing import Any

from core.errors import BadRequestError

_DELIMITERS = (",", ";", "\t")
_CORE_JSON_KEYS = ("id", "name", "type", "sub_type", "location", "status", "priority", "asset_tag")


class CsvMap:
    def __init__(
        self,
        titles: Sequence[str],
        rows: Sequence[Sequence[str]],
        *,
        create_user: str = "",
        update_user: str = "",
        create_mode: str = "",
    ):
        self.titles = [title.strip().lower() for title in titles]
        self._index: dict[str, int] = {}
        for pos, title in enumerate(self.titles):
            self._index.setdefault(title, pos)
        self._rows = [list(row) for row in rows]
        self.create_user = create_user
        self.update_user = update_user
        self.create_mode = create_mode

    def __len__(self) -> int:
        return len(self._rows)

    def rows(self) -> range:
        """Row numbers of the data rows, starting at 1."""
        return range(1, len(self._rows) + 1)

    def has_title(self, title: str) -> bool:
        return title.lower() in self._index

    def get(self, row: int, title: str) -> str:
        """Stripped cell value; missing columns and short rows read as empty."""
        pos = self._index.get(title.lower())
        if pos is None:
            return ""
        values = self._rows[row - 1]
        if pos >= len(values):
            return ""
        return (values[pos] or "").strip()

    @classmethod
    def from_csv(cls, text: str, **meta: str) -> "CsvMap":
        text = text.lstrip("\ufeff")
        first_line = text.split("\n", 1)[0]
        delimiter = max(_DELIMITERS, key=first_line.count)
        reader = csv.reader(io.StringIO(text), delimiter=delimiter)
        records = [record for record in reader if any(cell.strip() for cell in record)]
        if not records:
            raise BadRequestError("Import file is empty")
        return cls(records[0], records[1:], **meta)

    @classmethod
    def from_json(cls, payload: Mapping[str, Any], **meta: str) -> "CsvMap":
        """Flatten one JSON asset into a single row."""
        columns: dict[str, str] = {}
        for key in _CORE_JSON_KEYS:
            value = payload.get(key)
            if value is not None:
                columns[key] = str(value)

        for pos, power in enumerate(payload.get("powers") or [], start=1):
            columns[f"power_source.{pos}"] = power.get("src_name") or ""
            columns[f"power_plug_src.{pos}"] = power.get("src_socket") or ""
            columns[f"power_input.{pos}"] = power.get("dest_socket") or ""

        for pos, group in enumerate(payload.get("groups") or [], start=1):
            columns[f"group.{pos}"] = group

        ext = payload.get("ext") or {}
        if isinstance(ext, Mapping):
            ext = [{key: value} for key, value in ext.items()]
        for entry in ext:
            # System managed attributes cannot be set from the outside
            if entry.get("read_only"):
                continue
            for key, value in entry.items():
                if key != "read_only" and value is not None:
                    columns[key] = str(value)

        for key, value in payload.items():
            if key in columns or key in ("powers", "groups", "ext") or value is None:
                continue
            if isinstance(value, (str, int, float)):
                columns[key] = str(value)

        return cls(list(columns), [list(columns.values())], **meta)
