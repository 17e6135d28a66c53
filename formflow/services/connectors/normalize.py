"""Shape engine-native rows and schema metadata into the common model."""

import base64
import re
from datetime import date, datetime, time
from decimal import Decimal
from typing import Any, Iterable, Sequence

from bson import Decimal128, ObjectId

from formflow.services.connectors.results import FieldDescriptor

DEFAULT_SELECTED_FIELDS = frozenset({"id", "name", "title", "email", "description"})

NUMBER_PATTERN = re.compile(r"^[+-]?(\d+(\.\d*)?|\.\d+)([eE][+-]?\d+)?$")
ISO_DATE_PATTERN = re.compile(r"^\d{4}-\d{2}-\d{2}([T ]\d{2}:\d{2}(:\d{2}(\.\d+)?)?)?(Z|[+-]\d{2}:?\d{2})?$")
BOOLEAN_STRINGS = frozenset({"true", "false"})


def is_default_selected(name: str) -> bool:
    """Whether a field is pre-selected in the binding UI."""
    return name.lower() in DEFAULT_SELECTED_FIELDS


def group_columns(rows: Iterable[Sequence[Any]]) -> dict[str, list[FieldDescriptor]]:
    """
    Group (table, column, type) catalog rows into an ordered
    {table: [FieldDescriptor, ...]} mapping. Column order within each
    table is the order the catalog returned them in.
    """
    grouped: dict[str, list[FieldDescriptor]] = {}
    for table_name, column_name, data_type in rows:
        grouped.setdefault(table_name, []).append(
            FieldDescriptor(
                name=column_name,
                type=str(data_type) if data_type is not None else "",
                selected=is_default_selected(column_name),
            )
        )
    return grouped


def rows_from_sequences(columns: Sequence[str], values: Iterable[Sequence[Any]]) -> list[dict]:
    """Turn array-of-arrays rows plus a header into row objects."""
    rows = []
    width = len(columns)
    for raw in values:
        padded = list(raw[:width]) + [None] * (width - len(raw))
        rows.append({columns[i]: jsonable_value(padded[i]) for i in range(width)})
    return rows


def rows_from_mappings(values: Iterable[Any]) -> list[dict]:
    """Copy mapping-like rows into plain JSON-safe dicts."""
    return [{str(k): jsonable_value(v) for k, v in dict(row).items()} for row in values]


def document_value_type(value: Any) -> str:
    """Runtime kind of a value sampled from a document."""
    if value is None:
        return "null"
    if isinstance(value, (datetime, date)):
        return "date"
    if isinstance(value, (list, tuple)):
        return "array"
    if isinstance(value, ObjectId):
        return "ObjectId"
    if isinstance(value, bool):
        return "boolean"
    if isinstance(value, (int, float, Decimal, Decimal128)):
        return "number"
    if isinstance(value, str):
        return "string"
    return "object"


def spreadsheet_value_type(value: Any) -> str:
    """Infer text/number/datetime/boolean from a spreadsheet cell."""
    if value is None:
        return "text"
    if isinstance(value, bool):
        return "boolean"
    if isinstance(value, (int, float, Decimal)):
        return "number"
    if isinstance(value, (datetime, date, time)):
        return "datetime"
    if isinstance(value, str):
        stripped = value.strip()
        if stripped.lower() in BOOLEAN_STRINGS:
            return "boolean"
        if NUMBER_PATTERN.match(stripped.replace(",", "")):
            return "number"
        if ISO_DATE_PATTERN.match(stripped):
            return "datetime"
    return "text"


def jsonable_value(value: Any) -> Any:
    """Convert engine-specific scalars into JSON-friendly values."""
    if isinstance(value, ObjectId):
        return str(value)
    if isinstance(value, Decimal128):
        return value.to_decimal()
    if isinstance(value, memoryview):
        value = value.tobytes()
    if isinstance(value, (bytes, bytearray)):
        return base64.b64encode(bytes(value)).decode("ascii")
    if isinstance(value, dict):
        return {str(k): jsonable_value(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [jsonable_value(v) for v in value]
    return value


def header_names(values: Sequence[Any]) -> list[str]:
    """
    Stringify a header row, naming blank cells by their position.
    Repeated names get a numeric suffix (a, a_2, a_3) so every column
    keeps a unique name.
    """
    raw = []
    for index, value in enumerate(values):
        text = "" if value is None else str(value).strip()
        raw.append(text or f"Column{index + 1}")

    names: list[str] = []
    taken = set(raw)
    seen: set[str] = set()
    for name in raw:
        if name in seen:
            suffix = 2
            while f"{name}_{suffix}" in taken:
                suffix += 1
            name = f"{name}_{suffix}"
            taken.add(name)
        seen.add(name)
        names.append(name)
    return names

