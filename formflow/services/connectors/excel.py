import asyncio
import csv
import io
import logging
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Any, AsyncIterator, Iterator, Optional, Sequence
from urllib.parse import urlparse

import httpx
from openpyxl import load_workbook

from formflow.core.exceptions import ConfigurationError, IntrospectionError, QueryError
from formflow.services.connectors.base import BaseConnector
from formflow.services.connectors.config import ExcelConnectionConfig
from formflow.services.connectors.normalize import (
    header_names,
    rows_from_sequences,
    spreadsheet_value_type,
)
from formflow.services.connectors.resolver import resolve_table_name
from formflow.services.connectors.results import FieldDescriptor, QueryResult, SchemaSnapshot

logger = logging.getLogger(__name__)

CSV_SUFFIXES = {".csv", ".txt"}


def _is_blank(value: Any) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


def _trim_header(row: Optional[Sequence[Any]]) -> list[Any]:
    """Drop trailing blank cells that read-only sheets pad rows with."""
    cells = list(row or [])
    while cells and _is_blank(cells[-1]):
        cells.pop()
    return cells


class SheetSource:
    """An opened spreadsheet: named sheets yielding rows of cell values."""

    def __init__(self, sheet_names: list[str]):
        self.sheet_names = sheet_names

    def rows(self, sheet: str) -> Iterator[Sequence[Any]]:
        raise NotImplementedError

    def close(self) -> None:
        pass


class WorkbookSource(SheetSource):
    def __init__(self, workbook):
        super().__init__(list(workbook.sheetnames))
        self.workbook = workbook

    def rows(self, sheet: str) -> Iterator[Sequence[Any]]:
        return self.workbook[sheet].iter_rows(values_only=True)

    def close(self) -> None:
        self.workbook.close()


class CsvSource(SheetSource):
    def __init__(self, name: str, text: str):
        super().__init__([name])
        self._rows = list(csv.reader(io.StringIO(text)))

    def rows(self, sheet: str) -> Iterator[Sequence[Any]]:
        return iter(self._rows)


class ExcelConnector(BaseConnector):
    """
    Connector for spreadsheet files (.xlsx via openpyxl, .csv) given as a
    local path or an http(s) URL. Each sheet is one implicit table: the
    first row holds the headers, the rest are data rows.

    Queries are a comma-separated list of header names; blank or "*"
    returns every column.
    """

    engine_name = "Excel"
    config_model = ExcelConnectionConfig

    def __init__(self, config: Any = None, *args, transport: Optional[httpx.AsyncBaseTransport] = None, **kwargs):
        super().__init__(config, *args, **kwargs)
        self.transport = transport

    @property
    def location(self) -> str:
        if not self.config.file_url:
            raise ConfigurationError("Excel file URL is required")
        return self.config.file_url

    def _is_remote(self) -> bool:
        return urlparse(self.location).scheme in ("http", "https")

    def _suffix(self) -> str:
        path = urlparse(self.location).path if self._is_remote() else self.location
        return Path(path).suffix.lower()

    async def _download(self) -> bytes:
        headers = {}
        if self.config.access_token:
            headers["Authorization"] = f"Bearer {self.config.access_token}"
        timeout = httpx.Timeout(
            self.settings.QUERY_TIMEOUT_SECONDS, connect=self.settings.CONNECT_TIMEOUT_SECONDS,
        )
        async with httpx.AsyncClient(timeout=timeout, transport=self.transport, follow_redirects=True) as client:
            resp = await self.connect_with_timeout(client.get(self.location, headers=headers), self.location)
            resp.raise_for_status()
            return resp.content

    async def _open(self) -> SheetSource:
        location = self.location
        if self._is_remote():
            payload: Any = io.BytesIO(await self._download())
        else:
            local = Path(location[len("file://"):] if location.startswith("file://") else location)
            if not local.exists():
                raise FileNotFoundError(f"Spreadsheet file does not exist: {local}")
            payload = local

        if self._suffix() in CSV_SUFFIXES:
            data = payload.getvalue() if isinstance(payload, io.BytesIO) else payload.read_bytes()
            name = Path(urlparse(location).path).stem or "Sheet1"
            return CsvSource(name, data.decode("utf-8-sig"))
        workbook = await asyncio.to_thread(load_workbook, payload, read_only=True, data_only=True)
        return WorkbookSource(workbook)

    @asynccontextmanager
    async def session(self) -> AsyncIterator[SheetSource]:
        # Connect timeout covers the download only (see _download)
        source = await self._open()
        try:
            yield source
        finally:
            source.close()

    def _sheet(self, source: SheetSource) -> str:
        sheet = resolve_table_name(self.config.sheet_name, source.sheet_names, "sheet")
        if sheet not in source.sheet_names:
            raise ConfigurationError(f"Sheet '{sheet}' not found in {self.location}")
        return sheet

    async def server_info(self, source: SheetSource) -> dict:
        return {"fileUrl": self.location, "sheets": source.sheet_names}

    async def introspect(self, source: SheetSource) -> SchemaSnapshot:
        sheet = self._sheet(source)
        rows = source.rows(sheet)
        header = _trim_header(next(rows, None))
        if not header:
            raise IntrospectionError(f"Spreadsheet '{sheet}' is empty")
        sample = list(next(rows, None) or [])

        fields = []
        for index, name in enumerate(header_names(header)):
            value = sample[index] if index < len(sample) else None
            fields.append(FieldDescriptor(name=name, type=spreadsheet_value_type(value), selected=True))
        # Single implicit table: listed under fields only
        return self.single_table(sheet, fields, listed=False)

    def prepare_query(self, query: str) -> Optional[list[str]]:
        text = (query or "").strip()
        if not text or text == "*":
            return None
        columns = [part.strip() for part in text.split(",") if part.strip()]
        if not columns:
            raise QueryError("Spreadsheet query must list column names separated by commas")
        return columns

    async def run_query(self, source: SheetSource, columns: Optional[list[str]]) -> QueryResult:
        sheet = self._sheet(source)
        rows = source.rows(sheet)
        header = header_names(_trim_header(next(rows, None)))
        if not header:
            return QueryResult(rows=[], fields=[])

        wanted = columns or header
        missing = [name for name in wanted if name not in header]
        if missing:
            raise QueryError(f"Unknown column(s) in sheet '{sheet}': {', '.join(missing)}")
        positions = [header.index(name) for name in wanted]

        limit = self.settings.QUERY_ROW_LIMIT
        values = []
        for row in rows:
            if len(values) >= limit:
                break
            cells = list(row)
            if all(_is_blank(cell) for cell in cells):
                continue
            values.append([cells[i] if i < len(cells) else None for i in positions])

        return QueryResult(
            rows=rows_from_sequences(wanted, values),
            fields=self.columns_from_names(wanted),
        )
