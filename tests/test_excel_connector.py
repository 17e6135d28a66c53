"""Tests for the spreadsheet connector."""

import asyncio

import httpx
from openpyxl import Workbook

from formflow.core.exceptions import IntrospectionError, QueryError
from formflow.services.connectors import ExcelConnector


def run(coro):
    return asyncio.run(coro)


class TestExcelConnectionTest:
    """Test introspection of workbooks and CSV files."""

    def test_headers_and_inferred_types(self, xlsx_file, test_settings):
        result = run(ExcelConnector({"fileUrl": str(xlsx_file)}, settings=test_settings).test_connection())

        assert result.success is True
        assert result.message == "Excel connection successful"
        assert result.tables == []
        assert [f.to_dict() for f in result.fields["Sheet1"]] == [
            {"name": "Col1", "type": "text", "selected": True},
            {"name": "Col2", "type": "number", "selected": True},
        ]
        assert result.info["sheets"] == ["Sheet1"]

    def test_empty_workbook_fails(self, empty_xlsx_file, test_settings):
        result = run(ExcelConnector({"fileUrl": str(empty_xlsx_file)}, settings=test_settings).test_connection())

        assert result.success is False
        assert result.message.startswith("Excel schema introspection failed:")
        assert isinstance(result.error, IntrospectionError)

    def test_missing_file_fails(self, tmp_path, test_settings):
        result = run(ExcelConnector({"fileUrl": str(tmp_path / "gone.xlsx")}, settings=test_settings).test_connection())

        assert result.success is False
        assert result.message.startswith("Excel connection failed:")

    def test_missing_url_fails(self, test_settings):
        result = run(ExcelConnector({}, settings=test_settings).test_connection())
        assert result.success is False
        assert "Excel file URL is required" in result.message

    def test_unknown_sheet_fails(self, xlsx_file, test_settings):
        config = {"fileUrl": str(xlsx_file), "sheetName": "Missing"}
        result = run(ExcelConnector(config, settings=test_settings).test_connection())
        assert result.success is False
        assert "Missing" in result.message

    def test_csv_file(self, csv_file, test_settings):
        result = run(ExcelConnector({"filePath": str(csv_file)}, settings=test_settings).test_connection())

        assert result.success is True
        assert [(f.name, f.type) for f in result.fields["people"]] == [
            ("id", "number"),
            ("name", "text"),
            ("joined", "datetime"),
        ]

    def test_remote_workbook_via_http(self, xlsx_file, test_settings):
        payload = xlsx_file.read_bytes()
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["auth"] = request.headers.get("Authorization")
            return httpx.Response(200, content=payload)

        connector = ExcelConnector(
            {"fileUrl": "https://files.example.com/report.xlsx", "accessToken": "tok"},
            settings=test_settings,
            transport=httpx.MockTransport(handler),
        )
        result = run(connector.test_connection())

        assert result.success is True
        assert seen["auth"] == "Bearer tok"
        assert [f.name for f in result.fields["Sheet1"]] == ["Col1", "Col2"]

    def test_remote_not_found(self, test_settings):
        connector = ExcelConnector(
            {"fileUrl": "https://files.example.com/missing.xlsx"},
            settings=test_settings,
            transport=httpx.MockTransport(lambda request: httpx.Response(404)),
        )
        result = run(connector.test_connection())
        assert result.success is False
        assert result.message.startswith("Excel connection failed:")


class TestExcelQuery:
    """Test column-list queries."""

    def test_all_columns(self, xlsx_file, test_settings):
        result = run(ExcelConnector({"fileUrl": str(xlsx_file)}, settings=test_settings).execute_query(""))

        assert result.error is None
        assert result.rows == [{"Col1": "abc", "Col2": 42}, {"Col1": "def", "Col2": 7}]
        assert [c.name for c in result.fields] == ["Col1", "Col2"]

    def test_selected_columns(self, xlsx_file, test_settings):
        result = run(ExcelConnector({"fileUrl": str(xlsx_file)}, settings=test_settings).execute_query("Col2"))
        assert result.rows == [{"Col2": 42}, {"Col2": 7}]

    def test_unknown_column(self, xlsx_file, test_settings):
        result = run(ExcelConnector({"fileUrl": str(xlsx_file)}, settings=test_settings).execute_query("Col1, Nope"))

        assert result.rows == []
        assert isinstance(result.error, QueryError)
        assert "Nope" in str(result.error)

    def test_blank_rows_skipped(self, tmp_path, test_settings):
        path = tmp_path / "gaps.xlsx"
        wb = Workbook()
        ws = wb.active
        ws.append(["name"])
        ws.append(["a"])
        ws.append([None])
        ws.append(["b"])
        wb.save(path)

        result = run(ExcelConnector({"fileUrl": str(path)}, settings=test_settings).execute_query("*"))
        assert result.rows == [{"name": "a"}, {"name": "b"}]


class TestDuplicateHeaders:
    """Test that repeated header cells keep distinct columns."""

    def test_fields_and_rows_keep_both_columns(self, tmp_path, test_settings):
        path = tmp_path / "dupes.xlsx"
        wb = Workbook()
        ws = wb.active
        ws.title = "Sheet1"
        ws.append(["a", "a"])
        ws.append([1, "x"])
        wb.save(path)
        connector = ExcelConnector({"fileUrl": str(path)}, settings=test_settings)

        schema = run(connector.test_connection())
        assert [f.name for f in schema.fields["Sheet1"]] == ["a", "a_2"]

        result = run(connector.execute_query(""))
        assert result.rows == [{"a": 1, "a_2": "x"}]
        assert [c.name for c in result.fields] == ["a", "a_2"]


class TestDownloadTimeout:
    """Test the connect timeout on remote spreadsheets."""

    def test_slow_download_times_out(self, test_settings):
        async def slow(request: httpx.Request) -> httpx.Response:
            await asyncio.sleep(2)
            return httpx.Response(200, content=b"")

        fast = test_settings.model_copy(update={"CONNECT_TIMEOUT_SECONDS": 0.05})
        connector = ExcelConnector(
            {"fileUrl": "https://files.example.com/slow.xlsx"},
            settings=fast,
            transport=httpx.MockTransport(slow),
        )
        result = run(connector.test_connection())

        assert result.success is False
        assert "Timed out" in result.message
