"""Pytest configuration and fixtures."""

import os
import sqlite3

# Set test environment variables BEFORE importing app modules
os.environ.setdefault("ENVIRONMENT", "testing")
os.environ.setdefault("CONNECT_TIMEOUT_SECONDS", "2")
os.environ.setdefault("QUERY_TIMEOUT_SECONDS", "10")

# Disable rate limiting for tests by monkey-patching BEFORE imports
from slowapi import Limiter
from slowapi.util import get_remote_address

_disabled_limiter = Limiter(key_func=get_remote_address, enabled=False)

import formflow.core.rate_limit as rate_limit_module
rate_limit_module.limiter = _disabled_limiter

import pytest
from fastapi.testclient import TestClient
from openpyxl import Workbook

from formflow.core.config import Settings
from main import app


@pytest.fixture
def client():
    """Create a test client."""
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def test_settings():
    """Settings with short timeouts and small limits."""
    return Settings(
        CONNECT_TIMEOUT_SECONDS=1.0,
        QUERY_TIMEOUT_SECONDS=5.0,
        QUERY_ROW_LIMIT=50,
        INTROSPECTION_COLUMN_LIMIT=100,
    )


@pytest.fixture
def sqlite_db(tmp_path):
    """SQLite file with a users table (id, name) and an orders table."""
    path = tmp_path / "demo.db"
    conn = sqlite3.connect(path)
    conn.executescript(
        """
        CREATE TABLE users (id INTEGER PRIMARY KEY, name TEXT, zzz_unrelated TEXT);
        CREATE TABLE orders (id INTEGER PRIMARY KEY, user_id INTEGER, total REAL);
        INSERT INTO users (id, name, zzz_unrelated) VALUES (1, 'Ada', 'x'), (2, 'Grace', 'y');
        INSERT INTO orders (id, user_id, total) VALUES (10, 1, 9.5);
        """
    )
    conn.commit()
    conn.close()
    return path


@pytest.fixture
def xlsx_file(tmp_path):
    """Workbook whose first sheet has headers Col1, Col2 and two data rows."""
    path = tmp_path / "sheet.xlsx"
    wb = Workbook()
    ws = wb.active
    ws.title = "Sheet1"
    ws.append(["Col1", "Col2"])
    ws.append(["abc", 42])
    ws.append(["def", 7])
    wb.save(path)
    return path


@pytest.fixture
def empty_xlsx_file(tmp_path):
    """Workbook with no cells at all."""
    path = tmp_path / "empty.xlsx"
    wb = Workbook()
    wb.save(path)
    return path


@pytest.fixture
def csv_file(tmp_path):
    """CSV with a header row and three data rows."""
    path = tmp_path / "people.csv"
    path.write_text("id,name,joined\n1,Ada,2024-01-05\n2,Grace,2024-02-10\n3,Linus,2024-03-15\n")
    return path
