"""
Shared fixtures: a temporary SQLite DB per test and an in-memory object store.
"""
from __future__ import annotations

import pytest

from royale.persistence.db import get_connection, init_db, set_db_path
from royale.tests.fakes import FakeStorage


@pytest.fixture
def db_path(tmp_path):
    path = tmp_path / "royale_test.db"
    set_db_path(path)
    init_db(db_path=path)
    return path


@pytest.fixture
def db_conn(db_path):
    conn = get_connection()
    try:
        yield conn
    finally:
        conn.close()


@pytest.fixture
def storage():
    return FakeStorage()
