"""Shared fixtures: a file backed SQLite database holding a small view."""

from __future__ import annotations

import logging

import pytest
from sqlalchemy import create_engine, text

PEOPLE = [(i, f"person {i}", i * 1.5 if i % 3 else None) for i in range(1, 11)]


@pytest.fixture()
def logger() -> logging.Logger:
    return logging.getLogger("pgview2csv.tests")


@pytest.fixture()
def sqlite_url(tmp_path) -> str:
    """URL of a database with a ten row table ``people`` and the views ``v_people``, ``v_scenario``, ``v_empty`` and ``v_accents``."""
    url = f"sqlite:///{tmp_path / 'views.db'}"
    engine = create_engine(url)
    with engine.begin() as conn:
        conn.execute(text("CREATE TABLE people (id INTEGER, name TEXT, score REAL)"))
        conn.execute(
            text("INSERT INTO people (id, name, score) VALUES (:id, :name, :score)"),
            [{"id": i, "name": name, "score": score} for i, name, score in PEOPLE],
        )
        conn.execute(text("CREATE VIEW v_people AS SELECT id, name, score FROM people ORDER BY id"))
        conn.execute(
            text(
                "CREATE VIEW v_scenario AS "
                "SELECT 1 AS id, 'a' AS name UNION ALL SELECT 2, 'b,c' ORDER BY id"
            )
        )
        conn.execute(text("CREATE VIEW v_empty AS SELECT id, name FROM people WHERE id < 0"))
        conn.execute(text("CREATE VIEW v_accents AS SELECT 1 AS id, 'café' AS name"))
    engine.dispose()
    return url


@pytest.fixture(autouse=True)
def _no_pg_environment(monkeypatch) -> None:
    for key in ("PGHOST", "PGUSER", "PGPORT", "PGDATABASE", "PGPASSWORD"):
        monkeypatch.delenv(key, raising=False)
