# tests/conftest.py
"""Shared test fixtures and helpers.

Database fixtures build a fresh in-memory SQLite database per test with a
small fixed schema:

- articles: auto-increment id, NOT NULL columns with and without declared
  defaults, nullable text/datetime columns
- categories: joined against articles in query-assembly tests
- locations: integer key supplied by callers, used by the sync scenarios
- tag_maps: no primary key, used by flush/sync relation tests
- counters: nullable columns with literal and expression defaults

Hypothesis Configuration:
- "ci" profile: Fast tests for CI (100 examples) - default
- "nightly" profile: Thorough tests (1000 examples)
- "debug" profile: Minimal tests with verbose output (10 examples)

Set profile via environment variable:
    HYPOTHESIS_PROFILE=nightly pytest tests/property/
"""

from __future__ import annotations

import os
from collections.abc import Callable, Iterator
from pathlib import Path
from typing import Any

import pytest
from hypothesis import Phase, Verbosity, settings

from tablemapper.core.database import MapperDatabase
from tablemapper.core.mapper import DataMapper

# =============================================================================
# Hypothesis Configuration
# =============================================================================

# CI profile: Fast tests for continuous integration
settings.register_profile(
    "ci",
    max_examples=100,
    phases=[Phase.explicit, Phase.reuse, Phase.generate, Phase.shrink],
    deadline=None,  # Disable deadline for CI (timing varies)
)

# Nightly profile: Thorough testing for scheduled runs
settings.register_profile(
    "nightly",
    max_examples=1000,
    phases=[Phase.explicit, Phase.reuse, Phase.generate, Phase.shrink],
    deadline=None,
)

# Debug profile: Minimal examples with verbose output for debugging
settings.register_profile(
    "debug",
    max_examples=10,
    verbosity=Verbosity.verbose,
    phases=[Phase.explicit, Phase.reuse, Phase.generate, Phase.shrink],
    deadline=None,
)

# Load profile from environment, default to "ci"
settings.load_profile(os.getenv("HYPOTHESIS_PROFILE", "ci"))


# =============================================================================
# Schema
# =============================================================================

SCHEMA = (
    """
    CREATE TABLE articles (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        title VARCHAR(255) NOT NULL,
        catid INTEGER NOT NULL,
        status VARCHAR(20) NOT NULL DEFAULT 'new',
        hits INTEGER NOT NULL DEFAULT 0,
        note TEXT,
        params TEXT,
        created DATETIME
    )
    """,
    """
    CREATE TABLE categories (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        title VARCHAR(255) NOT NULL
    )
    """,
    """
    CREATE TABLE locations (
        id INTEGER NOT NULL PRIMARY KEY,
        cat VARCHAR(10) NOT NULL,
        title VARCHAR(255)
    )
    """,
    """
    CREATE TABLE tag_maps (
        article_id INTEGER NOT NULL,
        tag_id INTEGER NOT NULL,
        ordering INTEGER NOT NULL DEFAULT 0
    )
    """,
    """
    CREATE TABLE counters (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        hits INTEGER DEFAULT 7,
        created TEXT DEFAULT CURRENT_TIMESTAMP,
        label TEXT
    )
    """,
)


def create_schema(db: MapperDatabase) -> None:
    with db.engine.begin() as conn:
        for ddl in SCHEMA:
            conn.exec_driver_sql(ddl)


# =============================================================================
# Fixtures
# =============================================================================


@pytest.fixture
def db() -> Iterator[MapperDatabase]:
    """Fresh in-memory database with the test schema."""
    database = MapperDatabase.in_memory()
    create_schema(database)
    yield database
    database.close()


@pytest.fixture
def file_db(tmp_path: Path) -> Iterator[MapperDatabase]:
    """File-backed database with the test schema, for connection-level behaviour."""
    database = MapperDatabase(f"sqlite:///{tmp_path / 'app.db'}")
    create_schema(database)
    yield database
    database.close()


@pytest.fixture
def fetch_rows(db: MapperDatabase) -> Callable[[str], list[dict[str, Any]]]:
    """Read rows with plain SQL, bypassing the mapper under test."""

    def _fetch(sql: str) -> list[dict[str, Any]]:
        with db.engine.connect() as conn:
            return [dict(row._mapping) for row in conn.exec_driver_sql(sql)]

    return _fetch


@pytest.fixture
def articles(db: MapperDatabase) -> DataMapper:
    return DataMapper("articles", db=db)


@pytest.fixture
def categories(db: MapperDatabase) -> DataMapper:
    return DataMapper("categories", db=db)


@pytest.fixture
def locations(db: MapperDatabase) -> DataMapper:
    return DataMapper("locations", db=db)


@pytest.fixture
def tag_maps(db: MapperDatabase) -> DataMapper:
    return DataMapper("tag_maps", ("article_id", "tag_id"), db=db)


@pytest.fixture
def counters(db: MapperDatabase) -> DataMapper:
    return DataMapper("counters", db=db)
