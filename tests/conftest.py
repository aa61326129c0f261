"""
Shared fixtures. Markers are declared in pyproject.toml; database helpers
live in tests/__init__.py.
"""

import pytest


@pytest.fixture(scope="session")
def test_database():
    """
    URL of a pgvector database with the chunk_embedding table created.

    Tests that request it are skipped when no database is reachable.
    """
    from tests import TEST_DB_URL, check_db_available

    if not check_db_available():
        pytest.skip("Test database not available (set TEST_DATABASE_URL)")

    from database.database import init_db, make_engine

    engine = make_engine(TEST_DB_URL)
    init_db(engine)
    yield TEST_DB_URL
    engine.dispose()
