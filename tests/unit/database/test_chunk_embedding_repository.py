#!/usr/bin/env python3
"""
Unit tests for ChunkEmbeddingRepository.

Statement shape is checked against the PostgreSQL dialect without a
database; round trips are marked with @pytest.mark.db.
"""

import pytest
from unittest.mock import MagicMock
from sqlalchemy import create_engine
from sqlalchemy.dialects import postgresql
from sqlalchemy.orm import sessionmaker

from database.models import EMBEDDING_DIMENSIONS
from database.repositories import ChunkEmbeddingRepository


def make_row(index, vector, namespace="candidate-r1", section_type="skills"):
    return {
        'namespace': namespace,
        'vector_id': f"chunk-r1-{index}",
        'subject_id': "r1",
        'chunk_index': index,
        'section_type': section_type,
        'text_preview': f"chunk {index}",
        'start_offset': index * 10,
        'end_offset': index * 10 + 7,
        'metadata': {'employer': 'Acme'},
        'embedding': vector,
    }


def unit_vector(position):
    vector = [0.0] * EMBEDDING_DIMENSIONS
    vector[position] = 1.0
    return vector


def compiled(statement):
    return str(statement.compile(dialect=postgresql.dialect()))


class TestStatements:

    def test_upsert_conflicts_on_vector_id(self):
        repo = ChunkEmbeddingRepository(MagicMock())

        assert repo.upsert_batch([make_row(0, unit_vector(0))]) == 1

        sql = compiled(repo.db.execute.call_args.args[0])
        assert "ON CONFLICT (namespace, vector_id) DO UPDATE" in sql
        assert "metadata = excluded.metadata" in sql

    def test_upsert_empty_is_noop(self):
        repo = ChunkEmbeddingRepository(MagicMock())

        assert repo.upsert_batch([]) == 0
        repo.db.execute.assert_not_called()


@pytest.fixture(scope="function")
def db_session(test_database):
    """Create a fresh database session for each test using test database."""
    engine = create_engine(test_database)
    connection = engine.connect()
    transaction = connection.begin()
    session = sessionmaker(bind=connection)()

    yield session

    session.close()
    if transaction.is_active:
        transaction.rollback()
    connection.close()


@pytest.mark.db
class TestChunkEmbeddingRepository:

    def test_upsert_and_find_similar(self, db_session):
        repo = ChunkEmbeddingRepository(db_session)
        repo.upsert_batch([make_row(0, unit_vector(0)), make_row(1, unit_vector(1), section_type="experience")])

        results = repo.find_similar("candidate-r1", unit_vector(1), top_k=2)

        assert [row.chunk_index for row, _ in results] == [1, 0]
        assert results[0][1] == pytest.approx(1.0)
        assert results[1][1] == pytest.approx(0.5)
        assert results[0][0].chunk_metadata == {'employer': 'Acme'}

    def test_upsert_replaces_row(self, db_session):
        repo = ChunkEmbeddingRepository(db_session)
        repo.upsert_batch([make_row(0, unit_vector(0))])

        updated = make_row(0, unit_vector(2))
        updated['text_preview'] = "rewritten"
        repo.upsert_batch([updated])

        assert repo.count("candidate-r1") == 1
        row, score = repo.find_similar("candidate-r1", unit_vector(2), top_k=1)[0]
        assert row.text_preview == "rewritten"
        assert score == pytest.approx(1.0)

    def test_section_filter(self, db_session):
        repo = ChunkEmbeddingRepository(db_session)
        repo.upsert_batch([make_row(0, unit_vector(0)), make_row(1, unit_vector(1), section_type="experience")])

        results = repo.find_similar("candidate-r1", unit_vector(0), section_type="experience")

        assert [row.section_type for row, _ in results] == ["experience"]

    def test_delete_namespace(self, db_session):
        repo = ChunkEmbeddingRepository(db_session)
        repo.upsert_batch([make_row(0, unit_vector(0)), make_row(0, unit_vector(0), namespace="candidate-r2")])

        assert repo.delete_namespace("candidate-r1") == 1
        assert repo.count("candidate-r1") == 0
        assert repo.count("candidate-r2") == 1
