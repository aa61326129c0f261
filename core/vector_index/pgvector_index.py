#!/usr/bin/env python3
"""
PostgreSQL + pgvector backend for the vector index.

Each operation runs in its own unit of work. Database errors on read
paths are logged and turned into empty results; write errors become
VectorBackendUnavailable.
"""
import logging
from typing import Any, Dict, List, Optional, Sequence

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import sessionmaker

from core.exceptions import VectorBackendUnavailable
from core.vector_index.base import VectorIndex, build_metadata, retrieved_from_metadata, vector_id_for
from database.database import init_db
from database.uow import chunk_uow
from etl.resume.models import Chunk, RetrievedChunk, SectionType

logger = logging.getLogger(__name__)


class PgVectorIndex(VectorIndex):
    """Vector index stored in the chunk_embedding table."""

    name = "pgvector"

    def __init__(self, session_factory: sessionmaker, dimensions: int, **kwargs: Any):
        super().__init__(dimensions, **kwargs)
        self.session_factory = session_factory

    def initialize(self) -> None:
        try:
            init_db(self.session_factory.kw["bind"])
        except SQLAlchemyError as e:
            logger.error(f"Failed to initialize pgvector schema: {e}")
            raise VectorBackendUnavailable(f"pgvector schema initialization failed: {e}") from e

    def _row(self, namespace: str, subject_id: str, chunk: Chunk, vector: Sequence[float]) -> Dict[str, Any]:
        metadata = build_metadata(chunk, subject_id, self.metadata_text_limit)
        return {
            'namespace': namespace,
            'vector_id': vector_id_for(subject_id, chunk.index),
            'subject_id': subject_id,
            'chunk_index': chunk.index,
            'section_type': metadata['section_type'],
            'text_preview': metadata['text'],
            'start_offset': chunk.start_offset,
            'end_offset': chunk.end_offset,
            'metadata': metadata['metadata'],
            'embedding': [float(x) for x in vector],
        }

    def upsert(self, namespace: str, chunks: Sequence[Chunk], vectors: Sequence[Sequence[float]]) -> int:
        self.validate_upsert(chunks, vectors)
        subject_id = self.subject_for(namespace)
        rows = [self._row(namespace, subject_id, chunk, vector) for chunk, vector in zip(chunks, vectors)]

        batch_size = self.batch_size
        written = 0
        try:
            with chunk_uow(self.session_factory) as repo:
                for start in range(0, len(rows), batch_size):
                    written += repo.upsert_batch(rows[start:start + batch_size])
        except SQLAlchemyError as e:
            logger.error(f"Failed to store vectors in namespace {namespace}: {e}")
            raise VectorBackendUnavailable(f"pgvector upsert failed for namespace {namespace}: {e}") from e

        logger.info(f"Stored {written} vectors in namespace {namespace} (batch size {batch_size})")
        return written

    def search(
        self,
        namespace: str,
        query_vector: Sequence[float],
        top_k: int = 10,
        section_type: Optional[SectionType] = None
    ) -> List[RetrievedChunk]:
        if top_k <= 0:
            return []
        if len(query_vector) != self.dimensions:
            logger.error(
                f"Query vector dimension {len(query_vector)} does not match index dimension {self.dimensions}"
            )
            return []

        section = SectionType.coerce(section_type).value if section_type is not None else None
        try:
            with chunk_uow(self.session_factory) as repo:
                matches = repo.find_similar(namespace, [float(x) for x in query_vector], top_k, section)
                results = [
                    retrieved_from_metadata(
                        {
                            'subject_id': row.subject_id,
                            'chunk_index': row.chunk_index,
                            'section_type': row.section_type,
                            'text': row.text_preview,
                            'start_offset': row.start_offset,
                            'end_offset': row.end_offset,
                            'metadata': row.chunk_metadata,
                        },
                        score,
                        namespace
                    )
                    for row, score in matches
                ]
        except SQLAlchemyError as e:
            logger.error(f"Vector search failed for namespace {namespace}: {e}")
            return []

        results.sort(key=lambda r: r.score, reverse=True)
        return results

    def exists(self, namespace: str) -> bool:
        try:
            with chunk_uow(self.session_factory) as repo:
                return repo.count(namespace) > 0
        except SQLAlchemyError as e:
            logger.error(f"Failed to check namespace {namespace}: {e}")
            return False

    def delete_namespace(self, namespace: str) -> bool:
        try:
            with chunk_uow(self.session_factory) as repo:
                repo.delete_namespace(namespace)
            return True
        except SQLAlchemyError as e:
            logger.error(f"Failed to delete namespace {namespace}: {e}")
            return False
