import os
import uuid

from sqlalchemy import Column, Text, TIMESTAMP, Integer, Index, UniqueConstraint
from sqlalchemy.sql import text as sql_text
from sqlalchemy.dialects.postgresql import UUID, JSONB
from pgvector.sqlalchemy import Vector

from .base import Base

# Column dimension is fixed at table creation; keep it equal to embedding.dimensions
EMBEDDING_DIMENSIONS = int(os.environ.get("EMBEDDING_DIMENSIONS", "512"))


class ChunkEmbedding(Base):
    """
    One embedded resume chunk.

    Rows are scoped by namespace (one per subject) and keyed by vector_id
    (chunk-{subject_id}-{index}), so re-indexing a document replaces rows.
    """
    __tablename__ = 'chunk_embedding'

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    namespace = Column(Text, nullable=False)
    vector_id = Column(Text, nullable=False)
    subject_id = Column(Text, nullable=False)

    chunk_index = Column(Integer, nullable=False)
    section_type = Column(Text, nullable=False)  # summary|experience|education|skills|certifications|other
    text_preview = Column(Text, nullable=False)  # truncated chunk text
    start_offset = Column(Integer, nullable=False)
    end_offset = Column(Integer, nullable=False)
    chunk_metadata = Column('metadata', JSONB, nullable=False, default=dict)

    embedding = Column(Vector(EMBEDDING_DIMENSIONS), nullable=False)

    created_at = Column(TIMESTAMP(timezone=True), nullable=False, server_default=sql_text("timezone('UTC', now())"))
    updated_at = Column(TIMESTAMP(timezone=True), nullable=False, server_default=sql_text("timezone('UTC', now())"))

    __table_args__ = (
        UniqueConstraint('namespace', 'vector_id', name='uq_chunk_embedding_vector'),
        Index('idx_chunk_embedding_namespace', 'namespace', 'section_type'),
        Index('idx_chunk_embedding_hnsw', 'embedding', postgresql_using='hnsw',
              postgresql_with={'m': 16, 'ef_construction': 64},
              postgresql_ops={'embedding': 'vector_cosine_ops'}),
    )
