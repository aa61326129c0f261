import logging
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy import select, func
from sqlalchemy.dialects.postgresql import insert

from database.models import ChunkEmbedding
from database.repositories.base import BaseRepository
from core.utils import similarity_from_cosine_distance

logger = logging.getLogger(__name__)


class ChunkEmbeddingRepository(BaseRepository):
    model = ChunkEmbedding

    def upsert_batch(self, rows: List[Dict[str, Any]]) -> int:
        """Insert rows keyed by column name, replacing rows with the same (namespace, vector_id)."""
        if not rows:
            return 0

        stmt = insert(ChunkEmbedding.__table__).values(rows)
        stmt = stmt.on_conflict_do_update(
            index_elements=['namespace', 'vector_id'],
            set_={
                'subject_id': stmt.excluded.subject_id,
                'chunk_index': stmt.excluded.chunk_index,
                'section_type': stmt.excluded.section_type,
                'text_preview': stmt.excluded.text_preview,
                'start_offset': stmt.excluded.start_offset,
                'end_offset': stmt.excluded.end_offset,
                'metadata': stmt.excluded['metadata'],
                'embedding': stmt.excluded.embedding,
                'updated_at': func.timezone('UTC', func.now()),
            }
        )
        self.db.execute(stmt)
        return len(rows)

    def find_similar(
        self,
        namespace: str,
        query_embedding: List[float],
        top_k: int = 10,
        section_type: Optional[str] = None
    ) -> List[Tuple[ChunkEmbedding, float]]:
        stmt = select(
            ChunkEmbedding,
            ChunkEmbedding.embedding.cosine_distance(query_embedding).label('distance')
        ).where(ChunkEmbedding.namespace == namespace)

        if section_type:
            stmt = stmt.where(ChunkEmbedding.section_type == section_type)

        stmt = stmt.order_by('distance', ChunkEmbedding.chunk_index).limit(top_k)

        results = self.db.execute(stmt).all()
        return [(row[0], similarity_from_cosine_distance(row._mapping['distance'])) for row in results]
