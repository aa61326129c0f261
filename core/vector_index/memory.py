#!/usr/bin/env python3
"""
In-process vector index backed by numpy arrays.

Used for local runs and tests. Scores use the same cosine normalization
as the pgvector backend so both report comparable values.
"""
import logging
import threading
from typing import Any, Dict, List, Optional, Sequence, Tuple

import numpy as np

from core.utils import cosine_distances, similarity_from_cosine_distance
from core.vector_index.base import VectorIndex, build_metadata, retrieved_from_metadata, vector_id_for
from etl.resume.models import Chunk, RetrievedChunk, SectionType

logger = logging.getLogger(__name__)


class InMemoryVectorIndex(VectorIndex):
    """Dict of namespace -> {vector_id: (vector, metadata)} guarded by a lock."""

    name = "memory"

    def __init__(self, dimensions: int, **kwargs: Any):
        super().__init__(dimensions, **kwargs)
        self._lock = threading.Lock()
        self._namespaces: Dict[str, Dict[str, Tuple[np.ndarray, Dict[str, Any]]]] = {}

    def upsert(self, namespace: str, chunks: Sequence[Chunk], vectors: Sequence[Sequence[float]]) -> int:
        self.validate_upsert(chunks, vectors)
        subject_id = self.subject_for(namespace)
        records = [
            (
                vector_id_for(subject_id, chunk.index),
                np.asarray(vector, dtype=np.float64),
                build_metadata(chunk, subject_id, self.metadata_text_limit),
            )
            for chunk, vector in zip(chunks, vectors)
        ]

        batch_size = self.batch_size
        with self._lock:
            store = self._namespaces.setdefault(namespace, {})
            for start in range(0, len(records), batch_size):
                for vector_id, vector, metadata in records[start:start + batch_size]:
                    store[vector_id] = (vector, metadata)

        logger.info(f"Stored {len(records)} vectors in namespace {namespace}")
        return len(records)

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

        with self._lock:
            records = list(self._namespaces.get(namespace, {}).values())

        if section_type is not None:
            records = [r for r in records if r[1]['section_type'] == SectionType.coerce(section_type).value]
        if not records:
            return []

        matrix = np.vstack([vector for vector, _ in records])
        distances = cosine_distances(query_vector, matrix)
        # Stable sort keeps chunk order for tied scores
        order = np.argsort(distances, kind='stable')[:top_k]

        return [
            retrieved_from_metadata(records[i][1], similarity_from_cosine_distance(distances[i]), namespace)
            for i in order
        ]

    def exists(self, namespace: str) -> bool:
        with self._lock:
            return bool(self._namespaces.get(namespace))

    def delete_namespace(self, namespace: str) -> bool:
        with self._lock:
            removed = self._namespaces.pop(namespace, None)
        if removed is not None:
            logger.info(f"Deleted {len(removed)} vectors from namespace {namespace}")
        return True
