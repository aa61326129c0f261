#!/usr/bin/env python3
"""
Embedding Gateway - fixed-dimension vectors for chunk and query text.

Callers hand over any number of texts; the gateway splits them into
backend-sized batches and stitches the results back together in order.
"""
import logging
import math
from typing import List, Sequence

from core.embeddings.backends import EmbeddingBackend
from core.exceptions import EmbeddingFailure

logger = logging.getLogger(__name__)

DEFAULT_BATCH_SIZE = 100


class EmbeddingGateway:
    """Order-preserving, batch-capped access to an embedding backend."""

    def __init__(
        self,
        backend: EmbeddingBackend,
        dimensions: int,
        batch_size: int = DEFAULT_BATCH_SIZE
    ):
        if dimensions <= 0:
            raise ValueError("dimensions must be positive")
        if batch_size <= 0:
            raise ValueError("batch_size must be positive")
        self.backend = backend
        self._dimensions = dimensions
        self.batch_size = batch_size

    @property
    def dimensions(self) -> int:
        return self._dimensions

    def embed(self, text: str) -> List[float]:
        """Embed a single text."""
        return self.embed_batch([text])[0]

    def embed_query(self, query: str) -> List[float]:
        """Embed retrieval query text."""
        return self.embed(query)

    def embed_batch(self, texts: Sequence[str]) -> List[List[float]]:
        """Embed texts; result[i] belongs to texts[i].

        Raises:
            EmbeddingFailure: When a backend call fails or returns a malformed
                batch. Vectors from earlier batches are attached to the error.
        """
        texts = list(texts)
        if not texts:
            return []

        total_batches = math.ceil(len(texts) / self.batch_size)
        vectors: List[List[float]] = []

        for batch_index, start in enumerate(range(0, len(texts), self.batch_size)):
            batch = texts[start:start + self.batch_size]
            try:
                result = self.backend.embed_texts(batch, self._dimensions)
            except Exception as e:
                logger.error(f"Error embedding batch starting at index {start}: {e}")
                raise EmbeddingFailure(
                    f"Failed to generate embeddings for batch {batch_index + 1}/{total_batches}: {e}",
                    batch_index=batch_index,
                    batch_start=start,
                    completed_vectors=list(vectors)
                ) from e

            self._check_batch(result, batch, batch_index, start, vectors)
            vectors.extend(result)

            logger.info(f"Embedded batch {batch_index + 1}/{total_batches} ({len(batch)} texts)")

        return vectors

    def _check_batch(
        self,
        result: List[List[float]],
        batch: List[str],
        batch_index: int,
        start: int,
        completed: List[List[float]]
    ) -> None:
        if len(result) != len(batch):
            raise EmbeddingFailure(
                f"Embedding backend returned {len(result)} vectors for {len(batch)} texts",
                batch_index=batch_index,
                batch_start=start,
                completed_vectors=list(completed)
            )
        for vector in result:
            if len(vector) != self._dimensions:
                raise EmbeddingFailure(
                    f"Embedding backend returned dimension {len(vector)}, expected {self._dimensions}",
                    batch_index=batch_index,
                    batch_start=start,
                    completed_vectors=list(completed)
                )
