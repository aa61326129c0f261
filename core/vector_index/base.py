#!/usr/bin/env python3
"""
Vector Index - namespace-scoped store for chunk embeddings.

Every subject (candidate) owns one namespace. Queries never cross
namespaces. Read paths degrade to empty results when the backend is
down; writes raise VectorBackendUnavailable so the caller can decide.
"""
import logging
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional, Sequence

from core.exceptions import VectorDimensionMismatch
from etl.resume.models import Chunk, RetrievedChunk, SectionType

logger = logging.getLogger(__name__)

DEFAULT_NAMESPACE_PREFIX = "candidate-"
DEFAULT_MAX_REQUEST_BYTES = 2 * 1024 * 1024
DEFAULT_MAX_BATCH_SIZE = 100
DEFAULT_METADATA_TEXT_LIMIT = 1000
# Rough per-record allowance for ids, preview text and metadata keys
METADATA_OVERHEAD_BYTES = 2048


def namespace_for(subject_id: str, prefix: str = DEFAULT_NAMESPACE_PREFIX) -> str:
    return f"{prefix}{subject_id}"


def vector_id_for(subject_id: str, chunk_index: int) -> str:
    return f"chunk-{subject_id}-{chunk_index}"


def compute_batch_size(
    dimensions: int,
    max_batch_size: int = DEFAULT_MAX_BATCH_SIZE,
    max_request_bytes: int = DEFAULT_MAX_REQUEST_BYTES,
    metadata_overhead_bytes: int = METADATA_OVERHEAD_BYTES
) -> int:
    """Largest batch whose float32 vectors plus metadata fit in one request."""
    per_record = dimensions * 4 + metadata_overhead_bytes
    return max(1, min(max_batch_size, max_request_bytes // per_record))


def build_metadata(
    chunk: Chunk,
    subject_id: str,
    text_limit: int = DEFAULT_METADATA_TEXT_LIMIT
) -> Dict[str, Any]:
    """Metadata stored alongside a vector. The text is a truncated preview."""
    extra = {k: v for k, v in chunk.metadata.items() if k != 'subject_id'}
    return {
        'subject_id': subject_id,
        'chunk_index': chunk.index,
        'section_type': chunk.section_type.value,
        'text': chunk.text[:text_limit],
        'start_offset': chunk.start_offset,
        'end_offset': chunk.end_offset,
        'metadata': extra,
    }


def retrieved_from_metadata(metadata: Dict[str, Any], score: float, namespace: str) -> RetrievedChunk:
    extra = dict(metadata.get('metadata') or {})
    extra.setdefault('subject_id', metadata.get('subject_id'))
    return RetrievedChunk(
        index=int(metadata.get('chunk_index', 0)),
        text=metadata.get('text', ''),
        section_type=SectionType.coerce(metadata.get('section_type')),
        score=float(score),
        namespace=namespace,
        start_offset=int(metadata.get('start_offset', 0)),
        end_offset=int(metadata.get('end_offset', 0)),
        metadata=extra,
    )


class VectorIndex(ABC):
    """Abstract namespace-scoped vector store."""

    name: str = "abstract"

    def __init__(
        self,
        dimensions: int,
        max_batch_size: int = DEFAULT_MAX_BATCH_SIZE,
        max_request_bytes: int = DEFAULT_MAX_REQUEST_BYTES,
        metadata_text_limit: int = DEFAULT_METADATA_TEXT_LIMIT,
        namespace_prefix: str = DEFAULT_NAMESPACE_PREFIX
    ):
        if dimensions <= 0:
            raise ValueError("dimensions must be positive")
        self.dimensions = dimensions
        self.max_batch_size = max_batch_size
        self.max_request_bytes = max_request_bytes
        self.metadata_text_limit = metadata_text_limit
        self.namespace_prefix = namespace_prefix

    @property
    def batch_size(self) -> int:
        return compute_batch_size(self.dimensions, self.max_batch_size, self.max_request_bytes)

    def namespace_for(self, subject_id: str) -> str:
        return namespace_for(subject_id, self.namespace_prefix)

    def subject_for(self, namespace: str) -> str:
        if namespace.startswith(self.namespace_prefix):
            return namespace[len(self.namespace_prefix):]
        return namespace

    def initialize(self) -> None:
        """Prepare backend storage. No-op unless the backend needs a schema."""

    def check_dimensions(self, vector: Sequence[float]) -> None:
        if len(vector) != self.dimensions:
            raise VectorDimensionMismatch(self.dimensions, len(vector))

    def validate_upsert(self, chunks: Sequence[Chunk], vectors: Sequence[Sequence[float]]) -> None:
        """
        Raises:
            ValueError: If chunk and vector counts differ
            VectorDimensionMismatch: If any vector has the wrong dimension
        """
        if len(chunks) != len(vectors):
            raise ValueError(f"Got {len(vectors)} vectors for {len(chunks)} chunks")
        for vector in vectors:
            self.check_dimensions(vector)

    @abstractmethod
    def upsert(self, namespace: str, chunks: Sequence[Chunk], vectors: Sequence[Sequence[float]]) -> int:
        """
        Store chunk vectors, replacing records with the same vector id.

        Returns:
            Number of records written

        Raises:
            VectorDimensionMismatch: If any vector has the wrong dimension
            VectorBackendUnavailable: If the backend cannot be written to
        """
        pass

    @abstractmethod
    def search(
        self,
        namespace: str,
        query_vector: Sequence[float],
        top_k: int = 10,
        section_type: Optional[SectionType] = None
    ) -> List[RetrievedChunk]:
        """
        Nearest chunks in one namespace, sorted by descending score.

        Returns [] for an unknown namespace or when the backend fails.
        """
        pass

    @abstractmethod
    def exists(self, namespace: str) -> bool:
        """True if the namespace holds any vectors. False on backend errors."""
        pass

    @abstractmethod
    def delete_namespace(self, namespace: str) -> bool:
        """Delete every vector in the namespace. False on backend errors."""
        pass
