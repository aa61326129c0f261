"""Vector Index Module - namespace-scoped chunk embedding storage."""
from core.vector_index.base import (
    VectorIndex,
    namespace_for,
    vector_id_for,
    compute_batch_size,
    build_metadata,
)
from core.vector_index.memory import InMemoryVectorIndex
from core.vector_index.factory import build_vector_index

__all__ = [
    'VectorIndex',
    'InMemoryVectorIndex',
    'build_vector_index',
    'namespace_for',
    'vector_id_for',
    'compute_batch_size',
    'build_metadata',
]
