from .base import Base
from .chunk import ChunkEmbedding, EMBEDDING_DIMENSIONS

__all__ = [
    'Base',
    'ChunkEmbedding',
    'EMBEDDING_DIMENSIONS',
]
