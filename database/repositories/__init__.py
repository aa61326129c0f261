from database.repositories.base import BaseRepository
from database.repositories.chunk_embedding import ChunkEmbeddingRepository

__all__ = [
    'BaseRepository',
    'ChunkEmbeddingRepository',
]
