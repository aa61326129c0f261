"""Embeddings Module - embedding gateway and backends."""
from core.embeddings.backends import EmbeddingBackend, OpenAIEmbeddingBackend, HashingEmbeddingBackend
from core.embeddings.gateway import EmbeddingGateway

__all__ = ['EmbeddingBackend', 'OpenAIEmbeddingBackend', 'HashingEmbeddingBackend', 'EmbeddingGateway']
