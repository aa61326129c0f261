#!/usr/bin/env python3
"""Select the vector index backend from configuration."""
import logging
from typing import Optional

from core.config_loader import VectorStoreConfig
from core.vector_index.base import VectorIndex

logger = logging.getLogger(__name__)


def build_vector_index(config: VectorStoreConfig, dimensions: int) -> Optional[VectorIndex]:
    """
    Build the configured vector index.

    Returns:
        A VectorIndex, or None when the backend is 'none' (storage is skipped
        and retrieval falls back to raw chunks)
    """
    options = dict(
        max_batch_size=config.max_batch_size,
        max_request_bytes=config.max_request_bytes,
        metadata_text_limit=config.metadata_text_limit,
        namespace_prefix=config.namespace_prefix,
    )

    if config.backend == "none":
        logger.info("Vector store disabled; retrieval will use raw chunks")
        return None

    if config.backend == "memory":
        from core.vector_index.memory import InMemoryVectorIndex
        logger.info(f"Using in-memory vector index (dim={dimensions})")
        return InMemoryVectorIndex(dimensions, **options)

    if config.backend == "pgvector":
        from core.vector_index.pgvector_index import PgVectorIndex
        from database.database import make_session_factory
        logger.info(f"Using pgvector index (dim={dimensions})")
        return PgVectorIndex(make_session_factory(config.database_url), dimensions, **options)

    raise ValueError(f"Unknown vector store backend: {config.backend}")
