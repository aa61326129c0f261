#!/usr/bin/env python3
"""
Error taxonomy for the extraction and retrieval pipeline.

Fatal errors (ExtractionFailure, EmbeddingFailure, ChunkingFailure) bubble to
the caller. VectorBackendUnavailable and PromptNotFound are recovered inside
the pipeline and only show up in logs and pipeline stages.
"""
from typing import List, Optional


class GroundingError(Exception):
    """Base exception for pipeline errors."""
    pass


class ExtractionFailure(GroundingError):
    """Raised when no repair strategy produced a decodable record."""

    def __init__(self, message: str, raw_preview: str = ""):
        super().__init__(message)
        self.raw_preview = raw_preview


class EmbeddingFailure(GroundingError):
    """Raised when an embedding backend call fails.

    Vectors finished by earlier batches of the same call are kept on the
    exception so the caller can decide whether to continue.
    """

    def __init__(
        self,
        message: str,
        batch_index: int = 0,
        batch_start: int = 0,
        completed_vectors: Optional[List[List[float]]] = None
    ):
        super().__init__(message)
        self.batch_index = batch_index
        self.batch_start = batch_start
        self.completed_vectors = completed_vectors or []


class VectorBackendUnavailable(GroundingError):
    """Raised when the vector backend cannot be reached during a write."""
    pass


class VectorDimensionMismatch(GroundingError, ValueError):
    """Raised when a vector's dimension differs from the index dimension."""

    def __init__(self, expected: int, actual: int):
        super().__init__(f"Vector dimension {actual} does not match index dimension {expected}")
        self.expected = expected
        self.actual = actual


class ChunkingFailure(GroundingError):
    """Raised when a document cannot be segmented (empty or unreadable)."""
    pass


class PromptNotFound(GroundingError):
    """Raised when a prompt template is missing for the configured version."""
    pass


class CitationMissing(UserWarning):
    """Warning category for claims without a chunk citation. Never raised."""
    pass
