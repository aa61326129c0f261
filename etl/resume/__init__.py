#!/usr/bin/env python3
"""
Resume Module - text loading and chunking for retrieval.

Handles:
- Text extraction from resume files
- Section-typed chunking with source offsets
"""
from etl.resume.models import Chunk, RetrievedChunk, SectionType
from etl.resume.chunker import ResumeChunker, EXTRACTION_ERROR_PREFIXES, normalize_text
from etl.resume.loader import DocumentTextLoader

__all__ = [
    'Chunk',
    'RetrievedChunk',
    'SectionType',
    'ResumeChunker',
    'EXTRACTION_ERROR_PREFIXES',
    'normalize_text',
    'DocumentTextLoader',
]
