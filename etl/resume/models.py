#!/usr/bin/env python3
"""
Resume Models - Data structures for resume chunking and retrieval.
"""

from dataclasses import dataclass, field, asdict
from enum import Enum
from typing import Dict, Any


class SectionType(str, Enum):
    """Closed set of resume section classifications."""
    SUMMARY = "summary"
    EXPERIENCE = "experience"
    EDUCATION = "education"
    SKILLS = "skills"
    CERTIFICATIONS = "certifications"
    OTHER = "other"

    @classmethod
    def coerce(cls, value: Any) -> "SectionType":
        """Map stored strings back to a SectionType; unknown values become OTHER."""
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).lower())
        except ValueError:
            return cls.OTHER


@dataclass
class Chunk:
    """Ordered, offset-tagged, section-typed segment of a resume.

    text is always document[start_offset:end_offset] of the exact
    document the chunker was given.
    """
    index: int
    text: str
    section_type: SectionType
    start_offset: int
    end_offset: int
    metadata: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data['section_type'] = self.section_type.value
        return data


@dataclass
class RetrievedChunk:
    """A stored chunk returned by a similarity search.

    text is the stored preview, which may be shorter than the original chunk.
    """
    index: int
    text: str
    section_type: SectionType
    score: float
    namespace: str
    start_offset: int = 0
    end_offset: int = 0
    metadata: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_chunk(cls, chunk: Chunk, score: float, namespace: str) -> "RetrievedChunk":
        return cls(
            index=chunk.index,
            text=chunk.text,
            section_type=chunk.section_type,
            score=score,
            namespace=namespace,
            start_offset=chunk.start_offset,
            end_offset=chunk.end_offset,
            metadata=dict(chunk.metadata),
        )

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data['section_type'] = self.section_type.value
        return data
