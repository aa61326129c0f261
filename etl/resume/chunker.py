#!/usr/bin/env python3
"""
Resume Chunker - split resume text into ordered, section-typed chunks.

Sections are found from heading lines (Experience, Education, Skills, ...).
Oversized sections are split at paragraph, line or sentence boundaries by
RecursiveCharacterTextSplitter. Chunks never overlap: every non-whitespace
character of the document belongs to exactly one chunk, and
chunk.text == document[start:end] of the text as given (CRLF included).
"""
import logging
import re
from typing import Any, Dict, List, Optional, Tuple

from langchain_text_splitters import RecursiveCharacterTextSplitter

from core.exceptions import ChunkingFailure
from etl.resume.models import Chunk, SectionType

logger = logging.getLogger(__name__)

# Placeholders written by upstream text extraction when a file could not be read
EXTRACTION_ERROR_PREFIXES = ("Error parsing PDF:", "Error parsing document:")

MAX_HEADER_LENGTH = 48

# Paragraph, line, sentence, then a hard cut. CRLF variants keep offsets on raw text.
SPLIT_SEPARATORS = ["\r\n\r\n", "\n\n", "\r\n", "\n", ". ", ""]

_HEADER_KEYWORDS: List[Tuple[SectionType, str]] = [
    (SectionType.OTHER, r"contact(?: information| details)?|personal (?:information|details)"),
    (SectionType.SUMMARY, r"(?:professional |career )?summary|(?:professional )?profile|objective|about(?: me)?"),
    (SectionType.EXPERIENCE, r"(?:work |professional |relevant )?experience|employment(?: history)?"
                             r"|work history|career(?: history)?"),
    (SectionType.EDUCATION, r"education(?: and training| & training)?|academic(?: background| history)?"
                            r"|qualifications"),
    (SectionType.SKILLS, r"(?:technical |core |key )?skills|(?:core )?competencies|expertise|technologies"),
    (SectionType.CERTIFICATIONS, r"certifications?|licen[cs]es?(?: (?:and|&) certifications)?|courses|awards"),
]

SECTION_PATTERNS: List[Tuple[re.Pattern, SectionType]] = [
    (re.compile(rf"^[\W_]*(?:{keywords})\s*:?[\W_]*$", re.IGNORECASE), section_type)
    for section_type, keywords in _HEADER_KEYWORDS
]

_ROLE_AT_EMPLOYER = re.compile(
    r"^\s*([A-Z][\w/&,.' -]{1,60}?)\s+(?:at|@)\s+([A-Z][A-Za-z0-9&.' ]*[A-Za-z0-9&.])",
    re.MULTILINE
)
_EMPLOYER = re.compile(r"(?:\bat\s+|@\s*|Company:\s*)([A-Z][A-Za-z0-9&.' ]*[A-Za-z0-9&.])")
_ROLE = re.compile(r"(?:Role|Title|Position):\s*([^\n]+)", re.IGNORECASE)
_INSTITUTION_LABEL = re.compile(r"(?:University|College|School|Institution):\s*([^\n]+)", re.IGNORECASE)
_INSTITUTION_NAME = re.compile(
    r"[^\n,;|]*\b(?:University|College|Institute|School|Academy|Polytechnic)\b[^\n,;|]*"
)
_DEGREE_LABEL = re.compile(r"(?:Degree|Qualification):\s*([^\n]+)", re.IGNORECASE)
_DEGREE_NAME = re.compile(
    r"\b(?:Bachelor(?:'s)?|Master(?:'s)?|B\.?\s?Sc\.?|M\.?\s?Sc\.?|B\.A\.|M\.A\.|B\.?Eng\.?|M\.?Eng\.?"
    r"|MBA|Ph\.?D\.?|Doctorate|Associate(?:'s)?)\b[^\n,;|]*"
)


def normalize_text(text: str) -> str:
    """Normalize line endings to '\\n' for prompt text."""
    return text.replace("\r\n", "\n").replace("\r", "\n")


def is_extraction_error(text: str) -> bool:
    """True for placeholder text left by a failed document extraction."""
    return text.lstrip().startswith(EXTRACTION_ERROR_PREFIXES)


def classify_header(line: str) -> Optional[SectionType]:
    """Return the section a heading line opens, or None if it is not a heading."""
    stripped = line.strip()
    if not stripped or len(stripped) > MAX_HEADER_LENGTH:
        return None
    for pattern, section_type in SECTION_PATTERNS:
        if pattern.match(stripped):
            return section_type
    return None


class ResumeChunker:
    """Deterministic section-based chunker for resume text."""

    def __init__(self, chunk_size: int = 800, min_chunk_size: int = 200):
        if chunk_size <= 0:
            raise ValueError("chunk_size must be positive")
        self.chunk_size = chunk_size
        self.min_chunk_size = min(min_chunk_size, chunk_size)
        self._splitter = RecursiveCharacterTextSplitter(
            chunk_size=chunk_size,
            chunk_overlap=0,
            separators=SPLIT_SEPARATORS,
            add_start_index=True,
            length_function=len,
        )

    def chunk(self, text: str, subject_id: str) -> List[Chunk]:
        """Chunk resume text for one subject.

        Args:
            text: Extracted resume text
            subject_id: Owner of the document (e.g. candidate id)

        Returns:
            Chunks ordered by index with non-overlapping offsets into text

        Raises:
            ChunkingFailure: If the text is empty or an extraction-error placeholder
        """
        if text is None or not text.strip():
            raise ChunkingFailure(f"Document for subject {subject_id} is empty")
        if is_extraction_error(text):
            raise ChunkingFailure(f"Document for subject {subject_id} could not be extracted: {text.strip()[:120]}")

        chunks: List[Chunk] = []

        for section_type, start, end in self.identify_sections(text):
            for piece_start, piece_end in self._split_span(text, start, end):
                bounds = self._trim(text, piece_start, piece_end)
                if bounds is None:
                    continue
                s, e = bounds
                chunk_text = text[s:e]
                metadata: Dict[str, Any] = {'subject_id': subject_id}
                metadata.update(self.extract_metadata(chunk_text, section_type))
                chunks.append(Chunk(
                    index=len(chunks),
                    text=chunk_text,
                    section_type=section_type,
                    start_offset=s,
                    end_offset=e,
                    metadata=metadata,
                ))

        if not chunks:
            raise ChunkingFailure(f"Document for subject {subject_id} produced no chunks")

        logger.info(
            f"Chunked document for subject {subject_id}: {len(chunks)} chunks, "
            f"sections={sorted({c.section_type.value for c in chunks})}"
        )
        return chunks

    def identify_sections(self, document: str) -> List[Tuple[SectionType, int, int]]:
        """Split the document at heading lines.

        Text before the first heading is OTHER. A heading belongs to the
        section it opens. Sections are contiguous and cover the document.
        """
        sections: List[Tuple[SectionType, int, int]] = []
        current_type = SectionType.OTHER
        current_start = 0
        offset = 0

        for line in document.splitlines(keepends=True):
            header_type = classify_header(line)
            if header_type is not None and offset > current_start:
                sections.append((current_type, current_start, offset))
                current_type, current_start = header_type, offset
            elif header_type is not None:
                current_type = header_type
            offset += len(line)

        sections.append((current_type, current_start, len(document)))
        return [s for s in sections if document[s[1]:s[2]].strip()]

    def _split_span(self, document: str, start: int, end: int) -> List[Tuple[int, int]]:
        pieces: List[Tuple[int, int]] = []
        for piece in self._splitter.create_documents([document[start:end]]):
            piece_start = start + piece.metadata['start_index']
            pieces.append((piece_start, piece_start + len(piece.page_content)))

        # Fold short pieces forward, and a short tail back, instead of emitting tiny chunks
        folded: List[Tuple[int, int]] = []
        for piece in pieces:
            if folded and folded[-1][1] - folded[-1][0] < self.min_chunk_size:
                folded[-1] = (folded[-1][0], piece[1])
            else:
                folded.append(piece)
        if len(folded) > 1 and folded[-1][1] - folded[-1][0] < self.min_chunk_size:
            tail = folded.pop()
            folded[-1] = (folded[-1][0], tail[1])
        return folded

    @staticmethod
    def _trim(document: str, start: int, end: int) -> Optional[Tuple[int, int]]:
        while start < end and document[start].isspace():
            start += 1
        while end > start and document[end - 1].isspace():
            end -= 1
        if start == end:
            return None
        return start, end

    def extract_metadata(self, text: str, section_type: SectionType) -> Dict[str, str]:
        """Best-effort employer/role/institution/degree for a chunk.

        Missing keys are normal; a failing pattern never fails the chunk.
        """
        try:
            if section_type is SectionType.EXPERIENCE:
                return self._experience_metadata(text)
            if section_type is SectionType.EDUCATION:
                return self._education_metadata(text)
        except (re.error, IndexError, ValueError) as e:
            logger.warning(f"Metadata extraction failed for {section_type.value} chunk: {e}")
        return {}

    @staticmethod
    def _experience_metadata(text: str) -> Dict[str, str]:
        metadata: Dict[str, str] = {}

        role_match = _ROLE.search(text)
        if role_match:
            metadata['role'] = role_match.group(1).strip()

        combined = _ROLE_AT_EMPLOYER.search(text)
        if combined:
            metadata.setdefault('role', combined.group(1).strip())
            metadata['employer'] = combined.group(2).strip()
        else:
            employer_match = _EMPLOYER.search(text)
            if employer_match:
                metadata['employer'] = employer_match.group(1).strip()

        return metadata

    @staticmethod
    def _education_metadata(text: str) -> Dict[str, str]:
        metadata: Dict[str, str] = {}

        institution = _INSTITUTION_LABEL.search(text)
        if institution:
            metadata['institution'] = institution.group(1).strip()
        else:
            named = _INSTITUTION_NAME.search(text)
            if named:
                metadata['institution'] = named.group(0).strip(" -–\t")

        degree = _DEGREE_LABEL.search(text)
        if degree:
            metadata['degree'] = degree.group(1).strip()
        else:
            named = _DEGREE_NAME.search(text)
            if named:
                metadata['degree'] = named.group(0).strip(" -–\t")

        return metadata
