#!/usr/bin/env python3
"""
Retrieval Orchestrator - index a resume, retrieve relevant chunks, and
generate a grounded record from them.

Flow:
    chunk -> embed -> store            (index_document)
    embed query -> search -> fallback  (retrieve)
    prompt -> LLM -> repair -> cite    (generate_grounded_record)

Backend outages never stop the flow: storage is skipped and retrieval
falls back to the document's own chunks. Chunking and extraction
failures are raised to the caller.
"""
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Sequence, Tuple

from core.config_loader import RetrievalConfig
from core.embeddings.gateway import EmbeddingGateway
from core.exceptions import (
    ChunkingFailure,
    EmbeddingFailure,
    ExtractionFailure,
    PromptNotFound,
    VectorBackendUnavailable,
    VectorDimensionMismatch,
)
from core.llm.interfaces import LLMProvider
from core.llm.prompt_registry import PromptRegistry
from core.llm.system_prompts import DEFAULT_SYSTEM_PROMPT
from core.repair.extractor import JsonExtractor
from core.vector_index.base import VectorIndex, namespace_for
from etl.citations import CitationReport, CitationValidator
from etl.resume.chunker import ResumeChunker, normalize_text
from etl.resume.models import Chunk, RetrievedChunk, SectionType

logger = logging.getLogger(__name__)

NO_CHUNKS_CONTEXT = "No relevant chunks found."
CONTEXT_SEPARATOR = "\n\n---\n\n"
DEFAULT_PROMPT_NAMES = ("cv_to_profile_rag", "cv_to_profile")


class PipelineStage(str, Enum):
    CHUNKED = "chunked"
    EMBEDDED = "embedded"
    STORED = "stored"
    STORAGE_SKIPPED = "storage_skipped"
    RETRIEVED = "retrieved"
    GENERATED = "generated"
    EXTRACTED = "extracted"
    CITATIONS_VERIFIED = "citations_verified"
    CITATIONS_WARNED = "citations_warned"
    CHUNKING_FAILED = "chunking_failed"
    EXTRACTION_FAILED = "extraction_failed"


@dataclass
class IndexingResult:
    subject_id: str
    namespace: str
    chunks: List[Chunk]
    stages: List[PipelineStage]
    stored_count: int = 0
    skip_reason: Optional[str] = None

    @property
    def stored(self) -> bool:
        return PipelineStage.STORED in self.stages


@dataclass
class GroundedRecord:
    record: Dict[str, Any]
    retrieved_chunks: List[RetrievedChunk]
    citation_report: CitationReport
    stages: List[PipelineStage]
    prompt_name: str
    prompt_version: str
    extraction_strategy: str
    metadata: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'record': self.record,
            'retrieved_chunks': [c.to_dict() for c in self.retrieved_chunks],
            'citations': self.citation_report.to_dict(),
            'stages': [s.value for s in self.stages],
            'prompt_name': self.prompt_name,
            'prompt_version': self.prompt_version,
            'extraction_strategy': self.extraction_strategy,
            'metadata': self.metadata,
        }


def format_context(chunks: Sequence[RetrievedChunk]) -> str:
    """Render retrieved chunks as prompt context.

    Each block is labelled with the chunk index so generated claims can
    cite it as chunkIndex.
    """
    if not chunks:
        return NO_CHUNKS_CONTEXT
    return CONTEXT_SEPARATOR.join(
        f"[Chunk {c.index}] (Section: {c.section_type.value}, Score: {c.score:.3f}):\n{c.text}"
        for c in chunks
    )


class RetrievalOrchestrator:
    """
    Service for grounded extraction over one subject's document.

    Usage:
        orchestrator = RetrievalOrchestrator(chunker, gateway, index, llm, prompts, "v1.0", config)
        result = orchestrator.generate_grounded_record("42", resume_text, "Python backend roles")
    """

    def __init__(
        self,
        chunker: ResumeChunker,
        gateway: EmbeddingGateway,
        vector_index: Optional[VectorIndex],
        llm: LLMProvider,
        prompts: PromptRegistry,
        prompt_version: str,
        config: Optional[RetrievalConfig] = None,
        extractor: Optional[JsonExtractor] = None,
        namespace_prefix: Optional[str] = None
    ):
        self.chunker = chunker
        self.gateway = gateway
        self.vector_index = vector_index
        self.llm = llm
        self.prompts = prompts
        self.prompt_version = prompt_version
        self.config = config or RetrievalConfig()
        self.extractor = extractor or JsonExtractor()
        self.citations = CitationValidator(self.config.citation_rules, self.config.citation_fields)
        self._namespace_prefix = namespace_prefix

    def namespace(self, subject_id: str) -> str:
        if self.vector_index is not None:
            return self.vector_index.namespace_for(subject_id)
        if self._namespace_prefix is not None:
            return namespace_for(subject_id, self._namespace_prefix)
        return namespace_for(subject_id)

    def index_document(self, subject_id: str, text: str) -> IndexingResult:
        """Chunk, embed and store a document.

        Raises:
            ChunkingFailure: If the document is empty or unreadable
        """
        namespace = self.namespace(subject_id)
        try:
            chunks = self.chunker.chunk(text, subject_id)
        except ChunkingFailure as e:
            logger.error(f"[{PipelineStage.CHUNKING_FAILED.value}] subject {subject_id}: {e}")
            raise

        stages = [PipelineStage.CHUNKED]
        result = IndexingResult(subject_id=subject_id, namespace=namespace, chunks=chunks, stages=stages)

        if self.vector_index is None:
            return self._skip_storage(result, "no vector index configured")

        try:
            vectors = self.gateway.embed_batch([c.text for c in chunks])
        except EmbeddingFailure as e:
            logger.warning(f"Embedding failed for subject {subject_id}, skipping storage: {e}")
            return self._skip_storage(result, f"embedding failed: {e}")
        stages.append(PipelineStage.EMBEDDED)

        try:
            self.vector_index.validate_upsert(chunks, vectors)
        except VectorDimensionMismatch as e:
            logger.error(f"Embedding dimension mismatch for subject {subject_id}, skipping storage: {e}")
            return self._skip_storage(result, f"dimension mismatch: {e}")

        try:
            # Re-indexing replaces the namespace so chunks of an older, longer version do not linger
            if self.vector_index.exists(namespace):
                self.vector_index.delete_namespace(namespace)
            result.stored_count = self.vector_index.upsert(namespace, chunks, vectors)
        except VectorBackendUnavailable as e:
            logger.warning(f"Vector store unavailable for subject {subject_id}, skipping storage: {e}")
            return self._skip_storage(result, f"vector store unavailable: {e}")

        stages.append(PipelineStage.STORED)
        logger.info(f"Indexed {result.stored_count} chunks for subject {subject_id} in {namespace}")
        return result

    @staticmethod
    def _skip_storage(result: IndexingResult, reason: str) -> IndexingResult:
        result.stages.append(PipelineStage.STORAGE_SKIPPED)
        result.skip_reason = reason
        logger.info(f"Storage skipped for subject {result.subject_id}: {reason}")
        return result

    def retrieve(
        self,
        subject_id: str,
        query: str,
        top_k: Optional[int] = None,
        section_type: Optional[SectionType] = None,
        fallback_chunks: Optional[Sequence[Chunk]] = None
    ) -> List[RetrievedChunk]:
        """Most relevant stored chunks for a query.

        Falls back to the first fallback_chunk_limit raw chunks (score 0.0)
        when there is no index, the query cannot be embedded, or the search
        comes back empty.
        """
        if top_k is None:
            top_k = self.config.top_k
        namespace = self.namespace(subject_id)
        results: List[RetrievedChunk] = []

        if self.vector_index is not None:
            try:
                query_vector = self.gateway.embed_query(query)
            except EmbeddingFailure as e:
                logger.warning(f"Query embedding failed for subject {subject_id}: {e}")
                query_vector = None
            if query_vector is not None:
                results = self.vector_index.search(namespace, query_vector, top_k, section_type)

        if results:
            logger.info(f"Retrieved {len(results)} chunks for subject {subject_id}")
            return results

        return self._fallback(namespace, fallback_chunks, section_type)

    def _fallback(
        self,
        namespace: str,
        fallback_chunks: Optional[Sequence[Chunk]],
        section_type: Optional[SectionType]
    ) -> List[RetrievedChunk]:
        if not fallback_chunks:
            logger.info(f"No chunks retrieved for {namespace} and no fallback chunks available")
            return []

        candidates = list(fallback_chunks)
        if section_type is not None:
            wanted = SectionType.coerce(section_type)
            candidates = [c for c in candidates if c.section_type is wanted]

        limited = candidates[:self.config.fallback_chunk_limit]
        logger.info(f"Falling back to {len(limited)} raw chunks for {namespace}")
        return [RetrievedChunk.from_chunk(c, 0.0, namespace) for c in limited]

    def _select_prompt(self, prompt_names: Sequence[str]) -> Tuple[str, str]:
        """First template that exists for the configured version wins."""
        for name in prompt_names:
            try:
                return name, self.prompts.get(self.prompt_version, name)
            except PromptNotFound as e:
                logger.warning(f"{e}; trying next prompt")
        raise PromptNotFound(
            f"No prompt template found for version {self.prompt_version} among {list(prompt_names)}"
        )

    def generate_grounded_record(
        self,
        subject_id: str,
        document_text: str,
        query: str,
        prompt_names: Sequence[str] = DEFAULT_PROMPT_NAMES
    ) -> GroundedRecord:
        """Index, retrieve, generate, repair and citation-check in one call.

        Raises:
            ChunkingFailure: If the document cannot be chunked
            PromptNotFound: If none of prompt_names exists for the version
            ExtractionFailure: If the model output holds no recoverable JSON object
        """
        indexing = self.index_document(subject_id, document_text)
        stages = list(indexing.stages)

        retrieved = self.retrieve(subject_id, query, fallback_chunks=indexing.chunks)
        stages.append(PipelineStage.RETRIEVED)

        prompt_name, template = self._select_prompt(prompt_names)
        prompt = self.prompts.render(template, {
            'query': query,
            'relevant_chunks': format_context(retrieved),
            'cv_text': normalize_text(document_text),
        })

        logger.info(
            f"Generating record for subject {subject_id} with prompt "
            f"{self.prompt_version}/{prompt_name} ({len(retrieved)} chunks)"
        )
        raw = self.llm.complete(prompt, system_prompt=DEFAULT_SYSTEM_PROMPT)
        stages.append(PipelineStage.GENERATED)

        try:
            record, strategy = self.extractor.extract_with_strategy(raw)
        except ExtractionFailure as e:
            logger.error(f"[{PipelineStage.EXTRACTION_FAILED.value}] subject {subject_id}: {e}")
            raise
        stages.append(PipelineStage.EXTRACTED)

        shown = retrieved or [RetrievedChunk.from_chunk(c, 0.0, indexing.namespace) for c in indexing.chunks]
        report = self.citations.validate(record, known_chunk_indices={c.index for c in shown})
        stages.append(PipelineStage.CITATIONS_VERIFIED if report.ok else PipelineStage.CITATIONS_WARNED)

        return GroundedRecord(
            record=record,
            retrieved_chunks=retrieved,
            citation_report=report,
            stages=stages,
            prompt_name=prompt_name,
            prompt_version=self.prompt_version,
            extraction_strategy=strategy,
            metadata={
                'subject_id': subject_id,
                'namespace': indexing.namespace,
                'model': self.llm.model,
                'chunk_count': len(indexing.chunks),
                'storage_skip_reason': indexing.skip_reason,
            },
        )

    def delete_subject(self, subject_id: str) -> bool:
        """Best-effort removal of a subject's stored vectors."""
        if self.vector_index is None:
            return False
        return self.vector_index.delete_namespace(self.namespace(subject_id))
