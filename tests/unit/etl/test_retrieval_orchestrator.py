"""
Unit tests for RetrievalOrchestrator.

Tests verify:
- Indexing records chunked/embedded/stored stages
- Missing index, embedding failures, dimension mismatches and a down
  vector store skip storage
- Retrieval falls back to raw chunks with score 0.0
- Grounded generation: prompt selection, repair, citation checks
"""
import json

import pytest

from core.config_loader import RetrievalConfig
from core.embeddings.backends import EmbeddingBackend, HashingEmbeddingBackend
from core.embeddings.gateway import EmbeddingGateway
from core.exceptions import ChunkingFailure, ExtractionFailure, PromptNotFound, VectorBackendUnavailable
from core.llm.interfaces import LLMProvider
from core.llm.prompt_registry import PromptRegistry
from core.llm.system_prompts import DEFAULT_SYSTEM_PROMPT
from core.vector_index import InMemoryVectorIndex
from etl.resume.chunker import ResumeChunker
from etl.resume.models import RetrievedChunk, SectionType
from etl.retrieval import NO_CHUNKS_CONTEXT, PipelineStage, RetrievalOrchestrator, format_context

DIMENSIONS = 64

DOC = (
    "Jane Doe\n"
    "jane@example.com\n\n"
    "SUMMARY\n"
    "Backend engineer focused on payments.\n\n"
    "EXPERIENCE\n"
    "Senior Engineer at Acme Corp\n"
    "- Built the card authorisation service in Go.\n"
    "- Led the migration of settlement jobs to Kafka.\n\n"
    "EDUCATION\n"
    "BSc Computer Science, University of Edinburgh\n\n"
    "SKILLS\n"
    "Python, Go, Terraform, PostgreSQL\n"
)


class FakeLLM(LLMProvider):

    def __init__(self, response: str):
        self.response = response
        self.calls = []

    @property
    def model(self) -> str:
        return "fake-model"

    def complete(self, prompt, system_prompt=None):
        self.calls.append((prompt, system_prompt))
        return self.response


class FailingBackend(EmbeddingBackend):
    name = "failing"

    def embed_texts(self, texts, dimensions):
        raise RuntimeError("embedding service returned 503")


class DownIndex(InMemoryVectorIndex):

    def upsert(self, namespace, chunks, vectors):
        raise VectorBackendUnavailable("connection refused")

    def search(self, namespace, query_vector, top_k=10, section_type=None):
        return []


class RecordingIndex(InMemoryVectorIndex):

    def __init__(self, dimensions):
        super().__init__(dimensions)
        self.top_ks = []

    def search(self, namespace, query_vector, top_k=10, section_type=None):
        self.top_ks.append(top_k)
        return super().search(namespace, query_vector, top_k, section_type)


def make_orchestrator(vector_index=None, llm=None, backend=None, prompts=None, config=None):
    return RetrievalOrchestrator(
        chunker=ResumeChunker(chunk_size=800, min_chunk_size=200),
        gateway=EmbeddingGateway(backend or HashingEmbeddingBackend(), dimensions=DIMENSIONS),
        vector_index=vector_index,
        llm=llm or FakeLLM("{}"),
        prompts=prompts or PromptRegistry(),
        prompt_version="v1.0",
        config=config,
    )


@pytest.fixture
def index():
    return InMemoryVectorIndex(dimensions=DIMENSIONS)


class TestIndexDocument:

    def test_stores_chunks(self, index):
        orchestrator = make_orchestrator(index)

        result = orchestrator.index_document("c1", DOC)

        assert result.namespace == "candidate-c1"
        assert result.stages == [PipelineStage.CHUNKED, PipelineStage.EMBEDDED, PipelineStage.STORED]
        assert result.stored
        assert result.stored_count == len(result.chunks) == 5
        assert index.exists("candidate-c1")

    def test_reindex_replaces_old_chunks(self, index):
        orchestrator = make_orchestrator(index)
        orchestrator.index_document("c1", DOC)

        orchestrator.index_document("c1", "SKILLS\nPython")

        query = orchestrator.gateway.embed_query("Python")
        assert len(index.search("candidate-c1", query, top_k=50)) == 1

    def test_no_index_skips_storage(self):
        result = make_orchestrator(None).index_document("c1", DOC)

        assert result.stages == [PipelineStage.CHUNKED, PipelineStage.STORAGE_SKIPPED]
        assert result.skip_reason == "no vector index configured"
        assert not result.stored
        assert len(result.chunks) == 5

    def test_embedding_failure_skips_storage(self, index):
        result = make_orchestrator(index, backend=FailingBackend()).index_document("c1", DOC)

        assert result.stages == [PipelineStage.CHUNKED, PipelineStage.STORAGE_SKIPPED]
        assert result.skip_reason.startswith("embedding failed")
        assert not index.exists("candidate-c1")

    def test_backend_down_skips_storage(self):
        result = make_orchestrator(DownIndex(dimensions=DIMENSIONS)).index_document("c1", DOC)

        assert result.stages == [PipelineStage.CHUNKED, PipelineStage.EMBEDDED, PipelineStage.STORAGE_SKIPPED]
        assert "vector store unavailable" in result.skip_reason

    def test_dimension_mismatch_skips_storage_and_keeps_old_vectors(self):
        index = InMemoryVectorIndex(dimensions=DIMENSIONS * 2)
        old_chunks = ResumeChunker().chunk("SKILLS\nPython", "c1")
        index.upsert("candidate-c1", old_chunks, [[1.0] * (DIMENSIONS * 2)])

        result = make_orchestrator(index).index_document("c1", DOC)

        assert result.stages == [PipelineStage.CHUNKED, PipelineStage.EMBEDDED, PipelineStage.STORAGE_SKIPPED]
        assert result.skip_reason.startswith("dimension mismatch")
        assert len(result.chunks) == 5
        assert len(index.search("candidate-c1", [1.0] * (DIMENSIONS * 2), top_k=50)) == 1

    def test_dimension_mismatch_still_generates(self):
        llm = FakeLLM('{"skills": ["Go"]}')
        orchestrator = make_orchestrator(InMemoryVectorIndex(dimensions=DIMENSIONS * 2), llm=llm)

        result = orchestrator.generate_grounded_record("c1", DOC, "skills")

        assert result.record == {"skills": ["Go"]}
        assert PipelineStage.STORAGE_SKIPPED in result.stages
        assert "dimension mismatch" in result.metadata['storage_skip_reason']
        assert all(c.score == 0.0 for c in result.retrieved_chunks)

    def test_chunking_failure_propagates(self, index):
        with pytest.raises(ChunkingFailure):
            make_orchestrator(index).index_document("c1", "Error parsing PDF: broken file")


class TestRetrieve:

    def test_exact_chunk_ranks_first(self, index):
        orchestrator = make_orchestrator(index)
        chunks = orchestrator.index_document("c1", DOC).chunks
        skills = next(c for c in chunks if c.section_type is SectionType.SKILLS)

        results = orchestrator.retrieve("c1", skills.text, top_k=3)

        assert len(results) == 3
        assert results[0].index == skills.index
        assert results[0].score == pytest.approx(1.0)
        assert [r.score for r in results] == sorted((r.score for r in results), reverse=True)
        assert all(r.namespace == "candidate-c1" for r in results)

    def test_section_filter(self, index):
        orchestrator = make_orchestrator(index)
        orchestrator.index_document("c1", DOC)

        results = orchestrator.retrieve("c1", "payments engineer", section_type=SectionType.EDUCATION)

        assert [r.section_type for r in results] == [SectionType.EDUCATION]

    def test_other_subject_sees_nothing(self, index):
        orchestrator = make_orchestrator(index)
        orchestrator.index_document("c1", DOC)

        assert orchestrator.retrieve("c2", "Python") == []

    def test_fallback_without_index(self):
        orchestrator = make_orchestrator(None, config=RetrievalConfig(fallback_chunk_limit=2))
        chunks = orchestrator.index_document("c1", DOC).chunks

        results = orchestrator.retrieve("c1", "Python", fallback_chunks=chunks)

        assert [r.index for r in results] == [0, 1]
        assert all(r.score == 0.0 for r in results)
        assert results[0].text == chunks[0].text

    def test_fallback_respects_section(self):
        orchestrator = make_orchestrator(None)
        chunks = orchestrator.index_document("c1", DOC).chunks

        results = orchestrator.retrieve("c1", "Python", section_type=SectionType.SKILLS, fallback_chunks=chunks)

        assert [r.section_type for r in results] == [SectionType.SKILLS]

    def test_fallback_when_query_embedding_fails(self, index):
        chunks = make_orchestrator(index).index_document("c1", DOC).chunks
        orchestrator = make_orchestrator(index, backend=FailingBackend())

        results = orchestrator.retrieve("c1", "Python", fallback_chunks=chunks)

        assert len(results) == 5
        assert all(r.score == 0.0 for r in results)

    def test_explicit_zero_top_k_is_not_replaced_by_default(self):
        index = RecordingIndex(DIMENSIONS)
        orchestrator = make_orchestrator(index)
        orchestrator.index_document("c1", DOC)

        assert orchestrator.retrieve("c1", "Go", top_k=0) == []
        orchestrator.retrieve("c1", "Go")

        assert index.top_ks == [0, orchestrator.config.top_k]

    def test_empty_without_fallback(self):
        assert make_orchestrator(None).retrieve("c1", "Python") == []


class TestFormatContext:

    def test_empty(self):
        assert format_context([]) == NO_CHUNKS_CONTEXT

    def test_blocks(self):
        chunks = [
            RetrievedChunk(3, "Python, Go", SectionType.SKILLS, 0.91234, "candidate-c1"),
            RetrievedChunk(1, "Acme Corp", SectionType.EXPERIENCE, 0.5, "candidate-c1"),
        ]

        assert format_context(chunks) == (
            "[Chunk 3] (Section: skills, Score: 0.912):\nPython, Go"
            "\n\n---\n\n"
            "[Chunk 1] (Section: experience, Score: 0.500):\nAcme Corp"
        )


class TestGenerateGroundedRecord:

    def test_grounded_record(self, index):
        response = "```json\n" + json.dumps({
            'name': 'Jane Doe',
            'skills': [{'skill': 'Python', 'evidence': 'Python, Go', 'chunkIndex': 4}],
        }) + "\n```"
        llm = FakeLLM(response)
        orchestrator = make_orchestrator(index, llm=llm)

        result = orchestrator.generate_grounded_record("c1", DOC, "Backend skills")

        assert result.record['name'] == "Jane Doe"
        assert result.prompt_name == "cv_to_profile_rag"
        assert result.prompt_version == "v1.0"
        assert result.extraction_strategy == "direct"
        assert result.stages == [
            PipelineStage.CHUNKED,
            PipelineStage.EMBEDDED,
            PipelineStage.STORED,
            PipelineStage.RETRIEVED,
            PipelineStage.GENERATED,
            PipelineStage.EXTRACTED,
            PipelineStage.CITATIONS_VERIFIED,
        ]
        assert result.citation_report.ok
        assert result.metadata['model'] == "fake-model"
        assert result.metadata['chunk_count'] == 5
        assert result.metadata['storage_skip_reason'] is None

        prompt, system_prompt = llm.calls[0]
        assert system_prompt == DEFAULT_SYSTEM_PROMPT
        assert "Backend skills" in prompt
        assert "[Chunk 4] (Section: skills" in prompt
        assert "{relevant_chunks}" not in prompt

    def test_uncited_claims_warn(self, index):
        llm = FakeLLM(json.dumps({'skills': [{'skill': 'Rust'}]}))

        result = make_orchestrator(index, llm=llm).generate_grounded_record("c1", DOC, "skills")

        assert result.stages[-1] is PipelineStage.CITATIONS_WARNED
        assert result.citation_report.warnings[0].label == "Rust"

    def test_truncated_output_is_repaired(self, index):
        llm = FakeLLM(
            'Here is the profile: {"name": "Jane Doe", "skills": '
            '[{"skill": "Python", "chunkIndex": 4}, {"skill": "Go", "chunk'
        )

        result = make_orchestrator(index, llm=llm).generate_grounded_record("c1", DOC, "skills")

        assert result.record['name'] == "Jane Doe"
        assert result.record['skills'][0] == {'skill': 'Python', 'chunkIndex': 4}
        assert result.extraction_strategy != "direct"

    def test_unrecoverable_output_raises(self, index):
        llm = FakeLLM("I'm sorry, I can't produce that.")

        with pytest.raises(ExtractionFailure):
            make_orchestrator(index, llm=llm).generate_grounded_record("c1", DOC, "skills")

    def test_prompt_fallback(self, index):
        prompts = PromptRegistry(templates={'v1.0': {'cv_to_profile': "Resume:\n{cv_text}"}})
        llm = FakeLLM('{"name": "Jane Doe"}')

        result = make_orchestrator(index, llm=llm, prompts=prompts).generate_grounded_record("c1", DOC, "q")

        assert result.prompt_name == "cv_to_profile"
        assert llm.calls[0][0].startswith("Resume:\nJane Doe")

    def test_no_prompt_raises(self, index):
        prompts = PromptRegistry(templates={'v2.0': {'cv_to_profile': "{cv_text}"}})

        with pytest.raises(PromptNotFound):
            make_orchestrator(index, prompts=prompts).generate_grounded_record("c1", DOC, "q")

    def test_backend_down_still_generates(self):
        llm = FakeLLM(json.dumps({'name': 'Jane Doe', 'skills': [{'skill': 'Go', 'chunkIndex': 2}]}))
        orchestrator = make_orchestrator(DownIndex(dimensions=DIMENSIONS), llm=llm)

        result = orchestrator.generate_grounded_record("c1", DOC, "skills")

        assert PipelineStage.STORAGE_SKIPPED in result.stages
        assert PipelineStage.RETRIEVED in result.stages
        assert len(result.retrieved_chunks) == 5
        assert all(c.score == 0.0 for c in result.retrieved_chunks)
        assert result.citation_report.ok
        assert "vector store unavailable" in result.metadata['storage_skip_reason']
        assert "Score: 0.000" in llm.calls[0][0]


class TestDeleteSubject:

    def test_delete(self, index):
        orchestrator = make_orchestrator(index)
        orchestrator.index_document("c1", DOC)

        assert orchestrator.delete_subject("c1") is True
        assert not index.exists("candidate-c1")

    def test_delete_without_index(self):
        assert make_orchestrator(None).delete_subject("c1") is False
