from dataclasses import dataclass
from typing import Optional

from core.config_loader import AppConfig, EmbeddingConfig
from core.embeddings.backends import EmbeddingBackend, HashingEmbeddingBackend, OpenAIEmbeddingBackend
from core.embeddings.gateway import EmbeddingGateway
from core.llm.factory import build_llm_provider
from core.llm.interfaces import LLMProvider
from core.llm.prompt_registry import PromptRegistry
from core.vector_index.base import VectorIndex
from core.vector_index.factory import build_vector_index
from etl.resume.chunker import ResumeChunker
from etl.resume.loader import DocumentTextLoader
from etl.retrieval import RetrievalOrchestrator


@dataclass
class AppContext:
    """Application context container that holds all wired dependencies.

    Providers and backends are chosen once here from config; nothing
    downstream branches on provider names.
    """
    config: AppConfig
    llm: LLMProvider
    gateway: EmbeddingGateway
    vector_index: Optional[VectorIndex]
    chunker: ResumeChunker
    prompts: PromptRegistry
    loader: DocumentTextLoader
    orchestrator: RetrievalOrchestrator

    @classmethod
    def build(cls, config: AppConfig) -> "AppContext":
        """Build an AppContext from config.

        Args:
            config: Loaded application configuration

        Returns:
            Fully wired AppContext instance
        """
        llm = build_llm_provider(config.llm)

        gateway = EmbeddingGateway(
            backend=cls._build_embedding_backend(config.embedding),
            dimensions=config.embedding.dimensions,
            batch_size=config.embedding.batch_size
        )

        vector_index = build_vector_index(config.vector_store, config.embedding.dimensions)

        chunker = ResumeChunker(
            chunk_size=config.chunker.chunk_size,
            min_chunk_size=config.chunker.min_chunk_size
        )

        prompts = PromptRegistry(prompts_dir=config.retrieval.prompts_dir)

        orchestrator = RetrievalOrchestrator(
            chunker=chunker,
            gateway=gateway,
            vector_index=vector_index,
            llm=llm,
            prompts=prompts,
            prompt_version=config.retrieval.prompt_version,
            config=config.retrieval,
            namespace_prefix=config.vector_store.namespace_prefix
        )

        return cls(
            config=config,
            llm=llm,
            gateway=gateway,
            vector_index=vector_index,
            chunker=chunker,
            prompts=prompts,
            loader=DocumentTextLoader(),
            orchestrator=orchestrator
        )

    @staticmethod
    def _build_embedding_backend(embedding_config: EmbeddingConfig) -> EmbeddingBackend:
        """Build the embedding backend named in config."""
        if embedding_config.backend == "hashing":
            return HashingEmbeddingBackend()

        return OpenAIEmbeddingBackend(
            api_key=embedding_config.api_key,
            base_url=embedding_config.base_url,
            model=embedding_config.model,
            timeout=embedding_config.timeout_seconds
        )
