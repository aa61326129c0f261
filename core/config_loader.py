import yaml
import os
from typing import List, Optional, Dict, Any, Literal
from pydantic import BaseModel, Field, field_validator


class LlmConfig(BaseModel):
    """Chat completion backend used for grounded generation."""
    provider: Literal["openai", "anthropic"] = "openai"
    base_url: Optional[str] = None
    api_key: Optional[str] = None
    model: str = "gpt-4o-mini"
    temperature: float = 0.3
    max_tokens: int = 4096
    timeout_seconds: float = 120.0


class EmbeddingConfig(BaseModel):
    """Embedding backend. 'hashing' needs no network and is meant for dev/tests."""
    backend: Literal["openai", "hashing"] = "openai"
    base_url: Optional[str] = None
    api_key: Optional[str] = None
    model: str = "text-embedding-3-small"
    dimensions: int = 512
    batch_size: int = 100
    timeout_seconds: float = 60.0

    @field_validator("batch_size")
    @classmethod
    def _check_batch_size(cls, value: int) -> int:
        # OpenAI rejects more than 2048 inputs per request
        if not 1 <= value <= 2048:
            raise ValueError("batch_size must be between 1 and 2048")
        return value


class VectorStoreConfig(BaseModel):
    """Vector index backend. 'none' skips storage and retrieval falls back to raw chunks."""
    backend: Literal["pgvector", "memory", "none"] = "memory"
    database_url: Optional[str] = None
    max_request_bytes: int = 2 * 1024 * 1024
    max_batch_size: int = 100
    metadata_text_limit: int = 1000
    namespace_prefix: str = "candidate-"


class ChunkerConfig(BaseModel):
    chunk_size: int = 800  # characters, not tokens
    min_chunk_size: int = 200


class CitationRule(BaseModel):
    """A list of claims in the generated record that must cite chunks.

    path: dotted path to a list; 'a[].b' walks into every item of list 'a'
    label_field: item field used to name the claim in warnings
    """
    path: str
    label_field: Optional[str] = None


class RetrievalConfig(BaseModel):
    top_k: int = 10
    fallback_chunk_limit: int = 10
    prompt_version: str = "v1.0"
    prompts_dir: Optional[str] = None  # <dir>/<version>/<name>.txt overrides built-in templates
    citation_fields: List[str] = Field(default_factory=lambda: ["chunkIndex", "chunkId"])
    citation_rules: List[CitationRule] = Field(default_factory=lambda: [
        CitationRule(path="skills", label_field="skill"),
        CitationRule(path="criteria_matches[].evidence", label_field="criterion"),
    ])


class AppConfig(BaseModel):
    llm: LlmConfig = Field(default_factory=LlmConfig)
    embedding: EmbeddingConfig = Field(default_factory=EmbeddingConfig)
    vector_store: VectorStoreConfig = Field(default_factory=VectorStoreConfig)
    chunker: ChunkerConfig = Field(default_factory=ChunkerConfig)
    retrieval: RetrievalConfig = Field(default_factory=RetrievalConfig)


def _section(data: Dict[str, Any], name: str) -> Dict[str, Any]:
    if name not in data or data[name] is None:
        data[name] = {}
    return data[name]


def apply_env_overrides(data: Dict[str, Any]) -> Dict[str, Any]:
    """Overlay environment variables on raw config data."""
    env_provider = os.environ.get("LLM_PROVIDER")
    if env_provider:
        _section(data, 'llm')['provider'] = env_provider

    llm = data.get('llm') or {}
    provider = llm.get('provider', 'openai')
    env_llm_key = os.environ.get("ANTHROPIC_API_KEY" if provider == "anthropic" else "OPENAI_API_KEY")
    if env_llm_key:
        _section(data, 'llm')['api_key'] = env_llm_key

    env_llm_base_url = os.environ.get("LLM_BASE_URL")
    if env_llm_base_url:
        _section(data, 'llm')['base_url'] = env_llm_base_url

    env_embedding_key = os.environ.get("OPENAI_API_KEY")
    if env_embedding_key:
        _section(data, 'embedding').setdefault('api_key', env_embedding_key)

    env_dimensions = os.environ.get("EMBEDDING_DIMENSIONS")
    if env_dimensions:
        _section(data, 'embedding')['dimensions'] = int(env_dimensions)

    env_vector_backend = os.environ.get("VECTOR_STORE_BACKEND")
    if env_vector_backend:
        _section(data, 'vector_store')['backend'] = env_vector_backend

    env_db_url = os.environ.get("DATABASE_URL")
    if env_db_url:
        _section(data, 'vector_store')['database_url'] = env_db_url

    return data


def load_config(config_path: str = "config.yaml") -> AppConfig:
    # If not found at relative path (e.g. running from another dir), try the repo root
    if not os.path.exists(config_path):
        base_dir = os.path.dirname(os.path.abspath(__file__))
        config_path = os.path.join(base_dir, "..", "config.yaml")

    data: Dict[str, Any] = {}
    if os.path.exists(config_path):
        with open(config_path, "r") as f:
            data = yaml.safe_load(f) or {}

    return AppConfig(**apply_env_overrides(data))
