"""
Configuration loading.

Component defaults live on each component's config dataclass. config.yaml
overrides them per section, and environment variables override both.
"""

import logging
import os
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Optional, Union

import yaml

from .providers import EmbeddingConfig, LLMConfig
from .rag import ExpanderConfig, RAGConfig
from .retrieval import (
    DocumentStoreConfig,
    GeneratorConfig,
    HybridConfig,
    KeywordSearchConfig,
    RerankerConfig,
    SemanticSearchConfig,
    VectorStoreConfig,
)

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = Path(__file__).parent.parent / "config" / "config.yaml"


def _non_negative_int(raw: str) -> int:
    value = int(raw)
    if value < 0:
        raise ValueError(f"expected a non-negative integer, got {value}")
    return value


# ENV_VAR -> (section, field, type)
ENV_OVERRIDES = {
    "EMBEDDING_PROVIDER": ("embedding", "provider", str),
    "EMBEDDING_MODEL": ("embedding", "model", str),
    "EMBEDDING_DIMENSIONS": ("embedding", "dimension", int),
    "OPENAI_EMBEDDING_RPM": ("embedding", "requests_per_minute", int),
    "EMBEDDING_MAX_RETRIES": ("generator", "max_retries", _non_negative_int),
    "EMBEDDING_CHUNK_SIZE": ("generator", "chunk_size", int),
    "LLM_PROVIDER": ("llm", "provider", str),
    "LLM_MODEL": ("llm", "model", str),
    "RAG_TOP_K": ("rag", "top_k", int),
    "RAG_MIN_SIMILARITY": ("rag", "min_similarity", float),
    "VECTOR_DB_DIR": ("vector_store", "persist_directory", str),
    "DOCUMENT_STORE_PATH": ("document_store", "persist_path", str),
}


@dataclass
class Settings:
    """All component configurations."""
    embedding: EmbeddingConfig = field(default_factory=EmbeddingConfig)
    llm: LLMConfig = field(default_factory=LLMConfig)
    generator: GeneratorConfig = field(default_factory=GeneratorConfig)
    vector_store: VectorStoreConfig = field(default_factory=VectorStoreConfig)
    document_store: DocumentStoreConfig = field(default_factory=DocumentStoreConfig)
    semantic_search: SemanticSearchConfig = field(default_factory=SemanticSearchConfig)
    keyword_search: KeywordSearchConfig = field(default_factory=KeywordSearchConfig)
    hybrid: HybridConfig = field(default_factory=HybridConfig)
    reranker: RerankerConfig = field(default_factory=RerankerConfig)
    query_expansion: ExpanderConfig = field(default_factory=ExpanderConfig)
    rag: RAGConfig = field(default_factory=RAGConfig)


def _build_section(cls, values: Optional[dict]):
    """Instantiate a config dataclass from a yaml section, ignoring unknown keys."""
    values = values or {}
    known = {f.name for f in fields(cls)}
    unknown = set(values) - known
    if unknown:
        logger.warning(f"Ignoring unknown {cls.__name__} settings: {sorted(unknown)}")
    return cls(**{k: v for k, v in values.items() if k in known})


def load_config(path: Optional[Union[str, Path]] = None, environ: Optional[dict] = None) -> Settings:
    """
    Load settings from config.yaml and the environment.

    Args:
        path: YAML file (default: config/config.yaml at the project root)
        environ: Environment mapping (default: os.environ)

    Returns:
        Settings with every component config populated
    """
    config_path = Path(path) if path else DEFAULT_CONFIG_PATH
    data = {}
    if config_path.exists():
        with open(config_path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
    elif path:
        raise FileNotFoundError(f"Config file not found: {config_path}")

    settings = Settings(**{
        f.name: _build_section(f.default_factory, data.get(f.name))
        for f in fields(Settings)
    })

    environ = os.environ if environ is None else environ
    for env_var, (section, attr, cast) in ENV_OVERRIDES.items():
        raw = environ.get(env_var)
        if raw in (None, ""):
            continue
        try:
            setattr(getattr(settings, section), attr, cast(raw))
        except ValueError:
            logger.warning(f"Ignoring invalid {env_var}={raw!r}")

    # One similarity floor for both entry points
    settings.semantic_search.min_similarity = settings.rag.min_similarity
    return settings
