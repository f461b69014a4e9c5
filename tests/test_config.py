"""Tests for configuration loading."""

import pytest

from docrank.config import load_config


@pytest.fixture
def config_file(tmp_path):
    path = tmp_path / "config.yaml"
    path.write_text(
        "embedding:\n"
        "  provider: nebius\n"
        "  model: BAAI/bge-multilingual-gemma2\n"
        "  dimension: 3584\n"
        "rag:\n"
        "  top_k: 8\n"
        "  min_similarity: 0.6\n"
        "hybrid:\n"
        "  rrf_k: 30\n"
        "  unknown_option: true\n",
        encoding="utf-8",
    )
    return path


def test_yaml_sections_override_defaults(config_file):
    settings = load_config(config_file, environ={})

    assert settings.embedding.provider == "nebius"
    assert settings.embedding.resolved_dimension() == 3584
    assert settings.rag.top_k == 8
    assert settings.hybrid.rrf_k == 30
    assert settings.hybrid.candidate_multiplier == 2
    assert settings.generator.max_retries == 3


def test_semantic_floor_follows_rag_setting(config_file):
    settings = load_config(config_file, environ={})
    assert settings.semantic_search.min_similarity == 0.6


def test_environment_overrides_yaml(config_file):
    settings = load_config(config_file, environ={
        "RAG_TOP_K": "3",
        "RAG_MIN_SIMILARITY": "0.75",
        "EMBEDDING_MODEL": "text-embedding-3-large",
        "EMBEDDING_DIMENSIONS": "3072",
        "EMBEDDING_MAX_RETRIES": "5",
        "LLM_MODEL": "gpt-4o",
    })

    assert settings.rag.top_k == 3
    assert settings.rag.min_similarity == 0.75
    assert settings.semantic_search.min_similarity == 0.75
    assert settings.embedding.model == "text-embedding-3-large"
    assert settings.embedding.dimension == 3072
    assert settings.generator.max_retries == 5
    assert settings.llm.model == "gpt-4o"


def test_invalid_environment_values_are_ignored(config_file):
    settings = load_config(config_file, environ={"RAG_TOP_K": "many", "EMBEDDING_CHUNK_SIZE": ""})
    assert settings.rag.top_k == 8
    assert settings.generator.chunk_size == 8000


def test_negative_max_retries_are_ignored(config_file):
    settings = load_config(config_file, environ={"EMBEDDING_MAX_RETRIES": "-1"})
    assert settings.generator.max_retries == 3


def test_missing_explicit_file(tmp_path):
    with pytest.raises(FileNotFoundError):
        load_config(tmp_path / "absent.yaml", environ={})


def test_project_config_loads():
    settings = load_config(environ={})
    assert settings.vector_store.collection_name == "document_embeddings"
    assert settings.rag.top_k == 5
