import sys
import uuid
from pathlib import Path
from typing import Optional

import pytest

ROOT = Path(__file__).parent.parent.resolve()
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from docrank.providers import EmbeddingClient, LLMClient
from docrank.rag import QueryExpander, RAGConfig, RetrievalPipeline
from docrank.retrieval import (
    Document,
    EmbeddingGenerator,
    GeneratorConfig,
    KeywordSearch,
    LocalDocumentStore,
    Reranker,
    SemanticSearch,
    VectorStore,
    VectorStoreConfig,
)

# Each dimension counts occurrences of one feature word
FEATURES = ["abc", "invoice", "contract", "weather"]


def feature_vector(text: str) -> list[float]:
    lowered = text.lower()
    return [lowered.count(word) + 0.01 for word in FEATURES]


async def _no_sleep(delay: float):
    return None


class FakeEmbeddingClient(EmbeddingClient):
    """Deterministic embeddings from feature word counts."""

    def __init__(self, dims: int = len(FEATURES), model: str = "fake-embedding"):
        self._dims = dims
        self._model = model
        self.calls = []

    async def embed(self, text: str) -> list[float]:
        self.calls.append([text])
        return feature_vector(text)[:self._dims]

    async def embed_batch(self, texts: list[str]) -> list[list[float]]:
        self.calls.append(list(texts))
        return [feature_vector(t)[:self._dims] for t in texts]

    def dimensions(self) -> int:
        return self._dims

    def model_name(self) -> str:
        return self._model


class FakeLLM(LLMClient):
    """Canned LLM responses; raises error when one is given."""

    def __init__(self, text: str = "", json_response: Optional[dict] = None, error: Optional[Exception] = None):
        self.text = text
        self.json_response = json_response or {}
        self.error = error
        self.prompts = []

    async def generate_text(self, system_prompt, user_prompt, max_tokens=None):
        self.prompts.append(user_prompt)
        if self.error:
            raise self.error
        return self.text

    async def generate_json(self, system_prompt, user_prompt, schema=None, max_tokens=None):
        self.prompts.append(user_prompt)
        if self.error:
            raise self.error
        return self.json_response


@pytest.fixture
def chroma_client():
    import chromadb
    from chromadb.config import Settings

    return chromadb.EphemeralClient(settings=Settings(anonymized_telemetry=False))


@pytest.fixture
def vector_store(chroma_client):
    # EphemeralClient state is shared per process; isolate by collection
    config = VectorStoreConfig(collection_name=f"test_{uuid.uuid4().hex}")
    return VectorStore(config=config, client=chroma_client)


@pytest.fixture
def embedding_client():
    return FakeEmbeddingClient()


@pytest.fixture
def generator(embedding_client, vector_store):
    return EmbeddingGenerator(
        embedding_client,
        vector_store,
        config=GeneratorConfig(max_retries=0, base_delay=0.0),
        sleep=_no_sleep,
    )


@pytest.fixture
def document_store():
    return LocalDocumentStore()


@pytest.fixture
def make_pipeline(generator, document_store):
    def factory(llm=None, store=None, config=None):
        store = store or document_store
        return RetrievalPipeline(
            embedding_generator=generator,
            semantic_search=SemanticSearch(generator.vector_store),
            document_store=store,
            keyword_search=KeywordSearch(store),
            reranker=Reranker(llm),
            query_expander=QueryExpander(llm),
            config=config or RAGConfig(),
        )

    return factory


INVOICE_CORPUS = [
    Document(id="d1", tenant_id="t1", text="ABC company invoices for March", type="invoice", client_company_id="abc"),
    Document(id="d2", tenant_id="t1", text="Invoice from XYZ corp", type="invoice", client_company_id="xyz"),
    Document(id="d3", tenant_id="t1", text="ABC company contract renewal", type="contract", client_company_id="abc"),
    Document(id="d4", tenant_id="t1", text="Weather report for the week", type="report"),
    Document(id="other", tenant_id="t2", text="ABC company invoices for March", type="invoice"),
]


@pytest.fixture
def invoice_corpus():
    return [Document.from_dict(d.to_dict()) for d in INVOICE_CORPUS]
