from dataclasses import replace

import pytest

from scribequery.embedding.hash_provider import HashEmbeddingProvider
from scribequery.embedding.openai_provider import OpenAIEmbeddingProvider
from scribequery.embedding.service import EmbeddingService, get_embedding_provider
from scribequery.errors import BackendUnavailable, ProviderDisabled, ValidationError
from scribequery.tests.fakes import FakeResponse, FakeSession


class CountingProvider:
    def __init__(self, enabled=True, vectors=None, error=None):
        self.enabled = enabled
        self.vectors = vectors
        self.error = error
        self.calls = 0

    def is_enabled(self):
        return self.enabled

    def create_embedding(self, text):
        return self.create_embeddings([text])[0]

    def create_embeddings(self, texts):
        self.calls += 1
        if self.error:
            raise self.error
        if self.vectors is not None:
            return self.vectors
        return [[float(len(t)), 1.0] for t in texts]


def test_hash_provider_is_deterministic():
    provider = HashEmbeddingProvider(dimension=40)
    a = provider.create_embedding("hello")
    assert len(a) == 40
    assert a == provider.create_embedding("hello")
    assert a != provider.create_embedding("world")
    assert all(-1.0 <= v <= 1.0 for v in a)


def test_factory_selects_provider(settings):
    assert isinstance(get_embedding_provider(settings), HashEmbeddingProvider)
    assert get_embedding_provider(settings).dimension == 8
    assert get_embedding_provider(replace(settings, pinecone_dimension=1536)).dimension == 8
    assert isinstance(get_embedding_provider(replace(settings, embedding_provider="openai")), OpenAIEmbeddingProvider)


def test_batch_returns_one_vector_per_input():
    service = EmbeddingService(CountingProvider())
    assert service.create_embeddings(["a", "abc"]) == [[1.0, 1.0], [3.0, 1.0]]


def test_empty_input_is_rejected_before_provider_call():
    provider = CountingProvider()
    service = EmbeddingService(provider)
    with pytest.raises(ValidationError):
        service.create_embedding("   ")
    with pytest.raises(ValidationError):
        service.create_embeddings([])
    with pytest.raises(ValidationError):
        service.create_embeddings(["ok", ""])
    assert provider.calls == 0


def test_disabled_provider():
    service = EmbeddingService(CountingProvider(enabled=False))
    with pytest.raises(ProviderDisabled):
        service.create_embedding("hi")
    assert not service.is_enabled()


def test_provider_failures_become_backend_errors():
    service = EmbeddingService(CountingProvider(error=RuntimeError("429 rate limited")))
    with pytest.raises(BackendUnavailable, match="rate limited"):
        service.create_embedding("hi")

    service = EmbeddingService(CountingProvider(vectors=[[1.0]]))
    with pytest.raises(BackendUnavailable):
        service.create_embeddings(["a", "b"])


def test_openai_provider_orders_by_index(settings):
    body = {"data": [{"index": 1, "embedding": [0.2]}, {"index": 0, "embedding": [0.1]}]}
    session = FakeSession(FakeResponse(body=body))
    provider = OpenAIEmbeddingProvider(settings, session=session)

    assert provider.create_embeddings(["first", "second"]) == [[0.1], [0.2]]
    url, kwargs = session.requests[0]
    assert url == "https://api.openai.com/v1/embeddings"
    assert kwargs["json"] == {"model": "text-embedding-3-small", "input": ["first", "second"]}
    assert kwargs["headers"]["Authorization"] == "Bearer sk-test"


def test_openai_provider_errors(settings):
    session = FakeSession(FakeResponse(status_code=401, body={"error": {"message": "bad key"}}))
    provider = OpenAIEmbeddingProvider(settings, session=session)
    with pytest.raises(RuntimeError, match="bad key"):
        provider.create_embedding("hi")

    disabled = OpenAIEmbeddingProvider(replace(settings, openai_api_key=""), session=session)
    with pytest.raises(ProviderDisabled):
        disabled.create_embedding("hi")
