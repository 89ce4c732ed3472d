import pytest

from scribequery.config import Settings


@pytest.fixture
def settings():
    return Settings(
        vector_provider="memory",
        embedding_provider="hash",
        openai_api_key="sk-test",
        pinecone_api_key="pc-test",
        embedding_dimension=8,
        weaviate_host="localhost:8080",
    )
