import json
import logging

import pytest

from scribequery.config import Settings
from scribequery.logging_config import JsonFormatter, TextFormatter, setup_logging
from scribequery.vector.memory_store import InMemoryVectorStore
from scribequery.vector.service import get_vector_store


def test_from_env(monkeypatch):
    monkeypatch.setenv("VECTOR_PROVIDER", " Weaviate ")
    monkeypatch.setenv("APP_PORT", "9000")
    monkeypatch.setenv("ORIGINS", "http://a.test, http://b.test")
    monkeypatch.setenv("PINECONE_DIMENSION", "768")
    monkeypatch.setenv("EMBEDDING_DIMENSION", "384")
    settings = Settings.from_env()
    assert settings.vector_provider == "weaviate"
    assert settings.app_port == 9000
    assert settings.pinecone_dimension == 768
    assert settings.embedding_dimension == 384
    assert settings.cors_origins == ["http://a.test", "http://b.test"]


@pytest.mark.parametrize("name,value", [("APP_PORT", "not-a-port"), ("VECTOR_TIMEOUT", "30s")])
def test_from_env_rejects_malformed_numbers(monkeypatch, name, value):
    monkeypatch.setenv(name, value)
    with pytest.raises(ValueError, match=name):
        Settings.from_env()


def test_vector_store_factory(settings):
    assert isinstance(get_vector_store(settings), InMemoryVectorStore)
    with pytest.raises(ValueError):
        get_vector_store(Settings(vector_provider="chroma"))


def _record(**extra):
    record = logging.LogRecord("scribequery.test", logging.INFO, __file__, 1, "hello %s", ("world",), None)
    for key, value in extra.items():
        setattr(record, key, value)
    return record


def test_formatters_include_data():
    entry = json.loads(JsonFormatter().format(_record(data={"count": 2})))
    assert entry["message"] == "hello world"
    assert entry["data"] == {"count": 2}
    assert TextFormatter().format(_record(data={"count": 2})).endswith("hello world count=2")


def test_setup_logging_replaces_handlers():
    setup_logging("debug", "json")
    setup_logging("warning", "text")
    logger = logging.getLogger("scribequery")
    assert logger.level == logging.WARNING
    assert len(logger.handlers) == 1
    assert isinstance(logger.handlers[0].formatter, TextFormatter)
