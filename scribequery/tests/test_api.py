import json

import pytest
from fastapi.testclient import TestClient

from scribequery.api.deps import Services
from scribequery.chat.service import ChatService
from scribequery.embedding.hash_provider import HashEmbeddingProvider
from scribequery.embedding.service import EmbeddingService
from scribequery.main import create_app
from scribequery.tests.fakes import FakeChatProvider
from scribequery.vector.memory_store import InMemoryVectorStore
from scribequery.vector.service import VectorIndexService


def _services(settings, chat_provider):
    store = InMemoryVectorStore()
    embeddings = EmbeddingService(HashEmbeddingProvider(dimension=8))
    return Services(
        settings=settings,
        vector_store=store,
        embeddings=embeddings,
        vector_index=VectorIndexService(store=store, embedder=embeddings),
        chat=ChatService(chat_provider),
    )


@pytest.fixture
def chat_provider():
    return FakeChatProvider(["Hel", "lo"])


@pytest.fixture
def client(settings, chat_provider):
    return TestClient(create_app(services=_services(settings, chat_provider)))


def test_health(client):
    resp = client.get("/health")
    assert resp.status_code == 200
    assert resp.json() == {"status": "ok", "vector_store": "memory"}


def test_chat_completion(client):
    resp = client.post("/api/v1/chats", json={"content": "hi"})
    assert resp.status_code == 200
    assert resp.json()["content"] == "Hello"


def test_chat_stream_frames(client):
    resp = client.post("/api/v1/chats/stream", json={"role": "user", "content": "hi"})
    assert resp.status_code == 200
    assert resp.headers["content-type"].startswith("text/event-stream")
    assert resp.text == (
        'data: {"content": "Hel", "done": false}\n\n'
        'data: {"content": "lo", "done": true}\n\n'
        "data: [DONE]\n\n"
    )


def test_chat_stream_failure_sends_error_event(settings):
    client = TestClient(create_app(services=_services(settings, FakeChatProvider(["a", "b"], fail_after=1))))
    resp = client.post("/api/v1/chats/stream", json={"content": "hi"})
    assert resp.status_code == 200
    frames = resp.text.split("\n\n")
    assert frames[0] == 'data: {"content": "a", "done": false}'
    assert frames[1].startswith("event: error")
    assert frames[2] == "data: [DONE]"


def test_chat_errors_carry_kind(settings, client):
    resp = client.post("/api/v1/chats", json={"role": "", "content": "hi"})
    assert resp.status_code == 400
    assert resp.json()["kind"] == "ValidationError"

    resp = client.post("/api/v1/chats/stream", json={})
    assert resp.status_code == 400
    assert resp.json()["kind"] == "ValidationError"

    disabled = TestClient(create_app(services=_services(settings, FakeChatProvider(enabled=False))))
    resp = disabled.post("/api/v1/chats/stream", json={"content": "hi"})
    assert resp.status_code == 503
    assert resp.json() == {"error": "chat provider is not enabled", "kind": "ProviderDisabled"}


def test_point_lifecycle(client):
    resp = client.post("/api/v1/collections", json={"collection_name": "docs", "vector_size": 3, "distance": "Euclid"})
    assert resp.json() == {"status": "ok", "collection_name": "docs", "vector_size": 3, "distance": "euclidean"}

    points = [
        {"id": "p1", "vector": [1, 0, 0], "payload": {"kind": "a", "meta": {"n": 1}}},
        {"id": "p2", "vector": [0, 1, 0], "payload": {"kind": "b"}},
    ]
    resp = client.put("/api/v1/collections/docs/points", json={"points": points, "wait": True})
    assert resp.json() == {"status": "ok", "upserted": 2}

    resp = client.post("/api/v1/collections/docs/points/search", json={"vector": [1, 0, 0], "limit": 1})
    [hit] = resp.json()["results"]
    assert hit["id"] == "p1"
    assert hit["payload"] == {"kind": "a", "meta": {"n": 1}}

    resp = client.post(
        "/api/v1/collections/docs/points/search", json={"vector": [1, 0, 0], "filter": {"kind": "b"}}
    )
    assert [r["id"] for r in resp.json()["results"]] == ["p2"]

    resp = client.post("/api/v1/collections/docs/points/get", json={"point_ids": ["p2", "p1"], "with_vector": True})
    assert [p["id"] for p in resp.json()["points"]] == ["p2", "p1"]
    assert resp.json()["points"][0]["vector"] == [0.0, 1.0, 0.0]

    resp = client.post("/api/v1/collections/docs/points/delete", json={"point_ids": ["p1"]})
    assert resp.json() == {"status": "ok", "deleted": 1}
    resp = client.post("/api/v1/collections/docs/points/get", json={"point_ids": ["p1"]})
    assert resp.json() == {"points": []}


def test_vector_errors(client):
    resp = client.post("/api/v1/collections/missing/points/search", json={"vector": [1.0]})
    assert resp.status_code == 502
    assert resp.json()["kind"] == "BackendUnavailable"

    resp = client.put("/api/v1/collections/docs/points", json={"points": []})
    assert resp.status_code == 400
    assert resp.json()["kind"] == "ValidationError"


def test_documents_and_query(client):
    client.post("/api/v1/collections", json={"collection_name": "notes", "vector_size": 8})
    docs = [
        {"id": "d1", "text": "vector databases"},
        {"id": "d2", "text": "streaming chat"},
        {"text": "no id, skipped"},
    ]
    resp = client.post("/api/v1/collections/notes/documents", json={"documents": docs})
    assert resp.json() == {"status": "ok", "indexed": 2, "collection": "notes"}

    resp = client.post("/api/v1/collections/notes/query", json={"query": "streaming chat", "limit": 1})
    [hit] = resp.json()["results"]
    assert hit["id"] == "d2"
    assert hit["payload"]["text"] == "streaming chat"
    assert hit["score"] == pytest.approx(1.0)


def test_request_logging(client, caplog):
    caplog.set_level("INFO", logger="scribequery")
    client.get("/health")
    records = [r for r in caplog.records if r.name == "scribequery.api.middleware"]
    assert records
    assert json.dumps(records[-1].data)
