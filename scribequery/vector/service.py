from __future__ import annotations

import logging
from typing import Any, Iterable

from scribequery.config import Settings
from scribequery.embedding.service import EmbeddingService
from scribequery.errors import ValidationError
from scribequery.vector.base import DEFAULT_TOP_K, Payload, Point, SearchResult, VectorStore

logger = logging.getLogger(__name__)


def get_vector_store(settings: Settings) -> VectorStore:
    if settings.vector_provider == "pinecone":
        from scribequery.vector.pinecone_store import PineconeVectorStore

        return PineconeVectorStore(settings)

    if settings.vector_provider == "weaviate":
        from scribequery.vector.weaviate_store import WeaviateVectorStore

        return WeaviateVectorStore(settings)

    if settings.vector_provider != "memory":
        raise ValueError(f"unsupported vector provider: {settings.vector_provider!r} (memory, pinecone, weaviate)")

    from scribequery.vector.memory_store import InMemoryVectorStore

    return InMemoryVectorStore()


class VectorIndexService:
    """Embeds text and routes it through the configured vector store."""

    def __init__(self, store: VectorStore, embedder: EmbeddingService) -> None:
        self.store = store
        self.embedder = embedder

    def index_documents(self, collection: str, docs: Iterable[dict[str, Any]], wait: bool = False) -> int:
        docs = [d for d in docs if d.get("text") and d.get("id")]
        if not docs:
            raise ValidationError("at least one document with id and text is required")

        vectors = self.embedder.create_embeddings([d["text"] for d in docs])
        points = [Point(id=str(doc["id"]), vector=vec, payload=dict(doc)) for doc, vec in zip(docs, vectors)]
        self.store.upsert_points(collection, points, wait=wait)
        logger.info("indexed documents", extra={"data": {"collection": collection, "count": len(points)}})
        return len(points)

    def search(
        self,
        collection: str,
        query: str,
        top_k: int = DEFAULT_TOP_K,
        score_threshold: float | None = None,
        filter: Payload | None = None,
    ) -> list[SearchResult]:
        vector = self.embedder.create_embedding(query)
        return self.store.search(
            collection,
            vector,
            top_k=top_k,
            score_threshold=score_threshold,
            filter=filter,
            with_payload=True,
        )
