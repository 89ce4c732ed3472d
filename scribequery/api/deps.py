from __future__ import annotations

from dataclasses import dataclass

from fastapi import Request

from scribequery.chat.service import ChatService, get_chat_provider
from scribequery.config import Settings
from scribequery.embedding.service import EmbeddingService, get_embedding_provider
from scribequery.vector.base import VectorStore
from scribequery.vector.service import VectorIndexService, get_vector_store


@dataclass
class Services:
    settings: Settings
    vector_store: VectorStore
    embeddings: EmbeddingService
    vector_index: VectorIndexService
    chat: ChatService

    def close(self) -> None:
        close = getattr(self.vector_store, "close", None)
        if close is not None:
            close()


def build_services(settings: Settings) -> Services:
    vector_store = get_vector_store(settings)
    embeddings = EmbeddingService(get_embedding_provider(settings))
    return Services(
        settings=settings,
        vector_store=vector_store,
        embeddings=embeddings,
        vector_index=VectorIndexService(store=vector_store, embedder=embeddings),
        chat=ChatService(get_chat_provider(settings)),
    )


def get_services(request: Request) -> Services:
    return request.app.state.services
