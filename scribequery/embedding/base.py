from __future__ import annotations

from typing import Protocol

from scribequery.vector.base import Vector


class EmbeddingProvider(Protocol):
    def create_embedding(self, text: str) -> Vector:
        ...

    def create_embeddings(self, texts: list[str]) -> list[Vector]:
        ...

    def is_enabled(self) -> bool:
        ...
