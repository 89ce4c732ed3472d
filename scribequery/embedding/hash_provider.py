from __future__ import annotations

import hashlib

from scribequery.vector.base import Vector


class HashEmbeddingProvider:
    """Deterministic offline embeddings for local development.

    Vectors carry no semantics; equal texts map to equal vectors.
    """

    def __init__(self, dimension: int = 32) -> None:
        self.dimension = dimension

    def is_enabled(self) -> bool:
        return True

    def create_embedding(self, text: str) -> Vector:
        values: list[float] = []
        counter = 0
        while len(values) < self.dimension:
            digest = hashlib.sha256(f"{counter}:{text}".encode("utf-8")).digest()
            values.extend(((b / 255.0) * 2.0) - 1.0 for b in digest)
            counter += 1
        return values[: self.dimension]

    def create_embeddings(self, texts: list[str]) -> list[Vector]:
        return [self.create_embedding(t) for t in texts]
