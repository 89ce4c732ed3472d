from __future__ import annotations

import logging

from scribequery.config import Settings
from scribequery.embedding.base import EmbeddingProvider
from scribequery.errors import BackendUnavailable, ProviderDisabled, ScribeQueryError, ValidationError
from scribequery.vector.base import Vector

logger = logging.getLogger(__name__)


def get_embedding_provider(settings: Settings) -> EmbeddingProvider:
    if settings.embedding_provider == "hash":
        from scribequery.embedding.hash_provider import HashEmbeddingProvider

        return HashEmbeddingProvider(dimension=settings.embedding_dimension)

    from scribequery.embedding.openai_provider import OpenAIEmbeddingProvider

    return OpenAIEmbeddingProvider(settings)


class EmbeddingService:
    def __init__(self, provider: EmbeddingProvider) -> None:
        self.provider = provider

    def is_enabled(self) -> bool:
        return self.provider.is_enabled()

    def create_embedding(self, text: str) -> Vector:
        if not text or not text.strip():
            raise ValidationError("text cannot be empty")
        self._require_enabled()

        logger.debug("creating embedding", extra={"data": {"text_length": len(text)}})
        try:
            embedding = self.provider.create_embedding(text)
        except ScribeQueryError:
            raise
        except Exception as exc:
            logger.error("failed to create embedding: %s", exc)
            raise BackendUnavailable("create_embedding", None, exc) from exc

        logger.debug("embedding created", extra={"data": {"dimension": len(embedding)}})
        return embedding

    def create_embeddings(self, texts: list[str]) -> list[Vector]:
        """Embed a batch; one vector per input, in input order."""
        if not texts:
            raise ValidationError("texts cannot be empty")
        if any(not t or not t.strip() for t in texts):
            raise ValidationError("texts must not contain empty entries")
        self._require_enabled()

        logger.debug("creating embeddings", extra={"data": {"text_count": len(texts)}})
        try:
            embeddings = self.provider.create_embeddings(texts)
        except ScribeQueryError:
            raise
        except Exception as exc:
            logger.error("failed to create embeddings: %s", exc)
            raise BackendUnavailable("create_embeddings", None, exc) from exc

        if len(embeddings) != len(texts):
            raise BackendUnavailable(
                "create_embeddings", None, RuntimeError(f"got {len(embeddings)} vectors for {len(texts)} texts")
            )
        return embeddings

    def _require_enabled(self) -> None:
        if not self.provider.is_enabled():
            raise ProviderDisabled("embedding provider is not enabled")
