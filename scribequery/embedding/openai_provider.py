from __future__ import annotations

import logging

import requests

from scribequery.config import Settings
from scribequery.errors import ProviderDisabled
from scribequery.vector.base import Vector

logger = logging.getLogger(__name__)

DEFAULT_MODEL = "text-embedding-3-small"


class OpenAIEmbeddingProvider:
    """Embeddings from any OpenAI-compatible ``/embeddings`` endpoint."""

    def __init__(self, settings: Settings, session: requests.Session | None = None) -> None:
        self.api_base = settings.embedding_api_base.rstrip("/")
        self.api_key = settings.openai_api_key
        self.model = settings.embedding_model or DEFAULT_MODEL
        self.timeout = settings.chat_timeout
        self.session = session or requests.Session()
        if self.is_enabled():
            logger.info("openai embeddings provider ready", extra={"data": {"model": self.model}})

    def is_enabled(self) -> bool:
        return bool(self.api_key)

    def create_embedding(self, text: str) -> Vector:
        return self.create_embeddings([text])[0]

    def create_embeddings(self, texts: list[str]) -> list[Vector]:
        if not self.is_enabled():
            raise ProviderDisabled("embedding provider is not enabled")

        response = self.session.post(
            f"{self.api_base}/embeddings",
            headers={
                "Authorization": f"Bearer {self.api_key}",
                "Content-Type": "application/json",
            },
            json={"model": self.model, "input": texts},
            timeout=self.timeout,
        )
        if response.status_code >= 300:
            raise RuntimeError(f"embeddings API returned {response.status_code}: {_error_message(response)}")

        data = response.json().get("data") or []
        if len(data) != len(texts):
            raise RuntimeError(f"embeddings API returned {len(data)} vectors for {len(texts)} inputs")
        ordered = sorted(data, key=lambda item: item.get("index", 0))
        vectors = [item["embedding"] for item in ordered]
        if any(not v for v in vectors):
            raise RuntimeError("embeddings API returned an empty vector")
        return vectors


def _error_message(response: requests.Response) -> str:
    try:
        return response.json()["error"]["message"]
    except (ValueError, KeyError, TypeError):
        return response.text[:200]
