from __future__ import annotations

import os
from dataclasses import dataclass


def _int_env(name: str, default: int) -> int:
    raw = os.getenv(name, "").strip()
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError as exc:
        raise ValueError(f"{name} must be an integer, got {raw!r}") from exc


def _float_env(name: str, default: float) -> float:
    raw = os.getenv(name, "").strip()
    if not raw:
        return default
    try:
        return float(raw)
    except ValueError as exc:
        raise ValueError(f"{name} must be a number, got {raw!r}") from exc


@dataclass(frozen=True)
class Settings:
    app_env: str = "dev"
    app_host: str = "0.0.0.0"
    app_port: int = 8000
    api_base_path: str = "/api/v1"
    origins: str = "*"

    log_level: str = "INFO"
    log_format: str = "text"

    vector_provider: str = "memory"
    vector_timeout: float = 30.0

    pinecone_api_key: str = ""
    pinecone_host: str = ""
    pinecone_namespace: str = ""
    pinecone_region: str = "us-east-1"
    pinecone_cloud: str = "aws"
    pinecone_dimension: int = 1536
    pinecone_metric: str = "cosine"
    pinecone_source_tag: str = ""

    weaviate_scheme: str = "http"
    weaviate_host: str = ""
    weaviate_api_key: str = ""
    weaviate_grpc_host: str = ""

    embedding_provider: str = "openai"
    embedding_model: str = "text-embedding-3-small"
    embedding_dimension: int = 1536
    embedding_api_base: str = "https://api.openai.com/v1"

    openai_api_key: str = ""
    openai_model: str = "gpt-4o-mini"
    openai_api_base: str = "https://api.openai.com/v1"

    chat_provider: str = "openai"
    local_host: str = "http://localhost:11434/v1"
    local_model: str = "llama3.1"
    chat_timeout: float = 60.0

    @classmethod
    def from_env(cls) -> "Settings":
        return cls(
            app_env=os.getenv("APP_ENV", "dev"),
            app_host=os.getenv("APP_HOST", "0.0.0.0"),
            app_port=_int_env("APP_PORT", 8000),
            api_base_path=os.getenv("API_BASE_PATH", "/api/v1"),
            origins=os.getenv("ORIGINS", "") or "*",
            log_level=os.getenv("LOG_LEVEL", "INFO"),
            log_format=os.getenv("LOG_FORMAT", "text"),
            vector_provider=os.getenv("VECTOR_PROVIDER", "memory").strip().lower(),
            vector_timeout=_float_env("VECTOR_TIMEOUT", 30.0),
            pinecone_api_key=os.getenv("PINECONE_API_KEY", ""),
            pinecone_host=os.getenv("PINECONE_HOST", ""),
            pinecone_namespace=os.getenv("PINECONE_NAMESPACE", ""),
            pinecone_region=os.getenv("PINECONE_REGION", "") or "us-east-1",
            pinecone_cloud=os.getenv("PINECONE_CLOUD", "") or "aws",
            pinecone_dimension=_int_env("PINECONE_DIMENSION", 1536),
            pinecone_metric=os.getenv("PINECONE_METRIC", "") or "cosine",
            pinecone_source_tag=os.getenv("PINECONE_SOURCE_TAG", ""),
            weaviate_scheme=os.getenv("WEAVIATE_SCHEME", "") or "http",
            weaviate_host=os.getenv("WEAVIATE_HOST", ""),
            weaviate_api_key=os.getenv("WEAVIATE_API_KEY", ""),
            weaviate_grpc_host=os.getenv("WEAVIATE_GRPC_HOST", ""),
            embedding_provider=os.getenv("EMBEDDING_PROVIDER", "openai").strip().lower(),
            embedding_model=os.getenv("EMBEDDING_MODEL", "text-embedding-3-small"),
            embedding_dimension=_int_env("EMBEDDING_DIMENSION", 1536),
            embedding_api_base=os.getenv("EMBEDDING_API_BASE", "") or os.getenv("OPENAI_API_BASE", "") or "https://api.openai.com/v1",
            openai_api_key=os.getenv("OPENAI_API_KEY", ""),
            openai_model=os.getenv("OPENAI_MODEL", "") or "gpt-4o-mini",
            openai_api_base=os.getenv("OPENAI_API_BASE", "") or "https://api.openai.com/v1",
            chat_provider=os.getenv("CHAT_PROVIDER", os.getenv("PROVIDER", "openai")).strip().lower() or "openai",
            local_host=os.getenv("LOCAL_HOST", "") or "http://localhost:11434/v1",
            local_model=os.getenv("LOCAL_MODEL", "") or "llama3.1",
            chat_timeout=_float_env("CHAT_TIMEOUT", 60.0),
        )

    @property
    def cors_origins(self) -> list[str]:
        return [o.strip() for o in self.origins.split(",") if o.strip()] or ["*"]
