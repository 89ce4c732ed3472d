from __future__ import annotations

import json
import logging
from typing import Any, Dict, Iterator, List

import requests

from scribequery.chat.base import ChatMessage, ChatResponse
from scribequery.config import Settings
from scribequery.errors import ProviderDisabled

logger = logging.getLogger(__name__)

PROVIDER_OPENAI = "openai"
PROVIDER_LOCAL = "local"


class OpenAIChatProvider:
    """Chat completions against an OpenAI-compatible API.

    ``local`` targets a self-hosted server (e.g. Ollama) at ``LOCAL_HOST``
    and needs no API key; ``openai`` requires ``OPENAI_API_KEY``.
    """

    def __init__(self, settings: Settings, provider: str = PROVIDER_OPENAI, session: requests.Session | None = None) -> None:
        if provider not in (PROVIDER_OPENAI, PROVIDER_LOCAL):
            raise ValueError(f"unsupported chat provider: {provider}")
        self.provider = provider
        if provider == PROVIDER_LOCAL:
            self.api_base = settings.local_host.rstrip("/")
            self.api_key = ""
            self.model = settings.local_model
        else:
            self.api_base = settings.openai_api_base.rstrip("/")
            self.api_key = settings.openai_api_key
            self.model = settings.openai_model
        self.timeout = settings.chat_timeout
        self.session = session or requests.Session()

    def is_enabled(self) -> bool:
        if self.provider == PROVIDER_LOCAL:
            return bool(self.api_base)
        return bool(self.api_key)

    def complete(self, messages: list[ChatMessage]) -> ChatResponse:
        response = self._post(messages, stream=False)
        try:
            body = response.json()
            choice = body["choices"][0]
            return ChatResponse(
                content=choice["message"].get("content") or "",
                model=body.get("model", self.model),
                finish_reason=choice.get("finish_reason"),
                usage=body.get("usage"),
            )
        finally:
            response.close()

    def stream(self, messages: list[ChatMessage]) -> Iterator[str]:
        response = self._post(messages, stream=True)
        try:
            for line in response.iter_lines(decode_unicode=True):
                if not line or not line.startswith("data:"):
                    continue
                data = line[len("data:"):].strip()
                if data == "[DONE]":
                    break
                chunk = json.loads(data)
                if chunk.get("error"):
                    raise RuntimeError(str(chunk["error"].get("message", chunk["error"])))
                for choice in chunk.get("choices") or []:
                    content = (choice.get("delta") or {}).get("content")
                    if content:
                        yield content
        finally:
            response.close()

    def _post(self, messages: list[ChatMessage], stream: bool) -> requests.Response:
        if not self.is_enabled():
            raise ProviderDisabled(f"chat provider {self.provider!r} is not configured")

        headers: Dict[str, str] = {"Content-Type": "application/json"}
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"
        payload: Dict[str, Any] = {
            "model": self.model,
            "messages": _to_wire(messages),
            "stream": stream,
        }

        logger.debug("chat completion request", extra={"data": {"model": self.model, "stream": stream}})
        response = self.session.post(
            f"{self.api_base}/chat/completions",
            headers=headers,
            json=payload,
            timeout=self.timeout,
            stream=stream,
        )
        if response.status_code >= 300:
            detail = response.text[:200]
            response.close()
            raise RuntimeError(f"chat API returned {response.status_code}: {detail}")
        return response


def _to_wire(messages: list[ChatMessage]) -> List[Dict[str, str]]:
    return [{"role": m.role, "content": m.content} for m in messages]
