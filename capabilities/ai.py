from __future__ import annotations

from typing import Any

from google import genai
from google.genai import types

from capabilities.base import CompletionCapability
from core.errors import CapabilityUnavailable, DownstreamFailure

DEFAULT_MODEL = "gemini-1.5-flash"


class GeminiCompletionClient:
    name = "gemini"

    def __init__(
        self,
        api_key: str | None = None,
        model: str = DEFAULT_MODEL,
        timeout_sec: float = 20.0,
        client: Any | None = None,
    ) -> None:
        self.api_key = (api_key or "").strip()
        self.model = (model or DEFAULT_MODEL).strip()
        self.timeout_sec = float(timeout_sec)
        self._client: Any = client

    @property
    def available(self) -> bool:
        return self._client is not None or bool(self.api_key)

    def _ensure_client(self) -> Any:
        if self._client is not None:
            return self._client
        if not self.api_key:
            raise CapabilityUnavailable("ai", "api key is not configured")
        self._client = genai.Client(
            api_key=self.api_key,
            http_options=types.HttpOptions(timeout=int(self.timeout_sec * 1000)),
        )
        return self._client

    def complete(self, query: str) -> str:
        client = self._ensure_client()
        print(f"ai-completion model={self.model} query={query[:100]!r}")
        try:
            response = client.models.generate_content(model=self.model, contents=query)
        except Exception as exc:  # noqa: BLE001
            raise DownstreamFailure(f"gemini request failed: {exc}") from exc
        text = getattr(response, "text", None)
        if not isinstance(text, str) or not text.strip():
            raise DownstreamFailure("gemini returned an empty response")
        return text


def create_completion_client(config: dict[str, Any]) -> CompletionCapability | None:
    ai_conf = config.get("ai", {})
    if not bool(ai_conf.get("enabled", True)):
        return None
    api_key = str(ai_conf.get("api_key", "") or "").strip()
    if not api_key:
        print("ai-disabled reason=missing_api_key")
        return None
    return GeminiCompletionClient(
        api_key=api_key,
        model=str(ai_conf.get("model", DEFAULT_MODEL) or DEFAULT_MODEL),
        timeout_sec=float(ai_conf.get("timeout_sec", 20)),
    )
