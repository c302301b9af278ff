"""Google Gemini backend for embeddings and qualitative judgment.

Talks to the Generative Language REST API directly:

* ``POST /models/{model}:embedContent`` for embeddings.
* ``POST /models/{model}:generateContent`` with a JSON response MIME type
  for judgments, parsed by the same :func:`parse_judgment` the Ollama
  backend uses.

Only rate limiting (429) and overload (503) responses are retried; any
other HTTP error fails the call at once.
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional, Sequence

import httpx
from tenacity import (
    retry,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential,
)

from ..config.settings import settings
from ..core.models import Document, Embedding
from ..exceptions import BackendConfigError, MalformedJudgment, OracleError
from ..qualification.models import JudgmentResult
from ..utils.logging import get_logger
from .base import EmbeddingProvider, JudgmentOracle
from .ollama import build_judgment_prompt, parse_judgment

logger = get_logger(__name__)

RETRYABLE_STATUS = {429, 503}


def _is_retryable(exc: BaseException) -> bool:
    if isinstance(exc, httpx.TransportError):
        return True
    return isinstance(exc, httpx.HTTPStatusError) and exc.response.status_code in RETRYABLE_STATUS


class GeminiClient(EmbeddingProvider, JudgmentOracle):
    """Gemini HTTP client used both as embedding provider and judgment oracle."""

    def __init__(
        self,
        api_key: Optional[str] = None,
        model: Optional[str] = None,
        embedding_model: Optional[str] = None,
        base_url: Optional[str] = None,
        client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        self.api_key = api_key or settings.gemini_api_key
        if not self.api_key:
            raise BackendConfigError("Gemini backend needs an API key (set GEMINI_API_KEY)")
        self.model = model or settings.gemini_model
        self.embedding_model = embedding_model or settings.gemini_embedding_model
        self.base_url = (base_url or settings.gemini_base_url).rstrip("/")
        self.client = client or httpx.AsyncClient(
            timeout=settings.gemini_request_timeout,
            headers={"x-goog-api-key": self.api_key},
        )
        self.calls: Dict[str, int] = {"embed": 0, "generate": 0}

    @retry(
        stop=stop_after_attempt(settings.max_retries),
        wait=wait_exponential(multiplier=settings.retry_backoff_factor, min=2, max=settings.retry_max_wait),
        retry=retry_if_exception(_is_retryable),
        reraise=True,
    )
    async def _post(self, path: str, payload: Dict[str, Any]) -> Dict[str, Any]:
        logger.debug("Gemini request", extra={"path": path})
        response = await self.client.post(f"{self.base_url}{path}", json=payload)
        if response.status_code in RETRYABLE_STATUS:
            logger.warning(
                "Gemini rate limited or overloaded, backing off",
                extra={"status_code": response.status_code},
            )
        response.raise_for_status()
        return response.json()

    async def embed(self, text: str) -> Optional[Embedding]:
        if not text or not text.strip():
            return None
        self.calls["embed"] += 1
        payload = {
            "model": f"models/{self.embedding_model}",
            "content": {"parts": [{"text": text}]},
        }
        try:
            data = await self._post(f"/models/{self.embedding_model}:embedContent", payload)
        except (httpx.HTTPError, ValueError) as exc:
            logger.warning(f"Embedding failed: {exc}", extra={"model": self.embedding_model})
            return None
        values = (data.get("embedding") or {}).get("values")
        return [float(x) for x in values] if values else None

    async def judge(
        self,
        document: Document,
        topics: Sequence[str],
        correction: bool = False,
    ) -> JudgmentResult:
        payload = {
            "contents": [{"role": "user", "parts": [{"text": build_judgment_prompt(document, topics, correction)}]}],
            "generationConfig": {"responseMimeType": "application/json"},
        }
        self.calls["generate"] += 1
        try:
            data = await self._post(f"/models/{self.model}:generateContent", payload)
        except httpx.HTTPStatusError as exc:
            raise OracleError(f"Gemini returned HTTP {exc.response.status_code}") from exc
        except httpx.HTTPError as exc:
            raise OracleError(f"Gemini request failed: {exc}") from exc
        except ValueError as exc:
            raise MalformedJudgment(f"Gemini response is not JSON: {exc}") from exc
        return parse_judgment(self._response_text(data))

    @staticmethod
    def _response_text(data: Dict[str, Any]) -> str:
        candidates = data.get("candidates") or []
        if not candidates:
            reason = (data.get("promptFeedback") or {}).get("blockReason", "no candidates")
            raise OracleError(f"Gemini returned no answer ({reason})")
        parts = (candidates[0].get("content") or {}).get("parts") or []
        return "".join(p.get("text", "") for p in parts)

    async def list_models(self) -> List[Dict[str, Any]]:
        """Check the key and return the models it can use."""
        response = await self.client.get(f"{self.base_url}/models")
        response.raise_for_status()
        return [
            {**m, "name": m.get("name", "").removeprefix("models/")}
            for m in response.json().get("models", [])
        ]

    async def close(self) -> None:
        await self.client.aclose()

    async def __aenter__(self) -> "GeminiClient":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()
