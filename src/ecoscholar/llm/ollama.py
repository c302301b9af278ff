"""Ollama backend for embeddings and qualitative judgment.

``OllamaClient`` implements both :class:`EmbeddingProvider` and
:class:`JudgmentOracle` against a local Ollama server:

* ``POST /api/embeddings`` for document, query and rule embeddings.
* ``POST /api/generate`` with ``format="json"`` for judgments.

Reasoning models wrap their answer in ``<think>`` blocks or emit an
``|im_sep|`` separator before the final answer; both are stripped
before the JSON payload is parsed.  OpenThinker-style models also need
their chat template applied to the raw prompt.
"""

from __future__ import annotations

import json
import re
from typing import Any, Dict, List, Optional, Sequence

import httpx
from pydantic import ValidationError
from tenacity import (
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from ..config.defaults import FALLBACK_TOPICS
from ..config.settings import settings
from ..core.models import Document, Embedding
from ..exceptions import MalformedJudgment, OracleError
from ..qualification.models import JudgmentResult
from ..utils.logging import get_logger
from .base import EmbeddingProvider, JudgmentOracle, format_topics

logger = get_logger(__name__)

_THINK_BLOCK = re.compile(r"<think>[\s\S]*?</think>", re.IGNORECASE)
_THINK_CLOSE = re.compile(r"</think>", re.IGNORECASE)
_CODE_FENCE = re.compile(r"```(?:json)?", re.IGNORECASE)
_STOP_TOKENS = ["<|im_end|>", "<|endoftext|>", "</s>"]

_TRANSIENT = (httpx.TransportError, httpx.HTTPStatusError)


def clean_think_tags(text: str) -> str:
    """Strip reasoning preambles and return the model's final answer."""
    if not text:
        return ""
    for separator in ("<|im_sep|>", "|im_sep|"):
        if separator in text:
            return text.split(separator)[-1].strip()
    cleaned = _THINK_BLOCK.sub("", text)
    cleaned = _THINK_CLOSE.sub("", cleaned)
    return cleaned.strip()


def parse_judgment(raw: str) -> JudgmentResult:
    """Parse a raw generation into a normalized :class:`JudgmentResult`."""
    text = _CODE_FENCE.sub("", clean_think_tags(raw)).strip()
    try:
        data = json.loads(text)
    except json.JSONDecodeError as exc:
        raise MalformedJudgment(f"Judgment is not valid JSON: {exc}") from exc
    if not isinstance(data, dict):
        raise MalformedJudgment(f"Judgment must be a JSON object, got {type(data).__name__}")
    try:
        return JudgmentResult(**data)
    except ValidationError as exc:
        raise MalformedJudgment(f"Judgment fields invalid: {exc.error_count()} error(s)") from exc


def build_judgment_prompt(document: Document, topics: Sequence[str], correction: bool = False) -> str:
    """Build the grading prompt; ``correction`` appends the zero-probability rebuttal."""
    topics_str = format_topics(topics, FALLBACK_TOPICS)
    lines: List[str] = [
        "Analyze the following scientific paper and return valid JSON.",
        "",
        "PAPER DATA",
        f"Title: {document.title}",
        f"Abstract: {document.abstract}",
        "",
        "CRITERIA",
        f"The paper has passed semantic pre-screening and MUST be evaluated for relevance to: {topics_str}",
        "",
        "SCORING GUIDELINES",
        '- "score": Overall relevance to the topics (0-10).',
        '- "probability": DISCOVERY PROBABILITY (0-10).',
        "   - 0: FALSE POSITIVE. Completely irrelevant (e.g. software, administration, geology).",
        "   - 1-4: General Mention/Review.",
        "   - 5-10: RELEVANT. Specific plants/compounds mentioned in a medical/biological context.",
        "",
        "IMPORTANT: If the abstract mentions specific plants, extracts, or phytochemicals being tested or "
        "discussed, 'probability' MUST be at least 5. Do not rate as 0 if keywords are present.",
        "",
        "REQUIRED JSON FORMAT",
        "{",
        '    "score": 0,',
        '    "qualified": false,',
        '    "summary": "Markdown bullets: Mechanistic Insight, Evidence Gap, Clinical Relevance",',
        '    "tags": ["tag1", "tag2"],',
        '    "phytochemicals": "List or \'None\'",',
        '    "plants": "List or \'None\'",',
        '    "possible_plants": "List or \'None\'",',
        '    "probability": 0',
        "}",
        "",
        "Respond with JSON only.",
    ]
    if correction:
        lines += [
            "",
            "CRITICAL CORRECTION: You previously assigned a probability of 0 to this paper. This paper passed "
            "semantic pre-filters. Please re-read the abstract carefully. If ANY of the target topics are "
            "mentioned, the probability CANNOT be 0. Assign a score of at least 5 if specific compounds are named.",
        ]
    return "\n".join(lines)


class OllamaClient(EmbeddingProvider, JudgmentOracle):
    """Ollama HTTP client used both as embedding provider and judgment oracle."""

    def __init__(
        self,
        base_url: Optional[str] = None,
        model: Optional[str] = None,
        embedding_model: Optional[str] = None,
        client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        self.base_url = (base_url or settings.ollama_base_url).rstrip("/")
        self.model = model or settings.ollama_model
        self.embedding_model = embedding_model or settings.ollama_embedding_model
        self.client = client or httpx.AsyncClient(
            timeout=settings.ollama_request_timeout,
            limits=httpx.Limits(max_keepalive_connections=5, max_connections=10),
        )
        self.calls: Dict[str, int] = {"embed": 0, "generate": 0}

    @property
    def is_openthinker(self) -> bool:
        return "openthinker" in self.model.lower()

    @retry(
        stop=stop_after_attempt(settings.max_retries),
        wait=wait_exponential(multiplier=settings.retry_backoff_factor, min=1, max=settings.retry_max_wait),
        retry=retry_if_exception_type(_TRANSIENT),
        reraise=True,
    )
    async def _post(self, path: str, payload: Dict[str, Any]) -> Dict[str, Any]:
        logger.debug("Ollama request", extra={"path": path, "model": payload.get("model")})
        response = await self.client.post(f"{self.base_url}{path}", json=payload)
        response.raise_for_status()
        return response.json()

    async def embed(self, text: str) -> Optional[Embedding]:
        if not text or not text.strip():
            return None
        self.calls["embed"] += 1
        try:
            data = await self._post("/api/embeddings", {"model": self.embedding_model, "prompt": text})
        except (httpx.HTTPError, ValueError) as exc:
            logger.warning(f"Embedding failed: {exc}", extra={"model": self.embedding_model})
            return None
        embedding = data.get("embedding") or data.get("embeddings")
        if embedding and isinstance(embedding[0], list):
            embedding = embedding[0]
        return [float(x) for x in embedding] if embedding else None

    def _wrap_prompt(self, prompt: str) -> str:
        if not self.is_openthinker:
            return prompt
        return (
            "<|im_start|>system\nYou are a research analysis engine. Output strict JSON.\n<|im_end|>\n"
            f"<|im_start|>user\n{prompt}\n<|im_end|>\n<|im_start|>assistant\n"
        )

    async def judge(
        self,
        document: Document,
        topics: Sequence[str],
        correction: bool = False,
    ) -> JudgmentResult:
        prompt = self._wrap_prompt(build_judgment_prompt(document, topics, correction))
        payload = {
            "model": self.model,
            "prompt": prompt,
            "format": "json",
            "stream": False,
            "options": {"stop": _STOP_TOKENS},
        }
        self.calls["generate"] += 1
        try:
            data = await self._post("/api/generate", payload)
        except httpx.HTTPStatusError as exc:
            raise OracleError(f"Ollama returned HTTP {exc.response.status_code}") from exc
        except httpx.HTTPError as exc:
            raise OracleError(f"Ollama request failed: {exc}") from exc
        except ValueError as exc:
            raise MalformedJudgment(f"Ollama response is not JSON: {exc}") from exc
        return parse_judgment(data.get("response", ""))

    async def list_models(self) -> List[Dict[str, Any]]:
        """Ping the server and return the installed models."""
        response = await self.client.get(f"{self.base_url}/api/tags")
        response.raise_for_status()
        return response.json().get("models", [])

    async def close(self) -> None:
        await self.client.aclose()

    async def __aenter__(self) -> "OllamaClient":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()
