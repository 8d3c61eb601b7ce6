"""OpenAI-compatible client for completions, embeddings and moderation."""

from dataclasses import dataclass, field
from typing import Any, Literal

import httpx

from learnhub.config import config
from learnhub.llm.errors import LLMDisabledError, ProviderError, ProviderRateLimitError
from learnhub.llm.retry import RetryPolicy, retrying
from learnhub.logging import get_logger

logger = get_logger(__name__)

SYSTEM_PROMPT = "You are an AI assistant helping with content curation and analysis."
MODERATION_MODEL = "text-moderation-latest"


@dataclass
class ModerationResult:
    """Outcome of a moderation check."""

    flagged: bool
    categories: dict[str, bool] = field(default_factory=dict)
    scores: dict[str, float] = field(default_factory=dict)


def _raise_for_response(response: httpx.Response) -> None:
    """Translate a non-200 provider response into a ProviderError."""
    if response.status_code == 200:
        return

    if response.status_code == 429:
        retry_after = response.headers.get("Retry-After")
        try:
            retry_after_value = float(retry_after) if retry_after else None
        except ValueError:
            retry_after_value = None
        raise ProviderRateLimitError(retry_after=retry_after_value)

    if response.status_code >= 500:
        raise ProviderError(
            f"Server error: {response.status_code}",
            status_code=response.status_code,
        )

    try:
        error_data = response.json()
        error_msg = error_data.get("error", {}).get("message", f"HTTP {response.status_code}")
    except Exception:
        error_msg = f"HTTP {response.status_code}"

    raise ProviderError(error_msg, status_code=response.status_code)


class LLMClient:
    """Client for the hosted LLM provider.

    Every public call goes through the retry wrapper and is attributed to
    ``service_name`` in logs and in ``AIServiceError``.
    """

    def __init__(
        self,
        service_name: str = "LLMClient",
        api_key: str | None = None,
        base_url: str | None = None,
        completion_model: str | None = None,
        embedding_model: str | None = None,
        embedding_dimensions: int | None = None,
        timeout: float | None = None,
        retry_policy: RetryPolicy | None = None,
        http_client: httpx.AsyncClient | None = None,
        enabled: bool | None = None,
    ) -> None:
        self.service_name = service_name
        self.api_key = api_key if api_key is not None else config.openai_api_key
        self.base_url = (base_url or config.openai_base_url).rstrip("/")
        self.completion_model = completion_model or config.openai_model
        self.embedding_model = embedding_model or config.embedding_model
        self.embedding_dimensions = embedding_dimensions or config.embedding_dimensions
        self.timeout = timeout or config.llm_timeout_seconds
        self.retry_policy = retry_policy or RetryPolicy.from_config()
        self.enabled = config.llm_enabled if enabled is None else enabled
        self._client = http_client

    def _ensure_enabled(self) -> None:
        if not self.enabled:
            raise LLMDisabledError("LLM is disabled in configuration")
        if not self.api_key:
            raise LLMDisabledError("OPENAI_API_KEY is not configured")

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create the HTTP client."""
        if self._client is None:
            self._client = httpx.AsyncClient(
                base_url=self.base_url,
                timeout=self.timeout,
            )
        return self._client

    async def _post(self, path: str, payload: dict[str, Any]) -> dict[str, Any]:
        self._ensure_enabled()
        client = await self._get_client()
        headers = {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
        }
        try:
            response = await client.post(path, headers=headers, json=payload)
        except httpx.RequestError as e:
            raise ProviderError(f"Request error: {e}") from e

        _raise_for_response(response)
        return response.json()

    @retrying("complete")
    async def complete(
        self,
        prompt: str,
        *,
        model: str | None = None,
        temperature: float = 0.7,
        max_tokens: int = 1000,
        response_format: Literal["text", "json"] = "text",
    ) -> str:
        """Request a chat completion and return its text.

        Args:
            prompt: User prompt
            model: Model override; defaults to the configured completion model
            temperature: Sampling temperature
            max_tokens: Maximum tokens in response
            response_format: ``json`` switches the provider into JSON mode

        Returns:
            Completion text (empty string if the model returned nothing)
        """
        payload: dict[str, Any] = {
            "model": model or self.completion_model,
            "messages": [
                {"role": "system", "content": SYSTEM_PROMPT},
                {"role": "user", "content": prompt},
            ],
            "temperature": temperature,
            "max_tokens": max_tokens,
        }
        if response_format == "json":
            payload["response_format"] = {"type": "json_object"}

        data = await self._post("/chat/completions", payload)
        choices = data.get("choices", [])
        if not choices:
            raise ProviderError("Empty response from provider")

        logger.debug(f"Completion tokens: {data.get('usage', {}).get('total_tokens', 'N/A')}")
        return choices[0].get("message", {}).get("content") or ""

    async def create_embedding(self, text: str) -> list[float]:
        """Convert text into an embedding vector with the pinned model."""
        if not text or not text.strip():
            raise ValueError("Cannot embed empty text")
        return await self._embed_one(text)

    async def create_embeddings(self, texts: list[str]) -> list[list[float]]:
        """Embed several texts in one request, preserving input order."""
        if not texts:
            return []
        if any(not t or not t.strip() for t in texts):
            raise ValueError("Cannot embed empty text")
        return await self._embed_many(texts)

    def _to_vector(self, raw: Any) -> list[float]:
        vector = [float(v) for v in raw]
        if len(vector) != self.embedding_dimensions:
            raise ProviderError(
                f"Embedding length mismatch for {self.embedding_model}: "
                f"expected {self.embedding_dimensions}, got {len(vector)}",
                retryable=False,
            )
        return vector

    @retrying("createEmbedding")
    async def _embed_one(self, text: str) -> list[float]:
        data = await self._post(
            "/embeddings",
            {"model": self.embedding_model, "input": text},
        )
        items = data.get("data", [])
        if not items:
            raise ProviderError("Empty embedding response")
        return self._to_vector(items[0]["embedding"])

    @retrying("createEmbeddings")
    async def _embed_many(self, texts: list[str]) -> list[list[float]]:
        data = await self._post(
            "/embeddings",
            {"model": self.embedding_model, "input": texts},
        )
        items = sorted(data.get("data", []), key=lambda d: d.get("index", 0))
        if len(items) != len(texts):
            raise ProviderError(
                f"Embedding count mismatch: expected {len(texts)}, got {len(items)}"
            )
        return [self._to_vector(item["embedding"]) for item in items]

    @retrying("moderateContent")
    async def moderate_content(self, text: str) -> ModerationResult:
        """Classify text with the moderation endpoint."""
        data = await self._post(
            "/moderations",
            {"model": MODERATION_MODEL, "input": text},
        )
        results = data.get("results", [])
        if not results:
            raise ProviderError("Empty moderation response")

        result = results[0]
        return ModerationResult(
            flagged=bool(result.get("flagged", False)),
            categories=dict(result.get("categories", {})),
            scores={k: float(v) for k, v in result.get("category_scores", {}).items()},
        )

    async def close(self) -> None:
        """Close the HTTP client."""
        if self._client is not None:
            await self._client.aclose()
            self._client = None
            logger.info(f"{self.service_name}: LLM client closed")
