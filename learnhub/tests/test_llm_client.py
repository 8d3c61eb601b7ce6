"""Tests for the OpenAI-compatible LLM client."""

import json

import httpx
import pytest

from learnhub.llm import LLMClient, LLMDisabledError, ProviderError
from learnhub.llm.retry import RetryPolicy


def _client(handler, **kwargs) -> LLMClient:
    http_client = httpx.AsyncClient(
        transport=httpx.MockTransport(handler),
        base_url="https://llm.test/v1",
    )
    return LLMClient(
        service_name="TestService",
        api_key="sk-test",
        completion_model="gpt-test",
        embedding_model="text-embedding-3-small",
        retry_policy=RetryPolicy(max_retries=3, base_delay=0.0),
        http_client=http_client,
        enabled=True,
        **kwargs,
    )


@pytest.mark.anyio
async def test_complete_sends_json_mode_and_returns_text():
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["path"] = request.url.path
        seen["auth"] = request.headers["Authorization"]
        seen["body"] = json.loads(request.content)
        return httpx.Response(
            200,
            json={"choices": [{"message": {"content": '{"topics": []}'}}]},
        )

    client = _client(handler)
    text = await client.complete("Analyze this", response_format="json", temperature=0.3)

    assert text == '{"topics": []}'
    assert seen["path"] == "/v1/chat/completions"
    assert seen["auth"] == "Bearer sk-test"
    assert seen["body"]["model"] == "gpt-test"
    assert seen["body"]["temperature"] == 0.3
    assert seen["body"]["response_format"] == {"type": "json_object"}
    assert seen["body"]["messages"][-1] == {"role": "user", "content": "Analyze this"}
    await client.close()


@pytest.mark.anyio
async def test_create_embedding_uses_pinned_model():
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["body"] = json.loads(request.content)
        return httpx.Response(200, json={"data": [{"index": 0, "embedding": [0.1, 0.2, 0.3]}]})

    client = _client(handler, embedding_dimensions=3)
    vector = await client.create_embedding("python basics")

    assert vector == [0.1, 0.2, 0.3]
    assert seen["body"] == {"model": "text-embedding-3-small", "input": "python basics"}
    await client.close()


@pytest.mark.anyio
async def test_create_embedding_rejects_empty_text_without_request():
    calls = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(request)
        return httpx.Response(200, json={"data": []})

    client = _client(handler)
    with pytest.raises(ValueError):
        await client.create_embedding("   ")

    assert calls == []
    await client.close()


@pytest.mark.anyio
async def test_create_embeddings_preserves_input_order():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(
            200,
            json={"data": [
                {"index": 1, "embedding": [0.0, 1.0]},
                {"index": 0, "embedding": [1.0, 0.0]},
            ]},
        )

    client = _client(handler, embedding_dimensions=2)
    vectors = await client.create_embeddings(["first", "second"])

    assert vectors == [[1.0, 0.0], [0.0, 1.0]]
    assert await client.create_embeddings([]) == []
    await client.close()


@pytest.mark.anyio
async def test_server_errors_are_retried():
    attempts = []

    def handler(request: httpx.Request) -> httpx.Response:
        attempts.append(request)
        if len(attempts) < 3:
            return httpx.Response(503, json={"error": {"message": "overloaded"}})
        return httpx.Response(200, json={"choices": [{"message": {"content": "done"}}]})

    client = _client(handler)
    assert await client.complete("hi") == "done"
    assert len(attempts) == 3
    await client.close()


@pytest.mark.anyio
async def test_client_errors_are_not_retried():
    attempts = []

    def handler(request: httpx.Request) -> httpx.Response:
        attempts.append(request)
        return httpx.Response(400, json={"error": {"message": "bad model"}})

    client = _client(handler)
    with pytest.raises(ProviderError) as exc_info:
        await client.complete("hi")

    assert exc_info.value.status_code == 400
    assert "bad model" in str(exc_info.value)
    assert len(attempts) == 1
    await client.close()


@pytest.mark.anyio
async def test_disabled_client_raises_before_request():
    calls = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(request)
        return httpx.Response(200, json={})

    client = _client(handler)
    client.enabled = False

    with pytest.raises(LLMDisabledError):
        await client.complete("hi")

    assert calls == []
    await client.close()


@pytest.mark.anyio
async def test_moderation_result_is_parsed():
    def handler(request: httpx.Request) -> httpx.Response:
        assert request.url.path == "/v1/moderations"
        return httpx.Response(
            200,
            json={"results": [{
                "flagged": True,
                "categories": {"harassment": True, "violence": False},
                "category_scores": {"harassment": 0.91, "violence": 0.01},
            }]},
        )

    client = _client(handler)
    result = await client.moderate_content("some text")

    assert result.flagged is True
    assert result.categories["harassment"] is True
    assert result.scores["harassment"] == pytest.approx(0.91)
    await client.close()


@pytest.mark.anyio
async def test_embedding_of_wrong_length_is_rejected_without_retry():
    attempts = []

    def handler(request: httpx.Request) -> httpx.Response:
        attempts.append(request)
        return httpx.Response(200, json={"data": [{"index": 0, "embedding": [0.1, 0.2, 0.3]}]})

    client = _client(handler)
    assert client.embedding_dimensions == 1536

    with pytest.raises(ProviderError) as exc_info:
        await client.create_embedding("python basics")

    assert exc_info.value.retryable is False
    assert "expected 1536, got 3" in str(exc_info.value)
    assert len(attempts) == 1

    with pytest.raises(ProviderError):
        await client.create_embeddings(["first"])
    await client.close()
