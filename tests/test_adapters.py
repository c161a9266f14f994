import json

import httpx
import pytest

from llm_compare.anthropic_adapter import ANTHROPIC_VERSION
from llm_compare.models import (
    AnthropicProviderConfig,
    GGUFProviderConfig,
    HuggingFaceProviderConfig,
    OllamaProviderConfig,
    OpenAIProviderConfig,
)
from llm_compare.registry import create_adapter


class StepClock:
    def __init__(self, *values: float):
        self._values = list(values)

    def __call__(self) -> float:
        return self._values.pop(0)


def _client(handler) -> httpx.AsyncClient:
    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


@pytest.mark.asyncio
async def test_openai_generate_sends_chat_payload_and_reads_usage():
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["url"] = str(request.url)
        seen["headers"] = request.headers
        seen["body"] = json.loads(request.content.decode("utf-8"))
        return httpx.Response(
            200,
            headers={"x-ratelimit-remaining-requests": "99", "x-ratelimit-limit-requests": "100"},
            json={
                "choices": [{"message": {"role": "assistant", "content": "hello"}}],
                "usage": {"prompt_tokens": 5, "completion_tokens": 50, "total_tokens": 55},
            },
        )

    cfg = OpenAIProviderConfig(
        id="oa",
        name="OpenAI",
        apiKey="sk-test",
        modelName="gpt-4",
        organization="org-1",
        projectId="proj-1",
        temperature=0,
    )
    async with _client(handler) as client:
        adapter = create_adapter(cfg, client=client, clock=StepClock(10.0, 12.0))
        r = await adapter.generate("hi")

    assert r.ok
    assert r.text == "hello"
    assert (r.id, r.provider, r.model) == ("oa", "OpenAI", "gpt-4")
    assert r.metrics.response_time_ms == pytest.approx(2000.0)
    assert r.metrics.tokens_per_second == pytest.approx(25.0)
    assert seen["url"] == "https://api.openai.com/v1/chat/completions"
    assert seen["headers"]["authorization"] == "Bearer sk-test"
    assert seen["headers"]["openai-organization"] == "org-1"
    assert seen["headers"]["openai-project"] == "proj-1"
    assert seen["body"] == {
        "model": "gpt-4",
        "messages": [{"role": "user", "content": "hi"}],
        "temperature": 0,
        "max_tokens": 1000,
    }
    assert adapter.last_rate_limit is not None
    assert adapter.last_rate_limit.requests_remaining == 99


@pytest.mark.asyncio
async def test_openai_project_key_skips_project_header():
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["headers"] = request.headers
        return httpx.Response(200, json={"choices": [{"message": {"content": "x"}}]})

    cfg = OpenAIProviderConfig(id="oa", apiKey="sk-proj-abc", projectId="proj-1", isProjectKey=True)
    async with _client(handler) as client:
        r = await create_adapter(cfg, client=client).generate("hi")
    assert r.ok
    assert "openai-project" not in seen["headers"]
    assert r.metrics.tokens_estimated is True


@pytest.mark.asyncio
async def test_openai_missing_key_is_captured_without_network_call():
    calls = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(request)
        return httpx.Response(500)

    async with _client(handler) as client:
        r = await create_adapter(OpenAIProviderConfig(id="oa"), client=client).generate("hi")
    assert not r.ok
    assert "API key" in r.error
    assert r.text == ""
    assert r.metrics.response_time_ms == 0.0
    assert r.metrics.tokens_per_second == 0.0
    assert calls == []


@pytest.mark.asyncio
async def test_non_success_status_uses_provider_message():
    def handler(_: httpx.Request) -> httpx.Response:
        return httpx.Response(401, json={"error": {"message": "Incorrect API key provided"}})

    async with _client(handler) as client:
        r = await create_adapter(OpenAIProviderConfig(id="oa", apiKey="sk-bad"), client=client).generate("hi")
    assert r.error == "Incorrect API key provided"


@pytest.mark.asyncio
async def test_rate_limit_and_server_errors_are_captured():
    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.host == "rl.test":
            return httpx.Response(429, headers={"retry-after": "3"})
        return httpx.Response(503, text="upstream down")

    async with _client(handler) as client:
        rl = await create_adapter(
            AnthropicProviderConfig(id="a", apiKey="k", baseUrl="https://rl.test/v1"), client=client
        ).generate("hi")
        down = await create_adapter(
            AnthropicProviderConfig(id="b", apiKey="k", baseUrl="https://down.test/v1"), client=client
        ).generate("hi")
    assert "rate limit" in rl.error
    assert "503" in down.error


@pytest.mark.asyncio
async def test_malformed_payload_is_captured():
    def handler(_: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={"choices": []})

    async with _client(handler) as client:
        r = await create_adapter(OpenAIProviderConfig(id="oa", apiKey="k"), client=client).generate("hi")
    assert not r.ok
    assert "choices" in r.error


@pytest.mark.asyncio
async def test_non_json_body_is_captured():
    def handler(_: httpx.Request) -> httpx.Response:
        return httpx.Response(200, text="<html>")

    async with _client(handler) as client:
        r = await create_adapter(OllamaProviderConfig(id="o"), client=client).generate("hi")
    assert "non-JSON" in r.error


@pytest.mark.asyncio
async def test_anthropic_wire_format():
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["url"] = str(request.url)
        seen["headers"] = request.headers
        seen["body"] = json.loads(request.content.decode("utf-8"))
        return httpx.Response(200, json={"content": [{"type": "text", "text": "bonjour"}]})

    cfg = AnthropicProviderConfig(id="a", apiKey="ak", maxTokens=64)
    async with _client(handler) as client:
        r = await create_adapter(cfg, client=client, clock=StepClock(0.0, 1.0)).generate("x" * 40)
    assert r.text == "bonjour"
    assert r.model == "claude-3-opus-20240229"
    assert seen["url"] == "https://api.anthropic.com/v1/messages"
    assert seen["headers"]["x-api-key"] == "ak"
    assert seen["headers"]["anthropic-version"] == ANTHROPIC_VERSION
    assert seen["body"]["max_tokens"] == 64
    assert seen["body"]["temperature"] == 0.7
    assert r.metrics.prompt_tokens == 10
    assert r.metrics.cost is not None


@pytest.mark.asyncio
async def test_ollama_wire_format_and_native_timing():
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["url"] = str(request.url)
        seen["body"] = json.loads(request.content.decode("utf-8"))
        return httpx.Response(
            200,
            json={
                "response": "hi there",
                "total_duration": 1_500_000_000,
                "eval_count": 20,
                "eval_duration": 1_000_000_000,
                "prompt_eval_count": 3,
            },
        )

    cfg = OllamaProviderConfig(id="o", modelName="mistral", context_size=8192, threads=4)
    async with _client(handler) as client:
        r = await create_adapter(cfg, client=client, clock=StepClock(0.0, 5.0)).generate("hello")
    assert seen["url"] == "http://localhost:11434/api/generate"
    assert seen["body"] == {
        "model": "mistral",
        "prompt": "hello",
        "stream": False,
        "options": {"temperature": 0.7, "num_predict": 1000, "num_ctx": 8192, "num_thread": 4},
    }
    assert r.metrics.response_time_ms == pytest.approx(1500.0)
    assert r.metrics.tokens_per_second == pytest.approx(20.0)
    assert r.metrics.context_size == 8192


@pytest.mark.asyncio
async def test_gguf_wire_format_and_estimated_throughput():
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["url"] = str(request.url)
        seen["body"] = json.loads(request.content.decode("utf-8"))
        return httpx.Response(200, json={"content": "abcd"})

    cfg = GGUFProviderConfig(id="g", modelPath="/models/tiny-llama.Q4_K_M.gguf", serverPort=9000)
    async with _client(handler) as client:
        r = await create_adapter(cfg, client=client, clock=StepClock(1.0, 1.5)).generate("p")
    assert seen["url"] == "http://localhost:9000/completion"
    assert seen["body"] == {"prompt": "p", "temperature": 0.7, "max_tokens": 1000}
    assert r.model == "tiny-llama.Q4_K_M.gguf"
    assert r.metrics.tokens_per_second == pytest.approx(2.0)


@pytest.mark.asyncio
async def test_gguf_without_path_or_url_is_a_configuration_error():
    def handler(_: httpx.Request) -> httpx.Response:
        raise AssertionError("no request expected")

    async with _client(handler) as client:
        r = await create_adapter(GGUFProviderConfig(id="g"), client=client).generate("p")
    assert "model path" in r.error


@pytest.mark.asyncio
async def test_huggingface_wire_format():
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["url"] = str(request.url)
        seen["headers"] = request.headers
        seen["body"] = json.loads(request.content.decode("utf-8"))
        return httpx.Response(200, json=[{"generated_text": "completion"}])

    cfg = HuggingFaceProviderConfig(id="h", apiKey="hf_abc", modelName="gpt2")
    async with _client(handler) as client:
        r = await create_adapter(cfg, client=client).generate("go")
    assert r.text == "completion"
    assert seen["url"] == "https://api-inference.huggingface.co/models/gpt2"
    assert seen["headers"]["authorization"] == "Bearer hf_abc"
    assert seen["body"] == {"inputs": "go", "parameters": {"temperature": 0.7, "max_tokens": 1000}}


@pytest.mark.asyncio
async def test_huggingface_requires_model_name():
    def handler(_: httpx.Request) -> httpx.Response:
        raise AssertionError("no request expected")

    async with _client(handler) as client:
        r = await create_adapter(HuggingFaceProviderConfig(id="h", apiKey="k"), client=client).generate("go")
    assert "model name" in r.error


@pytest.mark.asyncio
async def test_connection_error_is_captured():
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    async with _client(handler) as client:
        r = await create_adapter(OllamaProviderConfig(id="o"), client=client).generate("hi")
    assert not r.ok
    assert r.provider == "Ollama"
    assert "connection refused" in r.error
    assert r.text == ""


@pytest.mark.asyncio
async def test_timeout_is_captured():
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ReadTimeout("slow", request=request)

    async with _client(handler) as client:
        r = await create_adapter(OllamaProviderConfig(id="o"), client=client).generate("hi")
    assert r.error == "Ollama request timed out."


@pytest.mark.asyncio
async def test_probes():
    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.path == "/v1/models":
            return httpx.Response(200, json={"data": [{"id": "gpt-4"}]})
        if request.url.path == "/api/tags":
            return httpx.Response(200, json={"models": [{"name": "llama2:latest"}]})
        if request.url.path == "/health":
            return httpx.Response(200, json={"status": "ok"})
        return httpx.Response(404)

    async with _client(handler) as client:
        assert await create_adapter(OpenAIProviderConfig(id="oa", apiKey="k"), client=client).probe()
        assert not await create_adapter(OpenAIProviderConfig(id="oa"), client=client).probe()
        assert await create_adapter(OllamaProviderConfig(id="o"), client=client).probe()
        assert await create_adapter(GGUFProviderConfig(id="g", baseUrl="http://gguf.test"), client=client).probe()


@pytest.mark.asyncio
async def test_ollama_probe_fails_without_installed_models():
    def handler(_: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={"models": []})

    async with _client(handler) as client:
        assert not await create_adapter(OllamaProviderConfig(id="o"), client=client).probe()


@pytest.mark.asyncio
async def test_ollama_model_management():
    seen = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append((request.method, request.url.path, request.content))
        if request.url.path == "/api/tags":
            return httpx.Response(200, json={"models": [{"name": "llama2:latest"}, {"name": "mistral:7b"}]})
        if request.url.path == "/api/pull":
            return httpx.Response(200, json={"status": "success"})
        if request.url.path == "/api/show":
            return httpx.Response(200, json={"modelfile": "FROM llama2"})
        return httpx.Response(404)

    async with _client(handler) as client:
        adapter = create_adapter(OllamaProviderConfig(id="o", baseUrl="http://ollama.test:11434/"), client=client)
        assert await adapter.list_models() == ["llama2:latest", "mistral:7b"]
        assert await adapter.pull_model("phi") is True
        assert (await adapter.show_model("phi"))["modelfile"] == "FROM llama2"

    pull = [s for s in seen if s[1] == "/api/pull"][0]
    assert json.loads(pull[2].decode("utf-8")) == {"model": "phi", "stream": False}


@pytest.mark.asyncio
async def test_ollama_list_models_is_empty_when_unreachable():
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("refused", request=request)

    async with _client(handler) as client:
        assert await create_adapter(OllamaProviderConfig(id="o"), client=client).list_models() == []


@pytest.mark.asyncio
async def test_openai_list_models_filters_and_falls_back():
    def handler(request: httpx.Request) -> httpx.Response:
        if request.headers.get("authorization") == "Bearer good":
            return httpx.Response(
                200,
                json={"data": [{"id": "gpt-4"}, {"id": "gpt-3.5-turbo-instruct"}, {"id": "whisper-1"}]},
            )
        return httpx.Response(401, json={"error": {"message": "bad"}})

    async with _client(handler) as client:
        good = create_adapter(OpenAIProviderConfig(id="oa", apiKey="good"), client=client)
        bad = create_adapter(OpenAIProviderConfig(id="ob", apiKey="bad"), client=client)
        assert await good.list_models() == ["gpt-4"]
        assert await bad.list_models() == ["gpt-4", "gpt-4-turbo-preview", "gpt-3.5-turbo"]
