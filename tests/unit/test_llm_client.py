"""Tests for the async model endpoint client."""

import asyncio
import json

import httpx
import pytest

from intake.clients.llm_client import ModelInvocationConfig, ModelInvoker
from intake.core.exceptions import InvocationError, InvocationTimeout


def make_config(**overrides) -> ModelInvocationConfig:
    values = {"endpoint": "http://llm.test", "model_name": "phi3", "timeout_ms": 2000}
    values.update(overrides)
    return ModelInvocationConfig(**values)


class TestModelInvocationConfig:
    def test_defaults(self):
        config = ModelInvocationConfig()
        assert config.endpoint == "http://localhost:11434"
        assert config.timeout_ms == 60000
        assert config.timeout_seconds == 60.0

    def test_sampling_options_use_endpoint_names(self):
        config = make_config(temperature=0.0, top_p=0.5, max_tokens=64, stop_sequences=("END",))
        assert config.sampling_options() == {
            "temperature": 0.0,
            "top_p": 0.5,
            "num_predict": 64,
            "stop": ["END"],
        }

    @pytest.mark.parametrize("timeout_ms", [0, -5])
    def test_non_positive_timeout_rejected(self, timeout_ms):
        with pytest.raises(ValueError):
            make_config(timeout_ms=timeout_ms)


class TestInvoke:
    @pytest.mark.asyncio
    async def test_returns_response_text_unmodified(self):
        captured = {}

        def handler(request: httpx.Request) -> httpx.Response:
            captured["path"] = request.url.path
            captured["payload"] = json.loads(request.content)
            return httpx.Response(200, json={"response": '  {"intent": "unknown"}\n'})

        invoker = ModelInvoker(transport=httpx.MockTransport(handler))
        text = await invoker.invoke("Is it in stock?", make_config(temperature=0.2))

        assert text == '  {"intent": "unknown"}\n'
        assert captured["path"] == "/api/generate"
        payload = captured["payload"]
        assert payload["model"] == "phi3"
        assert payload["prompt"] == "Is it in stock?"
        assert payload["stream"] is False
        assert payload["format"] == "json"
        assert payload["options"]["temperature"] == 0.2
        assert payload["options"]["num_predict"] == 500

    @pytest.mark.asyncio
    async def test_slow_endpoint_raises_timeout_and_releases_request(self):
        state = {"cancelled": False}

        async def handler(request: httpx.Request) -> httpx.Response:
            try:
                await asyncio.sleep(5)
            except asyncio.CancelledError:
                state["cancelled"] = True
                raise
            return httpx.Response(200, json={"response": "{}"})

        invoker = ModelInvoker(transport=httpx.MockTransport(handler))

        with pytest.raises(InvocationTimeout) as exc_info:
            await invoker.invoke("hello", make_config(timeout_ms=50))

        assert exc_info.value.timeout_ms == 50
        assert exc_info.value.http_status == 504
        assert exc_info.value.retryable is True
        assert state["cancelled"] is True

    @pytest.mark.asyncio
    async def test_transport_timeout_maps_to_invocation_timeout(self):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ReadTimeout("read timed out", request=request)

        invoker = ModelInvoker(transport=httpx.MockTransport(handler))

        with pytest.raises(InvocationTimeout):
            await invoker.invoke("hello", make_config())

    @pytest.mark.asyncio
    async def test_connection_refused_raises_invocation_error(self):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        invoker = ModelInvoker(transport=httpx.MockTransport(handler))

        with pytest.raises(InvocationError) as exc_info:
            await invoker.invoke("hello", make_config())

        assert "ConnectError" in exc_info.value.reason
        assert exc_info.value.http_status == 502

    @pytest.mark.asyncio
    async def test_non_success_status_raises_invocation_error(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(500, text="model not loaded")

        invoker = ModelInvoker(transport=httpx.MockTransport(handler))

        with pytest.raises(InvocationError) as exc_info:
            await invoker.invoke("hello", make_config())

        error = exc_info.value
        assert error.reason == "HTTP 500"
        assert error.details["http_code"] == 500
        assert error.details["body"] == "model not loaded"

    @pytest.mark.asyncio
    async def test_non_json_envelope_raises_invocation_error(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, text="<html>gateway</html>")

        invoker = ModelInvoker(transport=httpx.MockTransport(handler))

        with pytest.raises(InvocationError, match="not JSON"):
            await invoker.invoke("hello", make_config())

    @pytest.mark.asyncio
    async def test_envelope_without_response_raises_invocation_error(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, json={"done": True})

        invoker = ModelInvoker(transport=httpx.MockTransport(handler))

        with pytest.raises(InvocationError, match="missing 'response'"):
            await invoker.invoke("hello", make_config())

    @pytest.mark.asyncio
    async def test_malformed_model_text_is_returned_verbatim(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, json={"response": "I think the intent is price"})

        invoker = ModelInvoker(transport=httpx.MockTransport(handler))

        assert await invoker.invoke("hello", make_config()) == "I think the intent is price"


class TestChat:
    @pytest.mark.asyncio
    async def test_returns_assistant_message(self):
        captured = {}

        def handler(request: httpx.Request) -> httpx.Response:
            captured["path"] = request.url.path
            captured["payload"] = json.loads(request.content)
            return httpx.Response(
                200, json={"message": {"role": "assistant", "content": "24 months"}}
            )

        invoker = ModelInvoker(transport=httpx.MockTransport(handler))
        messages = [{"role": "user", "content": "Warranty for P-100?"}]

        answer = await invoker.chat(messages, make_config())

        assert answer == {"role": "assistant", "content": "24 months"}
        assert captured["path"] == "/api/chat"
        assert captured["payload"]["messages"] == messages
        assert "format" not in captured["payload"]

    @pytest.mark.asyncio
    async def test_missing_message_content_raises_invocation_error(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, json={"message": {"role": "assistant"}})

        invoker = ModelInvoker(transport=httpx.MockTransport(handler))

        with pytest.raises(InvocationError):
            await invoker.chat([{"role": "user", "content": "hi"}], make_config())
