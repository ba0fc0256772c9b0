"""
Tests for HttpGenerationClient.

Uses httpx.MockTransport so no network is touched.
"""

import json

import httpx
import pytest

from ai_interpolator.core.exceptions import RequestError, ResponseError
from ai_interpolator.core.generation_client import Attachment, HttpGenerationClient


def chat_response(content):
    return httpx.Response(200, json={"choices": [{"message": {"content": content}}]})


def make_client(handler, **kwargs):
    return HttpGenerationClient(
        base_url="https://llm.test/v1",
        api_key="secret",
        model="test-model",
        max_retries=kwargs.pop("max_retries", 3),
        retry_delay=0,
        transport=httpx.MockTransport(handler),
        **kwargs,
    )


class TestChatGeneration:
    """Tests for text generation."""

    @pytest.mark.asyncio
    async def test_generate_posts_chat_completion(self):
        """Test payload, headers and content extraction."""
        seen = {}

        def handler(request):
            seen["path"] = request.url.path
            seen["auth"] = request.headers["Authorization"]
            seen["body"] = json.loads(request.content)
            return chat_response('[{"value": "Hi"}]')

        async with make_client(handler) as client:
            result = await client.generate("Say hi", {"temperature": 0.5, "top_k": None})

        assert result == '[{"value": "Hi"}]'
        assert seen["path"] == "/v1/chat/completions"
        assert seen["auth"] == "Bearer secret"
        assert seen["body"]["model"] == "test-model"
        assert seen["body"]["messages"] == [{"role": "user", "content": "Say hi"}]
        assert seen["body"]["temperature"] == 0.5
        assert "top_k" not in seen["body"]

    @pytest.mark.asyncio
    async def test_model_param_overrides_default(self):
        seen = {}

        def handler(request):
            seen["body"] = json.loads(request.content)
            return chat_response("ok")

        async with make_client(handler) as client:
            await client.generate("p", {"model": "other-model"})

        assert seen["body"]["model"] == "other-model"

    @pytest.mark.asyncio
    async def test_retries_transient_errors(self):
        """Test a 503 followed by success is retried."""
        calls = []

        def handler(request):
            calls.append(request)
            if len(calls) == 1:
                return httpx.Response(503, text="busy")
            return chat_response("done")

        async with make_client(handler) as client:
            assert await client.generate("p", {}) == "done"
        assert len(calls) == 2

    @pytest.mark.asyncio
    async def test_client_errors_not_retried(self):
        """Test a 400 fails immediately."""
        calls = []

        def handler(request):
            calls.append(request)
            return httpx.Response(400, text="bad request")

        async with make_client(handler) as client:
            with pytest.raises(RequestError) as exc_info:
                await client.generate("p", {})
        assert exc_info.value.status_code == 400
        assert len(calls) == 1

    @pytest.mark.asyncio
    async def test_gives_up_after_max_retries(self):
        calls = []

        def handler(request):
            calls.append(request)
            return httpx.Response(500, text="error")

        async with make_client(handler, max_retries=2) as client:
            with pytest.raises(RequestError):
                await client.generate("p", {})
        assert len(calls) == 2

    @pytest.mark.asyncio
    async def test_invalid_json(self):
        def handler(request):
            return httpx.Response(200, text="not json")

        async with make_client(handler) as client:
            with pytest.raises(ResponseError):
                await client.generate("p", {})

    @pytest.mark.asyncio
    async def test_unexpected_payload(self):
        def handler(request):
            return httpx.Response(200, json={"choices": []})

        async with make_client(handler) as client:
            with pytest.raises(ResponseError):
                await client.generate("p", {})


class TestStructuredGeneration:
    """Tests for image and transcription modalities."""

    @pytest.mark.asyncio
    async def test_image_generation_returns_value_list(self):
        seen = {}

        def handler(request):
            seen["path"] = request.url.path
            seen["body"] = json.loads(request.content)
            return httpx.Response(200, json={"data": [{"url": "https://img.test/1.png"}]})

        async with make_client(handler) as client:
            raw = await client.generate_structured("A cat", {"modality": "image", "size": "512x512"})

        assert json.loads(raw) == [{"value": "https://img.test/1.png"}]
        assert seen["path"] == "/v1/images/generations"
        assert seen["body"]["prompt"] == "A cat"
        assert seen["body"]["size"] == "512x512"

    @pytest.mark.asyncio
    async def test_transcription(self):
        seen = {}

        def handler(request):
            seen["path"] = request.url.path
            seen["content_type"] = request.headers["Content-Type"]
            return httpx.Response(200, json={"text": "Hello world"})

        attachment = Attachment(filename="talk.mp3", mime_type="audio/mpeg", data=b"ID3")
        async with make_client(handler) as client:
            text = await client.generate_structured("", {"modality": "transcription"}, [attachment])

        assert text == "Hello world"
        assert seen["path"] == "/v1/audio/transcriptions"
        assert seen["content_type"].startswith("multipart/form-data")

    @pytest.mark.asyncio
    async def test_transcription_requires_attachment(self):
        async with make_client(lambda request: httpx.Response(200, json={})) as client:
            with pytest.raises(RequestError):
                await client.generate_structured("", {"modality": "transcription"})

    @pytest.mark.asyncio
    async def test_text_modality_falls_back_to_chat(self):
        async with make_client(lambda request: chat_response("plain")) as client:
            assert await client.generate_structured("p", {}) == "plain"
