"""
Unit tests for the text-generation client.

Provider traffic goes through httpx.MockTransport; nothing leaves the process.
"""

import json

import httpx
import pytest

from raytrace_api.middleware import UpstreamError
from raytrace_api.services.scene_generator_client import (
    GeminiSceneGenerator,
    build_contents,
    extract_text,
    render_instruction,
)

BASE_URL = "https://llm.test"
SOURCE = '#include "camera.h"\nint main() { return 0; }\n'


def _reply(text: str) -> dict:
    return {"candidates": [{"content": {"role": "model", "parts": [{"text": text}]}}]}


def _generator(handler, **kwargs) -> GeminiSceneGenerator:
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return GeminiSceneGenerator(
        base_url=BASE_URL + "/",
        api_key=kwargs.pop("api_key", "test-key"),
        model="gemini-test",
        client=client,
        **kwargs,
    )


class TestPromptConstruction:
    """Tests for the instruction template and conversation layout."""

    def test_instruction_lists_headers_and_examples(self):
        text = render_instruction()

        assert "constants.h, bvh.h, camera.h" in text
        assert "Include constants.h before the others" in text
        assert "render.ppm" in text
        assert "PROGRESS" in text
        assert "Checkered Spheres" in text
        assert "Simple Light" in text

    def test_conversation_ends_with_user_prompt(self):
        contents = build_contents("a red sphere on a mirror floor")

        assert [c["role"] for c in contents] == ["user", "model", "user"]
        assert contents[-1]["parts"][0]["text"] == "a red sphere on a mirror floor"
        assert "```cpp" in contents[1]["parts"][0]["text"]


class TestExtractText:
    """Tests for reply parsing."""

    def test_returns_first_candidate_text(self):
        assert extract_text(_reply(SOURCE)) == SOURCE

    @pytest.mark.parametrize(
        "payload",
        [
            {},
            {"candidates": []},
            {"candidates": [{"content": {"parts": []}}]},
            ["not", "a", "dict"],
            None,
        ],
    )
    def test_malformed_reply_is_upstream_error(self, payload):
        with pytest.raises(UpstreamError) as exc_info:
            extract_text(payload)
        assert exc_info.value.status_code == 500

    def test_blocked_prompt_reason_is_reported(self):
        with pytest.raises(UpstreamError) as exc_info:
            extract_text({"promptFeedback": {"blockReason": "SAFETY"}})
        assert exc_info.value.details == {"block_reason": "SAFETY"}

    def test_blank_text_is_upstream_error(self):
        with pytest.raises(UpstreamError, match="empty"):
            extract_text(_reply("   \n"))


class TestGeminiSceneGenerator:
    """Tests for the HTTP exchange."""

    @pytest.mark.asyncio
    async def test_request_shape_and_result(self):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["url"] = str(request.url)
            seen["key"] = request.headers.get("x-goog-api-key")
            seen["body"] = json.loads(request.content)
            return httpx.Response(200, json=_reply(SOURCE))

        generator = _generator(handler, temperature=0.7, max_output_tokens=1024)
        text = await generator.generate_source("three glass spheres")

        assert text == SOURCE
        assert seen["url"] == f"{BASE_URL}/v1beta/models/gemini-test:generateContent"
        assert seen["key"] == "test-key"
        assert len(seen["body"]["contents"]) == 3
        assert seen["body"]["contents"][2]["parts"][0]["text"] == "three glass spheres"
        assert seen["body"]["generationConfig"]["temperature"] == 0.7
        assert seen["body"]["generationConfig"]["maxOutputTokens"] == 1024

    @pytest.mark.asyncio
    async def test_missing_api_key_sends_no_header(self):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["has_key"] = "x-goog-api-key" in request.headers
            return httpx.Response(200, json=_reply(SOURCE))

        await _generator(handler, api_key="").generate_source("a cube")

        assert seen["has_key"] is False

    @pytest.mark.asyncio
    async def test_http_error_status_is_upstream_error(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(403, json={"error": {"message": "API key not valid"}})

        with pytest.raises(UpstreamError) as exc_info:
            await _generator(handler).generate_source("a cube")

        assert "HTTP 403" in exc_info.value.message
        assert exc_info.value.details == {"status_code": 403}

    @pytest.mark.asyncio
    async def test_timeout_is_upstream_error(self):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ReadTimeout("timed out", request=request)

        with pytest.raises(UpstreamError, match="timed out"):
            await _generator(handler, timeout=5).generate_source("a cube")

    @pytest.mark.asyncio
    async def test_connection_error_is_upstream_error(self):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        with pytest.raises(UpstreamError, match="unreachable"):
            await _generator(handler).generate_source("a cube")

    @pytest.mark.asyncio
    async def test_invalid_json_is_upstream_error(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, content=b"<html>oops</html>")

        with pytest.raises(UpstreamError, match="invalid JSON"):
            await _generator(handler).generate_source("a cube")

    @pytest.mark.asyncio
    async def test_reply_without_candidates_is_upstream_error(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, json={"usageMetadata": {}})

        with pytest.raises(UpstreamError, match="no candidate"):
            await _generator(handler).generate_source("a cube")
