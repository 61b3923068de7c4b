"""Flavor text client tests (httpx.MockTransport, no network)."""
import httpx
import pytest

from dreamslot.flavor import FlavorTextService, _extract_text
from dreamslot.logic.messages import (
    FLAVOR_FALLBACK_EMPTY,
    FLAVOR_FALLBACK_ERROR,
    FLAVOR_FALLBACK_NO_KEY,
)


def service_with(handler, api_key: str = "test-key") -> FlavorTextService:
    return FlavorTextService(
        api_key=api_key,
        model="test-model",
        api_base="https://flavor.test/v1beta/",
        timeout=1.0,
        transport=httpx.MockTransport(handler),
    )


def candidate(text: str) -> dict:
    return {"candidates": [{"content": {"parts": [{"text": text}]}}]}


class TestWhisper:
    @pytest.mark.asyncio
    async def test_returns_generated_text(self):
        seen = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, json=candidate("  The moon hums you to sleep.  "))

        text = await service_with(handler).whisper("Full Moon")

        assert text == "The moon hums you to sleep."
        request = seen[0]
        assert request.method == "POST"
        assert request.url.path == "/v1beta/models/test-model:generateContent"
        assert request.url.params["key"] == "test-key"
        assert b"Full Moon" in request.content

    @pytest.mark.asyncio
    async def test_no_key_skips_request(self):
        def handler(request: httpx.Request) -> httpx.Response:
            raise AssertionError("no request expected")

        assert await service_with(handler, api_key="").whisper("Cat") == FLAVOR_FALLBACK_NO_KEY

    @pytest.mark.asyncio
    async def test_http_error_falls_back(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(503, json={"error": "overloaded"})

        assert await service_with(handler).whisper("Cat") == FLAVOR_FALLBACK_ERROR

    @pytest.mark.asyncio
    async def test_transport_error_falls_back(self):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("offline", request=request)

        assert await service_with(handler).whisper("Cat") == FLAVOR_FALLBACK_ERROR

    @pytest.mark.asyncio
    async def test_invalid_json_falls_back(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, content=b"<html>")

        assert await service_with(handler).whisper("Cat") == FLAVOR_FALLBACK_ERROR

    @pytest.mark.asyncio
    async def test_empty_candidates_fall_back(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, json={"candidates": []})

        assert await service_with(handler).whisper("Cat") == FLAVOR_FALLBACK_EMPTY


@pytest.mark.parametrize("data", [
    None,
    [],
    {},
    {"candidates": [{"content": None}]},
    {"candidates": [{"content": {"parts": [{"text": "   "}]}}]},
    {"candidates": ["junk"]},
])
def test_extract_text_tolerates_odd_shapes(data):
    assert _extract_text(data) == ""


def test_extract_text_skips_blank_parts():
    data = {"candidates": [{"content": {"parts": [{"text": ""}, {"text": "Hush now."}]}}]}
    assert _extract_text(data) == "Hush now."
