"""
Tests for provider implementations and the retry combinator.
"""
import httpx
import pytest
from unittest.mock import AsyncMock, MagicMock

from schemas.errors import ProviderUnavailable
from services.anthropic import AnthropicContentProvider, extract_json
from services.images import HttpImageProvider
from services.providers import (
    ProviderSet,
    UnavailableContentProvider,
    UnavailableImageProvider,
)
from services.retry import with_retry


# =====================
# JSON Extraction Tests
# =====================

class TestExtractJson:
    """Model output parsing."""

    def test_bare_json(self):
        assert extract_json('{"a": 1}') == {"a": 1}

    def test_fenced_json(self):
        assert extract_json('Here you go:\n```json\n{"a": [1, 2]}\n```') == {"a": [1, 2]}

    def test_embedded_object(self):
        assert extract_json('Sure! {"tone": "friendly"} Hope that helps.') == {"tone": "friendly"}

    def test_no_json(self):
        with pytest.raises(ValueError):
            extract_json("no structured output here")


# =====================
# Anthropic Provider Tests
# =====================

class TestAnthropicContentProvider:
    """Messages API wrapper."""

    @pytest.fixture
    def client(self):
        mock = MagicMock()
        mock.messages.create = AsyncMock(return_value=MagicMock(
            content=[MagicMock(text='{"summary": "ok"}')],
            usage=MagicMock(input_tokens=100, output_tokens=200),
        ))
        return mock

    @pytest.mark.asyncio
    async def test_generate_text(self, client):
        provider = AnthropicContentProvider(client=client)

        text = await provider.generate_text("Write copy", {"businessName": "Acme"})

        assert text == '{"summary": "ok"}'
        kwargs = client.messages.create.await_args.kwargs
        assert "Acme" in kwargs["messages"][0]["content"]
        assert provider.input_tokens == 100
        assert provider.output_tokens == 200

    @pytest.mark.asyncio
    async def test_empty_response(self, client):
        client.messages.create.return_value = MagicMock(content=[], usage=None)
        provider = AnthropicContentProvider(client=client)

        with pytest.raises(ProviderUnavailable):
            await provider.generate_text("Write copy")

    def test_cost(self, client):
        provider = AnthropicContentProvider(client=client)

        assert provider.calculate_cost("claude-3-5-sonnet-20241022", 1_000_000, 1_000_000) == 18.0


# =====================
# Image Provider Tests
# =====================

class TestHttpImageProvider:
    """OpenAI-compatible images endpoint."""

    def provider(self, handler):
        client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
        return HttpImageProvider(api_key="key", api_url="https://images.test/v1/generate", client=client)

    @pytest.mark.asyncio
    async def test_returns_url(self):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["auth"] = request.headers["Authorization"]
            seen["body"] = request.read()
            return httpx.Response(200, json={"data": [{"url": "https://cdn.test/a.png"}]})

        url = await self.provider(handler).generate_image("a cafe", "1792x1024")

        assert url == "https://cdn.test/a.png"
        assert seen["auth"] == "Bearer key"
        assert b"1792x1024" in seen["body"]

    @pytest.mark.asyncio
    async def test_unsupported_size_falls_back_to_square(self):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["body"] = request.read()
            return httpx.Response(200, json={"data": [{"url": "https://cdn.test/b.png"}]})

        await self.provider(handler).generate_image("a cafe", "640x480")

        assert b"1024x1024" in seen["body"]

    @pytest.mark.asyncio
    async def test_error_status(self):
        provider = self.provider(lambda request: httpx.Response(500, text="boom"))

        with pytest.raises(ProviderUnavailable):
            await provider.generate_image("a cafe", "1024x1024")

    @pytest.mark.asyncio
    async def test_missing_url(self):
        provider = self.provider(lambda request: httpx.Response(200, json={"data": []}))

        with pytest.raises(ProviderUnavailable):
            await provider.generate_image("a cafe", "1024x1024")


# =====================
# ProviderSet Tests
# =====================

class TestProviderSet:
    """Provider construction from settings."""

    def test_missing_keys_give_unavailable_providers(self):
        settings = MagicMock(anthropic_api_key="", image_api_key="")

        providers = ProviderSet.from_settings(settings)

        assert isinstance(providers.content, UnavailableContentProvider)
        assert isinstance(providers.images, UnavailableImageProvider)
        assert not providers.content_available
        assert not providers.images_available

    def test_keys_give_real_providers(self):
        settings = MagicMock(
            anthropic_api_key="sk-test",
            anthropic_model="claude-3-5-haiku-20241022",
            anthropic_max_tokens=1024,
            image_api_key="img-test",
            image_api_url="https://images.test",
            image_model="dall-e-3",
            image_request_timeout_seconds=10.0,
        )

        providers = ProviderSet.from_settings(settings)

        assert isinstance(providers.content, AnthropicContentProvider)
        assert isinstance(providers.images, HttpImageProvider)
        assert providers.content_available and providers.images_available

    @pytest.mark.asyncio
    async def test_unavailable_providers_raise(self):
        with pytest.raises(ProviderUnavailable):
            await UnavailableContentProvider().generate_text("hi")
        with pytest.raises(ProviderUnavailable):
            await UnavailableImageProvider().generate_image("hi", "1024x1024")


# =====================
# Retry Tests
# =====================

class TestWithRetry:
    """Shared retry combinator."""

    @pytest.mark.asyncio
    async def test_retries_until_success(self):
        fn = AsyncMock(side_effect=[ProviderUnavailable("down"), ProviderUnavailable("down"), "ok"])

        result = await with_retry(fn, attempts=3, backoff=0)

        assert result == "ok"
        assert fn.await_count == 3

    @pytest.mark.asyncio
    async def test_reraises_after_attempts(self):
        fn = AsyncMock(side_effect=ProviderUnavailable("down"))

        with pytest.raises(ProviderUnavailable):
            await with_retry(fn, attempts=2, backoff=0)
        assert fn.await_count == 2

    @pytest.mark.asyncio
    async def test_other_errors_not_retried(self):
        fn = AsyncMock(side_effect=KeyError("bad"))

        with pytest.raises(KeyError):
            await with_retry(fn, attempts=3, backoff=0, retry_on=(ProviderUnavailable,))
        assert fn.await_count == 1
