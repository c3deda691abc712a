"""Provider catalog / handler registry 테스트"""

import pytest

from llm_auth.auth.providers import AnthropicProvider, OpenAIProvider
from llm_auth.provider.catalog import DEFAULT_PROVIDERS, CatalogProvider, ProviderCatalog
from llm_auth.provider.registry import HandlerRegistry, default_registry


class TestProviderCatalog:
    def test_defaults(self):
        catalog = ProviderCatalog()
        assert [p.id for p in catalog.list()] == list(DEFAULT_PROVIDERS)
        assert catalog.get("google").env == ["GOOGLE_GENERATIVE_AI_API_KEY", "GOOGLE_API_KEY"]
        assert "github-copilot" in catalog

    def test_extend_with_aliases(self):
        """bundledProvider, baseURL 별칭"""
        catalog = ProviderCatalog(include_defaults=False)
        catalog.extend(
            {
                "my-llm": {
                    "name": "My LLM",
                    "env": ["MY_LLM_KEY"],
                    "bundledProvider": "@ai-sdk/openai-compatible",
                    "baseURL": "https://llm.example.com/v1",
                }
            }
        )
        provider = catalog.get("my-llm")
        assert provider.bundled_client == "@ai-sdk/openai-compatible"
        assert provider.base_url == "https://llm.example.com/v1"
        assert catalog.env_hints() == [("MY_LLM_KEY", "my-llm")]

    def test_explicit_providers(self):
        catalog = ProviderCatalog([CatalogProvider(id="x", name="X")], include_defaults=False)
        assert [p.id for p in catalog.list()] == ["x"]
        assert catalog.get("missing") is None


class TestHandlerRegistry:
    def test_register_and_get(self, settings):
        handler = OpenAIProvider(settings=settings)
        registry = HandlerRegistry([handler])
        assert registry.get("openai") is handler
        assert "anthropic" not in registry

        registry.register(AnthropicProvider(settings=settings), provider_id="claude-proxy")
        assert "claude-proxy" in registry
        assert len(registry) == 2

    def test_default_registry(self, settings):
        registry = default_registry(settings=settings)
        assert sorted(registry) == ["anthropic", "github-copilot", "google", "openai"]
