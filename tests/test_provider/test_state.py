"""build_provider_state 테스트

계층 우선순위: 카탈로그 -> 환경 변수 -> 저장소/발견 -> 핸들러 -> 호출자 설정
"""

import logging
from unittest.mock import patch

import httpx
import pytest

from llm_auth.auth.credential import Credential, CredentialKind, now_ms
from llm_auth.auth.providers import AnthropicProvider, CopilotProvider, GoogleProvider
from llm_auth.auth.providers.base import ConnectionOptions
from llm_auth.auth.secrets import EnvSecret, SecretResolver
from llm_auth.provider.catalog import ProviderCatalog
from llm_auth.provider.registry import HandlerRegistry
from llm_auth.provider.state import (
    AuthSource,
    ProviderConfig,
    build_provider_state,
    normalize_base_url,
)


class FailingHandler:
    name = "openai"

    async def resolve_connection_options(self, get_credential, set_credential):
        raise RuntimeError("handler exploded")


@pytest.fixture
def catalog():
    return ProviderCatalog()


class TestNormalizeBaseUrl:
    @pytest.mark.parametrize(
        "provider_id,url,expected",
        [
            ("openai", "https://proxy.example.com", "https://proxy.example.com/v1"),
            ("openai", "https://proxy.example.com/", "https://proxy.example.com/v1"),
            ("openai", "https://proxy.example.com/custom/", "https://proxy.example.com/custom"),
            ("anthropic", "https://proxy.example.com", "https://proxy.example.com"),
        ],
    )
    def test_normalize(self, provider_id, url, expected):
        assert normalize_base_url(provider_id, url) == expected


class TestBuildProviderState:
    @pytest.mark.asyncio
    async def test_nothing_configured(self, catalog, memory_store):
        """환경 변수, 디스크, 저장소 모두 없으면 source=none"""
        states = await build_provider_state(catalog, memory_store, environ={})

        assert list(states) == [p.id for p in catalog.list()]
        state = states["mistral"]
        assert state.source is AuthSource.NONE
        assert state.secret is None
        assert state.options.secret is None

    @pytest.mark.asyncio
    async def test_env_has_top_precedence(self, catalog, memory_store, settings):
        """환경 변수는 저장소/디스크 후보보다 우선하고 핸들러를 호출하지 않음"""
        await memory_store.set("anthropic", Credential(kind="oauth", secret="sk-ant-oat01-stored"))
        memory_store.record_candidate(
            "anthropic", Credential(secret="sk-ant-api03-disk", origin_location="/h/.claude/settings.json")
        )
        registry = HandlerRegistry([AnthropicProvider(settings=settings)])

        with patch.object(AnthropicProvider, "resolve_connection_options") as resolve:
            states = await build_provider_state(
                catalog,
                memory_store,
                registry=registry,
                environ={"ANTHROPIC_API_KEY": "sk-ant-api03-env"},
            )

        state = states["anthropic"]
        assert state.source is AuthSource.ENV
        assert state.secret == "sk-ant-api03-env"
        assert state.location == "env:ANTHROPIC_API_KEY"
        assert state.options.secret == "sk-ant-api03-env"
        resolve.assert_not_called()

    @pytest.mark.asyncio
    async def test_store_source(self, catalog, memory_store):
        await memory_store.set("groq", Credential(secret="gsk-stored"))
        states = await build_provider_state(catalog, memory_store, environ={})
        assert states["groq"].source is AuthSource.STORE
        assert states["groq"].secret == "gsk-stored"

    @pytest.mark.asyncio
    async def test_disk_source(self, catalog, memory_store):
        """저장되지 않은 디스크 후보는 source=disk"""
        memory_store.record_candidate(
            "openai", Credential(secret="sk-proj-disk", origin_location="/h/.codex/auth.json")
        )
        states = await build_provider_state(catalog, memory_store, environ={})
        assert states["openai"].source is AuthSource.DISK
        assert states["openai"].location == "/h/.codex/auth.json"

    @pytest.mark.asyncio
    async def test_credential_base_url_override(self, catalog, memory_store):
        """자격증명 extra의 base_url이 카탈로그 기본값을 덮어씀"""
        await memory_store.set(
            "openai", Credential(secret="sk-1", extra={"baseURL": "https://gateway.example.com"})
        )
        states = await build_provider_state(catalog, memory_store, environ={})
        assert states["openai"].options.base_url == "https://gateway.example.com/v1"

    @pytest.mark.asyncio
    async def test_refresh_scenario(self, make_transport, settings, memory_store, expired_oauth):
        """만료된 oauth (old/r1) -> 갱신 (new/r2) 후 저장소에 반영"""
        catalog = ProviderCatalog(include_defaults=False)
        catalog.extend({"p": {"name": "P", "env": ["P_API_KEY"], "bundled_client": "@ai-sdk/anthropic"}})
        await memory_store.set("p", expired_oauth)

        transport, handler = make_transport(
            {
                "/v1/oauth/token": httpx.Response(
                    200, json={"access_token": "new", "refresh_token": "r2", "expires_in": 3600}
                ),
                "/api/oauth/claude_cli/create_api_key": httpx.Response(403, text="forbidden"),
            }
        )
        registry = HandlerRegistry()
        registry.register(AnthropicProvider(http_transport=transport, settings=settings), provider_id="p")

        with patch.object(memory_store, "set", wraps=memory_store.set) as store_set:
            before = now_ms()
            states = await build_provider_state(catalog, memory_store, registry=registry, environ={})

        assert len(handler.calls("/v1/oauth/token")) == 1
        assert store_set.await_count == 1

        stored = await memory_store.get("p")
        assert stored.secret == "new"
        assert stored.refresh_token == "r2"
        assert before + 3_600_000 <= stored.expires_at <= now_ms() + 3_600_000

        # 교환 실패 -> bearer fallback
        state = states["p"]
        assert state.source is AuthSource.STORE
        assert state.options.headers["anthropic-beta"] == AnthropicProvider.OAUTH_BETA
        assert state.options.transport is not None
        # 갱신 전 access token은 옵션에 남지 않음
        assert state.secret is None
        assert state.options.secret is None

    @pytest.mark.asyncio
    async def test_handler_secret_sets_oauth_source(self, catalog, memory_store, settings):
        """핸들러가 secret을 반환하면 source=oauth-handler"""
        await memory_store.set("github-copilot", Credential(kind="oauth", refresh_token="gho_x"))
        registry = HandlerRegistry([CopilotProvider(settings=settings)])

        states = await build_provider_state(catalog, memory_store, registry=registry, environ={})

        state = states["github-copilot"]
        assert state.source is AuthSource.OAUTH_HANDLER
        assert state.secret == ""
        assert state.options.base_url == "https://api.githubcopilot.com"
        assert state.options.headers == {}

    @pytest.mark.asyncio
    async def test_google_oauth_placeholder(self, catalog, memory_store, settings):
        memory_store.record_candidate(
            "google",
            Credential(kind="oauth", secret="ya29.tok", origin_location="/h/.gemini/oauth_creds.json"),
        )
        registry = HandlerRegistry([GoogleProvider(settings=settings)])

        states = await build_provider_state(catalog, memory_store, registry=registry, environ={})

        state = states["google"]
        assert state.source is AuthSource.OAUTH_HANDLER
        assert state.options.secret == GoogleProvider.PLACEHOLDER_KEY
        assert state.location == "/h/.gemini/oauth_creds.json"

    @pytest.mark.asyncio
    async def test_handler_failure_is_skipped(self, catalog, memory_store, caplog):
        """핸들러 예외는 로그만 남기고 이전 계층 유지"""
        await memory_store.set("openai", Credential(kind="oauth", secret="a.b.c"))
        registry = HandlerRegistry()
        registry.register(FailingHandler())

        with caplog.at_level(logging.WARNING, logger="llm_auth.provider.state"):
            states = await build_provider_state(catalog, memory_store, registry=registry, environ={})

        assert states["openai"].source is AuthSource.STORE
        assert states["openai"].secret == "a.b.c"
        assert "handler exploded" in caplog.text

    @pytest.mark.asyncio
    async def test_explicit_config_wins(self, catalog, memory_store):
        """호출자 설정이 환경 변수보다 우선"""
        states = await build_provider_state(
            catalog,
            memory_store,
            user_config={
                "openai": {
                    "apiKey": {"type": "env", "name": "TEAM_OPENAI_KEY"},
                    "baseURL": "https://proxy.internal",
                    "headers": {"X-Team": "ml"},
                }
            },
            environ={"OPENAI_API_KEY": "sk-env", "TEAM_OPENAI_KEY": "sk-team"},
        )

        state = states["openai"]
        assert state.source is AuthSource.EXPLICIT_CONFIG
        assert state.secret == "sk-team"
        assert state.options.secret == "sk-team"
        assert state.options.base_url == "https://proxy.internal/v1"
        assert state.options.headers["X-Team"] == "ml"
        assert state.location is None

    @pytest.mark.asyncio
    async def test_unresolved_config_keeps_previous_layer(self, catalog, memory_store):
        """해석할 수 없는 api_key는 이전 계층 유지"""
        states = await build_provider_state(
            catalog,
            memory_store,
            user_config={"openai": ProviderConfig(api_key=EnvSecret("NOT_SET"))},
            resolver=SecretResolver(environ={}),
            environ={"OPENAI_API_KEY": "sk-env"},
        )
        assert states["openai"].source is AuthSource.ENV
        assert states["openai"].secret == "sk-env"

    @pytest.mark.asyncio
    async def test_api_key_handler_result_is_noop(self, catalog, memory_store, settings):
        """api-key 자격증명이면 핸들러는 빈 옵션을 반환하고 store 계층 유지"""
        await memory_store.set("anthropic", Credential(secret="sk-ant-api03-stored"))
        registry = HandlerRegistry([AnthropicProvider(settings=settings)])

        states = await build_provider_state(catalog, memory_store, registry=registry, environ={})

        assert states["anthropic"].source is AuthSource.STORE
        assert states["anthropic"].options == ConnectionOptions(secret="sk-ant-api03-stored")
