"""ProviderAuthResolver 테스트"""

from unittest.mock import AsyncMock, patch

import pytest

from llm_auth.auth.credential import Credential, CredentialKind
from llm_auth.auth.exceptions import (
    CredentialNotFoundError,
    DeviceFlowTimeoutError,
    ProviderNotRegisteredError,
)
from llm_auth.auth.providers import OpenAIProvider
from llm_auth.auth.scanners import DiskScanner, ScanContext, disk_result
from llm_auth.provider.catalog import ProviderCatalog
from llm_auth.provider.registry import HandlerRegistry
from llm_auth.provider.resolver import ProviderAuthResolver
from llm_auth.provider.state import AuthSource


class StaticScanner(DiskScanner):
    name = "static"

    def __init__(self, results):
        self.results = results

    async def scan(self, ctx):
        return list(self.results)


@pytest.fixture
def resolver(memory_store, settings):
    return ProviderAuthResolver(
        store=memory_store,
        registry=HandlerRegistry([OpenAIProvider(settings=settings)]),
        environ={"GROQ_API_KEY": "gsk-env"},
    )


class TestProviderAuthResolver:
    @pytest.mark.asyncio
    async def test_get_unknown_provider(self, resolver):
        with pytest.raises(ProviderNotRegisteredError):
            await resolver.get("does-not-exist")

    @pytest.mark.asyncio
    async def test_require(self, resolver):
        """자격증명이 없으면 CredentialNotFoundError"""
        assert (await resolver.require("groq")).secret == "gsk-env"
        with pytest.raises(CredentialNotFoundError) as exc_info:
            await resolver.require("mistral")
        assert "MISTRAL_API_KEY" in str(exc_info.value)

    @pytest.mark.asyncio
    async def test_connection_options(self, resolver):
        options = await resolver.connection_options("groq")
        assert options.secret == "gsk-env"

    @pytest.mark.asyncio
    async def test_connection_options_requires_bundled_client(self, resolver):
        resolver.extend({"local": {"name": "Local", "env": ["LOCAL_KEY"]}})
        with pytest.raises(ProviderNotRegisteredError):
            await resolver.connection_options("local")

    @pytest.mark.asyncio
    async def test_available_providers(self, resolver, memory_store):
        await memory_store.set("xai", Credential(secret="xai-1"))
        assert await resolver.available_providers() == ["xai", "groq"]

    @pytest.mark.asyncio
    async def test_state_cached_until_invalidated(self, resolver):
        with patch(
            "llm_auth.provider.resolver.build_provider_state",
            new_callable=AsyncMock,
            return_value={},
        ) as build:
            await resolver.get_state()
            await resolver.get_state()
            assert build.await_count == 1

            resolver.invalidate()
            await resolver.get_state()
            assert build.await_count == 2

    @pytest.mark.asyncio
    async def test_state_failure_not_cached(self, resolver):
        """계산 실패는 캐시하지 않음"""
        with patch(
            "llm_auth.provider.resolver.build_provider_state",
            new_callable=AsyncMock,
            side_effect=[RuntimeError("boom"), {}],
        ):
            with pytest.raises(RuntimeError):
                await resolver.get_state()
            assert await resolver.get_state() == {}

    @pytest.mark.asyncio
    async def test_extend_adds_env_hints(self, resolver, memory_store):
        """카탈로그 확장은 discover()의 환경 변수 목록에도 반영"""
        resolver.extend(
            {"my-llm": {"name": "My LLM", "env": ["MY_LLM_KEY"], "bundled_client": "@ai-sdk/openai-compatible"}}
        )
        assert ("MY_LLM_KEY", "my-llm") in memory_store.env_hints

        resolver.environ = {"MY_LLM_KEY": "mine"}
        state = await resolver.get("my-llm")
        assert state.source is AuthSource.ENV

    @pytest.mark.asyncio
    async def test_set_user_config(self, resolver):
        resolver.set_user_config({"groq": {"apiKey": "gsk-explicit"}})
        state = await resolver.get("groq")
        assert state.source is AuthSource.EXPLICIT_CONFIG
        assert state.secret == "gsk-explicit"

    @pytest.mark.asyncio
    async def test_discover_then_resolve(self, resolver, tmp_path):
        """discover() 결과가 다음 조회에 반영"""
        assert (await resolver.get("openrouter")).source is AuthSource.NONE

        scanner = StaticScanner([disk_result("openrouter", "/h/opencode/auth.json", secret="or-1")])
        await resolver.discover(environ={}, scanners=[scanner], context=ScanContext(home=tmp_path))

        state = await resolver.get("openrouter")
        assert state.source is AuthSource.DISK
        assert state.secret == "or-1"

    @pytest.mark.asyncio
    async def test_login_and_logout(self, resolver, memory_store):
        """login은 핸들러 authorize 결과를 저장, logout은 삭제"""
        credential = Credential(kind=CredentialKind.OAUTH, secret="sk-proj-from-login", refresh_token="rt")
        with patch.object(OpenAIProvider, "authorize", new_callable=AsyncMock, return_value=credential) as authorize:
            result = await resolver.login("openai", method="browser")

        authorize.assert_awaited_once_with(method="browser")
        assert result == credential
        assert await memory_store.get("openai") == credential
        assert (await resolver.get("openai")).secret == "sk-proj-from-login"

        await resolver.logout("openai")
        assert await memory_store.get("openai") is None
        assert (await resolver.get("openai")).source is AuthSource.NONE

    @pytest.mark.asyncio
    async def test_login_unknown_handler(self, resolver):
        with pytest.raises(ProviderNotRegisteredError):
            await resolver.login("mistral")

    @pytest.mark.asyncio
    async def test_login_failure_propagates(self, resolver, memory_store):
        """대화형 로그인 실패는 호출자에게 전파"""
        with patch.object(
            OpenAIProvider,
            "authorize",
            new_callable=AsyncMock,
            side_effect=DeviceFlowTimeoutError("timed out", max_retries=3, attempts=3),
        ):
            with pytest.raises(DeviceFlowTimeoutError):
                await resolver.login("openai")
        assert await memory_store.get("openai") is None
