"""Secret Resolver 테스트"""

import pytest

from llm_auth.auth.exceptions import SecretUnresolvedError
from llm_auth.auth.secrets import (
    EnvSecret,
    PlainSecret,
    SecretResolver,
    StoredSecret,
    parse_secret_ref,
)
from llm_auth.auth.storage.backends import MemoryStorage


class TestSecretResolver:
    """SecretResolver 테스트"""

    @pytest.mark.asyncio
    async def test_plain_and_string(self):
        """literal 값 그대로 반환"""
        resolver = SecretResolver(environ={})
        assert await resolver.resolve("sk-literal") == "sk-literal"
        assert await resolver.resolve(PlainSecret("abc")) == "abc"

    @pytest.mark.asyncio
    async def test_env(self):
        """환경 변수 해석"""
        resolver = SecretResolver(environ={"MY_KEY": "value"})
        assert await resolver.resolve(EnvSecret("MY_KEY")) == "value"

    @pytest.mark.asyncio
    async def test_env_missing(self):
        """미설정 환경 변수는 SecretUnresolvedError"""
        resolver = SecretResolver(environ={})
        with pytest.raises(SecretUnresolvedError) as exc_info:
            await resolver.resolve(EnvSecret("MISSING"))
        assert exc_info.value.reference == "MISSING"

    @pytest.mark.asyncio
    async def test_storage(self):
        """저장소 키 해석"""
        storage = MemoryStorage()
        await storage.set("team-key", "secret-from-store")
        resolver = SecretResolver(storage=storage, environ={})
        assert await resolver.resolve(StoredSecret("team-key")) == "secret-from-store"

    @pytest.mark.asyncio
    async def test_storage_missing_key(self):
        """저장소에 없는 키는 SecretUnresolvedError"""
        resolver = SecretResolver(storage=MemoryStorage(), environ={})
        with pytest.raises(SecretUnresolvedError):
            await resolver.resolve(StoredSecret("nope"))

    @pytest.mark.asyncio
    async def test_storage_not_configured(self):
        """저장소가 없으면 SecretUnresolvedError"""
        resolver = SecretResolver(environ={})
        with pytest.raises(SecretUnresolvedError):
            await resolver.resolve(StoredSecret("key"))

    @pytest.mark.asyncio
    async def test_no_caching(self):
        """캐싱하지 않음 - 환경 변수 변경이 바로 반영됨"""
        environ = {"K": "one"}
        resolver = SecretResolver(environ=environ)
        assert await resolver.resolve(EnvSecret("K")) == "one"
        environ["K"] = "two"
        assert await resolver.resolve(EnvSecret("K")) == "two"


class TestParseSecretRef:
    """parse_secret_ref 테스트"""

    def test_dict_forms(self):
        assert parse_secret_ref({"type": "env", "name": "X"}) == EnvSecret("X")
        assert parse_secret_ref({"type": "storage", "key": "k"}) == StoredSecret("k")
        assert parse_secret_ref({"type": "plain", "value": "v"}) == PlainSecret("v")
        assert parse_secret_ref("raw") == "raw"

    def test_unknown_form(self):
        with pytest.raises(SecretUnresolvedError):
            parse_secret_ref({"type": "vault", "path": "x"})
