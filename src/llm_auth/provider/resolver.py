"""Provider Auth Resolver

카탈로그, 저장소, 핸들러 레지스트리, 호출자 설정을 묶어
provider별 연결 옵션을 제공하는 진입점.
"""

import asyncio
import logging
import os
from collections.abc import Mapping

from llm_auth.auth.credential import Credential
from llm_auth.auth.exceptions import CredentialNotFoundError, ProviderNotRegisteredError
from llm_auth.auth.providers.base import ConnectionOptions
from llm_auth.auth.secrets import SecretResolver
from llm_auth.auth.storage.credential_store import CredentialStore
from llm_auth.provider.catalog import CatalogProvider, ProviderCatalog
from llm_auth.provider.registry import HandlerRegistry, default_registry
from llm_auth.provider.state import (
    AuthSource,
    ProviderAuthState,
    build_provider_state,
    normalize_user_config,
)

logger = logging.getLogger(__name__)


class ProviderAuthResolver:
    """Provider 인증 해석기

    상태는 처음 조회할 때 한 번 계산해 캐시하며,
    login/logout/extend/set_user_config/discover 후 다시 계산합니다.

    Example:
        resolver = ProviderAuthResolver()
        await resolver.discover(persist=True)
        options = await resolver.connection_options("anthropic")
    """

    def __init__(
        self,
        catalog: ProviderCatalog | None = None,
        store: CredentialStore | None = None,
        registry: HandlerRegistry | None = None,
        user_config: Mapping | None = None,
        resolver: SecretResolver | None = None,
        environ: Mapping[str, str] | None = None,
    ):
        self.catalog = catalog or ProviderCatalog()
        self.environ = environ if environ is not None else os.environ
        self.store = store or CredentialStore(env_hints=self.catalog.env_hints())
        self.registry = registry if registry is not None else default_registry()
        self.user_config = normalize_user_config(user_config)
        self.secret_resolver = resolver or SecretResolver(
            storage=self.store.storage, environ=self.environ
        )
        self._state_task: asyncio.Task | None = None

    async def _compute(self) -> dict[str, ProviderAuthState]:
        return await build_provider_state(
            self.catalog,
            self.store,
            registry=self.registry,
            user_config=self.user_config,
            resolver=self.secret_resolver,
            environ=self.environ,
        )

    async def get_state(self) -> dict[str, ProviderAuthState]:
        """provider ID -> ProviderAuthState (캐시)"""
        if self._state_task is None:
            self._state_task = asyncio.ensure_future(self._compute())
        task = self._state_task
        try:
            return await asyncio.shield(task)
        except Exception:
            if self._state_task is task:
                self._state_task = None
            raise

    def invalidate(self) -> None:
        """캐시된 상태 폐기"""
        self._state_task = None

    def _catalog_entry(self, provider_id: str) -> CatalogProvider:
        provider = self.catalog.get(provider_id)
        if provider is None:
            raise ProviderNotRegisteredError(
                f"Provider '{provider_id}' is not in the catalog", provider=provider_id
            )
        return provider

    async def get(self, provider_id: str) -> ProviderAuthState:
        """provider 상태 조회.

        Raises:
            ProviderNotRegisteredError: 카탈로그에 없는 provider
        """
        self._catalog_entry(provider_id)
        return (await self.get_state())[provider_id]

    async def require(self, provider_id: str) -> ProviderAuthState:
        """인증 수단이 있는 provider 상태 조회.

        Raises:
            ProviderNotRegisteredError: 카탈로그에 없는 provider
            CredentialNotFoundError: 어떤 계층에서도 자격증명을 찾지 못함
        """
        state = await self.get(provider_id)
        if state.source is AuthSource.NONE:
            provider = self.catalog.get(provider_id)
            hint = ", ".join(provider.env) if provider.env else "login"
            raise CredentialNotFoundError(
                f"No credential found for '{provider_id}' (set {hint})",
                provider=provider_id,
            )
        return state

    async def connection_options(self, provider_id: str) -> ConnectionOptions:
        """클라이언트 생성 단계에 넘길 연결 옵션.

        Raises:
            ProviderNotRegisteredError: 카탈로그에 없거나 번들 클라이언트가 없는 provider
        """
        provider = self._catalog_entry(provider_id)
        if not provider.bundled_client:
            raise ProviderNotRegisteredError(
                f"Provider '{provider_id}' has no bundled client", provider=provider_id
            )
        return (await self.get(provider_id)).options

    async def available_providers(self) -> list[str]:
        """인증 수단이 있는 provider ID (카탈로그 순서)"""
        states = await self.get_state()
        return [pid for pid, state in states.items() if state.has_auth]

    def extend(self, providers: Mapping) -> None:
        """카탈로그에 provider 추가. 새 환경 변수는 discover()에도 반영"""
        self.catalog.extend(providers)
        known = set(self.store.env_hints)
        for hint in self.catalog.env_hints():
            if hint not in known:
                self.store.env_hints.append(hint)
        self.invalidate()

    def set_user_config(self, user_config: Mapping | None) -> None:
        self.user_config = normalize_user_config(user_config)
        self.invalidate()

    async def discover(self, **options) -> list:
        """CredentialStore.discover() 실행 후 상태 폐기"""
        options.setdefault("environ", self.environ)
        report = await self.store.discover(**options)
        self.invalidate()
        return report

    async def login(self, provider_id: str, **kwargs) -> Credential:
        """핸들러의 대화형 로그인 후 저장.

        Args:
            provider_id: provider ID
            **kwargs: 핸들러 authorize()에 전달 (method, auto_open_browser 등)

        Raises:
            ProviderNotRegisteredError: 등록된 핸들러가 없음
            OAuthExchangeFailedError: 교환 실패
            DeviceFlowTimeoutError: device flow 폴링 한도 초과
        """
        handler = self.registry.get(provider_id)
        if handler is None:
            raise ProviderNotRegisteredError(
                f"No OAuth handler registered for '{provider_id}'", provider=provider_id
            )
        credential = await handler.authorize(**kwargs)
        await self.store.set(provider_id, credential)
        self.invalidate()
        logger.info("Logged in to %s", handler.display_name)
        return credential

    async def logout(self, provider_id: str) -> None:
        await self.store.remove(provider_id)
        self.invalidate()
