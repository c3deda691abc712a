"""Provider auth state

카탈로그의 provider마다 연결 옵션과 자격증명 출처를 계산합니다.

적용 순서 (뒤쪽이 우선):
1. 카탈로그 기본값 (base URL, 헤더, 옵션)
2. 환경 변수
3. 저장소/발견된 자격증명 (환경 변수가 없을 때)
4. OAuth 핸들러 (자격증명이 있을 때)
5. 호출자 설정 (api_key는 SecretResolver로 해석)
"""

import logging
import os
from collections.abc import Mapping
from dataclasses import dataclass, field
from enum import Enum
from urllib.parse import urlsplit, urlunsplit

from llm_auth.auth.credential import Credential, CredentialKind
from llm_auth.auth.exceptions import SecretUnresolvedError
from llm_auth.auth.providers.base import ConnectionOptions
from llm_auth.auth.secrets import SecretRef, SecretResolver, parse_secret_ref
from llm_auth.auth.storage.credential_store import CredentialStore
from llm_auth.provider.catalog import CatalogProvider, ProviderCatalog
from llm_auth.provider.registry import HandlerRegistry

logger = logging.getLogger(__name__)

_BASE_URL_KEYS = ("base_url", "baseURL", "api_host", "apiHost", "host")


class AuthSource(str, Enum):
    """최종적으로 적용된 계층"""

    ENV = "env"
    DISK = "disk"
    STORE = "store"
    OAUTH_HANDLER = "oauth-handler"
    EXPLICIT_CONFIG = "explicit-config"
    NONE = "none"


@dataclass
class ProviderConfig:
    """호출자 설정 (가장 높은 우선순위)

    Attributes:
        api_key: SecretRef (literal, env, storage)
        base_url: base URL
        headers: 헤더 (기존 헤더와 병합)
        options: 클라이언트 옵션
    """

    api_key: SecretRef | None = None
    base_url: str | None = None
    headers: dict[str, str] = field(default_factory=dict)
    options: dict = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: Mapping) -> "ProviderConfig":
        """딕셔너리에서 생성 (apiKey, baseURL 별칭 허용)"""
        api_key = data.get("api_key", data.get("apiKey"))
        return cls(
            api_key=parse_secret_ref(api_key) if api_key is not None else None,
            base_url=data.get("base_url") or data.get("baseURL"),
            headers=dict(data.get("headers") or {}),
            options=dict(data.get("options") or {}),
        )


@dataclass
class ProviderAuthState:
    """provider별 해석 결과"""

    provider_id: str
    secret: str | None = None
    options: ConnectionOptions = field(default_factory=ConnectionOptions)
    source: AuthSource = AuthSource.NONE
    location: str | None = None

    @property
    def has_auth(self) -> bool:
        return self.source is not AuthSource.NONE


def normalize_base_url(provider_id: str, base_url: str) -> str:
    """openai base URL에 경로가 없으면 /v1 추가"""
    if provider_id != "openai":
        return base_url
    parts = urlsplit(base_url)
    if not parts.scheme or not parts.netloc:
        return base_url
    path = parts.path.rstrip("/") or "/v1"
    return urlunsplit((parts.scheme, parts.netloc, path, parts.query, parts.fragment))


def credential_base_url(credential: Credential | None) -> str | None:
    """자격증명에 저장된 base URL (extra의 base_url, api_host, host)"""
    if credential is None:
        return None
    for key in _BASE_URL_KEYS:
        value = credential.extra.get(key)
        if isinstance(value, str) and value.strip():
            return value.strip()
    return None


def normalize_user_config(user_config: Mapping | None) -> dict[str, ProviderConfig]:
    if not user_config:
        return {}
    return {
        pid: cfg if isinstance(cfg, ProviderConfig) else ProviderConfig.from_dict(cfg)
        for pid, cfg in user_config.items()
    }


def _catalog_defaults(provider: CatalogProvider) -> ConnectionOptions:
    return ConnectionOptions(
        base_url=normalize_base_url(provider.id, provider.base_url) if provider.base_url else None,
        headers=dict(provider.headers),
        extra=dict(provider.options),
    )


async def build_provider_state(
    catalog: ProviderCatalog,
    store: CredentialStore,
    registry: HandlerRegistry | None = None,
    user_config: Mapping | None = None,
    resolver: SecretResolver | None = None,
    environ: Mapping[str, str] | None = None,
) -> dict[str, ProviderAuthState]:
    """카탈로그의 모든 provider에 대해 ProviderAuthState 계산.

    Args:
        catalog: provider 카탈로그
        store: 자격증명 저장소
        registry: OAuth 핸들러 레지스트리
        user_config: provider ID -> ProviderConfig (또는 dict)
        resolver: 호출자 설정의 SecretRef 해석기
        environ: 환경 변수 (기본값: os.environ)

    Returns:
        provider ID -> ProviderAuthState (카탈로그 순서)
    """
    environ = environ if environ is not None else os.environ
    configs = normalize_user_config(user_config)
    resolver = resolver or SecretResolver(environ=environ)
    persisted = await store.load_persisted()

    result: dict[str, ProviderAuthState] = {}
    for provider in catalog.list():
        state = await _build_one(
            provider, store, registry, configs.get(provider.id), resolver, environ, persisted
        )
        if state.has_auth:
            logger.debug(
                "%s: source=%s, location=%s",
                provider.id,
                state.source.value,
                state.location or "n/a",
            )
        result[provider.id] = state

    logger.info("Provider state built for %d providers", len(result))
    return result


async def _build_one(
    provider: CatalogProvider,
    store: CredentialStore,
    registry: HandlerRegistry | None,
    config: ProviderConfig | None,
    resolver: SecretResolver,
    environ: Mapping[str, str],
    persisted: dict[str, Credential],
) -> ProviderAuthState:
    pid = provider.id
    state = ProviderAuthState(provider_id=pid, options=_catalog_defaults(provider))

    for env_var in provider.env:
        value = environ.get(env_var)
        if value:
            state.secret = value
            state.source = AuthSource.ENV
            state.location = f"env:{env_var}"
            break

    credential = await store.get_preferred(pid, CredentialKind.OAUTH)

    override = credential_base_url(credential)
    if override:
        state.options.base_url = normalize_base_url(pid, override)

    if state.source is AuthSource.NONE and credential is not None:
        if credential.secret is not None:
            state.secret = credential.secret
            state.location = credential.origin_location
            if persisted.get(pid) == credential:
                state.source = AuthSource.STORE
            elif (credential.origin_location or "").startswith("env:"):
                state.source = AuthSource.ENV
            else:
                state.source = AuthSource.DISK

        handler = registry.get(pid) if registry is not None else None
        if handler is not None:
            await _apply_handler(state, handler, store, credential)

    if config is not None:
        await _apply_user_config(state, config, resolver)

    state.options.secret = state.secret
    return state


async def _apply_handler(state, handler, store, credential) -> None:
    pid = state.provider_id

    async def get_credential() -> Credential | None:
        return await store.get_preferred(pid, CredentialKind.OAUTH)

    async def set_credential(updated: Credential) -> None:
        await store.set(pid, updated)

    try:
        handler_options = await handler.resolve_connection_options(
            get_credential, set_credential
        )
    except Exception as e:
        logger.warning("%s handler failed, skipping: %s", pid, e)
        return

    state.options = state.options.merge(handler_options)
    if handler_options.secret is not None:
        state.secret = handler_options.secret
        state.source = AuthSource.OAUTH_HANDLER
    elif handler_options.transport is not None:
        # transport가 요청마다 토큰을 주입하므로 저장 계층의 access token은 보고하지 않음
        state.secret = None
    if credential.origin_location:
        state.location = credential.origin_location


async def _apply_user_config(
    state: ProviderAuthState, config: ProviderConfig, resolver: SecretResolver
) -> None:
    pid = state.provider_id
    if config.base_url:
        state.options.base_url = normalize_base_url(pid, config.base_url)
    if config.headers:
        state.options.headers = {**state.options.headers, **config.headers}
    if config.options:
        state.options.extra = {**state.options.extra, **config.options}

    if config.api_key is None:
        return
    try:
        state.secret = await resolver.resolve(config.api_key)
    except SecretUnresolvedError as e:
        logger.warning("%s: configured api_key could not be resolved: %s", pid, e)
        return
    state.source = AuthSource.EXPLICIT_CONFIG
    state.location = None
    logger.debug("%s: resolved key from user config", pid)
