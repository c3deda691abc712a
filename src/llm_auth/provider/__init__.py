"""Provider Auth Resolution

카탈로그 기본값 -> 환경 변수 -> 저장소/발견 -> OAuth 핸들러 -> 호출자 설정 순으로
provider별 연결 옵션을 계산합니다.
"""

from llm_auth.provider.catalog import DEFAULT_PROVIDERS, CatalogProvider, ProviderCatalog
from llm_auth.provider.registry import HandlerRegistry, default_registry
from llm_auth.provider.resolver import ProviderAuthResolver
from llm_auth.provider.state import (
    AuthSource,
    ProviderAuthState,
    ProviderConfig,
    build_provider_state,
    normalize_base_url,
)

__all__ = [
    "CatalogProvider",
    "ProviderCatalog",
    "DEFAULT_PROVIDERS",
    "HandlerRegistry",
    "default_registry",
    "AuthSource",
    "ProviderConfig",
    "ProviderAuthState",
    "build_provider_state",
    "normalize_base_url",
    "ProviderAuthResolver",
]
