"""Provider catalog

provider별 환경 변수 이름, 번들 클라이언트 ID, 정적 base URL/헤더/옵션.
모델 정보(가격, 한도, 원격 동기화)는 다루지 않습니다.
"""

import logging
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field

logger = logging.getLogger(__name__)


@dataclass
class CatalogProvider:
    """카탈로그 provider 항목

    Attributes:
        id: provider ID
        name: 표시 이름
        env: API 키 환경 변수 (앞쪽 우선)
        bundled_client: 연결에 사용할 클라이언트 패키지 ID
        base_url: 기본 API base URL
        headers: 정적 헤더
        options: 클라이언트 옵션
    """

    id: str
    name: str
    env: list[str] = field(default_factory=list)
    bundled_client: str | None = None
    base_url: str | None = None
    headers: dict[str, str] = field(default_factory=dict)
    options: dict = field(default_factory=dict)

    @classmethod
    def from_dict(cls, provider_id: str, data: Mapping) -> "CatalogProvider":
        """딕셔너리에서 생성 (bundledProvider, baseURL 별칭 허용)"""
        return cls(
            id=provider_id,
            name=data.get("name") or provider_id,
            env=list(data.get("env") or []),
            bundled_client=data.get("bundled_client") or data.get("bundledProvider"),
            base_url=data.get("base_url") or data.get("baseURL"),
            headers=dict(data.get("headers") or {}),
            options=dict(data.get("options") or {}),
        )


DEFAULT_PROVIDERS: dict[str, dict] = {
    "anthropic": {
        "name": "Anthropic",
        "env": ["ANTHROPIC_API_KEY"],
        "bundled_client": "@ai-sdk/anthropic",
    },
    "openai": {
        "name": "OpenAI",
        "env": ["OPENAI_API_KEY"],
        "bundled_client": "@ai-sdk/openai",
    },
    "google": {
        "name": "Google AI",
        "env": ["GOOGLE_GENERATIVE_AI_API_KEY", "GOOGLE_API_KEY"],
        "bundled_client": "@ai-sdk/google",
    },
    "google-vertex": {
        "name": "Google Vertex AI",
        "env": [],
        "bundled_client": "@ai-sdk/google-vertex",
    },
    "amazon-bedrock": {
        "name": "Amazon Bedrock",
        "env": [],
        "bundled_client": "@ai-sdk/amazon-bedrock",
    },
    "azure": {
        "name": "Azure OpenAI",
        "env": ["AZURE_API_KEY"],
        "bundled_client": "@ai-sdk/azure",
    },
    "xai": {"name": "xAI", "env": ["XAI_API_KEY"], "bundled_client": "@ai-sdk/xai"},
    "mistral": {
        "name": "Mistral",
        "env": ["MISTRAL_API_KEY"],
        "bundled_client": "@ai-sdk/mistral",
    },
    "groq": {"name": "Groq", "env": ["GROQ_API_KEY"], "bundled_client": "@ai-sdk/groq"},
    "openrouter": {
        "name": "OpenRouter",
        "env": ["OPENROUTER_API_KEY"],
        "bundled_client": "@openrouter/ai-sdk-provider",
    },
    "github-copilot": {
        "name": "GitHub Copilot",
        "env": [],
        "bundled_client": "@ai-sdk/openai-compatible",
    },
}


class ProviderCatalog:
    """메모리 카탈로그

    Example:
        catalog = ProviderCatalog()
        catalog.extend({"my-llm": {"name": "My LLM", "env": ["MY_LLM_KEY"]}})
        provider = catalog.get("my-llm")
    """

    def __init__(
        self,
        providers: Iterable[CatalogProvider] | None = None,
        include_defaults: bool = True,
    ):
        self._providers: dict[str, CatalogProvider] = {}
        if include_defaults:
            self.extend(DEFAULT_PROVIDERS)
        for provider in providers or ():
            self._providers[provider.id] = provider

    def __contains__(self, provider_id: str) -> bool:
        return provider_id in self._providers

    def get(self, provider_id: str) -> CatalogProvider | None:
        return self._providers.get(provider_id)

    def extend(self, providers: Mapping[str, Mapping | CatalogProvider]) -> None:
        """provider 추가 또는 교체"""
        for provider_id, config in providers.items():
            if isinstance(config, CatalogProvider):
                provider = config
            else:
                provider = CatalogProvider.from_dict(provider_id, config)
            self._providers[provider_id] = provider
        logger.debug("Catalog extended with %d providers", len(providers))

    def env_hints(self) -> list[tuple[str, str]]:
        """(환경 변수, provider ID) 목록 (카탈로그 순서)"""
        return [
            (env_var, provider.id)
            for provider in self._providers.values()
            for env_var in provider.env
        ]

    def list(self) -> list[CatalogProvider]:
        return list(self._providers.values())
