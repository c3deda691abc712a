"""Handler registry

provider ID -> OAuth 라이프사이클 핸들러.
전역 상태 없이 시작 시 한 번 만들어 resolver에 전달합니다.
"""

import logging
from collections.abc import Iterable, Iterator

from llm_auth.auth.providers import (
    AnthropicProvider,
    BaseProvider,
    CopilotProvider,
    GoogleProvider,
    OpenAIProvider,
)

logger = logging.getLogger(__name__)


class HandlerRegistry:
    """핸들러 레지스트리

    Example:
        registry = HandlerRegistry([OpenAIProvider()])
        registry.register(MyProvider())
        handler = registry.get("openai")
    """

    def __init__(self, handlers: Iterable[BaseProvider] = ()):
        self._handlers: dict[str, BaseProvider] = {}
        for handler in handlers:
            self.register(handler)

    def register(self, handler: BaseProvider, provider_id: str | None = None) -> None:
        """핸들러 등록 (같은 ID는 교체)"""
        key = provider_id or handler.name
        if key in self._handlers:
            logger.debug("Replacing handler for %s", key)
        self._handlers[key] = handler

    def get(self, provider_id: str) -> BaseProvider | None:
        return self._handlers.get(provider_id)

    def __contains__(self, provider_id: str) -> bool:
        return provider_id in self._handlers

    def __iter__(self) -> Iterator[str]:
        return iter(self._handlers)

    def __len__(self) -> int:
        return len(self._handlers)


def default_registry(**kwargs) -> HandlerRegistry:
    """기본 핸들러 4종 (anthropic, openai, google, github-copilot)

    Args:
        **kwargs: 각 핸들러 생성자에 전달 (timeout, http_transport, settings)
    """
    return HandlerRegistry(
        [
            CopilotProvider(**kwargs),
            OpenAIProvider(**kwargs),
            GoogleProvider(**kwargs),
            AnthropicProvider(**kwargs),
        ]
    )
