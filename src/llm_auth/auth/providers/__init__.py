"""Auth Providers

OAuth를 지원하는 provider별 라이프사이클 핸들러.
"""

from llm_auth.auth.providers.anthropic_provider import AnthropicProvider
from llm_auth.auth.providers.base import BaseProvider, ConnectionOptions
from llm_auth.auth.providers.copilot_provider import CopilotProvider
from llm_auth.auth.providers.google_provider import GoogleProvider
from llm_auth.auth.providers.openai_provider import CodexTransport, OpenAIProvider
from llm_auth.auth.providers.transport import BearerTokenTransport

__all__ = [
    "BaseProvider",
    "ConnectionOptions",
    "AnthropicProvider",
    "OpenAIProvider",
    "GoogleProvider",
    "CopilotProvider",
    "BearerTokenTransport",
    "CodexTransport",
]
