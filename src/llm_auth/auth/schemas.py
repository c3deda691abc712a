"""Schemas for credential files written by other tools.

디스크 스캐너가 읽는 외부 도구 설정 파일의 형식 정의.
파일 내용은 신뢰할 수 없으므로 parse_config()는 예외 대신 None을 반환합니다.
"""

import json
import logging
import re
from typing import Literal, TypeVar

from pydantic import BaseModel, ConfigDict, Field, ValidationError

logger = logging.getLogger(__name__)

ModelT = TypeVar("ModelT", bound=BaseModel)

_BLOCK_COMMENT = re.compile(r"/\*.*?\*/", re.DOTALL)
_LINE_COMMENT = re.compile(r"^\s*//.*$", re.MULTILINE)


class _ToolConfig(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)


class CopilotHostEntry(_ToolConfig):
    """github-copilot hosts.json / apps.json 항목"""

    oauth_token: str | None = None
    user: str | None = None


class ClaudeSettings(_ToolConfig):
    """~/.claude/settings.json"""

    anthropicApiKey: str | None = None
    anthropic_api_key: str | None = None
    ANTHROPIC_API_KEY: str | None = None
    apiKey: str | None = None

    def api_key(self) -> tuple[str, str] | None:
        """(필드 이름, 값) - 첫 번째로 설정된 필드"""
        for name in ("anthropicApiKey", "anthropic_api_key", "ANTHROPIC_API_KEY", "apiKey"):
            value = getattr(self, name)
            if value:
                return name, value
        return None


class ClaudeOAuthBlock(_ToolConfig):
    access_token: str | None = Field(default=None, alias="accessToken")
    refresh_token: str | None = Field(default=None, alias="refreshToken")
    expires_at: float | None = Field(default=None, alias="expiresAt")


class ClaudeCredentials(_ToolConfig):
    """~/.claude/.credentials.json"""

    claude_ai_oauth: ClaudeOAuthBlock | None = Field(default=None, alias="claudeAiOauth")


class CodexTokens(_ToolConfig):
    access_token: str | None = None
    refresh_token: str | None = None
    account_id: str | None = None
    id_token: str | None = None


class CodexAuthFile(_ToolConfig):
    """~/.codex/auth.json"""

    OPENAI_API_KEY: str | None = None
    tokens: CodexTokens | None = None
    token: str | None = None
    apiKey: str | None = None


class GeminiOAuthCreds(_ToolConfig):
    """~/.gemini/oauth_creds.json, google_accounts.json"""

    access_token: str | None = None
    refresh_token: str | None = None
    expiry_date: float | None = None
    accounts: list | None = None


class GcloudADC(_ToolConfig):
    """gcloud application_default_credentials.json"""

    type: str | None = None
    refresh_token: str | None = None
    private_key: str | None = None
    client_id: str | None = None

    def is_recognised(self) -> bool:
        return any((self.type, self.refresh_token, self.private_key))


class OpencodeAuthEntry(_ToolConfig):
    """opencode auth.json 항목"""

    type: Literal["api", "oauth", "wellknown"]
    key: str | None = None
    access: str | None = None
    refresh: str | None = None
    expires: float | None = None
    accountId: str | None = None
    enterpriseUrl: str | None = None

    @property
    def secret(self) -> str | None:
        return self.key or self.access


def load_json_object(raw: str | None) -> dict | None:
    """JSON 객체 파싱. 주석(// , /* */) 허용. 실패 시 None"""
    if not raw:
        return None
    for text in (raw, _LINE_COMMENT.sub("", _BLOCK_COMMENT.sub("", raw))):
        try:
            parsed = json.loads(text)
        except ValueError:
            continue
        return parsed if isinstance(parsed, dict) else None
    return None


def parse_config(model: type[ModelT], data: object) -> ModelT | None:
    """스키마 검증. 형식이 맞지 않으면 None"""
    if not isinstance(data, dict):
        return None
    try:
        return model.model_validate(data)
    except ValidationError as e:
        logger.debug("%s validation failed: %d errors", model.__name__, e.error_count())
        return None
