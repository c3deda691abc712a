"""Credential 데이터 모델

저장/교환되는 자격증명 단위와 secret 형태 분류.
"""

import base64
import json
import time
from dataclasses import dataclass, field, replace
from enum import Enum


def now_ms() -> int:
    """현재 시각 (epoch milliseconds)"""
    return int(time.time() * 1000)


class CredentialKind(str, Enum):
    """자격증명 종류"""

    API_KEY = "api-key"
    OAUTH = "oauth"
    WELL_KNOWN = "well-known"


# 호환 도구(opencode 등)가 쓰는 이름
_KIND_ALIASES = {
    "api-key": CredentialKind.API_KEY,
    "api": CredentialKind.API_KEY,
    "oauth": CredentialKind.OAUTH,
    "well-known": CredentialKind.WELL_KNOWN,
    "wellknown": CredentialKind.WELL_KNOWN,
}

# 저장 필드 -> 허용되는 별칭 (앞쪽 우선)
_FIELD_ALIASES = {
    "secret": ("secret", "key", "access"),
    "refresh_token": ("refresh_token", "refresh", "refreshToken"),
    "expires_at": ("expires_at", "expires", "expiresAt"),
    "account_id": ("account_id", "accountId"),
    "enterprise_domain": ("enterprise_domain", "enterpriseUrl", "enterpriseDomain"),
    "origin_location": ("origin_location", "location"),
}
_KNOWN_KEYS = {"kind", "type"} | {
    alias for aliases in _FIELD_ALIASES.values() for alias in aliases
}


def parse_kind(value: object) -> CredentialKind:
    """kind 정규화 (알 수 없는 값은 api-key)"""
    if isinstance(value, CredentialKind):
        return value
    if isinstance(value, str):
        return _KIND_ALIASES.get(value.lower(), CredentialKind.API_KEY)
    return CredentialKind.API_KEY


def _non_empty(value: object) -> str | None:
    if isinstance(value, str) and value:
        return value
    return None


def _as_millis(value: object) -> int | None:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    return int(value)


@dataclass
class Credential:
    """자격증명

    Attributes:
        kind: api-key / oauth / well-known
        secret: bearer 값 (oauth면 현재 access token)
        refresh_token: oauth 전용 장기 토큰
        expires_at: 만료 시각 (epoch ms, None이면 만료 없음/미상)
        account_id: provider 계정 ID (예: ChatGPT account id)
        enterprise_domain: 엔터프라이즈 도메인
        origin_location: 발견 위치 (파일 경로 또는 env:VAR)
        extra: 알 수 없는 필드 (그대로 보존)
    """

    kind: CredentialKind = CredentialKind.API_KEY
    secret: str | None = None
    refresh_token: str | None = None
    expires_at: int | None = None
    account_id: str | None = None
    enterprise_domain: str | None = None
    origin_location: str | None = None
    extra: dict = field(default_factory=dict)

    def __post_init__(self):
        self.kind = parse_kind(self.kind)
        self.secret = _non_empty(self.secret)

    def is_expired(self, now: int | None = None) -> bool:
        """만료 여부 (expires_at이 없으면 False)"""
        if self.expires_at is None:
            return False
        return self.expires_at < (now if now is not None else now_ms())

    def needs_refresh(self, now: int | None = None) -> bool:
        """refresh가 필요한 oauth 자격증명인지 확인"""
        return (
            self.kind is CredentialKind.OAUTH
            and self.refresh_token is not None
            and self.is_expired(now)
        )

    def replace(self, **changes) -> "Credential":
        """변경된 복사본 반환"""
        return replace(self, **changes)

    def to_dict(self) -> dict:
        """딕셔너리로 변환 (저장용, None 필드 생략)"""
        data = dict(self.extra)
        data["kind"] = self.kind.value
        for name in _FIELD_ALIASES:
            value = getattr(self, name)
            if value is not None:
                data[name] = value
        return data

    @classmethod
    def from_dict(cls, data: dict) -> "Credential":
        """딕셔너리에서 생성 (정규화 포함)"""
        values = {}
        for name, aliases in _FIELD_ALIASES.items():
            for alias in aliases:
                if data.get(alias) is not None:
                    values[name] = data[alias]
                    break

        expires_at = _as_millis(values.pop("expires_at", None))
        return cls(
            kind=parse_kind(data.get("kind", data.get("type"))),
            secret=_non_empty(values.pop("secret", None)),
            refresh_token=_non_empty(values.pop("refresh_token", None)),
            expires_at=expires_at,
            account_id=_non_empty(values.pop("account_id", None)),
            enterprise_domain=_non_empty(values.pop("enterprise_domain", None)),
            origin_location=_non_empty(values.pop("origin_location", None)),
            extra={k: v for k, v in data.items() if k not in _KNOWN_KEYS},
        )


class SecretShape(str, Enum):
    """secret 문자열의 형태"""

    API_KEY_SHAPED = "api-key-shaped"
    OAUTH_TOKEN_SHAPED = "oauth-token-shaped"
    UNKNOWN = "unknown"


def decode_jwt_payload(token: str) -> dict | None:
    """JWT payload (base64url) 디코딩. JWT가 아니면 None"""
    parts = token.split(".")
    if len(parts) != 3:
        return None
    payload = parts[1] + "=" * (-len(parts[1]) % 4)
    try:
        claims = json.loads(base64.urlsafe_b64decode(payload))
    except (ValueError, UnicodeDecodeError):
        return None
    return claims if isinstance(claims, dict) else None


def classify_secret(provider_id: str, value: str | None) -> SecretShape:
    """secret이 provider의 직접 API 키 형태인지 OAuth 토큰 형태인지 분류.

    접두사 규칙은 외부에서 관찰 가능한 동작이므로 정확히 유지해야 함.

    Args:
        provider_id: provider ID
        value: 분류할 secret

    Returns:
        SecretShape: API_KEY_SHAPED / OAUTH_TOKEN_SHAPED / UNKNOWN
    """
    if not value:
        return SecretShape.UNKNOWN

    if provider_id == "anthropic":
        if value.startswith(("sk-ant-oat", "sk-ant-ort")):
            return SecretShape.OAUTH_TOKEN_SHAPED
        if value.startswith("sk-ant-"):
            return SecretShape.API_KEY_SHAPED
    elif provider_id == "openai":
        if decode_jwt_payload(value) is not None:
            return SecretShape.OAUTH_TOKEN_SHAPED
        if value.startswith("sk-"):
            return SecretShape.API_KEY_SHAPED
    elif provider_id == "google":
        if value.startswith("ya29."):
            return SecretShape.OAUTH_TOKEN_SHAPED
        if value.startswith("AIza"):
            return SecretShape.API_KEY_SHAPED
    elif provider_id == "github-copilot":
        if value.startswith(("gho_", "ghu_")):
            return SecretShape.OAUTH_TOKEN_SHAPED

    return SecretShape.UNKNOWN


def looks_like_api_key(provider_id: str, value: str | None) -> bool:
    return classify_secret(provider_id, value) is SecretShape.API_KEY_SHAPED


class DiscoverySource(str, Enum):
    """자격증명 발견 위치"""

    ENV = "env"
    DISK = "disk"
    STORE = "store"


@dataclass
class DiscoveredCredential:
    """discover() 보고 항목

    secret 없이 존재만 확인된 항목(gcloud ADC, AWS 프로필 등)도 포함됩니다.
    """

    provider_id: str
    source: DiscoverySource
    secret: str | None = None
    kind: CredentialKind = CredentialKind.API_KEY
    location: str | None = None
    credential: Credential | None = None

    @classmethod
    def from_credential(
        cls, provider_id: str, source: DiscoverySource, credential: Credential
    ) -> "DiscoveredCredential":
        return cls(
            provider_id=provider_id,
            source=source,
            secret=credential.secret,
            kind=credential.kind,
            location=credential.origin_location,
            credential=credential,
        )
