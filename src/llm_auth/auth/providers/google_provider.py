"""Google Provider

Gemini API용 OAuth 인증.
- Gemini CLI 토큰 재사용 (~/.gemini/oauth_creds.json)
- Browser OAuth 2.0 + PKCE (붙여넣기 콜백)
- OAuth 토큰 사용 시 Bearer transport (x-goog-api-key 제거)
"""

import logging
import os
from collections.abc import Callable
from pathlib import Path

from llm_auth.auth.credential import Credential, CredentialKind, looks_like_api_key, now_ms
from llm_auth.auth.exceptions import OAuthExchangeFailedError
from llm_auth.auth.flows.browser_oauth import (
    OAuthConfig,
    PastedCallbackOAuth,
    TokenResponse,
)
from llm_auth.auth.providers.base import (
    BaseProvider,
    ConnectionOptions,
    GetCredential,
    SetCredential,
)
from llm_auth.auth.providers.transport import BearerTokenTransport
from llm_auth.auth.schemas import GeminiOAuthCreds, load_json_object, parse_config

logger = logging.getLogger(__name__)


def try_import_gemini_cli_token(gemini_home: Path | None = None) -> Credential | None:
    """Gemini CLI 토큰 재사용 (oauth_creds.json)

    Returns:
        Credential: 만료되지 않은 토큰이 있으면 반환, 없으면 None
    """
    if gemini_home is None:
        env_home = os.getenv("GEMINI_CLI_HOME")
        gemini_home = Path(env_home) if env_home else Path.home() / ".gemini"

    path = gemini_home / "oauth_creds.json"
    try:
        raw = path.read_text(encoding="utf-8")
    except OSError:
        return None

    creds = parse_config(GeminiOAuthCreds, load_json_object(raw))
    if creds is None or not creds.access_token:
        return None

    expires_at = int(creds.expiry_date) if creds.expiry_date is not None else None
    if expires_at is not None and expires_at <= now_ms():
        return None

    return Credential(
        kind=CredentialKind.OAUTH,
        secret=creds.access_token,
        refresh_token=creds.refresh_token,
        expires_at=expires_at,
        origin_location=str(path),
    )


class GoogleProvider(BaseProvider):
    """Google Gemini용 OAuth Provider

    Gemini CLI의 공개 Client ID를 사용하여
    별도 설정 없이 로그인/갱신이 가능합니다.

    Example:
        provider = GoogleProvider()
        credential = await provider.authorize()
    """

    # Google OAuth 설정
    AUTHORIZATION_ENDPOINT = "https://accounts.google.com/o/oauth2/v2/auth"
    TOKEN_ENDPOINT = "https://oauth2.googleapis.com/token"
    # Gemini CLI 공개 Client ID (Code Assist용)
    DEFAULT_CLIENT_ID = (
        "681255809395-oo8ft2oprdrnp9e3aqf6av3hmdib135j.apps.googleusercontent.com"
    )
    DEFAULT_CLIENT_SECRET = "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"
    SCOPE = "https://www.googleapis.com/auth/cloud-platform openid email"
    # 수동 로그인용 리디렉션 (코드가 페이지에 표시됨)
    REDIRECT_URI = "https://codeassist.google.com/authcode"
    PLACEHOLDER_KEY = "google-oauth-placeholder"
    DEFAULT_EXPIRES_IN = 3600

    def __init__(
        self,
        client_id: str | None = None,
        client_secret: str | None = None,
        gemini_home: Path | None = None,
        input_func: Callable[[str], str] = input,
        **kwargs,
    ):
        super().__init__(**kwargs)
        # 환경변수 또는 기본 공개 Client ID 사용
        self.client_id = (
            client_id
            or os.getenv("GOOGLE_CLIENT_ID")
            or self.DEFAULT_CLIENT_ID
        )
        self.client_secret = (
            client_secret
            or os.getenv("GOOGLE_CLIENT_SECRET")
            or self.DEFAULT_CLIENT_SECRET
        )
        self.gemini_home = gemini_home
        self.input_func = input_func

    @property
    def name(self) -> str:
        return "google"

    @property
    def display_name(self) -> str:
        return "Google Gemini"

    async def authorize(
        self, auto_open_browser: bool = False, reuse_cli_token: bool = True, **kwargs
    ) -> Credential:
        """로그인

        Gemini CLI 토큰이 있으면 우선 재사용합니다.
        없거나 만료된 경우에만 브라우저 로그인을 진행합니다.
        """
        if reuse_cli_token:
            cli_credential = try_import_gemini_cli_token(self.gemini_home)
            if cli_credential is not None:
                logger.info("Reusing Gemini CLI token from %s", cli_credential.origin_location)
                return cli_credential

        config = OAuthConfig(
            client_id=self.client_id,
            client_secret=self.client_secret,
            authorization_endpoint=self.AUTHORIZATION_ENDPOINT,
            token_endpoint=self.TOKEN_ENDPOINT,
            redirect_uri=self.REDIRECT_URI,
            scope=self.SCOPE,
            extra_params={"access_type": "offline", "prompt": "consent"},
        )
        oauth = PastedCallbackOAuth(
            config,
            auto_open_browser=auto_open_browser,
            input_func=self.input_func,
            timeout=self.timeout,
            http_transport=self.http_transport,
            title="Google Gemini Login",
        )
        token = await oauth.authenticate()
        return self.credential_from_token(token)

    async def refresh(self, credential: Credential) -> Credential:
        """Refresh token으로 갱신"""
        if not credential.refresh_token:
            raise OAuthExchangeFailedError(
                "No refresh token available", provider=self.name
            )

        data = {
            "grant_type": "refresh_token",
            "refresh_token": credential.refresh_token,
            "client_id": self.client_id,
        }
        if self.client_secret:
            data["client_secret"] = self.client_secret

        result = await self.post_token_request(self.TOKEN_ENDPOINT, data)
        return self.credential_from_token(TokenResponse.from_dict(result), base=credential)

    async def resolve_connection_options(
        self, get_credential: GetCredential, set_credential: SetCredential
    ) -> ConnectionOptions:
        credential = await get_credential()
        if credential is None or credential.kind is not CredentialKind.OAUTH:
            return ConnectionOptions()

        credential = await self.ensure_fresh(credential, set_credential)
        if looks_like_api_key(self.name, credential.secret):
            return ConnectionOptions(secret=credential.secret)

        return ConnectionOptions(
            secret=self.PLACEHOLDER_KEY,
            transport=BearerTokenTransport(
                self,
                get_credential,
                set_credential,
                strip_headers=("x-goog-api-key",),
            ),
        )
