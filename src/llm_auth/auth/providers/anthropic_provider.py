"""Anthropic Provider

Claude Pro/Max 구독자용 OAuth 인증.
- Authorization Code + PKCE (붙여넣기 콜백, JSON 토큰 엔드포인트)
- OAuth access token -> API 키 교환 (create_api_key)
- 교환 실패 시 Bearer fallback (요청마다 갱신)
"""

import logging
from collections.abc import Callable

import httpx

from llm_auth.auth.credential import Credential, CredentialKind, looks_like_api_key
from llm_auth.auth.exceptions import OAuthExchangeFailedError
from llm_auth.auth.flows.browser_oauth import (
    OAuthConfig,
    PastedCallbackOAuth,
    TokenResponse,
    generate_pkce_challenge,
)
from llm_auth.auth.providers.base import (
    BaseProvider,
    ConnectionOptions,
    GetCredential,
    SetCredential,
)
from llm_auth.auth.providers.transport import BearerTokenTransport

logger = logging.getLogger(__name__)


class AnthropicProvider(BaseProvider):
    """Anthropic (Claude Pro/Max) OAuth Provider.

    Example:
        provider = AnthropicProvider()
        credential = await provider.authorize()
    """

    # Claude Code 공개 Client ID
    CLIENT_ID = "9d1c250a-e61b-44d9-88ed-5944d1962f5e"
    AUTHORIZATION_ENDPOINT = "https://claude.ai/oauth/authorize"
    TOKEN_ENDPOINT = "https://console.anthropic.com/v1/oauth/token"
    API_KEY_EXCHANGE_ENDPOINT = (
        "https://api.anthropic.com/api/oauth/claude_cli/create_api_key"
    )
    REDIRECT_URI = "https://console.anthropic.com/oauth/code/callback"
    SCOPE = "org:create_api_key user:profile user:inference"
    OAUTH_BETA = (
        "oauth-2025-04-20,claude-code-20250219,interleaved-thinking-2025-05-14"
    )

    def __init__(
        self,
        client_id: str | None = None,
        input_func: Callable[[str], str] = input,
        **kwargs,
    ):
        """초기화.

        Args:
            client_id: OAuth Client ID (기본값: Claude Code)
            input_func: 콜백 입력 함수
        """
        super().__init__(**kwargs)
        self.client_id = client_id or self.CLIENT_ID
        self.input_func = input_func

    @property
    def name(self) -> str:
        return "anthropic"

    @property
    def display_name(self) -> str:
        return "Anthropic (Claude Pro/Max)"

    async def authorize(self, auto_open_browser: bool = False, **kwargs) -> Credential:
        """Browser OAuth로 로그인.

        Args:
            auto_open_browser: 브라우저 자동 열기

        Returns:
            Credential: oauth 자격증명
        """
        pkce = generate_pkce_challenge()
        # state로 verifier를 그대로 사용 (Claude 콘솔이 code#state 형태로 표시)
        state = pkce.code_verifier
        config = OAuthConfig(
            client_id=self.client_id,
            authorization_endpoint=self.AUTHORIZATION_ENDPOINT,
            token_endpoint=self.TOKEN_ENDPOINT,
            redirect_uri=self.REDIRECT_URI,
            scope=self.SCOPE,
            extra_params={"code": "true"},
            token_params={"state": state},
            json_body=True,
        )
        oauth = PastedCallbackOAuth(
            config,
            pkce=pkce,
            state=state,
            auto_open_browser=auto_open_browser,
            input_func=self.input_func,
            timeout=self.timeout,
            http_transport=self.http_transport,
            title="Claude Pro/Max Login",
        )
        token = await oauth.authenticate()
        return self.credential_from_token(token)

    async def refresh(self, credential: Credential) -> Credential:
        """Refresh token으로 갱신 (JSON 본문)"""
        if not credential.refresh_token:
            raise OAuthExchangeFailedError(
                "No refresh token available", provider=self.name
            )

        data = await self.post_token_request(
            self.TOKEN_ENDPOINT,
            {
                "grant_type": "refresh_token",
                "refresh_token": credential.refresh_token,
                "client_id": self.client_id,
            },
            json_body=True,
        )
        return self.credential_from_token(TokenResponse.from_dict(data), base=credential)

    async def create_api_key(self, access_token: str) -> str:
        """OAuth access token을 API 키로 교환.

        Raises:
            OAuthExchangeFailedError: 교환 실패 또는 빈 raw_key
        """
        async with self.http_client() as client:
            response = await client.post(
                self.API_KEY_EXCHANGE_ENDPOINT,
                json={},
                headers={
                    "Authorization": f"Bearer {access_token}",
                    "Accept": "application/json",
                },
            )

            if not response.is_success:
                raise OAuthExchangeFailedError(
                    "API key exchange failed",
                    status_code=response.status_code,
                    detail=response.text,
                    provider=self.name,
                )

            raw_key = self.json_object(response).get("raw_key")

        if not isinstance(raw_key, str) or not raw_key:
            raise OAuthExchangeFailedError(
                "API key exchange returned empty raw_key", provider=self.name
            )
        return raw_key

    async def resolve_connection_options(
        self, get_credential: GetCredential, set_credential: SetCredential
    ) -> ConnectionOptions:
        credential = await get_credential()
        if credential is None or credential.kind is not CredentialKind.OAUTH:
            return ConnectionOptions()

        credential = await self.ensure_fresh(credential, set_credential)
        token = credential.secret

        if token:
            if looks_like_api_key(self.name, token):
                return ConnectionOptions(secret=token)

            try:
                return ConnectionOptions(secret=await self.create_api_key(token))
            except (OAuthExchangeFailedError, httpx.HTTPError) as e:
                logger.info("API key exchange failed, using OAuth bearer fallback: %s", e)

        return ConnectionOptions(
            headers={"anthropic-beta": self.OAUTH_BETA},
            transport=BearerTokenTransport(
                self,
                get_credential,
                set_credential,
                strip_headers=("x-api-key",),
                extra_headers={"anthropic-beta": self.OAUTH_BETA},
            ),
        )
