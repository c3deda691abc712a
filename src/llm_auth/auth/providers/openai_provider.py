"""OpenAI Provider

ChatGPT Plus/Pro 구독자용 OAuth 인증 (Codex CLI 호환).
- Device Code Flow (기본) 또는 Browser OAuth (PKCE, 붙여넣기 콜백)
- OAuth 토큰 사용 시 Codex 백엔드로 요청을 재작성하는 transport 제공
"""

import json
import logging
from collections.abc import Callable

import httpx

from llm_auth.auth.credential import (
    Credential,
    CredentialKind,
    decode_jwt_payload,
    looks_like_api_key,
)
from llm_auth.auth.exceptions import OAuthExchangeFailedError
from llm_auth.auth.flows.browser_oauth import (
    OAuthConfig,
    PastedCallbackOAuth,
    TokenResponse,
)
from llm_auth.auth.flows.device_code import DeviceCodeConfig, DeviceCodeOAuth
from llm_auth.auth.providers.base import (
    BaseProvider,
    ConnectionOptions,
    GetCredential,
    SetCredential,
)
from llm_auth.auth.providers.transport import BearerTokenTransport

logger = logging.getLogger(__name__)

CODEX_API_ENDPOINT = "https://chatgpt.com/backend-api/codex/responses"
DEFAULT_INSTRUCTIONS = "You are a helpful assistant."
STREAM_PARSE_ERROR = "Failed to parse streaming response from Codex endpoint"
_REWRITE_PATHS = ("/v1/responses", "/chat/completions")
_COMPLETED_EVENTS = ("response.completed", "response.done")
_HOP_HEADERS = ("host", "content-length", "transfer-encoding")


def extract_account_id(token: str | None) -> str | None:
    """JWT access token에서 ChatGPT account id 추출"""
    if not token:
        return None
    claims = decode_jwt_payload(token)
    if claims is None:
        return None
    auth_claim = claims.get("https://api.openai.com/auth")
    if isinstance(auth_claim, dict):
        account_id = auth_claim.get("chatgpt_account_id")
        if isinstance(account_id, str) and account_id:
            return account_id
    return None


def should_rewrite(url: httpx.URL) -> bool:
    return any(part in url.path for part in _REWRITE_PATHS)


def patch_codex_body(body: dict) -> bool:
    """Codex 백엔드 요구사항 적용. 스트리밍을 강제했으면 True"""
    body["store"] = False
    instructions = body.get("instructions")
    if not isinstance(instructions, str) or not instructions:
        body["instructions"] = DEFAULT_INSTRUCTIONS
    if body.get("stream") is not True:
        body["stream"] = True
        return True
    return False


def buffer_codex_stream(text: str) -> dict:
    """SSE 본문에서 마지막 response.completed / response.done 페이로드 추출"""
    last_response = None
    for line in text.splitlines():
        if not line.startswith("data: "):
            continue
        payload = line[len("data: "):]
        if payload == "[DONE]":
            break
        try:
            event = json.loads(payload)
        except ValueError:
            continue
        if not isinstance(event, dict) or event.get("type") not in _COMPLETED_EVENTS:
            continue
        response = event.get("response")
        if isinstance(response, dict):
            last_response = response

    if last_response is not None:
        return last_response

    logger.warning("No response.completed event found in Codex stream")
    return {"error": {"message": STREAM_PARSE_ERROR}}


class CodexTransport(BearerTokenTransport):
    """ChatGPT OAuth 토큰으로 Codex 백엔드를 호출하는 transport

    - 요청마다 토큰 갱신 + Authorization: Bearer
    - ChatGPT-Account-Id 헤더
    - /v1/responses, /chat/completions -> Codex 엔드포인트
    - store=false, 기본 instructions, stream=true 강제
    - 스트리밍을 강제한 경우 SSE를 모아 JSON 응답으로 반환
    """

    async def handle_async_request(self, request: httpx.Request) -> httpx.Response:
        credential = await self.current_credential()
        self.apply_auth(request, credential)

        token = credential.secret if credential else None
        account_id = (credential.account_id if credential else None) or extract_account_id(token)
        if account_id:
            request.headers["ChatGPT-Account-Id"] = account_id

        if not should_rewrite(request.url):
            return await self.inner.handle_async_request(request)

        content = await request.aread()
        needs_buffer = False
        try:
            body = json.loads(content) if content else None
        except ValueError:
            body = None
        if isinstance(body, dict):
            needs_buffer = patch_codex_body(body)
            content = json.dumps(body).encode("utf-8")

        headers = [
            (name, value)
            for name, value in request.headers.items()
            if name.lower() not in _HOP_HEADERS
        ]
        rewritten = httpx.Request(
            request.method,
            CODEX_API_ENDPOINT,
            headers=headers,
            content=content,
            extensions=request.extensions,
        )
        logger.debug("codex request: rewritten, needs_buffer=%s", needs_buffer)

        response = await self.inner.handle_async_request(rewritten)
        if not (needs_buffer and response.is_success):
            return response

        try:
            raw = await response.aread()
        finally:
            await response.aclose()
        payload = buffer_codex_stream(raw.decode("utf-8", errors="replace"))
        return httpx.Response(200, json=payload, request=rewritten)


class OpenAIProvider(BaseProvider):
    """OpenAI (ChatGPT Plus/Pro, Codex) OAuth Provider.

    Example:
        provider = OpenAIProvider()
        credential = await provider.authorize()  # device flow
        credential = await provider.authorize(method="browser")
    """

    # OpenAI OAuth 설정 (Codex CLI 호환)
    ISSUER = "https://auth.openai.com"
    AUTHORIZATION_ENDPOINT = f"{ISSUER}/oauth/authorize"
    TOKEN_ENDPOINT = f"{ISSUER}/oauth/token"
    DEVICE_AUTHORIZATION_ENDPOINT = f"{ISSUER}/oauth/device/code"
    # Codex CLI의 실제 Client ID
    CLIENT_ID = "app_EMoamEEZ73f0CkXaXp7hrann"
    SCOPE = "openid profile email offline_access"
    # Codex CLI는 고정 포트 1455 사용
    REDIRECT_URI = "http://localhost:1455/auth/callback"
    PLACEHOLDER_KEY = "codex-oauth-placeholder"
    MIN_POLL_INTERVAL = 5
    DEFAULT_EXPIRES_IN = 3600

    def __init__(
        self,
        client_id: str | None = None,
        input_func: Callable[[str], str] = input,
        **kwargs,
    ):
        """초기화.

        Args:
            client_id: OAuth Client ID (기본값: Codex CLI)
            input_func: 콜백 입력 함수 (browser 방식)
        """
        super().__init__(**kwargs)
        self.client_id = client_id or self.CLIENT_ID
        self.input_func = input_func

    @property
    def name(self) -> str:
        return "openai"

    @property
    def display_name(self) -> str:
        return "OpenAI (ChatGPT Plus/Pro)"

    def _credential_with_account(self, token: TokenResponse) -> Credential:
        credential = self.credential_from_token(token)
        return credential.replace(account_id=extract_account_id(token.access_token))

    async def authorize(
        self, method: str = "device", auto_open_browser: bool = False, **kwargs
    ) -> Credential:
        """로그인.

        Args:
            method: "device" (Device Code Flow) 또는 "browser" (PKCE 붙여넣기)
            auto_open_browser: 브라우저 자동 열기

        Returns:
            Credential: oauth 자격증명
        """
        if method == "browser":
            config = OAuthConfig(
                client_id=self.client_id,
                authorization_endpoint=self.AUTHORIZATION_ENDPOINT,
                token_endpoint=self.TOKEN_ENDPOINT,
                redirect_uri=self.REDIRECT_URI,
                scope=self.SCOPE,
                extra_params={
                    "id_token_add_organizations": "true",
                    "codex_cli_simplified_flow": "true",
                    "originator": "codex_cli_rs",
                },
            )
            oauth = PastedCallbackOAuth(
                config,
                auto_open_browser=auto_open_browser,
                input_func=self.input_func,
                timeout=self.timeout,
                http_transport=self.http_transport,
                title="OpenAI ChatGPT Login",
            )
            token = await oauth.authenticate()
            return self._credential_with_account(token)

        config = DeviceCodeConfig(
            client_id=self.client_id,
            device_authorization_endpoint=self.DEVICE_AUTHORIZATION_ENDPOINT,
            token_endpoint=self.TOKEN_ENDPOINT,
            scope=self.SCOPE,
            min_interval=self.MIN_POLL_INTERVAL,
        )
        device = DeviceCodeOAuth(
            config,
            max_attempts=self.settings.device_max_attempts,
            timeout=self.timeout,
            http_transport=self.http_transport,
            provider=self.name,
            title="OpenAI Codex Device Login",
        )
        token = await device.authenticate(auto_open_browser=auto_open_browser)
        return self._credential_with_account(token)

    async def refresh(self, credential: Credential) -> Credential:
        """Refresh token으로 갱신 (form-urlencoded)"""
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
        )
        return self.credential_from_token(TokenResponse.from_dict(data), base=credential)

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
            transport=CodexTransport(self, get_credential, set_credential),
        )
