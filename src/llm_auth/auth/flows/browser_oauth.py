"""OAuth 2.0 Authorization Code + PKCE (pasted callback)

브라우저에서 로그인한 뒤 리디렉션된 URL(또는 인증 코드)을
터미널에 붙여넣는 방식. 로컬 콜백 서버를 띄우지 않습니다.
"""

import base64
import hashlib
import logging
import secrets
import webbrowser
from collections.abc import Callable
from dataclasses import dataclass
from urllib.parse import parse_qs, urlencode, urlparse

import httpx
from rich.console import Console
from rich.panel import Panel

from llm_auth.auth.exceptions import OAuthError, OAuthExchangeFailedError

logger = logging.getLogger(__name__)
console = Console()


@dataclass
class PKCEChallenge:
    """PKCE (Proof Key for Code Exchange) 챌린지."""

    code_verifier: str
    code_challenge: str
    code_challenge_method: str = "S256"


@dataclass
class OAuthConfig:
    """OAuth 설정.

    Attributes:
        json_body: 토큰 엔드포인트에 JSON 본문 사용 (기본은 form-urlencoded)
        extra_params: 인증 URL 추가 파라미터
        token_params: 코드 교환 본문 추가 파라미터
    """

    client_id: str
    authorization_endpoint: str
    token_endpoint: str
    redirect_uri: str
    scope: str
    client_secret: str | None = None
    extra_params: dict | None = None
    token_params: dict | None = None
    json_body: bool = False


@dataclass
class TokenResponse:
    """토큰 응답."""

    access_token: str
    refresh_token: str | None
    token_type: str = "Bearer"
    expires_in: int | None = None
    scope: str | None = None

    @classmethod
    def from_dict(
        cls, data: dict, default_expires_in: int | None = None
    ) -> "TokenResponse":
        """토큰 엔드포인트 응답 파싱.

        Raises:
            OAuthError: access_token이 없을 때
        """
        access_token = data.get("access_token")
        if not isinstance(access_token, str) or not access_token:
            raise OAuthError(
                "Token response did not include an access_token",
                error_code=data.get("error"),
            )
        expires_in = data.get("expires_in", default_expires_in)
        return cls(
            access_token=access_token,
            refresh_token=data.get("refresh_token") or None,
            token_type=data.get("token_type", "Bearer"),
            expires_in=int(expires_in) if expires_in is not None else None,
            scope=data.get("scope"),
        )


@dataclass
class CallbackInput:
    """붙여넣은 콜백에서 추출한 값"""

    code: str | None = None
    state: str | None = None


def generate_pkce_challenge() -> PKCEChallenge:
    """PKCE 챌린지 생성.

    Returns:
        PKCEChallenge: code_verifier와 code_challenge 포함
    """
    # code_verifier: 43-128자의 랜덤 문자열
    code_verifier = secrets.token_urlsafe(64)

    # code_challenge: code_verifier의 SHA256 해시를 base64url 인코딩
    digest = hashlib.sha256(code_verifier.encode()).digest()
    code_challenge = base64.urlsafe_b64encode(digest).rstrip(b"=").decode()

    return PKCEChallenge(
        code_verifier=code_verifier,
        code_challenge=code_challenge,
        code_challenge_method="S256",
    )


def build_authorization_url(config: OAuthConfig, pkce: PKCEChallenge, state: str) -> str:
    """인증 URL 생성."""
    params = {
        "client_id": config.client_id,
        "redirect_uri": config.redirect_uri,
        "response_type": "code",
        "scope": config.scope,
        "state": state,
        "code_challenge": pkce.code_challenge,
        "code_challenge_method": pkce.code_challenge_method,
    }

    # 추가 파라미터 병합
    if config.extra_params:
        params.update(config.extra_params)

    return f"{config.authorization_endpoint}?{urlencode(params)}"


def _first(params: dict[str, list[str]], name: str) -> str | None:
    values = params.get(name)
    return values[0] if values else None


def parse_callback_input(value: str) -> CallbackInput:
    """붙여넣은 콜백 값 파싱.

    허용 형식:
        - 전체 URL: https://host/callback?code=...&state=...
        - 쿼리 문자열: ?code=...&state=... 또는 code=...&state=...
        - code#state
        - 인증 코드만

    Raises:
        OAuthError: 콜백에 error 파라미터가 있을 때
    """
    raw = value.strip()
    if not raw:
        return CallbackInput()

    query = None
    if raw.lower().startswith(("http://", "https://")):
        query = urlparse(raw).query
    elif "=" in raw:
        query = raw[1:] if raw.startswith("?") else raw

    if query is not None:
        params = parse_qs(query)
        if "error" in params:
            error = _first(params, "error")
            description = _first(params, "error_description") or error
            raise OAuthError(f"Authorization denied: {description}", error_code=error)
        return CallbackInput(code=_first(params, "code"), state=_first(params, "state"))

    if "#" in raw:
        code, _, state = raw.partition("#")
        return CallbackInput(code=code or None, state=state or None)

    return CallbackInput(code=raw)


async def exchange_code_for_token(
    config: OAuthConfig,
    code: str,
    code_verifier: str,
    timeout: float = 30.0,
    http_transport: httpx.AsyncBaseTransport | None = None,
) -> TokenResponse:
    """인증 코드를 토큰으로 교환.

    Raises:
        OAuthExchangeFailedError: 토큰 엔드포인트가 실패 응답을 반환할 때
    """
    data = {
        "grant_type": "authorization_code",
        "client_id": config.client_id,
        "code": code,
        "redirect_uri": config.redirect_uri,
        "code_verifier": code_verifier,
    }
    if config.client_secret:
        data["client_secret"] = config.client_secret
    if config.token_params:
        data.update(config.token_params)

    async with httpx.AsyncClient(timeout=timeout, transport=http_transport) as client:
        if config.json_body:
            response = await client.post(
                config.token_endpoint,
                json=data,
                headers={"Accept": "application/json"},
            )
        else:
            response = await client.post(
                config.token_endpoint,
                data=data,
                headers={"Content-Type": "application/x-www-form-urlencoded"},
            )

        if not response.is_success:
            raise OAuthExchangeFailedError(
                "Token exchange failed",
                status_code=response.status_code,
                detail=response.text,
            )

        return TokenResponse.from_dict(response.json())


class PastedCallbackOAuth:
    """붙여넣기 방식 OAuth 2.0 + PKCE 인증.

    1. 인증 URL 출력 (선택적으로 브라우저 열기)
    2. 리디렉션된 URL 또는 코드 입력받기
    3. state 검증
    4. 토큰 교환

    Example:
        config = OAuthConfig(
            client_id="your-client-id",
            authorization_endpoint="https://auth.example.com/authorize",
            token_endpoint="https://auth.example.com/token",
            redirect_uri="https://auth.example.com/callback",
            scope="openid profile"
        )
        oauth = PastedCallbackOAuth(config)
        token = await oauth.authenticate()
    """

    def __init__(
        self,
        config: OAuthConfig,
        pkce: PKCEChallenge | None = None,
        state: str | None = None,
        auto_open_browser: bool = False,
        input_func: Callable[[str], str] = input,
        timeout: float = 30.0,
        http_transport: httpx.AsyncBaseTransport | None = None,
        title: str = "OAuth Login",
    ):
        """초기화.

        Args:
            config: OAuth 설정
            pkce: PKCE 챌린지 (None이면 생성)
            state: state 값 (None이면 랜덤)
            auto_open_browser: 브라우저 자동 열기
            input_func: 콜백 입력 함수 (테스트에서 대체)
            timeout: 토큰 엔드포인트 타임아웃 (초)
            http_transport: httpx transport (테스트용)
            title: 안내 패널 제목
        """
        self.config = config
        self.pkce = pkce or generate_pkce_challenge()
        self.state = state or secrets.token_urlsafe(32)
        self.auto_open_browser = auto_open_browser
        self.input_func = input_func
        self.timeout = timeout
        self.http_transport = http_transport
        self.title = title

    @property
    def authorization_url(self) -> str:
        return build_authorization_url(self.config, self.pkce, self.state)

    def _display_instructions(self, auth_url: str) -> None:
        console.print()
        console.print(
            Panel.fit(
                "[bold cyan]브라우저 OAuth 인증[/bold cyan]\n\n"
                "1. 아래 URL을 브라우저에서 엽니다\n"
                "2. 로그인을 완료합니다\n"
                "3. 리디렉션된 URL 또는 표시된 코드를 복사합니다\n"
                "4. 복사한 값을 아래에 붙여넣습니다",
                title=f"[AUTH] {self.title}",
                border_style="cyan",
            )
        )
        console.print()
        console.print("[bold]인증 URL:[/bold]")
        console.print(f"[link={auth_url}]{auth_url}[/link]")
        console.print()

    async def exchange_code(self, code: str) -> TokenResponse:
        return await exchange_code_for_token(
            self.config,
            code,
            self.pkce.code_verifier,
            timeout=self.timeout,
            http_transport=self.http_transport,
        )

    async def authenticate(self) -> TokenResponse:
        """인증 수행.

        Returns:
            TokenResponse: 토큰 응답

        Raises:
            OAuthError: 입력 취소, 코드 누락, state 불일치
            OAuthExchangeFailedError: 토큰 교환 실패
        """
        auth_url = self.authorization_url
        self._display_instructions(auth_url)

        if self.auto_open_browser:
            webbrowser.open(auth_url)
            console.print("[dim]브라우저가 열렸습니다. 로그인 후 값을 복사하세요.[/dim]")

        console.print("[bold yellow]리디렉션된 URL 또는 인증 코드를 붙여넣으세요:[/bold yellow]")
        try:
            pasted = self.input_func("> ")
        except (EOFError, KeyboardInterrupt) as e:
            raise OAuthError("Authorization cancelled by user") from e

        callback = parse_callback_input(pasted or "")
        if not callback.code:
            raise OAuthError("Missing authorization code in callback input")

        if callback.state is not None and callback.state != self.state:
            raise OAuthError("OAuth state mismatch", error_code="state_mismatch")

        console.print("[dim]토큰 교환 중...[/dim]")
        token = await self.exchange_code(callback.code)
        console.print("[bold green][OK] 인증 성공![/bold green]")
        logger.info("Authorization code exchanged at %s", self.config.token_endpoint)

        return token
