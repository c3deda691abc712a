"""Device Code OAuth Flow (RFC 8628)

localhost 콜백 없이 인증을 완료하는 Device Authorization Grant 구현.
OpenAI(Codex), GitHub Copilot 로그인에 사용.

플로우:
1. 앱이 device_code, user_code 요청
2. 사용자에게 verification_uri + user_code 표시
3. 사용자가 브라우저에서 URL 접속 → 코드 입력 → 로그인
4. 앱이 토큰 폴링 (최대 max_attempts회)
5. 인증 완료 시 access_token 수신
"""

import asyncio
import logging
import webbrowser
from dataclasses import dataclass

import httpx
from rich.console import Console
from rich.panel import Panel

from llm_auth.auth.exceptions import (
    DeviceFlowTimeoutError,
    OAuthError,
    OAuthExchangeFailedError,
)
from llm_auth.auth.flows.browser_oauth import TokenResponse

logger = logging.getLogger(__name__)
console = Console()

DEVICE_CODE_GRANT = "urn:ietf:params:oauth:grant-type:device_code"


@dataclass
class DeviceCodeResponse:
    """Device Code 응답.

    Attributes:
        device_code: 토큰 교환에 사용되는 device code
        user_code: 사용자가 입력해야 하는 코드
        verification_uri: 사용자가 접속해야 하는 URL
        verification_uri_complete: user_code가 포함된 완전한 URL (선택)
        expires_in: device_code 만료 시간 (초)
        interval: 폴링 간격 (초)
    """

    device_code: str
    user_code: str
    verification_uri: str
    expires_in: int
    interval: int
    verification_uri_complete: str | None = None


@dataclass
class DeviceCodeConfig:
    """Device Code Flow 설정.

    Attributes:
        client_id: OAuth Client ID
        device_authorization_endpoint: Device Authorization Endpoint
        token_endpoint: Token Endpoint
        scope: 요청할 scope
        json_body: JSON 본문 사용 (GitHub). 기본은 form-urlencoded
        min_interval: 최소 폴링 간격 (초)
    """

    client_id: str
    device_authorization_endpoint: str
    token_endpoint: str
    scope: str
    json_body: bool = False
    min_interval: int = 0


class DeviceCodeOAuth:
    """Device Code OAuth Flow 구현.

    RFC 8628 Device Authorization Grant.
    폴링은 max_attempts회로 제한되며 초과 시 DeviceFlowTimeoutError.

    Example:
        config = DeviceCodeConfig(
            client_id="your-client-id",
            device_authorization_endpoint="https://auth.example.com/device/code",
            token_endpoint="https://auth.example.com/token",
            scope="openid profile"
        )
        oauth = DeviceCodeOAuth(config)
        token = await oauth.authenticate()
    """

    # 폴링 에러 코드 (RFC 8628)
    ERROR_AUTHORIZATION_PENDING = "authorization_pending"
    ERROR_SLOW_DOWN = "slow_down"
    ERROR_EXPIRED_TOKEN = "expired_token"
    ERROR_ACCESS_DENIED = "access_denied"

    # RFC 8628: slow_down 시 간격 5초 증가
    SLOW_DOWN_INCREMENT = 5

    def __init__(
        self,
        config: DeviceCodeConfig,
        max_attempts: int = 120,
        timeout: float = 30.0,
        http_transport: httpx.AsyncBaseTransport | None = None,
        provider: str | None = None,
        title: str = "Device Code Login",
    ):
        """초기화.

        Args:
            config: Device Code Flow 설정
            max_attempts: 최대 폴링 횟수
            timeout: HTTP 요청 타임아웃 (초)
            http_transport: httpx transport (테스트용)
            provider: 에러에 기록할 provider ID
            title: 안내 패널 제목
        """
        self.config = config
        self.max_attempts = max_attempts
        self.timeout = timeout
        self.http_transport = http_transport
        self.provider = provider
        self.title = title

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(timeout=self.timeout, transport=self.http_transport)

    async def _post(self, client: httpx.AsyncClient, url: str, data: dict) -> httpx.Response:
        if self.config.json_body:
            return await client.post(url, json=data, headers={"Accept": "application/json"})
        return await client.post(
            url,
            data=data,
            headers={"Content-Type": "application/x-www-form-urlencoded"},
        )

    async def request_device_code(self) -> DeviceCodeResponse:
        """Device Code 요청.

        Returns:
            DeviceCodeResponse: device_code, user_code, verification_uri 등

        Raises:
            OAuthExchangeFailedError: 요청 실패 시
        """
        async with self._client() as client:
            response = await self._post(
                client,
                self.config.device_authorization_endpoint,
                {"client_id": self.config.client_id, "scope": self.config.scope},
            )

            if not response.is_success:
                raise OAuthExchangeFailedError(
                    "Device code request failed",
                    status_code=response.status_code,
                    detail=response.text,
                    provider=self.provider,
                )

            data = response.json()

            return DeviceCodeResponse(
                device_code=data["device_code"],
                user_code=data["user_code"],
                verification_uri=data["verification_uri"],
                verification_uri_complete=data.get("verification_uri_complete"),
                expires_in=int(data.get("expires_in", 900)),  # 기본 15분
                interval=int(data.get("interval", 5)),  # 기본 5초
            )

    async def poll_for_token(self, device_code: str, interval: int) -> TokenResponse:
        """토큰 폴링.

        Args:
            device_code: request_device_code에서 받은 device_code
            interval: 폴링 간격 (초)

        Returns:
            TokenResponse: access_token, refresh_token 등

        Raises:
            OAuthError: 만료, 거부 시
            OAuthExchangeFailedError: 알 수 없는 에러 응답
            DeviceFlowTimeoutError: max_attempts 초과
        """
        current_interval = max(interval, self.config.min_interval)

        async with self._client() as client:
            for attempt in range(1, self.max_attempts + 1):
                response = await self._post(
                    client,
                    self.config.token_endpoint,
                    {
                        "client_id": self.config.client_id,
                        "device_code": device_code,
                        "grant_type": DEVICE_CODE_GRANT,
                    },
                )

                try:
                    data = response.json()
                except ValueError as e:
                    raise OAuthExchangeFailedError(
                        "Token polling returned a non-JSON response",
                        status_code=response.status_code,
                        detail=response.text,
                        provider=self.provider,
                    ) from e

                error = data.get("error") if isinstance(data, dict) else None
                if not error and response.is_success:
                    logger.debug("poll[%d]: token acquired", attempt)
                    return TokenResponse.from_dict(data)

                if error == self.ERROR_AUTHORIZATION_PENDING:
                    # 아직 사용자가 인증하지 않음 - 계속 폴링
                    logger.debug("poll[%d]: %s", attempt, error)
                elif error == self.ERROR_SLOW_DOWN:
                    current_interval += self.SLOW_DOWN_INCREMENT
                    logger.debug("poll[%d]: slow_down, interval=%ds", attempt, current_interval)
                elif error in (self.ERROR_EXPIRED_TOKEN, self.ERROR_ACCESS_DENIED):
                    description = data.get("error_description") or error
                    raise OAuthError(
                        f"Device flow failed: {description}",
                        error_code=error,
                        provider=self.provider,
                    )
                else:
                    raise OAuthExchangeFailedError(
                        "Device flow token request failed",
                        status_code=response.status_code,
                        detail=response.text,
                        error_code=error,
                        provider=self.provider,
                    )

                if attempt < self.max_attempts:
                    await asyncio.sleep(current_interval)

        raise DeviceFlowTimeoutError(
            f"Device flow timed out after {self.max_attempts} polling attempts",
            max_retries=self.max_attempts,
            attempts=self.max_attempts,
            provider=self.provider,
        )

    def display_instructions(self, device_response: DeviceCodeResponse) -> None:
        """사용자 안내 메시지 출력.

        Args:
            device_response: device code 응답
        """
        verification_url = (
            device_response.verification_uri_complete
            or device_response.verification_uri
        )

        user_code = device_response.user_code
        expires_min = device_response.expires_in // 60

        console.print()
        console.print(
            Panel.fit(
                f"[bold cyan]{self.title}[/bold cyan]\n\n"
                f"다음 URL을 브라우저에서 열고 코드를 입력하세요:\n\n"
                f"[bold]URL:[/bold] [link={verification_url}]{verification_url}[/link]\n"
                f"[bold]코드:[/bold] [bold yellow]{user_code}[/bold yellow]\n\n"
                f"[dim]만료: {expires_min}분[/dim]",
                title="[AUTH] Device Code Login",
                border_style="cyan",
            )
        )
        console.print()

    async def authenticate(self, auto_open_browser: bool = False) -> TokenResponse:
        """전체 인증 플로우 실행.

        1. Device code 요청
        2. 사용자 안내 출력
        3. 토큰 폴링

        Args:
            auto_open_browser: 자동으로 브라우저 열기

        Returns:
            TokenResponse: 인증 토큰
        """
        device_response = await self.request_device_code()
        self.display_instructions(device_response)

        if auto_open_browser:
            url = (
                device_response.verification_uri_complete
                or device_response.verification_uri
            )
            webbrowser.open(url)

        console.print("[dim]인증 대기 중...[/dim]")
        token = await self.poll_for_token(
            device_code=device_response.device_code,
            interval=device_response.interval,
        )
        console.print("[bold green][OK] 인증 성공![/bold green]")

        return token
