"""Base Provider 추상 클래스

OAuth를 지원하는 provider가 구현해야 하는 인터페이스 정의.
authorize(대화형 로그인), refresh(토큰 갱신),
resolve_connection_options(연결 옵션 계산)로 구성됩니다.
"""

import asyncio
import logging
from abc import ABC, abstractmethod
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field

import httpx

from llm_auth.auth.credential import Credential, now_ms
from llm_auth.auth.exceptions import OAuthExchangeFailedError
from llm_auth.auth.flows.browser_oauth import TokenResponse
from llm_auth.config import AuthSettings

logger = logging.getLogger(__name__)

GetCredential = Callable[[], Awaitable[Credential | None]]
SetCredential = Callable[[Credential], Awaitable[None]]


@dataclass
class ConnectionOptions:
    """클라이언트 생성 단계에 전달되는 연결 옵션

    Attributes:
        secret: API 키 (또는 placeholder)
        base_url: API base URL
        headers: 정적 헤더
        transport: 모든 요청에 적용되는 httpx transport
        extra: provider별 추가 옵션
    """

    secret: str | None = None
    base_url: str | None = None
    headers: dict[str, str] = field(default_factory=dict)
    transport: httpx.AsyncBaseTransport | None = None
    extra: dict = field(default_factory=dict)

    def is_empty(self) -> bool:
        return not (
            self.secret is not None
            or self.base_url
            or self.headers
            or self.transport is not None
            or self.extra
        )

    def merge(self, other: "ConnectionOptions") -> "ConnectionOptions":
        """other의 값이 있는 필드를 덮어쓴 새 옵션 (headers, extra는 키 단위 병합)"""
        return ConnectionOptions(
            secret=other.secret if other.secret is not None else self.secret,
            base_url=other.base_url or self.base_url,
            headers={**self.headers, **other.headers},
            transport=other.transport if other.transport is not None else self.transport,
            extra={**self.extra, **other.extra},
        )


class BaseProvider(ABC):
    """OAuth Provider 추상 베이스 클래스

    모든 Provider는 이 클래스를 상속해야 함.

    같은 refresh token에 대한 동시 갱신은 프로세스 안에서 하나의 작업으로
    합쳐집니다. 다른 프로세스와의 경합(refresh token rotation)은 막지 않으며,
    그 경우 갱신 실패는 로그로 남기고 기존 토큰을 계속 사용합니다.
    """

    # expires_in이 없는 토큰 응답의 기본값 (None이면 만료 미상)
    DEFAULT_EXPIRES_IN: int | None = None

    def __init__(
        self,
        timeout: float | None = None,
        http_transport: httpx.AsyncBaseTransport | None = None,
        settings: AuthSettings | None = None,
    ):
        """초기화.

        Args:
            timeout: 토큰 엔드포인트 타임아웃 (초, 기본값: settings.http_timeout)
            http_transport: 토큰 엔드포인트 호출에 사용할 httpx transport
            settings: 설정 (기본값: AuthSettings.from_env())
        """
        self.settings = settings or AuthSettings.from_env()
        self.timeout = timeout if timeout is not None else self.settings.http_timeout
        self.http_transport = http_transport
        self._inflight: dict[str, asyncio.Task] = {}

    @property
    @abstractmethod
    def name(self) -> str:
        """Provider ID"""
        pass

    @property
    @abstractmethod
    def display_name(self) -> str:
        """표시용 이름"""
        pass

    @abstractmethod
    async def authorize(self, **kwargs) -> Credential:
        """대화형 로그인

        Returns:
            Credential: oauth 자격증명

        Raises:
            OAuthExchangeFailedError: 교환 실패
            DeviceFlowTimeoutError: device flow 폴링 한도 초과
        """
        pass

    @abstractmethod
    async def refresh(self, credential: Credential) -> Credential:
        """refresh token으로 갱신

        Args:
            credential: 기존 자격증명

        Returns:
            Credential: 갱신된 자격증명

        Raises:
            OAuthExchangeFailedError: 갱신 실패
        """
        pass

    @abstractmethod
    async def resolve_connection_options(
        self, get_credential: GetCredential, set_credential: SetCredential
    ) -> ConnectionOptions:
        """현재 자격증명으로 연결 옵션 계산

        Args:
            get_credential: 현재 자격증명 조회 함수
            set_credential: 갱신된 자격증명 저장 함수

        Returns:
            ConnectionOptions: api-key/well-known이면 빈 옵션
        """
        pass

    def http_client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(timeout=self.timeout, transport=self.http_transport)

    async def post_token_request(
        self, url: str, data: dict, json_body: bool = False, headers: dict | None = None
    ) -> dict:
        """토큰 엔드포인트 POST.

        Raises:
            OAuthExchangeFailedError: 2xx가 아닌 응답
        """
        request_headers = dict(headers or {})
        async with self.http_client() as client:
            if json_body:
                request_headers.setdefault("Accept", "application/json")
                response = await client.post(url, json=data, headers=request_headers)
            else:
                request_headers.setdefault(
                    "Content-Type", "application/x-www-form-urlencoded"
                )
                response = await client.post(url, data=data, headers=request_headers)

            if not response.is_success:
                raise OAuthExchangeFailedError(
                    "Token request failed",
                    status_code=response.status_code,
                    detail=response.text,
                    provider=self.name,
                )
            return self.json_object(response)

    def json_object(self, response: httpx.Response) -> dict:
        """2xx 응답 본문을 JSON 객체로 파싱.

        Raises:
            OAuthExchangeFailedError: JSON이 아니거나 객체가 아닌 본문
        """
        try:
            payload = response.json()
        except ValueError:
            payload = None
        if not isinstance(payload, dict):
            raise OAuthExchangeFailedError(
                "Unexpected response body",
                status_code=response.status_code,
                detail=response.text,
                provider=self.name,
            )
        return payload

    @staticmethod
    def expires_at_from(expires_in: int | float | None) -> int | None:
        """expires_in (초) -> 만료 시각 (epoch ms)"""
        if expires_in is None:
            return None
        return now_ms() + int(expires_in * 1000)

    def credential_from_token(
        self, token: TokenResponse, base: Credential | None = None
    ) -> Credential:
        """토큰 응답으로 oauth 자격증명 생성 (base가 있으면 그 위에 갱신)"""
        expires_in = token.expires_in
        if expires_in is None:
            expires_in = self.DEFAULT_EXPIRES_IN

        if base is None:
            return Credential(
                kind="oauth",
                secret=token.access_token,
                refresh_token=token.refresh_token,
                expires_at=self.expires_at_from(expires_in),
            )
        return base.replace(
            secret=token.access_token,
            refresh_token=token.refresh_token or base.refresh_token,
            expires_at=self.expires_at_from(expires_in),
        )

    async def _refresh_and_store(
        self, credential: Credential, set_credential: SetCredential | None
    ) -> Credential:
        refreshed = await self.refresh(credential)
        logger.info("Refreshed %s access token", self.name)
        if set_credential is not None:
            try:
                await set_credential(refreshed)
            except Exception as e:
                logger.warning("Failed to persist refreshed %s credential: %s", self.name, e)
        return refreshed

    async def ensure_fresh(
        self, credential: Credential, set_credential: SetCredential | None = None
    ) -> Credential:
        """만료된 oauth 자격증명이면 갱신 후 저장.

        갱신에 실패하면 로그를 남기고 기존 자격증명을 반환합니다.
        """
        if not credential.needs_refresh():
            return credential

        key = credential.refresh_token
        task = self._inflight.get(key)
        if task is None:
            task = asyncio.ensure_future(self._refresh_and_store(credential, set_credential))
            self._inflight[key] = task

            def _forget(done: asyncio.Task) -> None:
                if self._inflight.get(key) is done:
                    del self._inflight[key]

            task.add_done_callback(_forget)

        try:
            return await asyncio.shield(task)
        except Exception as e:
            logger.warning("%s token refresh failed, using stale token: %s", self.name, e)
            return credential
