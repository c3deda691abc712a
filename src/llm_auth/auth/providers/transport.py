"""Outbound request transports

클라이언트 생성 단계가 httpx.AsyncClient(transport=...)로 설치하는 transport.
요청마다 자격증명을 다시 조회하고 필요하면 갱신하므로
오래 사는 클라이언트도 만료된 토큰을 계속 쓰지 않습니다.
"""

import logging
from collections.abc import Callable, Iterable

import httpx

from llm_auth.auth.credential import Credential

logger = logging.getLogger(__name__)


def bearer_token(credential: Credential) -> str | None:
    return credential.secret


class BearerTokenTransport(httpx.AsyncBaseTransport):
    """요청마다 Authorization: Bearer 헤더를 주입하는 transport

    Args:
        provider: ensure_fresh()를 제공하는 BaseProvider
        get_credential: 현재 자격증명 조회 함수
        set_credential: 갱신된 자격증명 저장 함수
        strip_headers: 제거할 헤더 (예: x-api-key)
        extra_headers: 항상 설정할 헤더
        token_getter: 자격증명에서 토큰 선택 (기본값: secret)
        inner: 실제 전송 transport (기본값: httpx.AsyncHTTPTransport)
    """

    def __init__(
        self,
        provider,
        get_credential,
        set_credential=None,
        strip_headers: Iterable[str] = (),
        extra_headers: dict[str, str] | None = None,
        token_getter: Callable[[Credential], str | None] = bearer_token,
        inner: httpx.AsyncBaseTransport | None = None,
    ):
        self.provider = provider
        self.get_credential = get_credential
        self.set_credential = set_credential
        self.strip_headers = tuple(strip_headers)
        self.extra_headers = dict(extra_headers or {})
        self.token_getter = token_getter
        self.inner = inner or httpx.AsyncHTTPTransport()

    async def current_credential(self) -> Credential | None:
        credential = await self.get_credential()
        if credential is None:
            return None
        return await self.provider.ensure_fresh(credential, self.set_credential)

    def apply_auth(self, request: httpx.Request, credential: Credential | None) -> None:
        token = self.token_getter(credential) if credential else None
        for name in self.strip_headers:
            request.headers.pop(name, None)
        request.headers.pop("Authorization", None)
        request.headers["Authorization"] = f"Bearer {token or ''}"
        request.headers.update(self.extra_headers)

    async def handle_async_request(self, request: httpx.Request) -> httpx.Response:
        credential = await self.current_credential()
        self.apply_auth(request, credential)
        return await self.inner.handle_async_request(request)

    async def aclose(self) -> None:
        await self.inner.aclose()
