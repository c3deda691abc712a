"""Shared test fixtures."""

import json

import httpx
import pytest

from llm_auth.auth.credential import Credential, CredentialKind, now_ms
from llm_auth.auth.storage.backends import MemoryStorage
from llm_auth.auth.storage.credential_store import CredentialStore
from llm_auth.config import AuthSettings


@pytest.fixture(autouse=True)
def isolated_data_dir(tmp_path, monkeypatch):
    """Redirect the default storage directory to tmp.

    Prevents tests from writing into the real ~/.local/share/llm-auth.
    """
    data_dir = tmp_path / "llm-auth-data"
    monkeypatch.setenv("LLM_AUTH_HOME", str(data_dir))
    return data_dir


@pytest.fixture
def settings(tmp_path):
    """짧은 폴링 한도의 테스트 설정"""
    return AuthSettings(storage_dir=tmp_path / "store", http_timeout=5.0, device_max_attempts=3)


@pytest.fixture
def memory_store():
    """MemoryStorage 기반 CredentialStore"""
    return CredentialStore(storage=MemoryStorage(), env_hints=[])


@pytest.fixture
def expired_oauth():
    """만료된 oauth 자격증명 (old / r1)"""
    return Credential(
        kind=CredentialKind.OAUTH,
        secret="old",
        refresh_token="r1",
        expires_at=now_ms() - 60_000,
    )


class RecordingHandler:
    """httpx.MockTransport 핸들러: 경로별 응답과 요청 기록"""

    def __init__(self, routes: dict[str, httpx.Response | list[httpx.Response]]):
        self.routes = routes
        self.requests: list[httpx.Request] = []

    def calls(self, path: str) -> list[httpx.Request]:
        return [r for r in self.requests if r.url.path == path]

    def json_bodies(self, path: str) -> list[dict]:
        return [json.loads(r.content) for r in self.calls(path)]

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        response = self.routes.get(request.url.path)
        if response is None:
            return httpx.Response(404, json={"error": "not_found"})
        if isinstance(response, list):
            return response.pop(0) if len(response) > 1 else response[0]
        return response


@pytest.fixture
def make_transport():
    """경로 -> 응답 매핑으로 (MockTransport, RecordingHandler) 생성"""

    def _make(routes):
        handler = RecordingHandler(routes)
        return httpx.MockTransport(handler), handler

    return _make
