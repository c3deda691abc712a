"""Pasted-callback OAuth (PKCE) 테스트"""

import base64
import hashlib
import json
from urllib.parse import parse_qs, urlparse

import httpx
import pytest

from llm_auth.auth.exceptions import OAuthError, OAuthExchangeFailedError
from llm_auth.auth.flows.browser_oauth import (
    OAuthConfig,
    PastedCallbackOAuth,
    TokenResponse,
    build_authorization_url,
    generate_pkce_challenge,
    parse_callback_input,
)


@pytest.fixture
def config():
    return OAuthConfig(
        client_id="client-1",
        authorization_endpoint="https://auth.example.com/authorize",
        token_endpoint="https://auth.example.com/token",
        redirect_uri="https://auth.example.com/callback",
        scope="openid profile",
    )


class TestPKCE:
    """PKCE 생성 테스트"""

    def test_challenge_is_s256_of_verifier(self):
        pkce = generate_pkce_challenge()
        digest = hashlib.sha256(pkce.code_verifier.encode()).digest()
        expected = base64.urlsafe_b64encode(digest).rstrip(b"=").decode()
        assert pkce.code_challenge == expected
        assert pkce.code_challenge_method == "S256"
        assert 43 <= len(pkce.code_verifier) <= 128

    def test_authorization_url(self, config):
        """인증 URL에 PKCE와 추가 파라미터 포함"""
        config.extra_params = {"code": "true"}
        pkce = generate_pkce_challenge()
        url = build_authorization_url(config, pkce, "state-1")

        params = parse_qs(urlparse(url).query)
        assert params["client_id"] == ["client-1"]
        assert params["response_type"] == ["code"]
        assert params["state"] == ["state-1"]
        assert params["code_challenge"] == [pkce.code_challenge]
        assert params["code"] == ["true"]


class TestParseCallbackInput:
    """붙여넣은 콜백 파싱"""

    @pytest.mark.parametrize(
        "value,code,state",
        [
            ("https://host/callback?code=abc&state=xyz", "abc", "xyz"),
            ("?code=abc&state=xyz", "abc", "xyz"),
            ("code=abc&state=xyz", "abc", "xyz"),
            ("abc#xyz", "abc", "xyz"),
            ("  abc  ", "abc", None),
            ("", None, None),
        ],
    )
    def test_formats(self, value, code, state):
        callback = parse_callback_input(value)
        assert callback.code == code
        assert callback.state == state

    def test_error_param_raises(self):
        """error 파라미터가 있으면 OAuthError"""
        with pytest.raises(OAuthError) as exc_info:
            parse_callback_input("https://host/cb?error=access_denied&error_description=nope")
        assert exc_info.value.error_code == "access_denied"


class TestTokenResponse:
    def test_missing_access_token(self):
        with pytest.raises(OAuthError):
            TokenResponse.from_dict({"error": "invalid_grant"})

    def test_defaults(self):
        token = TokenResponse.from_dict({"access_token": "a"}, default_expires_in=3600)
        assert token.refresh_token is None
        assert token.expires_in == 3600


class TestPastedCallbackOAuth:
    """PastedCallbackOAuth 테스트"""

    @pytest.mark.asyncio
    async def test_authenticate_form_body(self, config, make_transport):
        """코드 교환 (form-urlencoded)"""
        transport, handler = make_transport(
            {"/token": httpx.Response(200, json={"access_token": "at", "refresh_token": "rt", "expires_in": 60})}
        )
        oauth = PastedCallbackOAuth(
            config,
            state="s1",
            input_func=lambda prompt: "https://auth.example.com/callback?code=c1&state=s1",
            http_transport=transport,
        )

        token = await oauth.authenticate()

        assert token.access_token == "at"
        assert token.refresh_token == "rt"
        [request] = handler.calls("/token")
        body = parse_qs(request.content.decode())
        assert body["code"] == ["c1"]
        assert body["grant_type"] == ["authorization_code"]
        assert body["code_verifier"] == [oauth.pkce.code_verifier]

    @pytest.mark.asyncio
    async def test_authenticate_json_body(self, config, make_transport):
        """json_body=True면 JSON 본문 + token_params 포함"""
        config.json_body = True
        config.token_params = {"state": "s1"}
        transport, handler = make_transport({"/token": httpx.Response(200, json={"access_token": "at"})})
        oauth = PastedCallbackOAuth(
            config, state="s1", input_func=lambda prompt: "c1#s1", http_transport=transport
        )

        await oauth.authenticate()

        [body] = handler.json_bodies("/token")
        assert body["code"] == "c1"
        assert body["state"] == "s1"

    @pytest.mark.asyncio
    async def test_state_mismatch(self, config):
        """state 불일치"""
        oauth = PastedCallbackOAuth(config, state="expected", input_func=lambda p: "c1#other")
        with pytest.raises(OAuthError) as exc_info:
            await oauth.authenticate()
        assert exc_info.value.error_code == "state_mismatch"

    @pytest.mark.asyncio
    async def test_missing_code(self, config):
        oauth = PastedCallbackOAuth(config, input_func=lambda p: "")
        with pytest.raises(OAuthError):
            await oauth.authenticate()

    @pytest.mark.asyncio
    async def test_cancelled_input(self, config):
        """입력 취소 (EOF)"""

        def raise_eof(prompt):
            raise EOFError

        oauth = PastedCallbackOAuth(config, input_func=raise_eof)
        with pytest.raises(OAuthError):
            await oauth.authenticate()

    @pytest.mark.asyncio
    async def test_exchange_failure_has_detail(self, config, make_transport):
        """교환 실패 시 provider 원본 본문 포함"""
        transport, _ = make_transport(
            {"/token": httpx.Response(400, json={"error": "invalid_grant"})}
        )
        oauth = PastedCallbackOAuth(config, input_func=lambda p: "c1", http_transport=transport)

        with pytest.raises(OAuthExchangeFailedError) as exc_info:
            await oauth.authenticate()
        assert exc_info.value.status_code == 400
        assert json.loads(exc_info.value.detail) == {"error": "invalid_grant"}
