"""GitHub Copilot Provider

GitHub Device Flow로 받은 토큰을 Copilot API 호출에 사용합니다.
GitHub 토큰은 만료되지 않으므로 refresh_token 필드에 보관합니다.
"""

import logging

from llm_auth.auth.credential import Credential, CredentialKind
from llm_auth.auth.exceptions import OAuthExchangeFailedError
from llm_auth.auth.flows.device_code import DeviceCodeConfig, DeviceCodeOAuth
from llm_auth.auth.providers.base import (
    BaseProvider,
    ConnectionOptions,
    GetCredential,
    SetCredential,
)
from llm_auth.auth.providers.transport import BearerTokenTransport

logger = logging.getLogger(__name__)


def copilot_token(credential: Credential) -> str | None:
    return credential.refresh_token or credential.secret


class CopilotProvider(BaseProvider):
    """GitHub Copilot Provider

    Example:
        provider = CopilotProvider()
        credential = await provider.authorize()
    """

    GITHUB_CLIENT_ID = "Iv1.b507a08c87ecfe98"
    DEVICE_AUTHORIZATION_ENDPOINT = "https://github.com/login/device/code"
    TOKEN_ENDPOINT = "https://github.com/login/oauth/access_token"
    SCOPE = "read:user"
    BASE_URL = "https://api.githubcopilot.com"
    MIN_POLL_INTERVAL = 5

    def __init__(self, client_id: str | None = None, **kwargs):
        super().__init__(**kwargs)
        self.client_id = client_id or self.GITHUB_CLIENT_ID

    @property
    def name(self) -> str:
        return "github-copilot"

    @property
    def display_name(self) -> str:
        return "GitHub Copilot"

    async def authorize(self, auto_open_browser: bool = False, **kwargs) -> Credential:
        """GitHub Device Flow 로그인"""
        config = DeviceCodeConfig(
            client_id=self.client_id,
            device_authorization_endpoint=self.DEVICE_AUTHORIZATION_ENDPOINT,
            token_endpoint=self.TOKEN_ENDPOINT,
            scope=self.SCOPE,
            json_body=True,
            min_interval=self.MIN_POLL_INTERVAL,
        )
        device = DeviceCodeOAuth(
            config,
            max_attempts=self.settings.device_max_attempts,
            timeout=self.timeout,
            http_transport=self.http_transport,
            provider=self.name,
            title="GitHub Copilot Device Login",
        )
        token = await device.authenticate(auto_open_browser=auto_open_browser)
        return Credential(kind=CredentialKind.OAUTH, refresh_token=token.access_token)

    async def refresh(self, credential: Credential) -> Credential:
        # GitHub OAuth 앱 토큰은 갱신 엔드포인트가 없음
        raise OAuthExchangeFailedError(
            "GitHub Copilot tokens cannot be refreshed, log in again",
            provider=self.name,
        )

    async def ensure_fresh(
        self, credential: Credential, set_credential: SetCredential | None = None
    ) -> Credential:
        """GitHub 토큰은 만료되지 않으므로 그대로 반환"""
        return credential

    async def resolve_connection_options(
        self, get_credential: GetCredential, set_credential: SetCredential
    ) -> ConnectionOptions:
        return ConnectionOptions(
            secret="",
            base_url=self.BASE_URL,
            transport=BearerTokenTransport(
                self,
                get_credential,
                set_credential,
                extra_headers={"Openai-Intent": "conversation-edits"},
                token_getter=copilot_token,
            ),
        )
