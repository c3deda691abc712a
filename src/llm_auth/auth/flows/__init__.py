"""OAuth Flows

- Authorization Code + PKCE (붙여넣기 콜백)
- Device Code Flow (RFC 8628)
"""

from llm_auth.auth.flows.browser_oauth import (
    CallbackInput,
    OAuthConfig,
    PastedCallbackOAuth,
    PKCEChallenge,
    TokenResponse,
    build_authorization_url,
    exchange_code_for_token,
    generate_pkce_challenge,
    parse_callback_input,
)
from llm_auth.auth.flows.device_code import (
    DeviceCodeConfig,
    DeviceCodeOAuth,
    DeviceCodeResponse,
)

__all__ = [
    # Authorization Code + PKCE
    "PastedCallbackOAuth",
    "OAuthConfig",
    "PKCEChallenge",
    "TokenResponse",
    "CallbackInput",
    "build_authorization_url",
    "exchange_code_for_token",
    "generate_pkce_challenge",
    "parse_callback_input",
    # Device Code Flow
    "DeviceCodeOAuth",
    "DeviceCodeConfig",
    "DeviceCodeResponse",
]
