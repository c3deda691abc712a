"""Custom authentication exceptions.

인증 관련 예외 클래스 정의.
모든 예외는 AuthenticationError를 상속하며 provider 정보를 포함할 수 있음.
"""


class AuthenticationError(Exception):
    """기본 인증 예외.

    모든 인증 관련 예외의 베이스 클래스.

    Attributes:
        provider: 인증 제공자 ID (예: 'openai', 'anthropic', 'google')
    """

    def __init__(self, message: str, provider: str | None = None):
        self.provider = provider
        super().__init__(message)


class SecretUnresolvedError(AuthenticationError):
    """선언적 secret 참조를 해석할 수 없음.

    환경 변수가 설정되지 않았거나 저장소에 키가 없는 경우.

    Attributes:
        reference: 해석에 실패한 참조 (환경 변수 이름 또는 저장소 키)
    """

    def __init__(
        self,
        message: str,
        reference: str | None = None,
        provider: str | None = None,
    ):
        self.reference = reference
        super().__init__(message, provider)


class CredentialNotFoundError(AuthenticationError):
    """Provider에 사용 가능한 자격증명이 전혀 없음."""
    pass


class ProviderNotRegisteredError(AuthenticationError):
    """카탈로그 또는 핸들러 레지스트리에 provider 매핑이 없음."""
    pass


class RetryLimitExceededError(AuthenticationError):
    """재시도 한도 초과 예외.

    Attributes:
        max_retries: 최대 재시도 횟수
        attempts: 실제 시도 횟수
        provider: 인증 제공자 ID
    """

    def __init__(
        self,
        message: str,
        max_retries: int = 1,
        attempts: int = 0,
        provider: str | None = None
    ):
        self.max_retries = max_retries
        self.attempts = attempts
        super().__init__(message, provider)


class DeviceFlowTimeoutError(RetryLimitExceededError):
    """Device code 폴링이 최대 시도 횟수를 초과함."""
    pass


class OAuthError(AuthenticationError):
    """OAuth 플로우 에러.

    콜백 파싱 또는 state 검증 실패를 나타냄.

    Attributes:
        error_code: OAuth 에러 코드 (예: 'invalid_grant', 'access_denied')
        provider: 인증 제공자 ID
    """

    def __init__(
        self,
        message: str,
        error_code: str | None = None,
        provider: str | None = None
    ):
        self.error_code = error_code
        super().__init__(message, provider)


class OAuthExchangeFailedError(OAuthError):
    """토큰/코드/refresh 교환이 실패 응답을 반환함.

    Attributes:
        status_code: HTTP 상태 코드 (네트워크 에러면 None)
        detail: provider가 반환한 원본 에러 본문 (최대 500자)
    """

    MAX_DETAIL_LENGTH = 500

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        detail: str | None = None,
        error_code: str | None = None,
        provider: str | None = None,
    ):
        self.status_code = status_code
        self.detail = detail[: self.MAX_DETAIL_LENGTH] if detail else detail
        if self.detail:
            message = f"{message}: {self.detail}"
        super().__init__(message, error_code=error_code, provider=provider)
