"""Runtime settings.

환경 변수 기반 기본값. 생성자 인자가 항상 우선합니다.
"""

import os
import platform
from dataclasses import dataclass, field
from pathlib import Path

APP_NAME = "llm-auth"


def default_data_dir() -> Path:
    """OS별 기본 데이터 디렉토리"""
    override = os.environ.get("LLM_AUTH_HOME")
    if override:
        return Path(override)

    system = platform.system()
    if system == "Windows":
        base = Path(os.environ.get("APPDATA", Path.home()))
    elif system == "Darwin":  # macOS
        base = Path.home() / "Library" / "Application Support"
    else:  # Linux
        base = Path(
            os.environ.get("XDG_DATA_HOME", Path.home() / ".local" / "share")
        )
    return base / APP_NAME


def _env_number(name: str, default: float) -> float:
    raw = os.environ.get(name)
    if not raw:
        return default
    try:
        return float(raw)
    except ValueError:
        return default


@dataclass
class AuthSettings:
    """인증 서브시스템 설정.

    Attributes:
        storage_dir: 자격증명 파일 저장 디렉토리
        http_timeout: OAuth 엔드포인트 호출 타임아웃 (초)
        device_max_attempts: device code 폴링 최대 횟수
    """

    storage_dir: Path = field(default_factory=default_data_dir)
    http_timeout: float = 30.0
    device_max_attempts: int = 120

    @classmethod
    def from_env(cls) -> "AuthSettings":
        """환경 변수에서 설정 생성"""
        return cls(
            storage_dir=default_data_dir(),
            http_timeout=_env_number("LLM_AUTH_HTTP_TIMEOUT", 30.0),
            device_max_attempts=int(
                _env_number("LLM_AUTH_DEVICE_MAX_ATTEMPTS", 120)
            ),
        )
