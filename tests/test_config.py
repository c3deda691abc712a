"""AuthSettings 테스트"""

from pathlib import Path

import llm_auth
from llm_auth.config import AuthSettings, default_data_dir


class TestAuthSettings:
    def test_env_overrides(self, monkeypatch, tmp_path):
        monkeypatch.setenv("LLM_AUTH_HOME", str(tmp_path / "custom"))
        monkeypatch.setenv("LLM_AUTH_HTTP_TIMEOUT", "12.5")
        monkeypatch.setenv("LLM_AUTH_DEVICE_MAX_ATTEMPTS", "7")

        settings = AuthSettings.from_env()

        assert settings.storage_dir == tmp_path / "custom"
        assert settings.http_timeout == 12.5
        assert settings.device_max_attempts == 7

    def test_invalid_number_uses_default(self, monkeypatch):
        monkeypatch.setenv("LLM_AUTH_HTTP_TIMEOUT", "soon")
        assert AuthSettings.from_env().http_timeout == 30.0

    def test_xdg_data_home(self, monkeypatch, tmp_path):
        monkeypatch.delenv("LLM_AUTH_HOME", raising=False)
        monkeypatch.setenv("XDG_DATA_HOME", str(tmp_path))
        monkeypatch.setattr("platform.system", lambda: "Linux")
        assert default_data_dir() == Path(tmp_path) / "llm-auth"


def test_public_api():
    assert llm_auth.__version__ == "0.1.0"
    assert llm_auth.AuthSource.NONE.value == "none"
