"""Storage backends

문자열 key/value 저장소 구현.
- MemoryStorage: 테스트/임베딩용
- FileStorage: 키마다 파일 하나, 원자적 쓰기 + 0o600 권한
- KeyringStorage: OS 자격증명 저장소 (keyring)
"""

import json
import logging
import os
import re
import tempfile
from abc import ABC, abstractmethod
from pathlib import Path

import keyring
from keyring.errors import PasswordDeleteError

from llm_auth.config import AuthSettings

logger = logging.getLogger(__name__)

_UNSAFE_CHARS = re.compile(r'[/\\:*?"<>|]')


def sanitize_key(key: str) -> str:
    """파일 이름으로 안전한 키로 변환"""
    return _UNSAFE_CHARS.sub("_", key)


class StorageAdapter(ABC):
    """비동기 key/value 저장소 인터페이스"""

    @abstractmethod
    async def get(self, key: str) -> str | None:
        pass

    @abstractmethod
    async def set(self, key: str, value: str) -> None:
        pass

    @abstractmethod
    async def remove(self, key: str) -> None:
        pass

    @abstractmethod
    async def list(self) -> list[str]:
        pass


class MemoryStorage(StorageAdapter):
    """프로세스 메모리 저장소"""

    def __init__(self):
        self._data: dict[str, str] = {}

    async def get(self, key: str) -> str | None:
        return self._data.get(key)

    async def set(self, key: str, value: str) -> None:
        self._data[key] = value

    async def remove(self, key: str) -> None:
        self._data.pop(key, None)

    async def list(self) -> list[str]:
        return list(self._data)


class FileStorage(StorageAdapter):
    """파일 기반 저장소

    키마다 `directory/<sanitized key>` 파일 하나.
    쓰기는 같은 디렉토리의 임시 파일에 기록 후 os.replace로 교체하므로
    읽는 쪽은 부분적으로 기록된 내용을 보지 않음.

    Example:
        storage = FileStorage(Path("~/.local/share/llm-auth").expanduser())
        await storage.set("auth:store", "{}")
    """

    def __init__(self, directory: Path | str):
        self.directory = Path(directory)

    def path_for(self, key: str) -> Path:
        """키에 해당하는 파일 경로"""
        return self.directory / sanitize_key(key)

    async def get(self, key: str) -> str | None:
        try:
            return self.path_for(key).read_text(encoding="utf-8")
        except FileNotFoundError:
            return None

    async def set(self, key: str, value: str) -> None:
        self.directory.mkdir(parents=True, exist_ok=True)
        try:
            self.directory.chmod(0o700)
        except OSError:
            logger.debug("Could not restrict permissions on %s", self.directory)

        target = self.path_for(key)
        fd, tmp_path = tempfile.mkstemp(
            dir=self.directory, prefix=f".{target.name}.", suffix=".tmp"
        )
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(value)
                f.flush()
                os.fsync(f.fileno())
            # 보안: 사용자만 읽기/쓰기
            os.chmod(tmp_path, 0o600)
            os.replace(tmp_path, target)
        except BaseException:
            try:
                os.unlink(tmp_path)
            except FileNotFoundError:
                pass
            raise

    async def remove(self, key: str) -> None:
        try:
            self.path_for(key).unlink()
        except FileNotFoundError:
            return

    async def list(self) -> list[str]:
        if not self.directory.exists():
            return []
        return sorted(
            p.name
            for p in self.directory.iterdir()
            if p.is_file() and not p.name.startswith(".")
        )


class KeyringStorage(StorageAdapter):
    """OS 자격증명 저장소 (keyring)

    - Windows: Credential Locker
    - macOS: Keychain
    - Linux: Secret Service (libsecret)

    keyring은 목록 조회를 지원하지 않으므로 기록한 키를
    별도 인덱스 항목에 저장합니다.
    """

    SERVICE_NAME = "llm-auth"
    INDEX_KEY = "__index__"

    def __init__(self, service: str | None = None):
        self.service = service or self.SERVICE_NAME

    async def get(self, key: str) -> str | None:
        return keyring.get_password(self.service, key)

    async def set(self, key: str, value: str) -> None:
        keyring.set_password(self.service, key, value)
        keys = await self.list()
        if key not in keys:
            keys.append(key)
            keyring.set_password(self.service, self.INDEX_KEY, json.dumps(keys))

    async def remove(self, key: str) -> None:
        try:
            keyring.delete_password(self.service, key)
        except PasswordDeleteError:
            return
        keys = [k for k in await self.list() if k != key]
        keyring.set_password(self.service, self.INDEX_KEY, json.dumps(keys))

    async def list(self) -> list[str]:
        raw = keyring.get_password(self.service, self.INDEX_KEY)
        if not raw:
            return []
        try:
            keys = json.loads(raw)
        except ValueError:
            logger.warning("Keyring index for %s is corrupt, ignoring", self.service)
            return []
        return [k for k in keys if isinstance(k, str)]


def default_storage(directory: Path | str | None = None) -> StorageAdapter:
    """기본 저장소 (FileStorage, 플랫폼 데이터 디렉토리)"""
    storage_dir = Path(directory) if directory else AuthSettings.from_env().storage_dir
    logger.debug("Using FileStorage at %s", storage_dir)
    return FileStorage(storage_dir)
