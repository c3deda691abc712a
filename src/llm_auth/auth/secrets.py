"""Secret Resolver

선언적 secret 참조(literal / 환경 변수 / 저장소 키)를 실제 문자열로 변환.
캐싱하지 않음 - 안정적인 값이 필요하면 호출자가 반환값을 보관해야 함.
"""

import logging
import os
from collections.abc import Mapping
from dataclasses import dataclass

from llm_auth.auth.exceptions import SecretUnresolvedError
from llm_auth.auth.storage.backends import StorageAdapter

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PlainSecret:
    """literal 값"""

    value: str


@dataclass(frozen=True)
class EnvSecret:
    """환경 변수 참조"""

    name: str


@dataclass(frozen=True)
class StoredSecret:
    """key/value 저장소 참조"""

    key: str


# 문자열은 PlainSecret 축약형
SecretRef = str | PlainSecret | EnvSecret | StoredSecret


def parse_secret_ref(value: object) -> SecretRef:
    """설정 값(dict 또는 문자열)을 SecretRef로 변환.

    Args:
        value: "literal", {"type": "plain", "value": ...},
            {"type": "env", "name": ...}, {"type": "storage", "key": ...}

    Returns:
        SecretRef

    Raises:
        SecretUnresolvedError: 형식을 알 수 없을 때
    """
    if isinstance(value, (str, PlainSecret, EnvSecret, StoredSecret)):
        return value
    if isinstance(value, Mapping):
        ref_type = value.get("type")
        if ref_type == "plain" and isinstance(value.get("value"), str):
            return PlainSecret(value["value"])
        if ref_type == "env" and isinstance(value.get("name"), str):
            return EnvSecret(value["name"])
        if ref_type == "storage" and isinstance(value.get("key"), str):
            return StoredSecret(value["key"])
    raise SecretUnresolvedError(f"Unknown secret reference: {value!r}")


class SecretResolver:
    """SecretRef 해석기

    Example:
        resolver = SecretResolver(storage=MemoryStorage())
        key = await resolver.resolve(EnvSecret("OPENAI_API_KEY"))
    """

    def __init__(
        self,
        storage: StorageAdapter | None = None,
        environ: Mapping[str, str] | None = None,
    ):
        self.storage = storage
        self._environ = environ

    @property
    def environ(self) -> Mapping[str, str]:
        return self._environ if self._environ is not None else os.environ

    async def resolve(self, ref: SecretRef) -> str:
        """참조를 문자열로 해석.

        Raises:
            SecretUnresolvedError: 환경 변수 미설정, 저장소 키 없음, 알 수 없는 형식
        """
        if isinstance(ref, str):
            return ref

        if isinstance(ref, PlainSecret):
            return ref.value

        if isinstance(ref, EnvSecret):
            value = self.environ.get(ref.name)
            if value is None:
                raise SecretUnresolvedError(
                    f"Environment variable not set: {ref.name}", reference=ref.name
                )
            logger.debug("Resolved secret from env %s", ref.name)
            return value

        if isinstance(ref, StoredSecret):
            if self.storage is None:
                raise SecretUnresolvedError(
                    f"Storage not configured, cannot resolve key: {ref.key}",
                    reference=ref.key,
                )
            value = await self.storage.get(ref.key)
            if value is None:
                raise SecretUnresolvedError(
                    f"Key not found in storage: {ref.key}", reference=ref.key
                )
            logger.debug("Resolved secret from storage key %s", ref.key)
            return value

        raise SecretUnresolvedError(f"Unknown secret reference: {ref!r}")
