"""Credential Store

provider ID -> Credential 맵을 하나의 저장소 키(auth:store)에 JSON으로 보관하고,
discover()로 찾은 후보와 병합해 조회합니다.

저장은 맵 전체를 읽고-수정하고-쓰는 방식(last-writer-wins)입니다.
"""

import json
import logging

from llm_auth.auth.credential import Credential, CredentialKind, parse_kind
from llm_auth.auth.discovery import DEFAULT_ENV_HINTS, CredentialDiscovery
from llm_auth.auth.storage.backends import StorageAdapter, default_storage

logger = logging.getLogger(__name__)

STORE_KEY = "auth:store"


def pick_best(
    candidates: list[Credential], prefer: CredentialKind = CredentialKind.API_KEY
) -> Credential | None:
    """후보 선택: 선호 kind + secret > 아무 secret > 첫 번째"""
    if not candidates:
        return None
    for credential in candidates:
        if credential.kind is prefer and credential.secret is not None:
            return credential
    for credential in candidates:
        if credential.secret is not None:
            return credential
    return candidates[0]


def _normalize(value: object) -> Credential | None:
    if isinstance(value, Credential):
        return value.replace()
    if isinstance(value, dict):
        return Credential.from_dict(value)
    return None


def _candidate_key(credential: Credential) -> tuple:
    return (credential.kind, credential.secret, credential.origin_location)


class CredentialStore:
    """자격증명 저장소

    Args:
        storage: 저장소 백엔드 (기본값: default_storage())
        data: 메모리 모드용 맵. 주어지면 저장소 대신 이 dict를 직접 수정
        env_hints: (환경 변수, provider ID) 목록. discover()에서 사용

    Example:
        store = CredentialStore(storage=FileStorage(tmp_dir))
        await store.set("openai", Credential(secret="sk-..."))
        credential = await store.get("openai")
    """

    def __init__(
        self,
        storage: StorageAdapter | None = None,
        data: dict | None = None,
        env_hints: list[tuple[str, str]] | None = None,
    ):
        self._storage = storage
        self._external = data
        self.env_hints = list(env_hints) if env_hints is not None else list(DEFAULT_ENV_HINTS)
        self._candidates: dict[str, list[Credential]] = {}
        logger.debug("Credential store created, external=%s", data is not None)

    @property
    def storage(self) -> StorageAdapter:
        if self._storage is None:
            self._storage = default_storage()
        return self._storage

    async def load_persisted(self) -> dict[str, Credential]:
        """저장된 맵만 읽기 (후보 병합 없음)"""
        if self._external is not None:
            raw_map = dict(self._external)
        else:
            raw = await self.storage.get(STORE_KEY)
            if raw is None:
                return {}
            try:
                raw_map = json.loads(raw)
            except ValueError:
                logger.warning("Credential store payload is not valid JSON, ignoring")
                return {}
            if not isinstance(raw_map, dict):
                logger.warning("Credential store payload is malformed, ignoring")
                return {}

        persisted = {}
        for provider_id, value in raw_map.items():
            credential = _normalize(value)
            if credential is not None:
                persisted[provider_id] = credential
        return persisted

    async def _write(self, data: dict[str, Credential]) -> None:
        if self._external is not None:
            for provider_id, credential in data.items():
                self._external[provider_id] = credential
            for provider_id in list(self._external):
                if provider_id not in data:
                    del self._external[provider_id]
            return

        content = json.dumps(
            {pid: credential.to_dict() for pid, credential in data.items()}, indent=2
        )
        await self.storage.set(STORE_KEY, content)
        logger.debug("Wrote credential store with %d entries", len(data))

    def _merge(self, persisted: dict[str, Credential]) -> dict[str, Credential]:
        merged = dict(persisted)
        for provider_id, candidates in self._candidates.items():
            existing = merged.get(provider_id)
            if existing is None or existing.secret is None:
                best = pick_best(candidates)
                if best is not None:
                    merged[provider_id] = best
        return merged

    async def all(self) -> dict[str, Credential]:
        """저장된 맵 + 발견된 후보 (저장된 secret이 없는 provider만)"""
        return self._merge(await self.load_persisted())

    async def get(self, provider_id: str) -> Credential | None:
        credential = (await self.all()).get(provider_id)
        if credential is None:
            logger.debug("get(%s): not found", provider_id)
        return credential

    async def set(self, provider_id: str, credential: Credential | dict) -> None:
        normalized = _normalize(credential)
        if normalized is None:
            raise TypeError(f"Unsupported credential value: {type(credential).__name__}")
        data = await self.load_persisted()
        data[provider_id] = normalized
        await self._write(data)

        # 같은 위치에서 발견된 후보는 저장된 값(예: 갱신된 토큰)으로 교체
        if normalized.origin_location is not None and provider_id in self._candidates:
            self._candidates[provider_id] = [
                normalized if c.origin_location == normalized.origin_location else c
                for c in self._candidates[provider_id]
            ]
        logger.info("Stored credential for %s (kind=%s)", provider_id, normalized.kind.value)

    async def remove(self, provider_id: str) -> None:
        data = await self.load_persisted()
        if provider_id not in data:
            logger.debug("remove(%s): not found, no-op", provider_id)
            return
        del data[provider_id]
        await self._write(data)
        logger.info("Removed credential for %s", provider_id)

    async def get_preferred(
        self, provider_id: str, prefer: CredentialKind | str = CredentialKind.API_KEY
    ) -> Credential | None:
        """후보 중 선호 kind를 우선 선택, 후보가 없으면 병합 뷰에서 조회"""
        best = pick_best(self._candidates.get(provider_id, []), parse_kind(prefer))
        if best is not None:
            return best
        return await self.get(provider_id)

    def record_candidate(self, provider_id: str, credential: Credential) -> bool:
        """발견된 후보 기록. 이미 같은 후보가 있으면 False"""
        candidates = self._candidates.setdefault(provider_id, [])
        key = _candidate_key(credential)
        if any(_candidate_key(c) == key for c in candidates):
            return False
        candidates.append(credential)
        return True

    def candidates(self, provider_id: str) -> list[Credential]:
        return list(self._candidates.get(provider_id, []))

    async def persist_candidates(self) -> int:
        """저장된 secret이 없는 provider에 최선의 후보를 저장. 저장한 개수 반환"""
        if not self._candidates:
            return 0

        data = await self.load_persisted()
        changed = 0
        for provider_id, candidates in self._candidates.items():
            existing = data.get(provider_id)
            if existing is not None and existing.secret is not None:
                continue
            best = pick_best(candidates)
            if best is None or best.secret is None:
                continue
            data[provider_id] = best
            changed += 1

        if changed:
            await self._write(data)
        return changed

    async def discover(self, environ=None, **options) -> list:
        """CredentialDiscovery.discover() 참조"""
        engine = CredentialDiscovery(self, env_hints=self.env_hints, environ=environ)
        return await engine.discover(**options)
