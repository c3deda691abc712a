"""Discovery Engine

환경 변수 -> 디스크 스캐너 -> 저장소 순으로 자격증명을 찾아
provider마다 하나의 보고 항목을 만듭니다.

우선순위:
1. 환경 변수 (선언 순서상 먼저 설정된 변수)
2. 디스크 (첫 결과, secret 없는 항목은 이후 secret 있는 결과로 보강)
3. 저장소 (앞 단계에서 보고되지 않은 provider)
"""

import logging
import os
from collections.abc import Mapping

from llm_auth.auth.credential import (
    Credential,
    CredentialKind,
    DiscoveredCredential,
    DiscoverySource,
)
from llm_auth.auth.scanners import (
    DEFAULT_SCANNERS,
    DiskScanner,
    ScanContext,
    run_disk_scanners,
)

logger = logging.getLogger(__name__)

__all__ = [
    "DEFAULT_ENV_HINTS",
    "CredentialDiscovery",
    "DiscoveredCredential",
    "DiscoverySource",
]

# (환경 변수, provider ID) - 같은 provider 안에서는 앞쪽 우선
DEFAULT_ENV_HINTS: list[tuple[str, str]] = [
    ("ANTHROPIC_API_KEY", "anthropic"),
    ("OPENAI_API_KEY", "openai"),
    ("GOOGLE_GENERATIVE_AI_API_KEY", "google"),
    ("GOOGLE_API_KEY", "google"),
    ("AZURE_API_KEY", "azure"),
    ("XAI_API_KEY", "xai"),
    ("MISTRAL_API_KEY", "mistral"),
    ("GROQ_API_KEY", "groq"),
    ("OPENROUTER_API_KEY", "openrouter"),
]


class CredentialDiscovery:
    """자격증명 탐색기

    Args:
        store: CredentialStore (후보 기록, 저장된 맵 조회)
        env_hints: (환경 변수, provider ID) 목록
        scanners: 디스크 스캐너 목록
        environ: 환경 변수 (기본값: os.environ)
    """

    def __init__(
        self,
        store,
        env_hints: list[tuple[str, str]] | None = None,
        scanners: list[DiskScanner] | None = None,
        environ: Mapping[str, str] | None = None,
    ):
        self.store = store
        self.env_hints = env_hints if env_hints is not None else DEFAULT_ENV_HINTS
        self.scanners = scanners if scanners is not None else DEFAULT_SCANNERS
        self._environ = environ

    @property
    def environ(self) -> Mapping[str, str]:
        return self._environ if self._environ is not None else os.environ

    async def discover(
        self,
        skip_env: bool = False,
        skip_disk: bool = False,
        scanners: list[DiskScanner] | None = None,
        context: ScanContext | None = None,
        persist: bool = False,
    ) -> list[DiscoveredCredential]:
        """자격증명 탐색.

        Args:
            skip_env: 환경 변수 탐색 생략
            skip_disk: 디스크 스캔 생략
            scanners: 이번 호출에만 사용할 스캐너 목록
            context: 스캔 컨텍스트 (기본값: ScanContext.from_system())
            persist: secret이 없는 provider에 발견된 후보를 저장

        Returns:
            provider별 보고 항목 (발견 순서)
        """
        report: dict[str, DiscoveredCredential] = {}

        if not skip_env:
            self._probe_env(report)

        if not skip_disk:
            await self._probe_disk(report, scanners or self.scanners, context)

        if persist:
            persisted = await self.store.persist_candidates()
            logger.info("Persisted %d discovered credentials", persisted)

        try:
            stored = await self.store.load_persisted()
        except Exception as e:
            logger.warning("Failed to read credential store: %s", e)
            stored = {}

        for provider_id, credential in stored.items():
            if provider_id not in report:
                report[provider_id] = DiscoveredCredential.from_credential(
                    provider_id, DiscoverySource.STORE, credential
                )
                logger.debug("discover: %s via credential store", provider_id)

        logger.info("Discovery complete: %d providers found", len(report))
        return list(report.values())

    def _probe_env(self, report: dict[str, DiscoveredCredential]) -> None:
        for env_var, provider_id in self.env_hints:
            value = self.environ.get(env_var)
            if not value:
                continue
            credential = Credential(
                kind=CredentialKind.API_KEY,
                secret=value,
                origin_location=f"env:{env_var}",
            )
            self.store.record_candidate(provider_id, credential)
            if provider_id not in report:
                report[provider_id] = DiscoveredCredential.from_credential(
                    provider_id, DiscoverySource.ENV, credential
                )
                logger.debug("discover: %s from env:%s", provider_id, env_var)

    async def _probe_disk(
        self,
        report: dict[str, DiscoveredCredential],
        scanners: list[DiskScanner],
        context: ScanContext | None,
    ) -> None:
        for found in await run_disk_scanners(scanners, context):
            entry = report.get(found.provider_id)
            if entry is None:
                report[found.provider_id] = found
            elif (
                entry.source is DiscoverySource.DISK
                and entry.secret is None
                and found.secret is not None
            ):
                entry.secret = found.secret
                entry.kind = found.kind
                entry.location = found.location
                entry.credential = found.credential

            if found.secret is not None and found.credential is not None:
                self.store.record_candidate(found.provider_id, found.credential)
                logger.debug(
                    "discover: %s [%s] from %s",
                    found.provider_id,
                    found.kind.value,
                    found.location,
                )
