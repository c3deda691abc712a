"""Disk Scanners

다른 도구(Copilot, Claude Code, Codex CLI, Gemini CLI, gcloud, AWS, Cursor,
opencode)가 디스크에 남긴 자격증명을 찾습니다.

각 스캐너는 찾지 못하면 빈 리스트를 반환하고, 예상치 못한 오류는
run_disk_scanners()가 스캐너 단위로 격리합니다.
"""

import asyncio
import configparser
import logging
import os
import sys
from abc import ABC, abstractmethod
from collections.abc import Awaitable, Callable, Mapping
from dataclasses import dataclass, field
from pathlib import Path

from llm_auth.auth.credential import (
    Credential,
    CredentialKind,
    DiscoveredCredential,
    DiscoverySource,
    parse_kind,
)
from llm_auth.auth.schemas import (
    ClaudeCredentials,
    ClaudeSettings,
    CodexAuthFile,
    CopilotHostEntry,
    GcloudADC,
    GeminiOAuthCreds,
    OpencodeAuthEntry,
    load_json_object,
    parse_config,
)

logger = logging.getLogger(__name__)

EXEC_TIMEOUT = 5.0

CommandRunner = Callable[[list[str]], Awaitable[str | None]]


async def run_command(argv: list[str], timeout: float = EXEC_TIMEOUT) -> str | None:
    """외부 명령 실행. 실패/타임아웃/빈 출력이면 None"""
    try:
        proc = await asyncio.create_subprocess_exec(
            *argv,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.DEVNULL,
        )
    except OSError:
        return None

    try:
        stdout, _ = await asyncio.wait_for(proc.communicate(), timeout=timeout)
    except asyncio.TimeoutError:
        proc.kill()
        await proc.wait()
        logger.debug("Command timed out: %s", argv[0])
        return None

    if proc.returncode != 0:
        return None
    output = stdout.decode("utf-8", errors="replace").strip()
    return output or None


@dataclass
class ScanContext:
    """스캐너가 보는 환경

    Attributes:
        home: 사용자 홈 디렉토리
        platform: sys.platform 값 (linux, darwin, win32)
        environ: 환경 변수
        runner: 외부 명령 실행기 (None이면 exec 불가)
    """

    home: Path
    platform: str = "linux"
    environ: Mapping[str, str] = field(default_factory=dict)
    runner: CommandRunner | None = None

    @classmethod
    def from_system(cls) -> "ScanContext":
        return cls(
            home=Path.home(),
            platform=sys.platform,
            environ=os.environ,
            runner=run_command,
        )

    def env(self, name: str) -> str | None:
        return self.environ.get(name) or None

    def config_dir(self) -> Path:
        xdg = self.env("XDG_CONFIG_HOME")
        return Path(xdg) if xdg else self.home / ".config"

    def read_text(self, path: Path | str) -> str | None:
        """파일 읽기. 없거나 읽을 수 없으면 None"""
        try:
            return Path(path).read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError):
            return None

    def read_json(self, path: Path | str) -> dict | None:
        return load_json_object(self.read_text(path))

    @property
    def can_exec(self) -> bool:
        return self.runner is not None

    async def exec(self, argv: list[str]) -> str | None:
        if self.runner is None:
            return None
        return await self.runner(argv)


def disk_result(
    provider_id: str,
    path: Path | str,
    secret: str | None = None,
    kind: CredentialKind = CredentialKind.API_KEY,
    refresh_token: str | None = None,
    account_id: str | None = None,
    expires_at: float | None = None,
) -> DiscoveredCredential:
    """디스크 스캔 결과 항목 생성"""
    credential = Credential(
        kind=kind,
        secret=secret,
        refresh_token=refresh_token,
        expires_at=int(expires_at) if expires_at is not None else None,
        account_id=account_id,
        origin_location=str(path),
    )
    return DiscoveredCredential.from_credential(
        provider_id, DiscoverySource.DISK, credential
    )


class DiskScanner(ABC):
    """디스크 스캐너 인터페이스"""

    name: str = ""

    @abstractmethod
    async def scan(self, ctx: ScanContext) -> list[DiscoveredCredential]:
        pass


def _github_host_token(data: dict) -> str | None:
    for host, value in data.items():
        if "github.com" not in host:
            continue
        entry = parse_config(CopilotHostEntry, value)
        if entry is not None and entry.oauth_token:
            return entry.oauth_token
    return None


class CopilotScanner(DiskScanner):
    name = "github-copilot"

    async def scan(self, ctx: ScanContext) -> list[DiscoveredCredential]:
        base = ctx.config_dir() / "github-copilot"
        for filename in ("hosts.json", "apps.json"):
            path = base / filename
            data = ctx.read_json(path)
            if not data:
                continue
            token = _github_host_token(data)
            if token:
                logger.debug("copilot: found token in %s", path)
                return [disk_result("github-copilot", path, secret=token)]
        return []


class VSCodeScanner(DiskScanner):
    name = "vscode"

    async def scan(self, ctx: ScanContext) -> list[DiscoveredCredential]:
        tail = Path("Code", "User", "globalStorage", "github.copilot", "hosts.json")
        paths = []
        if ctx.platform == "darwin":
            paths.append(ctx.home / "Library" / "Application Support" / tail)
        paths.append(ctx.config_dir() / tail)

        for path in paths:
            data = ctx.read_json(path)
            if not data:
                continue
            token = _github_host_token(data)
            if token:
                logger.debug("vscode: found copilot token in %s", path)
                return [disk_result("github-copilot", path, secret=token)]
        return []


class ClaudeCodeScanner(DiskScanner):
    name = "claude-code"

    async def scan(self, ctx: ScanContext) -> list[DiscoveredCredential]:
        base = ctx.home / ".claude"
        for filename in ("settings.json", "settings.local.json"):
            path = base / filename
            settings = parse_config(ClaudeSettings, ctx.read_json(path))
            if settings is None:
                continue
            found = settings.api_key()
            if found:
                logger.debug("claude-code: found key in %s (%s)", path, found[0])
                return [disk_result("anthropic", path, secret=found[1])]

        path = base / ".credentials.json"
        creds = parse_config(ClaudeCredentials, ctx.read_json(path))
        if creds and creds.claude_ai_oauth and creds.claude_ai_oauth.access_token:
            block = creds.claude_ai_oauth
            logger.debug("claude-code: found OAuth tokens in %s", path)
            return [
                disk_result(
                    "anthropic",
                    path,
                    secret=block.access_token,
                    kind=CredentialKind.OAUTH,
                    refresh_token=block.refresh_token,
                    expires_at=block.expires_at,
                )
            ]
        return []


class CodexCliScanner(DiskScanner):
    name = "codex-cli"

    async def scan(self, ctx: ScanContext) -> list[DiscoveredCredential]:
        codex_home = ctx.env("CODEX_HOME")
        base = Path(codex_home) if codex_home else ctx.home / ".codex"
        path = base / "auth.json"
        auth = parse_config(CodexAuthFile, ctx.read_json(path))
        if auth is None:
            return []

        # 사용자가 직접 설정한 API 키 우선
        if auth.OPENAI_API_KEY:
            logger.debug("codex-cli: found OPENAI_API_KEY in %s", path)
            return [disk_result("openai", path, secret=auth.OPENAI_API_KEY)]

        if auth.tokens and auth.tokens.access_token:
            logger.debug("codex-cli: found OAuth tokens in %s", path)
            return [
                disk_result(
                    "openai",
                    path,
                    secret=auth.tokens.access_token,
                    kind=CredentialKind.OAUTH,
                    refresh_token=auth.tokens.refresh_token,
                    account_id=auth.tokens.account_id,
                )
            ]

        token = auth.token or auth.apiKey
        if token:
            return [disk_result("openai", path, secret=token)]
        return []


class GeminiCliScanner(DiskScanner):
    name = "gemini-cli"

    async def scan(self, ctx: ScanContext) -> list[DiscoveredCredential]:
        gemini_home = ctx.env("GEMINI_CLI_HOME")
        base = Path(gemini_home) if gemini_home else ctx.home / ".gemini"
        for filename in ("oauth_creds.json", "google_accounts.json"):
            path = base / filename
            creds = parse_config(GeminiOAuthCreds, ctx.read_json(path))
            if creds is None:
                continue

            if creds.access_token or creds.refresh_token:
                logger.debug("gemini-cli: found credentials in %s", path)
                return [
                    disk_result(
                        "google",
                        path,
                        secret=creds.access_token,
                        kind=CredentialKind.OAUTH,
                        refresh_token=creds.refresh_token,
                        expires_at=creds.expiry_date,
                    )
                ]

            if creds.accounts:
                logger.debug("gemini-cli: found accounts in %s", path)
                return [disk_result("google", path, kind=CredentialKind.OAUTH)]
        return []


class GcloudADCScanner(DiskScanner):
    name = "gcloud-adc"

    async def scan(self, ctx: ScanContext) -> list[DiscoveredCredential]:
        paths: list[Path] = []
        explicit = ctx.env("GOOGLE_APPLICATION_CREDENTIALS")
        if explicit:
            paths.append(Path(explicit))
        sdk_config = ctx.env("CLOUDSDK_CONFIG")
        if sdk_config:
            paths.append(Path(sdk_config) / "application_default_credentials.json")
        paths.append(ctx.config_dir() / "gcloud" / "application_default_credentials.json")

        for path in paths:
            adc = parse_config(GcloudADC, ctx.read_json(path))
            if adc is not None and adc.is_recognised():
                logger.debug("gcloud-adc: found ADC in %s", path)
                return [disk_result("google-vertex", path, kind=CredentialKind.WELL_KNOWN)]
        return []


class AWSCredentialsScanner(DiskScanner):
    name = "aws-credentials"

    async def scan(self, ctx: ScanContext) -> list[DiscoveredCredential]:
        explicit = ctx.env("AWS_SHARED_CREDENTIALS_FILE")
        path = Path(explicit) if explicit else ctx.home / ".aws" / "credentials"
        raw = ctx.read_text(path)
        if not raw:
            return []

        parser = configparser.ConfigParser(interpolation=None)
        try:
            parser.read_string(raw)
        except configparser.Error as e:
            logger.debug("aws: cannot parse %s: %s", path, e)
            return []

        profile = ctx.env("AWS_PROFILE") or "default"
        if parser.has_section(profile) and parser.get(profile, "aws_access_key_id", fallback=""):
            logger.debug("aws: found credentials for profile [%s] in %s", profile, path)
            return [disk_result("amazon-bedrock", path, kind=CredentialKind.WELL_KNOWN)]
        return []


class CursorScanner(DiskScanner):
    name = "cursor"

    QUERY = "SELECT value FROM ItemTable WHERE key='cursorAuth/openAIKey'"

    async def scan(self, ctx: ScanContext) -> list[DiscoveredCredential]:
        if not ctx.can_exec:
            return []

        tail = Path("Cursor", "User", "globalStorage", "state.vscdb")
        db_paths = []
        if ctx.platform == "darwin":
            db_paths.append(ctx.home / "Library" / "Application Support" / tail)
        if ctx.platform == "win32":
            appdata = ctx.env("APPDATA")
            base = Path(appdata) if appdata else ctx.home / "AppData" / "Roaming"
            db_paths.append(base / tail)
        db_paths.append(ctx.config_dir() / tail)

        for db_path in db_paths:
            value = await ctx.exec(["sqlite3", str(db_path), self.QUERY])
            if value:
                logger.debug("cursor: found openAIKey in %s", db_path)
                return [disk_result("cursor", db_path, secret=value)]
        return []


class OpencodeAuthScanner(DiskScanner):
    name = "opencode-auth"

    async def scan(self, ctx: ScanContext) -> list[DiscoveredCredential]:
        paths: list[Path] = []
        xdg_data = ctx.env("XDG_DATA_HOME")
        if xdg_data:
            paths.append(Path(xdg_data) / "opencode" / "auth.json")
        if ctx.platform == "darwin":
            paths.append(ctx.home / "Library" / "Application Support" / "opencode" / "auth.json")
        paths.append(ctx.home / ".local" / "share" / "opencode" / "auth.json")
        paths.append(ctx.home / ".config" / "opencode" / "auth.json")

        for path in paths:
            data = ctx.read_json(path)
            if not data:
                continue

            results = []
            for provider_id, raw_entry in data.items():
                entry = parse_config(OpencodeAuthEntry, raw_entry)
                if entry is None:
                    continue
                logger.debug("opencode-auth: found %s (%s) in %s", provider_id, entry.type, path)
                results.append(
                    disk_result(
                        provider_id,
                        path,
                        secret=entry.secret,
                        kind=parse_kind(entry.type),
                        refresh_token=entry.refresh,
                        account_id=entry.accountId,
                        expires_at=entry.expires,
                    )
                )
            if results:
                return results
        return []


DEFAULT_SCANNERS: list[DiskScanner] = [
    CopilotScanner(),
    VSCodeScanner(),
    ClaudeCodeScanner(),
    CodexCliScanner(),
    GeminiCliScanner(),
    GcloudADCScanner(),
    AWSCredentialsScanner(),
    CursorScanner(),
    OpencodeAuthScanner(),
]


async def run_disk_scanners(
    scanners: list[DiskScanner], ctx: ScanContext | None = None
) -> list[DiscoveredCredential]:
    """스캐너를 순서대로 실행. 실패한 스캐너는 로그만 남기고 건너뜀"""
    ctx = ctx or ScanContext.from_system()
    results: list[DiscoveredCredential] = []

    for scanner in scanners:
        try:
            found = await scanner.scan(ctx)
        except Exception as e:
            logger.warning("Scanner %s failed: %s", scanner.name, e)
            continue
        results.extend(found)

    return results
