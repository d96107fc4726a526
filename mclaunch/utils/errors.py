#!/usr/bin/env python3
"""錯誤類別定義
啟動器核心的統一例外階層：網路、解析、檔案系統、子程序與領域錯誤
Error Definitions
Unified exception hierarchy of the launcher core: transport, parse, filesystem, subprocess and domain errors
"""

from __future__ import annotations

from pathlib import Path

from .constants import JSON_ERROR_MSG, NETWORK_ERROR_MSG


class LauncherError(Exception):
    """所有啟動器核心錯誤的基底類別"""


# ====== 網路 Transport ======
class TransportError(LauncherError):
    """
    HTTP 或網路錯誤，保留狀態碼以便判斷是否為 404
    HTTP or network failure, keeps the status code so callers can tell "not found" apart
    """

    def __init__(self, url: str, status_code: int | None = None, reason: str = ""):
        self.url = url
        self.status_code = status_code
        self.reason = reason
        if status_code is not None:
            message = f"HTTP {status_code} while fetching {url}"
        else:
            message = f"could not reach {url}"
        if reason:
            message += f": {reason}"
        super().__init__(f"{message} ({NETWORK_ERROR_MSG})")

    @property
    def is_not_found(self) -> bool:
        return self.status_code == 404


# ====== 解析 Parse ======
class ParseError(LauncherError):
    """上游回應或本地檔案的 JSON/XML 格式錯誤"""

    def __init__(self, source: str, detail: str):
        self.source = source
        self.detail = detail
        super().__init__(f"{JSON_ERROR_MSG}: {source}: {detail}")


# ====== 檔案系統 Filesystem ======
class FilesystemError(LauncherError):
    """附帶路徑的 I/O 錯誤"""

    def __init__(self, path: Path | str, error: OSError | None = None, message: str = ""):
        self.path = Path(path)
        self.error = error
        detail = message or (error.strerror if error is not None and error.strerror else str(error or ""))
        super().__init__(f"filesystem error at {self.path}: {detail}")


class DirEscapeError(FilesystemError):
    """壓縮檔項目試圖跳出解壓縮目錄"""

    def __init__(self, path: Path | str):
        super().__init__(path, message="archive entry escapes the extraction directory")


# ====== 子程序 Subprocess ======
class SubprocessError(LauncherError):
    """子程序非零結束，保留輸出內容供診斷"""

    def __init__(self, command: str, returncode: int, stdout: str, stderr: str):
        self.command = command
        self.returncode = returncode
        self.stdout = stdout
        self.stderr = stderr
        super().__init__(f"{command} exited with status {returncode}\nSTDOUT:\n{stdout}\nSTDERR:\n{stderr}")


# ====== 領域 Domain ======
class DomainError(LauncherError):
    """具名的業務條件錯誤"""


class VersionNotFoundError(DomainError):
    def __init__(self, version: str):
        self.version = version
        super().__init__(f"version {version!r} was not found in the manifest")


class NoServerDownloadError(DomainError):
    def __init__(self, version: str):
        self.version = version
        super().__init__(f"version {version!r} has no server download")


class NoCompatibleLoaderError(DomainError):
    def __init__(self, loader: str, version: str):
        self.loader = loader
        self.version = version
        super().__init__(f"no compatible {loader} version found for {version}")


class InstanceAlreadyExistsError(DomainError):
    def __init__(self, name: str):
        self.name = name
        super().__init__(f"instance {name!r} already exists")


class InstanceNotFoundError(DomainError):
    def __init__(self, name: str):
        self.name = name
        super().__init__(f"instance {name!r} does not exist")


class InstanceLockedError(DomainError):
    def __init__(self, path: Path | str):
        self.path = Path(path)
        super().__init__(f"another install is running on {self.path} (remove install.lock if it is stale)")


class StageNotRestageableError(DomainError):
    def __init__(self, stage: str):
        self.stage = stage
        super().__init__(f"stage {stage!r} cannot be redone on an existing instance")


class UnsupportedPlatformError(DomainError):
    """
    找不到適用於此平台的 Java；only_java8 表示平台僅支援 Java 8
    No Java build for this platform; only_java8 marks platforms that only have Java 8
    """

    def __init__(self, version: int, os_name: str, arch: str, only_java8: bool = False):
        self.version = version
        self.os_name = os_name
        self.arch = arch
        self.only_java8 = only_java8
        if only_java8:
            message = (
                f"Java {version} is not available for {os_name} {arch}; only Java 8 is supported on this platform, "
                "so only old game versions can run here"
            )
        else:
            message = f"Java {version} is not available for {os_name} {arch} (platform unsupported)"
        super().__init__(message)


class UnknownArchiveExtensionError(DomainError):
    def __init__(self, url: str):
        self.url = url
        super().__init__(f"unknown archive extension: {url}")


class NoInstallJsonError(DomainError):
    def __init__(self, version: str):
        self.version = version
        super().__init__(f"installer for {version} contains no version.json or install_profile.json")


class NeoForgeOutdatedMinecraftError(DomainError):
    def __init__(self, version: str):
        self.version = version
        super().__init__(f"NeoForge only supports 1.20.2 and newer (got {version})")
