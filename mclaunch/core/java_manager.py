#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Java 執行環境管理模組
依需求下載並安裝受管理的 Java 版本：優先使用官方執行環境清單，平台不在清單中時改用第三方壓縮檔
Java Runtime Manager Module
Downloads and installs managed Java versions on demand: the official runtime catalog first,
third-party archives for platforms the catalog does not cover
"""
# ====== 標準函式庫 ======
from pathlib import Path
from typing import Dict, List, Optional, Tuple
import lzma
import os
import threading
# ====== 專案內部模組 ======
from ..models import GenericProgress, JavaVersion
from ..utils.constants import CORRETTO_URL, JAVA_LIST_URL
from ..utils.errors import (
    FilesystemError,
    ParseError,
    UnknownArchiveExtensionError,
    UnsupportedPlatformError,
)
from ..utils.http_utils import HTTPUtils
from ..utils.logger import get_logger
from ..utils.path_utils import PathUtils
from ..utils.platform_info import PlatformInfo
from ..utils.runtime_paths import RuntimePaths
from .orchestrator import ProgressCounter, ProgressSender, do_jobs, retry

logger = get_logger().bind(component="JavaManager")

LOCK_FILE_NAME = "install.lock"
LOCK_FILE_TEXT = "If you see this, java hasn't finished installing."

# ====== 官方清單 Official Catalog ======
# (作業系統, 架構) -> all.json 中的平台鍵；musl Linux 沒有對應鍵
OFFICIAL_PLATFORM_KEYS: Dict[Tuple[str, str], str] = {
    ("linux", "x86_64"): "linux",
    ("linux", "x86"): "linux-i386",
    ("macos", "x86_64"): "mac-os",
    ("macos", "aarch64"): "mac-os-arm64",
    ("windows", "aarch64"): "windows-arm64",
    ("windows", "x86"): "windows-x86",
    ("windows", "x86_64"): "windows-x64",
}

# 依序嘗試，第一個非空的元件清單勝出
OFFICIAL_COMPONENTS: Dict[JavaVersion, Tuple[str, ...]] = {
    JavaVersion.JAVA_8: ("jre-legacy",),
    JavaVersion.JAVA_16: ("java-runtime-alpha",),
    JavaVersion.JAVA_17: ("java-runtime-gamma", "java-runtime-gamma-snapshot", "java-runtime-beta"),
    JavaVersion.JAVA_21: ("java-runtime-delta",),
    JavaVersion.JAVA_25: ("java-runtime-epsilon",),
}


# ====== 第三方來源 Alternate Sources ======
def _corretto(arch: str, os_name: str, ext: str) -> Dict[int, str]:
    urls = {major: CORRETTO_URL.format(major=major, arch=arch, os=os_name, ext=ext) for major in (8, 17, 21, 25)}
    # Corretto 沒有 16，由 17 代替
    urls[16] = urls[17]
    return urls


_GET_JDK = "https://github.com/Mrmayman/get-jdk/releases/download/java8-1/"

# (作業系統, 架構, libc) -> {主要版本: 壓縮檔網址}；libc 為空字串表示不限
ALTERNATE_JAVA: Dict[Tuple[str, str, str], Dict[int, str]] = {
    ("linux", "x86_64", "glibc"): _corretto("x64", "linux", "tar.gz"),
    ("linux", "aarch64", "glibc"): _corretto("aarch64", "linux", "tar.gz"),
    ("linux", "x86_64", "musl"): _corretto("x64", "alpine", "tar.gz"),
    ("linux", "aarch64", "musl"): _corretto("aarch64", "alpine", "tar.gz"),
    ("linux", "arm", ""): {8: _GET_JDK + "jdk-8u231-linux-arm32-vfp-hflt.tar.gz"},
    ("linux", "x86", ""): {
        8: "https://github.com/hmsjy2017/get-jdk/releases/download/v8u231/jdk-8u231-linux-i586.tar.gz"
    },
    ("macos", "x86_64", ""): _corretto("x64", "macos", "tar.gz"),
    ("macos", "aarch64", ""): _corretto("aarch64", "macos", "tar.gz"),
    ("windows", "x86_64", ""): _corretto("x64", "windows", "zip"),
    ("windows", "x86", ""): _corretto("x86", "windows", "zip"),
    ("freebsd", "x86_64", ""): {8: _GET_JDK + "jdk-8u452-freebsd-x64.tar.gz"},
    ("solaris", "x86_64", ""): {8: _GET_JDK + "jdk-8u231-solaris-x64.tar.gz"},
    ("solaris", "sparc64", ""): {8: _GET_JDK + "jdk-8u231-solaris-sparcv9.tar.gz"},
}

# 安裝目錄中可能的執行檔位置，依序檢查
BINARY_CANDIDATES = (
    "bin/{name}",
    "Contents/Home/bin/{name}",
    "jre.bundle/Contents/Home/bin/{name}",
    "jdk1.8.0_231/{name}",
    "jdk1.8.0_231/bin/{name}",
)


class JavaManager:
    """
    受管理 Java 安裝的擁有者，每個主要版本安裝在 java_installs/java_<N>
    Owner of managed Java installs, one directory per major version under java_installs/java_<N>

    Args:
        installs_dir (Path | None): 安裝根目錄 (預設為啟動器目錄下的 java_installs)
        platform (PlatformInfo | None): 平台資訊 (預設偵測目前平台)
    """

    def __init__(self, installs_dir: Optional[Path] = None, platform: Optional[PlatformInfo] = None):
        self.installs_dir = Path(installs_dir) if installs_dir is not None else RuntimePaths.get_java_installs_dir()
        self.platform = platform or PlatformInfo.current()
        self._locks: Dict[JavaVersion, threading.Lock] = {}
        self._locks_guard = threading.Lock()

    # ====== 公開介面 ======
    def ensure_installed(self, version: JavaVersion, progress=None, name: str = "java") -> Path:
        """
        確保指定版本已安裝並回傳執行檔路徑
        Make sure the version is installed and return the path of its binary

        已完整安裝時不做任何網路存取；殘留的 install.lock 代表上次安裝中斷，會清除後重新安裝。

        Args:
            version (JavaVersion): 需要的主要版本
            progress: ProgressSender 或 queue.Queue，接收 GenericProgress
            name (str): 執行檔名稱 (java / javaw)

        Returns:
            Path: 執行檔的絕對路徑

        Raises:
            UnsupportedPlatformError: 此平台沒有可用的 Java 來源
            TransportError / ParseError / FilesystemError: 下載或解壓縮失敗
        """
        version = self.effective_version(version)
        java_dir = self.install_dir(version)

        binary = self._existing_binary(java_dir, name)
        if binary is not None:
            return binary

        with self._version_lock(version):
            # 其他執行緒可能已經完成安裝
            binary = self._existing_binary(java_dir, name)
            if binary is not None:
                return binary
            logger.info(f"安裝 Java: {version}")
            self._install(version, java_dir, ProgressSender.wrap(progress))

        binary = self.find_binary(java_dir, name)
        if binary is None:
            entries = sorted(p.name for p in java_dir.iterdir()) if java_dir.is_dir() else []
            raise FilesystemError(java_dir, message=f"no java binary found after install (contents: {entries})")
        return binary.resolve()

    def effective_version(self, version: JavaVersion) -> JavaVersion:
        """Windows ARM 沒有 Java 8 與 16，改用 17"""
        if self.platform.os == "windows" and self.platform.arch == "aarch64":
            if version in (JavaVersion.JAVA_8, JavaVersion.JAVA_16):
                return JavaVersion.JAVA_17
        return version

    def install_dir(self, version: JavaVersion) -> Path:
        return self.installs_dir / str(version)

    def is_installed(self, version: JavaVersion, name: str = "java") -> bool:
        return self._existing_binary(self.install_dir(self.effective_version(version)), name) is not None

    def delete_java_installs(self) -> None:
        """刪除所有自動安裝的 Java，之後使用時會重新安裝"""
        logger.info("清除 Java 安裝")
        PathUtils.delete_path(self.installs_dir)

    def find_binary(self, java_dir: Path, name: str = "java") -> Optional[Path]:
        """依固定順序尋找執行檔，Windows 上同時檢查 .exe"""
        for template in BINARY_CANDIDATES:
            path = java_dir / template.format(name=name)
            if path.exists():
                return path
            exe_path = path.with_name(path.name + ".exe")
            if exe_path.exists():
                return exe_path
        return None

    # ====== 來源選擇 ======
    def official_platform_key(self) -> Optional[str]:
        if self.platform.libc == "musl":
            return None
        return OFFICIAL_PLATFORM_KEYS.get((self.platform.os, self.platform.arch))

    def alternate_urls(self) -> Dict[int, str]:
        platform = self.platform
        return ALTERNATE_JAVA.get((platform.os, platform.arch, platform.libc)) or ALTERNATE_JAVA.get(
            (platform.os, platform.arch, ""), {}
        )

    def alternate_url(self, version: JavaVersion) -> Optional[str]:
        return self.alternate_urls().get(version.value)

    def unsupported_error(self, version: JavaVersion) -> UnsupportedPlatformError:
        """區分「完全不支援」與「只支援 Java 8」"""
        only_java8 = version != JavaVersion.JAVA_8 and set(self.alternate_urls()) == {8}
        return UnsupportedPlatformError(version.value, self.platform.os, self.platform.arch, only_java8=only_java8)

    # ====== 安裝流程 ======
    def _version_lock(self, version: JavaVersion) -> threading.Lock:
        with self._locks_guard:
            return self._locks.setdefault(version, threading.Lock())

    def _existing_binary(self, java_dir: Path, name: str) -> Optional[Path]:
        if not java_dir.is_dir() or (java_dir / LOCK_FILE_NAME).exists():
            return None
        binary = self.find_binary(java_dir, name)
        return binary.resolve() if binary is not None else None

    def _install(self, version: JavaVersion, java_dir: Path, sender: ProgressSender) -> None:
        if java_dir.exists():
            logger.warning(f"{java_dir} 不完整，重新安裝")
            PathUtils.delete_path(java_dir)
        PathUtils.ensure_dir_exists(java_dir)
        lock_file = PathUtils.write_text_file(java_dir / LOCK_FILE_NAME, LOCK_FILE_TEXT)

        sender.send(GenericProgress())
        files_url = self._official_files_url(version)
        if files_url is None:
            self._install_alternate(version, java_dir, sender)
        else:
            self._install_official(files_url, java_dir, sender)

        PathUtils.delete_path(lock_file)
        sender.send(GenericProgress.finished())
        logger.info(f"Java 安裝完成: {version}")

    def _official_files_url(self, version: JavaVersion) -> Optional[str]:
        key = self.official_platform_key()
        if key is None:
            logger.info(f"官方清單沒有 {self.platform.os} {self.platform.arch} 的 Java，改用其他來源")
            return None

        catalog = retry(lambda: HTTPUtils.get_json(JAVA_LIST_URL))
        listings = catalog.get(key) if isinstance(catalog, dict) else None
        if not isinstance(listings, dict):
            raise ParseError(JAVA_LIST_URL, f"missing platform {key!r}")

        for component in OFFICIAL_COMPONENTS[version]:
            entries = listings.get(component) or []
            if entries:
                try:
                    return entries[0]["manifest"]["url"]
                except (KeyError, TypeError) as e:
                    raise ParseError(JAVA_LIST_URL, f"{component} entry has no manifest url") from e
        return None

    def _install_official(self, files_url: str, java_dir: Path, sender: ProgressSender) -> None:
        manifest = retry(lambda: HTTPUtils.get_json(files_url))
        files = manifest.get("files") if isinstance(manifest, dict) else None
        if not isinstance(files, dict):
            raise ParseError(files_url, "java files manifest has no 'files' object")

        counter = ProgressCounter(len(files))
        links: List[Tuple[Path, str]] = []
        downloads = []
        for rel_name, entry in files.items():
            path = java_dir / rel_name
            kind = entry.get("type")
            if kind == "directory":
                PathUtils.ensure_dir_exists(path)
                self._report(sender, counter, rel_name)
            elif kind == "file":
                downloads.append(self._file_job(path, rel_name, entry, sender, counter))
            elif kind == "link":
                links.append((path, entry.get("target", "")))
            else:
                logger.warning(f"未知的檔案類型 {kind!r}: {rel_name}")

        do_jobs(downloads)

        for path, target in links:
            self._create_link(path, target)

    def _file_job(self, path: Path, rel_name: str, entry: dict, sender: ProgressSender, counter: ProgressCounter):
        def job() -> Path:
            data = self._download_runtime_file(entry.get("downloads") or {}, rel_name)
            try:
                path.parent.mkdir(parents=True, exist_ok=True)
                path.write_bytes(data)
                if entry.get("executable") and os.name != "nt":
                    os.chmod(path, 0o755)
            except OSError as e:
                raise FilesystemError(path, e) from e
            self._report(sender, counter, rel_name)
            return path

        return job

    @staticmethod
    def _download_runtime_file(downloads: dict, rel_name: str) -> bytes:
        """優先下載 lzma 版本，解壓失敗時改下載原始檔案"""
        raw_url = (downloads.get("raw") or {}).get("url")
        if not raw_url:
            raise ParseError(JAVA_LIST_URL, f"{rel_name} has no raw download")
        lzma_url = (downloads.get("lzma") or {}).get("url")
        if lzma_url:
            compressed = HTTPUtils.get_bytes(lzma_url)
            try:
                return lzma.decompress(compressed)
            except lzma.LZMAError as e:
                logger.error(f"無法解壓縮 lzma 檔案 {lzma_url}: {e}")
        return HTTPUtils.get_bytes(raw_url)

    @staticmethod
    def _report(sender: ProgressSender, counter: ProgressCounter, rel_name: str) -> None:
        done = counter.step()
        sender.send(GenericProgress(done=done, total=counter.total, message=f"Installed file: {rel_name}"))
        logger.debug(f"({done}/{counter.total}) {rel_name}")

    @staticmethod
    def _create_link(path: Path, target: str) -> None:
        if os.name == "nt":
            logger.debug(f"略過符號連結 {path} -> {target}")
            return
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            if path.is_symlink() or path.exists():
                path.unlink()
            os.symlink(target, path)
        except OSError as e:
            raise FilesystemError(path, e) from e

    def _install_alternate(self, version: JavaVersion, java_dir: Path, sender: ProgressSender) -> None:
        url = self.alternate_url(version)
        if url is None:
            raise self.unsupported_error(version)

        if url.endswith((".tar.gz", ".tgz")):
            extract = PathUtils.safe_extract_tar
        elif url.endswith(".zip"):
            extract = PathUtils.safe_extract_zip
        else:
            raise UnknownArchiveExtensionError(url)

        sender.send(GenericProgress(done=0, total=2, message="Getting compressed archive"))
        archive = HTTPUtils.download_file(url, java_dir / ("archive" + _archive_suffix(url)))
        sender.send(GenericProgress(done=1, total=2, message="Extracting archive"))
        try:
            extract(archive, java_dir, strip_top_level=True)
        finally:
            PathUtils.delete_path(archive)


def _archive_suffix(url: str) -> str:
    for suffix in (".tar.gz", ".tgz", ".zip"):
        if url.endswith(suffix):
            return suffix
    return ""


# ====== 全域實例管理 ======
_default_manager: Optional[JavaManager] = None
_default_lock = threading.Lock()


def get_java_manager() -> JavaManager:
    """取得程序預設的 Java 管理器"""
    global _default_manager
    with _default_lock:
        if _default_manager is None:
            _default_manager = JavaManager()
        return _default_manager


def get_java_binary(version: JavaVersion, name: str = "java", progress=None) -> Path:
    """取得 (必要時安裝) 指定版本的 Java 執行檔"""
    return get_java_manager().ensure_installed(version, progress=progress, name=name)


def delete_java_installs() -> None:
    get_java_manager().delete_java_installs()
