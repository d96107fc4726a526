#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
函式庫解析模組
依平台規則挑選版本所需的函式庫，由 Maven 座標推導路徑，並以有限併發下載主要檔案與 natives
Library Resolver Module
Picks the libraries a version needs on this platform, derives paths from Maven coordinates and
downloads primary artifacts and natives with bounded concurrency
"""
# ====== 標準函式庫 ======
from pathlib import Path
from typing import Any, Callable, Iterable, List, Optional, Sequence, Tuple
from urllib.parse import urlparse
import threading
# ====== 專案內部模組 ======
from ..models import GenericProgress, Library, LibraryArtifact, VersionDetails
from ..utils.constants import LEGACY_LWJGL3_SHIM, LIBRARIES_URL, V_1_12_2
from ..utils.http_utils import HTTPUtils
from ..utils.logger import get_logger
from ..utils.path_utils import PathUtils
from ..utils.platform_info import PlatformInfo
from .orchestrator import ProgressCounter, ProgressSender, do_jobs

logger = get_logger().bind(component="Libraries")

NATIVES_DIR_NAME = "natives"

# 規則與 natives 對照中使用的非 x86_64 架構寫法
_RULE_ARCH = {
    "aarch64": "arm64",
    "arm": "arm32",
    "x86": "x86",
}


# ====== 平台規則 ======
def _os_names(platform: PlatformInfo) -> Tuple[str, ...]:
    if platform.os == "macos":
        return ("macos", "osx")
    return (platform.rules_os_name,)


def is_allowed(library: Library, platform: PlatformInfo) -> bool:
    """
    判斷函式庫在此平台是否適用
    Decide whether a library applies on this platform

    沒有規則時允許；有規則時預設不允許，依序評估後由最後一條符合的規則決定。
    classifiers 中帶有此作業系統 natives 的函式庫一律允許。
    """
    allowed = not library.rules
    os_name = platform.rules_os_name
    arch = _RULE_ARCH.get(platform.arch)

    for rule in library.rules:
        if rule.os_name is None:
            allowed = rule.allows
            continue
        if arch is None:
            if rule.os_name == os_name:
                allowed = rule.allows
        else:
            if rule.os_name == f"{os_name}-{arch}":
                allowed = rule.allows
            if rule.os_name == os_name and arch in library.name:
                allowed = rule.allows
        if (
            platform.os == "macos"
            and platform.arch == "aarch64"
            and rule.os_name == os_name
            and ("natives-macos-arm64" in library.name or library.name == "ca.weblite:java-objc-bridge:1.1")
        ):
            allowed = rule.allows

    if any(key.startswith(tuple(f"natives-{n}" for n in _os_names(platform))) for key in library.classifiers):
        allowed = True
    return allowed


# ====== 路徑推導 ======
def library_path(coordinate: str) -> str:
    """
    由 Maven 座標推導相對路徑
    Derive the relative path of a Maven coordinate

    "group:artifact:version[:classifier][@ext]" ->
    "group/as/dirs/artifact/version/artifact-version[-classifier].ext"
    """
    ext = "jar"
    if "@" in coordinate:
        coordinate, ext = coordinate.rsplit("@", 1)
    parts = coordinate.split(":")
    if len(parts) < 3:
        raise ValueError(f"invalid maven coordinate: {coordinate!r}")
    group, artifact, version = parts[0], parts[1], parts[2]
    classifier = f"-{parts[3]}" if len(parts) > 3 and parts[3] else ""
    return f"{group.replace('.', '/')}/{artifact}/{version}/{artifact}-{version}{classifier}.{ext}"


def url_path(url: str) -> str:
    """去除網址的協定與主機，只保留路徑"""
    return urlparse(url).path.lstrip("/")


def artifact_path(artifact: LibraryArtifact, coordinate: Optional[str] = None) -> str:
    if artifact.path:
        return artifact.path
    if coordinate:
        return library_path(coordinate)
    return url_path(artifact.url or "")


def library_download(library: Library) -> Optional[Tuple[str, str]]:
    """
    函式庫主要檔案的 (網址, 相對路徑)；沒有下載來源時回傳 None
    The (url, relative path) of a library's primary artifact, None when nothing can be downloaded
    """
    artifact = library.artifact
    if artifact is not None and artifact.url:
        return artifact.url, artifact_path(artifact, library.name)
    if library.url is not None:
        # Fabric 風格：只有 Maven 倉庫根網址
        rel_path = library_path(library.name)
        base = library.url or LIBRARIES_URL
        return base.rstrip("/") + "/" + rel_path, rel_path
    return None


def legacy_exclusions(details: VersionDetails) -> Tuple[str, ...]:
    """1.12.2 (含) 以前的版本已內建相同功能，排除舊版圖形相容層"""
    if details.is_before_or_eq(V_1_12_2) and not details.is_special_lwjgl3():
        return (LEGACY_LWJGL3_SHIM,)
    return ()


def is_excluded(library: Library, exclude: Sequence[str]) -> bool:
    return any(library.name.startswith(prefix) for prefix in exclude)


# ====== 解析器 ======
class LibraryResolver:
    """
    下載版本所需的函式庫並解壓 natives
    Downloads the libraries of a version and unpacks its natives

    Args:
        libraries_dir (Path): 函式庫根目錄 (natives 解壓到其下的 natives/)
        platform (PlatformInfo | None): 平台資訊
        progress: ProgressSender 或 queue.Queue
        event_factory: (done, total) -> 進度事件，預設為 GenericProgress
        exclude: 要略過的座標前綴
    """

    def __init__(
        self,
        libraries_dir: Path,
        platform: Optional[PlatformInfo] = None,
        progress=None,
        event_factory: Optional[Callable[[int, int], Any]] = None,
        exclude: Iterable[str] = (),
    ):
        self.libraries_dir = Path(libraries_dir)
        self.natives_dir = self.libraries_dir / NATIVES_DIR_NAME
        self.platform = platform or PlatformInfo.current()
        self.sender = ProgressSender.wrap(progress)
        self.event_factory = event_factory or _library_event
        self.exclude = tuple(exclude)
        self._extracted_urls = set()
        self._extracted_lock = threading.Lock()

    # ====== 主要流程 ======
    def applicable(self, libraries: Iterable[Library]) -> List[Library]:
        result = []
        for library in libraries:
            if not is_allowed(library, self.platform):
                logger.debug(f"略過 (平台不適用): {library.name}")
                continue
            if is_excluded(library, self.exclude):
                logger.debug(f"略過 (已排除): {library.name}")
                continue
            result.append(library)
        return result

    def download_libraries(self, details: VersionDetails) -> List[Path]:
        """下載版本的所有函式庫，回傳類別路徑需要的檔案"""
        return self.download(details.libraries)

    def download(self, libraries: Iterable[Library]) -> List[Path]:
        """
        下載函式庫，任一失敗即中止
        Download libraries, aborting on the first failure

        Returns:
            List[Path]: 依原順序排列的主要檔案路徑 (不含純 natives 檔案)
        """
        logger.info("下載函式庫")
        PathUtils.ensure_dir_exists(self.natives_dir)
        selected = self.applicable(libraries)
        counter = ProgressCounter(len(selected))

        def make_job(library: Library):
            def job() -> Optional[Path]:
                path = self.download_library(library)
                done = counter.step()
                self.sender.send(self.event_factory(done, counter.total))
                logger.debug(f"Downloaded library {done} of {counter.total}: {library.name}")
                return path

            return job

        results = do_jobs([make_job(lib) for lib in selected])
        return [path for path in results if path is not None]

    def download_library(self, library: Library) -> Optional[Path]:
        """下載單一函式庫與其 natives；沒有下載來源時回傳 None"""
        target = library_download(library)
        path = None
        if target is None:
            logger.debug(f"略過 (沒有下載網址): {library.name}")
        else:
            url, rel_path = target
            path = self.fetch(url, rel_path)
            if self._fits_by_name(library.name):
                # 以名稱標示的 natives 函式庫
                self.extract_natives(url, path, library.extract_exclude)

        self._natives_field(library)
        self._natives_classifiers(library)

        if path is not None and self._is_native_only(library):
            return None
        return path

    def fetch(self, url: str, rel_path: str) -> Path:
        """下載到函式庫目錄，檔案已存在時略過"""
        path = self.libraries_dir / rel_path
        if path.exists():
            return path
        logger.debug(f"下載 {url}")
        return HTTPUtils.download_file(url, path)

    # ====== natives ======
    def natives_key(self) -> str:
        """natives 對照表中此平台的鍵"""
        arch = _RULE_ARCH.get(self.platform.arch)
        if arch is None:
            return self.platform.rules_os_name
        return f"{self.platform.rules_os_name}-{arch}"

    def _natives_field(self, library: Library) -> None:
        if not library.natives:
            return
        classifier = library.natives.get(self.natives_key())
        if classifier is None:
            return
        classifier = classifier.replace("${arch}", self.platform.arch_bits)

        artifact = library.classifiers.get(classifier)
        if artifact is not None and artifact.url:
            url = artifact.url
            rel_path = artifact_path(artifact)
        else:
            main = library_download(library)
            if main is None:
                return
            url = main[0][: -len(".jar")] + f"-{classifier}.jar"
            rel_path = url_path(url)
        self.extract_natives(url, self.fetch(url, rel_path), library.extract_exclude)

    def _natives_classifiers(self, library: Library) -> None:
        for key, artifact in library.classifiers.items():
            if not self._classifier_matches(key) or not artifact.url:
                continue
            path = self.fetch(artifact.url, artifact_path(artifact))
            self.extract_natives(artifact.url, path, library.extract_exclude)

    def _classifier_matches(self, key: str) -> bool:
        specific = {
            ("macos", "aarch64"): ("natives-osx-arm64", "natives-macos-arm64"),
            ("linux", "aarch64"): ("natives-linux-arm64",),
            ("linux", "arm"): ("natives-linux-arm32",),
            ("windows", "x86"): ("natives-windows-32", "natives-windows-x86"),
            ("windows", "x86_64"): ("natives-windows-64", "natives-windows"),
        }.get((self.platform.os, self.platform.arch))
        if specific is not None:
            return key in specific
        return key in tuple(f"natives-{n}" for n in _os_names(self.platform))

    def _fits_by_name(self, name: str) -> bool:
        if "native" not in name:
            return False
        arch = self.platform.arch
        if arch == "aarch64":
            return "aarch" in name or "arm64" in name
        if arch == "arm":
            return "arm32" in name
        if arch == "x86":
            return "x86" in name and "x86_64" not in name
        return not ("aarch" in name or "arm" in name or ("x86" in name and "x86_64" not in name))

    def _is_native_only(self, library: Library) -> bool:
        parts = library.name.split(":")
        return len(parts) > 3 and parts[3].startswith("natives")

    def extract_natives(self, url: str, jar_path: Path, exclude: Sequence[str] = ()) -> None:
        """將 natives jar 解壓到 natives 目錄，同一網址在本次執行中只解壓一次"""
        with self._extracted_lock:
            if url in self._extracted_urls:
                return
            self._extracted_urls.add(url)
        logger.debug(f"解壓 natives: {jar_path.name}")
        PathUtils.safe_extract_zip(jar_path, self.natives_dir, exclude=("META-INF",) + tuple(exclude))


def _library_event(done: int, total: int) -> GenericProgress:
    return GenericProgress(done=done, total=total, message=f"Downloaded library {done} of {total}")
