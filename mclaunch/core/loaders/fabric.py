#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Fabric / Quilt 系列載入器安裝模組
由各後端的中繼資料 API 取得載入器設定檔，下載函式庫；伺服器另外組出單一啟動 jar
Fabric / Quilt Family Loader Installer
Fetches the loader profile from one of several metadata backends and downloads its libraries;
servers additionally get a single launch jar
"""
# ====== 標準函式庫 ======
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence, Tuple
import zipfile
# ====== 專案內部模組 ======
from ...models import (
    GenericProgress,
    InstanceSelection,
    Library,
    Loader,
    LoaderInstallState,
    ModTypeInfo,
    VersionDetails,
)
from ...utils.constants import LWJGL2_GROUP, V_1_12_2, V_OFFICIAL_FABRIC_SUPPORT
from ...utils.errors import FilesystemError, NoCompatibleLoaderError, ParseError, TransportError
from ...utils.http_utils import HTTPUtils
from ...utils.logger import get_logger
from ...utils.path_utils import PathUtils
from ...utils.version_parsing import VersionParsing
from ..libraries import LibraryResolver, library_download, library_path
from ..mod_index import migrate_legacy_index
from ..orchestrator import ProgressSender, retry
from .common import change_instance_type, delete_files

logger = get_logger().bind(component="Fabric")

PROFILE_FILE_NAME = "fabric.json"
LAUNCH_JAR_NAME = "fabric-server-launch.jar"
LAUNCHER_PROPERTIES_NAME = "fabric-server-launcher.properties"
SHADE_MAX_LOADER_VERSION = "0.12.5"


# ====== 後端 ======
class FabricBackend:
    """
    Fabric 系列中繼資料來源
    A metadata source for the Fabric family

    Attributes:
        key (str): 內部識別名稱
        name (str): 顯示名稱 (非官方後端會寫入 backend_implementation)
        is_official (bool): 是否為官方 Fabric / Quilt 後端
        is_quilt (bool): 是否安裝 Quilt
    """

    def __init__(self, key: str, name: str, is_official: bool = False, is_quilt: bool = False):
        self.key = key
        self.name = name
        self.is_official = is_official
        self.is_quilt = is_quilt

    @property
    def loader(self) -> Loader:
        return Loader.QUILT if self.is_quilt else Loader.FABRIC

    def fetch_versions(self, game: str, is_server: bool = False) -> List[str]:
        raise NotImplementedError

    def fetch_profile(self, game: str, loader_version: str, is_server: bool = False) -> Dict[str, Any]:
        raise NotImplementedError

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {self.key}>"


def _parse_version_list(data: Any, url: str) -> List[str]:
    if not isinstance(data, list):
        raise ParseError(url, "loader version list must be an array")
    try:
        return [str(item["loader"]["version"]) for item in data]
    except (KeyError, TypeError) as e:
        raise ParseError(url, f"bad loader version entry: {e}") from e


def _fetch_version_list(url: str) -> List[str]:
    """重試抓取版本清單；404 視為空清單 (此後端不支援)"""
    data = retry(lambda: HTTPUtils.get_json_or_none(url))
    if data is None:
        logger.debug(f"版本清單不存在 (404): {url}")
        return []
    return _parse_version_list(data, url)


def _fetch_profile(url: str) -> Dict[str, Any]:
    data = HTTPUtils.get_json(url)
    if not isinstance(data, dict):
        raise ParseError(url, "loader profile must be an object")
    return data


class MetaBackend(FabricBackend):
    """標準 meta API：/versions/loader/<game>"""

    def __init__(self, key: str, name: str, base_url: str, is_official: bool = False, is_quilt: bool = False):
        super().__init__(key, name, is_official, is_quilt)
        self.base_url = base_url.rstrip("/")

    def fetch_versions(self, game: str, is_server: bool = False) -> List[str]:
        return _fetch_version_list(f"{self.base_url}/versions/loader/{game}")

    def fetch_profile(self, game: str, loader_version: str, is_server: bool = False) -> Dict[str, Any]:
        kind = "server" if is_server else "profile"
        return _fetch_profile(f"{self.base_url}/versions/loader/{game}/{loader_version}/{kind}/json")


class OrnitheBackend(FabricBackend):
    """OrnitheMC：版本清單與設定檔網址各有兩種形式，依序嘗試"""

    BASE_URL = "https://meta.ornithemc.net/v3"

    def __init__(self, key: str, name: str, is_quilt: bool = False):
        super().__init__(key, name, False, is_quilt)

    @property
    def flavour(self) -> str:
        return "quilt" if self.is_quilt else "fabric"

    def fetch_versions(self, game: str, is_server: bool = False) -> List[str]:
        side = "server" if is_server else "client"
        versions = _fetch_version_list(f"{self.BASE_URL}/versions/{self.flavour}-loader/{game}")
        if versions:
            return versions
        fallback = f"{self.BASE_URL}/versions/{self.flavour}-loader/{game}-{side}"
        try:
            return _fetch_version_list(fallback)
        except TransportError as e:
            logger.debug(f"OrnitheMC 備用清單無法取得: {e}")
            return versions

    def fetch_profile(self, game: str, loader_version: str, is_server: bool = False) -> Dict[str, Any]:
        kind = "server" if is_server else "profile"
        side = "server" if is_server else "client"
        url1 = f"{self.BASE_URL}/versions/{self.flavour}-loader/{game}/{loader_version}/{kind}/json"
        url2 = f"{self.BASE_URL}/versions/{self.flavour}-loader/{game}-{side}/{loader_version}/{kind}/json"
        try:
            return _fetch_profile(url1)
        except TransportError as first_error:
            try:
                return _fetch_profile(url2)
            except TransportError:
                raise first_error


class CursedLegacyBackend(FabricBackend):
    """Cursed Legacy：以 GitHub 最新 commit 固定版本，設定檔由範本產生"""

    COMMITS_URL = "https://api.github.com/repos/minecraft-cursed-legacy/Cursed-fabric-loader/commits"
    DEFAULT_COMMIT = "5e8a1e8"
    SUPPORTED_VERSION = "b1.7.3"

    def __init__(self):
        super().__init__("cursed_legacy", "Fabric (Cursed Legacy)")

    def fetch_versions(self, game: str, is_server: bool = False) -> List[str]:
        return [self.SUPPORTED_VERSION] if game == self.SUPPORTED_VERSION else []

    def latest_commit(self) -> str:
        commits = retry(lambda: HTTPUtils.get_json(self.COMMITS_URL, user_agent=True))
        if not isinstance(commits, list):
            raise ParseError(self.COMMITS_URL, "commit list must be an array")
        if not commits:
            return self.DEFAULT_COMMIT
        sha = commits[0].get("sha") if isinstance(commits[0], dict) else None
        if not isinstance(sha, str):
            raise ParseError(self.COMMITS_URL, "commit entry has no 'sha'")
        return sha[:7]

    def fetch_profile(self, game: str, loader_version: str, is_server: bool = False) -> Dict[str, Any]:
        return cursed_legacy_profile(self.latest_commit())


def cursed_legacy_profile(commit: str) -> Dict[str, Any]:
    fabric_maven = "https://maven.fabricmc.net/"
    return {
        "id": f"cursed-legacy-fabric-{commit}",
        "inheritsFrom": "b1.7.3",
        "type": "release",
        "mainClass": "net.fabricmc.loader.launch.knot.KnotClient",
        "mainClassServer": "net.fabricmc.loader.launch.knot.KnotServer",
        "arguments": {"game": [], "jvm": []},
        "libraries": [
            {"name": f"com.github.minecraft-cursed-legacy:cursed-fabric-loader:{commit}", "url": "https://jitpack.io/"},
            {"name": "net.fabricmc:tiny-mappings-parser:0.2.2.14", "url": fabric_maven},
            {"name": "net.fabricmc:sponge-mixin:0.8.2+build.24", "url": fabric_maven},
            {"name": "net.fabricmc:tiny-remapper:0.3.0.70", "url": fabric_maven},
            {"name": "net.fabricmc:fabric-loader-sat4j:2.3.5.4", "url": fabric_maven},
            {"name": "com.google.jimfs:jimfs:1.2-fabric", "url": fabric_maven},
            {"name": "org.ow2.asm:asm:9.1", "url": fabric_maven},
            {"name": "org.ow2.asm:asm-analysis:9.1", "url": fabric_maven},
            {"name": "org.ow2.asm:asm-commons:9.1", "url": fabric_maven},
            {"name": "org.ow2.asm:asm-tree:9.1", "url": fabric_maven},
            {"name": "org.ow2.asm:asm-util:9.1", "url": fabric_maven},
            {"name": "com.google.guava:guava:21.0", "url": "https://libraries.minecraft.net/"},
        ],
    }


FABRIC = MetaBackend("fabric", "Fabric", "https://meta.fabricmc.net/v2", is_official=True)
QUILT = MetaBackend("quilt", "Quilt", "https://meta.quiltmc.org/v3", is_official=True, is_quilt=True)
LEGACY_FABRIC = MetaBackend("legacy_fabric", "Fabric (Legacy)", "https://meta.legacyfabric.net/v2")
BABRIC = MetaBackend("babric", "Fabric (Babric)", "https://meta.babric.glass-launcher.net/v2")
ORNITHE_FABRIC = OrnitheBackend("ornithe_fabric", "Fabric (OrnitheMC)")
ORNITHE_QUILT = OrnitheBackend("ornithe_quilt", "Quilt (OrnitheMC)", is_quilt=True)
CURSED_LEGACY = CursedLegacyBackend()

BACKENDS: Dict[str, FabricBackend] = {
    b.key: b for b in (FABRIC, QUILT, LEGACY_FABRIC, BABRIC, ORNITHE_FABRIC, ORNITHE_QUILT, CURSED_LEGACY)
}


# ====== 後端選擇 ======
def _first_supported(
    backends: Sequence[FabricBackend], game: str, is_server: bool
) -> Optional[Tuple[FabricBackend, List[str]]]:
    for backend in backends:
        versions = backend.fetch_versions(game, is_server)
        if versions:
            return backend, versions
        logger.info(f"{backend.name} 不支援 {game}，嘗試下一個後端")
    return None


def select_backend(loader: Loader, details: VersionDetails, is_server: bool = False) -> Tuple[FabricBackend, List[str]]:
    """
    依版本挑選後端並回傳其載入器版本清單
    Pick the backend for a game version and return its loader version list

    官方後端只用於官方支援時間點 (含) 之後且清單非空的版本；空清單或 404 代表不支援並改用備援。

    Raises:
        NoCompatibleLoaderError: 所有後端都不支援
    """
    game = details.get_id()
    official = QUILT if loader == Loader.QUILT else FABRIC
    candidates: List[FabricBackend] = []
    if details.is_after_or_eq(V_OFFICIAL_FABRIC_SUPPORT):
        candidates.append(official)

    if loader == Loader.QUILT:
        candidates.append(ORNITHE_QUILT)
    elif game == CursedLegacyBackend.SUPPORTED_VERSION:
        candidates.extend((BABRIC, ORNITHE_FABRIC, CURSED_LEGACY))
    else:
        candidates.extend((LEGACY_FABRIC, ORNITHE_FABRIC))

    found = _first_supported(candidates, game, is_server)
    if found is None:
        raise NoCompatibleLoaderError(loader.value, game)
    logger.info(f"使用後端 {found[0].name} ({len(found[1])} 個載入器版本)")
    return found


def list_loader_versions(loader: Loader, instance: InstanceSelection) -> Tuple[FabricBackend, List[str]]:
    details = VersionDetails.load(instance.instance_path)
    return select_backend(loader, details, instance.is_server)


# ====== 安裝 ======
def _profile_libraries(profile: Dict[str, Any], source: str) -> List[Library]:
    libraries = profile.get("libraries")
    if not isinstance(libraries, list):
        raise ParseError(source, "loader profile has no 'libraries' array")
    return [Library.from_dict(lib, source) for lib in libraries]


def _resolver(libraries_dir: Path, details: VersionDetails, sender: ProgressSender) -> LibraryResolver:
    exclude = (LWJGL2_GROUP,) if details.is_before_or_eq(V_1_12_2) else ()
    return LibraryResolver(libraries_dir, progress=sender, exclude=exclude)


def install(
    loader: Loader,
    instance: InstanceSelection,
    loader_version: Optional[str] = None,
    progress=None,
    backend: Optional[FabricBackend] = None,
) -> ModTypeInfo:
    """
    安裝 Fabric 或 Quilt
    Install Fabric or Quilt

    Args:
        loader (Loader): Loader.FABRIC 或 Loader.QUILT
        instance (InstanceSelection): 目標實例或伺服器
        loader_version (str | None): 載入器版本，None 表示最新
        progress: ProgressSender 或 queue.Queue (GenericProgress)
        backend (FabricBackend | None): 指定後端，None 時自動選擇

    Returns:
        ModTypeInfo: 寫入 config.json 的載入器資訊
    """
    instance_dir = instance.instance_path
    details = VersionDetails.load(instance_dir)
    if backend is None:
        backend, versions = select_backend(loader, details, instance.is_server)
        if loader_version is None:
            loader_version = versions[0]
    elif loader_version is None:
        versions = backend.fetch_versions(details.get_id(), instance.is_server)
        if not versions:
            raise NoCompatibleLoaderError(loader.value, details.get_id())
        loader_version = versions[0]

    state = LoaderInstallState(
        loader_kind=backend.loader,
        backend=backend.key,
        target_version=details.get_id(),
        loader_version=loader_version,
        instance_path=instance_dir,
        is_server=instance.is_server,
    )
    sender = ProgressSender.wrap(progress)
    sender.send(GenericProgress())
    logger.info(f"安裝 {backend.name} {loader_version} 到 {instance.name} ({'伺服器' if instance.is_server else '客戶端'})")

    if state.is_server:
        _install_server(backend, details, state, sender)
    else:
        _install_client(backend, details, state, sender)

    info = ModTypeInfo(version=loader_version, backend_implementation=None if backend.is_official else backend.name)
    change_instance_type(instance_dir, backend.loader, info)
    sender.send(GenericProgress.finished())
    logger.info(f"{backend.name} 安裝完成")
    return info


def _install_client(
    backend: FabricBackend, details: VersionDetails, state: LoaderInstallState, sender: ProgressSender
) -> None:
    instance_dir = state.instance_path
    migrate_legacy_index(instance_dir / ".minecraft")
    profile = backend.fetch_profile(state.target_version, state.loader_version, is_server=False)
    profile_path = PathUtils.save_json(instance_dir / PROFILE_FILE_NAME, profile)
    libraries = _profile_libraries(profile, str(profile_path))
    _resolver(instance_dir / "libraries", details, sender).download(libraries)


def _install_server(
    backend: FabricBackend, details: VersionDetails, state: LoaderInstallState, sender: ProgressSender
) -> None:
    server_dir = state.instance_path
    profile = backend.fetch_profile(state.target_version, state.loader_version, is_server=True)
    profile_path = PathUtils.save_json(server_dir / PROFILE_FILE_NAME, profile)
    libraries = _profile_libraries(profile, str(profile_path))
    library_files = _resolver(server_dir / "libraries", details, sender).download(libraries)

    main_class = profile.get("mainClassServer") or profile.get("mainClass")
    if not main_class:
        raise ParseError(str(profile_path), "loader profile has no main class")

    shade = should_shade(backend, state.loader_version)
    logger.info(f"建立啟動 jar ({'內嵌函式庫' if shade else 'Class-Path'})")
    make_launch_jar(server_dir / LAUNCH_JAR_NAME, server_dir, main_class, library_files, shade)
    PathUtils.write_text_file(server_dir / LAUNCHER_PROPERTIES_NAME, "serverJar=server.jar\n")


def should_shade(backend: FabricBackend, loader_version: str) -> bool:
    """舊版 Fabric 載入器 (<= 0.12.5) 與 Cursed Legacy 需要把函式庫打包進啟動 jar"""
    if backend is CURSED_LEGACY:
        return True
    if backend in (FABRIC, LEGACY_FABRIC):
        return VersionParsing.compare(loader_version, SHADE_MAX_LOADER_VERSION) <= 0
    return False


# ====== 啟動 jar ======
def _manifest_lines(key: str, value: str) -> List[bytes]:
    """依 JAR 規格將一行切成 72 位元組以內，續行以空白開頭"""
    data = f"{key}: {value}".encode("utf-8")
    lines = [data[:72]]
    data = data[72:]
    while data:
        lines.append(b" " + data[:71])
        data = data[71:]
    return lines


def build_manifest(main_class: str, class_path: Sequence[str] = ()) -> bytes:
    lines = [b"Manifest-Version: 1.0"]
    lines += _manifest_lines("Main-Class", main_class)
    if class_path:
        lines += _manifest_lines("Class-Path", " ".join(class_path))
    return b"\r\n".join(lines) + b"\r\n\r\n"


def _is_signature(name: str) -> bool:
    upper = name.upper()
    return upper.startswith("META-INF/") and upper.endswith((".SF", ".RSA", ".DSA", ".EC"))


def make_launch_jar(
    launch_jar: Path, server_dir: Path, main_class: str, library_files: Sequence[Path], shade: bool
) -> Path:
    """
    組出伺服器的單一啟動 jar
    Assemble the single launch jar of a server

    shade 為 True 時把所有函式庫內容打包進 jar (同名項目以先出現者為準)；
    否則在 MANIFEST.MF 以 Class-Path 參照 server_dir 下的相對路徑。
    """
    class_path = [] if shade else [Path(p).relative_to(server_dir).as_posix() for p in library_files]
    tmp_path = launch_jar.with_suffix(".jar.tmp")
    try:
        with zipfile.ZipFile(tmp_path, "w", zipfile.ZIP_DEFLATED) as jar:
            jar.writestr("META-INF/MANIFEST.MF", build_manifest(main_class, class_path))
            if shade:
                seen = {"META-INF/MANIFEST.MF"}
                for library in library_files:
                    _shade_into(jar, Path(library), seen)
        tmp_path.replace(launch_jar)
    except zipfile.BadZipFile as e:
        PathUtils.delete_path(tmp_path)
        raise FilesystemError(launch_jar, message=f"cannot shade library: {e}") from e
    except OSError as e:
        PathUtils.delete_path(tmp_path)
        raise FilesystemError(launch_jar, e) from e
    return launch_jar


def _shade_into(jar: zipfile.ZipFile, library: Path, seen: set) -> None:
    with zipfile.ZipFile(library, "r") as src:
        for item in src.infolist():
            name = item.filename
            if name in seen or item.is_dir() or _is_signature(name):
                continue
            seen.add(name)
            jar.writestr(name, src.read(item))


# ====== 解除安裝 ======
def uninstall(instance: InstanceSelection) -> None:
    """
    刪除載入器設定檔、其函式庫與伺服器啟動檔
    Remove the loader profile, its libraries and the server launch files
    """
    instance_dir = instance.instance_path
    profile_path = instance_dir / PROFILE_FILE_NAME
    if profile_path.is_file():
        profile = PathUtils.read_json(profile_path)
        libraries_dir = instance_dir / "libraries"
        # 原版也用到的函式庫保留
        vanilla = {lib.name for lib in VersionDetails.load(instance_dir).libraries}
        for library in _profile_libraries(profile, str(profile_path)):
            if library.name in vanilla:
                continue
            target = library_download(library)
            rel_path = target[1] if target is not None else library_path(library.name)
            PathUtils.delete_path(libraries_dir / rel_path)

    names: List[str] = [PROFILE_FILE_NAME]
    if instance.is_server:
        names += [LAUNCH_JAR_NAME, LAUNCHER_PROPERTIES_NAME]
    delete_files(instance_dir, names)
    logger.info(f"已從 {instance.name} 移除 Fabric / Quilt")

