"""資料模型定義
定義版本清單、版本詳細資料、函式庫、實例設定、模組索引與進度事件等核心資料結構
Data Model Definitions
Defines manifest, version details, library, instance config, mod index entry and progress event data structures
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Any

from ..utils.errors import ParseError
from ..utils.logger import get_logger
from ..utils.path_utils import PathUtils
from ..utils.runtime_paths import RuntimePaths

logger = get_logger().bind(component="Models")


# ====== 時間工具 ======
def parse_time(value: str) -> datetime:
    """解析 RFC 3339 時間字串（接受 Z 結尾）"""
    text = value.strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    return datetime.fromisoformat(text)


def _require(data: dict, key: str, source: str) -> Any:
    try:
        return data[key]
    except (KeyError, TypeError) as e:
        raise ParseError(source, f"missing field {key!r}") from e


# ====== 版本清單 ======
class ListEntryKind(Enum):
    """版本種類"""

    RELEASE = "release"
    SNAPSHOT = "snapshot"
    BETA = "beta"
    ALPHA = "alpha"
    INFDEV = "infdev"
    INDEV = "indev"
    CLASSIC = "classic"
    PRECLASSIC = "preclassic"
    SPECIAL = "special"

    @classmethod
    def guess(cls, version_id: str) -> ListEntryKind:
        """由版本 ID 的命名前綴猜測種類"""
        prefixes = (
            ("b1.", cls.BETA),
            ("a1.", cls.ALPHA),
            ("inf-", cls.INFDEV),
            ("in-", cls.INDEV),
            ("pc-", cls.PRECLASSIC),
            ("c0.", cls.CLASSIC),
        )
        for prefix, kind in prefixes:
            if version_id.startswith(prefix):
                return kind
        if "w" in version_id:
            return cls.SNAPSHOT
        return cls.RELEASE

    @classmethod
    def from_catalog(cls, version_id: str, catalog_type: str) -> ListEntryKind:
        """由清單中的 type 欄位決定種類，未知時退回命名猜測"""
        mapping = {
            "release": cls.RELEASE,
            "snapshot": cls.SNAPSHOT,
            "old_beta": cls.BETA,
            "old_alpha": cls.ALPHA,
            "special": cls.SPECIAL,
            "april-fools": cls.SPECIAL,
        }
        if catalog_type in mapping:
            return mapping[catalog_type]
        return cls.guess(version_id)


@dataclass
class ListEntry:
    """提供給介面層的版本項目"""

    name: str
    kind: ListEntryKind
    supports_server: bool = True


@dataclass
class ManifestVersion:
    """
    版本清單中的單一版本

    Attributes:
        id (str): 版本 ID（清單內唯一）
        type (str): release / snapshot / old_beta / old_alpha ...
        url (str): 版本詳細資料 JSON 的網址
        time (str): 最後更新時間
        release_time (str): 發布時間
    """

    id: str
    type: str
    url: str
    time: str = ""
    release_time: str = ""

    @classmethod
    def from_dict(cls, data: dict, source: str = "manifest") -> ManifestVersion:
        return cls(
            id=_require(data, "id", source),
            type=data.get("type", "release"),
            url=_require(data, "url", source),
            time=data.get("time", ""),
            release_time=data.get("releaseTime", ""),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "type": self.type,
            "url": self.url,
            "time": self.time,
            "releaseTime": self.release_time,
        }


@dataclass
class Latest:
    release: str
    snapshot: str


@dataclass
class Manifest:
    """合併後的版本清單（建立後不再變動）"""

    latest: Latest
    versions: list[ManifestVersion]

    @classmethod
    def from_dict(cls, data: dict, source: str = "manifest") -> Manifest:
        latest = _require(data, "latest", source)
        versions = _require(data, "versions", source)
        if not isinstance(versions, list):
            raise ParseError(source, "versions must be a list")
        return cls(
            latest=Latest(release=latest.get("release", ""), snapshot=latest.get("snapshot", "")),
            versions=[ManifestVersion.from_dict(v, source) for v in versions],
        )

    def find_name(self, name: str) -> ManifestVersion | None:
        """精確比對版本 ID"""
        for version in self.versions:
            if version.id == name:
                return version
        return None

    def find_latest_release(self) -> ManifestVersion | None:
        return self.find_name(self.latest.release)

    def find_latest_snapshot(self) -> ManifestVersion | None:
        return self.find_name(self.latest.snapshot)


# ====== 函式庫 ======
@dataclass
class Rule:
    """函式庫平台規則 (依序評估，最後符合者決定)"""

    action: str
    os_name: str | None = None
    os_arch: str | None = None

    @classmethod
    def from_dict(cls, data: dict) -> Rule:
        os_info = data.get("os") or {}
        return cls(action=data.get("action", "allow"), os_name=os_info.get("name"), os_arch=os_info.get("arch"))

    @property
    def allows(self) -> bool:
        return self.action == "allow"


@dataclass
class LibraryArtifact:
    url: str | None = None
    path: str | None = None
    sha1: str | None = None
    size: int | None = None

    @classmethod
    def from_dict(cls, data: dict | None) -> LibraryArtifact | None:
        if not isinstance(data, dict):
            return None
        return cls(url=data.get("url"), path=data.get("path"), sha1=data.get("sha1"), size=data.get("size"))


@dataclass
class Library:
    """
    版本詳細資料中的函式庫項目

    Attributes:
        name (str): Maven 座標 "group:artifact:version[:classifier]"
        rules (list[Rule]): 平台規則
        natives (dict[str, str] | None): 作業系統 -> native classifier
        artifact (LibraryArtifact | None): 主要檔案
        classifiers (dict[str, LibraryArtifact]): 其他 classifier 檔案
        extract_exclude (list[str]): 解壓 natives 時排除的前綴
        url (str | None): Maven 倉庫根網址 (Fabric / Forge 風格)
        clientreq (bool | None): Forge 的 clientreq 標記
    """

    name: str
    rules: list[Rule] = field(default_factory=list)
    natives: dict[str, str] | None = None
    artifact: LibraryArtifact | None = None
    classifiers: dict[str, LibraryArtifact] = field(default_factory=dict)
    extract_exclude: list[str] = field(default_factory=list)
    url: str | None = None
    clientreq: bool | None = None
    raw: dict[str, Any] = field(default_factory=dict, repr=False)

    @classmethod
    def from_dict(cls, data: dict, source: str = "libraries") -> Library:
        downloads = data.get("downloads") or {}
        classifiers = {
            key: artifact
            for key, value in (downloads.get("classifiers") or {}).items()
            if (artifact := LibraryArtifact.from_dict(value)) is not None
        }
        return cls(
            name=_require(data, "name", source),
            rules=[Rule.from_dict(r) for r in data.get("rules") or []],
            natives=data.get("natives"),
            artifact=LibraryArtifact.from_dict(downloads.get("artifact")),
            classifiers=classifiers,
            extract_exclude=list((data.get("extract") or {}).get("exclude") or []),
            url=data.get("url"),
            clientreq=data.get("clientreq"),
            raw=dict(data),
        )

    def to_dict(self) -> dict[str, Any]:
        return dict(self.raw) if self.raw else {"name": self.name}

    @property
    def group(self) -> str:
        return self.name.split(":")[0]

    @property
    def artifact_id(self) -> str:
        parts = self.name.split(":")
        return parts[1] if len(parts) > 1 else ""


# ====== 版本詳細資料 ======
@dataclass
class AssetIndex:
    id: str
    url: str
    sha1: str = ""
    size: int = 0
    total_size: int = 0


@dataclass
class Download:
    url: str
    sha1: str = ""
    size: int = 0


@dataclass
class JavaVersionInfo:
    component: str
    major_version: int


@dataclass
class VersionDetails:
    """
    單一版本的完整描述（下載、函式庫、所需 Java 版本、資源索引）
    Full per-version descriptor; unknown keys are kept in raw and written back unchanged
    """

    id: str
    type: str
    main_class: str
    release_time: str
    time: str = ""
    assets: str | None = None
    asset_index: AssetIndex | None = None
    downloads: dict[str, Download] = field(default_factory=dict)
    java_version: JavaVersionInfo | None = None
    libraries: list[Library] = field(default_factory=list)
    logging: dict[str, Any] | None = None
    minecraft_arguments: str | None = None
    arguments: dict[str, Any] | None = None
    minimum_launcher_version: int = 3
    raw: dict[str, Any] = field(default_factory=dict, repr=False)

    FILE_NAME = "details.json"

    @classmethod
    def from_dict(cls, data: dict, source: str = "version json") -> VersionDetails:
        if not isinstance(data, dict):
            raise ParseError(source, "version json must be an object")
        asset_index = data.get("assetIndex")
        java = data.get("javaVersion")
        try:
            return cls(
                id=_require(data, "id", source),
                type=data.get("type", "release"),
                main_class=data.get("mainClass", ""),
                release_time=data.get("releaseTime", ""),
                time=data.get("time", ""),
                assets=data.get("assets"),
                asset_index=(
                    AssetIndex(
                        id=asset_index["id"],
                        url=asset_index["url"],
                        sha1=asset_index.get("sha1", ""),
                        size=asset_index.get("size", 0),
                        total_size=asset_index.get("totalSize", 0),
                    )
                    if isinstance(asset_index, dict)
                    else None
                ),
                downloads={
                    name: Download(url=d["url"], sha1=d.get("sha1", ""), size=d.get("size", 0))
                    for name, d in (data.get("downloads") or {}).items()
                    if isinstance(d, dict) and "url" in d
                },
                java_version=(
                    JavaVersionInfo(component=java.get("component", ""), major_version=int(java["majorVersion"]))
                    if isinstance(java, dict) and "majorVersion" in java
                    else None
                ),
                libraries=[Library.from_dict(lib, source) for lib in data.get("libraries") or []],
                logging=data.get("logging"),
                minecraft_arguments=data.get("minecraftArguments"),
                arguments=data.get("arguments"),
                minimum_launcher_version=data.get("minimumLauncherVersion", 3),
                raw=dict(data),
            )
        except (KeyError, TypeError, ValueError) as e:
            raise ParseError(source, f"unexpected version json layout: {e}") from e

    def to_dict(self) -> dict[str, Any]:
        data = dict(self.raw)
        data["libraries"] = [lib.to_dict() for lib in self.libraries]
        data.setdefault("minimumLauncherVersion", self.minimum_launcher_version)
        return data

    # ====== 持久化 ======
    @classmethod
    def load(cls, directory: Path) -> VersionDetails:
        path = directory / cls.FILE_NAME
        return cls.from_dict(PathUtils.read_json(path), source=str(path))

    def save_to_dir(self, directory: Path) -> Path:
        return PathUtils.save_json(directory / self.FILE_NAME, self.to_dict())

    # ====== 版本查詢 ======
    @property
    def client(self) -> Download | None:
        return self.downloads.get("client")

    @property
    def server(self) -> Download | None:
        return self.downloads.get("server")

    def get_id(self) -> str:
        """去除 -lwjgl3 後綴的版本 ID"""
        return self.id.removesuffix("-lwjgl3")

    def is_special_lwjgl3(self) -> bool:
        return self.id.endswith("-lwjgl3")

    def _compare_release_time(self, cutoff: str) -> int | None:
        try:
            mine = parse_time(self.release_time)
            other = parse_time(cutoff)
        except ValueError as e:
            logger.error(f"無法解析版本時間 ({self.id}: {self.release_time!r} / {cutoff!r}): {e}")
            return None
        return (mine > other) - (mine < other)

    def is_before_or_eq(self, cutoff: str) -> bool:
        result = self._compare_release_time(cutoff)
        return result is not None and result <= 0

    def is_after_or_eq(self, cutoff: str) -> bool:
        result = self._compare_release_time(cutoff)
        return result is not None and result >= 0


# ====== Java ======
class JavaVersion(Enum):
    """受管理的 Java 主要版本"""

    JAVA_8 = 8
    JAVA_16 = 16
    JAVA_17 = 17
    JAVA_21 = 21
    JAVA_25 = 25

    @classmethod
    def from_major(cls, major: int | None) -> JavaVersion:
        """未知的主要版本一律對應到 Java 21"""
        for member in cls:
            if member.value == major:
                return member
        return cls.JAVA_21

    def __str__(self) -> str:
        return f"java_{self.value}"


# ====== 實例設定 ======
class Loader(Enum):
    """模組載入器類型"""

    VANILLA = "Vanilla"
    FABRIC = "Fabric"
    QUILT = "Quilt"
    FORGE = "Forge"
    NEOFORGE = "NeoForge"

    @classmethod
    def parse(cls, value: str | Loader) -> Loader:
        if isinstance(value, Loader):
            return value
        for member in cls:
            if member.value.lower() == str(value).strip().lower():
                return member
        raise ValueError(f"unknown loader: {value}")


@dataclass
class ModTypeInfo:
    version: str | None = None
    backend_implementation: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {"version": self.version, "backend_implementation": self.backend_implementation}


@dataclass
class InstanceConfig:
    """
    實例設定 (config.json)：Java 覆寫、記憶體、載入器類型與參數

    Attributes:
        ram_in_mb (int): 記憶體配置 (MB)
        mod_type (Loader): 目前安裝的載入器
        mod_type_info (ModTypeInfo | None): 載入器版本與後端
        java_override (str | None): 自訂 java 路徑
        java_args / game_args (list[str]): 額外參數
        is_server (bool): 是否為伺服器
        is_classic_server (bool): 是否為 Classic 伺服器
        is_special_lwjgl3 (bool): 版本 ID 是否帶有 -lwjgl3
    """

    ram_in_mb: int = 2048
    mod_type: Loader = Loader.VANILLA
    mod_type_info: ModTypeInfo | None = None
    java_override: str | None = None
    enable_logger: bool = True
    java_args: list[str] = field(default_factory=list)
    game_args: list[str] = field(default_factory=list)
    is_server: bool = False
    is_classic_server: bool = False
    is_special_lwjgl3: bool = False
    extra: dict[str, Any] = field(default_factory=dict, repr=False)

    FILE_NAME = "config.json"
    _KNOWN_KEYS = (
        "ram_in_mb",
        "mod_type",
        "mod_type_info",
        "java_override",
        "enable_logger",
        "java_args",
        "game_args",
        "is_server",
        "is_classic_server",
        "version_info",
    )

    @classmethod
    def from_dict(cls, data: dict, source: str = "config.json") -> InstanceConfig:
        if not isinstance(data, dict):
            raise ParseError(source, "config must be an object")
        info = data.get("mod_type_info")
        try:
            return cls(
                ram_in_mb=int(data.get("ram_in_mb", 2048)),
                mod_type=Loader.parse(data.get("mod_type", Loader.VANILLA)),
                mod_type_info=(
                    ModTypeInfo(info.get("version"), info.get("backend_implementation")) if isinstance(info, dict) else None
                ),
                java_override=data.get("java_override"),
                enable_logger=bool(data.get("enable_logger", True)),
                java_args=list(data.get("java_args") or []),
                game_args=list(data.get("game_args") or []),
                is_server=bool(data.get("is_server", False)),
                is_classic_server=bool(data.get("is_classic_server", False)),
                is_special_lwjgl3=bool((data.get("version_info") or {}).get("is_special_lwjgl3", False)),
                extra={k: v for k, v in data.items() if k not in cls._KNOWN_KEYS},
            )
        except (TypeError, ValueError) as e:
            raise ParseError(source, str(e)) from e

    def to_dict(self) -> dict[str, Any]:
        data = dict(self.extra)
        data.update(
            {
                "ram_in_mb": self.ram_in_mb,
                "mod_type": self.mod_type.value,
                "mod_type_info": self.mod_type_info.to_dict() if self.mod_type_info else None,
                "java_override": self.java_override,
                "enable_logger": self.enable_logger,
                "java_args": self.java_args,
                "game_args": self.game_args,
                "is_server": self.is_server,
                "is_classic_server": self.is_classic_server,
                "version_info": {"is_special_lwjgl3": self.is_special_lwjgl3},
            }
        )
        return data

    @classmethod
    def read_from_dir(cls, directory: Path) -> InstanceConfig:
        path = directory / cls.FILE_NAME
        return cls.from_dict(PathUtils.read_json(path), source=str(path))

    def save_to_dir(self, directory: Path) -> Path:
        return PathUtils.save_json(directory / self.FILE_NAME, self.to_dict())

    def get_ram_argument(self) -> str:
        return f"-Xmx{self.ram_in_mb}M"

    def get_java_args(self, global_args: list[str] | None = None) -> list[str]:
        """合併實例與全域 Java 參數，去除空白項"""
        args = list(self.java_args) + list(global_args or [])
        return [a for a in args if a.strip()]


# ====== 模組索引項目 ======
@dataclass
class ModFile:
    url: str
    filename: str
    primary: bool = True


@dataclass
class ModConfig:
    """
    模組索引中的單一模組；dependencies / dependents 以模組 ID 組成有向圖
    A single installed mod; dependencies / dependents are id sets forming a directed graph
    """

    name: str
    manually_installed: bool = False
    installed_version: str = ""
    version_release_time: str = ""
    enabled: bool = True
    description: str = ""
    icon_url: str | None = None
    project_source: str = ""
    project_id: str = ""
    files: list[ModFile] = field(default_factory=list)
    supported_versions: list[str] = field(default_factory=list)
    dependencies: set[str] = field(default_factory=set)
    dependents: set[str] = field(default_factory=set)

    @classmethod
    def from_dict(cls, data: dict) -> ModConfig:
        return cls(
            name=data.get("name", ""),
            manually_installed=bool(data.get("manually_installed", False)),
            installed_version=data.get("installed_version", ""),
            version_release_time=data.get("version_release_time", ""),
            enabled=bool(data.get("enabled", True)),
            description=data.get("description", ""),
            icon_url=data.get("icon_url"),
            project_source=data.get("project_source", ""),
            project_id=data.get("project_id", ""),
            files=[
                ModFile(url=f.get("url", ""), filename=f["filename"], primary=bool(f.get("primary", True)))
                for f in data.get("files") or []
            ],
            supported_versions=list(data.get("supported_versions") or []),
            dependencies=set(data.get("dependencies") or []),
            dependents=set(data.get("dependents") or []),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "manually_installed": self.manually_installed,
            "installed_version": self.installed_version,
            "version_release_time": self.version_release_time,
            "enabled": self.enabled,
            "description": self.description,
            "icon_url": self.icon_url,
            "project_source": self.project_source,
            "project_id": self.project_id,
            "files": [{"url": f.url, "filename": f.filename, "primary": f.primary} for f in self.files],
            "supported_versions": self.supported_versions,
            "dependencies": sorted(self.dependencies),
            "dependents": sorted(self.dependents),
        }


@dataclass
class JarMod:
    """直接合併進遊戲 jar 的模組 (jarmod)"""

    filename: str
    enabled: bool = True

    @classmethod
    def from_dict(cls, data: dict) -> JarMod:
        return cls(filename=data["filename"], enabled=bool(data.get("enabled", True)))

    def to_dict(self) -> dict[str, Any]:
        return {"filename": self.filename, "enabled": self.enabled}


# ====== 進度事件 ======
@dataclass
class GenericProgress:
    """通用進度事件"""

    done: int = 0
    total: int = 0
    message: str | None = None
    has_finished: bool = False

    @classmethod
    def finished(cls) -> GenericProgress:
        return cls(done=1, total=1, message=None, has_finished=True)


class DownloadStage(Enum):
    MANIFEST = "manifest"
    VERSION_JSON = "version_json"
    JAR = "jar"
    LIBRARIES = "libraries"
    ASSETS = "assets"


@dataclass
class DownloadProgress:
    """建立實例時的階段性進度"""

    stage: DownloadStage
    done: int = 0
    total: int = 0


class ForgeInstallStage(Enum):
    START = "start"
    DOWNLOADING_JSON = "downloading_json"
    DOWNLOADING_INSTALLER = "downloading_installer"
    RUNNING_INSTALLER = "running_installer"
    DOWNLOADING_LIBRARY = "downloading_library"
    DONE = "done"


@dataclass
class ForgeInstallProgress:
    stage: ForgeInstallStage
    num: int = 0
    out_of: int = 0


# ====== 實例選擇 ======
@dataclass(frozen=True)
class InstanceSelection:
    """
    指向一個客戶端實例或伺服器
    Points at a client instance or a server

    Attributes:
        name (str): 實例名稱
        is_server (bool): 是否為伺服器
        root (Path | None): 覆寫的上層目錄 (預設為啟動器目錄下的 instances/servers)
    """

    name: str
    is_server: bool = False
    root: Path | None = None

    @property
    def instance_path(self) -> Path:
        if self.root is not None:
            return self.root / self.name
        base = RuntimePaths.get_servers_dir() if self.is_server else RuntimePaths.get_instances_dir()
        return base / self.name

    @property
    def dot_minecraft_path(self) -> Path:
        if self.is_server:
            return self.instance_path
        return self.instance_path / ".minecraft"

    @property
    def mods_dir(self) -> Path:
        return self.dot_minecraft_path / "mods"


# ====== 載入器安裝狀態 ======
@dataclass
class LoaderInstallState:
    """單次載入器安裝的暫時狀態，完成後即丟棄"""

    loader_kind: Loader
    backend: str
    target_version: str
    loader_version: str | None
    instance_path: Path
    is_server: bool
