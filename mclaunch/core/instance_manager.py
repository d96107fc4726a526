#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
實例管理模組
建立、重做階段、列出與刪除客戶端實例
Instance Manager Module
Creates client instances, repeats single stages, lists and deletes them
"""
# ====== 標準函式庫 ======
from pathlib import Path
from typing import List, Optional, Union
# ====== 專案內部模組 ======
from ..models import (
    DownloadProgress,
    DownloadStage,
    InstanceConfig,
    InstanceSelection,
    Loader,
    VersionDetails,
)
from ..utils.errors import (
    DirEscapeError,
    InstanceAlreadyExistsError,
    InstanceNotFoundError,
    ParseError,
    StageNotRestageableError,
    VersionNotFoundError,
)
from ..utils.http_utils import HTTPUtils
from ..utils.logger import get_logger
from ..utils.path_utils import PathUtils
from ..utils.runtime_paths import RuntimePaths
from ..utils.settings_manager import get_settings_manager
from ..version_info import LAUNCHER_VERSION_NAME
from .assets import AssetsDownloader
from .java_manager import JavaManager
from .libraries import LibraryResolver, legacy_exclusions
from .loaders import install_loader
from .manifest import ManifestResolver, get_manifest_resolver
from .orchestrator import ProgressSender, retry

logger = get_logger().bind(component="InstanceManager")

LAUNCHER_VERSION_FILE = "launcher_version.txt"
LOGGING_CONFIG_FILE = "logging-config.xml"
PROFILES_FILE = "launcher_profiles.json"


# ====== 共用步驟 ======
def fetch_version_details(resolver: ManifestResolver, version_id: str, sender: ProgressSender) -> VersionDetails:
    """
    從版本清單找到版本並下載其詳細資料
    Look a version up in the manifest and download its details

    Raises:
        VersionNotFoundError: 清單中沒有此版本
    """
    sender.send(DownloadProgress(DownloadStage.MANIFEST))
    entry = resolver.find(version_id)
    if entry is None:
        raise VersionNotFoundError(version_id)

    sender.send(DownloadProgress(DownloadStage.VERSION_JSON))
    data = retry(lambda: HTTPUtils.get_json(entry.url))
    if not isinstance(data, dict):
        raise ParseError(entry.url, "version json must be an object")
    return VersionDetails.from_dict(data, source=entry.url)


def resolve_child_dir(root: Path, name: str) -> Path:
    """
    解析上層目錄下的實例或伺服器目錄，不碰觸磁碟
    Resolve the directory of an instance or server without touching the disk

    Raises:
        DirEscapeError: 名稱為空、指向上層目錄本身或會跳出上層目錄
    """
    target = root / name
    base = root.resolve()
    resolved = target.resolve()
    if not name or resolved == base or base not in resolved.parents:
        raise DirEscapeError(target)
    return target


def prepare_new_dir(root: Path, name: str) -> Path:
    """
    建立新的實例或伺服器目錄
    Create the directory of a new instance or server

    Raises:
        InstanceAlreadyExistsError: 目錄已存在
        DirEscapeError: 名稱會跳出上層目錄
    """
    PathUtils.ensure_dir_exists(root)
    target = resolve_child_dir(root, name)
    if target.exists():
        raise InstanceAlreadyExistsError(name)
    return PathUtils.ensure_dir_exists(target)


def read_launcher_version(instance_dir: Path) -> Optional[str]:
    marker = instance_dir / LAUNCHER_VERSION_FILE
    if not marker.is_file():
        return None
    return PathUtils.read_text_file(marker).strip()


class InstanceManager:
    """
    客戶端實例的建立與維護
    Creation and upkeep of client instances

    Args:
        instances_dir (Path | None): 實例上層目錄 (預設為啟動器目錄下的 instances/)
        resolver (ManifestResolver | None): 版本清單解析器
        java_manager (JavaManager | None): 安裝 Forge 系列載入器時使用
        assets_dir (Path | None): 共用資源目錄
    """

    def __init__(
        self,
        instances_dir: Optional[Path] = None,
        resolver: Optional[ManifestResolver] = None,
        java_manager: Optional[JavaManager] = None,
        assets_dir: Optional[Path] = None,
    ):
        self.instances_dir = Path(instances_dir) if instances_dir is not None else RuntimePaths.get_instances_dir()
        self.resolver = resolver or get_manifest_resolver()
        self.java_manager = java_manager
        self.assets_dir = assets_dir

    def selection(self, name: str) -> InstanceSelection:
        return InstanceSelection(name, is_server=False, root=self.instances_dir)

    # ====== 建立 ======
    def create_instance(
        self,
        name: str,
        version_id: str,
        progress=None,
        download_assets: bool = True,
        loader: Optional[Union[Loader, str]] = None,
        loader_version: Optional[str] = None,
    ) -> str:
        """
        建立新的客戶端實例
        Create a new client instance

        失敗時保留已建立的目錄並直接拋出錯誤，可用 repeat_stage 補做或刪除後重建。

        Args:
            name (str): 實例名稱
            version_id (str): 遊戲版本 ID
            progress: 接收 DownloadProgress 的佇列或 ProgressSender
            download_assets (bool): 是否下載資源
            loader: 建立後要安裝的載入器
            loader_version (str | None): 載入器版本

        Returns:
            str: 實例名稱
        """
        sender = ProgressSender.wrap(progress)
        instance = self.selection(name)
        instance_dir = prepare_new_dir(self.instances_dir, name)
        dot_minecraft = PathUtils.ensure_dir_exists(instance.dot_minecraft_path)
        logger.info(f"建立實例 {name} ({version_id})")

        details = fetch_version_details(self.resolver, version_id, sender)
        if not download_assets:
            PathUtils.ensure_dir_exists(instance_dir / "assets" / "null")

        self._download_logging_config(details, instance_dir)
        self._download_jar(details, dot_minecraft, sender)
        self._download_libraries(details, instance_dir, sender)
        if download_assets:
            self._download_assets(details, dot_minecraft, sender)

        details.save_to_dir(instance_dir)
        PathUtils.save_json(dot_minecraft / PROFILES_FILE, {"profiles": {}})
        config = InstanceConfig(
            ram_in_mb=get_settings_manager().get_default_ram_mb(),
            is_special_lwjgl3=details.is_special_lwjgl3(),
        )
        config.save_to_dir(instance_dir)
        PathUtils.write_text_file(instance_dir / LAUNCHER_VERSION_FILE, LAUNCHER_VERSION_NAME)
        PathUtils.ensure_dir_exists(instance.mods_dir)

        if loader is not None and Loader.parse(loader) != Loader.VANILLA:
            install_loader(loader, instance, loader_version, progress=sender, java_manager=self.java_manager)

        logger.info(f"實例 {name} 建立完成")
        return name

    def repeat_stage(self, name: str, stage: Union[DownloadStage, str], progress=None) -> None:
        """
        重新執行已建立實例的單一下載階段
        Redo one download stage of an existing instance

        Raises:
            InstanceNotFoundError: 實例不存在
            StageNotRestageableError: 版本清單與版本 JSON 階段無法單獨重做
        """
        stage = DownloadStage(stage)
        if stage in (DownloadStage.MANIFEST, DownloadStage.VERSION_JSON):
            raise StageNotRestageableError(stage.value)

        sender = ProgressSender.wrap(progress)
        instance = self.selection(name)
        instance_dir = self._require(name)
        details = VersionDetails.load(instance_dir)
        logger.info(f"重做 {name} 的 {stage.value} 階段")

        if stage == DownloadStage.LIBRARIES:
            PathUtils.delete_path(instance_dir / "libraries")
            self._download_libraries(details, instance_dir, sender)
        elif stage == DownloadStage.ASSETS:
            self._download_assets(details, instance.dot_minecraft_path, sender)
        else:
            self._download_jar(details, instance.dot_minecraft_path, sender)

    # ====== 查詢與刪除 ======
    def list_instances(self) -> List[str]:
        if not self.instances_dir.is_dir():
            return []
        return sorted(p.name for p in self.instances_dir.iterdir() if (p / InstanceConfig.FILE_NAME).is_file())

    def is_outdated(self, name: str) -> bool:
        """實例是否由其他版本的啟動器建立 (標記檔不存在或不同)"""
        return read_launcher_version(self._require(name)) != LAUNCHER_VERSION_NAME

    def delete_instance(self, name: str) -> None:
        instance_dir = self._require(name)
        PathUtils.delete_path(instance_dir)
        logger.info(f"已刪除實例 {name}")

    def _require(self, name: str) -> Path:
        instance_dir = resolve_child_dir(self.instances_dir, name)
        if not instance_dir.is_dir():
            raise InstanceNotFoundError(name)
        return instance_dir

    # ====== 下載階段 ======
    @staticmethod
    def _download_logging_config(details: VersionDetails, instance_dir: Path) -> Optional[Path]:
        file_info = ((details.logging or {}).get("client") or {}).get("file")
        if not isinstance(file_info, dict) or not file_info.get("url"):
            logger.debug(f"{details.id} 沒有日誌設定檔")
            return None
        url = file_info["url"]
        return retry(lambda: HTTPUtils.download_file(url, instance_dir / LOGGING_CONFIG_FILE))

    @staticmethod
    def _download_jar(details: VersionDetails, dot_minecraft: Path, sender: ProgressSender) -> Path:
        sender.send(DownloadProgress(DownloadStage.JAR))
        client = details.client
        if client is None:
            raise ParseError(details.id, "version json has no client download")
        jar_path = dot_minecraft / "versions" / details.id / f"{details.id}.jar"
        logger.info(f"下載遊戲主程式 {jar_path.name}")
        return retry(lambda: HTTPUtils.download_file(client.url, jar_path))

    @staticmethod
    def _download_libraries(details: VersionDetails, instance_dir: Path, sender: ProgressSender) -> List[Path]:
        resolver = LibraryResolver(
            instance_dir / "libraries",
            progress=sender,
            event_factory=lambda done, total: DownloadProgress(DownloadStage.LIBRARIES, done, total),
            exclude=legacy_exclusions(details),
        )
        return resolver.download_libraries(details)

    def _download_assets(self, details: VersionDetails, dot_minecraft: Path, sender: ProgressSender) -> int:
        sender.send(DownloadProgress(DownloadStage.ASSETS))
        return AssetsDownloader(self.assets_dir, progress=sender).download_assets(details, dot_minecraft)
