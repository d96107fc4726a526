#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
伺服器建立模組
下載伺服器主程式並建立伺服器目錄 (details.json、eula.txt、config.json、mods/)
Server Creator Module
Downloads the server jar and lays out a server directory
"""
# ====== 標準函式庫 ======
from pathlib import Path
from typing import List, Optional
# ====== 專案內部模組 ======
from ..models import DownloadProgress, DownloadStage, InstanceConfig, InstanceSelection
from ..utils.errors import FilesystemError, InstanceNotFoundError, NoServerDownloadError
from ..utils.http_utils import HTTPUtils
from ..utils.logger import get_logger
from ..utils.path_utils import PathUtils
from ..utils.runtime_paths import RuntimePaths
from .instance_manager import fetch_version_details, prepare_new_dir, resolve_child_dir
from .manifest import ManifestResolver, get_manifest_resolver
from .orchestrator import ProgressSender, retry

logger = get_logger().bind(component="ServerCreator")

SERVER_JAR_NAME = "server.jar"
CLASSIC_SERVER_JAR_NAME = "minecraft-server.jar"
SERVER_RAM_MB = 2048


class ServerCreator:
    """
    建立與刪除伺服器
    Creates and deletes servers

    Args:
        servers_dir (Path | None): 伺服器上層目錄 (預設為啟動器目錄下的 servers/)
        resolver (ManifestResolver | None): 版本清單解析器
    """

    def __init__(self, servers_dir: Optional[Path] = None, resolver: Optional[ManifestResolver] = None):
        self.servers_dir = Path(servers_dir) if servers_dir is not None else RuntimePaths.get_servers_dir()
        self.resolver = resolver or get_manifest_resolver()

    def selection(self, name: str) -> InstanceSelection:
        return InstanceSelection(name, is_server=True, root=self.servers_dir)

    def create_server(self, name: str, version_id: str, progress=None) -> str:
        """
        建立新的伺服器
        Create a new server

        Classic (c0.*) 的伺服器是 zip 壓縮檔，解壓後把 minecraft-server.jar 改名為 server.jar。

        Raises:
            InstanceAlreadyExistsError: 伺服器已存在
            VersionNotFoundError: 清單中沒有此版本
            NoServerDownloadError: 此版本沒有伺服器下載
        """
        sender = ProgressSender.wrap(progress)
        logger.info(f"建立伺服器 {name} ({version_id})")
        server_dir = prepare_new_dir(self.servers_dir, name)

        details = fetch_version_details(self.resolver, version_id, sender)
        server = details.server
        if server is None:
            raise NoServerDownloadError(version_id)

        sender.send(DownloadProgress(DownloadStage.JAR))
        server_jar = server_dir / SERVER_JAR_NAME
        is_classic = version_id.startswith("c0.")
        if is_classic:
            self._install_classic(server.url, server_dir)
        else:
            retry(lambda: HTTPUtils.download_file(server.url, server_jar))

        details.save_to_dir(server_dir)
        PathUtils.write_text_file(server_dir / "eula.txt", "eula=true\n")
        InstanceConfig(
            ram_in_mb=SERVER_RAM_MB,
            is_server=True,
            is_classic_server=is_classic,
            is_special_lwjgl3=details.is_special_lwjgl3(),
        ).save_to_dir(server_dir)
        PathUtils.ensure_dir_exists(server_dir / "mods")

        logger.info(f"伺服器 {name} 建立完成")
        return name

    @staticmethod
    def _install_classic(url: str, server_dir: Path) -> Path:
        archive = server_dir / "server.zip"
        retry(lambda: HTTPUtils.download_file(url, archive))
        try:
            PathUtils.safe_extract_zip(archive, server_dir, strip_top_level=True)
        finally:
            PathUtils.delete_path(archive)
        extracted = server_dir / CLASSIC_SERVER_JAR_NAME
        if not extracted.is_file():
            raise FilesystemError(extracted, message="classic server archive has no minecraft-server.jar")
        return PathUtils.move_path(extracted, server_dir / SERVER_JAR_NAME)

    def list_servers(self) -> List[str]:
        if not self.servers_dir.is_dir():
            return []
        return sorted(p.name for p in self.servers_dir.iterdir() if (p / InstanceConfig.FILE_NAME).is_file())

    def delete_server(self, name: str) -> None:
        server_dir = resolve_child_dir(self.servers_dir, name)
        if not server_dir.is_dir():
            raise InstanceNotFoundError(name)
        PathUtils.delete_path(server_dir)
        logger.info(f"已刪除伺服器 {name}")
