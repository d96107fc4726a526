#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
NeoForge 載入器安裝模組
NeoForge Loader Installer

與 Forge 共用安裝器啟動類別與函式庫下載流程，只在版本篩選、安裝器網址與清理步驟上不同。
"""
# ====== 標準函式庫 ======
from pathlib import Path
from typing import List, Optional
import re
# ====== 專案內部模組 ======
from ...models import ForgeInstallProgress, ForgeInstallStage, InstanceSelection, Loader, ModTypeInfo, VersionDetails
from ...utils.constants import V_1_20_2
from ...utils.errors import NeoForgeOutdatedMinecraftError, NoCompatibleLoaderError, ParseError
from ...utils.http_utils import HTTPUtils
from ...utils.logger import get_logger
from ...utils.path_utils import PathUtils
from ..java_manager import JavaManager, get_java_manager
from ..orchestrator import ProgressSender, retry
from .common import change_instance_type, delete_files
from .forge import (
    BOOTSTRAP_NAME,
    PROFILE_FILES,
    bootstrap_java_version,
    download_installer_libraries,
    read_install_json,
    run_bootstrap,
    write_launcher_profiles,
)

logger = get_logger().bind(component="NeoForge")

VERSIONS_URL = "https://maven.neoforged.net/api/maven/versions/releases/net/neoforged/neoforge"
INSTALLER_URL = "https://maven.neoforged.net/releases/net/neoforged/neoforge/{v}/neoforge-{v}-installer.jar"
INSTALLER_NAME = "installer.jar"
SNAPSHOT_PATTERN = re.compile(r"^\d{2}w\d{2}[a-z]$")


def version_prefix(game: str) -> str:
    """
    NeoForge 版本號的開頭
    Leading part of NeoForge version numbers for a game version

    1.20.2 -> "20.2."，1.21 -> "21.0."，快照 24w14a -> "0.24w14a."
    """
    if SNAPSHOT_PATTERN.match(game):
        return f"0.{game}."
    prefix = game[2:] if game.startswith("1.") else game
    if "." not in prefix:
        prefix += ".0"
    return f"{prefix}."


def compatible_versions(all_versions: List[str], details: VersionDetails) -> List[str]:
    """
    篩出可用於此版本的 NeoForge 版本 (維持上游順序，最後一個為最新)

    Raises:
        NeoForgeOutdatedMinecraftError: 1.20.2 之前的版本
    """
    if not details.is_after_or_eq(V_1_20_2):
        raise NeoForgeOutdatedMinecraftError(details.get_id())
    prefix = version_prefix(details.get_id())
    return [v for v in all_versions if v.startswith(prefix)]


def fetch_versions(details: VersionDetails) -> List[str]:
    data = retry(lambda: HTTPUtils.get_json(VERSIONS_URL))
    versions = data.get("versions") if isinstance(data, dict) else None
    if not isinstance(versions, list):
        raise ParseError(VERSIONS_URL, "expected an object with a 'versions' array")
    return compatible_versions([str(v) for v in versions], details)


def install(
    instance: InstanceSelection,
    version: Optional[str] = None,
    progress=None,
    java_manager: Optional[JavaManager] = None,
    java_progress=None,
) -> ModTypeInfo:
    """
    安裝 NeoForge 到客戶端實例或伺服器
    Install NeoForge into a client instance or a server

    客戶端在 <instance>/forge 執行安裝器；伺服器在伺服器目錄執行，完成後刪除 forge 目錄。
    """
    sender = ProgressSender.wrap(progress)
    sender.send(ForgeInstallProgress(ForgeInstallStage.START))
    instance_dir = instance.instance_path
    details = VersionDetails.load(instance_dir)
    logger.info(f"開始安裝 NeoForge 到 {instance.name}")

    if version is None:
        sender.send(ForgeInstallProgress(ForgeInstallStage.DOWNLOADING_JSON))
        versions = fetch_versions(details)
        if not versions:
            raise NoCompatibleLoaderError(Loader.NEOFORGE.value, details.get_id())
        version = versions[-1]
    logger.info(f"NeoForge 版本: {version}")

    forge_dir = PathUtils.ensure_dir_exists(instance_dir / "forge")
    PathUtils.ensure_dir_exists(instance.mods_dir)
    sender.send(ForgeInstallProgress(ForgeInstallStage.DOWNLOADING_INSTALLER))
    installer = HTTPUtils.download_file(INSTALLER_URL.format(v=version), forge_dir / INSTALLER_NAME)

    if not instance.is_server:
        write_launcher_profiles(forge_dir)
    java = (java_manager or get_java_manager()).ensure_installed(
        bootstrap_java_version(details, minimum=21), progress=java_progress
    )
    sender.send(ForgeInstallProgress(ForgeInstallStage.RUNNING_INSTALLER))
    run_bootstrap(java, installer, instance_dir if instance.is_server else forge_dir, instance.is_server)

    if instance.is_server:
        _cleanup_server(instance_dir)
    else:
        forge_json = read_install_json(installer, details.get_id())
        PathUtils.save_json(forge_dir / VersionDetails.FILE_NAME, forge_json)
        download_installer_libraries(forge_dir, forge_json, sender)
        delete_files(forge_dir, PROFILE_FILES + (BOOTSTRAP_NAME,))

    info = ModTypeInfo(version=version)
    change_instance_type(instance_dir, Loader.NEOFORGE, info)
    sender.send(ForgeInstallProgress(ForgeInstallStage.DONE))
    logger.info("NeoForge 安裝完成")
    return info


def _cleanup_server(server_dir: Path) -> None:
    delete_files(server_dir, ["forge", f"{INSTALLER_NAME}.log", "run.bat", "run.sh", "user_jvm_args.txt"])


def uninstall(instance: InstanceSelection) -> None:
    instance_dir = instance.instance_path
    if instance.is_server:
        delete_files(instance_dir, ["libraries", "forge", "run.bat", "run.sh", "user_jvm_args.txt"])
    else:
        delete_files(instance_dir, ["forge"])
    logger.info(f"已從 {instance.name} 移除 NeoForge")
