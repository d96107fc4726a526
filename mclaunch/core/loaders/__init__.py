#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
模組載入器安裝套件
依載入器類型分派到 Fabric / Quilt、Forge 或 NeoForge 的安裝流程，安裝期間持有實例鎖
Mod Loader Installer Package
Dispatches to the Fabric / Quilt, Forge or NeoForge install flow and holds the instance lock while installing
"""
# ====== 標準函式庫 ======
from typing import Optional, Union
# ====== 專案內部模組 ======
from ...models import InstanceConfig, InstanceSelection, Loader, ModTypeInfo
from ...utils.errors import InstanceNotFoundError
from ...utils.logger import get_logger
from . import fabric, forge, neoforge
from .common import change_instance_type, install_lock

logger = get_logger().bind(component="Loaders")

__all__ = ["change_instance_type", "install_loader", "install_lock", "uninstall_loader"]


def _require_instance(instance: InstanceSelection) -> None:
    if not (instance.instance_path / InstanceConfig.FILE_NAME).is_file():
        raise InstanceNotFoundError(instance.name)


def install_loader(
    loader: Union[Loader, str],
    instance: InstanceSelection,
    version: Optional[str] = None,
    progress=None,
    java_manager=None,
    java_progress=None,
) -> Optional[ModTypeInfo]:
    """
    安裝載入器到實例或伺服器
    Install a mod loader into an instance or a server

    Args:
        loader: 載入器類型；Vanilla 代表移除目前的載入器
        instance (InstanceSelection): 目標
        version (str | None): 載入器版本，None 表示最新相容版本
        progress: Fabric 系列傳送 GenericProgress，Forge 系列傳送 ForgeInstallProgress
        java_manager: Forge 系列執行安裝器使用的 JavaManager
        java_progress: Forge 系列下載 Java 時接收 GenericProgress 的佇列

    Returns:
        ModTypeInfo | None: 寫入 config.json 的載入器資訊

    Raises:
        InstanceLockedError: 已有安裝正在進行
        NoCompatibleLoaderError: 找不到相容的載入器版本
        SubprocessError: Forge / NeoForge 安裝器失敗 (config.json 不變)
    """
    loader = Loader.parse(loader)
    _require_instance(instance)
    if loader == Loader.VANILLA:
        uninstall_loader(instance)
        return None

    with install_lock(instance.instance_path):
        if loader in (Loader.FABRIC, Loader.QUILT):
            return fabric.install(loader, instance, version, progress)
        if loader == Loader.FORGE:
            return forge.install(instance, version, progress, java_manager, java_progress)
        return neoforge.install(instance, version, progress, java_manager, java_progress)


def uninstall_loader(instance: InstanceSelection) -> None:
    """
    移除目前安裝的載入器並把實例類型改回 Vanilla
    Remove the installed loader and revert the instance to Vanilla
    """
    _require_instance(instance)
    config = InstanceConfig.read_from_dir(instance.instance_path)
    with install_lock(instance.instance_path):
        if config.mod_type in (Loader.FABRIC, Loader.QUILT):
            fabric.uninstall(instance)
        elif config.mod_type == Loader.FORGE:
            forge.uninstall(instance)
        elif config.mod_type == Loader.NEOFORGE:
            neoforge.uninstall(instance)
        else:
            logger.info(f"{instance.name} 沒有安裝載入器")
            return
        change_instance_type(instance.instance_path, Loader.VANILLA, None)
