#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
運行時路徑管理工具
提供啟動器資料目錄 (實例、伺服器、Java、資源、日誌) 的路徑配置與管理功能
Runtime Path Management Utilities
Provides path configuration for the launcher data directory (instances, servers, Java, assets, logs)
"""
# ====== 標準函式庫 ======
from pathlib import Path
import os
import sys
# ====== 專案內部模組 ======
from ..version_info import APP_NAME

# 可用環境變數覆寫啟動器資料目錄
LAUNCHER_DIR_ENV = "MCLAUNCH_DIR"


class RuntimePaths:
    """
    啟動器資料目錄的路徑解析
    Path resolution for the launcher data directory
    """

    # ====== 系統路徑檢測 ======
    @staticmethod
    def _get_platform_data_dir() -> Path:
        """
        取得作業系統慣用的使用者資料目錄
        Get the OS-conventional user data directory

        Returns:
            Path: 使用者資料目錄路徑
        """
        if os.name == "nt":
            base = os.environ.get("APPDATA")
            if not base:
                # Fallback: %USERPROFILE%\AppData\Roaming
                base = str(Path.home() / "AppData" / "Roaming")
            return Path(base)
        if sys.platform == "darwin":
            return Path.home() / "Library" / "Application Support"
        xdg = os.environ.get("XDG_DATA_HOME")
        return Path(xdg) if xdg else Path.home() / ".local" / "share"

    # ====== 應用程式專用路徑 ======
    @staticmethod
    def get_launcher_dir() -> Path:
        """
        取得啟動器資料目錄，優先使用 MCLAUNCH_DIR 環境變數
        Get the launcher data directory, honouring the MCLAUNCH_DIR environment variable

        Returns:
            Path: 啟動器資料目錄路徑
        """
        override = os.environ.get(LAUNCHER_DIR_ENV, "").strip()
        if override:
            return Path(override).expanduser()
        return RuntimePaths._get_platform_data_dir() / APP_NAME

    @staticmethod
    def get_instances_dir() -> Path:
        return RuntimePaths.get_launcher_dir() / "instances"

    @staticmethod
    def get_servers_dir() -> Path:
        return RuntimePaths.get_launcher_dir() / "servers"

    @staticmethod
    def get_java_installs_dir() -> Path:
        return RuntimePaths.get_launcher_dir() / "java_installs"

    @staticmethod
    def get_assets_dir() -> Path:
        return RuntimePaths.get_launcher_dir() / "assets"

    @staticmethod
    def get_logs_dir() -> Path:
        return RuntimePaths.get_launcher_dir() / "logs"

    # ====== 目錄操作工具 ======
    @staticmethod
    def ensure_dir(p: Path) -> Path:
        """
        確保指定路徑的目錄存在，如果不存在則建立
        Ensure the directory at specified path exists, create if it doesn't exist

        Args:
            p (Path): 要確保存在的目錄路徑

        Returns:
            Path: 已確保存在的目錄路徑
        """
        p.mkdir(parents=True, exist_ok=True)
        return p


# ====== 模組級別函數別名 ======
get_launcher_dir = RuntimePaths.get_launcher_dir
ensure_dir = RuntimePaths.ensure_dir
