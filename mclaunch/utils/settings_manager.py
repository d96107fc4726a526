#!/usr/bin/env python3
"""設定管理器模組
提供統一的啟動器設定管理功能，包含下載併發數、重試次數、除錯設定等
Settings Manager Module
Provides unified launcher settings management including download concurrency, retries, debug settings etc.
"""

import sys
from typing import Any

from .errors import FilesystemError
from .path_utils import PathUtils
from .runtime_paths import RuntimePaths

SETTINGS_FILE_NAME = "launcher_settings.json"

# 整數設定映射（資料驅動）
_INT_SETTINGS = {
    "list_fetch_retries": 5,
    "http_timeout_seconds": 60,
    "default_ram_mb": 2048,
}


def _default_download_concurrency() -> int:
    # macOS 的預設檔案描述符上限較低
    return 32 if sys.platform == "darwin" else 64


def _get_default_settings() -> dict[str, Any]:
    """取得預設設定（根據環境動態計算）"""
    # 打包環境預設關閉除錯日誌，開發環境預設啟用
    is_packaged = bool(getattr(sys, "frozen", False) or hasattr(sys, "_MEIPASS"))

    return {
        "download_concurrency": _default_download_concurrency(),
        **_INT_SETTINGS,
        "debug_settings": {
            "enable_debug_logging": not is_packaged,
        },
    }


class SettingsManager:
    """統一管理所有啟動器設定的管理器類別"""

    # ====== 初始化與檔案操作 ======
    def __init__(self):
        self.settings_path = RuntimePaths.get_launcher_dir() / SETTINGS_FILE_NAME
        self._settings = self._load_settings()

    def _load_settings(self) -> dict[str, Any]:
        if not self.settings_path.exists():
            default_settings = _get_default_settings()
            self._save_settings(default_settings)
            return default_settings

        settings = PathUtils.load_json(self.settings_path)
        if not isinstance(settings, dict):
            return _get_default_settings()

        # 確保所有必要的鍵值都存在（向後相容性）
        for key, default in _get_default_settings().items():
            settings.setdefault(key, default)
        return settings

    def _save_settings(self, settings: dict[str, Any]) -> None:
        try:
            PathUtils.save_json(self.settings_path, settings)
        except FilesystemError as e:
            # 設定寫入失敗不影響本次執行，僅下次啟動時回到預設值
            from .logger import get_logger

            get_logger().bind(component="SettingsManager").error(f"無法寫入 {SETTINGS_FILE_NAME}: {e}")

    # ====== 基本設定操作 ======
    def get(self, key: str, default: Any = None) -> Any:
        """取得指定鍵值的設定資料"""
        return self._settings.get(key, default)

    def set(self, key: str, value: Any, immediate_save: bool = True) -> None:
        """設定指定鍵值的資料（可選擇立即儲存或延遲儲存以支援批次更新）"""
        self._settings[key] = value
        if immediate_save:
            self._save_settings(self._settings)

    def update_batch(self, updates: dict) -> None:
        """批次更新多個設定值並一次性儲存"""
        self._settings.update(updates)
        self._save_settings(self._settings)

    def _get_int_setting(self, key: str, minimum: int = 1) -> int:
        """通用的整數設定取得方法，非法值回到預設值"""
        default = _INT_SETTINGS.get(key, minimum)
        try:
            value = int(self._settings.get(key, default))
        except (TypeError, ValueError):
            return default
        return max(minimum, value)

    # ====== 下載設定 ======
    def get_download_concurrency(self) -> int:
        try:
            value = int(self._settings.get("download_concurrency", _default_download_concurrency()))
        except (TypeError, ValueError):
            return _default_download_concurrency()
        return max(1, value)

    def set_download_concurrency(self, limit: int) -> None:
        self.set("download_concurrency", max(1, int(limit)))

    def get_list_fetch_retries(self) -> int:
        return self._get_int_setting("list_fetch_retries", minimum=0)

    def get_http_timeout(self) -> int:
        return self._get_int_setting("http_timeout_seconds")

    def get_default_ram_mb(self) -> int:
        return self._get_int_setting("default_ram_mb", minimum=256)

    # ====== 除錯設定管理 ======
    def get_debug_settings(self) -> dict[str, Any]:
        """取得所有除錯相關的設定"""
        return self._settings.get("debug_settings", {"enable_debug_logging": False})

    def is_debug_logging_enabled(self) -> bool:
        """檢查是否啟用除錯日誌輸出功能"""
        return bool(self.get_debug_settings().get("enable_debug_logging", False))

    def set_debug_logging(self, enabled: bool) -> None:
        """設定除錯日誌輸出功能的開關"""
        debug_settings = self.get_debug_settings()
        debug_settings["enable_debug_logging"] = enabled
        self.set("debug_settings", debug_settings)


# ====== 全域實例管理 ======
_settings_manager = None


def get_settings_manager() -> SettingsManager:
    """取得全域設定管理器的單例實例"""
    global _settings_manager
    if _settings_manager is None:
        _settings_manager = SettingsManager()
    return _settings_manager


def reset_settings_manager() -> None:
    """丟棄快取的設定實例 (啟動器目錄變更後使用)"""
    global _settings_manager
    _settings_manager = None
