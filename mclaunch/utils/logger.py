#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
日誌工具模組 (基於 loguru)
提供統一的日誌記錄功能
Logging Utilities Module (Based on loguru)
Provides unified logging functionality using loguru
"""

import sys
import traceback
from datetime import datetime
from pathlib import Path
from typing import Optional

from loguru import logger

from .constants import MB
from .runtime_paths import RuntimePaths


class LoggerConfig:
    """Loguru 日誌配置管理"""

    _initialized = False
    _log_dir: Optional[Path] = None
    _max_folder_size_mb = 10
    _target_cleanup_size_mb = 8  # 當超過限制時，刪除相當於 8MB 的舊日誌
    _settings_manager = None  # 快取 settings manager
    _resolving_settings = False

    @classmethod
    def initialize(cls) -> None:
        """
        初始化 loguru 日誌系統
        Initialize loguru logging system
        """
        if cls._initialized:
            return

        # 移除預設的 stderr handler
        logger.remove()
        logger.configure(extra={"component": ""})

        # 添加控制台 handler（根據設定決定是否顯示）
        logger.add(
            sys.stderr,
            format="<level>{level: <8}</level> | <cyan>{extra[component]: <15}</cyan> | <level>{message}</level>",
            level="DEBUG",
            colorize=True,
            filter=cls._console_filter,
        )

        try:
            cls._log_dir = RuntimePaths.ensure_dir(RuntimePaths.get_logs_dir())

            # 清理超過大小限制的舊日誌
            cls._cleanup_old_logs_if_needed()

            # 建立日誌檔案名稱（格式：年-月-日-時-分.log）
            log_file_path = cls._log_dir / datetime.now().strftime("%Y-%m-%d-%H-%M.log")

            logger.add(
                log_file_path,
                format="{time:YYYY-MM-DD HH:mm:ss} | {level: <8} | {extra[component]: <15} | {message}",
                level="DEBUG",
                encoding="utf-8",
                enqueue=True,  # 執行緒安全
            )
            logger.bind(component="Logger").debug(f"日誌檔案：{log_file_path}")
        except OSError as e:
            # 日誌目錄無法建立時只保留控制台輸出
            logger.bind(component="Logger").warning(f"無法建立日誌檔案，僅輸出到控制台: {e}")

        cls._initialized = True

    @classmethod
    def _get_folder_size_mb(cls, folder: Path) -> float:
        """
        計算資料夾中日誌檔案的大小（MB）
        Calculate size of log files in a folder in MB
        """
        total_size = 0
        for file in folder.glob("*.log"):
            if file.is_file():
                total_size += file.stat().st_size
        return total_size / MB

    @classmethod
    def _cleanup_old_logs_if_needed(cls) -> None:
        """
        檢查日誌資料夾大小，如果超過 10MB 則刪除相當於 8MB 的舊日誌
        Check log folder size, delete logs worth 8MB if exceeds 10MB
        """
        if cls._log_dir is None:
            return

        if cls._get_folder_size_mb(cls._log_dir) <= cls._max_folder_size_mb:
            return

        # 取得所有日誌檔案並按修改時間排序（最舊的在前）
        log_files = sorted(cls._log_dir.glob("*.log"), key=lambda f: f.stat().st_mtime)

        deleted_size_mb = 0.0
        files_deleted = 0
        for log_file in log_files:
            if deleted_size_mb >= cls._target_cleanup_size_mb:
                break
            try:
                file_size_mb = log_file.stat().st_size / MB
                log_file.unlink()
            except OSError:
                continue
            deleted_size_mb += file_size_mb
            files_deleted += 1

        if files_deleted > 0:
            logger.bind(component="Logger").info(
                f"日誌資料夾大小超過 {cls._max_folder_size_mb}MB，已刪除 {files_deleted} 個舊日誌檔案（釋放 {deleted_size_mb:.2f}MB）"
            )

    @classmethod
    def _console_filter(cls, record) -> bool:
        """
        控制台輸出過濾器
        Console output filter based on settings
        """
        level = record["level"].name

        # ERROR 和 WARNING 一律輸出
        if level in ("ERROR", "WARNING", "CRITICAL"):
            return True

        # 設定尚在載入中（載入過程本身也會寫日誌）
        if cls._resolving_settings:
            return level == "INFO"

        # DEBUG 和 INFO 根據設定決定
        if cls._settings_manager is None:
            from .settings_manager import get_settings_manager

            cls._resolving_settings = True
            try:
                cls._settings_manager = get_settings_manager()
            finally:
                cls._resolving_settings = False
        return cls._settings_manager.is_debug_logging_enabled()

    @classmethod
    def get_logger(cls):
        """
        取得 logger 實例
        Get logger instance
        """
        if not cls._initialized:
            cls.initialize()
        return logger


# 初始化並取得 logger
_logger = LoggerConfig.get_logger()


def get_logger():
    """取得全域 logger 實例"""
    return _logger


# 便捷函數，直接使用 loguru（不需要事先 bind component 時的簡化版本）
def info(message: str, component: str = ""):
    """記錄 INFO 級別訊息"""
    _logger.bind(component=component or "").info(message)


def warning(message: str, component: str = ""):
    """記錄 WARNING 級別訊息"""
    _logger.bind(component=component or "").warning(message)


def error(message: str, component: str = ""):
    """記錄 ERROR 級別訊息"""
    _logger.bind(component=component or "").error(message)


def debug(message: str, component: str = ""):
    """記錄 DEBUG 級別訊息"""
    _logger.bind(component=component or "").debug(message)


def error_with_exception(message: str, component: str = "", exc: Optional[BaseException] = None):
    """記錄錯誤並附上 traceback"""
    if exc is not None:
        trace = "".join(traceback.format_exception(type(exc), exc, exc.__traceback__))
    else:
        trace = traceback.format_exc()
    error(f"{message}\n{trace}", component)
