#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
載入器共用工具
實例鎖、設定檔中載入器欄位的更新，以及舊版模組索引的搬移
Loader Shared Helpers
Instance lock, updating the loader fields of config.json and migrating the legacy mod index
"""
# ====== 標準函式庫 ======
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, Optional
import os
# ====== 專案內部模組 ======
from ...models import InstanceConfig, Loader, ModTypeInfo
from ...utils.errors import FilesystemError, InstanceLockedError
from ...utils.logger import get_logger
from ...utils.path_utils import PathUtils

logger = get_logger().bind(component="Loaders")

INSTALL_LOCK_NAME = "install.lock"
INSTALL_LOCK_TEXT = "If you see this, a loader install is still running (or crashed)."


@contextmanager
def install_lock(instance_dir: Path) -> Iterator[Path]:
    """
    安裝期間在實例目錄建立 install.lock，已存在時拒絕安裝
    Hold install.lock in the instance dir for the duration of an install

    Raises:
        InstanceLockedError: 鎖檔已存在
    """
    lock_path = Path(instance_dir) / INSTALL_LOCK_NAME
    try:
        fd = os.open(lock_path, os.O_CREAT | os.O_EXCL | os.O_WRONLY)
    except FileExistsError as e:
        raise InstanceLockedError(instance_dir) from e
    except OSError as e:
        raise FilesystemError(lock_path, e) from e
    with os.fdopen(fd, "w", encoding="utf-8") as f:
        f.write(INSTALL_LOCK_TEXT)

    try:
        yield lock_path
    finally:
        PathUtils.delete_path(lock_path)


def change_instance_type(instance_dir: Path, loader: Loader, info: Optional[ModTypeInfo] = None) -> InstanceConfig:
    """
    更新 config.json 中的載入器類型與資訊
    Update the loader type and info stored in config.json
    """
    config = InstanceConfig.read_from_dir(instance_dir)
    config.mod_type = loader
    config.mod_type_info = info
    config.save_to_dir(instance_dir)
    logger.info(f"實例類型已變更為 {loader.value}")
    return config


def delete_files(directory: Path, names) -> None:
    """刪除目錄中存在的檔案或子目錄"""
    for name in names:
        path = directory / name
        if path.exists() or path.is_symlink():
            logger.debug(f"刪除 {path}")
            PathUtils.delete_path(path)
