#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Jarmod 清單模組
管理直接合併進遊戲 jar 的模組 (<instance>/jarmods/ 與 jarmods.json)，供 1.6 之前的 Forge 使用
Jarmod List Module
Keeps the mods merged straight into the game jar (<instance>/jarmods/ and jarmods.json), used by pre-1.6 Forge
"""
# ====== 標準函式庫 ======
from pathlib import Path
from typing import Any, Dict, List, Optional
# ====== 專案內部模組 ======
from ..models import JarMod
from ..utils.errors import ParseError
from ..utils.logger import get_logger
from ..utils.path_utils import PathUtils

logger = get_logger().bind(component="JarMods")

JARMODS_DIR = "jarmods"
JARMODS_FILE = "jarmods.json"


class JarMods:
    """
    實例的 jarmod 清單，順序即合併順序
    Jarmod list of an instance; list order is merge order

    Attributes:
        instance_dir (Path): 實例目錄
        mods (List[JarMod]): jarmod 項目
    """

    def __init__(self, instance_dir: Path, mods: Optional[List[JarMod]] = None):
        self.instance_dir = Path(instance_dir)
        self.mods: List[JarMod] = list(mods or [])

    @property
    def folder(self) -> Path:
        return self.instance_dir / JARMODS_DIR

    @classmethod
    def read(cls, instance_dir: Path) -> "JarMods":
        """
        讀取 jarmods.json；檔案不存在時回傳空清單

        Raises:
            ParseError: 內容格式錯誤
        """
        path = Path(instance_dir) / JARMODS_FILE
        if not path.is_file():
            return cls(instance_dir)
        data = PathUtils.read_json(path)
        if not isinstance(data, dict) or not isinstance(data.get("mods"), list):
            raise ParseError(str(path), "jarmods.json must be an object with a 'mods' array")
        try:
            return cls(instance_dir, [JarMod.from_dict(m) for m in data["mods"]])
        except (KeyError, TypeError) as e:
            raise ParseError(str(path), f"invalid jarmod entry: {e}") from e

    def to_dict(self) -> Dict[str, Any]:
        return {"mods": [m.to_dict() for m in self.mods]}

    def save(self) -> Path:
        return PathUtils.save_json(self.instance_dir / JARMODS_FILE, self.to_dict())

    def insert(self, archive: Path, filename: str) -> Path:
        """
        複製壓縮檔到 jarmods/ 並加入清單 (同名項目會被取代)
        Copy an archive into jarmods/ and add it to the list (an entry with the same name is replaced)
        """
        target = PathUtils.copy_file(Path(archive), self.folder / filename)
        self.mods = [m for m in self.mods if m.filename != filename]
        self.mods.append(JarMod(filename=filename))
        self.save()
        logger.info(f"已加入 jarmod: {filename}")
        return target

    def remove(self, filename: str) -> bool:
        """移除清單項目與檔案；不存在時回傳 False"""
        before = len(self.mods)
        self.mods = [m for m in self.mods if m.filename != filename]
        PathUtils.delete_path(self.folder / filename)
        if len(self.mods) == before:
            return False
        self.save()
        logger.info(f"已移除 jarmod: {filename}")
        return True
