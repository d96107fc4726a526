#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
模組索引模組
維護實例已安裝模組的索引 (mod_index.json)，包含模組間的相依圖與磁碟檔案的同步
Mod Index Module
Maintains the installed-mod index (mod_index.json) of an instance, including the dependency
graph between mods and its reconciliation with the files on disk
"""
# ====== 標準函式庫 ======
from pathlib import Path
from typing import Any, Dict, List, Optional
import json
import zipfile
import toml
# ====== 專案內部模組 ======
from ..models import InstanceSelection, ModConfig, ModFile
from ..utils.errors import FilesystemError, ParseError
from ..utils.logger import get_logger
from ..utils.path_utils import PathUtils

logger = get_logger().bind(component="ModIndex")

INDEX_FILE_NAME = "mod_index.json"
LEGACY_INDEX_FILE_NAME = "index.json"
DISABLED_SUFFIX = ".disabled"


def migrate_legacy_index(dot_minecraft: Path) -> bool:
    """
    將舊位置 mods/index.json 搬到 mod_index.json (先寫入新檔再刪除舊檔)
    Move the legacy mods/index.json to mod_index.json (write the new file, then delete the old one)

    Returns:
        bool: 是否進行了搬移
    """
    old_index = dot_minecraft / "mods" / LEGACY_INDEX_FILE_NAME
    if not old_index.is_file():
        return False
    new_index = dot_minecraft / INDEX_FILE_NAME
    content = PathUtils.read_text_file(old_index)
    PathUtils.from_json_str(content, source=str(old_index))
    PathUtils.write_text_file(new_index, content)
    PathUtils.delete_path(old_index)
    logger.info(f"已搬移模組索引: {old_index} -> {new_index}")
    return True


class ModIndex:
    """
    實例的模組索引；dependencies / dependents 以模組 ID 表示的有向圖
    Installed-mod index of an instance; dependencies / dependents form an id-based directed graph

    Attributes:
        instance (InstanceSelection): 所屬實例
        mods (Dict[str, ModConfig]): 模組 ID -> 模組資訊
        is_server (bool): 是否為伺服器
    """

    def __init__(self, instance: InstanceSelection, mods: Optional[Dict[str, ModConfig]] = None, is_server: Optional[bool] = None):
        self.instance = instance
        self.mods: Dict[str, ModConfig] = mods or {}
        self.is_server = instance.is_server if is_server is None else is_server

    # ====== 路徑 ======
    @property
    def index_path(self) -> Path:
        return self.instance.dot_minecraft_path / INDEX_FILE_NAME

    @property
    def mods_dir(self) -> Path:
        return self.instance.mods_dir

    # ====== 序列化 ======
    @classmethod
    def from_dict(cls, instance: InstanceSelection, data: Any, source: str = INDEX_FILE_NAME) -> "ModIndex":
        if not isinstance(data, dict) or not isinstance(data.get("mods", {}), dict):
            raise ParseError(source, "mod index must be an object with a 'mods' object")
        try:
            mods = {mod_id: ModConfig.from_dict(cfg) for mod_id, cfg in data.get("mods", {}).items()}
        except (KeyError, TypeError, AttributeError) as e:
            raise ParseError(source, f"bad mod entry: {e}") from e
        is_server = data.get("is_server")
        return cls(instance, mods, is_server if isinstance(is_server, bool) else None)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "mods": {mod_id: cfg.to_dict() for mod_id, cfg in self.mods.items()},
            "is_server": self.is_server,
        }

    # ====== 載入與儲存 ======
    @classmethod
    def load(cls, instance: InstanceSelection) -> "ModIndex":
        """
        載入實例的模組索引
        Load the mod index of an instance

        依序嘗試：搬移舊版 mods/index.json、讀取 mod_index.json、建立新的空索引。
        載入後會執行一次 fix。

        Raises:
            ParseError: 索引內容無法解析
            FilesystemError: 讀寫失敗
        """
        dot_minecraft = instance.dot_minecraft_path
        PathUtils.ensure_dir_exists(instance.mods_dir)
        migrate_legacy_index(dot_minecraft)

        index_path = dot_minecraft / INDEX_FILE_NAME
        if index_path.is_file():
            index = cls.from_dict(instance, PathUtils.read_json(index_path), source=str(index_path))
        else:
            logger.info(f"建立新的模組索引: {index_path}")
            index = cls(instance)
            PathUtils.save_json(index_path, index.to_dict())

        index.fix()
        return index

    def save(self) -> Path:
        """執行 fix 後寫回 mod_index.json"""
        self.fix()
        return PathUtils.save_json(self.index_path, self.to_dict())

    # ====== 同步 ======
    def _file_exists(self, filename: str) -> bool:
        return (self.mods_dir / filename).is_file() or (self.mods_dir / f"{filename}{DISABLED_SUFFIX}").is_file()

    def fix(self) -> List[str]:
        """
        讓索引與磁碟同步並維持相依圖一致
        Reconcile the index with the disk and keep the dependency graph consistent

        - 移除磁碟上不存在的檔案 (<file> 或 <file>.disabled 皆算存在)
        - 移除沒有任何檔案的模組
        - 從其他模組的 dependencies / dependents 移除已不存在的 ID

        Returns:
            List[str]: 被移除的模組 ID
        """
        if not self.mods_dir.exists():
            PathUtils.ensure_dir_exists(self.mods_dir)

        removed: List[str] = []
        for mod_id, cfg in list(self.mods.items()):
            cfg.files = [f for f in cfg.files if self._file_exists(f.filename)]
            if not cfg.files:
                logger.info(f"清除已刪除的模組: {cfg.name or mod_id}")
                removed.append(mod_id)
                del self.mods[mod_id]

        for cfg in self.mods.values():
            cfg.dependencies = {d for d in cfg.dependencies if d in self.mods}
            cfg.dependents = {d for d in cfg.dependents if d in self.mods}
        return removed

    # ====== 模組操作 ======
    def remove_mod(self, mod_id: str) -> bool:
        """
        刪除模組檔案並從索引與其他模組的相依集合中移除
        Delete a mod's files and remove it from the index and from every other mod's sets
        """
        cfg = self.mods.pop(mod_id, None)
        if cfg is None:
            logger.warning(f"模組不存在於索引: {mod_id}")
            return False
        for file in cfg.files:
            for name in (file.filename, f"{file.filename}{DISABLED_SUFFIX}"):
                PathUtils.delete_path(self.mods_dir / name)
        for other in self.mods.values():
            other.dependencies.discard(mod_id)
            other.dependents.discard(mod_id)
        logger.info(f"已移除模組: {cfg.name or mod_id}")
        return True

    def toggle_mod(self, mod_id: str) -> bool:
        """
        切換模組啟用狀態 (加上或移除 .disabled 後綴)
        Toggle a mod by adding or removing the .disabled suffix

        Returns:
            bool: 切換後是否為啟用
        """
        cfg = self.mods.get(mod_id)
        if cfg is None:
            raise KeyError(mod_id)
        enable = not cfg.enabled
        for file in cfg.files:
            enabled_path = self.mods_dir / file.filename
            disabled_path = self.mods_dir / f"{file.filename}{DISABLED_SUFFIX}"
            src, dst = (disabled_path, enabled_path) if enable else (enabled_path, disabled_path)
            if src.exists():
                PathUtils.move_path(src, dst)
        cfg.enabled = enable
        logger.info(f"模組 {cfg.name or mod_id} {'已啟用' if enable else '已停用'}")
        return enable

    def add_local_mod(self, jar_path: Path) -> str:
        """
        複製本地 jar 到 mods 目錄並記錄為手動安裝
        Copy a local jar into mods/ and record it as manually installed

        Returns:
            str: 模組 ID
        """
        jar_path = Path(jar_path)
        if not jar_path.is_file():
            raise FilesystemError(jar_path, message="mod file does not exist")
        meta = read_mod_metadata(jar_path)
        mod_id = meta.get("id") or jar_path.stem
        PathUtils.copy_file(jar_path, self.mods_dir / jar_path.name)

        self.mods[mod_id] = ModConfig(
            name=meta.get("name") or jar_path.stem,
            manually_installed=True,
            installed_version=meta.get("version") or "",
            enabled=True,
            description=meta.get("description") or "",
            project_source="local",
            project_id=mod_id,
            files=[ModFile(url="", filename=jar_path.name, primary=True)],
        )
        logger.info(f"已加入本地模組: {mod_id} ({jar_path.name})")
        return mod_id


# ====== 模組中繼資料 ======
def read_mod_metadata(jar_path: Path) -> Dict[str, str]:
    """
    從模組 jar 讀取 id / name / version / description
    Read id / name / version / description from a mod jar

    依序檢查 fabric.mod.json、quilt.mod.json、META-INF/mods.toml、META-INF/neoforge.mods.toml、mcmod.info；
    都沒有或內容無法解析時回傳空字典。
    """
    extractors = (
        ("fabric.mod.json", _fabric_metadata),
        ("quilt.mod.json", _quilt_metadata),
        ("META-INF/mods.toml", _forge_metadata),
        ("META-INF/neoforge.mods.toml", _forge_metadata),
        ("mcmod.info", _legacy_forge_metadata),
    )
    try:
        with zipfile.ZipFile(jar_path, "r") as jar:
            names = set(jar.namelist())
            for entry, extractor in extractors:
                if entry not in names:
                    continue
                text = jar.read(entry).decode("utf-8", errors="ignore")
                try:
                    meta = extractor(text)
                except (ValueError, KeyError, TypeError, IndexError, toml.TomlDecodeError) as e:
                    logger.warning(f"無法解析 {jar_path.name}!{entry}: {e}")
                    continue
                if meta.get("version", "").startswith("${"):
                    meta["version"] = _manifest_version(jar) or ""
                return meta
    except zipfile.BadZipFile as e:
        raise FilesystemError(jar_path, message=f"not a valid jar: {e}") from e
    except OSError as e:
        raise FilesystemError(jar_path, e) from e
    return {}


def _pick(data: dict, **keys: str) -> Dict[str, str]:
    return {field: str(data[key]) for field, key in keys.items() if data.get(key) is not None}


def _fabric_metadata(text: str) -> Dict[str, str]:
    return _pick(json.loads(text), id="id", name="name", version="version", description="description")


def _quilt_metadata(text: str) -> Dict[str, str]:
    loader = json.loads(text)["quilt_loader"]
    meta = _pick(loader, id="id", version="version")
    meta.update(_pick(loader.get("metadata") or {}, name="name", description="description"))
    return meta


def _forge_metadata(text: str) -> Dict[str, str]:
    mod = toml.loads(text)["mods"][0]
    return _pick(mod, id="modId", name="displayName", version="version", description="description")


def _legacy_forge_metadata(text: str) -> Dict[str, str]:
    info = json.loads(text)
    if isinstance(info, dict):
        info = info.get("modList") or info.get("modlist") or []
    return _pick(info[0], id="modid", name="name", version="version", description="description")


def _manifest_version(jar: zipfile.ZipFile) -> Optional[str]:
    if "META-INF/MANIFEST.MF" not in jar.namelist():
        return None
    for line in jar.read("META-INF/MANIFEST.MF").decode(errors="ignore").splitlines():
        if line.startswith("Implementation-Version:"):
            version = line.split(":", 1)[1].strip()
            if version and version != "${projectversion}":
                return version
    return None
