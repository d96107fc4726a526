#!/usr/bin/env python3
"""路徑工具模組
提供 JSON 讀寫、安全解壓縮 (zip / tar.gz) 與檔案操作
Path Utilities Module
Provides JSON I/O, safe archive extraction (zip / tar.gz) and file operations
"""

from __future__ import annotations

import json
import os
import shutil
import tarfile
import zipfile
from collections.abc import Iterable
from pathlib import Path, PurePosixPath
from typing import Any

from .errors import DirEscapeError, FilesystemError, ParseError


class PathUtils:
    """路徑處理工具類別，提供安全路徑操作與帶路徑資訊的錯誤"""

    @staticmethod
    def is_path_within(base_dir: Path, target_path: Path, *, strict: bool = True) -> bool:
        """檢查 target_path 是否位於 base_dir 之下"""
        try:
            base_resolved = base_dir.resolve(strict=True)
            target_resolved = target_path.resolve(strict=strict)
        except (OSError, RuntimeError):
            return False

        try:
            target_resolved.relative_to(base_resolved)
            return True
        except ValueError:
            return False

    # ====== JSON ======
    @staticmethod
    def load_json(path: Path | str, default: Any = None) -> Any:
        """寬鬆讀取 JSON 檔案，失敗時回傳 default (用於設定檔)"""
        p = Path(path)
        if not p.exists():
            return default
        try:
            with open(p, encoding="utf-8") as f:
                return json.load(f)
        except (OSError, ValueError):
            return default

    @staticmethod
    def read_json(path: Path | str) -> Any:
        """
        嚴格讀取 JSON 檔案
        Read a JSON file strictly

        Raises:
            FilesystemError: 檔案無法讀取
            ParseError: 內容不是有效的 JSON
        """
        p = Path(path)
        try:
            text = p.read_text(encoding="utf-8")
        except OSError as e:
            raise FilesystemError(p, e) from e
        return PathUtils.from_json_str(text, source=str(p))

    @staticmethod
    def save_json(path: Path | str, data: Any, indent: int | None = 2) -> Path:
        """
        原子寫入 JSON 檔案 (先寫暫存檔再改名)
        Atomically write a JSON file (temp file then rename)

        Raises:
            FilesystemError: 寫入失敗
        """
        p = Path(path)
        tmp_path = p.with_suffix(p.suffix + ".tmp")
        try:
            p.parent.mkdir(parents=True, exist_ok=True)
            with open(tmp_path, "w", encoding="utf-8") as f:
                json.dump(data, f, indent=indent, ensure_ascii=False)
                f.flush()
                os.fsync(f.fileno())
            os.replace(tmp_path, p)
        except OSError as e:
            raise FilesystemError(p, e) from e
        return p

    @staticmethod
    def from_json_str(json_str: str | bytes, source: str = "<string>") -> Any:
        """從 JSON 字串解析資料，失敗時拋出 ParseError"""
        try:
            return json.loads(json_str)
        except ValueError as e:
            raise ParseError(source, str(e)) from e

    @staticmethod
    def read_json_from_zip(zip_path: Path | str, internal_path: str) -> Any | None:
        """從 Zip 檔案中讀取 JSON，找不到項目時回傳 None"""
        try:
            with zipfile.ZipFile(zip_path, "r") as zf:
                if internal_path not in zf.namelist():
                    return None
                raw = zf.read(internal_path)
        except (OSError, zipfile.BadZipFile) as e:
            raise FilesystemError(zip_path, message=f"cannot read {internal_path}: {e}") from e
        return PathUtils.from_json_str(raw, source=f"{zip_path}!{internal_path}")

    # ====== 文字檔 ======
    @staticmethod
    def read_text_file(path: Path, encoding: str = "utf-8") -> str:
        """讀取文字檔案，失敗時拋出 FilesystemError"""
        try:
            return path.read_text(encoding=encoding)
        except OSError as e:
            raise FilesystemError(path, e) from e

    @staticmethod
    def write_text_file(path: Path, content: str, encoding: str = "utf-8") -> Path:
        """寫入文字檔案，失敗時拋出 FilesystemError"""
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_text(content, encoding=encoding)
        except OSError as e:
            raise FilesystemError(path, e) from e
        return path

    @staticmethod
    def ensure_dir_exists(path: Path) -> Path:
        """確保目錄存在，不存在則創建"""
        try:
            path.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise FilesystemError(path, e) from e
        return path

    # ====== 解壓縮 ======
    @staticmethod
    def _has_common_root(names: Iterable[str]) -> bool:
        """所有項目是否都位於同一個最上層資料夾之下"""
        roots = set()
        for name in names:
            parts = [p for p in PurePosixPath(name.replace("\\", "/")).parts if p not in ("", ".")]
            if len(parts) == 1 and not name.endswith("/"):
                return False
            if parts:
                roots.add(parts[0])
        return len(roots) == 1

    @staticmethod
    def _member_target(dest_dir: Path, name: str, strip_top_level: bool) -> Path | None:
        parts = [p for p in PurePosixPath(name.replace("\\", "/")).parts if p not in ("", ".")]
        if strip_top_level:
            parts = parts[1:]
        if not parts:
            return None
        target = dest_dir.joinpath(*parts)
        if ".." in parts or not PathUtils.is_path_within(dest_dir, target, strict=False):
            raise DirEscapeError(target)
        return target

    @staticmethod
    def safe_extract_zip(
        zip_path: Path | str,
        dest_dir: Path,
        *,
        strip_top_level: bool = False,
        exclude: Iterable[str] = (),
    ) -> list[Path]:
        """
        安全地解壓縮 Zip 檔案，防止 Zip Slip 漏洞
        Safely extract a zip file, rejecting entries that escape dest_dir

        Args:
            zip_path: Zip 檔案路徑
            dest_dir: 目的目錄
            strip_top_level: 所有項目共用同一個最上層資料夾時將其移除
            exclude: 要略過的項目前綴 (例如 "META-INF/")

        Returns:
            list[Path]: 解壓出的檔案
        """
        dest_dir = PathUtils.ensure_dir_exists(dest_dir).resolve()
        excluded = tuple(exclude)
        extracted: list[Path] = []
        try:
            with zipfile.ZipFile(zip_path, "r") as zf:
                strip = strip_top_level and PathUtils._has_common_root(zf.namelist())
                for member in zf.infolist():
                    if excluded and member.filename.startswith(excluded):
                        continue
                    target = PathUtils._member_target(dest_dir, member.filename, strip)
                    if target is None:
                        continue
                    if member.is_dir():
                        target.mkdir(parents=True, exist_ok=True)
                        continue
                    target.parent.mkdir(parents=True, exist_ok=True)
                    with zf.open(member) as src, open(target, "wb") as dst:
                        shutil.copyfileobj(src, dst)
                    # 保留壓縮檔中的可執行權限
                    mode = (member.external_attr >> 16) & 0o777
                    if mode:
                        os.chmod(target, mode)
                    extracted.append(target)
        except zipfile.BadZipFile as e:
            raise FilesystemError(zip_path, message=f"not a valid zip archive: {e}") from e
        except OSError as e:
            raise FilesystemError(getattr(e, "filename", None) or zip_path, e) from e
        return extracted

    @staticmethod
    def safe_extract_tar(tar_path: Path | str, dest_dir: Path, *, strip_top_level: bool = False) -> list[Path]:
        """
        安全地解壓縮 tar.gz 檔案，保留符號連結與權限
        Safely extract a tar.gz file, keeping symlinks and permissions
        """
        dest_dir = PathUtils.ensure_dir_exists(dest_dir).resolve()
        extracted: list[Path] = []
        try:
            with tarfile.open(tar_path, "r:*") as tf:
                names = (m.name + ("/" if m.isdir() else "") for m in tf.getmembers())
                strip = strip_top_level and PathUtils._has_common_root(names)
                for member in tf.getmembers():
                    target = PathUtils._member_target(dest_dir, member.name, strip)
                    if target is None:
                        continue
                    if member.isdir():
                        target.mkdir(parents=True, exist_ok=True)
                    elif member.issym():
                        link_target = (target.parent / member.linkname).resolve()
                        if not PathUtils.is_path_within(dest_dir, link_target, strict=False):
                            raise DirEscapeError(target)
                        target.parent.mkdir(parents=True, exist_ok=True)
                        if target.is_symlink() or target.exists():
                            target.unlink()
                        os.symlink(member.linkname, target)
                    elif member.isfile():
                        target.parent.mkdir(parents=True, exist_ok=True)
                        src = tf.extractfile(member)
                        if src is None:
                            continue
                        with src, open(target, "wb") as dst:
                            shutil.copyfileobj(src, dst)
                        os.chmod(target, member.mode & 0o777 or 0o644)
                        extracted.append(target)
        except tarfile.TarError as e:
            raise FilesystemError(tar_path, message=f"not a valid tar archive: {e}") from e
        except OSError as e:
            raise FilesystemError(getattr(e, "filename", None) or tar_path, e) from e
        return extracted

    # ====== 檔案操作 ======
    @staticmethod
    def delete_path(path: Path | str) -> None:
        """刪除檔案或目錄，不存在時不做任何事"""
        p = Path(path)
        try:
            if p.is_dir() and not p.is_symlink():
                shutil.rmtree(p)
            elif p.exists() or p.is_symlink():
                p.unlink()
        except OSError as e:
            raise FilesystemError(p, e) from e

    @staticmethod
    def move_path(src: Path, dst: Path) -> Path:
        """移動檔案或目錄"""
        try:
            dst.parent.mkdir(parents=True, exist_ok=True)
            shutil.move(str(src), str(dst))
        except OSError as e:
            raise FilesystemError(src, e) from e
        return dst

    @staticmethod
    def copy_file(src: Path, dst: Path) -> Path:
        """複製檔案"""
        try:
            dst.parent.mkdir(parents=True, exist_ok=True)
            shutil.copy2(src, dst)
        except OSError as e:
            raise FilesystemError(src, e) from e
        return dst

    @staticmethod
    def find_executable(name: str) -> str | None:
        """尋找執行檔路徑"""
        return shutil.which(name)
