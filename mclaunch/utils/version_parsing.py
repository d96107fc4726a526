"""版本字串解析工具。

只負責把載入器版本字串轉成可比較的數字元組，
例如 Fabric 載入器 0.12.5 的比較與 Forge 主要版本號的判斷。
"""

from __future__ import annotations

import re

from .logger import get_logger

logger = get_logger().bind(component="VersionParsing")

__all__ = ["VersionParsing"]


class VersionParsing:
    """版本字串解析與比較。"""

    @staticmethod
    def parse_version(version_str: str | None) -> tuple[int, ...] | None:
        """解析版本字串為數字元組，例如 v0.12.5+build.1 -> (0, 12, 5)。"""
        if not isinstance(version_str, str) or not version_str.strip():
            logger.debug(f"無效的版本字串，version_str={version_str!r}")
            return None
        clean = version_str.strip().lstrip("vV")
        version_part = clean.split("-")[0].split("+")[0]
        parsed = tuple(int(x) for x in version_part.split(".") if x.isdigit())
        if not parsed:
            logger.debug(f"版本字串解析失敗，version_str={version_str!r}")
            return None
        return parsed

    @staticmethod
    def compare(left: str, right: str) -> int:
        """比較兩個版本字串，回傳 -1 / 0 / 1；無法解析的一方視為最小"""
        a = VersionParsing.parse_version(left) or ()
        b = VersionParsing.parse_version(right) or ()
        width = max(len(a), len(b))
        a = a + (0,) * (width - len(a))
        b = b + (0,) * (width - len(b))
        return (a > b) - (a < b)

    @staticmethod
    def major(version_str: str) -> int | None:
        """取得第一個數字段，例如 Forge 版本 14.23.5.2860 -> 14"""
        match = re.match(r"\s*(\d+)", version_str or "")
        return int(match.group(1)) if match else None
