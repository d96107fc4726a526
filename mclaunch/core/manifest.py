#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
版本清單解析模組
同時取得精選 (較舊) 與最新版本清單，拼接成單一的版本目錄，並以單次飛行快取保存於程序生命週期
Manifest Resolver Module
Fetches the curated and the up-to-date version catalogs concurrently, splices them into one catalog
and keeps it in a single-flight cache for the process lifetime
"""
# ====== 標準函式庫 ======
from concurrent.futures import ThreadPoolExecutor
from typing import Any, Callable, Dict, List, Optional
import threading
# ====== 專案內部模組 ======
from ..models import Latest, ListEntry, ListEntryKind, Manifest, ManifestVersion, parse_time
from ..utils.constants import (
    ARM32_MANIFEST_URL,
    ARM64_MANIFEST_URL,
    CURATED_MANIFEST_URL,
    LAST_CURATED_VERSION,
    OFFICIAL_MANIFEST_URL,
    V_MULTIPLAYER_ALPHA,
)
from ..utils.errors import ParseError
from ..utils.http_utils import HTTPUtils
from ..utils.logger import get_logger
from ..utils.platform_info import PlatformInfo

logger = get_logger().bind(component="Manifest")

# (作業系統, 架構) -> 最新版本清單；未列出的平台使用官方清單
UP_TO_DATE_MANIFESTS: Dict[tuple, str] = {
    ("linux", "aarch64"): ARM64_MANIFEST_URL,
    ("linux", "arm"): ARM32_MANIFEST_URL,
}


def up_to_date_manifest_url(platform: PlatformInfo) -> str:
    """依平台選擇最新版本清單的網址"""
    return UP_TO_DATE_MANIFESTS.get((platform.os, platform.arch), OFFICIAL_MANIFEST_URL)


# ====== 拼接 ======
def _index_of(versions: List[ManifestVersion], version_id: str) -> Optional[int]:
    for i, version in enumerate(versions):
        if version.id == version_id:
            return i
    return None


def splice_versions(
    curated: List[ManifestVersion],
    up_to_date: List[ManifestVersion],
    boundary: str = LAST_CURATED_VERSION,
) -> List[ManifestVersion]:
    """
    拼接兩份版本清單：最新清單中位於界線版本之前的項目，接上精選清單自界線版本起的項目
    Splice: up-to-date entries strictly before the boundary, then curated entries from the boundary on

    任一清單缺少界線版本時，該清單的貢獻視為空。重複的 ID 只保留第一個。

    Args:
        curated: 精選清單（新到舊）
        up_to_date: 最新清單（新到舊）
        boundary: 精選清單最後同步到的版本 ID

    Returns:
        List[ManifestVersion]: 拼接後的版本列表
    """
    newer_pos = _index_of(up_to_date, boundary)
    curated_pos = _index_of(curated, boundary)
    if newer_pos is None:
        logger.warning(f"最新版本清單中找不到 {boundary}，略過較新的版本")
    if curated_pos is None:
        logger.warning(f"精選版本清單中找不到 {boundary}，略過舊版本")

    newer = up_to_date[:newer_pos] if newer_pos is not None else []
    older = curated[curated_pos:] if curated_pos is not None else []

    seen = set()
    merged: List[ManifestVersion] = []
    for version in newer + older:
        if version.id in seen:
            continue
        seen.add(version.id)
        merged.append(version)
    return merged


# ====== 伺服器支援判斷 ======
def guess_if_supports_server(version_id: str) -> bool:
    """依命名前綴排除只有客戶端的版本系列"""
    if version_id.startswith(("inf-", "in-", "pc-")):
        return False
    if version_id.startswith("c0."):
        rest = version_id[len("c0."):]
        if "_st" in rest or "-s" in rest:
            return False
        if rest.startswith(("0.11", "0.12", "0.13", "0.14", "0.15")):
            return False
    return True


def supports_server(version: ManifestVersion) -> bool:
    """
    判斷版本是否有伺服器；Alpha 版本以多人遊戲推出的時間判斷，時間無法解析時視為不支援
    Whether a version has a server; alpha versions compare against the multiplayer release time,
    unparseable times count as unsupported
    """
    if version.id.startswith("a1."):
        try:
            released = parse_time(version.release_time)
            cutoff = parse_time(V_MULTIPLAYER_ALPHA)
        except ValueError as e:
            logger.error(f"無法解析 {version.id} 的發布時間 {version.release_time!r}: {e}")
            return False
        if released < cutoff:
            return False
    return guess_if_supports_server(version.id)


def list_entries(manifest: Manifest, servers_only: bool = False) -> List[ListEntry]:
    """將版本清單轉成介面層使用的項目"""
    entries = []
    for version in manifest.versions:
        server = supports_server(version)
        if servers_only and not server:
            continue
        entries.append(ListEntry(version.id, ListEntryKind.from_catalog(version.id, version.type), server))
    return entries


# ====== 解析器 ======
class ManifestResolver:
    """
    版本清單解析器，持有單次飛行快取
    Manifest resolver owning a single-flight cache

    Args:
        fetch_json: 取得 JSON 的函式 (預設 HTTPUtils.get_json)
        platform: 平台資訊 (預設偵測目前平台)
    """

    def __init__(self, fetch_json: Optional[Callable[[str], Any]] = None, platform: Optional[PlatformInfo] = None):
        self._fetch_json = fetch_json or HTTPUtils.get_json
        self.platform = platform or PlatformInfo.current()
        self._lock = threading.Lock()
        self._manifest: Optional[Manifest] = None

    def resolve(self) -> Manifest:
        """
        取得合併後的版本清單；同時呼叫者會等待同一次解析
        Get the merged manifest; concurrent callers wait on the same resolution
        """
        cached = self._manifest
        if cached is not None:
            return cached
        with self._lock:
            if self._manifest is None:
                self._manifest = self._download()
            return self._manifest

    def clear(self) -> None:
        with self._lock:
            self._manifest = None

    def find(self, version_id: str) -> Optional[ManifestVersion]:
        return self.resolve().find_name(version_id)

    def _download(self) -> Manifest:
        newer_url = up_to_date_manifest_url(self.platform)
        logger.info("下載版本清單")
        with ThreadPoolExecutor(max_workers=2) as executor:
            curated_future = executor.submit(self._fetch_json, CURATED_MANIFEST_URL)
            newer_future = executor.submit(self._fetch_json, newer_url)
            curated_data = curated_future.result()
            newer_data = newer_future.result()

        curated = Manifest.from_dict(_ensure_object(curated_data, CURATED_MANIFEST_URL), CURATED_MANIFEST_URL)
        newer = Manifest.from_dict(_ensure_object(newer_data, newer_url), newer_url)

        manifest = Manifest(
            latest=Latest(release=newer.latest.release, snapshot=newer.latest.snapshot),
            versions=splice_versions(curated.versions, newer.versions),
        )
        logger.debug(f"版本清單共 {len(manifest.versions)} 個版本")
        return manifest


def _ensure_object(data: Any, source: str) -> dict:
    if not isinstance(data, dict):
        raise ParseError(source, "manifest must be a JSON object")
    return data


# ====== 全域實例管理 ======
_default_resolver: Optional[ManifestResolver] = None
_default_lock = threading.Lock()


def get_manifest_resolver() -> ManifestResolver:
    """取得程序預設的版本清單解析器"""
    global _default_resolver
    with _default_lock:
        if _default_resolver is None:
            _default_resolver = ManifestResolver()
        return _default_resolver
