#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
資源下載模組
下載資源索引與其中所有物件，並依舊版需求複製到 resources 或 virtual 目錄
Assets Module
Downloads the asset index and every object in it, copying them to resources/ or virtual/ for old versions
"""
# ====== 標準函式庫 ======
from pathlib import Path
from typing import Callable, Dict, Optional
import re
# ====== 專案內部模組 ======
from ..models import DownloadProgress, DownloadStage, VersionDetails
from ..utils.constants import RESOURCES_URL
from ..utils.errors import DirEscapeError, ParseError
from ..utils.http_utils import HTTPUtils
from ..utils.logger import get_logger
from ..utils.path_utils import PathUtils
from ..utils.runtime_paths import RuntimePaths
from .orchestrator import ProgressCounter, ProgressSender, do_jobs, retry

logger = get_logger().bind(component="Assets")

ASSET_HASH_RE = re.compile(r"[0-9a-fA-F]{40}")


class AssetsDownloader:
    """
    資源下載器，所有實例共用 assets/dir 目錄
    Asset downloader; every instance shares the assets/dir store

    Args:
        assets_dir (Path | None): 資源根目錄 (預設為啟動器目錄下的 assets/dir)
        progress: ProgressSender 或 queue.Queue，接收 DownloadProgress(ASSETS)
    """

    def __init__(self, assets_dir: Optional[Path] = None, progress=None):
        self.assets_dir = Path(assets_dir) if assets_dir is not None else RuntimePaths.get_assets_dir() / "dir"
        self.sender = ProgressSender.wrap(progress)

    @property
    def indexes_dir(self) -> Path:
        return self.assets_dir / "indexes"

    @property
    def objects_dir(self) -> Path:
        return self.assets_dir / "objects"

    def download_assets(self, details: VersionDetails, dot_minecraft: Path) -> int:
        """
        下載版本的所有資源
        Download every asset of a version

        Args:
            details (VersionDetails): 版本詳細資料
            dot_minecraft (Path): 實例的 .minecraft 目錄 (map_to_resources 時使用)

        Returns:
            int: 資源物件數量
        """
        if details.asset_index is None:
            logger.info(f"{details.id} 沒有資源索引，略過")
            return 0

        index_id = details.assets or details.asset_index.id
        index = self._load_index(index_id, details.asset_index.url)
        objects = index.get("objects")
        if not isinstance(objects, dict):
            raise ParseError(details.asset_index.url, "asset index has no 'objects' object")

        targets: Dict[str, Path] = {}
        jobs = []
        counter = ProgressCounter(len(objects))
        for name, obj in objects.items():
            try:
                asset_hash = obj["hash"]
                size = int(obj.get("size", -1))
            except (KeyError, TypeError, ValueError) as e:
                raise ParseError(details.asset_index.url, f"bad asset entry {name!r}") from e
            if not isinstance(asset_hash, str) or not ASSET_HASH_RE.fullmatch(asset_hash):
                raise ParseError(details.asset_index.url, f"asset {name!r} has an invalid hash: {asset_hash!r}")
            path = self.objects_dir / asset_hash[:2] / asset_hash
            targets[name] = path
            jobs.append(self._object_job(asset_hash, size, path, counter))

        logger.info(f"下載資源 {index_id} ({len(jobs)} 個物件)")
        do_jobs(jobs)

        if index.get("map_to_resources"):
            self._copy_all(targets, dot_minecraft / "resources")
        if index.get("virtual"):
            self._copy_all(targets, self.assets_dir / "virtual" / index_id)
        return len(targets)

    def _load_index(self, index_id: str, url: str) -> dict:
        index_path = self.indexes_dir / f"{index_id}.json"
        index = PathUtils.load_json(index_path)
        if isinstance(index, dict):
            return index
        index = retry(lambda: HTTPUtils.get_json(url))
        if not isinstance(index, dict):
            raise ParseError(url, "asset index must be an object")
        PathUtils.save_json(index_path, index, indent=None)
        return index

    def _object_job(self, asset_hash: str, size: int, path: Path, counter: ProgressCounter) -> Callable[[], Path]:
        def job() -> Path:
            if not (path.is_file() and (size < 0 or path.stat().st_size == size)):
                HTTPUtils.download_file(f"{RESOURCES_URL}{asset_hash[:2]}/{asset_hash}", path)
            done = counter.step()
            self.sender.send(DownloadProgress(DownloadStage.ASSETS, done, counter.total))
            return path

        return job

    @staticmethod
    def _copy_all(targets: Dict[str, Path], dest_root: Path) -> None:
        logger.debug(f"複製資源到 {dest_root}")
        PathUtils.ensure_dir_exists(dest_root)
        for name, src in targets.items():
            dest = dest_root / name
            if not PathUtils.is_path_within(dest_root, dest, strict=False):
                raise DirEscapeError(dest)
            if not dest.exists():
                PathUtils.copy_file(src, dest)
