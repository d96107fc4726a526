#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
HTTP 網路請求工具模組
提供標準化的 HTTP 請求功能 (位元組、文字、JSON、檔案下載)，失敗時拋出分類後的錯誤
HTTP Network Request Utilities Module
Provides standardized HTTP requests (bytes, text, JSON, file download) raising classified errors on failure
"""
# ====== 標準函式庫 ======
from pathlib import Path
from typing import Any, Callable, Dict, Optional, TypeVar
import os
import tempfile
import requests
# ====== 專案內部模組 ======
from ..version_info import USER_AGENT
from .errors import FilesystemError, TransportError
from .logger import get_logger
from .path_utils import PathUtils

logger = get_logger().bind(component="HTTPUtils")

T = TypeVar("T")


def _timeout() -> int:
    from .settings_manager import get_settings_manager

    return get_settings_manager().get_http_timeout()


class HTTPUtils:
    """
    HTTP 網路請求工具類別，提供各種 HTTP 操作的統一介面
    HTTP network request utility class providing unified interface for various HTTP operations
    """

    # ====== 基本請求 ======
    @staticmethod
    def _get(url: str, stream: bool = False, user_agent: bool = False) -> requests.Response:
        """
        發送 GET 請求並檢查狀態碼
        Send a GET request and check its status code

        Raises:
            TransportError: 連線失敗或非 2xx 回應
        """
        headers: Optional[Dict[str, str]] = {"User-Agent": USER_AGENT} if user_agent else None
        try:
            response = requests.get(url, timeout=_timeout(), stream=stream, headers=headers)
        except requests.RequestException as e:
            raise TransportError(url, None, str(e)) from e
        if not response.ok:
            status = response.status_code
            response.close()
            raise TransportError(url, status, response.reason or "")
        return response

    @staticmethod
    def get_bytes(url: str, user_agent: bool = False) -> bytes:
        """
        下載完整內容為位元組
        Download the whole body as bytes

        Args:
            url (str): 請求的目標 URL
            user_agent (bool): 是否附加 User-Agent 標頭

        Returns:
            bytes: 回應內容
        """
        response = HTTPUtils._get(url, user_agent=user_agent)
        try:
            return response.content
        except requests.RequestException as e:
            raise TransportError(url, None, str(e)) from e

    @staticmethod
    def get_text(url: str, user_agent: bool = False) -> str:
        """下載完整內容為 UTF-8 文字"""
        return HTTPUtils.get_bytes(url, user_agent=user_agent).decode("utf-8", errors="replace")

    # ====== JSON 資料請求 ======
    @staticmethod
    def get_json(url: str, user_agent: bool = False) -> Any:
        """
        發送 HTTP GET 請求並解析回傳的 JSON 資料
        Send HTTP GET request and parse returned JSON data

        Raises:
            TransportError: 網路錯誤
            ParseError: 回應不是有效的 JSON
        """
        return PathUtils.from_json_str(HTTPUtils.get_bytes(url, user_agent=user_agent), source=url)

    @staticmethod
    def get_json_or_none(url: str, user_agent: bool = False) -> Any:
        """同 get_json，但 404 回傳 None (供後端備援判斷使用)"""
        try:
            return HTTPUtils.get_json(url, user_agent=user_agent)
        except TransportError as e:
            if e.is_not_found:
                logger.debug(f"404: {url}")
                return None
            raise

    # ====== 檔案下載功能 ======
    @staticmethod
    def download_file(url: str, local_path: Path, chunk_size: int = 65536) -> Path:
        """
        從指定 URL 串流下載檔案，先寫入同目錄暫存檔再改名
        Stream a file from url into a temp file next to local_path, then rename it

        Args:
            url (str): 檔案下載的來源 URL
            local_path (Path): 檔案儲存的本機路徑
            chunk_size (int): 每次下載的資料塊大小（位元組）

        Returns:
            Path: 已下載的檔案路徑
        """
        local_path = Path(local_path)
        PathUtils.ensure_dir_exists(local_path.parent)
        response = HTTPUtils._get(url, stream=True)
        fd, tmp_name = tempfile.mkstemp(prefix=f".{local_path.name}.", suffix=".part", dir=local_path.parent)
        try:
            with response, os.fdopen(fd, "wb") as f:
                for chunk in response.iter_content(chunk_size=chunk_size):
                    f.write(chunk)
            os.replace(tmp_name, local_path)
        except requests.RequestException as e:
            _discard(tmp_name)
            raise TransportError(url, None, str(e)) from e
        except OSError as e:
            _discard(tmp_name)
            raise FilesystemError(local_path, e) from e
        return local_path

    # ====== 重試 ======
    @staticmethod
    def with_retry(fn: Callable[[], T], attempts: int) -> T:
        """
        執行 fn，遇到非 404 的網路錯誤時最多再重試 attempts 次
        Run fn, retrying up to `attempts` extra times on non-404 transport errors
        """
        attempt = 0
        while True:
            try:
                return fn()
            except TransportError as e:
                if e.is_not_found or attempt >= attempts:
                    raise
                attempt += 1
                logger.warning(f"請求失敗 (第 {attempt} 次)，重試: {e}")


def _discard(path: str) -> None:
    try:
        os.remove(path)
    except FileNotFoundError:
        pass
