#!/usr/bin/env python3
"""
安全的 subprocess 包裝器
提供驗證可執行檔存在或可在 PATH 中找到的 run 包裝函式，強制使用 shell=False，並將非零結束轉成 SubprocessError。
"""

from __future__ import annotations

import os
import subprocess  # nosec: B404
from collections.abc import Iterable
from pathlib import Path

from .errors import FilesystemError, SubprocessError
from .logger import get_logger
from .path_utils import PathUtils

logger = get_logger().bind(component="Subprocess")


class SubprocessUtils:
    PIPE = subprocess.PIPE
    DEVNULL = subprocess.DEVNULL
    CREATE_NO_WINDOW = 0x08000000

    @staticmethod
    def _validate_cmd(cmd: Iterable[str | os.PathLike]) -> list[str]:
        if not isinstance(cmd, (list, tuple)):
            raise TypeError("cmd 必須是由字串組成的 list 或 tuple")
        cmd_list = [str(x) for x in cmd]
        if len(cmd_list) == 0:
            raise ValueError("cmd 不得為空")

        exe = cmd_list[0]
        # 如果 exe 是路徑（包含分隔符），則要求該執行檔存在
        p = Path(exe)
        if p.is_absolute() or (os.sep in exe) or ("/" in exe):
            if not p.exists():
                raise FilesystemError(p, message="執行檔路徑不存在")
            return cmd_list

        # 否則在 PATH 中查找執行檔
        which = PathUtils.find_executable(exe)
        if which is None:
            raise FilesystemError(exe, message="無法在 PATH 找到執行檔")
        cmd_list[0] = which
        return cmd_list

    @staticmethod
    def run_checked(cmd: Iterable[str | os.PathLike], **kwargs) -> subprocess.CompletedProcess:
        """像 subprocess.run，但先驗證 cmd 並強制 shell=False。"""
        kwargs = dict(kwargs)
        if kwargs.get("shell", False):
            logger.debug("忽略 shell=True，強制使用 shell=False for safety")
        kwargs["shell"] = False
        if os.name == "nt":
            kwargs.setdefault("creationflags", SubprocessUtils.CREATE_NO_WINDOW)

        cmd_list = SubprocessUtils._validate_cmd(cmd)
        try:
            return subprocess.run(cmd_list, **kwargs)  # nosec: B603
        except OSError as e:
            raise FilesystemError(cmd_list[0], e) from e

    @staticmethod
    def run_captured(cmd: Iterable[str | os.PathLike], cwd: Path | None = None) -> subprocess.CompletedProcess:
        """
        執行命令並擷取輸出；非零結束時拋出帶有 stdout/stderr 的 SubprocessError
        Run a command capturing output; a non-zero exit raises SubprocessError with stdout/stderr
        """
        result = SubprocessUtils.run_checked(
            cmd,
            cwd=str(cwd) if cwd is not None else None,
            capture_output=True,
            text=True,
            encoding="utf-8",
            errors="replace",
        )
        if result.returncode != 0:
            name = Path(str(list(cmd)[0])).name
            logger.error(f"{name} 結束代碼 {result.returncode}\n{result.stderr}")
            raise SubprocessError(name, result.returncode, result.stdout or "", result.stderr or "")
        return result
