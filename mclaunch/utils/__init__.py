#!/usr/bin/env python3
"""工具模組套件
提供啟動器核心的各種工具函數和輔助類別
Utility Modules Package
Provides various utility functions and helper classes for the launcher core

Logger can be imported conveniently:
    from mclaunch.utils import get_logger
    logger = get_logger().bind(component="ComponentName")
"""

from __future__ import annotations

from .. import lazy_exports

_EXPORTS: dict[str, tuple[str, str]] = {
    # logger
    "get_logger": (".logger", "get_logger"),
    # runtime paths
    "RuntimePaths": (".runtime_paths", "RuntimePaths"),
    # http
    "HTTPUtils": (".http_utils", "HTTPUtils"),
    # settings
    "get_settings_manager": (".settings_manager", "get_settings_manager"),
    # paths
    "PathUtils": (".path_utils", "PathUtils"),
    # platform
    "PlatformInfo": (".platform_info", "PlatformInfo"),
    # subprocess
    "SubprocessUtils": (".subprocess_utils", "SubprocessUtils"),
    # version parsing
    "VersionParsing": (".version_parsing", "VersionParsing"),
}

__getattr__, __dir__, __all__ = lazy_exports(globals(), __name__, _EXPORTS)
