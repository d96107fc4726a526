#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
核心模組套件
提供啟動器核心功能模組，包含版本清單、Java 管理、函式庫下載、載入器安裝與實例建立等
Core Modules Package
Provides the launcher core modules including the manifest, Java management, library download, loader installation and instance creation
"""

from __future__ import annotations
from typing import Dict, Tuple
from .. import lazy_exports

_EXPORTS: Dict[str, Tuple[str, str]] = {
    "ManifestResolver": (".manifest", "ManifestResolver"),
    "get_manifest_resolver": (".manifest", "get_manifest_resolver"),
    "JavaManager": (".java_manager", "JavaManager"),
    "get_java_manager": (".java_manager", "get_java_manager"),
    "LibraryResolver": (".libraries", "LibraryResolver"),
    "AssetsDownloader": (".assets", "AssetsDownloader"),
    "InstanceManager": (".instance_manager", "InstanceManager"),
    "ServerCreator": (".server_creator", "ServerCreator"),
    "ModIndex": (".mod_index", "ModIndex"),
    "install_loader": (".loaders", "install_loader"),
    "uninstall_loader": (".loaders", "uninstall_loader"),
    "do_jobs": (".orchestrator", "do_jobs"),
    "do_jobs_collect": (".orchestrator", "do_jobs_collect"),
    "ProgressSender": (".orchestrator", "ProgressSender"),
}

__getattr__, __dir__, __all__ = lazy_exports(globals(), __name__, _EXPORTS)
