#!/usr/bin/env python3
"""版本資訊與應用程式常數定義
定義應用程式版本號、名稱和相關的系統常數
Version Information and Application Constants Definition
Defines application version, name and related system constants
"""

# 應用程式版本字串
APP_VERSION = "0.5.0"
# 應用程式顯示名稱 (也用作資料夾名稱)
APP_NAME = "mclaunch"
# 應用程式的簡要描述
APP_DESCRIPTION = "Minecraft 啟動器核心"
# 寫入 launcher_version.txt 的標記，用來偵測由舊版工具建立的實例
LAUNCHER_VERSION_NAME = APP_VERSION
# 部分上游 API (GitHub) 要求 User-Agent
USER_AGENT = f"{APP_NAME}/{APP_VERSION}"
