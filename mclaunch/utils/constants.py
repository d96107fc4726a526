#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
常數定義模組
提供專案中常用的常數定義，包含上游 API 網址與歷史版本時間界線
Constants Module
Provides common constants used across the project, including upstream API URLs and historical version cutoffs
"""

import os

# ====== 記憶體單位常數 Memory Unit Constants ======
KB = 1024
MB = KB * 1024
GB = MB * 1024

# ====== 路徑與程序常數 Path / Process Constants ======
CLASSPATH_SEPARATOR = ";" if os.name == "nt" else ":"

# ====== 版本清單來源 Version Catalog Sources ======
CURATED_MANIFEST_URL = "https://mcphackers.org/BetterJSONs/version_manifest_v2.json"
OFFICIAL_MANIFEST_URL = "https://launchermeta.mojang.com/mc/game/version_manifest_v2.json"
ARM64_MANIFEST_URL = (
    "https://raw.githubusercontent.com/theofficialgman/piston-meta-arm64/refs/heads/main/mc/game/version_manifest_v2.json"
)
ARM32_MANIFEST_URL = (
    "https://raw.githubusercontent.com/theofficialgman/piston-meta-arm32/refs/heads/main/mc/game/version_manifest_v2.json"
)
# 精選清單最後同步到的版本，之後的版本取自最新清單
LAST_CURATED_VERSION = "1.21.11"

RESOURCES_URL = "https://resources.download.minecraft.net/"
LIBRARIES_URL = "https://libraries.minecraft.net/"

# ====== 歷史版本時間界線 Historical Release-Time Cutoffs ======
V_PRECLASSIC_LAST = "2009-05-16T11:48:00+00:00"
V_MULTIPLAYER_ALPHA = "2010-08-03T19:47:25+00:00"
V_1_5_2 = "2013-04-25T15:45:00+00:00"
V_1_12_2 = "2017-09-18T08:39:46+00:00"
V_OFFICIAL_FABRIC_SUPPORT = "2018-10-24T10:52:16+00:00"
V_PAULSCODE_LAST = "2019-03-14T14:26:23+00:00"
V_1_20_2 = "2023-09-20T09:02:57+00:00"

# ====== 函式庫排除 Library Exclusions ======
LEGACY_LWJGL3_SHIM = "org.mcphackers:legacy-lwjgl3:"
LWJGL2_GROUP = "org.lwjgl.lwjgl:"

# ====== Java 執行環境 Java Runtime ======
JAVA_LIST_URL = (
    "https://launchermeta.mojang.com/v1/products/java-runtime/"
    "2ec0cc96c44e5a76b9c8b7c39df7210883d12871/all.json"
)
CORRETTO_URL = "https://corretto.aws/downloads/latest/amazon-corretto-{major}-{arch}-{os}-jdk.{ext}"

# ====== 錯誤訊息 Error Messages ======
NETWORK_ERROR_MSG = "check your internet connection, firewall or proxy settings"
JSON_ERROR_MSG = "could not parse JSON (this is a bug! please report)"
