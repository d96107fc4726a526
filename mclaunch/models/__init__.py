"""資料模型套件
Data Models Package
"""

from .models import (
    AssetIndex,
    Download,
    DownloadProgress,
    DownloadStage,
    ForgeInstallProgress,
    ForgeInstallStage,
    GenericProgress,
    InstanceConfig,
    InstanceSelection,
    JarMod,
    JavaVersion,
    JavaVersionInfo,
    Latest,
    Library,
    LibraryArtifact,
    ListEntry,
    ListEntryKind,
    Loader,
    LoaderInstallState,
    Manifest,
    ManifestVersion,
    ModConfig,
    ModFile,
    ModTypeInfo,
    Rule,
    VersionDetails,
    parse_time,
)

__all__ = [
    "AssetIndex",
    "Download",
    "DownloadProgress",
    "DownloadStage",
    "ForgeInstallProgress",
    "ForgeInstallStage",
    "GenericProgress",
    "InstanceConfig",
    "InstanceSelection",
    "JarMod",
    "JavaVersion",
    "JavaVersionInfo",
    "Latest",
    "Library",
    "LibraryArtifact",
    "ListEntry",
    "ListEntryKind",
    "Loader",
    "LoaderInstallState",
    "Manifest",
    "ManifestVersion",
    "ModConfig",
    "ModFile",
    "ModTypeInfo",
    "Rule",
    "VersionDetails",
    "parse_time",
]
