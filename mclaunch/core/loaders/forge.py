#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Forge 載入器安裝模組
由 maven-metadata.xml 解析版本，下載官方安裝器並以內附的啟動類別在子程序中無介面執行，
再依安裝器內的 version.json 下載函式庫並寫出 classpath
Forge Loader Installer
Resolves the version from maven-metadata.xml, downloads the official installer and runs it headlessly
through the bundled bootstrap class in a subprocess, then downloads the libraries from the installer's
version.json and writes the classpath files
"""
# ====== 標準函式庫 ======
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence, Tuple
import re
from lxml import etree
# ====== 專案內部模組 ======
from ...models import (
    ForgeInstallProgress,
    ForgeInstallStage,
    InstanceSelection,
    JavaVersion,
    Library,
    Loader,
    ModTypeInfo,
    VersionDetails,
)
from ...utils.constants import CLASSPATH_SEPARATOR, LIBRARIES_URL, V_1_5_2
from ...utils.errors import NoCompatibleLoaderError, NoInstallJsonError, ParseError, TransportError
from ...utils.http_utils import HTTPUtils
from ...utils.logger import get_logger
from ...utils.path_utils import PathUtils
from ...utils.subprocess_utils import SubprocessUtils
from ...utils.version_parsing import VersionParsing
from ..jarmods import JarMods
from ..java_manager import JavaManager, get_java_manager
from ..libraries import artifact_path, library_path
from ..orchestrator import ProgressCounter, ProgressSender, do_jobs, retry
from .common import change_instance_type, delete_files

logger = get_logger().bind(component="Forge")

MAVEN_METADATA_URL = "https://maven.minecraftforge.net/net/minecraftforge/forge/maven-metadata.xml"
MAVEN_URL = "https://maven.minecraftforge.net/net/minecraftforge/forge/{v}/forge-{v}-{kind}.jar"
# 1.1 - 1.5.1 只有要合併進遊戲 jar 的壓縮檔
LEGACY_ZIP_URLS = (
    ("https://files.minecraftforge.net/maven/net/minecraftforge/forge/{v}/forge-{v}-client.zip", "client"),
    ("https://maven.minecraftforge.net/net/minecraftforge/forge/{v}/forge-{v}-universal.zip", "universal"),
)
JARMOD_FILE = "forge.zip"

BOOTSTRAP_SOURCE = Path(__file__).parent / "resources" / "ForgeInstaller.java"
BOOTSTRAP_NAME = "ForgeInstaller.java"
PROFILE_FILES = ("launcher_profiles.json", "launcher_profiles_microsoft_store.json")
CLASSPATH_FILE = "classpath.txt"
CLEAN_CLASSPATH_FILE = "clean_classpath.txt"


# ====== 版本解析 ======
def maven_game_id(game: str) -> str:
    """Forge maven 上預覽版使用 <mc>_pre 命名"""
    return re.sub(r"-pre(\d*)$", r"_pre\1", game)


def parse_maven_versions(content: bytes, source: str = MAVEN_METADATA_URL) -> List[str]:
    """解析 maven-metadata.xml 的所有 <version>"""
    try:
        root = etree.fromstring(content)
    except etree.XMLSyntaxError as e:
        raise ParseError(source, f"invalid maven metadata: {e}") from e
    return [elem.text.strip() for elem in root.xpath("//versions/version") if elem.text and elem.text.strip()]


def compatible_versions(all_versions: Sequence[str], game: str) -> List[str]:
    """
    篩出此遊戲版本可用的 Forge 版本 (只保留 Forge 自身的版本號)，由新到舊
    Forge versions usable with this game version (Forge's own number only), newest first

    maven 項目格式為 <mc>-<forge> 或舊版的 <mc>-<forge>-<mc>
    """
    prefix = f"{maven_game_id(game)}-"
    found = []
    for entry in all_versions:
        if not entry.startswith(prefix):
            continue
        forge_version = entry[len(prefix):].split("-", 1)[0]
        if forge_version and forge_version not in found:
            found.append(forge_version)
    found.sort(key=lambda v: VersionParsing.parse_version(v) or (), reverse=True)
    return found


def fetch_versions(game: str) -> List[str]:
    content = retry(lambda: HTTPUtils.get_bytes(MAVEN_METADATA_URL))
    return compatible_versions(parse_maven_versions(content), game)


def latest_version(game: str) -> str:
    versions = fetch_versions(game)
    if not versions:
        raise NoCompatibleLoaderError(Loader.FORGE.value, game)
    return versions[0]


# ====== 共用：安裝器啟動 ======
def bootstrap_java_version(details: VersionDetails, minimum: int = 17) -> JavaVersion:
    """啟動類別以單檔原始碼模式執行，需要 Java 17 以上"""
    major = details.java_version.major_version if details.java_version else minimum
    return JavaVersion.from_major(max(major, minimum))


def write_launcher_profiles(directory: Path) -> None:
    """安裝器要求目標目錄有這兩個檔案才肯安裝客戶端"""
    for name in PROFILE_FILES:
        PathUtils.write_text_file(directory / name, "{}")


def run_bootstrap(java: Path, installer: Path, cwd: Path, is_server: bool) -> str:
    """
    在 cwd 中執行安裝器
    Run the installer inside cwd through the bundled bootstrap source

    java -cp <installer><sep>. ForgeInstaller.java <client|server> <installer>

    Raises:
        SubprocessError: 非零結束 (含 stdout / stderr)
    """
    source = PathUtils.write_text_file(installer.parent / BOOTSTRAP_NAME, PathUtils.read_text_file(BOOTSTRAP_SOURCE))
    side = "server" if is_server else "client"
    cmd = [str(java), "-cp", f"{installer}{CLASSPATH_SEPARATOR}.", str(source), side, str(installer)]
    logger.info(f"執行安裝器 ({side})，工作目錄: {cwd}")
    result = SubprocessUtils.run_captured(cmd, cwd=cwd)
    logger.debug(result.stdout)
    return result.stdout


def read_install_json(installer: Path, game: str) -> Dict[str, Any]:
    """
    從安裝器讀取 version.json；舊版安裝器改讀 install_profile.json 的 versionInfo
    Read version.json from the installer, or versionInfo of install_profile.json for old installers

    Raises:
        NoInstallJsonError: 兩者皆不存在
    """
    data = PathUtils.read_json_from_zip(installer, "version.json")
    if isinstance(data, dict):
        return data
    profile = PathUtils.read_json_from_zip(installer, "install_profile.json")
    if isinstance(profile, dict):
        info = profile.get("versionInfo")
        return info if isinstance(info, dict) else profile
    raise NoInstallJsonError(game)


# ====== 共用：函式庫 ======
def _library_target(library: Library) -> Tuple[Optional[str], str]:
    if library.artifact is not None and library.artifact.path:
        return library.artifact.url, artifact_path(library.artifact)
    rel_path = library_path(library.name)
    return (library.url or LIBRARIES_URL).rstrip("/") + "/" + rel_path, rel_path


def download_installer_libraries(
    forge_dir: Path,
    details: Dict[str, Any],
    sender: ProgressSender,
    skip_forge: bool = False,
    classpath_prefix: str = "",
) -> List[str]:
    """
    下載安裝器 version.json 列出的函式庫並寫出 classpath.txt / clean_classpath.txt
    Download the libraries listed in the installer's version.json and write classpath.txt / clean_classpath.txt

    - clientreq 為 false 的函式庫略過
    - skip_forge 時略過 net.minecraftforge:forge (由 classpath 前綴提供)
    - 404 記錄後略過

    Returns:
        List[str]: 類別路徑項目 (依 version.json 順序)
    """
    source = str(forge_dir / VersionDetails.FILE_NAME)
    raw = details.get("libraries")
    if not isinstance(raw, list):
        raise ParseError(source, "installer version json has no 'libraries' array")
    libraries = [Library.from_dict(lib, source) for lib in raw]
    libraries = [lib for lib in libraries if lib.clientreq is not False]

    libraries_dir = forge_dir / "libraries"
    clean_lines = []
    selected = []
    for library in libraries:
        clean_lines.append(f"{library.group}:{library.artifact_id}")
        if skip_forge and library.group == "net.minecraftforge" and library.artifact_id == "forge":
            logger.debug("內建 forge 函式庫，略過")
            continue
        selected.append(library)

    counter = ProgressCounter(len(selected))

    def make_job(library: Library):
        def job() -> Optional[str]:
            url, rel_path = _library_target(library)
            dest = libraries_dir / rel_path
            if not dest.exists():
                if not url:
                    logger.warning(f"沒有下載網址且檔案不存在，略過: {library.name}")
                    return None
                try:
                    HTTPUtils.download_file(url, dest)
                except TransportError as e:
                    if not e.is_not_found:
                        raise
                    logger.error(f"404，略過函式庫 {library.name}: {url}")
                    return None
            done = counter.step()
            logger.debug(f"({done}/{counter.total}) {library.name}")
            sender.send(ForgeInstallProgress(ForgeInstallStage.DOWNLOADING_LIBRARY, done, counter.total))
            return f"../forge/libraries/{rel_path}{CLASSPATH_SEPARATOR}"

        return job

    entries = [e for e in do_jobs([make_job(lib) for lib in selected]) if e is not None]
    PathUtils.write_text_file(forge_dir / CLASSPATH_FILE, classpath_prefix + "".join(entries))
    PathUtils.write_text_file(forge_dir / CLEAN_CLASSPATH_FILE, "".join(f"{line}\n" for line in clean_lines))
    return entries


# ====== Forge 安裝 ======
class ForgeInstaller:
    """
    單次 Forge 安裝的狀態
    State of a single Forge install

    Attributes:
        version (str): Forge 版本，例如 1.8.9 的 "11.15.1.2318"
        short_version (str): <mc>-<forge>
        norm_forge_version (str): <mc>-<forge>-<mc 補齊為三段>
        major_version (int): Forge 主要版本號
    """

    def __init__(
        self,
        instance: InstanceSelection,
        version: Optional[str] = None,
        progress=None,
        java_manager: Optional[JavaManager] = None,
        java_progress=None,
    ):
        self.instance = instance
        self.java_manager = java_manager or get_java_manager()
        self.is_server = instance.is_server
        self.instance_dir = instance.instance_path
        self.forge_dir = self.instance_dir if self.is_server else self.instance_dir / "forge"
        self.sender = ProgressSender.wrap(progress)
        self.java_progress = java_progress
        self.details = VersionDetails.load(self.instance_dir)

        game = self.details.get_id()
        self.sender.send(ForgeInstallProgress(ForgeInstallStage.DOWNLOADING_JSON))
        self.version = version or latest_version(game)
        norm_game = f"{game}.0" if game.count(".") == 1 else game
        self.short_version = f"{game}-{self.version}"
        self.norm_forge_version = f"{self.short_version}-{norm_game}"
        major = VersionParsing.major(self.version)
        if major is None:
            raise ParseError(self.version, "forge version has no leading number")
        self.major_version = major
        logger.info(f"Forge 版本: {self.version} (major {self.major_version})")

    # ====== 安裝器下載 ======
    def installer_candidates(self) -> List[Tuple[str, str]]:
        """
        (網址, 存檔名稱) 候選清單；major < 14 優先使用 universal，最後是 1.1 - 1.5.1 的 jarmod 壓縮檔
        (url, saved file name) candidates; universal first when major < 14, pre-1.6 jarmod archives last
        """
        kind, flipped = ("universal", "installer") if self.major_version < 14 else ("installer", "universal")
        versions = (self.short_version, self.norm_forge_version)
        candidates = [
            (MAVEN_URL.format(v=v, kind=k), f"forge-{self.short_version}-{k}.jar")
            for k in (kind, flipped)
            for v in versions
        ]
        candidates += [
            (url.format(v=v), f"forge-{self.short_version}-{k}.zip")
            for url, k in LEGACY_ZIP_URLS
            for v in versions
        ]
        return candidates

    def is_jarmod_install(self) -> bool:
        """1.5.2 之前的客戶端把 Forge 當作 jarmod 安裝 (1.5.2 本身已有安裝器)"""
        return not self.is_server and self.details.is_before_or_eq(V_1_5_2) and self.details.get_id() != "1.5.2"

    def download_installer(self) -> Path:
        self.sender.send(ForgeInstallProgress(ForgeInstallStage.DOWNLOADING_INSTALLER))
        candidates = self.installer_candidates()
        for i, (url, filename) in enumerate(candidates):
            installer = self.forge_dir / filename
            try:
                HTTPUtils.download_file(url, installer)
            except TransportError as e:
                if e.is_not_found and i + 1 < len(candidates):
                    logger.debug(f"404: {url}")
                    continue
                raise
            logger.info(f"已下載安裝器: {url}")
            return installer
        raise NoCompatibleLoaderError(Loader.FORGE.value, self.details.get_id())

    def classpath_prefix(self, installer: Path) -> str:
        if self.major_version < 14:
            return f"../forge/{installer.name}{CLASSPATH_SEPARATOR}"
        if self.major_version < 39:
            return (
                f"../forge/libraries/net/minecraftforge/forge/{self.short_version}/"
                f"forge-{self.short_version}.jar{CLASSPATH_SEPARATOR}"
            )
        return ""

    # ====== 主要流程 ======
    def install(self) -> ModTypeInfo:
        self.sender.send(ForgeInstallProgress(ForgeInstallStage.START))
        PathUtils.ensure_dir_exists(self.forge_dir)
        PathUtils.ensure_dir_exists(self.instance.mods_dir)

        installer = self.download_installer()
        if self.is_jarmod_install():
            return self._install_jarmod(installer)

        if self.major_version >= 14:
            if not self.is_server:
                write_launcher_profiles(self.forge_dir)
            java = self.java_manager.ensure_installed(
                bootstrap_java_version(self.details), progress=self.java_progress
            )
            self.sender.send(ForgeInstallProgress(ForgeInstallStage.RUNNING_INSTALLER))
            run_bootstrap(java, installer, self.forge_dir, self.is_server)

        if self.is_server:
            self._cleanup_server(installer)
        else:
            forge_json = read_install_json(installer, self.details.get_id())
            PathUtils.save_json(self.forge_dir / VersionDetails.FILE_NAME, forge_json)
            download_installer_libraries(
                self.forge_dir,
                forge_json,
                self.sender,
                skip_forge=self.major_version < 49,
                classpath_prefix=self.classpath_prefix(installer),
            )
            delete_files(self.forge_dir, PROFILE_FILES + (BOOTSTRAP_NAME,))

        info = ModTypeInfo(version=self.version)
        change_instance_type(self.instance_dir, Loader.FORGE, info)
        self.sender.send(ForgeInstallProgress(ForgeInstallStage.DONE))
        logger.info("Forge 安裝完成")
        return info

    def _install_jarmod(self, archive: Path) -> ModTypeInfo:
        JarMods.read(self.instance_dir).insert(archive, JARMOD_FILE)
        PathUtils.delete_path(self.forge_dir)

        info = ModTypeInfo(version=self.version)
        change_instance_type(self.instance_dir, Loader.FORGE, info)
        self.sender.send(ForgeInstallProgress(ForgeInstallStage.DONE))
        logger.info(f"Forge 已以 jarmod 方式安裝: {archive.name}")
        return info

    def _cleanup_server(self, installer: Path) -> None:
        names = [BOOTSTRAP_NAME, f"{installer.name}.log", "installer.log"]
        if self.major_version >= 14:
            # 舊版的 universal jar 本身就是伺服器 jar
            names.append(installer.name)
        delete_files(self.forge_dir, names)


def install(
    instance: InstanceSelection,
    version: Optional[str] = None,
    progress=None,
    java_manager: Optional[JavaManager] = None,
    java_progress=None,
) -> ModTypeInfo:
    """
    安裝 Forge 到客戶端實例或伺服器
    Install Forge into a client instance or a server

    子程序失敗時拋出 SubprocessError，config.json 不會被修改。
    progress 接收 ForgeInstallProgress；java_progress 接收下載 Java 時的 GenericProgress。
    """
    logger.info(f"開始安裝 Forge 到 {instance.name}")
    return ForgeInstaller(instance, version, progress, java_manager, java_progress).install()


def uninstall(instance: InstanceSelection) -> None:
    instance_dir = instance.instance_path
    if instance.is_server:
        names = ["libraries", "run.bat", "run.sh", "user_jvm_args.txt", CLASSPATH_FILE, CLEAN_CLASSPATH_FILE]
        names += [p.name for p in instance_dir.glob("forge-*.jar")]
        delete_files(instance_dir, names)
    else:
        delete_files(instance_dir, ["forge"])
        JarMods.read(instance_dir).remove(JARMOD_FILE)
    logger.info(f"已從 {instance.name} 移除 Forge")
