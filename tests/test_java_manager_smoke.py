from __future__ import annotations

import io
import queue
import tarfile
import zipfile
from pathlib import Path

import pytest
from mclaunch.core.java_manager import LOCK_FILE_NAME, JavaManager
from mclaunch.models import GenericProgress, JavaVersion
from mclaunch.utils.constants import JAVA_LIST_URL
from mclaunch.utils.errors import UnknownArchiveExtensionError, UnsupportedPlatformError
from mclaunch.utils.http_utils import HTTPUtils
from mclaunch.utils.platform_info import PlatformInfo

LINUX_X64 = PlatformInfo("linux", "x86_64", "glibc")
FILES_URL = "https://example.invalid/java-runtime-gamma/manifest.json"


def _patch_official(monkeypatch) -> list[str]:
    calls: list[str] = []

    def get_json(url, user_agent=False):
        calls.append(url)
        if url == JAVA_LIST_URL:
            return {
                "linux": {
                    "java-runtime-gamma": [{"manifest": {"url": FILES_URL}}],
                    "jre-legacy": [],
                }
            }
        if url == FILES_URL:
            return {
                "files": {
                    "bin": {"type": "directory"},
                    "bin/java": {
                        "type": "file",
                        "executable": True,
                        "downloads": {"raw": {"url": "https://example.invalid/bin/java"}},
                    },
                    "lib/libjvm.so": {
                        "type": "file",
                        "downloads": {"raw": {"url": "https://example.invalid/lib/libjvm.so"}},
                    },
                }
            }
        raise AssertionError(f"unexpected url {url}")

    def get_bytes(url, user_agent=False):
        calls.append(url)
        return b"#!/bin/sh\n"

    monkeypatch.setattr(HTTPUtils, "get_json", staticmethod(get_json))
    monkeypatch.setattr(HTTPUtils, "get_bytes", staticmethod(get_bytes))
    return calls


@pytest.mark.smoke
def test_ensure_installed_is_idempotent(tmp_path: Path, monkeypatch) -> None:
    calls = _patch_official(monkeypatch)
    manager = JavaManager(tmp_path / "java_installs", platform=LINUX_X64)

    first = manager.ensure_installed(JavaVersion.JAVA_17)
    network_calls = len(calls)
    second = manager.ensure_installed(JavaVersion.JAVA_17)

    assert first == second
    assert first.name == "java"
    assert first.parent.name == "bin"
    assert len(calls) == network_calls
    assert not (tmp_path / "java_installs" / "java_17" / LOCK_FILE_NAME).exists()
    assert manager.is_installed(JavaVersion.JAVA_17)


@pytest.mark.smoke
def test_leftover_lock_triggers_reinstall(tmp_path: Path, monkeypatch) -> None:
    calls = _patch_official(monkeypatch)
    java_dir = tmp_path / "java_installs" / "java_17"
    (java_dir / "bin").mkdir(parents=True)
    (java_dir / "bin" / "java").write_text("stale")
    (java_dir / LOCK_FILE_NAME).write_text("interrupted")
    manager = JavaManager(tmp_path / "java_installs", platform=LINUX_X64)

    assert not manager.is_installed(JavaVersion.JAVA_17)
    manager.ensure_installed(JavaVersion.JAVA_17)

    assert JAVA_LIST_URL in calls
    assert (java_dir / "bin" / "java").read_bytes() == b"#!/bin/sh\n"
    assert not (java_dir / LOCK_FILE_NAME).exists()


@pytest.mark.smoke
def test_alternate_table_lookup() -> None:
    musl = JavaManager(platform=PlatformInfo("linux", "x86_64", "musl"))
    windows = JavaManager(platform=PlatformInfo("windows", "x86_64"))

    assert musl.official_platform_key() is None
    assert "alpine" in musl.alternate_url(JavaVersion.JAVA_21)
    assert windows.alternate_url(JavaVersion.JAVA_17).endswith(".zip")
    assert windows.alternate_url(JavaVersion.JAVA_16) == windows.alternate_url(JavaVersion.JAVA_17)


@pytest.mark.smoke
def test_only_java8_platform_is_classified(tmp_path: Path, monkeypatch) -> None:
    monkeypatch.setattr(HTTPUtils, "get_json", staticmethod(lambda url, user_agent=False: {}))
    manager = JavaManager(tmp_path / "java_installs", platform=PlatformInfo("linux", "arm", "glibc"))

    with pytest.raises(UnsupportedPlatformError) as info:
        manager.ensure_installed(JavaVersion.JAVA_21)

    assert info.value.only_java8 is True
    assert "only Java 8" in str(info.value)


@pytest.mark.smoke
def test_unsupported_platform_is_not_only_java8(tmp_path: Path) -> None:
    manager = JavaManager(tmp_path / "java_installs", platform=PlatformInfo("linux", "riscv64", "glibc"))

    with pytest.raises(UnsupportedPlatformError) as info:
        manager.ensure_installed(JavaVersion.JAVA_8)

    assert info.value.only_java8 is False


@pytest.mark.smoke
def test_windows_arm_uses_java17_for_old_versions() -> None:
    manager = JavaManager(platform=PlatformInfo("windows", "aarch64"))
    assert manager.effective_version(JavaVersion.JAVA_8) == JavaVersion.JAVA_17
    assert manager.effective_version(JavaVersion.JAVA_21) == JavaVersion.JAVA_21


@pytest.mark.smoke
def test_from_major_defaults_to_21() -> None:
    assert JavaVersion.from_major(8) == JavaVersion.JAVA_8
    assert JavaVersion.from_major(99) == JavaVersion.JAVA_21
    assert JavaVersion.from_major(None) == JavaVersion.JAVA_21


@pytest.mark.smoke
def test_delete_java_installs(tmp_path: Path) -> None:
    installs = tmp_path / "java_installs"
    (installs / "java_17" / "bin").mkdir(parents=True)

    JavaManager(installs, platform=LINUX_X64).delete_java_installs()

    assert not installs.exists()


def _write_tar_gz(path: Path, entries: dict[str, bytes]) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    with tarfile.open(path, "w:gz") as tf:
        for name, content in entries.items():
            info = tarfile.TarInfo(name)
            info.size = len(content)
            info.mode = 0o755
            tf.addfile(info, io.BytesIO(content))
    return path


def _drain(channel: queue.Queue) -> list:
    events = []
    while not channel.empty():
        events.append(channel.get_nowait())
    return events


@pytest.mark.smoke
def test_empty_official_listing_falls_back_to_corretto_tarball(tmp_path: Path, monkeypatch) -> None:
    downloaded: list[str] = []

    def get_json(url, user_agent=False):
        assert url == JAVA_LIST_URL
        return {"linux": {"jre-legacy": []}}

    def download_file(url, local_path, chunk_size=65536):
        downloaded.append(url)
        return _write_tar_gz(
            Path(local_path),
            {"amazon-corretto-8/bin/java": b"#!/bin/sh\n", "amazon-corretto-8/release": b"JAVA_VERSION=8"},
        )

    monkeypatch.setattr(HTTPUtils, "get_json", staticmethod(get_json))
    monkeypatch.setattr(HTTPUtils, "download_file", staticmethod(download_file))
    manager = JavaManager(tmp_path / "java_installs", platform=LINUX_X64)
    channel: queue.Queue = queue.Queue()

    binary = manager.ensure_installed(JavaVersion.JAVA_8, progress=channel)

    java_dir = tmp_path / "java_installs" / "java_8"
    assert downloaded == [manager.alternate_url(JavaVersion.JAVA_8)]
    assert downloaded[0].endswith(".tar.gz")
    assert binary == (java_dir / "bin" / "java").resolve()
    assert (java_dir / "release").is_file()
    assert not (java_dir / "amazon-corretto-8").exists()
    assert not (java_dir / "archive.tar.gz").exists()
    assert not (java_dir / LOCK_FILE_NAME).exists()

    events = _drain(channel)
    assert events[0] == GenericProgress()
    assert [(e.done, e.total) for e in events[1:3]] == [(0, 2), (1, 2)]
    assert events[-1].has_finished is True


@pytest.mark.smoke
def test_windows_alternate_install_extracts_zip(tmp_path: Path, monkeypatch) -> None:
    monkeypatch.setattr(
        HTTPUtils, "get_json", staticmethod(lambda url, user_agent=False: {"windows-x64": {"java-runtime-delta": []}})
    )

    def download_file(url, local_path, chunk_size=65536):
        local_path = Path(local_path)
        local_path.parent.mkdir(parents=True, exist_ok=True)
        with zipfile.ZipFile(local_path, "w") as zf:
            zf.writestr("jdk21.0.5_11/bin/java.exe", "MZ")
            zf.writestr("jdk21.0.5_11/lib/modules", "x")
        return local_path

    monkeypatch.setattr(HTTPUtils, "download_file", staticmethod(download_file))
    manager = JavaManager(tmp_path / "java_installs", platform=PlatformInfo("windows", "x86_64"))

    binary = manager.ensure_installed(JavaVersion.JAVA_21)

    java_dir = tmp_path / "java_installs" / "java_21"
    assert binary == (java_dir / "bin" / "java.exe").resolve()
    assert (java_dir / "lib" / "modules").is_file()
    assert not (java_dir / "archive.zip").exists()


@pytest.mark.smoke
def test_unknown_archive_extension(tmp_path: Path, monkeypatch) -> None:
    monkeypatch.setattr(JavaManager, "alternate_url", lambda self, version: "https://example.invalid/jdk.7z")
    manager = JavaManager(tmp_path / "java_installs", platform=PlatformInfo("linux", "x86_64", "musl"))

    with pytest.raises(UnknownArchiveExtensionError) as info:
        manager.ensure_installed(JavaVersion.JAVA_17)

    assert info.value.url.endswith(".7z")
    assert (tmp_path / "java_installs" / "java_17" / LOCK_FILE_NAME).exists()
    assert not manager.is_installed(JavaVersion.JAVA_17)
