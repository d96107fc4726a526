from __future__ import annotations

from pathlib import Path

import pytest
from conftest import version_json, write_jar
from mclaunch.core.libraries import LibraryResolver, is_allowed, legacy_exclusions, library_download, library_path
from mclaunch.models import Library, VersionDetails
from mclaunch.utils.http_utils import HTTPUtils
from mclaunch.utils.platform_info import PlatformInfo

LINUX_X64 = PlatformInfo("linux", "x86_64", "glibc")
MACOS_X64 = PlatformInfo("macos", "x86_64")
WINDOWS_X64 = PlatformInfo("windows", "x86_64")


def _lib(name: str, rules: list | None = None, **extra) -> Library:
    data = {"name": name, **extra}
    if rules is not None:
        data["rules"] = rules
    return Library.from_dict(data)


@pytest.mark.smoke
@pytest.mark.parametrize(
    ("rules", "platform", "expected"),
    [
        (None, LINUX_X64, True),
        ([{"action": "allow"}, {"action": "disallow", "os": {"name": "osx"}}], LINUX_X64, True),
        ([{"action": "allow"}, {"action": "disallow", "os": {"name": "osx"}}], MACOS_X64, False),
        ([{"action": "allow", "os": {"name": "osx"}}], LINUX_X64, False),
        ([{"action": "allow", "os": {"name": "osx"}}], MACOS_X64, True),
        ([{"action": "disallow", "os": {"name": "linux"}}], LINUX_X64, False),
        ([{"action": "allow", "os": {"name": "windows"}}, {"action": "disallow"}], WINDOWS_X64, False),
    ],
)
def test_rule_evaluation(rules, platform: PlatformInfo, expected: bool) -> None:
    assert is_allowed(_lib("org.example:lib:1.0", rules), platform) is expected


@pytest.mark.smoke
def test_classifier_natives_for_this_os_are_always_allowed() -> None:
    library = _lib(
        "org.lwjgl:lwjgl-platform:2.9.4",
        [{"action": "disallow", "os": {"name": "linux"}}],
        downloads={"classifiers": {"natives-linux": {"url": "https://example.invalid/n.jar", "path": "n.jar"}}},
    )
    assert is_allowed(library, LINUX_X64)


@pytest.mark.smoke
@pytest.mark.parametrize(
    ("coordinate", "expected"),
    [
        ("net.fabricmc:fabric-loader:0.15.0", "net/fabricmc/fabric-loader/0.15.0/fabric-loader-0.15.0.jar"),
        ("org.lwjgl:lwjgl:3.3.1:natives-linux", "org/lwjgl/lwjgl/3.3.1/lwjgl-3.3.1-natives-linux.jar"),
        ("de.oceanlabs.mcp:mcp_config:1.20.1@zip", "de/oceanlabs/mcp/mcp_config/1.20.1/mcp_config-1.20.1.zip"),
    ],
)
def test_library_path_from_coordinate(coordinate: str, expected: str) -> None:
    assert library_path(coordinate) == expected


@pytest.mark.smoke
def test_library_download_prefers_artifact_then_maven_base() -> None:
    mojang = _lib(
        "com.mojang:brigadier:1.0.18",
        downloads={"artifact": {"url": "https://libraries.minecraft.net/b.jar", "path": "com/mojang/b.jar"}},
    )
    fabric = _lib("net.fabricmc:intermediary:1.20.1", url="https://maven.fabricmc.net/")
    bare = _lib("org.example:nothing:1.0")

    assert library_download(mojang) == ("https://libraries.minecraft.net/b.jar", "com/mojang/b.jar")
    assert library_download(fabric) == (
        "https://maven.fabricmc.net/net/fabricmc/intermediary/1.20.1/intermediary-1.20.1.jar",
        "net/fabricmc/intermediary/1.20.1/intermediary-1.20.1.jar",
    )
    assert library_download(bare) is None


@pytest.mark.smoke
def test_disallowed_library_produces_no_files_and_no_errors(tmp_path: Path, fake_download) -> None:
    resolver = LibraryResolver(tmp_path / "libraries", platform=LINUX_X64)
    blocked = _lib(
        "ca.weblite:java-objc-bridge:1.1",
        [{"action": "allow", "os": {"name": "osx"}}, {"action": "disallow", "os": {"name": "linux"}}],
        downloads={"artifact": {"url": "https://example.invalid/objc.jar", "path": "ca/objc.jar"}},
    )

    assert resolver.download([blocked]) == []
    assert fake_download == []
    assert not (tmp_path / "libraries" / "ca").exists()


@pytest.mark.smoke
def test_download_skips_excluded_prefixes(tmp_path: Path, fake_download) -> None:
    resolver = LibraryResolver(tmp_path / "libraries", platform=LINUX_X64, exclude=("org.mcphackers:legacy-lwjgl3:",))
    keep = _lib("org.example:keep:1.0", url="https://repo.invalid/")
    shim = _lib("org.mcphackers:legacy-lwjgl3:1.0", url="https://repo.invalid/")

    files = resolver.download([keep, shim])

    assert files == [tmp_path / "libraries" / "org/example/keep/1.0/keep-1.0.jar"]
    assert fake_download == ["https://repo.invalid/org/example/keep/1.0/keep-1.0.jar"]


@pytest.mark.smoke
def test_natives_are_extracted_with_excludes(tmp_path: Path, monkeypatch) -> None:
    def download_file(url, local_path, chunk_size=65536):
        return write_jar(
            Path(local_path),
            {"liblwjgl.so": b"native", "META-INF/MANIFEST.MF": "x", "skip/me.txt": "x"},
        )

    monkeypatch.setattr(HTTPUtils, "download_file", staticmethod(download_file))
    library = _lib(
        "org.lwjgl.lwjgl:lwjgl-platform:2.9.4",
        natives={"linux": "natives-linux"},
        extract={"exclude": ["skip/"]},
        downloads={
            "classifiers": {
                "natives-linux": {"url": "https://example.invalid/platform-natives-linux.jar", "path": "p/n.jar"}
            }
        },
    )
    resolver = LibraryResolver(tmp_path / "libraries", platform=LINUX_X64)

    assert resolver.download([library]) == []

    natives = tmp_path / "libraries" / "natives"
    assert (natives / "liblwjgl.so").read_bytes() == b"native"
    assert not (natives / "META-INF").exists()
    assert not (natives / "skip").exists()


@pytest.mark.smoke
def test_legacy_shim_excluded_up_to_1_12_2() -> None:
    old = VersionDetails.from_dict(version_json("1.12.2", "2017-09-18T08:39:46+00:00"))
    special = VersionDetails.from_dict(version_json("1.12.2-lwjgl3", "2017-09-18T08:39:46+00:00"))
    new = VersionDetails.from_dict(version_json("1.13", "2018-07-18T15:11:46+00:00"))

    assert legacy_exclusions(old) == ("org.mcphackers:legacy-lwjgl3:",)
    assert legacy_exclusions(special) == ()
    assert legacy_exclusions(new) == ()


def _lwjgl3(classifier: str | None, os_name: str | None) -> Library:
    suffix = f"-{classifier}" if classifier else ""
    path = f"org/lwjgl/lwjgl/3.3.1/lwjgl-3.3.1{suffix}.jar"
    return _lib(
        "org.lwjgl:lwjgl:3.3.1" + (f":{classifier}" if classifier else ""),
        rules=[{"action": "allow", "os": {"name": os_name}}] if os_name else None,
        downloads={"artifact": {"url": f"https://libraries.invalid/{path}", "path": path}},
    )


@pytest.mark.smoke
@pytest.mark.parametrize(
    ("platform", "expected_native"),
    [(LINUX_X64, b"x86_64"), (PlatformInfo("linux", "aarch64", "glibc"), b"arm64")],
)
def test_natives_selected_by_coordinate_name(tmp_path: Path, monkeypatch, platform, expected_native) -> None:
    downloaded: list[str] = []

    def download_file(url, local_path, chunk_size=65536):
        downloaded.append(url)
        content = b"arm64" if "arm64" in url else b"x86_64"
        return write_jar(Path(local_path), {"liblwjgl.so": content, "META-INF/MANIFEST.MF": "x"})

    monkeypatch.setattr(HTTPUtils, "download_file", staticmethod(download_file))
    libraries = [
        _lwjgl3(None, None),
        _lwjgl3("natives-linux", "linux"),
        _lwjgl3("natives-linux-arm64", "linux"),
        _lwjgl3("natives-windows", "windows"),
    ]
    resolver = LibraryResolver(tmp_path / "libraries", platform=platform)

    files = resolver.download(libraries)

    assert files == [tmp_path / "libraries" / "org/lwjgl/lwjgl/3.3.1/lwjgl-3.3.1.jar"]
    assert not any("natives-windows" in url for url in downloaded)
    natives = tmp_path / "libraries" / "natives"
    assert (natives / "liblwjgl.so").read_bytes() == expected_native
    assert not (natives / "META-INF").exists()
