from __future__ import annotations

import json
import zipfile
from pathlib import Path

import pytest
from conftest import version_json, write_instance, write_jar
from mclaunch.core.loaders import fabric, install_loader, uninstall_loader
from mclaunch.models import InstanceConfig, InstanceSelection, Loader, VersionDetails
from mclaunch.utils.errors import InstanceLockedError, NoCompatibleLoaderError
from mclaunch.utils.http_utils import HTTPUtils

LEGACY_LIST_1_8_9 = "https://meta.legacyfabric.net/v2/versions/loader/1.8.9"


def _loader_list(*versions: str) -> list[dict]:
    return [{"loader": {"version": v}} for v in versions]


def _patch_lists(monkeypatch, lists: dict[str, list | None]) -> list[str]:
    requested: list[str] = []

    def get_json_or_none(url, user_agent=False):
        requested.append(url)
        return lists.get(url)

    monkeypatch.setattr(HTTPUtils, "get_json_or_none", staticmethod(get_json_or_none))
    return requested


def _details(version_id: str, release_time: str) -> VersionDetails:
    return VersionDetails.from_dict(version_json(version_id, release_time))


@pytest.mark.smoke
def test_official_backend_used_when_it_lists_versions(monkeypatch) -> None:
    _patch_lists(monkeypatch, {"https://meta.fabricmc.net/v2/versions/loader/1.20.1": _loader_list("0.15.0", "0.14.0")})

    backend, versions = fabric.select_backend(Loader.FABRIC, _details("1.20.1", "2023-06-12T13:25:51+00:00"))

    assert backend is fabric.FABRIC
    assert versions == ["0.15.0", "0.14.0"]


@pytest.mark.smoke
def test_empty_official_list_falls_back_silently(monkeypatch) -> None:
    requested = _patch_lists(
        monkeypatch,
        {
            "https://meta.fabricmc.net/v2/versions/loader/1.14": [],
            "https://meta.legacyfabric.net/v2/versions/loader/1.14": _loader_list("0.14.0"),
        },
    )

    backend, versions = fabric.select_backend(Loader.FABRIC, _details("1.14", "2019-04-23T14:52:44+00:00"))

    assert backend is fabric.LEGACY_FABRIC
    assert versions == ["0.14.0"]
    assert requested[0].startswith("https://meta.fabricmc.net/")


@pytest.mark.smoke
def test_versions_before_official_support_skip_the_official_backend(monkeypatch) -> None:
    requested = _patch_lists(monkeypatch, {LEGACY_LIST_1_8_9: _loader_list("0.14.22")})

    backend, _ = fabric.select_backend(Loader.FABRIC, _details("1.8.9", "2015-12-03T09:24:39+00:00"))

    assert backend is fabric.LEGACY_FABRIC
    assert not any("meta.fabricmc.net" in url for url in requested)


@pytest.mark.smoke
def test_beta_1_7_3_falls_through_to_cursed_legacy(monkeypatch) -> None:
    _patch_lists(monkeypatch, {"https://meta.babric.glass-launcher.net/v2/versions/loader/b1.7.3": []})

    backend, versions = fabric.select_backend(Loader.FABRIC, _details("b1.7.3", "2011-07-07T22:00:00+00:00"))

    assert backend is fabric.CURSED_LEGACY
    assert versions == ["b1.7.3"]


@pytest.mark.smoke
def test_quilt_without_any_backend_raises(monkeypatch) -> None:
    _patch_lists(monkeypatch, {})

    with pytest.raises(NoCompatibleLoaderError):
        fabric.select_backend(Loader.QUILT, _details("1.8.9", "2015-12-03T09:24:39+00:00"))


@pytest.mark.smoke
def test_install_before_official_support_uses_legacy_fork(tmp_path: Path, monkeypatch, fake_download) -> None:
    _patch_lists(monkeypatch, {LEGACY_LIST_1_8_9: _loader_list("0.14.22", "0.14.21")})
    profile = {
        "id": "fabric-loader-0.14.22-1.8.9",
        "mainClass": "net.fabricmc.loader.impl.launch.knot.KnotClient",
        "libraries": [
            {"name": "net.fabricmc:fabric-loader:0.14.22", "url": "https://maven.fabricmc.net/"},
            {"name": "org.lwjgl.lwjgl:lwjgl:2.9.4", "url": "https://maven.legacyfabric.net/"},
        ],
    }
    profile_urls: list[str] = []

    def get_json(url, user_agent=False):
        profile_urls.append(url)
        return profile

    monkeypatch.setattr(HTTPUtils, "get_json", staticmethod(get_json))
    instance = InstanceSelection("legacy", root=tmp_path)
    write_instance(tmp_path / "legacy", version_json("1.8.9", "2015-12-03T09:24:39+00:00"))

    info = install_loader(Loader.FABRIC, instance)

    assert info.version == "0.14.22"
    assert info.backend_implementation == "Fabric (Legacy)"
    assert profile_urls == ["https://meta.legacyfabric.net/v2/versions/loader/1.8.9/0.14.22/profile/json"]
    config = InstanceConfig.read_from_dir(tmp_path / "legacy")
    assert config.mod_type == Loader.FABRIC
    assert config.mod_type_info.backend_implementation == "Fabric (Legacy)"
    assert json.loads((tmp_path / "legacy" / "fabric.json").read_text())["id"] == profile["id"]
    assert fake_download == [
        "https://maven.fabricmc.net/net/fabricmc/fabric-loader/0.14.22/fabric-loader-0.14.22.jar"
    ]
    assert not (tmp_path / "legacy" / "install.lock").exists()

    uninstall_loader(instance)
    config = InstanceConfig.read_from_dir(tmp_path / "legacy")
    assert config.mod_type == Loader.VANILLA
    assert config.mod_type_info is None
    assert not (tmp_path / "legacy" / "fabric.json").exists()
    assert not (tmp_path / "legacy" / "libraries" / "net" / "fabricmc" / "fabric-loader").joinpath(
        "0.14.22", "fabric-loader-0.14.22.jar"
    ).exists()


@pytest.mark.smoke
def test_install_refuses_locked_instance(tmp_path: Path) -> None:
    instance_dir = write_instance(tmp_path / "busy", version_json("1.20.1", "2023-06-12T13:25:51+00:00"))
    (instance_dir / "install.lock").write_text("running")

    with pytest.raises(InstanceLockedError):
        install_loader("fabric", InstanceSelection("busy", root=tmp_path))

    assert InstanceConfig.read_from_dir(instance_dir).mod_type == Loader.VANILLA


@pytest.mark.smoke
def test_manifest_lines_are_wrapped_at_72_bytes() -> None:
    manifest = fabric.build_manifest("net.fabricmc.Main", ["libraries/" + "a" * 100 + ".jar", "b.jar"])

    lines = manifest.split(b"\r\n")
    assert lines[0] == b"Manifest-Version: 1.0"
    assert all(len(line) <= 72 for line in lines)
    assert manifest.endswith(b"\r\n\r\n")
    class_path = b"".join(line[1:] if line.startswith(b" ") else line for line in lines[2:])
    assert class_path == b"Class-Path: libraries/" + b"a" * 100 + b".jar b.jar"


@pytest.mark.smoke
def test_launch_jar_class_path_and_shading(tmp_path: Path) -> None:
    server_dir = tmp_path / "server"
    lib_a = write_jar(server_dir / "libraries" / "a.jar", {"a/A.class": "A", "META-INF/SIG.SF": "sig"})
    lib_b = write_jar(server_dir / "libraries" / "b.jar", {"a/A.class": "duplicate", "b/B.class": "B"})

    plain = fabric.make_launch_jar(server_dir / "plain.jar", server_dir, "Main", [lib_a, lib_b], shade=False)
    with zipfile.ZipFile(plain) as jar:
        manifest = jar.read("META-INF/MANIFEST.MF").decode()
        assert jar.namelist() == ["META-INF/MANIFEST.MF"]
    assert "Class-Path: libraries/a.jar libraries/b.jar" in manifest

    shaded = fabric.make_launch_jar(server_dir / "shaded.jar", server_dir, "Main", [lib_a, lib_b], shade=True)
    with zipfile.ZipFile(shaded) as jar:
        assert jar.read("a/A.class") == b"A"
        assert jar.read("b/B.class") == b"B"
        assert "META-INF/SIG.SF" not in jar.namelist()
        assert "Class-Path" not in jar.read("META-INF/MANIFEST.MF").decode()


@pytest.mark.smoke
def test_should_shade_old_loaders_only() -> None:
    assert fabric.should_shade(fabric.FABRIC, "0.12.5")
    assert not fabric.should_shade(fabric.FABRIC, "0.14.0")
    assert fabric.should_shade(fabric.CURSED_LEGACY, "b1.7.3")
    assert not fabric.should_shade(fabric.QUILT, "0.1.0")


def _unwrap_manifest(raw: bytes) -> str:
    lines: list[str] = []
    for line in raw.decode("utf-8").split("\r\n"):
        if line.startswith(" ") and lines:
            lines[-1] += line[1:]
        elif line:
            lines.append(line)
    return "\n".join(lines)


@pytest.mark.smoke
@pytest.mark.parametrize(("loader_version", "shaded"), [("0.15.0", False), ("0.12.5", True)])
def test_server_install_builds_launch_jar(tmp_path: Path, monkeypatch, loader_version: str, shaded: bool) -> None:
    _patch_lists(monkeypatch, {"https://meta.fabricmc.net/v2/versions/loader/1.20.1": _loader_list(loader_version)})
    profile = {
        "id": f"fabric-loader-{loader_version}-1.20.1",
        "mainClass": "net.fabricmc.loader.impl.launch.knot.KnotServer",
        "libraries": [
            {"name": f"net.fabricmc:fabric-loader:{loader_version}", "url": "https://maven.fabricmc.net/"},
            {"name": "net.fabricmc:intermediary:1.20.1", "url": "https://maven.fabricmc.net/"},
        ],
    }
    profile_urls: list[str] = []

    def get_json(url, user_agent=False):
        profile_urls.append(url)
        return profile

    def download_file(url, local_path, chunk_size=65536):
        name = url.rsplit("/", 1)[-1]
        return write_jar(Path(local_path), {f"classes/{name}.class": name, "META-INF/LOADER.SF": "sig"})

    monkeypatch.setattr(HTTPUtils, "get_json", staticmethod(get_json))
    monkeypatch.setattr(HTTPUtils, "download_file", staticmethod(download_file))
    server_dir = write_instance(tmp_path / "srv", version_json("1.20.1", "2023-06-12T13:25:51+00:00"))
    instance = InstanceSelection("srv", is_server=True, root=tmp_path)

    info = install_loader(Loader.FABRIC, instance)

    assert info.version == loader_version
    assert info.backend_implementation is None
    assert profile_urls == [f"https://meta.fabricmc.net/v2/versions/loader/1.20.1/{loader_version}/server/json"]
    assert (server_dir / fabric.LAUNCHER_PROPERTIES_NAME).read_text() == "serverJar=server.jar\n"

    loader_jar = f"libraries/net/fabricmc/fabric-loader/{loader_version}/fabric-loader-{loader_version}.jar"
    with zipfile.ZipFile(server_dir / fabric.LAUNCH_JAR_NAME) as jar:
        manifest = _unwrap_manifest(jar.read("META-INF/MANIFEST.MF"))
        names = jar.namelist()
    assert "Main-Class: net.fabricmc.loader.impl.launch.knot.KnotServer" in manifest
    if shaded:
        assert "Class-Path" not in manifest
        assert f"classes/fabric-loader-{loader_version}.jar.class" in names
        assert "classes/intermediary-1.20.1.jar.class" in names
        assert "META-INF/LOADER.SF" not in names
    else:
        assert f"Class-Path: {loader_jar} libraries/net/fabricmc/intermediary/1.20.1/intermediary-1.20.1.jar" in manifest
        assert names == ["META-INF/MANIFEST.MF"]
    assert InstanceConfig.read_from_dir(server_dir).mod_type == Loader.FABRIC

    uninstall_loader(instance)

    assert not (server_dir / fabric.LAUNCH_JAR_NAME).exists()
    assert not (server_dir / fabric.LAUNCHER_PROPERTIES_NAME).exists()
    assert not (server_dir / loader_jar).exists()
