from __future__ import annotations

import json
from pathlib import Path

import pytest
from conftest import write_jar
from mclaunch.core.mod_index import INDEX_FILE_NAME, ModIndex, migrate_legacy_index, read_mod_metadata
from mclaunch.models import InstanceSelection, ModConfig, ModFile
from mclaunch.utils.errors import ParseError


def _mod(name: str, *filenames: str, dependencies=(), dependents=()) -> ModConfig:
    return ModConfig(
        name=name,
        files=[ModFile(url=f"https://cdn.invalid/{f}", filename=f) for f in filenames],
        dependencies=set(dependencies),
        dependents=set(dependents),
    )


@pytest.fixture
def instance(tmp_path: Path) -> InstanceSelection:
    selection = InstanceSelection("modded", root=tmp_path)
    selection.mods_dir.mkdir(parents=True)
    return selection


@pytest.mark.smoke
def test_fix_prunes_missing_files_and_dangling_ids(instance: InstanceSelection) -> None:
    (instance.mods_dir / "api.jar").write_bytes(b"x")
    (instance.mods_dir / "sodium.jar.disabled").write_bytes(b"x")
    index = ModIndex(
        instance,
        {
            "fabric-api": _mod("Fabric API", "api.jar", "api-extra.jar", dependents={"gone", "sodium"}),
            "sodium": _mod("Sodium", "sodium.jar", dependencies={"fabric-api"}),
            "gone": _mod("Gone", "gone.jar", dependencies={"fabric-api"}),
        },
    )

    removed = index.fix()

    assert removed == ["gone"]
    assert [f.filename for f in index.mods["fabric-api"].files] == ["api.jar"]
    assert index.mods["fabric-api"].dependents == {"sodium"}
    assert "sodium" in index.mods


@pytest.mark.smoke
def test_remove_mod_unlinks_from_other_mods(instance: InstanceSelection) -> None:
    (instance.mods_dir / "api.jar").write_bytes(b"x")
    (instance.mods_dir / "lithium.jar.disabled").write_bytes(b"x")
    index = ModIndex(
        instance,
        {
            "fabric-api": _mod("Fabric API", "api.jar", dependents={"lithium"}),
            "lithium": _mod("Lithium", "lithium.jar", dependencies={"fabric-api"}),
        },
    )

    assert index.remove_mod("lithium") is True
    assert index.remove_mod("lithium") is False

    assert "lithium" not in index.mods
    assert index.mods["fabric-api"].dependents == set()
    assert not (instance.mods_dir / "lithium.jar.disabled").exists()


@pytest.mark.smoke
def test_toggle_renames_files(instance: InstanceSelection) -> None:
    (instance.mods_dir / "api.jar").write_bytes(b"x")
    index = ModIndex(instance, {"fabric-api": _mod("Fabric API", "api.jar")})

    assert index.toggle_mod("fabric-api") is False
    assert (instance.mods_dir / "api.jar.disabled").is_file()
    assert not (instance.mods_dir / "api.jar").exists()

    assert index.toggle_mod("fabric-api") is True
    assert (instance.mods_dir / "api.jar").is_file()

    with pytest.raises(KeyError):
        index.toggle_mod("missing")


@pytest.mark.smoke
def test_load_migrates_legacy_index(instance: InstanceSelection) -> None:
    (instance.mods_dir / "api.jar").write_bytes(b"x")
    legacy = {"mods": {"fabric-api": _mod("Fabric API", "api.jar").to_dict()}, "is_server": False}
    (instance.mods_dir / "index.json").write_text(json.dumps(legacy), encoding="utf-8")

    index = ModIndex.load(instance)

    assert list(index.mods) == ["fabric-api"]
    assert not (instance.mods_dir / "index.json").exists()
    assert (instance.dot_minecraft_path / INDEX_FILE_NAME).is_file()
    assert migrate_legacy_index(instance.dot_minecraft_path) is False


@pytest.mark.smoke
def test_load_creates_empty_index_and_save_round_trips(instance: InstanceSelection) -> None:
    index = ModIndex.load(instance)
    assert index.mods == {}

    (instance.mods_dir / "api.jar").write_bytes(b"x")
    index.mods["fabric-api"] = _mod("Fabric API", "api.jar")
    index.save()

    stored = json.loads((instance.dot_minecraft_path / INDEX_FILE_NAME).read_text(encoding="utf-8"))
    assert stored["mods"]["fabric-api"]["files"][0]["filename"] == "api.jar"
    assert ModIndex.load(instance).mods["fabric-api"].name == "Fabric API"


@pytest.mark.smoke
def test_corrupt_index_is_parse_error(instance: InstanceSelection) -> None:
    (instance.dot_minecraft_path / INDEX_FILE_NAME).write_text("[1, 2]", encoding="utf-8")
    with pytest.raises(ParseError):
        ModIndex.load(instance)


@pytest.mark.smoke
def test_add_local_mod_reads_fabric_metadata(tmp_path: Path, instance: InstanceSelection) -> None:
    jar = write_jar(
        tmp_path / "downloads" / "sodium-0.5.8.jar",
        {"fabric.mod.json": json.dumps({"id": "sodium", "name": "Sodium", "version": "0.5.8"})},
    )
    index = ModIndex(instance)

    mod_id = index.add_local_mod(jar)

    assert mod_id == "sodium"
    cfg = index.mods["sodium"]
    assert cfg.manually_installed is True
    assert cfg.installed_version == "0.5.8"
    assert (instance.mods_dir / "sodium-0.5.8.jar").is_file()


@pytest.mark.smoke
def test_forge_metadata_from_mods_toml(tmp_path: Path) -> None:
    mods_toml = '\n'.join(
        [
            'modLoader="javafml"',
            '[[mods]]',
            'modId="jei"',
            'displayName="Just Enough Items"',
            'version="${file.jarVersion}"',
        ]
    )
    jar = write_jar(
        tmp_path / "jei.jar",
        {
            "META-INF/mods.toml": mods_toml,
            "META-INF/MANIFEST.MF": "Manifest-Version: 1.0\nImplementation-Version: 15.3.0.4\n",
        },
    )

    assert read_mod_metadata(jar) == {"id": "jei", "name": "Just Enough Items", "version": "15.3.0.4"}


@pytest.mark.smoke
def test_jar_without_metadata(tmp_path: Path) -> None:
    jar = write_jar(tmp_path / "plain.jar", {"a/A.class": "x"})
    assert read_mod_metadata(jar) == {}
