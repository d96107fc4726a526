from __future__ import annotations

import zipfile
from pathlib import Path

import pytest
from mclaunch.utils.errors import DirEscapeError, ParseError
from mclaunch.utils.path_utils import PathUtils


def _zip(path: Path, names: list[str]) -> Path:
    with zipfile.ZipFile(path, "w") as zf:
        for name in names:
            zf.writestr(name, name)
    return path


@pytest.mark.smoke
def test_strip_top_level_only_with_common_root(tmp_path: Path) -> None:
    wrapped = _zip(tmp_path / "wrapped.zip", ["jdk-17/bin/java", "jdk-17/release"])
    loose = _zip(tmp_path / "loose.zip", ["jdk-17/bin/java", "README"])

    PathUtils.safe_extract_zip(wrapped, tmp_path / "a", strip_top_level=True)
    PathUtils.safe_extract_zip(loose, tmp_path / "b", strip_top_level=True)

    assert (tmp_path / "a" / "bin" / "java").is_file()
    assert (tmp_path / "b" / "jdk-17" / "bin" / "java").is_file()
    assert (tmp_path / "b" / "README").is_file()


@pytest.mark.smoke
def test_zip_slip_is_rejected(tmp_path: Path) -> None:
    evil = _zip(tmp_path / "evil.zip", ["../escape.txt"])

    with pytest.raises(DirEscapeError):
        PathUtils.safe_extract_zip(evil, tmp_path / "out")
    assert not (tmp_path / "escape.txt").exists()


@pytest.mark.smoke
def test_read_json_from_zip(tmp_path: Path) -> None:
    jar = tmp_path / "installer.jar"
    with zipfile.ZipFile(jar, "w") as zf:
        zf.writestr("version.json", '{"id": "forge"}')
        zf.writestr("broken.json", "{")

    assert PathUtils.read_json_from_zip(jar, "version.json") == {"id": "forge"}
    assert PathUtils.read_json_from_zip(jar, "install_profile.json") is None
    with pytest.raises(ParseError):
        PathUtils.read_json_from_zip(jar, "broken.json")


@pytest.mark.smoke
def test_is_path_within(tmp_path: Path) -> None:
    assert PathUtils.is_path_within(tmp_path, tmp_path / "child" / "file", strict=False)
    assert not PathUtils.is_path_within(tmp_path, tmp_path / ".." / "sibling", strict=False)
