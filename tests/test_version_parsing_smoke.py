from __future__ import annotations

import pytest
from mclaunch.utils.version_parsing import VersionParsing


@pytest.mark.smoke
@pytest.mark.parametrize(
    ("version_str", "expected"),
    [
        ("v0.12.5", (0, 12, 5)),
        ("0.14.0-beta.1", (0, 14, 0)),
        ("  V0.15.11+build.7  ", (0, 15, 11)),
        ("14.23.5.2860", (14, 23, 5, 2860)),
        ("1", (1,)),
    ],
)
def test_parse_version_valid(version_str: str, expected: tuple[int, ...]) -> None:
    assert VersionParsing.parse_version(version_str) == expected


@pytest.mark.smoke
@pytest.mark.parametrize("version_str", ["", "  ", "abc", "version-x.y.z", None])
def test_parse_version_invalid(version_str: str | None) -> None:
    assert VersionParsing.parse_version(version_str) is None


@pytest.mark.smoke
@pytest.mark.parametrize(
    ("left", "right", "expected"),
    [
        ("0.12.5", "0.12.5", 0),
        ("0.12", "0.12.0", 0),
        ("0.12.4", "0.12.5", -1),
        ("0.14.21", "0.12.5", 1),
        ("garbage", "0.0.1", -1),
    ],
)
def test_compare(left: str, right: str, expected: int) -> None:
    assert VersionParsing.compare(left, right) == expected


@pytest.mark.smoke
def test_major() -> None:
    assert VersionParsing.major("14.23.5.2860") == 14
    assert VersionParsing.major("47.2.0") == 47
    assert VersionParsing.major("beta") is None
