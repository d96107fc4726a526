from __future__ import annotations

import json
import os
import tempfile
import zipfile
from pathlib import Path

import pytest

# 在匯入 mclaunch 之前指定啟動器目錄，避免日誌寫到使用者資料夾
os.environ.setdefault("MCLAUNCH_DIR", tempfile.mkdtemp(prefix="mclaunch-tests-"))

from mclaunch.utils import settings_manager as settings_module  # noqa: E402


@pytest.fixture(autouse=True)
def launcher_dir(tmp_path, monkeypatch) -> Path:
    root = tmp_path / "launcher"
    monkeypatch.setenv("MCLAUNCH_DIR", str(root))
    settings_module.reset_settings_manager()
    yield root
    settings_module.reset_settings_manager()


@pytest.fixture
def fake_download(monkeypatch):
    """把 HTTPUtils.download_file 換成寫入固定內容，並記錄網址"""
    from mclaunch.utils.http_utils import HTTPUtils

    calls: list[str] = []

    def download_file(url, local_path, chunk_size=65536):
        calls.append(url)
        local_path = Path(local_path)
        local_path.parent.mkdir(parents=True, exist_ok=True)
        local_path.write_bytes(b"data:" + url.encode())
        return local_path

    monkeypatch.setattr(HTTPUtils, "download_file", staticmethod(download_file))
    return calls


def write_jar(path: Path, entries: dict[str, str | bytes]) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    with zipfile.ZipFile(path, "w") as zf:
        for name, content in entries.items():
            zf.writestr(name, content)
    return path


def version_json(version_id: str, release_time: str, libraries: list | None = None, **extra) -> dict:
    data = {
        "id": version_id,
        "type": "release",
        "mainClass": "net.minecraft.client.main.Main",
        "releaseTime": release_time,
        "downloads": {
            "client": {"url": f"https://example.invalid/{version_id}/client.jar"},
            "server": {"url": f"https://example.invalid/{version_id}/server.jar"},
        },
        "libraries": libraries or [],
    }
    data.update(extra)
    return data


def write_instance(instance_dir: Path, details: dict, config: dict | None = None) -> Path:
    instance_dir.mkdir(parents=True, exist_ok=True)
    (instance_dir / "details.json").write_text(json.dumps(details), encoding="utf-8")
    (instance_dir / "config.json").write_text(json.dumps(config or {"mod_type": "Vanilla"}), encoding="utf-8")
    return instance_dir
