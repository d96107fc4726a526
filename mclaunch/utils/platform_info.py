#!/usr/bin/env python3
"""平台資訊模組
在執行期偵測作業系統、CPU 架構與 libc，作為各平台查表的鍵值
Platform Information Module
Detects OS, CPU architecture and libc at runtime; used as the key of every per-platform table
"""

from __future__ import annotations

import platform
import sys
from dataclasses import dataclass

# platform.machine() 的各種寫法正規化
_ARCH_ALIASES = {
    "x86_64": "x86_64",
    "amd64": "x86_64",
    "x64": "x86_64",
    "i386": "x86",
    "i486": "x86",
    "i586": "x86",
    "i686": "x86",
    "x86": "x86",
    "aarch64": "aarch64",
    "arm64": "aarch64",
    "armv7l": "arm",
    "armv6l": "arm",
    "armv8l": "arm",
    "arm": "arm",
    "sparc64": "sparc64",
    "sun4v": "sparc64",
    "sun4u": "sparc64",
}


@dataclass(frozen=True)
class PlatformInfo:
    """
    (作業系統, 架構, libc) 三元組
    (os, arch, libc) triple

    Attributes:
        os (str): windows / linux / macos / freebsd / solaris
        arch (str): x86_64 / x86 / aarch64 / arm / sparc64
        libc (str): glibc / musl / "" (非 Linux)
    """

    os: str
    arch: str
    libc: str = ""

    @classmethod
    def current(cls) -> PlatformInfo:
        """偵測目前執行中的平台"""
        if sys.platform.startswith("win"):
            os_name = "windows"
        elif sys.platform == "darwin":
            os_name = "macos"
        elif sys.platform.startswith("freebsd"):
            os_name = "freebsd"
        elif sys.platform.startswith("sunos"):
            os_name = "solaris"
        else:
            os_name = "linux"

        machine = platform.machine().lower()
        arch = _ARCH_ALIASES.get(machine, machine)

        libc = ""
        if os_name == "linux":
            name, _ = platform.libc_ver()
            libc = "glibc" if name == "glibc" else "musl"
        return cls(os_name, arch, libc)

    @property
    def rules_os_name(self) -> str:
        """函式庫規則中使用的作業系統名稱 (osx 為舊寫法)"""
        return {"macos": "osx"}.get(self.os, self.os)

    @property
    def is_x86_64(self) -> bool:
        return self.arch == "x86_64"

    @property
    def arch_bits(self) -> str:
        return "32" if self.arch in ("x86", "arm") else "64"
