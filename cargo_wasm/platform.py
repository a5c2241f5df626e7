"""Map the running OS/architecture to a binaryen release platform."""

from __future__ import annotations

import platform as _platform
from enum import Enum

from cargo_wasm.exceptions import UnsupportedPlatform

ARCH_X86_64 = "x86_64"

_ARCH_ALIASES = {
    "x86_64": ARCH_X86_64,
    "amd64": ARCH_X86_64,
    "x64": ARCH_X86_64,
}


class Platform(str, Enum):
    """Platforms binaryen publishes prebuilt archives for."""

    LINUX = "linux"
    MACOS = "macos"
    WINDOWS = "windows"

    def __str__(self) -> str:
        return self.value


_SYSTEMS = {
    "linux": Platform.LINUX,
    "darwin": Platform.MACOS,
    "windows": Platform.WINDOWS,
}


class PlatformResolver:
    """Resolve the download platform for wasm-opt.

    ``system`` and ``machine`` default to ``platform.system()`` and
    ``platform.machine()``; tests inject them.
    """

    def __init__(self, system: str | None = None, machine: str | None = None) -> None:
        self.system = system if system is not None else _platform.system()
        self.machine = machine if machine is not None else _platform.machine()

    @property
    def arch(self) -> str:
        return _ARCH_ALIASES.get(self.machine.lower(), self.machine)

    def resolve(self) -> Platform:
        if self.arch != ARCH_X86_64:
            raise UnsupportedPlatform(self.system, self.machine)
        resolved = _SYSTEMS.get(self.system.lower())
        if resolved is None:
            raise UnsupportedPlatform(self.system, self.machine)
        return resolved
