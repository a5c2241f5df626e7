"""Custom exceptions for cargo-wasm."""

from __future__ import annotations

from collections.abc import Sequence


class CargoWasmError(Exception):
    """Base exception for all cargo-wasm errors."""


class CommandError(CargoWasmError):
    """Raised when an external command exits non-zero or cannot be started."""

    def __init__(
        self,
        args: Sequence[str],
        returncode: int | None,
        stderr: str = "",
    ) -> None:
        self.cmd = list(args)
        self.returncode = returncode
        self.stderr = stderr
        if returncode is None:
            msg = f"could not run {self.cmd[0]!r}: {stderr}"
        else:
            msg = f"{self.cmd[0]} exited with code {returncode}"
            if stderr:
                msg += f": {stderr[-1000:].strip()}"
        super().__init__(msg)


class CommandTimeout(CommandError):
    """Raised when an external command exceeds the configured timeout."""

    def __init__(self, args: Sequence[str], timeout: float) -> None:
        self.timeout = timeout
        super().__init__(args, None, f"timed out after {timeout:g}s")


class UnsupportedPlatform(CargoWasmError):
    """Raised when no prebuilt wasm-opt exists for this OS/architecture."""

    def __init__(self, os_name: str, arch: str) -> None:
        self.os_name = os_name
        self.arch = arch
        super().__init__(
            f"Unsupported platform {os_name}/{arch}: prebuilt wasm-opt binaries "
            "are only available for x86_64 linux, macos and windows"
        )


class MetadataUnavailable(CargoWasmError):
    """Raised when `cargo metadata` cannot be run or parsed."""

    def __init__(self, cause: object) -> None:
        self.cause = cause
        super().__init__(f"Unable to read cargo metadata: {cause}")


class InstallFailed(CargoWasmError):
    """Raised when wasm-bindgen-cli could not be installed."""

    def __init__(self, version: str, cause: object) -> None:
        self.version = version
        self.cause = cause
        super().__init__(f"Installing wasm-bindgen-cli {version} failed: {cause}")


class CompileFailed(CargoWasmError):
    """Raised when `cargo build` fails for a package."""

    def __init__(self, package_name: str, cause: object) -> None:
        self.package_name = package_name
        self.cause = cause
        super().__init__(f"Compiling {package_name} failed: {cause}")


class GlueGenerationFailed(CargoWasmError):
    """Raised when wasm-bindgen fails to produce glue code for a package."""

    def __init__(self, package_name: str, cause: object) -> None:
        self.package_name = package_name
        self.cause = cause
        super().__init__(f"Generating js glue for {package_name} failed: {cause}")


class DownloadFailed(CargoWasmError):
    """Raised when the binaryen release archive could not be downloaded."""

    def __init__(self, url: str, cause: object) -> None:
        self.url = url
        self.cause = cause
        super().__init__(f"Downloading {url} failed: {cause}")


class ExtractFailed(CargoWasmError):
    """Raised when the binaryen archive could not be unpacked."""

    def __init__(self, path: object, cause: object) -> None:
        self.path = path
        self.cause = cause
        super().__init__(f"Extracting wasm-opt into {path} failed: {cause}")


class OptimizeFailed(CargoWasmError):
    """Raised when wasm-opt fails on an artifact. The artifact is left as-is."""

    def __init__(self, path: object, cause: object) -> None:
        self.path = path
        self.cause = cause
        super().__init__(f"wasm-opt failed for {path}: {cause}")
