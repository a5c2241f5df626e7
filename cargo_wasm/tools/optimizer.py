"""wasm-opt (binaryen): fetch a pinned prebuilt release and run it on artifacts."""

from __future__ import annotations

import io
import os
import shutil
import tarfile
import tempfile
import zlib
from pathlib import Path

import httpx
import structlog

from cargo_wasm.exceptions import (
    CommandError,
    DownloadFailed,
    ExtractFailed,
    OptimizeFailed,
)
from cargo_wasm.models.build import OptimizationLevel, OptimizerInstallation, SizeReport
from cargo_wasm.platform import Platform, PlatformResolver
from cargo_wasm.process import CommandRunner, executable_name

log = structlog.get_logger(__name__)

WASM_OPT = "wasm-opt"
INSTALLED_MARKER = ".cargo-wasm-installed"

_DOWNLOAD_ATTEMPTS = 2  # one retry, no backoff


class OptimizerFetcher:
    """
    Make sure ``wasm-opt`` exists under *install_root*, downloading it if needed.

    The archive is unpacked into a staging directory and moved into place; a
    marker file is then written inside the release directory. Without the
    marker the install counts as absent even if ``bin/wasm-opt`` exists, so a
    half-extracted tree from an interrupted run is replaced rather than
    trusted. Each binaryen version has its own release directory and marker.
    """

    def __init__(
        self,
        install_root: Path,
        version: str,
        arch: str,
        base_url: str,
        resolver: PlatformResolver | None = None,
        timeout: float = 120.0,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        self.install_root = Path(install_root)
        self.version = version
        self.arch = arch
        self.base_url = base_url.rstrip("/")
        self.resolver = resolver or PlatformResolver()
        self.timeout = timeout
        self.transport = transport

    @property
    def release_dir(self) -> Path:
        return self.install_root / f"binaryen-{self.version}"

    @property
    def executable_path(self) -> Path:
        windows = self.resolver.system.lower() == "windows"
        return self.release_dir / "bin" / executable_name(WASM_OPT, windows=windows)

    @property
    def marker_path(self) -> Path:
        return self.release_dir / INSTALLED_MARKER

    def is_installed(self) -> bool:
        return self.marker_path.is_file() and self.executable_path.is_file()

    def archive_url(self, platform: Platform) -> str:
        name = f"binaryen-{self.version}-{self.arch}-{platform}.tar.gz"
        return f"{self.base_url}/{self.version}/{name}"

    def installation(self) -> OptimizerInstallation:
        return OptimizerInstallation(
            version=self.version, root=self.install_root, executable=self.executable_path
        )

    def ensure_installed(self) -> OptimizerInstallation:
        """
        Return the wasm-opt install, fetching it on first use.

        Raises:
            UnsupportedPlatform: no prebuilt archive for this OS/arch (nothing is downloaded).
            DownloadFailed: the request failed twice, returned a 4xx, or could
                not be completed (e.g. too many redirects, undecodable body).
            ExtractFailed: the archive could not be unpacked or lacks wasm-opt.
        """
        if self.is_installed():
            return self.installation()

        platform = self.resolver.resolve()
        url = self.archive_url(platform)
        log.info("wasm_opt.fetch", url=url, dest=str(self.install_root))
        data = self._download(url)
        self._extract(data)
        log.info("wasm_opt.installed", path=str(self.executable_path))
        return self.installation()

    def _download(self, url: str) -> bytes:
        last_exc: Exception | None = None
        with httpx.Client(
            timeout=self.timeout, follow_redirects=True, transport=self.transport
        ) as client:
            for attempt in range(_DOWNLOAD_ATTEMPTS):
                try:
                    with client.stream("GET", url) as resp:
                        if resp.status_code < 500:
                            resp.raise_for_status()
                            return resp.read()
                        last_exc = httpx.HTTPStatusError(
                            f"server error {resp.status_code}", request=resp.request, response=resp
                        )
                except httpx.HTTPStatusError as exc:
                    raise DownloadFailed(url, exc) from exc
                except httpx.TransportError as exc:
                    last_exc = exc
                except httpx.RequestError as exc:
                    raise DownloadFailed(url, exc) from exc
                log.warning(
                    "wasm_opt.download_error",
                    url=url,
                    error=str(last_exc),
                    attempt=attempt + 1,
                    max_attempts=_DOWNLOAD_ATTEMPTS,
                )
        raise DownloadFailed(url, last_exc)

    def _extract(self, data: bytes) -> None:
        try:
            self.install_root.mkdir(parents=True, exist_ok=True)
            staging = Path(tempfile.mkdtemp(prefix=".staging-", dir=self.install_root))
        except OSError as exc:
            raise ExtractFailed(self.install_root, exc) from exc
        try:
            with tarfile.open(fileobj=io.BytesIO(data), mode="r:gz") as archive:
                if hasattr(tarfile, "data_filter"):
                    archive.extractall(staging, filter="data")
                else:
                    archive.extractall(staging)

            staged_release = staging / self.release_dir.name
            staged_exe = staged_release / self.executable_path.relative_to(self.release_dir)
            if not staged_exe.is_file():
                raise ExtractFailed(
                    self.install_root, f"archive does not contain {staged_exe.relative_to(staging)}"
                )

            self.marker_path.unlink(missing_ok=True)
            if self.release_dir.exists():
                shutil.rmtree(self.release_dir)
            os.replace(staged_release, self.release_dir)
            self._write_marker()
        except (tarfile.TarError, EOFError, zlib.error, OSError) as exc:
            raise ExtractFailed(self.install_root, exc) from exc
        finally:
            shutil.rmtree(staging, ignore_errors=True)

    def _write_marker(self) -> None:
        tmp = self.marker_path.with_name(self.marker_path.name + ".tmp")
        tmp.write_text(f"{self.version}\n", encoding="utf-8")
        os.replace(tmp, self.marker_path)


class OptimizationRunner:
    """Run wasm-opt in place on one artifact at a time."""

    def __init__(self, installation: OptimizerInstallation, runner: CommandRunner) -> None:
        self.installation = installation
        self.runner = runner

    def build_command(
        self, wasm_path: Path, level: OptimizationLevel, reference_types: bool
    ) -> list[str]:
        # bin/wasm-opt [.wasm or .wat file] [options] [passes]
        cmd = [str(self.installation.executable), str(wasm_path), "--output", str(wasm_path)]
        if reference_types:
            cmd.append("--enable-reference-types")
        cmd.append(level.value)
        return cmd

    def run(
        self,
        wasm_path: Path,
        level: OptimizationLevel = OptimizationLevel.DEFAULT,
        reference_types: bool = False,
    ) -> SizeReport:
        """
        Optimize *wasm_path* in place and report the size change.

        Raises:
            OptimizeFailed: the artifact is missing or wasm-opt failed. A
                partially rewritten artifact is left untouched.
        """
        wasm_path = Path(wasm_path)
        try:
            original_size = wasm_path.stat().st_size
        except OSError as exc:
            raise OptimizeFailed(wasm_path, exc) from exc

        log.info("optimize.start", path=str(wasm_path), level=level.value, size=original_size)
        try:
            self.runner.run(
                self.build_command(wasm_path, level, reference_types), phase="optimize"
            )
            final_size = wasm_path.stat().st_size
        except (CommandError, OSError) as exc:
            log.error("optimize.failed", path=str(wasm_path), error=str(exc))
            raise OptimizeFailed(wasm_path, exc) from exc

        report = SizeReport(path=wasm_path, original_size=original_size, final_size=final_size)
        log.info(
            "optimize.done",
            path=str(wasm_path),
            original_size=original_size,
            final_size=final_size,
            reduction=f"{report.reduction_percent:.1f}%",
        )
        return report
