"""Shared pytest fixtures for cargo-wasm tests."""

from __future__ import annotations

import pytest

from cargo_wasm.config import ToolSettings
from cargo_wasm.models.package import Package
from tests.fakes import FakeRunner


@pytest.fixture
def settings() -> ToolSettings:
    return ToolSettings(process_timeout=None)


@pytest.fixture
def fake_runner() -> FakeRunner:
    return FakeRunner()


@pytest.fixture
def package(tmp_path) -> Package:
    return Package(
        name="my-app",
        manifest_path=tmp_path / "my-app" / "Cargo.toml",
        bindgen_version="0.2.68",
    )
