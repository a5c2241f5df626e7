"""Tests for LocalLogStore and logging setup."""

from __future__ import annotations

import logging

import pytest

from cargo_wasm.logging.local import LocalLogStore
from cargo_wasm.logging.setup import setup_logging


class TestLocalLogStore:
    def test_write_and_read(self, tmp_path):
        store = LocalLogStore(tmp_path / "logs")
        with store.get_writer("run-1", "compile") as w:
            w.write("$ cargo build\n")
        assert store.read_log("run-1", "compile") == "$ cargo build\n"
        assert (tmp_path / "logs" / "run-1" / "compile.log").is_file()

    def test_appends(self, tmp_path):
        store = LocalLogStore(tmp_path)
        for line in ("one\n", "two\n"):
            with store.get_writer("run-1", "install") as w:
                w.write(line)
        assert store.read_log("run-1", "install") == "one\ntwo\n"

    def test_read_missing(self, tmp_path):
        assert LocalLogStore(tmp_path).read_log("nope", "glue") == ""

    def test_location(self, tmp_path):
        store = LocalLogStore(tmp_path)
        assert store.location("run-1") == str(tmp_path / "run-1")
        assert store.log_path("run-1", "glue") == tmp_path / "run-1" / "glue.log"


class TestSetupLogging:
    def test_level_argument(self):
        setup_logging(level="debug", fmt="json")
        assert logging.getLogger("cargo_wasm").level == logging.DEBUG
        assert logging.getLogger("httpx").level == logging.WARNING

    def test_level_from_env(self, monkeypatch):
        monkeypatch.setenv("CARGO_WASM_LOG_LEVEL", "warning")
        setup_logging()
        assert logging.getLogger("cargo_wasm").level == logging.WARNING

    def test_unknown_format(self):
        with pytest.raises(ValueError, match="log format"):
            setup_logging(fmt="xml")

    def test_unknown_level(self):
        with pytest.raises(ValueError, match="log level"):
            setup_logging(level="loud")
