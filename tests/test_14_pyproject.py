"""Tests for pyproject.toml and package installation."""
from __future__ import annotations

import subprocess
import sys
from pathlib import Path

import pytest

PYPROJECT = Path(__file__).parent.parent / "pyproject.toml"


class TestPackageInstallation:
    def test_version_defined(self):
        import tts_relay

        assert isinstance(tts_relay.__version__, str)
        assert tts_relay.__version__

    def test_modules_importable(self):
        from tts_relay import cli, main
        from tts_relay.api import dashboard, openai_compat, routes
        from tts_relay.catalog import catalog
        from tts_relay.services import forwarder, history
        from tts_relay.store import key_store

        for module in (cli, main, dashboard, openai_compat, routes, catalog, forwarder, history, key_store):
            assert module is not None


class TestCLIEntryPoint:
    def test_cli_help_exits_zero(self):
        result = subprocess.run(
            [sys.executable, "-m", "tts_relay.cli", "--help"],
            capture_output=True,
            text=True,
        )
        assert result.returncode == 0
        assert "tts-relay administration" in result.stdout


class TestPyprojectToml:
    @pytest.fixture
    def data(self):
        tomllib = pytest.importorskip("tomllib")
        return tomllib.loads(PYPROJECT.read_text(encoding="utf-8"))

    def test_project_name(self, data):
        assert data["project"]["name"] == "tts-relay"

    def test_dependencies(self, data):
        names = [d.split(">=")[0].split("[")[0] for d in data["project"]["dependencies"]]
        for name in ("fastapi", "uvicorn", "pydantic", "pyyaml", "httpx", "prometheus_client"):
            assert name in names

    def test_script(self, data):
        assert data["project"]["scripts"]["tts-relay"] == "tts_relay.cli:main"
