"""Fixtures for CLI command tests."""

from unittest.mock import patch

import pytest
from fakes import FakeRestorationClient, make_page
from typer.testing import CliRunner

from comicrestore.config.constants import REPLICATE_TOKEN_ENV


@pytest.fixture
def runner():
    return CliRunner()


@pytest.fixture
def workdir(tmp_path, monkeypatch):
    """Working directory with a token configured."""
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv(REPLICATE_TOKEN_ENV, "r8_test")
    return tmp_path


@pytest.fixture
def scans(workdir):
    """Directory of three page scans."""
    directory = workdir / "scans"
    directory.mkdir()
    for i in range(1, 4):
        make_page().save(directory / f"page{i:02d}.png")
    return directory


@pytest.fixture
def client():
    """Fake restoration client used by every command invocation."""
    fake = FakeRestorationClient()
    with patch("comicrestore.cli.shared.context.create_client", return_value=fake):
        yield fake
