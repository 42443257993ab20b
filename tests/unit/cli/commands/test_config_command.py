"""Tests for config CLI commands."""

import json

import pytest
from typer.testing import CliRunner

from comicrestore.cli.commands.config import DEFAULT_CONFIG_TEMPLATE, config_app
from comicrestore.config.settings import load_settings


class TestConfigInit:
    """Tests for `config init` command."""

    @pytest.fixture
    def runner(self):
        return CliRunner()

    def test_init_creates_file(self, runner, tmp_path):
        """Test init writes the template as JSON."""
        config_path = tmp_path / "config.json"

        result = runner.invoke(config_app, ["init", "--path", str(config_path)])

        assert result.exit_code == 0
        assert json.loads(config_path.read_text()) == DEFAULT_CONFIG_TEMPLATE

    def test_init_default_location(self, runner, tmp_path, monkeypatch):
        monkeypatch.chdir(tmp_path)

        result = runner.invoke(config_app, ["init"])

        assert result.exit_code == 0
        assert (tmp_path / "config.json").exists()

    def test_init_refuses_overwrite(self, runner, tmp_path):
        """Test existing file is kept without --force."""
        config_path = tmp_path / "config.json"
        config_path.write_text("{}")

        result = runner.invoke(config_app, ["init", "--path", str(config_path)])

        assert result.exit_code == 1
        assert "already exists" in result.output
        assert config_path.read_text() == "{}"

    def test_init_force(self, runner, tmp_path):
        config_path = tmp_path / "config.json"
        config_path.write_text("{}")

        result = runner.invoke(config_app, ["init", "--path", str(config_path), "--force"])

        assert result.exit_code == 0
        assert "restore" in json.loads(config_path.read_text())

    def test_template_loads(self, runner, tmp_path):
        """Test the generated file is accepted by the settings loader."""
        config_path = tmp_path / "config.json"
        runner.invoke(config_app, ["init", "--path", str(config_path)])

        settings = load_settings(config_path)

        assert settings.page.dpi == 300
        assert settings.output.title == "Restored Comic Book"


class TestConfigShow:
    """Tests for `config show` command."""

    def test_show_defaults(self, tmp_path, monkeypatch):
        monkeypatch.chdir(tmp_path)
        monkeypatch.delenv("REPLICATE_API_TOKEN", raising=False)

        result = CliRunner().invoke(config_app, ["show"])

        assert result.exit_code == 0
        assert "Current Configuration" in result.output
        assert "missing" in result.output

    def test_show_custom_file(self, tmp_path):
        config_path = tmp_path / "custom.json"
        config_path.write_text(json.dumps({"page": {"dpi": 600}, "service": {"api_token": "r8_x"}}))

        result = CliRunner().invoke(config_app, ["show", "--config", str(config_path)])

        assert result.exit_code == 0
        assert "600" in result.output
        assert "configured" in result.output
        assert "r8_x" not in result.output

    def test_show_invalid_file(self, tmp_path):
        config_path = tmp_path / "broken.json"
        config_path.write_text("{")

        result = CliRunner().invoke(config_app, ["show", "--config", str(config_path)])

        assert result.exit_code == 1
