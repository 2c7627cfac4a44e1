"""Unit tests for launch option parsing and project init."""

from __future__ import annotations

import pytest
import yaml

from depot.cli import OPTIONS, init_project, main, parse_args, render_help
from depot.errors import InvalidArgumentError


class TestParseArgs:
    def test_defaults(self):
        options = parse_args([])

        assert options.init is False
        assert options.port is None
        assert options.hostname is None
        assert options.help is False

    @pytest.mark.parametrize(
        "argv",
        [["--port", "9000"], ["-p", "9000"], ["--port=9000"]],
    )
    def test_port_forms(self, argv):
        assert parse_args(argv).port == 9000

    def test_hostname_and_flags(self):
        options = parse_args(["-H", "127.0.0.1", "--init"])

        assert options.hostname == "127.0.0.1"
        assert options.init is True

    def test_positional_collected(self):
        assert parse_args(["serve"]).extra == ["serve"]

    @pytest.mark.parametrize(
        "argv",
        [["--bogus"], ["--port"], ["--port", "http"], ["--init=yes"]],
    )
    def test_invalid(self, argv):
        with pytest.raises(InvalidArgumentError):
            parse_args(argv)


def test_help_lists_every_option():
    text = render_help()

    for option in OPTIONS:
        for name in option.names:
            assert name in text
        assert option.description in text


def test_main_help(capsys):
    assert main(["--help"]) == 0
    assert "--hostname" in capsys.readouterr().out


def test_main_rejects_unknown_option(capsys):
    assert main(["--nope"]) == 2
    assert "Unknown option" in capsys.readouterr().err


def test_init_project(tmp_path, monkeypatch):
    monkeypatch.delenv("DEPOT_STORAGE__ROOT_PATH", raising=False)
    monkeypatch.delenv("DEPOT_DATABASE__URL", raising=False)

    created = init_project(tmp_path)

    assert (tmp_path / "data" / "repos").is_dir()
    config = yaml.safe_load((tmp_path / "config.yaml").read_text())
    assert config["server"]["port"] == 8080
    assert config["storage"]["root_path"] == "./data/repos"
    assert tmp_path / "config.yaml" in created

    # Second run leaves everything in place
    (tmp_path / "config.yaml").write_text("server:\n  port: 9999\n")
    assert init_project(tmp_path) == []
    assert "9999" in (tmp_path / "config.yaml").read_text()
