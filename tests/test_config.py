# python
"""
tests/test_config.py
Configuration layering: defaults, settings file, APP_* environment, overrides.
"""
from pathlib import Path

import pytest

from doorway.__main__ import main
from doorway.config import DEFAULT_CONFIG, ConfigError, load_config, merge


@pytest.fixture(autouse=True)
def _isolated_cwd(tmp_path, monkeypatch):
    # keep a stray settings.toml or .env in the repo from leaking in
    monkeypatch.chdir(tmp_path)


def test_defaults():
    config = load_config(environ={})
    assert config == DEFAULT_CONFIG
    assert config is not DEFAULT_CONFIG


def test_environment_overrides_defaults():
    config = load_config(
        environ={"APP_HOST": "127.0.0.1", "APP_PORT": "7878", "APP_LOG_LEVEL": "debug"}
    )
    assert config["server"] == {"host": "127.0.0.1", "port": 7878}
    assert config["log_level"] == "DEBUG"
    assert config["addresses_filename"] == "addresses.toml"


def test_settings_file_then_env_then_overrides(tmp_path: Path):
    settings = tmp_path / "gateway.toml"
    settings.write_text(
        'addresses_filename = "books/main.toml"\n'
        "[server]\nport = 2424\n"
        "[relay]\nconnect_timeout = 3\n",
        encoding="utf-8",
    )
    config = load_config(
        settings,
        overrides={"server": {"host": "::"}},
        environ={"APP_CONNECT_TIMEOUT": "4.5"},
    )
    assert config["addresses_filename"] == "books/main.toml"
    assert config["server"] == {"host": "::", "port": 2424}
    assert config["relay"]["connect_timeout"] == 4.5


def test_default_settings_file_is_optional_but_used(tmp_path: Path):
    (tmp_path / "settings.toml").write_text("[server]\nport = 9000\n", encoding="utf-8")
    assert load_config(environ={})["server"]["port"] == 9000


@pytest.mark.parametrize(
    "environ",
    [
        {"APP_PORT": "telnet"},
        {"APP_PORT": "70000"},
        {"APP_CONNECT_TIMEOUT": "0"},
        {"APP_LOG_LEVEL": "chatty"},
        {"APP_MAX_LINE_LENGTH": "0"},
    ],
)
def test_bad_values_raise(environ):
    with pytest.raises(ConfigError):
        load_config(environ=environ)


def test_explicit_settings_file_must_exist(tmp_path: Path):
    with pytest.raises(ConfigError):
        load_config(tmp_path / "missing.toml", environ={})


def test_merge_is_deep_and_copies():
    base = {"server": {"host": "a", "port": 1}}
    merged = merge(base, {"server": {"port": 2}})
    assert merged == {"server": {"host": "a", "port": 2}}
    assert base["server"]["port"] == 1


def test_cli_reports_config_errors(capsys):
    assert main(["--port", "70000"]) == 1
    assert "port out of range" in capsys.readouterr().err


def test_line_limit_from_environment():
    config = load_config(environ={"APP_MAX_LINE_LENGTH": "512"})
    assert config["limits"]["max_line_length"] == 512
