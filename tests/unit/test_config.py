#!/usr/bin/env python3
"""
Unit tests for configuration loading and run option validation.
"""

import json

import pytest

from runner.config import (
    DEFAULT_SCHEMA_PATH,
    ConfigurationError,
    RunOptions,
    load_config,
    validate_run_options,
)


@pytest.fixture
def clean_env(monkeypatch):
    for key in ("ROOT_DIR", "DB_PATH", "DB_SQL_PATH", "API_ENDPOINT", "CLIENT_SCRIPT_PATH", "CONFIG_PATH"):
        monkeypatch.delenv(key, raising=False)


def write_config(path, **values):
    path.write_text(json.dumps(values))
    return path


def test_load_config_resolves_paths(tmp_path, monkeypatch, clean_env):
    monkeypatch.chdir(tmp_path)
    write_config(
        tmp_path / "crawler.config.json",
        ROOT_DIR="work",
        DB_PATH="data/crawler.db",
        API_ENDPOINT="https://api.example.com/p1/",
        CLIENT_SCRIPT_PATH="client.js",
    )

    config = load_config()

    assert config.db_path == (tmp_path / "work" / "data" / "crawler.db").resolve()
    assert config.client_script_path == (tmp_path / "work" / "client.js").resolve()
    assert config.db_sql_path == DEFAULT_SCHEMA_PATH
    assert config.api_endpoint == "https://api.example.com/p1"


def test_environment_overrides_file(tmp_path, monkeypatch, clean_env):
    monkeypatch.chdir(tmp_path)
    config_file = write_config(
        tmp_path / "custom.json",
        DB_PATH="crawler.db",
        API_ENDPOINT="https://file.example.com",
    )
    monkeypatch.setenv("API_ENDPOINT", "https://env.example.com")

    config = load_config(str(config_file))

    assert config.api_endpoint == "https://env.example.com"
    assert config.client_script_path is None


def test_config_path_from_environment(tmp_path, monkeypatch, clean_env):
    monkeypatch.chdir(tmp_path)
    write_config(tmp_path / "other.json", DB_PATH="x.db", API_ENDPOINT="https://a.test")
    monkeypatch.setenv("CONFIG_PATH", "other.json")

    assert load_config().db_path == (tmp_path / "x.db").resolve()


def test_missing_config_file(tmp_path, monkeypatch, clean_env):
    monkeypatch.chdir(tmp_path)

    with pytest.raises(ConfigurationError, match="not found"):
        load_config()


def test_invalid_json(tmp_path, monkeypatch, clean_env):
    monkeypatch.chdir(tmp_path)
    (tmp_path / "crawler.config.json").write_text("{not json")

    with pytest.raises(ConfigurationError, match="not valid JSON"):
        load_config()


def test_missing_required_keys(tmp_path, monkeypatch, clean_env):
    monkeypatch.chdir(tmp_path)
    write_config(tmp_path / "crawler.config.json", DB_PATH="crawler.db")

    with pytest.raises(ConfigurationError, match="API_ENDPOINT"):
        load_config()


def test_default_run_options_are_valid():
    options = RunOptions()

    assert options.validate() == []
    assert validate_run_options(options) is options
    assert options.timeout_ms == 30000


def test_run_options_collects_every_problem():
    options = RunOptions(
        browser="opera",
        depth=-1,
        max_sites=0,
        timeout=-5,
        parallel=0,
        order="desc",
        block="yes",
    )

    errors = options.validate()

    assert errors == [
        "Browser must be one of firefox, chromium, webkit",
        "Depth must be a number greater than or equal to 0",
        "Max must be a number greater than 0",
        "Timeout must be a number greater than or equal to 0",
        "Parallel must be a number greater than 0",
        "Block must be a boolean",
        'Order must be "asc" or "random"',
    ]

    with pytest.raises(ConfigurationError) as exc_info:
        validate_run_options(options)
    assert str(exc_info.value) == "; ".join(errors)


def test_run_options_rejects_bool_and_float_numbers():
    assert RunOptions(parallel=True).validate() == ["Parallel must be a number greater than 0"]
    assert RunOptions(depth=1.5).validate() == ["Depth must be a number greater than or equal to 0"]


def test_unlimited_max_is_valid():
    assert RunOptions(max_sites=None).validate() == []


def test_snapshot(crawler_config):
    options = RunOptions(depth=3, max_sites=100, parallel=5, order="random")

    assert options.snapshot(crawler_config) == {
        "API_ENDPOINT": "https://api.example.com/p1",
        "config": "crawler.config.json",
        "browser": "firefox",
        "block": False,
        "debug": False,
        "depth": 3,
        "max": 100,
        "order": "random",
        "parallel": 5,
        "restart": False,
        "timeout": 30,
    }
