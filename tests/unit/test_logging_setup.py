#!/usr/bin/env python3
"""
Unit tests for logging setup.
"""

import logging

import pytest

from runner.logging_setup import ROOT_LOGGER_NAME, get_logger, resolve_log_level, setup_logging


@pytest.fixture(autouse=True)
def reset_logging():
    yield
    setup_logging()


def test_verbose_forces_debug(tmp_path):
    setup_logging(log_level="WARNING", log_file=tmp_path / "crawler.log", verbose=True)

    assert get_logger("scheduler").getEffectiveLevel() == logging.DEBUG


def test_level_from_environment(tmp_path, monkeypatch):
    monkeypatch.setenv("LOG_LEVEL", "warning")

    setup_logging(log_file=tmp_path / "crawler.log")

    assert logging.getLogger(ROOT_LOGGER_NAME).level == logging.WARNING


def test_unknown_level_falls_back_to_info():
    assert resolve_log_level("LOUD") == logging.INFO


def test_module_loggers_write_to_shared_file(tmp_path):
    log_file = tmp_path / "crawler.log"
    setup_logging(log_level="INFO", log_file=log_file)

    logger = get_logger("unit_test")
    logger.info("hello from a module")
    logger.debug("not written at INFO")

    assert logger.name == f"{ROOT_LOGGER_NAME}.unit_test"
    assert not logger.handlers
    content = log_file.read_text()
    assert f"{ROOT_LOGGER_NAME}.unit_test - INFO - hello from a module" in content
    assert "not written" not in content


def test_setup_replaces_handlers(tmp_path):
    setup_logging(log_file=tmp_path / "one.log")
    root = setup_logging(log_file=tmp_path / "two.log")

    assert len(root.handlers) == 2


def test_log_dir_from_environment(tmp_path, monkeypatch):
    monkeypatch.setenv("LOG_DIR", str(tmp_path / "custom"))

    setup_logging()

    assert (tmp_path / "custom" / "crawler.log").exists()
