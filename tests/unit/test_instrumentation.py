#!/usr/bin/env python3
"""
Unit tests for loading and rendering the instrumentation script.
"""

import pytest

from crawler.instrumentation import load_client_script, render_client_script
from runner.config import ConfigurationError


def test_render_substitutes_placeholders():
    template = "setup('%API_ENDPOINT%'); meta.site = '%WEBSITE%';"

    assert render_client_script(template, "https://api.test/p1", "example.com") == (
        "setup('https://api.test/p1'); meta.site = 'example.com';"
    )


def test_load_from_file(tmp_path):
    script = tmp_path / "client.js"
    script.write_text("console.log('%WEBSITE%');")

    assert load_client_script(script) == "console.log('%WEBSITE%');"


def test_load_missing_file(tmp_path):
    with pytest.raises(ConfigurationError):
        load_client_script(tmp_path / "missing.js")


def test_load_from_environment(monkeypatch):
    monkeypatch.setenv("TRACKX_CODE", "init('%API_ENDPOINT%')")

    assert load_client_script() == "init('%API_ENDPOINT%')"


def test_no_script_configured(monkeypatch):
    monkeypatch.delenv("TRACKX_CODE", raising=False)

    with pytest.raises(ConfigurationError, match="TRACKX_CODE"):
        load_client_script()
