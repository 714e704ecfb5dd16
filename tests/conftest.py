"""
PyTest Configuration and Fixtures
=================================

Shared fixtures for DailyFeed tests.
"""

import os
import sys
from pathlib import Path

import pytest

# Add project root to Python path
sys.path.insert(0, str(Path(__file__).parent.parent))


@pytest.fixture(autouse=True)
def isolated_environment(monkeypatch, tmp_path):
    """Keep host DAILYFEED_* variables and config files out of every test."""
    for key in list(os.environ):
        if key.upper().startswith("DAILYFEED_"):
            monkeypatch.delenv(key, raising=False)
    monkeypatch.chdir(tmp_path)

    from dailyfeed.config import settings as settings_module
    monkeypatch.setattr(settings_module, "_settings", None)


@pytest.fixture
def make_settings(tmp_path):
    """Factory for settings writing into a per-test target directory."""
    from dailyfeed.config.settings import DailyFeedSettings

    def _make(**overrides):
        values = {
            "sources": [],
            "cache_max_days": 7,
            "site_title": "Test Site",
            "target_dir": str(tmp_path / "target"),
        }
        values.update(overrides)
        return DailyFeedSettings(**values)

    return _make
