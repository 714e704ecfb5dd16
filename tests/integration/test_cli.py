"""
CLI Integration Tests
=====================

The click commands driven through CliRunner, with feeds served by a mocked
aiohttp session and configuration read from Config.toml in the working
directory.
"""

import json
import logging
from contextlib import asynccontextmanager
from unittest.mock import patch

import pytest
from click.testing import CliRunner

from dailyfeed.ingestion.feed_fetcher import FeedFetcher
from dailyfeed.utils.process_lock import CacheLock
from main import cli
from tests.helpers import make_session, rss_feed

pytestmark = pytest.mark.integration

URL = "https://valid.example.com/rss"


@pytest.fixture(autouse=True)
def reset_dailyfeed_logger():
    yield
    logging.getLogger("dailyfeed").handlers.clear()


@pytest.fixture
def config_toml(tmp_path):
    def _write(sources):
        quoted = ", ".join(f'"{url}"' for url in sources)
        (tmp_path / "Config.toml").write_text(
            f'site_title = "CLI Digest"\n'
            f'cache_max_days = 7\n'
            f'target_dir = "{tmp_path / "target"}"\n'
            f'sources = [{quoted}]\n'
        )
        return tmp_path / "target" / "cache.json"

    return _write


@pytest.fixture
def served_feeds():
    session = make_session({URL: (200, rss_feed("Valid", "http://v", 2))})

    @asynccontextmanager
    async def fake_session(self):
        yield session

    with patch.object(FeedFetcher, "get_session", fake_session):
        yield session


class TestCheckConfig:
    def test_valid_configuration(self, config_toml):
        config_toml([URL])

        result = CliRunner().invoke(cli, ["check-config"])

        assert result.exit_code == 0
        assert "All configuration checks passed" in result.output

    def test_no_sources_fails(self, config_toml):
        config_toml([])

        result = CliRunner().invoke(cli, ["check-config"])

        assert result.exit_code == 1

    def test_invalid_configuration(self, tmp_path):
        (tmp_path / "Config.toml").write_text('sources = ["ftp://nope"]\n')

        result = CliRunner().invoke(cli, ["check-config"])

        assert result.exit_code == 1
        assert "Configuration error" in result.output


class TestBuild:
    def test_build_writes_artifact(self, config_toml, served_feeds):
        cache_path = config_toml([URL])

        result = CliRunner().invoke(cli, ["build"])

        assert result.exit_code == 0, result.output
        data = json.loads(cache_path.read_text())
        assert data["site_title"] == "CLI Digest"
        assert data["days"][0]["channels"][0]["link"] == URL
        assert not CacheLock(cache_path).lock_file.exists()

    def test_build_refuses_when_locked(self, config_toml, served_feeds):
        cache_path = config_toml([URL])
        holder = CacheLock(cache_path)
        holder.acquire()
        try:
            result = CliRunner().invoke(cli, ["build"])
        finally:
            holder.release()

        assert result.exit_code == 1
        assert not cache_path.exists()

    def test_build_target_is_a_file(self, config_toml, served_feeds, tmp_path):
        config_toml([URL])
        (tmp_path / "target").write_text("a file where the directory should be")

        result = CliRunner().invoke(cli, ["build"])

        assert result.exit_code == 1


class TestShow:
    def test_show_built_cache(self, config_toml, served_feeds):
        config_toml([URL])
        CliRunner().invoke(cli, ["build"])

        result = CliRunner().invoke(cli, ["show"])

        assert result.exit_code == 0
        assert "Valid" in result.output

    def test_show_missing_file(self, tmp_path):
        result = CliRunner().invoke(cli, ["show", str(tmp_path / "nothing.json")])

        assert result.exit_code == 1

    def test_show_malformed_file(self, tmp_path):
        path = tmp_path / "cache.json"
        path.write_text("not json")

        result = CliRunner().invoke(cli, ["show", str(path)])

        assert result.exit_code == 1
