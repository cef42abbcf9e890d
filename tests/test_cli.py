import json

import httpx
import pytest

from scraper.search_cache import cli, orchestrator
from scraper.search_cache.config import CrawlConfig
from scraper.search_cache.http_client import make_client


BASE_URL = "https://api.example.test/search/text"


@pytest.fixture
def patched_api(monkeypatch, make_api):
    api = make_api(150)

    def fake_make_client(config):
        return make_client(config, transport=httpx.MockTransport(api.handler))

    monkeypatch.setattr(orchestrator, "make_client", fake_make_client)
    return api


def test_main_writes_cache_and_exits_zero(patched_api, tmp_path, capsys):
    out = tmp_path / "localcache.saver"
    code = cli.main(["--base-url", BASE_URL, "--out", str(out), "--buffer", "memory", "--no-progress"])

    assert code == 0
    docs = json.loads(out.read_text(encoding="utf-8"))["docs"]
    assert docs == patched_api.docs_for(0) + patched_api.docs_for(1)
    assert "Saved 150 documents" in capsys.readouterr().out


def test_main_mentions_failed_pages(patched_api, tmp_path, capsys):
    patched_api.status[1] = 500
    out = tmp_path / "localcache.saver"
    code = cli.main(["--base-url", BASE_URL, "--out", str(out), "--no-progress"])

    assert code == 0
    assert "1 of 2 pages failed" in capsys.readouterr().out


def test_main_probe_failure_exits_one(patched_api, tmp_path):
    patched_api.probe_status = 500
    out = tmp_path / "localcache.saver"
    code = cli.main(["--base-url", BASE_URL, "--out", str(out)])

    assert code == 1
    assert not out.exists()


def test_main_rejects_bad_concurrency(tmp_path):
    assert cli.main(["--concurrency", "0", "--out", str(tmp_path / "x")]) == 2


def test_config_from_env(monkeypatch):
    monkeypatch.setenv("SEARCH_CACHE_PAGE_SIZE", "25")
    monkeypatch.setenv("SEARCH_CACHE_CONCURRENCY", "3")
    config = CrawlConfig.from_env(concurrency=None, buffer="disk")
    assert config.page_size == 25
    assert config.concurrency == 3
    assert config.buffer == "disk"


def test_config_from_env_rejects_garbage(monkeypatch):
    monkeypatch.setenv("SEARCH_CACHE_PAGE_SIZE", "lots")
    with pytest.raises(ValueError, match="SEARCH_CACHE_PAGE_SIZE"):
        CrawlConfig.from_env()


def test_main_survives_page_with_lone_surrogate(patched_api, tmp_path, capsys):
    patched_api.raw[1] = b'{"docs": [{"name": "\\ud800"}]}'
    out = tmp_path / "localcache.saver"
    code = cli.main(["--base-url", BASE_URL, "--out", str(out), "--no-progress"])

    assert code == 0
    assert json.loads(out.read_text(encoding="utf-8"))["docs"] == patched_api.docs_for(0)
    assert "1 of 2 pages failed" in capsys.readouterr().out
