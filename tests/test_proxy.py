# tests/test_proxy.py

from pricecatalog.config import Settings
from pricecatalog.proxy import DIRECT, ProxyPool


def test_round_robin_rotation():
  pool = ProxyPool(["http://p1:8080", "http://p2:8080"])
  assert [pool.next_route() for _ in range(5)] == [
    "http://p1:8080", "http://p2:8080", "http://p1:8080", "http://p2:8080", "http://p1:8080"]


def test_empty_pool_falls_back_to_direct():
  pool = ProxyPool([])
  assert len(pool) == 1
  assert pool.next_route() == DIRECT
  assert pool.next_route() == DIRECT


def test_include_direct_appends_direct_route():
  pool = ProxyPool(["http://p1:8080"], include_direct=True)
  assert pool.routes == ["http://p1:8080", DIRECT]


def test_from_file_skips_comments_and_blank_lines(tmp_path):
  proxy_file = tmp_path / "proxies.txt"
  proxy_file.write_text("# residential\nhttp://p1:8080\n\n  http://p2:8080  \n#http://p3:8080\n", encoding="utf-8")

  pool = ProxyPool.from_file(proxy_file)
  assert pool.routes == ["http://p1:8080", "http://p2:8080"]


def test_from_file_missing_uses_direct(tmp_path):
  pool = ProxyPool.from_file(tmp_path / "missing.txt")
  assert pool.routes == [DIRECT]


def test_from_settings_merges_file_and_list(tmp_path):
  proxy_file = tmp_path / "proxies.txt"
  proxy_file.write_text("http://p1:8080\n", encoding="utf-8")
  settings = Settings(proxy_file=str(proxy_file), proxy_pool="http://p1:8080,http://p2:8080")

  pool = ProxyPool.from_settings(settings)
  assert pool.routes == ["http://p1:8080", "http://p2:8080"]


def test_requests_proxies_mapping():
  assert ProxyPool.as_requests_proxies(DIRECT) is None
  assert ProxyPool.as_requests_proxies("http://p1:8080") == {"http": "http://p1:8080", "https": "http://p1:8080"}
