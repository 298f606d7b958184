# pricecatalog/proxy.py

from pathlib import Path
from typing import Dict, Iterable, List, Optional

from pricecatalog.logger import get_logger

log = get_logger(__name__)

# Egress without proxy
DIRECT = "direct://"


class ProxyPool:
  """
  Round-robin pool of egress routes.

  Every next_route() call advances the pointer. An empty pool degrades to DIRECT
  instead of failing; include_direct appends DIRECT as the last route of the rotation.
  """

  def __init__(self, routes: Iterable[str] = (), include_direct: bool = False):
    self.routes: List[str] = [r.strip() for r in routes if r and r.strip()]
    if include_direct and DIRECT not in self.routes:
      self.routes.append(DIRECT)
    if not self.routes:
      self.routes = [DIRECT]
    self._index = 0
    log.info(f"[PROXY] Initialized pool with {len(self.routes)} route(s)")

  @classmethod
  def from_file(cls, path, include_direct: bool = False) -> "ProxyPool":
    """One route per line; blank lines and '#' comments are ignored."""
    path = Path(path)
    try:
      lines = path.read_text(encoding="utf-8").splitlines()
    except OSError as e:
      log.error(f"[PROXY] Could not read proxy list {path}: {e}. Using direct connection")
      return cls([], include_direct=include_direct)

    routes = [line.strip() for line in lines if line.strip() and not line.strip().startswith("#")]
    log.info(f"[PROXY] Loaded {len(routes)} route(s) from {path}")
    return cls(routes, include_direct=include_direct)

  @classmethod
  def from_settings(cls, settings) -> "ProxyPool":
    if settings.proxy_file:
      pool = cls.from_file(settings.proxy_file)
      extra = [r for r in settings.proxy_pool if r not in pool.routes]
      if extra:
        return cls([r for r in pool.routes if r != DIRECT] + extra)
      return pool
    return cls(settings.proxy_pool)

  def __len__(self):
    return len(self.routes)

  def next_route(self) -> str:
    route = self.routes[self._index]
    self._index = (self._index + 1) % len(self.routes)
    return route

  @staticmethod
  def as_requests_proxies(route: str) -> Optional[Dict[str, str]]:
    """Map a route to the `proxies` argument of requests; None for DIRECT."""
    if not route or route == DIRECT:
      return None
    return {"http": route, "https": route}
