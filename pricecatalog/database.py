# pricecatalog/database.py

import os
from contextlib import contextmanager
from sqlalchemy.exc import DisconnectionError, InterfaceError, OperationalError
from sqlalchemy.pool import StaticPool
from sqlmodel import SQLModel, create_engine, Session
from pricecatalog.exceptions import StoreUnavailableError
from pricecatalog.logger import get_logger

log = get_logger(__name__)

# Errors meaning "no further writes are possible"
CONNECTIVITY_ERRORS = (OperationalError, InterfaceError, DisconnectionError)

IN_MEMORY_URLS = ("sqlite://", "sqlite:///:memory:")


class Database:
  """
  Explicit store handle. One per run, passed into every component.

  Args:
    url (str): SQLAlchemy database url
    echo (bool): Echo SQL statements
  """

  def __init__(self, url: str, echo: bool = False):
    self.url = url
    kwargs = {}
    if url.startswith("sqlite"):
      kwargs["connect_args"] = {"check_same_thread": False}
      # In-memory databases live as long as their single connection
      if url in IN_MEMORY_URLS:
        kwargs["poolclass"] = StaticPool
    self.engine = create_engine(url, echo=echo, **kwargs)

  def init_schema(self):
    """Creates catalog tables if missing"""
    from pricecatalog import db_models  # noqa: F401  (registers tables on SQLModel.metadata)

    if self.url.startswith("sqlite:///") and self.url not in IN_MEMORY_URLS:
      # Ensure the db directory exists
      db_dir = os.path.dirname(self.url[len("sqlite:///"):])
      if db_dir:
        os.makedirs(db_dir, exist_ok=True)

    try:
      SQLModel.metadata.create_all(self.engine, checkfirst=True)
    except CONNECTIVITY_ERRORS as e:
      log.error(f"[STORE] Could not initialize schema on {self._safe_url()}: {e}")
      raise StoreUnavailableError(f"Store unavailable: {e}") from e
    log.info(f"Initialized catalog database ({self._safe_url()})")

  @contextmanager
  def session(self):
    """
    Scoped session: rolled back on error, always closed.
    Connectivity failures surface as StoreUnavailableError.
    """
    session = Session(self.engine, expire_on_commit=False)
    try:
      yield session
    except CONNECTIVITY_ERRORS as e:
      try:
        session.rollback()
      except CONNECTIVITY_ERRORS:
        log.debug("[STORE] Rollback impossible, connection already lost")
      log.error(f"[STORE] Store unavailable: {e}")
      raise StoreUnavailableError(f"Store unavailable: {e}") from e
    except Exception:
      session.rollback()
      raise
    finally:
      session.close()

  def dispose(self):
    self.engine.dispose()
    log.debug(f"Disposed engine for {self._safe_url()}")

  def _safe_url(self) -> str:
    return self.engine.url.render_as_string(hide_password=True)


@contextmanager
def open_database(url: str, echo: bool = False):
  """Acquire the store for one run and release it on completion or fatal error."""
  database = Database(url, echo=echo)
  try:
    database.init_schema()
    yield database
  finally:
    database.dispose()
