# pricecatalog/logger.py

import logging
from logging.handlers import RotatingFileHandler
import os
import re
import sys
import json
from datetime import datetime, timezone

# Leading component tag of a message: "[MERGE] Completed ..." -> "MERGE"
tag_pattern = re.compile(r"^\[([A-Z]+)\]")

# APP_ENV -> (root level, file name, file level, max bytes, backups)
LOG_PROFILES = {
  "testing": (logging.DEBUG, "test.log", logging.DEBUG, 1*1024*1024, 1),
  "development": (logging.DEBUG, "app.log", logging.INFO, 5*1024*1024, 3),
  "production": (logging.INFO, "app.log", logging.INFO, 5*1024*1024, 3),
}

LOG_DIR = os.getenv("CATALOG_LOG_DIR", "logs")


class JsonFormatter(logging.Formatter):
  """One JSON object per record, with the pipeline component tag split out."""

  def format(self, record):
    message = record.getMessage()
    tag = tag_pattern.match(message)
    log_record = {
      "timestamp": datetime.now(timezone.utc).isoformat(),
      "level": record.levelname,
      "logger": record.name,
      "component": tag.group(1) if tag else None,
      "message": message,
      "file": record.pathname,
      "line": record.lineno,
      "function": record.funcName,
    }

    if record.exc_info:
      log_record["exception"] = self.formatException(record.exc_info)

    return json.dumps(log_record, default=str)


json_formatter = JsonFormatter()


def configure_logging(log_dir: str = None):
  """
  Configure the root logger for the current APP_ENV (unknown values use 'production').
  Console only receives ERROR records; everything else goes to a rotating JSON file.
  """
  env = os.getenv("APP_ENV", "development")
  root_level, file_name, file_level, max_bytes, backups = LOG_PROFILES.get(env, LOG_PROFILES["production"])

  log_dir = log_dir or LOG_DIR
  os.makedirs(log_dir, exist_ok=True)

  logger = logging.getLogger()
  logger.setLevel(root_level)
  if logger.hasHandlers():
    logger.handlers.clear()

  console_handler = logging.StreamHandler(sys.stdout)
  console_handler.setFormatter(json_formatter)
  console_handler.setLevel(logging.ERROR)
  logger.addHandler(console_handler)

  file_handler = RotatingFileHandler(os.path.join(log_dir, file_name), maxBytes=max_bytes,
                                     backupCount=backups, encoding="utf-8")
  file_handler.setFormatter(json_formatter)
  file_handler.setLevel(file_level)
  logger.addHandler(file_handler)


def get_logger(name):
  """
  Returns a logger object with specific name.
  Call configure_logging() once at the entry point before relying on handlers.
  """
  return logging.getLogger(name)
