# pricecatalog/pipeline.py

import json
import time
from pathlib import Path
from typing import Callable, Iterable, List, Optional, Sequence

from pydantic import ValidationError

from pricecatalog.exceptions import FetchError, PayloadError, StoreUnavailableError
from pricecatalog.fetcher import Fetcher
from pricecatalog.logger import get_logger
from pricecatalog.merger import UpsertMerger
from pricecatalog.models import CollectionReport, CollectionUnit, MergeStats

log = get_logger(__name__)


def extract_records(payload, records_key: Optional[str] = None) -> list:
  """
  Locate the raw record array inside a JSON payload.

  Args:
    payload: Decoded JSON document
    records_key (str): Dotted path to the array ('data.products'); None means the payload itself

  Returns:
    list: Raw records
  """
  current = payload
  if records_key:
    for key in records_key.split("."):
      if not isinstance(current, dict) or key not in current:
        raise PayloadError(f"Key '{records_key}' not found in payload")
      current = current[key]
  if not isinstance(current, list):
    raise PayloadError(f"Expected a JSON array of records, got {type(current).__name__}")
  return current


def run_collection(units: Sequence[CollectionUnit], fetcher: Fetcher, merger: UpsertMerger,
                   pause_seconds: float = 5.0, sleep: Callable[[float], None] = time.sleep) -> CollectionReport:
  """
  Fetch and import (source, category) units one after another.

  Units are never processed in parallel; a fixed pause separates consecutive units to
  stay under upstream rate limits. A unit whose fetch fails after retries, or whose
  payload is unusable, fails alone. StoreUnavailableError aborts the run; the error then
  carries the partial report as e.report and its combined counts as e.stats.

  Returns:
    CollectionReport: Unit counts plus the combined MergeStats
  """
  report = CollectionReport(units_total=len(units))
  log.info(f"[COLLECT] Starting collection of {len(units)} unit(s)")

  for idx, unit in enumerate(units):
    label = f"{unit.source}/{unit.category or '-'}"
    if idx > 0 and pause_seconds > 0:
      log.debug(f"[COLLECT] Pausing {pause_seconds}s before {label}")
      sleep(pause_seconds)

    try:
      payload = fetcher.fetch_json(unit.url, params=unit.params or None)
      records = extract_records(payload, unit.records_key)
    except (FetchError, PayloadError) as e:
      report.units_failed += 1
      report.failed_units.append(label)
      log.error(f"[COLLECT] Unit {label} failed: {e}")
      continue

    log.info(f"[COLLECT] Unit {label}: {len(records)} raw records")
    try:
      report.stats.add(merger.import_raw(records, unit.source, unit.category))
    except StoreUnavailableError as e:
      report.stats.add(e.stats)
      e.stats = report.stats
      e.report = report
      s = report.stats
      log.error(f"[COLLECT] Aborted at {label}, store unavailable: created={s.created} updated={s.updated} "
                f"skipped={s.skipped} errors={s.errors}")
      raise

  s = report.stats
  log.info(f"[COLLECT] Finished: {report.units_total - report.units_failed}/{report.units_total} units ok, "
           f"created={s.created} updated={s.updated} skipped={s.skipped} errors={s.errors}")
  return report


def load_records(path) -> list:
  """Read one JSON array file. Empty file -> []."""
  path = Path(path)
  text = path.read_text(encoding="utf-8")
  if not text.strip():
    log.warning(f"[IMPORT] Empty file: {path}")
    return []
  try:
    data = json.loads(text)
  except json.JSONDecodeError as e:
    raise PayloadError(f"Invalid JSON in {path}: {e}")
  return extract_records(data)


def load_units(path) -> List[CollectionUnit]:
  """Read collection unit definitions from a JSON array file."""
  units = []
  for idx, item in enumerate(load_records(path)):
    try:
      units.append(CollectionUnit.model_validate(item))
    except ValidationError as e:
      raise PayloadError(f"Invalid collection unit #{idx + 1} in {path}: {e}")
  return units


def import_file(path, source: str, merger: UpsertMerger, category: Optional[str] = None) -> MergeStats:
  """Import a single (source, category) JSON array file."""
  records = load_records(path)
  log.info(f"[IMPORT] {path}: {len(records)} raw records for source '{source}'")
  return merger.import_raw(records, source, category)


def import_directory(results_dir, merger: UpsertMerger, sources: Iterable[str] = ("arcaplanet", "zooplus"),
                     pause_seconds: float = 0.0, sleep: Callable[[float], None] = time.sleep) -> MergeStats:
  """
  Import every <results_dir>/<source>/*.json file, source by source.
  Files whose name contains 'report' are ignored; a broken file counts as one error.
  """
  results_dir = Path(results_dir)
  stats = MergeStats()
  first = True

  for source in sources:
    source_dir = results_dir / source
    if not source_dir.is_dir():
      log.warning(f"[IMPORT] Directory for {source} not found: {source_dir}")
      continue

    files: List[Path] = sorted(p for p in source_dir.glob("*.json") if "report" not in p.name)
    log.info(f"[IMPORT] Found {len(files)} JSON files in {source_dir}")
    for path in files:
      if not first and pause_seconds > 0:
        sleep(pause_seconds)
      first = False
      try:
        stats.add(import_file(path, source, merger))
      except (PayloadError, OSError) as e:
        stats.errors += 1
        log.error(f"[IMPORT] Could not process {path}: {e}")
      except StoreUnavailableError as e:
        stats.add(e.stats)
        e.stats = stats
        log.error(f"[IMPORT] Directory import aborted at {path}: created={stats.created} "
                  f"updated={stats.updated} skipped={stats.skipped} errors={stats.errors}")
        raise

  log.info(f"[IMPORT] Directory import finished: created={stats.created} updated={stats.updated} "
           f"skipped={stats.skipped} errors={stats.errors}")
  return stats
