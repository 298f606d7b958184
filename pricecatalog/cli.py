# pricecatalog/cli.py

import argparse
import sys
from typing import List, Optional

from pricecatalog.config import Settings, get_settings
from pricecatalog.database import open_database
from pricecatalog.exceptions import PayloadError, StoreUnavailableError
from pricecatalog.fetcher import Fetcher
from pricecatalog.logger import configure_logging, get_logger
from pricecatalog.maintenance import data_quality_report, reclassify_pet_types, remove_product
from pricecatalog.merger import UpsertMerger
from pricecatalog.normalizer import available_sources
from pricecatalog.pipeline import import_directory, import_file, load_units, run_collection
from pricecatalog.relationships import RelationshipStore
from pricecatalog.resolver import run_resolver

log = get_logger(__name__)

EXIT_OK = 0
EXIT_FAILURE = 1


def build_parser() -> argparse.ArgumentParser:
  parser = argparse.ArgumentParser(
    prog="pricecatalog",
    description="Pet product catalog: import source listings, resolve similar products across stores.")
  parser.add_argument("--database-url", help="Override CATALOG_DATABASE_URL")
  sub = parser.add_subparsers(dest="command", required=True)

  p_import = sub.add_parser("import", help="Import JSON array files of one source")
  p_import.add_argument("source", choices=available_sources())
  p_import.add_argument("files", nargs="+")
  p_import.add_argument("--category", help="Category of the records when they carry none")

  p_dir = sub.add_parser("import-dir", help="Import <dir>/<source>/*.json for every source")
  p_dir.add_argument("results_dir")
  p_dir.add_argument("--sources", nargs="+", default=available_sources(), choices=available_sources())

  p_collect = sub.add_parser("collect", help="Fetch and import the collection units listed in a JSON file")
  p_collect.add_argument("units_file")

  p_resolve = sub.add_parser("resolve", help="Rebuild the similar products graph")
  p_resolve.add_argument("--threshold", type=float, help="Override CATALOG_SIMILARITY_THRESHOLD")

  sub.add_parser("reclassify", help="Recompute pet types for the whole catalog")
  sub.add_parser("quality", help="Print a data quality report")

  p_remove = sub.add_parser("remove", help="Remove one product and its edges")
  p_remove.add_argument("product_id", type=int)

  p_similar = sub.add_parser("similar", help="List products similar to one product")
  p_similar.add_argument("product_id", type=int)
  p_similar.add_argument("--by", choices=["similarity", "price_difference"], default="similarity")
  p_similar.add_argument("--limit", type=int, default=10)
  return parser


def _print_stats(title: str, stats):
  print(f"{title}: " + ", ".join(f"{k}={v}" for k, v in stats.model_dump().items()))


def run_command(args, settings: Settings) -> int:
  with open_database(args.database_url or settings.database_url) as database:
    if args.command == "import":
      merger = UpsertMerger(database, batch_size=settings.merge_batch_size)
      for path in args.files:
        stats = import_file(path, args.source, merger, category=args.category)
        _print_stats(f"Imported {path}", stats)

    elif args.command == "import-dir":
      merger = UpsertMerger(database, batch_size=settings.merge_batch_size)
      stats = import_directory(args.results_dir, merger, sources=args.sources,
                               pause_seconds=settings.source_pause_s)
      _print_stats("Imported", stats)

    elif args.command == "collect":
      units = load_units(args.units_file)
      merger = UpsertMerger(database, batch_size=settings.merge_batch_size)
      report = run_collection(units, Fetcher.from_settings(settings), merger,
                              pause_seconds=settings.source_pause_s)
      _print_stats("Collected", report.stats)
      print(f"Units failed: {report.units_failed}/{report.units_total}")

    elif args.command == "resolve":
      threshold = args.threshold if args.threshold is not None else settings.similarity_threshold
      stats = run_resolver(database, threshold=threshold)
      _print_stats("Resolved", stats)
      print(f"Edges written: {stats.edges_written}")

    elif args.command == "reclassify":
      counts = reclassify_pet_types(database)
      print("Pet types: " + ", ".join(f"{k}={v}" for k, v in counts.items()))

    elif args.command == "quality":
      _print_stats("Quality", data_quality_report(database))

    elif args.command == "remove":
      if not remove_product(database, args.product_id):
        print(f"Product {args.product_id} not found")
        return EXIT_FAILURE
      print(f"Removed product {args.product_id}")

    elif args.command == "similar":
      edges = RelationshipStore(database).edges_for(args.product_id, order_by=args.by, limit=args.limit)
      for edge in edges:
        print(f"{edge.similar_product_id}\tsimilarity={edge.similarity:.2f}\t"
              f"difference={edge.price_difference:.2f}\tratio={edge.price_ratio:.2f}")
  return EXIT_OK


def main(argv: Optional[List[str]] = None) -> int:
  args = build_parser().parse_args(argv)
  configure_logging()
  settings = get_settings()
  log.info(f"[CLI] Running '{args.command}'")

  try:
    return run_command(args, settings)
  except StoreUnavailableError as e:
    log.error(f"[CLI] Store unavailable, run aborted: {e}", exc_info=True)
    print(f"Store unavailable: {e}", file=sys.stderr)
    if e.stats is not None:
      _print_stats("Partial counts", e.stats)
    if e.report is not None:
      print(f"Units failed: {e.report.units_failed}/{e.report.units_total}")
  except (PayloadError, OSError) as e:
    log.error(f"[CLI] Input error: {e}")
    print(f"Input error: {e}", file=sys.stderr)
  return EXIT_FAILURE


if __name__ == "__main__":
  sys.exit(main())
