"""
Command-line interface for leadsync.

Usage:
    python -m leadsync.cli.sync_cli import [--input-dir DIR] [options]
    python -m leadsync.cli.sync_cli backfill [--input-dir DIR] [options]
    python -m leadsync.cli.sync_cli sweep [--dry-run] [options]
"""

import argparse
import sys
from pathlib import Path

from leadsync.core.errors import AuthenticationError, MappingConfigError, RemoteUnavailable, SourceReadError
from leadsync.core.mapping import FieldMappingLoader, PayloadBuilder, build_resolver
from leadsync.core.models import FieldMappingConfig, SyncMode
from leadsync.dedup import BulkDedupSweep
from leadsync.ingest import CsvRecordSource, IngestPipeline, Reconciler
from leadsync.observability import metrics
from leadsync.observability.logger import get_logger, setup_logger, ROOT_LOGGER_NAME
from leadsync.remote.client import PodioClient
from leadsync.remote.detector import DuplicateDetector
from leadsync.settings import SyncSettings

logger = get_logger(__name__)


def load_settings(args) -> SyncSettings:
    """Load settings from the environment and apply command-line overrides."""
    settings = SyncSettings.from_env(args.env_file)
    overrides = {}
    if getattr(args, "input_dir", None) is not None:
        overrides["input_dir"] = Path(args.input_dir)
    if args.mapping is not None:
        overrides["field_mapping"] = Path(args.mapping)
    if getattr(args, "max_workers", None) is not None:
        overrides["max_workers"] = args.max_workers
    if getattr(args, "max_in_flight", None) is not None:
        overrides["max_in_flight"] = args.max_in_flight
    # model_copy skips validation
    return SyncSettings.model_validate({**settings.model_dump(), **overrides})


def load_mapping(settings: SyncSettings) -> tuple[SyncSettings, FieldMappingConfig]:
    """Load the field mapping; its app_id stands in when PODIO_APP_ID is unset."""
    mapping = FieldMappingLoader(settings.field_mapping).load()
    return settings.with_mapping_app_id(mapping.app_id), mapping


def connect(settings: SyncSettings) -> PodioClient:
    """Create the Podio client and authenticate once for the whole run."""
    client = PodioClient(settings.credentials, base_url=settings.base_url, timeout_s=settings.timeout_s)
    client.authenticate()
    return client


def ingest_command(args, mode: SyncMode) -> int:
    """
    Execute an import or backfill run over the input directory.

    Args:
        args: Command-line arguments
        mode: IMPORT or BACKFILL

    Returns:
        Process exit code
    """
    settings = load_settings(args)
    settings, mapping = load_mapping(settings)
    client = connect(settings)

    resolver = build_resolver(mapping)
    detector = DuplicateDetector(client, match_limit=args.match_limit, fail_closed=args.fail_closed)
    reconciler = Reconciler(client, detector, resolver, PayloadBuilder(mapping), mode=mode)
    pipeline = IngestPipeline(
        reconciler,
        source=CsvRecordSource(delimiter=args.delimiter),
        max_workers=settings.max_workers,
        max_in_flight=settings.max_in_flight,
    )

    logger.info(f"Starting {mode.value} run", extra={"input_dir": str(settings.input_dir)})
    summary = pipeline.run(settings.input_dir)
    return 0 if summary.files_failed == 0 else 1


def sweep_command(args) -> int:
    """
    Execute the bulk dedup sweep.

    Args:
        args: Command-line arguments

    Returns:
        Process exit code
    """
    settings = load_settings(args)
    settings, mapping = load_mapping(settings)
    client = connect(settings)

    detector = DuplicateDetector(client, page_size=args.page_size)
    sweep = BulkDedupSweep(client, detector, build_resolver(mapping))
    result = sweep.run(dry_run=args.dry_run)

    logger.info("=" * 60)
    logger.info("SWEEP COMPLETE")
    logger.info("=" * 60)
    logger.info(f"Items scanned: {result.scanned}")
    logger.info(f"Duplicate groups: {result.groups}")
    logger.info(f"Duplicates found: {result.duplicates}")
    logger.info(f"Deleted: {result.deleted}")
    logger.info(f"Delete failed: {result.delete_failed}")
    if result.failed_ids:
        logger.info(f"Failed item ids: {result.failed_ids}")
    if result.dry_run:
        logger.info("DRY RUN: nothing was deleted")
    logger.info("=" * 60)
    return 0 if result.delete_failed == 0 else 1


def _add_common_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--mapping",
        help="Path to field mapping YAML (default: bundled mapping or LEADSYNC_FIELD_MAPPING)"
    )
    parser.add_argument(
        "--env-file",
        default=None,
        help="Path to a .env file with PODIO_* credentials"
    )


def _add_ingest_arguments(parser: argparse.ArgumentParser) -> None:
    _add_common_arguments(parser)
    parser.add_argument(
        "--input-dir",
        help="Directory containing CSV files (default: ./paste_csv_here or LEADSYNC_INPUT_DIR)"
    )
    parser.add_argument(
        "--delimiter",
        default=",",
        help="Field delimiter (default: ,)"
    )
    parser.add_argument(
        "--max-workers",
        type=int,
        help="Worker threads per file (default: 8)"
    )
    parser.add_argument(
        "--max-in-flight",
        type=int,
        help="Rows dispatched but not finished, per file (default: 32)"
    )
    parser.add_argument(
        "--match-limit",
        type=int,
        default=30,
        help="Maximum matches fetched per duplicate lookup (default: 30)"
    )
    parser.add_argument(
        "--fail-closed",
        action="store_true",
        help="Mark a row failed when the duplicate lookup fails, instead of creating it"
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="leadsync",
        description="Sync CSV leads into Podio without creating duplicates",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Initial import: create new items, skip addresses that already exist
  leadsync import --input-dir ./paste_csv_here

  # Backfill phone numbers onto items that already exist
  leadsync backfill --input-dir ./paste_csv_here

  # List duplicate items without deleting them
  leadsync sweep --dry-run

  # Delete every non-canonical duplicate
  leadsync sweep
        """
    )
    parser.add_argument(
        "--log-level",
        default=None,
        help="Log level (default: LOG_LEVEL or INFO)"
    )
    parser.add_argument(
        "--log-format",
        choices=["json", "text"],
        default=None,
        help="Log format (default: LOG_FORMAT or json)"
    )
    parser.add_argument(
        "--metrics-port",
        type=int,
        default=None,
        help="Expose Prometheus metrics on this port while running"
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    import_parser = subparsers.add_parser("import", help="Create items for new rows, skip existing ones")
    _add_ingest_arguments(import_parser)

    backfill_parser = subparsers.add_parser("backfill", help="Merge backfill fields onto existing items")
    _add_ingest_arguments(backfill_parser)

    sweep_parser = subparsers.add_parser("sweep", help="Delete duplicate items across the whole app")
    _add_common_arguments(sweep_parser)
    sweep_parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Report duplicates without deleting them"
    )
    sweep_parser.add_argument(
        "--page-size",
        type=int,
        default=100,
        help="Items fetched per page during the scan (default: 100)"
    )

    return parser


def main(argv: list[str] | None = None) -> int:
    """Main CLI entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        return 1

    if args.log_level or args.log_format:
        setup_logger(ROOT_LOGGER_NAME, level=args.log_level, format_type=args.log_format)

    if args.metrics_port:
        metrics.start_metrics_server(args.metrics_port)

    try:
        if args.command == "import":
            return ingest_command(args, SyncMode.IMPORT)
        if args.command == "backfill":
            return ingest_command(args, SyncMode.BACKFILL)
        return sweep_command(args)
    except (ValueError, FileNotFoundError, MappingConfigError) as e:
        logger.error(f"Configuration error: {e}")
    except AuthenticationError as e:
        logger.error(f"Error authenticating with Podio: {e}")
    except SourceReadError as e:
        logger.error(f"Error listing input files: {e}")
    except RemoteUnavailable as e:
        logger.error(f"Remote store unavailable: {e}")
    return 1


if __name__ == "__main__":
    sys.exit(main())
