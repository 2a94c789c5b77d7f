from __future__ import annotations

import argparse
import json
import sys
from pathlib import Path

import psycopg2
from dotenv import load_dotenv

from price_ingest.archive.dispatcher import ARCHIVE_KINDS, ArchiveError
from price_ingest.config.loader import DEFAULT_CONFIG_PATH, ConfigError, load_config
from price_ingest.db.connection import db_connection
from price_ingest.db.schema import ensure_schema
from price_ingest.logging.error_log import ErrorLogBuffer
from price_ingest.logging.init import log_summary, set_debug, setup_logging
from price_ingest.models.config_models import AppConfig
from price_ingest.models.export_filters import FilterError, parse_export_filters
from price_ingest.parsing.records import SchemaError
from price_ingest.services.exporter import export_zip
from price_ingest.services.importer import PersistenceError, import_candidates, load_archive, read_candidates
from price_ingest.services.summary import render_summary_fields

"""CLI entrypoint.

Commands:
- import ARCHIVE [--type zip|tar]   import prices, print the result as JSON
- export [--start --end --min --max] [-o FILE]   write data.zip
- inspect ARCHIVE [--type zip|tar]  parse only, no database
- init-db                           create table / constraint / indexes

Exit codes: 0 success, 1 fatal (config / database), 2 rejected input.
"""

EXIT_SUCCESS = 0
EXIT_FATAL = 1
EXIT_INPUT_ERROR = 2

INSPECT_SAMPLE_ROWS = 3


def _load_env_file(path: Path, override: bool = True) -> None:
    """Load .env with python-dotenv; its values win over the process environment."""
    if path.exists():
        load_dotenv(dotenv_path=path, override=override)


def _archive_kind(value: str) -> str:
    kind = value.strip().lower()
    if kind not in ARCHIVE_KINDS:
        raise argparse.ArgumentTypeError("type must be 'zip' or 'tar'")
    return kind


def _parse_args(argv: list[str]) -> argparse.Namespace:
    p = argparse.ArgumentParser(prog="price_ingest", description="Price archive importer / exporter")
    p.add_argument("--config", type=Path, default=DEFAULT_CONFIG_PATH, help="YAML config path")
    p.add_argument("--debug", action="store_true", help="Enable debug logging")
    sub = p.add_subparsers(dest="command", required=True)

    imp = sub.add_parser("import", help="Import a zip / tar / tar.gz archive holding one CSV")
    imp.add_argument("archive", type=Path)
    imp.add_argument("--type", dest="kind", type=_archive_kind, default="zip", help="zip (default) or tar")

    exp = sub.add_parser("export", help="Export stored prices as data.csv inside a zip")
    exp.add_argument("--start", help="YYYY-MM-DD, inclusive")
    exp.add_argument("--end", help="YYYY-MM-DD, inclusive")
    exp.add_argument("--min", help="minimum price, whole units, inclusive")
    exp.add_argument("--max", help="maximum price, whole units, inclusive")
    exp.add_argument("-o", "--output", type=Path, default=Path("data.zip"))

    ins = sub.add_parser("inspect", help="Print the CSV entry, columns and first rows (no database)")
    ins.add_argument("archive", type=Path)
    ins.add_argument("--type", dest="kind", type=_archive_kind, default="zip")

    sub.add_parser("init-db", help="Create the prices table if missing")
    return p.parse_args(argv)


def _check_upload(path: Path, cfg: AppConfig) -> str | None:
    """Return an error message when the archive cannot be accepted."""
    if not path.is_file():
        return f"archive not found: {path}"
    size = path.stat().st_size
    if size == 0:
        return "empty archive"
    limit = cfg.import_settings.max_upload_bytes
    if size > limit:
        return f"archive too large: {size} bytes > {cfg.import_settings.max_upload_mb} MB"
    return None


def _cmd_import(args: argparse.Namespace, cfg: AppConfig, logger) -> int:
    problem = _check_upload(args.archive, cfg)
    if problem:
        logger.error(f"import: {problem}")
        return EXIT_INPUT_ERROR

    error_log = ErrorLogBuffer(cfg.logs_directory)
    try:
        # read the archive first: a rejected upload exits 2 even when the database is down
        with args.archive.open("rb") as src:
            entry_name, outcome = load_archive(
                src,
                args.kind,
                encoding=cfg.import_settings.encoding,
                error_log=error_log,
                archive_name=args.archive.name,
            )
        with db_connection(cfg.database) as conn:
            result = import_candidates(conn, entry_name, outcome, page_size=cfg.import_settings.page_size)
    except (ArchiveError, SchemaError) as e:
        logger.error(f"import: {e}")
        return EXIT_INPUT_ERROR
    except PersistenceError as e:
        logger.error(f"import: {e}")
        return EXIT_FATAL
    except psycopg2.Error as e:
        logger.error(f"database: {e}")
        return EXIT_FATAL
    finally:
        log_path = error_log.flush()
        if log_path is not None:
            logger.info(f"error log written: {log_path}")

    print(json.dumps(result.to_dict()))
    log_summary(render_summary_fields(result))
    return EXIT_SUCCESS


def _cmd_export(args: argparse.Namespace, cfg: AppConfig, logger) -> int:
    try:
        filters = parse_export_filters(
            {"start": args.start, "end": args.end, "min": args.min, "max": args.max}
        )
    except FilterError as e:
        logger.error(f"export: {e}")
        return EXIT_INPUT_ERROR

    try:
        with db_connection(cfg.database) as conn:
            payload = export_zip(conn, filters)
    except PersistenceError as e:
        logger.error(f"export: {e}")
        return EXIT_FATAL
    except psycopg2.Error as e:
        logger.error(f"database: {e}")
        return EXIT_FATAL

    args.output.write_bytes(payload)
    logger.info(f"export written: {args.output} ({len(payload)} bytes)")
    return EXIT_SUCCESS


def _cmd_inspect(args: argparse.Namespace, cfg: AppConfig, logger) -> int:
    problem = _check_upload(args.archive, cfg)
    if problem:
        print(f"inspect: {problem}")
        return EXIT_INPUT_ERROR
    try:
        with args.archive.open("rb") as src:
            entry_name, outcome = read_candidates(src, args.kind, encoding=cfg.import_settings.encoding)
    except (ArchiveError, SchemaError) as e:
        print(f"inspect: {e}")
        return EXIT_INPUT_ERROR

    print(f"ENTRY: {entry_name} cols={outcome.columns}")
    print(f"  records={outcome.total_count} valid={len(outcome.records)} rejected={len(outcome.rejections)}")
    for rec in outcome.records[:INSPECT_SAMPLE_ROWS]:
        print(f"  line={rec.line_number} {rec.name!r} {rec.category!r} {rec.price_decimal} {rec.create_date.isoformat()}")
    for rej in outcome.rejections[:INSPECT_SAMPLE_ROWS]:
        print(f"  rejected line={rej.line} {rej.error_type}: {rej.message}")
    return EXIT_SUCCESS


def _cmd_init_db(args: argparse.Namespace, cfg: AppConfig, logger) -> int:
    try:
        with db_connection(cfg.database) as conn:
            ensure_schema(conn)
    except psycopg2.Error as e:
        logger.error(f"database: {e}")
        return EXIT_FATAL
    return EXIT_SUCCESS


_COMMANDS = {
    "import": _cmd_import,
    "export": _cmd_export,
    "inspect": _cmd_inspect,
    "init-db": _cmd_init_db,
}


def main(argv: list[str] | None = None) -> int:
    logger = setup_logging()

    # NOTE: only read sys.argv when argv is None so tests can pass [] safely.
    if argv is None:
        argv = sys.argv[1:]
    args = _parse_args(argv)
    # .env first so that its DB settings take precedence
    _load_env_file(Path(".env"), override=True)

    if args.debug:
        set_debug(logger)

    try:
        cfg = load_config(args.config)
    except ConfigError as e:
        logger.error(f"config: {e}")
        return EXIT_FATAL

    return _COMMANDS[args.command](args, cfg, logger)


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
