"""Command-line interface for the rss_startpage application."""

from __future__ import annotations

import argparse
import dataclasses
import logging
import pprint
from pathlib import Path
from typing import List, Optional

from .config import AppConfig, parse_app_config
from .runner import RunConfig, execute

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    """Create the CLI argument parser."""
    parser = argparse.ArgumentParser(
        description="Aggregate the feeds of your start page."
    )
    parser.add_argument(
        "--config",
        default=None,
        help="Path to the configuration XML file. Defaults are used when omitted.",
    )
    parser.add_argument(
        "--database",
        default=None,
        help="SQLAlchemy connection string. Overrides config.",
    )
    parser.add_argument(
        "--log-level",
        default=None,
        help="Logging level (e.g. DEBUG, INFO, WARNING). Overrides config.",
    )
    parser.add_argument(
        "--log-file",
        default=None,
        help="Optional path to a log file. Overrides config.",
    )
    parser.add_argument("--page", default=None, help="Only aggregate this page id.")
    parser.add_argument(
        "--refresh",
        action="store_true",
        help="Ignore cached results and fetch every source again.",
    )
    parser.add_argument(
        "--source", default=None, help="Only show items from this source name."
    )
    parser.add_argument(
        "--favorites", action="store_true", help="Only show favourite items."
    )
    parser.add_argument("--unread", action="store_true", help="Only show unread items.")
    parser.add_argument(
        "--import-opml",
        metavar="PATH",
        help="Import feed pages from an OPML file before aggregating. Overrides config.",
    )
    parser.add_argument(
        "--export-widgets",
        metavar="PATH",
        help="Write the widgets, without live data, to PATH as JSON.",
    )
    return parser


def configure_logging(level_name: str, log_file: Optional[str] = None) -> None:
    """Initialise logging according to options."""
    log_level = getattr(logging, level_name.upper(), None)
    if not isinstance(log_level, int):
        raise ValueError(f"Unsupported log level: {level_name}")

    formatter = logging.Formatter("%(asctime)s %(levelname)s %(name)s: %(message)s")

    root_logger = logging.getLogger()
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)
        handler.close()

    root_logger.setLevel(log_level)

    stream_handler = logging.StreamHandler()
    stream_handler.setFormatter(formatter)
    root_logger.addHandler(stream_handler)

    if log_file:
        log_path = Path(log_file)
        if log_path.parent and not log_path.parent.exists():
            log_path.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_path, encoding="utf-8")
        file_handler.setFormatter(formatter)
        root_logger.addHandler(file_handler)
        logger.debug(
            "Logger initialised with level %s and file output to %s",
            level_name.upper(),
            log_path,
        )
    else:
        logger.debug(
            "Logger initialised with console output at level %s", level_name.upper()
        )


def main(argv: Optional[List[str]] = None) -> int:
    """CLI entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)

    try:
        app_config = parse_app_config(args.config) if args.config else AppConfig()

        log_level = args.log_level or app_config.logging.level
        log_file = args.log_file or app_config.logging.file
        configure_logging(log_level, log_file)

        config = RunConfig(
            connection_string=args.database or app_config.database.connection_string,
            page_id=args.page,
            refresh=args.refresh,
            ttl_ms=app_config.cache.ttl_ms,
            timeout=app_config.fetch.timeout,
            concurrency=app_config.fetch.concurrency,
            user_agent=app_config.fetch.user_agent,
            theme=app_config.theme,
            feeds_file=args.import_opml or app_config.feeds_file,
            source_filter=args.source,
            favorites_only=args.favorites,
            unread_only=args.unread,
            export_widgets_path=args.export_widgets,
        )

        logger.debug("Active Configuration:\n%s", pprint.pformat(dataclasses.asdict(config)))

        result = execute(config)
    except ValueError as exc:
        parser.error(str(exc))
    except (RuntimeError, FileNotFoundError) as exc:
        logger.error("%s", exc)
        return 1
    except Exception:  # noqa: BLE001
        logger.exception("Unexpected error during execution.")
        return 1

    print(result.output_text)
    return 0
