import argparse
import curses
import os
import sys

from loguru import logger

import config_paths
from aggregates import BUILTIN_AGGREGATES
from grid_controller import GridController
from grouping_engine import GroupingConfig
from records_loader import RecordsLoader
from selection_state import SELECTION_MODES

# Make ESC snappy
os.environ.setdefault("ESCDELAY", "25")
from orchestrator import Orchestrator

__version__ = "0.1.0"


def _parse_group_by(value: str | None) -> list[str]:
    if not value:
        return []
    return [part.strip() for part in value.split(",") if part.strip()]


def _parse_aggregates(items: list[str] | None) -> dict:
    """Turn ``["amount=sum", "qty=avg"]`` into ``{"amount": "sum", ...}``."""
    aggs = {}
    for item in items or []:
        column, sep, fn = item.partition("=")
        column, fn = column.strip(), fn.strip()
        if not sep or not column or not fn:
            raise ValueError(f"Aggregate must look like column=fn, got {item!r}")
        if fn not in BUILTIN_AGGREGATES:
            raise ValueError(
                f"Unknown aggregate {fn!r} (use {', '.join(BUILTIN_AGGREGATES)})"
            )
        aggs[column] = fn
    return aggs


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="gridstate",
        description="gridstate - grouped, virtualized data grid for the terminal",
    )
    parser.add_argument("path", help=".csv, .parquet or .xlsx file to open")
    parser.add_argument("--group-by", default=None, help="comma separated group columns")
    parser.add_argument(
        "--agg",
        action="append",
        default=[],
        metavar="COLUMN=FN",
        help="aggregate a column in group rows (repeatable)",
    )
    parser.add_argument("--mode", choices=SELECTION_MODES, default=None)
    parser.add_argument("--collapsed", action="store_true", help="start with groups collapsed")
    parser.add_argument("--sort-groups", action="store_true")
    parser.add_argument("--footers", action="store_true", help="show group footer rows")
    parser.add_argument("--subtotals", action="store_true")
    parser.add_argument("--grand-total", action="store_true")
    parser.add_argument("--debug", action="store_true", help="log at DEBUG level")
    parser.add_argument("-v", "--version", action="version", version=__version__)
    return parser


def _setup_logging(debug: bool):
    logger.remove()
    try:
        config_paths.ensure_config_dirs()
    except OSError:
        return
    logger.add(
        config_paths.LOG_PATH,
        level="DEBUG" if debug else "INFO",
        rotation="1 MB",
        retention=3,
    )


def build_controller(args, records, columns) -> GridController:
    cfg = config_paths.load_config()
    if args.mode:
        cfg["SELECTION_MODE"] = args.mode
    grouping = GroupingConfig(
        columns=_parse_group_by(args.group_by),
        aggregates=_parse_aggregates(args.agg),
        default_collapsed=args.collapsed,
        sort_groups=args.sort_groups,
        show_group_footers=args.footers or cfg["SHOW_GROUP_FOOTERS"],
        show_subtotals=args.subtotals,
        show_grand_total=args.grand_total or cfg["SHOW_GRAND_TOTAL"],
    )
    return GridController(records, columns, grouping=grouping, cfg=cfg)


def main(argv=None):
    args = build_parser().parse_args(argv)
    _setup_logging(args.debug)

    try:
        records, columns = RecordsLoader(args.path).load()
        controller = build_controller(args, records, columns)
    except (OSError, ValueError) as exc:
        logger.error("failed to open {}: {}", args.path, exc)
        print(f"Load failed: {exc}", file=sys.stderr)
        sys.exit(1)

    missing = [c for c in controller.engine.config.columns if c not in columns]
    if missing:
        print(f"Unknown group column(s): {', '.join(missing)}", file=sys.stderr)
        sys.exit(1)

    logger.info("opened {} ({} records, {} columns)", args.path, len(records), len(columns))

    def curses_main(stdscr):
        Orchestrator(stdscr, controller, args.path).run()

    curses.wrapper(curses_main)


if __name__ == "__main__":
    main()
