"""
Command-line screening

Usage:
    aml-screen --blocklist blocklist.yaml check "John Smith" "Jane Doe"
    aml-screen --config config.yaml bulk payments.csv --column sender_name
"""

import argparse
import csv
import json
import logging
import sys
from datetime import datetime, timezone
from typing import List, Optional

from aml_screening.audit_logger import AuditLogger
from aml_screening.blocklist_index import BlockListIndex
from aml_screening.blocklist_source import FileBlockListSource
from aml_screening.config_manager import ConfigManager, ConfigurationError
from aml_screening.engine import BlockDecisionEngine
from aml_screening.log_utils import setup_logging

logger = logging.getLogger(__name__)

EXIT_BLOCKLIST_UNAVAILABLE = 2


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Screen sender names against an AML blocklist")
    parser.add_argument("--config", help="Path to config.yaml")
    parser.add_argument("--blocklist", help="Blocklist file (YAML, JSON or CSV); overrides blocklist.path")
    parser.add_argument("--verbose", "-v", action="store_true", help="Verbose output")

    subparsers = parser.add_subparsers(dest="command", required=True)

    check_parser = subparsers.add_parser("check", help="Screen one or more names")
    check_parser.add_argument("names", nargs="+", help="Sender names to screen")

    bulk_parser = subparsers.add_parser("bulk", help="Screen every row of a CSV file")
    bulk_parser.add_argument("csv_file", help="CSV file with a header row")
    bulk_parser.add_argument("--column", default="sender_name", help="Column holding the sender name")
    bulk_parser.add_argument("--workers", type=int, default=None, help="Worker threads")

    return parser


def _read_names(csv_file: str, column: str) -> List[str]:
    with open(csv_file, 'r', encoding='utf-8', newline='') as f:
        reader = csv.DictReader(f)
        if reader.fieldnames is None or column not in reader.fieldnames:
            raise ValueError(f"Column '{column}' not found in {csv_file}")
        return [row.get(column) or '' for row in reader]


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)

    try:
        config = ConfigManager(args.config)
    except ConfigurationError as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        return 1

    setup_logging(config.logging)
    if args.verbose:
        logging.getLogger().setLevel(logging.DEBUG)

    audit_logger = None
    if config.audit.enabled:
        audit_logger = AuditLogger(
            log_dir=config.audit.log_dir,
            enable_console=config.audit.enable_console,
            enable_file=config.audit.enable_file,
            algorithm_version=config.algorithm.version
        )

    blocklist_path = args.blocklist or config.blocklist.path
    if not blocklist_path:
        logger.error("No blocklist given, use --blocklist or blocklist.path in config.yaml")
        return EXIT_BLOCKLIST_UNAVAILABLE

    index = BlockListIndex(config, audit_logger=audit_logger)
    if index.reload(FileBlockListSource(blocklist_path)) is None:
        logger.error(f"Blocklist could not be loaded from {blocklist_path}")
        return EXIT_BLOCKLIST_UNAVAILABLE

    engine = BlockDecisionEngine(index, config=config, audit_logger=audit_logger)

    if args.command == "check":
        for name in args.names:
            print(json.dumps({'senderName': name, **engine.check_name(name)}, ensure_ascii=False))
        return 0

    try:
        names = _read_names(args.csv_file, args.column)
    except (OSError, ValueError) as e:
        logger.error(f"Cannot read {args.csv_file}: {e}")
        return 1

    logger.info(f"BULK SCREENING - {len(names)} names from {args.csv_file}")
    results = engine.bulk_check(names, max_workers=args.workers)
    snapshot = engine.stats.snapshot()

    summary = {
        'screening_info': {
            'date': datetime.now(timezone.utc).isoformat(),
            'total_screened': len(results),
            'total_blocked': snapshot.total_blocked,
            'generation': index.current().number,
            'algorithm_version': config.algorithm.version
        },
        'results': [
            {'senderName': name, **result.to_dict()} for name, result in zip(names, results)
        ],
        'stats': snapshot.to_dict()
    }
    print(json.dumps(summary, indent=2, ensure_ascii=False))
    return 0


if __name__ == "__main__":
    sys.exit(main())
