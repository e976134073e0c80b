#!/usr/bin/env python3
"""
Command-line screening against the local sanctions lists

Usage:
    python cli.py "Hama Bande" [--type person] [--country BF --country ML]
                               [--threshold 70] [--data-dir DIR] [--json]

Exit codes: 0 no match, 1 match(es) found, 2 request or data error.
"""

import argparse
import json
import logging
import sys
from typing import List, Optional

from config_manager import ConfigManager, ConfigurationError
from log_utils import configure_logging
from screener import InvalidQueryError, SanctionsScreener, ScreeningStatus
from subjects import DataLoadError

logger = logging.getLogger(__name__)

EXIT_CLEAR = 0
EXIT_HIT = 1
EXIT_ERROR = 2


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="sanctions-screen",
        description="Screen a name against local sanctions lists (fuzzy match on names and aliases)"
    )
    parser.add_argument("name", help="Name of the person or entity to screen")
    parser.add_argument("--type", dest="target", default="both",
                        choices=["person", "entity", "both"],
                        help="Subject type to screen (default: both)")
    parser.add_argument("--country", dest="countries", action="append", metavar="CODE",
                        help="Country list to include; repeat for several (default: all configured)")
    parser.add_argument("--threshold", type=int, default=None,
                        help="Minimum similarity percentage, inclusive (default from config)")
    parser.add_argument("--data-dir", default=None, help="Directory holding the JSON lists")
    parser.add_argument("--config", default=None, help="Path to config.yaml")
    parser.add_argument("--json", action="store_true", help="Print the full result as JSON")
    return parser


def _print_text(result: dict) -> None:
    print(f"Screening: {result['input']['name']}")
    print(f"Lists: {', '.join(result['input']['countries'])} | "
          f"Target: {result['input']['target']} | Threshold: {result['input']['threshold']}%")
    print(f"Subjects scanned: {result['subjects_scanned']}")
    if result['subjects_skipped']:
        print(f"⚠ Malformed subjects skipped: {result['subjects_skipped']}")

    if not result['matches']:
        print("✓ No match")
        return

    print(f"⚠ {result['hit_count']} match(es) detected\n")
    for match in result['matches']:
        via = " (via Alias)" if match['matched_on'] == 'Alias' else ""
        print(f"  {match['score']:>3}%  {match['name']}{via}")
        print(f"        {match['type']} | {match['country_name']} ({match['source_country']}) | ID {match['id']}")
        if match['aliases']:
            print(f"        Aliases: {', '.join(match['aliases'])}")
        if match['designation_expired']:
            print("        Designation end date has passed")
        if match['list_advisory']:
            print(f"        [!] {match['list_advisory']}")


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point"""
    args = build_parser().parse_args(argv)

    try:
        config = ConfigManager(args.config)
    except ConfigurationError as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        return EXIT_ERROR

    configure_logging(config.logging)

    screener = SanctionsScreener(config=config)
    try:
        screener.load(args.data_dir)
    except DataLoadError as e:
        logger.error(f"Could not load sanctions lists: {e}")
        return EXIT_ERROR

    countries = args.countries
    if countries is not None:
        countries = [c.strip().upper() for c in countries if c.strip()]

    try:
        result = screener.screen_name(
            args.name,
            target=args.target,
            countries=countries,
            threshold=args.threshold
        )
    except InvalidQueryError as e:
        print(f"Invalid query ({e.code}): {e}", file=sys.stderr)
        if e.suggestion:
            print(f"  {e.suggestion}", file=sys.stderr)
        return EXIT_ERROR

    if result['status'] == ScreeningStatus.NO_LISTS_SELECTED.value:
        print("No source list selected: select at least one country list.", file=sys.stderr)
        return EXIT_ERROR

    if args.json:
        print(json.dumps(result, indent=2, ensure_ascii=False))
    else:
        _print_text(result)

    return EXIT_HIT if result['is_hit'] else EXIT_CLEAR


if __name__ == "__main__":
    sys.exit(main())
