#!/usr/bin/env python3
"""CLI script for recomputing company aggregates from investment and milestone rows.

Usage:
    # Rebuild every company
    python scripts/rebuild_aggregates.py

    # Rebuild one company
    python scripts/rebuild_aggregates.py --company 3f2b1c9e-...

    # Create missing tables first
    python scripts/rebuild_aggregates.py --create-tables
"""

import argparse
import logging
import sys
from uuid import UUID

# Add project root to path
sys.path.insert(0, str(__file__).rsplit("/", 2)[0])

from crowdledger.db import create_tables, get_db_session, verify_connection
from crowdledger.domain import ValuationLedger


# ANSI color codes
class Colors:
    GREEN = "\033[92m"
    YELLOW = "\033[93m"
    RED = "\033[91m"
    BLUE = "\033[94m"
    BOLD = "\033[1m"
    RESET = "\033[0m"


def print_header(text: str) -> None:
    print(f"\n{Colors.BOLD}{Colors.BLUE}{'=' * 60}{Colors.RESET}")
    print(f"{Colors.BOLD}{Colors.BLUE}{text}{Colors.RESET}")
    print(f"{Colors.BOLD}{Colors.BLUE}{'=' * 60}{Colors.RESET}\n")


def print_success(text: str) -> None:
    print(f"{Colors.GREEN}✓ {text}{Colors.RESET}")


def print_error(text: str) -> None:
    print(f"{Colors.RED}✗ {text}{Colors.RESET}")


def setup_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Recompute total_investment, investor_count and milestone_count",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__,
    )
    parser.add_argument("--company", type=UUID, help="Only rebuild this company")
    parser.add_argument("--create-tables", action="store_true", help="Create missing tables first")
    parser.add_argument("--verbose", "-v", action="store_true", help="Enable verbose logging")
    return parser.parse_args()


def main() -> int:
    args = parse_args()
    setup_logging(args.verbose)

    print_header("Rebuild Ledger Aggregates")

    try:
        verify_connection()
        if args.create_tables:
            create_tables()

        with get_db_session() as session:
            updated = ValuationLedger.rebuild_aggregates(session, company_id=args.company)
    except KeyboardInterrupt:
        print_error("\nInterrupted by user")
        return 130
    except Exception as e:
        print_error(f"Fatal error: {e}")
        return 1

    print_success(f"Rebuilt aggregates for {updated} compan{'y' if updated == 1 else 'ies'}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
