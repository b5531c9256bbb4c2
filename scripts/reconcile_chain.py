#!/usr/bin/env python3
"""CLI script for reconciling the ledger with the company registry contract.

Usage:
    # Verify one company's linked token
    python scripts/reconcile_chain.py --verify 3f2b1c9e-...

    # Verify every linked but unverified company
    python scripts/reconcile_chain.py --verify-all

    # Mint and link a token for an unlinked company
    python scripts/reconcile_chain.py --link 3f2b1c9e-...

    # Resolve submitted transactions whose confirmation was never observed
    python scripts/reconcile_chain.py --sweep --limit 100

    # JSON output
    python scripts/reconcile_chain.py --sweep --json
"""

import argparse
import json
import logging
import sys
from datetime import datetime
from uuid import UUID

# Add project root to path
sys.path.insert(0, str(__file__).rsplit("/", 2)[0])

from crowdledger.core.config import settings
from crowdledger.core.exceptions import CrowdLedgerError
from crowdledger.db import get_session_context
from crowdledger.domain import CompanyOperations
from crowdledger.services import BlockchainMirror
from crowdledger.workflows import ChainReconciler, ReconciliationResult, SweepResult


# ANSI color codes
class Colors:
    GREEN = "\033[92m"
    YELLOW = "\033[93m"
    RED = "\033[91m"
    BLUE = "\033[94m"
    CYAN = "\033[96m"
    BOLD = "\033[1m"
    RESET = "\033[0m"


def print_header(text: str) -> None:
    """Print a formatted section header."""
    print(f"\n{Colors.BOLD}{Colors.BLUE}{'=' * 60}{Colors.RESET}")
    print(f"{Colors.BOLD}{Colors.BLUE}{text}{Colors.RESET}")
    print(f"{Colors.BOLD}{Colors.BLUE}{'=' * 60}{Colors.RESET}\n")


def print_success(text: str) -> None:
    print(f"{Colors.GREEN}✓ {text}{Colors.RESET}")


def print_warning(text: str) -> None:
    print(f"{Colors.YELLOW}⚠ {text}{Colors.RESET}")


def print_error(text: str) -> None:
    print(f"{Colors.RED}✗ {text}{Colors.RESET}")


def print_info(text: str) -> None:
    print(f"{Colors.CYAN}ℹ {text}{Colors.RESET}")


def print_reconciliation(result: ReconciliationResult) -> None:
    color = Colors.GREEN if result.state.value == "linked_verified" else Colors.YELLOW
    print(f"  {result.company_id}  {color}{result.state.value:18}{Colors.RESET}  "
          f"token={result.token_id or '-'}  {result.message}")


def print_sweep(result: SweepResult) -> None:
    print(f"\n{Colors.BOLD}Sweep Results:{Colors.RESET}")
    print(f"  Total:         {result.total}")
    print(f"  Confirmed:     {Colors.GREEN}{result.confirmed}{Colors.RESET}")
    print(f"  Reverted:      {result.reverted}")
    print(f"  Booked late:   {result.booked}")
    print(f"  Still pending: {result.still_pending}")
    print(f"  Failed:        {Colors.RED if result.failed > 0 else ''}{result.failed}{Colors.RESET if result.failed > 0 else ''}")

    if result.errors:
        print(f"\n  {Colors.RED}Errors (first 5):{Colors.RESET}")
        for error in result.errors[:5]:
            print(f"    - {error}")


def setup_logging(verbose: bool) -> None:
    """Configure logging."""
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )
    # Reduce noise from external libraries
    logging.getLogger("urllib3").setLevel(logging.WARNING)
    logging.getLogger("requests").setLevel(logging.WARNING)


def parse_args() -> argparse.Namespace:
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(
        description="Reconcile ledger linkage with the company registry contract",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__,
    )

    action = parser.add_mutually_exclusive_group(required=True)
    action.add_argument("--verify", type=UUID, metavar="COMPANY_ID", help="Verify one company")
    action.add_argument("--verify-all", action="store_true", help="Verify every linked, unverified company")
    action.add_argument("--link", type=UUID, metavar="COMPANY_ID", help="Mint and link a token for a company")
    action.add_argument("--sweep", action="store_true", help="Resolve pending chain transactions")

    parser.add_argument("--limit", type=int, help="Max transactions to sweep")
    parser.add_argument("--verbose", "-v", action="store_true", help="Enable verbose logging")
    parser.add_argument("--json", action="store_true", help="Output results as JSON")

    return parser.parse_args()


def main() -> int:
    """Main entry point."""
    args = parse_args()
    setup_logging(args.verbose)

    mirror = BlockchainMirror.from_settings(settings)
    if mirror is None:
        print_error("CHAIN_GATEWAY_URL and CHAIN_CONTRACT_ADDRESS must be set")
        return 1

    if not args.json:
        print_header("Chain Reconciliation")
        print_info(f"Started at: {datetime.now().strftime('%Y-%m-%d %H:%M:%S')}")

    exit_code = 0
    try:
        with get_session_context() as session:
            reconciler = ChainReconciler(session, mirror)

            if args.sweep:
                result = reconciler.sweep_pending(limit=args.limit)
                if args.json:
                    print(json.dumps(result.to_dict(), indent=2))
                else:
                    print_sweep(result)
                exit_code = 0 if result.failed == 0 else 1

            else:
                if args.verify_all:
                    company_ids = [c.id for c in CompanyOperations.get_linked_unverified(session)]
                    if not args.json:
                        print_info(f"Companies to verify: {len(company_ids)}")
                    results = []
                    for company_id in company_ids:
                        try:
                            results.append(reconciler.verify_company(company_id))
                        except CrowdLedgerError as e:
                            print_warning(f"{company_id}: {e}")
                            exit_code = 1
                elif args.link:
                    results = [reconciler.link_company(args.link)]
                else:
                    results = [reconciler.verify_company(args.verify)]

                if args.json:
                    print(json.dumps([r.to_dict() for r in results], indent=2))
                else:
                    for result in results:
                        print_reconciliation(result)

    except KeyboardInterrupt:
        print_warning("\nInterrupted by user")
        return 130
    except CrowdLedgerError as e:
        print_error(f"{e.code}: {e}")
        return 1
    except Exception as e:
        print_error(f"Fatal error: {e}")
        if args.verbose:
            import traceback
            traceback.print_exc()
        return 1
    finally:
        mirror.close()

    if not args.json:
        print_success(f"Completed at: {datetime.now().strftime('%Y-%m-%d %H:%M:%S')}")
    return exit_code


if __name__ == "__main__":
    sys.exit(main())
