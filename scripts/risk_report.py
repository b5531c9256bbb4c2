#!/usr/bin/env python3
"""CLI script for generating company risk reports.

Usage:
    # Score and persist a report for one company
    python scripts/risk_report.py --company 3f2b1c9e-...

    # Score every active company without persisting
    python scripts/risk_report.py --all-active --dry-run

    # Show the stored report history for a company
    python scripts/risk_report.py --company 3f2b1c9e-... --history
"""

import argparse
import json
import logging
import sys
from uuid import UUID

# Add project root to path
sys.path.insert(0, str(__file__).rsplit("/", 2)[0])

from crowdledger.core.exceptions import CrowdLedgerError
from crowdledger.db import get_session_context
from crowdledger.domain import CompanyOperations, RiskReportOperations
from crowdledger.workflows import RiskAnalysisService, RiskAssessment


# ANSI color codes
class Colors:
    GREEN = "\033[92m"
    YELLOW = "\033[93m"
    RED = "\033[91m"
    BLUE = "\033[94m"
    BOLD = "\033[1m"
    RESET = "\033[0m"


LEVEL_COLORS = {
    "LOW": Colors.GREEN,
    "MODERATE": Colors.YELLOW,
    "HIGH": Colors.RED,
    "VERY HIGH": Colors.RED,
}


def print_header(text: str) -> None:
    print(f"\n{Colors.BOLD}{Colors.BLUE}{'=' * 60}{Colors.RESET}")
    print(f"{Colors.BOLD}{Colors.BLUE}{text}{Colors.RESET}")
    print(f"{Colors.BOLD}{Colors.BLUE}{'=' * 60}{Colors.RESET}\n")


def print_error(text: str) -> None:
    print(f"{Colors.RED}✗ {text}{Colors.RESET}")


def print_assessment(name: str, score: int, level: str, deductions: list) -> None:
    color = LEVEL_COLORS.get(level, "")
    print(f"\n{Colors.BOLD}{name}{Colors.RESET}: {color}{score} ({level}){Colors.RESET}")
    for d in deductions:
        print(f"  -{d['points']:>3}  {d['factor']}: {d['reason']}")


def setup_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Generate company risk reports",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__,
    )
    target = parser.add_mutually_exclusive_group(required=True)
    target.add_argument("--company", type=UUID, help="Company to score")
    target.add_argument("--all-active", action="store_true", help="Score every active company")

    parser.add_argument("--dry-run", action="store_true", help="Score without persisting reports")
    parser.add_argument("--history", action="store_true", help="Show stored reports instead of scoring")
    parser.add_argument("--verbose", "-v", action="store_true", help="Enable verbose logging")
    parser.add_argument("--json", action="store_true", help="Output results as JSON")
    return parser.parse_args()


def _assessment_dict(company_id: UUID, assessment: RiskAssessment) -> dict:
    return {
        "company_id": str(company_id),
        "risk_score": assessment.score,
        "risk_level": assessment.level,
        "deductions": [d.to_dict() for d in assessment.deductions],
    }


def main() -> int:
    args = parse_args()
    setup_logging(args.verbose)

    try:
        with get_session_context() as session:
            if args.history:
                if not args.company:
                    print_error("--history requires --company")
                    return 1
                reports = RiskReportOperations.get_history(session, args.company)
                output = [
                    {
                        "created_at": r.created_at.isoformat(),
                        "risk_score": r.risk_score,
                        "risk_level": r.risk_level,
                    }
                    for r in reports
                ]
                if args.json:
                    print(json.dumps(output, indent=2))
                else:
                    print_header(f"Risk History - {args.company}")
                    for row in output:
                        print(f"  {row['created_at']}  {row['risk_score']:>3}  {row['risk_level']}")
                return 0

            if args.all_active:
                companies = CompanyOperations.get_active(session)
            else:
                companies = [CompanyOperations.get_or_raise(session, args.company)]

            service = RiskAnalysisService(session)
            output = []
            for company in companies:
                if args.dry_run:
                    row = _assessment_dict(company.id, service.assess(company.id))
                else:
                    report = service.generate_report(company.id)
                    row = {
                        "company_id": str(company.id),
                        "risk_score": report.risk_score,
                        "risk_level": report.risk_level,
                        "deductions": report.factors["deductions"],
                    }
                row["name"] = company.name
                output.append(row)

            if args.json:
                print(json.dumps(output, indent=2))
            else:
                print_header("Risk Reports" + (" (dry run)" if args.dry_run else ""))
                for row in output:
                    print_assessment(row["name"], row["risk_score"], row["risk_level"], row["deductions"])

    except KeyboardInterrupt:
        print_error("\nInterrupted by user")
        return 130
    except CrowdLedgerError as e:
        print_error(f"{e.code}: {e}")
        return 1

    return 0


if __name__ == "__main__":
    sys.exit(main())
