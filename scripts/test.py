#!/usr/bin/env python3
"""Test runner script for TableKeeper.

Wraps pytest with marker selection and optional coverage reporting.
"""

import argparse
import subprocess
import sys
from pathlib import Path
from typing import List, Optional

PROJECT_ROOT = Path(__file__).resolve().parent.parent


def run_command(cmd: List[str], *, cwd: Optional[Path] = None) -> int:
    """Run command and return exit code."""
    print(f"Running: {' '.join(cmd)}")
    result = subprocess.run(cmd, cwd=cwd)
    return result.returncode


def run_tests(
    test_type: str = "all",
    *,
    coverage: bool = False,
    verbose: bool = False,
    fail_fast: bool = False,
    html_report: bool = False,
) -> int:
    """Run tests with specified configuration.

    Args:
        test_type: Marker to select (all, unit, integration, database)
        coverage: Enable coverage reporting
        verbose: Enable verbose output
        fail_fast: Stop on first failure
        html_report: Also write an HTML coverage report

    Returns:
        Exit code from pytest
    """
    cmd = [sys.executable, "-m", "pytest"]

    if test_type != "all":
        cmd.extend(["-m", test_type])

    if coverage:
        cmd.extend([
            "--cov=tablekeeper",
            "--cov-report=term-missing:skip-covered",
            "--cov-report=xml:coverage.xml",
        ])
        if html_report:
            cmd.append("--cov-report=html:htmlcov")

    if verbose:
        cmd.append("-v")

    if fail_fast:
        cmd.append("-x")

    cmd.append("--durations=10")

    return run_command(cmd, cwd=PROJECT_ROOT)


def main() -> int:
    """Main test runner function."""
    parser = argparse.ArgumentParser(
        description="TableKeeper test runner",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  %(prog)s                          # Run all tests
  %(prog)s --type unit              # Run unit tests only
  %(prog)s --type database -v       # Run database boundary tests verbosely
  %(prog)s --coverage --html        # Run with coverage and HTML report
        """
    )

    parser.add_argument(
        "--type", "-t",
        choices=["all", "unit", "integration", "database"],
        default="all",
        help="Type of tests to run (default: all)"
    )
    parser.add_argument(
        "--coverage", "-c",
        action="store_true",
        help="Enable coverage reporting"
    )
    parser.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Enable verbose output"
    )
    parser.add_argument(
        "--fail-fast", "-x",
        action="store_true",
        help="Stop on first failure"
    )
    parser.add_argument(
        "--html",
        action="store_true",
        help="Generate HTML coverage report"
    )

    args = parser.parse_args()

    return run_tests(
        test_type=args.type,
        coverage=args.coverage,
        verbose=args.verbose,
        fail_fast=args.fail_fast,
        html_report=args.html,
    )


if __name__ == "__main__":
    sys.exit(main())
