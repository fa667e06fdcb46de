#!/usr/bin/env python3
"""
E/M Level Service - Command Line Calculator

Determine the E/M office visit level from history, exam and MDM complexity,
or let the language model rate the complexities from a visit transcript.

Usage:
    python em_cli.py --history detailed --exam detailed --mdm moderate
    python em_cli.py --file transcript.txt     # AI-assisted (needs ANTHROPIC_API_KEY)
    python em_cli.py --levels                  # Show the E/M reference table
"""

import argparse
import json
import logging
import sys
from pathlib import Path

from app.services.em_classifier import (
    EMClassification,
    UnrecognizedComplexityError,
    complexity_options,
    get_em_classifier_service,
)
from app.services.em_inference import (
    EMInferenceError,
    EncounterContext,
    get_em_inference_service,
)

# ============================================================================
# Display Functions
# ============================================================================

class Colors:
    """ANSI color codes for terminal output."""
    CYAN = '\033[96m'
    GREEN = '\033[92m'
    YELLOW = '\033[93m'
    RED = '\033[91m'
    BOLD = '\033[1m'
    END = '\033[0m'
    GRAY = '\033[90m'

def print_header(text: str, char: str = "="):
    """Print a formatted header."""
    width = 60
    print()
    print(f"{Colors.BOLD}{Colors.CYAN}{char * width}{Colors.END}")
    print(f"{Colors.BOLD}{Colors.CYAN}{text.center(width)}{Colors.END}")
    print(f"{Colors.BOLD}{Colors.CYAN}{char * width}{Colors.END}")

def print_item(label: str, value: str, indent: int = 2):
    """Print a labeled item."""
    spaces = " " * indent
    print(f"{spaces}{Colors.GRAY}{label}:{Colors.END} {value}")

def print_warning(text: str):
    """Print warning message."""
    print(f"  {Colors.YELLOW}!{Colors.END} {text}")

def print_error(text: str):
    """Print error message."""
    print(f"  {Colors.RED}✗{Colors.END} {text}", file=sys.stderr)

def display_classification(classification: EMClassification, reasoning: str | None = None):
    """Print a classification result."""
    info = classification.info
    print_header(f"E/M LEVEL {classification.code.value}")
    print_item("Level", f"{Colors.GREEN}{info.name}{Colors.END}")
    print_item("Requirement", info.description)
    for axis, rank in classification.ranks.items():
        print_item(f"{axis.upper()} rank", str(rank))
    print_item("Determining rank (2 of 3)", str(classification.determining_rank))
    if reasoning:
        print_item("Reasoning", reasoning)
    for axis in classification.unrecognized:
        print_warning(f"Unrecognized {axis} complexity, counted as the lowest rank")
    print()

def display_levels():
    """Print the E/M reference table and accepted values."""
    print_header("E/M OFFICE VISIT LEVELS")
    for info in get_em_classifier_service().get_levels():
        print_item(f"{info.code.value} {info.name}", f"{info.description} (wRVU {info.work_rvu:.2f})")

    print()
    for axis, values in complexity_options().items():
        print_item(axis.upper(), ", ".join(values))
    print()

# ============================================================================
# Main Entry Point
# ============================================================================

def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(
        description="E/M Level Service - Command Line Calculator",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python em_cli.py --history detailed --exam detailed --mdm moderate
  python em_cli.py --history comprehensive --mdm high --json
  python em_cli.py --file transcript.txt --chief-complaint "chest pain"
  python em_cli.py --levels
"""
    )
    parser.add_argument('--history', help='History complexity')
    parser.add_argument('--exam', help='Exam complexity')
    parser.add_argument('--mdm', help='Medical decision making complexity')
    parser.add_argument('--strict', action='store_true', help='Reject unrecognized complexity values')
    parser.add_argument('--file', '-f', help='Transcript file for AI-assisted inference')
    parser.add_argument('--chief-complaint', help='Chief complaint (AI-assisted mode)')
    parser.add_argument('--levels', '-l', action='store_true', help='Show the E/M reference table')
    parser.add_argument('--json', action='store_true', help='Print the result as JSON')
    parser.add_argument('--verbose', '-v', action='store_true', help='Enable debug logging')

    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    if args.levels:
        display_levels()
        return 0

    reasoning = None
    if args.file:
        path = Path(args.file)
        if not path.exists():
            print_error(f"File not found: {args.file}")
            return 1

        context = EncounterContext(
            transcript=path.read_text(encoding="utf-8", errors="replace"),
            chief_complaint=args.chief_complaint,
        )
        try:
            result = get_em_inference_service().infer(context)
        except EMInferenceError as e:
            print_error(str(e))
            return 2
        classification = result.classification
        reasoning = result.reasoning
    else:
        try:
            classification = get_em_classifier_service().classify(
                args.history, args.exam, args.mdm, strict=args.strict
            )
        except UnrecognizedComplexityError as e:
            print_error(str(e))
            return 2

    if args.json:
        payload = classification.to_dict()
        if reasoning:
            payload["reasoning"] = reasoning
        print(json.dumps(payload, indent=2))
    else:
        display_classification(classification, reasoning)
    return 0

if __name__ == "__main__":
    sys.exit(main())
