# safe_harbor/cli.py

"""Command-line interface for redacting clinical text files."""

import argparse
import json
import logging
import sys
from dataclasses import asdict
from typing import List, Optional

from safe_harbor.core.domain import RedactionOptions
from safe_harbor.core.exceptions import RedactionError
from safe_harbor.logging_config import configure_logging
from safe_harbor.service.compliance import validate_compliance
from safe_harbor.service.config import ComplianceConfigStore, settings
from safe_harbor.service.pipeline import redact

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_ERROR = 1
EXIT_NOT_COMPLIANT = 2


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="safe-harbor",
        description="Redact HIPAA Safe Harbor identifiers from clinical text",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  %(prog)s note.txt
  cat note.txt | %(prog)s --json
  %(prog)s --compliance

Logs are written as JSON to stderr; redacted text goes to stdout.
        """,
    )
    parser.add_argument("input", nargs="?", help="Input text file (reads stdin when omitted)")
    parser.add_argument("-o", "--output", help="Write the redacted text to this file")
    parser.add_argument("--json", action="store_true", help="Print the full redaction result as JSON")
    parser.add_argument("--preserve-years", action="store_true", help="Keep the year of redacted dates")
    parser.add_argument(
        "--redact-all-ages",
        action="store_true",
        help="Also redact ages of 89 and below",
    )
    parser.add_argument(
        "--compliance",
        action="store_true",
        help="Check the HIPAA_* environment configuration and exit",
    )
    parser.add_argument("--log-level", default=None, help="Override SAFE_HARBOR_LOG_LEVEL")
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    configure_logging(args.log_level or settings.log_level, stream=sys.stderr)

    if args.compliance:
        result = validate_compliance(ComplianceConfigStore.get_instance().get())
        print(json.dumps(asdict(result), indent=2))
        return EXIT_OK if result.compliant else EXIT_NOT_COMPLIANT

    try:
        if args.input:
            with open(args.input, encoding="utf-8") as f:
                text = f.read()
        else:
            text = sys.stdin.read()
    except OSError as e:
        print(f"Error: {e}", file=sys.stderr)
        return EXIT_ERROR

    options = RedactionOptions(
        preserve_years=args.preserve_years,
        preserve_age_under_90=not args.redact_all_ages,
    )

    try:
        result = redact(text, options)
    except RedactionError as e:
        logger.error("Redaction failed", extra={"error_type": type(e).__name__})
        print(f"Error: {e}", file=sys.stderr)
        return EXIT_ERROR

    if args.output:
        with open(args.output, "w", encoding="utf-8") as f:
            f.write(result.redacted_text)

    if args.json:
        print(json.dumps(result.to_dict(), indent=2))
    elif not args.output:
        sys.stdout.write(result.redacted_text)

    return EXIT_OK


if __name__ == "__main__":
    sys.exit(main())
