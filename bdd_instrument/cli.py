"""
Command line entry point, shaped like ``am instrument``:

    bdd-instrument -e tags @smoke--@fast -e features features/login.feature
    bdd-instrument -e count true
    bdd-instrument --args-file nightly.yaml --report-url http://collector:8080/status
"""
import argparse
import logging
import os
import sys
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml

from bdd_instrument.report.channel import ConsoleReportChannel, HttpReportChannel
from bdd_instrument.runner.errors import ConfigurationError
from bdd_instrument.runner.suite_runner import create_suite_runner

REPORT_URL_ENV = "BDD_INSTRUMENT_REPORT_URL"
LOG_LEVEL_ENV = "BDD_INSTRUMENT_LOG_LEVEL"


def load_arguments_file(path: Path) -> Dict[str, Any]:
    if not path.is_file():
        raise ConfigurationError(f"Arguments file not found: {path}")
    data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    if not isinstance(data, dict):
        raise ConfigurationError(f"Arguments file must be a mapping: {path}")
    arguments: Dict[str, Any] = {}
    for key, value in data.items():
        if isinstance(value, list):
            arguments[str(key)] = [str(v) for v in value]
        else:
            arguments[str(key)] = str(value).lower() if isinstance(value, bool) else str(value)
    return arguments


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="bdd-instrument", description="Run a behave suite and report every scenario.")
    parser.add_argument("-e", dest="extras", nargs=2, action="append", default=[], metavar=("KEY", "VALUE"),
                        help="instrumentation argument; a later -e for the same key wins")
    parser.add_argument("--args-file", help="YAML mapping of instrumentation arguments")
    parser.add_argument("--config", help="suite configuration file (default: bdd_instrument.yaml)")
    parser.add_argument("--report-url", default=os.getenv(REPORT_URL_ENV),
                        help="POST status updates to this collector instead of printing them")
    parser.add_argument("--log-level", default=os.getenv(LOG_LEVEL_ENV, "INFO"))
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=args.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )

    if args.report_url:
        print(f"📡 Reporting to {args.report_url}", file=sys.stderr)
        channel = HttpReportChannel(args.report_url)
    else:
        channel = ConsoleReportChannel()

    try:
        arguments: Dict[str, Any] = load_arguments_file(Path(args.args_file)) if args.args_file else {}
        for key, value in args.extras:
            arguments[key] = value
        runner = create_suite_runner(arguments, channel, config_path=Path(args.config) if args.config else None)
    except ConfigurationError as e:
        channel.close()
        print(f"❌ Error: {e}", file=sys.stderr)
        return 1

    try:
        result = runner.start()
    finally:
        channel.close()

    print(f"✨ Done: {result.num_tests} unit(s), {result.failed_features} failed feature(s)", file=sys.stderr)
    return 0


if __name__ == "__main__":
    sys.exit(main())
