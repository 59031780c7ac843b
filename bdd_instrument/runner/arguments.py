"""
Translation of the flat instrumentation argument mapping.

The host hands arguments over as a string-to-string mapping that cannot hold a
key twice. Options the engine accepts more than once (``--tags``, ``--glue``...)
are therefore passed as one value with sub-values separated by
``OPTION_VALUE_SEPARATOR``:

    {"tags": "@smoke--~@wip"}  ->  "--tags @smoke --tags ~@wip"
"""
from __future__ import annotations

import logging
import re
import shlex
from typing import Dict, List, Mapping, Optional, Sequence, Tuple, Union

from bdd_instrument.runner.types import InstrumentArguments

logger = logging.getLogger(__name__)

OPTION_VALUE_SEPARATOR = "--"
DEFAULT_DEBUGGER_TIMEOUT = 10000

# only what shlex.split would otherwise break apart or strip
_NEEDS_QUOTING = re.compile(r"[\s'\"\\]")

ArgumentValue = Union[str, Sequence[str]]

# argument name -> engine option
VALUE_OPTIONS: Dict[str, str] = {
    "glue": "--glue",
    "format": "--format",
    "tags": "--tags",
    "name": "--name",
    "snippets": "--snippets",
    "dotcucumber": "--dotcucumber",
}

BOOLEAN_OPTIONS: Dict[str, str] = {
    "dryRun": "--dry-run",
    "noDryRun": "--no-dry-run",
    "monochrome": "--monochrome",
    "noMonochrome": "--no-monochrome",
    "strict": "--strict",
    "noStrict": "--no-strict",
}

FEATURES_KEY = "features"


def parse_boolean(value: Optional[str]) -> bool:
    # same rule as java.lang.Boolean.parseBoolean
    return value is not None and str(value).strip().lower() == "true"


def get_boolean_argument(arguments: Mapping[str, ArgumentValue], key: str) -> bool:
    value = arguments.get(key)
    return isinstance(value, str) and parse_boolean(value)


def _sub_values(value: ArgumentValue) -> List[str]:
    if isinstance(value, str):
        if value == "":
            return [""]
        return [v for v in value.split(OPTION_VALUE_SEPARATOR) if v]
    return [str(v) for v in value if str(v)]


def _quote(token: str) -> str:
    return shlex.quote(token) if _NEEDS_QUOTING.search(token) else token


class OptionAccumulator:
    """Ordered (flag, value) tokens. Positional feature paths always go last."""

    def __init__(self) -> None:
        self._options: List[Tuple[str, Optional[str]]] = []
        self._features: List[str] = []

    def append(self, flag: str, value: ArgumentValue) -> None:
        for sub_value in _sub_values(value):
            self._options.append((flag, sub_value or None))

    def append_features(self, value: ArgumentValue) -> None:
        self._features.extend(v for v in _sub_values(value) if v)

    def tokens(self) -> List[str]:
        tokens: List[str] = []
        for flag, value in self._options:
            tokens.append(flag)
            if value is not None:
                tokens.append(value)
        tokens.extend(self._features)
        return tokens

    def __str__(self) -> str:
        return " ".join(_quote(token) for token in self.tokens())


class ArgumentTranslator:
    """
    Builds an option string for ``RuntimeOptions`` out of the argument mapping.

    Unknown names are ignored: the same mapping also carries arguments meant
    for the orchestrator (debug, count, coverage...).

    A value may also be a list of strings, in which case every element is one
    sub-value and no separator splitting happens.
    """

    def translate(self, arguments: Optional[Mapping[str, ArgumentValue]]) -> str:
        return str(self.accumulate(arguments))

    def accumulate(self, arguments: Optional[Mapping[str, ArgumentValue]]) -> OptionAccumulator:
        acc = OptionAccumulator()
        if not arguments:
            return acc

        features: ArgumentValue = ""
        for key, value in arguments.items():
            if key in VALUE_OPTIONS:
                acc.append(VALUE_OPTIONS[key], value if value is not None else "")
            elif key in BOOLEAN_OPTIONS:
                if get_boolean_argument(arguments, key):
                    acc.append(BOOLEAN_OPTIONS[key], "")
            elif key == FEATURES_KEY:
                features = value if value is not None else ""

        # flags first, the engine's parser wants positionals at the end
        acc.append_features(features)
        return acc


def parse_instrument_arguments(arguments: Optional[Mapping[str, ArgumentValue]]) -> InstrumentArguments:
    """Pulls out what the orchestrator itself consumes (debug, log, count, coverage, coverageFile)."""
    options: Dict[str, ArgumentValue] = dict(arguments or {})
    parsed = InstrumentArguments()

    debug = options.get("debug")
    if isinstance(debug, str):
        try:
            parsed.debugger_timeout_ms = int(debug)
        except ValueError:
            if parse_boolean(debug):
                parsed.debugger_timeout_ms = DEFAULT_DEBUGGER_TIMEOUT

    # log only: list the steps without running them
    if get_boolean_argument(options, "log") and options.get("dryRun") is None:
        options["dryRun"] = "true"

    parsed.count_only = get_boolean_argument(options, "count")
    parsed.coverage = get_boolean_argument(options, "coverage")
    coverage_file = options.get("coverageFile")
    parsed.coverage_file = coverage_file if isinstance(coverage_file, str) else None
    parsed.options = options
    logger.debug(f"Instrument arguments: {parsed}")
    return parsed
