"""
Runtime options of a suite run.

Two layers, later wins:

  1) the suite configuration file (``bdd_instrument.yaml``), the suite's
     declared defaults; without one there is nothing to run
  2) an option string, as produced by ``ArgumentTranslator`` and published in
     ``BDD_INSTRUMENT_OPTIONS``
"""
from __future__ import annotations

import argparse
import logging
import os
import shlex
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml

from bdd_instrument.runner.errors import ConfigurationError

logger = logging.getLogger(__name__)

CONFIG_ENV = "BDD_INSTRUMENT_CONFIG"
OPTIONS_ENV = "BDD_INSTRUMENT_OPTIONS"
CONFIG_FILE_NAMES = ("bdd_instrument.yaml", "bdd_instrument.yml", ".bdd_instrument.yaml")

_LIST_KEYS = ("features", "glue", "format", "tags", "name", "snippets", "dotcucumber")
_BOOL_KEYS = ("dry_run", "monochrome", "strict")


class _OptionParser(argparse.ArgumentParser):
    def error(self, message):
        raise ConfigurationError(f"Invalid runtime options: {message}")


def _build_parser() -> argparse.ArgumentParser:
    parser = _OptionParser(prog="bdd-instrument-options", add_help=False)
    parser.add_argument("--glue", action="append")
    parser.add_argument("--format", action="append")
    parser.add_argument("--tags", action="append")
    parser.add_argument("--name", action="append")
    parser.add_argument("--snippets", action="append")
    parser.add_argument("--dotcucumber", action="append")
    parser.add_argument("--dry-run", dest="dry_run", action="store_true", default=None)
    parser.add_argument("--no-dry-run", dest="dry_run", action="store_false")
    parser.add_argument("--monochrome", dest="monochrome", action="store_true", default=None)
    parser.add_argument("--no-monochrome", dest="monochrome", action="store_false")
    parser.add_argument("--strict", dest="strict", action="store_true", default=None)
    parser.add_argument("--no-strict", dest="strict", action="store_false")
    parser.add_argument("features", nargs="*")
    return parser


@dataclass
class RuntimeOptions:
    features: List[str] = field(default_factory=list)
    glue: List[str] = field(default_factory=list)
    format: List[str] = field(default_factory=list)      # "name" or "name:outfile"
    tags: List[str] = field(default_factory=list)
    name: List[str] = field(default_factory=list)        # regular expressions
    snippets: List[str] = field(default_factory=list)
    dotcucumber: List[str] = field(default_factory=list)
    dry_run: bool = False
    monochrome: bool = False
    strict: bool = False
    base_dir: Optional[Path] = None  # relative paths resolve against it

    @classmethod
    def from_config(cls, data: Dict[str, Any], base_dir: Optional[Path] = None) -> "RuntimeOptions":
        kwargs: Dict[str, Any] = {"base_dir": base_dir}
        for key in _LIST_KEYS:
            value = data.get(key)
            if value is None:
                continue
            kwargs[key] = [str(v) for v in value] if isinstance(value, list) else [str(value)]
        for key in _BOOL_KEYS:
            if key in data:
                kwargs[key] = bool(data[key])
        unknown = set(data) - set(_LIST_KEYS) - set(_BOOL_KEYS)
        if unknown:
            logger.warning(f"Unknown suite configuration keys ignored: {sorted(unknown)}")
        return cls(**kwargs)

    def merged_with(self, option_string: Optional[str]) -> "RuntimeOptions":
        """Applies an option string on top of these options."""
        if not option_string or not option_string.strip():
            return self
        try:
            tokens = shlex.split(option_string)
        except ValueError as e:
            raise ConfigurationError(f"Invalid runtime options '{option_string}': {e}") from e
        parsed = _build_parser().parse_args(tokens)

        updates: Dict[str, Any] = {}
        for key in _LIST_KEYS:
            value = getattr(parsed, key)
            if value:
                updates[key] = list(value)
        for key in _BOOL_KEYS:
            value = getattr(parsed, key)
            if value is not None:
                updates[key] = value
        return replace(self, **updates)

    def resolve(self, path: str) -> str:
        p = Path(path)
        if self.base_dir is None or p.is_absolute():
            return str(p)
        return str(self.base_dir / p)

    @property
    def feature_paths(self) -> List[str]:
        return [self.resolve(p) for p in self.features]

    @property
    def glue_paths(self) -> List[str]:
        return [self.resolve(p) for p in self.glue]

    @property
    def show_snippets(self) -> bool:
        return not any(s.lower() in ("none", "false") for s in self.snippets)

    def to_behave_args(self) -> List[str]:
        args: List[str] = ["--no-summary"]
        if self.dry_run:
            args.append("--dry-run")
        if self.monochrome:
            args.append("--no-color")
        if not self.show_snippets:
            args.append("--no-snippets")
        for tag in self.tags:
            args.append(f"--tags={tag}")
        for name in self.name:
            args.append(f"--name={name}")
        for fmt in self.format:
            # behave pairs --format and --outfile by position
            fmt_name, _, outfile = fmt.partition(":")
            args.extend(["--format", fmt_name, "--outfile", self.resolve(outfile) if outfile else "-"])
        args.extend(self.feature_paths)
        return args

    def configuration(self):
        from behave.configuration import Configuration

        return Configuration(command_args=self.to_behave_args(), load_config=False)


def find_suite_config(start: Optional[Path] = None) -> Path:
    explicit = os.getenv(CONFIG_ENV)
    if explicit:
        path = Path(explicit)
        if not path.is_file():
            raise ConfigurationError(f"Suite configuration not found: {path} (from {CONFIG_ENV})")
        return path

    directory = (start or Path.cwd()).resolve()
    for name in CONFIG_FILE_NAMES:
        candidate = directory / name
        if candidate.is_file():
            return candidate
    raise ConfigurationError(f"No suite configuration found: expected one of {list(CONFIG_FILE_NAMES)} in {directory}")


def load_suite_config(path: Path) -> RuntimeOptions:
    if not path.is_file():
        raise ConfigurationError(f"Suite configuration not found: {path}")
    data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    if not isinstance(data, dict):
        raise ConfigurationError(f"Suite configuration must be a mapping: {path}")
    logger.debug(f"Found suite configuration in {path}")
    return RuntimeOptions.from_config(data, base_dir=path.parent.resolve())


def create_runtime_options(option_string: Optional[str] = None, config_path: Optional[Path] = None) -> RuntimeOptions:
    """
    Suite configuration file, overridden by ``option_string`` or, when that is
    not given, by the ``BDD_INSTRUMENT_OPTIONS`` environment variable.
    """
    options = load_suite_config(config_path or find_suite_config())
    if option_string is None:
        option_string = os.getenv(OPTIONS_ENV)
    options = options.merged_with(option_string)
    if not options.features:
        raise ConfigurationError("No feature paths configured")
    return options
