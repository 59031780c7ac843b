from __future__ import annotations

import json
import logging
from contextlib import ExitStack
from pathlib import Path
from typing import List, Optional

from behave.configuration import ConfigError
from behave.formatter._registry import make_formatters
from behave.model import ScenarioOutline
from behave.parser import ParserError
from behave.runner import Context, Runner
from behave.runner_util import make_undefined_step_snippet, parse_features
from behave.step_registry import registry as the_step_registry

from bdd_instrument.engine.options import RuntimeOptions
from bdd_instrument.runner.errors import ConfigurationError

logger = logging.getLogger(__name__)

STEPDEFS_FILE_NAME = "stepdefs.json"


def _status_name(step) -> str:
    return str(getattr(step.status, "name", step.status))


class BehaveEngine:
    """
    Loads and runs a behave suite one feature at a time, with the caller's
    listener as the only formatter.

    Usage:

        engine = BehaveEngine(options)
        features = engine.load_suite()
        with engine:
            for feature in features:
                engine.run_feature(feature, listener)
    """

    def __init__(self, options: RuntimeOptions, config=None) -> None:
        self.options = options
        self.config = config or options.configuration()
        self.runner = Runner(self.config)
        self.features: List = []
        self.failed_features = 0
        self._stack: Optional[ExitStack] = None

    # -- loading -----------------------------------------------------------

    def load_suite(self) -> List:
        try:
            self.runner.setup_paths()
        except ConfigError as e:
            raise ConfigurationError(f"Failed to set up feature paths: {e}") from e

        locations = [
            location for location in self.runner.feature_locations()
            if not self.config.exclude(location)
        ]
        try:
            features = parse_features(locations, language=self.config.lang)
        except ParserError as e:
            raise ConfigurationError(f"Failed to parse features: {e}") from e

        self.features = [f for f in features if self._select(f)]
        if not self.features:
            raise ConfigurationError(f"No features to run in {self.options.feature_paths}")
        logger.debug(f"Loaded {len(self.features)} feature(s)")
        return self.features

    def _select(self, feature) -> bool:
        feature.scenarios = [s for s in feature.scenarios if self._select_statement(s)]
        return bool(feature.scenarios)

    def _select_statement(self, statement) -> bool:
        if isinstance(statement, ScenarioOutline):
            return self._select_rows(statement)
        return self._should_run(statement)

    def _select_rows(self, outline) -> bool:
        """
        Keeps the outline rows behave would run and trims the examples tables
        to the same rows, so the unit count follows the selection.
        """
        rows = list(outline.scenarios)
        if not rows:
            return self._should_run(outline)
        selected = [self._should_run(row) for row in rows]
        if all(selected):
            return True

        # behave expands rows table by table, in order
        remaining = iter(selected)
        kept_examples = []
        for examples in outline.examples:
            if examples.table is None:
                continue
            kept_rows = [row for row in examples.table.rows if next(remaining)]
            if kept_rows:
                examples.table.rows = kept_rows
                kept_examples.append(examples)
        outline.examples = kept_examples
        outline._scenarios = [row for row, keep in zip(rows, selected) if keep]
        return bool(outline._scenarios)

    def _should_run(self, scenario) -> bool:
        if self.options.tags and not scenario.should_run_with_tags(self.config.tags):
            return False
        if self.options.name and not scenario.should_run_with_name_select(self.config):
            return False
        return True

    # -- run lifecycle -----------------------------------------------------

    def __enter__(self) -> "BehaveEngine":
        runner = self.runner
        self._stack = ExitStack()
        self._stack.enter_context(runner.path_manager)

        runner.context = Context(runner)
        runner.step_registry = the_step_registry
        runner.load_hooks()
        runner.load_step_definitions(extra_step_paths=self.options.glue_paths)
        for directory in self.options.dotcucumber:
            self.write_step_definitions(Path(self.options.resolve(directory)))

        runner.setup_capture()
        runner.run_hook("before_all", runner.context)
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        try:
            self.runner.run_hook("after_all", self.runner.context)
        finally:
            if self._stack is not None:
                self._stack.close()
                self._stack = None

    def run_feature(self, feature, listener) -> bool:
        """Runs one feature, returns True when it failed."""
        runner = self.runner
        runner.formatters = [listener]
        runner.feature = feature
        listener.uri(feature.filename)

        failed = feature.run(runner)
        if self.options.strict and self._has_undefined_steps(feature):
            failed = True
        if failed:
            self.failed_features += 1
        return failed

    def make_formatters(self) -> List:
        """The formatters asked for with --format, writing to their outfiles."""
        if not self.options.format:
            return []
        return make_formatters(self.config, self.config.outputs)

    # -- diagnostics -------------------------------------------------------

    def errors(self) -> List[BaseException]:
        errors: List[BaseException] = []
        seen = set()
        for step in self._walk_steps():
            exception = getattr(step, "exception", None)
            if _status_name(step) == "failed" and exception is not None and id(exception) not in seen:
                seen.add(id(exception))
                errors.append(exception)
        return errors

    @property
    def hook_failures(self) -> int:
        return getattr(self.runner, "hook_failures", 0)

    def snippets(self) -> List[str]:
        return [
            make_undefined_step_snippet(step, self.config.lang)
            for step in self.runner.undefined_steps
        ]

    def write_step_definitions(self, directory: Path) -> Path:
        stepdefs = []
        for step_type, matchers in self.runner.step_registry.steps.items():
            for matcher in matchers:
                stepdefs.append({
                    "step_type": step_type,
                    "pattern": matcher.pattern,
                    "location": str(matcher.location),
                })

        directory.mkdir(parents=True, exist_ok=True)
        path = directory / STEPDEFS_FILE_NAME
        path.write_text(json.dumps(stepdefs, indent=2), encoding="utf-8")
        logger.info(f"Wrote {len(stepdefs)} step definition(s) to {path}")
        return path

    def _walk_steps(self):
        for feature in self.features:
            for scenario in feature.walk_scenarios():
                yield from scenario.all_steps

    def _has_undefined_steps(self, feature) -> bool:
        return any(
            _status_name(step) == "undefined"
            for scenario in feature.walk_scenarios()
            for step in scenario.all_steps
        )
