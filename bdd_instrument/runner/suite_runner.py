from __future__ import annotations

import logging
import os
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable, Dict, Mapping, Optional, Sequence

from bdd_instrument.engine.behave_engine import BehaveEngine
from bdd_instrument.engine.options import OPTIONS_ENV, create_runtime_options
from bdd_instrument.host.coverage_dump import (
    CoverageCapability,
    CoverageUnavailable,
    default_coverage_path,
    resolve_coverage_facility,
)
from bdd_instrument.host.debugger import DebuggerProbe, resolve_debugger_probe, wait_for_debugger
from bdd_instrument.report.bridge import ReportBridge
from bdd_instrument.report.channel import ReportChannel
from bdd_instrument.report.log_formatter import TAG, LogFormatter
from bdd_instrument.runner.arguments import ArgumentTranslator, parse_instrument_arguments
from bdd_instrument.runner.counter import ScenarioCounter
from bdd_instrument.runner.errors import CoverageDumpError
from bdd_instrument.runner.types import (
    REPORT_KEY_COVERAGE_PATH,
    REPORT_KEY_IDENTIFIER,
    REPORT_KEY_NUM_TOTAL,
    REPORT_KEY_STREAMRESULT,
    REPORT_VALUE_ID,
    RESULT_OK,
    InstrumentArguments,
)

logger = logging.getLogger(TAG)


@dataclass
class SuiteRunResult:
    code: int
    results: Dict[str, Any]
    num_tests: int
    failed_features: int = 0


class SuiteRunner:
    """
    Pure orchestrator:

      1) count the units of the loaded suite
      2) optionally wait for a debugger
      3) run every feature through one ReportBridge
      4) flush the formatters, log errors and missing-step snippets
      5) optionally dump coverage
      6) finish with RESULT_OK; unit outcomes travel per unit, not here
    """

    def __init__(
        self,
        engine,
        channel: ReportChannel,
        arguments: Optional[InstrumentArguments] = None,
        formatters_factory: Optional[Callable[[], Sequence]] = None,
        debugger_probe: Optional[DebuggerProbe] = None,
        coverage: Optional[CoverageCapability] = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.engine = engine
        self.channel = channel
        self.arguments = arguments or InstrumentArguments()
        self.formatters_factory = formatters_factory or (lambda: [LogFormatter()])
        self.debugger_probe = debugger_probe
        self.coverage = coverage
        self.sleep = sleep
        self.results: Dict[str, Any] = {}

        self.features = engine.load_suite()
        self.num_tests = ScenarioCounter().count(self.features)
        logger.debug(f"Suite loaded: {len(self.features)} feature(s), {self.num_tests} unit(s)")

    def start(self) -> SuiteRunResult:
        if self.arguments.count_only:
            return self.count_only()
        return self.run()

    def count_only(self) -> SuiteRunResult:
        self.results = {
            REPORT_KEY_IDENTIFIER: REPORT_VALUE_ID,
            REPORT_KEY_NUM_TOTAL: self.num_tests,
        }
        return self._finish(RESULT_OK)

    def run(self) -> SuiteRunResult:
        if self.arguments.debugger_timeout_ms:
            probe = self.debugger_probe or resolve_debugger_probe()
            wait_for_debugger(self.arguments.debugger_timeout_ms, probe, sleep=self.sleep)

        bridge = ReportBridge(
            self.channel,
            self.num_tests,
            formatters=self.formatters_factory(),
            snippets=self.engine.snippets,
        )
        with self.engine:
            for feature in self.features:
                self.engine.run_feature(feature, bridge)

        bridge.done()
        self.print_summary()
        bridge.close()

        if self.arguments.coverage:
            self.generate_coverage_report()

        return self._finish(RESULT_OK)

    def print_summary(self) -> None:
        for error in self.engine.errors():
            logger.error(f"{type(error).__name__}: {error}")
        for snippet in self.engine.snippets():
            logger.warning(snippet)
        hook_failures = getattr(self.engine, "hook_failures", 0)
        if hook_failures:
            logger.error(f"{hook_failures} hook(s) failed")

    def generate_coverage_report(self) -> None:
        coverage = self.coverage if self.coverage is not None else resolve_coverage_facility()
        path = self.coverage_file_path()

        if isinstance(coverage, CoverageUnavailable):
            self._report_coverage_error(coverage.hint)
            return
        try:
            coverage.dump(path)
        except CoverageDumpError as e:
            logger.exception(f"Coverage dump to {path} failed")
            self._report_coverage_error(str(e))
            return

        # the path is for test harnesses, the stream text for humans
        self.results[REPORT_KEY_COVERAGE_PATH] = str(path)
        current_stream = self.results.get(REPORT_KEY_STREAMRESULT, "")
        self.results[REPORT_KEY_STREAMRESULT] = f"{current_stream}\nGenerated code coverage data to {path}"

    def coverage_file_path(self) -> Path:
        if self.arguments.coverage_file is None:
            return default_coverage_path()
        return Path(self.arguments.coverage_file)

    def _report_coverage_error(self, hint: str) -> None:
        msg = f"Failed to generate coverage. {hint}"
        logger.error(msg)
        self.results[REPORT_KEY_STREAMRESULT] = f"\nError: {msg}"

    def _finish(self, code: int) -> SuiteRunResult:
        self.channel.finish(code, self.results)
        return SuiteRunResult(
            code=code,
            results=dict(self.results),
            num_tests=self.num_tests,
            failed_features=getattr(self.engine, "failed_features", 0),
        )


def create_suite_runner(
    arguments: Optional[Mapping[str, Any]],
    channel: ReportChannel,
    config_path: Optional[Path] = None,
    **kwargs,
) -> SuiteRunner:
    """
    Wires a runner from the flat argument mapping: the translated option string
    is published in BDD_INSTRUMENT_OPTIONS and layered over the suite
    configuration file.
    """
    parsed = parse_instrument_arguments(arguments)
    option_string = ArgumentTranslator().translate(parsed.options)
    if option_string:
        logger.debug(f"Setting {OPTIONS_ENV} from arguments: '{option_string}'")
        os.environ[OPTIONS_ENV] = option_string

    options = create_runtime_options(option_string or None, config_path=config_path)
    engine = BehaveEngine(options)
    kwargs.setdefault("formatters_factory", lambda: [LogFormatter(), *engine.make_formatters()])
    return SuiteRunner(engine, channel, arguments=parsed, **kwargs)
