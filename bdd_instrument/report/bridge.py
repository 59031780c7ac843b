"""
Turns behave's formatter callbacks into unit started / unit finished reports.

behave never says "this scenario is over". A unit ends when the next
background, scenario or outline starts, or when the feature reaches ``eof``.
The bridge therefore keeps the one unit it has started but not yet finished,
and reports it as soon as the next boundary (or the end of input) shows up.

    feature -> background -> scenario A -> step/result... -> scenario B -> ... -> eof

Background and outline boundaries open a provisional unit which the following
scenario takes over, so a background is never reported as a unit of its own.
"""
from __future__ import annotations

import logging
from enum import Enum
from typing import Callable, List, Optional, Sequence, Union

from bdd_instrument.report.channel import ReportChannel
from bdd_instrument.report.log_formatter import LogFormatter
from bdd_instrument.runner.types import (
    REPORT_VALUE_RESULT_START,
    PendingUnit,
    StatusCode,
    UnitFinished,
    UnitStarted,
)

logger = logging.getLogger(__name__)

ReportEvent = Union[UnitStarted, UnitFinished]

SCENARIO = "scenario"
BACKGROUND = "background"
OUTLINE = "outline"


class BridgeState(Enum):
    IDLE = "idle"            # no unit open
    UNIT_OPEN = "unit_open"
    CLOSED = "closed"        # eof seen; the next uri/feature starts a new input
    DONE = "done"            # close() seen; nothing is accepted any more


def _label(statement) -> str:
    if statement is None:
        return ""
    return f"{statement.keyword} {statement.name}"


def _status_name(step) -> str:
    status = getattr(step, "status", None)
    return str(getattr(status, "name", status))


class ReportBridge:
    """
    behave formatter that reports every unit to a ``ReportChannel``.

    All callbacks are also forwarded to ``formatters`` (a ``LogFormatter`` by
    default), which additionally get ``unit_started`` / ``unit_finished``.
    Malformed callback sequences never raise: a result without an open unit is
    dropped and only units that were started get finished.
    """

    name = "instrument"

    def __init__(
        self,
        channel: ReportChannel,
        num_tests: int,
        formatters: Optional[Sequence] = None,
        snippets: Optional[Callable[[], List[str]]] = None,
    ) -> None:
        self.channel = channel
        self.num_tests = num_tests
        self.formatters = list(formatters) if formatters is not None else [LogFormatter()]
        self.snippets = snippets or (lambda: [])
        self.events: List[ReportEvent] = []
        self.scenario_counter = 0
        self.current_feature = None
        self.current_step = None
        self._unit: Optional[PendingUnit] = None
        self._closed = False
        self._done = False

    @property
    def state(self) -> BridgeState:
        if self._done:
            return BridgeState.DONE
        if self._unit is not None:
            return BridgeState.UNIT_OPEN
        if self._closed:
            return BridgeState.CLOSED
        return BridgeState.IDLE

    @property
    def pending_unit(self) -> Optional[PendingUnit]:
        return self._unit

    # -- input boundaries --------------------------------------------------

    def uri(self, uri):
        if not self._accepts_new_input("uri"):
            return
        self._forward("uri", uri)

    def feature(self, feature):
        if not self._accepts_new_input("feature"):
            return
        self.current_feature = feature
        self._forward("feature", feature)

    def background(self, background):
        self._boundary("background", background, BACKGROUND)

    def scenario(self, scenario):
        self._boundary("scenario", scenario, SCENARIO)

    def scenario_outline(self, outline):
        self._boundary("scenario_outline", outline, OUTLINE)

    def examples(self, examples):
        if self._accepts("examples"):
            self._forward("examples", examples)

    def step(self, step):
        if not self._accepts("step"):
            return
        self.current_step = step
        self._forward("step", step)

    def match(self, match):
        if self._accepts("match"):
            self._forward("match", match)

    def result(self, step):
        if not self._accepts("result"):
            return
        self._forward("result", step)

        unit = self._unit
        if unit is None:
            logger.debug(f"Result outside of a unit dropped: {_status_name(step)}")
            return

        error_message = getattr(step, "error_message", None)
        if error_message:
            unit.status = StatusCode.FAILURE
            unit.stack = error_message
            unit.stream = error_message
        elif _status_name(step) == "undefined":
            step_name = getattr(step, "name", None) or getattr(self.current_step, "name", "")
            snippets = self.snippets()
            snippet = snippets[-1] if snippets else ""
            unit.status = StatusCode.ERROR
            unit.stack = f"Missing step-definition\n\n{snippet}\nfor step '{step_name}'"
            unit.stream = f"Missing step-definition: {step_name}"

    def eof(self):
        if not self._accepts("eof"):
            return
        self._report_last_result()
        self._closed = True
        self._forward("eof")

    def done(self):
        self._forward("done")

    def close(self):
        if self._done:
            return
        self._report_last_result()
        self._done = True
        self._forward("close")

    # -- pass-through ------------------------------------------------------

    def syntax_error(self, state, event, legal_events, uri, line):
        self._forward("syntax_error", state, event, legal_events, uri, line)

    def embedding(self, mime_type, data):
        self._forward("embedding", mime_type, data)

    def write(self, text):
        self._forward("write", text)

    def before_hook(self, match, result):
        self._forward("before_hook", match, result)

    def after_hook(self, match, result):
        self._forward("after_hook", match, result)

    # -- internals ---------------------------------------------------------

    def _accepts(self, callback: str) -> bool:
        if self._done or self._closed:
            logger.warning(f"Ignoring '{callback}' received in state {self.state.value}")
            return False
        return True

    def _accepts_new_input(self, callback: str) -> bool:
        if self._done:
            logger.warning(f"Ignoring '{callback}' received in state {self.state.value}")
            return False
        self._closed = False
        return True

    def _boundary(self, callback: str, statement, kind: str) -> None:
        if not self._accepts(callback):
            return

        unit = self._unit
        if unit is not None and self._adopts(unit, kind):
            unit.opened_by = kind
            self._forward(callback, statement)
            return

        self._report_last_result()
        self._forward(callback, statement)
        self._begin_unit(statement, kind)

    @staticmethod
    def _adopts(unit: PendingUnit, kind: str) -> bool:
        if kind == SCENARIO:
            return unit.provisional
        if kind == OUTLINE:
            return unit.opened_by == BACKGROUND
        return False

    def _begin_unit(self, statement, kind: str) -> None:
        self.scenario_counter += 1
        started = UnitStarted(
            current=self.scenario_counter,
            class_name=_label(self.current_feature),
            test_name=_label(statement),
            total=self.num_tests,
        )
        self._unit = PendingUnit(started=started, opened_by=kind)
        self._send(REPORT_VALUE_RESULT_START, started)
        self._forward("unit_started", started)

    def _report_last_result(self) -> None:
        unit = self._unit
        if unit is None:
            return
        self._unit = None
        finished = unit.finish()
        self._send(int(finished.status), finished)
        self._forward("unit_finished", finished)

    def _send(self, code: int, event: ReportEvent) -> None:
        self.events.append(event)
        self.channel.send_status(code, event.bundle())

    def _forward(self, method: str, *args) -> None:
        for formatter in self.formatters:
            callback = getattr(formatter, method, None)
            if callback is not None:
                callback(*args)
