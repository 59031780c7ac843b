from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional

REPORT_VALUE_ID = "InstrumentationTestRunner"

REPORT_KEY_IDENTIFIER = "id"
REPORT_KEY_NUM_TOTAL = "numtests"
REPORT_KEY_NUM_CURRENT = "current"
REPORT_KEY_NAME_CLASS = "class"
REPORT_KEY_NAME_TEST = "test"
REPORT_KEY_STREAMRESULT = "stream"
REPORT_KEY_STACK = "stack"
REPORT_KEY_COVERAGE_PATH = "coverageFilePath"

REPORT_VALUE_RESULT_START = 1
REPORT_VALUE_RESULT_OK = 0
REPORT_VALUE_RESULT_ERROR = -1
REPORT_VALUE_RESULT_FAILURE = -2

# finish code of a completed run (host "activity OK")
RESULT_OK = -1


class StatusCode(int, Enum):
    OK = REPORT_VALUE_RESULT_OK
    ERROR = REPORT_VALUE_RESULT_ERROR
    FAILURE = REPORT_VALUE_RESULT_FAILURE


@dataclass(frozen=True)
class UnitStarted:
    current: int       # 1-based, increasing for the whole run
    class_name: str    # "<feature keyword> <feature name>"
    test_name: str     # "<statement keyword> <statement name>"
    total: int

    @property
    def stream(self) -> str:
        return f"\n{self.class_name}:"

    def bundle(self) -> Dict[str, Any]:
        return {
            REPORT_KEY_IDENTIFIER: REPORT_VALUE_ID,
            REPORT_KEY_NUM_TOTAL: self.total,
            REPORT_KEY_NAME_CLASS: self.class_name,
            REPORT_KEY_NAME_TEST: self.test_name,
            REPORT_KEY_NUM_CURRENT: self.current,
            REPORT_KEY_STREAMRESULT: self.stream,
        }


@dataclass(frozen=True)
class UnitFinished:
    started: UnitStarted
    status: StatusCode
    stream: str
    stack: Optional[str] = None

    def bundle(self) -> Dict[str, Any]:
        bundle = self.started.bundle()
        bundle[REPORT_KEY_STREAMRESULT] = self.stream
        if self.stack is not None:
            bundle[REPORT_KEY_STACK] = self.stack
        return bundle


@dataclass
class PendingUnit:
    """The single unit the bridge has started but not yet finished."""
    started: UnitStarted
    opened_by: str = "scenario"  # "scenario" | "background" | "outline"
    status: StatusCode = StatusCode.OK
    stream: Optional[str] = None
    stack: Optional[str] = None

    @property
    def provisional(self) -> bool:
        # background/outline units are taken over by the next scenario
        return self.opened_by != "scenario"

    def finish(self) -> UnitFinished:
        stream = self.stream
        if self.status is StatusCode.OK and stream is None:
            stream = "."
        return UnitFinished(
            started=self.started,
            status=self.status,
            stream=stream or "",
            stack=self.stack,
        )


@dataclass
class InstrumentArguments:
    debugger_timeout_ms: int = 0
    count_only: bool = False
    coverage: bool = False
    coverage_file: Optional[str] = None
    options: Dict[str, Any] = field(default_factory=dict)  # what the translator sees
