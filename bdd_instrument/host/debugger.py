from __future__ import annotations

import importlib
import importlib.util
import sys
import time
from typing import Callable

POLL_INTERVAL_MS = 1000
SETTLE_DELAY_MS = 1300

DebuggerProbe = Callable[[], bool]


def _trace_installed() -> bool:
    return sys.gettrace() is not None


def resolve_debugger_probe() -> DebuggerProbe:
    """debugpy's client check when debugpy is around, else "is a trace function installed"."""
    if importlib.util.find_spec("debugpy") is not None:
        debugpy = importlib.import_module("debugpy")
        return debugpy.is_client_connected
    return _trace_installed


def _sleep_ms(sleep: Callable[[float], None], ms: int) -> None:
    # time.sleep retries on EINTR itself; this only catches an injected sleep
    try:
        sleep(ms / 1000.0)
    except InterruptedError:
        pass


def wait_for_debugger(
    timeout_ms: int,
    is_attached: DebuggerProbe,
    sleep: Callable[[float], None] = time.sleep,
) -> bool:
    """
    Polls once a second until a debugger is attached or ``timeout_ms`` ran out,
    then gives an attached debugger a moment to settle.
    """
    print(f"waiting {timeout_ms}ms for debugger to attach.")
    elapsed = 0
    while not is_attached() and elapsed < timeout_ms:
        print("waiting for debugger to attach...")
        _sleep_ms(sleep, POLL_INTERVAL_MS)
        elapsed += POLL_INTERVAL_MS

    if is_attached():
        print("waiting for debugger to settle...")
        _sleep_ms(sleep, SETTLE_DELAY_MS)
        print("debugger connected.")
        return True

    print("no debugger connected.")
    return False
