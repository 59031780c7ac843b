from __future__ import annotations

import sys
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, TextIO

import httpx


class ReportChannel:
    """Where status updates go: one per unit start/finish, one final result."""

    def send_status(self, code: int, bundle: Dict[str, Any]) -> None:
        raise NotImplementedError

    def finish(self, code: int, results: Dict[str, Any]) -> None:
        raise NotImplementedError

    def close(self) -> None:
        pass


@dataclass
class StatusUpdate:
    kind: str  # "status" | "result"
    code: int
    bundle: Dict[str, Any]


@dataclass
class MemoryReportChannel(ReportChannel):
    updates: List[StatusUpdate] = field(default_factory=list)

    def send_status(self, code: int, bundle: Dict[str, Any]) -> None:
        self.updates.append(StatusUpdate("status", code, dict(bundle)))

    def finish(self, code: int, results: Dict[str, Any]) -> None:
        self.updates.append(StatusUpdate("result", code, dict(results)))

    @property
    def statuses(self) -> List[StatusUpdate]:
        return [u for u in self.updates if u.kind == "status"]

    @property
    def result(self) -> Optional[StatusUpdate]:
        results = [u for u in self.updates if u.kind == "result"]
        return results[-1] if results else None


class ConsoleReportChannel(ReportChannel):
    """Writes the raw ``am instrument -r`` format."""

    def __init__(self, stream: Optional[TextIO] = None) -> None:
        self.stream = stream or sys.stdout

    def send_status(self, code: int, bundle: Dict[str, Any]) -> None:
        for key, value in bundle.items():
            self.stream.write(f"INSTRUMENTATION_STATUS: {key}={value}\n")
        self.stream.write(f"INSTRUMENTATION_STATUS_CODE: {code}\n")
        self.stream.flush()

    def finish(self, code: int, results: Dict[str, Any]) -> None:
        for key, value in results.items():
            self.stream.write(f"INSTRUMENTATION_RESULT: {key}={value}\n")
        self.stream.write(f"INSTRUMENTATION_CODE: {code}\n")
        self.stream.flush()


class HttpReportChannel(ReportChannel):
    """POSTs every update as JSON to a result collector."""

    def __init__(self, url: str, timeout: float = 10.0, client: Optional[httpx.Client] = None) -> None:
        self.url = url
        self.client = client or httpx.Client(timeout=timeout)

    def _post(self, kind: str, code: int, bundle: Dict[str, Any]) -> None:
        response = self.client.post(self.url, json={"kind": kind, "code": code, "bundle": bundle})
        response.raise_for_status()

    def send_status(self, code: int, bundle: Dict[str, Any]) -> None:
        self._post("status", code, bundle)

    def finish(self, code: int, results: Dict[str, Any]) -> None:
        self._post("result", code, results)

    def close(self) -> None:
        self.client.close()
