"""
Optional coverage dump at the end of a run.

coverage.py is not a hard dependency. Whether it is available is decided once,
at startup, by ``resolve_coverage_facility``: the result is either a
``CoverageFacility`` or a ``CoverageUnavailable`` value.
"""
from __future__ import annotations

import importlib
import importlib.util
import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Union

from bdd_instrument.runner.errors import CoverageDumpError

logger = logging.getLogger(__name__)

FILES_DIR_ENV = "BDD_INSTRUMENT_FILES_DIR"
DEFAULT_FILES_DIR = ".bdd_instrument"
DEFAULT_COVERAGE_FILE_NAME = "coverage.ec"


@dataclass(frozen=True)
class CoverageUnavailable:
    hint: str


class CoverageFacility:
    def __init__(self, coverage_module) -> None:
        self.coverage = coverage_module

    def dump(self, path: Path) -> Path:
        """Stops the running measurement and writes its data to ``path``."""
        cov = self.coverage.Coverage.current()
        if cov is None:
            raise CoverageDumpError("No coverage measurement is running")

        try:
            cov.stop()
            path.parent.mkdir(parents=True, exist_ok=True)
            data = self.coverage.CoverageData(basename=str(path))
            data.update(cov.get_data())
            data.write()
        except (OSError, self.coverage.CoverageException) as e:
            raise CoverageDumpError(f"{type(e).__name__}: {e}") from e
        return path


CoverageCapability = Union[CoverageFacility, CoverageUnavailable]


def resolve_coverage_facility() -> CoverageCapability:
    if importlib.util.find_spec("coverage") is None:
        return CoverageUnavailable(hint="Is coverage installed?")
    return CoverageFacility(importlib.import_module("coverage"))


def default_coverage_path() -> Path:
    files_dir = Path(os.getenv(FILES_DIR_ENV) or DEFAULT_FILES_DIR)
    return files_dir / DEFAULT_COVERAGE_FILE_NAME
