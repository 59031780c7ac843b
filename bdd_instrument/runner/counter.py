from __future__ import annotations

from typing import Iterable

from behave.model import Scenario, ScenarioOutline


class ScenarioCounter:
    """
    Counts the test units of a loaded suite for progress reporting only.
    Execution order and the units actually run are not affected.

    A scenario is one unit. A scenario outline counts every row of every
    examples table, heading rows included, minus one for the whole outline.
    With a single table that is exactly its data rows; every additional table
    adds one more (its heading). Dashboards consume this number as is.
    """

    def count(self, features: Iterable) -> int:
        num_scenarios = 0
        for feature in features:
            for statement in feature.scenarios or []:
                if isinstance(statement, ScenarioOutline):
                    num_scenarios += self._outline_rows(statement)
                elif isinstance(statement, Scenario):
                    num_scenarios += 1
        return num_scenarios

    @staticmethod
    def _outline_rows(outline: ScenarioOutline) -> int:
        rows = 0
        for examples in outline.examples or []:
            table = examples.table
            if table is None:
                continue
            rows += 1 + len(table.rows or [])  # heading + data rows
        return rows - 1  # table header
