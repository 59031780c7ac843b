from __future__ import annotations

import logging

from bdd_instrument.runner.types import UnitFinished, UnitStarted

TAG = "bdd-instrument"


def _describe(statement) -> str:
    return f"{statement.keyword}: {statement.name}"


class LogFormatter:
    """
    Human readable run log. Receives the same callbacks behave hands to a
    formatter, plus the unit events the bridge emits.
    """

    def __init__(self, tag: str = TAG) -> None:
        self.log = logging.getLogger(tag)

    def uri(self, uri):
        self.log.debug(f"uri: {uri}")

    def feature(self, feature):
        self.log.info(_describe(feature))

    def background(self, background):
        self.log.info(_describe(background))

    def scenario(self, scenario):
        self.log.info(_describe(scenario))

    def scenario_outline(self, outline):
        self.log.info(_describe(outline))

    def examples(self, examples):
        self.log.info(_describe(examples))

    def step(self, step):
        self.log.info(f"{step.keyword} {step.name}")

    def match(self, match):
        self.log.debug(f"match: {getattr(match, 'location', match)}")

    def result(self, step):
        status = getattr(step.status, "name", step.status)
        self.log.debug(f"result: {step.keyword} {step.name} -> {status}")

    def syntax_error(self, state, event, legal_events, uri, line):
        self.log.error(f"syntax error in {uri}:{line}: {event} not allowed in state {state}, expected one of {legal_events}")

    def embedding(self, mime_type, data):
        self.log.debug(f"embedding: {mime_type} ({len(data)} bytes)")

    def write(self, text):
        self.log.info(text)

    def before_hook(self, match, result):
        self.log.debug(f"before hook: {getattr(match, 'location', match)}")

    def after_hook(self, match, result):
        self.log.debug(f"after hook: {getattr(match, 'location', match)}")

    def unit_started(self, event: UnitStarted):
        self.log.info(f"[{event.current}/{event.total}] started {event.class_name} / {event.test_name}")

    def unit_finished(self, event: UnitFinished):
        if event.stack:
            self.log.error(f"[{event.started.current}/{event.started.total}] {event.status.name}: {event.stack}")
        else:
            self.log.info(f"[{event.started.current}/{event.started.total}] {event.status.name}")

    def eof(self):
        self.log.debug("eof")

    def done(self):
        self.log.debug("done")

    def close(self):
        for handler in self.log.handlers:
            handler.flush()
