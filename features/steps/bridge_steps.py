from types import SimpleNamespace

from behave import given, when, then

from bdd_instrument.report.bridge import ReportBridge
from bdd_instrument.report.channel import MemoryReportChannel
from bdd_instrument.runner.types import REPORT_VALUE_RESULT_START


def _statement(keyword: str, name: str):
    return SimpleNamespace(keyword=keyword, name=name)


def _result(status: str, error_message=None):
    return SimpleNamespace(keyword="Given", name="", status=status, error_message=error_message)


def _finished(context) -> list:
    return [u for u in context.channel.statuses if u.code != REPORT_VALUE_RESULT_START]


@given("a report bridge expecting {count:d} units")
def step_new_bridge(context, count):
    context.channel = MemoryReportChannel()
    context.bridge = ReportBridge(context.channel, count, snippets=lambda: [])


@when("the engine reports:")
def step_engine_reports(context):
    bridge = context.bridge
    for row in context.table:
        callback = row["callback"].strip()
        argument = row["argument"].strip()

        if callback == "feature":
            bridge.feature(_statement("Feature", argument))
        elif callback == "background":
            bridge.background(_statement("Background", argument))
        elif callback == "scenario":
            bridge.scenario(_statement("Scenario", argument))
        elif callback == "step":
            bridge.step(_statement("Given", argument))
        elif callback in ("passed", "skipped", "undefined"):
            bridge.result(_result(callback))
        elif callback == "failed":
            bridge.result(_result("failed", error_message=argument))
        elif callback == "eof":
            bridge.eof()
        else:
            raise ValueError(f"Unknown callback: {callback}")


@then('the channel received the status codes "{codes}"')
def step_status_codes(context, codes):
    expected = [int(c) for c in codes.split(",") if c.strip()]
    actual = [u.code for u in context.channel.statuses]
    if actual != expected:
        raise AssertionError(f"Expected status codes {expected}, got {actual}")


@then('unit {current:d} finished with stream "{stream}"')
def step_unit_stream(context, current, stream):
    for update in _finished(context):
        if update.bundle["current"] == current:
            if update.bundle["stream"] != stream:
                raise AssertionError(f"Unit {current} streamed {update.bundle['stream']!r}, expected {stream!r}")
            return
    raise AssertionError(f"Unit {current} never finished")


@then("nothing was reported")
def step_nothing_reported(context):
    if context.channel.updates:
        raise AssertionError(f"Expected no updates, got {context.channel.updates}")
