"""Runs the fixture behave project for real."""
import importlib.metadata

import pytest
from behave.step_registry import registry

from bdd_instrument.report.channel import MemoryReportChannel
from bdd_instrument.runner.errors import ConfigurationError
from bdd_instrument.runner.suite_runner import create_suite_runner
from bdd_instrument.runner.types import RESULT_OK


@pytest.fixture
def clean_registry():
    # behave keeps step definitions in a module level registry
    for matchers in registry.steps.values():
        del matchers[:]
    yield
    for matchers in registry.steps.values():
        del matchers[:]


@pytest.fixture
def config_path(suite_dir):
    return suite_dir / "bdd_instrument.yaml"


def test_full_run(config_path, clean_registry, tmp_path):
    channel = MemoryReportChannel()
    runner = create_suite_runner({"dotcucumber": str(tmp_path / "dotcucumber")}, channel, config_path=config_path)
    assert runner.num_tests == 5

    result = runner.start()

    started = [u.bundle for u in channel.statuses if u.code == 1]
    finished = [u for u in channel.statuses if u.code != 1]
    assert [s["current"] for s in started] == [1, 2, 3, 4, 5]
    assert {s["class"] for s in started} == {"Feature Login"}
    assert started[0]["test"] == "Background login page"
    assert started[1]["test"] == "Scenario Wrong password"

    assert [f.code for f in finished] == [0, -2, -1, 0, 0]
    assert finished[0].bundle["stream"] == "."
    assert "expected dashboard for mallory" in finished[1].bundle["stack"]
    assert finished[2].bundle["stream"] == "Missing step-definition: I ask for a password reset"
    assert "for step 'I ask for a password reset'" in finished[2].bundle["stack"]

    assert result.code == RESULT_OK
    assert channel.result.code == RESULT_OK
    assert (tmp_path / "dotcucumber" / "stepdefs.json").is_file()


def test_count_only_with_tag_filter(config_path):
    channel = MemoryReportChannel()
    runner = create_suite_runner({"count": "true", "tags": "@locked"}, channel, config_path=config_path)
    runner.start()
    assert channel.statuses == []
    assert channel.result.bundle["numtests"] == 2


def test_count_only_with_name_filter(config_path):
    channel = MemoryReportChannel()
    create_suite_runner({"count": "true", "name": "^Wrong--^Valid"}, channel, config_path=config_path).start()
    assert channel.result.bundle["numtests"] == 2


def test_filter_matching_nothing_is_a_configuration_error(config_path):
    with pytest.raises(ConfigurationError, match="No features to run"):
        create_suite_runner({"count": "true", "tags": "@nothing_has_this"}, MemoryReportChannel(), config_path=config_path)


def test_format_option_writes_a_behave_report(config_path, clean_registry, tmp_path):
    report = tmp_path / "plain.txt"
    runner = create_suite_runner({"format": f"plain:{report}"}, MemoryReportChannel(), config_path=config_path)
    runner.start()
    assert "Feature: Login" in report.read_text(encoding="utf-8")


ACCOUNTS_FEATURE = """\
Feature: Accounts

  Scenario: Open accounts
    Given an open account

  Scenario Outline: Locked accounts
    Given an account for "<user>"
    Then the account is locked

    @smoke
    Examples: smoke rows
      | user  |
      | alice |

    Examples: full rows
      | user    |
      | bob     |
      | charlie |
"""

ACCOUNTS_STEPS = """\
from behave import given, then


@given("an open account")
def step_open_account(context):
    context.locked = False


@given('an account for "{user}"')
def step_account_for(context, user):
    context.locked = True


@then("the account is locked")
def step_account_is_locked(context):
    assert context.locked
"""


@pytest.fixture
def accounts_config(tmp_path):
    steps_dir = tmp_path / "features" / "steps"
    steps_dir.mkdir(parents=True)
    (tmp_path / "features" / "accounts.feature").write_text(ACCOUNTS_FEATURE, encoding="utf-8")
    (steps_dir / "accounts_steps.py").write_text(ACCOUNTS_STEPS, encoding="utf-8")
    path = tmp_path / "bdd_instrument.yaml"
    path.write_text("features: [features]\n", encoding="utf-8")
    return path


def run_accounts(arguments, config_path):
    channel = MemoryReportChannel()
    runner = create_suite_runner(arguments, channel, config_path=config_path)
    runner.start()
    started = [u.bundle for u in channel.statuses if u.code == 1]
    return runner.num_tests, started


def test_tag_on_an_examples_table_selects_its_rows(accounts_config, clean_registry):
    num_tests, started = run_accounts({"tags": "@smoke"}, accounts_config)
    assert num_tests == 1
    assert len(started) == 1
    assert started[0]["test"].startswith("Scenario Outline Locked accounts")


def test_name_filter_judges_outline_rows_by_their_own_names(accounts_config, clean_registry):
    num_tests, started = run_accounts({"name": "accounts$"}, accounts_config)
    assert num_tests == 1
    assert [s["test"] for s in started] == ["Scenario Open accounts"]


def test_behave_release_line():
    assert importlib.metadata.version("behave").startswith("1.2.")
