import yaml

from bdd_instrument.cli import load_arguments_file, main


def test_count_only_prints_result(suite_dir, capsys):
    code = main(["--config", str(suite_dir / "bdd_instrument.yaml"), "-e", "count", "true"])
    out = capsys.readouterr().out.splitlines()
    assert code == 0
    assert out == [
        "INSTRUMENTATION_RESULT: id=InstrumentationTestRunner",
        "INSTRUMENTATION_RESULT: numtests=5",
        "INSTRUMENTATION_CODE: -1",
    ]


def test_later_argument_wins(suite_dir, capsys):
    main(["--config", str(suite_dir / "bdd_instrument.yaml"),
          "-e", "count", "true", "-e", "tags", "@nothing", "-e", "tags", "@locked"])
    assert "INSTRUMENTATION_RESULT: numtests=2" in capsys.readouterr().out


def test_missing_configuration_exits_without_report(tmp_path, capsys):
    code = main(["--config", str(tmp_path / "missing.yaml"), "-e", "count", "true"])
    captured = capsys.readouterr()
    assert code == 1
    assert captured.out == ""
    assert "Suite configuration not found" in captured.err


def test_arguments_file(tmp_path):
    path = tmp_path / "nightly.yaml"
    path.write_text(yaml.safe_dump({"tags": ["@smoke", "@fast"], "dryRun": True, "debug": 5000}), encoding="utf-8")
    assert load_arguments_file(path) == {"tags": ["@smoke", "@fast"], "dryRun": "true", "debug": "5000"}
