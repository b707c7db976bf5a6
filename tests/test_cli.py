import json
import logging

import pytest
from typer.testing import CliRunner

import flowmend.pipeline as pipeline
from flowmend.cli import app

runner = CliRunner()

NODE = {"name": "a", "type": "n8n-nodes-base.set", "position": [0, 0]}


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch):
    for name in (
        "FLOWMEND_WORKFLOWS_DIR", "FLOWMEND_CREATE_BACKUP", "FLOWMEND_SAMPLE_SIZE",
        "FLOWMEND_LOG_LEVEL", "FLOWMEND_LOG_DIR",
    ):
        monkeypatch.delenv(name, raising=False)


def _dump(folder, name, content):
    text = content if isinstance(content, str) else json.dumps(content)
    (folder / name).write_text(text, encoding="utf-8")


def test_repair_then_verify_succeeds(tmp_path):
    _dump(tmp_path, "1_a.json", {"workflow": {"nodes": [NODE]}})
    _dump(tmp_path, "My Workflow!!.json", '{"nodes": []} trailing')

    result = runner.invoke(app, ["repair", "--dir", str(tmp_path)])

    assert result.exit_code == 0, result.output
    assert "Written back:     2" in result.output
    assert json.loads((tmp_path / "My Workflow!!.json").read_text())["id"] == "My_Workflow__"

    result = runner.invoke(app, ["verify", "--dir", str(tmp_path)])
    assert result.exit_code == 0, result.output


def test_repair_exits_nonzero_when_records_stay_invalid(tmp_path):
    _dump(tmp_path, "bad.json", '{"id": "1", "nodes": [')
    result = runner.invoke(app, ["repair", "--dir", str(tmp_path)])
    assert result.exit_code == 1
    assert "bad.json" in result.output


def test_missing_directory_exits_one(tmp_path):
    for cmd in ("repair", "verify", "flatten", "check-import"):
        result = runner.invoke(app, [cmd, "--dir", str(tmp_path / "nope")])
        assert result.exit_code == 1, cmd
        assert "does not exist" in result.output


def test_verify_writes_reports(tmp_path):
    wf = tmp_path / "wf"
    wf.mkdir()
    _dump(wf, "noid.json", {"nodes": []})
    report = tmp_path / "out" / "report.json"
    csv = tmp_path / "out" / "problems.csv"

    result = runner.invoke(app, ["verify", "--dir", str(wf), "--report", str(report), "--csv", str(csv)])

    assert result.exit_code == 1
    payload = json.loads(report.read_text(encoding="utf-8"))
    assert payload["missing_id"] == 1
    assert payload["problems"][0]["file"] == "noid.json"
    assert "noid.json" in csv.read_text(encoding="utf-8")


def test_flatten_reports_conflicts(tmp_path):
    _dump(tmp_path, "a.json", {"id": "1", "nodes": []})
    (tmp_path / "sub").mkdir()
    _dump(tmp_path / "sub", "a.json", {"id": "2", "nodes": []})

    result = runner.invoke(app, ["flatten", "--dir", str(tmp_path)])

    assert result.exit_code == 1
    assert "- a.json" in result.output
    assert (tmp_path / "sub" / "a.json").exists()


def test_flatten_success(tmp_path):
    (tmp_path / "sub").mkdir()
    _dump(tmp_path / "sub", "b.json", {"id": "2", "nodes": []})
    result = runner.invoke(app, ["flatten", "--dir", str(tmp_path)])
    assert result.exit_code == 0, result.output
    assert (tmp_path / "b.json").exists()


def test_check_import(tmp_path):
    _dump(tmp_path, "good.json", {"id": "1", "nodes": [NODE]})
    _dump(tmp_path, "notype.json", {"id": "2", "nodes": [{"name": "a", "position": [0, 0]}]})

    ok = runner.invoke(app, ["check-import", "good.json", "--dir", str(tmp_path)])
    assert ok.exit_code == 0, ok.output
    assert "Passed: 1/1" in ok.output

    bad = runner.invoke(app, ["check-import", "good.json", "notype.json", "--dir", str(tmp_path)])
    assert bad.exit_code == 1
    assert "missing required field" in bad.output


def test_directory_from_environment(tmp_path, monkeypatch):
    _dump(tmp_path, "1_a.json", {"id": "1", "nodes": []})
    monkeypatch.setenv("FLOWMEND_WORKFLOWS_DIR", str(tmp_path))
    result = runner.invoke(app, ["verify"])
    assert result.exit_code == 0, result.output


def test_repair_fails_when_an_unsampled_record_is_unrepairable(tmp_path):
    for i in range(150):
        _dump(tmp_path, f"{i:03d}_ok.json", {"id": str(i), "nodes": [NODE]})
    _dump(tmp_path, "zz_bad.json", '{"id": "1", "nodes": [')

    result = runner.invoke(app, ["repair", "--dir", str(tmp_path), "--sample-size", "5"])

    assert result.exit_code == 1, result.output
    assert "zz_bad.json" in result.output
    assert "[ok] all records repaired" not in result.output


@pytest.mark.parametrize("cmd", ["repair", "verify"])
@pytest.mark.parametrize("size", ["0", "-1"])
def test_non_positive_sample_size_is_a_usage_error(tmp_path, cmd, size):
    _dump(tmp_path, "1_a.json", {"id": "1", "nodes": [NODE]})
    result = runner.invoke(app, [cmd, "--dir", str(tmp_path), "--sample-size", size])
    assert result.exit_code == 2
    assert json.loads((tmp_path / "1_a.json").read_text()) == {"id": "1", "nodes": [NODE]}


def test_backup_failure_exits_one(tmp_path, monkeypatch):
    _dump(tmp_path, "1_a.json", {"workflow": {"nodes": []}})

    def boom(src, dst):
        raise OSError("permission denied")

    monkeypatch.setattr(pipeline, "backup_tree", boom)
    result = runner.invoke(app, ["repair", "--dir", str(tmp_path), "--backup"])

    assert result.exit_code == 1
    assert "[error] Backup of" in result.output
    assert json.loads((tmp_path / "1_a.json").read_text()) == {"workflow": {"nodes": []}}


def test_log_dir_and_level_come_from_environment(tmp_path, monkeypatch):
    wf = tmp_path / "wf"
    wf.mkdir()
    _dump(wf, "1_a.json", {"id": "1", "nodes": []})
    monkeypatch.setenv("FLOWMEND_LOG_LEVEL", "debug")
    monkeypatch.setenv("FLOWMEND_LOG_DIR", str(tmp_path / "logs"))

    result = runner.invoke(app, ["repair", "--dir", str(wf)])

    assert result.exit_code == 0, result.output
    assert logging.getLogger("flowmend").level == logging.DEBUG
    assert "repairing 1 record(s)" in (tmp_path / "logs" / "flowmend.log").read_text(encoding="utf-8")


def test_unknown_log_level_is_a_usage_error(tmp_path, monkeypatch):
    monkeypatch.setenv("FLOWMEND_LOG_LEVEL", "chatty")
    result = runner.invoke(app, ["verify", "--dir", str(tmp_path)])
    assert result.exit_code == 2
