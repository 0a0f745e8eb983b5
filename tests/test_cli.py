"""End-to-end tests for the qcr command line."""

import json
from pathlib import Path

import pytest

from qcr.cli.main import main, report_stem


@pytest.fixture
def project(tmp_path):
    src = tmp_path / "src"
    src.mkdir()
    (src / "clean.py").write_text("x = 1\n", encoding="utf-8")
    (src / "risky.js").write_text('eval(input);\npassword = "hunter2";\n', encoding="utf-8")
    return src


def load_reports(out_dir):
    return {r["filename"].rsplit("/", 1)[-1]: r for r in (json.loads(p.read_text()) for p in out_dir.glob("*.json"))}


def test_reviews_directory_and_writes_reports(project, tmp_path):
    out = tmp_path / "reports"
    assert main([str(project), "--out", str(out)]) == 0

    reports = load_reports(out)
    assert set(reports) == {"clean.py", "risky.js"}
    assert reports["clean.py"]["score"] == 100
    risky = reports["risky.js"]
    assert risky["score"] == 70
    assert risky["language"] == "javascript"
    assert [i["rule"] for i in risky["issues"]] == ["eval-usage", "hardcoded-password"]


def test_flat_policy_flag(project, tmp_path):
    out = tmp_path / "reports"
    main([str(project), "--out", str(out), "--policy", "flat"])
    assert load_reports(out)["risky.js"]["score"] == 70


def test_no_save(project, tmp_path):
    out = tmp_path / "reports"
    assert main([str(project), "--out", str(out), "--no-save"]) == 0
    assert not out.exists()


def test_fail_under(project):
    assert main([str(project), "--no-save", "--fail-under", "80"]) == 1
    assert main([str(project), "--no-save", "--fail-under", "50"]) == 0


def test_binary_file_gets_failed_review(project, tmp_path):
    (project / "blob.js").write_bytes(b"\x00\x01\x02")
    out = tmp_path / "reports"
    assert main([str(project), "--out", str(out)]) == 0
    blob = load_reports(out)["blob.js"]
    assert blob["score"] == 0
    assert "binary" in blob["error"]


def test_no_files(tmp_path):
    empty = tmp_path / "empty"
    empty.mkdir()
    with pytest.raises(SystemExit) as exc:
        main([str(empty), "--no-save"])
    assert exc.value.code == 2


def test_too_many_files(project):
    with pytest.raises(SystemExit) as exc:
        main([str(project), "--no-save", "--max-files", "1"])
    assert exc.value.code == 2


def test_ai_without_key_fails_before_reviewing(project, tmp_path):
    out = tmp_path / "reports"
    with pytest.raises(SystemExit) as exc:
        main([str(project), "--out", str(out), "--ai"])
    assert exc.value.code == 2
    assert not out.exists()


def test_same_named_files_get_separate_reports(tmp_path):
    src = tmp_path / "src"
    for sub in ("a", "b"):
        (src / sub).mkdir(parents=True)
        (src / sub / "index.js").write_text("eval(x)\n", encoding="utf-8")
    out = tmp_path / "reports"

    assert main([str(src), "--out", str(out)]) == 0

    written = sorted(p.name for p in out.glob("*.json"))
    assert len(written) == 2
    assert written[0].startswith("a_index_js_")
    assert written[1].startswith("b_index_js_")
    filenames = sorted(json.loads(p.read_text())["filename"] for p in out.glob("*.json"))
    assert filenames == [str(src / "a" / "index.js"), str(src / "b" / "index.js")]


def test_report_stem():
    assert report_stem("src/a/index.js", Path("src")) == "a_index_js"
    assert report_stem("elsewhere/index.js", Path("src")) == "index_js"
    assert report_stem("lone.py") == "lone_py"


def test_malformed_setting_exits_cleanly(project, monkeypatch):
    monkeypatch.setenv("QCR_MAX_WORKERS", "abc")
    with pytest.raises(SystemExit) as exc:
        main([str(project), "--no-save"])
    assert exc.value.code == 2
