"""Tests for CLI commands and flags."""

import json

from typer.testing import CliRunner

from binml.cli.app import app

runner = CliRunner()


def test_version_flag():
    result = runner.invoke(app, ["--version"])
    assert result.exit_code == 0
    assert "binml" in result.output


def test_help_shows_all_commands():
    result = runner.invoke(app, ["--help"])
    assert result.exit_code == 0
    for cmd in ["graphs", "nlp", "walks", "dedup", "info", "metadata"]:
        assert cmd in result.output


def test_graphs_help():
    result = runner.invoke(app, ["graphs", "--help"])
    assert result.exit_code == 0
    assert "--scheme" in result.output


def test_graphs_cfg(write_unit, unit_doc, tmp_path):
    src = write_unit(unit_doc, "bin.json")
    out = tmp_path / "out"
    result = runner.invoke(app, ["graphs", str(src), "--output", str(out), "--scheme", "dgis", "-j", "2"])
    assert result.exit_code == 0, result.output
    doc = json.loads((out / "bin" / "bin-main.json").read_text())
    assert "num_lib_calls" in doc["nodes"][0]


def test_graphs_global_callgraph(write_unit, unit_doc, tmp_path):
    src = write_unit(unit_doc, "bin.json")
    out = tmp_path / "out"
    result = runner.invoke(app, ["graphs", str(src), "-o", str(out), "--mode", "globalcg", "--with-metadata"])
    assert result.exit_code == 0, result.output
    doc = json.loads((out / "bin-globalcg.json").read_text())
    assert doc["nodes"][0]["num_blocks"] == 9


def test_graphs_directory_input(write_unit, unit_doc, tmp_path):
    write_unit(unit_doc, "units/a.json")
    write_unit(unit_doc, "units/nested/b.json")
    out = tmp_path / "out"
    result = runner.invoke(app, ["graphs", str(tmp_path / "units"), "-o", str(out), "--no-recursive"])
    assert result.exit_code == 0, result.output
    assert (out / "a" / "a-main.json").exists()
    assert not (out / "b").exists()


def test_graphs_bad_scheme(write_unit, unit_doc, tmp_path):
    src = write_unit(unit_doc)
    result = runner.invoke(app, ["graphs", str(src), "-o", str(tmp_path / "out"), "--scheme", "bogus"])
    assert result.exit_code == 1


def test_graphs_bad_mode(write_unit, unit_doc, tmp_path):
    src = write_unit(unit_doc)
    result = runner.invoke(app, ["graphs", str(src), "-o", str(tmp_path / "out"), "--mode", "twohop"])
    assert result.exit_code == 1


def test_missing_input(tmp_path):
    result = runner.invoke(app, ["graphs", str(tmp_path / "nope.json"), "-o", str(tmp_path / "out")])
    assert result.exit_code == 1


def test_every_function_failed(write_unit, unit_doc, tmp_path):
    unit_doc["functions"] = [f for f in unit_doc["functions"] if f["name"] == "broken"]
    src = write_unit(unit_doc)
    result = runner.invoke(app, ["graphs", str(src), "-o", str(tmp_path / "out")])
    assert result.exit_code == 1


def test_every_unit_rejected(write_unit, unit_doc, tmp_path):
    src = write_unit(unit_doc)
    result = runner.invoke(app, ["graphs", str(src), "-o", str(tmp_path / "out"), "--arch", "sparc"])
    assert result.exit_code == 1


def test_nlp_function_strings(write_unit, unit_doc, tmp_path):
    src = write_unit(unit_doc, "bin.json")
    out = tmp_path / "out"
    result = runner.invoke(
        app, ["nlp", str(src), "-o", str(out), "--granularity", "function", "--normalise", "--reg-norm"]
    )
    assert result.exit_code == 0, result.output
    data = json.loads((out / "bin-dfs.json").read_text())
    assert data["helper"].startswith("push fp lea reg64")


def test_walks(write_unit, unit_doc, tmp_path):
    src = write_unit(unit_doc, "bin.json")
    out = tmp_path / "out"
    result = runner.invoke(app, ["walks", str(src), "-o", str(out), "--length", "3", "--count", "2", "--seed", "4"])
    assert result.exit_code == 0, result.output
    walks = json.loads((out / "bin-walks.json").read_text())
    assert all(len(w) <= 3 for w in walks["main"])


def test_dedup(tmp_path):
    src = tmp_path / "corpus"
    src.mkdir()
    (src / "a-dfs.json").write_text(json.dumps({"f": "ret", "g": "ret"}))
    out = tmp_path / "out"
    result = runner.invoke(app, ["dedup", str(src), "-o", str(out)])
    assert result.exit_code == 0, result.output
    assert json.loads((out / "a-dfs-dedup.json").read_text()) == {"f": "ret"}


def test_info(write_unit, unit_doc):
    src = write_unit(unit_doc, "bin.json")
    result = runner.invoke(app, ["info", str(src)])
    assert result.exit_code == 0, result.output
    assert "x86_64" in result.output


def test_info_json(write_unit, unit_doc):
    src = write_unit(unit_doc, "bin.json")
    result = runner.invoke(app, ["info", str(src), "--json"])
    assert result.exit_code == 0, result.output
    assert '"functions": 4' in result.output


def test_empty_unit_is_not_an_error(write_unit, tmp_path):
    src = write_unit({"architecture": "x86_64", "functions": []}, "empty.json")
    result = runner.invoke(app, ["graphs", str(src), "-o", str(tmp_path / "out")])
    assert result.exit_code == 0, result.output
    assert "No functions" in result.output


def test_graphs_tiknib_scheme(write_unit, unit_doc, tmp_path):
    src = write_unit(unit_doc, "bin.json")
    out = tmp_path / "out"
    result = runner.invoke(app, ["graphs", str(src), "-o", str(out), "--scheme", "tiknib"])
    assert result.exit_code == 0, result.output
    doc = json.loads((out / "bin" / "bin-helper.json").read_text())
    assert doc["nodes"][0]["total"] == 5.0


def test_bad_config_file_exits(write_unit, unit_doc, tmp_path):
    src = write_unit(unit_doc, "bin.json")
    cfg = tmp_path / "binml.yaml"
    cfg.write_text("features:\n  scheme: bogus\n")
    result = runner.invoke(app, ["--config", str(cfg), "info", str(src)])
    assert result.exit_code == 1


def test_info_counts_rejected_records(write_unit, unit_doc):
    unit_doc["functions"].append({"offset": 16, "blocks": []})
    src = write_unit(unit_doc, "bin.json")
    result = runner.invoke(app, ["info", str(src), "--json"])
    assert result.exit_code == 0, result.output
    assert '"functions": 5' in result.output
    assert '"rejected": 1' in result.output


AFIJ = [
    {"name": "main", "ninstrs": 20, "edges": 12, "nbbs": 9, "nargs": 2, "signature": "int main ();"},
    {"name": "helper", "ninstrs": 5, "edges": 0, "nbbs": 1},
]


def test_metadata_finfo(tmp_path):
    src = tmp_path / "bin-afij.json"
    src.write_text(json.dumps(AFIJ))
    out = tmp_path / "out"
    result = runner.invoke(app, ["metadata", "finfo", str(src), "-o", str(out), "--extended"])
    assert result.exit_code == 0, result.output
    rows = json.loads((out / "bin-afij-finfo-subset.json").read_text())
    assert [r["name"] for r in rows] == ["main", "helper"]
    assert rows[1]["avg_ins_bb"] == 5.0


def test_metadata_finfo_unreadable(tmp_path):
    src = tmp_path / "bin-afij.json"
    src.write_text("{not json")
    result = runner.invoke(app, ["metadata", "finfo", str(src), "-o", str(tmp_path / "out")])
    assert result.exit_code == 1


def test_metadata_tiknib_then_combine(write_unit, unit_doc, tmp_path):
    src = write_unit(unit_doc, "bin.json")
    out = tmp_path / "out"
    result = runner.invoke(app, ["metadata", "tiknib", str(src), "-o", str(out)])
    assert result.exit_code == 0, result.output
    tiknib = out / "bin-tiknib.json"
    assert [e["name"] for e in json.loads(tiknib.read_text())] == ["helper", "main", "thunk"]

    finfo = tmp_path / "bin-afij.json"
    finfo.write_text(json.dumps(AFIJ))
    result = runner.invoke(app, ["metadata", "combine", str(finfo), str(tiknib), "-o", str(out)])
    assert result.exit_code == 0, result.output
    rows = json.loads((out / "bin-afij-finfo-tiknib.json").read_text())
    assert [r["name"] for r in rows] == ["main", "helper"]
    assert rows[1]["sum_total"] == 5.0
    assert rows[1]["edges"] == 0
