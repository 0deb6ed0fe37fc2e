"""Tests for function-string deduplication."""

import json
from pathlib import Path

import pytest

from binml.corpus.dedup import dedup_files, dedup_function_strings, string_digest


def test_first_occurrence_wins():
    corpora = [
        (Path("b.json"), {"g": "push rbp", "h": "ret"}),
        (Path("a.json"), {"z": "push rbp", "f": "nop"}),
    ]
    result = dedup_function_strings(corpora)
    assert result.total == 4
    assert result.duplicates == 1
    assert result.unique == 3
    # a.json sorts first, so its copy of "push rbp" is kept
    assert result.kept[Path("a.json")] == {"f": "nop", "z": "push rbp"}
    assert result.kept[Path("b.json")] == {"h": "ret"}


def test_duplicates_within_one_file():
    result = dedup_function_strings([(Path("a.json"), {"b": "ret", "a": "ret"})])
    assert result.kept[Path("a.json")] == {"a": "ret"}


def test_digest_distinguishes_strings():
    assert string_digest("ret") == string_digest("ret")
    assert string_digest("ret") != string_digest("ret ")


def test_dedup_files(tmp_path):
    src = tmp_path / "in"
    src.mkdir()
    (src / "one-dfs.json").write_text(json.dumps({"main": "mov ret", "f": "nop"}))
    (src / "two-dfs.json").write_text(json.dumps({"g": "nop"}))

    out = tmp_path / "out"
    result = dedup_files(sorted(src.glob("*.json")), out)
    assert result.duplicates == 1
    assert json.loads((out / "one-dfs-dedup.json").read_text()) == {"f": "nop", "main": "mov ret"}
    assert json.loads((out / "two-dfs-dedup.json").read_text()) == {}


def test_dedup_files_rejects_non_objects(tmp_path):
    path = tmp_path / "list.json"
    path.write_text("[1, 2]")
    with pytest.raises(ValueError, match="expected a JSON object"):
        dedup_files([path], tmp_path / "out")
