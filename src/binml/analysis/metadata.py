"""Function-level metadata: radare2 ``afij`` subsets and tiknib summaries.

An ``afij`` dump is a JSON list with one function-info object per function.
``subset`` keeps the handful of fields used as similarity features, and
``tiknib_summary`` reduces a function's per-block tiknib vectors to their
averages and sums. ``combine`` joins the two by function name.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Iterable, Mapping, Sequence

import numpy as np
from pydantic import BaseModel, ConfigDict, TypeAdapter, ValidationError

from binml.analysis.features import SCHEME_FIELDS, FeatureVector, Scheme
from binml.errors import MalformedRecord
from binml.utils.logging import get_logger

log = get_logger(__name__)

SUBSET_FIELDS = ("name", "ninstrs", "edges", "indegree", "outdegree", "nlocals", "nargs", "signature")
EXTENDED_FIELDS = (
    "name",
    "ninstrs",
    "edges",
    "indegree",
    "outdegree",
    "nlocals",
    "nargs",
    "nbbs",
    "avg_ins_bb",
)
COMBINED_FIELDS = ("name", "edges", "indegree", "outdegree", "nlocals", "nargs")

TIKNIB_FIELDS = SCHEME_FIELDS[Scheme.TIKNIB]
SUMMARY_FIELDS = tuple(f"avg_{f}" for f in TIKNIB_FIELDS) + tuple(f"sum_{f}" for f in TIKNIB_FIELDS)


class FunctionInfo(BaseModel):
    """One ``afij`` record; fields the subsets do not use are kept but unchecked."""

    model_config = ConfigDict(extra="allow")

    name: str
    offset: int = 0
    ninstrs: int = 0
    edges: int = 0
    nbbs: int = 0
    indegree: int | None = None
    outdegree: int | None = None
    nlocals: int | None = None
    nargs: int | None = None
    signature: str = ""


_RECORDS = TypeAdapter(list[Any])


def load_function_info(path: str | Path) -> tuple[list[FunctionInfo], list[tuple[int, str]]]:
    """Read an ``afij`` dump.

    Returns the valid records and ``(index, reason)`` for each record that
    failed validation. A file that is not a JSON list raises MalformedRecord.
    """
    path = Path(path)
    try:
        data = json.loads(path.read_bytes().decode("utf-8-sig"))
        items = _RECORDS.validate_python(data)
    except UnicodeDecodeError as exc:
        raise MalformedRecord(str(path), f"not UTF-8 text (byte {exc.start})") from exc
    except json.JSONDecodeError as exc:
        raise MalformedRecord(str(path), f"invalid JSON: {exc.msg}") from exc
    except ValidationError as exc:
        raise MalformedRecord(str(path), "expected a list of function-info records") from exc

    infos: list[FunctionInfo] = []
    rejected: list[tuple[int, str]] = []
    for idx, item in enumerate(items):
        try:
            infos.append(FunctionInfo.model_validate(item))
        except ValidationError as exc:
            rejected.append((idx, f"{exc.error_count()} validation error(s)"))
    if rejected:
        log.warning("function_info_rejected", path=str(path), count=len(rejected))
    return infos, rejected


def subset(info: FunctionInfo, extended: bool = False) -> dict[str, Any]:
    """Reduce one record to SUBSET_FIELDS, or EXTENDED_FIELDS with ``extended``.

    Missing degree, local and argument counts become 0; ``avg_ins_bb`` is 0.0
    for a function without blocks.
    """
    values: dict[str, Any] = {
        "name": info.name,
        "ninstrs": info.ninstrs,
        "edges": info.edges,
        "indegree": info.indegree or 0,
        "outdegree": info.outdegree or 0,
        "nlocals": info.nlocals or 0,
        "nargs": info.nargs or 0,
        "signature": info.signature,
        "nbbs": info.nbbs,
        "avg_ins_bb": info.ninstrs / info.nbbs if info.nbbs else 0.0,
    }
    fields = EXTENDED_FIELDS if extended else SUBSET_FIELDS
    return {f: values[f] for f in fields}


def tiknib_summary(vectors: Sequence[FeatureVector]) -> dict[str, float]:
    """Average and sum each tiknib field over a function's blocks."""
    for vec in vectors:
        if vec.scheme is not Scheme.TIKNIB:
            raise ValueError(f"expected tiknib vectors, got {vec.scheme.value}")
    if vectors:
        matrix = np.array([vec.values for vec in vectors], dtype=np.float64)
        avgs, sums = matrix.mean(axis=0), matrix.sum(axis=0)
    else:
        avgs = sums = np.zeros(len(TIKNIB_FIELDS))
    return dict(zip(SUMMARY_FIELDS, [float(v) for v in (*avgs, *sums)]))


def combine(
    infos: Iterable[FunctionInfo], summaries: Mapping[str, Mapping[str, float]]
) -> list[dict[str, Any]]:
    """Join function info and tiknib summaries on the function name.

    Functions present on only one side are dropped.
    """
    out = []
    missing = 0
    for info in infos:
        summary = summaries.get(info.name)
        if summary is None:
            missing += 1
            continue
        row = {f: v for f, v in subset(info).items() if f in COMBINED_FIELDS}
        row.update((f, summary[f]) for f in SUMMARY_FIELDS)
        out.append(row)
    if missing:
        log.info("combine_unmatched", functions=missing)
    return out


class TiknibEntry(BaseModel):
    name: str
    features: dict[str, float]


_TIKNIB_FILE = TypeAdapter(list[TiknibEntry])


def load_tiknib(path: str | Path) -> dict[str, dict[str, float]]:
    """Read a ``-tiknib.json`` file written by the tiknib job, keyed by name."""
    path = Path(path)
    try:
        entries = _TIKNIB_FILE.validate_json(path.read_bytes())
    except ValidationError as exc:
        raise MalformedRecord(str(path), f"not a tiknib summary file ({exc.error_count()} error(s))") from exc
    summaries = {}
    for entry in entries:
        absent = [f for f in SUMMARY_FIELDS if f not in entry.features]
        if absent:
            raise MalformedRecord(entry.name, f"tiknib summary lacks {', '.join(absent)}")
        summaries[entry.name] = entry.features
    return summaries
