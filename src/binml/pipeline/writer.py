"""Persist run results as graph documents, corpora and walk files.

Nothing is written until a run has finished; results arrive already sorted by
(unit path, function name), so output bytes do not depend on scheduling.
"""

from __future__ import annotations

import hashlib
import json
import re
from itertools import groupby
from pathlib import Path
from typing import Any, Iterable

from binml.config.defaults import MAX_FUNCTION_NAME_CHARS, TRUNCATED_FUNCTION_NAME_CHARS
from binml.corpus.assembler import Granularity, Representation
from binml.graphs.model import Graph, GraphKind
from binml.pipeline.jobs import CallGraphJob, CfgJob, CorpusJob, TiknibJob, WalkJob
from binml.pipeline.orchestrator import ItemResult, RunReport
from binml.utils.logging import get_logger

log = get_logger(__name__)

_UNSAFE = re.compile(r"[^\w.@+-]")

GRAPH_SUFFIXES = {
    GraphKind.CFG: "",
    GraphKind.LOCAL_CALLGRAPH: "-cg",
    GraphKind.ONE_HOP_CALLGRAPH: "-1hopcg",
    GraphKind.LOCAL_CALLGRAPH_WITH_CALLERS: "-cg-callers",
    GraphKind.ONE_HOP_CALLGRAPH_WITH_CALLERS: "-1hopcg-callers",
    GraphKind.GLOBAL_CALLGRAPH: "-globalcg",
}

_CORPUS_SUFFIXES = {
    (Representation.DISASM, Granularity.INSTRUCTION): "-dis-singles.txt",
    (Representation.ESIL, Granularity.INSTRUCTION): "-esil-singles.txt",
    (Representation.IR, Granularity.INSTRUCTION): "-ir-singles.txt",
    (Representation.DISASM, Granularity.FUNCTION): "-dfs.json",
    (Representation.ESIL, Granularity.FUNCTION): "-efs.json",
    (Representation.IR, Granularity.FUNCTION): "-ifs.json",
}


def safe_name(name: str) -> str:
    """Make a function name usable as a file name component."""
    if len(name) > MAX_FUNCTION_NAME_CHARS:
        name = name[:TRUNCATED_FUNCTION_NAME_CHARS]
    return _UNSAFE.sub("_", name)


def name_digest(key: str) -> str:
    return hashlib.blake2b(key.encode(), digest_size=4).hexdigest()


def dumps(data: Any) -> str:
    return json.dumps(data, ensure_ascii=False) + "\n"


class ArtifactWriter:
    def __init__(self, output_dir: str | Path) -> None:
        self.output_dir = Path(output_dir)
        self._claimed: set[str] = set()

    def _claim(self, target: Path, key: str) -> Path:
        """Return ``target``, or a digest-suffixed variant if a previous write took it.

        Names are compared case-folded so case-insensitive filesystems do not
        merge them either.
        """
        if target.as_posix().casefold() in self._claimed:
            target = target.with_name(f"{target.stem}-{name_digest(key)}{target.suffix}")
            log.warning("output_name_collision", key=key, path=str(target))
        self._claimed.add(target.as_posix().casefold())
        return target

    def write(self, report: RunReport, job: Any) -> list[Path]:
        self.output_dir.mkdir(parents=True, exist_ok=True)
        self._claimed.clear()
        if isinstance(job, (CfgJob, CallGraphJob)):
            written = self._write_graphs(report.artifacts())
        elif isinstance(job, CorpusJob):
            written = self._write_corpus(report.artifacts(), job)
        elif isinstance(job, WalkJob):
            written = self._write_walks(report.artifacts())
        elif isinstance(job, TiknibJob):
            written = self._write_tiknib(report.artifacts())
        else:
            raise TypeError(f"no writer for job {type(job).__name__}")
        log.info("artifacts_written", job=report.job, files=len(written), dir=str(self.output_dir))
        return written

    def _write_graphs(self, results: Iterable[ItemResult]) -> list[Path]:
        written = []
        for result in results:
            graph: Graph = result.artifact
            stem = Path(result.unit).stem
            suffix = GRAPH_SUFFIXES[graph.kind]
            if graph.kind is GraphKind.GLOBAL_CALLGRAPH:
                target = self.output_dir / f"{stem}{suffix}.json"
            else:
                target = self.output_dir / stem / f"{stem}-{safe_name(result.function)}{suffix}.json"
            target = self._claim(target, f"{result.unit}\x00{result.function}")
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_text(dumps(graph.to_document()))
            written.append(target)
        return written

    def _write_corpus(self, results: Iterable[ItemResult], job: CorpusJob) -> list[Path]:
        suffix = _CORPUS_SUFFIXES[(job.representation, job.granularity)]
        written = []
        for unit, group in groupby(results, key=lambda r: r.unit):
            target = self._claim(self.output_dir / f"{Path(unit).stem}{suffix}", unit)
            items = [r for r in group if r.artifact]
            if job.granularity is Granularity.FUNCTION:
                target.write_text(
                    json.dumps({r.function: r.artifact for r in items}, indent=2, ensure_ascii=False)
                    + "\n"
                )
            else:
                target.write_text("".join(f"{r.artifact}\n" for r in items))
            written.append(target)
        return written

    def _write_walks(self, results: Iterable[ItemResult]) -> list[Path]:
        written = []
        for unit, group in groupby(results, key=lambda r: r.unit):
            stem = Path(unit).stem
            items = list(group)
            target = self._claim(self.output_dir / f"{stem}-walks.json", unit)
            target.write_text(dumps({r.function: [list(w) for w in r.artifact.walks] for r in items}))
            written.append(target)

            texts = [
                " ".join(line for line in path_text if line)
                for r in items
                for path_text in r.artifact.text
            ]
            if texts:
                text_target = self._claim(self.output_dir / f"{stem}-walks.txt", unit)
                text_target.write_text("".join(f"{t}\n" for t in texts))
                written.append(text_target)
        return written

    def _write_tiknib(self, results: Iterable[ItemResult]) -> list[Path]:
        written = []
        for unit, group in groupby(results, key=lambda r: r.unit):
            target = self._claim(self.output_dir / f"{Path(unit).stem}-tiknib.json", unit)
            target.write_text(dumps([{"name": r.function, "features": r.artifact} for r in group]))
            written.append(target)
        return written
