"""Drop repeated function strings across a corpus of function-string files.

A function-string file is a JSON object mapping function name to its
space-joined instruction string. Two functions are duplicates when their
strings hash identically; the first occurrence (by file path, then function
name) is kept.
"""

from __future__ import annotations

import hashlib
import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterable

from binml.utils.logging import get_logger

log = get_logger(__name__)


@dataclass
class DedupResult:
    kept: dict[Path, dict[str, str]] = field(default_factory=dict)
    total: int = 0
    duplicates: int = 0

    @property
    def unique(self) -> int:
        return self.total - self.duplicates


def string_digest(text: str) -> str:
    return hashlib.blake2b(text.encode(), digest_size=16).hexdigest()


def dedup_function_strings(
    corpora: Iterable[tuple[Path, dict[str, str]]],
) -> DedupResult:
    result = DedupResult()
    seen: set[str] = set()
    for path, entries in sorted(corpora, key=lambda item: str(item[0])):
        kept = {}
        for name in sorted(entries):
            result.total += 1
            digest = string_digest(entries[name])
            if digest in seen:
                result.duplicates += 1
                continue
            seen.add(digest)
            kept[name] = entries[name]
        result.kept[path] = kept
    log.info("dedup_complete", total=result.total, duplicates=result.duplicates)
    return result


def dedup_files(paths: Iterable[Path], output_dir: Path) -> DedupResult:
    """Deduplicate function-string files into ``output_dir/<stem>-dedup.json``."""
    corpora = []
    for path in paths:
        data = json.loads(Path(path).read_text())
        if not isinstance(data, dict):
            raise ValueError(f"{path}: expected a JSON object of function strings")
        corpora.append((Path(path), {str(k): str(v) for k, v in data.items()}))

    result = dedup_function_strings(corpora)
    output_dir.mkdir(parents=True, exist_ok=True)
    for path, kept in result.kept.items():
        target = output_dir / f"{path.stem}-dedup.json"
        target.write_text(json.dumps(kept, indent=2, sort_keys=True) + "\n")
    return result
