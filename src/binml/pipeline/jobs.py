"""Per-function jobs run by the orchestrator."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Mapping, Sequence

from binml.analysis.classifier import Architecture, resolve_architecture
from binml.analysis.features import Scheme, extract, resolve_scheme
from binml.analysis.metadata import tiknib_summary
from binml.corpus.assembler import Granularity, Representation, assemble
from binml.corpus.walks import pad_walk, render_walk, walk, walk_seed
from binml.errors import FunctionSkipped, MalformedRecord
from binml.graphs.callgraph import build_callgraph, build_global_callgraph, callee_aliases
from binml.graphs.cfg import build_cfg, build_skeleton
from binml.graphs.model import Graph
from binml.pipeline.orchestrator import WorkItem
from binml.records.model import ExtractionUnit, Function
from binml.records.parser import build_call_index, build_function
from binml.utils.logging import get_logger

log = get_logger(__name__)

GLOBAL_ITEM = "<global>"


@dataclass(frozen=True)
class UnitContext:
    architecture: Architecture
    imports: frozenset[str]
    strings: frozenset[int]
    callers: Mapping[str, tuple[str, ...]]
    functions: Mapping[str, Function] = field(default_factory=dict)
    aliases: Mapping[str, str] = field(default_factory=dict)


class BaseJob:
    """Resolve the unit's architecture once, then build and filter functions."""

    name = "base"

    def __init__(self, min_blocks: int = 0) -> None:
        self.min_blocks = min_blocks

    def prepare(self, unit: ExtractionUnit) -> UnitContext:
        return UnitContext(
            architecture=resolve_architecture(unit.architecture),
            imports=unit.imports,
            strings=unit.strings,
            callers=build_call_index(unit),
        )

    def work_items(
        self, unit: ExtractionUnit, context: UnitContext
    ) -> Sequence[tuple[str, Mapping[str, Any] | None]]:
        items: list[tuple[str, Mapping[str, Any] | None]] = [
            (record["name"], record) for record in unit.records
        ]
        # Unreadable records still get an item so they are reported per function.
        items.extend((name, None) for name, _ in unit.rejected)
        return items

    def process(self, item: WorkItem) -> Any:
        ctx: UnitContext = item.context
        if item.record is None:
            raise MalformedRecord(
                item.function, item.unit.rejection(item.function) or "no record"
            )
        function = build_function(item.record, ctx.callers.get(item.function, ()))
        if len(function.blocks) < self.min_blocks:
            raise FunctionSkipped(function.name, "below_min_blocks")
        return self.produce(function, item)

    def produce(self, function: Function, item: WorkItem) -> Any:
        raise NotImplementedError


class CfgJob(BaseJob):
    name = "cfg"

    def __init__(self, scheme: Scheme | str = Scheme.GEMINI, min_blocks: int = 0) -> None:
        super().__init__(min_blocks)
        self.scheme = resolve_scheme(scheme)

    def produce(self, function: Function, item: WorkItem) -> Graph:
        ctx: UnitContext = item.context
        return build_cfg(
            function, self.scheme, ctx.architecture, imports=ctx.imports, strings=ctx.strings
        )


class CallGraphMode(str, Enum):
    CG = "cg"
    ONEHOP = "onehopcg"
    CG_CALLERS = "cg-callers"
    ONEHOP_CALLERS = "onehopcg-callers"
    GLOBAL = "globalcg"

    @property
    def hop(self) -> int:
        return 1 if self in (CallGraphMode.ONEHOP, CallGraphMode.ONEHOP_CALLERS) else 0

    @property
    def with_callers(self) -> bool:
        return self in (CallGraphMode.CG_CALLERS, CallGraphMode.ONEHOP_CALLERS)


class CallGraphJob(BaseJob):
    name = "callgraph"

    def __init__(
        self,
        mode: CallGraphMode | str = CallGraphMode.CG,
        with_metadata: bool = False,
        include_unknown: bool = False,
        min_blocks: int = 0,
    ) -> None:
        super().__init__(min_blocks)
        self.mode = CallGraphMode(mode)
        self.with_metadata = with_metadata
        self.include_unknown = include_unknown

    def prepare(self, unit: ExtractionUnit) -> UnitContext:
        base = super().prepare(unit)
        functions: dict[str, Function] = {}
        for record in unit.records:
            try:
                func = build_function(record, base.callers.get(record["name"], ()))
            except MalformedRecord as exc:
                # Reported again, per function, when its own item runs.
                log.debug("callgraph_record_dropped", function=exc.function)
                continue
            functions[func.name] = func
        return UnitContext(
            architecture=base.architecture,
            imports=base.imports,
            strings=base.strings,
            callers=base.callers,
            functions=functions,
            aliases=callee_aliases(functions),
        )

    def work_items(
        self, unit: ExtractionUnit, context: UnitContext
    ) -> Sequence[tuple[str, Mapping[str, Any] | None]]:
        if self.mode is CallGraphMode.GLOBAL:
            return [(GLOBAL_ITEM, None)]
        return super().work_items(unit, context)

    def process(self, item: WorkItem) -> Any:
        if self.mode is not CallGraphMode.GLOBAL:
            return super().process(item)
        ctx: UnitContext = item.context
        functions = [
            f for f in ctx.functions.values() if len(f.blocks) >= self.min_blocks
        ]
        return build_global_callgraph(
            functions,
            name=item.unit.path.stem,
            include_unknown=self.include_unknown,
            with_metadata=self.with_metadata,
            aliases=ctx.aliases,
        )

    def produce(self, function: Function, item: WorkItem) -> Graph:
        ctx: UnitContext = item.context
        return build_callgraph(
            function,
            ctx.functions,
            hop=self.mode.hop,
            include_callers=self.mode.with_callers,
            with_metadata=self.with_metadata,
            include_unknown=self.include_unknown,
            aliases=ctx.aliases,
        )


class CorpusJob(BaseJob):
    name = "corpus"

    def __init__(
        self,
        representation: Representation | str = Representation.DISASM,
        granularity: Granularity | str = Granularity.INSTRUCTION,
        normalise: bool = False,
        reg_norm: bool = False,
        min_blocks: int = 0,
    ) -> None:
        super().__init__(min_blocks)
        self.representation = Representation(representation)
        self.granularity = Granularity(granularity)
        self.normalise = normalise
        self.reg_norm = reg_norm

    def produce(self, function: Function, item: WorkItem) -> str:
        ctx: UnitContext = item.context
        return assemble(
            function,
            self.representation,
            self.granularity,
            normalise=self.normalise,
            reg_norm=self.reg_norm,
            architecture=ctx.architecture,
        )


@dataclass(frozen=True)
class FunctionWalks:
    walks: tuple[tuple[int, ...], ...]
    text: tuple[tuple[str, ...], ...] = ()


class WalkJob(BaseJob):
    name = "walks"

    def __init__(
        self,
        walk_length: int,
        walk_count: int,
        seed: int = 0,
        pad: bool = False,
        pad_value: int = 0,
        representation: Representation | str | None = None,
        min_blocks: int = 0,
    ) -> None:
        super().__init__(min_blocks)
        self.walk_length = walk_length
        self.walk_count = walk_count
        self.seed = seed
        self.pad = pad
        self.pad_value = pad_value
        self.representation = Representation(representation) if representation else None

    def produce(self, function: Function, item: WorkItem) -> FunctionWalks:
        seed = walk_seed(self.seed, item.unit.path.name, function.name)
        raw = walk(build_skeleton(function), self.walk_length, self.walk_count, seed)
        text: tuple[tuple[str, ...], ...] = ()
        if self.representation is not None:
            text = tuple(
                tuple(render_walk(function, path, self.representation.value)) for path in raw
            )
        if self.pad:
            raw = tuple(pad_walk(path, self.walk_length, self.pad_value) for path in raw)
        return FunctionWalks(walks=raw, text=text)


class TiknibJob(BaseJob):
    """Per-function averages and sums of the tiknib block features."""

    name = "tiknib"

    def produce(self, function: Function, item: WorkItem) -> dict[str, float]:
        ctx: UnitContext = item.context
        vectors = [
            extract(block, Scheme.TIKNIB, ctx.architecture, imports=ctx.imports)
            for block in function.blocks
        ]
        return tiknib_summary(vectors)
