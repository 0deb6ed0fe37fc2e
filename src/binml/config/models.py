"""Pydantic configuration models."""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, Field

from binml.config.defaults import (
    DEFAULT_MAX_PENDING_PER_WORKER,
    DEFAULT_MIN_BLOCKS,
    DEFAULT_SCHEME,
    DEFAULT_WALK_COUNT,
    DEFAULT_WALK_LENGTH,
    DEFAULT_WALK_SEED,
)


class PipelineConfig(BaseModel):
    workers: int | None = Field(default=None, ge=1)  # None = os.cpu_count()
    max_pending_per_worker: int = Field(default=DEFAULT_MAX_PENDING_PER_WORKER, ge=1)
    min_blocks: int = Field(default=DEFAULT_MIN_BLOCKS, ge=0)
    recursive: bool = True


class FeaturesConfig(BaseModel):
    scheme: Literal["gemini", "discovre", "dgis", "tiknib"] = DEFAULT_SCHEME


class WalksConfig(BaseModel):
    length: int = Field(default=DEFAULT_WALK_LENGTH, ge=1)
    count: int = Field(default=DEFAULT_WALK_COUNT, ge=1)
    seed: int = DEFAULT_WALK_SEED
    pad: bool = False
    pad_value: int = 0


class CorpusConfig(BaseModel):
    representation: Literal["disasm", "ir", "esil"] = "disasm"
    granularity: Literal["instruction", "function"] = "instruction"
    normalise: bool = False
    reg_norm: bool = False


class CallGraphConfig(BaseModel):
    include_unknown: bool = False
    with_metadata: bool = False


class LoggingConfig(BaseModel):
    level: str = "INFO"
    json_output: bool = False


class BinmlConfig(BaseModel):
    pipeline: PipelineConfig = Field(default_factory=PipelineConfig)
    features: FeaturesConfig = Field(default_factory=FeaturesConfig)
    walks: WalksConfig = Field(default_factory=WalksConfig)
    corpus: CorpusConfig = Field(default_factory=CorpusConfig)
    callgraph: CallGraphConfig = Field(default_factory=CallGraphConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)
