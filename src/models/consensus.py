"""Cross-model consensus models.

A consensus run asks several vision providers the same question and
resolves one answer per field.  :class:`ConsensusResult` keeps both the
merged answer and every provider's raw output so a reviewer can see how
each field was decided.
"""

from __future__ import annotations

from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class ConsensusOptions(BaseModel):
    """Per-call consensus configuration (the ``consensus`` processing option)."""

    model_config = ConfigDict(frozen=True)

    enabled: bool = False
    models: list[str] = Field(default_factory=list)
    min_agreement_ratio: float = Field(default=0.5, ge=0.0, le=1.0)
    parallel: bool = True
    model_timeout_ms: int = Field(default=60000, ge=0)


class MergeStrategy(str, Enum):  # noqa: UP042 -- StrEnum requires Python 3.11+
    UNANIMOUS = "unanimous"
    PLURALITY = "plurality"
    FIRST_PROVIDER = "first_provider"
    UNION = "union"


class ProviderOutput(BaseModel):
    """What one provider returned (or why it returned nothing)."""

    model_config = ConfigDict(frozen=True)

    model_key: str
    model_name: str | None = None
    fields: dict[str, Any] = Field(default_factory=dict)
    raw_text: str = ""
    processing_time_ms: int = 0
    error: str | None = None

    @property
    def succeeded(self) -> bool:
        return self.error is None


class FieldConsensus(BaseModel):
    """How a single field was resolved."""

    model_config = ConfigDict(frozen=True)

    field: str
    value: Any = None
    agreement: float = Field(default=0.0, ge=0.0, le=1.0)
    confidence: float = Field(default=0.0, ge=0.0, le=1.0)
    strategy: MergeStrategy = MergeStrategy.UNANIMOUS
    responding: list[str] = Field(default_factory=list)
    agreeing: list[str] = Field(default_factory=list)
    low_confidence: bool = False


class ConsensusResult(BaseModel):
    """Outcome of one consensus invocation.

    ``consensus_computed`` is False whenever fewer than two providers
    succeeded; ``agreement_score`` is then 1.0 by convention and carries no
    information.
    """

    model_config = ConfigDict(frozen=True)

    success: bool
    models_used: list[str] = Field(default_factory=list)
    models_failed: list[str] = Field(default_factory=list)
    agreement_score: float = Field(default=0.0, ge=0.0, le=1.0)
    overall_confidence: float = Field(default=0.0, ge=0.0, le=1.0)
    consensus_computed: bool = False
    merged_fields: dict[str, Any] = Field(default_factory=dict)
    field_consensus: list[FieldConsensus] = Field(default_factory=list)
    provider_outputs: list[ProviderOutput] = Field(default_factory=list)
    errors: list[str] = Field(default_factory=list)
    processing_time_ms: int = 0

    def field(self, name: str) -> FieldConsensus | None:
        for item in self.field_consensus:
            if item.field == name:
                return item
        return None
