"""Data models for call transcripts and scoring results.

A ScoringResult carries no timestamps or other ambient values, so
identical input serializes to byte-identical JSON.
"""

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

Role = Literal["user", "assistant"]


class TranscriptEntry(BaseModel):
    """One speaker turn. ``user`` is the salesperson being coached."""

    model_config = ConfigDict(frozen=True)

    role: Role
    content: str
    timestamp: int = Field(default=0, ge=0, description="Offset from call start in ms")


class CriterionResult(BaseModel):
    """Outcome of a single pass/fail test within a dimension."""

    name: str
    passed: bool
    note: str
    scored: bool = Field(
        default=True,
        description="False for placeholder criteria that never affect the score",
    )


class DimensionScore(BaseModel):
    """Score for one skill area (0-10) with its criteria breakdown."""

    score: int = Field(ge=0, le=10)
    feedback: str
    criteria: list[CriterionResult] = Field(default_factory=list)


class ScoringResult(BaseModel):
    """Full analysis of a call.

    ``dimensions`` preserves rubric order: opener, pitch, discovery,
    objection_handling, closing, communication.
    """

    overall_score: float = Field(ge=0.0, le=100.0, description="Weighted composite 0-100")
    dimensions: dict[str, DimensionScore]
    strengths: list[str] = Field(default_factory=list, max_length=5)
    improvements: list[str] = Field(default_factory=list, max_length=5)
    summary: str
    scenario_type: str = "cold_call"

    def dimension_scores(self) -> dict[str, int]:
        return {k: v.score for k, v in self.dimensions.items()}
