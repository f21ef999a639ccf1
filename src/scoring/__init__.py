"""Deterministic, rule-based scoring of sales call transcripts.

Six weighted dimensions (opener, pitch, discovery, objection handling,
closing, communication), each scored 0-10 from pass/fail criteria defined
as rubric data, combined into a 0-100 composite.

Usage:
    from src.scoring import analyze

    result = analyze(transcript, duration_seconds=120, scenario_type="cold_call")
"""

from src.scoring.engine import analyze
from src.scoring.rubric import DEFAULT_RUBRIC, RubricConfig, get_rubric, load_rubric
from src.scoring.schemas import (
    CriterionResult,
    DimensionScore,
    ScoringResult,
    TranscriptEntry,
)

__all__ = [
    "DEFAULT_RUBRIC",
    "CriterionResult",
    "DimensionScore",
    "RubricConfig",
    "ScoringResult",
    "TranscriptEntry",
    "analyze",
    "get_rubric",
    "load_rubric",
]
