"""Cold-call scoring rubric as static configuration data.

The rubric is a validated document: six weighted dimensions, each an
ordered list of criteria. A criterion is one of

- a phrase test: ``require_any`` phrases present (at least ``min_matches``
  distinct ones) and/or no ``forbid_any`` phrase present,
- a metric test: a numeric text metric checked against ``below`` (exclusive),
  ``at_most`` and ``at_least`` (inclusive) bounds,
- a fixed result (placeholder criteria that cannot be judged from text).

Phrase tests run against a scope: the first user turn, all user turns, or
the whole dialogue, always lower-cased. The evaluator lives in
``src.scoring.engine``; nothing here is executable logic beyond validation.

A custom rubric can be supplied as JSON via the RUBRIC_PATH setting.
"""

import json
from functools import lru_cache
from pathlib import Path
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, model_validator

from src.config.settings import get_settings

Scope = Literal["first_user_turn", "user", "dialogue"]
Metric = Literal["talk_ratio", "filler_ratio", "words_per_minute", "avg_sentence_length"]


class Criterion(BaseModel):
    """A single pass/fail test.

    Notes may use ``{value}``, ``{rounded}`` and ``{percent}`` placeholders,
    filled from the metric value for metric criteria.
    """

    model_config = ConfigDict(frozen=True)

    name: str
    scope: Scope = "user"
    require_any: tuple[str, ...] = ()
    min_matches: int = Field(default=1, ge=1)
    forbid_any: tuple[str, ...] = ()
    forbid_scope: Scope | None = None
    metric: Metric | None = None
    below: float | None = None
    at_most: float | None = None
    at_least: float | None = None
    fixed_result: bool | None = None
    scored: bool = True
    pass_note: str
    fail_note: str
    forbid_note: str | None = Field(
        default=None, description="Note used when a forbidden phrase caused the failure",
    )
    low_note: str | None = Field(
        default=None, description="Note used when a metric fell under at_least",
    )

    @model_validator(mode="after")
    def _one_kind_of_test(self) -> "Criterion":
        kinds = [
            bool(self.require_any or self.forbid_any),
            self.metric is not None,
            self.fixed_result is not None,
        ]
        if sum(kinds) != 1:
            raise ValueError(
                f"Criterion {self.name!r} must define exactly one of phrases, metric, fixed_result"
            )
        if self.metric is not None and all(
            b is None for b in (self.below, self.at_most, self.at_least)
        ):
            raise ValueError(f"Metric criterion {self.name!r} needs a bound")
        return self


class RubricDimension(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    label: str
    weight: float = Field(gt=0.0, le=1.0)
    criteria: tuple[Criterion, ...]

    @model_validator(mode="after")
    def _has_scored_criterion(self) -> "RubricDimension":
        if not any(c.scored for c in self.criteria):
            raise ValueError(f"Dimension {self.id!r} has no scored criteria")
        return self


class FeedbackTemplates(BaseModel):
    """Sentences used for dimension feedback and the call summary."""

    model_config = ConfigDict(frozen=True)

    excellent: str = "Excellent {label}! {notes}"
    good: str = "Good {label}. Focus on: {note}"
    good_no_gaps: str = "Good {label}."
    needs_work: str = "{Label} needs work. {notes}"
    summary_excellent: str = (
        "Excellent call! Your strongest area was {best}. Keep up the great work."
    )
    summary_solid: str = (
        "Solid performance. Your {best} was strong. "
        "Focus on improving your {worst} next time."
    )
    summary_practice: str = (
        "Keep practicing! Focus on {worst} as your priority area for improvement."
    )


class RubricConfig(BaseModel):
    """The complete scoring rubric."""

    model_config = ConfigDict(frozen=True)

    dimensions: tuple[RubricDimension, ...]
    filler_words: tuple[str, ...] = ()
    templates: FeedbackTemplates = Field(default_factory=FeedbackTemplates)

    # Score bands (dimension scores are 0-10, overall is 0-100)
    excellent_band: int = 8
    good_band: int = 6
    strength_band: int = 7
    summary_excellent_min: float = 80.0
    summary_solid_min: float = 60.0
    max_notes: int = 5

    @model_validator(mode="after")
    def _weights_sum_to_one(self) -> "RubricConfig":
        total = sum(d.weight for d in self.dimensions)
        if abs(total - 1.0) > 1e-6:
            raise ValueError(f"Dimension weights must sum to 1.0, got {total:.4f}")
        ids = [d.id for d in self.dimensions]
        if len(set(ids)) != len(ids):
            raise ValueError("Dimension ids must be unique")
        return self

    def dimension(self, dimension_id: str) -> RubricDimension:
        for d in self.dimensions:
            if d.id == dimension_id:
                return d
        raise KeyError(dimension_id)


_DEFAULT_RUBRIC_DATA = {
    "filler_words": ["um", "uh", "like", "you know", "basically", "sort of", "kind of"],
    "dimensions": [
        {
            "id": "opener",
            "label": "opener",
            "weight": 0.15,
            "criteria": [
                {
                    "name": "permission_based",
                    "scope": "first_user_turn",
                    "require_any": [
                        "do you mind", "would you", "can i", "may i",
                        "is this a good time", "let me have", "give me",
                        "help me", "30 seconds", "quick question",
                    ],
                    "pass_note": "Good use of permission-based opener",
                    "fail_note": "Consider asking for permission early",
                },
                {
                    "name": "attention_grab",
                    "scope": "first_user_turn",
                    "require_any": ["cold call", "honest", "upfront", "won't take long", "quick"],
                    "pass_note": "Effective attention-grabbing opener",
                    "fail_note": "Try using honesty or humor to grab attention",
                },
                {
                    "name": "clear_timeframe",
                    "scope": "first_user_turn",
                    "require_any": ["30 seconds", "minute", "quick", "brief", "short"],
                    "pass_note": "Good time expectation setting",
                    "fail_note": "Set a clear time expectation",
                },
                {
                    "name": "tone_friendly",
                    "scope": "first_user_turn",
                    "forbid_any": ["you need", "you must", "you have to", "listen"],
                    "pass_note": "Appropriate tone",
                    "fail_note": "Tone came across as pushy",
                },
            ],
        },
        {
            "id": "pitch",
            "label": "pitch",
            "weight": 0.15,
            "criteria": [
                {
                    "name": "problem_focused",
                    "require_any": [
                        "problem", "challenge", "struggle", "issue", "obstacle", "frustrat",
                    ],
                    "pass_note": "Good focus on problems",
                    "fail_note": "Lead with problems, not features",
                },
                {
                    "name": "specific_icp",
                    "forbid_any": [
                        "our software", "our product", "we offer",
                        "features include", "our solution does",
                    ],
                    "pass_note": "Good balance",
                    "fail_note": "Too focused on your product features",
                },
                {
                    "name": "used_template",
                    "require_any": ["clients", "typically", "usually", "work with", "help"],
                    "min_matches": 2,
                    "pass_note": "Good pitch structure",
                    "fail_note": "Try using the problem-based pitch template",
                },
                {
                    "name": "negative_close",
                    "require_any": [
                        "opposite problem", "have a feeling", "probably tell me", "guess you",
                    ],
                    "pass_note": "Nice use of negative framing",
                    "fail_note": 'Try "I have a feeling you\'ll tell me..."',
                },
            ],
        },
        {
            "id": "discovery",
            "label": "discovery",
            "weight": 0.25,
            "criteria": [
                {
                    "name": "got_example",
                    "require_any": [
                        "example", "instance", "specific",
                        "what does that look like", "in your world",
                    ],
                    "pass_note": "Good job asking for an example",
                    "fail_note": "Always ask for a concrete example",
                },
                {
                    "name": "understood_impact",
                    "require_any": [
                        "what would happen", "what does that mean",
                        "affect", "consequence", "result in",
                    ],
                    "forbid_any": ["impact"],
                    "forbid_scope": "dialogue",
                    "pass_note": "Good exploration of consequences",
                    "fail_note": "Ask about what this means for them",
                    "forbid_note": 'Avoid the word "impact" - too salesy',
                },
                {
                    "name": "found_root_cause",
                    "require_any": [
                        "how long", "where does", "why do you think",
                        "tried to fix", "what have you done",
                    ],
                    "pass_note": "Good root cause exploration",
                    "fail_note": "Dig into where the problem comes from",
                },
                {
                    "name": "stayed_on_problem",
                    "forbid_any": [
                        "our solution", "we can fix", "let me show you", "our product", "demo",
                    ],
                    "pass_note": "Good problem focus",
                    "fail_note": "Don't rush to the solution - stay on the problem",
                },
            ],
        },
        {
            "id": "objection_handling",
            "label": "objection handling",
            "weight": 0.20,
            "criteria": [
                {
                    "name": "paused",
                    "fixed_result": True,
                    "scored": False,
                    "pass_note": "Remember to pause 2-3 seconds before responding to objections",
                    "fail_note": "Remember to pause 2-3 seconds before responding to objections",
                },
                {
                    "name": "acknowledged",
                    "require_any": [
                        "i understand", "i thought you might", "that makes sense",
                        "i hear you", "fair enough",
                    ],
                    "pass_note": "Good objection acknowledgment",
                    "fail_note": "Acknowledge objections before probing",
                },
                {
                    "name": "asked_permission",
                    "require_any": [
                        "do you mind if", "can i ask", "would it be okay", "one last question",
                    ],
                    "pass_note": "Good use of permission before probing",
                    "fail_note": "Ask permission before deeper questions",
                },
                {
                    "name": "calm_tonality",
                    "forbid_any": [
                        "but we", "no, you're wrong", "actually", "you don't understand",
                    ],
                    "pass_note": "Good calm approach",
                    "fail_note": "Stay curious, not defensive",
                },
            ],
        },
        {
            "id": "closing",
            "label": "closing",
            "weight": 0.15,
            "criteria": [
                {
                    "name": "summarized",
                    "require_any": [
                        "let me see if i got", "so you mentioned", "to summarize", "you told me",
                    ],
                    "pass_note": "Good summary of key points",
                    "fail_note": "Summarize what they told you before closing",
                },
                {
                    "name": "tested_emotion",
                    "require_any": [
                        "how does that make you feel", "given up", "accepted", "frustrated",
                    ],
                    "pass_note": "Good emotional check",
                    "fail_note": "Ask how they feel about the problem",
                },
                {
                    "name": "negative_frame",
                    "require_any": [
                        "would it be a bad idea", "would you be against", "wouldn't make sense",
                    ],
                    "pass_note": "Excellent use of negative framing",
                    "fail_note": 'Try "Would it be a bad idea to..."',
                },
                {
                    "name": "avoided_triggers",
                    "forbid_any": ["meeting", "calendar", "demo", "discovery"],
                    "pass_note": "Good word choices",
                    "fail_note": "Avoid trigger words: meeting, demo, calendar",
                },
            ],
        },
        {
            "id": "communication",
            "label": "communication",
            "weight": 0.10,
            "criteria": [
                {
                    "name": "talk_ratio",
                    "metric": "talk_ratio",
                    "below": 0.4,
                    "pass_note": "Talk ratio: {percent}%. Good listening!",
                    "fail_note": "Talk ratio: {percent}%. Try to listen more (target: <40%)",
                },
                {
                    "name": "filler_words",
                    "metric": "filler_ratio",
                    "below": 0.02,
                    "pass_note": "Minimal filler words",
                    "fail_note": "Reduce filler words (um, uh, like)",
                },
                {
                    "name": "pace",
                    "metric": "words_per_minute",
                    "at_least": 120,
                    "at_most": 160,
                    "pass_note": "Speaking pace: ~{rounded} WPM. Good pace!",
                    "fail_note": "Speaking pace: ~{rounded} WPM. Slow down a bit",
                    "low_note": "Speaking pace: ~{rounded} WPM. Try speaking a bit faster",
                },
                {
                    "name": "clarity",
                    "metric": "avg_sentence_length",
                    "at_most": 20,
                    "pass_note": "Clear, concise sentences",
                    "fail_note": "Try shorter, clearer sentences",
                },
            ],
        },
    ],
}

DEFAULT_RUBRIC = RubricConfig.model_validate(_DEFAULT_RUBRIC_DATA)


def load_rubric(path: str | Path) -> RubricConfig:
    """Load and validate a rubric from a JSON file."""
    data = json.loads(Path(path).read_text(encoding="utf-8"))
    return RubricConfig.model_validate(data)


@lru_cache
def get_rubric() -> RubricConfig:
    """
    Get the process-wide rubric, loaded once.

    Uses RUBRIC_PATH when set, otherwise the built-in cold-call rubric.
    """
    path = get_settings().rubric_path
    if path:
        return load_rubric(path)
    return DEFAULT_RUBRIC
