"""Rule-based call scoring.

``analyze`` is a pure function: it evaluates every rubric criterion against
the transcript, turns the pass ratio of each dimension into a 0-10 score,
and combines the six scores into a weighted 0-100 composite with templated
feedback. No I/O, no clock, no randomness.

Usage:
    from src.scoring import analyze

    result = analyze(transcript, duration_seconds=95, scenario_type="cold_call")
    result.overall_score       # 0-100
    result.dimensions["discovery"].criteria
"""

from collections.abc import Sequence
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal

from src.scoring import text_metrics
from src.scoring.rubric import Criterion, RubricConfig, RubricDimension, get_rubric
from src.scoring.schemas import (
    CriterionResult,
    DimensionScore,
    ScoringResult,
    TranscriptEntry,
)


@dataclass(frozen=True)
class _CallTexts:
    """Lower-cased views of the transcript, plus the metric values."""

    first_user_turn: str
    user: str
    dialogue: str
    metrics: dict[str, float]

    def scope(self, name: str) -> str:
        return getattr(self, name)


def analyze(
    transcript: Sequence[TranscriptEntry],
    duration_seconds: float,
    scenario_type: str = "cold_call",
    rubric: RubricConfig | None = None,
) -> ScoringResult:
    """
    Score a call transcript against the rubric.

    Args:
        transcript: Ordered speaker turns; ``user`` is the coached party.
        duration_seconds: Call length, used for speaking pace.
        scenario_type: Practice scenario, echoed on the result.
        rubric: Rubric to apply (defaults to the process-wide rubric).

    Returns:
        ScoringResult with six dimension scores and feedback.
    """
    rubric = rubric or get_rubric()
    texts = _prepare(transcript, duration_seconds, rubric)

    dimensions: dict[str, DimensionScore] = {}
    for dimension in rubric.dimensions:
        results = [_evaluate(c, texts) for c in dimension.criteria]
        score = dimension_score(results)
        dimensions[dimension.id] = DimensionScore(
            score=score,
            feedback=_dimension_feedback(dimension, results, score, rubric),
            criteria=results,
        )

    overall = overall_score(
        {d.id: dimensions[d.id].score for d in rubric.dimensions},
        {d.id: d.weight for d in rubric.dimensions},
    )
    strengths, improvements = _feedback_lists(dimensions, rubric)

    return ScoringResult(
        overall_score=overall,
        dimensions=dimensions,
        strengths=strengths,
        improvements=improvements,
        summary=_summary(overall, dimensions, rubric),
        scenario_type=scenario_type,
    )


def dimension_score(results: Sequence[CriterionResult]) -> int:
    """round(10 * passed / scored), half-up; placeholder criteria excluded."""
    scored = [r for r in results if r.scored]
    if not scored:
        return 0
    passed = sum(1 for r in scored if r.passed)
    return int(text_metrics.round_half_up(10 * passed / len(scored)))


def overall_score(scores: dict[str, int], weights: dict[str, float]) -> float:
    """Σ score × weight × 10, to one decimal place, clamped to [0, 100].

    Computed in Decimal so the result does not depend on float summation order.
    """
    total = sum(
        (Decimal(scores[k]) * Decimal(str(w)) * 10 for k, w in weights.items()),
        Decimal(0),
    )
    value = float(total.quantize(Decimal("0.1"), rounding=ROUND_HALF_UP))
    return min(100.0, max(0.0, value))


def _prepare(
    transcript: Sequence[TranscriptEntry],
    duration_seconds: float,
    rubric: RubricConfig,
) -> _CallTexts:
    user_turns = [t.content for t in transcript if t.role == "user"]
    user_text = " ".join(user_turns)
    dialogue = " ".join(t.content for t in transcript)

    user_words = text_metrics.count_words(user_text)
    total_words = text_metrics.count_words(dialogue)

    metrics = {
        "talk_ratio": text_metrics.talk_ratio(user_words, total_words),
        "filler_ratio": text_metrics.filler_ratio(user_text, rubric.filler_words),
        "words_per_minute": text_metrics.words_per_minute(user_words, duration_seconds),
        "avg_sentence_length": text_metrics.avg_sentence_length(user_text),
    }
    return _CallTexts(
        first_user_turn=user_turns[0].lower() if user_turns else "",
        user=user_text.lower(),
        dialogue=dialogue.lower(),
        metrics=metrics,
    )


def _evaluate(criterion: Criterion, texts: _CallTexts) -> CriterionResult:
    if criterion.fixed_result is not None:
        passed = criterion.fixed_result
        note = criterion.pass_note if passed else criterion.fail_note
    elif criterion.metric is not None:
        passed, note = _evaluate_metric(criterion, texts.metrics[criterion.metric])
    else:
        passed, note = _evaluate_phrases(criterion, texts)

    return CriterionResult(
        name=criterion.name,
        passed=passed,
        note=note,
        scored=criterion.scored,
    )


def _evaluate_phrases(criterion: Criterion, texts: _CallTexts) -> tuple[bool, str]:
    required_ok = True
    if criterion.require_any:
        text = texts.scope(criterion.scope)
        matches = sum(1 for p in criterion.require_any if p in text)
        required_ok = matches >= criterion.min_matches

    forbidden_hit = False
    if criterion.forbid_any:
        text = texts.scope(criterion.forbid_scope or criterion.scope)
        forbidden_hit = any(p in text for p in criterion.forbid_any)

    if required_ok and not forbidden_hit:
        return True, criterion.pass_note
    if forbidden_hit and criterion.forbid_note:
        return False, criterion.forbid_note
    return False, criterion.fail_note


def _evaluate_metric(criterion: Criterion, value: float) -> tuple[bool, str]:
    too_low = criterion.at_least is not None and value < criterion.at_least
    passed = not too_low
    if criterion.below is not None and value >= criterion.below:
        passed = False
    if criterion.at_most is not None and value > criterion.at_most:
        passed = False

    if passed:
        template = criterion.pass_note
    elif too_low and criterion.low_note:
        template = criterion.low_note
    else:
        template = criterion.fail_note

    note = template.format(
        value=value,
        rounded=int(text_metrics.round_half_up(value)),
        percent=int(text_metrics.round_half_up(value * 100)),
    )
    return passed, note


def _dimension_feedback(
    dimension: RubricDimension,
    results: Sequence[CriterionResult],
    score: int,
    rubric: RubricConfig,
) -> str:
    templates = rubric.templates
    label = dimension.label
    fmt = {"label": label, "Label": label[:1].upper() + label[1:]}
    passed = [r.note for r in results if r.scored and r.passed]
    failed = [r.note for r in results if r.scored and not r.passed]

    if score >= rubric.excellent_band:
        return templates.excellent.format(notes=" ".join(passed), **fmt).strip()
    if score >= rubric.good_band:
        if not failed:
            return templates.good_no_gaps.format(**fmt)
        return templates.good.format(note=failed[0], **fmt)
    return templates.needs_work.format(notes=". ".join(failed[:2]), **fmt).strip()


def _feedback_lists(
    dimensions: dict[str, DimensionScore],
    rubric: RubricConfig,
) -> tuple[list[str], list[str]]:
    strengths: list[str] = []
    improvements: list[str] = []

    for dim in dimensions.values():
        scored = [c for c in dim.criteria if c.scored]
        if dim.score >= rubric.strength_band:
            strengths.extend(c.note for c in scored if c.passed)
        else:
            improvements.extend(c.note for c in scored if not c.passed)

    return strengths[: rubric.max_notes], improvements[: rubric.max_notes]


def _summary(
    overall: float,
    dimensions: dict[str, DimensionScore],
    rubric: RubricConfig,
) -> str:
    # Stable sort keeps rubric order among ties
    ranked = sorted(dimensions, key=lambda k: -dimensions[k].score)
    best = rubric.dimension(ranked[0]).label
    worst = rubric.dimension(ranked[-1]).label
    templates = rubric.templates

    if overall >= rubric.summary_excellent_min:
        return templates.summary_excellent.format(best=best, worst=worst)
    if overall >= rubric.summary_solid_min:
        return templates.summary_solid.format(best=best, worst=worst)
    return templates.summary_practice.format(best=best, worst=worst)
