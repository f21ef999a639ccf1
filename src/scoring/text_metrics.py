"""Word-level metrics used by the communication criteria.

Every ratio returns 0.0 when its denominator is zero.
"""

import re
from collections.abc import Iterable
from decimal import ROUND_HALF_UP, Decimal

_SENTENCE_SPLIT = re.compile(r"[.!?]+")


def round_half_up(value: float, places: int = 0) -> float:
    """Round halves away from zero (2.5 -> 3), unlike the builtin round()."""
    exp = Decimal(1).scaleb(-places)
    return float(Decimal(str(value)).quantize(exp, rounding=ROUND_HALF_UP))


def count_words(text: str) -> int:
    return len(text.split())


def talk_ratio(user_words: int, total_words: int) -> float:
    return user_words / total_words if total_words > 0 else 0.0


def words_per_minute(word_count: int, duration_seconds: float) -> float:
    return word_count / duration_seconds * 60 if duration_seconds > 0 else 0.0


def filler_ratio(text: str, fillers: Iterable[str]) -> float:
    """Share of words in ``text`` that are filler words or phrases."""
    words = count_words(text)
    if words == 0:
        return 0.0
    lowered = text.lower()
    hits = sum(
        len(re.findall(rf"\b{re.escape(filler.lower())}\b", lowered))
        for filler in fillers
    )
    return hits / words


def avg_sentence_length(text: str) -> float:
    sentences = [s for s in _SENTENCE_SPLIT.split(text) if s.strip()]
    if not sentences:
        return 0.0
    return count_words(text) / len(sentences)
