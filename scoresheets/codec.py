"""
Conversion between persisted field values and what a judge interacts with.

Persisted penalty fields hold point magnitudes (occurrences * point value),
always stored non-negative. Older rows written with a negative sign are read
through ``abs()``; writing them back normalises the sign.
"""
from __future__ import annotations

import math
from typing import Optional, Union

from .catalog import Mode, QuestionDefinition
from .errors import ValidationError

Number = Union[int, float]
StateValue = Optional[Union[int, float, str]]

_TRUE = {"1", "on", "true", "yes"}
_FALSE = {"0", "off", "false", "no", ""}


def _number(value) -> Optional[float]:
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return float(value)
    text = str(value).strip()
    if not text:
        return None
    try:
        return float(text)
    except ValueError:
        return None


def _tidy(n: float) -> Number:
    return int(n) if float(n).is_integer() else n


def in_bounds(value: float, question: QuestionDefinition) -> bool:
    return question.low_points <= value <= question.high_points


# -----------------------
# Judge input parsing
# -----------------------
def parse_score(raw, question: QuestionDefinition) -> Optional[Number]:
    """Validate a typed score. Empty input means unset; out of range is refused."""
    if raw is None or (isinstance(raw, str) and not raw.strip()):
        return None
    if isinstance(raw, bool):
        raise ValidationError(f"Question {question.id}: score must be a number.")
    n = _number(raw)
    if n is None or math.isnan(n):
        raise ValidationError(f"Question {question.id}: {raw!r} is not a number.")
    if not in_bounds(n, question):
        raise ValidationError(
            f"Question {question.id}: {_tidy(n)} is outside "
            f"{_tidy(question.low_points)}-{_tidy(question.high_points)}."
        )
    return _tidy(n)


def parse_count(raw, question: QuestionDefinition) -> int:
    n = _number(raw) if raw not in (None, "") else 0.0
    if n is None or not float(n).is_integer():
        raise ValidationError(f"Question {question.id}: {raw!r} is not a whole number of occurrences.")
    count = int(n)
    if not question.lower_bound <= count <= question.upper_bound:
        raise ValidationError(
            f"Question {question.id}: count {count} is outside "
            f"{question.lower_bound}-{question.upper_bound}."
        )
    return count


def parse_checkbox(raw, question: QuestionDefinition) -> int:
    if isinstance(raw, bool):
        return int(raw)
    if isinstance(raw, (int, float)) and raw in (0, 1):
        return int(raw)
    text = "" if raw is None else str(raw).strip().lower()
    if text in _TRUE:
        return 1
    if text in _FALSE:
        return 0
    raise ValidationError(f"Question {question.id}: {raw!r} is not a checkbox state.")


def parse_state(raw, question: QuestionDefinition) -> StateValue:
    """Validate one judge-supplied value for ``question`` in its interaction mode."""
    if question.mode is Mode.NUMERIC_SCORE:
        return parse_score(raw, question)
    if question.mode is Mode.CHECKBOX:
        return parse_checkbox(raw, question)
    if question.mode is Mode.STEP_COUNTER:
        return parse_count(raw, question)
    return None if raw is None else str(raw)


# -----------------------
# Step counter controls
# -----------------------
def step(count: int, delta: int, question: QuestionDefinition) -> int:
    return max(question.lower_bound, min(count + delta, question.upper_bound))


def toggle(state: int) -> int:
    return 0 if state == 1 else 1


# -----------------------
# Field value <-> interaction state
# -----------------------
def to_interaction_state(value, question: QuestionDefinition) -> StateValue:
    mode = question.mode
    if mode is Mode.NUMERIC_SCORE:
        n = _number(value)
        # 0 is the blank-sheet default, not a score
        if n is None or n == 0 or math.isnan(n) or not in_bounds(n, question):
            return None
        return _tidy(n)
    if mode is Mode.CHECKBOX:
        if not question.point_value:
            return 0
        n = abs(_number(value) or 0.0)
        return 1 if math.isclose(n, question.point_value) else 0
    if mode is Mode.STEP_COUNTER:
        n = abs(_number(value) or 0.0)
        if question.point_value:
            return int(math.floor(n / question.point_value + 0.5))
        return int(math.floor(n + 0.5))
    if value is None:
        return None
    return str(value)


def to_field_value(state: StateValue, question: QuestionDefinition) -> Union[Number, str]:
    mode = question.mode
    if mode is Mode.NUMERIC_SCORE:
        n = parse_score(state, question)
        return 0 if n is None else n
    if mode is Mode.CHECKBOX:
        return question.point_value if parse_checkbox(state, question) else 0
    if mode is Mode.STEP_COUNTER:
        return _tidy(parse_count(state, question) * question.point_value)
    return "" if state is None else str(state)
