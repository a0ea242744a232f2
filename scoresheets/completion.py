from __future__ import annotations

from typing import List, Mapping

from .codec import StateValue, in_bounds
from .fields import SheetLayout
from .models import QuestionKey, ScoreSheet, decode


def missing_questions(state: Mapping[QuestionKey, StateValue], layout: SheetLayout) -> List[QuestionKey]:
    """Required questions that still lack an in-range score, in sheet order."""
    missing = []
    for section, question, _field in layout.slots():
        if not question.is_required:
            continue
        value = state.get((section.name, question.id))
        if value is None or value == "" or value == 0:
            missing.append((section.name, question.id))
        elif isinstance(value, str) or not in_bounds(value, question):
            missing.append((section.name, question.id))
    return missing


def state_is_complete(state: Mapping[QuestionKey, StateValue], layout: SheetLayout) -> bool:
    return not missing_questions(state, layout)


def is_complete(sheet: ScoreSheet, layout: SheetLayout) -> bool:
    return state_is_complete(decode(sheet, layout), layout)
