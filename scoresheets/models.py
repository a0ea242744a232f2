from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import Any, Dict, Mapping, Optional, Tuple, Union

from .catalog import SheetType
from .codec import StateValue, to_field_value, to_interaction_state
from .fields import FIELD_NAMES, FieldValue, SheetLayout

# (section name, question id)
QuestionKey = Tuple[str, int]
InteractionState = Dict[QuestionKey, StateValue]


@dataclass
class ScoreSheet:
    id: int
    sheet_type: SheetType
    is_submitted: bool = False
    fields: Dict[str, FieldValue] = field(default_factory=dict)
    judge_id: Optional[int] = None
    team_id: Optional[int] = None

    def get(self, name: str, default: Any = None) -> Any:
        return self.fields.get(name, default)

    def with_fields(self, updates: Mapping[str, FieldValue], **changes) -> "ScoreSheet":
        merged = dict(self.fields)
        merged.update(updates)
        return replace(self, fields=merged, **changes)

    def to_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {
            "id": self.id,
            "sheetType": int(self.sheet_type),
            "isSubmitted": self.is_submitted,
            "judgeId": self.judge_id,
            "teamId": self.team_id,
        }
        for name in FIELD_NAMES:
            if name in self.fields:
                out[name] = self.fields[name]
        return out


def decode(sheet: ScoreSheet, layout: SheetLayout) -> InteractionState:
    """Interaction state of every mapped question on ``sheet``."""
    return {
        (section.name, question.id): to_interaction_state(sheet.get(field), question)
        for section, question, field in layout.slots()
    }


def encode(state: Mapping[QuestionKey, StateValue], layout: SheetLayout) -> Dict[str, Union[float, int, str]]:
    """Field values for every mapped slot; questions missing from ``state`` take their blank value."""
    return {
        field: to_field_value(state.get((section.name, question.id)), question)
        for section, question, field in layout.slots()
    }
