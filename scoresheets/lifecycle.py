"""
Draft -> Submitted lifecycle of a single score sheet.

A ``SheetSession`` holds one persisted sheet together with the judge-facing
state decoded from it. Edits only touch the local state; ``save`` and
``submit`` push the encoded fields to the store and re-derive the state from
the record the store hands back. Once the sheet is submitted every edit,
save and submit is refused.
"""
from __future__ import annotations

import asyncio
import logging
from dataclasses import replace
from typing import Dict, List, Mapping, Optional, Tuple, Union

from . import codec
from .catalog import Mode, QuestionDefinition
from .completion import missing_questions
from .errors import FieldMappingError, StateConflictError, TransportError, ValidationError
from .fields import SheetLayout
from .models import InteractionState, QuestionKey, ScoreSheet, decode, encode
from .store import SheetStore

logger = logging.getLogger(__name__)

# {section name: {question id: raw value}}; ids may arrive as strings from JSON or forms
SheetValues = Mapping[Optional[str], Mapping[Union[int, str], object]]


class SheetSession:
    def __init__(self, sheet: ScoreSheet, layout: SheetLayout):
        if sheet.sheet_type != layout.sheet_type:
            raise ValueError(
                f"Sheet {sheet.id} is {sheet.sheet_type.name}, layout is {layout.sheet_type.name}."
            )
        self.layout = layout
        self.sheet = sheet
        self.state: InteractionState = decode(sheet, layout)
        self._lock: Optional[asyncio.Lock] = None

    @classmethod
    async def load(cls, store: SheetStore, layout: SheetLayout, sheet_id: int) -> "SheetSession":
        return cls(await store.get_sheet(sheet_id), layout)

    def __repr__(self) -> str:
        status = "submitted" if self.is_submitted else "draft"
        return f"<SheetSession {self.sheet.id} {self.layout.sheet_type.name} {status}>"

    @property
    def sheet_id(self) -> int:
        return self.sheet.id

    @property
    def is_submitted(self) -> bool:
        return self.sheet.is_submitted

    # -----------------------
    # Lookup
    # -----------------------
    def question(self, question_id: int, section: Optional[str] = None) -> Tuple[QuestionKey, QuestionDefinition]:
        sec = self.layout.section(section)
        sec.field_for(question_id)  # placeholders and unknown ids have no slot
        return (sec.name, question_id), sec.catalog.get(question_id)

    def value(self, question_id: int, section: Optional[str] = None) -> codec.StateValue:
        key, _question = self.question(question_id, section)
        return self.state.get(key)

    def missing(self) -> List[QuestionKey]:
        return missing_questions(self.state, self.layout)

    def is_complete(self) -> bool:
        return not self.missing()

    def field_values(self) -> Dict[str, Union[float, int, str]]:
        return encode(self.state, self.layout)

    # -----------------------
    # Edits
    # -----------------------
    def _ensure_draft(self) -> None:
        if self.is_submitted:
            raise StateConflictError(f"Score sheet {self.sheet.id} is already submitted.")

    def _editable(self, question_id: int, section: Optional[str], mode: Mode) -> Tuple[QuestionKey, QuestionDefinition]:
        self._ensure_draft()
        key, question = self.question(question_id, section)
        if question.mode is not mode:
            raise ValidationError(
                f"Question {question_id} is a {question.mode.value} question, not {mode.value}."
            )
        return key, question

    def set_score(self, question_id: int, raw, section: Optional[str] = None) -> None:
        key, question = self._editable(question_id, section, Mode.NUMERIC_SCORE)
        self.state[key] = codec.parse_score(raw, question)

    def set_comment(self, question_id: int, text: Optional[str], section: Optional[str] = None) -> None:
        key, _question = self._editable(question_id, section, Mode.FREE_TEXT)
        self.state[key] = text

    def toggle(self, question_id: int, section: Optional[str] = None) -> int:
        key, _question = self._editable(question_id, section, Mode.CHECKBOX)
        self.state[key] = codec.toggle(self.state.get(key) or 0)
        return self.state[key]

    def increment(self, question_id: int, section: Optional[str] = None) -> int:
        key, question = self._editable(question_id, section, Mode.STEP_COUNTER)
        self.state[key] = codec.step(self.state.get(key) or 0, 1, question)
        return self.state[key]

    def decrement(self, question_id: int, section: Optional[str] = None) -> int:
        key, question = self._editable(question_id, section, Mode.STEP_COUNTER)
        self.state[key] = codec.step(self.state.get(key) or 0, -1, question)
        return self.state[key]

    def set_count(self, question_id: int, count, section: Optional[str] = None) -> None:
        key, question = self._editable(question_id, section, Mode.STEP_COUNTER)
        self.state[key] = codec.parse_count(count, question)

    def apply(self, values: SheetValues) -> None:
        """Set many questions at once. Either every value is accepted or none is."""
        self._ensure_draft()
        staged = dict(self.state)
        for section, answers in values.items():
            for raw_id, raw in answers.items():
                try:
                    question_id = int(raw_id)
                except (TypeError, ValueError):
                    raise FieldMappingError(f"{raw_id!r} is not a question id.") from None
                key, question = self.question(question_id, section or None)
                staged[key] = codec.parse_state(raw, question)
        self.state = staged

    # -----------------------
    # Persistence
    # -----------------------
    @property
    def lock(self) -> asyncio.Lock:
        if self._lock is None:
            self._lock = asyncio.Lock()
        return self._lock

    def _refresh(self, updated: ScoreSheet) -> None:
        if updated.judge_id is None and updated.team_id is None:
            updated = replace(updated, judge_id=self.sheet.judge_id, team_id=self.sheet.team_id)
        self.sheet = updated
        self.state = decode(updated, self.layout)

    async def save(self, store: SheetStore) -> ScoreSheet:
        async with self.lock:
            self._ensure_draft()
            updated = await store.save_fields(self.sheet.id, self.field_values())
            self._refresh(updated)
            logger.debug("Saved draft of sheet %s", self.sheet.id)
            return self.sheet

    async def submit(self, store: SheetStore) -> ScoreSheet:
        async with self.lock:
            self._ensure_draft()
            missing = self.missing()
            if missing:
                listed = ", ".join(f"{section} #{qid}" for section, qid in missing)
                raise ValidationError(f"Score sheet {self.sheet.id} is incomplete: {listed}.")
            updated = await store.submit_sheet(self.sheet.id, self.field_values(), self.layout.sheet_type)
            if not updated.is_submitted:
                raise TransportError(f"Store did not mark score sheet {self.sheet.id} as submitted.")
            self._refresh(updated)
            logger.info(
                "Submitted %s sheet %s (judge %s, team %s)",
                self.layout.sheet_type.label, self.sheet.id, self.sheet.judge_id, self.sheet.team_id,
            )
            return self.sheet
