from __future__ import annotations

import enum
from dataclasses import dataclass
from typing import Dict, Iterator, Optional, Tuple


class SheetType(enum.IntEnum):
    PRESENTATION = 1
    JOURNAL = 2
    MACHINE_DESIGN = 3
    RUN_PENALTIES = 4
    GENERAL_PENALTIES = 5
    REDESIGN = 6
    CHAMPIONSHIP = 7

    @property
    def label(self) -> str:
        return self.name.replace("_", " ").title()


class Mode(enum.Enum):
    NUMERIC_SCORE = "numeric_score"
    CHECKBOX = "checkbox"
    STEP_COUNTER = "step_counter"
    FREE_TEXT = "free_text"


@dataclass(frozen=True)
class QuestionDefinition:
    id: int
    field: str
    mode: Mode
    text: str = ""
    section: str = ""
    low_points: Optional[float] = None
    high_points: Optional[float] = None
    point_value: float = 0.0
    lower_bound: int = 0
    upper_bound: int = 1
    is_placeholder: bool = False

    def __post_init__(self):
        if self.id < 1:
            raise ValueError(f"Question id must be positive, got {self.id}.")
        if self.mode is Mode.NUMERIC_SCORE:
            if self.low_points is None or self.high_points is None:
                raise ValueError(f"Question {self.id} needs scoring bounds.")
            if self.low_points > self.high_points:
                raise ValueError(f"Question {self.id} has inverted bounds.")
        if self.mode in (Mode.CHECKBOX, Mode.STEP_COUNTER) and self.point_value < 0:
            raise ValueError(f"Question {self.id}: point value is a magnitude, got {self.point_value}.")
        if self.lower_bound < 0 or self.lower_bound > self.upper_bound:
            raise ValueError(f"Question {self.id} has invalid counter bounds.")

    @property
    def is_penalty(self) -> bool:
        return self.mode in (Mode.CHECKBOX, Mode.STEP_COUNTER)

    @property
    def is_required(self) -> bool:
        # Only scored questions gate submission; penalties default to zero
        # occurrences and comments are optional.
        return self.mode is Mode.NUMERIC_SCORE and not self.is_placeholder


@dataclass(frozen=True)
class Catalog:
    name: str
    title: str
    questions: Tuple[QuestionDefinition, ...]

    def __post_init__(self):
        ids = [q.id for q in self.questions]
        if len(set(ids)) != len(ids):
            raise ValueError(f"Catalog '{self.name}' has duplicate question ids.")

    def __iter__(self) -> Iterator[QuestionDefinition]:
        return iter(self.questions)

    def __len__(self) -> int:
        return len(self.questions)

    def get(self, question_id: int) -> QuestionDefinition:
        for q in self.questions:
            if q.id == question_id:
                return q
        raise KeyError(f"Catalog '{self.name}' has no question {question_id}.")

    def live(self) -> Tuple[QuestionDefinition, ...]:
        """Questions that own a field, in catalog order."""
        return tuple(q for q in self.questions if not q.is_placeholder)

    def first(self, n: int, title: str = None) -> "Catalog":
        return Catalog(self.name, title or self.title, self.questions[:n])


# -----------------------
# Definition helpers
# -----------------------
def score(qid: int, text: str, low: float, high: float) -> QuestionDefinition:
    return QuestionDefinition(
        id=qid, field=f"field{qid}", mode=Mode.NUMERIC_SCORE, text=text,
        low_points=low, high_points=high,
    )


def comment(qid: int, text: str = "Comments") -> QuestionDefinition:
    return QuestionDefinition(id=qid, field=f"field{qid}", mode=Mode.FREE_TEXT, text=text)


def checkbox(qid: int, text: str, points: float, section: str) -> QuestionDefinition:
    return QuestionDefinition(
        id=qid, field=f"field{qid}", mode=Mode.CHECKBOX, text=text,
        section=section, point_value=points,
    )


def counter(qid: int, text: str, points: float, upper: int, section: str, lower: int = 0) -> QuestionDefinition:
    return QuestionDefinition(
        id=qid, field=f"field{qid}", mode=Mode.STEP_COUNTER, text=text,
        section=section, point_value=points, lower_bound=lower, upper_bound=upper,
    )


def placeholder(qid: int) -> QuestionDefinition:
    return QuestionDefinition(
        id=qid, field=f"field{qid}", mode=Mode.FREE_TEXT, is_placeholder=True,
    )


def _run_penalties(first_id: int, section: str) -> Tuple[QuestionDefinition, ...]:
    texts = (
        ("Machine did not complete the task", "checkbox", 8, 1),
        ("Team member touched the machine during the run", "counter", 2, 3),
        ("Object left the machine boundary", "counter", 1, 5),
        ("Run exceeded the time limit", "checkbox", 3, 1),
        ("Uncontrolled energy transfer", "counter", 2, 3),
        ("Safety violation", "checkbox", 5, 1),
        ("Action step completed out of sequence", "counter", 1, 10),
        ("Machine required a restart", "checkbox", 4, 1),
    )
    items = []
    for offset, (text, kind, points, upper) in enumerate(texts):
        qid = first_id + offset
        if kind == "checkbox":
            items.append(checkbox(qid, text, points, section))
        else:
            items.append(counter(qid, text, points, upper, section))
    return tuple(items)


def build_catalogs() -> Dict[str, Catalog]:
    """Construct every rubric and penalty catalog. Called once at startup."""
    machine_design = Catalog("machine_design", "Machine Design", (
        score(1, "Machine theme is clear and carried through the design", 1, 10),
        score(2, "Number and variety of energy transfers", 1, 10),
        score(3, "Creativity of the action steps", 1, 10),
        score(4, "Construction quality and durability", 1, 10),
        score(5, "Use of simple machines", 1, 10),
        score(6, "Reliability across both runs", 1, 10),
        score(7, "Aesthetics and presentation of the machine", 1, 10),
        score(8, "Overall engineering difficulty", 1, 10),
        comment(9),
    ))
    presentation = Catalog("presentation", "Presentation", (
        score(1, "Introduction and statement of the design problem", 1, 8),
        score(2, "Explanation of the design process", 1, 8),
        score(3, "Use of engineering vocabulary", 1, 8),
        score(4, "Description of testing and iteration", 1, 8),
        score(5, "Every team member participates", 1, 8),
        score(6, "Answers to judge questions", 1, 8),
        score(7, "Visual aids and organization", 1, 8),
        score(8, "Delivery, eye contact and enthusiasm", 1, 8),
        comment(9),
    ))
    journal = Catalog("journal", "Journal", (
        score(1, "Team information and table of contents", 1, 5),
        score(2, "Brainstorming and initial sketches", 1, 10),
        score(3, "Design drawings with measurements", 1, 10),
        score(4, "Record of testing and modifications", 1, 10),
        score(5, "Energy transfer explanations", 1, 10),
        score(6, "Materials list and cost accounting", 1, 5),
        score(7, "Reflection on what was learned", 1, 10),
        score(8, "Neatness and organization", 1, 5),
        comment(9),
    ))
    redesign = Catalog("redesign", "Redesign", (
        score(1, "Problem identified in the original machine", 1, 5),
        score(2, "Proposed redesign addresses the problem", 1, 5),
        score(3, "Quality of redesign drawings", 1, 5),
        score(4, "Feasibility of the redesign", 1, 5),
        score(5, "Creativity of the redesign", 1, 5),
        score(6, "Explanation of expected improvement", 1, 5),
        score(7, "Teamwork during the redesign challenge", 1, 5),
        comment(9),
    ))
    general_penalties = Catalog("general_penalties", "General Penalties", (
        checkbox(1, "Journal submitted late", 5, "Journal"),
        counter(2, "Journal missing a required section", 2, 5, "Journal"),
        checkbox(3, "Presentation exceeded the time limit", 3, "Presentation"),
        checkbox(4, "Not every team member spoke", 2, "Presentation"),
        checkbox(5, "Machine exceeds the size limit", 5, "Machine Specification"),
        counter(6, "Prohibited material used", 3, 3, "Machine Specification"),
        counter(7, "Fewer action steps than required", 2, 10, "Machine Specification"),
    ))
    run_penalties = Catalog("run_penalties", "Run Penalties", (
        _run_penalties(1, "Machine Operation Run 1")
        # Slot 9 predates the split into two runs and stays empty.
        + (placeholder(9),)
        + _run_penalties(10, "Machine Operation Run 2")
    ))
    return {
        c.name: c
        for c in (machine_design, presentation, journal, redesign, general_penalties, run_penalties)
    }
