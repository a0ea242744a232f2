"""
Physical field layout of every sheet type.

A score sheet row carries the generic slots field1..field42. A ``SheetLayout``
says which question of which catalog lives in which slot:

- simple sheets use each question's own ``field`` (question k -> fieldk);
- the championship sheet packs several catalogs back to back. Each packed
  section starts right after the previous one and numbers its questions by
  position among the non-placeholder entries, so a placeholder never takes a
  slot and the block stays contiguous.

Both reading a sheet and writing one walk ``Section.slots()``; nothing else
computes field names.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Iterator, Mapping, Optional, Tuple, Union

from .catalog import Catalog, Mode, QuestionDefinition, SheetType
from .errors import FieldMappingError

FIELD_COUNT = 42
FIELD_NAMES = tuple(f"field{i}" for i in range(1, FIELD_COUNT + 1))

FieldValue = Union[float, int, str]


@dataclass(frozen=True)
class Section:
    catalog: Catalog
    offset: int = 0
    packed: bool = False

    @property
    def name(self) -> str:
        return self.catalog.name

    @property
    def title(self) -> str:
        return self.catalog.title

    def slots(self) -> Iterator[Tuple[QuestionDefinition, str]]:
        for ordinal, question in enumerate(self.catalog.live(), start=1):
            if self.packed:
                yield question, f"field{self.offset + ordinal}"
            else:
                yield question, question.field

    def field_for(self, question_id: int) -> str:
        try:
            question = self.catalog.get(question_id)
        except KeyError as e:
            raise FieldMappingError(str(e.args[0])) from None
        if question.is_placeholder:
            raise FieldMappingError(
                f"Question {question_id} of '{self.name}' is an empty placeholder and has no field."
            )
        for q, field in self.slots():
            if q.id == question_id:
                return field
        raise FieldMappingError(f"Question {question_id} of '{self.name}' is not mapped.")


@dataclass(frozen=True)
class SheetLayout:
    sheet_type: SheetType
    sections: Tuple[Section, ...]

    def __post_init__(self):
        seen: Dict[str, str] = {}
        for section, question, field in self.slots():
            if field not in FIELD_NAMES:
                raise ValueError(f"{self.sheet_type.name}: {field} is outside field1..field{FIELD_COUNT}.")
            if field in seen:
                raise ValueError(
                    f"{self.sheet_type.name}: {field} claimed by both {seen[field]} and {section.name}."
                )
            seen[field] = section.name

    def section(self, name: Optional[str] = None) -> Section:
        if name is None:
            if len(self.sections) != 1:
                raise FieldMappingError(
                    f"{self.sheet_type.name} has {len(self.sections)} sections; name one of "
                    f"{[s.name for s in self.sections]}."
                )
            return self.sections[0]
        for s in self.sections:
            if s.name == name:
                return s
        raise FieldMappingError(f"{self.sheet_type.name} has no section '{name}'.")

    def resolve(self, question_id: int, section: Optional[str] = None) -> str:
        return self.section(section).field_for(question_id)

    def slots(self) -> Iterator[Tuple[Section, QuestionDefinition, str]]:
        for section in self.sections:
            for question, field in section.slots():
                yield section, question, field

    def default_fields(self) -> Dict[str, FieldValue]:
        """Field values of a freshly created (blank) sheet."""
        defaults: Dict[str, FieldValue] = {}
        for section in self.sections:
            if not section.packed:
                for q in section.catalog:
                    if q.is_placeholder:
                        defaults[q.field] = ""
        for _section, question, field in self.slots():
            defaults[field] = "" if question.mode is Mode.FREE_TEXT else 0.0
        return defaults


def championship_layout(catalogs: Mapping[str, Catalog]) -> SheetLayout:
    parts = (
        catalogs["machine_design"],
        catalogs["presentation"],
        catalogs["general_penalties"],
        catalogs["run_penalties"],
    )
    sections = []
    offset = 0
    for catalog in parts:
        sections.append(Section(catalog, offset=offset, packed=True))
        offset += len(catalog.live())
    return SheetLayout(SheetType.CHAMPIONSHIP, tuple(sections))


def build_layouts(catalogs: Mapping[str, Catalog]) -> Dict[SheetType, SheetLayout]:
    simple = {
        SheetType.PRESENTATION: "presentation",
        SheetType.JOURNAL: "journal",
        SheetType.MACHINE_DESIGN: "machine_design",
        SheetType.RUN_PENALTIES: "run_penalties",
        SheetType.GENERAL_PENALTIES: "general_penalties",
        SheetType.REDESIGN: "redesign",
    }
    layouts = {
        sheet_type: SheetLayout(sheet_type, (Section(catalogs[name]),))
        for sheet_type, name in simple.items()
    }
    layouts[SheetType.CHAMPIONSHIP] = championship_layout(catalogs)
    return layouts


def resolve_field(
    layouts: Mapping[SheetType, SheetLayout],
    sheet_type: int,
    question_id: int,
    section: Optional[str] = None,
) -> str:
    try:
        layout = layouts[SheetType(sheet_type)]
    except (ValueError, KeyError):
        raise FieldMappingError(f"Unknown sheet type {sheet_type}.") from None
    return layout.resolve(question_id, section)
