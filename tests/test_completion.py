import pytest

from scoresheets.catalog import SheetType
from scoresheets.completion import is_complete, missing_questions
from scoresheets.lifecycle import SheetSession
from scoresheets.models import ScoreSheet

from .conftest import fill_required


def blank(layouts, sheet_type):
    layout = layouts[sheet_type]
    return SheetSession(ScoreSheet(1, sheet_type, fields=layout.default_fields()), layout)


def test_blank_scored_sheet_is_incomplete(layouts):
    session = blank(layouts, SheetType.PRESENTATION)
    assert not session.is_complete()
    assert session.missing() == [("presentation", i) for i in range(1, 9)]


def test_filled_sheet_is_complete_without_comment(layouts):
    session = blank(layouts, SheetType.JOURNAL)
    fill_required(session)
    assert session.value(9) in (None, "")
    assert session.is_complete()
    assert is_complete(session.sheet.with_fields(session.field_values()), session.layout)


def test_completion_is_monotone(layouts):
    session = blank(layouts, SheetType.MACHINE_DESIGN)
    seen = []
    for question in session.layout.section().catalog.live():
        if question.is_required:
            session.set_score(question.id, question.high_points)
            seen.append(session.is_complete())
    assert seen == sorted(seen)
    assert seen[-1] is True


@pytest.mark.parametrize("sheet_type", [SheetType.RUN_PENALTIES, SheetType.GENERAL_PENALTIES])
def test_penalty_sheets_never_block(layouts, sheet_type):
    session = blank(layouts, sheet_type)
    assert session.is_complete()
    assert missing_questions(session.state, session.layout) == []


def test_championship_needs_both_scored_sections(layouts):
    session = blank(layouts, SheetType.CHAMPIONSHIP)
    for qid in range(1, 9):
        session.set_score(qid, 5, "machine_design")
    assert not session.is_complete()
    assert {section for section, _ in session.missing()} == {"presentation"}

    for qid in range(1, 9):
        session.set_score(qid, 5, "presentation")
    session.set_count(2, 3, "run_penalties")
    assert session.is_complete()


def test_out_of_range_stored_value_counts_as_missing(layouts):
    layout = layouts[SheetType.REDESIGN]
    fields = layout.default_fields()
    fields.update({f"field{i}": 3 for i in range(1, 8)})
    assert is_complete(ScoreSheet(1, SheetType.REDESIGN, fields=fields), layout)

    fields["field4"] = 6  # redesign scores are 1-5
    assert not is_complete(ScoreSheet(1, SheetType.REDESIGN, fields=fields), layout)
