import pytest

from scoresheets import codec
from scoresheets.catalog import Mode, checkbox, comment, counter, score
from scoresheets.errors import ValidationError


def _questions(catalogs, mode):
    return [q for c in catalogs.values() for q in c.live() if q.mode is mode]


def test_checkbox_round_trip(catalogs):
    boxes = _questions(catalogs, Mode.CHECKBOX)
    assert boxes
    for q in boxes:
        for stored in (0, q.point_value):
            state = codec.to_interaction_state(stored, q)
            assert codec.to_field_value(state, q) == stored


def test_step_counter_round_trip(catalogs):
    counters = _questions(catalogs, Mode.STEP_COUNTER)
    assert counters
    for q in counters:
        for count in range(q.lower_bound, q.upper_bound + 1):
            assert codec.to_interaction_state(codec.to_field_value(count, q), q) == count


def test_step_counter_example():
    q = counter(1, "Team member touched the machine", 2, 3, "Run")
    count = codec.to_interaction_state(4, q)
    assert count == 2

    count = codec.step(count, 1, q)
    assert count == 3
    assert codec.to_field_value(count, q) == 6

    assert codec.step(count, 1, q) == 3
    assert codec.step(0, -1, q) == 0


def test_numeric_score_example():
    q = score(1, "Design", 10, 15)
    with pytest.raises(ValidationError):
        codec.parse_score(9, q)
    with pytest.raises(ValidationError):
        codec.parse_score(15.5, q)
    assert codec.parse_score(12, q) == 12
    assert codec.to_field_value(12, q) == 12
    assert codec.to_interaction_state(12, q) == 12


def test_numeric_score_decoding():
    q = score(1, "Design", 1, 10)
    assert codec.to_interaction_state(0, q) is None
    assert codec.to_interaction_state(0.0, q) is None
    assert codec.to_interaction_state("", q) is None
    assert codec.to_interaction_state(None, q) is None
    # never clamped into range
    assert codec.to_interaction_state(11, q) is None
    assert codec.to_interaction_state(7.5, q) == 7.5
    assert codec.to_field_value(None, q) == 0


def test_parse_score_input_forms():
    q = score(1, "Design", 1, 10)
    assert codec.parse_score("", q) is None
    assert codec.parse_score("  ", q) is None
    assert codec.parse_score("4", q) == 4
    assert isinstance(codec.parse_score("4", q), int)
    assert codec.parse_score("4.5", q) == 4.5
    with pytest.raises(ValidationError):
        codec.parse_score("four", q)
    with pytest.raises(ValidationError):
        codec.parse_score(True, q)


def test_penalties_read_legacy_negative_values():
    box = checkbox(1, "Late journal", 5, "Journal")
    steps = counter(2, "Missing section", 2, 5, "Journal")
    assert codec.to_interaction_state(-5, box) == 1
    assert codec.to_interaction_state(-4, steps) == 2
    assert codec.to_field_value(1, box) == 5
    assert codec.to_field_value(2, steps) == 4


def test_counter_rounds_halves_up():
    steps = counter(2, "Touched", 2, 5, "Run")
    assert codec.to_interaction_state(5, steps) == 3
    assert codec.to_interaction_state(1, steps) == 1
    assert codec.to_interaction_state(-5, steps) == 3
    assert codec.to_interaction_state(2.5, counter(3, "Warning count", 0, 5, "Run")) == 3


def test_checkbox_off_unless_exact_magnitude():
    box = checkbox(1, "Late journal", 5, "Journal")
    assert codec.to_interaction_state(3, box) == 0
    assert codec.to_interaction_state("", box) == 0


def test_zero_point_value_degenerates():
    box = checkbox(1, "Warning only", 0, "Journal")
    steps = counter(2, "Warning count", 0, 5, "Journal")
    assert codec.to_interaction_state(0, box) == 0
    assert codec.to_interaction_state(1, box) == 0
    assert codec.to_interaction_state(3, steps) == 3
    assert codec.to_field_value(3, steps) == 0


def test_parse_count_and_checkbox():
    steps = counter(2, "Missing section", 2, 5, "Journal")
    assert codec.parse_count("3", steps) == 3
    assert codec.parse_count("", steps) == 0
    with pytest.raises(ValidationError):
        codec.parse_count(6, steps)
    with pytest.raises(ValidationError):
        codec.parse_count(1.5, steps)

    box = checkbox(1, "Late journal", 5, "Journal")
    assert codec.parse_checkbox("on", box) == 1
    assert codec.parse_checkbox(True, box) == 1
    assert codec.parse_checkbox("0", box) == 0
    with pytest.raises(ValidationError):
        codec.parse_checkbox("maybe", box)


def test_free_text():
    q = comment(9)
    assert codec.to_interaction_state("Nice work", q) == "Nice work"
    assert codec.to_interaction_state(None, q) is None
    assert codec.to_field_value(None, q) == ""
    assert codec.to_field_value("", q) == ""


def test_toggle():
    assert codec.toggle(0) == 1
    assert codec.toggle(1) == 0
