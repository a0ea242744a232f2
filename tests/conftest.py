"""
Shared fixtures: catalogs, layouts and a SQLite store in a temp directory.
"""
import pytest

from scoresheets.catalog import Mode, SheetType, build_catalogs
from scoresheets.fields import build_layouts
from scoresheets.lifecycle import SheetSession
from scoresheets.store import SqliteSheetStore


# Run anyio-marked tests on asyncio only
@pytest.fixture(scope="session")
def anyio_backend():
    return "asyncio"


@pytest.fixture(scope="session")
def catalogs():
    return build_catalogs()


@pytest.fixture(scope="session")
def layouts(catalogs):
    return build_layouts(catalogs)


@pytest.fixture
def db_path(tmp_path):
    return str(tmp_path / "judging.sqlite")


@pytest.fixture
def store(db_path, layouts):
    s = SqliteSheetStore(db_path, layouts)
    s.init_db()
    return s


def fill_required(session: SheetSession, value=None):
    """Give every required question an in-range score (its low bound unless ``value``)."""
    for section, question, _field in session.layout.slots():
        if question.mode is Mode.NUMERIC_SCORE:
            session.set_score(question.id, question.low_points if value is None else value, section.name)


@pytest.fixture
def make_session(store, layouts):
    """Create a persisted sheet and wrap it in a session."""

    async def _make(judge_id=1, team_id=1, sheet_type=SheetType.PRESENTATION):
        sheet = store.create_sheet_sync(judge_id, team_id, sheet_type)
        return SheetSession(sheet, layouts[SheetType(sheet_type)])

    return _make
