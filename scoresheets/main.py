from __future__ import annotations

import html
import logging
from io import StringIO
from typing import Any, Dict, List

from fastapi import FastAPI, HTTPException, Request
from fastapi.responses import HTMLResponse, JSONResponse, RedirectResponse, Response
from pydantic import BaseModel

from . import config
from .batch import BatchCoordinator, BatchEntry, BatchOutcome
from .catalog import Mode, SheetType, build_catalogs
from .errors import (
    FieldMappingError,
    PartialBatchFailure,
    SheetNotFoundError,
    StateConflictError,
    TransportError,
    ValidationError,
)
from .fields import build_layouts
from .lifecycle import SheetSession
from .store import SqliteSheetStore
from .totals import breakdown_frame, sheet_totals

logger = logging.getLogger(__name__)

app = FastAPI()


@app.on_event("startup")
def _startup():
    config.configure_logging()
    layouts = build_layouts(build_catalogs())
    store = SqliteSheetStore(config.DB_PATH, layouts)
    store.init_db()
    app.state.layouts = layouts
    app.state.store = store
    app.state.coordinator = BatchCoordinator(store, layouts)
    logger.info("Score sheet database ready at %s", config.DB_PATH)


# -----------------------
# Error mapping
# -----------------------
def _error(status_code: int, exc: Exception) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"detail": str(exc), "error": type(exc).__name__})


@app.exception_handler(ValidationError)
async def _validation_error(request: Request, exc: ValidationError):
    return _error(422, exc)


@app.exception_handler(FieldMappingError)
async def _mapping_error(request: Request, exc: FieldMappingError):
    return _error(400, exc)


@app.exception_handler(StateConflictError)
async def _conflict_error(request: Request, exc: StateConflictError):
    return _error(409, exc)


@app.exception_handler(SheetNotFoundError)
async def _not_found_error(request: Request, exc: SheetNotFoundError):
    return _error(404, exc)


@app.exception_handler(TransportError)
async def _transport_error(request: Request, exc: TransportError):
    logger.error("Persistence failure on %s: %s", request.url.path, exc)
    return _error(502, exc)


@app.exception_handler(PartialBatchFailure)
async def _partial_batch(request: Request, exc: PartialBatchFailure):
    return JSONResponse(
        status_code=207,
        content={"detail": str(exc), "results": [r.to_dict() for r in exc.results]},
    )


# -----------------------
# Request bodies
# -----------------------
class CreateSheetBody(BaseModel):
    judgeId: int
    teamId: int
    sheetType: int


class SheetValuesBody(BaseModel):
    # {section name ("" for single-section sheets): {question id: value}}
    values: Dict[str, Dict[str, Any]] = {}


class BatchBody(BaseModel):
    judgeId: int
    sheetType: int
    teamIds: List[int]


class BatchWriteBody(BatchBody):
    values: Dict[int, Dict[str, Dict[str, Any]]] = {}


# -----------------------
# Helpers
# -----------------------
def sheet_type_or_404(value: int) -> SheetType:
    try:
        return SheetType(value)
    except ValueError:
        raise HTTPException(404, f"Unknown sheet type {value}.")


async def open_session(sheet_id: int) -> SheetSession:
    sheet = await app.state.store.get_sheet(sheet_id)
    return SheetSession(sheet, app.state.layouts[sheet.sheet_type])


def session_view(session: SheetSession) -> Dict[str, Any]:
    state: Dict[str, Dict[str, Any]] = {}
    for (section, qid), value in session.state.items():
        state.setdefault(section, {})[str(qid)] = value
    return {
        "sheet": session.sheet.to_dict(),
        "state": state,
        "complete": session.is_complete(),
        "missing": [{"section": s, "question": q} for s, q in session.missing()],
        "totals": sheet_totals(session.sheet, session.layout),
    }


def batch_view(entries: List[BatchEntry], outcome: BatchOutcome = None) -> Dict[str, Any]:
    body: Dict[str, Any] = {
        "teams": [
            {"teamId": e.team_id, **session_view(e.session)}
            for e in entries
        ],
    }
    if outcome is not None:
        body["results"] = [r.to_dict() for r in outcome.results]
    return body


def _none_if_blank(values: Dict[str, Dict[str, Any]]) -> Dict[Any, Dict[str, Any]]:
    return {(section or None): answers for section, answers in values.items()}


# -----------------------
# Routes: Sheets
# -----------------------
@app.post("/api/sheets", status_code=201)
async def create_sheet(body: CreateSheetBody):
    sheet_type = sheet_type_or_404(body.sheetType)
    sheet = await app.state.store.create_sheet(body.judgeId, body.teamId, sheet_type)
    return {"ScoreSheet": sheet.to_dict()}


@app.get("/api/mapping/{sheet_type}/{judge_id}/{team_id}")
async def get_sheet_mapping(sheet_type: int, judge_id: int, team_id: int):
    sheet_id = await app.state.store.get_sheet_mapping(judge_id, team_id, sheet_type_or_404(sheet_type))
    if sheet_id is None:
        raise HTTPException(404, "No score sheet mapped for this judge and team.")
    return {"sheetId": sheet_id}


@app.get("/api/sheets/{sheet_id}")
async def get_sheet(sheet_id: int):
    return session_view(await open_session(sheet_id))


@app.post("/api/sheets/{sheet_id}/save")
async def save_sheet(sheet_id: int, body: SheetValuesBody):
    session = await open_session(sheet_id)
    session.apply(_none_if_blank(body.values))
    await session.save(app.state.store)
    return session_view(session)


@app.post("/api/sheets/{sheet_id}/submit")
async def submit_sheet(sheet_id: int, body: SheetValuesBody):
    session = await open_session(sheet_id)
    session.apply(_none_if_blank(body.values))
    await session.submit(app.state.store)
    return session_view(session)


@app.delete("/api/sheets/{sheet_id}")
async def delete_sheet(sheet_id: int):
    await app.state.store.delete_sheet(sheet_id)
    return {"detail": "Score Sheet deleted successfully."}


# -----------------------
# Routes: Batch
# -----------------------
@app.post("/api/batch/load")
async def batch_load(body: BatchBody):
    entries = await app.state.coordinator.load_batch(body.judgeId, sheet_type_or_404(body.sheetType), body.teamIds)
    return batch_view(entries)


async def _batch_write(body: BatchWriteBody, action: str):
    coordinator: BatchCoordinator = app.state.coordinator
    entries = await coordinator.load_batch(body.judgeId, sheet_type_or_404(body.sheetType), body.teamIds)
    values = {team: _none_if_blank(v) for team, v in body.values.items()}
    if action == "save":
        outcome = await coordinator.save_batch(entries, values)
    else:
        outcome = await coordinator.submit_batch(entries, values)
    outcome.raise_for_failures()
    return batch_view(entries, outcome)


@app.post("/api/batch/save")
async def batch_save(body: BatchWriteBody):
    return await _batch_write(body, "save")


@app.post("/api/batch/submit")
async def batch_submit(body: BatchWriteBody):
    return await _batch_write(body, "submit")


# -----------------------
# Routes: Judge dashboard
# -----------------------
@app.get("/api/judges/{judge_id}/sheets")
async def judge_sheets(judge_id: int):
    sheets = await app.state.store.list_judge_sheets(judge_id)
    rows = []
    for sheet in sheets:
        session = SheetSession(sheet, app.state.layouts[sheet.sheet_type])
        rows.append({
            "sheetId": sheet.id,
            "teamId": sheet.team_id,
            "sheetType": int(sheet.sheet_type),
            "label": sheet.sheet_type.label,
            "isSubmitted": sheet.is_submitted,
            "complete": session.is_complete(),
            "total": sheet_totals(sheet, session.layout)["total"],
        })
    return {
        "judgeId": judge_id,
        "sheets": rows,
        "allSubmitted": bool(rows) and all(r["isSubmitted"] for r in rows),
    }


@app.get("/api/judges/{judge_id}/sheets/{sheet_type}/download")
async def download_judge_sheets(judge_id: int, sheet_type: int):
    sheet_type = sheet_type_or_404(sheet_type)
    sheets = [s for s in await app.state.store.list_judge_sheets(judge_id) if s.sheet_type == sheet_type]
    if not sheets:
        raise HTTPException(404, "No score sheets of this type for this judge.")
    frame = breakdown_frame(sheets, app.state.layouts[sheet_type], label_by="team")

    buf = StringIO()
    frame.to_csv(buf, index=False)
    return Response(
        content=buf.getvalue(),
        media_type="text/csv",
        headers={
            "Content-Disposition": f'attachment; filename="judge_{judge_id}_{sheet_type.name.lower()}.csv"'
        },
    )


# -----------------------
# UI helpers
# -----------------------
def page(title: str, body: str) -> HTMLResponse:
    html_doc = f"""
    <html>
      <head>
        <title>{title}</title>
        <meta name="viewport" content="width=device-width, initial-scale=1.0">
        <style>
          body {{ font-family: system-ui, Arial; max-width: 980px; margin: 0 auto; padding: 22px; }}
          input, textarea, button {{ font-size: 16px; padding: 10px; }}
          textarea {{ width: 100%; }}
          .card {{ border: 1px solid #ddd; border-radius: 12px; padding: 16px; margin: 16px 0; }}
          table {{ border-collapse: collapse; width: 100%; }}
          th, td {{ border: 1px solid #ddd; padding: 8px; }}
          th {{ text-align: left; background: #f7f7f7; }}
          .muted {{ color: #666; }}
          .danger {{ color: #b00020; }}
          .ok {{ color: #2e7d32; }}
          .missing {{ background: #ffe5e5; }}
        </style>
      </head>
      <body>
        <h1>{title}</h1>
        {body}
      </body>
    </html>
    """
    return HTMLResponse(html_doc)


def input_name(section: str, question_id: int) -> str:
    return f"q__{section}__{question_id}"


def render_input(session: SheetSession, section: str, question) -> str:
    name = input_name(section, question.id)
    value = session.state.get((section, question.id))
    disabled = " disabled" if session.is_submitted else ""
    if question.mode is Mode.NUMERIC_SCORE:
        shown = "" if value is None else value
        return (
            f'<input type="number" name="{name}" value="{shown}" step="0.5" '
            f'min="{question.low_points}" max="{question.high_points}"{disabled} />'
            f'<div class="muted">Allowed: {question.low_points} – {question.high_points}</div>'
        )
    if question.mode is Mode.CHECKBOX:
        checked = " checked" if value == 1 else ""
        return f'<input type="checkbox" name="{name}" value="1"{checked}{disabled} /> ({question.point_value} pts)'
    if question.mode is Mode.STEP_COUNTER:
        return (
            f'<input type="number" name="{name}" value="{value or 0}" step="1" '
            f'min="{question.lower_bound}" max="{question.upper_bound}"{disabled} />'
            f' x {question.point_value} pts'
        )
    return f'<textarea name="{name}" rows="3"{disabled}>{html.escape(value or "")}</textarea>'


def render_sheet(session: SheetSession, message: str = "") -> HTMLResponse:
    missing = set(session.missing())
    cards = ""
    for section in session.layout.sections:
        rows = ""
        for question, field in section.slots():
            css = ' class="missing"' if (section.name, question.id) in missing else ""
            rows += f"""
            <tr{css}>
              <td>{question.id}</td>
              <td>{html.escape(question.text)}<div class="muted">{html.escape(question.section)}</div></td>
              <td>{render_input(session, section.name, question)}</td>
            </tr>
            """
        cards += f"""
        <div class="card">
          <h3>{section.title}</h3>
          <table>
            <thead><tr><th>#</th><th>Question</th><th>Value</th></tr></thead>
            <tbody>{rows}</tbody>
          </table>
        </div>
        """

    if session.is_submitted:
        status = '<p class="ok">Submitted. This score sheet can no longer be edited.</p>'
        buttons = ""
    else:
        status = (
            '<p class="ok">All required scores entered.</p>' if not missing
            else f'<p class="muted">{len(missing)} required score(s) still missing.</p>'
        )
        submit_disabled = " disabled" if missing else ""
        buttons = f"""
          <button type="submit" name="action" value="save">Save</button>
          <button type="submit" name="action" value="submit"{submit_disabled}>Submit</button>
        """

    totals = sheet_totals(session.sheet, session.layout)
    body = f"""
    <div class="card">
      <p>Sheet #{session.sheet.id} &middot; Judge {session.sheet.judge_id} &middot; Team {session.sheet.team_id}</p>
      {status}
      <p class="muted">Score {totals["score"]:g} &middot; Penalties {totals["penalties"]:g} &middot; Total {totals["total"]:g}</p>
      {f'<p class="danger">{html.escape(message)}</p>' if message else ''}
    </div>
    <form method="post" action="/judge/sheet/{session.sheet.id}">
      {cards}
      {buttons}
    </form>
    """
    return page(f"{session.layout.sheet_type.label} Score Sheet", body)


# -----------------------
# Routes: Home + Judge pages
# -----------------------
@app.get("/", response_class=HTMLResponse)
def home():
    return page(
        "Score Sheets",
        """
        <div class="card">
          <p class="muted">
            Judges open their score sheets at /judge/sheet/&lt;id&gt;. Scores must be inside the
            allowed range; penalties count occurrences. Submitted sheets are locked.
          </p>
        </div>
        """,
    )


@app.get("/judge/sheet/{sheet_id}", response_class=HTMLResponse)
async def judge_sheet(sheet_id: int):
    return render_sheet(await open_session(sheet_id))


@app.post("/judge/sheet/{sheet_id}", response_class=HTMLResponse)
async def judge_sheet_post(sheet_id: int, request: Request):
    form = await request.form()
    session = await open_session(sheet_id)

    values: Dict[str, Dict[str, Any]] = {}
    for section, question, _field in session.layout.slots():
        raw = form.get(input_name(section.name, question.id))
        if question.mode is Mode.CHECKBOX and raw is None:
            raw = 0  # unchecked boxes are not posted
        values.setdefault(section.name, {})[str(question.id)] = raw

    try:
        session.apply(values)
        if form.get("action") == "submit":
            await session.submit(app.state.store)
        else:
            await session.save(app.state.store)
    except (ValidationError, StateConflictError, FieldMappingError) as e:
        return render_sheet(session, message=str(e))

    return RedirectResponse(url=f"/judge/sheet/{sheet_id}", status_code=303)
