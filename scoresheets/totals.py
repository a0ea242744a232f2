from __future__ import annotations

from typing import Dict, List, Sequence

import numpy as np
import pandas as pd

from .catalog import Mode
from .codec import to_interaction_state
from .fields import SheetLayout
from .models import ScoreSheet


def _magnitude(value) -> float:
    n = pd.to_numeric(pd.Series([value], dtype=object), errors="coerce").fillna(0.0)
    return float(np.abs(n.iloc[0]))


def _scored_rows(sheet: ScoreSheet, layout: SheetLayout) -> pd.DataFrame:
    rows = []
    for section, question, field in layout.slots():
        if question.mode is Mode.FREE_TEXT:
            continue
        if question.is_penalty:
            value = sheet.get(field)
        else:
            # out-of-range or blank scores count as nothing
            value = to_interaction_state(sheet.get(field), question)
        rows.append({
            "section": section.name,
            "kind": "penalties" if question.is_penalty else "score",
            "value": value,
        })
    df = pd.DataFrame(rows, columns=["section", "kind", "value"])
    df["value"] = np.abs(pd.to_numeric(df["value"], errors="coerce").fillna(0.0))
    return df


def sheet_totals(sheet: ScoreSheet, layout: SheetLayout) -> Dict:
    """
    Score and penalty sums of one sheet:
      sections: {section name: {"score": float, "penalties": float}}
      score, penalties, total (= score - penalties)
    """
    df = _scored_rows(sheet, layout)
    by_section = (
        df.groupby(["section", "kind"], sort=False)["value"].sum()
        .unstack(fill_value=0.0)
        .reindex(columns=["score", "penalties"], fill_value=0.0)
    )
    sections = {
        name: {"score": float(row["score"]), "penalties": float(row["penalties"])}
        for name, row in by_section.iterrows()
    }
    score = float(df.loc[df["kind"] == "score", "value"].sum())
    penalties = float(df.loc[df["kind"] == "penalties", "value"].sum())
    return {
        "sections": sections,
        "score": score,
        "penalties": penalties,
        "total": score - penalties,
    }


def breakdown_frame(sheets: Sequence[ScoreSheet], layout: SheetLayout, label_by: str = "judge") -> pd.DataFrame:
    """
    Sheets of a single type side by side:
      rows = questions in sheet order (section, question, text, field)
      one column per sheet, labelled by judge (one team's sheets) or by
      team (one judge's sheets); falls back to the sheet id
    """
    if label_by not in ("judge", "team"):
        raise ValueError(f"label_by must be 'judge' or 'team', got {label_by!r}.")
    columns: List[str] = []
    for sheet in sheets:
        if sheet.sheet_type != layout.sheet_type:
            raise ValueError(f"Sheet {sheet.id} is not a {layout.sheet_type.name} sheet.")
        owner = sheet.judge_id if label_by == "judge" else sheet.team_id
        columns.append(f"{label_by}_{owner}" if owner is not None else f"sheet_{sheet.id}")

    records = []
    for section, question, field in layout.slots():
        record = {
            "section": section.name,
            "question": question.id,
            "text": question.text,
            "field": field,
        }
        for label, sheet in zip(columns, sheets):
            value = sheet.get(field)
            if question.is_penalty:
                value = _magnitude(value)
            record[label] = value
        records.append(record)
    return pd.DataFrame.from_records(records, columns=["section", "question", "text", "field", *columns])
