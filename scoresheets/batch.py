from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field, replace
from typing import Any, Awaitable, Callable, Dict, Iterable, List, Mapping, Optional

from .catalog import SheetType
from .errors import PartialBatchFailure, ScoreSheetError, TransportError
from .fields import SheetLayout
from .lifecycle import SheetSession, SheetValues
from .models import ScoreSheet
from .store import SheetStore

logger = logging.getLogger(__name__)


def _as_store_error(exc: Exception) -> ScoreSheetError:
    # Anything the store raises outside the error taxonomy counts as a transport failure.
    if isinstance(exc, ScoreSheetError):
        return exc
    wrapped = TransportError(f"{type(exc).__name__}: {exc}")
    wrapped.__cause__ = exc
    return wrapped


@dataclass
class BatchEntry:
    team_id: int
    session: SheetSession

    @property
    def sheet(self) -> ScoreSheet:
        return self.session.sheet


@dataclass
class EntryResult:
    team_id: int
    sheet_id: int
    ok: bool
    error: Optional[ScoreSheetError] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "teamId": self.team_id,
            "sheetId": self.sheet_id,
            "ok": self.ok,
            "error": None if self.error is None else str(self.error),
            "errorType": None if self.error is None else type(self.error).__name__,
        }


@dataclass
class BatchOutcome:
    action: str
    results: List[EntryResult] = field(default_factory=list)

    @property
    def succeeded(self) -> List[EntryResult]:
        return [r for r in self.results if r.ok]

    @property
    def failed(self) -> List[EntryResult]:
        return [r for r in self.results if not r.ok]

    @property
    def ok(self) -> bool:
        return not self.failed

    def raise_for_failures(self) -> "BatchOutcome":
        if self.failed:
            raise PartialBatchFailure(
                self.results,
                f"{self.action}: {len(self.failed)} of {len(self.results)} score sheets failed.",
            )
        return self


class BatchCoordinator:
    """Runs one judge's sheet operations across many teams concurrently.

    Entries are independent: there is no cross-entry transaction and a failed
    write never undoes or blocks its siblings.
    """

    def __init__(self, store: SheetStore, layouts: Mapping[SheetType, SheetLayout]):
        self.store = store
        self.layouts = layouts

    async def load_batch(self, judge_id: int, sheet_type: int, team_ids: Iterable[int]) -> List[BatchEntry]:
        """Fetch the sheet of every team that has one; teams without a sheet are left out."""
        sheet_type = SheetType(sheet_type)
        layout = self.layouts[sheet_type]

        async def fetch(team_id: int) -> Optional[BatchEntry]:
            try:
                sheet_id = await self.store.get_sheet_mapping(judge_id, team_id, sheet_type)
                if sheet_id is None:
                    return None
                sheet = await self.store.get_sheet(sheet_id)
            except Exception as e:
                e = _as_store_error(e)
                if not isinstance(e, TransportError):
                    raise
                logger.warning("Dropping team %s from %s batch: %s", team_id, sheet_type.label, e)
                return None
            sheet = replace(sheet, judge_id=judge_id, team_id=team_id)
            return BatchEntry(team_id, SheetSession(sheet, layout))

        unique = list(dict.fromkeys(team_ids))  # dedupe preserve order
        fetched = await asyncio.gather(*(fetch(t) for t in unique))
        entries = [e for e in fetched if e is not None]
        logger.debug(
            "Loaded %d of %d %s sheets for judge %s", len(entries), len(unique), sheet_type.label, judge_id
        )
        return entries

    async def _run(
        self,
        entry: BatchEntry,
        write: Callable[[SheetStore], Awaitable[ScoreSheet]],
        values: Optional[SheetValues],
    ) -> EntryResult:
        try:
            if values:
                entry.session.apply(values)
            await write(self.store)
        except Exception as e:
            e = _as_store_error(e)
            logger.warning("Score sheet %s (team %s) failed: %s", entry.sheet.id, entry.team_id, e)
            return EntryResult(entry.team_id, entry.sheet.id, ok=False, error=e)
        return EntryResult(entry.team_id, entry.sheet.id, ok=True)

    async def _fan_out(
        self, action: str, entries: List[BatchEntry], values_by_team: Optional[Mapping[int, SheetValues]]
    ) -> BatchOutcome:
        values_by_team = values_by_team or {}

        def writer(entry: BatchEntry) -> Callable[[SheetStore], Awaitable[ScoreSheet]]:
            return entry.session.save if action == "save" else entry.session.submit

        results = await asyncio.gather(
            *(self._run(e, writer(e), values_by_team.get(e.team_id)) for e in entries)
        )
        outcome = BatchOutcome(action, list(results))
        if outcome.failed:
            logger.warning(
                "Batch %s finished with %d of %d failures", action, len(outcome.failed), len(outcome.results)
            )
        return outcome

    async def save_batch(
        self, entries: List[BatchEntry], values_by_team: Optional[Mapping[int, SheetValues]] = None
    ) -> BatchOutcome:
        return await self._fan_out("save", entries, values_by_team)

    async def submit_batch(
        self, entries: List[BatchEntry], values_by_team: Optional[Mapping[int, SheetValues]] = None
    ) -> BatchOutcome:
        # Each session's submit stamps is_submitted and the sheet type on its write.
        return await self._fan_out("submit", entries, values_by_team)
