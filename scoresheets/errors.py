from __future__ import annotations

from typing import List


class ScoreSheetError(Exception):
    """Base class for everything the score-sheet engine raises."""


class ValidationError(ScoreSheetError, ValueError):
    """A value would be written outside its declared bounds."""


class StateConflictError(ScoreSheetError):
    """An edit or submit was attempted on an already-submitted sheet."""


class TransportError(ScoreSheetError):
    """The persistence layer failed or was unreachable."""


class SheetNotFoundError(TransportError):
    pass


class FieldMappingError(ScoreSheetError, LookupError):
    """A question id (or section) has no physical field on this sheet type."""


class PartialBatchFailure(ScoreSheetError):
    """Some entries of a batch write failed while others succeeded.

    ``results`` holds one ``EntryResult`` per entry, successes included.
    """

    def __init__(self, results: List, message: str = ""):
        self.results = results
        failed = [r for r in results if not r.ok]
        super().__init__(message or f"{len(failed)} of {len(results)} score sheets failed.")

    @property
    def failed(self) -> List:
        return [r for r in self.results if not r.ok]
