"""Score sheets for engineering design contest judging."""
from .batch import BatchCoordinator, BatchEntry, BatchOutcome, EntryResult
from .catalog import Catalog, Mode, QuestionDefinition, SheetType, build_catalogs
from .completion import is_complete, missing_questions
from .errors import (
    FieldMappingError,
    PartialBatchFailure,
    ScoreSheetError,
    SheetNotFoundError,
    StateConflictError,
    TransportError,
    ValidationError,
)
from .fields import SheetLayout, build_layouts, resolve_field
from .lifecycle import SheetSession
from .models import ScoreSheet

__version__ = "0.1.0"
