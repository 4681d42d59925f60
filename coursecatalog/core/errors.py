"""
Error taxonomy of the catalog import pipeline.

Every error carries the pipeline ``stage`` it was raised in so the audit log
and the HTTP layer can report it uniformly.
"""
from pathlib import Path
from typing import List, Optional, Sequence


class CatalogImportError(Exception):
    """Base class for failures that abort an import run."""

    stage = "FATAL"

    def __init__(self, message: str, stage: Optional[str] = None):
        super().__init__(message)
        if stage:
            self.stage = stage


class SnapshotNotFoundError(CatalogImportError):
    stage = "LOAD"

    def __init__(self, paths: Sequence[Path]):
        self.paths = [Path(p) for p in paths]
        listed = ", ".join(str(p) for p in self.paths) or "<none>"
        super().__init__(f"Snapshot file not found in any of: {listed}")


class SnapshotFormatError(CatalogImportError):
    stage = "LOAD"


class ValidationError(CatalogImportError):
    """The snapshot failed pre-import validation; nothing was written."""

    stage = "VALIDATION"

    def __init__(self, errors: List[str]):
        self.errors = list(errors)
        super().__init__(f"Snapshot validation failed with {len(self.errors)} error(s)")


class TransactionError(CatalogImportError):
    """The write phase failed and every write of the run was rolled back."""

    stage = "TRANSACTION"

    def __init__(self, message: str, cause: Optional[BaseException] = None):
        super().__init__(message)
        self.cause = cause


class ImportTimeoutError(TransactionError):
    def __init__(self, budget_seconds: float):
        self.budget_seconds = budget_seconds
        super().__init__(f"Import exceeded its {budget_seconds:g}s budget and was rolled back")


class ImportInProgressError(CatalogImportError):
    stage = "START"

    def __init__(self):
        super().__init__("Another catalog import is already in progress")
