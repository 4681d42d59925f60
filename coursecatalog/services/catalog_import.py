"""
Catalog import orchestration.

Load -> validate -> one transaction {entity importers, quiz reconciliation}
-> verify after commit -> audit file. ``CatalogImporter.run`` never raises:
every outcome is reported through the returned ``ImportResult``.
"""
from pathlib import Path
from typing import List, Optional, Sequence
import asyncio
import logging

from sqlalchemy.ext.asyncio import async_sessionmaker

from coursecatalog.core.config import Settings, settings as default_settings
from coursecatalog.core.database import AsyncSessionLocal, acquire_import_lock, transaction
from coursecatalog.core.errors import (
    CatalogImportError,
    ImportInProgressError,
    ImportTimeoutError,
    TransactionError,
    ValidationError,
)
from coursecatalog.schemas.results import COUNT_ENTITIES, ImportResult, ReconciliationSummary
from coursecatalog.schemas.snapshot import CatalogSnapshot
from coursecatalog.services.audit import ImportLog, audit_log_path, write_audit_log
from coursecatalog.services.importers import import_catalog
from coursecatalog.services.linkage import LegacyLinkageResolver
from coursecatalog.services.reconcile import reconcile_quiz_systems
from coursecatalog.services.snapshot import load_snapshot
from coursecatalog.services.store import CatalogStore
from coursecatalog.services.validation import validate
from coursecatalog.services.verification import verify_counts

logger = logging.getLogger(__name__)

# One import at a time per process; PostgreSQL's advisory lock covers other processes.
_import_lock = asyncio.Lock()


def import_in_progress() -> bool:
    return _import_lock.locked()


class CatalogImporter:
    def __init__(
        self,
        session_factory: Optional[async_sessionmaker] = None,
        settings: Optional[Settings] = None,
        resolver: Optional[LegacyLinkageResolver] = None,
        snapshot_paths: Optional[Sequence[Path]] = None,
    ):
        self.session_factory = session_factory or AsyncSessionLocal
        self.settings = settings or default_settings
        self.resolver = resolver
        self.snapshot_paths: List[Path] = (
            [Path(p) for p in snapshot_paths] if snapshot_paths else self.settings.snapshot_paths()
        )
        self.timeout = self.settings.CATALOG_IMPORT_TIMEOUT_SECONDS

    async def run(self, dry_run: bool = False) -> ImportResult:
        result = ImportResult(dry_run=dry_run)
        log = ImportLog()

        if _import_lock.locked():
            self._fail(result, log, ImportInProgressError())
            self._finish(result, log)
            return result

        async with _import_lock:
            try:
                await self._run(result, log, dry_run)
            except CatalogImportError as e:
                self._fail(result, log, e)
            except Exception as e:
                logger.exception("Catalog import failed unexpectedly")
                self._fail(result, log, CatalogImportError(f"Import failed: {e}"))
            finally:
                self._finish(result, log)
        return result

    async def _run(self, result: ImportResult, log: ImportLog, dry_run: bool) -> None:
        log.info("START", f"Starting catalog import (dry run: {dry_run})")

        loaded = load_snapshot(self.snapshot_paths)
        result.snapshot_path = str(loaded.path)
        result.snapshot_version = loaded.version
        result.snapshot_checksum = loaded.checksum
        log.info("LOAD", f"Loaded snapshot v{loaded.version} (checksum: {loaded.checksum})", {"path": str(loaded.path)})

        for key in COUNT_ENTITIES:
            rows = loaded.data.get(key)
            result.counts[key].expected = len(rows) if isinstance(rows, list) else 0

        log.info("VALIDATION", "Starting pre-import validation...")
        validation = validate(loaded.data)
        for warning in validation.warnings:
            log.warn("VALIDATION", warning)
        if not validation.ok:
            for error in validation.errors:
                log.error("VALIDATION", error)
            raise ValidationError(validation.errors)
        log.success("VALIDATION", "Pre-import validation passed")

        if dry_run:
            log.info("DRYRUN", "Dry run mode - no changes will be made")
            result.success = True
            return

        log.info("TRANSACTION", "Starting transactional import...")
        try:
            result.reconciliation = await asyncio.wait_for(
                self._write(validation.snapshot, log, result),
                timeout=self.timeout,
            )
        except asyncio.TimeoutError as e:
            raise ImportTimeoutError(self.timeout) from e
        except CatalogImportError:
            raise
        except Exception as e:
            raise TransactionError(f"Transaction rolled back: {e}", cause=e) from e
        log.success("TRANSACTION", "All imports committed successfully")

        short = await verify_counts(self.session_factory, result.counts, log)
        if short:
            log.error("VERIFY", "Post-import verification detected missing content", {"entities": short})
            result.failed_stage = "VERIFY"
            return

        result.success = True
        log.success("COMPLETE", "Import completed successfully with all content verified")

    async def _write(self, snapshot: CatalogSnapshot, log: ImportLog, result: ImportResult) -> ReconciliationSummary:
        async with transaction(self.session_factory) as session:
            if await acquire_import_lock(session):
                log.info("TRANSACTION", "Acquired catalog import advisory lock")
            store = CatalogStore(session)
            await import_catalog(store, snapshot, log, result.counts)
            return await reconcile_quiz_systems(store, log, self.resolver)

    def _fail(self, result: ImportResult, log: ImportLog, error: CatalogImportError) -> None:
        result.success = False
        result.failed_stage = error.stage
        if isinstance(error, ValidationError):
            log.error(error.stage, "Pre-import validation FAILED - aborting import")
        else:
            log.error(error.stage, str(error))

    def _finish(self, result: ImportResult, log: ImportLog) -> None:
        # The audit file and the returned result hold the same entries.
        log.info("AUDIT", f"Writing audit log to {audit_log_path(self.settings.log_dir(), result.start_time)}")
        result.logs = list(log.entries)
        result.errors = list(log.errors)
        result.warnings = list(log.warnings)
        result.finish()
        try:
            write_audit_log(result, self.settings.log_dir())
        except OSError:
            logger.exception("Failed to write catalog import audit log")


async def run_catalog_import(
    dry_run: bool = False,
    snapshot_paths: Optional[Sequence[Path]] = None,
    session_factory: Optional[async_sessionmaker] = None,
    settings: Optional[Settings] = None,
) -> ImportResult:
    importer = CatalogImporter(session_factory=session_factory, settings=settings, snapshot_paths=snapshot_paths)
    return await importer.run(dry_run=dry_run)
