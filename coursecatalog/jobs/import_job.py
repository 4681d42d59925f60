import asyncio
import logging

from rq import get_current_job

from coursecatalog.services.catalog_import import run_catalog_import

logger = logging.getLogger(__name__)


def _update_meta(job, **meta) -> None:
    if job is None:
        return
    job.meta.update(meta)
    job.save_meta()


def catalog_import_job(dry_run: bool = False) -> dict:
    """rq entry point: run one catalog import in the worker's own event loop."""
    job = get_current_job()
    _update_meta(job, state="running", dry_run=dry_run)
    try:
        result = asyncio.run(run_catalog_import(dry_run=dry_run))
    except Exception:
        _update_meta(job, state="failed")
        raise
    body = result.to_json_dict()
    _update_meta(
        job,
        state="done" if result.success else "failed",
        failed_stage=result.failed_stage,
        audit_log_path=result.audit_log_path,
    )
    logger.info(f"Catalog import job finished (success={result.success})")
    return body
