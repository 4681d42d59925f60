from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from fastapi.responses import JSONResponse
from pydantic import BaseModel
from rq.exceptions import NoSuchJobError
from rq.job import Job
from sqlalchemy.ext.asyncio import async_sessionmaker

from coursecatalog.core.auth import require_admin
from coursecatalog.core.config import Settings, get_settings
from coursecatalog.core.database import AsyncSessionLocal
from coursecatalog.jobs.import_job import catalog_import_job
from coursecatalog.jobs.queue import queue, redis
from coursecatalog.services.audit import list_audit_logs, read_audit_log
from coursecatalog.services.catalog_export import export_catalog
from coursecatalog.services.catalog_import import CatalogImporter, import_in_progress

router = APIRouter()

# Failed stage -> HTTP status of a synchronous import.
FAILURE_STATUS = {
    "VALIDATION": status.HTTP_422_UNPROCESSABLE_ENTITY,
    "START": status.HTTP_409_CONFLICT,
}


def get_session_factory() -> async_sessionmaker:
    return AsyncSessionLocal


class StartImport(BaseModel):
    dry_run: bool = False


class ImportJobStatus(BaseModel):
    job_id: str
    state: str
    failed_stage: Optional[str] = None
    audit_log_path: Optional[str] = None
    result: Optional[dict] = None


class RunRow(BaseModel):
    name: str
    success: bool
    dryRun: bool
    startTime: Optional[str] = None
    errors: int
    warnings: int


class ExportRequest(BaseModel):
    course_ids: Optional[List[str]] = None
    bundle_ids: Optional[List[str]] = None


@router.post("/catalog/import", dependencies=[Depends(require_admin)])
async def import_catalog_now(
    dry_run: bool = Query(False),
    session_factory: async_sessionmaker = Depends(get_session_factory),
    settings: Settings = Depends(get_settings),
):
    result = await CatalogImporter(session_factory=session_factory, settings=settings).run(dry_run=dry_run)
    if result.success:
        code = status.HTTP_200_OK
    else:
        code = FAILURE_STATUS.get(result.failed_stage, status.HTTP_500_INTERNAL_SERVER_ERROR)
    return JSONResponse(status_code=code, content=result.to_json_dict())


@router.post("/catalog/import/start", dependencies=[Depends(require_admin)])
def start_catalog_import(payload: StartImport, settings: Settings = Depends(get_settings)):
    job = queue.enqueue(catalog_import_job, payload.dry_run, job_timeout=settings.RQ_JOB_TIMEOUT)
    return {"job_id": job.get_id()}


@router.get("/catalog/import/status", response_model=ImportJobStatus, dependencies=[Depends(require_admin)])
def catalog_import_status(job_id: str):
    try:
        job = Job.fetch(job_id, connection=redis)
    except NoSuchJobError:
        raise HTTPException(status.HTTP_404_NOT_FOUND, "Job not found")
    meta = job.meta or {}
    state = meta.get("state") or job.get_status().value
    return ImportJobStatus(
        job_id=job_id,
        state=state,
        failed_stage=meta.get("failed_stage"),
        audit_log_path=meta.get("audit_log_path"),
        result=job.return_value() if state in ("done", "failed") else None,
    )


@router.get("/catalog/import/running", dependencies=[Depends(require_admin)])
async def catalog_import_running():
    return {"running": import_in_progress()}


@router.get("/catalog/runs", response_model=List[RunRow], dependencies=[Depends(require_admin)])
def list_runs(limit: int = Query(20, ge=1, le=200), settings: Settings = Depends(get_settings)):
    return [RunRow(**row) for row in list_audit_logs(settings.log_dir(), limit=limit)]


@router.get("/catalog/runs/{name}", dependencies=[Depends(require_admin)])
def run_detail(name: str, settings: Settings = Depends(get_settings)):
    body = read_audit_log(settings.log_dir(), name)
    if body is None:
        raise HTTPException(status.HTTP_404_NOT_FOUND, "Run not found")
    return body


@router.post("/catalog/export", dependencies=[Depends(require_admin)])
async def export_catalog_now(
    payload: ExportRequest,
    session_factory: async_sessionmaker = Depends(get_session_factory),
    settings: Settings = Depends(get_settings),
):
    result = await export_catalog(
        session_factory,
        course_ids=payload.course_ids if payload.course_ids is not None else settings.export_course_ids(),
        bundle_ids=payload.bundle_ids if payload.bundle_ids is not None else settings.export_bundle_ids(),
        paths=settings.snapshot_paths(),
    )
    code = status.HTTP_200_OK if result.success else status.HTTP_500_INTERNAL_SERVER_ERROR
    return JSONResponse(status_code=code, content=result.model_dump(mode="json", by_alias=True))
