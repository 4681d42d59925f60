"""
Catalog exporter: writes the snapshot file that the importer consumes.
"""
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence, Tuple
import json
import logging

from pydantic.alias_generators import to_camel
from sqlalchemy.ext.asyncio import async_sessionmaker

from coursecatalog.core.config import settings
from coursecatalog.core.database import AsyncSessionLocal, Base, transaction
from coursecatalog.models.orm import (
    BankQuestion,
    BundleCourse,
    Course,
    CourseBundle,
    ExamQuestion,
    Lesson,
    PracticeExam,
    QuestionBank,
    Unit,
)
from coursecatalog.schemas.results import ExportResult
from coursecatalog.services.store import CatalogStore

logger = logging.getLogger(__name__)

SNAPSHOT_VERSION = "1.0.0"


def _iso(value: datetime) -> str:
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def row_to_record(row: Base) -> Dict[str, Any]:
    """Serialise an ORM row with camelCase keys and ISO-8601 timestamps."""
    record = {}
    for column in row.__table__.columns:
        value = getattr(row, column.key)
        if isinstance(value, datetime):
            value = _iso(value)
        record[to_camel(column.key)] = value
    return record


def snapshot_output_path(paths: Sequence[Path]) -> Path:
    """First candidate whose directory exists, else the first candidate."""
    for path in paths:
        if Path(path).parent.is_dir():
            return Path(path)
    return Path(paths[0])


async def fix_final_exams(store: CatalogStore, course_ids: Sequence[str]) -> Tuple[int, List[str]]:
    """Flag exams of the exported courses titled "... Final Exam ..." and fill in their form from the title."""
    fixed = 0
    warnings: List[str] = []
    exams = await store.select_all(PracticeExam, PracticeExam.course_id.in_(list(course_ids)), order_by=PracticeExam.id)
    for exam in exams:
        title = (exam.title or "").lower()
        if "final exam" not in title:
            continue
        if not exam.is_final_exam:
            exam.is_final_exam = True
            fixed += 1
            logger.info(f'Marked "{exam.title}" as a final exam')
        if not exam.exam_form:
            if "form a" in title:
                exam.exam_form = "A"
                fixed += 1
            elif "form b" in title:
                exam.exam_form = "B"
                fixed += 1
            else:
                warnings.append(f'Final exam "{exam.title}" is missing Form A/B designation')
    await store.session.flush()

    for course_id in course_ids:
        course = await store.get(Course, course_id)
        if course is None or course.requirement_cycle_type != "Pre-Licensing":
            continue
        finals = await store.select_all(
            PracticeExam, PracticeExam.course_id == course_id, PracticeExam.is_final_exam.is_(True)
        )
        forms = {e.exam_form for e in finals}
        if "A" not in forms or "B" not in forms:
            has = ", ".join(f"Form {e.exam_form or '?'}" for e in finals) or "none"
            warnings.append(
                f'Pre-licensing course "{course.title}" should have both Form A and Form B final exams (has: {has})'
            )
    return fixed, warnings


async def build_snapshot(store: CatalogStore, course_ids: Sequence[str], bundle_ids: Sequence[str]) -> Dict[str, Any]:
    course_ids, bundle_ids = list(course_ids), list(bundle_ids)
    courses = await store.select_all(Course, Course.id.in_(course_ids), order_by=Course.id)
    units = await store.select_all(Unit, Unit.course_id.in_(course_ids), order_by=Unit.id)
    unit_ids = [u.id for u in units]
    lessons = await store.select_all(Lesson, Lesson.unit_id.in_(unit_ids), order_by=Lesson.id)
    banks = await store.select_all(QuestionBank, QuestionBank.course_id.in_(course_ids), order_by=QuestionBank.id)
    bank_ids = [b.id for b in banks]
    bank_questions = await store.select_all(BankQuestion, BankQuestion.bank_id.in_(bank_ids), order_by=BankQuestion.id)
    exams = await store.select_all(PracticeExam, PracticeExam.course_id.in_(course_ids), order_by=PracticeExam.id)
    exam_ids = [e.id for e in exams]
    exam_questions = await store.select_all(ExamQuestion, ExamQuestion.exam_id.in_(exam_ids), order_by=ExamQuestion.id)
    bundles = await store.select_all(CourseBundle, CourseBundle.id.in_(bundle_ids), order_by=CourseBundle.id)
    links = await store.select_all(BundleCourse, BundleCourse.bundle_id.in_(bundle_ids), order_by=BundleCourse.course_id)

    return {
        "version": SNAPSHOT_VERSION,
        "exportedAt": _iso(datetime.now(timezone.utc)),
        "courses": [row_to_record(r) for r in courses],
        "units": [row_to_record(r) for r in units],
        "lessons": [row_to_record(r) for r in lessons],
        "questionBanks": [row_to_record(r) for r in banks],
        "bankQuestions": [row_to_record(r) for r in bank_questions],
        "practiceExams": [row_to_record(r) for r in exams],
        "examQuestions": [row_to_record(r) for r in exam_questions],
        "bundles": [row_to_record(r) for r in bundles],
        "bundleCourses": [row_to_record(r) for r in links],
    }


async def export_catalog(
    session_factory: Optional[async_sessionmaker] = None,
    course_ids: Optional[Sequence[str]] = None,
    bundle_ids: Optional[Sequence[str]] = None,
    paths: Optional[Sequence[Path]] = None,
) -> ExportResult:
    session_factory = session_factory or AsyncSessionLocal
    course_ids = list(course_ids if course_ids is not None else settings.export_course_ids())
    bundle_ids = list(bundle_ids if bundle_ids is not None else settings.export_bundle_ids())
    paths = list(paths or settings.snapshot_paths())
    result = ExportResult()

    try:
        async with transaction(session_factory) as session:
            result.final_exams_fixed, result.warnings = await fix_final_exams(CatalogStore(session), course_ids)
        for warning in result.warnings:
            logger.warning(warning)

        async with session_factory() as session:
            snapshot = await build_snapshot(CatalogStore(session), course_ids, bundle_ids)

        output = snapshot_output_path(paths)
        output.write_text(json.dumps(snapshot, indent=2), encoding="utf-8")
    except Exception as e:
        logger.exception("Catalog export failed")
        result.error = str(e)
        return result

    result.success = True
    result.output_path = str(output)
    result.exported = {key: len(value) for key, value in snapshot.items() if isinstance(value, list)}
    logger.info(
        f"Catalog snapshot written to {output}: {result.exported['courses']} courses, "
        f"{result.exported['units']} units, {result.exported['lessons']} lessons"
    )
    return result
