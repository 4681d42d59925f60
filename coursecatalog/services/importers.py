"""
Entity importers: upsert-by-id plus stale cleanup scoped to the snapshot's parents.
"""
from typing import Dict, Iterable, List, Sequence, Tuple, Type

from coursecatalog.core.database import Base
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
from coursecatalog.schemas.results import EntityCount
from coursecatalog.schemas.snapshot import BundleCourseRecord, CatalogSnapshot, SnapshotRecord
from coursecatalog.services.audit import ImportLog
from coursecatalog.services.store import CatalogStore

# (child model, child column holding the parent id)
Cascade = Sequence[Tuple[Type[Base], object]]


async def upsert_records(store: CatalogStore, model: Type[Base], records: Iterable[SnapshotRecord]) -> int:
    """Insert each record, or overwrite every snapshot field of the stored row with the same id."""
    processed = 0
    for record in records:
        values = record.column_values()
        if await store.get(model, values["id"]) is not None:
            await store.update(model, values["id"], values)
        else:
            await store.insert(model, values)
        processed += 1
    return processed


async def remove_stale(
    store: CatalogStore,
    model: Type[Base],
    parent_column,
    parent_ids: List[str],
    keep_ids: List[str],
    cascade: Cascade = (),
) -> List[str]:
    """Delete rows under ``parent_ids`` whose id is not in ``keep_ids``, children first.

    Nothing is removed unless both id lists are non-empty, so an empty array in
    a partial snapshot never wipes a parent's children.
    """
    if not parent_ids or not keep_ids:
        return []
    stale = await store.select_ids(model, parent_column.in_(parent_ids), model.id.not_in(keep_ids))
    if not stale:
        return []
    for child_model, child_column in cascade:
        await store.delete_where(child_model, child_column.in_(stale))
    await store.delete_where(model, model.id.in_(stale))
    return stale


async def import_bundle_links(store: CatalogStore, links: Iterable[BundleCourseRecord]) -> int:
    processed = 0
    for link in links:
        key = (link.bundle_id, link.course_id)
        if await store.get(BundleCourse, key) is None:
            await store.insert(BundleCourse, link.column_values())
        elif link.sequence is not None:
            await store.update(BundleCourse, key, {"sequence": link.sequence})
        processed += 1
    return processed


async def _import_owned(
    store: CatalogStore,
    log: ImportLog,
    stage: str,
    label: str,
    model: Type[Base],
    records: list,
    parent_column,
    parent_ids: List[str],
    cascade: Cascade = (),
) -> int:
    log.info(stage, f"Importing {len(records)} {label}...")
    imported = await upsert_records(store, model, records)
    stale = await remove_stale(store, model, parent_column, parent_ids, [r.id for r in records], cascade)
    if stale:
        log.info(stage, f"Cleaned {len(stale)} stale {label}", {"ids": stale})
    log.success(stage, f"Imported {imported} {label}")
    return imported


async def _import_plain(store: CatalogStore, log: ImportLog, stage: str, label: str, model: Type[Base], records: list) -> int:
    log.info(stage, f"Importing {len(records)} {label}...")
    imported = await upsert_records(store, model, records)
    log.success(stage, f"Imported {imported} {label}")
    return imported


async def import_catalog(
    store: CatalogStore,
    snapshot: CatalogSnapshot,
    log: ImportLog,
    counts: Dict[str, EntityCount],
) -> None:
    """Run every entity importer in dependency order against one store."""
    course_ids = snapshot.ids("courses")
    unit_ids = snapshot.ids("units")

    counts["courses"].imported = await _import_plain(store, log, "COURSES", "courses", Course, snapshot.courses)
    counts["units"].imported = await _import_owned(
        store, log, "UNITS", "units", Unit, snapshot.units,
        Unit.course_id, course_ids, cascade=[(Lesson, Lesson.unit_id)],
    )
    counts["lessons"].imported = await _import_owned(
        store, log, "LESSONS", "lessons", Lesson, snapshot.lessons,
        Lesson.unit_id, unit_ids,
    )
    counts["questionBanks"].imported = await _import_owned(
        store, log, "QBANKS", "question banks", QuestionBank, snapshot.question_banks,
        QuestionBank.course_id, course_ids, cascade=[(BankQuestion, BankQuestion.bank_id)],
    )
    counts["bankQuestions"].imported = await _import_plain(
        store, log, "BQUESTIONS", "bank questions", BankQuestion, snapshot.bank_questions,
    )
    counts["practiceExams"].imported = await _import_owned(
        store, log, "PEXAMS", "practice exams", PracticeExam, snapshot.practice_exams,
        PracticeExam.course_id, course_ids, cascade=[(ExamQuestion, ExamQuestion.exam_id)],
    )
    counts["examQuestions"].imported = await _import_plain(
        store, log, "EQUESTIONS", "exam questions", ExamQuestion, snapshot.exam_questions,
    )

    log.info("BUNDLES", f"Importing {len(snapshot.bundles)} bundles...")
    counts["bundles"].imported = await upsert_records(store, CourseBundle, snapshot.bundles)
    counts["bundleCourses"].imported = await import_bundle_links(store, snapshot.bundle_courses)
    log.success(
        "BUNDLES",
        f"Imported {counts['bundles'].imported} bundles and {counts['bundleCourses'].imported} bundle courses",
    )
