"""
Quiz reconciliation between question banks and legacy practice exams.

Runs inside the import transaction, after every entity importer, and reads
the post-import state through the same store.
"""
from collections import defaultdict
from datetime import datetime, timezone
from typing import Dict, List, Optional
import uuid

from coursecatalog.models.orm import BankQuestion, ExamQuestion, PracticeExam, QuestionBank, Unit
from coursecatalog.schemas.results import ReconciliationSummary
from coursecatalog.services.audit import ImportLog
from coursecatalog.services.linkage import LegacyLinkageResolver, TitlePatternResolver, parse_leading_int
from coursecatalog.services.store import CatalogStore

UNIT_QUIZ_QUESTIONS_PER_ATTEMPT = 10
UNIT_QUIZ_PASSING_SCORE = 70


def _bank_question_values(bank_id: str, question: ExamQuestion, now: datetime) -> dict:
    return {
        "id": str(uuid.uuid4()),
        "bank_id": bank_id,
        "question_text": question.question_text or "",
        "question_type": question.question_type or "multiple_choice",
        "options": question.options or "[]",
        "correct_option": parse_leading_int(question.correct_answer),
        "explanation": question.explanation or "",
        "difficulty": "medium",
        "is_active": True,
        "created_at": now,
        "updated_at": now,
    }


async def _copy_exam_questions(
    store: CatalogStore,
    bank_id: str,
    exam: PracticeExam,
    questions_by_exam: Dict[str, List[ExamQuestion]],
) -> int:
    now = datetime.now(timezone.utc)
    questions = sorted(questions_by_exam.get(exam.id, []), key=lambda q: (q.sequence or 0, q.id))
    for question in questions:
        await store.insert(BankQuestion, _bank_question_values(bank_id, question, now))
    return len(questions)


async def reconcile_quiz_systems(
    store: CatalogStore,
    log: ImportLog,
    resolver: Optional[LegacyLinkageResolver] = None,
) -> ReconciliationSummary:
    resolver = resolver or TitlePatternResolver()
    summary = ReconciliationSummary()
    log.info("RECONCILE", "Reconciling question banks with practice exams...")

    units = await store.select_all(Unit, order_by=Unit.id)
    banks = await store.select_all(QuestionBank)
    exams = await store.select_all(PracticeExam)
    questions_by_exam: Dict[str, List[ExamQuestion]] = defaultdict(list)
    for question in await store.select_all(ExamQuestion):
        questions_by_exam[question.exam_id].append(question)

    units_with_bank = {b.unit_id for b in banks if b.unit_id}
    for unit in units:
        if unit.id in units_with_bank:
            continue
        now = datetime.now(timezone.utc)
        bank = await store.insert(QuestionBank, {
            "id": str(uuid.uuid4()),
            "title": f"{unit.title} Quiz",
            "course_id": unit.course_id,
            "unit_id": unit.id,
            "bank_type": "unit_quiz",
            "questions_per_attempt": UNIT_QUIZ_QUESTIONS_PER_ATTEMPT,
            "passing_score": UNIT_QUIZ_PASSING_SCORE,
            "created_at": now,
            "updated_at": now,
        })
        summary.banks_created += 1

        exam = resolver.exam_for_unit(unit, exams)
        if exam is not None:
            copied = await _copy_exam_questions(store, bank.id, exam, questions_by_exam)
            summary.questions_populated += copied
            log.info("RECONCILE", f'Created bank "{bank.title}" with {copied} questions from "{exam.title}"')
        else:
            log.info("RECONCILE", f'Created bank "{bank.title}" (no matching practice exam)')

    still_empty = 0
    for bank in await store.select_all(QuestionBank, order_by=QuestionBank.id):
        if await store.count_where(BankQuestion, BankQuestion.bank_id == bank.id) > 0:
            continue
        exam = resolver.exam_for_bank(bank, exams) if bank.course_id else None
        if exam is None:
            still_empty += 1
            continue
        copied = await _copy_exam_questions(store, bank.id, exam, questions_by_exam)
        summary.questions_populated += copied
        summary.orphans_fixed += 1
        log.info("RECONCILE", f'Populated empty bank "{bank.title}" with {copied} questions from "{exam.title}"')

    if still_empty:
        log.info("RECONCILE", f"{still_empty} question bank(s) remain without questions")

    log.success(
        "RECONCILE",
        f"Reconciliation complete: {summary.banks_created} banks created, "
        f"{summary.questions_populated} questions populated, {summary.orphans_fixed} orphans fixed",
    )
    return summary
