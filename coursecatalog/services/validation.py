"""
Pre-import validation of a loaded snapshot.

``validate`` is pure: it never touches the database. Every problem is
reported, not just the first, so an operator can fix a snapshot in one pass.
"""
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Set

from pydantic import ValidationError as SchemaError

from coursecatalog.schemas.snapshot import RECORD_SCHEMAS, CatalogSnapshot

ENTITY_LABELS = {
    "courses": "Course",
    "units": "Unit",
    "lessons": "Lesson",
    "questionBanks": "Question bank",
    "bankQuestions": "Bank question",
    "practiceExams": "Practice exam",
    "examQuestions": "Exam question",
    "bundles": "Bundle",
    "bundleCourses": "Bundle course",
}


@dataclass
class ValidationResult:
    ok: bool
    errors: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)
    snapshot: Optional[CatalogSnapshot] = None


def _record_id(record: Dict[str, Any]) -> str:
    if "id" in record:
        return str(record["id"])
    if "bundleId" in record or "courseId" in record:
        return f"{record.get('bundleId')}/{record.get('courseId')}"
    return "?"


def _ids(rows: List[Any]) -> Set[str]:
    return {str(r["id"]) for r in rows if isinstance(r, dict) and r.get("id") is not None}


def _check_schemas(arrays: Dict[str, List[Any]], errors: List[str], warnings: List[str]) -> Dict[str, list]:
    parsed: Dict[str, list] = {}
    for array, schema in RECORD_SCHEMAS.items():
        label = ENTITY_LABELS[array]
        records = []
        unknown: Set[str] = set()
        for index, raw in enumerate(arrays[array]):
            if not isinstance(raw, dict):
                errors.append(f"{label} #{index}: record must be an object, got {type(raw).__name__}")
                continue
            unknown |= schema.unknown_keys(raw)
            try:
                records.append(schema.model_validate(raw))
            except SchemaError as e:
                for err in e.errors():
                    where = ".".join(str(part) for part in err["loc"]) or "<record>"
                    errors.append(f"{label} #{index} ({_record_id(raw)}): {where}: {err['msg']}")
        if unknown:
            warnings.append(f"{label} records carry unknown fields (ignored): {', '.join(sorted(unknown))}")
        parsed[array] = records
    return parsed


def _check_references(arrays: Dict[str, List[Any]], errors: List[str], warnings: List[str]) -> None:
    course_ids = _ids(arrays["courses"])
    unit_ids = _ids(arrays["units"])
    bank_ids = _ids(arrays["questionBanks"])
    exam_ids = _ids(arrays["practiceExams"])
    bundle_ids = _ids(arrays["bundles"])

    def rows(array):
        return [r for r in arrays[array] if isinstance(r, dict)]

    for unit in rows("units"):
        if str(unit.get("courseId")) not in course_ids:
            errors.append(f'Unit "{unit.get("title")}" references non-existent course: {unit.get("courseId")}')

    for lesson in rows("lessons"):
        if str(lesson.get("unitId")) not in unit_ids:
            errors.append(f'Lesson "{lesson.get("title")}" references non-existent unit: {lesson.get("unitId")}')

    # Optional course links on banks and exams only warn.
    for bank in rows("questionBanks"):
        if bank.get("courseId") and str(bank["courseId"]) not in course_ids:
            warnings.append(f'Question bank "{bank.get("title")}" references non-existent course: {bank["courseId"]}')

    for exam in rows("practiceExams"):
        if exam.get("courseId") and str(exam["courseId"]) not in course_ids:
            warnings.append(f'Practice exam "{exam.get("title")}" references non-existent course: {exam["courseId"]}')

    for bq in rows("bankQuestions"):
        if str(bq.get("bankId")) not in bank_ids:
            errors.append(f"Bank question {bq.get('id')} references non-existent bank: {bq.get('bankId')}")

    for eq in rows("examQuestions"):
        if str(eq.get("examId")) not in exam_ids:
            errors.append(f"Exam question {eq.get('id')} references non-existent exam: {eq.get('examId')}")

    for bc in rows("bundleCourses"):
        if str(bc.get("bundleId")) not in bundle_ids:
            errors.append(f"Bundle course references non-existent bundle: {bc.get('bundleId')}")
        if str(bc.get("courseId")) not in course_ids:
            errors.append(f"Bundle course references non-existent course: {bc.get('courseId')}")


def validate(data: Dict[str, Any]) -> ValidationResult:
    errors: List[str] = []
    warnings: List[str] = []

    arrays: Dict[str, List[Any]] = {}
    for array in RECORD_SCHEMAS:
        value = data.get(array)
        if isinstance(value, list):
            arrays[array] = value
        else:
            errors.append(f"Missing or invalid array: {array}")
            arrays[array] = []

    parsed = _check_schemas(arrays, errors, warnings)
    _check_references(arrays, errors, warnings)

    if errors:
        return ValidationResult(ok=False, errors=errors, warnings=warnings)

    snapshot = CatalogSnapshot(
        version=str(data.get("version") or ""),
        exported_at=str(data["exportedAt"]) if data.get("exportedAt") is not None else None,
        courses=parsed["courses"],
        units=parsed["units"],
        lessons=parsed["lessons"],
        question_banks=parsed["questionBanks"],
        bank_questions=parsed["bankQuestions"],
        practice_exams=parsed["practiceExams"],
        exam_questions=parsed["examQuestions"],
        bundles=parsed["bundles"],
        bundle_courses=parsed["bundleCourses"],
    )
    return ValidationResult(ok=True, errors=errors, warnings=warnings, snapshot=snapshot)
