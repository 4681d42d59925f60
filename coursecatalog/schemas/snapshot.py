"""
Typed record schemas for the catalog snapshot wire format.

Snapshot rows use camelCase keys; the schemas expose snake_case attributes
that line up one-to-one with the ORM columns.
"""
import json
from datetime import datetime
from typing import Any, ClassVar, Dict, List, Optional, Set

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel


class SnapshotRecord(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        coerce_numbers_to_str=True,
        extra="ignore",
    )

    # Keys accepted on the wire but not stored.
    ignored_keys: ClassVar[frozenset] = frozenset()

    @classmethod
    def known_keys(cls) -> Set[str]:
        keys = set(cls.ignored_keys)
        for name, field in cls.model_fields.items():
            keys.add(field.alias or name)
            keys.add(name)
        return keys

    @classmethod
    def unknown_keys(cls, raw: Dict[str, Any]) -> Set[str]:
        return set(raw) - cls.known_keys()

    def column_values(self) -> Dict[str, Any]:
        """Only the fields present in the snapshot row, keyed by column name."""
        return self.model_dump(exclude_unset=True)


def _json_text(value: Any) -> Any:
    if isinstance(value, (list, tuple)):
        return json.dumps(list(value))
    return value


class CourseRecord(SnapshotRecord):
    id: str
    title: str
    description: Optional[str] = None
    product_type: str
    state: str
    license_type: Optional[str] = None
    requirement_cycle_type: Optional[str] = None
    requirement_bucket: Optional[str] = None
    hours_required: int
    delivery_method: Optional[str] = None
    difficulty_level: Optional[str] = None
    price: int
    sku: str
    renewal_applicable: Optional[bool] = None
    renewal_period_years: Optional[int] = None
    provider_number: Optional[str] = None
    course_offering_number: Optional[str] = None
    instructor_name: Optional[str] = None
    created_at: Optional[datetime] = None


class UnitRecord(SnapshotRecord):
    id: str
    course_id: str
    unit_number: int
    title: str
    description: Optional[str] = None
    hours_required: Optional[int] = None
    sequence: Optional[int] = None
    created_at: Optional[datetime] = None


class LessonRecord(SnapshotRecord):
    id: str
    unit_id: str
    lesson_number: int
    title: str
    content: Optional[str] = None
    video_id: Optional[str] = None
    video_url: Optional[str] = None
    duration_minutes: Optional[int] = None
    sequence: Optional[int] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class QuestionBankRecord(SnapshotRecord):
    id: str
    course_id: Optional[str] = None
    unit_id: Optional[str] = None
    title: str
    description: Optional[str] = None
    bank_type: Optional[str] = None
    questions_per_attempt: Optional[int] = None
    passing_score: Optional[int] = None
    is_active: Optional[bool] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class BankQuestionRecord(SnapshotRecord):
    id: str
    bank_id: str
    question_text: str
    question_type: Optional[str] = None
    options: str = "[]"
    correct_option: int = 0
    explanation: Optional[str] = None
    difficulty: Optional[str] = None
    is_active: Optional[bool] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @field_validator("options", mode="before")
    @classmethod
    def options_as_json_text(cls, v: Any) -> Any:
        return _json_text(v)


class PracticeExamRecord(SnapshotRecord):
    id: str
    course_id: Optional[str] = None
    title: str
    description: Optional[str] = None
    total_questions: Optional[int] = None
    passing_score: Optional[int] = None
    time_limit: Optional[int] = None
    is_active: Optional[bool] = None
    is_final_exam: Optional[bool] = None
    exam_form: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class ExamQuestionRecord(SnapshotRecord):
    id: str
    exam_id: str
    question_text: str
    question_type: Optional[str] = None
    correct_answer: str
    explanation: Optional[str] = None
    options: str = "[]"
    sequence: Optional[int] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @field_validator("options", mode="before")
    @classmethod
    def options_as_json_text(cls, v: Any) -> Any:
        return _json_text(v)


class BundleRecord(SnapshotRecord):
    id: str
    name: str
    description: Optional[str] = None
    product_type: Optional[str] = None
    state: Optional[str] = None
    license_type: Optional[str] = None
    total_hours: Optional[int] = None
    bundle_price: Optional[int] = None
    individual_course_price: Optional[int] = None
    is_active: Optional[bool] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class BundleCourseRecord(SnapshotRecord):
    # Link rows are keyed by (bundleId, courseId); an exported surrogate id is ignored.
    ignored_keys: ClassVar[frozenset] = frozenset({"id"})

    bundle_id: str
    course_id: str
    sequence: Optional[int] = None
    created_at: Optional[datetime] = None


# Snapshot array key -> record schema, in import dependency order.
RECORD_SCHEMAS = {
    "courses": CourseRecord,
    "units": UnitRecord,
    "lessons": LessonRecord,
    "questionBanks": QuestionBankRecord,
    "bankQuestions": BankQuestionRecord,
    "practiceExams": PracticeExamRecord,
    "examQuestions": ExamQuestionRecord,
    "bundles": BundleRecord,
    "bundleCourses": BundleCourseRecord,
}

SNAPSHOT_ARRAYS = tuple(RECORD_SCHEMAS)


class CatalogSnapshot(BaseModel):
    """A validated snapshot: every row parsed into its record schema."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, coerce_numbers_to_str=True)

    version: str = ""
    exported_at: Optional[str] = None
    courses: List[CourseRecord] = Field(default_factory=list)
    units: List[UnitRecord] = Field(default_factory=list)
    lessons: List[LessonRecord] = Field(default_factory=list)
    question_banks: List[QuestionBankRecord] = Field(default_factory=list)
    bank_questions: List[BankQuestionRecord] = Field(default_factory=list)
    practice_exams: List[PracticeExamRecord] = Field(default_factory=list)
    exam_questions: List[ExamQuestionRecord] = Field(default_factory=list)
    bundles: List[BundleRecord] = Field(default_factory=list)
    bundle_courses: List[BundleCourseRecord] = Field(default_factory=list)

    def ids(self, array: str) -> List[str]:
        return [r.id for r in getattr(self, array)]
