from datetime import datetime, timezone
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

LogLevel = Literal["INFO", "WARN", "ERROR", "SUCCESS"]

# Result count bucket -> (display name, ORM model name).
COUNT_ENTITIES = {
    "courses": ("Courses", "Course"),
    "units": ("Units", "Unit"),
    "lessons": ("Lessons", "Lesson"),
    "questionBanks": ("Question Banks", "QuestionBank"),
    "bankQuestions": ("Bank Questions", "BankQuestion"),
    "practiceExams": ("Practice Exams", "PracticeExam"),
    "examQuestions": ("Exam Questions", "ExamQuestion"),
    "bundles": ("Bundles", "CourseBundle"),
    "bundleCourses": ("Bundle Courses", "BundleCourse"),
}


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class AuditEntry(CamelModel):
    timestamp: datetime
    level: LogLevel
    stage: str
    message: str
    details: Optional[Dict[str, Any]] = None


class EntityCount(CamelModel):
    expected: int = 0
    imported: int = 0
    verified: int = 0


def _empty_counts() -> Dict[str, EntityCount]:
    return {key: EntityCount() for key in COUNT_ENTITIES}


class ReconciliationSummary(CamelModel):
    banks_created: int = 0
    questions_populated: int = 0
    orphans_fixed: int = 0


class ImportResult(CamelModel):
    success: bool = False
    dry_run: bool = False
    start_time: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    end_time: Optional[datetime] = None
    duration_ms: int = Field(default=0, alias="duration_ms")
    snapshot_version: str = ""
    snapshot_checksum: str = ""
    snapshot_path: Optional[str] = None
    counts: Dict[str, EntityCount] = Field(default_factory=_empty_counts)
    reconciliation: ReconciliationSummary = Field(default_factory=ReconciliationSummary)
    logs: List[AuditEntry] = Field(default_factory=list)
    errors: List[str] = Field(default_factory=list)
    warnings: List[str] = Field(default_factory=list)
    audit_log_path: Optional[str] = None
    # Pipeline stage that ended an unsuccessful run (LOAD, VALIDATION, TRANSACTION, VERIFY, START, FATAL).
    failed_stage: Optional[str] = None

    def finish(self) -> None:
        self.end_time = datetime.now(timezone.utc)
        self.duration_ms = int((self.end_time - self.start_time).total_seconds() * 1000)

    def to_json_dict(self) -> Dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True)


class ExportResult(CamelModel):
    success: bool = False
    output_path: Optional[str] = None
    exported: Dict[str, int] = Field(default_factory=dict)
    final_exams_fixed: int = 0
    warnings: List[str] = Field(default_factory=list)
    error: Optional[str] = None
