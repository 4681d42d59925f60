from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import Boolean, DateTime, ForeignKey, Index, Integer, String, Text, TypeDecorator
from sqlalchemy.orm import Mapped, mapped_column

from coursecatalog.core.database import Base


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class UTCDateTime(TypeDecorator):
    """Stores instants as naive UTC and hands them back timezone-aware.

    Backends without native timezone support (SQLite) would otherwise drop the
    offset and shift the instant on the way back out.
    """

    impl = DateTime
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is None:
            return None
        if value.tzinfo is None:
            value = value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc).replace(tzinfo=None)

    def process_result_value(self, value, dialect):
        if value is None:
            return None
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc)


# ========== Catalog ==========

class Course(Base):
    __tablename__ = "courses"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    title: Mapped[str] = mapped_column(String(255))
    description: Mapped[Optional[str]] = mapped_column(Text)
    product_type: Mapped[str] = mapped_column(String(50))
    state: Mapped[str] = mapped_column(String(10))
    license_type: Mapped[Optional[str]] = mapped_column(String(100))
    requirement_cycle_type: Mapped[Optional[str]] = mapped_column(String(100))
    requirement_bucket: Mapped[Optional[str]] = mapped_column(String(100))
    hours_required: Mapped[int] = mapped_column(Integer)
    delivery_method: Mapped[Optional[str]] = mapped_column(String(50), default="Self-Paced Online")
    difficulty_level: Mapped[Optional[str]] = mapped_column(String(50))
    price: Mapped[int] = mapped_column(Integer)  # cents
    sku: Mapped[str] = mapped_column(String(100))
    renewal_applicable: Mapped[Optional[bool]] = mapped_column(Boolean, default=True)
    renewal_period_years: Mapped[Optional[int]] = mapped_column(Integer)
    provider_number: Mapped[Optional[str]] = mapped_column(String(100))
    course_offering_number: Mapped[Optional[str]] = mapped_column(String(100))
    instructor_name: Mapped[Optional[str]] = mapped_column(String(255))
    created_at: Mapped[Optional[datetime]] = mapped_column(UTCDateTime, default=utcnow)


class Unit(Base):
    __tablename__ = "units"
    __table_args__ = (Index("idx_units_course", "course_id"),)

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    course_id: Mapped[str] = mapped_column(String(64), ForeignKey("courses.id"))
    unit_number: Mapped[int] = mapped_column(Integer)
    title: Mapped[str] = mapped_column(String(255))
    description: Mapped[Optional[str]] = mapped_column(Text)
    hours_required: Mapped[Optional[int]] = mapped_column(Integer, default=3)
    sequence: Mapped[Optional[int]] = mapped_column(Integer, default=0)
    created_at: Mapped[Optional[datetime]] = mapped_column(UTCDateTime, default=utcnow)


class Lesson(Base):
    __tablename__ = "lessons"
    __table_args__ = (Index("idx_lessons_unit", "unit_id"),)

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    unit_id: Mapped[str] = mapped_column(String(64), ForeignKey("units.id"))
    lesson_number: Mapped[int] = mapped_column(Integer)
    title: Mapped[str] = mapped_column(String(255))
    content: Mapped[Optional[str]] = mapped_column(Text)
    video_id: Mapped[Optional[str]] = mapped_column(String(64))
    video_url: Mapped[Optional[str]] = mapped_column(String(500))
    duration_minutes: Mapped[Optional[int]] = mapped_column(Integer, default=15)
    sequence: Mapped[Optional[int]] = mapped_column(Integer, default=0)
    created_at: Mapped[Optional[datetime]] = mapped_column(UTCDateTime, default=utcnow)
    updated_at: Mapped[Optional[datetime]] = mapped_column(UTCDateTime, default=utcnow)


# ========== Quizzes: question banks ==========

class QuestionBank(Base):
    __tablename__ = "question_banks"
    __table_args__ = (
        Index("idx_qb_course", "course_id"),
        Index("idx_qb_unit", "unit_id"),
    )

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    # Optional and deliberately not foreign keys: dangling references are tolerated.
    course_id: Mapped[Optional[str]] = mapped_column(String(64))
    unit_id: Mapped[Optional[str]] = mapped_column(String(64))
    title: Mapped[str] = mapped_column(String(255))
    description: Mapped[Optional[str]] = mapped_column(Text)
    bank_type: Mapped[Optional[str]] = mapped_column(String(50), default="unit_quiz")
    questions_per_attempt: Mapped[Optional[int]] = mapped_column(Integer, default=10)
    passing_score: Mapped[Optional[int]] = mapped_column(Integer, default=70)
    is_active: Mapped[Optional[bool]] = mapped_column(Boolean, default=True)
    created_at: Mapped[Optional[datetime]] = mapped_column(UTCDateTime, default=utcnow)
    updated_at: Mapped[Optional[datetime]] = mapped_column(UTCDateTime, default=utcnow)


class BankQuestion(Base):
    __tablename__ = "bank_questions"
    __table_args__ = (Index("idx_bq_bank", "bank_id"),)

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    bank_id: Mapped[str] = mapped_column(String(64), ForeignKey("question_banks.id"))
    question_text: Mapped[str] = mapped_column(Text)
    question_type: Mapped[Optional[str]] = mapped_column(String(50), default="multiple_choice")
    options: Mapped[str] = mapped_column(Text, default="[]")  # JSON array
    correct_option: Mapped[int] = mapped_column(Integer, default=0)
    explanation: Mapped[Optional[str]] = mapped_column(Text)
    difficulty: Mapped[Optional[str]] = mapped_column(String(20), default="medium")
    is_active: Mapped[Optional[bool]] = mapped_column(Boolean, default=True)
    created_at: Mapped[Optional[datetime]] = mapped_column(UTCDateTime, default=utcnow)
    updated_at: Mapped[Optional[datetime]] = mapped_column(UTCDateTime, default=utcnow)


# ========== Quizzes: legacy practice exams ==========

class PracticeExam(Base):
    __tablename__ = "practice_exams"
    __table_args__ = (Index("idx_pe_course", "course_id"),)

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    course_id: Mapped[Optional[str]] = mapped_column(String(64))
    title: Mapped[str] = mapped_column(String(255))
    description: Mapped[Optional[str]] = mapped_column(Text)
    total_questions: Mapped[Optional[int]] = mapped_column(Integer, default=0)
    passing_score: Mapped[Optional[int]] = mapped_column(Integer, default=70)
    time_limit: Mapped[Optional[int]] = mapped_column(Integer)
    is_active: Mapped[Optional[bool]] = mapped_column(Boolean, default=True)
    is_final_exam: Mapped[Optional[bool]] = mapped_column(Boolean, default=False)
    exam_form: Mapped[Optional[str]] = mapped_column(String(10))
    created_at: Mapped[Optional[datetime]] = mapped_column(UTCDateTime, default=utcnow)
    updated_at: Mapped[Optional[datetime]] = mapped_column(UTCDateTime, default=utcnow)


class ExamQuestion(Base):
    __tablename__ = "exam_questions"
    __table_args__ = (Index("idx_eq_exam", "exam_id"),)

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    exam_id: Mapped[str] = mapped_column(String(64), ForeignKey("practice_exams.id"))
    question_text: Mapped[str] = mapped_column(Text)
    question_type: Mapped[Optional[str]] = mapped_column(String(50), default="multiple_choice")
    correct_answer: Mapped[str] = mapped_column(String(50))
    explanation: Mapped[Optional[str]] = mapped_column(Text)
    options: Mapped[str] = mapped_column(Text, default="[]")  # JSON array
    sequence: Mapped[Optional[int]] = mapped_column(Integer, default=0)
    created_at: Mapped[Optional[datetime]] = mapped_column(UTCDateTime, default=utcnow)
    updated_at: Mapped[Optional[datetime]] = mapped_column(UTCDateTime, default=utcnow)


# ========== Bundles ==========

class CourseBundle(Base):
    __tablename__ = "course_bundles"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    name: Mapped[str] = mapped_column(String(255))
    description: Mapped[Optional[str]] = mapped_column(Text)
    product_type: Mapped[Optional[str]] = mapped_column(String(50))
    state: Mapped[Optional[str]] = mapped_column(String(10))
    license_type: Mapped[Optional[str]] = mapped_column(String(100))
    total_hours: Mapped[Optional[int]] = mapped_column(Integer)
    bundle_price: Mapped[Optional[int]] = mapped_column(Integer)  # cents
    individual_course_price: Mapped[Optional[int]] = mapped_column(Integer)  # cents
    is_active: Mapped[Optional[bool]] = mapped_column(Boolean, default=True)
    created_at: Mapped[Optional[datetime]] = mapped_column(UTCDateTime, default=utcnow)
    updated_at: Mapped[Optional[datetime]] = mapped_column(UTCDateTime, default=utcnow)


class BundleCourse(Base):
    __tablename__ = "bundle_courses"

    bundle_id: Mapped[str] = mapped_column(String(64), ForeignKey("course_bundles.id"), primary_key=True)
    course_id: Mapped[str] = mapped_column(String(64), ForeignKey("courses.id"), primary_key=True)
    sequence: Mapped[Optional[int]] = mapped_column(Integer, default=0)
    created_at: Mapped[Optional[datetime]] = mapped_column(UTCDateTime, default=utcnow)
