"""
Legacy linkage between units/banks and practice exams.

Practice exams carry no unit foreign key; they are tied to units only through
numbers embedded in their titles ("Hour 3 Quiz", "Unit 9 Quiz"). All of that
guesswork lives behind ``LegacyLinkageResolver`` so replacing it with a real
foreign key touches this module only.
"""
from typing import Optional, Protocol, Sequence
import re

from coursecatalog.models.orm import PracticeExam, QuestionBank, Unit

HOUR_PATTERN = re.compile(r"hour (\d+)")
UNIT_PATTERN = re.compile(r"unit (\d+)")
_LEADING_INT = re.compile(r"^\s*([+-]?\d+)")


class LegacyLinkageResolver(Protocol):
    def exam_for_unit(self, unit: Unit, exams: Sequence[PracticeExam]) -> Optional[PracticeExam]:
        ...

    def exam_for_bank(self, bank: QuestionBank, exams: Sequence[PracticeExam]) -> Optional[PracticeExam]:
        ...


def title_number(pattern: re.Pattern, title: Optional[str]) -> Optional[str]:
    """The first number captured by ``pattern`` in the lower-cased title, as text."""
    match = pattern.search((title or "").lower())
    return match.group(1) if match else None


def parse_leading_int(value) -> int:
    """Integer prefix of ``value`` ("2", " 3 - C", "-1"); 0 when there is none."""
    if value is None:
        return 0
    match = _LEADING_INT.match(str(value))
    return int(match.group(1)) if match else 0


class TitlePatternResolver:
    """Match on the ``hour N`` number first and fall back to ``unit N`` for units.

    Candidates are restricted to exams of the same course and considered in
    (title, id) order so the pick is deterministic.
    """

    def _candidates(self, course_id: Optional[str], exams: Sequence[PracticeExam]):
        return sorted(
            (e for e in exams if e.course_id == course_id),
            key=lambda e: ((e.title or "").lower(), e.id),
        )

    def _match(self, pattern: re.Pattern, title: str, candidates) -> Optional[PracticeExam]:
        wanted = title_number(pattern, title)
        if wanted is None:
            return None
        for exam in candidates:
            if title_number(pattern, exam.title) == wanted:
                return exam
        return None

    def exam_for_unit(self, unit: Unit, exams: Sequence[PracticeExam]) -> Optional[PracticeExam]:
        candidates = self._candidates(unit.course_id, exams)
        return self._match(HOUR_PATTERN, unit.title, candidates) or self._match(UNIT_PATTERN, unit.title, candidates)

    def exam_for_bank(self, bank: QuestionBank, exams: Sequence[PracticeExam]) -> Optional[PracticeExam]:
        if not bank.course_id:
            return None
        return self._match(HOUR_PATTERN, bank.title, self._candidates(bank.course_id, exams))
