"""Report pipeline: fetch -> resolve -> filter -> aggregate -> compose.

``ReportEngine`` is the only component that talks to the data-access
collaborator. Each ``generate`` call is a full recomputation from the
records the repository returns; nothing is cached between calls.
"""
import logging
from datetime import date
from typing import Callable, List, Optional, Sequence, Tuple

from pydantic import BaseModel, Field, field_validator

from tutorlytics.core.errors import AnalyticsError, DataUnavailableError
from tutorlytics.core.logging import LogTimer, get_logger
from tutorlytics.domain.records import Student
from tutorlytics.domain.reports import DateRange, ReportBase, ReportType, StudentComparison
from tutorlytics.services import aggregation
from tutorlytics.services.date_ranges import RangeKey, resolve_date_range
from tutorlytics.services.filters import StatusPredicate, filter_sessions, filter_submissions
from tutorlytics.services.reports import ReportContext, compose_report
from tutorlytics.services.skills import SkillScoringStrategy

logger = get_logger(__name__)


class ReportRequest(BaseModel):
    """Selectors for one report. Unknown range keys resolve as ``month``."""
    student_id: str = Field(..., min_length=1, description="Student whose records are reported")
    range_key: str = Field(default="month", description="week, month, quarter, year, all or custom")
    start: Optional[date] = Field(default=None, description="Custom range start (inclusive)")
    end: Optional[date] = Field(default=None, description="Custom range end (inclusive)")
    subject_id: Optional[str] = Field(default=None, description="Restrict to one subject")
    report_type: ReportType = ReportType.PROGRESS
    today: Optional[date] = Field(default=None, description="Reference day; defaults to the current date")
    search: Optional[str] = Field(default=None, description="Session-history search text")
    sort_desc: bool = Field(default=True, description="Session history newest first")

    class Config:
        json_schema_extra = {
            "example": {
                "student_id": "stu-101",
                "range_key": "custom",
                "start": "2025-03-01",
                "end": "2025-03-31",
                "subject_id": "math",
                "report_type": "progress"
            }
        }

    @field_validator("subject_id", "search", mode="before")
    @classmethod
    def _blank_to_none(cls, value):
        if isinstance(value, str) and not value.strip():
            return None
        return value


class ReportEngine:
    """Produces reports from a record repository.

    Args:
        repository: Data-access collaborator (see ``RecordRepository``)
        skill_strategy: Skill scoring strategy; the tagged strategy when None
        clock: Callable returning today's date, used when a request has no
            ``today``
    """

    def __init__(
        self,
        repository,
        skill_strategy: Optional[SkillScoringStrategy] = None,
        clock: Callable[[], date] = date.today,
    ):
        self.repository = repository
        self.skill_strategy = skill_strategy
        self.clock = clock

    def _fetch(self, call, *args, **kwargs):
        """Call the repository; unexpected failures become DataUnavailableError."""
        operation = getattr(call, "__name__", "fetch")
        try:
            return call(*args, **kwargs)
        except AnalyticsError:
            raise
        except Exception as e:
            logger.error(
                f"Repository call {operation} failed: {e}",
                extra={"operation": operation, "error_type": type(e).__name__}
            )
            raise DataUnavailableError(
                "Record snapshot is unavailable",
                details={"operation": operation}
            ) from e

    def student(self, student_id: str) -> Student:
        return self._fetch(self.repository.get_student, student_id)

    def resolve_window(self, request: ReportRequest) -> Tuple[RangeKey, DateRange]:
        """Effective range key and concrete window for a request."""
        key = RangeKey.coerce(request.range_key)
        earliest = None
        if key == RangeKey.ALL:
            earliest = self._fetch(self.repository.earliest_session_start, request.student_id)
        today = request.today or self.clock()
        return key, resolve_date_range(key, today, request.start, request.end, earliest)

    def build_context(self, student: Student, request: ReportRequest) -> ReportContext:
        key, window = self.resolve_window(request)

        sessions = self._fetch(
            self.repository.fetch_sessions,
            student.id, window, request.subject_id, StatusPredicate.ANY
        )
        submissions = self._fetch(
            self.repository.fetch_assessment_submissions,
            student.id, window, request.subject_id
        )
        subjects = self._fetch(self.repository.fetch_subjects_for_student, student.id)

        # A repository may return a superset; the window and subject filters apply here too
        return ReportContext(
            student=student,
            range_key=key.value,
            date_range=window,
            sessions=filter_sessions(sessions, student.id, window, request.subject_id),
            submissions=filter_submissions(submissions, student.id, window, request.subject_id),
            subject_names={s.id: s.name for s in subjects},
            subject_id=request.subject_id,
            skill_strategy=self.skill_strategy,
            search=request.search,
            sort_desc=request.sort_desc,
        )

    def generate(self, request: ReportRequest) -> ReportBase:
        """Run the full pipeline for one request.

        Raises:
            NotFoundError: Unknown student
            AuthorizationError: Repository refused access
            InvalidDateRangeError: Bad custom range
            DataUnavailableError: Any other repository failure
        """
        log = get_logger(__name__, {
            "student_id": request.student_id,
            "report_type": request.report_type.value,
            "range_key": request.range_key,
        })
        with LogTimer(log, "generate_report", level=logging.INFO):
            student = self.student(request.student_id)
            ctx = self.build_context(student, request)
            return compose_report(request.report_type, ctx)

    def compare_students(self, student_ids: Sequence[str], request: ReportRequest) -> List[StudentComparison]:
        """Headline figures for several students over the same selectors.

        Each student goes through the same fetch/resolve/filter steps as a
        report, so ``all`` resolves against that student's own history.
        """
        comparisons = []
        for student_id in student_ids:
            student = self.student(student_id)
            ctx = self.build_context(student, request.model_copy(update={"student_id": student_id}))
            ranking = aggregation.rank_subjects(
                aggregation.performance_by_subject(ctx.scored, ctx.subject_names)
            )
            comparisons.append(StudentComparison(
                student_id=student.id,
                student_name=student.name,
                performance=aggregation.performance_stats(ctx.scored),
                attendance=aggregation.attendance_stats(ctx.completed),
                best_subject=ranking.best.subject_name if ranking.best else None,
            ))
        return comparisons

    def compare_siblings(self, request: ReportRequest) -> List[StudentComparison]:
        """Compare a student with their siblings; the student comes first."""
        with LogTimer(logger, "compare_siblings", student_id=request.student_id):
            student = self.student(request.student_id)
            siblings = self._fetch(self.repository.fetch_siblings, student.id)
            ordered = sorted(
                (s for s in siblings if s.id != student.id),
                key=lambda s: (s.name, s.id)
            )
            return self.compare_students([student.id] + [s.id for s in ordered], request)
