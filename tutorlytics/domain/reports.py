"""Value types produced by the analytics engine.

Every instance is immutable and built fresh for each request; nothing here
is persisted.
"""
from datetime import date, datetime
from enum import Enum
from typing import Dict, List, Optional
from pydantic import BaseModel, Field, model_validator


class Trend(str, Enum):
    IMPROVING = "improving"
    DECLINING = "declining"
    STEADY = "steady"


class ReportType(str, Enum):
    PROGRESS = "progress"
    ATTENDANCE = "attendance"
    PERFORMANCE = "performance"
    SESSIONS = "sessions"


class DateRange(BaseModel):
    """Inclusive calendar window ``[start, end]``."""
    start: date
    end: date

    class Config:
        frozen = True

    @model_validator(mode="after")
    def _ordered(self):
        if self.start > self.end:
            raise ValueError(f"start {self.start} is after end {self.end}")
        return self

    def contains(self, moment: datetime) -> bool:
        """True when ``moment`` falls between start-of-day(start) and end-of-day(end)."""
        day = moment.date() if isinstance(moment, datetime) else moment
        return self.start <= day <= self.end


class SubjectPerformance(BaseModel):
    subject_id: str
    subject_name: str
    average_score: float = 0.0
    session_count: int = 0
    highest_score: float = 0.0
    lowest_score: float = 0.0

    class Config:
        frozen = True


class SubjectRanking(BaseModel):
    """Best-first and weakest-first orderings, each sorted once."""
    best_first: List[SubjectPerformance] = Field(default_factory=list)
    weakest_first: List[SubjectPerformance] = Field(default_factory=list)

    class Config:
        frozen = True

    @property
    def best(self) -> Optional[SubjectPerformance]:
        return self.best_first[0] if self.best_first else None

    @property
    def weakest(self) -> Optional[SubjectPerformance]:
        return self.weakest_first[0] if self.weakest_first else None


class AttendanceStats(BaseModel):
    total: int = 0
    attended: int = 0
    missed: int = 0
    attendance_rate: int = Field(default=0, ge=0, le=100)

    class Config:
        frozen = True


class MonthlyAttendance(AttendanceStats):
    month: str


class TrendPoint(BaseModel):
    period_label: str
    score: float
    subject_name: Optional[str] = None

    class Config:
        frozen = True


class PerformanceStats(BaseModel):
    average: float = 0.0
    highest: float = 0.0
    lowest: float = 0.0
    trend: Trend = Trend.STEADY
    total_sessions: int = 0

    class Config:
        frozen = True


class SkillArea(BaseModel):
    score: int = Field(ge=0, le=100)
    level: str

    class Config:
        frozen = True


class SkillInsights(BaseModel):
    """Top and bottom skill areas plus a development-focus sentence."""
    strengths: List[str] = Field(default_factory=list)
    improvements: List[str] = Field(default_factory=list)
    focus: str = ""

    class Config:
        frozen = True


class Recommendation(BaseModel):
    kind: str
    text: str

    class Config:
        frozen = True


class SubjectAssessmentSummary(BaseModel):
    """Assessment percentages for one subject, with a letter grade."""
    subject_id: str
    subject_name: str
    average_percent: float = 0.0
    count: int = 0
    highest_percent: float = 0.0
    lowest_percent: float = 0.0
    grade: str = "F"

    class Config:
        frozen = True


class SessionSummary(BaseModel):
    """One row of a session-history report."""
    session_id: str
    subject_id: str
    subject_name: str
    teacher_id: Optional[str] = None
    teacher_name: Optional[str] = None
    start_time: datetime
    end_time: Optional[datetime] = None
    duration_label: str = ""
    status: str
    attended: bool
    performance_score: Optional[float] = None
    performance_percent: Optional[int] = None
    notes: str = ""

    class Config:
        frozen = True


class ReportBase(BaseModel):
    """Fields shared by every composed report."""
    report_type: ReportType
    student_id: str
    student_name: str
    range_key: str
    date_range: DateRange
    subject_id: Optional[str] = None
    recommendations: List[Recommendation] = Field(default_factory=list)

    class Config:
        frozen = True


class ProgressReport(ReportBase):
    report_type: ReportType = ReportType.PROGRESS
    performance: PerformanceStats = Field(default_factory=PerformanceStats)
    attendance: AttendanceStats = Field(default_factory=AttendanceStats)
    subject_performance: List[SubjectPerformance] = Field(default_factory=list)
    trend: List[TrendPoint] = Field(default_factory=list)
    skills: Dict[str, SkillArea] = Field(default_factory=dict)
    skill_insights: SkillInsights = Field(default_factory=SkillInsights)
    overall_progress: int = 0
    key_insight: str = ""


class AttendanceReport(ReportBase):
    report_type: ReportType = ReportType.ATTENDANCE
    attendance: AttendanceStats = Field(default_factory=AttendanceStats)
    attendance_by_month: List[MonthlyAttendance] = Field(default_factory=list)


class PerformanceReport(ReportBase):
    report_type: ReportType = ReportType.PERFORMANCE
    performance: PerformanceStats = Field(default_factory=PerformanceStats)
    subject_performance: List[SubjectPerformance] = Field(default_factory=list)
    best_subject: Optional[SubjectPerformance] = None
    weakest_subject: Optional[SubjectPerformance] = None
    assessment_breakdown: List[SubjectAssessmentSummary] = Field(default_factory=list)


class SessionHistoryReport(ReportBase):
    report_type: ReportType = ReportType.SESSIONS
    sessions: List[SessionSummary] = Field(default_factory=list)
    total_sessions: int = 0


class StudentComparison(BaseModel):
    """Headline figures for one student in a sibling comparison."""
    student_id: str
    student_name: str
    performance: PerformanceStats
    attendance: AttendanceStats
    best_subject: Optional[str] = None

    class Config:
        frozen = True
