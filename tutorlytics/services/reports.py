"""Compose aggregated statistics into named student reports.

Four report views are supported: progress, attendance, performance and
session history. Composition holds no state between calls; each call
derives everything from the ``ReportContext`` it is given.
"""
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional, Sequence, Tuple

from tutorlytics.domain.records import AssessmentSubmission, LearningSession, Student
from tutorlytics.domain.reports import (
    AttendanceReport,
    AttendanceStats,
    DateRange,
    PerformanceReport,
    ProgressReport,
    Recommendation,
    ReportBase,
    ReportType,
    SessionHistoryReport,
    SessionSummary,
    SubjectRanking,
    Trend,
    TrendPoint,
)
from tutorlytics.services import aggregation
from tutorlytics.services.date_ranges import period_granularity
from tutorlytics.services.filters import StatusPredicate, restrict_sessions, search_sessions
from tutorlytics.services.skills import SkillScoringStrategy, estimate_skill_profile, skill_insights
from tutorlytics.services.trends import classify_trend, score_change
from tutorlytics.utils.text import format_duration, sanitize_text

# A weakest-subject average below this asks for targeted support
SUBJECT_SUPPORT_THRESHOLD = 7.0
# An attendance rate below this asks for better attendance
ATTENDANCE_THRESHOLD = 80

ENCOURAGEMENT_TEXT = "Regular practice and revision will help consolidate learning across all subjects."


@dataclass(frozen=True)
class ReportContext:
    """Everything one report needs, already windowed and subject-filtered.

    ``sessions`` holds every session in range regardless of status; the
    composer applies the status predicates itself.
    """
    student: Student
    range_key: str
    date_range: DateRange
    sessions: Tuple[LearningSession, ...]
    submissions: Tuple[AssessmentSubmission, ...]
    subject_names: Dict[str, str] = field(default_factory=dict)
    subject_id: Optional[str] = None
    skill_strategy: Optional[SkillScoringStrategy] = None
    search: Optional[str] = None
    sort_desc: bool = True

    @property
    def single_subject(self) -> bool:
        return self.subject_id is not None

    @property
    def completed(self) -> Tuple[LearningSession, ...]:
        return restrict_sessions(self.sessions, StatusPredicate.COMPLETED)

    @property
    def scored(self) -> Tuple[LearningSession, ...]:
        return restrict_sessions(self.sessions, StatusPredicate.COMPLETED_SCORED)


# ----------------
# NARRATIVE
# ----------------

def build_recommendations(ranking: SubjectRanking, attendance: AttendanceStats) -> List[Recommendation]:
    """Rule-based recommendations, evaluated in a fixed order.

    1. weakest subject average below 7.0 -> targeted subject support
    2. attendance rate below 80% -> improve attendance
    3. always one general encouragement

    Rules 1 and 2 need data to fire, so an empty window yields only the
    encouragement.
    """
    recommendations: List[Recommendation] = []

    weakest = ranking.weakest
    if weakest is not None and weakest.average_score < SUBJECT_SUPPORT_THRESHOLD:
        recommendations.append(Recommendation(
            kind="subject_support",
            text=(
                f"Consider additional support in {weakest.subject_name} to improve performance "
                f"(current average {weakest.average_score:.1f}/10)."
            ),
        ))

    if attendance.total > 0 and attendance.attendance_rate < ATTENDANCE_THRESHOLD:
        recommendations.append(Recommendation(
            kind="attendance",
            text=(
                f"Work on improving attendance rate (currently {attendance.attendance_rate}%) "
                "for better learning continuity."
            ),
        ))

    recommendations.append(Recommendation(kind="encouragement", text=ENCOURAGEMENT_TEXT))
    return recommendations


def key_insight(
    student_name: str,
    ranking: SubjectRanking,
    trend: Sequence[TrendPoint],
    single_subject: bool,
) -> str:
    """One-sentence headline for the progress view."""
    if not single_subject and len(ranking.best_first) > 1:
        return (
            f"{student_name} shows strongest performance in {ranking.best.subject_name} "
            f"and may benefit from additional support in {ranking.weakest.subject_name}."
        )
    if not trend:
        return ""

    scores = [trend[0].score, trend[-1].score]
    change = abs(score_change(scores))
    direction = classify_trend(scores)
    if direction == Trend.IMPROVING:
        return f"{student_name} is showing steady improvement with an overall gain of {change:.1f} points."
    if direction == Trend.DECLINING:
        return (
            f"{student_name}'s performance has decreased by {change:.1f} points. "
            "Consider scheduling a consultation with the teacher."
        )
    return f"{student_name}'s performance has remained relatively steady over this period."


def summarize_sessions(
    sessions: Sequence[LearningSession],
    subject_names: Dict[str, str],
    newest_first: bool = True,
) -> List[SessionSummary]:
    """Session-history rows, ordered by start time."""
    ordered = aggregation.chronological(sessions)
    if newest_first:
        ordered.reverse()

    rows = []
    for s in ordered:
        rows.append(SessionSummary(
            session_id=s.id,
            subject_id=s.subject_id,
            subject_name=subject_names.get(s.subject_id) or s.subject_id,
            teacher_id=s.teacher_id,
            teacher_name=s.teacher_name,
            start_time=s.start_time,
            end_time=s.end_time,
            duration_label=format_duration(s.start_time, s.end_time),
            status=s.status.value,
            attended=s.attended,
            performance_score=s.performance_score,
            performance_percent=(
                None if s.performance_score is None
                else int(aggregation.round_half_up(s.performance_score * 10))
            ),
            notes=sanitize_text(s.notes),
        ))
    return rows


# ----------------
# REPORT VIEWS
# ----------------

def _header(ctx: ReportContext, recommendations: List[Recommendation]) -> dict:
    return {
        "student_id": ctx.student.id,
        "student_name": ctx.student.name,
        "range_key": ctx.range_key,
        "date_range": ctx.date_range,
        "subject_id": ctx.subject_id,
        "recommendations": recommendations,
    }


def _ranking_and_attendance(ctx: ReportContext):
    performances = aggregation.performance_by_subject(ctx.scored, ctx.subject_names)
    ranking = aggregation.rank_subjects(performances)
    attendance = aggregation.attendance_stats(ctx.completed)
    return ranking, attendance


def compose_progress(ctx: ReportContext) -> ProgressReport:
    ranking, attendance = _ranking_and_attendance(ctx)
    trend = aggregation.progress_trend(
        ctx.scored,
        period_granularity(ctx.range_key),
        ctx.subject_names,
        single_subject=ctx.single_subject,
    )
    skills = estimate_skill_profile(ctx.submissions, ctx.skill_strategy)

    return ProgressReport(
        performance=aggregation.performance_stats(ctx.scored),
        attendance=attendance,
        subject_performance=ranking.best_first,
        trend=trend,
        skills=skills,
        skill_insights=skill_insights(skills, ctx.student.name),
        overall_progress=aggregation.overall_progress(attendance, ctx.submissions),
        key_insight=key_insight(ctx.student.name, ranking, trend, ctx.single_subject),
        **_header(ctx, build_recommendations(ranking, attendance)),
    )


def compose_attendance(ctx: ReportContext) -> AttendanceReport:
    ranking, attendance = _ranking_and_attendance(ctx)
    return AttendanceReport(
        attendance=attendance,
        attendance_by_month=aggregation.attendance_by_month(ctx.completed),
        **_header(ctx, build_recommendations(ranking, attendance)),
    )


def compose_performance(ctx: ReportContext) -> PerformanceReport:
    ranking, attendance = _ranking_and_attendance(ctx)
    return PerformanceReport(
        performance=aggregation.performance_stats(ctx.scored),
        subject_performance=ranking.best_first,
        best_subject=ranking.best,
        weakest_subject=ranking.weakest,
        assessment_breakdown=aggregation.assessment_breakdown(ctx.submissions, ctx.subject_names),
        **_header(ctx, build_recommendations(ranking, attendance)),
    )


def compose_sessions(ctx: ReportContext) -> SessionHistoryReport:
    ranking, attendance = _ranking_and_attendance(ctx)
    matching = search_sessions(ctx.sessions, ctx.search, ctx.subject_names)
    rows = summarize_sessions(matching, ctx.subject_names, newest_first=ctx.sort_desc)
    return SessionHistoryReport(
        sessions=rows,
        total_sessions=len(rows),
        **_header(ctx, build_recommendations(ranking, attendance)),
    )


_COMPOSERS: Dict[ReportType, Callable[[ReportContext], ReportBase]] = {
    ReportType.PROGRESS: compose_progress,
    ReportType.ATTENDANCE: compose_attendance,
    ReportType.PERFORMANCE: compose_performance,
    ReportType.SESSIONS: compose_sessions,
}


def compose_report(report_type: ReportType, ctx: ReportContext) -> ReportBase:
    """Build the requested report view from a prepared context."""
    return _COMPOSERS[ReportType(report_type)](ctx)
