"""Grouped statistics over filtered session and assessment records.

Each step is a separate pure function working on typed maps
(subject -> accumulator, period -> accumulator) built in a single pass.
Sums use ``math.fsum`` so the result does not depend on input order.
"""
import math
from dataclasses import dataclass, field
from decimal import Decimal, ROUND_HALF_UP
from typing import Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

from tutorlytics.domain.periods import Granularity, PeriodKey, SubjectKey
from tutorlytics.domain.records import AssessmentSubmission, LearningSession
from tutorlytics.domain.reports import (
    AttendanceStats,
    MonthlyAttendance,
    PerformanceStats,
    SubjectAssessmentSummary,
    SubjectPerformance,
    SubjectRanking,
    TrendPoint,
)
from tutorlytics.services.trends import classify_trend


# ----------------
# HELPER FUNCTIONS
# ----------------

def round_half_up(value: float, ndigits: int = 0) -> float:
    """Round halves away from zero (12.5 -> 13), unlike the builtin round()."""
    quantum = Decimal(1).scaleb(-ndigits)
    return float(Decimal(str(value)).quantize(quantum, rounding=ROUND_HALF_UP))


def percentage(part: int, whole: int) -> int:
    """Integer percentage of part/whole, 0 when whole is 0."""
    if whole <= 0:
        return 0
    return int(round_half_up(part / whole * 100))


def _mean(values: Sequence[float]) -> float:
    """Mean with guards; returns 0.0 for an empty sequence."""
    if not values:
        return 0.0
    return math.fsum(values) / len(values)


def _subject_name(subject_id: str, subject_names: Mapping[str, str]) -> str:
    return subject_names.get(subject_id) or subject_id


def chronological(sessions: Iterable[LearningSession]) -> List[LearningSession]:
    """Sessions by start time; the id breaks ties so the order is total."""
    return sorted(sessions, key=lambda s: (s.start_time, s.id))


@dataclass
class ScoreAccumulator:
    """Running collection of scores for one group."""
    scores: List[float] = field(default_factory=list)

    def add(self, score: float) -> None:
        self.scores.append(float(score))

    @property
    def count(self) -> int:
        return len(self.scores)

    @property
    def mean(self) -> float:
        return _mean(self.scores)

    @property
    def highest(self) -> float:
        return max(self.scores) if self.scores else 0.0

    @property
    def lowest(self) -> float:
        return min(self.scores) if self.scores else 0.0


@dataclass
class AttendanceAccumulator:
    total: int = 0
    attended: int = 0

    def add(self, attended: bool) -> None:
        self.total += 1
        if attended:
            self.attended += 1

    def stats(self) -> AttendanceStats:
        return AttendanceStats(
            total=self.total,
            attended=self.attended,
            missed=self.total - self.attended,
            attendance_rate=percentage(self.attended, self.total),
        )


# ----------------
# PERFORMANCE BY SUBJECT
# ----------------

def group_scores_by_subject(sessions: Iterable[LearningSession]) -> Dict[SubjectKey, ScoreAccumulator]:
    """One pass over completed, scored sessions keyed by subject."""
    groups: Dict[SubjectKey, ScoreAccumulator] = {}
    for session in sessions:
        if not (session.is_completed and session.is_scored):
            continue
        key = SubjectKey(session.subject_id)
        groups.setdefault(key, ScoreAccumulator()).add(session.performance_score)
    return groups


def performance_by_subject(
    sessions: Iterable[LearningSession],
    subject_names: Mapping[str, str],
) -> List[SubjectPerformance]:
    """Average, count, max and min performance score per subject.

    Returned in subject-name order; use ``rank_subjects`` for best/weakest.
    """
    groups = group_scores_by_subject(sessions)
    performances = [
        SubjectPerformance(
            subject_id=key,
            subject_name=_subject_name(key, subject_names),
            average_score=acc.mean,
            session_count=acc.count,
            highest_score=acc.highest,
            lowest_score=acc.lowest,
        )
        for key, acc in groups.items()
    ]
    performances.sort(key=lambda p: (p.subject_name, p.subject_id))
    return performances


def rank_subjects(performances: Iterable[SubjectPerformance]) -> SubjectRanking:
    """Sort once each way; ties fall back to subject name, then id."""
    performances = list(performances)
    best_first = sorted(performances, key=lambda p: (-p.average_score, p.subject_name, p.subject_id))
    weakest_first = sorted(performances, key=lambda p: (p.average_score, p.subject_name, p.subject_id))
    return SubjectRanking(best_first=best_first, weakest_first=weakest_first)


# ----------------
# ATTENDANCE
# ----------------

def attendance_stats(sessions: Iterable[LearningSession]) -> AttendanceStats:
    """Counts and rate over completed sessions."""
    acc = AttendanceAccumulator()
    for session in sessions:
        if session.is_completed:
            acc.add(session.attended)
    return acc.stats()


def attendance_by_month(sessions: Iterable[LearningSession]) -> List[MonthlyAttendance]:
    """Attendance per calendar month, oldest month first."""
    months: Dict[PeriodKey, AttendanceAccumulator] = {}
    for session in sessions:
        if not session.is_completed:
            continue
        key = PeriodKey.for_moment(session.start_time, Granularity.MONTH)
        months.setdefault(key, AttendanceAccumulator()).add(session.attended)

    return [
        MonthlyAttendance(month=key.label, **months[key].stats().model_dump())
        for key in sorted(months, key=lambda k: k.sort_key)
    ]


# ----------------
# PERFORMANCE & TREND
# ----------------

def performance_stats(sessions: Iterable[LearningSession]) -> PerformanceStats:
    """Headline score figures with a first-to-last trend classification."""
    scored = chronological(s for s in sessions if s.is_completed and s.is_scored)
    if not scored:
        return PerformanceStats()

    scores = [s.performance_score for s in scored]
    return PerformanceStats(
        average=round_half_up(_mean(scores), 1),
        highest=round_half_up(max(scores), 1),
        lowest=round_half_up(min(scores), 1),
        trend=classify_trend(scores),
        total_sessions=len(scored),
    )


def progress_trend(
    sessions: Iterable[LearningSession],
    granularity: Granularity,
    subject_names: Mapping[str, str],
    single_subject: bool = False,
) -> List[TrendPoint]:
    """Bucketed average scores in chronological order.

    Without a subject filter each subject gets its own series and every
    point carries ``subject_name``; with one, a single unlabelled series.
    Points within the same bucket are ordered by subject name.
    """
    buckets: Dict[Tuple[PeriodKey, Optional[SubjectKey]], ScoreAccumulator] = {}
    for session in sessions:
        if not (session.is_completed and session.is_scored):
            continue
        period = PeriodKey.for_moment(session.start_time, granularity)
        subject = None if single_subject else SubjectKey(session.subject_id)
        buckets.setdefault((period, subject), ScoreAccumulator()).add(session.performance_score)

    def _order(key):
        period, subject = key
        if subject is None:
            return (period.sort_key, "", "")
        return (period.sort_key, _subject_name(subject, subject_names), subject)

    points = []
    for key in sorted(buckets, key=_order):
        period, subject = key
        points.append(TrendPoint(
            period_label=period.label,
            score=round_half_up(buckets[key].mean, 1),
            subject_name=None if subject is None else _subject_name(subject, subject_names),
        ))
    return points


def split_series(points: Iterable[TrendPoint]) -> Dict[str, List[TrendPoint]]:
    """Group a multi-subject trend into per-subject series, keeping order."""
    series: Dict[str, List[TrendPoint]] = {}
    for point in points:
        series.setdefault(point.subject_name or "", []).append(point)
    return series


# ----------------
# ASSESSMENTS
# ----------------

def grade_for_percent(value: float) -> str:
    if value >= 90:
        return "A"
    if value >= 80:
        return "B"
    if value >= 70:
        return "C"
    if value >= 60:
        return "D"
    return "F"


def mean_assessment_percent(submissions: Iterable[AssessmentSubmission]) -> float:
    """Mean percentage over submissions that have a usable score."""
    return _mean([a.percentage for a in submissions if a.percentage is not None])


def assessment_breakdown(
    submissions: Iterable[AssessmentSubmission],
    subject_names: Mapping[str, str],
) -> List[SubjectAssessmentSummary]:
    """Per-subject assessment percentages, best average first."""
    groups: Dict[SubjectKey, ScoreAccumulator] = {}
    for submission in submissions:
        pct = submission.percentage
        if pct is None:
            continue
        key = SubjectKey(submission.subject_id or "unknown")
        groups.setdefault(key, ScoreAccumulator()).add(pct)

    summaries = []
    for key, acc in groups.items():
        name = "Unknown" if key == "unknown" else _subject_name(key, subject_names)
        summaries.append(SubjectAssessmentSummary(
            subject_id=key,
            subject_name=name,
            average_percent=round_half_up(acc.mean, 1),
            count=acc.count,
            highest_percent=round_half_up(acc.highest, 1),
            lowest_percent=round_half_up(acc.lowest, 1),
            grade=grade_for_percent(acc.mean),
        ))
    summaries.sort(key=lambda s: (-s.average_percent, s.subject_name, s.subject_id))
    return summaries


def overall_progress(attendance: AttendanceStats, submissions: Iterable[AssessmentSubmission]) -> int:
    """Blend of attendance (40%) and assessment percentage (60%), 0-100."""
    blended = attendance.attendance_rate * 0.4 + mean_assessment_percent(submissions) * 0.6
    return int(round_half_up(min(100.0, max(0.0, blended))))
