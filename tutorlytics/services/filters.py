"""Narrow raw record sets to one student, window, subject and status.

Every function here is pure: it returns a new tuple in the input order and
never touches the records themselves.
"""
from enum import Enum
from typing import Callable, Dict, Iterable, Optional, Tuple

from tutorlytics.domain.records import AssessmentSubmission, LearningSession
from tutorlytics.domain.reports import DateRange


class StatusPredicate(str, Enum):
    ANY = "any"
    COMPLETED = "completed"
    COMPLETED_SCORED = "completed_scored"
    COMPLETED_ATTENDANCE = "completed_attendance"


_PREDICATES: Dict[StatusPredicate, Callable[[LearningSession], bool]] = {
    StatusPredicate.ANY: lambda s: True,
    StatusPredicate.COMPLETED: lambda s: s.is_completed,
    StatusPredicate.COMPLETED_SCORED: lambda s: s.is_completed and s.is_scored,
    # Every completed session carries an attended flag
    StatusPredicate.COMPLETED_ATTENDANCE: lambda s: s.is_completed,
}


def matches_status(session: LearningSession, predicate: StatusPredicate = StatusPredicate.ANY) -> bool:
    return _PREDICATES[StatusPredicate(predicate)](session)


def filter_sessions(
    sessions: Iterable[LearningSession],
    student_id: str,
    date_range: DateRange,
    subject_id: Optional[str] = None,
    predicate: StatusPredicate = StatusPredicate.ANY,
) -> Tuple[LearningSession, ...]:
    """Sessions for ``student_id`` whose start time lies in ``date_range``."""
    check = _PREDICATES[StatusPredicate(predicate)]
    return tuple(
        s for s in sessions
        if s.student_id == student_id
        and date_range.contains(s.start_time)
        and (subject_id is None or s.subject_id == subject_id)
        and check(s)
    )


def filter_submissions(
    submissions: Iterable[AssessmentSubmission],
    student_id: str,
    date_range: DateRange,
    subject_id: Optional[str] = None,
) -> Tuple[AssessmentSubmission, ...]:
    """Submissions for ``student_id`` created inside ``date_range``.

    With a subject filter, submissions whose subject is unknown are dropped.
    """
    return tuple(
        a for a in submissions
        if a.student_id == student_id
        and date_range.contains(a.created_at)
        and (subject_id is None or a.subject_id == subject_id)
    )


def restrict_sessions(
    sessions: Iterable[LearningSession],
    predicate: StatusPredicate,
) -> Tuple[LearningSession, ...]:
    """Apply only the status predicate to an already windowed set."""
    check = _PREDICATES[StatusPredicate(predicate)]
    return tuple(s for s in sessions if check(s))


def search_sessions(
    sessions: Iterable[LearningSession],
    query: Optional[str],
    subject_names: Dict[str, str],
) -> Tuple[LearningSession, ...]:
    """Case-insensitive search over teacher name, subject name and notes."""
    sessions = tuple(sessions)
    needle = (query or "").strip().lower()
    if not needle:
        return sessions

    def _hit(session: LearningSession) -> bool:
        haystacks = (
            session.teacher_name or "",
            subject_names.get(session.subject_id, ""),
            session.notes or "",
        )
        return any(needle in text.lower() for text in haystacks)

    return tuple(s for s in sessions if _hit(s))
