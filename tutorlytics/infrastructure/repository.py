"""Record repositories: the engine's only source of raw records.

``InMemoryRepository`` serves records held in memory (tests, embedding).
``CsvSnapshotRepository`` loads a directory of CSV exports with pandas the
first time it is queried and serves from memory after that.

Student lookups are case-sensitive on id; unknown ids raise NotFoundError
with close-match suggestions.
"""
import threading
from dataclasses import dataclass, field
from datetime import datetime
from difflib import get_close_matches
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Protocol, Sequence, Tuple, runtime_checkable

import pandas as pd
from pydantic import ValidationError

from tutorlytics.core.errors import AuthorizationError, DataUnavailableError, NotFoundError
from tutorlytics.core.logging import LogTimer, get_logger
from tutorlytics.domain.records import (
    AssessmentSubmission,
    LearningSession,
    Student,
    Subject,
    parse_tag_list,
)
from tutorlytics.domain.reports import DateRange
from tutorlytics.services.filters import StatusPredicate, filter_sessions, filter_submissions

logger = get_logger(__name__)

STUDENTS_FILE = "students.csv"
SUBJECTS_FILE = "subjects.csv"
SESSIONS_FILE = "sessions.csv"
SUBMISSIONS_FILE = "submissions.csv"


@runtime_checkable
class RecordRepository(Protocol):
    """Data-access collaborator the report pipeline reads from."""

    def get_student(self, student_id: str) -> Student: ...

    def fetch_sessions(
        self,
        student_id: str,
        date_range: DateRange,
        subject_id: Optional[str] = None,
        predicate: StatusPredicate = StatusPredicate.ANY,
    ) -> Sequence[LearningSession]: ...

    def fetch_assessment_submissions(
        self,
        student_id: str,
        date_range: DateRange,
        subject_id: Optional[str] = None,
    ) -> Sequence[AssessmentSubmission]: ...

    def fetch_subjects_for_student(self, student_id: str) -> Sequence[Subject]: ...

    def earliest_session_start(self, student_id: str) -> Optional[datetime]: ...

    def fetch_siblings(self, student_id: str) -> Sequence[Student]: ...


@dataclass(frozen=True)
class Snapshot:
    """One immutable set of records."""
    students: Tuple[Student, ...] = ()
    subjects: Tuple[Subject, ...] = ()
    sessions: Tuple[LearningSession, ...] = ()
    submissions: Tuple[AssessmentSubmission, ...] = ()
    _students_by_id: Dict[str, Student] = field(default_factory=dict, compare=False, repr=False)

    def __post_init__(self):
        self._students_by_id.update({s.id: s for s in self.students})

    def student(self, student_id: str) -> Optional[Student]:
        return self._students_by_id.get(student_id)


def find_closest_student(snapshot: Snapshot, query: str, n: int = 3, cutoff: float = 0.6) -> List[str]:
    """Ids of students whose id or name resembles ``query``.

    Example:
        >>> find_closest_student(snapshot, "stu-10")
        ['stu-101', 'stu-102']
    """
    candidates: Dict[str, str] = {}
    for student in snapshot.students:
        candidates.setdefault(student.id.lower(), student.id)
        candidates.setdefault(student.name.lower(), student.id)

    matches = get_close_matches(str(query).lower(), list(candidates), n=n, cutoff=cutoff)
    result: List[str] = []
    for match in matches:
        student_id = candidates[match]
        if student_id not in result:
            result.append(student_id)
    return result


class InMemoryRepository:
    """Repository over records supplied by the caller.

    Args:
        students, subjects, sessions, submissions: The records to serve
        accessible_student_ids: When given, any other student id raises
            AuthorizationError
    """

    def __init__(
        self,
        students: Iterable[Student] = (),
        subjects: Iterable[Subject] = (),
        sessions: Iterable[LearningSession] = (),
        submissions: Iterable[AssessmentSubmission] = (),
        accessible_student_ids: Optional[Iterable[str]] = None,
    ):
        self._snapshot = Snapshot(
            students=tuple(students),
            subjects=tuple(subjects),
            sessions=tuple(sessions),
            submissions=tuple(submissions),
        )
        self.accessible_student_ids = (
            None if accessible_student_ids is None else frozenset(accessible_student_ids)
        )

    def snapshot(self) -> Snapshot:
        return self._snapshot

    def _check_access(self, student_id: str) -> None:
        if self.accessible_student_ids is not None and student_id not in self.accessible_student_ids:
            raise AuthorizationError(
                f"Access to student '{student_id}' is not permitted",
                details={"student_id": student_id}
            )

    def get_student(self, student_id: str) -> Student:
        snapshot = self.snapshot()
        student = snapshot.student(student_id)
        if student is None:
            suggestions = find_closest_student(snapshot, student_id)
            raise NotFoundError(
                f"Student '{student_id}' not found",
                details={"student_id": student_id, "suggestions": suggestions}
            )
        self._check_access(student_id)
        return student

    def fetch_sessions(self, student_id, date_range, subject_id=None, predicate=StatusPredicate.ANY):
        self._check_access(student_id)
        return filter_sessions(self.snapshot().sessions, student_id, date_range, subject_id, predicate)

    def fetch_assessment_submissions(self, student_id, date_range, subject_id=None):
        self._check_access(student_id)
        return filter_submissions(self.snapshot().submissions, student_id, date_range, subject_id)

    def fetch_subjects_for_student(self, student_id: str) -> List[Subject]:
        """Enrolled subjects plus any subject the student has sessions in, by name."""
        snapshot = self.snapshot()
        student = snapshot.student(student_id)
        wanted = set(student.subject_ids) if student else set()
        wanted.update(s.subject_id for s in snapshot.sessions if s.student_id == student_id)
        wanted.update(a.subject_id for a in snapshot.submissions if a.student_id == student_id and a.subject_id)
        return sorted(
            (s for s in snapshot.subjects if s.id in wanted),
            key=lambda s: (s.name, s.id)
        )

    def earliest_session_start(self, student_id: str) -> Optional[datetime]:
        starts = [s.start_time for s in self.snapshot().sessions if s.student_id == student_id]
        return min(starts) if starts else None

    def fetch_siblings(self, student_id: str) -> List[Student]:
        """Other students sharing the student's family id."""
        student = self.get_student(student_id)
        if not student.family_id:
            return []
        return [
            s for s in self.snapshot().students
            if s.family_id == student.family_id and s.id != student.id
        ]


# ----------------
# CSV SNAPSHOT
# ----------------

def _split_ids(value) -> List[str]:
    """Subject-id cell: a JSON list or a ``;``-separated string."""
    if value is None:
        return []
    text = str(value).strip()
    if text.startswith("["):
        return parse_tag_list(text)
    return [part.strip() for part in text.split(";") if part.strip()]


def read_table(path: Path) -> List[dict]:
    """Read one CSV into row dicts with blanks and NaN mapped to None."""
    if not path.exists():
        logger.warning(f"Snapshot file missing, treating as empty: {path.name}")
        return []
    df = pd.read_csv(path, dtype=str, keep_default_na=True)
    df.columns = [c.strip() for c in df.columns]
    df = df.astype(object).where(df.notna(), None)
    return df.to_dict(orient="records")


def _build(model, rows: List[dict], source: str) -> Tuple:
    """Validate rows into models, skipping rows that fail validation."""
    records = []
    skipped = 0
    for row in rows:
        try:
            records.append(model(**row))
        except ValidationError as e:
            skipped += 1
            logger.warning(
                f"Skipping invalid row in {source}: {e.error_count()} error(s)",
                extra={"operation": "load_snapshot"}
            )
    if skipped:
        logger.info(f"Loaded {len(records)} rows from {source}, skipped {skipped}")
    return tuple(records)


def load_snapshot(data_dir: Path) -> Snapshot:
    """Load all four tables from ``data_dir``."""
    if not data_dir.is_dir():
        raise DataUnavailableError(
            f"Snapshot directory '{data_dir}' does not exist",
            details={"data_dir": str(data_dir)}
        )

    student_rows = read_table(data_dir / STUDENTS_FILE)
    for row in student_rows:
        row["subject_ids"] = _split_ids(row.get("subject_ids"))

    return Snapshot(
        students=_build(Student, student_rows, STUDENTS_FILE),
        subjects=_build(Subject, read_table(data_dir / SUBJECTS_FILE), SUBJECTS_FILE),
        sessions=_build(LearningSession, read_table(data_dir / SESSIONS_FILE), SESSIONS_FILE),
        submissions=_build(AssessmentSubmission, read_table(data_dir / SUBMISSIONS_FILE), SUBMISSIONS_FILE),
    )


class CsvSnapshotRepository(InMemoryRepository):
    """Repository over a directory of CSV exports.

    Files: students.csv, subjects.csv, sessions.csv, submissions.csv. The
    directory is read once, on first use, and never re-read by the same
    instance.
    """

    def __init__(self, data_dir, accessible_student_ids: Optional[Iterable[str]] = None):
        super().__init__(accessible_student_ids=accessible_student_ids)
        self.data_dir = Path(data_dir)
        self._loaded: Optional[Snapshot] = None
        self._lock = threading.Lock()

    def snapshot(self) -> Snapshot:
        if self._loaded is None:
            with self._lock:
                if self._loaded is None:
                    with LogTimer(logger, "load_snapshot", data_dir=str(self.data_dir)):
                        self._loaded = load_snapshot(self.data_dir)
                    logger.info(
                        f"Loaded snapshot: {len(self._loaded.students)} students, "
                        f"{len(self._loaded.sessions)} sessions, "
                        f"{len(self._loaded.submissions)} submissions"
                    )
        return self._loaded
