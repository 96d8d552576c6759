"""Pytest configuration and shared fixtures."""
import os

os.environ.setdefault("ENVIRONMENT", "test")

from datetime import date, datetime, timedelta
from itertools import count

import pytest
from fastapi.testclient import TestClient

from tutorlytics.domain.records import (
    AssessmentSubmission,
    LearningSession,
    SessionStatus,
    Student,
    Subject,
)
from tutorlytics.domain.reports import DateRange
from tutorlytics.infrastructure.repository import InMemoryRepository
from tutorlytics.services.pipeline import ReportEngine

TODAY = date(2025, 3, 20)
MARCH = DateRange(start=date(2025, 3, 1), end=date(2025, 3, 31))


@pytest.fixture
def today():
    return TODAY


@pytest.fixture
def march():
    return MARCH


@pytest.fixture
def make_session():
    """Factory for LearningSession records with sensible defaults."""
    ids = count(1)

    def _make(
        subject_id="math",
        score=None,
        attended=True,
        status=SessionStatus.COMPLETED,
        start=datetime(2025, 3, 10, 16, 0),
        minutes=60,
        student_id="stu-101",
        **kwargs
    ):
        return LearningSession(
            id=kwargs.pop("id", f"ses-{next(ids):03d}"),
            student_id=student_id,
            subject_id=subject_id,
            teacher_id=kwargs.pop("teacher_id", "t-3"),
            teacher_name=kwargs.pop("teacher_name", "Mr. Khan"),
            start_time=start,
            end_time=start + timedelta(minutes=minutes),
            status=status,
            attended=attended,
            performance_score=score,
            **kwargs
        )

    return _make


@pytest.fixture
def make_submission():
    """Factory for AssessmentSubmission records."""
    ids = count(1)

    def _make(
        score=80,
        total_points=100,
        subject_id="math",
        created_at=datetime(2025, 3, 12, 10, 0),
        student_id="stu-101",
        skill_tags=(),
        **kwargs
    ):
        return AssessmentSubmission(
            id=kwargs.pop("id", f"sub-{next(ids):03d}"),
            student_id=student_id,
            assessment_id=kwargs.pop("assessment_id", "asm-1"),
            subject_id=subject_id,
            score=score,
            total_points=total_points,
            created_at=created_at,
            skill_tags=list(skill_tags),
            **kwargs
        )

    return _make


@pytest.fixture
def subjects():
    return [
        Subject(id="math", name="Mathematics"),
        Subject(id="science", name="Science"),
        Subject(id="english", name="English"),
    ]


@pytest.fixture
def subject_names(subjects):
    return {s.id: s.name for s in subjects}


@pytest.fixture
def students():
    return [
        Student(id="stu-101", name="Aisha", subject_ids=["math", "science", "english"], family_id="fam-7"),
        Student(id="stu-102", name="Omar", subject_ids=["math", "science"], family_id="fam-7"),
        Student(id="stu-201", name="Lena", subject_ids=["english"]),
    ]


@pytest.fixture
def march_sessions(make_session):
    """A month of mixed sessions for stu-101 plus one for a sibling."""
    return [
        make_session("math", 6.0, start=datetime(2025, 3, 3, 16), notes="Fractions review"),
        make_session("science", 8.0, start=datetime(2025, 3, 5, 16), minutes=90, teacher_name="Ms. Ortiz"),
        make_session("english", None, attended=False, start=datetime(2025, 3, 7, 15), minutes=45),
        make_session("math", 7.0, start=datetime(2025, 3, 10, 16), notes="Decimals"),
        make_session("english", 9.0, start=datetime(2025, 3, 14, 15), minutes=45, teacher_name="Mrs. Lee"),
        make_session("math", 8.0, start=datetime(2025, 3, 17, 16)),
        make_session("science", None, attended=False, status=SessionStatus.CANCELLED, start=datetime(2025, 3, 19, 16)),
        make_session("math", None, attended=False, status=SessionStatus.SCHEDULED, start=datetime(2025, 4, 2, 16)),
        make_session("math", 7.5, student_id="stu-102", start=datetime(2025, 3, 4, 16)),
        make_session("math", 8.5, student_id="stu-102", start=datetime(2025, 3, 18, 16)),
    ]


@pytest.fixture
def march_submissions(make_submission):
    return [
        make_submission(72, subject_id="math", skill_tags=["problem_solving", "critical_thinking"],
                        created_at=datetime(2025, 3, 8, 10)),
        make_submission(45, total_points=50, subject_id="science", skill_tags=["memorization"],
                        created_at=datetime(2025, 3, 12, 10)),
        make_submission(88, subject_id="english", skill_tags=["communication", "creativity"],
                        created_at=datetime(2025, 3, 20, 10)),
        make_submission(81, subject_id="math", student_id="stu-102", created_at=datetime(2025, 3, 8, 10)),
    ]


@pytest.fixture
def repository(students, subjects, march_sessions, march_submissions):
    return InMemoryRepository(
        students=students,
        subjects=subjects,
        sessions=march_sessions,
        submissions=march_submissions,
    )


@pytest.fixture
def engine(repository):
    return ReportEngine(repository, clock=lambda: TODAY)


@pytest.fixture
def test_client(repository):
    """FastAPI test client serving the in-memory repository."""
    from main import app
    from tutorlytics.api.routes import get_repository

    app.dependency_overrides[get_repository] = lambda: repository
    yield TestClient(app)
    app.dependency_overrides.clear()
