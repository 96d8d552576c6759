"""Tests for the record repositories."""
from datetime import date, datetime
from pathlib import Path

import pytest

from tutorlytics.core.errors import DataUnavailableError, NotFoundError
from tutorlytics.domain.records import SessionStatus, parse_tag_list
from tutorlytics.domain.reports import DateRange
from tutorlytics.infrastructure.repository import (
    CsvSnapshotRepository,
    InMemoryRepository,
    RecordRepository,
)
from tutorlytics.services.filters import StatusPredicate

SAMPLE_DATA = Path(__file__).resolve().parents[1] / "sample_data"


@pytest.fixture
def snapshot_dir(tmp_path):
    (tmp_path / "students.csv").write_text(
        "id,name,subject_ids,family_id\n"
        "stu-1,Aisha,math;science,fam-1\n"
        "stu-2,Omar,\"[\"\"math\"\"]\",fam-1\n"
        "stu-3,Lena,,\n"
    )
    (tmp_path / "subjects.csv").write_text("id,name\nmath,Mathematics\nscience,Science\n")
    (tmp_path / "sessions.csv").write_text(
        "id,student_id,subject_id,teacher_id,teacher_name,start_time,end_time,status,attended,performance_score,notes\n"
        "s1,stu-1,math,t1,Mr. Khan,2025-03-03T16:00:00,2025-03-03T17:00:00,completed,true,7.5,Fractions\n"
        "s2,stu-1,science,t2,Ms. Ortiz,2025-03-05T16:00:00,,completed,false,,\n"
        "s3,stu-1,math,t1,Mr. Khan,not-a-date,,completed,true,5,\n"
        "s4,stu-2,math,t1,Mr. Khan,2025-02-20T16:00:00,,scheduled,false,,\n"
    )
    return tmp_path


class TestParseTagList:
    def test_json_list(self):
        assert parse_tag_list('["a", " b ", 3]') == ["a", "b"]

    @pytest.mark.parametrize("value", [None, "", "{broken", '{"a": 1}', 42])
    def test_malformed_is_empty(self, value):
        assert parse_tag_list(value) == []


class TestInMemoryRepository:
    def test_satisfies_protocol(self, repository):
        assert isinstance(repository, RecordRepository)

    def test_fetch_sessions_filters(self, repository, march):
        sessions = repository.fetch_sessions("stu-101", march, "math", StatusPredicate.COMPLETED_SCORED)
        assert [s.performance_score for s in sessions] == [6.0, 7.0, 8.0]

    def test_subjects_sorted_by_name(self, repository):
        assert [s.name for s in repository.fetch_subjects_for_student("stu-101")] == [
            "English", "Mathematics", "Science"
        ]

    def test_earliest_session_start(self, repository):
        assert repository.earliest_session_start("stu-101") == datetime(2025, 3, 3, 16)
        assert repository.earliest_session_start("stu-201") is None

    def test_siblings(self, repository):
        assert [s.id for s in repository.fetch_siblings("stu-101")] == ["stu-102"]
        assert repository.fetch_siblings("stu-201") == []

    def test_unknown_student(self, repository):
        with pytest.raises(NotFoundError):
            repository.get_student("nobody")

    def test_empty_repository(self, march):
        repo = InMemoryRepository()
        assert repo.fetch_sessions("stu-101", march) == ()
        assert repo.fetch_assessment_submissions("stu-101", march) == ()


class TestCsvSnapshotRepository:
    def test_loads_students(self, snapshot_dir):
        repo = CsvSnapshotRepository(snapshot_dir)
        aisha = repo.get_student("stu-1")
        assert aisha.subject_ids == ["math", "science"]
        assert repo.get_student("stu-2").subject_ids == ["math"]
        assert repo.get_student("stu-3").family_id is None

    def test_blank_cells_become_none(self, snapshot_dir):
        repo = CsvSnapshotRepository(snapshot_dir)
        window = DateRange(start=date(2025, 3, 1), end=date(2025, 3, 31))
        sessions = {s.id: s for s in repo.fetch_sessions("stu-1", window)}
        assert sessions["s1"].performance_score == 7.5
        assert sessions["s1"].attended is True
        assert sessions["s2"].performance_score is None
        assert sessions["s2"].end_time is None
        assert sessions["s2"].notes == ""

    def test_malformed_skill_tags_are_empty(self, snapshot_dir):
        (snapshot_dir / "submissions.csv").write_text(
            "id,student_id,assessment_id,subject_id,score,total_points,status,created_at,skill_tags\n"
            "a1,stu-1,asm-1,math,40,50,graded,2025-03-08T10:00:00,{broken\n"
            "a2,stu-1,asm-2,math,30,,graded,2025-03-09T10:00:00,\"[\"\"memorization\"\"]\"\n"
        )
        repo = CsvSnapshotRepository(snapshot_dir)
        window = DateRange(start=date(2025, 3, 1), end=date(2025, 3, 31))
        submissions = {a.id: a for a in repo.fetch_assessment_submissions("stu-1", window)}
        assert submissions["a1"].skill_tags == []
        assert submissions["a2"].skill_tags == ["memorization"]
        assert submissions["a2"].total_points == 100

    def test_unknown_session_columns_are_ignored(self, snapshot_dir):
        path = snapshot_dir / "sessions.csv"
        lines = path.read_text().splitlines()
        lines[0] += ",tags"
        lines[1] += ",\"[\"\"problem_solving\"\"]\""
        path.write_text("\n".join(lines) + "\n")
        repo = CsvSnapshotRepository(snapshot_dir)
        window = DateRange(start=date(2025, 3, 1), end=date(2025, 3, 31))
        s1 = [s for s in repo.fetch_sessions("stu-1", window) if s.id == "s1"][0]
        assert s1.notes == "Fractions"
        assert not hasattr(s1, "tags")

    def test_invalid_rows_are_skipped(self, snapshot_dir):
        repo = CsvSnapshotRepository(snapshot_dir)
        assert "s3" not in {s.id for s in repo.snapshot().sessions}
        assert len(repo.snapshot().sessions) == 3

    def test_missing_files_are_empty_tables(self, snapshot_dir):
        repo = CsvSnapshotRepository(snapshot_dir)
        window = DateRange(start=date(2025, 1, 1), end=date(2025, 12, 31))
        assert repo.fetch_assessment_submissions("stu-1", window) == ()

    def test_loaded_once(self, snapshot_dir):
        repo = CsvSnapshotRepository(snapshot_dir)
        first = repo.snapshot()
        (snapshot_dir / "students.csv").write_text("id,name\n")
        assert repo.snapshot() is first
        assert repo.get_student("stu-1").name == "Aisha"

    def test_missing_directory(self, tmp_path):
        repo = CsvSnapshotRepository(tmp_path / "nope")
        with pytest.raises(DataUnavailableError):
            repo.get_student("stu-1")

    def test_statuses_parsed(self, snapshot_dir):
        repo = CsvSnapshotRepository(snapshot_dir)
        window = DateRange(start=date(2025, 2, 1), end=date(2025, 2, 28))
        assert [s.status for s in repo.fetch_sessions("stu-2", window)] == [SessionStatus.SCHEDULED]

    def test_sample_data_loads(self):
        repo = CsvSnapshotRepository(SAMPLE_DATA)
        assert repo.get_student("stu-101").name == "Aisha"
        assert [s.id for s in repo.fetch_siblings("stu-101")] == ["stu-102"]
        assert len(repo.snapshot().sessions) == 12
        assert len(repo.snapshot().submissions) == 5
