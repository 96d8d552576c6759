"""Integration tests for API routes."""
from fastapi import status

from tutorlytics.core.config import settings

PREFIX = settings.api_prefix


class TestServiceRoutes:
    """Root and health endpoints."""

    def test_root(self, test_client):
        response = test_client.get("/")
        assert response.status_code == status.HTTP_200_OK
        assert response.json()["status"] == "running"

    def test_health(self, test_client):
        response = test_client.get("/health")
        assert response.status_code == status.HTTP_200_OK
        assert response.json()["status"] == "healthy"

    def test_request_id_header(self, test_client):
        response = test_client.get("/health")
        assert response.headers.get("X-Request-ID")

    def test_request_id_is_echoed(self, test_client):
        response = test_client.get("/health", headers={"X-Request-ID": "req-123"})
        assert response.headers["X-Request-ID"] == "req-123"


class TestReportRoutes:
    """Report generation over HTTP."""

    def test_post_progress_report(self, test_client):
        response = test_client.post(
            f"{PREFIX}/reports",
            json={"student_id": "stu-101", "range_key": "month", "today": "2025-03-20"}
        )
        assert response.status_code == status.HTTP_200_OK
        data = response.json()
        assert data["report_type"] == "progress"
        assert data["date_range"] == {"start": "2025-03-01", "end": "2025-03-31"}
        assert data["attendance"]["attendance_rate"] == 83
        assert data["recommendations"][-1]["kind"] == "encouragement"

    def test_get_performance_report(self, test_client):
        response = test_client.get(
            f"{PREFIX}/students/stu-101/reports/performance",
            params={"range_key": "month", "today": "2025-03-20", "subject_id": "math"}
        )
        assert response.status_code == status.HTTP_200_OK
        data = response.json()
        assert data["best_subject"]["subject_name"] == "Mathematics"
        assert data["subject_id"] == "math"

    def test_get_sessions_report_oldest_first(self, test_client):
        response = test_client.get(
            f"{PREFIX}/students/stu-101/reports/sessions",
            params={"today": "2025-03-20", "sort_desc": "false"}
        )
        assert response.status_code == status.HTTP_200_OK
        sessions = response.json()["sessions"]
        assert sessions[0]["start_time"] < sessions[-1]["start_time"]

    def test_unknown_report_type(self, test_client):
        response = test_client.get(f"{PREFIX}/students/stu-101/reports/grades")
        assert response.status_code == status.HTTP_422_UNPROCESSABLE_ENTITY

    def test_identical_requests_give_identical_bodies(self, test_client):
        params = {"range_key": "quarter", "today": "2025-03-20"}
        first = test_client.get(f"{PREFIX}/students/stu-101/reports/progress", params=params)
        second = test_client.get(f"{PREFIX}/students/stu-101/reports/progress", params=params)
        assert first.content == second.content


class TestErrorMapping:
    """Domain errors map to HTTP status codes."""

    def test_unknown_student_is_404(self, test_client):
        response = test_client.post(f"{PREFIX}/reports", json={"student_id": "nobody"})
        assert response.status_code == status.HTTP_404_NOT_FOUND
        assert response.json()["detail"]["error"] == "NOT_FOUND"

    def test_custom_start_after_end_is_422(self, test_client):
        response = test_client.post(
            f"{PREFIX}/reports",
            json={"student_id": "stu-101", "range_key": "custom", "start": "2025-03-31", "end": "2025-03-01"}
        )
        assert response.status_code == status.HTTP_422_UNPROCESSABLE_ENTITY
        assert response.json()["detail"]["error"] == "INVALID_DATE_RANGE"

    def test_custom_range_missing_end_is_422(self, test_client):
        response = test_client.get(
            f"{PREFIX}/students/stu-101/reports/progress",
            params={"range_key": "custom", "start": "2025-03-01"}
        )
        assert response.status_code == status.HTTP_422_UNPROCESSABLE_ENTITY
        detail = response.json()["detail"]
        assert detail["error"] == "INVALID_DATE_RANGE"
        assert detail["details"] == {"start": "2025-03-01", "end": None}

    def test_forbidden_is_403(self, test_client, students):
        from main import app
        from tutorlytics.api.routes import get_repository
        from tutorlytics.infrastructure.repository import InMemoryRepository

        app.dependency_overrides[get_repository] = lambda: InMemoryRepository(
            students, accessible_student_ids=["stu-102"]
        )
        response = test_client.get(f"{PREFIX}/students/stu-101/reports/progress")
        assert response.status_code == status.HTTP_403_FORBIDDEN

    def test_unavailable_is_503(self, test_client, tmp_path):
        from main import app
        from tutorlytics.api.routes import get_repository
        from tutorlytics.infrastructure.repository import CsvSnapshotRepository

        app.dependency_overrides[get_repository] = lambda: CsvSnapshotRepository(tmp_path / "missing")
        response = test_client.get(f"{PREFIX}/students/stu-101/reports/progress")
        assert response.status_code == status.HTTP_503_SERVICE_UNAVAILABLE
        assert response.json()["detail"]["error"] == "DATA_UNAVAILABLE"


class TestDateRangeRoute:
    def test_resolves_window(self, test_client):
        response = test_client.get(
            f"{PREFIX}/students/stu-101/date-range",
            params={"range_key": "week", "today": "2025-03-20"}
        )
        assert response.status_code == status.HTTP_200_OK
        assert response.json() == {
            "student_id": "stu-101",
            "range_key": "week",
            "start": "2025-03-17",
            "end": "2025-03-23",
        }

    def test_unknown_key_falls_back_to_month(self, test_client):
        response = test_client.get(
            f"{PREFIX}/students/stu-101/date-range",
            params={"range_key": "fortnight", "today": "2025-03-20"}
        )
        assert response.json()["range_key"] == "month"

    def test_unknown_student(self, test_client):
        response = test_client.get(f"{PREFIX}/students/nobody/date-range")
        assert response.status_code == status.HTTP_404_NOT_FOUND


class TestSiblingComparisonRoute:
    def test_compares_siblings(self, test_client):
        response = test_client.get(
            f"{PREFIX}/students/stu-101/siblings/comparison",
            params={"today": "2025-03-20"}
        )
        assert response.status_code == status.HTTP_200_OK
        students = response.json()["students"]
        assert [s["student_name"] for s in students] == ["Aisha", "Omar"]
        assert students[1]["performance"]["average"] == 8.0
