"""FastAPI routes for student report generation.

Handlers are synchronous; FastAPI runs them in its threadpool. Domain
errors are mapped to HTTP status codes here and nowhere else.
"""
from datetime import date
from functools import lru_cache
from typing import NoReturn, Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import ValidationError

from tutorlytics.core.config import settings
from tutorlytics.core.errors import (
    AnalyticsError,
    AuthorizationError,
    DataUnavailableError,
    InvalidDateRangeError,
    NotFoundError,
)
from tutorlytics.core.logging import get_logger
from tutorlytics.domain.reports import ReportType
from tutorlytics.infrastructure.repository import CsvSnapshotRepository, RecordRepository
from tutorlytics.services.date_ranges import RangeKey
from tutorlytics.services.pipeline import ReportEngine, ReportRequest

logger = get_logger(__name__)
router = APIRouter()

_STATUS_BY_ERROR = (
    (NotFoundError, 404),
    (AuthorizationError, 403),
    (InvalidDateRangeError, 422),
    (DataUnavailableError, 503),
)


# -----------------
# DEPENDENCIES
# -----------------

@lru_cache(maxsize=1)
def get_repository() -> RecordRepository:
    """Process-wide snapshot repository, loaded lazily on first query."""
    return CsvSnapshotRepository(settings.data_dir)


def get_engine(repository: RecordRepository = Depends(get_repository)) -> ReportEngine:
    return ReportEngine(repository)


def _raise_http(error: AnalyticsError, student_id: str) -> NoReturn:
    status_code = 500
    for error_type, code in _STATUS_BY_ERROR:
        if isinstance(error, error_type):
            status_code = code
            break

    extra = {"student_id": student_id, "status_code": status_code, "error_type": type(error).__name__}
    if status_code >= 500:
        logger.error(f"Report request failed: {error.message}", extra=extra)
    else:
        logger.warning(f"Report request rejected: {error.message}", extra=extra)
    raise HTTPException(status_code=status_code, detail=error.to_dict()) from error


def _build_request(**fields) -> ReportRequest:
    try:
        return ReportRequest(**fields)
    except ValidationError as e:
        raise HTTPException(status_code=422, detail=e.errors(include_url=False)) from e


# -----------------
# REPORT ENDPOINTS
# -----------------

@router.post("/reports")
def create_report(req: ReportRequest, engine: ReportEngine = Depends(get_engine)):
    """Compose one report from a JSON request.

    Example:
        POST /api/v1/reports
        {"student_id": "stu-101", "range_key": "quarter", "report_type": "performance"}
    """
    try:
        return engine.generate(req)
    except AnalyticsError as e:
        _raise_http(e, req.student_id)


@router.get("/students/{student_id}/reports/{report_type}")
def student_report(
    student_id: str,
    report_type: ReportType,
    range_key: str = Query(default=settings.default_range_key),
    start: Optional[date] = None,
    end: Optional[date] = None,
    subject_id: Optional[str] = None,
    today: Optional[date] = None,
    search: Optional[str] = None,
    sort_desc: bool = True,
    engine: ReportEngine = Depends(get_engine),
):
    """Compose one report from query-string selectors.

    Example:
        GET /api/v1/students/stu-101/reports/progress?range_key=month&subject_id=math
    """
    req = _build_request(
        student_id=student_id,
        report_type=report_type,
        range_key=range_key,
        start=start,
        end=end,
        subject_id=subject_id,
        today=today,
        search=search,
        sort_desc=sort_desc,
    )
    try:
        return engine.generate(req)
    except AnalyticsError as e:
        _raise_http(e, student_id)


@router.get("/students/{student_id}/date-range")
def student_date_range(
    student_id: str,
    range_key: str = Query(default=settings.default_range_key),
    start: Optional[date] = None,
    end: Optional[date] = None,
    today: Optional[date] = None,
    engine: ReportEngine = Depends(get_engine),
):
    """Resolve a range selector to concrete dates for a student."""
    req = _build_request(student_id=student_id, range_key=range_key, start=start, end=end, today=today)
    try:
        engine.student(student_id)
        key, window = engine.resolve_window(req)
    except AnalyticsError as e:
        _raise_http(e, student_id)

    return {
        "student_id": student_id,
        "range_key": key.value,
        "start": window.start,
        "end": window.end,
    }


@router.get("/students/{student_id}/siblings/comparison")
def sibling_comparison(
    student_id: str,
    range_key: str = Query(default=settings.default_range_key),
    start: Optional[date] = None,
    end: Optional[date] = None,
    today: Optional[date] = None,
    engine: ReportEngine = Depends(get_engine),
):
    """Compare a student with their siblings over the same window.

    The requested student is always first in ``students``.
    """
    req = _build_request(student_id=student_id, range_key=range_key, start=start, end=end, today=today)
    try:
        comparisons = engine.compare_siblings(req)
    except AnalyticsError as e:
        _raise_http(e, student_id)

    return {
        "student_id": student_id,
        "range_key": RangeKey.coerce(range_key).value,
        "students": comparisons,
    }
