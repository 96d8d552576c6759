"""Domain models for the raw records the engine reads.

These are owned and mutated by the data-access collaborator; the engine
only ever reads them.
"""
import json
from datetime import datetime
from enum import Enum
from typing import Any, List, Optional
from pydantic import BaseModel, Field, field_validator


class SessionStatus(str, Enum):
    SCHEDULED = "scheduled"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class SubmissionStatus(str, Enum):
    NOT_STARTED = "not_started"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    GRADED = "graded"
    LATE = "late"


def parse_tag_list(value: Any) -> List[str]:
    """Parse auxiliary tag metadata into a list of strings.

    Accepts a list or a JSON-encoded list. Anything unparsable or of the
    wrong shape is treated as no tags at all.

    Examples:
        >>> parse_tag_list('["creativity", "communication"]')
        ['creativity', 'communication']
        >>> parse_tag_list("{not json")
        []
    """
    if value is None:
        return []
    if isinstance(value, str):
        text = value.strip()
        if not text:
            return []
        try:
            value = json.loads(text)
        except (TypeError, ValueError):
            return []
    if not isinstance(value, (list, tuple)):
        return []
    return [str(item).strip() for item in value if isinstance(item, str) and item.strip()]


class Subject(BaseModel):
    """A subject a student can be enrolled in."""
    id: str
    name: str

    class Config:
        frozen = True


class Student(BaseModel):
    """A learner and their subject enrollments.

    ``family_id`` groups siblings under the same parent account.
    """
    id: str
    name: str
    subject_ids: List[str] = Field(default_factory=list)
    family_id: Optional[str] = None

    class Config:
        frozen = True
        json_schema_extra = {
            "example": {
                "id": "stu-101",
                "name": "Aisha",
                "subject_ids": ["math", "science"],
                "family_id": "fam-7"
            }
        }


class LearningSession(BaseModel):
    """A scheduled or completed teaching encounter for one subject."""
    id: str
    student_id: str
    subject_id: str
    teacher_id: Optional[str] = None
    teacher_name: Optional[str] = None
    start_time: datetime
    end_time: Optional[datetime] = None
    status: SessionStatus = SessionStatus.SCHEDULED
    attended: bool = False
    performance_score: Optional[float] = Field(default=None, ge=0, le=10, description="Session rating 0-10")
    notes: str = ""

    class Config:
        frozen = True
        json_schema_extra = {
            "example": {
                "id": "ses-1",
                "student_id": "stu-101",
                "subject_id": "math",
                "teacher_id": "t-3",
                "start_time": "2025-03-05T16:00:00",
                "end_time": "2025-03-05T17:00:00",
                "status": "completed",
                "attended": True,
                "performance_score": 8.5,
                "notes": "Fractions review"
            }
        }

    @field_validator("notes", mode="before")
    @classmethod
    def _blank_notes(cls, value):
        return "" if value is None else value

    @property
    def is_completed(self) -> bool:
        return self.status == SessionStatus.COMPLETED

    @property
    def is_scored(self) -> bool:
        return self.performance_score is not None


class AssessmentSubmission(BaseModel):
    """A student's submission for an assessment in one subject."""
    id: str
    student_id: str
    assessment_id: str
    subject_id: Optional[str] = None
    score: Optional[float] = None
    total_points: float = 100
    status: SubmissionStatus = SubmissionStatus.COMPLETED
    created_at: datetime
    skill_tags: List[str] = Field(default_factory=list)

    class Config:
        frozen = True

    @field_validator("skill_tags", mode="before")
    @classmethod
    def _parse_skill_tags(cls, value):
        return parse_tag_list(value)

    @field_validator("total_points", mode="before")
    @classmethod
    def _default_total(cls, value):
        return 100 if value is None else value

    @property
    def percentage(self) -> Optional[float]:
        """Score as a percentage of total points, or None when not computable."""
        if self.score is None or self.total_points <= 0:
            return None
        return self.score / self.total_points * 100
