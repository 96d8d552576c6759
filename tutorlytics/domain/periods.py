"""Typed grouping keys for the aggregation passes.

Buckets are keyed by their first calendar day, and the display label is
derived from it. Ordering never looks at the label.
"""
from datetime import date, datetime, timedelta
from enum import Enum
from typing import NewType, Union

from pydantic import BaseModel


SubjectKey = NewType("SubjectKey", str)


class Granularity(str, Enum):
    DAY = "day"
    WEEK = "week"
    MONTH = "month"


class PeriodKey(BaseModel):
    """A day, ISO week or calendar month bucket."""
    granularity: Granularity
    start: date

    class Config:
        frozen = True

    @classmethod
    def for_moment(cls, moment: Union[date, datetime], granularity: Granularity) -> "PeriodKey":
        day = moment.date() if isinstance(moment, datetime) else moment
        if granularity == Granularity.WEEK:
            day = day - timedelta(days=day.weekday())
        elif granularity == Granularity.MONTH:
            day = day.replace(day=1)
        return cls(granularity=granularity, start=day)

    @property
    def label(self) -> str:
        if self.granularity == Granularity.DAY:
            return self.start.strftime("%b %d")
        if self.granularity == Granularity.WEEK:
            iso_year, iso_week, _ = self.start.isocalendar()
            return f"{iso_year}-W{iso_week:02d}"
        return self.start.strftime("%b %Y")

    @property
    def sort_key(self) -> date:
        return self.start
