"""Skill-area profiles estimated from assessment submissions.

The mapping from submissions to per-skill scores is a pluggable strategy.
Strategies must be deterministic and pure so that the same submissions
always give the same profile.
"""
import math
from typing import Dict, List, Optional, Protocol, Sequence, runtime_checkable

from tutorlytics.domain.records import AssessmentSubmission
from tutorlytics.domain.reports import SkillArea, SkillInsights
from tutorlytics.services.aggregation import round_half_up
from tutorlytics.utils.text import humanize_key, join_words

SKILL_AREAS = (
    "problem_solving",
    "critical_thinking",
    "creativity",
    "communication",
    "collaboration",
    "memorization",
)

EXCELLENT_THRESHOLD = 85
GOOD_THRESHOLD = 70
AVERAGE_THRESHOLD = 50


def skill_level(score: float) -> str:
    if score >= EXCELLENT_THRESHOLD:
        return "Excellent"
    if score >= GOOD_THRESHOLD:
        return "Good"
    if score >= AVERAGE_THRESHOLD:
        return "Average"
    return "Needs Improvement"


@runtime_checkable
class SkillScoringStrategy(Protocol):
    """Maps submissions to a 0-100 score for each requested skill area."""

    def score(
        self,
        submissions: Sequence[AssessmentSubmission],
        skill_areas: Sequence[str],
    ) -> Dict[str, float]:
        ...


def _scored_percentages(submissions: Sequence[AssessmentSubmission]) -> List[float]:
    return [a.percentage for a in submissions if a.percentage is not None]


def _mean(values: Sequence[float]) -> float:
    return math.fsum(values) / len(values) if values else 0.0


class OverallPercentageStrategy:
    """Every skill area receives the mean submission percentage."""

    def score(self, submissions, skill_areas):
        overall = _mean(_scored_percentages(submissions))
        return {skill: overall for skill in skill_areas}


class TaggedPercentageStrategy:
    """Score each skill from the submissions tagged with it.

    A skill without tagged evidence falls back to the overall mean, and a
    student with no scored submissions gets 0 everywhere.
    """

    def score(self, submissions, skill_areas):
        wanted = set(skill_areas)
        tagged: Dict[str, List[float]] = {skill: [] for skill in skill_areas}
        for submission in submissions:
            pct = submission.percentage
            if pct is None:
                continue
            for tag in set(submission.skill_tags):
                if tag in wanted:
                    tagged[tag].append(pct)

        overall = _mean(_scored_percentages(submissions))
        return {
            skill: _mean(values) if values else overall
            for skill, values in tagged.items()
        }


DEFAULT_STRATEGY = TaggedPercentageStrategy()


def estimate_skill_profile(
    submissions: Sequence[AssessmentSubmission],
    strategy: Optional[SkillScoringStrategy] = None,
    skill_areas: Sequence[str] = SKILL_AREAS,
) -> Dict[str, SkillArea]:
    """Build ``{skill: SkillArea}`` in the fixed skill-area order.

    No submissions in range gives an empty mapping.
    """
    submissions = tuple(submissions)
    if not submissions:
        return {}

    raw = (strategy or DEFAULT_STRATEGY).score(submissions, skill_areas)
    profile: Dict[str, SkillArea] = {}
    for skill in skill_areas:
        value = int(round_half_up(float(raw.get(skill, 0.0))))
        value = min(100, max(0, value))
        profile[skill] = SkillArea(score=value, level=skill_level(value))
    return profile


def skill_insights(profile: Dict[str, SkillArea], student_name: str = "", limit: int = 3) -> SkillInsights:
    """Strongest and weakest skill areas plus a development-focus sentence."""
    if not profile:
        return SkillInsights()

    order = {skill: i for i, skill in enumerate(profile)}
    strengths = sorted(profile, key=lambda s: (-profile[s].score, order[s]))[:limit]
    improvements = sorted(profile, key=lambda s: (profile[s].score, order[s]))[:limit]
    weak = [s for s in improvements if profile[s].score < GOOD_THRESHOLD]

    who = f"{student_name}'s" if student_name else "the student's"
    if weak:
        names = join_words([humanize_key(s).lower() for s in weak])
        focus = f"We recommend focusing on developing {who} {names} skills through targeted exercises and activities."
    else:
        focus = f"Continue to encourage {who} overall academic development with a balanced approach to all skill areas."

    return SkillInsights(strengths=strengths, improvements=improvements, focus=focus)
