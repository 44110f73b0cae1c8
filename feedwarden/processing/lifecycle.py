"""
Article Lifecycle
=================

Forward-only article state machine:

    queued -> processed | blocked -> published

Fetch failures never move an article; they are annotated on the row and
the article stays where it was.
"""

from datetime import datetime
from typing import Dict, FrozenSet, Optional

from ..database.models import Lifecycle
from ..utils.exceptions import LifecycleTransitionError
from ..utils.logging import get_logger_for_component
from .quality_gate import QualityGrade

ALLOWED_TRANSITIONS: Dict[Lifecycle, FrozenSet[Lifecycle]] = {
    Lifecycle.QUEUED: frozenset({Lifecycle.PROCESSED, Lifecycle.BLOCKED}),
    Lifecycle.PROCESSED: frozenset({Lifecycle.PUBLISHED}),
    Lifecycle.BLOCKED: frozenset({Lifecycle.PUBLISHED}),
    Lifecycle.PUBLISHED: frozenset(),
    Lifecycle.ERROR: frozenset({Lifecycle.QUEUED}),
}

logger = get_logger_for_component("lifecycle")


def can_transition(current: Lifecycle, target: Lifecycle) -> bool:
    """Whether ``current -> target`` is a legal forward move."""
    return target in ALLOWED_TRANSITIONS.get(Lifecycle(current), frozenset())


def assert_transition(current: Lifecycle, target: Lifecycle) -> None:
    """Raise LifecycleTransitionError for an illegal move."""
    if not can_transition(current, target):
        raise LifecycleTransitionError(Lifecycle(current).value, Lifecycle(target).value)


def lifecycle_for_grade(grade: QualityGrade) -> Lifecycle:
    return Lifecycle.BLOCKED if grade.is_low_quality else Lifecycle.PROCESSED


def decide(current: Lifecycle, grade: QualityGrade) -> Optional[Lifecycle]:
    """Lifecycle to store after grading, or None to keep ``current``.

    Only queued articles are moved by grading; a forced re-extraction of an
    article further along refreshes its content and score in place.
    """
    target = lifecycle_for_grade(grade)
    return target if can_transition(current, target) else None


def backfill_published(article_repo, now: Optional[datetime] = None) -> int:
    """Publish every processed article that has no publication date.

    ``published_at`` becomes the ingestion time (or ``now`` when that is
    missing too). Running it again changes nothing.

    Returns:
        Number of articles published
    """
    fixed = article_repo.backfill_published(now)
    logger.info(f"Backfilled {fixed} processed articles to published", extra={"fixed": fixed})
    return fixed
