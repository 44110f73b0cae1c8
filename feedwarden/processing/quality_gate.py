"""
Quality Gate
============

Deterministic content grading. An article is low quality when its title
reads as clickbait, when its body is too short, or when it is a
syndicated press release. Low-quality articles are blocked; the rest move
on to processed.
"""

import re
from dataclasses import dataclass
from typing import List, Optional, Pattern

from ..config.settings import QualitySettings, get_settings
from ..ingestion.content_cleaner import strip_tags


@dataclass(frozen=True)
class ClickbaitVerdict:
    """Clickbait penalty and whether it is high enough to flag."""

    penalty: int
    flag: bool
    matches: tuple = ()


@dataclass(frozen=True)
class QualityGrade:
    """Grade for one article."""

    quality_score: int
    is_low_quality: bool
    clickbait: ClickbaitVerdict
    word_count: int
    word_count_ok: bool
    is_press_release: bool

    @property
    def reasons(self) -> List[str]:
        reasons = []
        if self.clickbait.flag:
            reasons.append("clickbait")
        if not self.word_count_ok:
            reasons.append("too short")
        if self.is_press_release:
            reasons.append("press release")
        return reasons


class QualityGate:
    """Grades article title and content with configurable heuristics."""

    def __init__(self, config: Optional[QualitySettings] = None):
        self.config = config or get_settings().quality
        self.clickbait_patterns: List[Pattern] = [
            re.compile(pattern, re.IGNORECASE) for pattern in self.config.clickbait_patterns
        ]
        self.press_release_markers = [m.lower() for m in self.config.press_release_markers]

    def detect_clickbait(self, text: str) -> ClickbaitVerdict:
        matches = tuple(p.pattern for p in self.clickbait_patterns if p.search(text or ""))
        penalty = min(100, len(matches) * self.config.clickbait_penalty)
        return ClickbaitVerdict(
            penalty=penalty,
            flag=penalty >= self.config.clickbait_flag_threshold,
            matches=matches,
        )

    @staticmethod
    def count_words(text: str) -> int:
        return len(strip_tags(text).split())

    def is_press_release(self, title: str, content: str) -> bool:
        haystack = f"{title or ''}\n{content or ''}".lower()
        return any(marker in haystack for marker in self.press_release_markers)

    def grade(self, title: str, content: str) -> QualityGrade:
        """Grade an article. Same input always yields the same grade."""
        clickbait = self.detect_clickbait(title)
        word_count = self.count_words(content)
        word_count_ok = word_count >= self.config.min_word_count
        press_release = self.is_press_release(title, content)

        score = 100 - clickbait.penalty
        if press_release:
            score -= self.config.press_release_penalty
        if not word_count_ok:
            score -= self.config.word_count_penalty

        return QualityGrade(
            quality_score=max(0, score),
            is_low_quality=clickbait.flag or not word_count_ok or press_release,
            clickbait=clickbait,
            word_count=word_count,
            word_count_ok=word_count_ok,
            is_press_release=press_release,
        )


def grade(title: str, content: str, config: Optional[QualitySettings] = None) -> QualityGrade:
    """Grade with the configured (or given) heuristics."""
    return QualityGate(config).grade(title, content)
