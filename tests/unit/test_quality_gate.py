"""
Tests for the Quality Gate
==========================
"""

import pytest

from feedwarden.config.settings import QualitySettings
from feedwarden.processing.quality_gate import QualityGate, grade


def words(count: int) -> str:
    return " ".join(f"token{i}" for i in range(count))


@pytest.fixture
def gate():
    return QualityGate(QualitySettings())


class TestClickbait:
    def test_no_match(self, gate):
        verdict = gate.detect_clickbait("Council approves transit budget")
        assert verdict.penalty == 0
        assert verdict.flag is False

    def test_single_match_is_not_flagged(self, gate):
        verdict = gate.detect_clickbait("The mind-blowing new bridge design")
        assert verdict.penalty == 20
        assert verdict.flag is False

    def test_two_matches_are_flagged(self, gate):
        verdict = gate.detect_clickbait("You won't believe the shocking truth about rent")
        assert verdict.penalty == 40
        assert verdict.flag is True
        assert len(verdict.matches) == 2

    def test_case_insensitive_and_curly_apostrophe(self, gate):
        verdict = gate.detect_clickbait("YOU WON’T BELIEVE this")
        assert verdict.penalty == 20


class TestGrade:
    def test_clean_article_scores_100(self, gate):
        result = gate.grade("Council approves transit budget", words(150))

        assert result.quality_score == 100
        assert result.is_low_quality is False
        assert result.word_count == 150
        assert result.reasons == []

    def test_clickbait_title_blocks(self, gate):
        result = gate.grade("You won't believe the shocking truth", words(150))

        assert result.quality_score == 60
        assert result.is_low_quality is True
        assert result.reasons == ["clickbait"]

    def test_clickbait_phrases_in_body_are_ignored(self, gate):
        content = "You won't believe the shocking truth. " + words(150)
        result = gate.grade("Council approves transit budget", content)

        assert result.clickbait.penalty == 0
        assert result.is_low_quality is False

    def test_short_content(self, gate):
        result = gate.grade("Council approves transit budget", words(99))

        assert result.quality_score == 70
        assert result.word_count_ok is False
        assert result.is_low_quality is True
        assert result.reasons == ["too short"]

    def test_word_count_ignores_markup(self, gate):
        content = "".join(f"<p>token{i}</p>" for i in range(100))
        result = gate.grade("Council approves transit budget", content)

        assert result.word_count == 100
        assert result.word_count_ok is True

    def test_press_release_marker_in_content(self, gate):
        content = "NEW YORK (PRNewswire) -- " + words(150)
        result = gate.grade("Acme announces quarterly results", content)

        assert result.is_press_release is True
        assert result.quality_score == 50
        assert result.is_low_quality is True

    def test_press_release_marker_in_title(self, gate):
        result = gate.grade("Press Release: Acme opens plant", words(150))
        assert result.is_press_release is True

    def test_score_floors_at_zero(self, gate):
        title = (
            "You won't believe the shocking truth: top 5 reasons this "
            "mind-blowing deal is one you can't miss"
        )
        result = gate.grade(title, "Business Wire short note")

        assert result.clickbait.penalty == 100
        assert result.quality_score == 0
        assert set(result.reasons) == {"clickbait", "too short", "press release"}

    def test_grading_is_deterministic(self, gate):
        first = gate.grade("Top 10 things to do", words(120))
        second = gate.grade("Top 10 things to do", words(120))
        assert first == second

    def test_module_level_grade_uses_given_config(self):
        config = QualitySettings(min_word_count=5)
        result = grade("Short but fine", words(5), config=config)
        assert result.word_count_ok is True
        assert result.quality_score == 100
