"""ルールベース採点のテスト"""

import pytest

from answer_scribe.domain import (
    FillerWordReport,
    InterviewCategory,
    ResponseLength,
    ScoringState,
    SpeakingPace,
)
from answer_scribe.domain.constants import FALLBACK_MODEL_NAME
from answer_scribe.infrastructure.ai import generate_fallback_analysis
from answer_scribe.infrastructure.ai.fallback_scorer import (
    assess_response_length,
    assess_speaking_pace,
    calculate_confidence_score,
)

from .fakes import make_response


class TestGenerateFallbackAnalysis:
    """フォールバック採点結果のテスト"""

    def test_populates_every_field(self) -> None:
        """全フィールドが埋まり、トークン・コストは0"""
        record = generate_fallback_analysis(
            make_response("q7"), InterviewCategory.BEHAVIORAL, "API down"
        )

        assert record.question_id == "q7"
        assert record.state == ScoringState.FALLBACK_SCORED
        assert record.is_fallback
        assert record.fallback_reason == "API down"
        assert record.model_used == FALLBACK_MODEL_NAME
        assert (record.input_tokens, record.output_tokens, record.cost_cents) == (0, 0, 0)
        assert record.overall_score == 50
        assert set(record.communication_scores) == {"clarity", "structure", "conciseness"}
        assert set(record.content_scores) == {"relevance", "depth", "specificity"}
        assert record.strengths == ("Response provided", "Attempted to use personal examples")
        assert record.improvements[0] == "AI analysis unavailable - manual review recommended"
        assert record.actionable_feedback
        assert record.improved_example

    def test_heuristic_confidence(self) -> None:
        """主体的な表現は加点、遅い話速は減点"""
        record = generate_fallback_analysis(
            make_response(text="I led the migration and we cut costs by 30 percent"),
            InterviewCategory.BEHAVIORAL,
            "API down",
        )

        assert record.speaking_pace == SpeakingPace.TOO_SLOW
        assert record.response_length_assessment == ResponseLength.APPROPRIATE
        assert record.confidence_score == pytest.approx(6.5)
        assert record.communication_scores["clarity"] == pytest.approx(6.5)

    def test_technical_category_is_penalized(self) -> None:
        """AIなしで評価しにくいカテゴリは減点"""
        record = generate_fallback_analysis(
            make_response(), InterviewCategory.TECHNICAL, "API down"
        )
        assert record.overall_score == 45
        assert "Demonstrated technical knowledge" in record.strengths

    def test_empty_text_still_produces_record(self) -> None:
        """空の回答でも例外を出さない"""
        record = generate_fallback_analysis(
            make_response(text="", duration=0.0), InterviewCategory.LEADERSHIP, "empty"
        )

        assert record.filler_words.total == 0
        assert record.speaking_pace == SpeakingPace.TOO_SLOW
        assert record.response_length_assessment == ResponseLength.TOO_SHORT
        assert record.confidence_score == pytest.approx(4.0)
        assert record.communication_scores["clarity"] == pytest.approx(4.0)

    def test_subscores_are_clamped(self) -> None:
        """サブスコアは3から7の範囲"""
        text = "um uh like um uh like um uh like um uh like um uh like " * 3
        record = generate_fallback_analysis(
            make_response(text=text, duration=10.0), InterviewCategory.BEHAVIORAL, "x"
        )
        assert record.confidence_score < 3
        assert all(score == 3 for score in record.content_scores.values())


class TestHeuristics:
    """判定関数のテスト"""

    @pytest.mark.parametrize(
        ("word_count", "duration", "expected"),
        [
            (150, 60.0, SpeakingPace.APPROPRIATE),
            (200, 60.0, SpeakingPace.TOO_FAST),
            (100, 60.0, SpeakingPace.TOO_SLOW),
            (50, 0.0, SpeakingPace.TOO_SLOW),
        ],
    )
    def test_speaking_pace(
        self, word_count: int, duration: float, expected: SpeakingPace
    ) -> None:
        assert assess_speaking_pace(word_count, duration) == expected

    @pytest.mark.parametrize(
        ("duration", "expected"),
        [
            (10.0, ResponseLength.TOO_SHORT),
            (30.0, ResponseLength.APPROPRIATE),
            (180.0, ResponseLength.APPROPRIATE),
            (181.0, ResponseLength.TOO_LONG),
        ],
    )
    def test_response_length(self, duration: float, expected: ResponseLength) -> None:
        assert assess_response_length(duration) == expected

    def test_all_bonuses_apply(self) -> None:
        score = calculate_confidence_score(
            FillerWordReport(counts={}, total=0),
            SpeakingPace.APPROPRIATE,
            ResponseLength.APPROPRIATE,
            has_quantified_results=True,
            has_personal_ownership=True,
        )
        assert score == pytest.approx(9.5)

    def test_fillers_reduce_confidence(self) -> None:
        """フィラー語5個ごとに0.5減点"""
        score = calculate_confidence_score(
            FillerWordReport(counts={"um": 10}, total=10),
            SpeakingPace.APPROPRIATE,
            ResponseLength.APPROPRIATE,
            has_quantified_results=False,
            has_personal_ownership=False,
        )
        assert score == pytest.approx(6.0)
