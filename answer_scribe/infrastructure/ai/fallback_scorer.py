#!/usr/bin/env python3
"""
Answer Scribe - Fallback Scorer
AI採点が使えない場合のルールベース採点（常に成功する）
"""

import re

from answer_scribe.domain import (
    AnalysisRecord,
    FillerWordReport,
    InterviewCategory,
    QuestionResponse,
    ResponseLength,
    ScoringState,
    SpeakingPace,
)
from answer_scribe.domain.constants import (
    FALLBACK_BASE_SCORE,
    FALLBACK_MAX_SCORE,
    FALLBACK_MIN_SCORE,
    FALLBACK_MODEL_NAME,
    FALLBACK_SUBSCORE_MAX,
    FALLBACK_SUBSCORE_MIN,
    FAST_SPEAKING_RATE_WPM,
    LONG_RESPONSE_SEC,
    SHORT_RESPONSE_SEC,
    SLOW_SPEAKING_RATE_WPM,
)
from answer_scribe.infrastructure.segmentation import (
    count_words,
    filler_word_report,
    speaking_rate_wpm,
)

_QUANTIFIED_RESULT_PATTERN = re.compile(
    r"\d+%|\d+\s*(increase|decrease|improvement|reduction)", re.IGNORECASE
)
_PERSONAL_OWNERSHIP_PATTERN = re.compile(
    r"\bI\s+(did|implemented|led|created|developed|managed|handled)\b",
    re.IGNORECASE,
)

# AIなしでは評価が難しいカテゴリは減点
_CATEGORY_ADJUSTMENTS = {
    InterviewCategory.BEHAVIORAL: 0,
    InterviewCategory.LEADERSHIP: 0,
    InterviewCategory.TECHNICAL: -5,
    InterviewCategory.CUSTOM: -5,
}

_CATEGORY_STRENGTHS = {
    InterviewCategory.BEHAVIORAL: "Attempted to use personal examples",
    InterviewCategory.LEADERSHIP: "Showed leadership thinking",
    InterviewCategory.TECHNICAL: "Demonstrated technical knowledge",
    InterviewCategory.CUSTOM: "Showed domain-specific understanding",
}

FALLBACK_IMPROVEMENTS = (
    "AI analysis unavailable - manual review recommended",
    "Consider providing more specific examples",
    "Practice reducing filler words for better delivery",
)

FALLBACK_FEEDBACK = (
    "Automated analysis could not be completed, so this feedback is based on "
    "delivery heuristics only. In the meantime, consider practicing with more "
    "specific examples and reducing filler words for better delivery."
)

FALLBACK_EXAMPLE = (
    "Analysis pending manual review. Please provide more specific examples and "
    "concrete details to strengthen your response."
)


def _clamp(value: float, lower: float, upper: float) -> float:
    return max(lower, min(upper, value))


def assess_speaking_pace(word_count: int, duration: float) -> SpeakingPace:
    """話速（wpm）から話すペースを判定（長さ0以下は遅すぎ扱い）"""
    rate = speaking_rate_wpm(word_count, duration)
    if rate > FAST_SPEAKING_RATE_WPM:
        return SpeakingPace.TOO_FAST
    if rate < SLOW_SPEAKING_RATE_WPM:
        return SpeakingPace.TOO_SLOW
    return SpeakingPace.APPROPRIATE


def assess_response_length(duration: float) -> ResponseLength:
    """回答時間から長さを判定"""
    if duration < SHORT_RESPONSE_SEC:
        return ResponseLength.TOO_SHORT
    if duration > LONG_RESPONSE_SEC:
        return ResponseLength.TOO_LONG
    return ResponseLength.APPROPRIATE


def calculate_confidence_score(
    fillers: FillerWordReport,
    pace: SpeakingPace,
    length: ResponseLength,
    has_quantified_results: bool,
    has_personal_ownership: bool,
) -> float:
    """
    発話の自信度（0-10）

    基準5点から、フィラー語5個ごとに-0.5、ペース・長さが適切なら+1（不適切なら-0.5）、
    数値で示した成果に+1.5、主体的な行動表現に+1。
    """
    score = 5.0
    score -= fillers.total / 5 * 0.5
    score += 1 if pace == SpeakingPace.APPROPRIATE else -0.5
    score += 1 if length == ResponseLength.APPROPRIATE else -0.5
    if has_quantified_results:
        score += 1.5
    if has_personal_ownership:
        score += 1
    return _clamp(score, 0, 10)


def generate_fallback_analysis(
    response: QuestionResponse,
    category: InterviewCategory,
    reason: str,
    processing_time_ms: int = 0,
) -> AnalysisRecord:
    """
    ルールベースの採点結果を生成

    入力テキストが空でも、全フィールドが埋まったAnalysisRecordを返す。

    Args:
        response: 採点対象の回答
        category: 面接カテゴリ
        reason: フォールバックした理由
        processing_time_ms: 処理時間（ミリ秒）

    Returns:
        AnalysisRecord: フォールバック採点結果（トークン・コストは0）
    """
    text = response.transcript_excerpt
    fillers = filler_word_report(text)
    pace = assess_speaking_pace(count_words(text), response.duration)
    length = assess_response_length(response.duration)
    confidence = calculate_confidence_score(
        fillers,
        pace,
        length,
        has_quantified_results=bool(_QUANTIFIED_RESULT_PATTERN.search(text)),
        has_personal_ownership=bool(_PERSONAL_OWNERSHIP_PATTERN.search(text)),
    )

    overall = _clamp(
        FALLBACK_BASE_SCORE + _CATEGORY_ADJUSTMENTS.get(category, 0),
        FALLBACK_MIN_SCORE,
        FALLBACK_MAX_SCORE,
    )
    subscore = _clamp(confidence, FALLBACK_SUBSCORE_MIN, FALLBACK_SUBSCORE_MAX)

    return AnalysisRecord(
        question_id=response.question_id,
        category=category,
        overall_score=overall,
        communication_scores={
            "clarity": subscore,
            "structure": subscore,
            "conciseness": subscore,
        },
        content_scores={
            "relevance": subscore,
            "depth": subscore,
            "specificity": subscore,
        },
        domain_scores={},
        strengths=("Response provided", _CATEGORY_STRENGTHS[category]),
        improvements=FALLBACK_IMPROVEMENTS,
        actionable_feedback=FALLBACK_FEEDBACK,
        improved_example=FALLBACK_EXAMPLE,
        filler_words=fillers,
        speaking_pace=pace,
        confidence_score=confidence,
        response_length_assessment=length,
        model_used=FALLBACK_MODEL_NAME,
        input_tokens=0,
        output_tokens=0,
        cost_cents=0,
        processing_time_ms=processing_time_ms,
        state=ScoringState.FALLBACK_SCORED,
        fallback_reason=reason,
    )
