#!/usr/bin/env python3
"""
Answer Scribe - Session Aggregation
回答ごとの採点結果をセッション全体の集計にまとめる
"""

from collections import Counter
from collections.abc import Iterable, Sequence

import numpy as np

from answer_scribe.domain import (
    AnalysisRecord,
    QuestionResponse,
    ReadinessLevel,
    ScoreDistribution,
    SessionSummary,
)
from answer_scribe.domain.constants import (
    EXCELLENT_SCORE_THRESHOLD,
    FAIR_SCORE_THRESHOLD,
    GOOD_SCORE_THRESHOLD,
    NEEDS_PRACTICE_SCORE_THRESHOLD,
    READY_SCORE_THRESHOLD,
    TOP_FEEDBACK_ITEMS,
    TOP_PRACTICE_AREAS,
)

_READINESS_INSIGHTS = {
    ReadinessLevel.READY: "demonstrates strong readiness",
    ReadinessLevel.NEEDS_PRACTICE: "shows good potential with room for improvement",
    ReadinessLevel.SIGNIFICANT_IMPROVEMENT: "requires significant practice",
}

_SCORE_INSIGHTS = {
    ReadinessLevel.READY: "consistently high-quality",
    ReadinessLevel.NEEDS_PRACTICE: "good responses with specific improvement areas",
    ReadinessLevel.SIGNIFICANT_IMPROVEMENT: "responses need substantial development",
}

_PRACTICE_TIME = {
    ReadinessLevel.READY: "1 week",
    ReadinessLevel.NEEDS_PRACTICE: "2-3 weeks",
    ReadinessLevel.SIGNIFICANT_IMPROVEMENT: "4-6 weeks",
}

DEFAULT_NEXT_STEPS = (
    "Continue practicing with similar questions",
    "Focus on identified improvement areas",
    "Schedule follow-up interviews to track progress",
)


def readiness_level(average_score: float) -> ReadinessLevel:
    """平均スコアから準備度を判定（80以上: ready、60以上: needs_practice）"""
    if average_score >= READY_SCORE_THRESHOLD:
        return ReadinessLevel.READY
    if average_score >= NEEDS_PRACTICE_SCORE_THRESHOLD:
        return ReadinessLevel.NEEDS_PRACTICE
    return ReadinessLevel.SIGNIFICANT_IMPROVEMENT


def score_distribution(scores: Iterable[float]) -> ScoreDistribution:
    """スコアを4段階に振り分ける"""
    buckets = Counter(
        "excellent"
        if score >= EXCELLENT_SCORE_THRESHOLD
        else "good"
        if score >= GOOD_SCORE_THRESHOLD
        else "fair"
        if score >= FAIR_SCORE_THRESHOLD
        else "needs_improvement"
        for score in scores
    )
    return ScoreDistribution(**buckets)


def top_items(groups: Iterable[Sequence[str]], limit: int) -> tuple[str, ...]:
    """出現頻度の高い順に上位limit件（同数は初出順）"""
    counts = Counter(item for group in groups for item in group)
    return tuple(item for item, _ in counts.most_common(limit))


def aggregate_session(
    session_id: str,
    records: Sequence[AnalysisRecord],
    responses: Sequence[QuestionResponse],
    total_questions: int | None = None,
) -> SessionSummary:
    """
    セッション全体の集計

    Args:
        session_id: セッションID
        records: 回答ごとの採点結果
        responses: 再構成済みの回答（時間の集計に使用）
        total_questions: 出題数（Noneの場合は回答数）

    Returns:
        SessionSummary: 集計結果（採点結果が空なら平均・中央値0）
    """
    scores = np.array([record.overall_score for record in records], dtype=float)
    average = float(np.mean(scores)) if scores.size else 0.0
    median = float(np.median(scores)) if scores.size else 0.0
    level = readiness_level(average)

    question_count = total_questions if total_questions is not None else len(responses)
    answered = len(records)

    strengths = top_items((record.strengths for record in records), TOP_FEEDBACK_ITEMS)
    improvements = top_items(
        (record.improvements for record in records), TOP_FEEDBACK_ITEMS
    )

    total_duration = float(sum(response.duration for response in responses))

    return SessionSummary(
        session_id=session_id,
        total_questions=question_count,
        questions_answered=answered,
        average_score=round(average, 2),
        median_score=round(median, 2),
        score_distribution=score_distribution(scores.tolist()),
        readiness_level=level,
        readiness_score=round(average),
        model_breakdown=dict(Counter(record.model_used for record in records)),
        total_input_tokens=sum(record.input_tokens for record in records),
        total_output_tokens=sum(record.output_tokens for record in records),
        total_cost_cents=sum(record.cost_cents for record in records),
        overall_strengths=strengths,
        overall_improvements=improvements,
        pattern_insights=(
            f"Performance {_READINESS_INSIGHTS[level]}",
            f"Average score of {round(average)} indicates {_SCORE_INSIGHTS[level]}",
            f"Completed {answered} out of {question_count} questions with analysis",
        ),
        next_steps=DEFAULT_NEXT_STEPS,
        recommended_practice_areas=improvements[:TOP_PRACTICE_AREAS],
        estimated_practice_time=_PRACTICE_TIME[level],
        total_duration_seconds=total_duration,
        average_time_per_question=(
            total_duration / len(responses) if responses else 0.0
        ),
        overall_feedback=(
            f"Analysis completed with {answered} question responses processed"
        ),
        reduced_confidence=any(record.is_fallback for record in records),
    )
