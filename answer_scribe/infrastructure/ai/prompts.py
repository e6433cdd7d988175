#!/usr/bin/env python3
"""
Answer Scribe - Prompt Templates
採点APIのプロンプトテンプレートを管理するモジュール
"""

from collections.abc import Sequence
from typing import Protocol

from answer_scribe.domain import (
    AnalysisRecord,
    InterviewCategory,
    QuestionResponse,
    SessionSummary,
)

_OUTPUT_FORMAT = """
Return ONLY valid JSON matching this structure:
{
  "overall_score": number (0-100),
  "communication_scores": {"clarity": number, "structure": number, "conciseness": number},
  "content_scores": {"relevance": number, "depth": number, "specificity": number},
  %(domain_field)s
  "strengths": ["strength1", "strength2"],
  "improvements": ["improvement1", "improvement2"],
  "actionable_feedback": "3-4 sentence paragraph with specific guidance",
  "improved_example": "Rewritten response showing a better approach",
  "filler_words": {"words": ["um", "like"], "counts": {"um": 2, "like": 1}, "total": 3},
  "speaking_pace": "too_fast|appropriate|too_slow",
  "confidence_score": number (0.0-10.0),
  "response_length_assessment": "too_short|appropriate|too_long"
}
All sub-scores are 0-10. Provide 2-4 specific strengths and 2-4 specific improvements."""

_ASSESSMENT_GUIDE = """
FILLER WORD DETECTION:
Count instances of: "um", "uh", "like", "you know", "so", "actually", "basically", "kind of", "sort of", "well", "just"

SPEAKING PACE ASSESSMENT:
- too_fast: rushed, hard to follow
- appropriate: clear, measured, easy to follow
- too_slow: dragging, losing energy

RESPONSE LENGTH ASSESSMENT:
- too_short: under 30 seconds, lacking detail
- appropriate: 1-3 minutes, well-balanced
- too_long: over 3 minutes, rambling"""


class PromptStrategy(Protocol):
    """
    プロンプト構築戦略の抽象インターフェース

    責務:
    - システムプロンプトの提供
    - ユーザープロンプトの構築
    """

    @property
    def system_prompt(self) -> str:
        """システムプロンプトを取得"""
        ...

    def build_user_prompt(self, response: QuestionResponse) -> str:
        """ユーザープロンプトを構築"""
        ...


class _ResponsePromptBase:
    """回答採点プロンプトの共通部分"""

    _ROLE = ""
    _CRITERIA = ""
    _DOMAIN_FIELD = ""
    _LABEL = "interview"

    def __init__(self, include_improved_example: bool = True) -> None:
        self.include_improved_example = include_improved_example

    @property
    def system_prompt(self) -> str:
        return "\n".join(
            (
                self._ROLE,
                self._CRITERIA,
                _ASSESSMENT_GUIDE,
                _OUTPUT_FORMAT % {"domain_field": self._DOMAIN_FIELD},
            )
        )

    def build_user_prompt(self, response: QuestionResponse) -> str:
        """
        回答1件分のユーザープロンプトを構築

        Args:
            response: 再構成済みの回答

        Returns:
            str: 構築されたユーザープロンプト
        """
        prompt = f"""Analyze this {self._LABEL} interview response:

QUESTION: "{response.question_text}"

CANDIDATE RESPONSE:
"{response.answer_text}"

RESPONSE DURATION: {response.duration:.0f} seconds
WORD COUNT: {response.metrics.word_count}
SPEAKING RATE: {response.metrics.speaking_rate} words per minute

Provide a comprehensive analysis in JSON format."""
        if self.include_improved_example:
            prompt += (
                "\n\nAlso provide an improved example of how the response "
                "could be better structured."
            )
        else:
            prompt += '\n\nSet "improved_example" to an empty string.'
        return prompt


class StarPromptStrategy(_ResponsePromptBase):
    """
    行動面接用プロンプト戦略（STAR法で評価）
    """

    _ROLE = (
        "You are an expert behavioral interview coach with years of experience "
        "evaluating candidates for top tech companies. You assess responses using "
        "the STAR method (Situation, Task, Action, Result)."
    )
    _CRITERIA = """
EVALUATION CRITERIA:
1. STAR Method (40%): situation, task, action, result (0-10 each)
2. Communication Quality (30%): clarity, structure, conciseness
3. Content Quality (30%): relevance, depth, specificity

Look for personal ownership ("I did" rather than "we did"), quantified results,
clear cause and effect, and lessons learned. Flag vague answers, missing results
and excessive filler words."""
    _DOMAIN_FIELD = (
        '"star_scores": {"situation": number, "task": number, '
        '"action": number, "result": number},'
    )
    _LABEL = "behavioral"


class LeadershipPromptStrategy(StarPromptStrategy):
    """
    リーダーシップ面接用プロンプト戦略（STAR法 + リーダーシップ観点）
    """

    _CRITERIA = (
        StarPromptStrategy._CRITERIA
        + """
Also focus on leadership qualities: setting direction, influencing without
authority, developing others, and handling conflict."""
    )
    _LABEL = "leadership"


class TechnicalPromptStrategy(_ResponsePromptBase):
    """
    技術面接用プロンプト戦略（概念理解・設計の評価）
    """

    _ROLE = (
        "You are a senior technical interviewer evaluating software engineers and "
        "technical leaders. These are CONCEPTUAL questions, not coding challenges: "
        "assess understanding of systems, trade-offs and best practices."
    )
    _CRITERIA = """
EVALUATION CRITERIA:
1. Technical Assessment (40%): understanding, approach, depth, clarity (0-10 each)
2. Communication Quality (30%): clarity, structure, conciseness
3. Content Quality (30%): relevance, depth, specificity

Focus on technical accuracy, problem-solving approach, and domain knowledge."""
    _DOMAIN_FIELD = (
        '"technical_scores": {"understanding": number, "approach": number, '
        '"depth": number, "clarity": number},'
    )
    _LABEL = "technical"


class CustomDomainPromptStrategy(TechnicalPromptStrategy):
    """
    カスタム領域面接用プロンプト戦略
    """

    _LABEL = "domain-specific"


def get_prompt_strategy(
    category: InterviewCategory, include_improved_example: bool = True
) -> _ResponsePromptBase:
    """面接カテゴリに対応するプロンプト戦略を返す"""
    match category:
        case InterviewCategory.BEHAVIORAL:
            return StarPromptStrategy(include_improved_example)
        case InterviewCategory.LEADERSHIP:
            return LeadershipPromptStrategy(include_improved_example)
        case InterviewCategory.TECHNICAL:
            return TechnicalPromptStrategy(include_improved_example)
        case InterviewCategory.CUSTOM:
            return CustomDomainPromptStrategy(include_improved_example)
        case _:
            raise ValueError(f"Invalid interview category: '{category}'")


class SessionOverviewPromptStrategy:
    """
    セッション総評用プロンプト戦略

    責務:
    - 面接全体を俯瞰するコーチとしてのシステムプロンプト提供
    - 全回答と採点結果をまとめたユーザープロンプト構築
    """

    @property
    def system_prompt(self) -> str:
        """セッション総評用システムプロンプト"""
        return """You are an interview coach reviewing a complete practice interview.
Summarize the candidate's overall performance across all answers.

Return ONLY valid JSON matching this structure:
{
  "overall_feedback": "4-6 sentence narrative of overall performance",
  "pattern_insights": ["recurring pattern 1", "recurring pattern 2"],
  "next_steps": ["concrete next step 1", "concrete next step 2"]
}"""

    def build_user_prompt(
        self,
        responses: Sequence[QuestionResponse],
        records: Sequence[AnalysisRecord],
        summary: SessionSummary,
    ) -> str:
        """
        セッション総評用のユーザープロンプトを構築

        Args:
            responses: 再構成済みの回答（質問順）
            records: 採点結果（質問順）
            summary: 集計結果

        Returns:
            str: 構築されたユーザープロンプト
        """
        scores = {record.question_id: record.overall_score for record in records}
        answers = "\n\n".join(
            f"Q{i}. {response.question_text}\n"
            f"Score: {scores.get(response.question_id, 'n/a')}\n"
            f'Answer: "{response.answer_text}"'
            for i, response in enumerate(responses, start=1)
        )
        return f"""Review this interview session:

QUESTIONS ANSWERED: {summary.questions_answered} of {summary.total_questions}
AVERAGE SCORE: {summary.average_score:.1f}
READINESS: {summary.readiness_level.value}
TOP STRENGTHS: {", ".join(summary.overall_strengths) or "none"}
TOP IMPROVEMENTS: {", ".join(summary.overall_improvements) or "none"}

{answers}

Provide the session overview in JSON format."""
