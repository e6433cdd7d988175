#!/usr/bin/env python3
"""
Answer Scribe - Scoring Payload
AIが返す採点JSONのスキーマ（Pydantic）と抽出処理
"""

import json
import re
from typing import Any, TypeVar

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from answer_scribe.domain import ResponseLength, ScoringResponseError, SpeakingPace

# <think>...</think> タグ削除用の事前コンパイル済み正規表現
_THINK_TAG_PATTERN = re.compile(r"<think>.*?</think>", re.DOTALL)
# ```json ... ``` ブロック抽出用
_JSON_BLOCK_PATTERN = re.compile(r"```(?:json)?\s*\n(.*?)\n?```", re.DOTALL)
# JSON文字列内で不正になる制御文字（改行・タブは残す）
_CONTROL_CHAR_PATTERN = re.compile(r"[\x00-\x08\x0b\x0c\x0e-\x1f\x7f-\x9f]")

PayloadT = TypeVar("PayloadT", bound=BaseModel)


class FillerWordsPayload(BaseModel):
    """フィラー語の集計"""

    words: list[str] = Field(default_factory=list)
    counts: dict[str, int] = Field(default_factory=dict)
    total: int = Field(default=0, ge=0)


class ScoringPayload(BaseModel):
    """回答1件分の採点結果"""

    model_config = ConfigDict(extra="ignore")

    overall_score: float = Field(ge=0, le=100)
    communication_scores: dict[str, float]
    content_scores: dict[str, float]
    star_scores: dict[str, float] | None = None
    technical_scores: dict[str, float] | None = None
    strengths: list[str]
    improvements: list[str]
    actionable_feedback: str
    improved_example: str = ""
    filler_words: FillerWordsPayload = Field(default_factory=FillerWordsPayload)
    speaking_pace: SpeakingPace
    confidence_score: float = Field(ge=0, le=10)
    response_length_assessment: ResponseLength

    @property
    def domain_scores(self) -> dict[str, float]:
        """カテゴリ固有のスコア（STAR or 技術）"""
        return self.star_scores or self.technical_scores or {}


class SessionOverviewPayload(BaseModel):
    """セッション全体の総評"""

    model_config = ConfigDict(extra="ignore")

    overall_feedback: str
    pattern_insights: list[str] = Field(default_factory=list)
    next_steps: list[str] = Field(default_factory=list)


def extract_json_text(text: str) -> str:
    """
    モデル出力からJSON部分を取り出す

    <think>タグを削除し、コードフェンスがあれば最後のブロックを使い、
    それでも前後に文字があれば最初の "{" から最後の "}" までを切り出す。

    Examples:
        >>> extract_json_text('<think>hmm</think>```json\\n{"a": 1}\\n```')
        '{"a": 1}'
    """
    cleaned = _THINK_TAG_PATTERN.sub("", text)
    blocks = _JSON_BLOCK_PATTERN.findall(cleaned)
    if blocks:
        cleaned = blocks[-1]
    cleaned = _CONTROL_CHAR_PATTERN.sub("", cleaned).strip()

    if not (cleaned.startswith("{") and cleaned.endswith("}")):
        start = cleaned.find("{")
        end = cleaned.rfind("}")
        if start != -1 and end > start:
            cleaned = cleaned[start : end + 1]
    return cleaned


def parse_payload(text: str, model: type[PayloadT]) -> PayloadT:
    """
    モデル出力をパースしてスキーマ検証する

    Raises:
        ScoringResponseError: JSONとして読めない、または必須フィールドが不正な場合
    """
    if not text or not text.strip():
        raise ScoringResponseError("Empty response from scoring model")

    try:
        data: Any = json.loads(extract_json_text(text))
    except json.JSONDecodeError as e:
        raise ScoringResponseError(f"JSON parsing failed: {e}") from e

    try:
        return model.model_validate(data)
    except ValidationError as e:
        raise ScoringResponseError(
            f"Invalid scoring payload: {e.error_count()} validation error(s)"
        ) from e
