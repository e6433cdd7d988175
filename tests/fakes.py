"""テスト用のフェイクとデータ生成ヘルパー"""

import json
from collections.abc import Iterable
from datetime import datetime
from typing import Any

from answer_scribe.domain import (
    MediaBlob,
    QuestionResponse,
    SpeechMetrics,
    TranscriptionResult,
)
from answer_scribe.infrastructure.ai import ScoringClient, ScoringCompletion


def scoring_json(overall_score: float = 78, **overrides: Any) -> str:
    """妥当な採点JSONを生成"""
    payload: dict[str, Any] = {
        "overall_score": overall_score,
        "communication_scores": {"clarity": 8, "structure": 7},
        "content_scores": {"relevance": 8, "depth": 7},
        "star_scores": {"situation": 8, "task": 7, "action": 8, "result": 6},
        "strengths": ["Clear structure", "Concrete example"],
        "improvements": ["Quantify the result"],
        "actionable_feedback": "Add measurable outcomes to your answer.",
        "improved_example": "In my last role I reduced latency by 40%...",
        "filler_words": {"words": ["um"], "counts": {"um": 1}, "total": 1},
        "speaking_pace": "appropriate",
        "confidence_score": 7.5,
        "response_length_assessment": "appropriate",
    }
    payload.update(overrides)
    return json.dumps(payload)


class FakeScoringClient(ScoringClient):
    """
    採点クライアントのフェイク

    outcomesを先頭から順に消費し、例外ならraise、文字列なら応答テキストとして返す。
    使い切った後はdefault_textを返す。
    """

    def __init__(
        self,
        outcomes: Iterable[str | Exception] = (),
        default_text: str | None = None,
        input_tokens: int = 1000,
        output_tokens: int = 500,
    ) -> None:
        self.outcomes = list(outcomes)
        self.default_text = default_text if default_text is not None else scoring_json()
        self.input_tokens = input_tokens
        self.output_tokens = output_tokens
        self.calls: list[dict[str, Any]] = []
        self.closed = False

    async def __call__(
        self,
        model: str,
        system_prompt: str,
        user_prompt: str,
        temperature: float | None = None,
        max_tokens: int | None = None,
    ) -> ScoringCompletion:
        self.calls.append(
            {"model": model, "system_prompt": system_prompt, "user_prompt": user_prompt}
        )
        outcome = self.outcomes.pop(0) if self.outcomes else self.default_text
        if isinstance(outcome, Exception):
            raise outcome
        return ScoringCompletion(
            text=outcome,
            model=model,
            input_tokens=self.input_tokens,
            output_tokens=self.output_tokens,
        )

    def get_backend_info(self) -> str:
        return "Fake"

    async def aclose(self) -> None:
        self.closed = True


class FakeSpeechToText:
    """音声認識クライアントのフェイク（outcomesを順に返す）"""

    def __init__(self, *outcomes: TranscriptionResult | Exception) -> None:
        self.outcomes = list(outcomes)
        self.recordings: list[MediaBlob] = []

    async def transcribe(self, recording: MediaBlob) -> TranscriptionResult:
        self.recordings.append(recording)
        outcome = self.outcomes.pop(0)
        if isinstance(outcome, Exception):
            raise outcome
        return outcome


class ManualClock:
    """手動で進める時計（エポックミリ秒）"""

    def __init__(self, now_ms: int = 1_700_000_000_000) -> None:
        self.now_ms = now_ms

    def advance(self, seconds: float) -> None:
        self.now_ms += int(seconds * 1000)

    def __call__(self) -> int:
        return self.now_ms


class SleepRecorder:
    """待機時間を記録するだけのsleep"""

    def __init__(self) -> None:
        self.delays: list[float] = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)


def make_response(
    question_id: str = "q1",
    text: str = "I led the migration and we cut costs by 30 percent",
    duration: float = 60.0,
) -> QuestionResponse:
    """採点テスト用の回答"""
    words = text.split()
    return QuestionResponse(
        question_id=question_id,
        question_text=f"Question {question_id}",
        answer_text=text,
        duration=duration,
        transcript_excerpt=text,
        metrics=SpeechMetrics(
            word_count=len(words),
            speaking_rate=int(len(words) / duration * 60) if duration else 0,
            filler_words=(),
            confidence=0.9,
        ),
        timestamp=int(datetime(2026, 10, 19, 9, 0).timestamp() * 1000),
    )

