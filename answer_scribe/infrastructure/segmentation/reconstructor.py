#!/usr/bin/env python3
"""
Answer Scribe - Segment Reconstructor
インフラ層：セッション全体の文字起こしを質問ごとの回答に分割する
"""

import math
import re
from collections.abc import Sequence
from enum import StrEnum
from itertools import accumulate

from answer_scribe.domain import (
    MessageLevel,
    QuestionResponse,
    QuestionSegment,
    SegmentationSettings,
    TranscribedWord,
    TranscriptionResult,
    TranscriptSource,
    post_message,
)
from answer_scribe.domain.constants import (
    MIN_WINDOW_EPSILON_SEC,
    NO_TRANSCRIPTION_SENTINEL,
    SENTENCE_GAP_BREAK_SEC,
)
from answer_scribe.infrastructure.transcription import TranscriptionAcquirer

from .speech_metrics import compute_speech_metrics

_SENTENCE_END_PATTERN = re.compile(r"[.!?]$")
_SENTENCE_START_PATTERN = re.compile(r"(^|[.!?]\s+)([a-z])")


class ReconstructionMode(StrEnum):
    """分割モード"""

    EQUAL_SPLIT = "equal_split"  # 時間情報が信用できない場合の均等分割
    PROPORTIONAL = "proportional"  # 区間長の比率による分割（通常）
    TIMESTAMP = "timestamp"  # 単語タイムスタンプによる切り出し


# ========================================
# 単語インデックスの窓計算
# ========================================
def equal_windows(segment_count: int, word_count: int) -> list[tuple[int, int]]:
    """
    語列を連続するN個の窓に均等分割

    窓同士は重ならず隙間もない（長さの合計は常にword_count）。

    Examples:
        >>> equal_windows(3, 10)
        [(0, 3), (3, 6), (6, 10)]
    """
    if segment_count <= 0:
        return []
    return [
        (i * word_count // segment_count, (i + 1) * word_count // segment_count)
        for i in range(segment_count)
    ]


def proportional_windows(
    durations: Sequence[float], word_count: int, buffer_words: int
) -> list[tuple[int, int]]:
    """
    区間長の比率で語列を分割し、内側の境界だけbuffer_words語ずつ広げる

    先頭区間の開始は常に0、末尾区間の終了は常にword_count。
    隣接する窓は境界で最大2*buffer_words語重なる。

    Examples:
        >>> proportional_windows([40, 35, 45], 200, 3)
        [(0, 69), (63, 128), (122, 200)]
    """
    if not durations:
        return []
    total = sum(durations)
    if total <= 0:
        return equal_windows(len(durations), word_count)

    cumulative = list(accumulate(durations, initial=0.0))
    last = len(durations) - 1
    windows = []
    for i in range(len(durations)):
        start = 0 if i == 0 else math.floor(cumulative[i] / total * word_count)
        end = word_count if i == last else math.floor(cumulative[i + 1] / total * word_count)
        if i > 0:
            start = max(0, start - buffer_words)
        if i < last:
            end = min(word_count, end + buffer_words)
        windows.append((start, end))
    return windows


def format_words(words: Sequence[TranscribedWord]) -> str:
    """
    タイムスタンプ付き単語から読みやすい文章を組み立てる

    無音の間隔が0.8秒以上あれば文を区切り、末尾に句点を補い、文頭を大文字にする。
    """
    pieces: list[str] = []
    previous: TranscribedWord | None = None
    for word in words:
        if previous is not None and pieces:
            gap = max(0.0, word.start - previous.end)
            if gap >= SENTENCE_GAP_BREAK_SEC and not _SENTENCE_END_PATTERN.search(pieces[-1]):
                pieces[-1] += "."
        pieces.append(word.word)
        previous = word

    if not pieces:
        return ""
    if not _SENTENCE_END_PATTERN.search(pieces[-1]):
        pieces[-1] += "."

    return _SENTENCE_START_PATTERN.sub(
        lambda m: m.group(1) + m.group(2).upper(), " ".join(pieces)
    )


class SegmentReconstructor:
    """
    回答再構成

    責務:
    - 分割モードの選択（時間情報の信頼性に基づく）
    - 区間ごとの回答テキスト切り出し
    - 回答ごとの発話メトリクス算出

    比例分割の境界は意図的に重ねる（文の欠落より境界語の重複を許容する）。
    """

    def __init__(self, settings: SegmentationSettings) -> None:
        self.settings = settings

    def is_degenerate(self, segments: Sequence[QuestionSegment]) -> bool:
        """時間比率による分割が信用できないほど短い録音かどうか"""
        total = sum(segment.duration for segment in segments)
        return total < self.settings.min_total_duration_sec or any(
            segment.duration < self.settings.min_segment_duration_sec
            for segment in segments
        )

    def select_mode(
        self,
        transcript: TranscriptionResult,
        segments: Sequence[QuestionSegment],
        recording_start_ms: int | None,
    ) -> ReconstructionMode:
        """分割モードを選択"""
        if (
            self.settings.use_word_timestamps
            and transcript.words
            and recording_start_ms is not None
        ):
            return ReconstructionMode.TIMESTAMP
        if self.is_degenerate(segments):
            return ReconstructionMode.EQUAL_SPLIT
        return ReconstructionMode.PROPORTIONAL

    def reconstruct(
        self,
        transcript: TranscriptionResult,
        segments: Sequence[QuestionSegment],
        recording_start_ms: int | None = None,
    ) -> list[QuestionResponse]:
        """
        文字起こしを質問ごとの回答に分割

        Args:
            transcript: セッション全体の文字起こし結果
            segments: 記録順の質問区間
            recording_start_ms: 録音開始時刻（時刻ベースの切り出しに使用）

        Returns:
            list[QuestionResponse]: 区間と同じ順序の回答リスト
        """
        if not segments:
            return []

        mode = self.select_mode(transcript, segments, recording_start_ms)
        post_message(
            self,
            f"Reconstructing {len(segments)} answers ({mode.value})",
            MessageLevel.INFO,
        )

        if mode == ReconstructionMode.TIMESTAMP:
            assert recording_start_ms is not None
            texts = [
                self._slice_by_timestamps(transcript, segment, recording_start_ms)
                for segment in segments
            ]
        else:
            words = transcript.text.split()
            if mode == ReconstructionMode.EQUAL_SPLIT:
                windows = equal_windows(len(segments), len(words))
            else:
                windows = proportional_windows(
                    [segment.duration for segment in segments],
                    len(words),
                    self.settings.boundary_buffer_words,
                )
            texts = [" ".join(words[start:end]) for start, end in windows]

        return [
            self._build_response(segment, text, transcript.confidence)
            for segment, text in zip(segments, texts)
        ]

    async def reconstruct_source(
        self,
        source: TranscriptSource,
        segments: Sequence[QuestionSegment],
        acquirer: TranscriptionAcquirer,
        recording_start_ms: int | None = None,
    ) -> tuple[TranscriptionResult | None, list[QuestionResponse]]:
        """
        取得戦略を解決してから分割

        区間がなければ文字起こしを呼ばずに空リストを返す。

        Returns:
            tuple: (文字起こし結果 or None, 回答リスト)

        Raises:
            TranscriptionError: 一括アップロードに失敗した場合
        """
        if not segments:
            post_message(
                self, "No question segments recorded", MessageLevel.WARNING
            )
            return None, []

        transcript = await acquirer.acquire(source)
        return transcript, self.reconstruct(transcript, segments, recording_start_ms)

    @staticmethod
    def _slice_by_timestamps(
        transcript: TranscriptionResult,
        segment: QuestionSegment,
        recording_start_ms: int,
    ) -> str:
        """録音開始からの秒数に変換した区間で、文（なければ単語）を切り出す"""
        start_sec = max(0.0, (segment.start_time - recording_start_ms) / 1000)
        end_sec = max(
            start_sec + MIN_WINDOW_EPSILON_SEC,
            (segment.end_time - recording_start_ms) / 1000,
        )

        # 句読点を保つため文単位を優先
        text = " ".join(
            sentence.text
            for sentence in transcript.sentences
            if sentence.end > start_sec and sentence.start < end_sec
        )
        if text.strip():
            return text

        words = transcript.words
        start_index = next(
            (i for i, w in enumerate(words) if w.end > start_sec), None
        )
        if start_index is None:
            return ""
        end_index = next(
            (i for i, w in enumerate(words) if w.start >= end_sec), len(words)
        )
        return format_words(words[start_index:end_index])

    @staticmethod
    def _build_response(
        segment: QuestionSegment, text: str, confidence: float
    ) -> QuestionResponse:
        return QuestionResponse(
            question_id=segment.question_id,
            question_text=segment.question_text,
            answer_text=text or NO_TRANSCRIPTION_SENTINEL,
            duration=segment.duration,
            transcript_excerpt=text,
            metrics=compute_speech_metrics(text, segment.duration, confidence),
            timestamp=segment.start_time,
        )
