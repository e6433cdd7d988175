#!/usr/bin/env python3
"""
Answer Scribe - Segment Tracker
インフラ層：1本の連続録音の中で、質問ごとの回答区間を記録する
"""

import time
from collections.abc import Callable

from answer_scribe.domain import MessageLevel, QuestionSegment, post_message


def _epoch_ms() -> int:
    return int(time.time() * 1000)


class SegmentTracker:
    """
    質問区間トラッカー

    責務:
    - 質問の開始・終了時刻（エポックミリ秒）の記録
    - 区間の順序保証（同時に開いている区間は最大1つ、区間同士は重ならない）
    - 録音開始時刻の保持（時刻ベースの再構成に使用）

    UIは質問を1つずつ順番に提示するため、開いている区間はポインタ1つで管理する。
    誤ったタイミングの呼び出しは警告のみで、面接を中断させない。
    """

    def __init__(self, clock: Callable[[], int] = _epoch_ms) -> None:
        """
        Args:
            clock: 現在時刻（エポックミリ秒）を返す関数（テスト時に差し替え）
        """
        self._clock = clock
        self._segments: list[QuestionSegment] = []
        self._open_question: tuple[str, str] | None = None
        self._open_start_ms: int | None = None
        self._recording_start_ms: int | None = None

    # ========================================
    # 録音開始
    # ========================================
    def mark_recording_start(self) -> None:
        """録音開始時刻を記録（録音開始直後に呼ぶ）"""
        self._recording_start_ms = self._clock()

    @property
    def recording_start_ms(self) -> int | None:
        """録音開始時刻（エポックミリ秒、未記録ならNone）"""
        return self._recording_start_ms

    # ========================================
    # 区間の記録
    # ========================================
    def start_segment(self, question_id: str, question_text: str) -> None:
        """
        質問区間を開始

        すでに開いている区間がある場合は警告して何もしない。
        開始時刻は直前の区間の終了時刻より前にならないよう補正する。
        """
        if self._open_question is not None:
            open_id = self._open_question[0]
            post_message(
                self,
                f"Segment for question {open_id} is still open; ignoring start of {question_id}",
                MessageLevel.WARNING,
            )
            return

        start_ms = self._clock()
        if self._segments:
            start_ms = max(start_ms, self._segments[-1].end_time)

        self._open_question = (question_id, question_text)
        self._open_start_ms = start_ms

    def end_segment(
        self, question_id: str, question_text: str
    ) -> QuestionSegment | None:
        """
        開いている質問区間を閉じる

        Returns:
            QuestionSegment | None: 確定した区間（開いている区間がなければNone）
        """
        if self._open_question is None or self._open_start_ms is None:
            post_message(
                self,
                f"No open segment to end for question {question_id}",
                MessageLevel.WARNING,
            )
            return None

        open_id, open_text = self._open_question
        if open_id != question_id:
            # 区間は開始時の質問として確定させる
            post_message(
                self,
                f"End requested for question {question_id} but {open_id} is open; closing {open_id}",
                MessageLevel.WARNING,
            )

        end_ms = max(self._clock(), self._open_start_ms)
        segment = QuestionSegment(
            question_id=open_id,
            question_text=open_text,
            start_time=self._open_start_ms,
            end_time=end_ms,
        )
        self._segments.append(segment)
        self._open_question = None
        self._open_start_ms = None
        return segment

    # ========================================
    # 参照・リセット
    # ========================================
    def get_segments(self) -> tuple[QuestionSegment, ...]:
        """確定済み区間を記録順に返す"""
        return tuple(self._segments)

    @property
    def current_question_id(self) -> str | None:
        """現在開いている区間の質問ID"""
        return self._open_question[0] if self._open_question else None

    @property
    def has_open_segment(self) -> bool:
        return self._open_question is not None

    @property
    def total_duration(self) -> float:
        """確定済み区間の合計時間（秒）"""
        return sum(segment.duration for segment in self._segments)

    def clear(self) -> None:
        """全状態をリセット（セッション終了時に呼ぶ、何度呼んでもよい）"""
        self._segments.clear()
        self._open_question = None
        self._open_start_ms = None
        self._recording_start_ms = None
