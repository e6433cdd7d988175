#!/usr/bin/env python3
"""
Answer Scribe - Retry Policy Module
一時的な失敗に対するリトライ判断（指数バックオフ）を管理するモジュール
"""

from dataclasses import dataclass
from enum import Enum, auto

from answer_scribe.domain import RetrySettings


class RetryAction(Enum):
    """失敗に対するアクション"""

    RETRY = auto()  # 待機してから再試行
    GIVE_UP = auto()  # 諦めてフォールバック


@dataclass(frozen=True)
class RetryDecision:
    """
    リトライ判断の結果

    Attributes:
        action: 実行すべきアクション
        delay_sec: 再試行前の待機時間（RETRY時のみ）
        reason: 判断の理由
    """

    action: RetryAction
    delay_sec: float = 0.0
    reason: str | None = None


class RetryPolicy:
    """
    リトライポリシー

    HTTPステータスを「リトライ可能」「リトライ不可」に分類し、
    リトライ可能な失敗は最大max_retries回まで指数バックオフで再試行する。
    ステータスなし（タイムアウト・通信エラー）はリトライ可能として扱う。
    分類表にないステータスはリトライしない。
    """

    def __init__(self, settings: RetrySettings) -> None:
        self.settings = settings
        self.current_attempt = 0  # 実行済みのリトライ回数

    def reset(self) -> None:
        """状態をリセット（新しい呼び出しの開始時に呼ぶ）"""
        self.current_attempt = 0

    def get_attempt_info(self) -> tuple[int, int]:
        """
        現在の試行情報を返す

        Returns:
            tuple[int, int]: (現在の試行番号 (1-based), 最大試行回数)
        """
        return (self.current_attempt + 1, self.settings.max_retries + 1)

    def delay_for(self, retry_index: int) -> float:
        """
        retry_index回目（0始まり）のリトライ前の待機時間

        Examples:
            >>> RetryPolicy(RetrySettings()).delay_for(2)
            4.0
        """
        delay = self.settings.base_delay_sec * (
            self.settings.backoff_multiplier**retry_index
        )
        return min(delay, self.settings.max_delay_sec)

    def is_retryable(self, status_code: int | None) -> bool:
        """ステータスがリトライ可能かどうか"""
        if status_code is None:
            return True
        return status_code in self.settings.retryable_status_codes

    def evaluate_failure(self, status_code: int | None, reason: str) -> RetryDecision:
        """
        失敗を評価し、次のアクションを決定する

        Args:
            status_code: HTTPステータス（タイムアウト・通信エラーはNone）
            reason: 失敗の内容

        Returns:
            RetryDecision: 評価結果とアクション
        """
        if not self.is_retryable(status_code):
            return RetryDecision(
                action=RetryAction.GIVE_UP,
                reason=f"Non-retryable error ({status_code}): {reason}",
            )

        if self.current_attempt < self.settings.max_retries:
            delay = self.delay_for(self.current_attempt)
            self.current_attempt += 1
            return RetryDecision(
                action=RetryAction.RETRY, delay_sec=delay, reason=reason
            )

        return RetryDecision(
            action=RetryAction.GIVE_UP,
            reason=f"Max retries reached. Last error: {reason}",
        )
