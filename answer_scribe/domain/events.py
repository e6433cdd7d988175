#!/usr/bin/env python3
"""
Answer Scribe - Events (Pub/Sub)
ドメイン層: イベント駆動アーキテクチャの中核
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum

from blinker import Signal

from .models import AnalysisRecord, SessionSummary, TranscriptionResult

# ========================================
# イベント名定数
# ========================================
EVENT_MESSAGE_POSTED = "message_posted"
EVENT_TRANSCRIPT_ACQUIRED = "transcript_acquired"
EVENT_RESPONSE_ANALYZED = "response_analyzed"
EVENT_SESSION_SCORED = "session_scored"


# ========================================
# イベント型定義
# ========================================


class MessageLevel(str, Enum):
    """メッセージレベル"""

    INFO = "info"
    SUCCESS = "success"
    WARNING = "warning"
    ERROR = "error"


@dataclass(frozen=True)
class MessagePostedEvent:
    """
    メッセージ投稿イベント

    システム状態の変化やユーザーへの通知メッセージを表示する際に発行される。
    timestampは省略時に自動的に現在時刻が設定される。
    """

    message: str  # 表示するメッセージ
    level: MessageLevel  # メッセージレベル（INFO/SUCCESS/WARNING/ERROR）
    timestamp: datetime = field(default_factory=datetime.now)


@dataclass(frozen=True)
class TranscriptAcquiredEvent:
    """
    文字起こし取得イベント

    セッション全体の文字起こしが確定した際に発行される。
    """

    result: TranscriptionResult
    source: str  # "streamed" | "batch"


@dataclass(frozen=True)
class ResponseAnalyzedEvent:
    """
    回答採点完了イベント

    1つの回答の採点（AIまたはフォールバック）が完了した際に発行される。
    """

    record: AnalysisRecord


@dataclass(frozen=True)
class SessionScoredEvent:
    """
    セッション集計完了イベント
    """

    summary: SessionSummary


# イベント型のユニオン（型チェック用）
Event = (
    MessagePostedEvent
    | TranscriptAcquiredEvent
    | ResponseAnalyzedEvent
    | SessionScoredEvent
)


# ========================================
# グローバルシグナル定義
# ========================================
message_posted = Signal(EVENT_MESSAGE_POSTED)  # MessagePostedEvent
transcript_acquired = Signal(EVENT_TRANSCRIPT_ACQUIRED)  # TranscriptAcquiredEvent
response_analyzed = Signal(EVENT_RESPONSE_ANALYZED)  # ResponseAnalyzedEvent
session_scored = Signal(EVENT_SESSION_SCORED)  # SessionScoredEvent


def post_message(sender: object, message: str, level: MessageLevel) -> None:
    """message_postedシグナルの送信ヘルパー"""
    message_posted.send(sender, event=MessagePostedEvent(message=message, level=level))
