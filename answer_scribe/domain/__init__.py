#!/usr/bin/env python3
"""
Answer Scribe - Domain Layer
ドメイン層：ビジネスエンティティ、イベント、設定
"""

# モデルとデータ構造
from .models import (
    AnalysisRecord,
    BatchRecording,
    CostLedgerEntry,
    CostPeriod,
    CostScope,
    FillerWordReport,
    InterviewCategory,
    LimitStatus,
    MediaBlob,
    PipelineError,
    QuestionResponse,
    QuestionSegment,
    ReadinessLevel,
    ResponseLength,
    ScoreDistribution,
    ScoringState,
    SessionResult,
    SessionSummary,
    SpeakingPace,
    SpeechMetrics,
    StreamedTranscript,
    TranscribedSentence,
    TranscribedWord,
    TranscriptionResult,
    TranscriptSource,
)

# 例外
from .errors import (
    AnswerScribeError,
    PipelineInputError,
    ScoringRequestError,
    ScoringResponseError,
    SessionAbortedError,
    StreamingSessionAbortedError,
    TranscriptionError,
)

# イベント（Pub/Sub）
from .events import (
    MessageLevel,
    MessagePostedEvent,
    ResponseAnalyzedEvent,
    SessionScoredEvent,
    TranscriptAcquiredEvent,
    message_posted,
    post_message,
    response_analyzed,
    session_scored,
    transcript_acquired,
)

# 設定スキーマ（Pydantic）
from .settings import (
    AnalysisSettings,
    AppSettings,
    CostLimitSettings,
    CostSettings,
    ModelPricing,
    RetrySettings,
    ScoringBackend,
    SegmentationSettings,
    Settings,
    TranscriptionSettings,
)

__all__ = [
    # モデル
    "AnalysisRecord",
    "BatchRecording",
    "CostLedgerEntry",
    "CostPeriod",
    "CostScope",
    "FillerWordReport",
    "InterviewCategory",
    "LimitStatus",
    "MediaBlob",
    "PipelineError",
    "QuestionResponse",
    "QuestionSegment",
    "ReadinessLevel",
    "ResponseLength",
    "ScoreDistribution",
    "ScoringState",
    "SessionResult",
    "SessionSummary",
    "SpeakingPace",
    "SpeechMetrics",
    "StreamedTranscript",
    "TranscribedSentence",
    "TranscribedWord",
    "TranscriptionResult",
    "TranscriptSource",
    # 例外
    "AnswerScribeError",
    "PipelineInputError",
    "ScoringRequestError",
    "ScoringResponseError",
    "SessionAbortedError",
    "StreamingSessionAbortedError",
    "TranscriptionError",
    # イベント
    "MessageLevel",
    "MessagePostedEvent",
    "ResponseAnalyzedEvent",
    "SessionScoredEvent",
    "TranscriptAcquiredEvent",
    "message_posted",
    "post_message",
    "response_analyzed",
    "session_scored",
    "transcript_acquired",
    # 設定
    "AnalysisSettings",
    "AppSettings",
    "CostLimitSettings",
    "CostSettings",
    "ModelPricing",
    "RetrySettings",
    "ScoringBackend",
    "SegmentationSettings",
    "Settings",
    "TranscriptionSettings",
]
