#!/usr/bin/env python3
"""
Answer Scribe - Domain Models
ドメイン層：ビジネスエンティティとルール（外部依存なし）
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import StrEnum


# ========================================
# 列挙型
# ========================================
class InterviewCategory(StrEnum):
    """面接カテゴリ（モデル選択とプロンプト切り替えに使用）"""

    BEHAVIORAL = "behavioral"
    LEADERSHIP = "leadership"
    TECHNICAL = "technical"
    CUSTOM = "custom"


class LimitStatus(StrEnum):
    """コスト上限チェックの結果"""

    OK = "ok"
    WARNING = "warning"
    CRITICAL = "critical"
    EXCEEDED = "exceeded"


class CostScope(StrEnum):
    """コスト集計スコープ"""

    SESSION = "session"
    USER = "user"


class CostPeriod(StrEnum):
    """コスト集計期間"""

    DAY = "day"
    MONTH = "month"


class ReadinessLevel(StrEnum):
    """面接準備度"""

    READY = "ready"
    NEEDS_PRACTICE = "needs_practice"
    SIGNIFICANT_IMPROVEMENT = "significant_improvement"


class SpeakingPace(StrEnum):
    """話速評価"""

    TOO_FAST = "too_fast"
    APPROPRIATE = "appropriate"
    TOO_SLOW = "too_slow"


class ResponseLength(StrEnum):
    """回答の長さ評価"""

    TOO_SHORT = "too_short"
    APPROPRIATE = "appropriate"
    TOO_LONG = "too_long"


class ScoringState(StrEnum):
    """回答ごとの採点状態"""

    PENDING = "pending"
    RETRYING = "retrying"
    SCORED = "scored"
    FALLBACK_SCORED = "fallback_scored"


# ========================================
# 録音・文字起こし
# ========================================
@dataclass(frozen=True)
class MediaBlob:
    """録音データ（ブラウザのBlob相当）"""

    data: bytes
    mime_type: str = "audio/webm"

    @property
    def size(self) -> int:
        """バイト数"""
        return len(self.data)


@dataclass(frozen=True)
class QuestionSegment:
    """
    1つの質問に回答していた時間区間

    Attributes:
        question_id: 質問ID
        question_text: 質問文
        start_time: 開始時刻（エポックミリ秒）
        end_time: 終了時刻（エポックミリ秒）
    """

    question_id: str
    question_text: str
    start_time: int
    end_time: int

    @property
    def duration(self) -> float:
        """区間の長さ（秒）"""
        return max(0, self.end_time - self.start_time) / 1000


@dataclass(frozen=True)
class TranscribedWord:
    """単語単位のタイムスタンプ（音声先頭からの秒数）"""

    word: str
    start: float
    end: float
    confidence: float | None = None


@dataclass(frozen=True)
class TranscribedSentence:
    """文単位のタイムスタンプ（音声先頭からの秒数）"""

    text: str
    start: float
    end: float


@dataclass(frozen=True)
class TranscriptionResult:
    """セッション全体の文字起こし結果（生成後は不変）"""

    text: str
    words: tuple[TranscribedWord, ...] = ()
    sentences: tuple[TranscribedSentence, ...] = ()
    confidence: float = 0.8
    duration: float = 0.0
    language: str = "en"


@dataclass(frozen=True)
class StreamedTranscript:
    """ストリーミングで取得済みの文字起こし（ネットワーク呼び出し不要）"""

    result: TranscriptionResult


@dataclass(frozen=True)
class BatchRecording:
    """録音全体をアップロードして文字起こしする入力"""

    recording: MediaBlob


# 文字起こし入力の戦略（取得済み or 一括アップロード）
TranscriptSource = StreamedTranscript | BatchRecording


# ========================================
# 回答
# ========================================
@dataclass(frozen=True)
class SpeechMetrics:
    """回答ごとの発話メトリクス"""

    word_count: int
    speaking_rate: int  # words per minute
    filler_words: tuple[str, ...]
    confidence: float

    @property
    def filler_count(self) -> int:
        """フィラー語の出現数"""
        return len(self.filler_words)


@dataclass(frozen=True)
class QuestionResponse:
    """質問ごとに再構成された回答"""

    question_id: str
    question_text: str
    answer_text: str
    duration: float
    transcript_excerpt: str
    metrics: SpeechMetrics
    timestamp: int  # 区間開始（エポックミリ秒）


# ========================================
# AI分析
# ========================================
@dataclass(frozen=True)
class FillerWordReport:
    """フィラー語の集計"""

    counts: dict[str, int]
    total: int


@dataclass(frozen=True)
class AnalysisRecord:
    """回答ごとの採点結果（永続化後は不変）"""

    question_id: str
    category: InterviewCategory
    overall_score: float
    communication_scores: dict[str, float]
    content_scores: dict[str, float]
    domain_scores: dict[str, float]  # STARスコア or 技術スコア
    strengths: tuple[str, ...]
    improvements: tuple[str, ...]
    actionable_feedback: str
    improved_example: str
    filler_words: FillerWordReport
    speaking_pace: SpeakingPace
    confidence_score: float
    response_length_assessment: ResponseLength
    model_used: str
    input_tokens: int
    output_tokens: int
    cost_cents: int
    processing_time_ms: int
    state: ScoringState = ScoringState.SCORED
    fallback_reason: str | None = None

    @property
    def is_fallback(self) -> bool:
        """フォールバック採点かどうか"""
        return self.state == ScoringState.FALLBACK_SCORED

    @property
    def total_tokens(self) -> int:
        """合計トークン数"""
        return self.input_tokens + self.output_tokens


@dataclass(frozen=True)
class ScoreDistribution:
    """スコア分布"""

    excellent: int = 0
    good: int = 0
    fair: int = 0
    needs_improvement: int = 0

    @property
    def total(self) -> int:
        return self.excellent + self.good + self.fair + self.needs_improvement


@dataclass(frozen=True)
class SessionSummary:
    """セッション全体の集計結果"""

    session_id: str
    total_questions: int
    questions_answered: int
    average_score: float
    median_score: float
    score_distribution: ScoreDistribution
    readiness_level: ReadinessLevel
    readiness_score: int
    model_breakdown: dict[str, int]
    total_input_tokens: int
    total_output_tokens: int
    total_cost_cents: int
    overall_strengths: tuple[str, ...]
    overall_improvements: tuple[str, ...]
    pattern_insights: tuple[str, ...]
    next_steps: tuple[str, ...]
    recommended_practice_areas: tuple[str, ...]
    estimated_practice_time: str
    total_duration_seconds: float
    average_time_per_question: float
    overall_feedback: str = ""
    reduced_confidence: bool = False

    @property
    def total_tokens(self) -> int:
        return self.total_input_tokens + self.total_output_tokens


# ========================================
# コスト台帳
# ========================================
@dataclass
class CostLedgerEntry:
    """
    スコープ・期間ごとのコスト集計（加算のみ）

    total_cost_centsは期間内で単調非減少。期間が切り替わると新しいエントリになる。
    """

    scope: CostScope
    scope_id: str
    period: CostPeriod
    period_key: str  # 例: "2026-10-19" / "2026-10"
    total_cost_cents: int = 0
    input_tokens: int = 0
    output_tokens: int = 0
    call_count: int = 0
    model_costs: dict[str, int] = field(default_factory=dict)

    @property
    def token_usage(self) -> int:
        """合計トークン数"""
        return self.input_tokens + self.output_tokens


# ========================================
# セッション結果
# ========================================
@dataclass(frozen=True)
class PipelineError:
    """パイプライン実行中のエラー記録"""

    timestamp: datetime
    message: str


@dataclass(frozen=True)
class SessionResult:
    """録音からフィードバックまでの処理結果（永続化層への受け渡し単位）"""

    session_id: str
    user_id: str
    category: InterviewCategory
    segments: tuple[QuestionSegment, ...]
    transcript: TranscriptionResult
    transcript_source: str  # "streamed" | "batch"
    responses: tuple[QuestionResponse, ...]
    analyses: tuple[AnalysisRecord, ...]
    summary: SessionSummary
    errors: tuple[PipelineError, ...] = ()
    started_at: datetime = field(default_factory=datetime.now)
    completed_at: datetime = field(default_factory=datetime.now)
