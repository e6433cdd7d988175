#!/usr/bin/env python3
"""
Answer Scribe - Settings Schema
設定のスキーマ定義（Pydanticモデル）
"""

from enum import StrEnum

from pydantic import BaseModel, Field, computed_field, model_validator
from pydantic_settings import BaseSettings
from typing_extensions import Self

from .models import InterviewCategory


# ========================================
# Helper Functions
# ========================================
def _default_category_models() -> dict[InterviewCategory, str]:
    """カテゴリ別モデル選択のデフォルト値を生成"""
    return {
        # STAR評価が得意な安価なモデル
        InterviewCategory.BEHAVIORAL: "anthropic/claude-3-haiku",
        InterviewCategory.LEADERSHIP: "anthropic/claude-3-haiku",
        # 技術評価向けモデル
        InterviewCategory.TECHNICAL: "openai/gpt-3.5-turbo",
        InterviewCategory.CUSTOM: "openai/gpt-3.5-turbo",
    }


def _default_model_pricing() -> dict[str, "ModelPricing"]:
    """モデル単価のデフォルト値を生成（100万トークンあたりのドル）"""
    return {
        "anthropic/claude-3-haiku": ModelPricing(
            input_per_million_usd=0.25, output_per_million_usd=1.25
        ),
        "openai/gpt-3.5-turbo": ModelPricing(
            input_per_million_usd=0.5, output_per_million_usd=1.5
        ),
        "claude-haiku-4-5-20251001": ModelPricing(
            input_per_million_usd=1.0, output_per_million_usd=5.0
        ),
        "claude-sonnet-4-5-20250929": ModelPricing(
            input_per_million_usd=3.0, output_per_million_usd=15.0
        ),
    }


# ========================================
# Transcription Configuration
# ========================================
class TranscriptionSettings(BaseSettings):
    """音声認識（Deepgram）設定"""

    deepgram_api_key: str | None = Field(
        default=None,
        description="Deepgram APIキー - 未設定の場合は文字起こし呼び出し時にエラー",
    )
    deepgram_base_url: str = Field(
        default="https://api.deepgram.com/v1/listen",
        description="Deepgram APIエンドポイント",
    )
    deepgram_model: str = Field(
        default="nova-2",
        description="Deepgramモデル名",
    )
    deepgram_language: str = Field(
        default="en",
        description="認識言語",
    )
    request_timeout_sec: float = Field(
        default=30.0,
        description="文字起こしリクエストのタイムアウト（秒） - タイムアウトはリトライ可能な失敗として扱う",
    )
    default_mime_type: str = Field(
        default="audio/webm",
        description="チャンクにMIMEタイプがない場合の既定値",
    )

    @computed_field  # type: ignore[prop-decorator]
    @property
    def query_params(self) -> dict[str, str]:
        """Deepgramへのクエリパラメータ"""
        return {
            "model": self.deepgram_model,
            "language": self.deepgram_language,
            "punctuate": "true",
            "diarize": "false",
            "smart_format": "true",
            "words": "true",
            "sentences": "true",
            "paragraphs": "true",
        }


# ========================================
# Segmentation Configuration
# ========================================
class SegmentationSettings(BaseSettings):
    """回答再構成の設定"""

    min_total_duration_sec: float = Field(
        default=30.0,
        description="合計録音時間がこれ未満なら均等分割にフォールバック（秒）",
    )
    min_segment_duration_sec: float = Field(
        default=5.0,
        description="いずれかの区間がこれ未満なら均等分割にフォールバック（秒）",
    )
    boundary_buffer_words: int = Field(
        default=3,
        ge=0,
        description="比例分割の内側境界で前後に広げる単語数 - 隣接区間は最大2倍重なる",
    )
    use_word_timestamps: bool = Field(
        default=False,
        description=(
            "単語タイムスタンプと録音開始時刻がある場合に時刻ベースで切り出すか"
            "（既定は比例分割）"
        ),
    )


# ========================================
# Retry Configuration
# ========================================
class RetrySettings(BaseSettings):
    """一時的な失敗に対するリトライ設定（指数バックオフ）"""

    max_retries: int = Field(
        default=3,
        ge=0,
        description="最大リトライ回数（初回呼び出しは含まない）",
    )
    base_delay_sec: float = Field(
        default=1.0,
        ge=0,
        description="初回リトライ前の待機時間（秒）",
    )
    backoff_multiplier: float = Field(
        default=2.0,
        ge=1.0,
        description="リトライごとの待機時間の倍率",
    )
    max_delay_sec: float = Field(
        default=10.0,
        ge=0,
        description="待機時間の上限（秒）",
    )
    retryable_status_codes: list[int] = Field(
        default=[429, 500, 502, 503, 504],
        description="リトライ対象のHTTPステータス",
    )
    non_retryable_status_codes: list[int] = Field(
        default=[400, 401, 403, 404],
        description="即座にフォールバックするHTTPステータス",
    )

    @model_validator(mode="after")
    def validate_delays(self) -> Self:
        """待機時間の整合性を検証"""
        if self.base_delay_sec > self.max_delay_sec:
            raise ValueError("retry.base_delay_sec must not exceed retry.max_delay_sec")
        overlap = set(self.retryable_status_codes) & set(
            self.non_retryable_status_codes
        )
        if overlap:
            raise ValueError(
                f"retry status codes cannot be both retryable and non-retryable: {sorted(overlap)}"
            )
        return self


# ========================================
# Analysis Configuration
# ========================================
class ScoringBackend(StrEnum):
    """AI採点バックエンドの種類"""

    OPENROUTER = "openrouter"
    CLAUDE = "claude"


class ModelPricing(BaseModel):
    """モデル単価（100万トークンあたりのドル）"""

    input_per_million_usd: float = Field(ge=0)
    output_per_million_usd: float = Field(ge=0)


class AnalysisSettings(BaseSettings):
    """AI採点設定"""

    enabled: bool = Field(
        default=True,
        description="AI採点の有効/無効 - 無効時は常にフォールバック採点",
    )
    backend: ScoringBackend = Field(
        default=ScoringBackend.OPENROUTER,
        description="採点バックエンド - openrouter または claude",
    )
    # OpenRouter固有設定
    openrouter_api_key: str | None = Field(
        default=None,
        description="OpenRouter APIキー - backend='openrouter' の場合に必要",
    )
    openrouter_base_url: str = Field(
        default="https://openrouter.ai/api/v1",
        description="OpenRouter APIのベースURL",
    )
    site_url: str = Field(
        default="https://amplifyinterview.com",
        description="OpenRouterに送るHTTP-Refererヘッダ",
    )
    site_title: str = Field(
        default="Amplify Interview",
        description="OpenRouterに送るX-Titleヘッダ",
    )
    # Claude固有設定
    anthropic_api_key: str | None = Field(
        default=None,
        description="Anthropic APIキー - backend='claude' の場合に必要",
    )
    # 共通設定
    category_models: dict[InterviewCategory, str] = Field(
        default_factory=_default_category_models,
        description="面接カテゴリ → モデルIDの対応表",
    )
    pricing: dict[str, ModelPricing] = Field(
        default_factory=_default_model_pricing,
        description="モデルID → 単価",
    )
    temperature: float = Field(
        default=0.7,
        description="生成の確率性",
    )
    max_tokens: int = Field(
        default=2000,
        description="最大出力トークン数",
    )
    request_timeout_sec: float = Field(
        default=30.0,
        description="採点リクエストのタイムアウト（秒）",
    )
    concurrency: int = Field(
        default=3,
        ge=1,
        description="回答の同時採点数",
    )
    include_improved_example: bool = Field(
        default=True,
        description="改善例の生成を依頼するか",
    )
    session_overview_enabled: bool = Field(
        default=True,
        description="セッション全体の総評をAIに依頼するか",
    )

    @model_validator(mode="after")
    def validate_backend_config(self) -> Self:
        """バックエンド固有の必須設定とモデル単価を検証"""
        missing = [
            model for model in self.category_models.values() if model not in self.pricing
        ]
        if missing:
            raise ValueError(
                f"analysis.pricing is missing entries for models: {sorted(set(missing))}"
            )

        if not self.enabled:
            return self

        if self.backend == ScoringBackend.OPENROUTER:
            if not self.openrouter_api_key:
                raise ValueError(
                    "analysis.openrouter_api_key is required when backend='openrouter'"
                )
        elif self.backend == ScoringBackend.CLAUDE:
            if not self.anthropic_api_key:
                raise ValueError(
                    "analysis.anthropic_api_key is required when backend='claude'"
                )

        return self

    def select_model(self, category: InterviewCategory) -> str:
        """カテゴリに対応するモデルIDを返す"""
        return self.category_models[category]


# ========================================
# Cost Configuration
# ========================================
class CostLimitSettings(BaseModel):
    """スコープごとのコスト上限（セント）"""

    daily_limit_cents: int = Field(ge=0, description="1日あたりの上限")
    monthly_limit_cents: int = Field(ge=0, description="1ヶ月あたりの上限")


class CostSettings(BaseSettings):
    """コスト台帳の設定"""

    user_limits: CostLimitSettings = Field(
        default_factory=lambda: CostLimitSettings(
            daily_limit_cents=500, monthly_limit_cents=5000
        ),
        description="ユーザー単位の上限（$5.00/日, $50.00/月）",
    )
    session_limits: CostLimitSettings = Field(
        default_factory=lambda: CostLimitSettings(
            daily_limit_cents=100, monthly_limit_cents=100
        ),
        description="セッション単位の上限（$1.00）",
    )
    warning_threshold_percent: float = Field(
        default=80.0,
        description="警告とする使用率（%）",
    )
    critical_threshold_percent: float = Field(
        default=95.0,
        description="危険とする使用率（%）",
    )
    estimated_call_cost_cents: int = Field(
        default=1,
        ge=0,
        description="呼び出し前に予約する見積もりコスト（セント）",
    )

    @model_validator(mode="after")
    def validate_thresholds(self) -> Self:
        """警告閾値 < 危険閾値 を検証"""
        if not 0 < self.warning_threshold_percent < self.critical_threshold_percent:
            raise ValueError(
                "cost.warning_threshold_percent must be positive and below critical_threshold_percent"
            )
        return self


# ========================================
# Application Configuration
# ========================================
class AppSettings(BaseSettings):
    """アプリケーション全体設定"""

    save_json: bool = Field(
        default=True,
        description="セッション完了時にJSON形式で保存するかどうか",
    )
    output_dir: str = Field(
        default=".",
        description="JSON出力先ディレクトリ",
    )
    transcription_retry_enabled: bool = Field(
        default=True,
        description="一括アップロードの一時的な失敗をリトライするか",
    )
    max_error_detail_length: int = Field(
        default=200,
        description="エラー詳細の最大表示文字数",
    )


# ========================================
# Main Settings Class
# ========================================
class Settings(BaseSettings):
    """
    Answer Scribe全体設定

    設定の読み込み優先順位（後勝ち）:
    1. デフォルト値（各Settingsクラス内）
    2. config.toml（プロジェクトルート）
    3. config.local.toml（プロジェクトルート）
    """

    transcription: TranscriptionSettings = Field(default_factory=TranscriptionSettings)
    segmentation: SegmentationSettings = Field(default_factory=SegmentationSettings)
    retry: RetrySettings = Field(default_factory=RetrySettings)
    analysis: AnalysisSettings = Field(default_factory=AnalysisSettings)
    cost: CostSettings = Field(default_factory=CostSettings)
    app: AppSettings = Field(default_factory=AppSettings)
