#!/usr/bin/env python3
"""
Answer Scribe - CLI View
CLIのView層：Signal購読とコンソール表示
"""

import shutil
import sys

import wcwidth  # type: ignore[import-untyped]
from colorama import Fore, Style  # type: ignore[import-untyped]

from answer_scribe import __version__
from answer_scribe.domain import (
    AnalysisRecord,
    MessageLevel,
    MessagePostedEvent,
    ReadinessLevel,
    ResponseAnalyzedEvent,
    SessionScoredEvent,
    SessionSummary,
    Settings,
    TranscriptAcquiredEvent,
    message_posted,
    response_analyzed,
    session_scored,
    transcript_acquired,
)
from answer_scribe.infrastructure.ai import ScoringClient
from answer_scribe.infrastructure.billing import CostSnapshot, format_cost
from answer_scribe.infrastructure.transcription import DeepgramTranscriber


class CLIView:
    """
    CLI View層

    責務:
    - Signalサブスクリプションとイベント駆動表示
    - 採点結果・セッション集計のフォーマッティング
    """

    _READINESS_COLORS = {
        ReadinessLevel.READY: Fore.GREEN,
        ReadinessLevel.NEEDS_PRACTICE: Fore.YELLOW,
        ReadinessLevel.SIGNIFICANT_IMPROVEMENT: Fore.RED,
    }

    def __init__(self, settings: Settings) -> None:
        """
        CLIViewの初期化とSignalサブスクリプション設定

        Args:
            settings: アプリケーション設定
        """
        self.settings = settings

        # Signalサブスクリプション設定
        transcript_acquired.connect(self._on_transcript_acquired)
        response_analyzed.connect(self._on_response_analyzed)
        session_scored.connect(self._on_session_scored)
        message_posted.connect(self._on_message_posted)

    # ========== Signalハンドラ ==========

    def _on_transcript_acquired(
        self, _sender: object, event: TranscriptAcquiredEvent
    ) -> None:
        """文字起こし取得表示ハンドラ"""
        result = event.result
        preview = self._truncate_text(result.text, self._terminal_width() - 4)
        print(
            f"{Fore.MAGENTA}Transcript ({event.source}, {len(result.words)} words, "
            f"confidence {result.confidence:.2f}){Style.RESET_ALL}"
        )
        print(f"  {preview}")

    def _on_response_analyzed(
        self, _sender: object, event: ResponseAnalyzedEvent
    ) -> None:
        """採点結果表示ハンドラ"""
        self._show_record(event.record)

    def _on_session_scored(self, _sender: object, event: SessionScoredEvent) -> None:
        """セッション集計表示ハンドラ"""
        self._show_summary(event.summary)

    def _on_message_posted(self, _sender: object, event: MessagePostedEvent) -> None:
        """ステータスメッセージ表示ハンドラ"""
        self._show_message(event)

    # ========== 表示メソッド ==========

    def _show_message(self, event: MessagePostedEvent) -> None:
        """メッセージを表示"""
        # メッセージレベルに応じた色を選択
        color_map = {
            MessageLevel.INFO: Fore.CYAN,
            MessageLevel.SUCCESS: Fore.GREEN,
            MessageLevel.WARNING: Fore.YELLOW,
            MessageLevel.ERROR: Fore.RED,
        }
        color = color_map.get(event.level, Fore.WHITE)
        sys.stdout.write(f"{color}{event.message}{Style.RESET_ALL}\n")
        sys.stdout.flush()

    def _show_record(self, record: AnalysisRecord) -> None:
        """回答ごとの採点結果を表示"""
        marker = f" {Fore.YELLOW}(fallback){Style.RESET_ALL}" if record.is_fallback else ""
        print(
            f"{Fore.GREEN}[{record.question_id}]{Style.RESET_ALL} "
            f"score {record.overall_score:.0f}/100, "
            f"confidence {record.confidence_score:.1f}/10, "
            f"pace {record.speaking_pace.value}, "
            f"length {record.response_length_assessment.value}{marker}"
        )
        for strength in record.strengths:
            print(f"  {Fore.GREEN}+{Style.RESET_ALL} {strength}")
        for improvement in record.improvements:
            print(f"  {Fore.YELLOW}-{Style.RESET_ALL} {improvement}")

    def _show_summary(self, summary: SessionSummary) -> None:
        """セッション集計をダッシュボード形式で表示"""
        color = self._READINESS_COLORS.get(summary.readiness_level, Fore.WHITE)
        dist = summary.score_distribution

        print(f"\n{Fore.CYAN}{'─' * 50}{Style.RESET_ALL}")
        print(
            f"Readiness: {color}{summary.readiness_level.value}{Style.RESET_ALL} "
            f"({summary.readiness_score}/100)"
        )
        print(
            f"Answered: {summary.questions_answered}/{summary.total_questions}  "
            f"Average: {summary.average_score}  Median: {summary.median_score}"
        )
        print(
            f"Distribution: excellent {dist.excellent}, good {dist.good}, "
            f"fair {dist.fair}, needs improvement {dist.needs_improvement}"
        )
        if summary.overall_feedback:
            print(f"\n{summary.overall_feedback}")
        for title, items in (
            ("Strengths", summary.overall_strengths),
            ("Improvements", summary.overall_improvements),
            ("Next steps", summary.next_steps),
        ):
            if items:
                print(f"\n{Fore.YELLOW}{title}:{Style.RESET_ALL}")
                for item in items:
                    print(f"  - {item}")
        print(
            f"\nEstimated practice time: {summary.estimated_practice_time}  "
            f"Cost: {format_cost(summary.total_cost_cents)} "
            f"({summary.total_tokens} tokens)"
        )
        if summary.reduced_confidence:
            print(
                f"{Fore.YELLOW}Some answers were scored without AI analysis; "
                f"feedback has reduced confidence.{Style.RESET_ALL}"
            )
        print(f"{Fore.CYAN}{'─' * 50}{Style.RESET_ALL}\n")
        sys.stdout.flush()

    def show_budget(self, snapshot: CostSnapshot) -> None:
        """スコープの使用状況を表示"""
        print(
            f"{Fore.CYAN}Budget ({snapshot.scope.value} {snapshot.scope_id}):{Style.RESET_ALL} "
            f"today {format_cost(snapshot.daily_cost_cents)}"
            f"/{format_cost(snapshot.daily_limit_cents)}, "
            f"month {format_cost(snapshot.monthly_cost_cents)}"
            f"/{format_cost(snapshot.monthly_limit_cents)}, "
            f"remaining {format_cost(snapshot.remaining_cents)}"
        )

    def show_banner(
        self, transcriber: DeepgramTranscriber, scoring_client: ScoringClient | None
    ) -> None:
        """
        起動バナーを表示

        Args:
            transcriber: 文字起こしクライアント
            scoring_client: 採点クライアント（Noneの場合はAI採点無効として表示）
        """
        # バージョン文字列の表示：.dev以降をカット
        version_display = (
            __version__.split(".dev")[0] if ".dev" in __version__ else __version__
        )

        scoring_info = (
            scoring_client.get_backend_info() if scoring_client else "Disabled (fallback only)"
        )
        segmentation = self.settings.segmentation

        banner = f"""
{Fore.CYAN}╔══════════════════════════════════════════╗
║       Answer Scribe v{version_display:<18}  ║
║  Interview Answer Feedback Pipeline      ║
╚══════════════════════════════════════════╝{Style.RESET_ALL}

{Fore.YELLOW}Config:{Style.RESET_ALL}
  - Transcription: {transcriber.get_backend_info()}
  - Scoring: {scoring_info}
  - Degenerate threshold: {segmentation.min_total_duration_sec}s total / {segmentation.min_segment_duration_sec}s per question
  - Boundary buffer: {segmentation.boundary_buffer_words} words

"""
        sys.stdout.write(banner)
        sys.stdout.flush()

    # ========== フォーマッティングメソッド ==========

    @staticmethod
    def _terminal_width() -> int:
        return shutil.get_terminal_size(fallback=(80, 24)).columns

    @staticmethod
    def _truncate_text(text: str, max_width: int) -> str:
        """テキストを指定された表示幅に切り詰める（全角文字は幅2）"""
        if int(wcwidth.wcswidth(text)) <= max_width:
            return text

        width = 0
        for i, char in enumerate(text):
            char_width = max(wcwidth.wcwidth(char), 0)
            if width + char_width > max_width - 3:
                return text[:i] + "..."
            width += char_width
        return text
