#!/usr/bin/env python3
"""
Answer Scribe - Core Application
プレゼンテーション層：FeedbackPipelineAppコアロジック（録音→文字起こし→分割→採点→集計）
"""

import asyncio
from collections.abc import Callable
from datetime import datetime
from pathlib import Path

from answer_scribe.domain import (
    BatchRecording,
    InterviewCategory,
    MediaBlob,
    MessageLevel,
    MessagePostedEvent,
    PipelineError,
    PipelineInputError,
    QuestionResponse,
    QuestionSegment,
    SessionAbortedError,
    SessionResult,
    Settings,
    StreamedTranscript,
    TranscriptionError,
    TranscriptionResult,
    TranscriptSource,
    message_posted,
    post_message,
)
from answer_scribe.infrastructure.ai import (
    AnalysisOrchestrator,
    RetryAction,
    RetryPolicy,
    ScoringClient,
)
from answer_scribe.infrastructure.ai.orchestrator import SleepFunc
from answer_scribe.infrastructure.billing import CostLedger
from answer_scribe.infrastructure.persistence import SessionJsonExporter
from answer_scribe.infrastructure.recording import SegmentTracker
from answer_scribe.infrastructure.segmentation import SegmentReconstructor
from answer_scribe.infrastructure.transcription import (
    SpeechToTextClient,
    StreamingSession,
    TranscriptionAcquirer,
    source_label,
)


class FeedbackPipelineApp:
    """
    Answer Scribe共通コアアプリケーション（セッションごとに生成）

    責務:
    - コンポーネントの初期化と依存性注入
    - イベントサブスクリプションの設定（Pub/Sub）
    - 録音中の操作（質問区間の記録・音声チャンクの受け渡し・中断）
    - セッション完了時の処理チェーン

    Note:
    - 入力エラー（録音も文字起こしもない、質問区間がない）はPipelineInputErrorで通知する
    - それ以外の失敗は劣化した結果（一括アップロード・ルールベース採点）として完了する
    - 中断後に届いた結果は破棄し、complete()はNoneを返す
    """

    def __init__(
        self,
        settings: Settings,
        transcriber: SpeechToTextClient,
        scoring_client: ScoringClient | None,
        ledger: CostLedger,
        session_id: str,
        user_id: str,
        category: InterviewCategory,
        tracker_clock: Callable[[], int] | None = None,
        sleep: SleepFunc = asyncio.sleep,
    ) -> None:
        """
        FeedbackPipelineAppの初期化

        Args:
            settings: アプリケーション設定
            transcriber: 文字起こしクライアント
            scoring_client: 採点クライアント（Noneの場合はルールベース採点のみ）
            ledger: コスト台帳（ユーザー単位の上限を跨いで共有する）
            session_id: セッションID
            user_id: ユーザーID
            category: 面接カテゴリ
            tracker_clock: 質問区間の時計（エポックミリ秒、テスト時に差し替え）
            sleep: バックオフ待機関数（テスト時に差し替え）
        """
        self.settings = settings
        self.session_id = session_id
        self.user_id = user_id
        self.category = category
        self._sleep = sleep

        # 1. 質問区間の記録
        self.tracker = (
            SegmentTracker(clock=tracker_clock) if tracker_clock else SegmentTracker()
        )

        # 2. 文字起こし取得
        self.acquirer = TranscriptionAcquirer(
            transcriber,
            default_mime_type=settings.transcription.default_mime_type,
        )
        self.streaming_session: StreamingSession | None = None

        # 3. 回答の再構成
        self.reconstructor = SegmentReconstructor(settings.segmentation)

        # 4. AI採点
        self.ledger = ledger
        self.orchestrator = AnalysisOrchestrator(
            client=scoring_client,
            ledger=ledger,
            settings=settings.analysis,
            retry_settings=settings.retry,
            session_id=session_id,
            user_id=user_id,
            category=category,
            sleep=sleep,
        )

        self.started_at = datetime.now()
        self.errors: list[PipelineError] = []
        self._aborted = False

        # 5. イベントサブスクリプション設定（Pub/Sub）
        self._setup_event_subscriptions()

    # ========== イベントサブスクリプション設定 ==========

    def _setup_event_subscriptions(self) -> None:
        """
        イベントサブスクリプションを設定（Pub/Sub）

        メッセージ投稿イベント → このセッションのコンポーネントが投稿した
        ERRORレベルのみセッションのエラーとして記録
        """
        self._own_senders: tuple[object, ...] = (
            self,
            self.tracker,
            self.acquirer,
            self.reconstructor,
            self.orchestrator,
        )
        message_posted.connect(self._on_message_posted)

    def close(self) -> None:
        """イベント購読を解除（セッション終了時、何度呼んでもよい）"""
        message_posted.disconnect(self._on_message_posted)

    def _on_message_posted(self, sender: object, event: MessagePostedEvent) -> None:
        """
        メッセージ投稿時のイベントハンドラ

        Args:
            sender: イベント送信元オブジェクト（他セッションの投稿は無視）
            event: MessagePostedEvent（message, level, timestampを含む）
        """
        if not any(sender is own for own in self._own_senders):
            return
        if event.level == MessageLevel.ERROR:
            limit = self.settings.app.max_error_detail_length
            message = event.message
            if len(message) > limit:
                message = message[:limit] + "..."
            self.errors.append(PipelineError(timestamp=event.timestamp, message=message))

    # ========== 録音制御 ==========

    @property
    def aborted(self) -> bool:
        return self._aborted

    def begin_recording(self) -> StreamingSession:
        """
        録音開始（録音開始時刻の記録 + ストリーミングセッション生成）

        Returns:
            StreamingSession: 音声チャンクを流し込むセッション
        """
        self.started_at = datetime.now()
        self.tracker.mark_recording_start()
        self.streaming_session = self.acquirer.create_session()
        return self.streaming_session

    def push_audio_chunk(self, chunk: MediaBlob) -> None:
        """録音中の音声チャンクをストリーミングセッションへ渡す（録音前は無視）"""
        if self.streaming_session is not None:
            self.streaming_session.push_chunk(chunk)

    def start_question(self, question_id: str, question_text: str) -> None:
        """質問の表示開始"""
        self.tracker.start_segment(question_id, question_text)

    def end_question(
        self, question_id: str, question_text: str
    ) -> QuestionSegment | None:
        """質問への回答終了"""
        return self.tracker.end_segment(question_id, question_text)

    def abort(self) -> None:
        """
        セッションを中断（何度呼んでもよい）

        記録済みの区間を破棄し、処理中の文字起こし・採点の結果は適用しない。
        """
        if self._aborted:
            return
        self._aborted = True
        self.tracker.clear()
        if self.streaming_session is not None:
            self.streaming_session.abort()
        self.orchestrator.abort()
        post_message(self, "Session aborted", MessageLevel.WARNING)

    def _ensure_active(self) -> None:
        if self._aborted:
            raise SessionAbortedError()

    # ========== セッション完了 ==========

    async def complete(
        self,
        recording: MediaBlob | None = None,
        streamed: TranscriptionResult | None = None,
    ) -> SessionResult | None:
        """
        録音終了後の処理チェーン

        1. 文字起こしの取得（取得済み → ストリーミング確定 → 一括アップロード）
        2. 質問ごとの回答に再構成
        3. 回答ごとのAI採点（予算・リトライ・フォールバック込み）
        4. セッション集計

        Args:
            recording: 録音全体のデータ（一括アップロード用）
            streamed: 外部で取得済みの文字起こし結果

        Returns:
            SessionResult | None: 処理結果（中断された場合はNone）

        Raises:
            PipelineInputError: 質問区間がない、または使える録音・文字起こしがない場合
        """
        try:
            return await self._run(recording, streamed)
        except SessionAbortedError:
            post_message(
                self, "Session aborted; discarding late results", MessageLevel.WARNING
            )
            return None
        finally:
            self.close()

    async def _run(
        self,
        recording: MediaBlob | None,
        streamed: TranscriptionResult | None,
    ) -> SessionResult:
        self._ensure_active()
        segments = self.tracker.get_segments()
        if self.tracker.has_open_segment:
            post_message(
                self,
                f"Question {self.tracker.current_question_id} was never ended; "
                "its answer is not included",
                MessageLevel.WARNING,
            )
        if not segments:
            self._discard_streaming()
            raise self._input_error("No question segments recorded")

        source = await self._resolve_source(recording, streamed)
        transcript, responses = await self._reconstruct_with_retry(source, segments)
        self._ensure_active()
        assert transcript is not None

        records = await self.orchestrator.score_all(responses)
        summary = await self.orchestrator.summarize(
            records, responses, total_questions=len(segments)
        )
        self._ensure_active()

        post_message(
            self,
            f"Analyzed {len(records)} responses (average score {summary.average_score})",
            MessageLevel.SUCCESS,
        )
        return SessionResult(
            session_id=self.session_id,
            user_id=self.user_id,
            category=self.category,
            segments=segments,
            transcript=transcript,
            transcript_source=source_label(source),
            responses=tuple(responses),
            analyses=tuple(records),
            summary=summary,
            errors=tuple(self.errors),
            started_at=self.started_at,
            completed_at=datetime.now(),
        )

    def _discard_streaming(self) -> None:
        if self.streaming_session is not None:
            self.streaming_session.abort()

    def _input_error(self, message: str) -> PipelineInputError:
        post_message(self, f"Processing failed: {message}", MessageLevel.ERROR)
        return PipelineInputError(message)

    async def _resolve_source(
        self,
        recording: MediaBlob | None,
        streamed: TranscriptionResult | None,
    ) -> TranscriptSource:
        """取得戦略を決める（ストリーミングの失敗は一括アップロードへ切り替え）"""
        if streamed is not None:
            self._discard_streaming()
            return StreamedTranscript(result=streamed)

        session = self.streaming_session
        if session is not None and session.chunk_count > 0:
            result = await self.acquirer.finalize_streaming(session)
            self._ensure_active()
            if result is not None:
                return result

        if recording is None or recording.size == 0:
            raise self._input_error("No usable recording or transcript")
        return BatchRecording(recording=recording)

    async def _reconstruct_with_retry(
        self, source: TranscriptSource, segments: tuple[QuestionSegment, ...]
    ) -> tuple[TranscriptionResult | None, list[QuestionResponse]]:
        """
        文字起こしを取得して再構成（一括アップロードの一時的な失敗はバックオフで再試行）

        Raises:
            PipelineInputError: リトライしても文字起こしできなかった場合
        """
        policy = RetryPolicy(self.settings.retry)
        while True:
            try:
                return await self.reconstructor.reconstruct_source(
                    source,
                    segments,
                    self.acquirer,
                    recording_start_ms=self.tracker.recording_start_ms,
                )
            except TranscriptionError as e:
                self._ensure_active()
                if not (e.retryable and self.settings.app.transcription_retry_enabled):
                    raise self._input_error(f"Transcription failed: {e}") from e
                decision = policy.evaluate_failure(
                    None if e.transient else e.status_code, str(e)
                )
                if decision.action == RetryAction.GIVE_UP:
                    raise self._input_error(
                        f"Transcription failed: {decision.reason}"
                    ) from e
                attempt, max_attempts = policy.get_attempt_info()
                post_message(
                    self,
                    f"Transcription failed ({e}); retrying in {decision.delay_sec:.1f}s "
                    f"(attempt {attempt}/{max_attempts})",
                    MessageLevel.WARNING,
                )
                await self._sleep(decision.delay_sec)
                self._ensure_active()

    # ========== 保存 ==========

    def save(self, result: SessionResult, output_path: Path | None = None) -> Path | None:
        """
        セッションの保存（JSON出力）

        Args:
            result: 処理結果
            output_path: 出力先（Noneの場合はoutput_dir配下に自動命名）

        Returns:
            Path | None: 保存先（保存しない設定の場合はNone）
        """
        if output_path is None:
            if not self.settings.app.save_json:
                return None
            output_dir = Path(self.settings.app.output_dir)
            output_dir.mkdir(parents=True, exist_ok=True)
            output_path = output_dir / SessionJsonExporter.default_filename(result)

        saved = SessionJsonExporter.save_to_file(result, output_path)
        post_message(self, f"Feedback saved to: {saved}", MessageLevel.SUCCESS)
        return saved
