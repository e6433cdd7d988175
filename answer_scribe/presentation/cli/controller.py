#!/usr/bin/env python3
"""
Answer Scribe - CLI Controller
CLIアプリケーションのコントローラー層：録音済み面接の再生とパイプライン実行
"""

import asyncio
import json
import mimetypes
import sys
import time
import traceback
import uuid
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import httpx

from answer_scribe.domain import (
    CostScope,
    InterviewCategory,
    MediaBlob,
    MessageLevel,
    PipelineInputError,
    SessionResult,
    TranscriptionResult,
    post_message,
)
from answer_scribe.infrastructure.ai import ScoringClient, create_scoring_client
from answer_scribe.infrastructure.billing import CostLedger
from answer_scribe.infrastructure.config import load_settings
from answer_scribe.infrastructure.transcription import (
    DeepgramTranscriber,
    normalize_deepgram_response,
)
from answer_scribe.presentation.app import FeedbackPipelineApp

from .view import CLIView


@dataclass(frozen=True)
class SegmentTiming:
    """録音開始からの相対時刻で表した質問区間"""

    question_id: str
    question_text: str
    start_sec: float
    end_sec: float


def load_segment_timings(path: Path) -> list[SegmentTiming]:
    """
    質問区間のJSONを読み込む

    形式: [{"question_id": "q1", "question_text": "...", "start_sec": 0, "end_sec": 40}, ...]

    Raises:
        PipelineInputError: 形式が不正な場合
    """
    try:
        raw = json.loads(path.read_text(encoding="utf-8"))
        timings = [
            SegmentTiming(
                question_id=str(item["question_id"]),
                question_text=str(item.get("question_text", "")),
                start_sec=float(item["start_sec"]),
                end_sec=float(item["end_sec"]),
            )
            for item in raw
        ]
    except (OSError, ValueError, TypeError, KeyError) as e:
        raise PipelineInputError(f"Invalid segments file {path}: {e}") from e
    return sorted(timings, key=lambda t: t.start_sec)


def load_transcript(path: Path) -> TranscriptionResult:
    """
    文字起こし済みのJSON（Deepgram応答形式）を読み込む

    Raises:
        PipelineInputError: 形式が不正な場合
    """
    try:
        payload: Any = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, ValueError) as e:
        raise PipelineInputError(f"Invalid transcript file {path}: {e}") from e
    if not isinstance(payload, dict):
        raise PipelineInputError(f"Invalid transcript file {path}: expected an object")
    return normalize_deepgram_response(payload)


def load_recording(path: Path) -> MediaBlob:
    """録音ファイルを読み込む（MIMEタイプは拡張子から推定）"""
    try:
        data = path.read_bytes()
    except OSError as e:
        raise PipelineInputError(f"Cannot read recording {path}: {e}") from e
    mime_type, _ = mimetypes.guess_type(path.name)
    return MediaBlob(data=data, mime_type=mime_type or "")


class ReplayClock:
    """録音済み面接を再生するための時計（エポックミリ秒）"""

    def __init__(self, origin_ms: int) -> None:
        self.origin_ms = origin_ms
        self.now_ms = origin_ms

    def seek(self, offset_sec: float) -> None:
        self.now_ms = self.origin_ms + int(offset_sec * 1000)

    def __call__(self) -> int:
        return self.now_ms


class CLIController:
    """
    CLIコントローラー

    責務:
    - 入力ファイル（区間・録音・文字起こし）の読み込み
    - App/View初期化と配線
    - 質問区間の再生とパイプライン実行
    - 終了シグナルとエラー処理
    """

    def __init__(
        self,
        segments_path: str,
        recording_path: str | None,
        transcript_path: str | None,
        category: InterviewCategory,
        user_id: str,
        session_id: str | None,
        output_path: str | None,
        save: bool,
    ):
        """
        CLIControllerの初期化

        Args:
            segments_path: 質問区間JSONのパス
            recording_path: 録音ファイルのパス（一括アップロード用）
            transcript_path: 文字起こし済みJSONのパス（取得済み結果として使用）
            category: 面接カテゴリ
            user_id: ユーザーID
            session_id: セッションID（Noneの場合は自動生成）
            output_path: 出力先パス（Noneの場合は設定に従う）
            save: 結果をJSONに保存するかどうか
        """
        self.segments_path = Path(segments_path)
        self.recording_path = Path(recording_path) if recording_path else None
        self.transcript_path = Path(transcript_path) if transcript_path else None
        self.category = category
        self.user_id = user_id
        self.session_id = session_id or uuid.uuid4().hex
        self.output_path = Path(output_path) if output_path else None
        self.save = save
        self.settings = load_settings()

        self.app: FeedbackPipelineApp | None = None
        self.view: CLIView | None = None

    def run(self) -> None:
        """
        アプリケーションを実行

        Raises:
            SystemExit: エラー発生時
        """
        # CLIView作成（Signal受信準備）
        self.view = CLIView(settings=self.settings)

        try:
            asyncio.run(self._run_pipeline())

        except KeyboardInterrupt:
            # Ctrl-C: 中断（結果は破棄）
            if self.app:
                self.app.abort()
            post_message(None, "\nGoodbye!", MessageLevel.SUCCESS)
            return

        except PipelineInputError as e:
            post_message(
                None,
                f"\nProcessing failed, please try again: {e}",
                MessageLevel.ERROR,
            )
            sys.exit(1)

        except Exception as e:
            # エラー時は即座に終了
            post_message(None, f"\nError: {e}", MessageLevel.ERROR)
            traceback.print_exc()
            sys.exit(1)

    async def _run_pipeline(self) -> None:
        """パイプラインを実行（クライアントの生成から保存まで）"""
        view = self.view
        assert view is not None

        timings = load_segment_timings(self.segments_path)
        recording = load_recording(self.recording_path) if self.recording_path else None
        streamed = load_transcript(self.transcript_path) if self.transcript_path else None

        scoring_client = create_scoring_client(self.settings.analysis)
        async with httpx.AsyncClient(
            timeout=self.settings.transcription.request_timeout_sec
        ) as http_client:
            transcriber = DeepgramTranscriber(
                self.settings.transcription, http_client=http_client
            )
            view.show_banner(transcriber, scoring_client)

            try:
                result = await self._replay(
                    transcriber, scoring_client, timings, recording, streamed
                )
            finally:
                if scoring_client is not None:
                    await scoring_client.aclose()

        app = self.app
        if result is None or app is None:
            return

        view.show_budget(app.ledger.snapshot(CostScope.USER, self.user_id))
        if self.save:
            app.save(result, self.output_path)

    async def _replay(
        self,
        transcriber: DeepgramTranscriber,
        scoring_client: ScoringClient | None,
        timings: list[SegmentTiming],
        recording: MediaBlob | None,
        streamed: TranscriptionResult | None,
    ) -> SessionResult | None:
        """質問区間を再生してからセッションを完了する"""
        clock = ReplayClock(origin_ms=int(time.time() * 1000))
        self.app = FeedbackPipelineApp(
            settings=self.settings,
            transcriber=transcriber,
            scoring_client=scoring_client,
            ledger=CostLedger(self.settings.cost),
            session_id=self.session_id,
            user_id=self.user_id,
            category=self.category,
            tracker_clock=clock,
        )
        app = self.app

        app.begin_recording()
        for timing in timings:
            clock.seek(timing.start_sec)
            app.start_question(timing.question_id, timing.question_text)
            clock.seek(timing.end_sec)
            app.end_question(timing.question_id, timing.question_text)

        post_message(
            None,
            f"Replayed {len(timings)} questions ({app.tracker.total_duration:.1f}s); "
            "analyzing...",
            MessageLevel.INFO,
        )
        return await app.complete(recording=recording, streamed=streamed)
