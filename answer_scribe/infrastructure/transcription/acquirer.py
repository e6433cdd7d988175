#!/usr/bin/env python3
"""
Answer Scribe - Transcription Acquirer
インフラ層：ストリーミング／一括アップロードのどちらかでセッション全体の文字起こしを取得する
"""

from answer_scribe.domain import (
    BatchRecording,
    MediaBlob,
    MessageLevel,
    StreamedTranscript,
    TranscriptAcquiredEvent,
    TranscriptionError,
    TranscriptionResult,
    TranscriptSource,
    post_message,
    transcript_acquired,
)

from .deepgram import SpeechToTextClient
from .streaming import StreamingSession

SOURCE_STREAMED = "streamed"
SOURCE_BATCH = "batch"


class TranscriptionAcquirer:
    """
    文字起こし取得の窓口

    責務:
    - ストリーミングセッションの生成
    - 一括アップロードによる文字起こし
    - 取得戦略（取得済み or 一括アップロード）の解決

    この層はリトライしない。リトライ判断は呼び出し側（TranscriptionError.retryable）で行う。
    """

    def __init__(
        self, client: SpeechToTextClient, default_mime_type: str = "audio/webm"
    ) -> None:
        self.client = client
        self.default_mime_type = default_mime_type

    def create_session(self) -> StreamingSession:
        """録音開始時に呼び、チャンクを流し込むセッションを返す"""
        return StreamingSession(self.client, default_mime_type=self.default_mime_type)

    async def transcribe_recording(self, recording: MediaBlob) -> TranscriptionResult:
        """
        録音全体を1回のAPI呼び出しで文字起こし

        Raises:
            TranscriptionError: 入力が空、またはAPI呼び出しに失敗した場合
        """
        if recording.size == 0:
            raise TranscriptionError("Invalid recording: empty or missing media blob")
        return await self.client.transcribe(recording)

    async def finalize_streaming(
        self, session: StreamingSession
    ) -> StreamedTranscript | None:
        """
        ストリーミングセッションを確定

        失敗しても例外は投げず、警告を出してNoneを返す（呼び出し側は一括アップロードに切り替える）。
        """
        try:
            result = await session.finalize()
        except TranscriptionError as e:
            post_message(
                self,
                f"Streaming finalize failed, falling back to batch upload: {e}",
                MessageLevel.WARNING,
            )
            return None
        return StreamedTranscript(result=result)

    async def acquire(self, source: TranscriptSource) -> TranscriptionResult:
        """
        取得戦略に応じて文字起こし結果を返す

        Args:
            source: 取得済みの結果（StreamedTranscript）または録音データ（BatchRecording）

        Returns:
            TranscriptionResult: セッション全体の文字起こし結果

        Raises:
            TranscriptionError: 一括アップロードに失敗した場合
        """
        match source:
            case StreamedTranscript(result=result):
                label = SOURCE_STREAMED
            case BatchRecording(recording=recording):
                result = await self.transcribe_recording(recording)
                label = SOURCE_BATCH
            case _:
                raise TypeError(f"Unsupported transcript source: {source!r}")

        transcript_acquired.send(
            self, event=TranscriptAcquiredEvent(result=result, source=label)
        )
        return result


def source_label(source: TranscriptSource) -> str:
    """取得戦略の表示名（"streamed" | "batch"）"""
    return SOURCE_STREAMED if isinstance(source, StreamedTranscript) else SOURCE_BATCH
