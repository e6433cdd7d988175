#!/usr/bin/env python3
"""
Answer Scribe - Streaming Transcription Session
インフラ層：録音中に音声チャンクを受け取り、終了時に1回だけ文字起こしする
"""

from answer_scribe.domain import (
    MediaBlob,
    StreamingSessionAbortedError,
    TranscriptionError,
    TranscriptionResult,
)

from .deepgram import SpeechToTextClient


class StreamingSession:
    """
    ストリーミング文字起こしセッション

    責務:
    - 音声チャンクのバッファリング（呼び出し側をブロックしない）
    - finalize時のチャンク結合と1回だけのAPI呼び出し
    - abort後の結果破棄
    """

    def __init__(
        self, client: SpeechToTextClient, default_mime_type: str = "audio/webm"
    ) -> None:
        self._client = client
        self._default_mime_type = default_mime_type
        self._chunks: list[MediaBlob] = []
        self._aborted = False
        self._finalized = False

    @property
    def aborted(self) -> bool:
        return self._aborted

    @property
    def chunk_count(self) -> int:
        return len(self._chunks)

    @property
    def buffered_bytes(self) -> int:
        return sum(chunk.size for chunk in self._chunks)

    def push_chunk(self, chunk: MediaBlob) -> None:
        """
        音声チャンクを追加（同期・非ブロッキング）

        空のチャンクと、abort後・finalize後のチャンクは無視する。
        """
        if self._aborted or self._finalized or chunk.size == 0:
            return
        self._chunks.append(chunk)

    def _combined_blob(self) -> MediaBlob:
        """バッファ済みチャンクを1つの録音データに結合"""
        mime_type = (
            self._chunks[0].mime_type if self._chunks else ""
        ) or self._default_mime_type
        return MediaBlob(
            data=b"".join(chunk.data for chunk in self._chunks),
            mime_type=mime_type,
        )

    async def finalize(self) -> TranscriptionResult:
        """
        バッファ済みチャンクを結合して文字起こし

        Returns:
            TranscriptionResult: 文字起こし結果

        Raises:
            StreamingSessionAbortedError: abort済み、または応答待ちの間にabortされた場合
            TranscriptionError: チャンクが空、2回目の呼び出し、またはAPI呼び出しの失敗
        """
        if self._aborted:
            raise StreamingSessionAbortedError()
        if self._finalized:
            raise TranscriptionError("Streaming session already finalized")
        if not self._chunks:
            raise TranscriptionError("Invalid recording: empty or missing media blob")

        self._finalized = True
        blob = self._combined_blob()
        self._chunks.clear()

        result = await self._client.transcribe(blob)

        # 応答待ちの間にabortされた結果は適用しない
        if self._aborted:
            raise StreamingSessionAbortedError(
                "Streaming session aborted while transcription was in flight"
            )
        return result

    def abort(self) -> None:
        """バッファを破棄し、以降のfinalizeを失敗させる（何度呼んでもよい）"""
        self._aborted = True
        self._chunks.clear()
