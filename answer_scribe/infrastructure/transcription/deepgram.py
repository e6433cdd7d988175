#!/usr/bin/env python3
"""
Answer Scribe - Deepgram Transcriber
インフラ層：音声認識API（Deepgram）への一括アップロードと応答の正規化
"""

from typing import Any, Protocol

import httpx

from answer_scribe.domain import (
    MediaBlob,
    TranscribedSentence,
    TranscribedWord,
    TranscriptionError,
    TranscriptionResult,
    TranscriptionSettings,
)
from answer_scribe.domain.constants import DEFAULT_TRANSCRIPT_CONFIDENCE


class SpeechToTextClient(Protocol):
    """
    音声認識クライアントの抽象インターフェース

    1回の呼び出しで録音全体を文字起こしする。リトライは行わない。
    """

    async def transcribe(self, recording: MediaBlob) -> TranscriptionResult:
        """録音全体を文字起こし"""
        ...


# ========================================
# 応答の正規化
# ========================================
def _as_float(value: Any, default: float = 0.0) -> float:
    return float(value) if isinstance(value, (int, float)) else default


def _parse_words(raw_words: Any) -> tuple[TranscribedWord, ...]:
    if not isinstance(raw_words, list):
        return ()
    return tuple(
        TranscribedWord(
            word=str(w.get("word") or ""),
            start=_as_float(w.get("start")),
            end=_as_float(w.get("end")),
            confidence=(
                float(w["confidence"])
                if isinstance(w.get("confidence"), (int, float))
                else None
            ),
        )
        for w in raw_words
        if isinstance(w, dict)
    )


def _parse_sentences(alternative: dict[str, Any]) -> tuple[TranscribedSentence, ...]:
    """
    文単位のタイムスタンプを取り出す

    alternatives[0].sentences があればそれを使い、なければ
    paragraphs.paragraphs[*].sentences を平坦化する。
    """
    raw_sentences = alternative.get("sentences")
    if not isinstance(raw_sentences, list) or not raw_sentences:
        paragraphs = (alternative.get("paragraphs") or {}).get("paragraphs") or []
        raw_sentences = [
            sentence
            for paragraph in paragraphs
            if isinstance(paragraph, dict)
            for sentence in paragraph.get("sentences") or []
        ]

    return tuple(
        TranscribedSentence(
            text=str(s.get("text") or ""),
            start=_as_float(s.get("start")),
            end=_as_float(s.get("end")),
        )
        for s in raw_sentences
        if isinstance(s, dict)
    )


def normalize_deepgram_response(payload: dict[str, Any]) -> TranscriptionResult:
    """
    Deepgramの応答JSONをTranscriptionResultに正規化

    欠落しているフィールドは既定値（空文字・信頼度0.8・長さ0）で埋める。

    Args:
        payload: /v1/listen の応答JSON

    Returns:
        TranscriptionResult: 正規化済みの文字起こし結果
    """
    channels = (payload.get("results") or {}).get("channels") or [{}]
    alternatives = channels[0].get("alternatives") or [{}]
    alternative: dict[str, Any] = alternatives[0]

    # 信頼度0は「不明」として既定値を使う
    confidence = alternative.get("confidence")
    if not isinstance(confidence, (int, float)) or not confidence:
        confidence = DEFAULT_TRANSCRIPT_CONFIDENCE

    return TranscriptionResult(
        text=str(alternative.get("transcript") or ""),
        words=_parse_words(alternative.get("words")),
        sentences=_parse_sentences(alternative),
        confidence=float(confidence),
        duration=_as_float((payload.get("metadata") or {}).get("duration")),
    )


# ========================================
# HTTPクライアント
# ========================================
class DeepgramTranscriber:
    """
    Deepgram一括文字起こしクライアント

    責務:
    - 録音データのPOST（タイムアウト付き）
    - HTTPエラー・タイムアウト・通信エラーのTranscriptionErrorへの変換
    - 応答の正規化

    リトライは呼び出し側の責務。
    """

    def __init__(
        self,
        settings: TranscriptionSettings,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        """
        Args:
            settings: 文字起こし設定（APIキー、モデル、タイムアウトなど）
            http_client: 共有するHTTPクライアント（Noneの場合は呼び出しごとに生成）
        """
        self.settings = settings
        self._http_client = http_client

    def get_backend_info(self) -> str:
        return f"Deepgram ({self.settings.deepgram_model})"

    async def transcribe(self, recording: MediaBlob) -> TranscriptionResult:
        """
        録音全体を文字起こし

        Args:
            recording: 録音データ

        Returns:
            TranscriptionResult: 正規化済みの文字起こし結果

        Raises:
            TranscriptionError: 入力が空・APIキー未設定・HTTPエラー・タイムアウト・応答不正
        """
        if recording.size == 0:
            raise TranscriptionError("Invalid recording: empty or missing media blob")
        if not self.settings.deepgram_api_key:
            raise TranscriptionError("Deepgram API key is not configured")

        if self._http_client is not None:
            response = await self._post(self._http_client, recording)
        else:
            async with httpx.AsyncClient(
                timeout=self.settings.request_timeout_sec
            ) as client:
                response = await self._post(client, recording)

        self._raise_for_status(response)

        try:
            payload = response.json()
        except ValueError as e:
            raise TranscriptionError(
                "Failed to parse Deepgram API response. The response may be invalid."
            ) from e
        if not isinstance(payload, dict):
            raise TranscriptionError("Unexpected Deepgram API response shape")

        return normalize_deepgram_response(payload)

    async def _post(
        self, client: httpx.AsyncClient, recording: MediaBlob
    ) -> httpx.Response:
        """POSTを実行し、通信レベルの失敗を一時的なエラーに変換"""
        try:
            return await client.post(
                self.settings.deepgram_base_url,
                params=self.settings.query_params,
                headers={
                    "Authorization": f"Token {self.settings.deepgram_api_key}",
                    "Content-Type": recording.mime_type
                    or self.settings.default_mime_type,
                },
                content=recording.data,
                timeout=self.settings.request_timeout_sec,
            )
        except httpx.TimeoutException as e:
            raise TranscriptionError(
                "Transcription request timed out", transient=True
            ) from e
        except httpx.TransportError as e:
            raise TranscriptionError(
                f"Network error: unable to reach Deepgram API ({e})", transient=True
            ) from e

    @staticmethod
    def _raise_for_status(response: httpx.Response) -> None:
        """非2xx応答を原因別のTranscriptionErrorに変換"""
        status = response.status_code
        if 200 <= status < 300:
            return

        detail = response.text or response.reason_phrase
        if status == 429:
            message = "Deepgram API quota exceeded. Please check your usage and billing."
        elif status in (401, 403):
            message = "Deepgram API authentication failed. Please check your API key."
        elif status >= 500:
            message = "Deepgram API server error. Please try again later."
        elif status == 400:
            message = f"Invalid request to Deepgram API: {detail}"
        else:
            message = f"Deepgram API error ({status}): {detail}"
        raise TranscriptionError(message, status_code=status)
