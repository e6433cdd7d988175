#!/usr/bin/env python3
"""
Answer Scribe - Transcription Infrastructure
文字起こし関連のインフラストラクチャ層（Deepgram）
"""

# 音声認識クライアント
from .deepgram import DeepgramTranscriber, SpeechToTextClient, normalize_deepgram_response

# ストリーミング
from .streaming import StreamingSession

# 取得戦略
from .acquirer import TranscriptionAcquirer, source_label

__all__ = [
    # クライアント
    "DeepgramTranscriber",
    "SpeechToTextClient",
    "normalize_deepgram_response",
    # ストリーミング
    "StreamingSession",
    # 取得
    "TranscriptionAcquirer",
    "source_label",
]
