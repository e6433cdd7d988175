#!/usr/bin/env python3
"""
Answer Scribe - Segmentation Infrastructure
文字起こしの質問別分割と発話メトリクス
"""

# 回答再構成
from .reconstructor import (
    ReconstructionMode,
    SegmentReconstructor,
    equal_windows,
    format_words,
    proportional_windows,
)

# 発話メトリクス
from .speech_metrics import (
    compute_speech_metrics,
    count_words,
    filler_word_report,
    find_filler_words,
    speaking_rate_wpm,
)

__all__ = [
    # 回答再構成
    "ReconstructionMode",
    "SegmentReconstructor",
    "equal_windows",
    "format_words",
    "proportional_windows",
    # 発話メトリクス
    "compute_speech_metrics",
    "count_words",
    "filler_word_report",
    "find_filler_words",
    "speaking_rate_wpm",
]
