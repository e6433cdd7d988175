#!/usr/bin/env python3
"""
Answer Scribe - Speech Metrics
インフラ層：回答テキストから発話メトリクス（語数・話速・フィラー語）を算出する
"""

import re
from collections import Counter

from answer_scribe.domain import FillerWordReport, SpeechMetrics
from answer_scribe.domain.constants import FILLER_WORDS

# 複数語のフィラー（"you know" など）を優先してマッチさせる
_FILLER_PATTERN = re.compile(
    r"\b("
    + "|".join(re.escape(w) for w in sorted(FILLER_WORDS, key=len, reverse=True))
    + r")\b",
    re.IGNORECASE,
)


def count_words(text: str) -> int:
    """空白区切りの語数"""
    return len(text.split())


def find_filler_words(text: str) -> tuple[str, ...]:
    """出現順にフィラー語を列挙（小文字化済み）"""
    return tuple(m.group(1).lower() for m in _FILLER_PATTERN.finditer(text))


def filler_word_report(text: str) -> FillerWordReport:
    """
    フィラー語ごとの出現数を集計

    Returns:
        FillerWordReport: 全フィラー語をキーに持つ出現数（出現しない語は0）
    """
    found = Counter(find_filler_words(text))
    counts = {word: found.get(word, 0) for word in FILLER_WORDS}
    return FillerWordReport(counts=counts, total=sum(counts.values()))


def speaking_rate_wpm(word_count: int, duration: float) -> int:
    """話速（words per minute、長さ0以下なら0）"""
    if duration <= 0:
        return 0
    return round(word_count / duration * 60)


def compute_speech_metrics(
    text: str, duration: float, confidence: float
) -> SpeechMetrics:
    """
    回答1件分の発話メトリクスを算出

    Args:
        text: 回答テキスト（番兵文字列ではなく実際の切り出し結果）
        duration: 回答区間の長さ（秒）
        confidence: 文字起こしの信頼度

    Returns:
        SpeechMetrics: 発話メトリクス
    """
    word_count = count_words(text)
    return SpeechMetrics(
        word_count=word_count,
        speaking_rate=speaking_rate_wpm(word_count, duration),
        filler_words=find_filler_words(text),
        confidence=confidence,
    )
