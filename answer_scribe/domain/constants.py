#!/usr/bin/env python3
"""
Answer Scribe - Constants
設定ファイルで変更しない固定定数を管理するモジュール
"""

# ========================================
# 回答再構成
# ========================================
# 文字起こしが空の場合に回答テキストへ設定する番兵文字列
# （「無音」と「パイプラインの不具合」を下流で区別するため空文字にしない）
NO_TRANSCRIPTION_SENTINEL = "No transcription available for this segment"

# 単語タイムスタンプから文を組み立てる際の区切り判定（秒）
SENTENCE_GAP_BREAK_SEC = 0.8

# 区間の終了を開始より後ろにするための最小幅（秒）
MIN_WINDOW_EPSILON_SEC = 0.05

# 文字起こし結果に信頼度がない場合の既定値
DEFAULT_TRANSCRIPT_CONFIDENCE = 0.8

# ========================================
# フィラー語
# ========================================
FILLER_WORDS: tuple[str, ...] = (
    "um",
    "uh",
    "like",
    "you know",
    "so",
    "actually",
    "basically",
    "kind of",
    "sort of",
    "well",
    "just",
)

# ========================================
# 採点
# ========================================
FALLBACK_MODEL_NAME = "fallback"

# 話速（words per minute）
FAST_SPEAKING_RATE_WPM = 180
SLOW_SPEAKING_RATE_WPM = 120

# 回答の長さ（秒）
SHORT_RESPONSE_SEC = 30
LONG_RESPONSE_SEC = 180

# フォールバックスコア
FALLBACK_BASE_SCORE = 50
FALLBACK_MIN_SCORE = 20
FALLBACK_MAX_SCORE = 70
FALLBACK_SUBSCORE_MIN = 3
FALLBACK_SUBSCORE_MAX = 7

# スコア分布の閾値
EXCELLENT_SCORE_THRESHOLD = 80
GOOD_SCORE_THRESHOLD = 60
FAIR_SCORE_THRESHOLD = 40

# 準備度の閾値
READY_SCORE_THRESHOLD = 80
NEEDS_PRACTICE_SCORE_THRESHOLD = 60

# 集計で抽出する上位件数
TOP_FEEDBACK_ITEMS = 5
TOP_PRACTICE_AREAS = 3
