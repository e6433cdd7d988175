#!/usr/bin/env python3
"""
Answer Scribe - Domain Errors
ドメイン層：パイプラインで発生する例外の定義
"""

# リトライ対象となる一時的なHTTPステータス
_TRANSIENT_STATUS_CODES = frozenset({429, 500, 502, 503, 504})


class AnswerScribeError(Exception):
    """Answer Scribeの例外基底クラス"""


class PipelineInputError(AnswerScribeError):
    """
    入力エラー（録音が空・文字起こし手段がない等）

    劣化させる手段がないため、リトライ可能な「処理失敗」としてUIに返す。
    """


class SessionAbortedError(AnswerScribeError):
    """セッションが中断された（中断後に届いた結果は破棄する）"""

    def __init__(self, message: str = "Session aborted") -> None:
        super().__init__(message)


class TranscriptionError(AnswerScribeError):
    """
    文字起こしの失敗

    Attributes:
        status_code: HTTPステータス（タイムアウト・通信エラー・入力エラーの場合はNone）
        transient: タイムアウト・通信エラーなど一時的な失敗かどうか
    """

    def __init__(
        self, message: str, status_code: int | None = None, transient: bool = False
    ) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.transient = transient

    @property
    def retryable(self) -> bool:
        """呼び出し側がリトライしてよい失敗かどうか"""
        if self.transient:
            return True
        return self.status_code in _TRANSIENT_STATUS_CODES


class StreamingSessionAbortedError(TranscriptionError):
    """中断済みのストリーミングセッションに対する操作"""

    def __init__(self, message: str = "Streaming session aborted") -> None:
        super().__init__(message)


class ScoringRequestError(AnswerScribeError):
    """
    AI採点APIの呼び出し失敗

    Attributes:
        status_code: HTTPステータス（タイムアウト・通信エラーの場合はNone）
    """

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class ScoringResponseError(AnswerScribeError):
    """AI採点APIの応答が不正（JSONパース失敗・必須フィールド欠落など）"""
