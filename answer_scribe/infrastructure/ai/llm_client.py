#!/usr/bin/env python3
"""
Answer Scribe - Scoring Clients Module
採点APIクライアントの抽象化とアダプタパターンを提供するモジュール
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any

import anthropic
import openai
from anthropic import AsyncAnthropic
from anthropic.types import TextBlock
from openai import AsyncOpenAI

from answer_scribe.domain import (
    AnalysisSettings,
    ScoringBackend,
    ScoringRequestError,
    ScoringResponseError,
)


@dataclass(frozen=True)
class ScoringCompletion:
    """
    採点APIの応答

    Attributes:
        text: 生成されたテキスト（JSON想定）
        model: 使用したモデルID
        input_tokens: 入力トークン数
        output_tokens: 出力トークン数
    """

    text: str
    model: str
    input_tokens: int
    output_tokens: int


class ScoringClient(ABC):
    """
    採点クライアントの抽象基底クラス

    チャット補完APIへのインターフェースを統一し、
    異なるプロバイダ（OpenRouter、Claudeなど）を
    同じインターフェースで扱えるようにする。
    リトライは行わない（呼び出し側のRetryPolicyに任せる）。
    """

    @abstractmethod
    async def __call__(
        self,
        model: str,
        system_prompt: str,
        user_prompt: str,
        temperature: float | None = None,
        max_tokens: int | None = None,
    ) -> ScoringCompletion:
        """
        採点APIでテキストを生成

        Args:
            model: モデルID
            system_prompt: システムプロンプト
            user_prompt: ユーザープロンプト
            temperature: 生成の確率性（Noneの場合は設定値を使用）
            max_tokens: 最大トークン数（Noneの場合は設定値を使用）

        Returns:
            ScoringCompletion: 生成テキストとトークン使用量

        Raises:
            ScoringRequestError: HTTPエラー・タイムアウト・通信エラー
            ScoringResponseError: 応答が空または不正な場合
        """
        pass

    @abstractmethod
    def get_backend_info(self) -> str:
        """
        使用しているバックエンドの情報を返す

        Returns:
            str: バックエンド情報（例: "OpenRouter (https://openrouter.ai/api/v1)"）
        """
        pass

    async def aclose(self) -> None:
        """接続を閉じる"""


class OpenRouterClient(ScoringClient):
    """
    OpenRouter APIクライアント（OpenAI互換API）

    責務:
    - OpenRouterへのリクエスト送信（JSONレスポンス形式を指定）
    - 失敗のScoringRequestErrorへの変換
    - トークン使用量の取得
    """

    def __init__(
        self, settings: AnalysisSettings, client: AsyncOpenAI | None = None
    ) -> None:
        """
        Args:
            settings: 採点設定（APIキー、ベースURL、タイムアウトなど）
            client: 差し替え用のAsyncOpenAIクライアント
        """
        self.settings = settings
        self.client = client or AsyncOpenAI(
            base_url=settings.openrouter_base_url,
            api_key=settings.openrouter_api_key or "",
            timeout=settings.request_timeout_sec,
            max_retries=0,
            default_headers={
                "HTTP-Referer": settings.site_url,
                "X-Title": settings.site_title,
            },
        )

    async def __call__(
        self,
        model: str,
        system_prompt: str,
        user_prompt: str,
        temperature: float | None = None,
        max_tokens: int | None = None,
    ) -> ScoringCompletion:
        kwargs: dict[str, Any] = {
            "model": model,
            "messages": [
                {"role": "system", "content": system_prompt},
                {"role": "user", "content": user_prompt},
            ],
            "temperature": (
                self.settings.temperature if temperature is None else temperature
            ),
            "max_tokens": max_tokens or self.settings.max_tokens,
            "response_format": {"type": "json_object"},
        }

        try:
            response = await self.client.chat.completions.create(**kwargs)
        except openai.APITimeoutError as e:
            raise ScoringRequestError(
                f"OpenRouter API timeout after {self.settings.request_timeout_sec}s"
            ) from e
        except openai.APIStatusError as e:
            raise ScoringRequestError(
                f"OpenRouter API error: {e.status_code} - {e.message}",
                status_code=e.status_code,
            ) from e
        except openai.APIConnectionError as e:
            raise ScoringRequestError(f"OpenRouter connection error: {e}") from e

        if not response.choices or not (content := response.choices[0].message.content):
            raise ScoringResponseError("No choices returned from OpenRouter API")

        usage = response.usage
        return ScoringCompletion(
            text=content.strip(),
            model=model,
            input_tokens=usage.prompt_tokens if usage else 0,
            output_tokens=usage.completion_tokens if usage else 0,
        )

    def get_backend_info(self) -> str:
        return f"OpenRouter ({self.settings.openrouter_base_url})"

    async def aclose(self) -> None:
        await self.client.close()


class ClaudeClient(ScoringClient):
    """
    Claude APIクライアント

    責務:
    - Claude APIへのリクエスト送信
    - 失敗のScoringRequestErrorへの変換
    - トークン使用量の取得
    """

    def __init__(
        self, settings: AnalysisSettings, client: AsyncAnthropic | None = None
    ) -> None:
        """
        Args:
            settings: 採点設定（APIキー、タイムアウトなど）
            client: 差し替え用のAsyncAnthropicクライアント
        """
        self.settings = settings
        self.client = client or AsyncAnthropic(
            api_key=settings.anthropic_api_key,
            timeout=settings.request_timeout_sec,
            max_retries=0,
        )

    async def __call__(
        self,
        model: str,
        system_prompt: str,
        user_prompt: str,
        temperature: float | None = None,
        max_tokens: int | None = None,
    ) -> ScoringCompletion:
        kwargs: dict[str, Any] = {
            "model": model,
            "max_tokens": max_tokens or self.settings.max_tokens,
            "system": system_prompt,
            "messages": [{"role": "user", "content": user_prompt}],
            "temperature": (
                self.settings.temperature if temperature is None else temperature
            ),
        }

        try:
            message = await self.client.messages.create(**kwargs)
        except anthropic.APITimeoutError as e:
            raise ScoringRequestError(
                f"Claude API timeout after {self.settings.request_timeout_sec}s"
            ) from e
        except anthropic.APIStatusError as e:
            raise ScoringRequestError(
                f"Claude API error: {e.status_code} - {e.message}",
                status_code=e.status_code,
            ) from e
        except anthropic.APIConnectionError as e:
            raise ScoringRequestError(f"Claude connection error: {e}") from e

        # TextBlockの場合のみtextを取得
        text = "".join(
            block.text for block in message.content if isinstance(block, TextBlock)
        ).strip()
        if not text:
            raise ScoringResponseError("Empty response from Claude API")

        return ScoringCompletion(
            text=text,
            model=model,
            input_tokens=message.usage.input_tokens,
            output_tokens=message.usage.output_tokens,
        )

    def get_backend_info(self) -> str:
        return "Claude (Anthropic API)"

    async def aclose(self) -> None:
        await self.client.close()


# ========================================
# Factory Function
# ========================================
def create_scoring_client(settings: AnalysisSettings) -> ScoringClient | None:
    """
    設定に基づいて採点クライアントを生成

    Args:
        settings: 採点設定

    Returns:
        ScoringClient | None: 設定されたバックエンドのクライアント（AI採点無効時はNone）

    Raises:
        ValueError: バックエンド設定が無効な場合（到達不可能：Pydantic検証済み）
    """
    if not settings.enabled:
        return None

    match settings.backend:
        case ScoringBackend.OPENROUTER:
            return OpenRouterClient(settings=settings)
        case ScoringBackend.CLAUDE:
            return ClaudeClient(settings=settings)
        case _:  # 到達不可能（StrEnum + Pydantic検証済み）
            raise ValueError(
                f"Invalid analysis.backend: '{settings.backend}'. "
                f"Must be '{ScoringBackend.OPENROUTER}' or '{ScoringBackend.CLAUDE}'"
            )
