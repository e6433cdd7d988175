#!/usr/bin/env python3
"""
Answer Scribe - AI Infrastructure
AI関連のインフラストラクチャ層（回答採点・セッション集計）
"""

# 採点オーケストレータ
from .orchestrator import AnalysisOrchestrator

# 採点クライアント
from .llm_client import (
    ClaudeClient,
    OpenRouterClient,
    ScoringClient,
    ScoringCompletion,
    create_scoring_client,
)

# リトライ・フォールバック・集計
from .retry_policy import RetryAction, RetryDecision, RetryPolicy
from .fallback_scorer import generate_fallback_analysis
from .aggregation import aggregate_session

# プロンプト
from . import prompts

__all__ = [
    # オーケストレータ
    "AnalysisOrchestrator",
    # 採点クライアント
    "ClaudeClient",
    "OpenRouterClient",
    "ScoringClient",
    "ScoringCompletion",
    "create_scoring_client",
    # リトライ
    "RetryAction",
    "RetryDecision",
    "RetryPolicy",
    # フォールバック・集計
    "generate_fallback_analysis",
    "aggregate_session",
    # プロンプトモジュール
    "prompts",
]
