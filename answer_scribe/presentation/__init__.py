#!/usr/bin/env python3
"""
Answer Scribe - Presentation Layer
プレゼンテーション層：UI、アプリケーションロジック
"""

# コアアプリケーション
from .app import FeedbackPipelineApp

__all__ = [
    # コアアプリケーション
    "FeedbackPipelineApp",
]
