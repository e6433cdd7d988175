#!/usr/bin/env python3
"""
Answer Scribe - Persistence Layer
永続化層：セッション結果のエクスポート
"""

from .json_exporter import SessionJsonExporter

__all__ = [
    "SessionJsonExporter",
]
