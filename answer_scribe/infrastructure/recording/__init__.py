#!/usr/bin/env python3
"""
Answer Scribe - Recording Infrastructure
録音中の質問区間トラッキング
"""

from .segment_tracker import SegmentTracker

__all__ = [
    "SegmentTracker",
]
