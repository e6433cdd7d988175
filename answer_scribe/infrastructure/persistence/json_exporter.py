#!/usr/bin/env python3
"""
Answer Scribe - JSON Exporter
インフラ層：セッション結果のJSON永続化
"""

import json
from dataclasses import asdict
from pathlib import Path
from typing import Any

from answer_scribe.domain.models import (
    AnalysisRecord,
    QuestionResponse,
    SessionResult,
    SessionSummary,
)


def _response_to_dict(response: QuestionResponse) -> dict[str, Any]:
    return {
        "question_id": response.question_id,
        "question_text": response.question_text,
        "answer_text": response.answer_text,
        "duration": round(response.duration, 2),
        "timestamp": response.timestamp,
        "metrics": {
            "word_count": response.metrics.word_count,
            "speaking_rate": response.metrics.speaking_rate,
            "filler_words": list(response.metrics.filler_words),
            "confidence": round(response.metrics.confidence, 3),
        },
    }


def _analysis_to_dict(record: AnalysisRecord) -> dict[str, Any]:
    data = asdict(record)
    data["strengths"] = list(record.strengths)
    data["improvements"] = list(record.improvements)
    data["total_tokens"] = record.total_tokens
    # フォールバック理由は存在する場合のみ
    if record.fallback_reason is None:
        data.pop("fallback_reason")
    return data


def _summary_to_dict(summary: SessionSummary) -> dict[str, Any]:
    data = asdict(summary)
    data["score_distribution"]["total"] = summary.score_distribution.total
    data["total_tokens"] = summary.total_tokens
    for key in (
        "overall_strengths",
        "overall_improvements",
        "pattern_insights",
        "next_steps",
        "recommended_practice_areas",
    ):
        data[key] = list(data[key])
    return data


class SessionJsonExporter:
    """
    SessionResultをJSON形式で永続化

    責務:
    - セッション結果のシリアライズ
    - ファイルシステムへの保存
    """

    @staticmethod
    def to_dict(result: SessionResult) -> dict[str, Any]:
        """セッション結果をJSON互換のdictに変換"""
        return {
            "session_id": result.session_id,
            "user_id": result.user_id,
            "category": result.category.value,
            "started_at": result.started_at.isoformat(),
            "completed_at": result.completed_at.isoformat(),
            "transcript_source": result.transcript_source,
            "transcript": {
                "text": result.transcript.text,
                "confidence": result.transcript.confidence,
                "duration": result.transcript.duration,
                "word_count": len(result.transcript.words),
            },
            "segments": [
                {
                    "question_id": seg.question_id,
                    "question_text": seg.question_text,
                    "start_time": seg.start_time,
                    "end_time": seg.end_time,
                    "duration": round(seg.duration, 2),
                }
                for seg in result.segments
            ],
            "responses": [_response_to_dict(r) for r in result.responses],
            "analyses": [_analysis_to_dict(a) for a in result.analyses],
            "summary": _summary_to_dict(result.summary),
            "total_errors": len(result.errors),
            "errors": [
                {"timestamp": err.timestamp.isoformat(), "message": err.message}
                for err in result.errors
            ],
        }

    @staticmethod
    def default_filename(result: SessionResult) -> str:
        """デフォルトファイル名: feedback_YYYYMMDD_HHMMSS.json"""
        return f"feedback_{result.started_at.strftime('%Y%m%d_%H%M%S')}.json"

    @staticmethod
    def save_to_file(result: SessionResult, output_path: Path | None = None) -> Path:
        """
        セッション結果をJSONファイルに保存

        Args:
            result: 保存するセッション結果
            output_path: 出力先パス（Noneの場合は自動生成）

        Returns:
            Path: 保存されたファイルのパス
        """
        if output_path is None:
            output_path = Path(SessionJsonExporter.default_filename(result))

        output_data = SessionJsonExporter.to_dict(result)

        with open(output_path, "w", encoding="utf-8") as f:
            json.dump(output_data, f, ensure_ascii=False, indent=2)

        return output_path
