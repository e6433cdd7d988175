"""CLIの引数解析と入力ファイル読み込みのテスト"""

import json
from pathlib import Path

import pytest

from answer_scribe.domain import InterviewCategory, PipelineInputError
from answer_scribe.presentation.cli.controller import (
    ReplayClock,
    load_recording,
    load_segment_timings,
    load_transcript,
)
from answer_scribe.presentation.cli.main import parse_args


class TestParseArgs:
    """引数解析のテスト"""

    def test_defaults(self) -> None:
        args = parse_args(["-s", "segments.json", "-r", "session.webm"])

        assert args.segments == "segments.json"
        assert args.recording == "session.webm"
        assert args.transcript is None
        assert args.category == InterviewCategory.BEHAVIORAL
        assert args.user_id == "local"
        assert args.session_id is None
        assert not args.no_save

    def test_category_and_output(self) -> None:
        args = parse_args(
            ["-s", "s.json", "-t", "t.json", "-c", "technical", "-o", "out.json", "--no-save"]
        )

        assert args.category == InterviewCategory.TECHNICAL
        assert args.output == "out.json"
        assert args.no_save

    def test_requires_recording_or_transcript(self) -> None:
        with pytest.raises(SystemExit):
            parse_args(["-s", "segments.json"])

    def test_rejects_unknown_category(self) -> None:
        with pytest.raises(SystemExit):
            parse_args(["-s", "s.json", "-r", "r.webm", "-c", "sales"])


class TestInputFiles:
    """入力ファイル読み込みのテスト"""

    def test_segment_timings_sorted_by_start(self, tmp_path: Path) -> None:
        path = tmp_path / "segments.json"
        path.write_text(
            json.dumps(
                [
                    {
                        "question_id": "q2",
                        "question_text": "Why us?",
                        "start_sec": 40,
                        "end_sec": 75,
                    },
                    {"question_id": "q1", "start_sec": 0, "end_sec": 40},
                ]
            ),
            encoding="utf-8",
        )

        timings = load_segment_timings(path)

        assert [t.question_id for t in timings] == ["q1", "q2"]
        assert timings[0].question_text == ""
        assert timings[1].end_sec == 75.0

    @pytest.mark.parametrize(
        "content",
        [
            "not json",
            '[{"question_id": "q1"}]',
            '[{"question_id": "q1", "start_sec": "x", "end_sec": 1}]',
        ],
    )
    def test_invalid_segments(self, tmp_path: Path, content: str) -> None:
        path = tmp_path / "segments.json"
        path.write_text(content, encoding="utf-8")

        with pytest.raises(PipelineInputError):
            load_segment_timings(path)

    def test_missing_segments_file(self, tmp_path: Path) -> None:
        with pytest.raises(PipelineInputError):
            load_segment_timings(tmp_path / "missing.json")

    def test_transcript_in_deepgram_format(self, tmp_path: Path) -> None:
        path = tmp_path / "transcript.json"
        path.write_text(
            json.dumps(
                {
                    "metadata": {"duration": 12.5},
                    "results": {
                        "channels": [
                            {"alternatives": [{"transcript": "hello there", "confidence": 0.93}]}
                        ]
                    },
                }
            ),
            encoding="utf-8",
        )

        result = load_transcript(path)

        assert result.text == "hello there"
        assert result.confidence == pytest.approx(0.93)
        assert result.duration == 12.5

    def test_transcript_must_be_object(self, tmp_path: Path) -> None:
        path = tmp_path / "transcript.json"
        path.write_text("[]", encoding="utf-8")

        with pytest.raises(PipelineInputError):
            load_transcript(path)

    def test_recording_mime_type_from_extension(self, tmp_path: Path) -> None:
        path = tmp_path / "session.mp3"
        path.write_bytes(b"ID3")

        recording = load_recording(path)

        assert recording.data == b"ID3"
        assert recording.mime_type == "audio/mpeg"


class TestReplayClock:
    def test_seek_is_relative_to_origin(self) -> None:
        clock = ReplayClock(1_000_000)
        assert clock() == 1_000_000

        clock.seek(40.5)
        assert clock() == 1_040_500

        clock.seek(0)
        assert clock() == 1_000_000
