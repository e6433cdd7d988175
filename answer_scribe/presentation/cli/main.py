#!/usr/bin/env python3
"""
Answer Scribe - CLI Main Entry Point
CLIアプリケーションのエントリーポイント
"""

import argparse

from colorama import init as colorama_init  # type: ignore[import-untyped]

from answer_scribe.domain import InterviewCategory

from .controller import CLIController


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    """CLI引数を解析する"""
    parser = argparse.ArgumentParser(
        prog="answer-scribe",
        description="Score a recorded mock interview: transcribe, split per question, and analyze",
    )
    parser.add_argument(
        "-s",
        "--segments",
        type=str,
        required=True,
        metavar="PATH",
        help="JSON list of question timings "
        '([{"question_id", "question_text", "start_sec", "end_sec"}, ...])',
    )
    parser.add_argument(
        "-r",
        "--recording",
        type=str,
        default=None,
        metavar="PATH",
        help="Recording of the whole session, uploaded for batch transcription",
    )
    parser.add_argument(
        "-t",
        "--transcript",
        type=str,
        default=None,
        metavar="PATH",
        help="Pre-computed speech-to-text JSON used instead of transcribing the recording",
    )
    parser.add_argument(
        "-c",
        "--category",
        type=InterviewCategory,
        choices=list(InterviewCategory),
        default=InterviewCategory.BEHAVIORAL,
        help="Interview category (selects the scoring model and prompt)",
    )
    parser.add_argument(
        "-u",
        "--user-id",
        type=str,
        default="local",
        help="User ID for per-user cost limits",
    )
    parser.add_argument(
        "--session-id",
        type=str,
        default=None,
        help="Session ID (generated when omitted)",
    )
    parser.add_argument(
        "-o",
        "--output",
        type=str,
        default=None,
        metavar="PATH",
        help="Output JSON path (default: feedback_YYYYMMDD_HHMMSS.json in app.output_dir)",
    )
    parser.add_argument(
        "--no-save",
        action="store_true",
        help="Do not write the feedback JSON",
    )
    args = parser.parse_args(argv)
    if args.recording is None and args.transcript is None:
        parser.error("one of --recording or --transcript is required")
    return args


def main() -> None:
    """エントリーポイント"""
    # CLI引数解析
    args = parse_args()

    # colorama初期化
    colorama_init(autoreset=True)

    # CLIController起動
    controller = CLIController(
        segments_path=args.segments,
        recording_path=args.recording,
        transcript_path=args.transcript,
        category=args.category,
        user_id=args.user_id,
        session_id=args.session_id,
        output_path=args.output,
        save=not args.no_save,
    )
    controller.run()


if __name__ == "__main__":
    main()
