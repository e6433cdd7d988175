#!/usr/bin/env python3
"""
Answer Scribe - Package Entry Point
python -m answer_scribe で実行
"""

from answer_scribe.presentation.cli import main

if __name__ == "__main__":
    main()
