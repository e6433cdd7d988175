"""テスト共通のフィクスチャ"""

from collections.abc import Iterator

import pytest

from answer_scribe.domain import (
    AnalysisSettings,
    AppSettings,
    MessageLevel,
    MessagePostedEvent,
    Settings,
    message_posted,
)

from .fakes import ManualClock, SleepRecorder


@pytest.fixture
def settings() -> Settings:
    """AI採点有効（テスト用キー）、JSON保存無効の設定"""
    return Settings(
        analysis=AnalysisSettings(openrouter_api_key="test-key"),
        app=AppSettings(save_json=False),
    )


@pytest.fixture
def clock() -> ManualClock:
    return ManualClock()


@pytest.fixture
def sleep() -> SleepRecorder:
    return SleepRecorder()


@pytest.fixture
def posted() -> Iterator[list[MessagePostedEvent]]:
    """テスト中に投稿されたメッセージを収集"""
    collected: list[MessagePostedEvent] = []

    def receiver(_sender: object, event: MessagePostedEvent) -> None:
        collected.append(event)

    message_posted.connect(receiver)
    yield collected
    message_posted.disconnect(receiver)


@pytest.fixture
def warnings() -> Iterator[list[str]]:
    """WARNINGレベルのメッセージ本文を収集"""
    collected: list[str] = []

    def receiver(_sender: object, event: MessagePostedEvent) -> None:
        if event.level == MessageLevel.WARNING:
            collected.append(event.message)

    message_posted.connect(receiver)
    yield collected
    message_posted.disconnect(receiver)
