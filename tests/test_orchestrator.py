"""AnalysisOrchestratorのテスト"""

import asyncio
import json
from collections.abc import Iterator

import pytest

from answer_scribe.domain import (
    AnalysisRecord,
    AnalysisSettings,
    CostPeriod,
    CostScope,
    InterviewCategory,
    ResponseAnalyzedEvent,
    ScoringRequestError,
    ScoringResponseError,
    ScoringState,
    SessionAbortedError,
    SessionScoredEvent,
    Settings,
    response_analyzed,
    session_scored,
)
from answer_scribe.domain.constants import FALLBACK_MODEL_NAME
from answer_scribe.infrastructure.ai import AnalysisOrchestrator, ScoringCompletion
from answer_scribe.infrastructure.billing import CostLedger

from .fakes import FakeScoringClient, SleepRecorder, make_response, scoring_json

SESSION_ID = "s1"
USER_ID = "u1"


@pytest.fixture
def ledger(settings: Settings) -> CostLedger:
    return CostLedger(settings.cost)


@pytest.fixture
def client() -> FakeScoringClient:
    return FakeScoringClient()


@pytest.fixture
def orchestrator(
    client: FakeScoringClient,
    ledger: CostLedger,
    settings: Settings,
    sleep: SleepRecorder,
) -> AnalysisOrchestrator:
    return AnalysisOrchestrator(
        client,
        ledger,
        settings.analysis,
        settings.retry,
        SESSION_ID,
        USER_ID,
        InterviewCategory.BEHAVIORAL,
        sleep=sleep,
    )


@pytest.fixture
def analyzed() -> Iterator[list[AnalysisRecord]]:
    """response_analyzedで通知された採点結果を収集"""
    collected: list[AnalysisRecord] = []

    def receiver(_sender: object, event: ResponseAnalyzedEvent) -> None:
        collected.append(event.record)

    response_analyzed.connect(receiver)
    yield collected
    response_analyzed.disconnect(receiver)


class TestScoring:
    """AI採点の成功ケース"""

    @pytest.mark.asyncio
    async def test_scores_with_category_model(
        self,
        orchestrator: AnalysisOrchestrator,
        client: FakeScoringClient,
        settings: Settings,
        analyzed: list[AnalysisRecord],
    ) -> None:
        """カテゴリに対応するモデルで採点し、トークンとコストを記録"""
        record = await orchestrator.score_response(make_response("q1"))

        assert record.model_used == "anthropic/claude-3-haiku"
        assert record.model_used == settings.analysis.select_model(
            InterviewCategory.BEHAVIORAL
        )
        assert client.calls[0]["model"] == record.model_used
        assert record.overall_score == 78
        assert record.domain_scores["result"] == 6
        assert record.state == ScoringState.SCORED
        assert not record.is_fallback
        assert (record.input_tokens, record.output_tokens) == (1000, 500)
        assert record.cost_cents == 1
        assert orchestrator.state_of("q1") == ScoringState.SCORED
        assert analyzed == [record]

    @pytest.mark.asyncio
    async def test_settles_cost_for_session_and_user(
        self, orchestrator: AnalysisOrchestrator, ledger: CostLedger
    ) -> None:
        """コストはセッションとユーザーの両方に記録"""
        await orchestrator.score_response(make_response())

        for scope, scope_id in ((CostScope.SESSION, SESSION_ID), (CostScope.USER, USER_ID)):
            entry = ledger.entry(scope, scope_id, CostPeriod.DAY)
            assert entry.total_cost_cents == 1
            assert entry.call_count == 1
            assert entry.model_costs == {"anthropic/claude-3-haiku": 1}

    @pytest.mark.asyncio
    async def test_technical_category_uses_technical_prompt(
        self, client: FakeScoringClient, ledger: CostLedger, settings: Settings
    ) -> None:
        client.default_text = scoring_json(
            star_scores=None, technical_scores={"understanding": 8, "approach": 7}
        )
        orchestrator = AnalysisOrchestrator(
            client,
            ledger,
            settings.analysis,
            settings.retry,
            SESSION_ID,
            USER_ID,
            InterviewCategory.TECHNICAL,
        )

        record = await orchestrator.score_response(make_response())

        assert record.model_used == "openai/gpt-3.5-turbo"
        assert "technical_scores" in client.calls[0]["system_prompt"]
        assert record.domain_scores == {"understanding": 8, "approach": 7}


class TestRetry:
    """リトライのテスト"""

    @pytest.mark.asyncio
    async def test_rate_limited_three_times_then_success(
        self,
        orchestrator: AnalysisOrchestrator,
        client: FakeScoringClient,
        sleep: SleepRecorder,
        warnings: list[str],
    ) -> None:
        """429が3回続いた後の成功は1, 2, 4秒待ってAI採点"""
        client.outcomes = [
            ScoringRequestError("rate limited", status_code=429) for _ in range(3)
        ]

        record = await orchestrator.score_response(make_response())

        assert sleep.delays == [1.0, 2.0, 4.0]
        assert len(client.calls) == 4
        assert not record.is_fallback
        assert record.model_used == "anthropic/claude-3-haiku"
        assert sum("retrying" in w for w in warnings) == 3

    @pytest.mark.asyncio
    async def test_gives_up_after_max_retries(
        self,
        orchestrator: AnalysisOrchestrator,
        client: FakeScoringClient,
        sleep: SleepRecorder,
    ) -> None:
        """リトライを使い切ればフォールバック"""
        client.outcomes = [
            ScoringRequestError("unavailable", status_code=503) for _ in range(4)
        ]

        record = await orchestrator.score_response(make_response())

        assert len(client.calls) == 4
        assert sleep.delays == [1.0, 2.0, 4.0]
        assert record.is_fallback
        assert record.fallback_reason is not None
        assert "Max retries reached" in record.fallback_reason

    @pytest.mark.asyncio
    async def test_unauthorized_falls_back_without_retry(
        self,
        orchestrator: AnalysisOrchestrator,
        client: FakeScoringClient,
        sleep: SleepRecorder,
        ledger: CostLedger,
    ) -> None:
        """401はリトライせずフォールバック（コスト0で記録）"""
        client.outcomes = [ScoringRequestError("unauthorized", status_code=401)]

        record = await orchestrator.score_response(make_response())

        assert len(client.calls) == 1
        assert sleep.delays == []
        assert record.is_fallback
        assert record.model_used == FALLBACK_MODEL_NAME
        assert record.cost_cents == 0
        assert orchestrator.state_of(record.question_id) == ScoringState.FALLBACK_SCORED

        entry = ledger.entry(CostScope.SESSION, SESSION_ID, CostPeriod.DAY)
        assert entry.total_cost_cents == 0
        assert entry.call_count == 1

    @pytest.mark.asyncio
    async def test_timeout_is_retried(
        self,
        orchestrator: AnalysisOrchestrator,
        client: FakeScoringClient,
        sleep: SleepRecorder,
    ) -> None:
        """ステータスなし（タイムアウト）はリトライ"""
        client.outcomes = [ScoringRequestError("timeout")]

        record = await orchestrator.score_response(make_response())

        assert sleep.delays == [1.0]
        assert not record.is_fallback

    @pytest.mark.asyncio
    async def test_invalid_response_from_client_is_not_retried(
        self,
        orchestrator: AnalysisOrchestrator,
        client: FakeScoringClient,
        sleep: SleepRecorder,
    ) -> None:
        client.outcomes = [ScoringResponseError("No choices returned")]

        record = await orchestrator.score_response(make_response())

        assert len(client.calls) == 1
        assert sleep.delays == []
        assert record.is_fallback


class TestCostLimits:
    """コスト上限のテスト"""

    @pytest.mark.asyncio
    async def test_critical_budget_still_calls_model(
        self,
        orchestrator: AnalysisOrchestrator,
        client: FakeScoringClient,
        ledger: CostLedger,
        warnings: list[str],
    ) -> None:
        """セッション上限の95%使用済みなら警告してAI採点"""
        ledger.record_usage(CostScope.SESSION, SESSION_ID, 0, 0, 95)

        record = await orchestrator.score_response(make_response())

        assert len(client.calls) == 1
        assert not record.is_fallback
        assert any("Cost limit critical" in w for w in warnings)

    @pytest.mark.asyncio
    async def test_exceeded_budget_skips_model(
        self,
        orchestrator: AnalysisOrchestrator,
        client: FakeScoringClient,
        ledger: CostLedger,
    ) -> None:
        """セッション上限に達していればAPIを呼ばずフォールバック"""
        ledger.record_usage(CostScope.SESSION, SESSION_ID, 0, 0, 100)

        record = await orchestrator.score_response(make_response())

        assert client.calls == []
        assert record.is_fallback
        assert record.fallback_reason is not None
        assert "Cost limit exceeded" in record.fallback_reason

    @pytest.mark.asyncio
    async def test_user_limit_applies_across_sessions(
        self,
        orchestrator: AnalysisOrchestrator,
        client: FakeScoringClient,
        ledger: CostLedger,
    ) -> None:
        """ユーザーの日次上限は別セッションの使用分も含む"""
        ledger.record_usage(CostScope.USER, USER_ID, 0, 0, 500)

        record = await orchestrator.score_response(make_response())

        assert client.calls == []
        assert record.is_fallback


class TestFallback:
    """フォールバックのテスト"""

    @pytest.mark.asyncio
    async def test_invalid_json_falls_back_but_is_charged(
        self,
        orchestrator: AnalysisOrchestrator,
        client: FakeScoringClient,
        ledger: CostLedger,
    ) -> None:
        """JSONとして読めない応答はフォールバック（応答分のコストは記録）"""
        client.outcomes = ["I think the candidate did well."]

        record = await orchestrator.score_response(make_response())

        assert record.is_fallback
        assert record.fallback_reason is not None
        assert "Invalid model output" in record.fallback_reason
        entry = ledger.entry(CostScope.SESSION, SESSION_ID, CostPeriod.DAY)
        assert entry.total_cost_cents == 1

    @pytest.mark.asyncio
    async def test_missing_required_field_falls_back(
        self, orchestrator: AnalysisOrchestrator, client: FakeScoringClient
    ) -> None:
        payload = json.loads(scoring_json())
        del payload["overall_score"]
        client.outcomes = [json.dumps(payload)]

        record = await orchestrator.score_response(make_response())

        assert record.is_fallback

    @pytest.mark.asyncio
    async def test_no_client_uses_fallback(
        self, ledger: CostLedger, settings: Settings
    ) -> None:
        """クライアントなしなら常にフォールバック"""
        orchestrator = AnalysisOrchestrator(
            None,
            ledger,
            settings.analysis,
            settings.retry,
            SESSION_ID,
            USER_ID,
            InterviewCategory.BEHAVIORAL,
        )

        record = await orchestrator.score_response(make_response())

        assert record.is_fallback
        assert record.fallback_reason == "AI analysis disabled"

    @pytest.mark.asyncio
    async def test_disabled_analysis_uses_fallback(
        self, client: FakeScoringClient, ledger: CostLedger, settings: Settings
    ) -> None:
        orchestrator = AnalysisOrchestrator(
            client,
            ledger,
            AnalysisSettings(enabled=False),
            settings.retry,
            SESSION_ID,
            USER_ID,
            InterviewCategory.BEHAVIORAL,
        )

        record = await orchestrator.score_response(make_response())

        assert client.calls == []
        assert record.is_fallback


class _SlowClient(FakeScoringClient):
    """回答テキストに応じて応答を遅らせるクライアント"""

    def __init__(self, delays: dict[str, float]) -> None:
        super().__init__()
        self.delays = delays
        self.in_flight = 0
        self.max_in_flight = 0

    async def __call__(
        self,
        model: str,
        system_prompt: str,
        user_prompt: str,
        temperature: float | None = None,
        max_tokens: int | None = None,
    ) -> ScoringCompletion:
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        delay = next(
            (seconds for key, seconds in self.delays.items() if key in user_prompt), 0
        )
        await asyncio.sleep(delay)
        self.in_flight -= 1
        return await super().__call__(model, system_prompt, user_prompt)


class TestScoreAll:
    """一括採点のテスト"""

    @pytest.mark.asyncio
    async def test_results_keep_response_order(
        self, ledger: CostLedger, settings: Settings
    ) -> None:
        """完了順に関わらず結果は回答順"""
        client = _SlowClient({"alpha": 0.05, "bravo": 0.0, "charlie": 0.02, "delta": 0.01})
        orchestrator = AnalysisOrchestrator(
            client,
            ledger,
            settings.analysis,
            settings.retry,
            SESSION_ID,
            USER_ID,
            InterviewCategory.BEHAVIORAL,
        )
        responses = [
            make_response(f"q{i}", text=f"answer {name}")
            for i, name in enumerate(("alpha", "bravo", "charlie", "delta"), start=1)
        ]

        records = await orchestrator.score_all(responses)

        assert [r.question_id for r in records] == ["q1", "q2", "q3", "q4"]
        assert client.max_in_flight <= settings.analysis.concurrency

    @pytest.mark.asyncio
    async def test_empty_input(self, orchestrator: AnalysisOrchestrator) -> None:
        assert await orchestrator.score_all([]) == []


class TestAbort:
    """中断のテスト"""

    @pytest.mark.asyncio
    async def test_aborted_session_rejects_scoring(
        self, orchestrator: AnalysisOrchestrator, client: FakeScoringClient
    ) -> None:
        orchestrator.abort()
        orchestrator.abort()

        with pytest.raises(SessionAbortedError):
            await orchestrator.score_response(make_response())
        assert client.calls == []

    @pytest.mark.asyncio
    async def test_result_arriving_after_abort_is_discarded(
        self, ledger: CostLedger, settings: Settings
    ) -> None:
        """呼び出し中に中断されたら結果を破棄し、予約を解放"""
        orchestrator: AnalysisOrchestrator

        class AbortingClient(FakeScoringClient):
            async def __call__(
                self,
                model: str,
                system_prompt: str,
                user_prompt: str,
                temperature: float | None = None,
                max_tokens: int | None = None,
            ) -> ScoringCompletion:
                orchestrator.abort()
                return await super().__call__(model, system_prompt, user_prompt)

        orchestrator = AnalysisOrchestrator(
            AbortingClient(),
            ledger,
            settings.analysis,
            settings.retry,
            SESSION_ID,
            USER_ID,
            InterviewCategory.BEHAVIORAL,
        )

        with pytest.raises(SessionAbortedError):
            await orchestrator.score_response(make_response())

        assert ledger.remaining_budget(CostScope.SESSION, SESSION_ID) == 100
        assert ledger.entry(CostScope.SESSION, SESSION_ID, CostPeriod.DAY).call_count == 0


class TestSummarize:
    """セッション集計のテスト"""

    @pytest.mark.asyncio
    async def test_overview_replaces_template_feedback(
        self, orchestrator: AnalysisOrchestrator, client: FakeScoringClient
    ) -> None:
        """AIの総評で定型文を置き換え、トークンを合算"""
        responses = [make_response("q1"), make_response("q2")]
        records = await orchestrator.score_all(responses)
        client.outcomes = [
            json.dumps(
                {
                    "overall_feedback": "Strong, structured answers overall.",
                    "pattern_insights": ["Consistently uses STAR"],
                    "next_steps": ["Quantify results more often"],
                }
            )
        ]
        summaries: list[SessionScoredEvent] = []

        def receiver(_sender: object, event: SessionScoredEvent) -> None:
            summaries.append(event)

        session_scored.connect(receiver)
        try:
            summary = await orchestrator.summarize(records, responses, total_questions=3)
        finally:
            session_scored.disconnect(receiver)

        assert summary.overall_feedback == "Strong, structured answers overall."
        assert summary.pattern_insights == ("Consistently uses STAR",)
        assert summary.next_steps == ("Quantify results more often",)
        assert summary.total_questions == 3
        assert summary.questions_answered == 2
        assert summary.total_input_tokens == 3000
        assert summary.total_cost_cents == 3
        assert [event.summary for event in summaries] == [summary]

    @pytest.mark.asyncio
    async def test_overview_failure_keeps_template(
        self,
        orchestrator: AnalysisOrchestrator,
        client: FakeScoringClient,
        warnings: list[str],
    ) -> None:
        """総評に失敗しても集計結果は返る"""
        responses = [make_response("q1")]
        records = await orchestrator.score_all(responses)
        client.outcomes = [ScoringRequestError("forbidden", status_code=403)]

        summary = await orchestrator.summarize(records, responses)

        assert summary.overall_feedback == (
            "Analysis completed with 1 question responses processed"
        )
        assert any("Session overview unavailable" in w for w in warnings)

    @pytest.mark.asyncio
    async def test_fallback_records_reduce_confidence(
        self, orchestrator: AnalysisOrchestrator, client: FakeScoringClient
    ) -> None:
        client.outcomes = [ScoringRequestError("unauthorized", status_code=401)]
        responses = [make_response("q1"), make_response("q2")]

        summary = await orchestrator.score_session(responses)

        assert summary.reduced_confidence
        assert summary.model_breakdown == {
            FALLBACK_MODEL_NAME: 1,
            "anthropic/claude-3-haiku": 1,
        }
