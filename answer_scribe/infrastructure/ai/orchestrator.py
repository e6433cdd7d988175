#!/usr/bin/env python3
"""
Answer Scribe - Analysis Orchestrator
インフラ層：回答ごとのAI採点（モデル選択・コスト上限・リトライ・フォールバック）とセッション集計
"""

import asyncio
import dataclasses
import time
from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass
from typing import Generic, TypeVar

from pydantic import BaseModel

from answer_scribe.domain import (
    AnalysisRecord,
    AnalysisSettings,
    CostScope,
    FillerWordReport,
    InterviewCategory,
    LimitStatus,
    MessageLevel,
    QuestionResponse,
    ResponseAnalyzedEvent,
    RetrySettings,
    ScoringRequestError,
    ScoringResponseError,
    ScoringState,
    SessionAbortedError,
    SessionScoredEvent,
    SessionSummary,
    post_message,
    response_analyzed,
    session_scored,
)
from answer_scribe.infrastructure.billing import CostLedger, calculate_cost_cents

from .aggregation import aggregate_session
from .fallback_scorer import generate_fallback_analysis
from .llm_client import ScoringClient
from .payload import ScoringPayload, SessionOverviewPayload, parse_payload
from .prompts import SessionOverviewPromptStrategy, get_prompt_strategy
from .retry_policy import RetryAction, RetryPolicy

PayloadT = TypeVar("PayloadT", bound=BaseModel)

SleepFunc = Callable[[float], Awaitable[None]]


@dataclass(frozen=True)
class _CallOutcome(Generic[PayloadT]):
    """
    予算チェック・リトライ込みのモデル呼び出し結果

    payloadがNoneの場合はfallback_reasonにフォールバック理由が入る。
    """

    payload: PayloadT | None = None
    input_tokens: int = 0
    output_tokens: int = 0
    cost_cents: int = 0
    fallback_reason: str | None = None


class AnalysisOrchestrator:
    """
    AI採点オーケストレータ（セッションごとに生成）

    責務:
    - 面接カテゴリに応じたモデル選択
    - 呼び出し前のコスト上限チェック（上限到達ならAPIを呼ばない）
    - 一時的な失敗のリトライ（指数バックオフ）
    - 失敗時のルールベース採点へのフォールバック
    - 同時実行数を制限した一括採点とセッション集計

    採点エラーは呼び出し側に伝播させない。中断後に届いた結果はSessionAbortedErrorで破棄する。
    """

    def __init__(
        self,
        client: ScoringClient | None,
        ledger: CostLedger,
        settings: AnalysisSettings,
        retry_settings: RetrySettings,
        session_id: str,
        user_id: str,
        category: InterviewCategory,
        sleep: SleepFunc = asyncio.sleep,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        """
        Args:
            client: 採点クライアント（Noneの場合は常にフォールバック採点）
            ledger: コスト台帳
            settings: 採点設定
            retry_settings: リトライ設定
            session_id: セッションID
            user_id: ユーザーID
            category: 面接カテゴリ
            sleep: バックオフ待機関数（テスト時に差し替え）
            clock: 処理時間計測用の時計（秒）
        """
        self.client = client
        self.ledger = ledger
        self.settings = settings
        self.retry_settings = retry_settings
        self.session_id = session_id
        self.user_id = user_id
        self.category = category
        self._sleep = sleep
        self._clock = clock
        self._aborted = False
        self._states: dict[str, ScoringState] = {}

    # ========================================
    # 状態
    # ========================================
    @property
    def scopes(self) -> tuple[tuple[CostScope, str], ...]:
        """コスト上限を適用するスコープ"""
        return ((CostScope.SESSION, self.session_id), (CostScope.USER, self.user_id))

    @property
    def aborted(self) -> bool:
        return self._aborted

    def abort(self) -> None:
        """以降の結果を破棄する（何度呼んでもよい）"""
        self._aborted = True

    def state_of(self, question_id: str) -> ScoringState | None:
        """回答の採点状態"""
        return self._states.get(question_id)

    def _ensure_active(self) -> None:
        if self._aborted:
            raise SessionAbortedError()

    def _elapsed_ms(self, started: float) -> int:
        return int((self._clock() - started) * 1000)

    # ========================================
    # モデル呼び出し（予算チェック + リトライ）
    # ========================================
    async def _call_model(
        self,
        model: str,
        system_prompt: str,
        user_prompt: str,
        payload_type: type[PayloadT],
        on_retry: Callable[[], None] | None = None,
    ) -> _CallOutcome[PayloadT]:
        """
        予算を確保してモデルを呼び出し、応答を検証する

        Raises:
            SessionAbortedError: 呼び出し中にセッションが中断された場合
        """
        pricing = self.settings.pricing[model]
        policy = RetryPolicy(self.retry_settings)

        while True:
            self._ensure_active()

            # 上限チェックと見積もりの確保を同期的に行う
            reservation, check = self.ledger.reserve(self.scopes)
            if reservation is None:
                return _CallOutcome(
                    fallback_reason=(
                        f"Cost limit exceeded for {check.scope.value} "
                        f"({check.period.value}: {check.used_cents}/{check.limit_cents} cents)"
                    )
                )
            if check.status in (LimitStatus.WARNING, LimitStatus.CRITICAL):
                post_message(
                    self,
                    f"Cost limit {check.status.value} for {check.scope.value} "
                    f"({check.percent_used:.0f}% of {check.period.value} limit)",
                    MessageLevel.WARNING,
                )

            try:
                completion = await self.client(  # type: ignore[misc]
                    model=model,
                    system_prompt=system_prompt,
                    user_prompt=user_prompt,
                )
            except ScoringRequestError as e:
                self.ledger.release(reservation)
                self._ensure_active()
                decision = policy.evaluate_failure(e.status_code, str(e))
                if decision.action == RetryAction.GIVE_UP:
                    return _CallOutcome(fallback_reason=decision.reason)
                attempt, max_attempts = policy.get_attempt_info()
                post_message(
                    self,
                    f"Scoring call failed ({e}); retrying in {decision.delay_sec:.1f}s "
                    f"(attempt {attempt}/{max_attempts})",
                    MessageLevel.WARNING,
                )
                if on_retry is not None:
                    on_retry()
                await self._sleep(decision.delay_sec)
                continue
            except ScoringResponseError as e:
                self.ledger.release(reservation)
                self._ensure_active()
                return _CallOutcome(fallback_reason=f"Invalid model response: {e}")

            if self._aborted:
                self.ledger.release(reservation)
                raise SessionAbortedError()

            # 応答を受け取った時点で料金は発生している
            cost = calculate_cost_cents(
                pricing, completion.input_tokens, completion.output_tokens
            )
            self.ledger.settle(
                reservation,
                completion.input_tokens,
                completion.output_tokens,
                cost,
                model,
            )

            try:
                payload = parse_payload(completion.text, payload_type)
            except ScoringResponseError as e:
                return _CallOutcome(fallback_reason=f"Invalid model output: {e}")

            return _CallOutcome(
                payload=payload,
                input_tokens=completion.input_tokens,
                output_tokens=completion.output_tokens,
                cost_cents=cost,
            )

    # ========================================
    # 回答ごとの採点
    # ========================================
    def _fallback(
        self, response: QuestionResponse, reason: str, started: float
    ) -> AnalysisRecord:
        record = generate_fallback_analysis(
            response,
            self.category,
            reason,
            processing_time_ms=self._elapsed_ms(started),
        )
        # フォールバックも呼び出し回数として台帳に残す（コスト0）
        for scope, scope_id in self.scopes:
            self.ledger.record_usage(scope, scope_id, 0, 0, 0, record.model_used)

        self._states[response.question_id] = ScoringState.FALLBACK_SCORED
        post_message(
            self,
            f"Fallback scoring used for question {response.question_id}: {reason}",
            MessageLevel.WARNING,
        )
        return record

    async def score_response(self, response: QuestionResponse) -> AnalysisRecord:
        """
        回答1件を採点

        AI採点が使えない・失敗した・予算を超えた場合はルールベース採点を返す。

        Args:
            response: 再構成済みの回答

        Returns:
            AnalysisRecord: 採点結果

        Raises:
            SessionAbortedError: セッションが中断された場合
        """
        self._ensure_active()
        started = self._clock()
        question_id = response.question_id
        self._states[question_id] = ScoringState.PENDING

        if self.client is None or not self.settings.enabled:
            record = self._fallback(response, "AI analysis disabled", started)
        else:
            model = self.settings.select_model(self.category)
            prompt = get_prompt_strategy(
                self.category, self.settings.include_improved_example
            )

            def mark_retrying() -> None:
                self._states[question_id] = ScoringState.RETRYING

            outcome = await self._call_model(
                model,
                prompt.system_prompt,
                prompt.build_user_prompt(response),
                ScoringPayload,
                on_retry=mark_retrying,
            )
            if outcome.payload is None:
                record = self._fallback(
                    response, outcome.fallback_reason or "Unknown error", started
                )
            else:
                record = self._build_record(response, model, outcome, started)
                self._states[question_id] = ScoringState.SCORED

        response_analyzed.send(self, event=ResponseAnalyzedEvent(record=record))
        return record

    def _build_record(
        self,
        response: QuestionResponse,
        model: str,
        outcome: _CallOutcome[ScoringPayload],
        started: float,
    ) -> AnalysisRecord:
        payload = outcome.payload
        assert payload is not None
        return AnalysisRecord(
            question_id=response.question_id,
            category=self.category,
            overall_score=payload.overall_score,
            communication_scores=dict(payload.communication_scores),
            content_scores=dict(payload.content_scores),
            domain_scores=dict(payload.domain_scores),
            strengths=tuple(payload.strengths),
            improvements=tuple(payload.improvements),
            actionable_feedback=payload.actionable_feedback,
            improved_example=payload.improved_example,
            filler_words=FillerWordReport(
                counts=dict(payload.filler_words.counts),
                total=payload.filler_words.total,
            ),
            speaking_pace=payload.speaking_pace,
            confidence_score=payload.confidence_score,
            response_length_assessment=payload.response_length_assessment,
            model_used=model,
            input_tokens=outcome.input_tokens,
            output_tokens=outcome.output_tokens,
            cost_cents=outcome.cost_cents,
            processing_time_ms=self._elapsed_ms(started),
        )

    async def score_all(
        self, responses: Sequence[QuestionResponse]
    ) -> list[AnalysisRecord]:
        """
        全回答を同時実行数を制限して採点

        完了順に関わらず、結果は回答と同じ順序で返す。
        """
        semaphore = asyncio.Semaphore(self.settings.concurrency)

        async def score_one(response: QuestionResponse) -> AnalysisRecord:
            async with semaphore:
                return await self.score_response(response)

        return list(await asyncio.gather(*(score_one(r) for r in responses)))

    # ========================================
    # セッション集計
    # ========================================
    async def summarize(
        self,
        records: Sequence[AnalysisRecord],
        responses: Sequence[QuestionResponse],
        total_questions: int | None = None,
    ) -> SessionSummary:
        """
        採点結果を集計し、可能ならAIに総評を依頼する

        総評の呼び出しも予算・リトライ・フォールバックの規則に従い、
        失敗時は集計から生成した定型文のまま返す。
        """
        self._ensure_active()
        summary = aggregate_session(
            self.session_id, records, responses, total_questions
        )

        if (
            self.client is not None
            and self.settings.enabled
            and self.settings.session_overview_enabled
            and records
        ):
            strategy = SessionOverviewPromptStrategy()
            outcome = await self._call_model(
                self.settings.select_model(self.category),
                strategy.system_prompt,
                strategy.build_user_prompt(responses, records, summary),
                SessionOverviewPayload,
            )
            if outcome.payload is not None:
                overview = outcome.payload
                summary = dataclasses.replace(
                    summary,
                    overall_feedback=overview.overall_feedback,
                    pattern_insights=tuple(overview.pattern_insights)
                    or summary.pattern_insights,
                    next_steps=tuple(overview.next_steps) or summary.next_steps,
                    total_input_tokens=summary.total_input_tokens
                    + outcome.input_tokens,
                    total_output_tokens=summary.total_output_tokens
                    + outcome.output_tokens,
                    total_cost_cents=summary.total_cost_cents + outcome.cost_cents,
                )
            else:
                post_message(
                    self,
                    f"Session overview unavailable: {outcome.fallback_reason}",
                    MessageLevel.WARNING,
                )

        self._ensure_active()
        session_scored.send(self, event=SessionScoredEvent(summary=summary))
        return summary

    async def score_session(
        self,
        responses: Sequence[QuestionResponse],
        total_questions: int | None = None,
    ) -> SessionSummary:
        """全回答を採点してセッション集計を返す"""
        records = await self.score_all(responses)
        return await self.summarize(records, responses, total_questions)
