#!/usr/bin/env python3
"""
Answer Scribe - Cost Ledger
インフラ層：セッション・ユーザー単位のトークン使用量とコストを日次・月次で集計する
"""

from collections.abc import Callable, Iterable
from dataclasses import dataclass, field
from datetime import datetime
from itertools import count

from answer_scribe.domain import (
    CostLedgerEntry,
    CostLimitSettings,
    CostPeriod,
    CostScope,
    CostSettings,
    LimitStatus,
)

# 状態の深刻度（集約時に最悪値を取る）
_SEVERITY = {
    LimitStatus.OK: 0,
    LimitStatus.WARNING: 1,
    LimitStatus.CRITICAL: 2,
    LimitStatus.EXCEEDED: 3,
}

ScopeKey = tuple[CostScope, str]


@dataclass(frozen=True)
class LimitCheck:
    """
    上限チェックの結果

    Attributes:
        status: 日次・月次のうち深刻な方の状態
        period: statusを決めた期間
        used_cents: 確定済み + 予約中のコスト
        limit_cents: 期間の上限
    """

    scope: CostScope
    scope_id: str
    status: LimitStatus
    period: CostPeriod
    used_cents: int
    limit_cents: int

    @property
    def percent_used(self) -> float:
        if self.limit_cents <= 0:
            return 100.0
        return self.used_cents / self.limit_cents * 100

    @property
    def allows_paid_call(self) -> bool:
        return self.status != LimitStatus.EXCEEDED


@dataclass(frozen=True)
class CostReservation:
    """呼び出し前に確保した見積もりコスト"""

    reservation_id: int
    scopes: tuple[ScopeKey, ...]
    amount_cents: int


@dataclass(frozen=True)
class CostSnapshot:
    """スコープの現在の使用状況"""

    scope: CostScope
    scope_id: str
    daily_cost_cents: int
    monthly_cost_cents: int
    daily_limit_cents: int
    monthly_limit_cents: int
    remaining_cents: int
    input_tokens: int
    output_tokens: int
    call_count: int
    model_costs: dict[str, int] = field(default_factory=dict)


class CostLedger:
    """
    コスト台帳

    責務:
    - スコープ（セッション／ユーザー）×期間（日／月）ごとの加算集計
    - 上限チェック（ok / warning / critical / exceeded）
    - 呼び出し前の予約（チェックと確保を同期的に一括で行う）

    期間キーが変わると新しいエントリになるため、既存エントリは減少しない。
    """

    def __init__(
        self,
        settings: CostSettings,
        clock: Callable[[], datetime] = datetime.now,
    ) -> None:
        """
        Args:
            settings: コスト設定（上限、閾値）
            clock: 現在時刻を返す関数（テスト時に差し替え）
        """
        self.settings = settings
        self._clock = clock
        self._entries: dict[tuple[CostScope, str, CostPeriod, str], CostLedgerEntry] = {}
        self._reservations: dict[int, CostReservation] = {}
        self._reservation_ids = count(1)

    # ========================================
    # 期間・上限
    # ========================================
    @staticmethod
    def period_key(period: CostPeriod, moment: datetime) -> str:
        """期間キー（日: YYYY-MM-DD、月: YYYY-MM）"""
        match period:
            case CostPeriod.DAY:
                return moment.strftime("%Y-%m-%d")
            case CostPeriod.MONTH:
                return moment.strftime("%Y-%m")
            case _:
                raise ValueError(f"Unknown cost period: {period}")

    def limits_for(self, scope: CostScope) -> CostLimitSettings:
        return (
            self.settings.session_limits
            if scope == CostScope.SESSION
            else self.settings.user_limits
        )

    def _limit_cents(self, scope: CostScope, period: CostPeriod) -> int:
        limits = self.limits_for(scope)
        return (
            limits.daily_limit_cents
            if period == CostPeriod.DAY
            else limits.monthly_limit_cents
        )

    def entry(
        self, scope: CostScope, scope_id: str, period: CostPeriod
    ) -> CostLedgerEntry:
        """現在の期間のエントリ（なければ作成）"""
        key = (scope, scope_id, period, self.period_key(period, self._clock()))
        if key not in self._entries:
            self._entries[key] = CostLedgerEntry(
                scope=scope, scope_id=scope_id, period=period, period_key=key[3]
            )
        return self._entries[key]

    def _pending_cents(self, scope: CostScope, scope_id: str) -> int:
        return sum(
            reservation.amount_cents
            for reservation in self._reservations.values()
            if (scope, scope_id) in reservation.scopes
        )

    def _classify(self, used_cents: int, limit_cents: int) -> LimitStatus:
        if used_cents >= limit_cents:
            return LimitStatus.EXCEEDED
        percent = used_cents / limit_cents * 100
        if percent >= self.settings.critical_threshold_percent:
            return LimitStatus.CRITICAL
        if percent >= self.settings.warning_threshold_percent:
            return LimitStatus.WARNING
        return LimitStatus.OK

    # ========================================
    # 上限チェック・予約
    # ========================================
    def check_limit(self, scope: CostScope, scope_id: str) -> LimitCheck:
        """
        日次・月次の上限を個別に判定し、深刻な方を返す

        予約中のコストも使用済みとして扱う。
        """
        pending = self._pending_cents(scope, scope_id)
        checks = []
        for period in (CostPeriod.DAY, CostPeriod.MONTH):
            used = self.entry(scope, scope_id, period).total_cost_cents + pending
            limit = self._limit_cents(scope, period)
            checks.append(
                LimitCheck(
                    scope=scope,
                    scope_id=scope_id,
                    status=self._classify(used, limit),
                    period=period,
                    used_cents=used,
                    limit_cents=limit,
                )
            )
        return max(checks, key=lambda check: _SEVERITY[check.status])

    def check_scopes(self, scopes: Iterable[ScopeKey]) -> LimitCheck:
        """複数スコープを判定し、最も深刻な結果を返す"""
        checks = [self.check_limit(scope, scope_id) for scope, scope_id in scopes]
        if not checks:
            raise ValueError("At least one cost scope is required")
        return max(checks, key=lambda check: _SEVERITY[check.status])

    def reserve(
        self, scopes: Iterable[ScopeKey], estimated_cents: int | None = None
    ) -> tuple[CostReservation | None, LimitCheck]:
        """
        上限チェックと見積もりコストの確保を一括で行う

        awaitを挟まないため、他のタスクがチェックと確保の間に割り込むことはない。

        Returns:
            tuple: (予約 or None（上限到達時）, 判定結果)
        """
        scope_keys = tuple(scopes)
        check = self.check_scopes(scope_keys)
        if not check.allows_paid_call:
            return None, check

        amount = (
            self.settings.estimated_call_cost_cents
            if estimated_cents is None
            else estimated_cents
        )
        reservation = CostReservation(
            reservation_id=next(self._reservation_ids),
            scopes=scope_keys,
            amount_cents=max(0, amount),
        )
        self._reservations[reservation.reservation_id] = reservation
        return reservation, check

    def release(self, reservation: CostReservation) -> None:
        """予約を取り消す（何度呼んでもよい）"""
        self._reservations.pop(reservation.reservation_id, None)

    # ========================================
    # 使用量の記録
    # ========================================
    def record_usage(
        self,
        scope: CostScope,
        scope_id: str,
        input_tokens: int,
        output_tokens: int,
        cost_cents: int,
        model: str | None = None,
    ) -> None:
        """
        使用量を日次・月次のエントリに加算

        Raises:
            ValueError: 負の値が渡された場合
        """
        if min(input_tokens, output_tokens, cost_cents) < 0:
            raise ValueError("Usage values must be non-negative")

        for period in (CostPeriod.DAY, CostPeriod.MONTH):
            entry = self.entry(scope, scope_id, period)
            entry.total_cost_cents += cost_cents
            entry.input_tokens += input_tokens
            entry.output_tokens += output_tokens
            entry.call_count += 1
            if model:
                entry.model_costs[model] = entry.model_costs.get(model, 0) + cost_cents

    def settle(
        self,
        reservation: CostReservation,
        input_tokens: int,
        output_tokens: int,
        cost_cents: int,
        model: str | None = None,
    ) -> None:
        """予約を確定し、実際の使用量を予約した全スコープに記録"""
        self.release(reservation)
        for scope, scope_id in reservation.scopes:
            self.record_usage(
                scope, scope_id, input_tokens, output_tokens, cost_cents, model
            )

    # ========================================
    # 参照
    # ========================================
    def remaining_budget(self, scope: CostScope, scope_id: str) -> int:
        """日次・月次のうち少ない方の残り予算（セント）"""
        pending = self._pending_cents(scope, scope_id)
        return min(
            max(
                0,
                self._limit_cents(scope, period)
                - self.entry(scope, scope_id, period).total_cost_cents
                - pending,
            )
            for period in (CostPeriod.DAY, CostPeriod.MONTH)
        )

    def model_breakdown(
        self, scope: CostScope, scope_id: str, period: CostPeriod = CostPeriod.MONTH
    ) -> dict[str, int]:
        """モデルごとのコスト（セント）"""
        return dict(self.entry(scope, scope_id, period).model_costs)

    def snapshot(self, scope: CostScope, scope_id: str) -> CostSnapshot:
        """スコープの現在の使用状況"""
        daily = self.entry(scope, scope_id, CostPeriod.DAY)
        monthly = self.entry(scope, scope_id, CostPeriod.MONTH)
        limits = self.limits_for(scope)
        return CostSnapshot(
            scope=scope,
            scope_id=scope_id,
            daily_cost_cents=daily.total_cost_cents,
            monthly_cost_cents=monthly.total_cost_cents,
            daily_limit_cents=limits.daily_limit_cents,
            monthly_limit_cents=limits.monthly_limit_cents,
            remaining_cents=self.remaining_budget(scope, scope_id),
            input_tokens=monthly.input_tokens,
            output_tokens=monthly.output_tokens,
            call_count=monthly.call_count,
            model_costs=dict(monthly.model_costs),
        )
