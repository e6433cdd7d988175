"""CostLedgerとコスト計算のテスト"""

from datetime import datetime

import pytest

from answer_scribe.domain import (
    CostLimitSettings,
    CostPeriod,
    CostScope,
    CostSettings,
    LimitStatus,
    ModelPricing,
)
from answer_scribe.infrastructure.billing import (
    CostLedger,
    calculate_cost_cents,
    format_cost,
)

USER = (CostScope.USER, "user-1")
SESSION = (CostScope.SESSION, "session-1")


class DateClock:
    """差し替え可能な現在時刻"""

    def __init__(self, now: datetime) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now


@pytest.fixture
def date_clock() -> DateClock:
    return DateClock(datetime(2026, 10, 19, 12, 0))


@pytest.fixture
def ledger(date_clock: DateClock) -> CostLedger:
    """ユーザー上限 100/1000セント、セッション上限 50/50セント"""
    settings = CostSettings(
        user_limits=CostLimitSettings(daily_limit_cents=100, monthly_limit_cents=1000),
        session_limits=CostLimitSettings(daily_limit_cents=50, monthly_limit_cents=50),
    )
    return CostLedger(settings, clock=date_clock)


class TestCostCalculation:
    """コスト計算のテスト"""

    def test_rounds_up_to_whole_cents(self) -> None:
        """1セント未満でも切り上げて1セント"""
        pricing = ModelPricing(input_per_million_usd=0.25, output_per_million_usd=1.25)
        assert calculate_cost_cents(pricing, 1000, 500) == 1

    def test_large_usage(self) -> None:
        """100万入力 + 100万出力"""
        pricing = ModelPricing(input_per_million_usd=0.5, output_per_million_usd=1.5)
        assert calculate_cost_cents(pricing, 1_000_000, 1_000_000) == 200

    def test_zero_tokens_cost_nothing(self) -> None:
        pricing = ModelPricing(input_per_million_usd=3, output_per_million_usd=15)
        assert calculate_cost_cents(pricing, 0, 0) == 0

    @pytest.mark.parametrize(
        ("cents", "expected"), [(0, "<$0.01"), (0.5, "<$0.01"), (1, "$0.01"), (1234, "$12.34")]
    )
    def test_format_cost(self, cents: float, expected: str) -> None:
        assert format_cost(cents) == expected


class TestRecordUsage:
    """使用量記録のテスト"""

    def test_accumulates_daily_and_monthly(self, ledger: CostLedger) -> None:
        """日次・月次の両方に加算"""
        ledger.record_usage(*USER, 1000, 500, 3, "model-a")
        ledger.record_usage(*USER, 2000, 100, 4, "model-b")

        daily = ledger.entry(*USER, CostPeriod.DAY)
        monthly = ledger.entry(*USER, CostPeriod.MONTH)
        for entry in (daily, monthly):
            assert entry.total_cost_cents == 7
            assert entry.input_tokens == 3000
            assert entry.output_tokens == 600
            assert entry.call_count == 2

        assert ledger.model_breakdown(*USER) == {"model-a": 3, "model-b": 4}

    def test_rejects_negative_values(self, ledger: CostLedger) -> None:
        with pytest.raises(ValueError):
            ledger.record_usage(*USER, -1, 0, 0)

    def test_scopes_are_independent(self, ledger: CostLedger) -> None:
        ledger.record_usage(*USER, 0, 0, 10)
        assert ledger.entry(*SESSION, CostPeriod.DAY).total_cost_cents == 0
        assert ledger.entry(CostScope.USER, "user-2", CostPeriod.DAY).total_cost_cents == 0


class TestCheckLimit:
    """上限チェックのテスト"""

    @pytest.mark.parametrize(
        ("used", "status"),
        [
            (0, LimitStatus.OK),
            (79, LimitStatus.OK),
            (80, LimitStatus.WARNING),
            (94, LimitStatus.WARNING),
            (95, LimitStatus.CRITICAL),
            (99, LimitStatus.CRITICAL),
            (100, LimitStatus.EXCEEDED),
            (150, LimitStatus.EXCEEDED),
        ],
    )
    def test_status_thresholds(
        self, ledger: CostLedger, used: int, status: LimitStatus
    ) -> None:
        """80%で警告、95%で危険、100%以上で超過"""
        ledger.record_usage(*USER, 0, 0, used)
        check = ledger.check_limit(*USER)
        assert check.status == status
        assert check.allows_paid_call is (status != LimitStatus.EXCEEDED)

    def test_reports_worst_period(self, ledger: CostLedger, date_clock: DateClock) -> None:
        """月次が超過していれば日次が余裕でも超過"""
        for day in range(1, 11):
            date_clock.now = datetime(2026, 10, day, 9, 0)
            ledger.record_usage(*USER, 0, 0, 100)

        date_clock.now = datetime(2026, 10, 19, 9, 0)
        check = ledger.check_limit(*USER)
        assert check.status == LimitStatus.EXCEEDED
        assert check.period == CostPeriod.MONTH

    def test_zero_limit_is_always_exceeded(self, date_clock: DateClock) -> None:
        settings = CostSettings(
            session_limits=CostLimitSettings(daily_limit_cents=0, monthly_limit_cents=0)
        )
        ledger = CostLedger(settings, clock=date_clock)
        assert ledger.check_limit(*SESSION).status == LimitStatus.EXCEEDED

    def test_new_day_starts_fresh(self, ledger: CostLedger, date_clock: DateClock) -> None:
        """日付が変われば日次の上限はリセット"""
        ledger.record_usage(*USER, 0, 0, 100)
        assert ledger.check_limit(*USER).status == LimitStatus.EXCEEDED

        date_clock.now = datetime(2026, 10, 20, 0, 1)
        assert ledger.check_limit(*USER).status == LimitStatus.OK
        # 月次の累計は維持
        assert ledger.entry(*USER, CostPeriod.MONTH).total_cost_cents == 100

    def test_check_scopes_returns_most_severe(self, ledger: CostLedger) -> None:
        ledger.record_usage(*SESSION, 0, 0, 50)
        check = ledger.check_scopes([USER, SESSION])
        assert check.scope == CostScope.SESSION
        assert check.status == LimitStatus.EXCEEDED


class TestReservation:
    """予約のテスト"""

    def test_reservation_counts_as_pending(self, ledger: CostLedger) -> None:
        """予約中のコストは使用済みとして判定"""
        reservation, check = ledger.reserve([SESSION], estimated_cents=49)
        assert reservation is not None
        assert check.status == LimitStatus.OK

        second, check = ledger.reserve([SESSION], estimated_cents=1)
        assert second is not None
        assert check.status == LimitStatus.CRITICAL

        third, check = ledger.reserve([SESSION])
        assert third is None
        assert check.status == LimitStatus.EXCEEDED

    def test_release_frees_budget(self, ledger: CostLedger) -> None:
        reservation, _ = ledger.reserve([SESSION], estimated_cents=50)
        assert reservation is not None
        assert ledger.remaining_budget(*SESSION) == 0

        ledger.release(reservation)
        ledger.release(reservation)
        assert ledger.remaining_budget(*SESSION) == 50

    def test_settle_records_actual_cost_for_all_scopes(self, ledger: CostLedger) -> None:
        """確定時は予約額ではなく実際のコストを全スコープに記録"""
        reservation, _ = ledger.reserve([USER, SESSION], estimated_cents=5)
        assert reservation is not None

        ledger.settle(reservation, 1000, 500, 2, "model-a")

        assert ledger.entry(*USER, CostPeriod.DAY).total_cost_cents == 2
        assert ledger.entry(*SESSION, CostPeriod.DAY).total_cost_cents == 2
        assert ledger.remaining_budget(*SESSION) == 48


class TestSnapshot:
    """使用状況のテスト"""

    def test_snapshot(self, ledger: CostLedger) -> None:
        ledger.record_usage(*USER, 1200, 300, 30, "model-a")

        snapshot = ledger.snapshot(*USER)

        assert snapshot.daily_cost_cents == 30
        assert snapshot.monthly_cost_cents == 30
        assert snapshot.daily_limit_cents == 100
        assert snapshot.monthly_limit_cents == 1000
        assert snapshot.remaining_cents == 70
        assert snapshot.call_count == 1
        assert snapshot.model_costs == {"model-a": 30}


class TestSettingsValidation:
    def test_warning_must_be_below_critical(self) -> None:
        with pytest.raises(ValueError):
            CostSettings(warning_threshold_percent=95, critical_threshold_percent=80)
