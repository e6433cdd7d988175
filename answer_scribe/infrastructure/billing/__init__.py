#!/usr/bin/env python3
"""
Answer Scribe - Billing Infrastructure
コスト計算とコスト台帳
"""

from .cost_ledger import CostLedger, CostReservation, CostSnapshot, LimitCheck
from .pricing import calculate_cost_cents, format_cost

__all__ = [
    # 台帳
    "CostLedger",
    "CostReservation",
    "CostSnapshot",
    "LimitCheck",
    # 単価
    "calculate_cost_cents",
    "format_cost",
]
