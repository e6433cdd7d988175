#!/usr/bin/env python3
"""
Answer Scribe - Model Pricing
インフラ層：トークン使用量からのコスト計算と表示
"""

import math

from answer_scribe.domain import ModelPricing

_TOKENS_PER_UNIT = 1_000_000


def calculate_cost_cents(
    pricing: ModelPricing, input_tokens: int, output_tokens: int
) -> int:
    """
    1回の呼び出しのコスト（セント、切り上げ）

    Examples:
        >>> calculate_cost_cents(ModelPricing(input_per_million_usd=0.25, output_per_million_usd=1.25), 1000, 500)
        1
    """
    dollars = (
        input_tokens * pricing.input_per_million_usd
        + output_tokens * pricing.output_per_million_usd
    ) / _TOKENS_PER_UNIT
    return math.ceil(dollars * 100)


def format_cost(cost_cents: float) -> str:
    """コストを表示用にフォーマット（1セント未満は "<$0.01"）"""
    dollars = cost_cents / 100
    if dollars < 0.01:
        return "<$0.01"
    return f"${dollars:.2f}"
