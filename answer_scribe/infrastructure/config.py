#!/usr/bin/env python3
"""
Answer Scribe - Configuration Loader
設定の読み込み（TOML）
"""

import tomllib
from collections.abc import Mapping
from pathlib import Path
from typing import Any

from answer_scribe.domain import Settings

PROJECT_ROOT = Path(__file__).parent.parent.parent


def _deep_merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """
    2つの辞書を深くマージする（overrideが優先）

    Args:
        base: ベースとなる辞書
        override: 上書きする辞書

    Returns:
        マージされた辞書
    """
    result = base.copy()
    for key, value in override.items():
        if (
            key in result
            and isinstance(result[key], Mapping)
            and isinstance(value, Mapping)
        ):
            result[key] = _deep_merge(dict(result[key]), dict(value))
        else:
            result[key] = value
    return result


def _read_toml(path: Path) -> dict[str, Any]:
    """TOMLファイルを読み込む（存在しなければ空辞書）"""
    if not path.exists():
        return {}
    with path.open("rb") as f:
        return tomllib.load(f)


def load_settings(config_dir: Path | None = None) -> Settings:
    """
    TOMLファイルから設定を読み込む

    読み込み順序（後勝ち）:
    1. デフォルト値（domain/settings.py内）
    2. {config_dir}/config.toml（存在する場合）
    3. {config_dir}/config.local.toml（存在する場合）

    Args:
        config_dir: 設定ファイルのディレクトリ（Noneの場合はプロジェクトルート）

    Returns:
        Settingsインスタンス

    Raises:
        pydantic.ValidationError: 設定値が不正な場合
    """
    root = config_dir or PROJECT_ROOT

    config_data = _read_toml(root / "config.toml")
    local_data = _read_toml(root / "config.local.toml")
    if local_data:
        config_data = _deep_merge(config_data, local_data)

    return Settings(**config_data) if config_data else Settings()
