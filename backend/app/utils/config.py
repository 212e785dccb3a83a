"""
環境変数読み取り用のユーティリティ。
Web Push / Supabase など各機能パッケージの config.py から共通利用する。
"""

import logging
import os
from typing import List, Optional

logger = logging.getLogger(__name__)


class EnvVarMissingError(RuntimeError):
    """必須環境変数が設定されていない場合に投げる例外。"""

    def __init__(self, name: str) -> None:
        super().__init__(f"Required environment variable '{name}' is not set.")
        self.name = name


def get_env(
    name: str,
    default: Optional[str] = None,
    *,
    required: bool = True,
) -> str:
    """
    環境変数を取得するヘルパー。

    :param name: 環境変数名
    :param default: デフォルト値（required=False の場合のみ使用）
    :param required: True の場合、未設定なら例外を投げる
    :return: 文字列値
    """
    value = os.getenv(name)

    if value is None or value == "":
        if required:
            raise EnvVarMissingError(name)
        return default

    return value


def get_env_int(name: str, default: Optional[int]) -> Optional[int]:
    """
    整数の環境変数を取得する。

    - 未設定なら default を返す
    - パース不能な場合は warning を出して default を返す
    """
    raw = get_env(name, required=False)
    if raw is None:
        return default

    try:
        return int(raw)
    except ValueError:
        logger.warning("Invalid integer for %s=%r. Falling back to %r.", name, raw, default)
        return default


def get_env_list(name: str, default: str = "") -> List[str]:
    """カンマ区切りの環境変数をリストとして取得する（空要素は捨てる）。"""
    raw = get_env(name, default=default, required=False) or ""
    return [item.strip() for item in raw.split(",") if item.strip()]
