"""
設定管理モジュール

環境変数とデフォルト値を一元管理します。

使用例:
    from cloudsql_bootstrap.config import get_settings

    settings = get_settings()
    print(settings.sql_proxy())
    print(settings.is_development())
"""

import os
from dataclasses import dataclass, field
from functools import lru_cache
from typing import Optional


@dataclass(frozen=True)
class Settings:
    """
    アプリケーション設定

    frozen=True で不変オブジェクトとし、スレッドセーフを保証。
    """

    # GCP プロジェクト（短いシークレット名を修飾する際に使用）
    PROJECT_ID: Optional[str] = field(default_factory=lambda: os.getenv(
        "PROJECT_ID", None
    ))

    # 開発モード（空でない値があれば Public IP 経由で直接接続。DEVELOPMENT= のような空文字は未設定扱い）
    DEVELOPMENT: str = field(default_factory=lambda: os.getenv(
        "DEVELOPMENT", ""
    ))

    # Cloud SQL Proxy のソケットディレクトリ名
    SQLPROXY: str = field(default_factory=lambda: os.getenv(
        "SQLPROXY", ""
    ))

    # DatabaseConfiguration の JSON（Secret Manager が使えない場合のフォールバック）
    SECRET_PATH: str = field(default_factory=lambda: os.getenv(
        "SECRET_PATH", ""
    ))

    # Cloud SQL 設定
    DB_PORT: int = 3306
    DB_TIMEZONE: str = field(default_factory=lambda: os.getenv(
        "DB_TIMEZONE", "Europe/London"
    ))
    DB_CONNECT_TIMEOUT: str = "5s"

    # コネクションプール設定
    DB_POOL_SIZE: int = 5
    DB_MAX_IDLE_SECONDS: float = 2
    DB_MAX_LIFETIME_SECONDS: int = 3600  # 1時間でリサイクル

    DEFAULT_SQLPROXY: str = "cloudsql"

    def is_development(self) -> bool:
        """開発モードかどうか（空文字は False）"""
        return len(self.DEVELOPMENT) > 0

    def sql_proxy(self) -> str:
        """Unixソケットのディレクトリ名（SQLPROXY 未設定時は cloudsql）"""
        return self.SQLPROXY or self.DEFAULT_SQLPROXY


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """
    設定を取得（シングルトン）

    lru_cache によりアプリケーション全体で1つのインスタンスを共有。
    環境変数を変更した後は get_settings.cache_clear() を呼ぶこと。
    """
    return Settings()


def load_settings() -> Settings:
    """
    環境変数から設定を読み直す（キャッシュ無し）

    DEVELOPMENT / SQLPROXY / SECRET_PATH などは呼び出しごとに評価する必要があるため、
    接続・設定解決の関数は settings 未指定時にこちらを使う。
    """
    return Settings()
