"""
結合テスト用フィクスチャ

本物の MySQL データベースに接続してテストする。
TEST_MYSQL_DSN 環境変数が設定されていない場合、全テストをスキップ。

使い方:
  # Docker
  docker run -d -p 13306:3306 -e MYSQL_ROOT_PASSWORD=test_pass -e MYSQL_DATABASE=test_db mysql:8
  TEST_MYSQL_DSN="root:test_pass@tcp(127.0.0.1:13306)/test_db?autocommit=true&parseTime=true&timeout=5s" \
    python3 -m pytest tests/integration/ -v
"""

import os
import pytest

from cloudsql_bootstrap.db import open_pool


TEST_MYSQL_DSN = os.environ.get("TEST_MYSQL_DSN")

pytestmark = pytest.mark.skipif(
    not TEST_MYSQL_DSN,
    reason="TEST_MYSQL_DSN not set. Integration tests require a real MySQL database."
)


@pytest.fixture
def db_engine():
    """本番と同じプール設定のエンジン（pool_size=5, max_overflow=0）"""
    if not TEST_MYSQL_DSN:
        pytest.skip("TEST_MYSQL_DSN not set")

    engine = open_pool(TEST_MYSQL_DSN)

    yield engine

    engine.dispose()
