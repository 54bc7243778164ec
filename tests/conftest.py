"""
pytest 共通フィクスチャ

テスト全体で共有するフィクスチャを定義します。
"""

import json
import os
import sys
import pytest
from unittest.mock import MagicMock, patch

# プロジェクトルートをパスに追加
project_root = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
sys.path.insert(0, project_root)

from cloudsql_bootstrap import secrets as secrets_module
from cloudsql_bootstrap.config import get_settings


# ================================================================
# 環境変数のモック
# ================================================================

MANAGED_ENV_VARS = [
    "PROJECT_ID",
    "DEVELOPMENT",
    "SQLPROXY",
    "SECRET_PATH",
    "DB_TIMEZONE",
    "BQ_DATASET",
    "BQ_EXTERNAL",
]


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    """関連する環境変数を削除し、設定・シークレットのキャッシュをリセット"""
    for name in MANAGED_ENV_VARS:
        # setenv で元の値を記録させ、テスト中に直接書き込まれても終了時に復元される
        monkeypatch.setenv(name, "")
        monkeypatch.delenv(name)
    monkeypatch.setenv("PROJECT_ID", "test-project")

    get_settings.cache_clear()
    secrets_module.clear_secret_cache()
    secrets_module.reset_client()
    yield
    get_settings.cache_clear()
    secrets_module.clear_secret_cache()
    secrets_module.reset_client()


# ================================================================
# Secret Manager モック
# ================================================================

def make_secret_response(payload):
    """access_secret_version() のレスポンスを作る（dict は JSON に変換）"""
    if isinstance(payload, dict):
        payload = json.dumps(payload)
    if isinstance(payload, str):
        payload = payload.encode("UTF-8")

    response = MagicMock()
    response.payload.data = payload
    return response


@pytest.fixture
def secret_response():
    """make_secret_response をテストから使うためのフィクスチャ"""
    return make_secret_response


@pytest.fixture
def mock_secret_client():
    """SecretManagerServiceClient のモック"""
    with patch(
        "cloudsql_bootstrap.secrets.secretmanager.SecretManagerServiceClient"
    ) as client_cls:
        client = MagicMock()
        client_cls.return_value = client
        yield client


@pytest.fixture
def db_config_payload():
    """DatabaseConfiguration の JSON ペイロード"""
    return {
        "host": "my-project:europe-west2:main-db",
        "private": "10.0.0.5",
        "public": "34.89.1.2",
        "username": "app_user",
        "password": "s3cr3t",
        "database": "reporting",
    }


@pytest.fixture
def setenv(monkeypatch):
    """環境変数を設定し、get_settings() のキャッシュを破棄する"""
    def _setenv(name, value):
        monkeypatch.setenv(name, value)
        get_settings.cache_clear()
    return _setenv
