"""
Cloud SQL 接続ブートストラップ

このモジュールは以下を提供します:
- config: 環境変数・設定管理
- secrets: GCP Secret Manager
- db: 接続情報の取得とコネクションプール（Unixソケット / Public IP / Private IP）
- environment: Secret Manager の設定を環境変数へ公開
- exceptions: 例外定義

使用例:
    from cloudsql_bootstrap import fetch_from_secret_manager, connect, setup_variables

    setup_variables("projects/my-project/secrets/bq-config/versions/latest")
    config = fetch_from_secret_manager("projects/my-project/secrets/db/versions/latest")
    pool = connect(config)
"""

__version__ = "1.0.0"

# 設定
from cloudsql_bootstrap.config import (
    Settings,
    get_settings,
    load_settings,
)

# シークレット管理
from cloudsql_bootstrap.secrets import (
    get_secret,
    get_secret_cached,
    load_json_secret,
)

# データベース
from cloudsql_bootstrap.db import (
    DatabaseConfiguration,
    fetch_from_secret_manager,
    fetch_from_environment,
    load_database_configuration,
    connect,
    connect_by_public_ip,
    connect_by_private_ip,
    health_check,
    dispose,
)

# 環境変数
from cloudsql_bootstrap.environment import (
    EnvironmentFlags,
    load_environment_flags,
    setup_variables,
)

# 例外
from cloudsql_bootstrap.exceptions import (
    BootstrapError,
    ClientInitError,
    AccessError,
    ParseError,
    MissingConfigError,
    MissingFieldError,
    OpenError,
    SetError,
)

__all__ = [
    "__version__",
    # config
    "Settings",
    "get_settings",
    "load_settings",
    # secrets
    "get_secret",
    "get_secret_cached",
    "load_json_secret",
    # db
    "DatabaseConfiguration",
    "fetch_from_secret_manager",
    "fetch_from_environment",
    "load_database_configuration",
    "connect",
    "connect_by_public_ip",
    "connect_by_private_ip",
    "health_check",
    "dispose",
    # environment
    "EnvironmentFlags",
    "load_environment_flags",
    "setup_variables",
    # exceptions
    "BootstrapError",
    "ClientInitError",
    "AccessError",
    "ParseError",
    "MissingConfigError",
    "MissingFieldError",
    "OpenError",
    "SetError",
]
