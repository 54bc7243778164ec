"""
データベース接続モジュール

Secret Manager（または環境変数 SECRET_PATH）から DatabaseConfiguration を取得し、
3種類の経路のいずれかで MySQL のコネクションプール（SQLAlchemy Engine）を生成します。

    - Unixソケット（Cloud SQL Proxy）: /<SQLPROXY>/<host>
    - Public IP: <public>:3306
    - Private IP: <private>:3306

使用例:
    from sqlalchemy import text
    from cloudsql_bootstrap.db import connect, fetch_from_secret_manager

    config = fetch_from_secret_manager("projects/my-project/secrets/db/versions/latest")
    pool = connect(config)
    with pool.connect() as conn:
        conn.execute(text("SELECT 1"))

DSN 形式:
    user:password@unix(/cloudsql/<host>)/<database>?autocommit=true&parseTime=true&timeout=5s
    user:password@tcp(<ip>:3306)/<database>?autocommit=true&parseTime=true&timeout=5s

Engine の生成は遅延接続（この時点でハンドシェイクは行わない）。
ここで発生するエラーは DSN の不正のみで、疎通エラーは最初の接続時に発生する。
"""

import logging
import re
import time
from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Tuple
from urllib.parse import parse_qsl

import sqlalchemy
from sqlalchemy import event, text
from sqlalchemy.engine import URL
from sqlalchemy.exc import ArgumentError, DisconnectionError, NoSuchModuleError
from sqlalchemy.pool import QueuePool

from .config import Settings, load_settings
from .exceptions import MissingConfigError, MissingFieldError, OpenError
from .secrets import decode_json_object, load_json_secret, pick_string_fields

logger = logging.getLogger(__name__)

DRIVERNAME = "mysql+pymysql"

# ユーザー名は最初の ":" まで（"@" は含み得る）。パスワードは最後の "@net(" の手前まで
_DSN_PATTERN = re.compile(
    r"^(?P<username>[^:]*)(?::(?P<password>.*))?"
    r"@(?P<net>unix|tcp)\((?P<address>[^)]*)\)"
    r"/(?P<database>[^?/]*)(?:\?(?P<params>.*))?$"
)

_DURATION_PATTERN = re.compile(r"^(?P<value>\d+(?:\.\d+)?)(?P<unit>ms|s|m|h)$")
_DURATION_UNITS = {"ms": 0.001, "s": 1, "m": 60, "h": 3600}


# =============================================================================
# データクラス
# =============================================================================


@dataclass(frozen=True)
class DatabaseConfiguration:
    """
    DB接続情報

    JSON キー: host / private / public / username / password / database
    """
    host: str = ""
    private_ip: str = ""
    public_ip: str = ""
    username: str = ""
    password: str = field(default="", repr=False)
    database: str = ""

    # JSON キー → フィールド名
    JSON_FIELDS = {
        "host": "host",
        "private": "private_ip",
        "public": "public_ip",
        "username": "username",
        "password": "password",
        "database": "database",
    }

    @classmethod
    def from_dict(cls, data: Dict[str, Any], source: str) -> "DatabaseConfiguration":
        """JSON オブジェクトから生成（未知のキーは無視）"""
        values = pick_string_fields(data, cls.JSON_FIELDS, source)
        return cls(**{cls.JSON_FIELDS[key]: value for key, value in values.items()})

    def to_dict(self) -> Dict[str, str]:
        """JSON キーの辞書に変換"""
        return {key: getattr(self, name) for key, name in self.JSON_FIELDS.items()}


# =============================================================================
# 接続情報の取得
# =============================================================================


def fetch_from_secret_manager(secret_id: str) -> DatabaseConfiguration:
    """
    Secret Manager から接続情報を取得

    Args:
        secret_id: シークレットバージョンの完全修飾名
            （例: projects/my-project/secrets/db/versions/latest）

    Raises:
        ClientInitError: クライアントを生成できない場合
        AccessError: シークレットを取得できない場合
        ParseError: ペイロードが DatabaseConfiguration の JSON でない場合
    """
    data = load_json_secret(secret_id)
    return DatabaseConfiguration.from_dict(data, source=secret_id)


def fetch_from_environment(settings: Optional[Settings] = None) -> DatabaseConfiguration:
    """
    環境変数 SECRET_PATH から接続情報を取得

    Raises:
        MissingConfigError: SECRET_PATH が未設定または空の場合
        ParseError: SECRET_PATH が DatabaseConfiguration の JSON でない場合
    """
    settings = settings or load_settings()
    if len(settings.SECRET_PATH) == 0:
        raise MissingConfigError(
            "missing SECRET_PATH Environment Variable",
            variable="SECRET_PATH",
        )

    data = decode_json_object(settings.SECRET_PATH, source="SECRET_PATH")
    return DatabaseConfiguration.from_dict(data, source="SECRET_PATH")


def load_database_configuration(
    secret_id: Optional[str] = None,
    settings: Optional[Settings] = None,
) -> DatabaseConfiguration:
    """
    接続情報を取得

    secret_id があれば Secret Manager、無ければ SECRET_PATH から取得する。
    Secret Manager の失敗時にフォールバックはしない（例外はそのまま伝播）。
    """
    if secret_id:
        return fetch_from_secret_manager(secret_id)
    return fetch_from_environment(settings)


# =============================================================================
# DSN
# =============================================================================


def _dsn_params(settings: Settings) -> str:
    return f"autocommit=true&parseTime=true&timeout={settings.DB_CONNECT_TIMEOUT}"


def build_unix_dsn(
    config: DatabaseConfiguration,
    proxy: str,
    settings: Optional[Settings] = None,
) -> str:
    """Unixソケット（Cloud SQL Proxy）経由の DSN を組み立てる"""
    settings = settings or load_settings()
    return (
        f"{config.username}:{config.password}"
        f"@unix(/{proxy}/{config.host})/{config.database}"
        f"?{_dsn_params(settings)}"
    )


def build_tcp_dsn(
    config: DatabaseConfiguration,
    ip: str,
    settings: Optional[Settings] = None,
) -> str:
    """TCP（Public / Private IP）経由の DSN を組み立てる"""
    settings = settings or load_settings()
    return (
        f"{config.username}:{config.password}"
        f"@tcp({ip}:{settings.DB_PORT})/{config.database}"
        f"?{_dsn_params(settings)}"
    )


def redact_dsn(dsn: str) -> str:
    """ログ出力用にパスワードを伏せる"""
    match = _DSN_PATTERN.match(dsn)
    if not match or match.group("password") is None:
        return dsn
    start, end = match.span("password")
    return dsn[:start] + "***" + dsn[end:]


def _parse_duration(value: str) -> float:
    """"5s" / "500ms" / "1m" 形式の時間を秒に変換"""
    match = _DURATION_PATTERN.match(value)
    if not match:
        raise OpenError(f"invalid DSN: invalid duration {value!r}")
    seconds = float(match.group("value")) * _DURATION_UNITS[match.group("unit")]
    return int(seconds) if seconds.is_integer() else seconds


def _parse_bool(key: str, value: str) -> bool:
    if value.lower() in ("true", "1"):
        return True
    if value.lower() in ("false", "0"):
        return False
    raise OpenError(f"invalid DSN: invalid bool value for {key}: {value!r}")


def parse_dsn(dsn: str) -> Tuple[URL, Dict[str, Any]]:
    """
    DSN を SQLAlchemy の URL と create_engine() の追加引数に変換

    対応パラメータ:
        autocommit=true → isolation_level="AUTOCOMMIT"
        timeout=5s      → connect_args["connect_timeout"] = 5
        parseTime       → PyMySQL は DATETIME を datetime で返すため指定のみ受け付ける

    Raises:
        OpenError: DSN の形式・パラメータが不正な場合
    """
    match = _DSN_PATTERN.match(dsn)
    if not match:
        raise OpenError("invalid DSN: expected user:password@net(address)/database")

    query: Dict[str, str] = {}
    host = None
    port = None
    address = match.group("address")
    if match.group("net") == "unix":
        if not address:
            raise OpenError("invalid DSN: empty unix socket path")
        query["unix_socket"] = address
    else:
        host, _, port_text = address.rpartition(":")
        host = host.strip("[]")
        if not host or not port_text.isdigit():
            raise OpenError(f"invalid DSN: invalid tcp address {address!r}")
        port = int(port_text)

    options: Dict[str, Any] = {}
    connect_args: Dict[str, Any] = {}
    for key, value in parse_qsl(match.group("params") or "", keep_blank_values=True):
        if key == "autocommit":
            if _parse_bool(key, value):
                options["isolation_level"] = "AUTOCOMMIT"
        elif key == "parseTime":
            _parse_bool(key, value)
        elif key == "timeout":
            connect_args["connect_timeout"] = _parse_duration(value)
        else:
            raise OpenError(f"invalid DSN: unsupported parameter {key!r}")
    if connect_args:
        options["connect_args"] = connect_args

    url = URL.create(
        DRIVERNAME,
        username=match.group("username") or None,
        password=match.group("password"),
        host=host,
        port=port,
        database=match.group("database") or None,
        query=query,
    )
    return url, options


# =============================================================================
# コネクションプール
# =============================================================================


class SessionTimeZone:
    """
    新しい DBAPI 接続ごとにセッションのタイムゾーンを設定

    失敗しても接続は継続する（タイムゾーンテーブル未ロード等を想定）。
    """

    def __init__(self, time_zone: str):
        self.time_zone = time_zone

    def __call__(self, dbapi_connection, connection_record) -> None:
        try:
            cursor = dbapi_connection.cursor()
            try:
                cursor.execute("SET time_zone = %s", (self.time_zone,))
            finally:
                cursor.close()
        except Exception as e:
            logger.warning(f"[DB] failed to set time_zone={self.time_zone} (ignored): {e}")


class IdleTimeout:
    """
    一定時間アイドルだった接続を払い出し時に破棄

    QueuePool にはアイドル時間の上限が無いため、checkin 時刻を記録し、
    checkout 時に超過していれば DisconnectionError で再接続させる。
    """

    INFO_KEY = "idle_since"

    def __init__(self, max_idle_seconds: float):
        self.max_idle_seconds = max_idle_seconds

    def on_checkin(self, dbapi_connection, connection_record) -> None:
        connection_record.info[self.INFO_KEY] = time.monotonic()

    def on_checkout(self, dbapi_connection, connection_record, connection_proxy) -> None:
        idle_since = connection_record.info.pop(self.INFO_KEY, None)
        if idle_since is None:
            return
        idle = time.monotonic() - idle_since
        if idle > self.max_idle_seconds:
            raise DisconnectionError(
                f"connection idle for {idle:.1f}s (max {self.max_idle_seconds}s)"
            )


def _configure_pool(engine: sqlalchemy.Engine, settings: Settings) -> None:
    event.listen(engine, "connect", SessionTimeZone(settings.DB_TIMEZONE))

    idle_timeout = IdleTimeout(settings.DB_MAX_IDLE_SECONDS)
    event.listen(engine, "checkin", idle_timeout.on_checkin)
    event.listen(engine, "checkout", idle_timeout.on_checkout)


def open_pool(dsn: str, settings: Optional[Settings] = None) -> sqlalchemy.Engine:
    """
    DSN からコネクションプールを生成（遅延接続）

    最大接続数 5（オーバーフロー無し）、アイドル上限 2 秒、接続寿命 1 時間。

    Raises:
        OpenError: DSN がドライバに受け付けられない場合
    """
    settings = settings or load_settings()
    url, options = parse_dsn(dsn)

    try:
        engine = sqlalchemy.create_engine(
            url,
            poolclass=QueuePool,
            pool_size=settings.DB_POOL_SIZE,
            max_overflow=0,
            pool_recycle=settings.DB_MAX_LIFETIME_SECONDS,
            **options,
        )
    except (ArgumentError, NoSuchModuleError, ImportError) as e:
        raise OpenError(f"sql.Open: {e}", original_error=e) from e

    _configure_pool(engine, settings)
    logger.info(f"[DB] connection pool created: {redact_dsn(dsn)}")
    return engine


def connect(
    config: DatabaseConfiguration,
    settings: Optional[Settings] = None,
) -> sqlalchemy.Engine:
    """
    Cloud SQL Proxy の Unixソケット経由で接続

    DEVELOPMENT が設定されている場合は常に connect_by_public_ip() を使う。

    Raises:
        MissingFieldError: host（開発モードでは public）が空の場合
        OpenError: DSN がドライバに受け付けられない場合
    """
    settings = settings or load_settings()

    if settings.is_development():
        logger.info("[DB] DEVELOPMENT is set: connecting by public IP")
        return connect_by_public_ip(config, settings)

    if len(config.host) == 0:
        raise MissingFieldError("missing Host", field_name="host")

    dsn = build_unix_dsn(config, settings.sql_proxy(), settings)
    return open_pool(dsn, settings)


def connect_by_public_ip(
    config: DatabaseConfiguration,
    settings: Optional[Settings] = None,
) -> sqlalchemy.Engine:
    """Public IP（TCP 3306）で接続"""
    if len(config.public_ip) == 0:
        raise MissingFieldError("missing PublicIP", field_name="public_ip")

    dsn = build_tcp_dsn(config, config.public_ip, settings)
    return open_pool(dsn, settings)


def connect_by_private_ip(
    config: DatabaseConfiguration,
    settings: Optional[Settings] = None,
) -> sqlalchemy.Engine:
    """Private IP（TCP 3306）で接続"""
    if len(config.private_ip) == 0:
        raise MissingFieldError("missing PrivateIP", field_name="private_ip")

    dsn = build_tcp_dsn(config, config.private_ip, settings)
    return open_pool(dsn, settings)


# =============================================================================
# ユーティリティ
# =============================================================================


def health_check(engine: sqlalchemy.Engine) -> bool:
    """
    DB接続のヘルスチェック

    Returns:
        True: 接続成功
        False: 接続失敗
    """
    try:
        with engine.connect() as conn:
            conn.execute(text("SELECT 1"))
        return True
    except Exception as e:
        logger.warning(f"[DB] health check failed: {e}")
        return False


def dispose(engine: sqlalchemy.Engine) -> None:
    """プール内の全接続を閉じる（アプリケーション終了時・テスト後）"""
    engine.dispose()
