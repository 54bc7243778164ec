"""
シークレット管理モジュール

GCP Secret Manager からシークレットを取得し、JSON ペイロードを辞書として返します。
CredentialResolver（db.py）と EnvironmentConfigurator（environment.py）の共通基盤。

使用例:
    from cloudsql_bootstrap.secrets import get_secret, load_json_secret

    # 文字列として取得
    api_key = get_secret("chatwork-api-key")

    # JSON オブジェクトとして取得（完全修飾名も可）
    data = load_json_secret("projects/my-project/secrets/db/versions/latest")
"""

import json
import logging
import threading
from functools import lru_cache
from typing import Any, Dict, Iterable, Mapping, Optional, Union

from google.api_core import exceptions as google_exceptions
from google.auth import exceptions as auth_exceptions
from google.cloud import secretmanager

from .config import load_settings
from .exceptions import AccessError, ClientInitError, MissingConfigError, ParseError

logger = logging.getLogger(__name__)

# スレッドセーフなシークレットマネージャークライアント
_client = None
_client_lock = threading.Lock()


def get_client():
    """
    Secret Manager クライアントを取得（シングルトン）

    生成に失敗した場合は ClientInitError を送出し、次回呼び出し時に再生成を試みる。

    Raises:
        ClientInitError: 認証情報が見つからない等でクライアントを生成できない場合
    """
    global _client
    if _client is None:
        with _client_lock:
            if _client is None:
                try:
                    _client = secretmanager.SecretManagerServiceClient()
                except Exception as e:
                    raise ClientInitError(
                        f"failed to create secretmanager client: {e}",
                        original_error=e,
                    ) from e
    return _client


def reset_client() -> None:
    """クライアントのシングルトンを破棄（テスト・認証情報の切り替え用）"""
    global _client
    with _client_lock:
        _client = None


def build_secret_version_name(
    secret_id: str,
    version: str = "latest",
    project_id: Optional[str] = None,
) -> str:
    """
    シークレットバージョンの完全修飾名を組み立てる

    既に "projects/" で始まる名前はそのまま返す。

    例: db-config → projects/my-project/secrets/db-config/versions/latest

    Raises:
        MissingConfigError: 短い名前が渡され、PROJECT_ID も未設定の場合
    """
    if secret_id.startswith("projects/"):
        return secret_id

    project = project_id or load_settings().PROJECT_ID
    if not project:
        raise MissingConfigError(
            f"cannot qualify secret {secret_id!r}: PROJECT_ID is not set",
            variable="PROJECT_ID",
        )
    return f"projects/{project}/secrets/{secret_id}/versions/{version}"


def access_secret_payload(
    secret_id: str,
    version: str = "latest",
    project_id: Optional[str] = None,
) -> bytes:
    """
    シークレットのペイロード（生バイト列）を取得

    Raises:
        ClientInitError: クライアントを生成できない場合
        AccessError: 権限不足・存在しない・通信失敗の場合
    """
    name = build_secret_version_name(secret_id, version, project_id)
    client = get_client()

    logger.info(f"[Secrets] accessing secret version: {name}")
    try:
        response = client.access_secret_version(request={"name": name})
    except (google_exceptions.GoogleAPIError, auth_exceptions.GoogleAuthError) as e:
        raise AccessError(
            f"failed to access secret version: {e}",
            secret_name=name,
            original_error=e,
        ) from e

    return response.payload.data


def get_secret(
    secret_id: str,
    version: str = "latest",
    project_id: Optional[str] = None,
) -> str:
    """
    シークレットを UTF-8 文字列として取得

    Args:
        secret_id: シークレット名（例: "chatwork-api-key"）または完全修飾名
        version: バージョン（デフォルト: "latest"）
        project_id: プロジェクトID（デフォルト: 設定から取得）
    """
    data = access_secret_payload(secret_id, version, project_id)
    try:
        return data.decode("UTF-8")
    except UnicodeDecodeError as e:
        raise ParseError(
            f"secret payload is not valid UTF-8: {e}",
            source=secret_id,
            original_error=e,
        ) from e


@lru_cache(maxsize=32)
def get_secret_cached(
    secret_id: str,
    version: str = "latest",
    project_id: Optional[str] = None,
) -> str:
    """
    キャッシュ付きでシークレットを取得

    注意:
        - シークレットをローテーションした場合、clear_secret_cache() かアプリ再起動が必要
        - 失敗（例外）はキャッシュされない
    """
    return get_secret(secret_id, version, project_id)


def clear_secret_cache() -> None:
    """シークレットキャッシュをクリア"""
    get_secret_cached.cache_clear()


# =============================================================================
# JSON ペイロード
# =============================================================================


def decode_json_object(raw: Union[bytes, str], source: str) -> Dict[str, Any]:
    """
    JSON オブジェクトをデコード

    Args:
        raw: UTF-8 の JSON（bytes または str）
        source: エラーメッセージ用の取得元（シークレット名・環境変数名）

    Raises:
        ParseError: UTF-8 / JSON として不正、またはトップレベルがオブジェクトでない場合
    """
    try:
        if isinstance(raw, bytes):
            raw = raw.decode("UTF-8")
        data = json.loads(raw)
    except (UnicodeDecodeError, json.JSONDecodeError) as e:
        raise ParseError(
            f"error parsing {source}: {e}",
            source=source,
            original_error=e,
        ) from e

    if not isinstance(data, dict):
        raise ParseError(
            f"error parsing {source}: expected a JSON object, got {type(data).__name__}",
            source=source,
        )
    return data


def pick_string_fields(
    data: Mapping[str, Any],
    keys: Iterable[str],
    source: str,
) -> Dict[str, str]:
    """
    指定キーの文字列値を取り出す

    キーが無い・値が null の場合は空文字。未知のキーは無視する。
    値が文字列以外（数値・配列等）の場合は ParseError。
    """
    values = {}
    for key in keys:
        value = data.get(key)
        if value is None:
            value = ""
        if not isinstance(value, str):
            raise ParseError(
                f"error parsing {source}: field {key!r} must be a string, "
                f"got {type(value).__name__}",
                source=source,
            )
        values[key] = value
    return values


def load_json_secret(
    secret_id: str,
    version: str = "latest",
    project_id: Optional[str] = None,
) -> Dict[str, Any]:
    """
    シークレットを JSON オブジェクトとして取得

    Raises:
        ClientInitError / AccessError: 取得に失敗した場合
        ParseError: ペイロードが JSON オブジェクトでない場合
    """
    raw = access_secret_payload(secret_id, version, project_id)
    return decode_json_object(raw, source=secret_id)
