"""
例外定義

シークレット取得・設定解決・DB接続の各段階で発生するエラーを定義します。
全ての例外は呼び出し元へそのまま伝播し、このパッケージ内ではリトライもログ出力もしません。
"""

from typing import Any, Dict, Optional

# to_dict() で伏せ字にするキー
SENSITIVE_KEYS = {
    "password", "token", "secret", "payload", "dsn", "credential",
}


class BootstrapError(Exception):
    """
    基底例外クラス

    全ての例外はこのクラスを継承します。
    """

    def __init__(
        self,
        message: str,
        error_code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
        original_error: Optional[Exception] = None,
    ):
        """
        Args:
            message: エラーメッセージ
            error_code: エラーコード（ログ分析用）
            details: 追加の詳細情報
            original_error: 元の例外（ラップする場合）
        """
        super().__init__(message)
        self.message = message
        self.error_code = error_code or "BOOTSTRAP_ERROR"
        self.details = details or {}
        self.original_error = original_error

    def to_dict(self) -> Dict[str, Any]:
        """ログ出力用の辞書形式に変換（機密情報は伏せ字）"""
        return {
            "error_type": self.__class__.__name__,
            "error_code": self.error_code,
            "message": self.message,
            "details": {
                key: "[REDACTED]" if key.lower() in SENSITIVE_KEYS else value
                for key, value in self.details.items()
            },
            "original_error": str(self.original_error) if self.original_error else None,
        }

    def __str__(self) -> str:
        return f"[{self.error_code}] {self.message}"


# =============================================================================
# Secret Manager 関連
# =============================================================================


class ClientInitError(BootstrapError):
    """Secret Manager クライアントを生成できなかった場合のエラー"""

    def __init__(self, message: str, **kwargs):
        super().__init__(
            message=message,
            error_code=kwargs.pop("error_code", "CLIENT_INIT_ERROR"),
            **kwargs,
        )


class AccessError(BootstrapError):
    """
    シークレットを取得できなかった場合のエラー

    権限不足・存在しない・ネットワーク障害のいずれも含む。
    """

    def __init__(self, message: str, secret_name: Optional[str] = None, **kwargs):
        details = kwargs.pop("details", {})
        details["secret_name"] = secret_name
        super().__init__(
            message=message,
            error_code=kwargs.pop("error_code", "ACCESS_ERROR"),
            details=details,
            **kwargs,
        )
        self.secret_name = secret_name


class ParseError(BootstrapError):
    """ペイロードが期待する形の JSON でない場合のエラー"""

    def __init__(self, message: str, source: Optional[str] = None, **kwargs):
        details = kwargs.pop("details", {})
        details["source"] = source
        super().__init__(
            message=message,
            error_code=kwargs.pop("error_code", "PARSE_ERROR"),
            details=details,
            **kwargs,
        )
        self.source = source


# =============================================================================
# 設定値の欠落
# =============================================================================


class MissingConfigError(BootstrapError):
    """必須の環境変数が未設定または空の場合のエラー"""

    def __init__(self, message: str, variable: Optional[str] = None, **kwargs):
        details = kwargs.pop("details", {})
        details["variable"] = variable
        super().__init__(
            message=message,
            error_code=kwargs.pop("error_code", "MISSING_CONFIG"),
            details=details,
            **kwargs,
        )
        self.variable = variable


class MissingFieldError(BootstrapError):
    """接続先アドレスの組み立てに必要なフィールドが空の場合のエラー"""

    def __init__(self, message: str, field_name: Optional[str] = None, **kwargs):
        details = kwargs.pop("details", {})
        details["field_name"] = field_name
        super().__init__(
            message=message,
            error_code=kwargs.pop("error_code", "MISSING_FIELD"),
            details=details,
            **kwargs,
        )
        self.field_name = field_name


# =============================================================================
# 接続・環境変数の書き込み
# =============================================================================


class OpenError(BootstrapError):
    """DSN がドライバに受け付けられなかった場合のエラー"""

    def __init__(self, message: str, **kwargs):
        super().__init__(
            message=message,
            error_code=kwargs.pop("error_code", "OPEN_ERROR"),
            **kwargs,
        )


class SetError(BootstrapError):
    """環境変数の書き込みを OS に拒否された場合のエラー"""

    def __init__(self, message: str, variable: Optional[str] = None, **kwargs):
        details = kwargs.pop("details", {})
        details["variable"] = variable
        super().__init__(
            message=message,
            error_code=kwargs.pop("error_code", "SET_ERROR"),
            details=details,
            **kwargs,
        )
        self.variable = variable
