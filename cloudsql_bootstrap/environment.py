"""
環境変数セットアップモジュール

Secret Manager から BigQuery 関連の設定（BQ_DATASET / BQ_EXTERNAL）を取得し、
プロセスの環境変数として公開します。

使用例:
    from cloudsql_bootstrap.environment import setup_variables

    setup_variables("projects/my-project/secrets/bq-config/versions/latest")
    dataset = os.environ["BQ_DATASET"]

環境変数を経由せずに値だけ使う場合:
    flags = load_environment_flags("projects/my-project/secrets/bq-config/versions/latest")
    print(flags.bq_dataset)
"""

import logging
import os
from dataclasses import dataclass
from typing import Any, Dict, MutableMapping, Optional

from .exceptions import SetError
from .secrets import load_json_secret, pick_string_fields

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class EnvironmentFlags:
    """BigQuery 関連の設定"""
    bq_dataset: str = ""
    bq_external: str = ""

    # 環境変数名（= JSON キー）→ フィールド名。書き込みはこの順序で行う
    VARIABLES = {
        "BQ_DATASET": "bq_dataset",
        "BQ_EXTERNAL": "bq_external",
    }

    @classmethod
    def from_dict(cls, data: Dict[str, Any], source: str) -> "EnvironmentFlags":
        values = pick_string_fields(data, cls.VARIABLES, source)
        return cls(**{cls.VARIABLES[key]: value for key, value in values.items()})

    def export(self, environ: Optional[MutableMapping[str, str]] = None) -> None:
        """
        環境変数に書き込む

        ロールバックはしない: BQ_DATASET の書き込み後に BQ_EXTERNAL が失敗した場合、
        BQ_DATASET は設定されたまま残る。

        Args:
            environ: 書き込み先（デフォルト: os.environ）

        Raises:
            SetError: OS に書き込みを拒否された場合（NUL 文字を含む値など）
        """
        if environ is None:
            environ = os.environ

        for variable, name in self.VARIABLES.items():
            try:
                environ[variable] = getattr(self, name)
            except (OSError, ValueError) as e:
                raise SetError(
                    f"failed to set variable {variable}: {e}",
                    variable=variable,
                    original_error=e,
                ) from e


def load_environment_flags(secret_id: str) -> EnvironmentFlags:
    """
    Secret Manager から設定を取得（環境変数には書き込まない）

    Raises:
        ClientInitError / AccessError: 取得に失敗した場合
        ParseError: ペイロードが不正な場合
    """
    data = load_json_secret(secret_id)
    return EnvironmentFlags.from_dict(data, source=secret_id)


def setup_variables(
    secret_id: str,
    environ: Optional[MutableMapping[str, str]] = None,
) -> EnvironmentFlags:
    """
    Secret Manager の設定を環境変数 BQ_DATASET / BQ_EXTERNAL に設定

    取得・パースに失敗した場合、環境変数は一切変更されない。

    Raises:
        ClientInitError / AccessError / ParseError: 取得・パースに失敗した場合
        SetError: 環境変数の書き込みに失敗した場合
    """
    flags = load_environment_flags(secret_id)
    flags.export(environ)
    logger.info(f"[Environment] exported {', '.join(EnvironmentFlags.VARIABLES)}")
    return flags
