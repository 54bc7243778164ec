"""
cloudsql_bootstrap/config.py のテスト
"""

from cloudsql_bootstrap.config import Settings, get_settings, load_settings


class TestSettings:
    """Settings のテスト"""

    def test_defaults(self):
        settings = Settings()
        assert settings.PROJECT_ID == "test-project"
        assert settings.DEVELOPMENT == ""
        assert settings.SECRET_PATH == ""
        assert settings.DB_PORT == 3306
        assert settings.DB_TIMEZONE == "Europe/London"
        assert settings.DB_POOL_SIZE == 5
        assert settings.DB_MAX_IDLE_SECONDS == 2
        assert settings.DB_MAX_LIFETIME_SECONDS == 3600
        assert settings.DB_CONNECT_TIMEOUT == "5s"

    def test_sql_proxy_defaults_to_cloudsql(self):
        assert Settings().sql_proxy() == "cloudsql"

    def test_sql_proxy_override(self, monkeypatch):
        monkeypatch.setenv("SQLPROXY", "custom-proxy")
        assert Settings().sql_proxy() == "custom-proxy"

    def test_is_development(self, monkeypatch):
        assert Settings().is_development() is False
        monkeypatch.setenv("DEVELOPMENT", "1")
        assert Settings().is_development() is True

    def test_empty_development_is_not_development(self, monkeypatch):
        """空文字は未設定扱い"""
        monkeypatch.setenv("DEVELOPMENT", "")
        assert Settings().is_development() is False

    def test_get_settings_is_cached(self, monkeypatch):
        first = get_settings()
        monkeypatch.setenv("SQLPROXY", "changed")
        assert get_settings() is first

        get_settings.cache_clear()
        assert get_settings().sql_proxy() == "changed"

    def test_load_settings_rereads_environment(self, monkeypatch):
        """load_settings() はキャッシュせず毎回環境変数を読む"""
        assert load_settings().is_development() is False
        monkeypatch.setenv("DEVELOPMENT", "1")
        assert load_settings().is_development() is True
