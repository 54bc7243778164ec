"""
cloudsql_bootstrap/exceptions.py のテスト
"""

import pytest

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


class TestBootstrapError:
    """BootstrapError のテスト"""

    def test_basic_error(self):
        error = BootstrapError("Test error message")
        assert str(error) == "[BOOTSTRAP_ERROR] Test error message"
        assert error.message == "Test error message"
        assert error.details == {}
        assert error.original_error is None

    def test_to_dict_redacts_sensitive_details(self):
        original = ValueError("boom")
        error = BootstrapError(
            "failed",
            details={"password": "s3cr3t", "host": "db-host"},
            original_error=original,
        )
        result = error.to_dict()
        assert result["error_type"] == "BootstrapError"
        assert result["details"] == {"password": "[REDACTED]", "host": "db-host"}
        assert result["original_error"] == "boom"


class TestErrorCodes:
    """各例外のエラーコード"""

    @pytest.mark.parametrize("error, code", [
        (ClientInitError("x"), "CLIENT_INIT_ERROR"),
        (AccessError("x", secret_name="projects/p/secrets/s/versions/1"), "ACCESS_ERROR"),
        (ParseError("x", source="SECRET_PATH"), "PARSE_ERROR"),
        (MissingConfigError("x", variable="SECRET_PATH"), "MISSING_CONFIG"),
        (MissingFieldError("x", field_name="host"), "MISSING_FIELD"),
        (OpenError("x"), "OPEN_ERROR"),
        (SetError("x", variable="BQ_DATASET"), "SET_ERROR"),
    ])
    def test_error_code(self, error, code):
        assert isinstance(error, BootstrapError)
        assert error.error_code == code
        assert str(error) == f"[{code}] x"

    def test_context_attributes(self):
        assert AccessError("x", secret_name="s").details["secret_name"] == "s"
        assert ParseError("x", source="SECRET_PATH").source == "SECRET_PATH"
        assert MissingConfigError("x", variable="SECRET_PATH").variable == "SECRET_PATH"
        assert MissingFieldError("x", field_name="public_ip").field_name == "public_ip"
        assert SetError("x", variable="BQ_EXTERNAL").details["variable"] == "BQ_EXTERNAL"
