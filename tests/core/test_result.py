"""Tests for the Ok/Err outcome type."""

import pytest

from provisor.core.errors import ValidationError
from provisor.core.result import Err, Ok, capture


class TestOk:
    def test_accessors(self):
        result = Ok(5)
        assert result.is_ok() and not result.is_err()
        assert result.unwrap() == 5
        assert result.unwrap_or(0) == 5

    def test_to_dict(self):
        assert Ok("vm").to_dict() == {"ok": True, "value": "vm"}


class TestErr:
    def test_accessors(self):
        error = ValueError("bad")
        result = Err(error)
        assert result.is_err() and not result.is_ok()
        assert result.unwrap_or("default") == "default"
        with pytest.raises(ValueError, match="bad"):
            result.unwrap()

    def test_to_dict_provisor_error(self):
        d = Err(ValidationError("bad")).to_dict()
        assert d["ok"] is False
        assert d["error"]["category"] == "VALIDATION"

    def test_to_dict_foreign_error(self):
        assert Err(KeyError("k")).to_dict()["error"]["error_type"] == "KeyError"


class TestCapture:
    def test_value(self):
        assert capture(lambda: 1) == Ok(1)

    def test_exception(self):
        result = capture(lambda: 1 / 0)
        assert isinstance(result, Err)
        assert isinstance(result.error, ZeroDivisionError)

    def test_base_exceptions_propagate(self):
        def interrupted():
            raise KeyboardInterrupt

        with pytest.raises(KeyboardInterrupt):
            capture(interrupted)

    def test_pattern_matching(self):
        match capture(lambda: "rg-dev"):
            case Ok(value):
                assert value == "rg-dev"
            case Err():
                pytest.fail("expected Ok")
