"""Unit tests for caller identity resolution."""

import asyncio
from types import SimpleNamespace
from unittest.mock import MagicMock

import pytest

from aviary.core.auth import get_current_user_id
from aviary.core.config import AppSettings
from aviary.core.errors import AuthenticationAppError


def _request(headers: dict[str, str], header_name: str = "X-User-Id") -> MagicMock:
    request = MagicMock()
    request.headers = _CaseInsensitive(headers)
    app_settings = AppSettings(user_id_header=header_name)
    request.app.state.container = SimpleNamespace(settings=SimpleNamespace(app=app_settings))
    return request


class _CaseInsensitive(dict):
    def __init__(self, headers: dict[str, str]) -> None:
        super().__init__({k.lower(): v for k, v in headers.items()})

    def get(self, key, default=None):
        return super().get(key.lower(), default)


class TestGetCurrentUserId:
    def test_returns_header_value(self) -> None:
        request = _request({"X-User-Id": "alice"})

        assert asyncio.run(get_current_user_id(request)) == "alice"

    def test_strips_whitespace(self) -> None:
        request = _request({"X-User-Id": "  alice "})

        assert asyncio.run(get_current_user_id(request)) == "alice"

    @pytest.mark.parametrize("headers", [{}, {"X-User-Id": ""}, {"X-User-Id": "   "}])
    def test_missing_user_raises(self, headers: dict[str, str]) -> None:
        with pytest.raises(AuthenticationAppError) as exc_info:
            asyncio.run(get_current_user_id(_request(headers)))

        assert exc_info.value.code == "unauthenticated"

    def test_header_name_is_configurable(self) -> None:
        request = _request({"X-Forwarded-User": "bob"}, header_name="X-Forwarded-User")

        assert asyncio.run(get_current_user_id(request)) == "bob"
