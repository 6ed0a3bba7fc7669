"""Tests for the provider error taxonomy."""

from __future__ import annotations

import httpx
import openai
import pytest

from inkwise.ai.errors import (
    AuthenticationFailedError,
    EndpointNotFoundError,
    ErrorCode,
    ProviderError,
    ProviderNetworkError,
    RateLimitedError,
    classify_provider_error,
    error_for_status,
    is_rate_limit_error,
)

_REQUEST = httpx.Request("POST", "https://api.example.test/v1/chat/completions")


def _status_error(status: int) -> openai.APIStatusError:
    response = httpx.Response(status, request=_REQUEST)
    return openai.APIStatusError(f"Error code: {status}", response=response, body=None)


class TestErrorForStatus:
    @pytest.mark.parametrize(
        ("status", "expected"),
        [
            (429, RateLimitedError),
            (401, AuthenticationFailedError),
            (403, AuthenticationFailedError),
            (404, EndpointNotFoundError),
            (502, ProviderNetworkError),
        ],
    )
    def test_maps_status(self, status: int, expected: type[ProviderError]) -> None:
        error = error_for_status(status, "boom", provider="zai")
        assert type(error) is expected
        assert error.status_code == status
        assert error.details == {"provider": "zai"}

    def test_other_client_errors_stay_generic(self) -> None:
        assert type(error_for_status(400, "bad request")) is ProviderError


class TestClassifyProviderError:
    def test_provider_errors_pass_through(self) -> None:
        error = RateLimitedError("slow down")
        assert classify_provider_error(error) is error

    def test_openai_status_errors(self) -> None:
        assert isinstance(classify_provider_error(_status_error(429)), RateLimitedError)
        assert isinstance(classify_provider_error(_status_error(401)), AuthenticationFailedError)

    def test_connection_errors_are_network(self) -> None:
        assert isinstance(classify_provider_error(openai.APIConnectionError(request=_REQUEST)), ProviderNetworkError)
        assert isinstance(classify_provider_error(httpx.ConnectError("refused")), ProviderNetworkError)

    @pytest.mark.parametrize(
        ("message", "expected"),
        [
            ("HTTP error! status: 429", RateLimitedError),
            ("Rate limit exceeded", RateLimitedError),
            ("401 Unauthorized", AuthenticationFailedError),
            ("model not found", EndpointNotFoundError),
            ("Failed to fetch", ProviderNetworkError),
        ],
    )
    def test_message_heuristics(self, message: str, expected: type[ProviderError]) -> None:
        assert type(classify_provider_error(RuntimeError(message))) is expected

    def test_unknown_message(self) -> None:
        error = classify_provider_error(RuntimeError("something odd"))
        assert type(error) is ProviderError
        assert error.error_code == ErrorCode.UNKNOWN


class TestRateLimitDetection:
    def test_rate_limit_signals(self) -> None:
        assert is_rate_limit_error(RateLimitedError("x")) is True
        assert is_rate_limit_error(ProviderError("x", status_code=429)) is True
        assert is_rate_limit_error(RuntimeError("status 429")) is True

    def test_non_rate_limit_errors(self) -> None:
        assert is_rate_limit_error(AuthenticationFailedError("x", status_code=401)) is False
        assert is_rate_limit_error(RuntimeError("boom")) is False


def test_error_str_and_dict() -> None:
    error = EndpointNotFoundError("no such route", status_code=404, details={"url": "/v1"})
    assert str(error) == "[not_found] no such route"
    assert error.to_dict() == {
        "error": "not_found",
        "message": "no such route",
        "status_code": 404,
        "details": {"url": "/v1"},
    }
    assert error.user_message == "API endpoint not found: Check your base URL setting"
