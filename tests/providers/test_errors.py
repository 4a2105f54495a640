import asyncio

import anthropic
import httpx
import openai
import pytest

from conductor.errors import ProviderError, ProviderErrorKind
from conductor.providers.errors import kind_for_status, to_provider_error

REQUEST = httpx.Request("POST", "https://api.example.com/v1/chat/completions")


def response(status_code: int, headers=None) -> httpx.Response:
  return httpx.Response(status_code, request=REQUEST, headers=headers or {})


class TestProviderErrorClassification:
  """Vendor exceptions become typed ProviderErrors."""

  def test_openai_rate_limit_with_retry_after(self):
    error = openai.RateLimitError("slow down", response=response(429, {"retry-after": "3"}), body=None)

    result = to_provider_error(error, provider="openai")

    assert result.kind == ProviderErrorKind.RATE_LIMIT
    assert result.status_code == 429
    assert result.retry_after == 3.0
    assert result.retryable
    assert result.provider == "openai"

  def test_anthropic_auth_error_is_not_retryable(self):
    error = anthropic.AuthenticationError("bad key", response=response(401), body=None)

    result = to_provider_error(error, provider="anthropic")

    assert result.kind == ProviderErrorKind.AUTH
    assert not result.retryable

  def test_server_error(self):
    error = openai.InternalServerError("oops", response=response(503), body=None)
    assert to_provider_error(error).kind == ProviderErrorKind.SERVER

  def test_bad_request(self):
    error = openai.BadRequestError("bad", response=response(400), body=None)
    result = to_provider_error(error)
    assert result.kind == ProviderErrorKind.INVALID_REQUEST
    assert not result.retryable

  def test_connection_errors_are_network(self):
    assert to_provider_error(openai.APIConnectionError(request=REQUEST)).kind == ProviderErrorKind.NETWORK
    assert to_provider_error(httpx.ConnectError("refused")).kind == ProviderErrorKind.NETWORK
    assert to_provider_error(asyncio.TimeoutError()).kind == ProviderErrorKind.NETWORK

  def test_httpx_status_error(self):
    error = httpx.HTTPStatusError("gateway", request=REQUEST, response=response(502, {"retry-after": "soon"}))
    result = to_provider_error(error)
    assert result.kind == ProviderErrorKind.SERVER
    assert result.status_code == 502
    assert result.retry_after is None

  def test_message_heuristics(self):
    assert to_provider_error(RuntimeError("Rate limit reached")).kind == ProviderErrorKind.RATE_LIMIT
    assert to_provider_error(RuntimeError("upstream returned 503")).kind == ProviderErrorKind.SERVER
    assert to_provider_error(RuntimeError("invalid api key")).kind == ProviderErrorKind.AUTH
    assert to_provider_error(RuntimeError("no idea")).kind == ProviderErrorKind.UNKNOWN

  def test_unknown_errors_are_not_retried(self):
    assert not to_provider_error(ValueError("strange")).retryable

  def test_provider_error_passes_through(self):
    error = ProviderError(ProviderErrorKind.MALFORMED, "no choices")
    assert to_provider_error(error) is error

  @pytest.mark.parametrize(
    "status, kind",
    [
      (401, ProviderErrorKind.AUTH),
      (403, ProviderErrorKind.AUTH),
      (408, ProviderErrorKind.NETWORK),
      (422, ProviderErrorKind.INVALID_REQUEST),
      (429, ProviderErrorKind.RATE_LIMIT),
      (500, ProviderErrorKind.SERVER),
      (None, ProviderErrorKind.UNKNOWN),
    ],
  )
  def test_kind_for_status(self, status, kind):
    assert kind_for_status(status) == kind


class TestProviderErrorMessage:
  def test_message_names_kind_and_suggestion(self):
    error = ProviderError(ProviderErrorKind.AUTH, "401 Unauthorized", provider="openai", status_code=401)

    assert "Provider call failed (auth): 401 Unauthorized." in str(error)
    assert "provider: openai" in str(error)
    assert "Check the API key" in str(error)

  def test_explicit_retryable_overrides_kind(self):
    error = ProviderError(ProviderErrorKind.SERVER, "failed response", retryable=False)
    assert not error.retryable
