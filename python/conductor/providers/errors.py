import asyncio

from typing import Optional

import anthropic
import httpx
import openai

from ..errors import ProviderError, ProviderErrorKind
from ..logs.logs import get_logger

logger = get_logger("provider")

# litellm exceptions subclass the openai ones, so these cover all three SDKs.
_STATUS_ERRORS = (openai.APIStatusError, anthropic.APIStatusError)
_CONNECTION_ERRORS = (openai.APIConnectionError, anthropic.APIConnectionError)


def to_provider_error(error: BaseException, provider: Optional[str] = None) -> ProviderError:
  """
  Classify an exception raised by a vendor SDK into a ProviderError.
  """
  if isinstance(error, ProviderError):
    return error

  detail = f"{type(error).__name__}: {error}"

  if isinstance(error, _CONNECTION_ERRORS) or isinstance(error, (httpx.TransportError, asyncio.TimeoutError)):
    return ProviderError(ProviderErrorKind.NETWORK, detail, provider=provider)

  if isinstance(error, _STATUS_ERRORS):
    status_code = getattr(error, "status_code", None)
    return ProviderError(
      kind_for_status(status_code),
      detail,
      provider=provider,
      status_code=status_code,
      retry_after=extract_retry_after(error),
    )

  if isinstance(error, httpx.HTTPStatusError):
    status_code = error.response.status_code
    return ProviderError(
      kind_for_status(status_code),
      detail,
      provider=provider,
      status_code=status_code,
      retry_after=extract_retry_after(error),
    )

  return ProviderError(classify_message(error), detail, provider=provider)


def kind_for_status(status_code: Optional[int]) -> ProviderErrorKind:
  if status_code is None:
    return ProviderErrorKind.UNKNOWN
  if status_code in (401, 403):
    return ProviderErrorKind.AUTH
  if status_code == 429:
    return ProviderErrorKind.RATE_LIMIT
  if status_code in (408, 409):
    return ProviderErrorKind.NETWORK
  if status_code >= 500:
    return ProviderErrorKind.SERVER
  if 400 <= status_code < 500:
    return ProviderErrorKind.INVALID_REQUEST
  return ProviderErrorKind.UNKNOWN


def classify_message(error: BaseException) -> ProviderErrorKind:
  """Fallback for exceptions that carry no status: look at the message text."""
  error_str = str(error).lower()
  if ("rate" in error_str and "limit" in error_str) or "429" in error_str:
    return ProviderErrorKind.RATE_LIMIT
  for code in ["500", "502", "503", "504"]:
    if code in error_str:
      return ProviderErrorKind.SERVER
  if "unauthorized" in error_str or "api key" in error_str:
    return ProviderErrorKind.AUTH
  return ProviderErrorKind.UNKNOWN


def extract_retry_after(error: BaseException) -> Optional[float]:
  response = getattr(error, "response", None)
  headers = getattr(response, "headers", None)
  if not headers or "retry-after" not in headers:
    return None
  try:
    return float(headers["retry-after"])
  except (ValueError, TypeError):
    logger.debug(f"Ignoring unparseable retry-after header: {headers['retry-after']!r}")
    return None
