"""
Process wide vendor SDK clients.

Providers are cheap to build per run, but each SDK client owns an httpx
connection pool. Providers constructed without an explicit client borrow one
of these instead, created on first use.

Usage:
    client = await get_shared_openai_client()
    response = await client.chat.completions.create(...)
"""

import asyncio
import os
from typing import Any, Callable, Dict

import httpx
from anthropic import AsyncAnthropic
from openai import AsyncOpenAI

from ..logs.logs import get_logger

logger = get_logger("provider")

TIMEOUT = httpx.Timeout(connect=10.0, read=120.0, write=30.0, pool=10.0)
LIMITS = httpx.Limits(max_connections=100, max_keepalive_connections=20)

_clients: Dict[str, Any] = {}
_lock = asyncio.Lock()


def _build_openai() -> AsyncOpenAI:
  return AsyncOpenAI(
    api_key=os.environ.get("OPENAI_API_KEY"),
    base_url=os.environ.get("OPENAI_BASE_URL") or None,
    timeout=TIMEOUT,
    http_client=httpx.AsyncClient(timeout=TIMEOUT, limits=LIMITS),
  )


def _build_anthropic() -> AsyncAnthropic:
  return AsyncAnthropic(
    api_key=os.environ.get("ANTHROPIC_API_KEY"),
    base_url=os.environ.get("ANTHROPIC_BASE_URL") or None,
    timeout=TIMEOUT,
    http_client=httpx.AsyncClient(timeout=TIMEOUT, limits=LIMITS),
  )


async def _shared(vendor: str, build: Callable[[], Any]) -> Any:
  client = _clients.get(vendor)
  if client is not None:
    return client

  async with _lock:
    if vendor not in _clients:
      _clients[vendor] = build()
      logger.debug(f"Created shared {vendor} client (max_connections={LIMITS.max_connections})")
    return _clients[vendor]


async def get_shared_openai_client() -> AsyncOpenAI:
  """The shared AsyncOpenAI client, configured from OPENAI_API_KEY and OPENAI_BASE_URL."""
  return await _shared("openai", _build_openai)


async def get_shared_anthropic_client() -> AsyncAnthropic:
  """The shared AsyncAnthropic client, configured from ANTHROPIC_API_KEY and ANTHROPIC_BASE_URL."""
  return await _shared("anthropic", _build_anthropic)


async def close_shared_clients():
  """Close every shared client. The next request creates fresh ones."""
  async with _lock:
    clients = list(_clients.items())
    _clients.clear()
  for vendor, client in clients:
    await client.close()
    logger.debug(f"Closed shared {vendor} client")
