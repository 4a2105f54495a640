import asyncio

from typing import Optional, Awaitable, TypeVar

from .errors import RunCancelledError

T = TypeVar("T")


class CancellationToken:
  """
  Cooperative cancellation for a run.

  The engine checks the token before every provider call, continuation attempt
  and tool invocation, and races long awaits against it with `guard`.

  Example:
    token = CancellationToken()
    task = asyncio.create_task(runner.run(agent, "hello", cancellation=token))
    token.cancel("user pressed stop")
    result = await task  # result.status == RunStatus.CANCELLED
  """

  def __init__(self):
    self._event = asyncio.Event()
    self._reason: Optional[str] = None
    self._deadline: Optional[asyncio.TimerHandle] = None

  @property
  def cancelled(self) -> bool:
    return self._event.is_set()

  @property
  def reason(self) -> Optional[str]:
    return self._reason

  def cancel(self, reason: str = "cancelled"):
    if self._event.is_set():
      return
    self._reason = reason
    self._event.set()
    self.disarm()

  def cancel_after(self, seconds: float):
    """Cancel the token once `seconds` have elapsed on the running loop."""
    self.disarm()
    loop = asyncio.get_running_loop()
    self._deadline = loop.call_later(seconds, self.cancel, f"max execution time of {seconds}s exceeded")

  def disarm(self):
    if self._deadline is not None:
      self._deadline.cancel()
      self._deadline = None

  def raise_if_cancelled(self, partial=None):
    if self._event.is_set():
      raise RunCancelledError(self._reason, partial=partial)

  async def wait(self):
    await self._event.wait()

  async def guard(self, awaitable: Awaitable[T]) -> T:
    """
    Await `awaitable` unless the token is cancelled first. On cancellation the
    pending work is cancelled and RunCancelledError is raised.
    """
    self.raise_if_cancelled()
    work = asyncio.ensure_future(awaitable)
    waiter = asyncio.ensure_future(self._event.wait())
    try:
      await asyncio.wait({work, waiter}, return_when=asyncio.FIRST_COMPLETED)
    except asyncio.CancelledError:
      work.cancel()
      raise
    finally:
      waiter.cancel()

    if work.done():
      return work.result()

    work.cancel()
    await asyncio.gather(work, return_exceptions=True)
    raise RunCancelledError(self._reason)

  async def sleep(self, seconds: float):
    await self.guard(asyncio.sleep(seconds))
