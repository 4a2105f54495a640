from datetime import datetime, UTC
from typing import Any, List, Sequence

from ...logs.logs import get_logger


def extract_content(chunk: Any) -> str:
  """
  Text of one chunk. Chunks may be plain strings, dicts with a `content` or
  `text` key or a nested `message.content`, ContinuationChunk / ProviderResponse objects, or anything with
  `message.content`.
  """
  if chunk is None:
    return ""
  if isinstance(chunk, str):
    return chunk
  if isinstance(chunk, dict):
    value = chunk.get("content")
    if value is None:
      value = chunk.get("text")
    if value is None and isinstance(chunk.get("message"), dict):
      value = chunk["message"].get("content")
    return value if isinstance(value, str) else ""
  content = getattr(chunk, "content", None)
  if isinstance(content, str):
    return content
  message = getattr(chunk, "message", None)
  content = getattr(message, "content", None)
  if isinstance(content, str):
    return content
  return str(chunk)


class BaseMerger:
  """
  Joins chunks by direct concatenation. Format specific mergers override
  `merge_contents`.

  `merge` never raises. If `merge_contents` fails, the chunks are concatenated
  as they are and the failure is reported in the metadata.
  """

  strategy = "concatenation"

  def __init__(self):
    self.logger = get_logger("merger")

  def merge(self, chunks: Sequence[Any]) -> dict:
    chunks = list(chunks or [])
    contents = [extract_content(c) for c in chunks]

    try:
      content, details = self.merge_contents(contents)
    except Exception as e:
      self.logger.warning(f"{type(self).__name__} failed on {len(chunks)} chunks, concatenating instead: {e}")
      return self.fallback(contents, e)

    return {
      "content": content,
      "metadata": {
        "merge_success": True,
        "merge_strategy": self.strategy,
        "chunk_count": len(chunks),
        "timestamp": timestamp(),
        **details,
      },
    }

  def merge_contents(self, contents: List[str]) -> tuple[str, dict]:
    return "".join(contents), {}

  def fallback(self, contents: List[str], error: Exception) -> dict:
    return {
      "content": "".join(contents),
      "metadata": {
        "merge_success": False,
        "merge_strategy": self.strategy,
        "chunk_count": len(contents),
        "timestamp": timestamp(),
        "fallback_used": True,
        "fallback_level": 2,
        "fallback_strategy": "concatenation",
        "merge_error": {"error_class": type(error).__name__, "error_message": str(error)},
      },
    }


def timestamp() -> str:
  return datetime.now(UTC).isoformat()
