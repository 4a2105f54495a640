"""
Logging setup for the runtime.

Levels come from CONDUCTOR_LOG_LEVELS, a comma separated list where a bare
level sets the default and `name=level` sets one logger:

    CONDUCTOR_LOG_LEVELS="warning,continuation=debug,tool=info"

CONDUCTOR_LOGGING=0 leaves logging unconfigured. CONDUCTOR_LOG_SHOW_SOURCE
appends the file and line to every record.
"""

import os
import time
import logging.config

from contextlib import contextmanager
from typing import Optional, Protocol

LOG_FORMAT = os.getenv(
  "CONDUCTOR_LOG_FORMAT", "%(asctime)s %(log_color)s%(levelname)5s%(reset)s %(name)-14s %(message)s"
)
if os.getenv("CONDUCTOR_LOG_SHOW_SOURCE"):
  LOG_FORMAT += " [%(pathname)s:%(lineno)d]"

# one logger per runtime component
RUNTIME_LOGGERS = (
  "runner",
  "turn",
  "strategy",
  "provider",
  "retry",
  "rate_limiter",
  "tool",
  "handoff",
  "continuation",
  "merger",
)

# vendor SDK and transport loggers stay at WARNING unless named explicitly
LIBRARY_LOGGERS = (
  "asyncio",
  "httpcore",
  "httpx",
  "openai",
  "anthropic",
  "LiteLLM",
  "LiteLLM Router",
)

LEVEL_COLORS = {
  "DEBUG": "blue",
  "INFO": "green",
  "WARNING": "yellow",
  "ERROR": "red",
  "CRITICAL": "bold_red",
}

LOG_LEVELS: dict[str, str] = {}


def create_log_levels(spec: Optional[str]) -> dict[str, str]:
  """
  Parse a level string such as "info,continuation=debug" into a level per logger.
  """
  levels = {"default": "INFO"}
  for entry in (spec or "").split(","):
    entry = entry.strip()
    if not entry:
      continue
    name, separator, level = entry.partition("=")
    if separator:
      levels[name.strip()] = level.strip().upper()
    else:
      levels["default"] = name.upper()
  return levels


def _current_levels() -> dict[str, str]:
  global LOG_LEVELS
  if not LOG_LEVELS:
    LOG_LEVELS = create_log_levels(os.environ.get("CONDUCTOR_LOG_LEVELS"))
  return LOG_LEVELS


def set_log_levels(spec: Optional[str]):
  global LOG_LEVELS
  LOG_LEVELS = create_log_levels(spec)


def set_log_level(logger_name: str, level: str):
  _current_levels()[logger_name] = level.upper()


def get_log_levels() -> dict[str, str]:
  return dict(_current_levels())


def get_logging_config() -> dict:
  if os.environ.get("CONDUCTOR_LOGGING", "1") == "0":
    return {"version": 1}
  return create_logging_config(_current_levels(), LOG_FORMAT)


def apply_log_levels():
  """Reconfigure loggers that were already handed out with the current levels."""
  logging.config.dictConfig(get_logging_config())


def create_logging_config(levels: dict, log_format: str) -> dict:
  default = levels.get("default")

  def logger_entry(level):
    return {"handlers": ["default"], "level": level, "propagate": False}

  loggers = {name: logger_entry(levels.get(name, "WARNING")) for name in LIBRARY_LOGGERS}
  loggers.update({name: logger_entry(levels.get(name) or default) for name in RUNTIME_LOGGERS})

  return {
    "version": 1,
    "disable_existing_loggers": False,
    "formatters": {
      "default": {
        "()": "conductor.logs.formatter.Formatter",
        "format": log_format,
        "log_colors": LEVEL_COLORS,
      },
    },
    "handlers": {
      "default": {"class": "logging.StreamHandler", "formatter": "default", "level": default},
    },
    "loggers": loggers,
    "root": {"handlers": ["default"], "level": default},
  }


def get_logger(logger_name: str) -> logging.Logger:
  logging.config.dictConfig(get_logging_config())
  return logging.getLogger(logger_name)


class LoggerAware(Protocol):
  logger: logging.Logger


class DebugContext(LoggerAware):
  @contextmanager
  def debug(self, before_msg: str, after_msg: str):
    """Log `before_msg`, run the block, then log `after_msg` with the elapsed time."""
    self.logger.debug(before_msg)
    started = time.perf_counter()
    yield
    self.logger.debug(f"{after_msg} in {(time.perf_counter() - started) * 1000:.1f}ms")
