from logging import Logger

from .formatter import Formatter
from .logs import (
  DebugContext,
  apply_log_levels,
  create_log_levels,
  get_log_levels,
  get_logger,
  set_log_level,
  set_log_levels,
)

__all__ = [
  "DebugContext",
  "Formatter",
  "Logger",
  "apply_log_levels",
  "create_log_levels",
  "get_log_levels",
  "get_logger",
  "set_log_level",
  "set_log_levels",
]
