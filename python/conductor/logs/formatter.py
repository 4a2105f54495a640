import re

from colorlog import ColoredFormatter
from datetime import datetime, UTC

# [STATE:RUNNING], [TOOL→CALL], [TOOL←RESULT], ...
TAG = re.compile(r"^\[(?:STATE|TOOL)[^\]]*\]")


class Formatter(ColoredFormatter):
  """
  colorlog formatter for runtime logs: UTC timestamps and logger names in grey,
  WARNING shortened to WARN, and the state or tool tag a message opens with
  highlighted so a run can be followed by eye.
  """

  GREY = "\033[38;5;245m"
  CYAN = "\033[36m"
  YELLOW = "\033[33m"
  RESET = "\033[0m"

  def __init__(self, *args, **kwargs):
    kwargs.setdefault("datefmt", "%Y-%m-%dT%H:%M:%S.%fZ")
    super().__init__(*args, **kwargs)

  def format(self, record):
    if record.levelname == "WARNING":
      record.levelname = f"{self.YELLOW} WARN{self.RESET}"
    return super().format(record)

  def formatTime(self, record, datefmt=None) -> str:
    try:
      created = datetime.fromtimestamp(record.created, UTC)
      return created.strftime(datefmt) if datefmt else created.isoformat()
    except Exception:
      # interpreter shutdown can leave datetime half torn down
      return f"{record.created}"

  def formatMessage(self, record) -> str:
    record.name = f"{self.GREY}{record.name}{self.RESET}"
    record.asctime = f"{self.GREY}{self.formatTime(record, self.datefmt)}{self.RESET}"
    record.message = TAG.sub(lambda m: f"{self.CYAN}{m.group(0)}{self.RESET}", record.message)
    return super().formatMessage(record)
