import csv
from typing import List

from .base import BaseMerger


class CSVMerger(BaseMerger):
  """
  Stitches CSV fragments into one document.

  The header of the first chunk is kept; a continuation that starts by
  repeating it has the repeat dropped and starts on a new line, even when the
  text so far lacks a final newline. A chunk that ends in the middle of a row
  or quoted field is otherwise continued by direct concatenation.
  """

  strategy = "csv"

  def __init__(self, delimiter: str = ","):
    super().__init__()
    self.delimiter = delimiter

  def merge_contents(self, contents: List[str]) -> tuple[str, dict]:
    parts = [c for c in contents if c and c.strip()]
    if not parts:
      return "", {"row_count": 0}

    delimiter = self.detect_delimiter(parts[0])
    merged = parts[0]
    header = first_line(merged)
    removed_headers = 0

    for part in parts[1:]:
      stripped = part.lstrip("\r\n")
      repeats_header = bool(header) and first_line(stripped).strip() == header.strip()

      # a repeated header means the previous row was complete, unless a quoted field is open
      if repeats_header and merged.count('"') % 2 == 0:
        _, _, part = stripped.partition("\n")
        removed_headers += 1
      elif self.has_incomplete_row(merged, delimiter):
        merged += part
        continue
      else:
        part = stripped

      if not merged.endswith("\n"):
        merged += "\n"
      merged += part

    rows = [line for line in merged.splitlines() if line.strip()]
    return merged, {
      "header": header,
      "row_count": max(0, len(rows) - 1),
      "duplicate_headers_removed": removed_headers,
      "delimiter": delimiter,
    }

  def detect_delimiter(self, content: str) -> str:
    sample = "\n".join(content.splitlines()[:5])
    try:
      return csv.Sniffer().sniff(sample, delimiters=",;\t").delimiter
    except csv.Error:
      return self.delimiter

  def has_incomplete_row(self, content: str, delimiter: str = None) -> bool:
    """
    True when `content` stops inside a quoted field, without a final newline,
    or right after a delimiter.
    """
    if not content:
      return False
    delimiter = delimiter or self.delimiter
    if content.count('"') % 2 == 1:
      return True
    if not content.endswith("\n"):
      return True
    last = content.rstrip("\r\n").splitlines()[-1] if content.strip() else ""
    return last.rstrip().endswith(delimiter)


def first_line(content: str) -> str:
  return content.split("\n", 1)[0].rstrip("\r")
