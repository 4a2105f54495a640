import re
from typing import List

from .base import BaseMerger

HEADING = re.compile(r"^#{1,6}\s+\S")
SEPARATOR = re.compile(r"^\s*\|?\s*:?-{3,}:?\s*(\|\s*:?-{3,}:?\s*)*\|?\s*$")


class MarkdownMerger(BaseMerger):
  """
  Stitches Markdown fragments.

  A fragment that opens by repeating headings or a table header already
  present has the repeat dropped and starts on a new line. Any other fragment,
  and every fragment inside an open code block or half-written table row,
  is concatenated directly.
  """

  strategy = "markdown"

  def merge_contents(self, contents: List[str]) -> tuple[str, dict]:
    parts = [c for c in contents if c and c.strip()]
    if not parts:
      return "", {}

    merged = parts[0]
    headings_removed = 0
    table_headers_removed = 0

    for part in parts[1:]:
      if self.has_incomplete_code_block(merged) or self.has_incomplete_table_row(merged):
        merged += part
        continue

      rest, dropped_headings = self.drop_repeated_headings(merged, part)
      rest, dropped_table = self.drop_repeated_table_header(merged, rest)
      if not (dropped_headings or dropped_table):
        merged += part
        continue

      headings_removed += dropped_headings
      table_headers_removed += int(dropped_table)
      if not merged.endswith("\n"):
        merged += "\n"
      merged += rest.lstrip("\n")

    return merged, {
      "duplicate_headings_removed": headings_removed,
      "duplicate_table_headers_removed": table_headers_removed,
    }

  def has_incomplete_code_block(self, content: str) -> bool:
    fences = sum(1 for line in content.split("\n") if line.lstrip().startswith("```"))
    return fences % 2 == 1

  def has_incomplete_table_row(self, content: str) -> bool:
    """
    True when the last table row misses its closing pipe or has fewer cells
    than the table header.
    """
    lines = content.rstrip("\n").split("\n")
    last = lines[-1].strip()
    if not last.startswith("|"):
      return False
    if not last.endswith("|") or len(last) == 1:
      return True

    header = last
    for line in reversed(lines[:-1]):
      if not line.strip().startswith("|"):
        break
      header = line.strip()
    return cell_count(last) < cell_count(header)

  def drop_repeated_headings(self, merged: str, part: str) -> tuple[str, int]:
    """Drop the headings a fragment opens with when they already appear in `merged`."""
    existing = {line.strip() for line in merged.split("\n") if HEADING.match(line.strip())}
    lines = part.split("\n")
    index = 0
    dropped = 0
    while index < len(lines):
      line = lines[index].strip()
      if line == "":
        index += 1
        continue
      if HEADING.match(line) and line in existing:
        dropped += 1
        index += 1
        continue
      break
    if not dropped:
      return part, 0
    return "\n".join(lines[index:]), dropped

  def drop_repeated_table_header(self, merged: str, part: str) -> tuple[str, bool]:
    lines = part.lstrip("\n").split("\n")
    if len(lines) < 2 or not lines[0].strip().startswith("|") or not SEPARATOR.match(lines[1]):
      return part, False
    header = normalize_row(lines[0])
    if not any(normalize_row(line) == header for line in merged.split("\n") if line.strip().startswith("|")):
      return part, False
    return "\n".join(lines[2:]), True


def cell_count(row: str) -> int:
  return len(row.strip().strip("|").split("|"))


def normalize_row(row: str) -> str:
  return "|".join(cell.strip() for cell in row.strip().strip("|").split("|"))
