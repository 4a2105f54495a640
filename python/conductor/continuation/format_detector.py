import csv
import io
import json
import re

from dataclasses import dataclass
from typing import Optional, Iterator

from ..config import OutputFormat

MINIMUM_CONFIDENCE = 0.3

FENCE = re.compile(r"^\s*```[\w-]*\s*\n?|\n?\s*```\s*$")
HEADING = re.compile(r"^#{1,6}\s+\S", re.MULTILINE)
TABLE_SEPARATOR = re.compile(r"^\s*\|?\s*:?-{3,}:?\s*(\|\s*:?-{3,}:?\s*)*\|?\s*$", re.MULTILINE)
TABLE_ROW = re.compile(r"^\s*\|.*\|\s*$", re.MULTILINE)
CODE_FENCE = re.compile(r"^\s*```", re.MULTILINE)
LIST_ITEM = re.compile(r"^\s*(?:[-*+]|\d+\.)\s+\S", re.MULTILINE)
EMPHASIS = re.compile(r"\*\*[^*\n]+\*\*|__[^_\n]+__|(?<![*\w])\*[^*\s][^*\n]*\*(?![*\w])")
LINK = re.compile(r"\[[^\]\n]+\]\([^)\s]+\)")
JSON_KEY = re.compile(r'"[^"\n]+"\s*:')


@dataclass(frozen=True)
class FormatDetection:
  format: Optional[OutputFormat]
  confidence: float

  @property
  def known(self) -> bool:
    return self.format is not None

  def __iter__(self) -> Iterator:
    yield self.format
    yield self.confidence


UNKNOWN = FormatDetection(None, 0.0)


class FormatDetector:
  """
  Guesses whether text is CSV, Markdown or JSON.

  Each format gets a score between 0 and 1 and the best one wins. Anything
  scoring below 0.3 is reported as unknown (format None).
  """

  def detect(self, content: Optional[str]) -> FormatDetection:
    if content is None or not content.strip():
      return UNKNOWN

    text = content.strip()
    scores = {
      OutputFormat.JSON: self.json_score(text),
      OutputFormat.CSV: self.csv_score(text),
      OutputFormat.MARKDOWN: self.markdown_score(text),
    }
    best = max(scores, key=scores.get)
    confidence = round(scores[best], 2)
    if confidence < MINIMUM_CONFIDENCE:
      return FormatDetection(None, confidence)
    return FormatDetection(best, confidence)

  def json_score(self, text: str) -> float:
    text = FENCE.sub("", text).strip()
    if not text or text[0] not in "{[":
      return 0.0
    try:
      json.loads(text)
      return 0.95
    except json.JSONDecodeError:
      pass
    # truncated JSON still looks like JSON
    if JSON_KEY.search(text) or text.startswith("[{"):
      return 0.6
    return 0.35

  def csv_score(self, text: str) -> float:
    if text[0] in "{[":
      return 0.0
    lines = [line for line in text.splitlines() if line.strip()]
    if any("|" in line for line in lines):
      return 0.0
    if HEADING.search(text) or CODE_FENCE.search(text) or LIST_ITEM.search(text):
      return 0.0

    delimiter = sniff_delimiter(text)
    counts = [len(row) for row in csv.reader(io.StringIO("\n".join(lines)), delimiter=delimiter)]
    if not counts or counts[0] < 2:
      return 0.0

    average_field = len(text) / max(1, sum(counts))
    if len(counts) == 1:
      score = 0.55 if counts[0] >= 3 else 0.35
    else:
      consistency = sum(1 for c in counts if c == counts[0]) / len(counts)
      score = 0.5 + 0.3 * consistency + min(0.15, 0.02 * len(counts))
    # long prose split by commas is not tabular data
    if average_field > 40:
      score *= 0.5
    return min(score, 0.95)

  def markdown_score(self, text: str) -> float:
    indicators = 0
    if HEADING.search(text):
      indicators += 1
    if TABLE_SEPARATOR.search(text) or len(TABLE_ROW.findall(text)) >= 2:
      indicators += 1
    if CODE_FENCE.search(text):
      indicators += 1
    if LIST_ITEM.search(text):
      indicators += 1
    if EMPHASIS.search(text):
      indicators += 1
    if LINK.search(text):
      indicators += 1
    if indicators == 0:
      return 0.0
    return min(0.95, 0.35 + 0.15 * (indicators - 1))


def sniff_delimiter(text: str) -> str:
  sample = "\n".join(text.splitlines()[:10])
  try:
    return csv.Sniffer().sniff(sample, delimiters=",;\t").delimiter
  except csv.Error:
    return ","
