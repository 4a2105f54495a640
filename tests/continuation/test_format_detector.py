import pytest

from conductor.config import OutputFormat
from conductor.continuation import FormatDetector
from conductor.continuation.format_detector import sniff_delimiter


class TestFormatDetector:
  """Scores text as CSV, Markdown or JSON."""

  @pytest.fixture
  def detector(self):
    return FormatDetector()

  def test_valid_json(self, detector):
    detection = detector.detect('{"items": [1, 2, 3], "total": 3}')
    assert detection.format == OutputFormat.JSON
    assert detection.confidence == 0.95

  def test_fenced_json(self, detector):
    assert detector.detect('```json\n[{"id": 1}]\n```').format == OutputFormat.JSON

  def test_truncated_json(self, detector):
    detection = detector.detect('{"items": [{"id": 1, "name": "wid')
    assert detection.format == OutputFormat.JSON
    assert detection.confidence == 0.6

  def test_csv(self, detector):
    detection = detector.detect("id,name,price\n1,widget,9.99\n2,gadget,19.99\n3,doohickey,4.50")
    assert detection.format == OutputFormat.CSV
    assert detection.confidence >= 0.8

  def test_semicolon_csv(self, detector):
    assert detector.detect("id;name\n1;a\n2;b").format == OutputFormat.CSV
    assert sniff_delimiter("id;name\n1;a\n2;b") == ";"

  def test_markdown(self, detector):
    text = "# Report\n\n## Summary\n\n- first point\n- second point\n\n**Bold** conclusion."
    detection = detector.detect(text)
    assert detection.format == OutputFormat.MARKDOWN
    assert detection.confidence == 0.65

  def test_markdown_table_is_not_csv(self, detector):
    text = "| id | name |\n|----|------|\n| 1 | a |\n| 2 | b |"
    assert detector.detect(text).format == OutputFormat.MARKDOWN

  def test_prose_is_unknown(self, detector):
    detection = detector.detect("Thanks for asking. The weather today is mild and pleasant.")
    assert detection.format is None
    assert not detection.known

  def test_empty_is_unknown(self, detector):
    fmt, confidence = detector.detect("   ")
    assert fmt is None
    assert confidence == 0.0
