from typing import Optional, Union

from ...config import OutputFormat
from ..format_detector import FormatDetection, FormatDetector
from .auto_merger import AutoMerger
from .base import BaseMerger
from .csv_merger import CSVMerger
from .json_merger import JSONMerger
from .markdown_merger import MarkdownMerger


class MergerFactory:
  """
  Picks a merger for an output format.

  Example:
    MergerFactory("csv").get_merger()                  # CSVMerger
    MergerFactory("auto").get_merger('{"id": 1}')     # JSONMerger
    MergerFactory("auto").get_merger()                 # ValueError
  """

  def __init__(
    self,
    output_format: Union[OutputFormat, str] = OutputFormat.AUTO,
    json_schema: Optional[dict] = None,
    detector: Optional[FormatDetector] = None,
  ):
    self.output_format = OutputFormat(output_format)
    self.json_schema = json_schema
    self.detector = detector or FormatDetector()

  def get_merger(self, content: Optional[str] = None) -> BaseMerger:
    if self.output_format != OutputFormat.AUTO:
      return self.merger_for(self.output_format)

    if content is None:
      raise ValueError("content is required to pick a merger for the auto format")

    detection = self.detector.detect(content)
    return self.merger_for(detection.format) if detection.known else BaseMerger()

  def auto_merger(self) -> AutoMerger:
    return AutoMerger(self, self.detector)

  def merger_for(self, output_format: Optional[OutputFormat]) -> BaseMerger:
    match output_format:
      case OutputFormat.CSV:
        return CSVMerger()
      case OutputFormat.MARKDOWN:
        return MarkdownMerger()
      case OutputFormat.JSON:
        return JSONMerger(self.json_schema)
      case OutputFormat.AUTO:
        return self.auto_merger()
      case _:
        return BaseMerger()

  def detect_format(self, content: Optional[str]) -> FormatDetection:
    return self.detector.detect(content)
