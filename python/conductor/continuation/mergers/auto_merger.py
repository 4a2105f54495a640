from typing import Any, Optional, Sequence

from ..format_detector import FormatDetector
from .base import BaseMerger, extract_content


class AutoMerger(BaseMerger):
  """
  Sniffs the format of the first non-empty chunk and delegates to the
  matching merger. Unrecognized content is concatenated.
  """

  strategy = "auto"

  def __init__(self, factory, detector: Optional[FormatDetector] = None):
    super().__init__()
    self.factory = factory
    self.detector = detector or FormatDetector()

  def merge(self, chunks: Sequence[Any]) -> dict:
    chunks = list(chunks or [])
    sample = next((text for text in map(extract_content, chunks) if text.strip()), "")
    detection = self.detector.detect(sample)

    merger = self.factory.merger_for(detection.format) if detection.known else BaseMerger()
    result = merger.merge(chunks)
    result["metadata"]["detected_format"] = detection.format.value if detection.known else None
    result["metadata"]["detection_confidence"] = detection.confidence
    self.logger.debug(
      f"Auto merge picked {result['metadata']['merge_strategy']} "
      f"(detected {result['metadata']['detected_format']}, confidence {detection.confidence})"
    )
    return result
