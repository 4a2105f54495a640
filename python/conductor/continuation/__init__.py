from .format_detector import FormatDetection, FormatDetector
from .mergers import (
  AutoMerger,
  BaseMerger,
  CSVMerger,
  JSONMerger,
  MarkdownMerger,
  MergerFactory,
)
from .orchestrator import ContinuationChunk, ContinuationMetadata, ContinuationOrchestrator, MergedResult

__all__ = [
  "FormatDetection",
  "FormatDetector",
  "AutoMerger",
  "BaseMerger",
  "CSVMerger",
  "JSONMerger",
  "MarkdownMerger",
  "MergerFactory",
  "ContinuationChunk",
  "ContinuationMetadata",
  "ContinuationOrchestrator",
  "MergedResult",
]
