from .base import BaseMerger, extract_content
from .csv_merger import CSVMerger
from .markdown_merger import MarkdownMerger
from .json_merger import JSONMerger, repair_json
from .auto_merger import AutoMerger
from .factory import MergerFactory

__all__ = [
  "BaseMerger",
  "extract_content",
  "CSVMerger",
  "MarkdownMerger",
  "JSONMerger",
  "repair_json",
  "AutoMerger",
  "MergerFactory",
]
