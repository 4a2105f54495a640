from .protocol import InvokableTool
from .tool import Tool
from .executor import ToolExecutor

__all__ = ["InvokableTool", "Tool", "ToolExecutor"]
