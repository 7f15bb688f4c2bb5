"""
Media-control tool invocation.
"""

from .tool_invoker import ToolInvoker, parse_tool_output, text_signals_error
from .media_commands import MediaCommandPlanner, SearchHit, parse_search_result

__all__ = [
    'ToolInvoker',
    'parse_tool_output',
    'text_signals_error',
    'MediaCommandPlanner',
    'SearchHit',
    'parse_search_result'
]
