# chuk_ai_orchestrator/tools/__init__.py
"""Tool discovery and dispatch."""

from chuk_ai_orchestrator.tools.registry import ToolRegistry, render_result
from chuk_ai_orchestrator.tools.transport import InProcessToolTransport, ToolTransport

__all__ = [
    "InProcessToolTransport",
    "ToolRegistry",
    "ToolTransport",
    "render_result",
]
