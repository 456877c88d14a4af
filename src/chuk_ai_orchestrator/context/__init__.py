# chuk_ai_orchestrator/context/__init__.py
"""Per-attempt context budgeting and segment packing."""

from chuk_ai_orchestrator.context.allocator import Allocation, ContextBudgetAllocator
from chuk_ai_orchestrator.context.packer import (
    CONTEXT_HEADER,
    attach_context,
    pack_context_block,
    render_block,
    trim_tool_result,
)

__all__ = [
    "Allocation",
    "CONTEXT_HEADER",
    "ContextBudgetAllocator",
    "attach_context",
    "pack_context_block",
    "render_block",
    "trim_tool_result",
]
