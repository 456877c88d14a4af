# chuk_ai_orchestrator/models/enums.py
"""Enums shared across the orchestration core."""

from enum import Enum


class MessageRole(str, Enum):
    """Roles of messages held in a conversation."""

    USER = "user"
    ASSISTANT = "assistant"
    TOOL_CALL = "tool_call"
    TOOL_RESULT = "tool_result"
    SUMMARY = "summary"


class Segment(str, Enum):
    """Negotiable context segments, distributed above the floor."""

    HISTORY = "history"
    RETRIEVAL = "retrieval"
    TOOL_RESULTS = "tool_results"


class LoopState(str, Enum):
    """States of the per-turn orchestration state machine."""

    IDLE = "idle"
    AWAITING_MODEL = "awaiting_model"
    TOOL_CALL_REQUESTED = "tool_call_requested"
    TOOL_EXECUTING = "tool_executing"
    FINAL_ANSWER = "final_answer"  # terminal
    ABORTED = "aborted"  # terminal: max turns exceeded
    FAILED = "failed"  # terminal

    @property
    def is_terminal(self) -> bool:
        return self in TERMINAL_STATES


TERMINAL_STATES = frozenset({LoopState.FINAL_ANSWER, LoopState.ABORTED, LoopState.FAILED})


class AbortReason(str, Enum):
    """Why a turn was aborted."""

    MAX_TURNS_EXCEEDED = "max_turns_exceeded"
