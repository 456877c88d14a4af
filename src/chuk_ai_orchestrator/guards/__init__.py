# chuk_ai_orchestrator/guards/__init__.py
"""Provider call guards.

Components:
- RateLimitGuard: shrinks the budget, compacts history and backs off on rate limits
- RateLimitState: per-turn retry bookkeeping
"""

from chuk_ai_orchestrator.guards.rate_limit import RateLimitGuard, RateLimitState

__all__ = [
    "RateLimitGuard",
    "RateLimitState",
]
