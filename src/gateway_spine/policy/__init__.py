"""Gateway policy synthesis."""

from gateway_spine.policy.templates import (
    COUNTER_KEY,
    MIN_QUOTA_WINDOW_SECONDS,
    RATE_LIMIT_RENEWAL_SECONDS,
    PolicyClause,
    PolicyDocument,
    build_policy,
)

__all__ = [
    "COUNTER_KEY",
    "MIN_QUOTA_WINDOW_SECONDS",
    "RATE_LIMIT_RENEWAL_SECONDS",
    "PolicyClause",
    "PolicyDocument",
    "build_policy",
]
