from .json_repair import parse_safe, repair_json
from .retry import RetryDecision, RetryPolicy, compute_backoff, schedule_retry
from .sanitize import sanitize_input

__all__ = [
    "RetryDecision",
    "RetryPolicy",
    "compute_backoff",
    "parse_safe",
    "repair_json",
    "sanitize_input",
    "schedule_retry",
]
