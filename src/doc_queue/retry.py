"""
Retry accounting for failed processing attempts.
"""

from enum import Enum


class RetryDecision(str, Enum):
    RETRY = "retry"
    TERMINAL = "terminal"


def decide(attempts: int, retry_limit: int) -> RetryDecision:
    """
    Decide whether a failed attempt may be retried.

    ``attempts`` counts the attempt that just failed, so with a limit of N a
    record is attempted at most N + 1 times.

    Args:
        attempts: Attempts started so far, including the failed one
        retry_limit: Number of retries allowed after the first attempt

    Returns:
        RETRY while attempts <= retry_limit, TERMINAL afterwards
    """
    if attempts <= retry_limit:
        return RetryDecision.RETRY
    return RetryDecision.TERMINAL


class RetryAccountant:
    """Applies ``decide`` against a fixed retry limit."""

    def __init__(self, retry_limit: int):
        self.retry_limit = retry_limit

    def decide(self, attempts: int) -> RetryDecision:
        return decide(attempts, self.retry_limit)
