"""
Caller-supplied cancellation / deadline signal for storage calls.

Checked before the first statement, between write chunks and right
before commit. Nothing is committed once the token has fired.
"""

import threading
import time
from typing import Optional

from ..errors import CancelledError


class CancellationToken:
    """
    Example:
        token = CancellationToken(timeout_seconds=5)
        repository.upsert_many(entries, cancel=token)
    """

    def __init__(self, timeout_seconds: Optional[float] = None):
        self._event = threading.Event()
        self._deadline = (
            time.monotonic() + timeout_seconds if timeout_seconds is not None else None
        )

    def cancel(self) -> None:
        self._event.set()

    @property
    def deadline_passed(self) -> bool:
        return self._deadline is not None and time.monotonic() >= self._deadline

    @property
    def cancelled(self) -> bool:
        return self._event.is_set() or self.deadline_passed

    def remaining(self) -> Optional[float]:
        """Seconds left before the deadline, None when there is no deadline"""
        if self._deadline is None:
            return None
        return max(0.0, self._deadline - time.monotonic())

    def raise_if_cancelled(self, operation: str = "operation") -> None:
        if self._event.is_set():
            raise CancelledError(f"{operation} cancelled by caller")
        if self.deadline_passed:
            raise CancelledError(f"{operation} exceeded its deadline")


def check_cancelled(token: Optional[CancellationToken], operation: str) -> None:
    """No-op when the caller did not pass a token"""
    if token is not None:
        token.raise_if_cancelled(operation)
