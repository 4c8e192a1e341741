"""
Guarded appointment cancellation.

A CancelFlow mirrors one open "cancel appointment" dialog: a reason must be
picked from CANCELLATION_REASONS before anything is sent, only one request
is in flight at a time, and the pending flag is always cleared afterwards.
"""
import logging
from typing import Callable, List, Optional

from ..core.exceptions import BookingError, MutationError, ValidationError

logger = logging.getLogger(__name__)

CANCELLATION_REASONS = (
    "Schedule conflict",
    "Feeling better",
    "Found another doctor",
    "Transportation issues",
    "Other",
)

REASON_REQUIRED_MESSAGE = "Please select a reason for cancellation."
DEFAULT_FAILURE_MESSAGE = "Failed to cancel appointment"


class CancelFlow:
    def __init__(self, appointment_id: int, cancel: Callable[[int, str], object]):
        self.appointment_id = appointment_id
        self._cancel = cancel
        self.is_open = True
        self.pending = False
        self.error: Optional[str] = None
        self.result = None
        self._on_success: List[Callable[[object], None]] = []

    def on_success(self, callback: Callable[[object], None]):
        self._on_success.append(callback)

    def close(self):
        if not self.pending:
            self.is_open = False

    def submit(self, reason: Optional[str]):
        if not reason or reason not in CANCELLATION_REASONS:
            self.error = REASON_REQUIRED_MESSAGE
            raise ValidationError(REASON_REQUIRED_MESSAGE, field="reason")

        if self.pending:
            raise MutationError("Cancellation already in progress")

        self.pending = True
        self.error = None
        try:
            self.result = self._cancel(self.appointment_id, reason)
        except BookingError as e:
            self.error = e.message or DEFAULT_FAILURE_MESSAGE
            logger.warning(f"Cancel failed for appointment {self.appointment_id}: {self.error}")
            raise
        finally:
            self.pending = False

        self.is_open = False
        for callback in self._on_success:
            callback(self.result)
        return self.result
