"""
Scheduling and storage errors.

ValidationRejected subclasses are raised before any write and leave all
state untouched. StorageError subclasses wrap failures of the storage
round trip itself.
"""


class SchedulingError(Exception):
    """Base class for practice scheduling errors."""


class ValidationRejected(SchedulingError):
    """A write refused by a business rule. `code` is stable for API clients."""

    code = 'rejected'

    def __init__(self, message, code=None):
        super().__init__(message)
        if code is not None:
            self.code = code


class DuplicatePatientDayError(ValidationRejected):
    code = 'patient_day_taken'


class SlotTakenError(ValidationRejected):
    code = 'slot_taken'


class EmptyRecurrenceError(ValidationRejected):
    code = 'empty_recurrence'


class InvalidWeekdayError(ValidationRejected):
    code = 'invalid_weekday'


class InvalidTimeError(ValidationRejected):
    code = 'invalid_time'


class StorageError(SchedulingError):
    """The storage layer failed or refused a read/write."""


class NotFoundError(StorageError):
    """Row not found or not permitted for the current account."""


class StoreLoadError(StorageError):
    """Initial load failed and there is no previous data to fall back to."""
