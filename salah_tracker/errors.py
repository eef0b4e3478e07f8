"""Exceptions raised by the Salah Tracker services."""


class SalahTrackerError(Exception):
  """Base class for all application errors."""


class StorageUnavailable(SalahTrackerError):
  """The document store or object storage could not be reached.

  Always retryable from the user's point of view; the caller must not assume
  any part of the failed operation was applied.
  """


class ValidationError(SalahTrackerError):
  """A caller passed an unrecognised prayer name, status, or field value."""


class IllegalTransition(SalahTrackerError):
  """A status change was rejected by the transition guard."""

  def __init__(self, prayer_name, current, new):
    super().__init__(
        f"{prayer_name} cannot move from {current} back to {new}."
    )
    self.prayer_name = prayer_name
    self.current = current
    self.new = new


class VerseSuggestionError(SalahTrackerError):
  """The verse suggestion backend failed or returned an unusable reply."""
