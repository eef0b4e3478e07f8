"""Functions for reading and updating the daily prayer checklist."""

import datetime
import logging

from google.api_core import exceptions
from google.cloud import firestore

from salah_tracker import errors
from salah_tracker import models
from salah_tracker import utils

logger = logging.getLogger(__name__)


def _to_datetime(value):
  """Converts a stored timestamp representation into a datetime."""
  if value is None:
    return None
  if isinstance(value, datetime.datetime):
    # Firestore returns DatetimeWithNanoseconds, a datetime subclass.
    if value.tzinfo is None:
      return value.replace(tzinfo=datetime.timezone.utc)
    return value
  if isinstance(value, (int, float)) and not isinstance(value, bool):
    # Epoch seconds.
    return datetime.datetime.fromtimestamp(value, tz=datetime.timezone.utc)
  if isinstance(value, str):
    try:
      parsed = datetime.datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
      return None
    if parsed.tzinfo is None:
      parsed = parsed.replace(tzinfo=datetime.timezone.utc)
    return parsed
  if isinstance(value, dict) and "seconds" in value:
    # Timestamps serialized by the web SDK: {"seconds": ..., "nanoseconds": ...}
    seconds = value.get("seconds") or 0
    micros = (value.get("nanoseconds") or 0) // 1000
    return datetime.datetime.fromtimestamp(
        seconds, tz=datetime.timezone.utc
    ) + datetime.timedelta(microseconds=micros)
  return None


def _decode_entry(raw):
  """Decodes one stored prayer entry into the three-state schema.

  Version 2 entries carry a `status` string. Version 1 entries carry a
  boolean `completed`, where False meant "not yet checked" rather than
  "missed", so it maps to NOT_MARKED.
  """
  if not isinstance(raw, dict):
    return models.PrayerEntry()
  status = raw.get("status")
  if status not in utils.STATUSES:
    if "completed" in raw:
      status = utils.PRAYED if raw.get("completed") else utils.NOT_MARKED
    else:
      status = utils.NOT_MARKED
  timestamp = None
  if status == utils.PRAYED:
    timestamp = _to_datetime(raw.get("timestamp"))
  return models.PrayerEntry(status, timestamp)


def decode_prayer_record(date_str, raw):
  """Builds a complete PrayerRecord from whatever shape is stored.

  Missing prayers, unknown status values and legacy boolean entries are all
  normalized, so the result always has exactly five valid entries.
  """
  raw = raw or {}
  entries = {name: _decode_entry(raw.get(name)) for name in utils.PRAYER_NAMES}
  return models.PrayerRecord(raw.get("date") or date_str, entries)


def fetch_daily_prayers(db, user_id, date_str):
  """Returns the prayer record for a day, creating it if it does not exist."""
  utils.validate_date_key(date_str)
  doc_ref = utils.prayer_doc_ref(db, user_id, date_str)
  try:
    snapshot = doc_ref.get()
    if snapshot.exists:
      return decode_prayer_record(date_str, snapshot.to_dict())
    record = models.PrayerRecord.empty(date_str)
    doc_ref.set(record.to_dict())
    return record
  except exceptions.GoogleAPIError as e:
    logger.error(
        "Error fetching prayers for user %s on %s: %s", user_id, date_str, e
    )
    raise errors.StorageUnavailable("Could not load salah data.") from e


def set_prayer_status(db, user_id, date_str, prayer_name, status):
  """Sets the status of one prayer on one day.

  A prayed entry gets a server timestamp; every other status clears it.
  When the day has no document yet the full default record is written, so
  the other four prayers exist as NOT_MARKED. Otherwise only the targeted
  prayer's two fields are updated.
  """
  utils.validate_date_key(date_str)
  utils.validate_prayer_name(prayer_name)
  utils.validate_status(status)
  timestamp = firestore.SERVER_TIMESTAMP if status == utils.PRAYED else None
  doc_ref = utils.prayer_doc_ref(db, user_id, date_str)
  try:
    snapshot = doc_ref.get()
    if not snapshot.exists:
      record = models.PrayerRecord.empty(date_str)
      record.entries[prayer_name] = models.PrayerEntry(status, timestamp)
      doc_ref.set(record.to_dict())
    else:
      doc_ref.update({
          f"{prayer_name}.status": status,
          f"{prayer_name}.timestamp": timestamp,
      })
  except exceptions.GoogleAPIError as e:
    logger.error(
        "Error updating %s for user %s on %s: %s",
        prayer_name,
        user_id,
        date_str,
        e,
    )
    raise errors.StorageUnavailable(f"Failed to update {prayer_name}.") from e
  logger.info(
      "Set %s to %s for user %s on %s", prayer_name, status, user_id, date_str
  )


def check_transition(prayer_name, current, new, allow_unmark=True):
  """Rejects returning a marked prayer to NOT_MARKED unless allowed."""
  utils.validate_status(current)
  utils.validate_status(new)
  if (
      not allow_unmark
      and new == utils.NOT_MARKED
      and current != utils.NOT_MARKED
  ):
    raise errors.IllegalTransition(prayer_name, current, new)
