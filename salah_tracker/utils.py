"""Shared constants and helpers for the Salah Tracker."""

import datetime
import os
import re

from google.cloud import firestore
import pytz

from salah_tracker import errors

SCRIPT_DIR = os.path.dirname(os.path.abspath(__file__))

PRAYER_NAMES = ("Fajr", "Dhuhr", "Asr", "Maghrib", "Isha")

NOT_MARKED = "not_marked"
PRAYED = "prayed"
NOT_PRAYED = "not_prayed"
STATUSES = (NOT_MARKED, PRAYED, NOT_PRAYED)

STATUS_LABELS = {
    PRAYED: "Prayed",
    NOT_PRAYED: "Not Prayed",
    NOT_MARKED: "Not Marked",
}

DEFAULT_PROJECT_ID = "salah-tracker"
DEFAULT_DATABASE_ID = "(default)"
DEFAULT_TIMEZONE = "America/New_York"

USERS_COLLECTION = "users"
PRAYERS_COLLECTION = "prayers"

DATE_KEY_FORMAT = "%Y-%m-%d"
_DATE_KEY_RE = re.compile(r"^\d{4}-\d{2}-\d{2}$")


def get_db_client(project=None, database=None):
  """Initializes and returns a Firestore client."""
  project = project or os.environ.get(
      "GOOGLE_CLOUD_PROJECT", DEFAULT_PROJECT_ID
  )
  database = database or os.environ.get(
      "FIRESTORE_DATABASE", DEFAULT_DATABASE_ID
  )
  return firestore.Client(project=project, database=database)


def prayer_doc_ref(db, user_id, date_str):
  """Returns the document reference for users/{uid}/prayers/{date}."""
  return (
      db.collection(USERS_COLLECTION)
      .document(user_id)
      .collection(PRAYERS_COLLECTION)
      .document(date_str)
  )


def user_doc_ref(db, user_id):
  return db.collection(USERS_COLLECTION).document(user_id)


def get_timezone(tz_str=None):
  """Returns a pytz timezone, falling back to the default on bad input."""
  try:
    return pytz.timezone(tz_str or DEFAULT_TIMEZONE)
  except pytz.UnknownTimeZoneError:
    return pytz.timezone(DEFAULT_TIMEZONE)


def date_to_key(date: datetime.date) -> str:
  """Formats a date as a YYYY-MM-DD key."""
  return date.strftime(DATE_KEY_FORMAT)


def today_date(tz_str=None, now=None) -> datetime.date:
  """Returns the calendar date in the given timezone."""
  tz = get_timezone(tz_str)
  if now is None:
    return datetime.datetime.now(tz).date()
  return now.astimezone(tz).date()


def today_date_string(tz_str=None, now=None) -> str:
  return date_to_key(today_date(tz_str, now))


def validate_date_key(date_str):
  """Checks that a date key is shaped like YYYY-MM-DD.

  Calendar correctness is the caller's responsibility; only the shape is
  checked here.
  """
  if not isinstance(date_str, str) or not _DATE_KEY_RE.match(date_str):
    raise errors.ValidationError(f"Invalid date key: {date_str!r}")
  return date_str


def date_window(today: datetime.date, days: int) -> list[str]:
  """Returns `days` date keys ending at `today`, oldest first."""
  return [
      date_to_key(today - datetime.timedelta(days=i))
      for i in range(days - 1, -1, -1)
  ]


def validate_prayer_name(prayer_name):
  if prayer_name not in PRAYER_NAMES:
    raise errors.ValidationError(f"Unknown prayer name: {prayer_name!r}")
  return prayer_name


def validate_status(status):
  if status not in STATUSES:
    raise errors.ValidationError(f"Unknown prayer status: {status!r}")
  return status
