"""Aggregates stored prayer records into chart-ready series using Pandas."""

import logging

from google.api_core import exceptions
import pandas as pd

from salah_tracker import errors
from salah_tracker import utils
from salah_tracker.services import prayers

logger = logging.getLogger(__name__)

PERIODS = ("daily", "weekly", "monthly")

DAILY_DAYS = 7
WEEKS = 4
MONTHLY_DAYS = 30


def _validate(period, prayer_filter):
  if period not in PERIODS:
    raise errors.ValidationError(f"Unknown stats period: {period!r}")
  if prayer_filter != "all":
    utils.validate_prayer_name(prayer_filter)


def load_status_frame(db, user_id, date_strs):
  """Reads the given days and returns one row per (date, prayer).

  All documents are requested in a single batched read. A failure anywhere
  aborts the whole load. Days without a document are reported as NOT_MARKED
  and are not created.

  Args:
      db: Firestore client.
      user_id: Owner of the prayer records.
      date_strs: Date keys to load, oldest first.

  Returns:
      A DataFrame with columns `date`, `prayer` and `status`.
  """
  doc_refs = [utils.prayer_doc_ref(db, user_id, d) for d in date_strs]
  try:
    snapshots = list(db.get_all(doc_refs))
  except exceptions.GoogleAPIError as e:
    logger.error("Error loading prayer stats for user %s: %s", user_id, e)
    raise errors.StorageUnavailable(
        "Could not load prayer statistics."
    ) from e

  records = {}
  for snap in snapshots:
    if snap.exists:
      records[snap.id] = prayers.decode_prayer_record(snap.id, snap.to_dict())

  rows = []
  for date_str in date_strs:
    record = records.get(date_str)
    for name in utils.PRAYER_NAMES:
      status = record.entries[name].status if record else utils.NOT_MARKED
      rows.append({"date": date_str, "prayer": name, "status": status})
  return pd.DataFrame(rows, columns=["date", "prayer", "status"])


def _apply_filter(df, prayer_filter):
  if prayer_filter == "all":
    return df
  return df[df["prayer"] == prayer_filter]


def _daily_stats(df, date_strs):
  prayed = df[df["status"] == utils.PRAYED].groupby("date").size()
  return [{"date": d, "count": int(prayed.get(d, 0))} for d in date_strs]


def _weekly_stats(df, date_strs):
  week_of_date = {d: i // 7 for i, d in enumerate(date_strs)}
  prayed = df[df["status"] == utils.PRAYED]
  counts = prayed["date"].map(week_of_date).value_counts()
  return [
      {"week": f"Week {week + 1}", "count": int(counts.get(week, 0))}
      for week in range(WEEKS)
  ]


def _monthly_stats(df):
  counts = df["status"].value_counts()
  buckets = []
  for status in (utils.PRAYED, utils.NOT_PRAYED, utils.NOT_MARKED):
    buckets.append({
        "name": utils.STATUS_LABELS[status],
        "count": int(counts.get(status, 0)),
    })
  return buckets


def get_prayer_stats(db, user_id, period, prayer_filter="all", today=None):
  """Computes prayer statistics for charting.

  Every call re-reads the underlying records; nothing is cached.

  Args:
      db: Firestore client.
      user_id: Owner of the prayer records.
      period: "daily" (7 day buckets), "weekly" (4 seven-day buckets) or
        "monthly" (Prayed / Not Prayed / Not Marked over 30 days).
      prayer_filter: "all" or a single prayer name.
      today: The date the window ends on. Defaults to today in the default
        timezone.

  Returns:
      A list of bucket dicts, oldest first for the time series.
  """
  _validate(period, prayer_filter)
  if today is None:
    today = utils.today_date()

  if period == "daily":
    date_strs = utils.date_window(today, DAILY_DAYS)
  elif period == "weekly":
    date_strs = utils.date_window(today, WEEKS * 7)
  else:
    date_strs = utils.date_window(today, MONTHLY_DAYS)

  df = _apply_filter(load_status_frame(db, user_id, date_strs), prayer_filter)

  if period == "daily":
    return _daily_stats(df, date_strs)
  if period == "weekly":
    return _weekly_stats(df, date_strs)
  return _monthly_stats(df)
