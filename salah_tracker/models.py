"""Data models for the application."""

from google.api_core import exceptions
import flask_login

from salah_tracker import errors
from salah_tracker import utils

SCHEMA_VERSION = 2


class PrayerEntry:
  """Status of a single prayer on a single day."""

  def __init__(self, status=utils.NOT_MARKED, timestamp=None):
    self.status = status
    # Only a prayed entry carries a completion time.
    self.timestamp = timestamp if status == utils.PRAYED else None

  def to_dict(self):
    return {"status": self.status, "timestamp": self.timestamp}

  def to_json(self):
    return {
        "status": self.status,
        "timestamp": self.timestamp.isoformat() if self.timestamp else None,
    }

  def __eq__(self, other):
    if not isinstance(other, PrayerEntry):
      return NotImplemented
    return self.status == other.status and self.timestamp == other.timestamp

  def __repr__(self):
    return f"PrayerEntry({self.status!r}, {self.timestamp!r})"


class PrayerRecord:
  """The five prayer entries stored for one user on one date."""

  def __init__(self, date, entries=None):
    self.date = date
    entries = entries or {}
    self.entries = {
        name: entries.get(name) or PrayerEntry() for name in utils.PRAYER_NAMES
    }

  @classmethod
  def empty(cls, date):
    """Returns a record with every prayer not yet marked."""
    return cls(date)

  def to_dict(self):
    """Returns the Firestore document shape."""
    data = {"date": self.date, "schema_version": SCHEMA_VERSION}
    for name, entry in self.entries.items():
      data[name] = entry.to_dict()
    return data

  def to_json(self):
    return {
        "date": self.date,
        "prayers": [
            {"name": name, **entry.to_json()}
            for name, entry in self.entries.items()
        ],
    }

  def count(self, status, prayer_filter="all"):
    """Counts entries in `status`, optionally restricted to one prayer."""
    return sum(
        1
        for name, entry in self.entries.items()
        if (prayer_filter == "all" or prayer_filter == name)
        and entry.status == status
    )

  def __eq__(self, other):
    if not isinstance(other, PrayerRecord):
      return NotImplemented
    return self.date == other.date and self.entries == other.entries

  def __repr__(self):
    return f"PrayerRecord({self.date!r}, {self.entries!r})"


class UserProfile:
  """Editable profile fields stored on users/{uid}."""

  FIELDS = (
      "display_name",
      "email",
      "phone_number",
      "photo_url",
      "photo_path",
      "timezone",
  )

  def __init__(
      self,
      user_id,
      display_name="",
      email="",
      phone_number="",
      photo_url="",
      photo_path="",
      timezone=None,
  ):
    self.user_id = user_id
    self.display_name = display_name or ""
    self.email = email or ""
    self.phone_number = phone_number or ""
    self.photo_url = photo_url or ""
    self.photo_path = photo_path or ""
    self.timezone = timezone or utils.DEFAULT_TIMEZONE

  @classmethod
  def from_dict(cls, user_id, data):
    data = data or {}
    return cls(
        user_id,
        display_name=data.get("display_name"),
        email=data.get("email"),
        phone_number=data.get("phone_number"),
        photo_url=data.get("photo_url"),
        photo_path=data.get("photo_path"),
        timezone=data.get("timezone"),
    )

  def to_dict(self):
    return {field: getattr(self, field) for field in self.FIELDS}

  @property
  def greeting_name(self):
    """Name used in the checklist greeting."""
    name = self.display_name.strip()
    if not name or name.lower() == "user":
      return "User"
    return name


class User(flask_login.UserMixin):
  """User class for Flask-Login."""

  def __init__(self, user_id, profile=None):
    self.id = user_id
    self.profile = profile or UserProfile(user_id)

  @property
  def timezone(self):
    return self.profile.timezone

  @staticmethod
  def get(db, user_id):
    """Gets a user from Firestore by user_id (the Firebase uid)."""
    try:
      user_doc = utils.user_doc_ref(db, user_id).get()
    except exceptions.GoogleAPIError as e:
      raise errors.StorageUnavailable("Could not load user.") from e
    if user_doc.exists:
      return User(user_id, UserProfile.from_dict(user_id, user_doc.to_dict()))
    return None
