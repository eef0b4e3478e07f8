"""Functions for managing users and their profiles."""

import datetime
import logging
import re

from google.api_core import exceptions
import pytz

from salah_tracker import errors
from salah_tracker import models
from salah_tracker import utils

logger = logging.getLogger(__name__)

DISPLAY_NAME_MAX_LENGTH = 50
EDITABLE_FIELDS = ("display_name", "phone_number", "photo_url", "timezone")


def validate_phone_number(phone_number):
  """Checks phone number format. Empty means "no phone number"."""
  if phone_number and not re.fullmatch(r"[+]?[0-9\s\-()]{7,20}", phone_number):
    return "Invalid phone number format."
  return None


def validate_display_name(display_name):
  if len(display_name) > DISPLAY_NAME_MAX_LENGTH:
    return (
        f"Display name cannot exceed {DISPLAY_NAME_MAX_LENGTH} characters."
    )
  return None


def validate_timezone(timezone):
  if timezone not in pytz.all_timezones_set:
    return f"Unknown timezone: {timezone}"
  return None


_VALIDATORS = {
    "display_name": validate_display_name,
    "phone_number": validate_phone_number,
    "timezone": validate_timezone,
}


def get_user_profile(db, user_id):
  """Returns the stored profile, with empty defaults for missing fields."""
  try:
    doc = utils.user_doc_ref(db, user_id).get()
  except exceptions.GoogleAPIError as e:
    logger.error("Error fetching profile for user %s: %s", user_id, e)
    raise errors.StorageUnavailable("Could not load profile details.") from e
  return models.UserProfile.from_dict(
      user_id, doc.to_dict() if doc.exists else None
  )


def update_user_profile(db, user_id, updates):
  """Merges the given profile fields into users/{uid}.

  Only editable fields are accepted, and fields not present in `updates`
  are left untouched.
  """
  unknown = set(updates) - set(EDITABLE_FIELDS)
  if unknown:
    raise errors.ValidationError(
        f"Cannot update fields: {', '.join(sorted(unknown))}"
    )
  cleaned = {}
  for field, value in updates.items():
    if value is None:
      value = ""
    if not isinstance(value, str):
      raise errors.ValidationError(f"{field} must be a string.")
    value = value.strip()
    validator = _VALIDATORS.get(field)
    error_message = validator(value) if validator and value else None
    if error_message:
      raise errors.ValidationError(error_message)
    cleaned[field] = value

  if cleaned:
    try:
      utils.user_doc_ref(db, user_id).set(cleaned, merge=True)
    except exceptions.GoogleAPIError as e:
      logger.error("Error updating profile for user %s: %s", user_id, e)
      raise errors.StorageUnavailable("Profile update failed.") from e
    logger.info(
        "Updated profile fields %s for user %s", sorted(cleaned), user_id
    )
  return get_user_profile(db, user_id)


def set_profile_image(db, user_id, photo_url, photo_path):
  """Records (or clears, with empty strings) the user's uploaded picture."""
  try:
    utils.user_doc_ref(db, user_id).set(
        {"photo_url": photo_url, "photo_path": photo_path}, merge=True
    )
  except exceptions.GoogleAPIError as e:
    logger.error("Error saving profile image for user %s: %s", user_id, e)
    raise errors.StorageUnavailable("Profile update failed.") from e


def create_or_update_user(db, claims):
  """Creates or updates users/{uid} from verified Firebase token claims."""
  user_id = claims["uid"]
  user_ref = utils.user_doc_ref(db, user_id)
  try:
    current_doc = user_ref.get()
    current = current_doc.to_dict() if current_doc.exists else {}
    user_data = {
        "email": (claims.get("email") or "").lower(),
        "last_login": datetime.datetime.now(datetime.timezone.utc),
    }
    # The provider's name and picture only seed an empty profile; edits made
    # on the profile page win afterwards.
    if not current.get("display_name") and claims.get("name"):
      user_data["display_name"] = claims["name"]
    if not current.get("photo_url") and claims.get("picture"):
      user_data["photo_url"] = claims["picture"]
    user_ref.set(user_data, merge=True)
  except exceptions.GoogleAPIError as e:
    logger.error("Error saving user %s on login: %s", user_id, e)
    raise errors.StorageUnavailable("Could not sign in right now.") from e
  return models.User.get(db, user_id)
