"""Functions for storing profile images in Firebase Storage."""

import logging

from google.api_core import exceptions
from werkzeug.utils import secure_filename

from salah_tracker import errors

logger = logging.getLogger(__name__)

PROFILE_IMAGES_PREFIX = "profileImages"
MAX_IMAGE_BYTES = 5 * 1024 * 1024


def profile_image_path(user_id, file_name):
  """Returns profileImages/{uid}/{file name}, with the name sanitized."""
  safe_name = secure_filename(file_name or "")
  if not safe_name:
    raise errors.ValidationError("Missing image file name.")
  return f"{PROFILE_IMAGES_PREFIX}/{user_id}/{safe_name}"


def upload_profile_image(bucket, user_id, file_storage):
  """Uploads a profile image and returns its public URL.

  Args:
      bucket: A google.cloud.storage Bucket, as returned by
        firebase_admin.storage.bucket().
      user_id: Owner of the image.
      file_storage: The uploaded werkzeug FileStorage.

  Returns:
      The publicly resolvable URL of the stored image.
  """
  path = profile_image_path(user_id, file_storage.filename)
  content_type = file_storage.mimetype or ""
  if not content_type.startswith("image/"):
    raise errors.ValidationError("Profile picture must be an image.")
  data = file_storage.read()
  if len(data) > MAX_IMAGE_BYTES:
    raise errors.ValidationError("Profile picture cannot exceed 5 MB.")

  try:
    blob = bucket.blob(path)
    blob.upload_from_string(data, content_type=content_type)
    blob.make_public()
  except exceptions.GoogleAPIError as e:
    logger.error("Error uploading profile image %s: %s", path, e)
    raise errors.StorageUnavailable(
        "Image upload failed. Please try again."
    ) from e
  logger.info("Uploaded profile image %s", path)
  return blob.public_url


def delete_profile_image_by_path(bucket, path):
  """Deletes a stored image. A missing object is not an error."""
  try:
    bucket.blob(path).delete()
  except exceptions.NotFound:
    logger.warning("File to delete not found in storage: %s", path)
  except exceptions.GoogleAPIError as e:
    logger.error("Error deleting profile image %s: %s", path, e)
    raise errors.StorageUnavailable("Could not delete image.") from e
