"""Reads application secrets, preferring the environment over Secret Manager."""

import logging
import os

from google.api_core import exceptions
from google.cloud import secretmanager

logger = logging.getLogger(__name__)


def _secret_version_name(secret_name, version):
  project = os.environ.get("GOOGLE_CLOUD_PROJECT", "salah-tracker")
  return f"projects/{project}/secrets/{secret_name}/versions/{version}"


def _get_secret(secret_name, environment_variable, version="latest"):
  """Returns the env var if set, otherwise the Secret Manager value."""
  value = os.environ.get(environment_variable)
  if value is not None:
    return value
  name = _secret_version_name(secret_name, version)
  try:
    client = secretmanager.SecretManagerServiceClient()
    payload = client.access_secret_version(name=name).payload
  except exceptions.GoogleAPIError as e:
    logger.error("Could not read secret %s: %s", secret_name, e)
    raise RuntimeError(f"Secret {secret_name} is unavailable") from e
  return payload.data.decode("utf-8")


def get_flask_secret_key():
  """Fetches the Flask SECRET_KEY for session signing."""
  return _get_secret("FLASK_SECRET_KEY", "FLASK_SECRET_KEY")


def get_gemini_api_key():
  """Fetches the Gemini API key used for verse suggestions."""
  return _get_secret("GEMINI_API_KEY", "GEMINI_API_KEY")
