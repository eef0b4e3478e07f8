"""Service for suggesting Quran verses with the Gemini API."""

import functools
import logging
import re

import requests

from salah_tracker import errors
from salah_tracker import secrets_fetcher

logger = logging.getLogger(__name__)

GEMINI_MODEL = "gemini-2.0-flash"
GEMINI_URL = (
    "https://generativelanguage.googleapis.com/v1beta/models/"
    f"{GEMINI_MODEL}:generateContent"
)
CHALLENGE_MAX_LENGTH = 500

PROMPT_TEMPLATE = (
    "You are an AI assistant specializing in providing guidance from the"
    " Quran.\n\n"
    "A user is facing the following challenge: {challenge}.\n\n"
    "Suggest a relevant verse from the Quran that offers guidance or comfort"
    " for this challenge.\n"
    "Also, provide a brief explanation of how the verse relates to the"
    " user's challenge. The verse explanation MUST be in terms that are"
    " understandable to an average person with no knowledge of Islam.\n\n"
    "Format your response as follows:\n\n"
    "Suggested Verse: [The suggested verse from the Quran]\n"
    "Verse Explanation: [A brief explanation of how the verse relates to the"
    " user's challenge]"
)

_REPLY_RE = re.compile(
    r"Suggested Verse:\s*(?P<verse>.+?)\s*Verse Explanation:\s*"
    r"(?P<explanation>.+)",
    re.DOTALL,
)


def parse_suggestion(text):
  """Splits a model reply into (verse, explanation)."""
  match = _REPLY_RE.search(text or "")
  if not match:
    raise errors.VerseSuggestionError("Unexpected reply format.")
  verse = match.group("verse").strip()
  explanation = match.group("explanation").strip()
  if not verse or not explanation:
    raise errors.VerseSuggestionError("Unexpected reply format.")
  return verse, explanation


@functools.lru_cache(maxsize=128)
def _suggest_verse_cached(challenge: str) -> tuple[str, str]:
  api_key = secrets_fetcher.get_gemini_api_key()
  payload = {
      "contents": [
          {"parts": [{"text": PROMPT_TEMPLATE.format(challenge=challenge)}]}
      ]
  }
  try:
    response = requests.post(
        GEMINI_URL,
        params={"key": api_key},
        json=payload,
        timeout=30,
    )
    response.raise_for_status()
    data = response.json()
  except requests.exceptions.RequestException as e:
    logger.error("Error calling Gemini API: %s", e)
    raise errors.VerseSuggestionError(
        "Could not reach the verse suggestion service."
    ) from e
  except ValueError as e:
    logger.error("Invalid JSON from Gemini API: %s", e)
    raise errors.VerseSuggestionError("Invalid reply from service.") from e

  try:
    text = data["candidates"][0]["content"]["parts"][0]["text"]
  except (KeyError, IndexError, TypeError) as e:
    logger.error("Unexpected Gemini API response: %s", data)
    raise errors.VerseSuggestionError("Invalid reply from service.") from e
  return parse_suggestion(text)


def suggest_verse(challenge):
  """Suggests a verse and a plain-language explanation for a challenge."""
  challenge = (challenge or "").strip()
  if not challenge:
    raise errors.ValidationError("Please describe your challenge.")
  if len(challenge) > CHALLENGE_MAX_LENGTH:
    raise errors.ValidationError(
        f"Challenge cannot exceed {CHALLENGE_MAX_LENGTH} characters."
    )
  verse, explanation = _suggest_verse_cached(challenge)
  return {"suggested_verse": verse, "verse_explanation": explanation}
