"""Functions for serving devotional content from Firestore."""

import logging
import random

from google.api_core import exceptions

from salah_tracker import errors

logger = logging.getLogger(__name__)

INSPIRATIONS_COLLECTION = "daily_inspirations"
SALAH_TIPS_COLLECTION = "salahTips"

FALLBACK_INSPIRATION = {
    "id": "fallback",
    "type": "quote",
    "content": (
        "The best of deeds are those that are consistent, even if they are"
        " few."
    ),
    "source": "Prophet Muhammad (peace be upon him)",
}

SEED_INSPIRATIONS = [
    {
        "type": "verse",
        "content": "Indeed, with hardship [will be] ease.",
        "source": "Quran 94:6",
    },
    {
        "type": "quote",
        "content": (
            "The world is a prison for the believer and a paradise for the"
            " disbeliever."
        ),
        "source": "Hadith Muslim",
    },
    {
        "type": "verse",
        "content": (
            "And seek help through patience and prayer, and indeed, it is"
            " difficult except for the humbly submissive [to Allah]."
        ),
        "source": "Quran 2:45",
    },
    {
        "type": "quote",
        "content": "Do not lose hope, nor be sad.",
        "source": "Quran 3:139 (paraphrased)",
    },
    {
        "type": "verse",
        "content": (
            "So remember Me; I will remember you. And be grateful to Me and"
            " do not deny Me."
        ),
        "source": "Quran 2:152",
    },
]


def _seed_doc_id(content):
  return content[:20].replace(" ", "_")


def seed_daily_inspirations(db):
  """Writes the built-in inspirations into an empty collection."""
  batch = db.batch()
  collection_ref = db.collection(INSPIRATIONS_COLLECTION)
  for inspiration in SEED_INSPIRATIONS:
    doc_ref = collection_ref.document(_seed_doc_id(inspiration["content"]))
    batch.set(doc_ref, inspiration)
  batch.commit()
  logger.info("Seeded %d daily inspirations.", len(SEED_INSPIRATIONS))


def _stream_inspirations(db):
  inspirations = []
  for doc in db.collection(INSPIRATIONS_COLLECTION).stream():
    data = doc.to_dict()
    data["id"] = doc.id
    inspirations.append(data)
  return inspirations


def fetch_daily_inspiration(db):
  """Returns a random inspiration, seeding the collection on first use.

  Never raises for backend failures: a built-in quote is returned instead.
  """
  try:
    inspirations = _stream_inspirations(db)
    if not inspirations:
      seed_daily_inspirations(db)
      inspirations = _stream_inspirations(db)
  except exceptions.GoogleAPIError as e:
    logger.error("Error fetching daily inspiration: %s", e)
    return dict(FALLBACK_INSPIRATION)
  if not inspirations:
    return dict(FALLBACK_INSPIRATION)
  return random.choice(inspirations)


def get_salah_tips(db):
  """Returns all Salah improvement tips ordered by title."""
  try:
    docs = db.collection(SALAH_TIPS_COLLECTION).order_by("title").stream()
    tips = []
    for doc in docs:
      tip = doc.to_dict()
      tip["id"] = doc.id
      tips.append(tip)
  except exceptions.GoogleAPIError as e:
    logger.error("Error fetching Salah tips: %s", e)
    raise errors.StorageUnavailable("Could not load tips.") from e
  return tips
