import io
import unittest
from unittest import mock

from salah_tracker import main
from salah_tracker import utils
from tests import fakes

TOKENS = {
    "good-token": {
        "uid": "user-1",
        "email": "Amina@Example.com",
        "name": "Amina",
    },
    "other-token": {"uid": "user-2", "email": "bilal@example.com"},
}


def fake_verify_id_token(token):
  if token not in TOKENS:
    raise ValueError("Invalid token")
  return TOKENS[token]


class SalahTrackerAppTestCase(unittest.TestCase):

  config = {"SECRET_KEY": "test-secret", "TESTING": True}

  def setUp(self):
    self.db = fakes.FakeFirestoreClient()
    self.bucket = fakes.FakeBucket()
    self.app = main.create_app(
        db=self.db,
        bucket=self.bucket,
        verify_id_token=fake_verify_id_token,
        config=self.config,
    )
    self.client = self.app.test_client()

  def login(self, token="good-token"):
    return self.client.post("/login", json={"id_token": token})

  def test_login_logout(self):
    rv = self.login()
    self.assertEqual(rv.status_code, 200)
    self.assertEqual(rv.get_json(), {"success": True, "user_id": "user-1"})
    self.assertEqual(
        self.db.docs[("users", "user-1")]["email"], "amina@example.com"
    )
    rv = self.client.get("/logout")
    self.assertEqual(rv.status_code, 302)
    rv = self.client.get("/api/prayers/2024-01-01")
    self.assertEqual(rv.status_code, 401)

  def test_login_with_bad_token(self):
    rv = self.login("forged")
    self.assertEqual(rv.status_code, 401)
    self.assertFalse(rv.get_json()["success"])
    rv = self.client.post("/login", json={})
    self.assertEqual(rv.status_code, 400)

  def test_api_requires_login(self):
    for path in ("/api/prayers/today", "/api/stats", "/api/profile"):
      self.assertEqual(self.client.get(path).status_code, 401, path)

  def test_checklist_round_trip(self):
    self.login()
    rv = self.client.get("/api/prayers/2024-01-01")
    self.assertEqual(rv.status_code, 200)
    data = rv.get_json()
    self.assertEqual(data["date"], "2024-01-01")
    self.assertEqual(
        [p["name"] for p in data["prayers"]], list(utils.PRAYER_NAMES)
    )
    self.assertTrue(
        all(p["status"] == utils.NOT_MARKED for p in data["prayers"])
    )

    rv = self.client.post(
        "/api/prayers/2024-01-01",
        json={"prayer": "Fajr", "status": utils.PRAYED},
    )
    self.assertEqual(rv.status_code, 200)
    self.assertTrue(rv.get_json()["success"])

    data = self.client.get("/api/prayers/2024-01-01").get_json()
    fajr = data["prayers"][0]
    self.assertEqual(fajr["status"], utils.PRAYED)
    self.assertEqual(fajr["timestamp"], fakes.FIXED_NOW.isoformat())

  def test_records_are_per_user(self):
    self.login()
    self.client.post(
        "/api/prayers/2024-01-01",
        json={"prayer": "Asr", "status": utils.PRAYED},
    )
    self.login("other-token")
    data = self.client.get("/api/prayers/2024-01-01").get_json()
    self.assertEqual(data["prayers"][2]["status"], utils.NOT_MARKED)

  def test_today_uses_user_timezone(self):
    self.login()
    self.client.post("/api/profile", json={"timezone": "Asia/Karachi"})
    rv = self.client.get("/api/prayers/today")
    self.assertEqual(
        rv.get_json()["date"], utils.today_date_string("Asia/Karachi")
    )

  def test_invalid_checklist_requests(self):
    self.login()
    rv = self.client.post(
        "/api/prayers/2024-01-01", json={"prayer": "Witr", "status": "prayed"}
    )
    self.assertEqual(rv.status_code, 400)
    rv = self.client.post(
        "/api/prayers/2024-01-01", json={"prayer": "Fajr", "status": "done"}
    )
    self.assertEqual(rv.status_code, 400)
    rv = self.client.get("/api/prayers/yesterday")
    self.assertEqual(rv.status_code, 400)

  def test_storage_failure_is_retryable(self):
    self.login()
    self.db.fail(segment="prayers")
    rv = self.client.post(
        "/api/prayers/2024-01-01",
        json={"prayer": "Fajr", "status": utils.PRAYED},
    )
    self.assertEqual(rv.status_code, 503)
    data = rv.get_json()
    self.assertFalse(data["success"])
    self.assertTrue(data["retryable"])
    rv = self.client.get("/api/stats?period=monthly")
    self.assertEqual(rv.status_code, 503)

  def test_user_lookup_failure_is_retryable(self):
    self.login()
    self.db.fail()
    rv = self.client.get("/api/prayers/2024-01-01")
    self.assertEqual(rv.status_code, 503)
    self.assertTrue(rv.get_json()["retryable"])
    self.db.recover()
    rv = self.client.get("/api/prayers/2024-01-01")
    self.assertEqual(rv.status_code, 200)

  def test_stats(self):
    self.login()
    today = utils.today_date_string()
    self.client.post(
        f"/api/prayers/{today}", json={"prayer": "Isha", "status": "prayed"}
    )
    daily = self.client.get("/api/stats?period=daily").get_json()
    monthly = self.client.get(
        "/api/stats?period=monthly&filter=Isha"
    ).get_json()
    self.assertEqual(daily["period"], "daily")
    self.assertEqual(daily["data"][-1], {"date": today, "count": 1})
    self.assertEqual(
        monthly["data"],
        [
            {"name": "Prayed", "count": 1},
            {"name": "Not Prayed", "count": 0},
            {"name": "Not Marked", "count": 29},
        ],
    )
    weekly = self.client.get("/api/stats?period=weekly").get_json()
    self.assertEqual(len(weekly["data"]), 4)
    rv = self.client.get("/api/stats?period=hourly")
    self.assertEqual(rv.status_code, 400)

  def test_profile_update(self):
    self.login()
    rv = self.client.post(
        "/api/profile",
        json={"display_name": "Amina K.", "phone_number": "555-123-4567"},
    )
    self.assertEqual(rv.status_code, 200)
    profile = self.client.get("/api/profile").get_json()
    self.assertEqual(profile["display_name"], "Amina K.")
    self.assertEqual(profile["phone_number"], "555-123-4567")
    self.assertEqual(profile["email"], "amina@example.com")

    rv = self.client.post("/api/profile", json={"phone_number": "nope"})
    self.assertEqual(rv.status_code, 400)
    rv = self.client.post("/api/profile", json=["not", "a", "dict"])
    self.assertEqual(rv.status_code, 400)

  def test_profile_image_upload_replaces_previous(self):
    self.login()
    rv = self.client.post(
        "/api/profile/image",
        data={"image": (io.BytesIO(b"one"), "first.png", "image/png")},
        content_type="multipart/form-data",
    )
    self.assertEqual(rv.status_code, 200)
    rv = self.client.post(
        "/api/profile/image",
        data={"image": (io.BytesIO(b"two"), "second.png", "image/png")},
        content_type="multipart/form-data",
    )
    self.assertEqual(rv.status_code, 200)
    self.assertEqual(
        list(self.bucket.blobs), ["profileImages/user-1/second.png"]
    )
    profile = self.client.get("/api/profile").get_json()
    self.assertEqual(profile["photo_url"], rv.get_json()["photo_url"])

    rv = self.client.delete("/api/profile/image")
    self.assertEqual(rv.status_code, 200)
    self.assertEqual(self.bucket.blobs, {})
    profile = self.client.get("/api/profile").get_json()
    self.assertEqual(profile["photo_url"], "")
    self.assertEqual(profile["photo_path"], "")

  def test_profile_image_requires_file(self):
    self.login()
    rv = self.client.post(
        "/api/profile/image", data={}, content_type="multipart/form-data"
    )
    self.assertEqual(rv.status_code, 400)

  def test_index_and_content(self):
    rv = self.client.get("/")
    self.assertEqual(rv.status_code, 200)
    self.assertIn(b"Sign in to track your salah.", rv.data)
    self.login()
    rv = self.client.get("/")
    self.assertIn(b"Assalam alaikum, Amina", rv.data)

    self.assertIn("content", self.client.get("/api/inspiration").get_json())
    self.assertEqual(self.client.get("/api/salah_tips").get_json(), [])

  @mock.patch.object(main.verse_suggestion, "suggest_verse")
  def test_verse_suggestion(self, mock_suggest):
    mock_suggest.return_value = {
        "suggested_verse": "V",
        "verse_explanation": "E",
    }
    self.login()
    rv = self.client.post(
        "/api/verse_suggestion", json={"challenge": "impatience"}
    )
    self.assertEqual(rv.status_code, 200)
    self.assertEqual(rv.get_json()["suggested_verse"], "V")
    mock_suggest.assert_called_once_with("impatience")


class NoUnmarkAppTestCase(SalahTrackerAppTestCase):
  """Runs the same suite with the no-unmark guard switched on."""

  config = {
      "SECRET_KEY": "test-secret",
      "TESTING": True,
      "ALLOW_UNMARK": False,
  }

  def test_cannot_return_to_not_marked(self):
    self.login()
    self.client.post(
        "/api/prayers/2024-01-01",
        json={"prayer": "Dhuhr", "status": utils.NOT_PRAYED},
    )
    rv = self.client.post(
        "/api/prayers/2024-01-01",
        json={"prayer": "Dhuhr", "status": utils.NOT_MARKED},
    )
    self.assertEqual(rv.status_code, 409)
    data = self.client.get("/api/prayers/2024-01-01").get_json()
    self.assertEqual(data["prayers"][1]["status"], utils.NOT_PRAYED)



class AllowUnmarkConfigTestCase(unittest.TestCase):

  def make_app(self):
    return main.create_app(
        db=fakes.FakeFirestoreClient(),
        bucket=fakes.FakeBucket(),
        verify_id_token=fake_verify_id_token,
        config={"SECRET_KEY": "test-secret", "TESTING": True},
    )

  def test_defaults_to_allowed(self):
    with mock.patch.dict(main.os.environ):
      main.os.environ.pop("ALLOW_UNMARK", None)
      self.assertTrue(self.make_app().config["ALLOW_UNMARK"])

  def test_false_values_disable_unmarking(self):
    for value in ("false", "0", "no", "OFF", " False "):
      with mock.patch.dict(main.os.environ, {"ALLOW_UNMARK": value}):
        self.assertFalse(self.make_app().config["ALLOW_UNMARK"], value)
    for value in ("true", "1", "yes"):
      with mock.patch.dict(main.os.environ, {"ALLOW_UNMARK": value}):
        self.assertTrue(self.make_app().config["ALLOW_UNMARK"], value)

if __name__ == "__main__":
  unittest.main()
