"""Main Flask application for the Salah Tracker."""

import functools
import logging
import os

import firebase_admin
from firebase_admin import auth as firebase_auth
from firebase_admin import exceptions as firebase_exceptions
from firebase_admin import storage as firebase_storage
import flask
import flask_login

from salah_tracker import errors
from salah_tracker import models
from salah_tracker import secrets_fetcher
from salah_tracker import utils
from salah_tracker.services import inspiration
from salah_tracker.services import prayers
from salah_tracker.services import stats
from salah_tracker.services import storage
from salah_tracker.services import users
from salah_tracker.services import verse_suggestion

TEMPLATE_DIR = os.path.join(utils.SCRIPT_DIR, "templates")
EXTENSION_KEY = "salah_tracker"
_FALSE_VALUES = ("0", "false", "no", "off")

bp = flask.Blueprint("salah", __name__)
login_manager = flask_login.LoginManager()


def _db():
  return flask.current_app.extensions[EXTENSION_KEY]["db"]


def _bucket():
  bucket = flask.current_app.extensions[EXTENSION_KEY]["bucket"]
  if bucket is None:
    raise errors.StorageUnavailable("Image storage is not configured.")
  return bucket


def _user_today():
  """Today's date key in the signed-in user's timezone."""
  tz = flask_login.current_user.timezone or flask.current_app.config.get(
      "DEFAULT_TIMEZONE"
  )
  return utils.today_date_string(tz)


def _env_flag(name, default):
  value = os.environ.get(name)
  if value is None:
    return default
  return value.strip().lower() not in _FALSE_VALUES


def _error_response(message, status_code, **extra):
  body = {"success": False, "error": message, **extra}
  return flask.jsonify(body), status_code


@login_manager.user_loader
def load_user(user_id):
  """Flask-Login user loader."""
  return models.User.get(_db(), user_id)


@bp.app_errorhandler(errors.ValidationError)
def handle_validation_error(e):
  return _error_response(str(e), 400)


@bp.app_errorhandler(errors.IllegalTransition)
def handle_illegal_transition(e):
  return _error_response(str(e), 409)


@bp.app_errorhandler(errors.StorageUnavailable)
def handle_storage_unavailable(e):
  flask.current_app.logger.error("Storage unavailable: %s", e)
  return _error_response(str(e), 503, retryable=True)


@bp.app_errorhandler(errors.VerseSuggestionError)
def handle_verse_suggestion_error(e):
  return _error_response(str(e), 502, retryable=True)


@bp.route("/")
def index_route():
  """Returns the homepage HTML."""
  greeting_name = None
  if flask_login.current_user.is_authenticated:
    greeting_name = flask_login.current_user.profile.greeting_name
    today = _user_today()
  else:
    today = utils.today_date_string(
        flask.current_app.config.get("DEFAULT_TIMEZONE")
    )
  return flask.render_template(
      "index.html",
      today=today,
      greeting_name=greeting_name,
      inspiration=inspiration.fetch_daily_inspiration(_db()),
      prayer_names=utils.PRAYER_NAMES,
  )


@bp.route("/login", methods=["POST"])
def login():
  """Signs in with a Firebase ID token issued to the browser."""
  data = flask.request.get_json(silent=True) or {}
  id_token = data.get("id_token")
  if not id_token:
    return _error_response("Missing ID token.", 400)
  verify = flask.current_app.extensions[EXTENSION_KEY]["verify_id_token"]
  try:
    claims = verify(id_token)
  except (ValueError, firebase_exceptions.FirebaseError) as e:
    flask.current_app.logger.warning("ID token verification failed: %s", e)
    return _error_response("Authentication failed.", 401)
  user = users.create_or_update_user(_db(), claims)
  flask_login.login_user(user)
  return flask.jsonify({"success": True, "user_id": user.id})


@bp.route("/logout")
@flask_login.login_required
def logout():
  """Logs out the current user."""
  flask_login.logout_user()
  return flask.redirect("/")


@bp.route("/api/prayers/today")
@flask_login.login_required
def todays_prayers_route():
  """Returns today's checklist in the user's timezone."""
  record = prayers.fetch_daily_prayers(
      _db(), flask_login.current_user.id, _user_today()
  )
  return flask.jsonify(record.to_json())


@bp.route("/api/prayers/<date_str>", methods=["GET"])
@flask_login.login_required
def get_prayers_route(date_str):
  """Returns the checklist for a date, creating it if needed."""
  record = prayers.fetch_daily_prayers(
      _db(), flask_login.current_user.id, date_str
  )
  return flask.jsonify(record.to_json())


@bp.route("/api/prayers/<date_str>", methods=["POST"])
@flask_login.login_required
def set_prayer_route(date_str):
  """Sets the status of one prayer on a date."""
  data = flask.request.get_json(silent=True) or {}
  prayer_name = data.get("prayer")
  status = data.get("status")
  utils.validate_prayer_name(prayer_name)
  utils.validate_status(status)
  db = _db()
  user_id = flask_login.current_user.id
  if not flask.current_app.config["ALLOW_UNMARK"]:
    current = prayers.fetch_daily_prayers(db, user_id, date_str)
    prayers.check_transition(
        prayer_name,
        current.entries[prayer_name].status,
        status,
        allow_unmark=False,
    )
  prayers.set_prayer_status(db, user_id, date_str, prayer_name, status)
  return flask.jsonify({
      "success": True,
      "date": date_str,
      "prayer": prayer_name,
      "status": status,
  })


@bp.route("/api/stats")
@flask_login.login_required
def stats_route():
  """Returns chart data for the requested period and prayer filter."""
  period = flask.request.args.get("period", "daily")
  prayer_filter = flask.request.args.get("filter", "all")
  tz = flask_login.current_user.timezone
  buckets = stats.get_prayer_stats(
      _db(),
      flask_login.current_user.id,
      period,
      prayer_filter,
      today=utils.today_date(tz),
  )
  return flask.jsonify(
      {"period": period, "filter": prayer_filter, "data": buckets}
  )


@bp.route("/api/profile", methods=["GET"])
@flask_login.login_required
def get_profile_route():
  profile = users.get_user_profile(_db(), flask_login.current_user.id)
  return flask.jsonify(profile.to_dict())


@bp.route("/api/profile", methods=["POST"])
@flask_login.login_required
def update_profile_route():
  """Merges edited profile fields for the current user."""
  data = flask.request.get_json(silent=True)
  if not isinstance(data, dict):
    return _error_response("Invalid data", 400)
  profile = users.update_user_profile(_db(), flask_login.current_user.id, data)
  return flask.jsonify({"success": True, "profile": profile.to_dict()})


@bp.route("/api/profile/image", methods=["POST"])
@flask_login.login_required
def upload_profile_image_route():
  """Uploads a new profile picture and replaces the previous one."""
  file_storage = flask.request.files.get("image")
  if file_storage is None:
    return _error_response("Missing image file.", 400)
  db = _db()
  bucket = _bucket()
  user_id = flask_login.current_user.id
  previous_path = users.get_user_profile(db, user_id).photo_path
  path = storage.profile_image_path(user_id, file_storage.filename)
  photo_url = storage.upload_profile_image(bucket, user_id, file_storage)
  users.set_profile_image(db, user_id, photo_url, path)
  if previous_path and previous_path != path:
    try:
      storage.delete_profile_image_by_path(bucket, previous_path)
    except errors.StorageUnavailable as e:
      # The new picture is saved; an orphaned old file is only logged.
      flask.current_app.logger.error(
          "Failed to delete old profile image %s: %s", previous_path, e
      )
  return flask.jsonify({"success": True, "photo_url": photo_url})


@bp.route("/api/profile/image", methods=["DELETE"])
@flask_login.login_required
def delete_profile_image_route():
  """Removes the current user's uploaded profile picture."""
  db = _db()
  user_id = flask_login.current_user.id
  profile = users.get_user_profile(db, user_id)
  if profile.photo_path:
    storage.delete_profile_image_by_path(_bucket(), profile.photo_path)
  users.set_profile_image(db, user_id, "", "")
  return flask.jsonify({"success": True})


@bp.route("/api/inspiration")
def inspiration_route():
  return flask.jsonify(inspiration.fetch_daily_inspiration(_db()))


@bp.route("/api/salah_tips")
def salah_tips_route():
  """Returns the Salah improvement tips."""
  return flask.jsonify(inspiration.get_salah_tips(_db()))


@bp.route("/api/verse_suggestion", methods=["POST"])
@flask_login.login_required
def verse_suggestion_route():
  """Suggests a Quran verse for the challenge the user describes."""
  data = flask.request.get_json(silent=True) or {}
  suggestion = verse_suggestion.suggest_verse(data.get("challenge"))
  return flask.jsonify(suggestion)


def _init_firebase(app):
  """Initializes the default Firebase Admin app if not already done."""
  try:
    return firebase_admin.get_app()
  except ValueError:
    options = {
        "projectId": os.environ.get(
            "GOOGLE_CLOUD_PROJECT", utils.DEFAULT_PROJECT_ID
        )
    }
    if app.config.get("STORAGE_BUCKET"):
      options["storageBucket"] = app.config["STORAGE_BUCKET"]
    return firebase_admin.initialize_app(options=options)


def create_app(db=None, bucket=None, verify_id_token=None, config=None):
  """Builds the Flask app.

  Backend clients are created once here and shared by every request. Tests
  pass in-memory replacements for `db`, `bucket` and `verify_id_token`.
  """
  app = flask.Flask(__name__, template_folder=TEMPLATE_DIR)
  app.config.update(
      DEFAULT_TIMEZONE=os.environ.get(
          "DEFAULT_TIMEZONE", utils.DEFAULT_TIMEZONE
      ),
      ALLOW_UNMARK=_env_flag("ALLOW_UNMARK", default=True),
      STORAGE_BUCKET=os.environ.get("STORAGE_BUCKET"),
      LOG_LEVEL=os.environ.get("LOG_LEVEL", "INFO"),
  )
  if config:
    app.config.update(config)
  if not app.config.get("SECRET_KEY"):
    app.secret_key = secrets_fetcher.get_flask_secret_key()
  logging.basicConfig(level=app.config["LOG_LEVEL"])

  if db is None:
    db = utils.get_db_client()
  if verify_id_token is None or (
      bucket is None and app.config.get("STORAGE_BUCKET")
  ):
    firebase_app = _init_firebase(app)
    if verify_id_token is None:
      verify_id_token = functools.partial(
          firebase_auth.verify_id_token, app=firebase_app
      )
    if bucket is None and app.config.get("STORAGE_BUCKET"):
      bucket = firebase_storage.bucket(app=firebase_app)

  app.extensions[EXTENSION_KEY] = {
      "db": db,
      "bucket": bucket,
      "verify_id_token": verify_id_token,
  }
  login_manager.init_app(app)
  app.register_blueprint(bp)
  return app


if __name__ == "__main__":
  create_app().run(
      debug=True, host="0.0.0.0", port=int(os.environ.get("PORT", 8080))
  )
