import os
from pathlib import Path
from dotenv import load_dotenv

# Override=True so changes in backend/.env take effect on process reload (and not get
# stuck on old environment variables).
#
# For automated tests (SQLite), we need to prevent backend/.env from overriding the
# test DATABASE_URL. Set DISABLE_DOTENV=1 to skip loading .env.
if os.getenv("DISABLE_DOTENV") != "1":
    load_dotenv(override=True)


def _env_bool(name: str, default: str = "0") -> bool:
    return (os.getenv(name, default) or default).strip() in {"1", "true", "True", "yes", "YES"}


_raw_database_url = (os.getenv("DATABASE_URL") or "").strip()
# Default to a local SQLite DB for dev so the backend can start out-of-the-box.
# Use an absolute path so it works regardless of current working directory.
_default_sqlite_path = (Path(__file__).resolve().parent.parent / "dev.db").as_posix()
DATABASE_URL = _raw_database_url or f"sqlite:///{_default_sqlite_path}"

LOG_LEVEL = (os.getenv("LOG_LEVEL") or "INFO").strip().upper()

# Auth / JWT
# NOTE: keep a default for local dev so the server can boot even if SECRET_KEY isn't set.
SECRET_KEY = os.getenv("SECRET_KEY", "dev_secret_change_me")
ACCESS_TOKEN_EXPIRE_MINUTES = int(os.getenv("ACCESS_TOKEN_EXPIRE_MINUTES", str(60 * 24)) or "1440")

# -------------------- Candidate intake --------------------
# A candidate email with an evaluation newer than this window cannot apply again.
REAPPLY_WINDOW_DAYS = int(os.getenv("REAPPLY_WINDOW_DAYS", "182") or "182")

# Automated match thresholds (overall_match, 0-100).
MATCH_ACCEPT_THRESHOLD = int(os.getenv("MATCH_ACCEPT_THRESHOLD", "70") or "70")
MATCH_PENDING_THRESHOLD = int(os.getenv("MATCH_PENDING_THRESHOLD", "50") or "50")

# -------------------- Interview slots --------------------
SLOT_MINUTES = int(os.getenv("SLOT_MINUTES", "45") or "45")
SLOT_DAY_START = os.getenv("SLOT_DAY_START", "09:00")
SLOT_DAY_END = os.getenv("SLOT_DAY_END", "18:00")

# -------------------- Meeting links (Zoom server-to-server OAuth) --------------------
ZOOM_ACCOUNT_ID = os.getenv("ZOOM_ACCOUNT_ID")
ZOOM_CLIENT_ID = os.getenv("ZOOM_CLIENT_ID")
ZOOM_CLIENT_SECRET = os.getenv("ZOOM_CLIENT_SECRET")
ZOOM_JOIN_BEFORE_HOST = _env_bool("ZOOM_JOIN_BEFORE_HOST", "0")
ZOOM_WAITING_ROOM = _env_bool("ZOOM_WAITING_ROOM", "1")
ZOOM_OAUTH_URL = os.getenv("ZOOM_OAUTH_URL", "https://zoom.us/oauth/token")
ZOOM_API_BASE_URL = os.getenv("ZOOM_API_BASE_URL", "https://api.zoom.us/v2")

# Keep this tight: link issuance happens after the reservation commits and the caller waits on it.
MEETING_TIMEOUT_S = float(os.getenv("MEETING_TIMEOUT_S", "10") or "10")
MEETING_DEFAULT_DURATION_MIN = int(os.getenv("MEETING_DEFAULT_DURATION_MIN", "30") or "30")
