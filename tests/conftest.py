import os
import sys
import tempfile
from pathlib import Path

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient
from sqlalchemy.orm import sessionmaker


# Ensure `import backend.app...` works regardless of where pytest is run from.
PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

# Must be set before anything imports backend.app.config (test modules import services at
# collection time).
_TEST_DB_DIR = Path(tempfile.mkdtemp(prefix="ats-tests-"))
os.environ["DISABLE_DOTENV"] = "1"
os.environ["DATABASE_URL"] = f"sqlite+pysqlite:///{(_TEST_DB_DIR / 'test.sqlite3').as_posix()}"
# Never talk to real SMTP / Zoom from tests.
for _name in ("SMTP_HOST", "SMTP_USER", "SMTP_PASS", "ZOOM_ACCOUNT_ID", "ZOOM_CLIENT_ID", "ZOOM_CLIENT_SECRET"):
    os.environ[_name] = ""


class FakeMeetingLinkIssuer:
    def __init__(self):
        self.calls: list[dict] = []
        self.fail = False

    async def create_meeting(self, *, topic, start_time, duration_minutes=None):  # noqa: ANN001
        from backend.app.services.meeting_links import MeetingLink, MeetingLinkError

        self.calls.append({"topic": topic, "start_time": start_time, "duration_minutes": duration_minutes})
        if self.fail:
            raise MeetingLinkError("Zoom is down")
        n = len(self.calls)
        return MeetingLink(
            start_url=f"https://zoom.test/s/{n}?role=host",
            join_url=f"https://zoom.test/j/{n}",
            meeting_id=str(1000 + n),
        )


@pytest.fixture()
def meeting_issuer() -> FakeMeetingLinkIssuer:
    return FakeMeetingLinkIssuer()


@pytest.fixture()
def app(meeting_issuer: FakeMeetingLinkIssuer) -> FastAPI:
    """
    Create a FastAPI app wired to a temporary SQLite DB.

    The startup hook of `backend.app.main` is not run; tables are created here instead.
    """
    from backend.app import database as db

    engine = db.build_engine(os.environ["DATABASE_URL"])
    TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

    # Patch the shared database module so router dependencies use the test DB.
    db.engine = engine
    db.SessionLocal = TestingSessionLocal

    # Import models so Base metadata is populated, then create tables.
    from backend.app import models  # noqa: F401

    db.Base.metadata.drop_all(bind=engine)
    db.Base.metadata.create_all(bind=engine)

    from backend.app.main import ROUTERS, register_error_handlers
    from backend.app.services.meeting_links import get_meeting_link_issuer

    fastapi_app = FastAPI()
    for router in ROUTERS:
        fastapi_app.include_router(router)
    register_error_handlers(fastapi_app)
    fastapi_app.dependency_overrides[get_meeting_link_issuer] = lambda: meeting_issuer

    return fastapi_app


@pytest.fixture()
def client(app: FastAPI) -> TestClient:
    return TestClient(app)


@pytest.fixture()
def db_session(app: FastAPI):
    """
    Direct SQLAlchemy session bound to the same temporary SQLite DB used by the test app.
    """
    from backend.app import database

    db = database.SessionLocal()
    try:
        yield db
    finally:
        db.close()


@pytest.fixture()
def make_session(app: FastAPI):
    """Factory for extra independent sessions (concurrent-claim tests)."""
    from backend.app import database

    sessions = []

    def _make():
        s = database.SessionLocal()
        sessions.append(s)
        return s

    yield _make
    for s in sessions:
        s.close()
