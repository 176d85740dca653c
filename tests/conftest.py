import sys
from datetime import datetime
from pathlib import Path

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import NullPool

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from hctf.auth_token import get_token_service  # noqa: E402
from hctf.database import Base, get_db, import_models  # noqa: E402
from hctf.main import app  # noqa: E402
from hctf.models.category import Category  # noqa: E402
from hctf.models.challenge import Challenge  # noqa: E402
from hctf.models.level import Level  # noqa: E402
from hctf.models.log import Log  # noqa: E402
from hctf.models.team import Team  # noqa: E402
from hctf.security import hash_password  # noqa: E402

DEFAULT_PASSWORD = "initialPass1"


@pytest.fixture
def anyio_backend():
    return "asyncio"


@pytest.fixture
def db_file(tmp_path):
    return tmp_path / "hctf.db"


@pytest.fixture
def session_factory(db_file):
    """Synchronous sessions on the test database, for seeding and assertions."""

    engine = create_engine(f"sqlite:///{db_file}")
    import_models()
    Base.metadata.create_all(engine)
    yield sessionmaker(bind=engine, expire_on_commit=False)
    engine.dispose()


@pytest.fixture
def async_session_factory(db_file, session_factory):
    engine = create_async_engine(f"sqlite+aiosqlite:///{db_file}", poolclass=NullPool)
    return sessionmaker(bind=engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
def client(async_session_factory):
    async def _get_db():
        async with async_session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = _get_db
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()


def make_team(factory, name, email=None, *, password=DEFAULT_PASSWORD, admin=False, banned=False):
    with factory() as session:
        team = Team(
            team_name=name,
            email=email or f"{name}@example.com",
            password=hash_password(password),
            admin=admin,
            banned=banned,
            sign_up_time=datetime(2024, 1, 1, 8, 0, 0),
            last_login_time=datetime(2024, 1, 1, 8, 0, 0),
        )
        session.add(team)
        session.commit()
        return team


def make_level(factory, category_name="Web", level_name="Warmup", challenges=0):
    with factory() as session:
        category = session.query(Category).filter_by(category_name=category_name).one_or_none()
        if category is None:
            category = Category(category_name=category_name)
            session.add(category)
            session.flush()
        level = Level(
            category_id=category.category_id,
            level_name=level_name,
            release_time=datetime(2024, 1, 1, 0, 0, 0),
            rules={"unlock": "always"},
        )
        session.add(level)
        session.flush()
        for i in range(challenges):
            session.add(Challenge(level_id=level.level_id, title=f"chal-{i}", description="", score=100))
        session.commit()
        return level


def make_log(factory, team, *, status="correct", score=100.0, flag="hctf{secret}", created_at=None):
    with factory() as session:
        log = Log(
            team_id=team.team_id,
            status=status,
            flag=flag,
            score=score,
            created_at=created_at or datetime(2024, 1, 1, 12, 0, 0),
        )
        session.add(log)
        session.commit()
        return log


def auth_headers(team):
    token = get_token_service().issue(team)
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def admin(session_factory):
    return make_team(session_factory, "root", "root@example.com", admin=True)


@pytest.fixture
def admin_headers(admin):
    return auth_headers(admin)
