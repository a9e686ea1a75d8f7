"""
Shared pytest fixtures for backend tests.

Provides an in-memory SQLite engine/session with every model registered,
plus small row factories for repository and API tests.
"""
import sys
from pathlib import Path

import pytest
from sqlalchemy import create_engine, event
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

# Add backend directory to path for imports
backend_dir = Path(__file__).parent.parent
sys.path.insert(0, str(backend_dir))

from prguard.database import Base  # noqa: E402
from prguard import models  # noqa: E402,F401  register models


@pytest.fixture
def engine():
    """Function-scoped in-memory SQLite engine with FK enforcement."""
    eng = create_engine(
        "sqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )

    @event.listens_for(eng, "connect")
    def _set_fk_pragma(dbapi_conn, _):
        cursor = dbapi_conn.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    Base.metadata.create_all(eng)
    yield eng
    eng.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(bind=engine, autocommit=False, autoflush=False)


@pytest.fixture
def session(session_factory):
    """Function-scoped session bound to the in-memory engine."""
    sess = session_factory()
    yield sess
    sess.close()


@pytest.fixture
def seed(session):
    """Insert a repository and one open pull request; returns (repository, pull_request)."""
    from prguard.models.pull_request import PullRequest
    from prguard.models.repository import Repository

    repo = Repository(full_name="acme/web", default_branch="main")
    session.add(repo)
    session.flush()
    pr = PullRequest(
        repository_id=repo.id,
        number=7,
        title="Add login form",
        author="octocat",
        base_branch="main",
        head_branch="feature/login",
        base_commit="base000",
        head_commit="head111",
        status="open",
    )
    session.add(pr)
    session.commit()
    return repo, pr
