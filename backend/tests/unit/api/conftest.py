"""FastAPI test client wired to the in-memory database and fake collaborators."""

import httpx
import pytest
import pytest_asyncio

from prguard.infra.db.uow import SqlUnitOfWork
from prguard.main import app
from prguard.use_cases.notifications.dispatch import NotificationDispatcherUseCase
from prguard.use_cases.scanning.start_scan import StartScanUseCase
from prguard.wiring.bootstrap import (
    get_notification_dispatcher,
    get_start_scan_use_case,
    get_uow,
)

from tests.unit.use_cases.conftest import FakeMailTransport, FakeScanDispatcher

USER = {"X-User-Id": "5", "X-User-Email": "dev@example.com"}


@pytest.fixture
def scan_dispatcher():
    return FakeScanDispatcher()


@pytest.fixture
def mail_transport():
    return FakeMailTransport()


@pytest.fixture
def api_app(session_factory, scan_dispatcher, mail_transport):
    app.dependency_overrides[get_uow] = lambda: SqlUnitOfWork(session_factory)
    app.dependency_overrides[get_start_scan_use_case] = lambda: StartScanUseCase(
        dispatcher=scan_dispatcher
    )
    app.dependency_overrides[get_notification_dispatcher] = lambda: NotificationDispatcherUseCase(
        mail_transport
    )
    yield app
    app.dependency_overrides.clear()


@pytest_asyncio.fixture
async def client(api_app):
    transport = httpx.ASGITransport(app=api_app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as c:
        yield c
