from collections.abc import AsyncGenerator
from datetime import UTC, datetime

import pytest
import pytest_asyncio
from dotenv import load_dotenv
from httpx import ASGITransport, AsyncClient

# Load environment variables from .env file
load_dotenv()

from cin_agenda.config import Settings
from cin_agenda.dependencies import get_services
from cin_agenda.main import app
from cin_agenda.schemas.appointments import Appointment
from cin_agenda.schemas.locations import Location, LocationCreate
from cin_agenda.services.collaborators import Actor
from cin_agenda.services.factory import Services, build_services
from cin_agenda.store import MemoryAppointmentStore
from tests.factories import (
    OTHER_TENANT_ID,
    TENANT_ID,
    FixedClock,
    RecordingAudit,
    RecordingNotifier,
    make_booking,
    token_headers,
)


@pytest.fixture
def test_settings() -> Settings:
    """Settings with the built-in scheduling defaults."""
    return Settings(_env_file=None)


@pytest.fixture
def clock() -> FixedClock:
    """Clock frozen at 2025-03-01 10:00 UTC."""
    return FixedClock(datetime(2025, 3, 1, 10, 0, tzinfo=UTC))


@pytest.fixture
def store() -> MemoryAppointmentStore:
    """Fresh in-process store."""
    return MemoryAppointmentStore()


@pytest.fixture
def notifier() -> RecordingNotifier:
    return RecordingNotifier()


@pytest.fixture
def audit() -> RecordingAudit:
    return RecordingAudit()


@pytest.fixture
def services(
    store: MemoryAppointmentStore,
    test_settings: Settings,
    notifier: RecordingNotifier,
    audit: RecordingAudit,
    clock: FixedClock,
) -> Services:
    """Scheduling services over the in-process store."""
    return build_services(store, test_settings, notifier=notifier, audit=audit, clock=clock)


@pytest.fixture
def staff() -> Actor:
    """Staff actor for service-level calls."""
    return Actor(name="Ana Secretaria", user_id="staff-1")


@pytest_asyncio.fixture
async def location(services: Services) -> Location:
    """Location of tenant 1 with two appointments per slot."""
    return await services.locations.create_location(
        TENANT_ID,
        LocationCreate(name="Central", max_appointments_per_slot=2),
    )


@pytest_asyncio.fixture
async def other_location(services: Services) -> Location:
    """Location owned by tenant 2."""
    return await services.locations.create_location(
        OTHER_TENANT_ID,
        LocationCreate(name="Other town", max_appointments_per_slot=2),
    )


@pytest_asyncio.fixture
async def booked(services: Services, location: Location) -> Appointment:
    """A pending appointment of tenant 1."""
    return await services.appointments.create_appointment(TENANT_ID, make_booking(location.id))


@pytest_asyncio.fixture
async def client(services: Services) -> AsyncGenerator[AsyncClient, None]:
    """Create a test HTTP client wired to the in-process services."""
    app.dependency_overrides[get_services] = lambda: services

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        yield client

    app.dependency_overrides.clear()


@pytest.fixture
def auth_headers() -> dict:
    """Create authentication headers for tenant 1 staff."""
    return token_headers()


@pytest.fixture
def admin_headers() -> dict:
    """Create authentication headers for a tenant 1 administrator."""
    return token_headers(role="admin")
