"""Service location management and slot availability views."""

from datetime import date

import structlog

from cin_agenda.core.clock import Clock, utc_now
from cin_agenda.core.exceptions import ErrorKind, SchedulingError
from cin_agenda.core.redis_client import CacheManager
from cin_agenda.schemas.blocked_dates import BlockType
from cin_agenda.schemas.locations import (
    DayAvailability,
    Location,
    LocationCreate,
    SlotAvailability,
)
from cin_agenda.services.calendar_blocking import CalendarBlockingRegistry
from cin_agenda.services.slot_availability import SlotAvailabilityCalculator
from cin_agenda.store.base import AppointmentStore, StoreSession

logger = structlog.get_logger(__name__)


class LocationService:
    """Service for managing service locations."""

    def __init__(
        self,
        store: AppointmentStore,
        calculator: SlotAvailabilityCalculator,
        registry: CalendarBlockingRegistry,
        cache: CacheManager | None = None,
        cache_ttl: int = 300,
        clock: Clock = utc_now,
    ):
        """Initialize service with store, availability helpers and optional cache."""
        self.store = store
        self.calculator = calculator
        self.registry = registry
        self.cache = cache
        self.cache_ttl = cache_ttl
        self.clock = clock

    @staticmethod
    def _cache_key(tenant_id: int, location_id: int) -> str:
        return f"location:{tenant_id}:{location_id}"

    async def create_location(self, tenant_id: int, data: LocationCreate) -> Location:
        """
        Create a new location.

        Args:
            tenant_id: Owning tenant
            data: Location data

        Returns:
            Created location
        """
        async with self.store.transaction() as tx:
            location = await tx.insert_location(tenant_id, data, self.clock())

        logger.info("location_created", tenant_id=tenant_id, location_id=location.id)
        return location

    async def list_locations(self, tenant_id: int) -> list[Location]:
        """List a tenant's locations by name."""
        async with self.store.transaction() as tx:
            return await tx.list_locations(tenant_id)

    async def get_location(self, tenant_id: int, location_id: int) -> Location:
        """
        Get location by ID, served from cache when possible.

        Raises:
            SchedulingError: NOT_FOUND or TENANT_MISMATCH
        """
        key = self._cache_key(tenant_id, location_id)
        if self.cache is not None:
            cached = self.cache.get_json(key)
            if cached:
                return Location.model_validate(cached)

        async with self.store.transaction() as tx:
            location = await self._require_location(tx, tenant_id, location_id)

        if self.cache is not None:
            self.cache.set_json(key, location.model_dump(mode="json"), ttl=self.cache_ttl)
        return location

    async def day_availability(
        self,
        tenant_id: int,
        location_id: int,
        day: date,
    ) -> DayAvailability:
        """
        Capacity of every working-hours slot of a location on a date.

        Args:
            tenant_id: Tenant scope
            location_id: Service location
            day: Date to inspect

        Returns:
            Per-slot capacity, bookings and block flags
        """
        async with self.store.transaction() as tx:
            location = await self._require_location(tx, tenant_id, location_id)
            booked = await tx.count_active_by_time(tenant_id, location_id, day)
            blocks = await self.registry.blocks_on(tx, tenant_id, day)

        capacity = self.calculator.capacity_for(location)
        slots = []
        for slot_time in self.calculator.working_hours_for(location):
            count = booked.get(slot_time, 0)
            slots.append(
                SlotAvailability(
                    time=slot_time,
                    capacity=capacity,
                    booked=count,
                    remaining=self.calculator.remaining(capacity, count),
                    blocked=any(block.blocks(slot_time) for block in blocks),
                )
            )

        return DayAvailability(
            location_id=location_id,
            date=day,
            full_day_blocked=any(b.block_type == BlockType.FULL_DAY for b in blocks),
            slots=slots,
        )

    async def _require_location(
        self,
        tx: StoreSession,
        tenant_id: int,
        location_id: int,
    ) -> Location:
        location = await tx.get_location(tenant_id, location_id)
        if location is None:
            if await tx.location_owner(location_id) is not None:
                raise SchedulingError(ErrorKind.TENANT_MISMATCH)
            raise SchedulingError.not_found("Location")
        return location
