"""Wiring of the scheduling services from settings."""

from dataclasses import dataclass
from datetime import time

from cin_agenda.config import Settings
from cin_agenda.core.clock import Clock, utc_now
from cin_agenda.core.redis_client import CacheManager
from cin_agenda.services.appointment_service import AppointmentService
from cin_agenda.services.calendar_blocking import CalendarBlockingRegistry
from cin_agenda.services.cancellation_throttle import CancellationThrottle
from cin_agenda.services.collaborators import (
    AuditTrailRecorder,
    LogAuditTrailRecorder,
    LogNotificationDispatcher,
    NotificationDispatcher,
)
from cin_agenda.services.location_service import LocationService
from cin_agenda.services.reschedule_limiter import RescheduleLimiter
from cin_agenda.services.slot_availability import SlotAvailabilityCalculator
from cin_agenda.store.base import AppointmentStore


@dataclass
class Services:
    """Scheduling services sharing one store."""

    appointments: AppointmentService
    locations: LocationService
    blocked_dates: CalendarBlockingRegistry
    throttle: CancellationThrottle


def build_services(
    store: AppointmentStore,
    config: Settings,
    cache: CacheManager | None = None,
    notifier: NotificationDispatcher | None = None,
    audit: AuditTrailRecorder | None = None,
    clock: Clock = utc_now,
) -> Services:
    """
    Build every scheduling service around a store.

    Args:
        store: Appointment store
        config: Application settings with the scheduling limits
        cache: Optional location cache
        notifier: Notification dispatcher; logs by default
        audit: Audit trail recorder; logs by default
        clock: Time source

    Returns:
        Wired services
    """
    audit = audit or LogAuditTrailRecorder()
    notifier = notifier or LogNotificationDispatcher()

    calculator = SlotAvailabilityCalculator(
        default_capacity=config.default_max_appointments_per_slot,
        default_working_hours=[time.fromisoformat(h) for h in config.default_working_hours],
    )
    registry = CalendarBlockingRegistry(store, audit, clock=clock)
    throttle = CancellationThrottle(
        store,
        clock=clock,
        window_days=config.cancellation_window_days,
        threshold=config.cancellation_threshold,
        block_days=config.cpf_block_days,
    )
    limiter = RescheduleLimiter(
        clock=clock,
        window_days=config.reschedule_window_days,
        max_per_window=config.max_reschedules_per_window,
    )

    return Services(
        appointments=AppointmentService(
            store,
            calculator,
            registry,
            throttle,
            limiter,
            notifier,
            audit,
            clock=clock,
        ),
        locations=LocationService(
            store,
            calculator,
            registry,
            cache=cache,
            cache_ttl=config.location_cache_ttl,
            clock=clock,
        ),
        blocked_dates=registry,
        throttle=throttle,
    )
