"""Appointment store implementations."""

from cin_agenda.store.base import AppointmentStore, StoreSession
from cin_agenda.store.memory import MemoryAppointmentStore
from cin_agenda.store.sql import SqlAppointmentStore

__all__ = [
    "AppointmentStore",
    "MemoryAppointmentStore",
    "SqlAppointmentStore",
    "StoreSession",
]
